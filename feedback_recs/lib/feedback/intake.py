"""Submission intake: validate feedback and hand it to the dispatch channel."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from feedback_recs.config import MAX_FEEDBACK_LENGTH
from feedback_recs.lib.exceptions import BadRequestError, UnauthorizedError
from feedback_recs.lib.messaging.base import SubmissionPublisher
from feedback_recs.lib.messaging.envelope import SubmissionEnvelope
from .models import DEFAULT_CATEGORY, epoch_millis, utc_now

logger = logging.getLogger(__name__)


@dataclass
class SubmissionReceipt:
    message_id: str
    submitted_at: int


class SubmissionIntake:
    """Validate a feedback submission and publish it for enrichment."""

    def __init__(
        self,
        publisher: SubmissionPublisher,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.publisher = publisher
        self._clock = clock

    def submit(
        self,
        caller_identity: Optional[str],
        feedback: Any,
        tags: Any = None,
        category: Optional[str] = None,
    ) -> SubmissionReceipt:
        """Publish a submission on behalf of the caller.

        Args:
            caller_identity: Verified caller identity from the identity gate
            feedback: Free-text feedback, 1 to 10,000 characters
            tags: Optional list of tags
            category: Optional category, defaults to "general"

        Returns:
            SubmissionReceipt with the channel message id

        Raises:
            UnauthorizedError: If caller identity is missing
            BadRequestError: If feedback or tags are invalid
            ChannelPublishError: If the channel rejects the message
        """
        if not caller_identity:
            raise UnauthorizedError("User ID not found in authentication context")

        if not isinstance(feedback, str) or not feedback.strip():
            raise BadRequestError("Feedback text is required and must be a non-empty string")

        if len(feedback) > MAX_FEEDBACK_LENGTH:
            logger.warning("Feedback too long: %s characters", len(feedback))
            raise BadRequestError(
                f"Feedback text must not exceed {MAX_FEEDBACK_LENGTH:,} characters"
            )

        if tags is not None and (
            not isinstance(tags, list) or not all(isinstance(tag, str) for tag in tags)
        ):
            raise BadRequestError("Tags must be an array of strings")

        envelope = SubmissionEnvelope(
            userId=caller_identity,
            feedback=feedback.strip(),
            timestamp=epoch_millis(self._clock()),
            tags=tags or [],
            feedbackType=category or DEFAULT_CATEGORY,
        )

        message_id = self.publisher.publish_submission(envelope)
        logger.info(
            "Feedback submitted for processing",
            extra={"sns_message_id": message_id, "submitted_at": envelope.timestamp},
        )
        return SubmissionReceipt(message_id=message_id, submitted_at=envelope.timestamp)
