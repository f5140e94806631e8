"""Enrichment worker: turns queued submissions into stored records.

Each message of a batch is processed on its own and ends in one of three
outcomes:

    Persisted  the record was written (or already present, with
               write-if-absent enabled)
    Skipped    the message could not be parsed; logged and dropped,
               never retried
    Fatal      normalization or the store write failed; the batch is
               aborted so the queue redelivers all of it

Delivery is at-least-once and writes are not deduplicated, so a batch
aborted after some of its messages were persisted writes those records a
second time on redelivery.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Sequence, Union

from feedback_recs.lib.context import clear_context, set_current_message_id, set_current_user_id
from feedback_recs.lib.exceptions import (
    BaseServiceError,
    FatalProcessingError,
    MalformedMessageError,
)
from feedback_recs.lib.messaging.envelope import QueueMessage, parse_queue_body
from feedback_recs.lib.store.base import RecordStore
from .enrichment import Enricher
from .models import RecommendationRecord, epoch_millis, iso_timestamp, utc_now

logger = logging.getLogger(__name__)


@dataclass
class Persisted:
    message_id: str
    owner: str
    submitted_at: int
    written: bool = True
    used_fallback: bool = False


@dataclass
class Skipped:
    message_id: str
    reason: str


@dataclass
class Fatal:
    message_id: str
    error: BaseException


Outcome = Union[Persisted, Skipped, Fatal]


@dataclass
class BatchResult:
    """Summary of a processed batch, in the shape the Lambda returns."""

    successful: List[Dict[str, Any]] = field(default_factory=list)
    failed: List[Dict[str, Any]] = field(default_factory=list)
    outcomes: List[Outcome] = field(default_factory=list)

    def record(self, outcome: Outcome) -> None:
        self.outcomes.append(outcome)
        if isinstance(outcome, Persisted):
            self.successful.append({"messageId": outcome.message_id, "userId": outcome.owner})
        elif isinstance(outcome, Skipped):
            self.failed.append({"messageId": outcome.message_id, "error": outcome.reason})
        else:
            self.failed.append({"messageId": outcome.message_id, "error": str(outcome.error)})

    def to_dict(self) -> Dict[str, Any]:
        return {"successful": self.successful, "failed": self.failed}


class BatchAbortedError(FatalProcessingError):
    """Raised when a message in a batch ends Fatal.

    Carries the partial result so callers can log what had already been
    persisted before the abort.
    """

    def __init__(self, message: str, result: BatchResult, cause: BaseException):
        super().__init__(message, details=result.to_dict())
        self.result = result
        self.cause = cause


class EnrichmentWorker:
    """Consume submissions, enrich them and persist recommendation records."""

    def __init__(
        self,
        store: RecordStore,
        enricher: Enricher,
        write_if_absent: bool = False,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.enricher = enricher
        self.write_if_absent = write_if_absent
        self._clock = clock

    def process_message(self, message: QueueMessage) -> Outcome:
        """Run one message through parse, enrich, normalize and persist."""
        set_current_message_id(message.message_id)
        set_current_user_id(None)
        try:
            try:
                envelope = parse_queue_body(message.body)
            except MalformedMessageError as e:
                logger.error(
                    "Skipping malformed message: %s",
                    e.message,
                    extra={"receive_count": message.receive_count},
                )
                return Skipped(message.message_id, e.message)

            set_current_user_id(envelope.user_id)
            logger.info("Generating recommendations")

            try:
                enrichment = self.enricher.enrich(envelope.feedback)

                now = self._clock()
                generated_at = iso_timestamp(now)
                record = RecommendationRecord(
                    owner=envelope.user_id,
                    submitted_at=envelope.timestamp or epoch_millis(now),
                    category=envelope.feedback_type,
                    original_text=envelope.feedback,
                    enriched_output=enrichment.items,
                    tags=envelope.tags,
                    completed=False,
                    generated_at=generated_at,
                    updated_at=generated_at,
                    model_identifier=self.enricher.model_id,
                )
                written = self.store.put_record(record, if_absent=self.write_if_absent)
            except BaseServiceError as e:
                logger.error("Failed to process message: %s", e.message, exc_info=True)
                return Fatal(message.message_id, e)
            except Exception as e:
                logger.error("Unexpected error processing message: %s", e, exc_info=True)
                return Fatal(message.message_id, e)

            logger.info(
                "Saved recommendations record",
                extra={
                    "submitted_at": record.submitted_at,
                    "item_count": len(record.enriched_output),
                    "used_fallback": enrichment.used_fallback,
                    "written": written,
                },
            )
            return Persisted(
                message.message_id,
                record.owner,
                record.submitted_at,
                written=written,
                used_fallback=enrichment.used_fallback,
            )
        finally:
            clear_context()

    def process_batch(self, messages: Sequence[QueueMessage]) -> BatchResult:
        """Process a batch sequentially, aborting on the first Fatal outcome.

        Raises:
            BatchAbortedError: If any message ends Fatal; the batch must not
                be acknowledged
        """
        result = BatchResult()
        for message in messages:
            outcome = self.process_message(message)
            result.record(outcome)
            if isinstance(outcome, Fatal):
                logger.error(
                    "Aborting batch of %s messages for redelivery",
                    len(messages),
                    extra={"failed_message_id": message.message_id},
                )
                raise BatchAbortedError(
                    f"Message {message.message_id} failed: {outcome.error}",
                    result,
                    outcome.error,
                ) from outcome.error

        logger.info(
            "Processing complete",
            extra={"successful": len(result.successful), "failed": len(result.failed)},
        )
        return result
