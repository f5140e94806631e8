"""Wire shapes carried by the dispatch channel.

A submission travels as JSON inside an SNS notification, and the
notification travels as the body of an SQS message:

    SQS body -> {"Type": "Notification", "MessageId": ..., "Message": "<inner JSON>", ...}
    inner    -> {"userId", "feedback", "timestamp", "tags", "feedbackType"}
"""

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from feedback_recs.lib.exceptions import MalformedMessageError
from feedback_recs.lib.feedback.models import DEFAULT_CATEGORY

logger = logging.getLogger(__name__)

SUBMISSION_SUBJECT = "Feedback Recommendation Request"


class SubmissionEnvelope(BaseModel):
    """Inner message published by intake and consumed by the worker."""

    user_id: str = Field(..., alias="userId")
    feedback: str
    timestamp: Optional[int] = None
    tags: List[str] = Field(default_factory=list)
    feedback_type: str = Field(DEFAULT_CATEGORY, alias="feedbackType")

    model_config = ConfigDict(populate_by_name=True)

    def to_message(self) -> str:
        """Serialize to the JSON string published to the topic."""
        return json.dumps(self.model_dump(by_alias=True))


@dataclass
class QueueMessage:
    """A single message as received from the queue."""

    message_id: str
    receipt_handle: str
    body: str
    receive_count: int = 1

    @classmethod
    def from_lambda_record(cls, record: Dict[str, Any]) -> "QueueMessage":
        """Build from an entry of an SQS-triggered Lambda event's Records."""
        attributes = record.get("attributes") or {}
        return cls(
            message_id=record.get("messageId", ""),
            receipt_handle=record.get("receiptHandle", ""),
            body=record.get("body", ""),
            receive_count=int(attributes.get("ApproximateReceiveCount", 1)),
        )

    @classmethod
    def from_sqs_message(cls, message: Dict[str, Any]) -> "QueueMessage":
        """Build from an entry of an SQS ReceiveMessage response."""
        attributes = message.get("Attributes") or {}
        return cls(
            message_id=message["MessageId"],
            receipt_handle=message["ReceiptHandle"],
            body=message.get("Body", ""),
            receive_count=int(attributes.get("ApproximateReceiveCount", 1)),
        )


def wrap_notification(
    message: str,
    topic_arn: str,
    subject: str = SUBMISSION_SUBJECT,
    message_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Build the SNS notification document a subscribed queue receives."""
    return {
        "Type": "Notification",
        "MessageId": message_id or str(uuid.uuid4()),
        "TopicArn": topic_arn,
        "Subject": subject,
        "Message": message,
        "Timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
    }


def parse_queue_body(body: str) -> SubmissionEnvelope:
    """Unwrap an SQS body into the submission it carries.

    Raises:
        MalformedMessageError: If either JSON layer is unreadable or the
            submission lacks a userId or feedback text
    """
    try:
        notification = json.loads(body)
    except (TypeError, ValueError) as e:
        raise MalformedMessageError(f"Queue body is not valid JSON: {e}") from e

    if not isinstance(notification, dict) or "Message" not in notification:
        raise MalformedMessageError("Queue body is not a topic notification")

    try:
        inner = json.loads(notification["Message"])
    except (TypeError, ValueError) as e:
        raise MalformedMessageError(f"Notification message is not valid JSON: {e}") from e

    if not isinstance(inner, dict):
        raise MalformedMessageError("Notification message is not a JSON object")

    user_id = inner.get("userId")
    feedback = inner.get("feedback")
    if not user_id or not feedback:
        raise MalformedMessageError("Invalid message format - missing userId or feedback")

    timestamp = inner.get("timestamp")
    if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
        timestamp = None

    tags = inner.get("tags")
    if not isinstance(tags, list):
        tags = []

    return SubmissionEnvelope(
        userId=str(user_id),
        feedback=str(feedback),
        timestamp=int(timestamp) if timestamp is not None else None,
        tags=[str(tag) for tag in tags],
        feedbackType=str(inner.get("feedbackType") or DEFAULT_CATEGORY),
    )
