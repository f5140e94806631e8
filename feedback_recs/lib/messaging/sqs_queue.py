"""SQS consumer for the feedback processing queue."""
import logging
from typing import List, Optional, Sequence

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from feedback_recs.config import QUEUE_MAX_BATCH_SIZE, QUEUE_RECEIVE_WAIT_SECONDS
from feedback_recs.lib.exceptions import ChannelReceiveError
from .base import SubmissionQueue
from .envelope import QueueMessage

logger = logging.getLogger(__name__)


class SQSSubmissionQueue(SubmissionQueue):
    """Long-poll consumer over the SQS queue subscribed to the topic.

    Redelivery and dead-lettering are handled by the queue itself: a batch
    that is not acknowledged reappears once its visibility timeout lapses,
    and the redrive policy moves it to the dead-letter queue after the
    maximum receive count.
    """

    def __init__(
        self,
        queue_url: str,
        region: str = "us-east-1",
        profile: Optional[str] = None,
        client=None,
        wait_time_seconds: int = QUEUE_RECEIVE_WAIT_SECONDS,
        max_messages: int = QUEUE_MAX_BATCH_SIZE,
    ):
        """Initialize SQS consumer.

        Args:
            queue_url: URL of the SQS queue to poll
            region: AWS region (default: us-east-1)
            profile: Optional named AWS profile
            client: Pre-built SQS client (tests)
            wait_time_seconds: Long-poll wait per receive (max 20)
            max_messages: Batch size per receive (max 10)
        """
        self.queue_url = queue_url
        self.region = region
        self.wait_time_seconds = wait_time_seconds
        self.max_messages = max_messages
        if client is None:
            if profile:
                client = boto3.Session(profile_name=profile).client("sqs", region_name=region)
            else:
                client = boto3.client("sqs", region_name=region)
        self.sqs_client = client

    def receive(self) -> List[QueueMessage]:
        try:
            response = self.sqs_client.receive_message(
                QueueUrl=self.queue_url,
                MaxNumberOfMessages=self.max_messages,
                WaitTimeSeconds=self.wait_time_seconds,
                AttributeNames=["ApproximateReceiveCount"],
            )
        except (ClientError, BotoCoreError) as e:
            raise ChannelReceiveError(f"Failed to receive messages: {e}") from e

        messages = [QueueMessage.from_sqs_message(m) for m in response.get("Messages", [])]
        if messages:
            logger.debug("Received %s messages from %s", len(messages), self.queue_url)
        return messages

    def ack(self, messages: Sequence[QueueMessage]) -> None:
        for start in range(0, len(messages), self.max_messages):
            chunk = messages[start:start + self.max_messages]
            entries = [
                {"Id": str(index), "ReceiptHandle": message.receipt_handle}
                for index, message in enumerate(chunk)
            ]
            try:
                response = self.sqs_client.delete_message_batch(
                    QueueUrl=self.queue_url,
                    Entries=entries,
                )
            except (ClientError, BotoCoreError) as e:
                # The messages will be redelivered once their visibility lapses.
                logger.error(f"Failed to delete processed messages: {e}", exc_info=True)
                continue

            for failure in response.get("Failed", []):
                message = chunk[int(failure["Id"])]
                logger.error(
                    "Failed to delete processed message: %s",
                    failure.get("Message", failure.get("Code")),
                    extra={"sqs_message_id": message.message_id},
                )

    def nack(self, messages: Sequence[QueueMessage]) -> None:
        # Left in flight: the queue redelivers after the visibility timeout.
        logger.warning(
            "Leaving %s messages for redelivery",
            len(messages),
            extra={"sqs_message_ids": [m.message_id for m in messages]},
        )
