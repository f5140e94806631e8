"""SNS publisher for feedback submissions."""
import logging
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from feedback_recs.lib.exceptions import ChannelPublishError
from .base import SubmissionPublisher
from .envelope import SUBMISSION_SUBJECT, SubmissionEnvelope

logger = logging.getLogger(__name__)


class SNSSubmissionPublisher(SubmissionPublisher):
    """Publish feedback submissions to the fan-out topic via AWS SNS."""

    def __init__(
        self,
        topic_arn: str,
        region: str = "us-east-1",
        profile: Optional[str] = None,
        client=None,
    ):
        """Initialize SNS publisher.

        Args:
            topic_arn: ARN of SNS topic to publish to
            region: AWS region (default: us-east-1)
            profile: Optional named AWS profile
            client: Pre-built SNS client (tests)
        """
        self.topic_arn = topic_arn
        self.region = region
        if client is None:
            if profile:
                client = boto3.Session(profile_name=profile).client("sns", region_name=region)
            else:
                client = boto3.client("sns", region_name=region)
        self.sns_client = client

    def publish_submission(self, envelope: SubmissionEnvelope) -> str:
        """Publish a submission to the topic.

        Args:
            envelope: Submission carrying userId, trimmed feedback, timestamp,
                tags and feedbackType

        Returns:
            The SNS MessageId

        Raises:
            ChannelPublishError: If SNS publish fails
        """
        log_extra = {
            "topic_arn": self.topic_arn,
            "region": self.region,
            "owner": envelope.user_id,
            "feedback_length": len(envelope.feedback),
            "tag_count": len(envelope.tags),
        }
        logger.info("SNS publish attempt", extra=log_extra)

        try:
            response = self.sns_client.publish(
                TopicArn=self.topic_arn,
                Subject=SUBMISSION_SUBJECT,
                Message=envelope.to_message(),
                MessageAttributes={
                    "userId": {
                        "DataType": "String",
                        "StringValue": envelope.user_id,
                    },
                    "timestamp": {
                        "DataType": "Number",
                        "StringValue": str(envelope.timestamp),
                    },
                },
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(
                f"Failed to publish feedback submission to SNS: {e}",
                exc_info=True,
                extra=log_extra,
            )
            raise ChannelPublishError("Failed to submit feedback for processing") from e

        message_id = response["MessageId"]
        logger.info(
            f"Feedback submission published via SNS: {message_id}",
            extra={**log_extra, "sns_message_id": message_id},
        )
        return message_id
