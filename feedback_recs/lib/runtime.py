"""Process-wide runtime container.

AWS clients are built once per process (or per warm Lambda container) and
handed to the components that need them. Tests build their own Runtime from
in-memory backends instead of patching module globals.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import Callable, Optional

from feedback_recs import config
from feedback_recs.config import ConfigurationError
from feedback_recs.lib.config import EnvironmentConfig, load_environment
from feedback_recs.lib.feedback.enrichment import BedrockInferenceClient, Enricher, InferenceClient
from feedback_recs.lib.feedback.intake import SubmissionIntake
from feedback_recs.lib.feedback.models import utc_now
from feedback_recs.lib.feedback.queries import QuerySurface
from feedback_recs.lib.feedback.worker import EnrichmentWorker
from feedback_recs.lib.messaging.base import SubmissionPublisher, SubmissionQueue
from feedback_recs.lib.messaging.delivery import AtLeastOnceBatchDelivery
from feedback_recs.lib.messaging.memory_channel import InMemoryDispatchChannel
from feedback_recs.lib.messaging.sns_publisher import SNSSubmissionPublisher
from feedback_recs.lib.messaging.sqs_queue import SQSSubmissionQueue
from feedback_recs.lib.store import DynamoDBRecordStore, InMemoryRecordStore, RecordStore

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    """Wired components for one process."""

    environment: EnvironmentConfig
    store: RecordStore
    enricher: Enricher
    publisher: Optional[SubmissionPublisher] = None
    queue: Optional[SubmissionQueue] = None
    write_if_absent: bool = False
    clock: Callable[[], datetime] = utc_now

    @property
    def intake(self) -> SubmissionIntake:
        if self.publisher is None:
            raise ConfigurationError("SNS_TOPIC_ARN is not configured")
        return SubmissionIntake(self.publisher, clock=self.clock)

    @property
    def queries(self) -> QuerySurface:
        return QuerySurface(self.store, clock=self.clock)

    @property
    def worker(self) -> EnrichmentWorker:
        return EnrichmentWorker(
            self.store,
            self.enricher,
            write_if_absent=self.write_if_absent,
            clock=self.clock,
        )

    @property
    def delivery(self) -> AtLeastOnceBatchDelivery:
        if self.queue is None:
            raise ConfigurationError("SQS_QUEUE_URL is not configured")
        return AtLeastOnceBatchDelivery(self.queue, self.worker)


def _build_store() -> RecordStore:
    if config.get_store_backend() == "memory":
        logger.info("Using in-memory record store")
        return InMemoryRecordStore()

    store = DynamoDBRecordStore(
        table_name=config.get_table_name(),
        region=config.get_aws_region(),
        profile=config.get_aws_profile(),
        endpoint_url=config.get_dynamodb_endpoint_url(),
    )
    if config.should_create_table():
        store.ensure_table()
    logger.info("Using DynamoDB record store: %s", store.table_name)
    return store


def _build_channel():
    """Return (publisher, queue) for the configured channel backend."""
    if config.get_channel_backend() == "memory":
        logger.info("Using in-process dispatch channel")
        channel = InMemoryDispatchChannel()
        return channel, channel

    publisher = None
    topic_arn = config.get_sns_topic_arn()
    if topic_arn:
        publisher = SNSSubmissionPublisher(
            topic_arn=topic_arn,
            region=config.get_aws_region(),
            profile=config.get_aws_profile(),
        )
    else:
        logger.warning("SNS_TOPIC_ARN not set; feedback submission is disabled")

    queue = None
    queue_url = config.get_sqs_queue_url()
    if queue_url:
        queue = SQSSubmissionQueue(
            queue_url=queue_url,
            region=config.get_aws_region(),
            profile=config.get_aws_profile(),
        )
    return publisher, queue


def build_runtime(
    store: Optional[RecordStore] = None,
    publisher: Optional[SubmissionPublisher] = None,
    queue: Optional[SubmissionQueue] = None,
    inference_client: Optional[InferenceClient] = None,
    clock: Callable[[], datetime] = utc_now,
) -> Runtime:
    """Build a runtime from configuration, using any components passed in."""
    environment = load_environment(config.get_app_env())

    if store is None:
        store = _build_store()
    if publisher is None and queue is None:
        publisher, queue = _build_channel()
    if inference_client is None:
        inference_client = BedrockInferenceClient(
            model_id=config.get_bedrock_model_id(),
            region=config.get_aws_region(),
            profile=config.get_aws_profile(),
            timeout_seconds=config.get_bedrock_timeout_seconds(),
        )

    return Runtime(
        environment=environment,
        store=store,
        enricher=Enricher(inference_client, clock=clock),
        publisher=publisher,
        queue=queue,
        write_if_absent=config.get_store_write_if_absent(),
        clock=clock,
    )


@lru_cache(maxsize=1)
def get_runtime() -> Runtime:
    """Return the process-wide runtime, building it on first use."""
    return build_runtime()
