"""In-process dispatch channel for local development and tests.

Reproduces the queue semantics the worker relies on: at-least-once
delivery, a visibility timeout after each receive, dead-lettering once a
message has been received ``max_receive_count`` times without being
acknowledged, and retention limits on both queues.
"""

import json
import logging
import threading
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from feedback_recs.config import (
    DEAD_LETTER_RETENTION_SECONDS,
    QUEUE_MAX_BATCH_SIZE,
    QUEUE_MAX_RECEIVE_COUNT,
    QUEUE_RETENTION_SECONDS,
    QUEUE_VISIBILITY_TIMEOUT_SECONDS,
)
from .base import SubmissionPublisher, SubmissionQueue
from .envelope import QueueMessage, SubmissionEnvelope, wrap_notification

logger = logging.getLogger(__name__)

LOCAL_TOPIC_ARN = "arn:aws:sns:local:000000000000:feedback-recommendations"


@dataclass
class _Entry:
    message_id: str
    body: str
    sent_at: float
    visible_at: float
    receive_count: int = 0
    receipt_handle: Optional[str] = None


class InMemoryDispatchChannel(SubmissionPublisher, SubmissionQueue):
    """Topic, queue and dead-letter queue held in one process."""

    def __init__(
        self,
        visibility_timeout: float = QUEUE_VISIBILITY_TIMEOUT_SECONDS,
        max_receive_count: int = QUEUE_MAX_RECEIVE_COUNT,
        batch_size: int = QUEUE_MAX_BATCH_SIZE,
        retention_seconds: float = QUEUE_RETENTION_SECONDS,
        dead_letter_retention_seconds: float = DEAD_LETTER_RETENTION_SECONDS,
        topic_arn: str = LOCAL_TOPIC_ARN,
        clock: Callable[[], float] = time.time,
    ):
        self.visibility_timeout = visibility_timeout
        self.max_receive_count = max_receive_count
        self.batch_size = batch_size
        self.retention_seconds = retention_seconds
        self.dead_letter_retention_seconds = dead_letter_retention_seconds
        self.topic_arn = topic_arn
        self._clock = clock
        self._queue: "OrderedDict[str, _Entry]" = OrderedDict()
        self._dead_letters: "OrderedDict[str, _Entry]" = OrderedDict()
        self._lock = threading.Lock()

    def publish_submission(self, envelope: SubmissionEnvelope) -> str:
        notification = wrap_notification(envelope.to_message(), self.topic_arn)
        message_id = notification["MessageId"]
        now = self._clock()
        with self._lock:
            self._queue[message_id] = _Entry(
                message_id=message_id,
                body=json.dumps(notification),
                sent_at=now,
                visible_at=now,
            )
        logger.info(
            "Feedback submission queued in-process",
            extra={"owner": envelope.user_id, "sns_message_id": message_id},
        )
        return message_id

    def receive(self) -> List[QueueMessage]:
        now = self._clock()
        batch: List[QueueMessage] = []
        with self._lock:
            self._expire(now)
            for message_id in list(self._queue):
                if len(batch) >= self.batch_size:
                    break
                entry = self._queue[message_id]
                if entry.visible_at > now:
                    continue
                if entry.receive_count >= self.max_receive_count:
                    del self._queue[message_id]
                    entry.receipt_handle = None
                    self._dead_letters[message_id] = entry
                    logger.warning(
                        "Message moved to dead-letter queue after %s receives",
                        entry.receive_count,
                        extra={"sns_message_id": message_id},
                    )
                    continue
                entry.receive_count += 1
                entry.visible_at = now + self.visibility_timeout
                entry.receipt_handle = uuid.uuid4().hex
                batch.append(
                    QueueMessage(
                        message_id=entry.message_id,
                        receipt_handle=entry.receipt_handle,
                        body=entry.body,
                        receive_count=entry.receive_count,
                    )
                )
        return batch

    def ack(self, messages: Sequence[QueueMessage]) -> None:
        with self._lock:
            for message in messages:
                entry = self._queue.get(message.message_id)
                if entry is not None and entry.receipt_handle == message.receipt_handle:
                    del self._queue[message.message_id]

    def nack(self, messages: Sequence[QueueMessage]) -> None:
        now = self._clock()
        with self._lock:
            for message in messages:
                entry = self._queue.get(message.message_id)
                if entry is not None and entry.receipt_handle == message.receipt_handle:
                    entry.visible_at = now

    def dead_letters(self) -> List[QueueMessage]:
        """Return the messages currently held in the dead-letter queue."""
        with self._lock:
            self._expire(self._clock())
            return [
                QueueMessage(
                    message_id=entry.message_id,
                    receipt_handle="",
                    body=entry.body,
                    receive_count=entry.receive_count,
                )
                for entry in self._dead_letters.values()
            ]

    def redrive(self) -> int:
        """Move every dead letter back to the main queue.

        Returns:
            Number of messages moved
        """
        now = self._clock()
        with self._lock:
            moved = len(self._dead_letters)
            for message_id, entry in self._dead_letters.items():
                entry.receive_count = 0
                entry.visible_at = now
                self._queue[message_id] = entry
            self._dead_letters.clear()
        if moved:
            logger.info("Redrove %s messages from the dead-letter queue", moved)
        return moved

    def pending_count(self) -> int:
        """Number of messages in the main queue, visible or in flight."""
        with self._lock:
            return len(self._queue)

    def _expire(self, now: float) -> None:
        for message_id in [
            m for m, e in self._queue.items() if now - e.sent_at >= self.retention_seconds
        ]:
            del self._queue[message_id]
        for message_id in [
            m
            for m, e in self._dead_letters.items()
            if now - e.sent_at >= self.dead_letter_retention_seconds
        ]:
            del self._dead_letters[message_id]
