"""Interfaces of the dispatch channel's two ends."""

from abc import ABC, abstractmethod
from typing import List, Sequence

from .envelope import QueueMessage, SubmissionEnvelope


class SubmissionPublisher(ABC):
    """Fan-out end used by intake."""

    @abstractmethod
    def publish_submission(self, envelope: SubmissionEnvelope) -> str:
        """Publish a submission and return the channel's message id.

        Raises:
            ChannelPublishError: If the channel rejects the message
        """


class SubmissionQueue(ABC):
    """Consuming end used by the delivery loop.

    Messages are at-least-once and unordered. A received message stays
    invisible for the visibility timeout; unless acknowledged it is handed
    out again, and after the maximum receive count it is dead-lettered.
    """

    @abstractmethod
    def receive(self) -> List[QueueMessage]:
        """Receive up to one batch of messages (possibly empty)."""

    @abstractmethod
    def ack(self, messages: Sequence[QueueMessage]) -> None:
        """Acknowledge (delete) every message of a processed batch."""

    @abstractmethod
    def nack(self, messages: Sequence[QueueMessage]) -> None:
        """Give up on a batch so its messages are redelivered."""
