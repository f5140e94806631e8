"""At-least-once, non-idempotent batch delivery.

The only place where the queue and the worker meet. A batch is acknowledged
as a whole once every message in it has been processed, or not at all. An
unacknowledged batch is redelivered in full, so messages that were already
persisted before the failure are processed, and written, again.
"""

import logging
from typing import Optional

from feedback_recs.lib.feedback.worker import BatchAbortedError, BatchResult, EnrichmentWorker
from .base import SubmissionQueue

logger = logging.getLogger(__name__)


class AtLeastOnceBatchDelivery:
    """Pull batches from a queue and hand them to the enrichment worker."""

    def __init__(self, queue: SubmissionQueue, worker: EnrichmentWorker):
        self.queue = queue
        self.worker = worker

    def run_once(self) -> Optional[BatchResult]:
        """Receive and process a single batch.

        Returns:
            The batch result, or None if the queue returned no messages

        Raises:
            BatchAbortedError: If the batch failed; it has been released for
                redelivery
        """
        messages = self.queue.receive()
        if not messages:
            return None

        try:
            result = self.worker.process_batch(messages)
        except BatchAbortedError:
            self.queue.nack(messages)
            raise

        self.queue.ack(messages)
        return result

    def run_until_empty(self, max_batches: Optional[int] = None) -> int:
        """Drain the queue, continuing past failed batches.

        Failed batches are released and will come back once visible again,
        so a poison message stops only when the queue dead-letters it.

        Args:
            max_batches: Stop after this many batches (None for no limit)

        Returns:
            Number of batches received
        """
        batches = 0
        while max_batches is None or batches < max_batches:
            try:
                result = self.run_once()
            except BatchAbortedError as e:
                logger.warning("Batch released for redelivery: %s", e.message)
                batches += 1
                continue
            if result is None:
                break
            batches += 1
        return batches
