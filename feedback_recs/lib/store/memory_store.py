"""In-process record store for local development and tests.

Keeps the same contract as the DynamoDB store: per-key atomic writes,
conditional updates that never upsert, newest-first queries and a
25-key limit on batch deletes.
"""

import logging
import threading
from typing import Dict, List, Optional, Sequence

from feedback_recs.config import DELETE_BATCH_SIZE
from feedback_recs.lib.exceptions import RecordNotFoundError, StoreFailureError
from feedback_recs.lib.feedback.models import RecommendationRecord, RecordKey
from .base import RecordFilter, RecordStore, UpdateRequest

logger = logging.getLogger(__name__)


class InMemoryRecordStore(RecordStore):
    """Dictionary-backed record store guarded by a single lock."""

    def __init__(self):
        self._items: Dict[RecordKey, dict] = {}
        self._lock = threading.Lock()

    def put_record(self, record: RecommendationRecord, *, if_absent: bool = False) -> bool:
        with self._lock:
            if if_absent and record.key in self._items:
                logger.info(
                    "Record already exists, skipping conditional write",
                    extra={"owner": record.owner, "submitted_at": record.submitted_at},
                )
                return False
            self._items[record.key] = record.to_item()
        return True

    def get_record(self, owner: str, submitted_at: int) -> Optional[RecommendationRecord]:
        with self._lock:
            item = self._items.get(RecordKey(owner, submitted_at))
        return RecommendationRecord.from_item(item) if item is not None else None

    def query_records(
        self,
        owner: str,
        record_filter: Optional[RecordFilter] = None,
    ) -> List[RecommendationRecord]:
        with self._lock:
            items = [item for key, item in self._items.items() if key.owner == owner]

        records = [RecommendationRecord.from_item(item) for item in items]
        if record_filter is not None:
            records = [record for record in records if record_filter.matches(record)]
        records.sort(key=lambda record: record.submitted_at, reverse=True)
        return records

    def update_record(
        self,
        owner: str,
        submitted_at: int,
        update: UpdateRequest,
        updated_at: str,
    ) -> RecommendationRecord:
        key = RecordKey(owner, submitted_at)
        with self._lock:
            item = self._items.get(key)
            if item is None:
                raise RecordNotFoundError("Recommendation not found")
            updated = dict(item)
            updated.update(update.assignments())
            updated["updatedAt"] = updated_at
            self._items[key] = updated
        return RecommendationRecord.from_item(updated)

    def list_keys(self, owner: str) -> List[RecordKey]:
        with self._lock:
            keys = [key for key in self._items if key.owner == owner]
        return sorted(keys, key=lambda key: key.submitted_at)

    def delete_batch(self, keys: Sequence[RecordKey]) -> None:
        if len(keys) > DELETE_BATCH_SIZE:
            raise StoreFailureError(
                f"Batch of {len(keys)} exceeds the store limit of {DELETE_BATCH_SIZE}"
            )
        with self._lock:
            for key in keys:
                self._items.pop(RecordKey(*key), None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
