"""Owner-scoped read, update and delete operations on recommendation records."""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from feedback_recs.config import DELETE_BATCH_SIZE
from feedback_recs.lib.exceptions import RecordNotFoundError
from feedback_recs.lib.store.base import RecordFilter, RecordStore, UpdateRequest
from .models import RecommendationItem, RecommendationRecord, iso_timestamp, utc_now

logger = logging.getLogger(__name__)


def parse_iso_millis(value: Optional[str]) -> Optional[int]:
    """Parse an ISO-8601 date or datetime into epoch milliseconds.

    Naive values are read as UTC. Unparsable values return None and the
    filter they belong to is dropped.
    """
    if not value:
        return None
    try:
        moment = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        logger.info("Ignoring unparsable date filter: %s", value)
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp() * 1000)


@dataclass
class SearchParams:
    """Raw search parameters as received in the query string."""

    search: Optional[str] = None
    tags: Optional[str] = None
    completed: Optional[str] = None
    category: Optional[str] = None
    from_date: Optional[str] = None
    to_date: Optional[str] = None

    def to_filter(self) -> RecordFilter:
        tags = [t.strip() for t in self.tags.split(",") if t.strip()] if self.tags else []
        return RecordFilter(
            from_timestamp=parse_iso_millis(self.from_date),
            to_timestamp=parse_iso_millis(self.to_date),
            category=self.category or None,
            completed=(self.completed == "true") if self.completed is not None else None,
            tags=tags,
        )

    def echo(self) -> Dict[str, Optional[str]]:
        """The filters as the caller sent them, echoed in the response."""
        return {
            "search": self.search,
            "tags": self.tags,
            "completed": self.completed,
            "feedbackType": self.category,
            "fromDate": self.from_date,
            "toDate": self.to_date,
        }


@dataclass
class SearchResult:
    records: List[RecommendationRecord]
    filters: Dict[str, Optional[str]]

    @property
    def count(self) -> int:
        return len(self.records)


def matches_text(record: RecommendationRecord, text: str) -> bool:
    """Case-insensitive substring match over the recommendations and original feedback."""
    needle = text.lower()
    serialized = json.dumps(
        [item.model_dump(mode="json") for item in record.enriched_output],
        ensure_ascii=False,
        separators=(",", ":"),
    )
    return needle in serialized.lower() or needle in record.original_text.lower()


class QuerySurface:
    """List, search, update and bulk-delete a caller's records."""

    def __init__(
        self,
        store: RecordStore,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self._clock = clock

    def list_all(self, owner: str) -> List[RecommendationRecord]:
        records = self.store.query_records(owner)
        logger.info("Found %s recommendations", len(records))
        return records

    def search(self, owner: str, params: SearchParams) -> SearchResult:
        records = self.store.query_records(owner, params.to_filter())
        if params.search and params.search.strip():
            records = [record for record in records if matches_text(record, params.search)]
        logger.info("Search returned %s recommendations", len(records))
        return SearchResult(records=records, filters=params.echo())

    def update(
        self,
        owner: str,
        submitted_at: int,
        completed: Optional[bool] = None,
        tags: Optional[List[str]] = None,
        enriched_output: Optional[List[RecommendationItem]] = None,
        category: Optional[str] = None,
    ) -> RecommendationRecord:
        """Apply a partial update to one record.

        Raises:
            RecordNotFoundError: If the record does not exist
            BadRequestError: If no updatable field was supplied
        """
        if self.store.get_record(owner, submitted_at) is None:
            raise RecordNotFoundError("Recommendation not found")

        update = UpdateRequest.build(
            completed=completed,
            tags=tags,
            enriched_output=enriched_output,
            category=category,
        )
        record = self.store.update_record(
            owner, submitted_at, update, iso_timestamp(self._clock())
        )
        logger.info(
            "Updated recommendation",
            extra={"submitted_at": submitted_at, "fields": sorted(update.assignments())},
        )
        return record

    def delete_all(self, owner: str) -> int:
        """Delete every record the owner holds, one store batch at a time.

        Returns:
            Number of records deleted (0 when there were none)
        """
        keys = self.store.list_keys(owner)
        if not keys:
            logger.info("No recommendations to delete")
            return 0

        deleted = 0
        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            batch = keys[start:start + DELETE_BATCH_SIZE]
            self.store.delete_batch(batch)
            deleted += len(batch)
            logger.info("Deleted batch of %s items", len(batch))

        logger.info("Deleted %s recommendations", deleted)
        return deleted
