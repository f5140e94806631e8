"""Record store contract shared by the DynamoDB and in-memory backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from feedback_recs.lib.exceptions import BadRequestError
from feedback_recs.lib.feedback.models import RecommendationItem, RecommendationRecord, RecordKey


@dataclass
class RecordFilter:
    """Server-side filters applied to an owner's partition.

    All populated filters are combined with AND. ``tags`` matches a record
    holding any one of the listed tags. Timestamp bounds are inclusive.
    """

    from_timestamp: Optional[int] = None
    to_timestamp: Optional[int] = None
    category: Optional[str] = None
    completed: Optional[bool] = None
    tags: List[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return (
            self.from_timestamp is None
            and self.to_timestamp is None
            and self.category is None
            and self.completed is None
            and not self.tags
        )

    def matches(self, record: RecommendationRecord) -> bool:
        """Evaluate the filter against a record held in memory."""
        if self.from_timestamp is not None and record.submitted_at < self.from_timestamp:
            return False
        if self.to_timestamp is not None and record.submitted_at > self.to_timestamp:
            return False
        if self.category is not None and record.category != self.category:
            return False
        if self.completed is not None and record.completed != self.completed:
            return False
        if self.tags and not any(tag in record.tags for tag in self.tags):
            return False
        return True


@dataclass
class UpdateRequest:
    """Partial update of the mutable fields of a record.

    Each field is independently optional; ``None`` means "leave unchanged".
    ``updatedAt`` is always written alongside the supplied fields.
    """

    completed: Optional[bool] = None
    tags: Optional[List[str]] = None
    enriched_output: Optional[List[RecommendationItem]] = None
    category: Optional[str] = None

    @classmethod
    def build(
        cls,
        completed: Optional[bool] = None,
        tags: Optional[List[str]] = None,
        enriched_output: Optional[List[RecommendationItem]] = None,
        category: Optional[str] = None,
    ) -> "UpdateRequest":
        """Create an update request, rejecting one that changes nothing.

        Raises:
            BadRequestError: If every field is absent
        """
        request = cls(
            completed=completed,
            tags=tags,
            enriched_output=enriched_output,
            category=category,
        )
        if request.is_empty():
            raise BadRequestError("No valid fields to update")
        return request

    def is_empty(self) -> bool:
        return (
            self.completed is None
            and self.tags is None
            and self.enriched_output is None
            and self.category is None
        )

    def assignments(self) -> Dict[str, Any]:
        """Return the supplied fields keyed by their stored attribute name."""
        values: Dict[str, Any] = {}
        if self.completed is not None:
            values["completed"] = self.completed
        if self.tags is not None:
            values["tags"] = list(self.tags)
        if self.enriched_output is not None:
            values["recommendations"] = [
                item.model_dump(mode="json") for item in self.enriched_output
            ]
        if self.category is not None:
            values["feedbackType"] = self.category
        return values


class RecordStore(ABC):
    """Keyed, sorted store holding one record per (owner, submitted_at)."""

    @abstractmethod
    def put_record(self, record: RecommendationRecord, *, if_absent: bool = False) -> bool:
        """Write a record, overwriting any record at the same key.

        With ``if_absent`` the write only happens when the key is free.

        Returns:
            True if the record was written, False if skipped because the key
            already existed
        """

    @abstractmethod
    def get_record(self, owner: str, submitted_at: int) -> Optional[RecommendationRecord]:
        """Fetch a single record or None."""

    @abstractmethod
    def query_records(
        self,
        owner: str,
        record_filter: Optional[RecordFilter] = None,
    ) -> List[RecommendationRecord]:
        """Return the owner's records matching the filter, newest first."""

    @abstractmethod
    def update_record(
        self,
        owner: str,
        submitted_at: int,
        update: UpdateRequest,
        updated_at: str,
    ) -> RecommendationRecord:
        """Apply a partial update to an existing record and return it.

        Raises:
            RecordNotFoundError: If no record exists at the key
        """

    @abstractmethod
    def list_keys(self, owner: str) -> List[RecordKey]:
        """Return the keys of every record the owner holds."""

    @abstractmethod
    def delete_batch(self, keys: Sequence[RecordKey]) -> None:
        """Delete up to one store batch (25 keys) of records."""


__all__ = ["RecordFilter", "RecordStore", "UpdateRequest"]
