"""Pydantic models for recommendation records.

Field names are snake_case in Python; aliases carry the attribute names used
in DynamoDB items and JSON responses (``userId``, ``timestamp``,
``feedbackType``, ...), so a record round-trips through the store and the API
unchanged.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_CATEGORY = "general"
TITLE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500


class Priority(str, Enum):
    """Priority assigned to a single recommendation."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RecordKey(NamedTuple):
    """Primary key of a record: partition (owner) and sort (submitted_at)."""

    owner: str
    submitted_at: int


class RecommendationItem(BaseModel):
    """One actionable recommendation produced from a piece of feedback."""

    id: str
    title: str = Field(..., max_length=TITLE_MAX_LENGTH)
    description: str = Field("", max_length=DESCRIPTION_MAX_LENGTH)
    priority: Priority = Priority.MEDIUM
    category: str = DEFAULT_CATEGORY

    model_config = ConfigDict(use_enum_values=True)


class RecommendationRecord(BaseModel):
    """A stored recommendation record.

    Lifecycle:
        1. Created by the enrichment worker once inference has produced (or
           fallen back to) a list of recommendations
        2. Mutated only through the whitelisted update fields
        3. Removed only by the owner-scoped bulk delete
    """

    owner: str = Field(..., alias="userId")
    submitted_at: int = Field(..., alias="timestamp")
    category: str = Field(DEFAULT_CATEGORY, alias="feedbackType")
    original_text: str = Field(..., alias="originalFeedback")
    enriched_output: List[RecommendationItem] = Field(default_factory=list, alias="recommendations")
    tags: List[str] = Field(default_factory=list)
    completed: bool = False
    generated_at: str = Field(..., alias="generatedAt")
    updated_at: str = Field(..., alias="updatedAt")
    model_identifier: Optional[str] = Field(None, alias="modelId")

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    @property
    def key(self) -> RecordKey:
        return RecordKey(self.owner, self.submitted_at)

    def to_item(self) -> Dict[str, Any]:
        """Serialize to the attribute map written to the store."""
        return self.model_dump(by_alias=True, mode="json")

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "RecommendationRecord":
        """Build a record from a stored attribute map."""
        return cls.model_validate(item)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def epoch_millis(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def iso_timestamp(moment: datetime) -> str:
    """Format as ISO-8601 UTC with millisecond precision, e.g. 2024-05-01T12:00:00.000Z."""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
