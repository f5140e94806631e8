"""Pydantic schemas for the recommendations API."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, StrictBool, StrictStr, field_validator

from feedback_recs.lib.feedback.models import RecommendationItem, RecommendationRecord


class RecommendationUpdate(BaseModel):
    """Request schema for PUT /recommendations/{submittedAt}.

    Only these fields can be changed; anything else in the body is ignored.
    At least one of them must be present.
    """

    completed: Optional[StrictBool] = None
    tags: Optional[List[StrictStr]] = None
    recommendations: Optional[List[RecommendationItem]] = None
    feedbackType: Optional[StrictStr] = None

    @field_validator("tags", mode="before")
    @classmethod
    def ignore_non_list_tags(cls, v: Any) -> Any:
        """A tags value that is not a list is ignored rather than rejected."""
        return v if isinstance(v, list) else None


class RecommendationListResponse(BaseModel):
    recommendations: List[RecommendationRecord]
    count: int


class RecommendationSearchResponse(BaseModel):
    """Search results with the filters echoed back as received."""

    recommendations: List[RecommendationRecord]
    count: int
    filters: Dict[str, Optional[str]] = Field(default_factory=dict)


class RecommendationUpdateResponse(BaseModel):
    message: str = "Recommendation updated successfully"
    recommendation: RecommendationRecord


class RecommendationDeleteResponse(BaseModel):
    message: str
    deletedCount: int
