"""Recommendation record API endpoints.

All operations are scoped to the calling user's partition:
- GET /recommendations: every record, newest first
- GET /recommendations/search: filtered records
- PUT /recommendations/{submittedAt}: partial update of one record
- DELETE /recommendations: remove all of the caller's records
"""

import logging
import re
from typing import Optional

from fastapi import APIRouter, Depends, Query

from feedback_recs.api.auth import get_caller_identity
from feedback_recs.api.dependencies import get_app_runtime
from feedback_recs.api.errors import failure_message
from feedback_recs.lib.exceptions import BadRequestError
from feedback_recs.lib.feedback.queries import SearchParams
from feedback_recs.lib.runtime import Runtime
from feedback_recs.schemas.feedback import ErrorResponse
from feedback_recs.schemas.recommendations import (
    RecommendationDeleteResponse,
    RecommendationListResponse,
    RecommendationSearchResponse,
    RecommendationUpdate,
    RecommendationUpdateResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/recommendations")

_INTEGER_PATTERN = re.compile(r"^\d+$")

_ERRORS = {
    401: {"model": ErrorResponse, "description": "No caller identity"},
    500: {"model": ErrorResponse, "description": "Store failure"},
}


def _parse_submitted_at(value: str) -> int:
    if not _INTEGER_PATTERN.match(value or "") or int(value) <= 0:
        raise BadRequestError("Invalid or missing timestamp in path")
    return int(value)


@router.get("", response_model=RecommendationListResponse, responses=_ERRORS)
def list_recommendations(
    user_id: str = get_caller_identity(),
    runtime: Runtime = Depends(get_app_runtime),
) -> RecommendationListResponse:
    """List all of the caller's recommendation records, newest first."""
    with failure_message("Failed to retrieve recommendations"):
        records = runtime.queries.list_all(user_id)
    return RecommendationListResponse(recommendations=records, count=len(records))


@router.get("/search", response_model=RecommendationSearchResponse, responses=_ERRORS)
def search_recommendations(
    search: Optional[str] = Query(None, description="Text matched against recommendations and feedback"),
    tags: Optional[str] = Query(None, description="Comma-separated tags; any one must match"),
    completed: Optional[str] = Query(None, description="'true' for completed, any other value for open"),
    feedbackType: Optional[str] = Query(None, description="Exact feedback category"),
    fromDate: Optional[str] = Query(None, description="Inclusive lower bound (ISO-8601)"),
    toDate: Optional[str] = Query(None, description="Inclusive upper bound (ISO-8601)"),
    user_id: str = get_caller_identity(),
    runtime: Runtime = Depends(get_app_runtime),
) -> RecommendationSearchResponse:
    """Search the caller's records.

    All filters combine with AND. Unparsable dates are ignored.
    """
    params = SearchParams(
        search=search,
        tags=tags,
        completed=completed,
        category=feedbackType,
        from_date=fromDate,
        to_date=toDate,
    )
    with failure_message("Failed to search recommendations"):
        result = runtime.queries.search(user_id, params)
    return RecommendationSearchResponse(
        recommendations=result.records,
        count=result.count,
        filters=result.filters,
    )


@router.put(
    "/{submittedAt}",
    response_model=RecommendationUpdateResponse,
    responses={
        **_ERRORS,
        400: {"model": ErrorResponse, "description": "Invalid key or no updatable field"},
        404: {"model": ErrorResponse, "description": "Recommendation not found"},
    },
)
def update_recommendation(
    submittedAt: str,
    update: RecommendationUpdate,
    user_id: str = get_caller_identity(),
    runtime: Runtime = Depends(get_app_runtime),
) -> RecommendationUpdateResponse:
    """Update completed, tags, recommendations or feedbackType of one record."""
    submitted_at = _parse_submitted_at(submittedAt)

    with failure_message("Failed to update recommendation"):
        record = runtime.queries.update(
            user_id,
            submitted_at,
            completed=update.completed,
            tags=update.tags,
            enriched_output=update.recommendations,
            category=update.feedbackType,
        )
    return RecommendationUpdateResponse(
        message="Recommendation updated successfully",
        recommendation=record,
    )


@router.delete("", response_model=RecommendationDeleteResponse, responses=_ERRORS)
def delete_recommendations(
    user_id: str = get_caller_identity(),
    runtime: Runtime = Depends(get_app_runtime),
) -> RecommendationDeleteResponse:
    """Delete every record the caller holds."""
    with failure_message("Failed to delete recommendations"):
        deleted = runtime.queries.delete_all(user_id)

    message = (
        "Recommendations deleted successfully" if deleted else "No recommendations to delete"
    )
    return RecommendationDeleteResponse(message=message, deletedCount=deleted)
