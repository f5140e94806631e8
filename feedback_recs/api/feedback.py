"""Feedback submission API endpoint.

Accepts free-text feedback and publishes it for asynchronous enrichment.
The response only confirms the hand-off; recommendations appear under
/recommendations once the worker has generated them.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from feedback_recs.api.auth import get_caller_identity
from feedback_recs.api.dependencies import get_app_runtime
from feedback_recs.api.errors import failure_message
from feedback_recs.lib.runtime import Runtime
from feedback_recs.schemas.feedback import ErrorResponse, FeedbackAccepted, FeedbackSubmission

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/feedback",
    status_code=202,
    response_model=FeedbackAccepted,
    responses={
        400: {"model": ErrorResponse, "description": "Validation error in input"},
        401: {"model": ErrorResponse, "description": "No caller identity"},
        500: {"model": ErrorResponse, "description": "Failed to publish the submission"},
    },
    summary="Submit feedback for recommendations",
)
def submit_feedback(
    submission: FeedbackSubmission,
    user_id: str = get_caller_identity(),
    runtime: Runtime = Depends(get_app_runtime),
) -> JSONResponse:
    """Publish feedback to the dispatch channel.

    Returns:
        202 with the channel message id and status "processing"
    """
    logger.info('Publishing feedback for processing')

    with failure_message("Failed to submit feedback for processing"):
        receipt = runtime.intake.submit(
            user_id,
            submission.feedback,
            tags=submission.tags,
            category=submission.feedbackType,
        )

    accepted = FeedbackAccepted(
        message="Feedback submitted successfully for processing",
        messageId=receipt.message_id,
        status="processing",
    )
    return JSONResponse(status_code=202, content=accepted.model_dump())
