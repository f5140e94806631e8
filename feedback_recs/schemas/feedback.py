"""Pydantic schemas for the feedback API.

Defines request and response schemas for the feedback submission endpoint.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, StrictStr, field_validator

from feedback_recs.config import MAX_FEEDBACK_LENGTH


class FeedbackSubmission(BaseModel):
    """Request schema for submitting feedback.

    Used for the POST /feedback endpoint. The caller identity is not part of
    the body; it comes from the identity gate.
    """

    feedback: StrictStr = Field(
        ...,
        description=f"Free-text feedback to analyze (at most {MAX_FEEDBACK_LENGTH:,} characters)",
        examples=["The checkout page takes too long to load on mobile."],
    )

    tags: Optional[List[StrictStr]] = Field(
        default=None,
        description="Optional tags stored with the resulting record",
        examples=[["mobile", "performance"]],
    )

    feedbackType: Optional[StrictStr] = Field(
        default=None,
        description="Category of the feedback (defaults to 'general')",
        examples=["performance"],
    )

    @field_validator("feedback")
    @classmethod
    def validate_feedback_text(cls, v: str) -> str:
        """Ensure feedback is not blank and within the length limit."""
        if not v.strip():
            raise ValueError("Feedback text is required and must be a non-empty string")
        if len(v) > MAX_FEEDBACK_LENGTH:
            raise ValueError(f"Feedback text must not exceed {MAX_FEEDBACK_LENGTH:,} characters")
        return v

    @field_validator("tags", mode="before")
    @classmethod
    def validate_tags_is_list(cls, v: Any) -> Any:
        """Reject tags sent as anything other than an array, including null."""
        if not isinstance(v, list):
            raise ValueError("Tags must be an array of strings")
        return v

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "feedback": "Search results are often irrelevant when filtering by date.",
                    "tags": ["search"],
                    "feedbackType": "product",
                }
            ]
        }
    }


class FeedbackAccepted(BaseModel):
    """Response schema for an accepted submission (202).

    Enrichment runs asynchronously; the record appears in the recommendation
    list once it has been generated.
    """

    message: str = Field(
        ...,
        description="Human-readable status message",
        examples=["Feedback submitted successfully for processing"],
    )

    messageId: str = Field(
        ...,
        description="Dispatch channel message id",
        examples=["0f2b4c1e-7d3a-5b8e-9c10-2a3b4c5d6e7f"],
    )

    status: str = Field(
        "processing",
        pattern="^processing$",
        description="Always 'processing' for 202 responses",
    )


class ValidationErrorDetail(BaseModel):
    """Individual field validation error."""

    field: str = Field(..., description="Field name that failed validation")
    message: str = Field(..., description="Error message describing the validation failure")


class ErrorResponse(BaseModel):
    """Response schema for error cases (400, 401, 404, 500)."""

    error: str = Field(
        ...,
        description="HTTP reason phrase",
        examples=["Bad Request", "Unauthorized", "Not Found", "Internal Server Error"],
    )

    message: str = Field(
        ...,
        description="Error message",
        examples=["Feedback text must not exceed 10,000 characters"],
    )

    details: Optional[Union[List[ValidationErrorDetail], Dict[str, Any]]] = Field(
        default=None,
        description="Field errors for validation failures; exception detail for server errors in debug mode",
    )
