"""Recommendation generation with Amazon Bedrock.

The enrichment step turns a piece of feedback into a list of
RecommendationItem objects. Inference problems never reach the caller:
transport errors, timeouts and unreadable model text are replaced by a
single fallback recommendation. Model output that parses but is not a JSON
array is different; it raises FatalProcessingError and aborts the batch.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from feedback_recs.lib.exceptions import FatalProcessingError, UpstreamFailureError
from .models import (
    DEFAULT_CATEGORY,
    DESCRIPTION_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    Priority,
    RecommendationItem,
    epoch_millis,
    utc_now,
)

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "bedrock-2023-05-31"
MAX_TOKENS = 2000
TEMPERATURE = 0.7

DEFAULT_TITLE = "Recommendation"
FALLBACK_TITLE = "Review and analyze feedback"
FALLBACK_DESCRIPTION = (
    "A detailed analysis of this feedback is recommended to identify "
    "specific areas for improvement."
)

PROMPT_TEMPLATE = """You are a helpful assistant that analyzes feedback and provides actionable recommendations for improvement.

Analyze the following feedback and provide 3-5 specific, actionable recommendations:

Feedback: "{feedback}"

Provide your response as a JSON array of recommendation objects. Each recommendation should have:
- title: A brief title (max 100 characters)
- description: Detailed explanation (max 500 characters)
- priority: One of "high", "medium", "low"
- category: The category this recommendation falls into

Example format:
[
  {{
    "title": "Improve response time",
    "description": "Consider implementing caching to reduce API response times by 50%",
    "priority": "high",
    "category": "performance"
  }}
]

Respond ONLY with the JSON array, no additional text."""

_FENCE_PATTERN = re.compile(r"```(?:json)?\n?")
_VALID_PRIORITIES = tuple(p.value for p in Priority)


def build_prompt(feedback: str) -> str:
    return PROMPT_TEMPLATE.format(feedback=feedback)


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences the model sometimes wraps JSON in."""
    return _FENCE_PATTERN.sub("", text).strip()


def parse_model_output(text: str) -> Any:
    """Parse model text as JSON after stripping code fences.

    Raises:
        UpstreamFailureError: If the text is not valid JSON
    """
    try:
        return json.loads(strip_code_fences(text))
    except ValueError as e:
        raise UpstreamFailureError(f"Model response is not valid JSON: {e}") from e


class InferenceClient(ABC):
    """Text-in, text-out access to a generative model."""

    model_id: str

    @abstractmethod
    def complete(self, prompt: str) -> str:
        """Return the model's text response.

        Raises:
            UpstreamFailureError: On transport failure, timeout or an
                unexpected response shape
        """


class BedrockInferenceClient(InferenceClient):
    """Anthropic messages API on Amazon Bedrock via invoke_model."""

    def __init__(
        self,
        model_id: str,
        region: str = "us-east-1",
        profile: Optional[str] = None,
        timeout_seconds: int = 300,
        client=None,
    ):
        """Initialize the Bedrock runtime client.

        Args:
            model_id: Bedrock model identifier
            region: AWS region (default: us-east-1)
            profile: Optional named AWS profile
            timeout_seconds: Read timeout for a single inference call
            client: Pre-built bedrock-runtime client (tests)
        """
        self.model_id = model_id
        self.region = region
        if client is None:
            config = Config(read_timeout=timeout_seconds, retries={"max_attempts": 2})
            if profile:
                session = boto3.Session(profile_name=profile)
                client = session.client("bedrock-runtime", region_name=region, config=config)
            else:
                client = boto3.client("bedrock-runtime", region_name=region, config=config)
        self.bedrock_client = client

    def complete(self, prompt: str) -> str:
        request_body = {
            "anthropic_version": ANTHROPIC_VERSION,
            "max_tokens": MAX_TOKENS,
            "temperature": TEMPERATURE,
            "messages": [{"role": "user", "content": prompt}],
        }

        logger.info("Calling Bedrock model %s", self.model_id)
        try:
            response = self.bedrock_client.invoke_model(
                modelId=self.model_id,
                contentType="application/json",
                accept="application/json",
                body=json.dumps(request_body),
            )
            response_body = json.loads(response["body"].read())
        except (ClientError, BotoCoreError) as e:
            raise UpstreamFailureError(f"Bedrock invocation failed: {e}") from e
        except (KeyError, ValueError) as e:
            raise UpstreamFailureError(f"Unreadable Bedrock response: {e}") from e

        content = response_body.get("content") or []
        if not content or not isinstance(content[0], dict):
            raise UpstreamFailureError("Bedrock response has no content")
        return content[0].get("text") or ""


def normalize_recommendations(raw: List[Any], now_ms: int) -> List[RecommendationItem]:
    """Coerce parsed model output into well-formed recommendation items."""
    items = []
    for index, rec in enumerate(raw):
        if not isinstance(rec, dict):
            rec = {}
        priority = rec.get("priority")
        items.append(
            RecommendationItem(
                id=f"rec-{now_ms}-{index}",
                title=str(rec.get("title") or DEFAULT_TITLE)[:TITLE_MAX_LENGTH],
                description=str(rec.get("description") or "")[:DESCRIPTION_MAX_LENGTH],
                priority=priority if priority in _VALID_PRIORITIES else Priority.MEDIUM.value,
                category=str(rec.get("category") or DEFAULT_CATEGORY),
            )
        )
    return items


def fallback_recommendations(now_ms: int) -> List[RecommendationItem]:
    return [
        RecommendationItem(
            id=f"rec-fallback-{now_ms}",
            title=FALLBACK_TITLE,
            description=FALLBACK_DESCRIPTION,
            priority=Priority.MEDIUM.value,
            category=DEFAULT_CATEGORY,
        )
    ]


@dataclass
class EnrichmentResult:
    items: List[RecommendationItem]
    used_fallback: bool = False


class Enricher:
    """Generate recommendations for feedback text."""

    def __init__(
        self,
        inference_client: InferenceClient,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.inference_client = inference_client
        self._clock = clock

    @property
    def model_id(self) -> str:
        return self.inference_client.model_id

    def enrich(self, feedback: str) -> EnrichmentResult:
        """Produce at least one recommendation for the feedback.

        Raises:
            FatalProcessingError: If the model returned JSON that is not an array
        """
        try:
            text = self.inference_client.complete(build_prompt(feedback))
            parsed = parse_model_output(text)
        except UpstreamFailureError as e:
            logger.warning(
                "Inference failed, using fallback recommendation: %s",
                e.message,
                extra={"model_id": self.model_id},
            )
            return EnrichmentResult(fallback_recommendations(epoch_millis(self._clock())), True)

        if not isinstance(parsed, list):
            raise FatalProcessingError(
                "Bedrock did not return an array of recommendations",
                details={"model_id": self.model_id, "output_type": type(parsed).__name__},
            )

        if not parsed:
            logger.warning(
                "Model returned an empty array, using fallback recommendation",
                extra={"model_id": self.model_id},
            )
            return EnrichmentResult(fallback_recommendations(epoch_millis(self._clock())), True)

        items = normalize_recommendations(parsed, epoch_millis(self._clock()))
        logger.info(
            "Generated %s recommendations",
            len(items),
            extra={"model_id": self.model_id},
        )
        return EnrichmentResult(items)
