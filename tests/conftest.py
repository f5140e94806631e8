"""
Pytest configuration and fixtures for the feedback recommendations tests.
"""
import json
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Union

import pytest

from feedback_recs.lib.exceptions import UpstreamFailureError
from feedback_recs.lib.feedback.enrichment import InferenceClient
from feedback_recs.lib.messaging.envelope import QueueMessage, SubmissionEnvelope, wrap_notification
from feedback_recs.lib.messaging.memory_channel import InMemoryDispatchChannel
from feedback_recs.lib.runtime import build_runtime, get_runtime
from feedback_recs.lib.store.memory_store import InMemoryRecordStore


class FakeClock:
    """Clock that advances one second each time it is read."""

    def __init__(self, start: Optional[datetime] = None, step: timedelta = timedelta(seconds=1)):
        self.current = start or datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + self.step
        return value


class FakeInferenceClient(InferenceClient):
    """Inference client returning scripted responses in order.

    Each response is either model text or an exception to raise. Once the
    script is exhausted the last response repeats.
    """

    model_id = "test-model"

    def __init__(self, responses: List[Union[str, Exception]]):
        self.responses = list(responses)
        self.prompts: List[str] = []

    def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


def model_output(count: int = 2) -> str:
    """Model text containing `count` recommendations wrapped in a code fence."""
    items = [
        {
            "title": f"Recommendation {i}",
            "description": f"Do thing {i}",
            "priority": "high" if i == 0 else "low",
            "category": "performance",
        }
        for i in range(count)
    ]
    return "```json\n" + json.dumps(items) + "\n```"


def queue_message(
    user_id: Optional[str] = "user-1",
    feedback: Optional[str] = "The app is slow",
    timestamp: Optional[int] = 1714564800000,
    message_id: str = "msg-1",
    **extra,
) -> QueueMessage:
    """Build a queue message carrying a submission in an SNS notification."""
    inner = {"userId": user_id, "feedback": feedback, "timestamp": timestamp, **extra}
    notification = wrap_notification(json.dumps(inner), "arn:aws:sns:us-east-1:123:topic")
    return QueueMessage(
        message_id=message_id,
        receipt_handle=f"rh-{message_id}",
        body=json.dumps(notification),
    )


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    """Run every test against in-memory backends with no AWS configuration."""
    monkeypatch.setenv("APP_ENV", "dev")
    monkeypatch.setenv("STORE_BACKEND", "memory")
    monkeypatch.setenv("CHANNEL_BACKEND", "memory")
    monkeypatch.setenv("BEDROCK_MODEL_ID", "test-model")
    monkeypatch.setenv("AWS_REGION", "us-east-1")
    for name in (
        "AWS_PROFILE",
        "DEV_MODE",
        "DEBUG",
        "STORE_WRITE_IF_ABSENT",
        "SNS_TOPIC_ARN",
        "SQS_QUEUE_URL",
        "CALLER_IDENTITY_HEADER",
        "DYNAMODB_CREATE_TABLE",
        "LOG_FORMAT",
    ):
        monkeypatch.delenv(name, raising=False)
    get_runtime.cache_clear()
    yield
    get_runtime.cache_clear()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def channel():
    return InMemoryDispatchChannel()


@pytest.fixture
def inference():
    return FakeInferenceClient([model_output(2)])


@pytest.fixture
def runtime(store, channel, inference, clock):
    """Runtime wired to in-memory backends and a scripted model."""
    return build_runtime(
        store=store,
        publisher=channel,
        queue=channel,
        inference_client=inference,
        clock=clock,
    )


@pytest.fixture
def envelope():
    return SubmissionEnvelope(
        userId="user-1",
        feedback="The app is slow",
        timestamp=1714564800000,
        tags=["mobile"],
        feedbackType="performance",
    )
