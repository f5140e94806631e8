"""Tests for the SQS-triggered Lambda handler."""

import json
from unittest.mock import patch

import pytest

from conftest import FakeInferenceClient, model_output, queue_message
from feedback_recs.lambdas import process_feedback
from feedback_recs.lib.feedback.worker import BatchAbortedError


def lambda_record(message):
    return {
        "messageId": message.message_id,
        "receiptHandle": message.receipt_handle,
        "body": message.body,
        "attributes": {"ApproximateReceiveCount": "1"},
        "eventSource": "aws:sqs",
    }


@pytest.fixture
def patched_runtime(runtime):
    with patch.object(process_feedback, "get_runtime", return_value=runtime):
        yield runtime


def test_handler_processes_records(patched_runtime):
    event = {
        "Records": [
            lambda_record(queue_message(message_id="m1", timestamp=1)),
            lambda_record(queue_message(message_id="m2", timestamp=2, user_id=None)),
        ]
    }

    response = process_feedback.handler(event, None)

    assert response["statusCode"] == 200
    body = json.loads(response["body"])
    assert body["successful"] == [{"messageId": "m1", "userId": "user-1"}]
    assert body["failed"][0]["messageId"] == "m2"
    assert patched_runtime.store.get_record("user-1", 1) is not None


def test_handler_raises_on_fatal_message(patched_runtime):
    patched_runtime.enricher.inference_client = FakeInferenceClient(['{"not": "a list"}'])

    with pytest.raises(BatchAbortedError):
        process_feedback.handler({"Records": [lambda_record(queue_message())]}, None)


def test_empty_event(patched_runtime):
    response = process_feedback.handler({}, None)
    assert json.loads(response["body"]) == {"successful": [], "failed": []}
