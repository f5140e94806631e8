"""Unit tests for SQSSubmissionQueue."""

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from feedback_recs.lib.exceptions import ChannelReceiveError
from feedback_recs.lib.messaging.envelope import QueueMessage
from feedback_recs.lib.messaging.sqs_queue import SQSSubmissionQueue

QUEUE_URL = "https://sqs.us-east-1.amazonaws.com/123456789012/feedback"


@pytest.fixture
def sqs_client():
    return MagicMock()


@pytest.fixture
def queue(sqs_client):
    return SQSSubmissionQueue(QUEUE_URL, client=sqs_client)


def messages(count):
    return [QueueMessage(f"m{i}", f"rh{i}", "{}") for i in range(count)]


def test_receive_long_polls_for_a_batch(queue, sqs_client):
    sqs_client.receive_message.return_value = {
        "Messages": [
            {
                "MessageId": "m1",
                "ReceiptHandle": "rh1",
                "Body": "{}",
                "Attributes": {"ApproximateReceiveCount": "3"},
            }
        ]
    }

    [message] = queue.receive()

    assert message.receive_count == 3
    kwargs = sqs_client.receive_message.call_args.kwargs
    assert kwargs["WaitTimeSeconds"] == 20
    assert kwargs["MaxNumberOfMessages"] == 10


def test_receive_without_messages_returns_empty(queue, sqs_client):
    sqs_client.receive_message.return_value = {}
    assert queue.receive() == []


def test_receive_error_is_raised(queue, sqs_client):
    sqs_client.receive_message.side_effect = ClientError(
        {"Error": {"Code": "AWS.SimpleQueueService.NonExistentQueue", "Message": "gone"}},
        "ReceiveMessage",
    )
    with pytest.raises(ChannelReceiveError):
        queue.receive()


def test_ack_deletes_in_chunks_of_ten(queue, sqs_client):
    sqs_client.delete_message_batch.return_value = {"Successful": [], "Failed": []}

    queue.ack(messages(12))

    calls = sqs_client.delete_message_batch.call_args_list
    assert [len(c.kwargs["Entries"]) for c in calls] == [10, 2]
    assert calls[1].kwargs["Entries"][0] == {"Id": "0", "ReceiptHandle": "rh10"}


def test_ack_failure_does_not_raise(queue, sqs_client):
    sqs_client.delete_message_batch.side_effect = ClientError(
        {"Error": {"Code": "InternalError", "Message": "boom"}}, "DeleteMessageBatch"
    )
    queue.ack(messages(1))


def test_nack_leaves_messages_in_flight(queue, sqs_client):
    queue.nack(messages(2))

    sqs_client.delete_message_batch.assert_not_called()
    sqs_client.change_message_visibility_batch.assert_not_called()
