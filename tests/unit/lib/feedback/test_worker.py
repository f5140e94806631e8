"""Unit tests for the enrichment worker and batch outcomes."""

from unittest.mock import patch

import pytest

from conftest import FakeInferenceClient, model_output, queue_message
from feedback_recs.lib.exceptions import StoreFailureError, UpstreamFailureError
from feedback_recs.lib.feedback.enrichment import Enricher
from feedback_recs.lib.feedback.worker import (
    BatchAbortedError,
    EnrichmentWorker,
    Fatal,
    Persisted,
    Skipped,
)

OOPS = '{"oops": true}'


def make_worker(store, clock, responses, write_if_absent=False):
    enricher = Enricher(FakeInferenceClient(responses), clock=clock)
    return EnrichmentWorker(store, enricher, write_if_absent=write_if_absent, clock=clock)


class TestProcessMessage:
    def test_persists_record_from_submission(self, store, clock):
        worker = make_worker(store, clock, [model_output(2)])
        message = queue_message(tags=["mobile"], feedbackType="performance")

        outcome = worker.process_message(message)

        assert outcome == Persisted("msg-1", "user-1", 1714564800000)
        record = store.get_record("user-1", 1714564800000)
        assert record.original_text == "The app is slow"
        assert record.tags == ["mobile"]
        assert record.category == "performance"
        assert record.completed is False
        assert record.model_identifier == "test-model"
        assert record.generated_at == record.updated_at
        assert record.generated_at.endswith("Z")
        assert len(record.enriched_output) == 2

    def test_missing_timestamp_uses_processing_time(self, store, clock):
        worker = make_worker(store, clock, [model_output(1)])

        outcome = worker.process_message(queue_message(timestamp=None))

        assert isinstance(outcome, Persisted)
        assert outcome.submitted_at > 0
        assert store.get_record("user-1", outcome.submitted_at) is not None

    def test_malformed_message_is_skipped(self, store, clock):
        worker = make_worker(store, clock, [model_output(1)])

        outcome = worker.process_message(queue_message(user_id=None))

        assert isinstance(outcome, Skipped)
        assert "missing userId or feedback" in outcome.reason
        assert len(store) == 0

    def test_inference_failure_still_persists_fallback(self, store, clock):
        worker = make_worker(store, clock, [UpstreamFailureError("timed out")])

        outcome = worker.process_message(queue_message())

        assert outcome.used_fallback is True
        [item] = store.get_record("user-1", 1714564800000).enriched_output
        assert item.id.startswith("rec-fallback-")

    def test_store_failure_is_fatal(self, store, clock):
        worker = make_worker(store, clock, [model_output(1)])

        with patch.object(store, "put_record", side_effect=StoreFailureError("throttled")):
            outcome = worker.process_message(queue_message())

        assert isinstance(outcome, Fatal)
        assert isinstance(outcome.error, StoreFailureError)

    def test_write_if_absent_keeps_first_record(self, store, clock):
        worker = make_worker(store, clock, [model_output(1), model_output(3)], write_if_absent=True)

        first = worker.process_message(queue_message())
        second = worker.process_message(queue_message())

        assert first.written is True
        assert second.written is False
        assert len(store.get_record("user-1", 1714564800000).enriched_output) == 1


class TestProcessBatch:
    def test_inference_failure_in_the_middle_does_not_stop_the_batch(self, store, clock):
        worker = make_worker(
            store,
            clock,
            [model_output(2), UpstreamFailureError("timeout"), model_output(3)],
        )
        messages = [
            queue_message(message_id=f"m{i}", timestamp=1000 + i, feedback=f"feedback {i}")
            for i in range(3)
        ]

        result = worker.process_batch(messages)

        assert [s["messageId"] for s in result.successful] == ["m0", "m1", "m2"]
        assert result.failed == []
        records = store.query_records("user-1")
        assert len(records) == 3
        assert all(not r.completed and len(r.enriched_output) >= 1 for r in records)
        assert store.get_record("user-1", 1001).enriched_output[0].id.startswith("rec-fallback-")

    def test_skipped_messages_are_reported_as_failed_without_aborting(self, store, clock):
        worker = make_worker(store, clock, [model_output(1)])

        result = worker.process_batch(
            [queue_message(message_id="bad", feedback=None), queue_message(message_id="good")]
        )

        assert result.failed == [
            {"messageId": "bad", "error": "Invalid message format - missing userId or feedback"}
        ]
        assert result.successful == [{"messageId": "good", "userId": "user-1"}]

    def test_non_array_output_aborts_batch_after_earlier_writes(self, store, clock):
        worker = make_worker(store, clock, [model_output(1), model_output(1), OOPS])
        messages = [
            queue_message(message_id=f"m{i}", timestamp=1000 + i) for i in range(3)
        ]

        with pytest.raises(BatchAbortedError) as exc_info:
            worker.process_batch(messages)

        assert len(store) == 2
        assert [s["messageId"] for s in exc_info.value.result.successful] == ["m0", "m1"]
        assert exc_info.value.result.failed[0]["messageId"] == "m2"

    def test_redelivered_batch_writes_earlier_messages_again(self, store, clock):
        worker = make_worker(store, clock, [model_output(1), OOPS, model_output(1), OOPS])
        messages = [
            queue_message(message_id="m0", timestamp=None),
            queue_message(message_id="m1", timestamp=None),
        ]

        for _ in range(2):
            with pytest.raises(BatchAbortedError):
                worker.process_batch(messages)

        # Without a submission timestamp every delivery gets a fresh key.
        assert len(store) == 2

    def test_redelivery_with_timestamp_overwrites_same_key(self, store, clock):
        worker = make_worker(store, clock, [model_output(1), OOPS, model_output(1), OOPS])
        messages = [queue_message(message_id="m0"), queue_message(message_id="m1", timestamp=2)]

        with patch.object(store, "put_record", wraps=store.put_record) as put_spy:
            for _ in range(2):
                with pytest.raises(BatchAbortedError):
                    worker.process_batch(messages)

        assert put_spy.call_count == 2
        assert len(store) == 1
