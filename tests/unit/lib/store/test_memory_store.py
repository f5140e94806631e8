"""Unit tests for InMemoryRecordStore."""

import pytest

from feedback_recs.lib.exceptions import BadRequestError, RecordNotFoundError, StoreFailureError
from feedback_recs.lib.feedback.models import RecommendationItem, RecommendationRecord, RecordKey
from feedback_recs.lib.store.base import RecordFilter, UpdateRequest
from feedback_recs.lib.store.memory_store import InMemoryRecordStore


def make_record(owner="user-1", submitted_at=1000, **overrides):
    data = {
        "userId": owner,
        "timestamp": submitted_at,
        "feedbackType": "general",
        "originalFeedback": "Slow pages",
        "recommendations": [
            {"id": "rec-1-0", "title": "Cache", "description": "Add caching", "priority": "high", "category": "performance"}
        ],
        "tags": [],
        "completed": False,
        "generatedAt": "2024-05-01T12:00:00.000Z",
        "updatedAt": "2024-05-01T12:00:00.000Z",
        "modelId": "test-model",
    }
    data.update(overrides)
    return RecommendationRecord.model_validate(data)


class TestPutAndGet:
    def test_put_then_get_round_trips_wire_fields(self):
        store = InMemoryRecordStore()
        store.put_record(make_record())

        record = store.get_record("user-1", 1000)
        assert record is not None
        assert record.to_item()["originalFeedback"] == "Slow pages"
        assert record.enriched_output[0].priority == "high"

    def test_second_write_at_same_key_overwrites(self):
        store = InMemoryRecordStore()
        store.put_record(make_record(originalFeedback="first"))
        store.put_record(make_record(originalFeedback="second"))

        assert len(store) == 1
        assert store.get_record("user-1", 1000).original_text == "second"

    def test_conditional_put_skips_existing_key(self):
        store = InMemoryRecordStore()
        assert store.put_record(make_record(originalFeedback="first"), if_absent=True) is True
        assert store.put_record(make_record(originalFeedback="second"), if_absent=True) is False
        assert store.get_record("user-1", 1000).original_text == "first"

    def test_get_missing_returns_none(self):
        assert InMemoryRecordStore().get_record("nobody", 1) is None


class TestQuery:
    def test_query_is_owner_scoped_and_newest_first(self):
        store = InMemoryRecordStore()
        store.put_record(make_record(submitted_at=1000))
        store.put_record(make_record(submitted_at=3000))
        store.put_record(make_record(submitted_at=2000))
        store.put_record(make_record(owner="user-2", submitted_at=4000))

        records = store.query_records("user-1")
        assert [r.submitted_at for r in records] == [3000, 2000, 1000]

    def test_tag_filter_matches_any_tag(self):
        store = InMemoryRecordStore()
        store.put_record(make_record(submitted_at=1, tags=["a"]))
        store.put_record(make_record(submitted_at=2, tags=["b", "x"]))
        store.put_record(make_record(submitted_at=3, tags=["c"]))

        records = store.query_records("user-1", RecordFilter(tags=["a", "b"]))
        assert sorted(r.submitted_at for r in records) == [1, 2]

    def test_filters_combine_with_and_and_bounds_are_inclusive(self):
        store = InMemoryRecordStore()
        store.put_record(make_record(submitted_at=100, completed=True))
        store.put_record(make_record(submitted_at=200, completed=True))
        store.put_record(make_record(submitted_at=300, completed=False))
        store.put_record(make_record(submitted_at=400, completed=True))

        records = store.query_records(
            "user-1",
            RecordFilter(from_timestamp=200, to_timestamp=400, completed=True),
        )
        assert [r.submitted_at for r in records] == [400, 200]

    def test_category_filter(self):
        store = InMemoryRecordStore()
        store.put_record(make_record(submitted_at=1, feedbackType="ui"))
        store.put_record(make_record(submitted_at=2, feedbackType="performance"))

        records = store.query_records("user-1", RecordFilter(category="ui"))
        assert [r.submitted_at for r in records] == [1]


class TestUpdate:
    def test_update_applies_fields_and_refreshes_updated_at(self):
        store = InMemoryRecordStore()
        store.put_record(make_record())

        updated = store.update_record(
            "user-1", 1000, UpdateRequest.build(completed=True, tags=["done"]), "2024-05-02T00:00:00.000Z"
        )
        assert updated.completed is True
        assert updated.tags == ["done"]
        assert updated.updated_at == "2024-05-02T00:00:00.000Z"
        assert updated.generated_at == "2024-05-01T12:00:00.000Z"

    def test_update_replaces_recommendations_and_category(self):
        store = InMemoryRecordStore()
        store.put_record(make_record())
        items = [RecommendationItem(id="custom", title="Edited", description="", priority="low", category="ux")]

        updated = store.update_record(
            "user-1", 1000, UpdateRequest.build(enriched_output=items, category="ux"), "t"
        )
        assert updated.category == "ux"
        assert [i.title for i in updated.enriched_output] == ["Edited"]

    def test_update_missing_key_raises_and_does_not_upsert(self):
        store = InMemoryRecordStore()
        with pytest.raises(RecordNotFoundError):
            store.update_record("user-1", 1, UpdateRequest.build(completed=True), "t")
        assert len(store) == 0

    def test_update_request_without_fields_is_rejected(self):
        with pytest.raises(BadRequestError) as exc_info:
            UpdateRequest.build()
        assert exc_info.value.message == "No valid fields to update"


class TestDelete:
    def test_list_keys_and_delete_batch(self):
        store = InMemoryRecordStore()
        for ts in range(5):
            store.put_record(make_record(submitted_at=ts))

        keys = store.list_keys("user-1")
        assert keys == [RecordKey("user-1", ts) for ts in range(5)]

        store.delete_batch(keys[:3])
        assert [k.submitted_at for k in store.list_keys("user-1")] == [3, 4]

    def test_delete_batch_rejects_more_than_25_keys(self):
        store = InMemoryRecordStore()
        keys = [RecordKey("user-1", ts) for ts in range(26)]
        with pytest.raises(StoreFailureError):
            store.delete_batch(keys)
