"""Record store backends."""

from .base import RecordFilter, RecordStore, UpdateRequest
from .dynamodb_store import DynamoDBRecordStore
from .memory_store import InMemoryRecordStore

__all__ = [
    "DynamoDBRecordStore",
    "InMemoryRecordStore",
    "RecordFilter",
    "RecordStore",
    "UpdateRequest",
]
