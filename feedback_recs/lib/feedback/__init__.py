"""Feedback enrichment pipeline.

This package contains the business logic for turning submitted feedback into
stored recommendation records and for querying them afterwards.

Components:
    - models: record and recommendation item models
    - intake: validates submissions and publishes them to the dispatch channel
    - enrichment: inference client, output normalization and fallback
    - worker: batch processor consuming queued submissions
    - queries: list, search, update and bulk delete over the record store
"""

__all__ = []
