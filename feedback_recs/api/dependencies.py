"""Shared FastAPI dependencies."""

from feedback_recs.lib.runtime import Runtime, get_runtime


def get_app_runtime() -> Runtime:
    """Resolve the process runtime; overridden in tests."""
    return get_runtime()
