"""Context variables for request-scoped data.

The API layer sets the caller identity at the start of each request and the
worker sets the queue message id while it processes a message. The logging
filter reads both so every log line carries them.

Note: These use contextvars which are properly isolated per async task.
"""

from contextvars import ContextVar
from typing import Optional

_current_user_id: ContextVar[Optional[str]] = ContextVar('user_id', default=None)
_current_message_id: ContextVar[Optional[str]] = ContextVar('message_id', default=None)


def set_current_user_id(user_id: Optional[str]) -> None:
    """Set the current caller identity (Cognito sub claim)."""
    _current_user_id.set(user_id)


def get_current_user_id() -> Optional[str]:
    """Get the current caller identity.

    Returns:
        The user ID if set, None otherwise
    """
    return _current_user_id.get()


def set_current_message_id(message_id: Optional[str]) -> None:
    """Set the id of the queue message being processed."""
    _current_message_id.set(message_id)


def get_current_message_id() -> Optional[str]:
    """Get the id of the queue message being processed.

    Returns:
        The message ID if set, None otherwise
    """
    return _current_message_id.get()


def clear_context() -> None:
    """Clear all context variables."""
    _current_user_id.set(None)
    _current_message_id.set(None)
