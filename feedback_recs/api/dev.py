"""Development-only endpoints.

Mounted only when DEV_MODE=true. With CHANNEL_BACKEND=memory the worker is
not triggered by a queue, so submissions sit in the in-process channel until
drained here.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends

from feedback_recs.api.dependencies import get_app_runtime
from feedback_recs.lib.exceptions import BadRequestError
from feedback_recs.lib.messaging.memory_channel import InMemoryDispatchChannel
from feedback_recs.lib.runtime import Runtime

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dev")


def _memory_channel(runtime: Runtime) -> InMemoryDispatchChannel:
    if not isinstance(runtime.queue, InMemoryDispatchChannel):
        raise BadRequestError("Draining requires CHANNEL_BACKEND=memory")
    return runtime.queue


@router.post("/drain")
def drain_queue(
    max_batches: Optional[int] = None,
    runtime: Runtime = Depends(get_app_runtime),
) -> Dict[str, Any]:
    """Run the worker over the in-process queue until it is empty."""
    channel = _memory_channel(runtime)
    batches = runtime.delivery.run_until_empty(max_batches=max_batches)
    logger.info("Drained %s batches", batches)
    return {
        "batches": batches,
        "pending": channel.pending_count(),
        "deadLetters": len(channel.dead_letters()),
    }


@router.post("/redrive")
def redrive_dead_letters(runtime: Runtime = Depends(get_app_runtime)) -> Dict[str, Any]:
    """Move dead-lettered messages back to the in-process queue."""
    moved = _memory_channel(runtime).redrive()
    return {"moved": moved}
