"""Health check API endpoint."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends

from feedback_recs import __version__, config
from feedback_recs.api.dependencies import get_app_runtime
from feedback_recs.lib.runtime import Runtime

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/health")
def health_check(runtime: Runtime = Depends(get_app_runtime)) -> Dict[str, Any]:
    """
    Report service configuration.

    Does not call AWS; a healthy response means the process is up and its
    runtime is wired.
    """
    environment = runtime.environment
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "Feedback Recommendations API",
        "version": __version__,
        "environment": environment.name,
        "checks": {
            "store": type(runtime.store).__name__,
            "publisher": type(runtime.publisher).__name__ if runtime.publisher else "unconfigured",
            "model_id": runtime.enricher.model_id,
        },
        "details": {
            "stage_name": environment.stage_name,
            "throttle": {
                "rate_limit": environment.throttle.rate_limit,
                "burst_limit": environment.throttle.burst_limit,
            },
            "dev_mode": config.is_dev_mode(),
            "debug_mode": config.is_debug(),
        },
    }
