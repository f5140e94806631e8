"""Caller identity resolution.

Authentication happens in front of this service (API Gateway with a Cognito
authorizer). Handlers only read the verified identity the gate forwards:

1. The authorizer claims of the API Gateway event, when the app runs behind
   a Lambda ASGI adapter that exposes the event as ``scope["aws.event"]``
2. The trusted identity header (CALLER_IDENTITY_HEADER, default
   X-Authenticated-User) set by the gate or a local proxy
3. In DEV_MODE only, the configured development user
"""

import logging
from typing import Optional

from fastapi import Depends, Request

from feedback_recs.config import get_caller_identity_header, get_dev_user_id, is_dev_mode
from feedback_recs.lib.context import set_current_user_id
from feedback_recs.lib.exceptions import UnauthorizedError

logger = logging.getLogger(__name__)


def _identity_from_event(request: Request) -> Optional[str]:
    event = request.scope.get("aws.event")
    if not isinstance(event, dict):
        return None
    authorizer = (event.get("requestContext") or {}).get("authorizer") or {}
    claims = authorizer.get("claims") or {}
    return claims.get("sub") or None


async def _get_caller_identity_impl(request: Request) -> str:
    """Return the verified caller identity or raise UnauthorizedError."""
    user_id = _identity_from_event(request)

    if not user_id:
        user_id = request.headers.get(get_caller_identity_header()) or None

    # DEV MODE BYPASS: attribute anonymous requests to the dev user
    if not user_id and is_dev_mode():
        logger.debug("DEV_MODE enabled - using development user identity")
        user_id = get_dev_user_id()

    if not user_id:
        logger.warning("No userId found in authorizer context")
        raise UnauthorizedError("User ID not found in authentication context")

    set_current_user_id(user_id)
    return user_id


def get_caller_identity():
    """Get the identity dependency for route protection.

    Usage in routers:
        from feedback_recs.api.auth import get_caller_identity

        @router.get("/endpoint")
        async def protected_endpoint(user_id: str = get_caller_identity()):
            ...
    """
    return Depends(_get_caller_identity_impl)
