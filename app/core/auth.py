"""Caller identity for mutating category routes.

Authentication happens upstream (API gateway); the gateway forwards the
authenticated principal in a header and this service only reads it for the
audit columns and event payloads.
"""
from typing import Annotated, Optional
from fastapi import Depends, Header, HTTPException, Request
from starlette.status import HTTP_401_UNAUTHORIZED
import logging

logger = logging.getLogger(__name__)

ACTOR_HEADER = "X-Authenticated-User"


async def get_current_actor(
    request: Request,
    x_authenticated_user: Optional[str] = Header(None, alias=ACTOR_HEADER),
) -> str:
    """
    Resolve the authenticated actor for the request.

    Raises:
        HTTPException: 401 if the identity header is missing or blank
    """
    actor = (x_authenticated_user or "").strip()
    if not actor:
        client = request.client.host if request.client else "unknown"
        logger.warning(f"Missing {ACTOR_HEADER} header on {request.method} {request.url.path} from {client}")
        raise HTTPException(
            status_code=HTTP_401_UNAUTHORIZED,
            detail=f"Missing {ACTOR_HEADER} header",
        )

    request.state.actor = actor
    return actor


# Type alias for dependency injection
Actor = Annotated[str, Depends(get_current_actor)]
