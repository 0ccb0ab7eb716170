"""
Shared FastAPI dependencies - actor identity, backend client, draft store
"""

import logging
from typing import Optional

from fastapi import Header, HTTPException

from backend_client import BackendError, IncidentBackend, NotFoundError, AuthorizationError, RpcBackend
from draft_store import LocalDraftStore
from schemas_incidents import ActorContext

logger = logging.getLogger(__name__)

_backend: Optional[RpcBackend] = None
_draft_store: Optional[LocalDraftStore] = None


def get_actor(
    x_actor_id: Optional[str] = Header(None),
    x_actor_name: Optional[str] = Header(None),
    x_actor_display_name: Optional[str] = Header(None),
    x_actor_email: Optional[str] = Header(None),
    x_actor_role: Optional[int] = Header(None),
    x_employer_scope: Optional[int] = Header(None),
) -> ActorContext:
    """Actor identity as forwarded by the identity provider's proxy"""
    if not x_actor_id:
        raise HTTPException(status_code=401, detail="Not signed in")
    return ActorContext(
        user_id=x_actor_id,
        display_name=x_actor_name,
        custom_display_name=x_actor_display_name,
        email=x_actor_email,
        role_id=x_actor_role,
        employer_scope=x_employer_scope,
    )


def get_backend() -> IncidentBackend:
    global _backend
    if _backend is None:
        _backend = RpcBackend()
    return _backend


def get_draft_store() -> LocalDraftStore:
    global _draft_store
    if _draft_store is None:
        _draft_store = LocalDraftStore()
    return _draft_store


async def close_backend() -> None:
    global _backend
    if _backend is not None:
        await _backend.aclose()
        _backend = None


def backend_http_error(e: BackendError, action: str) -> HTTPException:
    """Map a backend failure onto the HTTP status the client should see"""
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=f"{action}: not found")
    if isinstance(e, AuthorizationError):
        return HTTPException(status_code=403, detail=f"{action}: not permitted")
    logger.error(f"{action}: {e}")
    return HTTPException(status_code=502, detail=f"{action}: {e}")
