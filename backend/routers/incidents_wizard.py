"""
Incident wizard router - report/edit sessions

Each open wizard lives in memory, keyed by session id, until it is
submitted, discarded or closed. Sessions left idle past SESSION_TTL are
closed on the next request. The autosave engine keeps its draft slot so a
lost session can be reopened with the same draft key.
"""

import logging
import time
import uuid
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from dependencies import get_actor, get_backend, get_draft_store
from config import INCIDENT_WIZARD_SESSION_TTL
from backend_client import IncidentBackend
from draft_store import LocalDraftStore
from incident_validation import TAB_TITLES
from incident_wizard import IncidentLoadError, IncidentWizard
from schemas_incidents import ActorContext

logger = logging.getLogger(__name__)
router = APIRouter()

# session_id -> wizard
_sessions: Dict[str, IncidentWizard] = {}
# session_id -> monotonic time of last request
_last_access: Dict[str, float] = {}

SESSION_TTL = INCIDENT_WIZARD_SESSION_TTL


# =============================================================================
# SESSION HELPERS
# =============================================================================

def _register(wizard: IncidentWizard) -> str:
    evict_idle_sessions()
    session_id = uuid.uuid4().hex
    _sessions[session_id] = wizard
    _last_access[session_id] = time.monotonic()
    return session_id


def _get_session(session_id: str, actor: ActorContext) -> IncidentWizard:
    evict_idle_sessions()
    wizard = _sessions.get(session_id)
    if wizard is None:
        raise HTTPException(status_code=404, detail="Wizard session not found")
    if wizard.actor.user_id != actor.user_id:
        raise HTTPException(status_code=403, detail="Wizard session belongs to another user")
    _last_access[session_id] = time.monotonic()
    return wizard


def _drop(session_id: str) -> None:
    _sessions.pop(session_id, None)
    _last_access.pop(session_id, None)


def evict_idle_sessions(now: Optional[float] = None) -> int:
    """
    Close sessions untouched for more than SESSION_TTL seconds.

    Stops their autosave loops. The draft slot stays, so opening the same
    draft key again picks the work back up. Returns the number closed.
    """
    now = time.monotonic() if now is None else now
    expired = [sid for sid, seen in _last_access.items() if now - seen > SESSION_TTL]
    for session_id in expired:
        wizard = _sessions.get(session_id)
        _drop(session_id)
        if wizard is not None:
            wizard.close()
            logger.info(f"Wizard session {session_id} expired (draft {wizard.draft_key} kept)")
    return len(expired)


def session_view(session_id: str, wizard: IncidentWizard) -> Dict[str, Any]:
    return {
        "session_id": session_id,
        "draft_key": wizard.draft_key,
        "incident_id": wizard.draft.incident_id,
        "is_new": wizard.is_new,
        "tabs": [{"id": tab, "title": TAB_TITLES[tab]} for tab in wizard.tabs],
        "current_tab": wizard.current_tab,
        "dirty": wizard.dirty,
        "errors": wizard.errors,
        "restored_from_draft": wizard.restored_from_draft,
        "last_saved": wizard.last_saved.isoformat() if wizard.last_saved else None,
        "draft": wizard.draft.model_dump(mode="json"),
    }


def close_all_sessions() -> None:
    """Shutdown: stop every autosave loop, keep the draft slots"""
    for wizard in _sessions.values():
        wizard.close()
    _sessions.clear()
    _last_access.clear()


# =============================================================================
# OPEN
# =============================================================================

@router.post("/new")
async def open_new_report(
    draft_key: Optional[str] = Query(None, description="Resume an existing new-report draft"),
    actor: ActorContext = Depends(get_actor),
    backend: IncidentBackend = Depends(get_backend),
    store: LocalDraftStore = Depends(get_draft_store),
):
    """Start (or resume) a new incident report"""
    wizard = await IncidentWizard.open_new(backend, actor, draft_key=draft_key, store=store)
    session_id = _register(wizard)
    return session_view(session_id, wizard)


@router.post("/edit/{incident_id}")
async def open_edit(
    incident_id: int,
    actor: ActorContext = Depends(get_actor),
    backend: IncidentBackend = Depends(get_backend),
    store: LocalDraftStore = Depends(get_draft_store),
):
    """Load an incident into an edit wizard"""
    try:
        wizard = await IncidentWizard.open_edit(backend, actor, incident_id, store=store)
    except IncidentLoadError as e:
        status = {"not_found": 404, "forbidden": 403}.get(e.reason, 502)
        raise HTTPException(status_code=status, detail={"error": str(e), "return_to": "/incidents"})
    session_id = _register(wizard)
    return session_view(session_id, wizard)


@router.get("/{session_id}")
async def get_session(session_id: str, actor: ActorContext = Depends(get_actor)):
    return session_view(session_id, _get_session(session_id, actor))


# =============================================================================
# EDITING / NAVIGATION
# =============================================================================

@router.patch("/{session_id}/fields")
async def update_fields(
    session_id: str,
    values: Dict[str, Any] = Body(...),
    actor: ActorContext = Depends(get_actor),
):
    wizard = _get_session(session_id, actor)
    try:
        wizard.update_fields(values)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return session_view(session_id, wizard)


@router.post("/{session_id}/advance")
async def advance(session_id: str, actor: ActorContext = Depends(get_actor)):
    wizard = _get_session(session_id, actor)
    result = wizard.advance()
    return {**session_view(session_id, wizard), "navigation": result.model_dump()}


@router.post("/{session_id}/retreat")
async def retreat(session_id: str, actor: ActorContext = Depends(get_actor)):
    wizard = _get_session(session_id, actor)
    result = wizard.retreat()
    return {**session_view(session_id, wizard), "navigation": result.model_dump()}


@router.post("/{session_id}/tab/{tab}")
async def go_to_tab(session_id: str, tab: str, actor: ActorContext = Depends(get_actor)):
    wizard = _get_session(session_id, actor)
    try:
        result = wizard.go_to(tab)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {**session_view(session_id, wizard), "navigation": result.model_dump()}


@router.post("/{session_id}/save-draft")
async def save_draft(session_id: str, actor: ActorContext = Depends(get_actor)):
    wizard = _get_session(session_id, actor)
    saved = await wizard.save_draft()
    message = "Draft saved" if saved else "Draft could not be saved"
    return {**session_view(session_id, wizard), "saved": saved, "message": message}


# =============================================================================
# SUBMIT / DISCARD
# =============================================================================

@router.post("/{session_id}/submit")
async def submit(session_id: str, actor: ActorContext = Depends(get_actor)):
    wizard = _get_session(session_id, actor)
    result = await wizard.submit()

    if result.success:
        _drop(session_id)
        return result.model_dump(mode="json")

    if result.field_errors:
        status = 422
    elif wizard.submitting or wizard.closed:
        status = 409
    else:
        status = 502
    raise HTTPException(status_code=status, detail=result.model_dump(mode="json"))


@router.delete("/{session_id}")
async def close_session(
    session_id: str,
    keep_draft: bool = Query(False, description="Close without discarding the saved draft"),
    actor: ActorContext = Depends(get_actor),
):
    wizard = _get_session(session_id, actor)
    if keep_draft:
        wizard.close()
    else:
        await wizard.discard()
    _drop(session_id)
    logger.info(f"Wizard session {session_id} closed (draft {'kept' if keep_draft else 'discarded'})")
    return {"status": "ok", "draft_key": wizard.draft_key, "draft_kept": keep_draft}
