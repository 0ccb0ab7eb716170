"""
Incident lifecycle router - archive / restore / soft delete

Archive and delete are only dispatched with confirm=true; the frontend
asks the user first and passes the answer through.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from dependencies import get_actor, get_backend
from backend_client import IncidentBackend
from incident_lifecycle import LifecycleController
from schemas_incidents import ActorContext, LifecycleResult

logger = logging.getLogger(__name__)
router = APIRouter()


def _controller(actor: ActorContext, backend: IncidentBackend, confirm: bool) -> LifecycleController:
    return LifecycleController(backend, actor, confirm=lambda action, incident_id: confirm)


def _respond(result: LifecycleResult):
    if not result.dispatched:
        raise HTTPException(status_code=400, detail=f"Confirmation required to {result.action} incident")
    if not result.success:
        raise HTTPException(status_code=502, detail=result.error)
    return result.model_dump(mode="json")


@router.post("/{incident_id}/archive")
async def archive_incident(
    incident_id: int,
    confirm: bool = Query(False),
    actor: ActorContext = Depends(get_actor),
    backend: IncidentBackend = Depends(get_backend),
):
    result = await _controller(actor, backend, confirm).archive(incident_id)
    return _respond(result)


@router.post("/{incident_id}/restore")
async def restore_incident(
    incident_id: int,
    actor: ActorContext = Depends(get_actor),
    backend: IncidentBackend = Depends(get_backend),
):
    result = await _controller(actor, backend, True).restore(incident_id)
    return _respond(result)


@router.post("/{incident_id}/delete")
async def delete_incident(
    incident_id: int,
    confirm: bool = Query(False),
    actor: ActorContext = Depends(get_actor),
    backend: IncidentBackend = Depends(get_backend),
):
    """Soft delete - the record is hidden, not removed"""
    result = await _controller(actor, backend, confirm).soft_delete(incident_id)
    return _respond(result)
