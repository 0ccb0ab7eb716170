"""
Incident activity router - timeline read and operator "add activity"
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from dependencies import backend_http_error, get_actor, get_backend
from activity_log import ACTIVITY_LABELS, ActivityLogService, is_milestone
from backend_client import BackendError, IncidentBackend
from schemas_incidents import ActivityCreate, ActorContext

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/{incident_id}/activity")
async def list_activity(
    incident_id: int,
    actor: ActorContext = Depends(get_actor),
    backend: IncidentBackend = Depends(get_backend),
):
    """Timeline, newest first, with milestone flags"""
    service = ActivityLogService(backend, actor)
    try:
        entries = await service.fetch(incident_id)
    except BackendError as e:
        raise backend_http_error(e, "Failed to load activity")

    return [
        {
            **entry.model_dump(mode="json"),
            "type_label": ACTIVITY_LABELS[entry.type],
            "milestone": is_milestone(entry),
        }
        for entry in entries
    ]


@router.post("/{incident_id}/activity", status_code=201)
async def add_activity(
    incident_id: int,
    data: ActivityCreate,
    actor: ActorContext = Depends(get_actor),
    backend: IncidentBackend = Depends(get_backend),
):
    service = ActivityLogService(backend, actor)
    try:
        entry = await service.add_activity(
            incident_id, data.type, data.title, data.description, data.metadata)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except BackendError as e:
        raise backend_http_error(e, "Failed to add activity")
    return entry.model_dump(mode="json")
