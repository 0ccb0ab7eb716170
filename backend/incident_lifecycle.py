"""
Incident lifecycle controller

Requests archive / restore / soft-delete transitions from the backend. The
backend owns the state machine; nothing here checks the current state
before dispatching. Archive and delete wait for user confirmation first.
"""

import inspect
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Union

from backend_client import BackendError, IncidentBackend
from query_cache import INCIDENT_LIST_BUCKETS, QueryCache, query_cache
from schemas_incidents import ActorContext, IncidentLifecycleState, LifecycleResult

logger = logging.getLogger(__name__)

ACTION_ARCHIVE = "archive"
ACTION_RESTORE = "restore"
ACTION_DELETE = "delete"

# Confirmation prompt: (action, incident_id) -> bool, sync or async
ConfirmCallback = Callable[[str, int], Union[bool, Awaitable[bool]]]

TARGET_STATES = {
    ACTION_ARCHIVE: IncidentLifecycleState.ARCHIVED,
    ACTION_RESTORE: IncidentLifecycleState.ACTIVE,
    ACTION_DELETE: IncidentLifecycleState.DELETED,
}

ERROR_MESSAGES = {
    ACTION_ARCHIVE: "Failed to archive incident",
    ACTION_RESTORE: "Failed to restore incident",
    ACTION_DELETE: "Failed to delete incident",
}


class LifecycleController:
    def __init__(
        self,
        backend: IncidentBackend,
        actor: ActorContext,
        confirm: Optional[ConfirmCallback] = None,
        cache: QueryCache = query_cache,
    ):
        self.backend = backend
        self.actor = actor
        self.confirm = confirm
        self.cache = cache
        # incident_id -> states reached through this controller, oldest first
        self.history: Dict[int, List[IncidentLifecycleState]] = {}

    async def archive(self, incident_id: int) -> LifecycleResult:
        return await self._transition(
            ACTION_ARCHIVE, incident_id,
            lambda: self.backend.archive_incident(incident_id, self.actor.audit_name),
            needs_confirmation=True,
        )

    async def restore(self, incident_id: int) -> LifecycleResult:
        return await self._transition(
            ACTION_RESTORE, incident_id,
            lambda: self.backend.restore_incident(incident_id),
            needs_confirmation=False,
        )

    async def soft_delete(self, incident_id: int) -> LifecycleResult:
        return await self._transition(
            ACTION_DELETE, incident_id,
            lambda: self.backend.soft_delete_incident(incident_id, self.actor.audit_name),
            needs_confirmation=True,
        )

    async def _confirmed(self, action: str, incident_id: int) -> bool:
        if self.confirm is None:
            return False
        answer = self.confirm(action, incident_id)
        if inspect.isawaitable(answer):
            answer = await answer
        return bool(answer)

    async def _transition(self, action, incident_id, call, needs_confirmation) -> LifecycleResult:
        if needs_confirmation and not await self._confirmed(action, incident_id):
            logger.info(f"{action.capitalize()} of incident {incident_id} cancelled")
            return LifecycleResult(incident_id=incident_id, action=action, dispatched=False)

        try:
            reported = await call()
        except BackendError as e:
            logger.error(f"{ERROR_MESSAGES[action]} {incident_id}: {e}")
            return LifecycleResult(
                incident_id=incident_id, action=action, dispatched=True,
                success=False, error=f"{ERROR_MESSAGES[action]}: {e}",
            )

        state = reported or TARGET_STATES[action]
        self.history.setdefault(incident_id, []).append(state)
        self.cache.invalidate_many(INCIDENT_LIST_BUCKETS)
        logger.info(f"Incident {incident_id} {action} by {self.actor.audit_name} -> {state.value}")
        return LifecycleResult(
            incident_id=incident_id, action=action, dispatched=True,
            success=True, state=state,
        )
