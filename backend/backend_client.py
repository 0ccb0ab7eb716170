"""
Relational backend client

All reads and writes go through named remote procedures on the hosted
database (POST {base_url}/rpc/{procedure} with a JSON parameter object).
Row-level security and role/employer scoping are enforced server-side; the
caller's role and employer scope are forwarded verbatim.
"""

import logging
from typing import Any, Dict, List, Optional, Protocol

import httpx

from config import (
    INCIDENT_BACKEND_URL,
    INCIDENT_BACKEND_API_KEY,
    INCIDENT_BACKEND_TIMEOUT,
)
from schemas_incidents import (
    ActivityEntry,
    DocumentRef,
    IncidentLifecycleState,
    UpdateResult,
)

logger = logging.getLogger(__name__)


# =============================================================================
# ERRORS
# =============================================================================

class BackendError(Exception):
    """A remote procedure failed or rejected the request"""

    def __init__(self, message: str, procedure: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.procedure = procedure
        self.status_code = status_code


class NotFoundError(BackendError):
    """Requested record does not exist (or is hidden by row-level security)"""


class AuthorizationError(BackendError):
    """Caller's role/employer scope does not permit the request"""


# =============================================================================
# COLLABORATOR CONTRACT
# =============================================================================

class IncidentBackend(Protocol):
    """Remote procedures used by the incident workflow"""

    async def fetch_incident_for_edit(self, incident_id: int, role_id: Optional[int],
                                      employer_scope: Optional[int]) -> Dict[str, Any]: ...

    async def update_incident(self, incident_id: int, role_id: Optional[int],
                              employer_scope: Optional[int], fields: Dict[str, Any]) -> UpdateResult: ...

    async def create_incident(self, role_id: Optional[int], employer_scope: Optional[int],
                              fields: Dict[str, Any]) -> int: ...

    async def archive_incident(self, incident_id: int, actor_name: str) -> Optional[IncidentLifecycleState]: ...

    async def restore_incident(self, incident_id: int) -> Optional[IncidentLifecycleState]: ...

    async def soft_delete_incident(self, incident_id: int, actor_name: str) -> Optional[IncidentLifecycleState]: ...

    async def insert_activity_entry(self, incident_id: int, entry: ActivityEntry) -> None: ...

    async def insert_incident_documents(self, incident_id: int, documents: List[DocumentRef],
                                        uploaded_by: str) -> None: ...

    async def fetch_activity_log(self, incident_id: int) -> List[ActivityEntry]: ...

    async def upsert_draft(self, draft_key: str, snapshot: Dict[str, Any]) -> Optional[int]: ...

    async def delete_draft(self, draft_key: str) -> None: ...


# =============================================================================
# RPC IMPLEMENTATION
# =============================================================================

def _parse_state(payload: Any) -> Optional[IncidentLifecycleState]:
    """Lifecycle procedures may echo the resulting state"""
    if isinstance(payload, dict):
        value = payload.get("archive_status") or payload.get("state")
        if value:
            try:
                return IncidentLifecycleState(str(value).lower())
            except ValueError:
                logger.warning(f"Unknown lifecycle state from backend: {value}")
    return None


class RpcBackend:
    """IncidentBackend over the database's RPC endpoint (httpx.AsyncClient)"""

    def __init__(
        self,
        base_url: str = INCIDENT_BACKEND_URL,
        api_key: str = INCIDENT_BACKEND_API_KEY,
        access_token: Optional[str] = None,
        timeout: float = INCIDENT_BACKEND_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["apikey"] = api_key
        token = access_token or api_key
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
        )

    async def aclose(self):
        await self._client.aclose()

    async def _rpc(self, procedure: str, params: Dict[str, Any]) -> Any:
        try:
            response = await self._client.post(f"/rpc/{procedure}", json=params)
        except httpx.TimeoutException:
            logger.warning(f"RPC {procedure} timed out")
            raise BackendError("Request timed out", procedure=procedure)
        except httpx.HTTPError as e:
            logger.error(f"RPC {procedure} transport error: {e}")
            raise BackendError(str(e), procedure=procedure)

        if response.status_code == 404:
            raise NotFoundError("Not found", procedure=procedure, status_code=404)
        if response.status_code in (401, 403):
            raise AuthorizationError("Not authorized", procedure=procedure, status_code=response.status_code)
        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = None
            detail = (body.get("message") if isinstance(body, dict) else None) or response.text
            logger.error(f"RPC {procedure} failed ({response.status_code}): {detail}")
            raise BackendError(detail, procedure=procedure, status_code=response.status_code)

        if not response.content:
            return None
        data = response.json()

        # Procedures returning {success: false, error: "..."} are rejections too
        if isinstance(data, dict) and data.get("success") is False:
            raise BackendError(data.get("error") or "Request rejected", procedure=procedure)
        return data

    # ------------------------------------------------------------------ incidents

    async def fetch_incident_for_edit(self, incident_id, role_id, employer_scope):
        data = await self._rpc("get_incident_for_edit", {
            "p_incident_id": incident_id,
            "p_user_role_id": role_id,
            "p_user_employer_id": employer_scope,
        })
        # Set-returning procedures come back as a list
        if isinstance(data, list):
            data = data[0] if data else None
        if not data:
            raise NotFoundError(f"Incident {incident_id} not found", procedure="get_incident_for_edit")
        return data

    async def update_incident(self, incident_id, role_id, employer_scope, fields):
        try:
            await self._rpc("update_incident_rbac", {
                "p_incident_id": incident_id,
                "p_user_role_id": role_id,
                "p_user_employer_id": employer_scope,
                "p_update_data": fields,
            })
        except (NotFoundError, AuthorizationError):
            raise
        except BackendError as e:
            return UpdateResult(success=False, error=str(e))
        return UpdateResult(success=True)

    async def create_incident(self, role_id, employer_scope, fields):
        data = await self._rpc("create_incident_rbac", {
            "p_user_role_id": role_id,
            "p_user_employer_id": employer_scope,
            "p_incident_data": fields,
        })
        if isinstance(data, list):
            data = data[0] if data else None
        if isinstance(data, dict):
            data = data.get("incident_id")
        if data is None:
            raise BackendError("Incident was not created", procedure="create_incident_rbac")
        return int(data)

    # ------------------------------------------------------------------ lifecycle

    async def archive_incident(self, incident_id, actor_name):
        data = await self._rpc("archive_incident", {
            "p_incident_id": incident_id,
            "p_archived_by": actor_name,
        })
        return _parse_state(data)

    async def restore_incident(self, incident_id):
        data = await self._rpc("restore_incident", {"p_incident_id": incident_id})
        return _parse_state(data)

    async def soft_delete_incident(self, incident_id, actor_name):
        data = await self._rpc("soft_delete_incident", {
            "p_incident_id": incident_id,
            "p_deleted_by": actor_name,
        })
        return _parse_state(data)

    # ------------------------------------------------------------------ activity

    async def insert_activity_entry(self, incident_id, entry):
        await self._rpc("insert_incident_activity", {
            "p_incident_id": incident_id,
            "p_activity": entry.model_dump(mode="json", exclude={"id"}),
        })

    async def fetch_activity_log(self, incident_id):
        rows = await self._rpc("get_incident_activities", {"p_incident_id": incident_id}) or []
        return [ActivityEntry.model_validate(row) for row in rows]

    # ------------------------------------------------------------------ drafts

    async def upsert_draft(self, draft_key, snapshot):
        data = await self._rpc("upsert_incident_draft", {
            "p_draft_key": draft_key,
            "p_snapshot": snapshot,
        })
        if isinstance(data, dict):
            data = data.get("draft_id")
        return int(data) if data is not None else None

    async def delete_draft(self, draft_key):
        await self._rpc("delete_incident_draft", {"p_draft_key": draft_key})

    # ------------------------------------------------------------------ documents

    async def insert_incident_documents(self, incident_id, documents, uploaded_by):
        if not documents:
            return
        await self._rpc("insert_incident_documents", {
            "p_incident_id": incident_id,
            "p_documents": [
                {
                    "file_url": doc.url,
                    "file_name": doc.name,
                    "file_type": doc.type,
                    "file_size": doc.size,
                    "uploaded_by": uploaded_by,
                }
                for doc in documents
            ],
        })
