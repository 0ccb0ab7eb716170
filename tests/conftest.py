"""
Shared fixtures: in-memory backend, throwaway draft database, actor
"""

import asyncio
import copy
import os
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

# Keep the app's default draft database off disk
os.environ.setdefault("INCIDENT_DRAFT_DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy.orm import sessionmaker

from backend_client import AuthorizationError, BackendError, NotFoundError
from database import init_db, make_engine
from draft_store import LocalDraftStore
from schemas_incidents import ActivityEntry, ActorContext, DocumentRef, IncidentLifecycleState, UpdateResult


def sample_record(incident_id: int = 42, **overrides) -> Dict[str, Any]:
    """Fully joined incident row as get_incident_for_edit returns it"""
    record = {
        "incident_id": incident_id,
        "employer_id": 7,
        "notifying_person_name": "Sam Foreman",
        "notifying_person_position": "Site Supervisor",
        "notifying_person_telephone": "0400 000 000",
        "worker_id": 15,
        "site_id": 3,
        "date_of_injury": "2024-03-14",
        "time_of_injury": "09:30:00",
        "injury_type": "Laceration",
        "classification": "FAI",
        "body_part_id": None,
        "body_side_id": 1,
        "body_regions": ["front-forearmhand-left"],
        "injury_description": "Cut on left hand from sheet metal",
        "witness": "",
        "moi_code_id": None,
        "bl_code_id": None,
        "treatment_provided": "Cleaned and dressed",
        "referral": None,
        "doctor_details": "",
        "doctor_id": None,
        "actions": "Area cordoned off; Toolbox talk held",
        "case_notes": "Worker returned to light duties.",
        "call_transcripts": None,
        "archive_status": "active",
        "workers": {"given_name": "Alex", "family_name": "Builder", "mobile_number": "0411 111 111",
                    "basis_of_employment": "Casual"},
        "employers": {"employer_name": "Acme Constructions"},
        "sites": {"supervisor_name": "Sam Foreman", "supervisor_telephone": "0400 000 000"},
    }
    record.update(overrides)
    return record


class FakeBackend:
    """In-memory IncidentBackend; records every call"""

    def __init__(self):
        self.incidents: Dict[int, Dict[str, Any]] = {}
        self.activities: Dict[int, List[ActivityEntry]] = {}
        self.documents: Dict[int, List[DocumentRef]] = {}
        self.drafts: Dict[str, Dict[str, Any]] = {}
        self.calls: List[tuple] = []
        self.failing: Set[str] = set()
        self.forbidden: Set[int] = set()
        self.update_error: Optional[str] = None
        self.upsert_delays: List[float] = []
        self.upsert_gate: Optional[asyncio.Event] = None
        self.create_gate: Optional[asyncio.Event] = None
        self._next_incident_id = 1000
        self._next_draft_id = 1
        self._draft_ids: Dict[str, int] = {}

    def add_incident(self, incident_id: int = 42, **overrides) -> Dict[str, Any]:
        self.incidents[incident_id] = sample_record(incident_id, **overrides)
        return self.incidents[incident_id]

    def calls_to(self, name: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == name]

    def _record(self, name: str, *args):
        self.calls.append((name, *args))
        if name in self.failing:
            raise BackendError(f"{name} failed", procedure=name)

    async def fetch_incident_for_edit(self, incident_id, role_id, employer_scope):
        self._record("fetch_incident_for_edit", incident_id, role_id, employer_scope)
        if incident_id in self.forbidden:
            raise AuthorizationError("Not authorized", status_code=403)
        if incident_id not in self.incidents:
            raise NotFoundError(f"Incident {incident_id} not found")
        return copy.deepcopy(self.incidents[incident_id])

    async def update_incident(self, incident_id, role_id, employer_scope, fields):
        self._record("update_incident", incident_id, role_id, employer_scope, copy.deepcopy(fields))
        if self.update_error:
            return UpdateResult(success=False, error=self.update_error)
        self.incidents[incident_id].update(copy.deepcopy(fields))
        return UpdateResult(success=True)

    async def create_incident(self, role_id, employer_scope, fields):
        self._record("create_incident", role_id, employer_scope, copy.deepcopy(fields))
        if self.create_gate is not None:
            await self.create_gate.wait()
        incident_id = self._next_incident_id
        self._next_incident_id += 1
        self.incidents[incident_id] = {"incident_id": incident_id, "archive_status": "active",
                                       **copy.deepcopy(fields)}
        return incident_id

    async def archive_incident(self, incident_id, actor_name):
        self._record("archive_incident", incident_id, actor_name)
        self.incidents[incident_id]["archive_status"] = "archived"
        return IncidentLifecycleState.ARCHIVED

    async def restore_incident(self, incident_id):
        self._record("restore_incident", incident_id)
        self.incidents[incident_id]["archive_status"] = "active"
        return IncidentLifecycleState.ACTIVE

    async def soft_delete_incident(self, incident_id, actor_name):
        self._record("soft_delete_incident", incident_id, actor_name)
        self.incidents[incident_id]["archive_status"] = "deleted"
        return None

    async def insert_activity_entry(self, incident_id, entry):
        self._record("insert_activity_entry", incident_id, entry)
        self.activities.setdefault(incident_id, []).append(entry)

    async def insert_incident_documents(self, incident_id, documents, uploaded_by):
        self._record("insert_incident_documents", incident_id, list(documents), uploaded_by)
        self.documents.setdefault(incident_id, []).extend(documents)

    async def fetch_activity_log(self, incident_id):
        self._record("fetch_activity_log", incident_id)
        return list(self.activities.get(incident_id, []))

    async def upsert_draft(self, draft_key, snapshot):
        self.calls.append(("upsert_draft", draft_key, copy.deepcopy(snapshot)))
        if self.upsert_delays:
            await asyncio.sleep(self.upsert_delays.pop(0))
        if self.upsert_gate is not None:
            await self.upsert_gate.wait()
        if "upsert_draft" in self.failing:
            raise BackendError("upsert_draft failed", procedure="upsert_incident_draft")
        self.drafts[draft_key] = copy.deepcopy(snapshot)
        return self._draft_id(draft_key)

    def _draft_id(self, draft_key):
        if draft_key not in self._draft_ids:
            self._draft_ids[draft_key] = self._next_draft_id
            self._next_draft_id += 1
        return self._draft_ids[draft_key]

    async def delete_draft(self, draft_key):
        self._record("delete_draft", draft_key)
        self.drafts.pop(draft_key, None)


def make_entry(incident_id: int, title: str, created_at: datetime, description: str = None) -> ActivityEntry:
    return ActivityEntry(
        incident_id=incident_id,
        type="note",
        title=title,
        description=description,
        created_by="Test User",
        created_at=created_at,
    )


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def actor():
    return ActorContext(
        user_id="user_123",
        display_name="Jordan Case",
        email="jordan@example.com",
        role_id=2,
        employer_scope=7,
    )


@pytest.fixture
def draft_store(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'drafts.db'}")
    init_db(bind=engine)
    yield LocalDraftStore(sessionmaker(bind=engine, autoflush=False))
    engine.dispose()
