"""
Incident report/edit wizard controller

Owns the working IncidentDraft, the active tab, the dirty flag and the last
validation errors. Forward navigation is gated by the active tab's rules;
every navigation call is also an autosave trigger. Submit validates the
whole document, then creates (new) or sparsely updates (edit) the incident
and records the activity entry.
"""

import copy
import logging
import uuid
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError

from backend_client import (
    AuthorizationError,
    BackendError,
    IncidentBackend,
    NotFoundError,
)
from config import INCIDENT_AUTOSAVE_INTERVAL, INCIDENT_SERVER_DRAFTS
from draft_autosave import (
    TRIGGER_TAB_CHANGE,
    AutosaveState,
    DraftAutosaveEngine,
)
from draft_store import LocalDraftStore
from field_mappings import regions_for
from incident_helpers import (
    build_created_activity,
    build_edit_activity,
    build_update_payload,
    capture_snapshot,
    compute_field_changes,
    draft_to_record,
    record_to_draft,
)
from incident_validation import tab_order, validate_draft, validate_tab
from schemas_incidents import (
    DRAFT_FIELDS,
    ActivityEntry,
    ActorContext,
    IncidentDraft,
    NavigationResult,
    SubmitResult,
    UpdateResult,
)

logger = logging.getLogger(__name__)

NEW_DRAFT_PREFIX = "incident-draft-new-"

SUBMIT_FAILED_NEW = "Failed to submit incident. Please try again."
SUBMIT_FAILED_EDIT = "Failed to update incident. Please try again."


def new_draft_key() -> str:
    return f"{NEW_DRAFT_PREFIX}{uuid.uuid4().hex}"


def edit_draft_key(incident_id: int) -> str:
    return f"incident-draft-{incident_id}"


class IncidentLoadError(Exception):
    """
    Incident could not be loaded for editing.

    reason is "not_found", "forbidden" or "error"; there is no partial view
    to fall back to, so callers render a full-page error with a way back.
    """

    def __init__(self, message: str, incident_id: int, reason: str):
        super().__init__(message)
        self.incident_id = incident_id
        self.reason = reason


class IncidentWizard:
    """One in-progress incident report or edit"""

    def __init__(
        self,
        backend: IncidentBackend,
        actor: ActorContext,
        draft: IncidentDraft,
        draft_key: str,
        store: Optional[LocalDraftStore] = None,
        autosave_interval: float = INCIDENT_AUTOSAVE_INTERVAL,
        save_to_server: bool = INCIDENT_SERVER_DRAFTS,
        body_part_names: Optional[Mapping[str, str]] = None,
    ):
        self.backend = backend
        self.actor = actor
        self.draft = draft
        self.tabs = tab_order(draft.is_new)
        self.current_tab = self.tabs[0]
        self.dirty = False
        self.errors: Dict[str, str] = {}
        self.submitting = False
        self.submitted = False
        self.closed = False
        self.restored_from_draft = False

        # body_part id -> name, for diagram lookups when the form holds ids
        self.body_part_names = dict(body_part_names or {})

        self._revision = 0
        self._regions_auto = False
        self._snapshot: Mapping[str, Any] = MappingProxyType({})
        self._baseline: Mapping[str, Any] = MappingProxyType({})

        self.autosave = DraftAutosaveEngine(
            draft_key,
            backend,
            store=store,
            interval=autosave_interval,
            save_to_server=save_to_server,
        )
        self.autosave.attach(self)

    # ========================
    # Construction
    # ========================

    @classmethod
    async def open_new(cls, backend: IncidentBackend, actor: ActorContext,
                       draft_key: Optional[str] = None, **kwargs) -> "IncidentWizard":
        """New report; reopening with the same draft key restores the last autosave"""
        wizard = cls(backend, actor, IncidentDraft(), draft_key or new_draft_key(), **kwargs)
        wizard._restore_slot()
        wizard.autosave.start()
        logger.info(f"Incident report opened: {wizard.draft_key} (restored={wizard.restored_from_draft})")
        return wizard

    @classmethod
    async def open_edit(cls, backend: IncidentBackend, actor: ActorContext,
                        incident_id: int, **kwargs) -> "IncidentWizard":
        """Edit an existing incident; freezes the audit snapshot from the loaded record"""
        try:
            record = await backend.fetch_incident_for_edit(incident_id, actor.role_id, actor.employer_scope)
        except NotFoundError as e:
            raise IncidentLoadError(f"Incident {incident_id} not found", incident_id, "not_found") from e
        except AuthorizationError as e:
            raise IncidentLoadError(f"Not permitted to edit incident {incident_id}", incident_id, "forbidden") from e
        except BackendError as e:
            raise IncidentLoadError(f"Failed to load incident {incident_id}: {e}", incident_id, "error") from e

        draft = record_to_draft(record)
        draft.incident_id = incident_id

        wizard = cls(backend, actor, draft, edit_draft_key(incident_id), **kwargs)
        loaded = draft_to_record(draft)
        wizard._snapshot = capture_snapshot(loaded)
        wizard._baseline = MappingProxyType(copy.deepcopy(loaded))
        wizard._restore_slot()
        wizard.autosave.start()
        logger.info(f"Incident {incident_id} opened for edit by {actor.audit_name}")
        return wizard

    def _restore_slot(self) -> None:
        slot = self.autosave.load()
        if slot is None:
            return
        try:
            restored = IncidentDraft.model_validate(slot.form_data)
        except ValidationError as e:
            logger.warning(f"Ignoring unreadable draft {self.draft_key}: {e}")
            return
        restored.incident_id = self.draft.incident_id
        self.draft = restored
        if slot.current_tab in self.tabs:
            self.current_tab = slot.current_tab
        self.restored_from_draft = True

    # ========================
    # State
    # ========================

    @property
    def draft_key(self) -> str:
        return self.autosave.draft_key

    @property
    def is_new(self) -> bool:
        return self.draft.is_new

    @property
    def last_saved(self):
        return self.autosave.last_saved

    @property
    def snapshot(self) -> Mapping[str, Any]:
        """Audit snapshot frozen at load (empty for new reports)"""
        return self._snapshot

    def _ensure_open(self) -> None:
        if self.closed:
            raise RuntimeError("Wizard is closed")

    def set_field(self, name: str, value: Any) -> None:
        self.update_fields({name: value})

    def update_fields(self, values: Dict[str, Any]) -> None:
        """
        Apply form edits. Unknown fields raise ValueError, as do values of
        the wrong shape (pydantic ValidationError).
        """
        self._ensure_open()
        unknown = [name for name in values if name not in DRAFT_FIELDS]
        if unknown:
            raise ValueError(f"Unknown incident fields: {', '.join(unknown)}")

        data = self.draft.model_dump()
        data.update(values)
        updated = IncidentDraft.model_validate(data)
        updated.incident_id = self.draft.incident_id

        if "body_regions" in values:
            self._regions_auto = False
        elif ("body_part" in values or "body_side" in values) and (
                self._regions_auto or not updated.body_regions):
            part = self.body_part_names.get(updated.body_part, updated.body_part)
            updated.body_regions = regions_for(part, updated.body_side)
            self._regions_auto = bool(updated.body_regions)

        self.draft = updated
        self.dirty = True
        self._revision += 1

    # ========================
    # Autosave source
    # ========================

    def autosave_state(self) -> AutosaveState:
        return AutosaveState(
            form_data=self.draft.form_data(),
            current_tab=self.current_tab,
            dirty=self.dirty,
            revision=self._revision,
        )

    def autosave_succeeded(self, state: AutosaveState) -> None:
        # Edits made while the save was in flight keep the draft dirty
        if state.revision == self._revision:
            self.dirty = False

    async def save_draft(self) -> bool:
        """Explicit "save draft" action"""
        self._ensure_open()
        return await self.autosave.save_now()

    # ========================
    # Navigation
    # ========================

    def _move_to(self, tab: str) -> None:
        self.current_tab = tab
        self.autosave.trigger(TRIGGER_TAB_CHANGE)

    def advance(self) -> NavigationResult:
        """Next tab, only if the active tab validates"""
        self._ensure_open()
        tab_errors = validate_tab(self.draft, self.current_tab)
        self.errors = tab_errors
        if tab_errors:
            first = next(iter(tab_errors.values()))
            return NavigationResult(moved=False, current_tab=self.current_tab,
                                    error=first, field_errors=tab_errors)

        index = self.tabs.index(self.current_tab)
        target = self.tabs[min(index + 1, len(self.tabs) - 1)]
        self._move_to(target)
        return NavigationResult(moved=index < len(self.tabs) - 1, current_tab=self.current_tab)

    def retreat(self) -> NavigationResult:
        """Previous tab; never validated"""
        self._ensure_open()
        index = self.tabs.index(self.current_tab)
        self._move_to(self.tabs[max(index - 1, 0)])
        return NavigationResult(moved=index > 0, current_tab=self.current_tab)

    def go_to(self, tab: str) -> NavigationResult:
        """Direct tab selection"""
        self._ensure_open()
        if tab not in self.tabs:
            raise ValueError(f"Unknown tab: {tab}")
        moved = tab != self.current_tab
        self._move_to(tab)
        return NavigationResult(moved=moved, current_tab=self.current_tab)

    # ========================
    # Submit / discard
    # ========================

    async def submit(self) -> SubmitResult:
        """
        Validate everything, then create or update.

        Validation errors never reach the backend. Backend rejections leave
        the draft untouched so the user can retry.
        """
        if self.submitting:
            return SubmitResult(success=False, incident_id=self.draft.incident_id,
                                error="Submission already in progress")
        if self.submitted or self.closed:
            return SubmitResult(success=False, incident_id=self.draft.incident_id,
                                error="This report has already been closed")

        outcome = validate_draft(self.draft)
        if not outcome.valid:
            self.errors = outcome.errors
            self.current_tab = outcome.error_tabs[0]
            return SubmitResult(
                success=False,
                incident_id=self.draft.incident_id,
                error="Please correct the highlighted fields",
                current_tab=self.current_tab,
                field_errors=outcome.errors,
            )

        self.errors = {}
        self.submitting = True
        try:
            if self.is_new:
                result = await self._submit_new()
            else:
                result = await self._submit_edit()
        finally:
            self.submitting = False

        if result.success:
            self.submitted = True
            self.closed = True
            await self.autosave.delete_slot("submitted")
        return result

    async def _submit_new(self) -> SubmitResult:
        fields = draft_to_record(self.draft)
        try:
            incident_id = await self.backend.create_incident(
                self.actor.role_id, self.actor.employer_scope, fields)
        except BackendError as e:
            logger.error(f"Failed to create incident from {self.draft_key}: {e}")
            return SubmitResult(success=False, error=SUBMIT_FAILED_NEW, detail=str(e),
                                current_tab=self.current_tab)

        logger.info(f"Incident {incident_id} created by {self.actor.audit_name}")
        logged = await self._log_activity(build_created_activity(incident_id, self.actor))
        documents_saved = await self._save_documents(incident_id)
        return SubmitResult(success=True, incident_id=incident_id, activity_logged=logged,
                            documents_saved=documents_saved)

    async def _submit_edit(self) -> SubmitResult:
        incident_id = self.draft.incident_id
        current = draft_to_record(self.draft)
        payload = build_update_payload(self._baseline, current)
        changes = compute_field_changes(self._snapshot, current)

        if payload:
            try:
                result = await self.backend.update_incident(
                    incident_id, self.actor.role_id, self.actor.employer_scope, payload)
            except BackendError as e:
                result = UpdateResult(success=False, error=str(e))
            if not result.success:
                logger.error(f"Failed to update incident {incident_id}: {result.error}")
                return SubmitResult(success=False, incident_id=incident_id, error=SUBMIT_FAILED_EDIT,
                                    detail=result.error, current_tab=self.current_tab)
            logger.info(f"Incident {incident_id} updated: {', '.join(k for k in payload if k != 'updated_at')}")
        else:
            logger.info(f"Incident {incident_id} submitted with no changes")

        entry = build_edit_activity(incident_id, changes, self.actor)
        logged = await self._log_activity(entry) if entry else False
        return SubmitResult(success=True, incident_id=incident_id, changes=changes, activity_logged=logged)

    async def _save_documents(self, incident_id: int) -> bool:
        """Attach uploaded document references; best effort like the activity entry"""
        documents = self.draft.documents
        if not documents:
            return True
        try:
            await self.backend.insert_incident_documents(incident_id, documents, self.actor.user_id)
        except BackendError as e:
            logger.warning(f"Failed to save {len(documents)} document(s) for incident {incident_id}: {e}")
            return False
        logger.info(f"Saved {len(documents)} document(s) for incident {incident_id}")
        return True

    async def _log_activity(self, entry: ActivityEntry) -> bool:
        """Best effort: the incident write is the source of truth"""
        try:
            await self.backend.insert_activity_entry(entry.incident_id, entry)
        except BackendError as e:
            logger.warning(f"Failed to log activity '{entry.title}' for incident {entry.incident_id}: {e}")
            return False
        return True

    async def discard(self) -> None:
        """Drop the draft slot (local and server) and close"""
        self.closed = True
        await self.autosave.delete_slot("discarded")

    def close(self) -> None:
        """Unmount: stop autosave, ignore in-flight responses"""
        self.closed = True
        self.autosave.close()
