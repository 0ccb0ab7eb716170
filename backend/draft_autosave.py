"""
Draft Autosave Engine

Keeps an interrupted incident wizard from losing more than one autosave
interval of work.

Triggers:
- every INCIDENT_AUTOSAVE_INTERVAL seconds while the draft is dirty
- every tab change, dirty or not
- the explicit "save draft" action

Each save overwrites the local slot and, when the draft is dirty, upserts
the server-side draft. Saves are fire-and-forget: a failed write is logged
and swallowed, and the last-saved time simply does not advance.

Remote writes are not serialized. Each save takes a sequence number and a
response older than the last applied one is dropped, as is any response
that lands after the engine is closed.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol, Set

from backend_client import IncidentBackend
from config import INCIDENT_AUTOSAVE_INTERVAL, INCIDENT_SERVER_DRAFTS
from draft_store import LocalDraftStore
from schemas_incidents import DraftSlot

logger = logging.getLogger(__name__)

TRIGGER_INTERVAL = "interval"
TRIGGER_TAB_CHANGE = "tab_change"
TRIGGER_MANUAL = "manual"


@dataclass(frozen=True)
class AutosaveState:
    """What the owner hands the engine at trigger time"""
    form_data: Dict[str, Any]
    current_tab: Optional[str]
    dirty: bool
    revision: int


class AutosaveSource(Protocol):
    def autosave_state(self) -> AutosaveState: ...

    def autosave_succeeded(self, state: AutosaveState) -> None: ...


class DraftAutosaveEngine:
    """Persists one wizard's working state to its draft slot"""

    def __init__(
        self,
        draft_key: str,
        backend: IncidentBackend,
        store: Optional[LocalDraftStore] = None,
        interval: float = INCIDENT_AUTOSAVE_INTERVAL,
        save_to_server: bool = INCIDENT_SERVER_DRAFTS,
    ):
        self.draft_key = draft_key
        self.interval = interval
        self.save_to_server = save_to_server
        self.last_saved: Optional[datetime] = None
        self.draft_id: Optional[int] = None

        self._backend = backend
        self._store = store or LocalDraftStore()
        self._source: Optional[AutosaveSource] = None
        self._sequence = 0
        self._applied_sequence = 0
        self._in_flight = 0
        self._closed = False
        self._tasks: Set[asyncio.Task] = set()
        self._periodic: Optional[asyncio.Task] = None

    @property
    def is_saving(self) -> bool:
        return self._in_flight > 0

    @property
    def closed(self) -> bool:
        return self._closed

    # ========================
    # Slot access
    # ========================

    def load(self) -> Optional[DraftSlot]:
        """Existing local slot for this key, if any"""
        try:
            slot = self._store.load(self.draft_key)
        except Exception as e:
            logger.warning(f"Failed to load draft {self.draft_key}: {e}")
            return None
        if slot:
            self.last_saved = slot.last_saved
            self.draft_id = slot.draft_id
            self._sequence = max(self._sequence, slot.sequence)
            self._applied_sequence = max(self._applied_sequence, slot.sequence)
            logger.info(f"Draft restored: {self.draft_key} (saved {slot.last_saved.isoformat()})")
        return slot

    async def delete_slot(self, reason: str = "submitted") -> None:
        """
        Remove the slot locally and remotely and stop autosaving.

        Closes first so queued saves can't recreate the slot, then waits
        for in-flight writes before deleting.
        """
        self.close()
        await self.wait_idle()

        try:
            self._store.delete(self.draft_key)
        except Exception as e:
            logger.warning(f"Failed to delete local draft {self.draft_key}: {e}")

        if self.save_to_server:
            try:
                await self._backend.delete_draft(self.draft_key)
            except Exception as e:
                logger.warning(f"Failed to delete server draft {self.draft_key}: {e}")

        self.last_saved = None
        self.draft_id = None
        logger.info(f"Draft {self.draft_key} cleared ({reason})")

    # ========================
    # Saving
    # ========================

    async def save(self, state: AutosaveState, trigger: str = TRIGGER_MANUAL) -> bool:
        """
        Write one snapshot. Returns True when it was written and is the
        newest applied save; never raises.
        """
        if self._closed:
            return False

        self._sequence += 1
        sequence = self._sequence
        saved_at = datetime.now(timezone.utc)

        try:
            self._store.save(DraftSlot(
                draft_key=self.draft_key,
                form_data=state.form_data,
                current_tab=state.current_tab,
                last_saved=saved_at,
                draft_id=self.draft_id,
                sequence=sequence,
            ))
        except Exception as e:
            logger.warning(f"Local autosave failed for {self.draft_key} ({trigger}): {e}")
            return False

        remote = self.save_to_server and (state.dirty or trigger == TRIGGER_MANUAL)
        if remote:
            self._in_flight += 1
            try:
                draft_id = await self._backend.upsert_draft(self.draft_key, {
                    "form_data": state.form_data,
                    "current_tab": state.current_tab,
                    "sequence": sequence,
                    "saved_at": saved_at.isoformat(),
                })
            except Exception as e:
                logger.warning(f"Server autosave failed for {self.draft_key} ({trigger}): {e}")
                return False
            finally:
                self._in_flight -= 1

            if self._closed:
                logger.debug(f"Dropping autosave response #{sequence} for closed draft {self.draft_key}")
                return False
            if sequence <= self._applied_sequence:
                logger.debug(f"Dropping stale autosave response #{sequence} (applied #{self._applied_sequence})")
                return False

            if draft_id is not None and draft_id != self.draft_id:
                self.draft_id = draft_id
                try:
                    self._store.set_draft_id(self.draft_key, draft_id)
                except Exception as e:
                    logger.warning(f"Failed to record server draft id for {self.draft_key}: {e}")

        if sequence <= self._applied_sequence:
            return False
        self._applied_sequence = sequence
        self.last_saved = saved_at
        logger.debug(f"Autosaved {self.draft_key} #{sequence} ({trigger}, remote={remote})")
        return True

    async def _save_and_report(self, state: AutosaveState, trigger: str) -> bool:
        ok = await self.save(state, trigger)
        if ok and self._source is not None and not self._closed:
            self._source.autosave_succeeded(state)
        return ok

    # ========================
    # Triggers
    # ========================

    def attach(self, source: AutosaveSource) -> None:
        self._source = source

    def trigger(self, trigger: str = TRIGGER_TAB_CHANGE) -> Optional[asyncio.Task]:
        """Fire-and-forget save of the attached source's current state"""
        if self._closed or self._source is None:
            return None
        state = self._source.autosave_state()
        task = asyncio.create_task(self._save_and_report(state, trigger))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def save_now(self) -> bool:
        """Explicit "save draft" action; awaited so the caller can confirm it"""
        if self._closed or self._source is None:
            return False
        return await self._save_and_report(self._source.autosave_state(), TRIGGER_MANUAL)

    def start(self) -> None:
        """Begin the periodic autosave loop (requires a running event loop)"""
        if self._periodic is None and not self._closed and self.interval > 0:
            self._periodic = asyncio.create_task(self._run_periodic())

    async def _run_periodic(self) -> None:
        while not self._closed:
            await asyncio.sleep(self.interval)
            if self._closed or self._source is None:
                break
            state = self._source.autosave_state()
            if state.dirty:
                await self._save_and_report(state, TRIGGER_INTERVAL)

    async def wait_idle(self) -> None:
        """Wait for every queued or in-flight save to settle"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        """Stop autosaving; responses still in flight are ignored"""
        self._closed = True
        if self._periodic is not None:
            self._periodic.cancel()
            self._periodic = None
