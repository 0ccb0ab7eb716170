"""
Tests for the draft autosave engine and local slot store
"""

import asyncio
from datetime import datetime, timezone

from draft_autosave import (
    TRIGGER_INTERVAL,
    TRIGGER_MANUAL,
    TRIGGER_TAB_CHANGE,
    AutosaveState,
    DraftAutosaveEngine,
)
from schemas_incidents import DraftSlot


def state(revision=1, dirty=True, tab="worker", **form):
    return AutosaveState(
        form_data={"worker_name": "Alex Builder", **form},
        current_tab=tab,
        dirty=dirty,
        revision=revision,
    )


class RecordingSource:
    def __init__(self, current: AutosaveState):
        self.current = current
        self.succeeded = []

    def autosave_state(self):
        return self.current

    def autosave_succeeded(self, saved):
        self.succeeded.append(saved)


# =============================================================================
# LOCAL STORE
# =============================================================================

def test_store_last_write_wins(draft_store):
    now = datetime.now(timezone.utc)
    draft_store.save(DraftSlot(draft_key="k", form_data={"a": 1}, current_tab="worker", last_saved=now, sequence=1))
    draft_store.save(DraftSlot(draft_key="k", form_data={"a": 2}, current_tab="injury", last_saved=now, sequence=2))
    slot = draft_store.load("k")
    assert slot.form_data == {"a": 2}
    assert slot.current_tab == "injury"
    assert slot.last_saved.tzinfo is not None
    assert draft_store.delete("k") is True
    assert draft_store.load("k") is None
    assert draft_store.delete("k") is False


# =============================================================================
# SAVES
# =============================================================================

def test_save_writes_local_and_remote(backend, draft_store):
    async def scenario():
        engine = DraftAutosaveEngine("incident-draft-new-abc", backend, store=draft_store, interval=0)
        ok = await engine.save(state(), TRIGGER_TAB_CHANGE)
        assert ok
        assert engine.last_saved is not None
        assert engine.draft_id == 1
        assert backend.drafts["incident-draft-new-abc"]["form_data"]["worker_name"] == "Alex Builder"
        slot = draft_store.load("incident-draft-new-abc")
        assert slot.current_tab == "worker"
        assert slot.draft_id == 1

    asyncio.run(scenario())


def test_clean_tab_change_stays_local(backend, draft_store):
    async def scenario():
        engine = DraftAutosaveEngine("k", backend, store=draft_store, interval=0)
        assert await engine.save(state(dirty=False), TRIGGER_TAB_CHANGE)
        assert backend.calls_to("upsert_draft") == []
        assert draft_store.load("k") is not None

        # Manual save always goes to the server
        assert await engine.save(state(dirty=False), TRIGGER_MANUAL)
        assert len(backend.calls_to("upsert_draft")) == 1

    asyncio.run(scenario())


def test_remote_failure_swallowed(backend, draft_store):
    backend.failing.add("upsert_draft")

    async def scenario():
        engine = DraftAutosaveEngine("k", backend, store=draft_store, interval=0)
        ok = await engine.save(state(), TRIGGER_INTERVAL)
        assert ok is False
        assert engine.last_saved is None
        # The local slot was still written before the remote call
        assert draft_store.load("k") is not None

    asyncio.run(scenario())


def test_stale_response_dropped(backend, draft_store):
    # First write is slow, second is fast
    backend.upsert_delays = [0.05, 0]

    async def scenario():
        engine = DraftAutosaveEngine("k", backend, store=draft_store, interval=0)
        first = asyncio.create_task(engine.save(state(revision=1, worker_name="old"), TRIGGER_TAB_CHANGE))
        await asyncio.sleep(0)
        second = asyncio.create_task(engine.save(state(revision=2, worker_name="new"), TRIGGER_TAB_CHANGE))
        results = await asyncio.gather(first, second)
        assert results == [False, True]
        assert draft_store.load("k").form_data["worker_name"] == "new"

    asyncio.run(scenario())


def test_response_after_close_dropped(backend, draft_store):
    async def scenario():
        backend.upsert_gate = asyncio.Event()
        engine = DraftAutosaveEngine("k", backend, store=draft_store, interval=0)
        source = RecordingSource(state())
        engine.attach(source)
        task = engine.trigger(TRIGGER_TAB_CHANGE)
        await asyncio.sleep(0)
        engine.close()
        backend.upsert_gate.set()
        assert await task is False
        assert source.succeeded == []
        assert engine.last_saved is None
        assert engine.trigger() is None

    asyncio.run(scenario())


def test_periodic_saves_only_when_dirty(backend, draft_store):
    async def scenario():
        engine = DraftAutosaveEngine("k", backend, store=draft_store, interval=0.01)
        source = RecordingSource(state(dirty=False))
        engine.attach(source)
        engine.start()
        await asyncio.sleep(0.05)
        assert draft_store.load("k") is None

        source.current = state(dirty=True)
        await asyncio.sleep(0.05)
        engine.close()
        assert draft_store.load("k") is not None
        assert source.succeeded

    asyncio.run(scenario())


# =============================================================================
# RECOVERY / DELETION
# =============================================================================

def test_reopen_restores_slot(backend, draft_store):
    async def scenario():
        engine = DraftAutosaveEngine("k", backend, store=draft_store, interval=0)
        await engine.save(state(revision=3, worker_name="Saved"), TRIGGER_TAB_CHANGE)
        engine.close()

        reopened = DraftAutosaveEngine("k", backend, store=draft_store, interval=0)
        slot = reopened.load()
        assert slot.form_data["worker_name"] == "Saved"
        assert reopened.last_saved == slot.last_saved
        assert reopened.draft_id == 1

        # Later saves keep counting past the restored sequence
        assert await reopened.save(state(revision=4), TRIGGER_TAB_CHANGE)
        assert draft_store.load("k").sequence == slot.sequence + 1

    asyncio.run(scenario())


def test_delete_slot_local_and_remote(backend, draft_store):
    async def scenario():
        engine = DraftAutosaveEngine("k", backend, store=draft_store, interval=0)
        await engine.save(state(), TRIGGER_MANUAL)
        await engine.delete_slot("discarded")
        assert draft_store.load("k") is None
        assert "k" not in backend.drafts
        assert engine.closed
        assert await engine.save(state(), TRIGGER_MANUAL) is False

    asyncio.run(scenario())


def test_delete_slot_remote_failure_logged(backend, draft_store):
    backend.failing.add("delete_draft")

    async def scenario():
        engine = DraftAutosaveEngine("k", backend, store=draft_store, interval=0)
        await engine.save(state(), TRIGGER_TAB_CHANGE)
        await engine.delete_slot("submitted")
        assert draft_store.load("k") is None

    asyncio.run(scenario())
