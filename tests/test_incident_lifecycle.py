"""
Tests for archive / restore / soft delete and query cache invalidation
"""

import asyncio

from incident_lifecycle import LifecycleController
from query_cache import QueryCache
from schemas_incidents import IncidentLifecycleState


def seeded_cache():
    cache = QueryCache()
    cache.set(("incidents", 7, 1), ["page one"])
    cache.set(("incidents", 7, 2), ["page two"])
    cache.set(("incidents-count", 7), 12)
    cache.set(("dashboard", 7), {"open": 3})
    cache.set(("sites", 7), ["Site A"])
    return cache


def test_archive_requires_confirmation(backend, actor):
    backend.add_incident(42)
    asked = []

    def decline(action, incident_id):
        asked.append((action, incident_id))
        return False

    cache = seeded_cache()
    controller = LifecycleController(backend, actor, confirm=decline, cache=cache)
    result = asyncio.run(controller.archive(42))

    assert asked == [("archive", 42)]
    assert not result.dispatched
    assert not result.success
    assert backend.calls_to("archive_incident") == []
    assert len(cache) == 5


def test_archive_invalidates_incident_buckets(backend, actor):
    backend.add_incident(42)
    cache = seeded_cache()
    controller = LifecycleController(backend, actor, confirm=lambda a, i: True, cache=cache)
    result = asyncio.run(controller.archive(42))

    assert result.success
    assert result.state == IncidentLifecycleState.ARCHIVED
    assert backend.calls_to("archive_incident") == [("archive_incident", 42, "Jordan Case")]
    assert ("incidents", 7, 1) not in cache
    assert ("incidents-count", 7) not in cache
    assert ("dashboard", 7) not in cache
    assert cache.get(("sites", 7)) == ["Site A"]


def test_async_confirmation(backend, actor):
    backend.add_incident(42)

    async def confirm(action, incident_id):
        return True

    controller = LifecycleController(backend, actor, confirm=confirm, cache=QueryCache())
    result = asyncio.run(controller.soft_delete(42))
    assert result.success
    # Backend reported no state: the requested target is assumed
    assert result.state == IncidentLifecycleState.DELETED
    assert backend.calls_to("soft_delete_incident") == [("soft_delete_incident", 42, "Jordan Case")]


def test_restore_needs_no_confirmation(backend, actor):
    backend.add_incident(42, archive_status="archived")
    controller = LifecycleController(backend, actor, cache=QueryCache())
    result = asyncio.run(controller.restore(42))
    assert result.dispatched
    assert result.success
    assert result.state == IncidentLifecycleState.ACTIVE


def test_archive_then_restore_leaves_fields_unchanged(backend, actor):
    backend.add_incident(42)
    before = {k: v for k, v in backend.incidents[42].items() if k != "archive_status"}
    controller = LifecycleController(backend, actor, confirm=lambda a, i: True, cache=QueryCache())

    async def scenario():
        await controller.archive(42)
        await controller.restore(42)

    asyncio.run(scenario())
    after = {k: v for k, v in backend.incidents[42].items() if k != "archive_status"}
    assert after == before
    assert backend.incidents[42]["archive_status"] == "active"
    assert controller.history[42] == [IncidentLifecycleState.ARCHIVED, IncidentLifecycleState.ACTIVE]


def test_repeated_archive_forwarded(backend, actor):
    backend.add_incident(42, archive_status="archived")
    controller = LifecycleController(backend, actor, confirm=lambda a, i: True, cache=QueryCache())

    async def scenario():
        await controller.archive(42)
        await controller.archive(42)

    asyncio.run(scenario())
    assert len(backend.calls_to("archive_incident")) == 2


def test_backend_rejection_keeps_cache(backend, actor):
    backend.add_incident(42)
    backend.failing.add("archive_incident")
    cache = seeded_cache()
    controller = LifecycleController(backend, actor, confirm=lambda a, i: True, cache=cache)
    result = asyncio.run(controller.archive(42))

    assert result.dispatched
    assert not result.success
    assert "archive_incident failed" in result.error
    assert len(cache) == 5
    assert 42 not in controller.history


def test_cache_get_or_load():
    cache = QueryCache()
    loads = []

    async def loader():
        loads.append(1)
        return ["row"]

    async def scenario():
        assert await cache.get_or_load(("incidents", 7), loader) == ["row"]
        assert await cache.get_or_load(("incidents", 7), loader) == ["row"]

    asyncio.run(scenario())
    assert len(loads) == 1
    assert cache.invalidate("incidents") == 1
    assert cache.invalidate("incidents") == 0
