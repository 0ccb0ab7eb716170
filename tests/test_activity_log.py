"""
Tests for the activity log service and milestone detection
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from activity_log import ActivityLogService, is_milestone
from conftest import make_entry
from schemas_incidents import ActivityType


def test_add_activity_stamps_actor(backend, actor):
    service = ActivityLogService(backend, actor)
    entry = asyncio.run(service.add_activity(42, ActivityType.CALL, "  Called worker  ", "Left voicemail"))

    assert entry.title == "Called worker"
    assert entry.type == ActivityType.CALL
    assert entry.created_by == "Jordan Case"
    assert entry.created_by_user_id == "user_123"
    assert entry.created_at.tzinfo is not None
    assert backend.activities[42] == [entry]


def test_blank_title_rejected(backend, actor):
    service = ActivityLogService(backend, actor)
    with pytest.raises(ValueError):
        asyncio.run(service.add_activity(42, ActivityType.NOTE, "   "))
    assert backend.calls_to("insert_activity_entry") == []


def test_fetch_newest_first(backend, actor):
    now = datetime.now(timezone.utc)
    backend.activities[42] = [
        make_entry(42, "Oldest", now - timedelta(days=2)),
        make_entry(42, "Newest", now),
        make_entry(42, "Middle", now - timedelta(hours=3)),
    ]
    service = ActivityLogService(backend, actor)
    entries = asyncio.run(service.fetch(42))
    assert [e.title for e in entries] == ["Newest", "Middle", "Oldest"]


@pytest.mark.parametrize("title, description, expected", [
    ("Appointment booked", None, True),
    ("Voice call", "Physio booking confirmed for Monday", True),
    ("Incident Updated", "Witness", False),
    ("Note", None, False),
])
def test_milestones(title, description, expected):
    entry = make_entry(42, title, datetime.now(timezone.utc), description)
    assert is_milestone(entry) is expected
