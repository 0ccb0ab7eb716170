"""
Incident activity log

Operator-entered activities (calls, appointments, notes) plus the system
entries written by the wizard. Entries are append-only.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from backend_client import IncidentBackend
from schemas_incidents import ActivityEntry, ActivityType, ActorContext

logger = logging.getLogger(__name__)

# Title/description keywords that mark a milestone on the timeline
MILESTONE_KEYWORDS = (
    'booked successfully',
    'confirmed',
    'completed',
    'times collected',
    'appointment booked',
    'patient confirmed',
    'booking confirmed',
    'established',
    'scheduled',
)

ACTIVITY_LABELS = {
    ActivityType.CALL: 'Call',
    ActivityType.APPOINTMENT: 'Appointment',
    ActivityType.NOTE: 'Note',
    ActivityType.VOICE_AGENT: 'Voice Agent',
    ActivityType.SYSTEM_EDIT: 'Edit',
}


def is_milestone(entry: ActivityEntry) -> bool:
    title = entry.title.lower()
    description = (entry.description or "").lower()
    return any(keyword in title or keyword in description for keyword in MILESTONE_KEYWORDS)


class ActivityLogService:
    def __init__(self, backend: IncidentBackend, actor: ActorContext):
        self.backend = backend
        self.actor = actor

    async def add_activity(
        self,
        incident_id: int,
        type: ActivityType,
        title: str,
        description: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ActivityEntry:
        """Record one operator activity. Backend errors propagate."""
        if not title or not title.strip():
            raise ValueError("Activity title is required")

        entry = ActivityEntry(
            incident_id=incident_id,
            type=type,
            title=title.strip(),
            description=description,
            metadata=metadata,
            created_by=self.actor.audit_name,
            created_by_user_id=self.actor.user_id,
            created_at=datetime.now(timezone.utc),
        )
        await self.backend.insert_activity_entry(incident_id, entry)
        logger.info(f"Activity '{entry.title}' ({type.value}) added to incident {incident_id}")
        return entry

    async def fetch(self, incident_id: int) -> List[ActivityEntry]:
        """Newest first"""
        entries = await self.backend.fetch_activity_log(incident_id)
        return sorted(entries, key=lambda e: e.created_at, reverse=True)
