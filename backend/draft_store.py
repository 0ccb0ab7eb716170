"""
Local draft slot storage

Durable, single-writer slot per draft key. Survives tab close / process
restart; the wizard restores from it on reopen.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import sessionmaker

from database import SessionLocal
from models import DraftSlotRecord
from schemas_incidents import DraftSlot

logger = logging.getLogger(__name__)


class LocalDraftStore:
    """DraftSlot persistence over the local draft database"""

    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self._session_factory = session_factory

    def save(self, slot: DraftSlot) -> None:
        """Overwrite the slot for slot.draft_key (last write wins)"""
        db = self._session_factory()
        try:
            row = db.get(DraftSlotRecord, slot.draft_key)
            if row is None:
                row = DraftSlotRecord(draft_key=slot.draft_key)
                db.add(row)
            row.form_data = slot.form_data
            row.current_tab = slot.current_tab
            row.last_saved = slot.last_saved
            row.draft_id = slot.draft_id
            row.sequence = slot.sequence
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def load(self, draft_key: str) -> Optional[DraftSlot]:
        db = self._session_factory()
        try:
            row = db.get(DraftSlotRecord, draft_key)
            if row is None:
                return None
            last_saved = row.last_saved
            if last_saved is not None and last_saved.tzinfo is None:
                # SQLite drops tzinfo; slots are always written in UTC
                last_saved = last_saved.replace(tzinfo=timezone.utc)
            return DraftSlot(
                draft_key=row.draft_key,
                form_data=row.form_data or {},
                current_tab=row.current_tab,
                last_saved=last_saved or datetime.now(timezone.utc),
                draft_id=row.draft_id,
                sequence=row.sequence or 0,
            )
        finally:
            db.close()

    def set_draft_id(self, draft_key: str, draft_id: int) -> None:
        """Record the server-side draft id against an existing slot"""
        db = self._session_factory()
        try:
            row = db.get(DraftSlotRecord, draft_key)
            if row is not None and row.draft_id != draft_id:
                row.draft_id = draft_id
                db.commit()
        finally:
            db.close()

    def delete(self, draft_key: str) -> bool:
        db = self._session_factory()
        try:
            row = db.get(DraftSlotRecord, draft_key)
            if row is None:
                return False
            db.delete(row)
            db.commit()
            logger.info(f"Deleted local draft {draft_key}")
            return True
        finally:
            db.close()
