"""
SQLAlchemy models for local incident drafts

One row per draft key. Overwritten on every autosave (last write wins),
deleted on successful submission or explicit discard.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func

from database import Base


class DraftSlotRecord(Base):
    """
    Durable draft slot for an in-progress incident wizard.

    New-record flows use a locally generated key
    ("incident-draft-new-<hex>"); edit flows use "incident-draft-<incident_id>".
    """
    __tablename__ = "incident_draft_slots"

    draft_key = Column(String(100), primary_key=True)
    form_data = Column(JSON, nullable=False)
    current_tab = Column(String(30))
    last_saved = Column(DateTime(timezone=True), nullable=False)
    draft_id = Column(Integer)                      # Server-side draft id, once known
    sequence = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=func.current_timestamp())
