"""
Incident Helper Functions

Contains:
- Record <-> draft mapping (backend columns vs form values)
- Audit snapshot and field-level change detection
- Activity entries for edits and creation
- Sparse update payloads
"""

import copy
import logging
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from field_mappings import (
    body_side_id,
    join_actions,
    normalize_body_side,
    split_actions,
    split_notes,
)
from schemas_incidents import (
    ActivityEntry,
    ActivityType,
    ActorContext,
    FieldChange,
    IncidentDraft,
)

logger = logging.getLogger(__name__)


# =============================================================================
# RECORD <-> DRAFT MAPPING
# =============================================================================

def _id_str(value) -> str:
    return str(value) if value is not None and value != "" else ""


def _to_int(value) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def record_to_draft(record: Dict[str, Any]) -> IncidentDraft:
    """
    Hydrate a draft from a fully-joined incident row.

    Legacy rows keep the call transcript inside case_notes; when no separate
    call_transcripts value exists the combined text is split once here.
    """
    workers = record.get("workers") or {}
    employers = record.get("employers") or {}
    sites = record.get("sites") or {}

    case_notes = record.get("case_notes") or ""
    call_transcripts = record.get("call_transcripts") or ""
    if not call_transcripts and case_notes:
        case_notes, call_transcripts = split_notes(case_notes)

    worker_name = " ".join(
        part for part in (workers.get("given_name"), workers.get("family_name")) if part
    )

    time_of_injury = record.get("time_of_injury") or ""

    return IncidentDraft(
        incident_id=record.get("incident_id"),
        mend_client=_id_str(record.get("employer_id")),
        notifying_person_name=record.get("notifying_person_name") or "",
        notifying_person_position=record.get("notifying_person_position") or "",
        notifying_person_telephone=record.get("notifying_person_telephone") or "",
        worker_id=_id_str(record.get("worker_id")),
        worker_name=worker_name,
        worker_phone=workers.get("mobile_number") or workers.get("phone_number") or "",
        employer_name=record.get("workers_employer") or employers.get("employer_name") or "",
        location_site=_id_str(record.get("site_id")),
        supervisor_contact=sites.get("supervisor_name") or "",
        supervisor_phone=sites.get("supervisor_telephone") or "",
        employment_type=EMPLOYMENT_BASIS.get(workers.get("basis_of_employment"), "full_time"),
        date_of_injury=record.get("date_of_injury") or "",
        time_of_injury=time_of_injury[:5],          # HH:MM from HH:MM:SS
        injury_type=record.get("injury_type") or "",
        classification=record.get("classification") or "Unclassified",
        severity=record.get("severity"),
        body_part=_id_str(record.get("body_part_id")),
        body_side=normalize_body_side(record.get("body_side_id")),
        body_regions=list(record.get("body_regions") or []),
        injury_description=record.get("injury_description") or "",
        witness=record.get("witness") or "",
        mechanism_of_injury=_id_str(record.get("moi_code_id")),
        bodily_location_detail=_id_str(record.get("bl_code_id")),
        type_of_first_aid=record.get("treatment_provided") or "",
        referred_to=record.get("referral") or "none",
        doctor_details=record.get("doctor_details") or record.get("doctor_notes") or "",
        selected_medical_professional=_id_str(record.get("doctor_id")),
        actions_taken=split_actions(record.get("actions")),
        case_notes=case_notes,
        call_transcripts=call_transcripts,
    )


# workers.basis_of_employment -> form value
EMPLOYMENT_BASIS = {
    "Full Time": "full_time",
    "Part Time": "part_time",
    "Casual": "casual",
    "Contract": "contractor",
}


def draft_to_record(draft: IncidentDraft) -> Dict[str, Any]:
    """Project a draft onto incident columns"""
    return {
        "employer_id": _to_int(draft.mend_client),
        "notifying_person_name": draft.notifying_person_name,
        "notifying_person_position": draft.notifying_person_position,
        "notifying_person_telephone": draft.notifying_person_telephone,
        "worker_id": _to_int(draft.worker_id),
        "site_id": _to_int(draft.location_site),
        "date_of_injury": draft.date_of_injury or None,
        "time_of_injury": draft.time_of_injury or None,
        "injury_type": draft.injury_type,
        "classification": draft.classification,
        "severity": draft.severity,
        "body_part_id": _to_int(draft.body_part),
        "body_side_id": body_side_id(draft.body_side),
        "body_regions": list(draft.body_regions),
        "injury_description": draft.injury_description,
        "witness": draft.witness,
        "moi_code_id": _to_int(draft.mechanism_of_injury),
        "bl_code_id": _to_int(draft.bodily_location_detail),
        "treatment_provided": draft.type_of_first_aid,
        "referral": draft.referred_to if draft.referred_to != "none" else None,
        "doctor_details": draft.doctor_details,
        "doctor_id": _to_int(draft.selected_medical_professional),
        "actions": join_actions(draft.actions_taken),
        "case_notes": draft.case_notes,
        "call_transcripts": draft.call_transcripts,
    }


# =============================================================================
# AUDIT SNAPSHOT / CHANGE DETECTION
# =============================================================================

# Human-readable field labels for activity log display
FIELD_LABELS = {
    'notifying_person_name': 'Notifying Person Name',
    'notifying_person_position': 'Notifying Person Position',
    'notifying_person_telephone': 'Notifying Person Phone',
    'worker_id': 'Worker',
    'site_id': 'Site',
    'date_of_injury': 'Date of Injury',
    'time_of_injury': 'Time of Injury',
    'injury_type': 'Injury Type',
    'body_part_id': 'Body Part',
    'injury_description': 'Injury Description',
    'witness': 'Witness',
    'treatment_provided': 'Treatment Provided',
    'referral': 'Referral',
    'doctor_details': 'Doctor Details',
    'actions': 'Actions Taken',
    'case_notes': 'Case Notes',
    'call_transcripts': 'Call Transcripts',
}

# Columns compared at edit-submit, in display order
AUDIT_FIELDS = tuple(FIELD_LABELS)

# Single stand-in for None / "" / whitespace / [] so they compare equal
_EMPTY = object()


def field_label(field: str) -> str:
    return FIELD_LABELS.get(field, field)


def normalize_audit_value(value: Any) -> Any:
    if value is None:
        return _EMPTY
    if isinstance(value, str) and not value.strip():
        return _EMPTY
    if isinstance(value, (list, tuple, dict)) and not value:
        return _EMPTY
    return value


def _display_value(value: Any) -> Any:
    return "" if normalize_audit_value(value) is _EMPTY else value


def capture_snapshot(record_values: Mapping[str, Any]) -> Mapping[str, Any]:
    """Frozen copy of the audit-relevant columns, taken once at load"""
    return MappingProxyType({
        field: copy.deepcopy(record_values.get(field)) for field in AUDIT_FIELDS
    })


def compute_field_changes(snapshot: Mapping[str, Any], current: Mapping[str, Any]) -> List[FieldChange]:
    """Field-by-field deep comparison of the load snapshot against the submitted values"""
    changes = []
    for field in AUDIT_FIELDS:
        old_value = snapshot.get(field)
        new_value = current.get(field)
        if normalize_audit_value(old_value) == normalize_audit_value(new_value):
            continue
        changes.append(FieldChange(
            field=field,
            label=field_label(field),
            old_value=_display_value(old_value),
            new_value=_display_value(new_value),
        ))
    return changes


def build_update_payload(baseline: Mapping[str, Any], current: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Sparse update: only columns whose value differs from what was loaded.

    Returns {} when nothing changed, otherwise the changed columns plus
    updated_at. Omitted columns are left untouched server-side.
    """
    payload = {}
    for field, new_value in current.items():
        if normalize_audit_value(baseline.get(field)) != normalize_audit_value(new_value):
            payload[field] = new_value
    if payload:
        payload["updated_at"] = datetime.now(timezone.utc).isoformat()
    return payload


# =============================================================================
# ACTIVITY ENTRIES
# =============================================================================

def build_edit_activity(incident_id: int, changes: List[FieldChange],
                        actor: ActorContext) -> Optional[ActivityEntry]:
    """One "Incident Updated" entry for an edit-submit; None when nothing changed"""
    if not changes:
        return None

    return ActivityEntry(
        incident_id=incident_id,
        type=ActivityType.SYSTEM_EDIT,
        title="Incident Updated",
        description=", ".join(c.label for c in changes),
        metadata={"changes": [c.model_dump(mode="json") for c in changes]},
        created_by=actor.audit_name,
        created_by_user_id=actor.user_id,
        created_at=datetime.now(timezone.utc),
    )


def build_created_activity(incident_id: int, actor: ActorContext) -> ActivityEntry:
    """First entry in a new incident's log"""
    return ActivityEntry(
        incident_id=incident_id,
        type=ActivityType.SYSTEM_EDIT,
        title="Incident Created",
        description=f"Incident reported by {actor.audit_name}",
        created_by=actor.audit_name,
        created_by_user_id=actor.user_id,
        created_at=datetime.now(timezone.utc),
    )
