"""
Incident Pydantic Schemas - report/edit workflow

Draft, audit and lifecycle value types shared by the wizard, the autosave
engine, the audit helpers and the HTTP routes.
"""

from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict, Any
from datetime import datetime


# =============================================================================
# ACTOR / IDENTITY
# =============================================================================

class ActorContext(BaseModel):
    """
    Current actor as supplied by the identity provider.

    Role and employer scope are opaque - forwarded verbatim into backend
    calls, never interpreted here.
    """
    model_config = ConfigDict(frozen=True)

    user_id: Optional[str] = None
    display_name: Optional[str] = None
    custom_display_name: Optional[str] = None
    email: Optional[str] = None
    role_id: Optional[int] = None
    employer_scope: Optional[int] = None

    @property
    def audit_name(self) -> str:
        """Name recorded against activity entries and lifecycle calls"""
        return self.custom_display_name or self.display_name or self.email or "Unknown User"


# =============================================================================
# DRAFT
# =============================================================================

class DocumentRef(BaseModel):
    """Uploaded document attached to an incident"""
    url: str
    name: str = ""
    type: str = ""
    size: int = 0


class IncidentDraft(BaseModel):
    """
    Working copy of one incident held by the wizard.

    incident_id is None while creating; set when editing a persisted incident.
    Values are kept as the form holds them (ids as strings); see
    incident_helpers.draft_to_record for the backend column projection.
    """
    model_config = ConfigDict(extra="ignore")

    incident_id: Optional[int] = None

    # Notification
    mend_client: str = ""                     # employer_id
    notifying_person_name: str = ""
    notifying_person_position: str = ""
    notifying_person_telephone: str = ""

    # Worker
    worker_id: str = ""
    worker_name: str = ""
    worker_address: str = ""
    worker_phone: str = ""
    worker_dob: str = ""
    worker_gender: Optional[str] = None       # Male, Female, Other

    # Employment
    employer_name: str = ""
    location_site: str = ""                   # site_id
    supervisor_contact: str = ""
    supervisor_phone: str = ""
    employment_type: str = "full_time"        # full_time, part_time, casual, contractor

    # Injury
    date_of_injury: str = ""                  # YYYY-MM-DD
    time_of_injury: str = ""                  # HH:MM
    injury_type: str = ""
    classification: str = "Unclassified"      # LTI, MTI, FAI, Unclassified
    severity: Optional[str] = None            # minor, moderate, serious, critical
    body_part: str = ""                       # body_part_id or name
    body_side: str = "not_applicable"         # left, right, both, not_applicable
    body_regions: List[str] = Field(default_factory=list)
    injury_description: str = ""
    witness: str = ""
    mechanism_of_injury: str = ""             # moi_code_id
    bodily_location_detail: str = ""          # bl_code_id

    # Treatment
    type_of_first_aid: str = ""
    referred_to: str = "none"                 # none, hospital, gp, specialist, physio
    doctor_details: str = ""
    selected_medical_professional: str = ""   # doctor_id

    # Actions
    actions_taken: List[str] = Field(default_factory=list)

    # Notes
    case_notes: str = ""
    call_transcripts: str = ""

    # Documents
    documents: List[DocumentRef] = Field(default_factory=list)

    @property
    def is_new(self) -> bool:
        return self.incident_id is None

    def form_data(self) -> Dict[str, Any]:
        """JSON-safe field mapping (excludes identity)"""
        return self.model_dump(mode="json", exclude={"incident_id"})


DRAFT_FIELDS = tuple(name for name in IncidentDraft.model_fields if name != "incident_id")


class DraftSlot(BaseModel):
    """Persisted autosave snapshot for one draft key"""
    draft_key: str
    form_data: Dict[str, Any]
    current_tab: Optional[str] = None
    last_saved: datetime
    draft_id: Optional[int] = None
    sequence: int = 0


# =============================================================================
# AUDIT / ACTIVITY
# =============================================================================

class ActivityType(str, Enum):
    """Activity entry types (values match the incident_activities table)"""
    CALL = "call"
    APPOINTMENT = "appointment"
    NOTE = "note"
    VOICE_AGENT = "voice_agent"
    SYSTEM_EDIT = "edit"


class FieldChange(BaseModel):
    """One audited field's before/after values"""
    model_config = ConfigDict(frozen=True)

    field: str
    label: str
    old_value: Any = ""
    new_value: Any = ""


class ActivityEntry(BaseModel):
    """Append-only audit record attached to one incident"""
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    incident_id: int
    type: ActivityType
    title: str
    description: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    created_by: str
    created_by_user_id: Optional[str] = None
    created_at: datetime


class ActivityCreate(BaseModel):
    """Operator "add activity" request"""
    type: ActivityType
    title: str = Field(min_length=1)
    description: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


# =============================================================================
# LIFECYCLE
# =============================================================================

class IncidentLifecycleState(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"
    DELETED = "deleted"


class LifecycleResult(BaseModel):
    """Outcome of a lifecycle request"""
    incident_id: int
    action: str                               # archive, restore, delete
    dispatched: bool                          # False when confirmation was declined
    success: bool = False
    state: Optional[IncidentLifecycleState] = None
    error: Optional[str] = None


# =============================================================================
# WIZARD RESULTS
# =============================================================================

class UpdateResult(BaseModel):
    """Backend response to update_incident"""
    success: bool
    error: Optional[str] = None


class NavigationResult(BaseModel):
    moved: bool
    current_tab: str
    error: Optional[str] = None               # First failing field's message
    field_errors: Dict[str, str] = Field(default_factory=dict)


class SubmitResult(BaseModel):
    success: bool
    incident_id: Optional[int] = None
    error: Optional[str] = None
    detail: Optional[str] = None
    current_tab: Optional[str] = None
    field_errors: Dict[str, str] = Field(default_factory=dict)
    changes: List[FieldChange] = Field(default_factory=list)
    activity_logged: bool = False
    documents_saved: bool = False
