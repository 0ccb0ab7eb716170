"""
Incident report validation - per-tab rule set

Each wizard tab has a pydantic rule model holding the format constraints
that apply whenever a value is present. Required fields are listed
separately per flow: a new report needs the minimum to create a record,
an edit allows saving whatever partial data exists (incidents created via
phone calls often arrive incomplete).
"""

import re
import logging
from datetime import date, datetime
from typing import Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from schemas_incidents import IncidentDraft

logger = logging.getLogger(__name__)


# =============================================================================
# TABS
# =============================================================================

TAB_NOTIFICATION = "notification"
TAB_WORKER = "worker"
TAB_EMPLOYMENT = "employment"
TAB_INJURY = "injury"
TAB_TREATMENT = "treatment"
TAB_ACTIONS = "actions"
TAB_NOTES = "notes"
TAB_COST = "cost"
TAB_DOCUMENTS = "documents"

TAB_TITLES = {
    TAB_NOTIFICATION: "Notification",
    TAB_WORKER: "Worker Details",
    TAB_EMPLOYMENT: "Employment",
    TAB_INJURY: "Injury Details",
    TAB_TREATMENT: "Treatment",
    TAB_ACTIONS: "Actions Taken",
    TAB_NOTES: "Case Notes",
    TAB_COST: "Cost Estimate",
    TAB_DOCUMENTS: "Documents",
}

CREATE_TAB_ORDER = (
    TAB_NOTIFICATION, TAB_WORKER, TAB_EMPLOYMENT, TAB_INJURY,
    TAB_TREATMENT, TAB_ACTIONS, TAB_NOTES, TAB_DOCUMENTS,
)

# Edit adds the cost estimate before documents; documents is always last
EDIT_TAB_ORDER = (
    TAB_NOTIFICATION, TAB_WORKER, TAB_EMPLOYMENT, TAB_INJURY,
    TAB_TREATMENT, TAB_ACTIONS, TAB_NOTES, TAB_COST, TAB_DOCUMENTS,
)


def tab_order(is_new: bool) -> tuple:
    return CREATE_TAB_ORDER if is_new else EDIT_TAB_ORDER


# =============================================================================
# FIELD RULES
# =============================================================================

TIME_RE = re.compile(r'^([01]\d|2[0-3]):([0-5]\d)$')
URL_RE = re.compile(r'^https?://\S+$')

GENDERS = ('Male', 'Female', 'Other')
EMPLOYMENT_TYPES = ('full_time', 'part_time', 'casual', 'contractor')
CLASSIFICATIONS = ('LTI', 'MTI', 'FAI', 'Unclassified')
SEVERITIES = ('minor', 'moderate', 'serious', 'critical')
BODY_SIDES = ('left', 'right', 'both', 'not_applicable')
REFERRALS = ('none', 'hospital', 'gp', 'specialist', 'physio')

MAX_DESCRIPTION = 500


def _check_past_date(value: str, message: str) -> str:
    try:
        parsed = date.fromisoformat(value)
    except ValueError:
        raise ValueError("Invalid date (YYYY-MM-DD)")
    if parsed > date.today():
        raise ValueError(message)
    return value


def _check_choice(value: Optional[str], choices: tuple, message: str) -> Optional[str]:
    if value and value not in choices:
        raise ValueError(message)
    return value


class _TabRules(BaseModel):
    model_config = ConfigDict(extra="ignore")


class NotificationRules(_TabRules):
    mend_client: str = ""
    notifying_person_name: str = ""
    notifying_person_position: str = ""
    notifying_person_telephone: str = ""


class WorkerRules(_TabRules):
    worker_id: str = ""
    worker_dob: str = ""
    worker_gender: Optional[str] = None

    @field_validator("worker_id")
    @classmethod
    def worker_id_numeric(cls, v):
        if v and not v.strip().isdigit():
            raise ValueError("Invalid worker ID")
        return v

    @field_validator("worker_dob")
    @classmethod
    def dob_in_past(cls, v):
        return _check_past_date(v, "Date of birth cannot be in the future") if v else v

    @field_validator("worker_gender")
    @classmethod
    def gender_choice(cls, v):
        return _check_choice(v, GENDERS, "Please select a gender")


class EmploymentRules(_TabRules):
    location_site: str = ""
    employment_type: Optional[str] = None

    @field_validator("location_site")
    @classmethod
    def site_id_numeric(cls, v):
        if v and not v.strip().isdigit():
            raise ValueError("Invalid site ID")
        return v

    @field_validator("employment_type")
    @classmethod
    def employment_choice(cls, v):
        return _check_choice(v, EMPLOYMENT_TYPES, "Please select employment type")


class InjuryRules(_TabRules):
    date_of_injury: str = ""
    time_of_injury: str = ""
    classification: Optional[str] = None
    severity: Optional[str] = None
    body_side: Optional[str] = None
    injury_description: str = ""

    @field_validator("date_of_injury")
    @classmethod
    def injury_date_in_past(cls, v):
        return _check_past_date(v, "Date cannot be in the future") if v else v

    @field_validator("time_of_injury")
    @classmethod
    def time_format(cls, v):
        if v and not TIME_RE.match(v):
            raise ValueError("Invalid time format (HH:MM)")
        return v

    @field_validator("classification")
    @classmethod
    def classification_choice(cls, v):
        return _check_choice(v, CLASSIFICATIONS, "Please select a classification")

    @field_validator("severity")
    @classmethod
    def severity_choice(cls, v):
        return _check_choice(v, SEVERITIES, "Please select injury severity")

    @field_validator("body_side")
    @classmethod
    def body_side_choice(cls, v):
        return _check_choice(v, BODY_SIDES, "Please select a body side")

    @field_validator("injury_description")
    @classmethod
    def description_length(cls, v):
        if v and len(v) > MAX_DESCRIPTION:
            raise ValueError(f"Description must be less than {MAX_DESCRIPTION} characters")
        return v


class TreatmentRules(_TabRules):
    referred_to: Optional[str] = None
    selected_medical_professional: str = ""

    @field_validator("referred_to")
    @classmethod
    def referral_choice(cls, v):
        return _check_choice(v, REFERRALS, "Please select a referral")

    @field_validator("selected_medical_professional")
    @classmethod
    def doctor_id_numeric(cls, v):
        if v and not v.strip().isdigit():
            raise ValueError("Invalid medical professional")
        return v


class ActionsRules(_TabRules):
    actions_taken: List[str] = []

    @field_validator("actions_taken")
    @classmethod
    def no_blank_actions(cls, v):
        if any(not a or not a.strip() for a in v):
            raise ValueError("Actions cannot be blank")
        return v


class NotesRules(_TabRules):
    case_notes: str = ""
    call_transcripts: str = ""


class DocumentRules(_TabRules):
    documents: List[dict] = []

    @field_validator("documents")
    @classmethod
    def document_urls(cls, v):
        for doc in v:
            if not URL_RE.match(str(doc.get("url", ""))):
                raise ValueError("Invalid document URL")
        return v


TAB_RULES: Dict[str, Optional[Type[_TabRules]]] = {
    TAB_NOTIFICATION: NotificationRules,
    TAB_WORKER: WorkerRules,
    TAB_EMPLOYMENT: EmploymentRules,
    TAB_INJURY: InjuryRules,
    TAB_TREATMENT: TreatmentRules,
    TAB_ACTIONS: ActionsRules,
    TAB_NOTES: NotesRules,
    TAB_COST: None,                 # Read-only estimate, nothing to validate
    TAB_DOCUMENTS: DocumentRules,
}

# Required on a new report: field -> message, grouped by tab
REQUIRED_ON_CREATE = {
    TAB_NOTIFICATION: {
        "mend_client": "Client is required",
        "notifying_person_name": "Notifying person name is required",
    },
    TAB_INJURY: {
        "date_of_injury": "Date of injury is required",
        "injury_type": "Injury type is required",
    },
}

REQUIRED_ON_EDIT: Dict[str, Dict[str, str]] = {}


# =============================================================================
# VALIDATION
# =============================================================================

class ValidationOutcome(BaseModel):
    """Pass/fail plus field-level messages in tab field order"""
    valid: bool
    errors: Dict[str, str] = {}
    error_tabs: List[str] = []

    @property
    def first_error(self) -> Optional[str]:
        for message in self.errors.values():
            return message
        return None


def _error_message(err: dict) -> str:
    # Custom validators raise ValueError; surface their text without pydantic's prefix
    if err.get("type") == "value_error" and "ctx" in err and "error" in err["ctx"]:
        return str(err["ctx"]["error"])
    return err.get("msg", "Invalid value")


def validate_tab(draft: IncidentDraft, tab: str) -> Dict[str, str]:
    """Field errors for one tab (empty dict when valid)"""
    if tab not in TAB_RULES:
        raise ValueError(f"Unknown tab: {tab}")

    errors: Dict[str, str] = {}
    data = draft.model_dump(mode="json")

    required = (REQUIRED_ON_CREATE if draft.is_new else REQUIRED_ON_EDIT).get(tab, {})
    for field, message in required.items():
        value = data.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            errors[field] = message

    rules = TAB_RULES[tab]
    if rules is not None:
        try:
            rules.model_validate(data)
        except ValidationError as e:
            for err in e.errors():
                field = str(err["loc"][0]) if err.get("loc") else tab
                errors.setdefault(field, _error_message(err))

    return errors


def validate_draft(draft: IncidentDraft) -> ValidationOutcome:
    """Full-document validation across every tab of the draft's flow"""
    errors: Dict[str, str] = {}
    error_tabs: List[str] = []
    for tab in tab_order(draft.is_new):
        tab_errors = validate_tab(draft, tab)
        if tab_errors:
            error_tabs.append(tab)
            for field, message in tab_errors.items():
                errors.setdefault(field, message)

    if errors:
        logger.debug(f"Draft validation failed on tabs {error_tabs}: {list(errors)}")
    return ValidationOutcome(valid=not errors, errors=errors, error_tabs=error_tabs)
