"""
Configuration for the incident workflow service
Loaded from environment variables at import time.
"""

import os

# Hosted relational backend (remote procedures)
INCIDENT_BACKEND_URL = os.getenv("INCIDENT_BACKEND_URL", "http://localhost:54321/rest/v1")
INCIDENT_BACKEND_API_KEY = os.getenv("INCIDENT_BACKEND_API_KEY", "")
INCIDENT_BACKEND_TIMEOUT = float(os.getenv("INCIDENT_BACKEND_TIMEOUT", "15"))

# Local draft slot storage
INCIDENT_DRAFT_DATABASE_URL = os.getenv(
    "INCIDENT_DRAFT_DATABASE_URL",
    "sqlite:///incident_drafts.db"
)

# Autosave
INCIDENT_AUTOSAVE_INTERVAL = float(os.getenv("INCIDENT_AUTOSAVE_INTERVAL", "30"))
INCIDENT_SERVER_DRAFTS = os.getenv("INCIDENT_SERVER_DRAFTS", "true").lower() in ("1", "true", "yes")

# Wizard sessions idle longer than this are closed (draft slot kept)
INCIDENT_WIZARD_SESSION_TTL = float(os.getenv("INCIDENT_WIZARD_SESSION_TTL", "900"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
