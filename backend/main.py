"""
Incident Workflow API - injury incident report/edit service
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from config import LOG_LEVEL
from database import init_db
from dependencies import close_backend
from routers import incidents_wizard, incidents_lifecycle, incidents_activity

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    init_db()
    logger.info("Incident workflow API starting up...")
    yield
    # Shutdown
    incidents_wizard.close_all_sessions()
    await close_backend()
    logger.info("Incident workflow API shutting down...")

app = FastAPI(
    title="Incident Workflow API",
    description="Injury incident reporting, editing, audit and lifecycle",
    version="1.0.0",
    lifespan=lifespan
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Tighten in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(incidents_wizard.router, prefix="/api/incident-wizard", tags=["Incident Wizard"])
app.include_router(incidents_lifecycle.router, prefix="/api/incidents", tags=["Incident Lifecycle"])
app.include_router(incidents_activity.router, prefix="/api/incidents", tags=["Incident Activity"])

@app.get("/")
async def root():
    return {"status": "ok", "service": "Incident Workflow API", "version": "1.0.0"}

@app.get("/health")
async def health():
    return {"status": "healthy"}
