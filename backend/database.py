"""
Database connection for local incident draft slots
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from config import INCIDENT_DRAFT_DATABASE_URL

Base = declarative_base()


def make_engine(url: str):
    """Build an engine; SQLite gets a thread-agnostic connection, servers get a pool."""
    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
        )
    return create_engine(
        url,
        pool_size=5,            # Base connections to keep open
        max_overflow=10,
        pool_recycle=1800,      # Recycle connections after 30 min (prevents stale)
        pool_pre_ping=True,     # Test connections before using (handles dropped connections)
    )


engine = make_engine(INCIDENT_DRAFT_DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind=None):
    """Create draft tables if missing"""
    import models  # noqa: F401  (registers tables on Base.metadata)
    Base.metadata.create_all(bind=bind or engine)

