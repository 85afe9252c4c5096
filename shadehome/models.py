# ShadeHome - models.py | see version.py for version info
"""
ShadeHome - Database Models
Persistent settings store. Devices, schedules and rules are supplied by
the surrounding system and are not persisted here.
"""

import os
from datetime import datetime, timezone

from sqlalchemy import create_engine, Column, Integer, String, Text, DateTime
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _utcnow():
    return datetime.now(timezone.utc)


# ==============================================================================
# System Settings
# ==============================================================================

class SystemSetting(Base):
    __tablename__ = "system_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String(100), nullable=False, unique=True)
    value = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)


# ==============================================================================
# Database Initialization
# ==============================================================================

def get_engine(db_path=None):
    """Create database engine."""
    if db_path is None:
        db_path = os.environ.get("SHADEHOME_DB_PATH", "/data/shadehome/shadehome.db")
    return create_engine(f"sqlite:///{db_path}", echo=False)


def init_database(engine=None):
    """Initialize all database tables."""
    if engine is None:
        engine = get_engine()
    Base.metadata.create_all(engine)
    return engine
