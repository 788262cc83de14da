"""User model definitions."""

import uuid

from sqlalchemy import Column, DateTime, Integer, JSON, String

from pathfinder.core.clock import utcnow
from pathfinder.database import Base


def _new_user_id() -> str:
    return uuid.uuid4().hex


class User(Base):
    """Represents a registered student and their pathway progress."""
    __tablename__ = "users"

    id = Column(String(32), primary_key=True, default=_new_user_id)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    student_id = Column(String, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    last_login_at = Column(DateTime, nullable=True)
    refresh_token = Column(String, nullable=True)
    completed_phases = Column(JSON, default=list, nullable=False)
    unlocked_phases = Column(JSON, default=lambda: [1], nullable=False)
    progress_version = Column(Integer, default=0, nullable=False)
    current_phase = Column(Integer, default=1, nullable=False)
    assessment_level = Column(String, nullable=True)
