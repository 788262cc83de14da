"""Unlock code audit trail."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String

from pathfinder.core.clock import utcnow
from pathfinder.database import Base


class UnlockEvent(Base):
    """Records every unlock code submission, accepted or not."""
    __tablename__ = "unlock_events"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(32), ForeignKey("users.id"), nullable=False, index=True)
    phase_id = Column(Integer, nullable=False)
    submitted_code = Column(String, nullable=False)
    accepted = Column(Boolean, nullable=False)
    issued_by = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
