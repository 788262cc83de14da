"""Verification record model definitions."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from pathfinder.database import Base


class VerificationRecord(Base):
    """One live email verification code per address."""
    __tablename__ = "verification_records"

    email = Column(String, primary_key=True)
    code = Column(String(6), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    attempts = Column(Integer, default=0, nullable=False)
    verified = Column(Boolean, default=False, nullable=False)
    verified_at = Column(DateTime, nullable=True)
