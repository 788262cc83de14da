"""Short-lived email verification codes.

Checking a code and consuming a verified record happen in separate requests,
so a verified record has to outlive the check while still going stale.
"""

import enum
import logging
import secrets
from datetime import timedelta
from typing import Callable

from sqlalchemy import delete
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from pathfinder.core import config
from pathfinder.core.clock import utcnow
from pathfinder.models.verification import VerificationRecord

logger = logging.getLogger(__name__)


class CheckOutcome(enum.Enum):
    VERIFIED = 'verified'
    INVALID = 'invalid'
    EXPIRED = 'expired'
    ATTEMPTS_EXHAUSTED = 'attempts_exhausted'


class ConsumeOutcome(enum.Enum):
    VERIFIED = 'verified'
    NOT_VERIFIED = 'not_verified'
    STALE = 'stale'


def generate_code() -> str:
    return f'{secrets.randbelow(1_000_000):06d}'


class VerificationLedger:
    def __init__(
        self,
        session_factory: sessionmaker,
        clock: Callable = utcnow,
        code_ttl: timedelta | None = None,
        freshness: timedelta | None = None,
        max_attempts: int | None = None,
        code_generator: Callable[[], str] = generate_code,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock
        self.code_ttl = code_ttl or timedelta(minutes=config.VERIFICATION_CODE_TTL_MINUTES)
        self.freshness = freshness or timedelta(minutes=config.VERIFICATION_FRESHNESS_MINUTES)
        self.max_attempts = max_attempts or config.VERIFICATION_MAX_ATTEMPTS
        self._generate_code = code_generator

    def issue(self, email: str) -> str:
        code = self._generate_code()
        values = {
            'code': code,
            'expires_at': self._clock() + self.code_ttl,
            'attempts': 0,
            'verified': False,
            'verified_at': None,
        }
        db = self._session_factory()
        try:
            self._upsert(db, email, values)
            db.commit()
        finally:
            db.close()
        logger.info('Issued verification code for %s', email)
        return code

    def _upsert(self, db: Session, email: str, values: dict) -> None:
        dialect = db.get_bind().dialect.name
        if dialect in ('postgresql', 'sqlite'):
            insert = postgresql.insert if dialect == 'postgresql' else sqlite.insert
            statement = insert(VerificationRecord).values(email=email, **values)
            statement = statement.on_conflict_do_update(index_elements=['email'], set_=values)
            db.execute(statement)
            return

        updated = (
            db.query(VerificationRecord)
            .filter(VerificationRecord.email == email)
            .update(values, synchronize_session=False)
        )
        if updated:
            return
        try:
            with db.begin_nested():
                db.add(VerificationRecord(email=email, **values))
        except IntegrityError:
            # Another request inserted first; last writer wins.
            db.query(VerificationRecord).filter(VerificationRecord.email == email).update(
                values, synchronize_session=False
            )

    def check(self, email: str, submitted_code: str) -> CheckOutcome:
        now = self._clock()
        db = self._session_factory()
        try:
            record = db.query(VerificationRecord).filter(VerificationRecord.email == email).first()
            if record is None:
                return CheckOutcome.INVALID

            if now > record.expires_at:
                db.execute(delete(VerificationRecord).where(VerificationRecord.email == email))
                db.commit()
                return CheckOutcome.EXPIRED

            if not secrets.compare_digest(record.code.encode(), submitted_code.encode()):
                db.query(VerificationRecord).filter(VerificationRecord.email == email).update(
                    {VerificationRecord.attempts: VerificationRecord.attempts + 1},
                    synchronize_session=False,
                )
                attempts = (
                    db.query(VerificationRecord.attempts)
                    .filter(VerificationRecord.email == email)
                    .scalar()
                )
                if attempts is not None and attempts >= self.max_attempts:
                    db.execute(delete(VerificationRecord).where(VerificationRecord.email == email))
                    db.commit()
                    logger.warning('Verification attempts exhausted for %s', email)
                    return CheckOutcome.ATTEMPTS_EXHAUSTED
                db.commit()
                logger.info('Invalid verification code for %s (attempt %s)', email, attempts)
                return CheckOutcome.INVALID

            # Every match restarts the freshness window.
            db.query(VerificationRecord).filter(VerificationRecord.email == email).update(
                {VerificationRecord.verified: True, VerificationRecord.verified_at: now},
                synchronize_session=False,
            )
            db.commit()
            logger.info('Email %s verified', email)
            return CheckOutcome.VERIFIED
        finally:
            db.close()

    def consume_if_fresh(self, email: str) -> ConsumeOutcome:
        now = self._clock()
        db = self._session_factory()
        try:
            consumed = db.execute(
                delete(VerificationRecord).where(
                    VerificationRecord.email == email,
                    VerificationRecord.verified.is_(True),
                    VerificationRecord.verified_at >= now - self.freshness,
                )
            ).rowcount
            db.commit()
            if consumed == 1:
                return ConsumeOutcome.VERIFIED

            record = db.query(VerificationRecord).filter(VerificationRecord.email == email).first()
            if record is not None and record.verified:
                return ConsumeOutcome.STALE
            return ConsumeOutcome.NOT_VERIFIED
        finally:
            db.close()

    def purge_expired(self) -> int:
        now = self._clock()
        db = self._session_factory()
        try:
            records = db.query(VerificationRecord).filter(VerificationRecord.expires_at < now).all()
            stale = [
                record.email
                for record in records
                if not record.verified or record.verified_at is None or record.verified_at < now - self.freshness
            ]
            if stale:
                db.execute(delete(VerificationRecord).where(VerificationRecord.email.in_(stale)))
                db.commit()
            return len(stale)
        finally:
            db.close()
