"""Persistence of user records.

Every mutation is a single conditional statement so concurrent requests for
the same user resolve at the database rather than in process memory.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from pathfinder.core.clock import utcnow
from pathfinder.core.errors import DuplicateEmail, UserNotFound, ValidationError
from pathfinder.models.user import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Progress:
    completed: frozenset = field(default_factory=frozenset)
    unlocked: frozenset = field(default_factory=lambda: frozenset({1}))
    version: int = 0

    @classmethod
    def from_user(cls, user: User) -> 'Progress':
        return cls(
            completed=frozenset(user.completed_phases or []),
            unlocked=frozenset(user.unlocked_phases or [1]),
            version=user.progress_version or 0,
        )

    def is_consistent(self) -> bool:
        if not self.unlocked:
            return False
        if self.unlocked != frozenset(range(1, max(self.unlocked) + 1)):
            return False
        return self.completed <= self.unlocked

    def as_dict(self) -> dict:
        return {'completed': sorted(self.completed), 'unlocked': sorted(self.unlocked)}


@dataclass(frozen=True)
class NewUserProfile:
    email: str
    first_name: str
    last_name: str
    student_id: str


def sanitize(user: User) -> dict:
    """Outward view of a user; never includes the password hash or refresh token."""
    return {
        'id': user.id,
        'email': user.email,
        'first_name': user.first_name,
        'last_name': user.last_name,
        'student_id': user.student_id,
        'created_at': user.created_at,
        'last_login_at': user.last_login_at,
        'current_phase': user.current_phase,
        'assessment_level': user.assessment_level,
        'progress': Progress.from_user(user).as_dict(),
    }


class CredentialStore:
    def __init__(self, session_factory: sessionmaker, clock: Callable = utcnow) -> None:
        self._session_factory = session_factory
        self._clock = clock

    def _session(self) -> Session:
        return self._session_factory()

    def create_user(self, profile: NewUserProfile, hashed_password: str) -> User:
        db = self._session()
        try:
            user = User(
                email=profile.email,
                hashed_password=hashed_password,
                first_name=profile.first_name,
                last_name=profile.last_name,
                student_id=profile.student_id,
                created_at=self._clock(),
                completed_phases=[],
                unlocked_phases=[1],
                progress_version=0,
                current_phase=1,
            )
            db.add(user)
            try:
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                raise DuplicateEmail() from exc
            db.refresh(user)
            logger.info('Created user %s', user.id)
            return user
        finally:
            db.close()

    def find_by_email(self, email: str) -> User | None:
        db = self._session()
        try:
            return db.query(User).filter(User.email == email).first()
        finally:
            db.close()

    def find_by_id(self, user_id: str) -> User | None:
        db = self._session()
        try:
            return db.query(User).filter(User.id == user_id).first()
        finally:
            db.close()

    def set_refresh_token(self, user_id: str, token: str | None) -> None:
        db = self._session()
        try:
            updated = (
                db.query(User)
                .filter(User.id == user_id)
                .update({User.refresh_token: token}, synchronize_session=False)
            )
            db.commit()
        finally:
            db.close()
        if updated == 0:
            raise UserNotFound()

    def record_login(self, user_id: str, refresh_token: str) -> None:
        db = self._session()
        try:
            updated = (
                db.query(User)
                .filter(User.id == user_id)
                .update(
                    {User.refresh_token: refresh_token, User.last_login_at: self._clock()},
                    synchronize_session=False,
                )
            )
            db.commit()
        finally:
            db.close()
        if updated == 0:
            raise UserNotFound()

    def compare_and_set_refresh_token(self, user_id: str, expected: str, new: str) -> bool:
        db = self._session()
        try:
            updated = (
                db.query(User)
                .filter(User.id == user_id, User.refresh_token == expected)
                .update({User.refresh_token: new}, synchronize_session=False)
            )
            db.commit()
            return updated == 1
        finally:
            db.close()

    def get_progress(self, user_id: str) -> Progress:
        user = self.find_by_id(user_id)
        if user is None:
            raise UserNotFound()
        return Progress.from_user(user)

    def update_progress(self, user_id: str, progress: Progress, expected_version: int) -> bool:
        """Write ``progress`` only if nobody else changed it since ``expected_version`` was read."""
        if not progress.is_consistent():
            raise ValidationError('Unlocked phases must be contiguous from 1 and include every completed phase.')
        db = self._session()
        try:
            updated = (
                db.query(User)
                .filter(User.id == user_id, User.progress_version == expected_version)
                .update(
                    {
                        User.completed_phases: sorted(progress.completed),
                        User.unlocked_phases: sorted(progress.unlocked),
                        User.progress_version: expected_version + 1,
                    },
                    synchronize_session=False,
                )
            )
            db.commit()
            if updated == 1:
                return True
            exists = db.query(User.id).filter(User.id == user_id).first()
        finally:
            db.close()
        if exists is None:
            raise UserNotFound()
        return False

    def set_current_phase(self, user_id: str, phase_id: int) -> None:
        self._update_fields(user_id, {User.current_phase: phase_id})

    def set_assessment_level(self, user_id: str, level: str) -> None:
        self._update_fields(user_id, {User.assessment_level: level})

    def _update_fields(self, user_id: str, values: dict) -> None:
        db = self._session()
        try:
            updated = db.query(User).filter(User.id == user_id).update(values, synchronize_session=False)
            db.commit()
        finally:
            db.close()
        if updated == 0:
            raise UserNotFound()
