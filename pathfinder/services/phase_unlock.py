"""Phase progression: completion and staff-issued unlock codes.

A phase becomes completed once the content layer reports its required tasks
done. The next phase is unlocked only when a staff member hands the student
the code for the completed phase; every submission is written to the audit
trail.
"""

import enum
import logging
from dataclasses import dataclass, replace
from typing import Callable

from sqlalchemy.orm import sessionmaker

from pathfinder.core import config
from pathfinder.core.clock import utcnow
from pathfinder.core.errors import (
    InvalidUnlockCode,
    PhaseLocked,
    PhaseNotCompleted,
    PhaseRequirementsNotMet,
    ProgressConflict,
    ValidationError,
)
from pathfinder.models.unlock_event import UnlockEvent
from pathfinder.services.credential_store import CredentialStore, Progress
from pathfinder.services.phases import FINAL_PHASE, PHASES

logger = logging.getLogger(__name__)


class UnlockOutcome(str, enum.Enum):
    UNLOCKED = 'unlocked'
    ALREADY_UNLOCKED = 'already_unlocked'
    PATHWAY_COMPLETE = 'pathway_complete'


@dataclass(frozen=True)
class UnlockResult:
    outcome: UnlockOutcome
    progress: Progress


def expected_code(phase_id: int, prefix: str | None = None) -> str:
    return f'{prefix or config.UNLOCK_CODE_PREFIX}-{phase_id}'


def is_valid_code(phase_id: int, code: str | None) -> bool:
    return (code or '').strip().upper() == expected_code(phase_id)


class PhaseUnlockMachine:
    def __init__(self, store: CredentialStore, session_factory: sessionmaker, clock: Callable = utcnow) -> None:
        self.store = store
        self._session_factory = session_factory
        self._clock = clock

    @staticmethod
    def _check_phase(phase_id: int) -> None:
        if phase_id not in PHASES:
            raise ValidationError('Phase must be between 1 and 5.')

    def get_progress(self, user_id: str) -> Progress:
        return self.store.get_progress(user_id)

    def _write(self, user_id: str, current: Progress, updated: Progress, reached: Callable[[Progress], bool]) -> Progress:
        if self.store.update_progress(user_id, updated, expected_version=current.version):
            return replace(updated, version=current.version + 1)

        # Lost a race. A concurrent duplicate that already reached the same
        # state counts as success; anything else fails closed.
        latest = self.store.get_progress(user_id)
        if reached(latest):
            return latest
        logger.warning('Progress update for user %s lost a concurrent write', user_id)
        raise ProgressConflict()

    def complete_phase(self, user_id: str, phase_id: int, required_tasks_satisfied: bool) -> Progress:
        self._check_phase(phase_id)
        progress = self.store.get_progress(user_id)
        if phase_id not in progress.unlocked:
            raise PhaseLocked()
        if phase_id in progress.completed:
            return progress
        if not required_tasks_satisfied:
            raise PhaseRequirementsNotMet()

        updated = replace(progress, completed=progress.completed | {phase_id})
        result = self._write(user_id, progress, updated, lambda latest: phase_id in latest.completed)
        logger.info('User %s completed phase %s', user_id, phase_id)
        return result

    def submit_unlock_code(self, user_id: str, phase_id: int, code: str, issued_by: str | None = None) -> UnlockResult:
        self._check_phase(phase_id)
        progress = self.store.get_progress(user_id)

        if not is_valid_code(phase_id, code):
            self._audit(user_id, phase_id, code, accepted=False, issued_by=issued_by)
            logger.warning('Invalid unlock code for phase %s submitted by user %s', phase_id, user_id)
            raise InvalidUnlockCode()

        next_phase = phase_id + 1
        if next_phase in progress.unlocked:
            return UnlockResult(UnlockOutcome.ALREADY_UNLOCKED, progress)
        if phase_id not in progress.unlocked:
            raise PhaseLocked()
        if phase_id not in progress.completed:
            raise PhaseNotCompleted()

        if phase_id == FINAL_PHASE:
            self._audit(user_id, phase_id, code, accepted=True, issued_by=issued_by)
            return UnlockResult(UnlockOutcome.PATHWAY_COMPLETE, progress)

        updated = replace(progress, unlocked=progress.unlocked | {next_phase})
        result = self._write(user_id, progress, updated, lambda latest: next_phase in latest.unlocked)
        self._audit(user_id, phase_id, code, accepted=True, issued_by=issued_by)
        logger.info(
            'User %s unlocked phase %s with code accepted at %s (issued by %s)',
            user_id,
            next_phase,
            self._clock().isoformat(),
            issued_by or 'unknown',
        )
        return UnlockResult(UnlockOutcome.UNLOCKED, result)

    def set_current_phase(self, user_id: str, phase_id: int) -> None:
        self._check_phase(phase_id)
        if phase_id not in self.store.get_progress(user_id).unlocked:
            raise PhaseLocked()
        self.store.set_current_phase(user_id, phase_id)

    def set_assessment_level(self, user_id: str, level: str) -> None:
        self.store.set_assessment_level(user_id, level)

    def _audit(self, user_id: str, phase_id: int, code: str, accepted: bool, issued_by: str | None) -> None:
        db = self._session_factory()
        try:
            db.add(
                UnlockEvent(
                    user_id=user_id,
                    phase_id=phase_id,
                    submitted_code=(code or '').strip()[:64],
                    accepted=accepted,
                    issued_by=issued_by,
                    created_at=self._clock(),
                )
            )
            db.commit()
        finally:
            db.close()
