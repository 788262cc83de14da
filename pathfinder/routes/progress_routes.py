from fastapi import APIRouter, Depends

from pathfinder.auth.dependencies import get_current_user, get_phase_machine
from pathfinder.core.errors import ValidationError
from pathfinder.models.user import User
from pathfinder.schemas import (
    AssessmentRequest,
    CompletePhaseRequest,
    CurrentPhaseRequest,
    UnlockCodeRequest,
)
from pathfinder.services.phase_unlock import PhaseUnlockMachine, UnlockOutcome
from pathfinder.services.phases import PHASES, get_phase

router = APIRouter(tags=['progress'])

UNLOCK_MESSAGES = {
    UnlockOutcome.UNLOCKED: 'Unlocked! You can now access Phase {next_phase}.',
    UnlockOutcome.ALREADY_UNLOCKED: 'Phase {next_phase} is already unlocked.',
    UnlockOutcome.PATHWAY_COMPLETE: 'Congratulations, you have completed the pathway.',
}


@router.get('')
def read_progress(
    current_user: User = Depends(get_current_user),
    machine: PhaseUnlockMachine = Depends(get_phase_machine),
):
    return machine.get_progress(current_user.id).as_dict()


@router.get('/phases')
def list_phases(current_user: User = Depends(get_current_user)):
    return [phase.summary() for phase in PHASES.values()]


@router.post('/phases/{phase_id}/complete')
def complete_phase(
    phase_id: int,
    payload: CompletePhaseRequest,
    current_user: User = Depends(get_current_user),
    machine: PhaseUnlockMachine = Depends(get_phase_machine),
):
    phase = get_phase(phase_id)
    if phase is None:
        raise ValidationError('Phase must be between 1 and 5.')

    satisfied = phase.required_tasks_satisfied(payload.completed_task_ids)
    progress = machine.complete_phase(current_user.id, phase_id, satisfied)
    return {
        'status': 'phase_completed',
        'message': 'Great job! Stage completed. Visit the EIC to get your code.',
        'xpEarned': phase.earned_xp(payload.completed_task_ids),
        'progress': progress.as_dict(),
    }


@router.post('/phases/{phase_id}/unlock')
def submit_unlock_code(
    phase_id: int,
    payload: UnlockCodeRequest,
    current_user: User = Depends(get_current_user),
    machine: PhaseUnlockMachine = Depends(get_phase_machine),
):
    result = machine.submit_unlock_code(current_user.id, phase_id, payload.code, issued_by=payload.issued_by)
    return {
        'status': result.outcome.value,
        'message': UNLOCK_MESSAGES[result.outcome].format(next_phase=phase_id + 1),
        'progress': result.progress.as_dict(),
    }


@router.put('/current-phase')
def update_current_phase(
    payload: CurrentPhaseRequest,
    current_user: User = Depends(get_current_user),
    machine: PhaseUnlockMachine = Depends(get_phase_machine),
):
    machine.set_current_phase(current_user.id, payload.current_phase)
    return {'status': 'current_phase_updated', 'message': 'Current phase updated successfully.'}


@router.put('/assessment')
def update_assessment(
    payload: AssessmentRequest,
    current_user: User = Depends(get_current_user),
    machine: PhaseUnlockMachine = Depends(get_phase_machine),
):
    machine.set_assessment_level(current_user.id, payload.assessment_level)
    return {'status': 'assessment_updated', 'message': 'Assessment level updated successfully.'}
