"""
Return-processing state machine.

A booking's return moves strictly forward through ReturnState, one state
per completed step:

    not_started -> initiated -> intake_done -> evidence_done
        -> issues_reviewed -> closeout_done -> deposit_processed

Nothing here raises or persists; callers surface `allowed=False` results
and own the audit trail for any bypass.
"""
from dataclasses import dataclass
from typing import List, Optional, Union

from rentalops.core.enums import BookingStatus, ReturnState, ReturnStepId
from rentalops.schemas.booking import StepProgress, WorkflowCheck

STATE_ORDER: List[ReturnState] = list(ReturnState)

BYPASS_REASON_MIN_LENGTH = 50

GATE_STATE = ReturnState.CLOSEOUT_DONE


@dataclass(frozen=True)
class ReturnStep:
    id: ReturnStepId
    number: int
    title: str
    description: str
    required_state: ReturnState      # reached => step complete
    prerequisite_state: ReturnState  # reached => step may start


RETURN_STEPS: List[ReturnStep] = [
    ReturnStep(
        id=ReturnStepId.INTAKE,
        number=1,
        title="Return Intake",
        description="Record return time, odometer, and fuel level",
        required_state=ReturnState.INTAKE_DONE,
        prerequisite_state=ReturnState.INITIATED,
    ),
    ReturnStep(
        id=ReturnStepId.EVIDENCE,
        number=2,
        title="Evidence Capture",
        description="Capture return condition photos",
        required_state=ReturnState.EVIDENCE_DONE,
        prerequisite_state=ReturnState.INTAKE_DONE,
    ),
    ReturnStep(
        id=ReturnStepId.ISSUES,
        number=3,
        title="Issues & Damages",
        description="Review flags, issues, and report any damages",
        required_state=ReturnState.ISSUES_REVIEWED,
        prerequisite_state=ReturnState.EVIDENCE_DONE,
    ),
    ReturnStep(
        id=ReturnStepId.CLOSEOUT,
        number=4,
        title="Closeout",
        description="Complete the return and update booking status",
        required_state=ReturnState.CLOSEOUT_DONE,
        prerequisite_state=ReturnState.ISSUES_REVIEWED,
    ),
    ReturnStep(
        id=ReturnStepId.DEPOSIT,
        number=5,
        title="Deposit Release",
        description="Release or withhold security deposit",
        required_state=ReturnState.DEPOSIT_PROCESSED,
        prerequisite_state=ReturnState.CLOSEOUT_DONE,
    ),
]

_STEPS_BY_ID = {step.id: step for step in RETURN_STEPS}


def _check_step_chain(steps: List[ReturnStep]) -> None:
    for prev, nxt in zip(steps, steps[1:]):
        if prev.required_state != nxt.prerequisite_state:
            raise RuntimeError(
                f"Return step '{nxt.id}' must start where '{prev.id}' finishes "
                f"({prev.required_state}), not at {nxt.prerequisite_state}"
            )


_check_step_chain(RETURN_STEPS)


def _as_state(value: Union[ReturnState, str, None]) -> Optional[ReturnState]:
    if value is None:
        return None
    try:
        return ReturnState(value)
    except ValueError:
        return None


def _as_step(step: Union[ReturnStep, ReturnStepId, str]) -> Optional[ReturnStep]:
    if isinstance(step, ReturnStep):
        return step
    try:
        return _STEPS_BY_ID.get(ReturnStepId(step))
    except ValueError:
        return None


def state_index(state: Union[ReturnState, str]) -> int:
    """Position in the workflow order, or -1 for an unknown state."""
    resolved = _as_state(state)
    return STATE_ORDER.index(resolved) if resolved is not None else -1


def is_state_at_least(current: Union[ReturnState, str], required: Union[ReturnState, str]) -> bool:
    current_idx, required_idx = state_index(current), state_index(required)
    if current_idx < 0 or required_idx < 0:
        return False
    return current_idx >= required_idx


def can_transition_to(current: Union[ReturnState, str], target: Union[ReturnState, str]) -> bool:
    current_idx, target_idx = state_index(current), state_index(target)
    if current_idx < 0 or target_idx < 0:
        return False
    return target_idx == current_idx + 1


def can_access_step(step: Union[ReturnStep, ReturnStepId, str], current: Union[ReturnState, str]) -> bool:
    resolved = _as_step(step)
    if resolved is None:
        return False
    return is_state_at_least(current, resolved.prerequisite_state)


def is_step_complete(step: Union[ReturnStep, ReturnStepId, str], current: Union[ReturnState, str]) -> bool:
    resolved = _as_step(step)
    if resolved is None:
        return False
    return is_state_at_least(current, resolved.required_state)


def get_current_step_from_state(state: Union[ReturnState, str]) -> ReturnStepId:
    for step in RETURN_STEPS:
        if not is_state_at_least(state, step.required_state):
            return step.id
    return RETURN_STEPS[-1].id


def get_next_state(step: Union[ReturnStep, ReturnStepId, str]) -> Optional[ReturnState]:
    """State a booking moves to when `step` is completed."""
    resolved = _as_step(step)
    return resolved.required_state if resolved else None


def validate_return_workflow(
    current_status: Union[BookingStatus, str],
    new_status: Union[BookingStatus, str],
    return_state: Union[ReturnState, str, None],
) -> WorkflowCheck:
    """
    Gate a booking status change on the return workflow. Only
    active -> completed is checked, and it needs closeout; deposit
    processing may still follow after the booking is completed.
    """
    if current_status == BookingStatus.ACTIVE and new_status == BookingStatus.COMPLETED:
        state = return_state or ReturnState.NOT_STARTED
        if not is_state_at_least(state, GATE_STATE):
            return WorkflowCheck(
                allowed=False,
                reason="Complete return workflow first (intake, evidence, issues, closeout)",
            )
    return WorkflowCheck(allowed=True)


def is_valid_bypass_reason(reason: Optional[str]) -> bool:
    return bool(reason) and len(reason.strip()) >= BYPASS_REASON_MIN_LENGTH


def return_progress(state: Union[ReturnState, str, None]) -> List[StepProgress]:
    state = state or ReturnState.NOT_STARTED
    current = get_current_step_from_state(state)
    return [
        StepProgress(
            id=step.id,
            number=step.number,
            title=step.title,
            description=step.description,
            accessible=can_access_step(step, state),
            complete=is_step_complete(step, state),
            current=step.id == current,
        )
        for step in RETURN_STEPS
    ]
