import pytest

from rentalops.core.enums import BookingStatus, ReturnState, ReturnStepId
from rentalops.services.return_workflow import (
    RETURN_STEPS,
    STATE_ORDER,
    _check_step_chain,
    can_access_step,
    can_transition_to,
    get_current_step_from_state,
    get_next_state,
    is_state_at_least,
    is_step_complete,
    is_valid_bypass_reason,
    return_progress,
    state_index,
    validate_return_workflow,
)

REASON = "Customer dropped keys in after-hours box; inspection done next morning by staff."


class TestStateOrder:

    def test_order(self):
        assert STATE_ORDER == [
            ReturnState.NOT_STARTED,
            ReturnState.INITIATED,
            ReturnState.INTAKE_DONE,
            ReturnState.EVIDENCE_DONE,
            ReturnState.ISSUES_REVIEWED,
            ReturnState.CLOSEOUT_DONE,
            ReturnState.DEPOSIT_PROCESSED,
        ]

    @pytest.mark.parametrize("state,index", [
        (ReturnState.NOT_STARTED, 0),
        ("closeout_done", 5),
        ("deposit_processed", 6),
        ("bogus", -1),
    ])
    def test_state_index(self, state, index):
        assert state_index(state) == index

    @pytest.mark.parametrize("current,required,expected", [
        ("intake_done", "initiated", True),
        ("intake_done", "intake_done", True),
        ("initiated", "intake_done", False),
        ("bogus", "not_started", False),
        ("closeout_done", "bogus", False),
    ])
    def test_is_state_at_least(self, current, required, expected):
        assert is_state_at_least(current, required) is expected

    @pytest.mark.parametrize("current,target,expected", [
        (ReturnState.NOT_STARTED, ReturnState.INITIATED, True),
        (ReturnState.CLOSEOUT_DONE, ReturnState.DEPOSIT_PROCESSED, True),
        (ReturnState.NOT_STARTED, ReturnState.INTAKE_DONE, False),
        (ReturnState.INTAKE_DONE, ReturnState.INITIATED, False),
        (ReturnState.INTAKE_DONE, ReturnState.INTAKE_DONE, False),
        (ReturnState.DEPOSIT_PROCESSED, "anything", False),
    ])
    def test_single_step_transitions(self, current, target, expected):
        assert can_transition_to(current, target) is expected


class TestSteps:

    def test_chain_is_consistent(self):
        for prev, nxt in zip(RETURN_STEPS, RETURN_STEPS[1:]):
            assert prev.required_state == nxt.prerequisite_state
        assert [s.number for s in RETURN_STEPS] == [1, 2, 3, 4, 5]

    def test_broken_chain_detected(self):
        with pytest.raises(RuntimeError):
            _check_step_chain([RETURN_STEPS[0], RETURN_STEPS[2]])

    @pytest.mark.parametrize("step,state,accessible,complete", [
        (ReturnStepId.INTAKE, ReturnState.NOT_STARTED, False, False),
        (ReturnStepId.INTAKE, ReturnState.INITIATED, True, False),
        (ReturnStepId.INTAKE, ReturnState.INTAKE_DONE, True, True),
        (ReturnStepId.EVIDENCE, ReturnState.INITIATED, False, False),
        (ReturnStepId.DEPOSIT, ReturnState.ISSUES_REVIEWED, False, False),
        (ReturnStepId.DEPOSIT, ReturnState.CLOSEOUT_DONE, True, False),
        ("deposit", "deposit_processed", True, True),
        ("unknown_step", ReturnState.DEPOSIT_PROCESSED, False, False),
    ])
    def test_access_and_completion(self, step, state, accessible, complete):
        assert can_access_step(step, state) is accessible
        assert is_step_complete(step, state) is complete

    def test_step_object_accepted(self):
        assert can_access_step(RETURN_STEPS[1], ReturnState.INTAKE_DONE) is True

    @pytest.mark.parametrize("state,step", [
        (ReturnState.NOT_STARTED, ReturnStepId.INTAKE),
        (ReturnState.INITIATED, ReturnStepId.INTAKE),
        (ReturnState.INTAKE_DONE, ReturnStepId.EVIDENCE),
        (ReturnState.ISSUES_REVIEWED, ReturnStepId.CLOSEOUT),
        (ReturnState.CLOSEOUT_DONE, ReturnStepId.DEPOSIT),
        (ReturnState.DEPOSIT_PROCESSED, ReturnStepId.DEPOSIT),
        ("bogus", ReturnStepId.INTAKE),
    ])
    def test_current_step(self, state, step):
        assert get_current_step_from_state(state) == step

    def test_next_state(self):
        assert get_next_state(ReturnStepId.EVIDENCE) == ReturnState.EVIDENCE_DONE
        assert get_next_state("deposit") == ReturnState.DEPOSIT_PROCESSED
        assert get_next_state("nope") is None

    def test_progress(self):
        progress = return_progress(ReturnState.INTAKE_DONE)

        assert [p.id for p in progress] == [s.id for s in RETURN_STEPS]
        assert progress[0].complete and progress[0].accessible and not progress[0].current
        assert progress[1].current and progress[1].accessible and not progress[1].complete
        assert not progress[2].accessible

    def test_progress_without_state(self):
        progress = return_progress(None)
        assert progress[0].current is True
        assert not any(p.accessible for p in progress)


class TestStatusGate:

    @pytest.mark.parametrize("state", [
        None,
        ReturnState.NOT_STARTED,
        ReturnState.INTAKE_DONE,
        ReturnState.ISSUES_REVIEWED,
    ])
    def test_completion_blocked_before_closeout(self, state):
        check = validate_return_workflow(BookingStatus.ACTIVE, BookingStatus.COMPLETED, state)

        assert check.allowed is False
        assert "Complete return workflow first" in check.reason

    @pytest.mark.parametrize("state", [ReturnState.CLOSEOUT_DONE, ReturnState.DEPOSIT_PROCESSED])
    def test_completion_allowed_after_closeout(self, state):
        assert validate_return_workflow("active", "completed", state).allowed is True

    @pytest.mark.parametrize("current,new", [
        (BookingStatus.PENDING, BookingStatus.CONFIRMED),
        (BookingStatus.CONFIRMED, BookingStatus.ACTIVE),
        (BookingStatus.ACTIVE, BookingStatus.CANCELLED),
        (BookingStatus.CONFIRMED, BookingStatus.COMPLETED),
    ])
    def test_other_transitions_not_gated(self, current, new):
        assert validate_return_workflow(current, new, None).allowed is True


class TestBypassReason:

    @pytest.mark.parametrize("reason,expected", [
        (None, False),
        ("", False),
        ("x" * 49, False),
        ("  " + "x" * 49 + "   ", False),
        ("x" * 50, True),
        (REASON, True),
    ])
    def test_minimum_length(self, reason, expected):
        assert is_valid_bypass_reason(reason) is expected
