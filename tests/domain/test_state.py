import pytest

from dev_voice.domain.state import (
    SessionPhase,
    InvalidTransitionError,
    VALID_TRANSITIONS,
    validate_transition,
)


class TestStateTransitions:
    def test_idle_to_capturing(self):
        validate_transition(SessionPhase.IDLE, SessionPhase.CAPTURING)

    def test_capturing_to_completed(self):
        validate_transition(SessionPhase.CAPTURING, SessionPhase.COMPLETED)

    def test_capturing_to_signaled(self):
        validate_transition(SessionPhase.CAPTURING, SessionPhase.SIGNALED)

    def test_completed_to_processing(self):
        validate_transition(SessionPhase.COMPLETED, SessionPhase.PROCESSING)

    def test_signaled_to_processing(self):
        validate_transition(SessionPhase.SIGNALED, SessionPhase.PROCESSING)

    def test_signaled_to_done_without_audio(self):
        validate_transition(SessionPhase.SIGNALED, SessionPhase.DONE)

    def test_processing_to_transcribing(self):
        validate_transition(SessionPhase.PROCESSING, SessionPhase.TRANSCRIBING)

    def test_transcribing_to_done(self):
        validate_transition(SessionPhase.TRANSCRIBING, SessionPhase.DONE)

    def test_done_to_idle(self):
        validate_transition(SessionPhase.DONE, SessionPhase.IDLE)

    def test_invalid_idle_to_processing(self):
        with pytest.raises(InvalidTransitionError):
            validate_transition(SessionPhase.IDLE, SessionPhase.PROCESSING)

    def test_invalid_capturing_to_transcribing(self):
        with pytest.raises(InvalidTransitionError):
            validate_transition(SessionPhase.CAPTURING, SessionPhase.TRANSCRIBING)

    def test_invalid_completed_to_signaled(self):
        with pytest.raises(InvalidTransitionError):
            validate_transition(SessionPhase.COMPLETED, SessionPhase.SIGNALED)

    def test_invalid_done_to_capturing(self):
        with pytest.raises(InvalidTransitionError):
            validate_transition(SessionPhase.DONE, SessionPhase.CAPTURING)

    def test_error_message_names_both_phases(self):
        with pytest.raises(InvalidTransitionError, match="IDLE to DONE"):
            validate_transition(SessionPhase.IDLE, SessionPhase.DONE)

    def test_self_transition_invalid(self):
        for phase in SessionPhase:
            with pytest.raises(InvalidTransitionError):
                validate_transition(phase, phase)

    def test_every_phase_has_an_exit(self):
        assert set(VALID_TRANSITIONS) == set(SessionPhase)
        assert all(VALID_TRANSITIONS[phase] for phase in SessionPhase)
