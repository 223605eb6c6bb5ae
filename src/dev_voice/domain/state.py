from enum import Enum, auto


class SessionPhase(Enum):
    IDLE = auto()
    CAPTURING = auto()
    COMPLETED = auto()
    SIGNALED = auto()
    PROCESSING = auto()
    TRANSCRIBING = auto()
    DONE = auto()


VALID_TRANSITIONS: dict[SessionPhase, set[SessionPhase]] = {
    SessionPhase.IDLE: {SessionPhase.CAPTURING},
    SessionPhase.CAPTURING: {SessionPhase.COMPLETED, SessionPhase.SIGNALED},
    SessionPhase.COMPLETED: {SessionPhase.PROCESSING, SessionPhase.DONE},
    SessionPhase.SIGNALED: {SessionPhase.PROCESSING, SessionPhase.DONE},
    SessionPhase.PROCESSING: {SessionPhase.TRANSCRIBING},
    SessionPhase.TRANSCRIBING: {SessionPhase.DONE},
    SessionPhase.DONE: {SessionPhase.IDLE},
}


class InvalidTransitionError(Exception):
    pass


def validate_transition(current: SessionPhase, target: SessionPhase) -> None:
    if target not in VALID_TRANSITIONS.get(current, set()):
        raise InvalidTransitionError(f"Cannot transition from {current.name} to {target.name}")
