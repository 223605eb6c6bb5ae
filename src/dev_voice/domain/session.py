import json
from dataclasses import dataclass


class SessionError(Exception):
    pass


class StorageError(SessionError):
    """A state or log directory operation failed. Persisted state is unchanged."""


class SignalDeliveryError(SessionError):
    pass


@dataclass(frozen=True)
class SessionState:
    pid: int
    claimed_at: float

    def to_json(self) -> str:
        return json.dumps({"pid": self.pid, "claimed_at": self.claimed_at})

    @classmethod
    def from_json(cls, raw: str | bytes) -> "SessionState":
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("session record is not an object")

        pid = data.get("pid")
        claimed_at = data.get("claimed_at")
        if isinstance(pid, bool) or not isinstance(pid, int) or pid <= 0:
            raise ValueError(f"invalid pid in session record: {pid!r}")
        if isinstance(claimed_at, bool) or not isinstance(claimed_at, (int, float)):
            raise ValueError(f"invalid claimed_at in session record: {claimed_at!r}")

        return cls(pid=pid, claimed_at=float(claimed_at))


class AlreadyActiveError(SessionError):
    def __init__(self, state: SessionState) -> None:
        super().__init__(f"Session already active (pid {state.pid})")
        self.state = state
