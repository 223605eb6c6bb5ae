import threading
from enum import Enum


class StopReason(Enum):
    COMPLETED = "completed"
    SIGNALED = "signaled"
    TIMEOUT = "timeout"


class StopFlag:
    """Pollable stop request shared by signal handlers, timers and the capture loop.

    Only the first reason is kept, so a timeout that races a signal does not
    overwrite it.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        # Reentrant: a signal handler can run while the main thread holds it.
        self._lock = threading.RLock()
        self._reason: StopReason | None = None

    @property
    def reason(self) -> StopReason | None:
        return self._reason

    def set(self, reason: StopReason = StopReason.SIGNALED) -> None:
        with self._lock:
            if self._reason is None:
                self._reason = reason
            self._event.set()

    def is_set(self) -> bool:
        return self._event.is_set()

    def clear(self) -> None:
        with self._lock:
            self._reason = None
            self._event.clear()

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)
