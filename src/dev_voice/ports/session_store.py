from contextlib import AbstractContextManager
from typing import Protocol

from dev_voice.domain.session import SessionState


class SessionStorePort(Protocol):
    def inspect(self) -> SessionState | None: ...
    def claim(self, pid: int) -> SessionState: ...
    def release(self, expected: SessionState) -> bool: ...
    def processing(self) -> AbstractContextManager[None]: ...
    def is_processing(self) -> bool: ...
