from collections.abc import Callable
from enum import Enum, auto
from typing import Protocol

from dev_voice.domain.stop_flag import StopFlag


class DeliveryOutcome(Enum):
    DELIVERED = auto()
    NO_SUCH_PROCESS = auto()


class TerminationPort(Protocol):
    @property
    def stop_flag(self) -> StopFlag: ...
    def install(self, on_stop: Callable[[int], None] | None = None) -> None: ...
    def request_stop(self, pid: int) -> DeliveryOutcome: ...
