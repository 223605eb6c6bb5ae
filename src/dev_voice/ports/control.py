from collections.abc import Awaitable, Callable
from typing import Protocol

from dev_voice.domain.protocol import ControlRequest, ControlResponse

RequestHandler = Callable[[ControlRequest], Awaitable[ControlResponse]]


class ControlPort(Protocol):
    async def start(self) -> None: ...
    async def stop(self) -> None: ...


class ControlClientPort(Protocol):
    async def send(
        self, request: ControlRequest, timeout: float | None = None
    ) -> ControlResponse: ...
