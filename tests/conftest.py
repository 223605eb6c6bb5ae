import asyncio
from collections.abc import Callable

import numpy as np
import pytest

from dev_voice.adapters.file_session_store import FileSessionStore
from dev_voice.domain.controller import SessionController
from dev_voice.domain.session import SignalDeliveryError
from dev_voice.domain.stop_flag import StopFlag
from dev_voice.ports.output import OutputMode
from dev_voice.ports.termination import DeliveryOutcome


SAMPLE_RATE = 16000
POLL_INTERVAL = 0.02
SESSION_PID = 4242


def generate_silence(duration_ms: int = 32, sample_rate: int = SAMPLE_RATE) -> np.ndarray:
    num_samples = int(sample_rate * duration_ms / 1000)
    return np.zeros(num_samples, dtype=np.float32)


def generate_sine_wave(
    frequency: float = 440.0,
    duration_ms: int = 500,
    amplitude: float = 0.5,
    sample_rate: int = SAMPLE_RATE,
) -> np.ndarray:
    num_samples = int(sample_rate * duration_ms / 1000)
    t = np.arange(num_samples) / sample_rate
    return (np.sin(2 * np.pi * frequency * t) * amplitude).astype(np.float32)


class FakeCapture:
    """Polls the stop flag like a real capture loop and returns canned samples."""

    def __init__(
        self,
        samples: np.ndarray | None = None,
        wait_for_stop: bool = True,
        honour_duration: bool = False,
        error: Exception | None = None,
    ) -> None:
        self._samples = samples if samples is not None else generate_sine_wave()
        self._wait_for_stop = wait_for_stop
        self._honour_duration = honour_duration
        self._error = error
        self.calls: list[tuple[int, int]] = []
        self.started = asyncio.Event()

    async def capture(self, max_duration: int, sample_rate: int, stop_flag: StopFlag) -> np.ndarray:
        self.calls.append((max_duration, sample_rate))
        self.started.set()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + max_duration
        if self._wait_for_stop:
            while not stop_flag.is_set():
                if self._honour_duration and loop.time() >= deadline:
                    break
                await asyncio.sleep(POLL_INTERVAL)
        if self._error is not None:
            raise self._error
        return self._samples


class FakeTranscriber:
    def __init__(
        self,
        text: str = "hello world",
        error: Exception | None = None,
        on_transcribe: Callable[[], None] | None = None,
    ) -> None:
        self._text = text
        self._error = error
        self._on_transcribe = on_transcribe
        self.calls: list[np.ndarray] = []

    async def transcribe(self, samples: np.ndarray) -> str:
        self.calls.append(samples)
        if self._on_transcribe is not None:
            self._on_transcribe()
        if self._error is not None:
            raise self._error
        return self._text


class FakeOutput:
    def __init__(self) -> None:
        self.delivered: list[tuple[str, OutputMode]] = []
        self.notifications: list[tuple[str, str]] = []

    async def deliver(self, text: str, mode: OutputMode) -> None:
        self.delivered.append((text, mode))

    async def notify(self, title: str, body: str) -> None:
        self.notifications.append((title, body))


class FakeTermination:
    """Records stop requests; optionally routes them to a flag as if signalled."""

    def __init__(
        self,
        outcome: DeliveryOutcome = DeliveryOutcome.DELIVERED,
        error: Exception | None = None,
        deliver_to: StopFlag | None = None,
        stop_flag: StopFlag | None = None,
    ) -> None:
        self._stop_flag = stop_flag or StopFlag()
        self._outcome = outcome
        self._error = error
        self._deliver_to = deliver_to
        self.requests: list[int] = []
        self.installed = False

    @property
    def stop_flag(self) -> StopFlag:
        return self._stop_flag

    def install(self, on_stop=None) -> None:
        self.installed = True

    def request_stop(self, pid: int) -> DeliveryOutcome:
        self.requests.append(pid)
        if self._error is not None:
            raise self._error
        if self._deliver_to is not None:
            self._deliver_to.set()
        return self._outcome


@pytest.fixture
def store(tmp_path):
    return FileSessionStore(tmp_path, is_alive=lambda pid: True)


@pytest.fixture
def fake_capture():
    return FakeCapture()


@pytest.fixture
def fake_transcriber():
    return FakeTranscriber()


@pytest.fixture
def fake_output():
    return FakeOutput()


@pytest.fixture
def fake_termination():
    return FakeTermination()


@pytest.fixture
def failing_termination():
    return FakeTermination(error=SignalDeliveryError("Cannot signal process 4242: permission denied"))


@pytest.fixture
def controller(store, fake_termination, fake_capture, fake_transcriber, fake_output):
    return SessionController(
        store=store,
        termination=fake_termination,
        capture=fake_capture,
        transcriber=fake_transcriber,
        output=fake_output,
        sample_rate=SAMPLE_RATE,
        cap_grace_seconds=0.05,
        pid=SESSION_PID,
    )
