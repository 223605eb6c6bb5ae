import asyncio
import logging
import os
from collections.abc import Callable

from dev_voice.domain.protocol import (
    ControlRequest,
    ControlResponse,
    Error,
    Ok,
    Ping,
    Recording,
    Shutdown,
    StartRecording,
    StopRecording,
    Success,
)
from dev_voice.domain.session import AlreadyActiveError, SessionError, SessionState, StorageError
from dev_voice.domain.state import SessionPhase, validate_transition
from dev_voice.domain.stop_flag import StopReason
from dev_voice.ports.capture import CapturePort
from dev_voice.ports.output import OutputMode, OutputPort
from dev_voice.ports.session_store import SessionStorePort
from dev_voice.ports.termination import DeliveryOutcome, TerminationPort
from dev_voice.ports.transcriber import TranscriberPort

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 80


class SessionController:
    """Answers control requests against the session store.

    ``StartRecording`` is synchronous: the call returns once the transcript
    has been delivered (``Success``) or there was nothing to deliver (``Ok``).
    """

    def __init__(
        self,
        store: SessionStorePort,
        termination: TerminationPort,
        capture: CapturePort | None = None,
        transcriber: TranscriberPort | None = None,
        output: OutputPort | None = None,
        sample_rate: int = 16000,
        output_mode: OutputMode = OutputMode.TYPE,
        cap_grace_seconds: float = 1.0,
        notifications: bool = True,
        pid: int | None = None,
        on_shutdown: Callable[[], None] | None = None,
    ) -> None:
        self._store = store
        self._termination = termination
        self._capture = capture
        self._transcriber = transcriber
        self._output = output
        self._sample_rate = sample_rate
        self._output_mode = output_mode
        self._cap_grace_seconds = cap_grace_seconds
        self._notifications = notifications
        self._pid = pid if pid is not None else os.getpid()
        self._on_shutdown = on_shutdown
        self._phase = SessionPhase.IDLE

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def pid(self) -> int:
        return self._pid

    async def handle(self, request: ControlRequest) -> ControlResponse:
        try:
            if isinstance(request, Ping):
                return Ok(message="pong")
            if isinstance(request, StartRecording):
                return await self._start(request.max_duration)
            if isinstance(request, StopRecording):
                return self._stop()
            if isinstance(request, Shutdown):
                return self._shutdown()
            return Error(message=f"Unsupported request: {type(request).__name__}")
        except SessionError as exc:
            logger.error("%s failed: %s", type(request).__name__, exc)
            return Error(message=str(exc))
        except Exception as exc:
            logger.exception("%s failed", type(request).__name__)
            return Error(message=str(exc) or type(exc).__name__)

    async def _start(self, max_duration: int) -> ControlResponse:
        if self._capture is None or self._transcriber is None or self._output is None:
            return Error(message="Recording is not available in this process")

        if self._phase is SessionPhase.IDLE:
            # Before the claim: once the record is visible a stopper may signal us.
            self._termination.stop_flag.clear()
        try:
            state = self._store.claim(self._pid)
        except AlreadyActiveError as exc:
            logger.info("Recording already in progress (pid %d)", exc.state.pid)
            return Recording()

        try:
            return await self._run_session(state, max_duration)
        finally:
            self._phase = SessionPhase.IDLE
            try:
                self._store.release(state)
            except StorageError as exc:
                logger.error("Could not release session of pid %d: %s", state.pid, exc)

    async def _run_session(self, state: SessionState, max_duration: int) -> ControlResponse:
        stop_flag = self._termination.stop_flag
        self._transition(SessionPhase.CAPTURING)
        logger.info("Recording started (max %d seconds)", max_duration)

        loop = asyncio.get_running_loop()
        cap = loop.call_later(
            max_duration + self._cap_grace_seconds, stop_flag.set, StopReason.TIMEOUT
        )
        try:
            samples = await self._capture.capture(max_duration, self._sample_rate, stop_flag)
        finally:
            cap.cancel()

        reason = stop_flag.reason or StopReason.COMPLETED
        self._transition(
            SessionPhase.COMPLETED if reason is StopReason.COMPLETED else SessionPhase.SIGNALED
        )
        logger.info("Capture ended (%s): %d samples", reason.value, len(samples))

        if len(samples) == 0:
            self._transition(SessionPhase.DONE)
            return Ok(message="no audio captured")

        with self._store.processing():
            self._transition(SessionPhase.PROCESSING)
            self._transition(SessionPhase.TRANSCRIBING)
            text = (await self._transcriber.transcribe(samples)).strip()
            if not text:
                self._transition(SessionPhase.DONE)
                logger.info("No speech detected")
                return Ok(message="no speech detected")

            logger.info("Transcribed: %s", text)
            await self._output.deliver(text, self._output_mode)
            self._transition(SessionPhase.DONE)

        if self._notifications:
            await self._output.notify("Transcription Complete", preview(text))
        return Success(text=text)

    def _stop(self) -> ControlResponse:
        state = self._store.inspect()
        if state is None:
            return Ok(message="nothing to stop")

        outcome = self._termination.request_stop(state.pid)
        if outcome is DeliveryOutcome.NO_SUCH_PROCESS:
            logger.info("Recording process %d is gone, clearing its session", state.pid)
        if not self._store.release(state):
            logger.debug("Session of pid %d was already released", state.pid)
        return Ok(message="stopping")

    def _shutdown(self) -> ControlResponse:
        state = self._store.inspect()
        if state is not None and state.pid == self._pid:
            self._termination.stop_flag.set(StopReason.SIGNALED)
            self._store.release(state)
        if self._on_shutdown is not None:
            self._on_shutdown()
        return Ok(message="shutting down")

    def _transition(self, target: SessionPhase) -> None:
        validate_transition(self._phase, target)
        logger.info("Session: %s -> %s", self._phase.name, target.name)
        self._phase = target


def preview(text: str) -> str:
    if len(text) <= PREVIEW_LENGTH:
        return text
    return text[: PREVIEW_LENGTH - 3] + "..."
