import asyncio
import os
import time

import pytest

from dev_voice.adapters.file_session_store import FileSessionStore
from dev_voice.adapters.posix_signal import PosixTerminationSignal
from dev_voice.domain.controller import SessionController
from dev_voice.domain.protocol import Ok, StartRecording, StopRecording, Success
from dev_voice.domain.session import AlreadyActiveError

from conftest import POLL_INTERVAL, SAMPLE_RATE, FakeCapture, FakeOutput, FakeTranscriber


@pytest.fixture
def installed_termination():
    termination = PosixTerminationSignal()
    termination.install()
    yield termination
    termination.uninstall()


class TestSignaledStop:
    @pytest.mark.asyncio
    async def test_stop_from_second_invocation_ends_capture_promptly(self, tmp_path, installed_termination):
        capture = FakeCapture()
        recorder = SessionController(
            store=FileSessionStore(tmp_path),
            termination=installed_termination,
            capture=capture,
            transcriber=FakeTranscriber(),
            output=FakeOutput(),
            sample_rate=SAMPLE_RATE,
            notifications=False,
        )
        stopper = SessionController(
            store=FileSessionStore(tmp_path),
            termination=PosixTerminationSignal(),
        )

        task = asyncio.create_task(recorder.handle(StartRecording(max_duration=30)))
        await asyncio.wait_for(capture.started.wait(), timeout=1.0)
        assert FileSessionStore(tmp_path).inspect().pid == os.getpid()

        signaled_at = time.monotonic()
        assert await stopper.handle(StopRecording()) == Ok(message="stopping")
        response = await asyncio.wait_for(task, timeout=2.0)
        elapsed = time.monotonic() - signaled_at

        assert response == Success(text="hello world")
        assert elapsed < POLL_INTERVAL + 0.5
        assert FileSessionStore(tmp_path).inspect() is None
        assert not (tmp_path / "recording").exists()

    @pytest.mark.asyncio
    async def test_owner_releases_when_signal_arrives_without_stopper(self, tmp_path, installed_termination):
        store = FileSessionStore(tmp_path)
        capture = FakeCapture()
        recorder = SessionController(
            store=store,
            termination=installed_termination,
            capture=capture,
            transcriber=FakeTranscriber(),
            output=FakeOutput(),
            notifications=False,
        )

        task = asyncio.create_task(recorder.handle(StartRecording(max_duration=30)))
        await asyncio.wait_for(capture.started.wait(), timeout=1.0)
        installed_termination.request_stop(os.getpid())

        assert await asyncio.wait_for(task, timeout=2.0) == Success(text="hello world")
        assert store.inspect() is None


class TestExampleScenario:
    def test_claim_inspect_conflict_stop_release(self, tmp_path):
        store = FileSessionStore(tmp_path, is_alive=lambda pid: True)

        first = store.claim(1001)
        assert store.inspect() == first

        with pytest.raises(AlreadyActiveError) as excinfo:
            store.claim(1002)
        assert excinfo.value.state == first

        assert store.release(first) is True
        assert store.inspect() is None
