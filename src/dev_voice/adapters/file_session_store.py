import fcntl
import logging
import os
import tempfile
import time
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

from dev_voice.adapters.posix_signal import process_exists
from dev_voice.domain.session import (
    AlreadyActiveError,
    SessionState,
    StorageError,
)

logger = logging.getLogger(__name__)

RECORDING_FILE = "recording"
PROCESSING_FILE = "processing"
LOCK_FILE = ".lock"
FILE_MODE = 0o600
CLAIM_ATTEMPTS = 5


class FileSessionStore:
    """Session record kept as a single file in the state directory.

    The record is published with a hard link so it appears fully written or
    not at all, and removal goes through a private rename so a record claimed
    by someone else after our last read is never deleted. Publishing and
    removal both hold an flock on a sibling lock file, so no claim can land
    while a mismatched record is out of place.
    """

    def __init__(
        self,
        state_dir: Path,
        is_alive: Callable[[int], bool] = process_exists,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._state_dir = Path(state_dir)
        self._recording_path = self._state_dir / RECORDING_FILE
        self._processing_path = self._state_dir / PROCESSING_FILE
        self._lock_path = self._state_dir / LOCK_FILE
        self._is_alive = is_alive
        self._clock = clock

    @property
    def recording_path(self) -> Path:
        return self._recording_path

    @property
    def processing_path(self) -> Path:
        return self._processing_path

    def inspect(self) -> SessionState | None:
        raw = self._read_raw()
        if raw is None:
            return None

        state = _parse(raw)
        if state is None:
            logger.warning("Discarding unreadable session record %s", self._recording_path)
            self._take_if(lambda current: current == raw)
            return None

        if not self._is_alive(state.pid):
            logger.warning("Discarding stale session left by exited process %d", state.pid)
            self.release(state)
            return None

        return state

    def claim(self, pid: int) -> SessionState:
        state = SessionState(pid=pid, claimed_at=self._clock())
        payload = state.to_json().encode()

        for _ in range(CLAIM_ATTEMPTS):
            if self._publish(payload):
                logger.info("Session claimed by pid %d", pid)
                return state
            existing = self.inspect()
            if existing is not None:
                raise AlreadyActiveError(existing)

        raise StorageError(f"Could not claim {self._recording_path} after {CLAIM_ATTEMPTS} attempts")

    def release(self, expected: SessionState) -> bool:
        raw = self._read_raw()
        if raw is None or _parse(raw) != expected:
            return False

        released = self._take_if(lambda current: _parse(current) == expected)
        if released:
            logger.info("Session of pid %d released", expected.pid)
        return released

    @contextmanager
    def processing(self) -> Iterator[None]:
        try:
            self._processing_path.touch(mode=FILE_MODE)
        except OSError as exc:
            raise StorageError(f"Cannot create {self._processing_path}: {exc}") from exc
        try:
            yield
        finally:
            try:
                self._processing_path.unlink(missing_ok=True)
            except OSError:
                logger.warning("Could not remove %s", self._processing_path, exc_info=True)

    def is_processing(self) -> bool:
        return self._processing_path.exists()

    def _read_raw(self) -> bytes | None:
        try:
            return self._recording_path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(f"Cannot read {self._recording_path}: {exc}") from exc

    def _publish(self, payload: bytes) -> bool:
        try:
            fd, temp_name = tempfile.mkstemp(prefix=".recording-", suffix=".tmp", dir=self._state_dir)
        except OSError as exc:
            raise StorageError(f"Cannot write in {self._state_dir}: {exc}") from exc

        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.chmod(temp_name, FILE_MODE)
            with self._locked():
                os.link(temp_name, self._recording_path)
            return True
        except FileExistsError:
            return False
        except OSError as exc:
            raise StorageError(f"Cannot create {self._recording_path}: {exc}") from exc
        finally:
            try:
                os.unlink(temp_name)
            except FileNotFoundError:
                pass

    def _take_if(self, matches: Callable[[bytes], bool]) -> bool:
        with self._locked():
            return self._swap_out(matches)

    def _swap_out(self, matches: Callable[[bytes], bool]) -> bool:
        tombstone = self._state_dir / f".recording-{os.getpid()}-{uuid.uuid4().hex}.old"
        try:
            os.rename(self._recording_path, tombstone)
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StorageError(f"Cannot remove {self._recording_path}: {exc}") from exc

        try:
            if matches(tombstone.read_bytes()):
                return True
            try:
                os.link(tombstone, self._recording_path)
            except FileExistsError:
                logger.warning("Session record changed during release, dropping displaced copy")
            return False
        except OSError as exc:
            raise StorageError(f"Cannot restore {self._recording_path}: {exc}") from exc
        finally:
            tombstone.unlink(missing_ok=True)

    @contextmanager
    def _locked(self) -> Iterator[None]:
        try:
            fd = os.open(self._lock_path, os.O_RDWR | os.O_CREAT, FILE_MODE)
        except OSError as exc:
            raise StorageError(f"Cannot open {self._lock_path}: {exc}") from exc
        try:
            fcntl.flock(fd, fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)


def _parse(raw: bytes) -> SessionState | None:
    try:
        return SessionState.from_json(raw)
    except ValueError:
        return None
