import logging
import os
import signal
from collections.abc import Callable

from dev_voice.domain.session import SignalDeliveryError
from dev_voice.domain.stop_flag import StopFlag, StopReason
from dev_voice.ports.termination import DeliveryOutcome

logger = logging.getLogger(__name__)

STOP_SIGNAL = signal.SIGUSR1
HANDLED_SIGNALS = (signal.SIGUSR1, signal.SIGINT, signal.SIGTERM)


def process_exists(pid: int) -> bool:
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


class PosixTerminationSignal:
    def __init__(self, stop_flag: StopFlag | None = None) -> None:
        self._stop_flag = stop_flag or StopFlag()
        self._on_stop: Callable[[int], None] | None = None
        self._previous: dict[int, object] = {}
        self._installed = False

    @property
    def stop_flag(self) -> StopFlag:
        return self._stop_flag

    @property
    def installed(self) -> bool:
        return self._installed

    def install(self, on_stop: Callable[[int], None] | None = None) -> None:
        if self._installed:
            raise RuntimeError("Termination signal handlers are already installed")
        self._on_stop = on_stop
        for signum in HANDLED_SIGNALS:
            self._previous[signum] = signal.signal(signum, self._handle)
        self._installed = True
        logger.debug("Stop handlers installed for pid %d", os.getpid())

    def uninstall(self) -> None:
        if not self._installed:
            return
        for signum, previous in self._previous.items():
            signal.signal(signum, previous)
        self._previous.clear()
        self._on_stop = None
        self._installed = False

    def request_stop(self, pid: int) -> DeliveryOutcome:
        if pid <= 0:
            raise SignalDeliveryError(f"Refusing to signal invalid pid {pid}")
        try:
            os.kill(pid, STOP_SIGNAL)
        except ProcessLookupError:
            logger.info("Process %d already exited", pid)
            return DeliveryOutcome.NO_SUCH_PROCESS
        except OSError as exc:
            raise SignalDeliveryError(f"Cannot signal process {pid}: {exc}") from exc
        logger.info("Stop requested for process %d", pid)
        return DeliveryOutcome.DELIVERED

    def _handle(self, signum: int, frame) -> None:
        self._stop_flag.set(StopReason.SIGNALED)
        if self._on_stop is not None:
            self._on_stop(signum)
