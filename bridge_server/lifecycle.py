"""Process lifetime supervision.

The bridge is started by a host application and must not outlive it. When
an owner pid is configured, a daemon thread probes it periodically and
exits the process once the owner is gone. A remote shutdown request exits
after a short delay so the HTTP response can be flushed first.
"""

import logging
import os
import sys
import threading
from typing import Callable, Optional

import psutil

logger = logging.getLogger(__name__)

OWNER_CHECK_INTERVAL_SEC = 2.0
SHUTDOWN_DELAY_SEC = 0.06


def _terminate() -> None:
    # Skips atexit handlers and non-daemon threads, like the server loop
    os._exit(0)


def is_process_alive(pid: int) -> bool:
    """Probe a process without affecting it.

    A probe refused for lack of permission means the process exists.
    """
    if not isinstance(pid, int) or pid <= 0:
        return True
    if sys.platform == "win32":
        # signal 0 would terminate the target on Windows
        return psutil.pid_exists(pid)
    try:
        os.kill(pid, 0)
    except PermissionError:
        return True
    except OSError:
        return False
    return True


class OwnerMonitor:
    """Exit this process once the owner process has gone away."""

    def __init__(
        self,
        owner_pid: int,
        interval: float = OWNER_CHECK_INTERVAL_SEC,
        terminate: Callable[[], None] = _terminate,
    ):
        self.owner_pid = owner_pid
        self.interval = interval
        self._terminate = terminate
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def check(self) -> bool:
        """Probe once; terminates when the owner is gone. Returns liveness."""
        if is_process_alive(self.owner_pid):
            return True
        logger.warning(
            "owner process exited owner_pid=%d, shutting down", self.owner_pid
        )
        self._terminate()
        return False

    def start(self) -> bool:
        """Start monitoring. Returns False when monitoring is not applicable."""
        if not self.owner_pid or self.owner_pid <= 0:
            return False
        if self.owner_pid == os.getpid():
            logger.warning("skip owner monitor: owner pid equals self pid")
            return False

        logger.info("owner monitor enabled owner_pid=%d", self.owner_pid)
        if not self.check():
            return False
        self._thread = threading.Thread(
            target=self._run, name="owner-monitor", daemon=True
        )
        self._thread.start()
        return True

    def stop(self) -> None:
        self._stop.set()

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            if not self.check():
                return


def schedule_shutdown(
    delay: float = SHUTDOWN_DELAY_SEC, terminate: Callable[[], None] = _terminate
) -> threading.Timer:
    """Terminate the process after ``delay`` seconds on a daemon timer."""
    timer = threading.Timer(delay, terminate)
    timer.daemon = True
    timer.start()
    return timer
