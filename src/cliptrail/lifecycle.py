"""PID file bookkeeping for the background poller."""

import logging
import os
import signal
from pathlib import Path

from cliptrail.config import PID_PATH

logger = logging.getLogger(__name__)


def read_pid(pid_path: Path = PID_PATH) -> int | None:
    try:
        return int(pid_path.read_text().strip())
    except (OSError, ValueError):
        return None


def write_pid(pid_path: Path = PID_PATH, pid: int | None = None) -> None:
    pid_path.parent.mkdir(parents=True, exist_ok=True)
    pid_path.write_text(str(pid if pid is not None else os.getpid()))


def remove_pid(pid_path: Path = PID_PATH) -> None:
    pid_path.unlink(missing_ok=True)


def is_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # exists, owned by someone else
        return True
    return True


def running_pid(pid_path: Path = PID_PATH) -> int | None:
    """PID of a live poller process, removing the file if it is stale."""
    pid = read_pid(pid_path)
    if pid is None:
        return None
    if pid != os.getpid() and is_alive(pid):
        return pid
    if pid != os.getpid():
        logger.info("Removing stale PID file for %d", pid)
        remove_pid(pid_path)
    return None


def stop_daemon(pid_path: Path = PID_PATH) -> int | None:
    """Send SIGTERM to the running poller. Returns its PID, or None if none was running."""
    pid = running_pid(pid_path)
    if pid is None:
        return None
    os.kill(pid, signal.SIGTERM)
    return pid
