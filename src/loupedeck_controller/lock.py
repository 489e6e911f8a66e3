"""Cross-process lock so two controllers never drive the same device.

Mutual exclusion comes from an OS file lock (``<lock_file>.lock``) held for
the life of the process. The kernel drops it when the holder dies, so a
crashed controller never blocks the next one. While holding it the controller
also writes its PID to ``lock_file`` for operators and for the log line of a
conceding instance.
"""

import asyncio
import logging
import os
import time
from pathlib import Path

from filelock import FileLock, Timeout

logger = logging.getLogger(__name__)


class ProcessLock:
    """Single-instance lock with a PID record beside it."""

    def __init__(self, path: Path, wait_timeout: float = 5.0, poll_interval: float = 0.25) -> None:
        """Initialize the lock.

        Args:
            path: PID record location. The OS lock lives at the same path plus ``.lock``.
            wait_timeout: Seconds to wait for the current holder to exit.
            poll_interval: Seconds between attempts while waiting.
        """
        self.path = path
        self.wait_timeout = wait_timeout
        self.poll_interval = poll_interval
        self._file_lock = FileLock(f"{path}.lock")
        self._held = False

    @property
    def held(self) -> bool:
        """Whether this process currently holds the lock."""
        return self._held

    def read_pid(self) -> int | None:
        """Return the recorded PID, or None when missing or malformed."""
        try:
            pid = int(self.path.read_text(encoding="utf-8").strip())
        except (OSError, ValueError):
            return None
        return pid if pid > 0 else None

    def _try_acquire(self) -> bool:
        try:
            self._file_lock.acquire(timeout=0)
        except Timeout:
            return False
        return True

    async def acquire(self) -> bool:
        """Take the lock, waiting a bounded time for the current holder.

        Attempts are non-blocking and spaced by ``poll_interval`` on the event
        loop, so signals stay serviceable while waiting.

        Returns:
            True when the lock is now held by this process, False when another
            process still holds it after ``wait_timeout``.
        """
        if self._held:
            return True

        if not self._try_acquire():
            holder = self.read_pid()
            logger.warning("Another instance (PID %s) is running, waiting for it to exit...", holder or "unknown")
            deadline = time.monotonic() + self.wait_timeout
            while True:
                await asyncio.sleep(self.poll_interval)
                if self._try_acquire():
                    break
                if time.monotonic() >= deadline:
                    logger.warning("Instance PID %s is still running, not starting", self.read_pid() or "unknown")
                    return False

        previous = self.read_pid()
        if previous is not None and previous != os.getpid():
            logger.info("Replacing stale lock record of PID %d", previous)
        try:
            self.path.write_text(str(os.getpid()), encoding="utf-8")
        except OSError as e:
            logger.warning("Could not write lock record %s (continuing): %s", self.path, e)
        self._held = True
        return True

    def release(self) -> None:
        """Remove our PID record and drop the OS lock."""
        if not self._held:
            return
        self._held = False
        try:
            if self.read_pid() == os.getpid():
                self.path.unlink()
        except OSError as e:
            logger.warning("Could not remove lock record %s (ignored): %s", self.path, e)
        finally:
            self._file_lock.release()
