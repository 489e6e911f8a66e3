"""Tests for the single-instance process lock."""

import asyncio
import os
import subprocess
import sys
import time
from pathlib import Path

import pytest

from loupedeck_controller.lock import ProcessLock

CONTENDER_SCRIPT = """
import asyncio, sys, time
from pathlib import Path
from loupedeck_controller.lock import ProcessLock

async def main():
    lock = ProcessLock(Path(sys.argv[1]), wait_timeout=0.3, poll_interval=0.02)
    delay = float(sys.argv[2]) - time.time()
    if delay > 0:
        await asyncio.sleep(delay)
    acquired = await lock.acquire()
    print(acquired, flush=True)
    if acquired:
        await asyncio.sleep(2.0)
        lock.release()

asyncio.run(main())
"""


@pytest.fixture
def lock_path(tmp_path: Path) -> Path:
    return tmp_path / "controller.pid"


@pytest.fixture
def dead_pid() -> int:
    """PID of a process that has already exited."""
    process = subprocess.Popen([sys.executable, "-c", "pass"])
    process.wait()
    return process.pid


class TestProcessLock:
    @pytest.mark.asyncio
    async def test_acquire_free_lock(self, lock_path: Path) -> None:
        lock = ProcessLock(lock_path)

        assert await lock.acquire()
        assert lock.held
        assert lock.read_pid() == os.getpid()
        lock.release()

    @pytest.mark.asyncio
    async def test_stale_record_overwritten(self, lock_path: Path, dead_pid: int) -> None:
        """A record left by a crashed process does not block: nobody holds the OS lock."""
        lock_path.write_text(str(dead_pid))
        lock = ProcessLock(lock_path)

        assert await lock.acquire()
        assert lock.read_pid() == os.getpid()
        lock.release()

    @pytest.mark.asyncio
    async def test_malformed_record_overwritten(self, lock_path: Path) -> None:
        lock_path.write_text("not a pid")
        lock = ProcessLock(lock_path)

        assert await lock.acquire()
        assert lock.read_pid() == os.getpid()
        lock.release()

    @pytest.mark.asyncio
    async def test_live_holder_wins(self, lock_path: Path, lock_holder) -> None:
        holder = lock_holder(lock_path)
        lock = ProcessLock(lock_path, wait_timeout=0.2, poll_interval=0.05)

        assert not await lock.acquire()
        assert not lock.held
        assert lock.read_pid() == holder.pid

    @pytest.mark.asyncio
    async def test_holder_exiting_during_wait(self, lock_path: Path, lock_holder) -> None:
        holder = lock_holder(lock_path)
        lock = ProcessLock(lock_path, wait_timeout=2.0, poll_interval=0.05)

        async def stop_holder() -> None:
            await asyncio.sleep(0.1)
            holder.kill()
            await asyncio.to_thread(holder.wait)

        stopper = asyncio.create_task(stop_holder())
        assert await lock.acquire()
        await stopper
        assert lock.read_pid() == os.getpid()
        lock.release()

    @pytest.mark.asyncio
    async def test_second_lock_in_same_process_waits(self, lock_path: Path) -> None:
        first = ProcessLock(lock_path)
        second = ProcessLock(lock_path, wait_timeout=0.1, poll_interval=0.02)
        assert await first.acquire()

        assert not await second.acquire()

        first.release()
        assert await second.acquire()
        second.release()

    @pytest.mark.asyncio
    async def test_release_removes_own_record(self, lock_path: Path) -> None:
        lock = ProcessLock(lock_path)
        await lock.acquire()

        lock.release()
        lock.release()

        assert not lock_path.exists()
        assert not lock.held

    @pytest.mark.asyncio
    async def test_release_keeps_foreign_record(self, lock_path: Path) -> None:
        lock = ProcessLock(lock_path)
        await lock.acquire()
        lock_path.write_text("12345")

        lock.release()
        assert lock_path.read_text() == "12345"


class TestConcurrentStartup:
    """Controllers launched at the same moment must not both get the device."""

    @pytest.mark.parametrize("attempt", range(5))
    def test_exactly_one_instance_acquires(self, tmp_path: Path, attempt: int) -> None:
        record = tmp_path / f"race-{attempt}.pid"
        start_at = time.time() + 3.0
        contenders = [
            subprocess.Popen(
                [sys.executable, "-c", CONTENDER_SCRIPT, str(record), str(start_at)],
                stdout=subprocess.PIPE,
                text=True,
            )
            for _ in range(3)
        ]

        results = []
        for process in contenders:
            stdout, _ = process.communicate(timeout=15)
            results.append(stdout.strip())

        assert sorted(results) == ["False", "False", "True"]
