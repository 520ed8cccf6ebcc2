"""
Bounded process execution.

Runs one external command in its own process group under a wall-clock
timeout and a cumulative output cap. On violation the whole group is
terminated, escalating from SIGTERM to SIGKILL; background children left
behind by a program that exits normally are terminated the same way. Every
live group is tracked so an operator interrupt can sweep them all.
"""

import errno
import os
import signal
import subprocess
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Iterator

from .config import (
    EXECUTION_TIMEOUT_SECONDS,
    KILL_GRACE_SECONDS,
    OUTPUT_LIMIT_BYTES,
    POLL_INTERVAL_SECONDS,
    READ_CHUNK_BYTES,
)
from .models import CapturedOutput
from .utils import print_yellow


class ExecError(Exception):
    """Base class for every way a supervised command can fail."""


class ExecTimeout(ExecError):
    def __init__(self, timeout: float) -> None:
        super().__init__(f"process timed out after {timeout}s")
        self.timeout = timeout


class OutputLimitExceeded(ExecError):
    def __init__(self, total: int) -> None:
        super().__init__(f"output exceeded limit: {total} bytes")
        self.total = total


class SpawnNotFound(ExecError):
    def __init__(self, program: str) -> None:
        super().__init__(f"program not found: {program}")
        self.program = program


class ExecFormatError(ExecError):
    """The program exists but cannot be executed (wrong format or not executable)."""

    def __init__(self, program: str) -> None:
        super().__init__(f"exec format error: {program}")
        self.program = program


class GenericIOError(ExecError):
    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


# Process groups of every command currently running
_live_groups: set[int] = set()
_live_groups_lock = threading.Lock()
_interrupt_handler_installed = False


@contextmanager
def _tracked_group(pgid: int) -> Iterator[None]:
    with _live_groups_lock:
        _live_groups.add(pgid)
    try:
        yield
    finally:
        with _live_groups_lock:
            _live_groups.discard(pgid)


def live_groups() -> set[int]:
    """Snapshot of the process groups currently being supervised."""
    with _live_groups_lock:
        return set(_live_groups)


def terminate_all_groups(sig: int = signal.SIGTERM) -> int:
    """
    Send a signal to every live process group.

    Args:
        sig: Signal to send.

    Returns:
        Number of groups signaled.
    """
    count = 0
    for pgid in live_groups():
        if _signal_group(pgid, sig):
            count += 1
    return count


def install_interrupt_handler() -> None:
    """
    Install a SIGINT handler that sweeps all live process groups.

    Children run in their own sessions and never see the terminal's Ctrl-C,
    so the handler terminates them before the previous handler runs
    (normally raising KeyboardInterrupt). Must be called from the main thread;
    installs at most once.
    """
    global _interrupt_handler_installed
    if _interrupt_handler_installed:
        return

    previous = signal.getsignal(signal.SIGINT)

    def _handler(signum, frame):
        terminate_all_groups()
        if previous == signal.SIG_IGN:
            return
        if callable(previous):
            previous(signum, frame)
        else:
            raise KeyboardInterrupt

    signal.signal(signal.SIGINT, _handler)
    _interrupt_handler_installed = True


def _signal_group(pgid: int, sig: int) -> bool:
    try:
        os.killpg(pgid, sig)
        return True
    except ProcessLookupError:
        return False


def group_alive(pgid: int) -> bool:
    """Whether any process (zombies included) remains in the group."""
    try:
        os.killpg(pgid, 0)
        return True
    except ProcessLookupError:
        return False
    except PermissionError:
        return True


class _OutputBuffer:
    """Byte buffer shared by the reader threads of one command."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._data = bytearray()
        self._total = 0

    def append(self, chunk: bytes) -> None:
        with self._lock:
            self._data.extend(chunk)
            self._total += len(chunk)

    @property
    def total(self) -> int:
        with self._lock:
            return self._total

    def text(self) -> str:
        with self._lock:
            return self._data.decode("utf-8", errors="replace")


def _pump(stream: IO[bytes], buffer: _OutputBuffer) -> None:
    try:
        while True:
            chunk = stream.read1(READ_CHUNK_BYTES)
            if not chunk:
                break
            buffer.append(chunk)
    except OSError:
        # A broken pipe ends the stream like EOF
        pass
    finally:
        stream.close()


def _spawn(cmdline: list[str], cwd: Path | None, capture_stderr: bool) -> subprocess.Popen:
    try:
        return subprocess.Popen(
            cmdline,
            cwd=str(cwd) if cwd is not None else None,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE if capture_stderr else subprocess.DEVNULL,
            start_new_session=True,
        )
    except FileNotFoundError as e:
        raise SpawnNotFound(cmdline[0]) from e
    except PermissionError as e:
        raise ExecFormatError(cmdline[0]) from e
    except OSError as e:
        if e.errno == errno.ENOEXEC:
            raise ExecFormatError(cmdline[0]) from e
        raise GenericIOError(str(e)) from e


def _terminate(process: subprocess.Popen, pgid: int) -> None:
    """SIGTERM the group, then SIGKILL after a grace period if anything survives."""
    _signal_group(pgid, signal.SIGTERM)
    time.sleep(KILL_GRACE_SECONDS)
    if process.poll() is None or group_alive(pgid):
        print_yellow("Escalating to SIGKILL")
        _signal_group(pgid, signal.SIGKILL)
    process.kill()
    process.wait()


def _sweep_group(pgid: int) -> None:
    """
    Clean up what a finished program left running in its group.

    The leader has already been reaped, so only background children remain.
    """
    if not group_alive(pgid):
        return
    _signal_group(pgid, signal.SIGTERM)
    deadline = time.monotonic() + KILL_GRACE_SECONDS
    while group_alive(pgid) and time.monotonic() < deadline:
        time.sleep(POLL_INTERVAL_SECONDS)
    if group_alive(pgid):
        print_yellow("Escalating to SIGKILL")
        _signal_group(pgid, signal.SIGKILL)


def exec_capture(
    cmdline: list[str],
    cwd: Path | None = None,
    timeout: float = EXECUTION_TIMEOUT_SECONDS,
    capture_stderr: bool = True,
    output_limit: int = OUTPUT_LIMIT_BYTES,
) -> CapturedOutput:
    """
    Run a command to completion or abort it.

    stdout (and stderr, when captured) are read by dedicated threads into one
    byte-counted buffer while this thread polls for exit, timeout, and the
    output limit. When the program exits, anything it left running in its
    group is terminated too.

    Args:
        cmdline: Program followed by its arguments.
        cwd: Working directory for the command.
        timeout: Wall-clock limit in seconds.
        capture_stderr: Capture stderr into the same buffer as stdout.
        output_limit: Maximum total bytes of captured output.

    Returns:
        CapturedOutput with the decoded output and exit code.

    Raises:
        ExecTimeout: The command ran longer than timeout.
        OutputLimitExceeded: The command wrote more than output_limit bytes.
        SpawnNotFound: The program does not exist.
        ExecFormatError: The program cannot be executed.
        GenericIOError: Any other spawn failure.
    """
    if not cmdline:
        return CapturedOutput(text="", exit_code=0)

    process = _spawn(cmdline, cwd, capture_stderr)
    start = time.monotonic()
    pgid = process.pid
    buffer = _OutputBuffer()

    streams = [process.stdout]
    if capture_stderr:
        streams.append(process.stderr)
    readers = [
        threading.Thread(target=_pump, args=(stream, buffer), daemon=True)
        for stream in streams
    ]

    with _tracked_group(pgid):
        for reader in readers:
            reader.start()
        swept = False
        try:
            while True:
                exited = process.poll() is not None
                # A fast writer may exit before the limit is noticed
                if buffer.total > output_limit:
                    _terminate(process, pgid)
                    raise OutputLimitExceeded(buffer.total)
                if exited and not swept:
                    # Background children must not outlive the program or hold its pipes
                    _sweep_group(pgid)
                    swept = True
                    continue
                if exited and not any(r.is_alive() for r in readers):
                    return CapturedOutput(text=buffer.text(), exit_code=process.returncode)
                if time.monotonic() - start > timeout:
                    _terminate(process, pgid)
                    raise ExecTimeout(timeout)
                time.sleep(POLL_INTERVAL_SECONDS)
        finally:
            if process.poll() is None:
                _terminate(process, pgid)
            for reader in readers:
                reader.join()
