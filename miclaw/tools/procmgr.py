"""Background processes started from shell commands, with capped output."""

from __future__ import annotations

import os
import signal
import subprocess
import threading
import time
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Optional, Union

PROC_OUTPUT_CHARS = 100_000

Signal = Union[signal.Signals, int]


@dataclass(frozen=True)
class ProcessStatus:
    """A snapshot of a managed process."""

    running: bool
    exit_code: int
    runtime: str


@dataclass(eq=False)
class _ManagedProc:
    popen: subprocess.Popen
    output: bytearray = field(default_factory=bytearray)
    start_time: float = field(default_factory=time.monotonic)
    end_time: float = 0.0
    exit_code: int = 0
    finished: bool = False


def cap_buffer(output: bytearray, data: bytes, limit: int) -> None:
    """Append ``data`` to ``output`` in place, keeping only the last ``limit`` bytes."""
    if len(data) >= limit:
        output[:] = data[len(data) - limit:]
        return
    if len(output) + len(data) <= limit:
        output += data
        return
    del output[: len(output) + len(data) - limit]
    output += data


def _decimal(value: int, unit: int) -> str:
    whole, frac = divmod(value, unit)
    if not frac:
        return str(whole)
    width = len(str(unit)) - 1
    return f"{whole}.{frac:0{width}d}".rstrip("0")


def _format_duration(seconds: float) -> str:
    ns = max(int(round(seconds * 1e9)), 0)
    if ns == 0:
        return "0s"
    if ns < 1_000:
        return f"{ns}ns"
    if ns < 1_000_000:
        return _decimal(ns, 1_000) + "µs"
    if ns < 1_000_000_000:
        return _decimal(ns, 1_000_000) + "ms"
    hours, rest = divmod(ns, 3_600 * 10**9)
    minutes, rest = divmod(rest, 60 * 10**9)
    text = ""
    if hours:
        text += f"{hours}h"
    if hours or minutes:
        text += f"{minutes}m"
    return text + _decimal(rest, 10**9) + "s"


def _exit_code(returncode: int) -> int:
    return returncode if returncode >= 0 else -1


class ProcManager:
    """Starts shell commands in their own process group and tracks them by pid."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._procs: dict[int, _ManagedProc] = {}

    def start(self, command: str, working_dir: Optional[str] = None) -> int:
        """Run ``command`` with ``sh -c`` in the background and return its pid.

        Completed processes are forgotten first. Raises OSError when the
        command cannot be started.
        """
        self._reap()
        popen = subprocess.Popen(
            ["sh", "-c", command],
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            cwd=working_dir or None,
            start_new_session=True,
        )
        proc = _ManagedProc(popen)
        with self._lock:
            self._procs[popen.pid] = proc
        threading.Thread(target=self._watch, args=(proc,), daemon=True).start()
        return popen.pid

    def status(self, pid: int) -> ProcessStatus:
        """Whether the process runs, its exit code and how long it ran."""
        with self._lock:
            proc = self._get(pid)
            end = proc.end_time if proc.finished else time.monotonic()
            return ProcessStatus(
                running=not proc.finished,
                exit_code=proc.exit_code,
                runtime=_format_duration(end - proc.start_time),
            )

    def signal(self, pid: int, sig: Signal) -> None:
        """Send ``sig`` to the process group of a running process."""
        with self._lock:
            proc = self._get(pid)
            if proc.finished:
                raise RuntimeError(f"process {pid} already completed")
        os.killpg(pid, sig)

    def poll(self, pid: int) -> str:
        """The retained combined output of the process so far."""
        with self._lock:
            return bytes(self._get(pid).output).decode("utf-8", errors="replace")

    def send_input(self, pid: int, data: str) -> None:
        """Write ``data`` to the stdin of a running process."""
        with self._lock:
            proc = self._get(pid)
            if proc.finished:
                raise RuntimeError(f"process {pid} already completed")
            stdin = proc.popen.stdin
        try:
            stdin.write(data.encode("utf-8"))
            stdin.flush()
        except ValueError as exc:
            raise RuntimeError(f"process {pid} already completed") from exc

    def _get(self, pid: int) -> _ManagedProc:
        proc = self._procs.get(pid)
        if proc is None:
            raise LookupError(f"process {pid} not found")
        return proc

    def _watch(self, proc: _ManagedProc) -> None:
        stream = proc.popen.stdout
        for chunk in iter(lambda: stream.read1(65536), b""):
            with self._lock:
                cap_buffer(proc.output, chunk, PROC_OUTPUT_CHARS)
        stream.close()
        returncode = proc.popen.wait()
        with suppress(OSError, ValueError):
            proc.popen.stdin.close()
        with self._lock:
            proc.exit_code = _exit_code(returncode)
            proc.end_time = time.monotonic()
            proc.finished = True

    def _reap(self) -> None:
        with self._lock:
            for pid in [pid for pid, proc in self._procs.items() if proc.finished]:
                del self._procs[pid]