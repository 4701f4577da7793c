"""The exec tool: run shell commands in the foreground or background."""

from __future__ import annotations

import os
import signal
import subprocess
import threading
import time
from contextlib import suppress
from dataclasses import dataclass
from typing import Any, Optional

from miclaw.tools.procmgr import ProcManager
from miclaw.tools.tool import (
    JSONSchema,
    RawParameters,
    Tool,
    ToolCall,
    ToolResult,
    parse_object,
)

EXEC_DEFAULT_TIMEOUT = 1800
EXEC_MAX_OUTPUT_CHARS = 100_000
EXEC_OUTPUT_TRUNCATED = "[output truncated]"
EXEC_KILL_GRACE_SECONDS = 5.0
_POLL_INTERVAL = 0.05
_START_FAILURE = "failed to start command"

process_manager = ProcManager()


@dataclass(frozen=True)
class ExecParams:
    """Validated parameters of an exec tool call."""

    command: str
    timeout: int = EXEC_DEFAULT_TIMEOUT
    working_dir: str = ""
    input: str = ""
    background: bool = False


def _typed(data: dict[str, Any], key: str, kind: type, label: str) -> Any:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) and kind is not bool:
        raise ValueError(f"{key} must be {label}")
    if not isinstance(value, kind):
        raise ValueError(f"{key} must be {label}")
    return value


def parse_exec_params(raw: RawParameters) -> ExecParams:
    """Validate raw parameters; raise ValueError describing the first problem."""
    try:
        data = parse_object(raw)
        command = _typed(data, "command", str, "a string")
        timeout = _typed(data, "timeout", int, "an integer")
        working_dir = _typed(data, "working_dir", str, "a string")
        stdin = _typed(data, "input", str, "a string")
        background = _typed(data, "background", bool, "a boolean")
    except ValueError as exc:
        raise ValueError(f"parse exec parameters: {exc}") from exc
    if not command:
        raise ValueError("exec parameter command is required")
    if timeout is None:
        timeout = EXEC_DEFAULT_TIMEOUT
    if timeout <= 0 or timeout > EXEC_DEFAULT_TIMEOUT:
        raise ValueError(f"exec timeout must be between 1 and {EXEC_DEFAULT_TIMEOUT}")
    return ExecParams(
        command=command,
        timeout=timeout,
        working_dir=working_dir or "",
        input=stdin or "",
        background=bool(background),
    )


def truncate_exec_output(raw: str) -> str:
    """Cut output longer than the limit and mark it as truncated."""
    if len(raw) <= EXEC_MAX_OUTPUT_CHARS:
        return raw
    room = EXEC_MAX_OUTPUT_CHARS - len(EXEC_OUTPUT_TRUNCATED) - 1
    if room < 0:
        return EXEC_OUTPUT_TRUNCATED
    return raw[:room] + "\n" + EXEC_OUTPUT_TRUNCATED


def format_exec_result(exit_code: int, status: str, output: str) -> str:
    """``exit code: N``, then ``; status`` if any, then the output on new lines."""
    result = f"exit code: {exit_code}"
    if status:
        result += "; " + status
    if output:
        result += "\n" + output
    return result


def _await_done(
    done: threading.Event, timeout: float, cancel: Optional[threading.Event]
) -> str:
    deadline = time.monotonic() + timeout
    while True:
        if done.is_set():
            return ""
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return "timeout"
        if done.wait(min(_POLL_INTERVAL, remaining)):
            return ""
        if cancel is not None and cancel.is_set():
            return "canceled"


def _terminate(popen: subprocess.Popen, done: threading.Event) -> None:
    with suppress(ProcessLookupError, PermissionError):
        os.killpg(popen.pid, signal.SIGTERM)
    if done.wait(EXEC_KILL_GRACE_SECONDS):
        return
    with suppress(ProcessLookupError, PermissionError):
        os.killpg(popen.pid, signal.SIGKILL)
    done.wait()


def _feed(popen: subprocess.Popen, data: bytes) -> None:
    with suppress(OSError, ValueError):
        popen.stdin.write(data)
    with suppress(OSError, ValueError):
        popen.stdin.close()


def run_foreground_command(
    params: ExecParams, cancel: Optional[threading.Event] = None
) -> tuple[int, str, str]:
    """Run the command and wait; return ``(exit_code, output, status)``.

    ``status`` is empty on normal completion, ``timeout`` or ``canceled`` when
    the process group was terminated, or a start failure message.
    """
    try:
        popen = subprocess.Popen(
            ["sh", "-c", params.command],
            stdin=subprocess.PIPE if params.input else subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            cwd=params.working_dir or None,
            start_new_session=True,
        )
    except OSError as exc:
        return -1, "", f"{_START_FAILURE}: {exc}"

    output = bytearray()
    lock = threading.Lock()
    done = threading.Event()

    def collect() -> None:
        for chunk in iter(lambda: popen.stdout.read1(65536), b""):
            with lock:
                output.extend(chunk)
        popen.stdout.close()
        popen.wait()
        done.set()

    if params.input:
        threading.Thread(
            target=_feed, args=(popen, params.input.encode("utf-8")), daemon=True
        ).start()
    threading.Thread(target=collect, daemon=True).start()

    status = _await_done(done, params.timeout, cancel)
    if status:
        _terminate(popen, done)
    returncode = popen.returncode
    exit_code = returncode if returncode >= 0 else -1
    with lock:
        text = bytes(output).decode("utf-8", errors="replace")
    return exit_code, truncate_exec_output(text), status


def _run_background(params: ExecParams) -> ToolResult:
    try:
        pid = process_manager.start(params.command, params.working_dir or None)
    except OSError as exc:
        return ToolResult(content=f"{_START_FAILURE}: {exc}", is_error=True)
    return ToolResult(content=f"started background process {pid}")


def exec_tool() -> Tool:
    """A tool that runs shell commands and reports exit code and output."""

    def run(call: ToolCall, cancel: Optional[threading.Event]) -> ToolResult:
        try:
            params = parse_exec_params(call.parameters)
        except ValueError as exc:
            return ToolResult(content=str(exc), is_error=True)
        if params.background:
            return _run_background(params)
        exit_code, output, status = run_foreground_command(params, cancel)
        return ToolResult(
            content=format_exec_result(exit_code, status, output),
            is_error=status.startswith(_START_FAILURE),
        )

    return Tool(
        name="exec",
        description="Execute a shell command and return combined stdout/stderr output",
        parameters=JSONSchema(
            type="object",
            properties={
                "command": JSONSchema(type="string", description="Shell command to execute"),
                "timeout": JSONSchema(
                    type="integer",
                    description="Execution timeout in seconds (default: 1800)",
                ),
                "working_dir": JSONSchema(
                    type="string", description="Directory to execute the command in"
                ),
                "input": JSONSchema(type="string", description="Data piped to stdin"),
                "background": JSONSchema(
                    type="boolean", description="Run in background and return process ID"
                ),
            },
            required=["command"],
        ),
        run_fn=run,
    )