"""The process tool: inspect and control background processes started by exec."""

from __future__ import annotations

import signal
import threading
from dataclasses import dataclass
from typing import Any, Optional

from miclaw.tools.execute import process_manager
from miclaw.tools.tool import (
    JSONSchema,
    RawParameters,
    Tool,
    ToolCall,
    ToolResult,
    parse_object,
)

ACTION_STATUS = "status"
ACTION_INPUT = "input"
ACTION_SIGNAL = "signal"
ACTION_POLL = "poll"
_ACTIONS = (ACTION_STATUS, ACTION_INPUT, ACTION_SIGNAL, ACTION_POLL)
_SIGNALS = {
    "SIGTERM": signal.SIGTERM,
    "SIGINT": signal.SIGINT,
    "SIGKILL": signal.SIGKILL,
}


@dataclass(frozen=True)
class ProcessParams:
    """Validated parameters of a process tool call."""

    action: str
    pid: int
    data: str = ""
    signal: str = ""


def _typed(data: dict[str, Any], key: str, kind: type, label: str) -> Any:
    value = data.get(key)
    if value is None:
        return None
    if (isinstance(value, bool) and kind is not bool) or not isinstance(value, kind):
        raise ValueError(f"{key} must be {label}")
    return value


def parse_signal_name(name: str) -> signal.Signals:
    """Map SIGTERM, SIGINT or SIGKILL to its signal; raise ValueError otherwise."""
    try:
        return _SIGNALS[name]
    except KeyError:
        raise ValueError("process signal must be SIGTERM, SIGINT, or SIGKILL") from None


def parse_process_params(raw: RawParameters) -> ProcessParams:
    """Validate raw parameters; raise ValueError describing the first problem."""
    try:
        data = parse_object(raw)
        action = _typed(data, "action", str, "a string")
        pid = _typed(data, "pid", int, "an integer")
        payload = _typed(data, "data", str, "a string")
        sig = _typed(data, "signal", str, "a string")
    except ValueError as exc:
        raise ValueError(f"parse process parameters: {exc}") from exc
    if action is None or not action.strip():
        raise ValueError("process parameter action is required")
    if pid is None:
        raise ValueError("process parameter pid is required")
    action = action.strip()
    if action not in _ACTIONS:
        raise ValueError("process action must be one of status, input, signal, poll")
    sig_name = sig.strip().upper() if sig is not None else ""
    if action == ACTION_INPUT and payload is None:
        raise ValueError("process parameter data is required for input action")
    if action == ACTION_SIGNAL:
        if not sig_name:
            raise ValueError("process parameter signal is required for signal action")
        parse_signal_name(sig_name)
    return ProcessParams(action=action, pid=pid, data=payload or "", signal=sig_name)


def format_process_status(running: bool, code: int, runtime: str) -> str:
    """The multi-line status report of a background process."""
    state = "running" if running else "completed"
    return (
        f"state: {state}\n"
        f"running: {'true' if running else 'false'}\n"
        f"exit code: {code}\n"
        f"runtime: {runtime}"
    )


def _dispatch(params: ProcessParams) -> str:
    if params.action == ACTION_STATUS:
        st = process_manager.status(params.pid)
        return format_process_status(st.running, st.exit_code, st.runtime)
    if params.action == ACTION_INPUT:
        process_manager.send_input(params.pid, params.data)
        return f"sent input to process {params.pid}"
    if params.action == ACTION_SIGNAL:
        process_manager.signal(params.pid, parse_signal_name(params.signal))
        return f"sent {params.signal} to process {params.pid}"
    return process_manager.poll(params.pid)


def process_tool() -> Tool:
    """A tool that manages background processes started by exec."""

    def run(call: ToolCall, _cancel: Optional[threading.Event]) -> ToolResult:
        try:
            params = parse_process_params(call.parameters)
            return ToolResult(content=_dispatch(params))
        except (LookupError, RuntimeError, ValueError, OSError) as exc:
            return ToolResult(content=str(exc), is_error=True)

    return Tool(
        name="process",
        description="Manage background processes started by exec",
        parameters=JSONSchema(
            type="object",
            properties={
                "action": JSONSchema(
                    type="string",
                    description="Action to perform: status, input, signal, poll",
                    enum=list(_ACTIONS),
                ),
                "pid": JSONSchema(type="integer", description="Process ID"),
                "data": JSONSchema(
                    type="string",
                    description="Data to write to process stdin for input action",
                ),
                "signal": JSONSchema(
                    type="string",
                    description="Signal name for signal action: SIGTERM, SIGINT, SIGKILL",
                    enum=list(_SIGNALS),
                ),
            },
            required=["action", "pid"],
        ),
        run_fn=run,
    )