"""The cron tool: list, add and remove scheduled prompts."""

from __future__ import annotations

import json
import sqlite3
import threading
from dataclasses import dataclass
from typing import Any, Optional

from miclaw.tools.scheduler import Scheduler
from miclaw.tools.tool import (
    JSONSchema,
    RawParameters,
    Tool,
    ToolCall,
    ToolResult,
    parse_object,
)

ACTION_LIST = "list"
ACTION_ADD = "add"
ACTION_REMOVE = "remove"
_ACTIONS = (ACTION_LIST, ACTION_ADD, ACTION_REMOVE)


@dataclass(frozen=True)
class CronParams:
    """Validated parameters of a cron tool call."""

    action: str
    id: str = ""
    expression: str = ""
    prompt: str = ""


def _optional_str(data: dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string")
    return value


def parse_cron_params(raw: RawParameters) -> CronParams:
    """Validate raw parameters; raise ValueError describing the first problem."""
    data = parse_object(raw)
    action = _optional_str(data, "action")
    job_id = _optional_str(data, "id")
    expression = _optional_str(data, "expression")
    prompt = _optional_str(data, "prompt")
    if action is None or not action.strip():
        raise ValueError("action is required")
    action = action.strip()
    if action not in _ACTIONS:
        raise ValueError("invalid action")
    if action == ACTION_ADD:
        if expression is None:
            raise ValueError("expression is required")
        if prompt is None:
            raise ValueError("prompt is required")
    if action == ACTION_REMOVE and job_id is None:
        raise ValueError("id is required")
    return CronParams(
        action=action,
        id=job_id or "",
        expression=expression or "",
        prompt=prompt or "",
    )


def cron_tool(scheduler: Scheduler) -> Tool:
    """A tool that manages recurring prompts on ``scheduler``."""

    def run(call: ToolCall, _cancel: Optional[threading.Event]) -> ToolResult:
        try:
            params = parse_cron_params(call.parameters)
            if params.action == ACTION_LIST:
                jobs = [job.to_dict() for job in scheduler.list_jobs()]
                return ToolResult(content=json.dumps(jobs, separators=(",", ":")))
            if params.action == ACTION_ADD:
                job_id = scheduler.add_job(params.expression, params.prompt)
                return ToolResult(content=json.dumps({"id": job_id}, separators=(",", ":")))
            scheduler.remove_job(params.id)
            return ToolResult(content=f"removed cron job {params.id}")
        except (ValueError, sqlite3.Error) as exc:
            return ToolResult(content=str(exc), is_error=True)

    return Tool(
        name="cron",
        description="Schedule recurring prompts",
        parameters=JSONSchema(
            type="object",
            required=["action"],
            properties={
                "action": JSONSchema(
                    type="string",
                    enum=list(_ACTIONS),
                    description="Action to perform: list, add, remove",
                ),
                "id": JSONSchema(type="string", description="Cron job ID for remove"),
                "expression": JSONSchema(type="string", description="Cron expression"),
                "prompt": JSONSchema(type="string", description="Prompt text to inject"),
            },
        ),
        run_fn=run,
    )