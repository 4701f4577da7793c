"""The sets of tools offered to the main agent and over the bridge."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from miclaw.tools.cron import cron_tool
from miclaw.tools.edit import edit_tool
from miclaw.tools.execute import exec_tool
from miclaw.tools.glob_search import glob_tool
from miclaw.tools.grep import grep_tool
from miclaw.tools.ls import ls_tool
from miclaw.tools.memory_get import memory_get_tool
from miclaw.tools.memory_search import memory_search_tool
from miclaw.tools.message import SendMessage, message_tool
from miclaw.tools.patch import patch_tool
from miclaw.tools.process import process_tool
from miclaw.tools.read import read_tool
from miclaw.tools.tool import Tool, sleep_tool
from miclaw.tools.write import write_tool

_BRIDGEABLE = frozenset(
    {"read", "write", "edit", "apply_patch", "grep", "glob", "ls", "exec"}
)


@dataclass
class MainToolDeps:
    """What the main agent's tools are built on."""

    memory: Any = None
    embed: Any = None
    scheduler: Any = None
    send_message: Optional[SendMessage] = None


def _unconfigured_sender(to: str, content: str) -> None:
    raise RuntimeError("message sending is not configured")


def main_agent_tools(deps: MainToolDeps) -> list[Tool]:
    """All fourteen tools of the main agent, in a fixed order."""
    return [
        read_tool(),
        write_tool(),
        edit_tool(),
        patch_tool(),
        grep_tool(),
        glob_tool(),
        ls_tool(),
        exec_tool(),
        process_tool(),
        cron_tool(deps.scheduler),
        message_tool(deps.send_message or _unconfigured_sender),
        sleep_tool(),
        memory_search_tool(deps.memory, deps.embed),
        memory_get_tool(deps.memory),
    ]


def bridgeable_tool_names() -> frozenset[str]:
    """Names of the tools that may be run over the bridge."""
    return _BRIDGEABLE


def bridge_tools() -> list[Tool]:
    """The tools served over the bridge."""
    return [
        read_tool(),
        write_tool(),
        edit_tool(),
        patch_tool(),
        grep_tool(),
        glob_tool(),
        ls_tool(),
        exec_tool(),
    ]