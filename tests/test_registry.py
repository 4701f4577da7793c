import json

from miclaw.tools.registry import (
    MainToolDeps,
    bridge_tools,
    bridgeable_tool_names,
    main_agent_tools,
)
from miclaw.tools.tool import to_provider_defs


def _deps():
    return MainToolDeps(send_message=lambda to, content: None)


def test_main_agent_tools_returns_14_unique_tools():
    tools = main_agent_tools(_deps())
    assert len(tools) == 14
    names = [t.name for t in tools]
    assert all(names)
    assert len(set(names)) == 14
    assert "sleep" in names


def test_main_agent_tools_names():
    names = {t.name for t in main_agent_tools(_deps())}
    assert names == {
        "read",
        "write",
        "edit",
        "apply_patch",
        "grep",
        "glob",
        "ls",
        "exec",
        "process",
        "cron",
        "message",
        "sleep",
        "memory_search",
        "memory_get",
    }


def test_to_provider_defs_produces_object_schemas():
    tools = main_agent_tools(_deps())
    defs = to_provider_defs(tools)
    assert len(defs) == 14
    assert [d.name for d in defs] == [t.name for t in tools]
    for d in defs:
        params = d.parameters
        if isinstance(params, (str, bytes)):
            params = json.loads(params)
        assert params["type"] == "object"


def test_bridge_tools_match_bridgeable_names():
    tools = bridge_tools()
    assert len(tools) == 8
    assert {t.name for t in tools} == set(bridgeable_tool_names())


def test_bridgeable_names_exclude_agent_only_tools():
    names = bridgeable_tool_names()
    assert "exec" in names
    assert "sleep" not in names
    assert "message" not in names
    assert "process" not in names