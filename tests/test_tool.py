import json

import pytest

from miclaw.tools.tool import (
    JSONSchema,
    Tool,
    ToolCall,
    ToolResult,
    parse_object,
    sleep_tool,
    to_provider_defs,
)


def _echo_tool():
    def run(call, cancel):
        return ToolResult(content=f"called {call.name}")

    return Tool(
        name="echo",
        description="Echo the call name",
        parameters=JSONSchema(
            type="object",
            required=["path"],
            properties={"path": JSONSchema(type="string", description="path to file")},
        ),
        run_fn=run,
    )


def test_sleep_tool_definition():
    tl = sleep_tool()
    assert tl.name == "sleep"
    assert tl.description != ""
    assert tl.parameters.type == "object"


def test_sleep_tool_run():
    got = sleep_tool().run(ToolCall(name="sleep", parameters=None))
    assert got.is_error is False
    assert got.content == "sleeping"


def test_tool_run_passes_call_to_run_function():
    got = _echo_tool().run(ToolCall(id="1", name="echo", parameters="{}"))
    assert got == ToolResult(content="called echo", is_error=False)


def test_to_provider_defs_produces_valid_json_objects():
    tools = [sleep_tool(), _echo_tool()]
    defs = to_provider_defs(tools)
    assert [d.name for d in defs] == ["sleep", "echo"]
    for d in defs:
        body = json.loads(d.parameters)
        assert isinstance(body, dict)
    echo_body = json.loads(defs[1].parameters)
    assert echo_body["required"] == ["path"]
    assert echo_body["properties"]["path"]["type"] == "string"


def test_json_schema_round_trip():
    raw = JSONSchema(
        type="object",
        required=["path"],
        properties={"path": JSONSchema(type="string", description="path to file")},
    )
    text = json.dumps(raw.to_dict())
    got = JSONSchema.from_dict(json.loads(text))
    assert got == raw


def test_object_schema_includes_empty_properties():
    data = JSONSchema(type="object").to_dict()
    assert data["properties"] == {}


def test_string_schema_omits_empty_fields():
    data = JSONSchema(type="string", description="name").to_dict()
    assert data == {"type": "string", "description": "name"}


def test_schema_enum_round_trip():
    raw = JSONSchema(type="string", enum=["list", "add", "remove"])
    assert JSONSchema.from_dict(raw.to_dict()).enum == ["list", "add", "remove"]


@pytest.mark.parametrize("raw", [None, "", b"", "null"])
def test_parse_object_empty_inputs(raw):
    assert parse_object(raw) == {}


def test_parse_object_decodes_bytes():
    assert parse_object(b'{"a": 1}') == {"a": 1}


def test_parse_object_rejects_array():
    with pytest.raises(ValueError):
        parse_object("[1, 2]")


def test_parse_object_rejects_invalid_json():
    with pytest.raises(ValueError):
        parse_object("{not json")