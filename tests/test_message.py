import pytest

from miclaw.tools.message import message_tool, parse_message_target
from miclaw.tools.tool import ToolCall


class Recorder:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def __call__(self, to, content):
        self.calls.append((to, content))
        if self.error is not None:
            raise self.error


def run_message(sender, params):
    return message_tool(sender).run(ToolCall(name="message", parameters=params))


def test_sends_signal_message():
    sender = Recorder()
    got = run_message(sender, {"to": "signal:dm:user-1", "content": "hi"})
    assert not got.is_error
    assert sender.calls == [("signal:dm:user-1", "hi")]
    assert got.content == "message sent to signal:dm:user-1"


def test_trims_target_and_content():
    sender = Recorder()
    got = run_message(sender, {"to": "  signal:dm:user-1 ", "content": "  hi  "})
    assert sender.calls == [("signal:dm:user-1", "hi")]
    assert got.content == "message sent to signal:dm:user-1"


def test_rejects_invalid_target():
    sender = Recorder()
    got = run_message(sender, {"to": "badformat", "content": "hi"})
    assert got.is_error
    assert sender.calls == []
    assert "to must include channel and address" in got.content


def test_rejects_unsupported_channel():
    sender = Recorder()
    got = run_message(sender, {"to": "slack:channel", "content": "hi"})
    assert got.is_error
    assert sender.calls == []
    assert "unsupported channel" in got.content


def test_rejects_empty_content():
    sender = Recorder()
    got = run_message(sender, {"to": "signal:dm:user-1", "content": "   "})
    assert got.is_error
    assert sender.calls == []
    assert "content is required" in got.content


def test_rejects_missing_target():
    sender = Recorder()
    got = run_message(sender, {"content": "hi"})
    assert got.is_error
    assert got.content == "to is required"


def test_propagates_sender_error():
    sender = Recorder(error=RuntimeError("gateway failure"))
    got = run_message(sender, {"to": "signal:dm:user-1", "content": "hi"})
    assert got.is_error
    assert "gateway failure" in got.content


def test_parse_message_target_splits_once():
    assert parse_message_target("signal:dm:user-1") == ("signal", "dm:user-1")


@pytest.mark.parametrize("raw", ["badformat", "signal:", "signal:   "])
def test_parse_message_target_rejects(raw):
    with pytest.raises(ValueError, match="channel and address"):
        parse_message_target(raw)