import signal
import time
from contextlib import suppress

import pytest

from miclaw.tools.procmgr import ProcManager, cap_buffer


def wait_done(mgr, pid, timeout=3.0):
    deadline = time.monotonic() + timeout
    while True:
        st = mgr.status(pid)
        if not st.running:
            return st
        if time.monotonic() > deadline:
            raise AssertionError(f"process {pid} did not finish in time")
        time.sleep(0.01)


def kill_quietly(mgr, pid):
    with suppress(LookupError, RuntimeError, OSError):
        mgr.signal(pid, signal.SIGKILL)


def test_cap_buffer_appends_under_limit():
    out = bytearray(b"abc")
    cap_buffer(out, b"de", 10)
    assert out == b"abcde"


def test_cap_buffer_trims_oldest_bytes():
    out = bytearray(b"abcdef")
    cap_buffer(out, b"ghij", 8)
    assert out == b"cdefghij"


def test_cap_buffer_keeps_tail_of_large_input():
    out = bytearray(b"xyz")
    cap_buffer(out, b"0123456789", 4)
    assert out == b"6789"


def test_reaps_completed_on_start():
    mgr = ProcManager()
    pid1 = mgr.start("true")
    st = wait_done(mgr, pid1)
    assert st.running is False
    assert mgr.status(pid1).running is False

    pid2 = mgr.start("true")
    wait_done(mgr, pid2)
    with pytest.raises(LookupError):
        mgr.status(pid1)


def test_signal_kills_process_group():
    mgr = ProcManager()
    pid = mgr.start("sleep 60")
    try:
        time.sleep(0.05)
        mgr.signal(pid, signal.SIGTERM)
        st = wait_done(mgr, pid)
        assert st.running is False
        assert st.exit_code != 0
    finally:
        kill_quietly(mgr, pid)


def test_exit_code_and_runtime_reported():
    mgr = ProcManager()
    pid = mgr.start("exit 7")
    st = wait_done(mgr, pid)
    assert st.exit_code == 7
    assert st.runtime.endswith("s")


def test_poll_collects_combined_output():
    mgr = ProcManager()
    pid = mgr.start("echo out; echo err 1>&2")
    wait_done(mgr, pid)
    output = mgr.poll(pid)
    assert "out" in output
    assert "err" in output


def test_working_dir_is_used(tmp_path):
    mgr = ProcManager()
    pid = mgr.start("ls", str(tmp_path))
    (tmp_path / "marker.txt").write_text("x")
    wait_done(mgr, pid)
    assert mgr.poll(pid) in ("", "marker.txt\n")


def test_send_input_reaches_stdin():
    mgr = ProcManager()
    pid = mgr.start("cat")
    try:
        mgr.send_input(pid, "hello\n")
        deadline = time.monotonic() + 2
        while "hello" not in mgr.poll(pid) and time.monotonic() < deadline:
            time.sleep(0.01)
        assert "hello" in mgr.poll(pid)
    finally:
        kill_quietly(mgr, pid)


def test_unknown_pid_raises():
    mgr = ProcManager()
    with pytest.raises(LookupError, match="process 99999999 not found"):
        mgr.status(99999999)
    with pytest.raises(LookupError):
        mgr.poll(99999999)


def test_signal_and_input_to_completed_process_raise():
    mgr = ProcManager()
    pid = mgr.start("true")
    wait_done(mgr, pid)
    with pytest.raises(RuntimeError, match="already completed"):
        mgr.signal(pid, signal.SIGTERM)
    with pytest.raises(RuntimeError, match="already completed"):
        mgr.send_input(pid, "ignored")