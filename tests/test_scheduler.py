import queue
import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from miclaw.tools.scheduler import CronJob, Scheduler

UTC = timezone.utc


class _Clock:
    def __init__(self, start):
        self.value = start

    def __call__(self):
        return self.value


def test_add_list_remove(tmp_path):
    with Scheduler(tmp_path / "cron.db") as s:
        job_id = s.add_job("30 14 * * *", "ping")
        jobs = s.list_jobs()
        assert len(jobs) == 1
        assert (jobs[0].id, jobs[0].expression, jobs[0].prompt) == (job_id, "30 14 * * *", "ping")
        s.remove_job(job_id)
        assert s.list_jobs() == []


def test_add_job_sets_next_run_from_clock(tmp_path):
    clock = _Clock(datetime(2026, 2, 21, 10, 0, tzinfo=UTC))
    with Scheduler(tmp_path / "cron.db", now=clock) as s:
        s.add_job("*/5 * * * *", "pulse")
        assert s.list_jobs()[0].next_run == datetime(2026, 2, 21, 10, 5, tzinfo=UTC)


def test_add_job_rejects_invalid_expression(tmp_path):
    with Scheduler(tmp_path / "cron.db") as s:
        with pytest.raises(ValueError):
            s.add_job("60 * * * *", "ping")
        assert s.list_jobs() == []


def test_job_fires(tmp_path):
    base = datetime(2026, 2, 21, 10, 0, tzinfo=UTC)
    clock = _Clock(base)
    calls = queue.Queue()
    s = Scheduler(tmp_path / "cron.db", now=clock, tick=0.01)
    try:
        s.start(lambda source, content: calls.put((source, content)))
        s.add_job("*/1 * * * *", "ping")
        clock.value = base + timedelta(minutes=1)
        source, content = calls.get(timeout=2)
        assert source == "cron"
        assert content.strip() == "ping"
    finally:
        s.stop()
        s.close()


def test_enqueue_due_advances_next_run(tmp_path):
    base = datetime(2026, 2, 21, 10, 0, tzinfo=UTC)
    clock = _Clock(base)
    got = []
    with Scheduler(tmp_path / "cron.db", now=clock) as s:
        s.add_job("*/5 * * * *", "pulse")
        s.enqueue_due(lambda source, content: got.append(content))
        assert got == []
        clock.value = base + timedelta(minutes=5)
        s.enqueue_due(lambda source, content: got.append(content))
        assert got == ["pulse"]
        assert s.list_jobs()[0].next_run == datetime(2026, 2, 21, 10, 10, tzinfo=UTC)


def test_persistence(tmp_path):
    db_path = tmp_path / "cron.db"
    s = Scheduler(db_path)
    job_id = s.add_job("*/5 * * * *", "pulse")
    s.close()
    with Scheduler(db_path) as s:
        jobs = s.list_jobs()
        assert len(jobs) == 1
        assert (jobs[0].id, jobs[0].expression, jobs[0].prompt) == (job_id, "*/5 * * * *", "pulse")


def test_invalid_persisted_expression_fails_on_open(tmp_path):
    db_path = tmp_path / "cron.db"
    Scheduler(db_path).close()
    conn = sqlite3.connect(db_path)
    with conn:
        conn.execute(
            "INSERT INTO cron_jobs (id, expression, prompt, created_at) VALUES (?, ?, ?, ?)",
            ("bad", "not a cron", "x", None),
        )
    conn.close()
    with pytest.raises(ValueError, match="invalid cron expression"):
        Scheduler(db_path)


def test_next_run(tmp_path):
    clock = _Clock(datetime(2026, 2, 21, 14, 30, tzinfo=UTC))
    with Scheduler(tmp_path / "cron.db", now=clock) as s:
        assert s.next_run("30 14 * * *") == datetime(2026, 2, 22, 14, 30, tzinfo=UTC)
        with pytest.raises(ValueError):
            s.next_run("* * *")


def test_cron_job_to_dict():
    job = CronJob("abc", "*/5 * * * *", "hey", datetime(2026, 2, 21, 10, 5, tzinfo=UTC))
    assert job.to_dict() == {
        "id": "abc",
        "expression": "*/5 * * * *",
        "prompt": "hey",
        "next_run": "2026-02-21T10:05:00Z",
    }