"""A cron scheduler that persists jobs in SQLite and injects prompts when due."""

from __future__ import annotations

import sqlite3
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from miclaw.tools.cron_expr import CronExpr, parse_cron_expr

CRON_SOURCE = "cron"
DEFAULT_TICK = 60.0

_CREATE_TABLE = """CREATE TABLE IF NOT EXISTS cron_jobs (
    id TEXT PRIMARY KEY,
    expression TEXT NOT NULL,
    prompt TEXT NOT NULL,
    created_at DATETIME
)"""
_INSERT_JOB = "INSERT INTO cron_jobs (id, expression, prompt, created_at) VALUES (?, ?, ?, ?)"

Inject = Callable[[str, str], None]


def _as_utc(t: datetime) -> datetime:
    if t.tzinfo is None:
        return t.replace(tzinfo=timezone.utc)
    return t.astimezone(timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _format_time(t: datetime) -> str:
    t = _as_utc(t)
    text = t.strftime("%Y-%m-%dT%H:%M:%S")
    if t.microsecond:
        text += "." + f"{t.microsecond:06d}".rstrip("0")
    return text + "Z"


@dataclass(frozen=True)
class CronJob:
    """A persisted cron job as reported to callers."""

    id: str
    expression: str
    prompt: str
    next_run: datetime

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready form, with ``next_run`` in RFC 3339."""
        return {
            "id": self.id,
            "expression": self.expression,
            "prompt": self.prompt,
            "next_run": _format_time(self.next_run),
        }


@dataclass
class _ScheduledJob:
    id: str
    expression: str
    prompt: str
    expr: CronExpr
    next_run: datetime


class Scheduler:
    """Runs cron jobs and hands their prompts to an inject callback."""

    def __init__(
        self,
        db_path: str,
        *,
        now: Optional[Callable[[], datetime]] = None,
        tick: float = DEFAULT_TICK,
    ) -> None:
        self.now = now or _utcnow
        self.tick = tick
        self._lock = threading.Lock()
        self._db_lock = threading.Lock()
        self._jobs: dict[str, _ScheduledJob] = {}
        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None
        self._db = sqlite3.connect(str(db_path), check_same_thread=False)
        try:
            with self._db:
                self._db.execute(_CREATE_TABLE)
            self._refresh_jobs()
        except Exception:
            self._db.close()
            raise

    def __enter__(self) -> Scheduler:
        return self

    def __exit__(self, *exc: object) -> None:
        self.stop()
        self.close()

    def close(self) -> None:
        """Close the job database."""
        with self._db_lock:
            self._db.close()

    def start(self, inject: Inject) -> None:
        """Check for due jobs now and then every tick, on a background thread."""
        with self._lock:
            stop_event = threading.Event()
            self._stop_event = stop_event
            tick = self.tick if self.tick > 0 else DEFAULT_TICK
            thread = threading.Thread(
                target=self._loop, args=(stop_event, inject, tick), daemon=True
            )
            self._thread = thread
        thread.start()

    def _loop(self, stop_event: threading.Event, inject: Inject, tick: float) -> None:
        while True:
            self.enqueue_due(inject)
            if stop_event.wait(tick):
                return

    def stop(self) -> None:
        """Stop the background loop if it is running."""
        with self._lock:
            stop_event, thread = self._stop_event, self._thread
            self._stop_event = None
            self._thread = None
        if stop_event is not None:
            stop_event.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def add_job(self, expression: str, prompt: str) -> str:
        """Persist a new job and return its id; raise ValueError on a bad expression."""
        expr = parse_cron_expr(expression)
        job_id = str(uuid.uuid4())
        next_run = expr.next_after(_as_utc(self.now()))
        created_at = _as_utc(self.now()).isoformat()
        with self._db_lock, self._db:
            self._db.execute(_INSERT_JOB, (job_id, expression, prompt, created_at))
        with self._lock:
            self._jobs[job_id] = _ScheduledJob(job_id, expression, prompt, expr, next_run)
        return job_id

    def remove_job(self, job_id: str) -> None:
        """Delete a job; removing an unknown id is not an error."""
        with self._db_lock, self._db:
            self._db.execute("DELETE FROM cron_jobs WHERE id = ?", (job_id,))
        with self._lock:
            self._jobs.pop(job_id, None)

    def list_jobs(self) -> list[CronJob]:
        """All scheduled jobs with their next run time."""
        with self._lock:
            return [
                CronJob(job.id, job.expression, job.prompt, job.next_run)
                for job in self._jobs.values()
            ]

    def next_run(self, expression: str) -> datetime:
        """When ``expression`` would next fire, counting from now."""
        return parse_cron_expr(expression).next_after(self.now())

    def enqueue_due(self, inject: Inject) -> None:
        """Inject the prompt of every due job and schedule its next run."""
        due: list[str] = []
        with self._lock:
            now = _as_utc(self.now())
            for job in self._jobs.values():
                if now < job.next_run:
                    continue
                due.append(job.prompt)
                job.next_run = job.expr.next_after(now)
        for prompt in due:
            inject(CRON_SOURCE, prompt)

    def _refresh_jobs(self) -> None:
        with self._db_lock:
            rows = self._db.execute(
                "SELECT id, expression, prompt FROM cron_jobs ORDER BY id"
            ).fetchall()
        for job_id, expression, prompt in rows:
            try:
                expr = parse_cron_expr(expression)
            except ValueError as exc:
                raise ValueError(f'invalid cron expression "{expression}": {exc}') from exc
            next_run = expr.next_after(_as_utc(self.now()))
            self._jobs[job_id] = _ScheduledJob(job_id, expression, prompt, expr, next_run)