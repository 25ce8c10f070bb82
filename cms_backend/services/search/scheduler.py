"""Cron-style scheduling for recurring sync jobs.

Schedules are standard five-field cron expressions
(``minute hour day month weekday``). They are translated into arq's cron
options, so the same expression drives both the in-process loop below and
the arq worker's ``cron_jobs``.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from arq.cron import next_cron

logger = logging.getLogger(__name__)

CronJob = Callable[[], Awaitable[Any]]

# (arq option name, lowest value, highest value)
_CRON_FIELDS = (
    ("minute", 0, 59),
    ("hour", 0, 23),
    ("day", 1, 31),
    ("month", 1, 12),
    ("weekday", 0, 7),
)


def _parse_field(value: str, low: int, high: int) -> Optional[set[int]]:
    """Parse one cron field into a set of values. ``*`` means any (None)."""
    if value == "*":
        return None

    result: set[int] = set()
    for part in value.split(","):
        step = 1
        if "/" in part:
            part, step_text = part.split("/", 1)
            step = int(step_text)
            if step < 1:
                raise ValueError(f"Invalid cron step: {step_text}")
        if part == "*":
            start, end = low, high
        elif "-" in part:
            start_text, end_text = part.split("-", 1)
            start, end = int(start_text), int(end_text)
        else:
            start = end = int(part)
            if step > 1:
                end = high
        if start < low or end > high or start > end:
            raise ValueError(f"Cron value out of range {low}-{high}: {value}")
        result.update(range(start, end + 1, step))
    return result


def parse_cron_expression(expression: str) -> dict[str, set[int]]:
    """Translate a cron expression into arq cron keyword options.

    Cron weekdays count from Sunday (0 or 7); arq counts from Monday.

    Examples:
        "0 3 * * *" -> {"minute": {0}, "hour": {3}}
        "*/15 * * * 1-5" -> {"minute": {0, 15, 30, 45}, "weekday": {0, 1, 2, 3, 4}}
    """
    parts = expression.split()
    if len(parts) != 5:
        raise ValueError(f"Expected 5 cron fields, got {len(parts)}: {expression!r}")

    options: dict[str, set[int]] = {}
    for (name, low, high), part in zip(_CRON_FIELDS, parts):
        values = _parse_field(part, low, high)
        if values is None:
            continue
        if name == "weekday":
            values = {(v - 1) % 7 for v in values}
        options[name] = values
    return options


def next_run_after(expression: str, after: datetime) -> datetime:
    """Next time the expression fires strictly after ``after`` (naive UTC)."""
    return next_cron(after, second=0, microsecond=0, **parse_cron_expression(expression))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class CronScheduler:
    """Runs zero-argument async jobs on cron schedules inside the event loop.

    Each job gets its own loop task; a failing run is logged and the job is
    rescheduled for its next slot.
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._tasks: dict[str, asyncio.Task] = {}

    def add(self, expression: str, job: CronJob, name: Optional[str] = None) -> str:
        """Register a job. Raises ValueError for an invalid expression."""
        parse_cron_expression(expression)
        name = name or getattr(job, "__name__", "job")
        if name in self._tasks:
            raise ValueError(f"Cron job {name!r} is already scheduled")
        self._tasks[name] = asyncio.get_running_loop().create_task(self._run(name, expression, job))
        logger.info("Scheduled %s at %r (UTC)", name, expression)
        return name

    @property
    def jobs(self) -> list[str]:
        return list(self._tasks)

    async def _run(self, name: str, expression: str, job: CronJob) -> None:
        while True:
            now = self._clock()
            run_at = next_run_after(expression, now)
            await asyncio.sleep(max((run_at - now).total_seconds(), 0))
            logger.info("Running scheduled job %s", name)
            try:
                await job()
            except Exception as exc:
                logger.error("Scheduled job %s failed: %s", name, exc, exc_info=True)

    async def stop(self) -> None:
        """Cancel all scheduled jobs."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
