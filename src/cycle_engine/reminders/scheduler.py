"""Cycle reminder scheduler.

Runs on its own schedule (every few hours) and decides, per user, whether
a reminder is due.  For each due user it computes the current cycle state
through the engine and hands a ready-made ReminderContext to an async
delivery callback.  Message generation and delivery live behind that
callback; this module never talks to a network itself.

Skip rules, checked in order:
    1. reminders disabled for the user
    2. last reminder sent less than ``min_interval_hours`` ago
    3. last reminder already sent on the same local day
    4. no computable cycle state (no periods, or today precedes them)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from src.cycle_engine.base import CyclePhase
from src.cycle_engine.engine import CycleEngine
from src.cycle_engine.local_day import local_day_number, parse_timestamp

logger = logging.getLogger("cyclecast.engine.reminders.scheduler")

STATUS_SENT = "sent"
STATUS_FAILED = "failed"
STATUS_SKIPPED = "skipped"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ReminderJob:
    """One user's snapshot for a reminder run.

    Attributes:
        user_id:          Opaque user identifier, passed through untouched.
        periods:          Logged period records.
        settings:         Cycle settings (model, mapping or None).
        symptoms:         Symptoms logged today.
        moods:            Moods logged today.
        offset_minutes:   Caller's UTC offset; inferred from periods when None.
        last_reminder_at: When the previous reminder was sent (None = never).
        enabled:          The user's reminder opt-in.
        name:             Display name for the message, if any.
    """

    user_id: Any
    periods: list[Any] = field(default_factory=list)
    settings: Any = None
    symptoms: list[Any] = field(default_factory=list)
    moods: list[Any] = field(default_factory=list)
    offset_minutes: Any = None
    last_reminder_at: Any = None
    enabled: bool = True
    name: str | None = None


@dataclass
class ReminderContext:
    """What the delivery callback needs to write a reminder."""

    user_id: Any
    name: str | None
    phase: CyclePhase
    cycle_day: int
    phase_description: str
    is_on_period: bool
    days_until_next_period: int
    symptom_types: list[str]
    mood_types: list[str]
    avg_cycle_length: int
    avg_period_length: int
    offset_minutes: int | float


@dataclass
class ReminderResult:
    """Outcome of one job: 'sent', 'failed' or 'skipped'."""

    user_id: Any
    status: str
    reason: str | None = None
    error: str | None = None
    context: ReminderContext | None = None
    finished_at: datetime = field(default_factory=_utc_now)


def _entry_types(entries: list[Any]) -> list[str]:
    types = []
    for entry in entries:
        value = entry.get("type") if isinstance(entry, dict) else getattr(entry, "type", None)
        if value:
            types.append(str(value))
    return types


class ReminderScheduler:
    """Decide which users are due a reminder and dispatch them.

    Jobs run concurrently up to ``max_concurrent`` at a time.  A failing
    callback fails only its own job.

    Usage::

        scheduler = ReminderScheduler(on_reminder=notifier.send)
        for job in jobs:
            scheduler.enqueue(job)
        results = await scheduler.run_all()
        scheduler.summary()   # {'total': 3, 'sent': 2, 'failed': 0, 'skipped': 1}
    """

    def __init__(
        self,
        on_reminder: Callable[[ReminderContext], Awaitable[Any]],
        engine: CycleEngine | None = None,
        min_interval_hours: float = 3,
        max_concurrent: int = 5,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            on_reminder:        Async callback(ReminderContext).  Returning
                                False marks the job failed; raising does too.
            engine:             Engine used for cycle math; shares ``clock``.
            min_interval_hours: Minimum gap between two reminders for one user.
            max_concurrent:     Maximum number of jobs in flight.
            clock:              Zero-argument callable returning "now".
        """
        self._on_reminder = on_reminder
        self._clock = clock or _utc_now
        self._engine = engine or CycleEngine(clock=self._clock)
        self._min_interval_hours = min_interval_hours
        self._max_concurrent = max(1, max_concurrent)
        self._queue: list[ReminderJob] = []
        self._results: list[ReminderResult] = []

    def enqueue(self, job: ReminderJob) -> None:
        self._queue.append(job)
        logger.debug("Enqueued reminder job for %s", job.user_id)

    @property
    def pending(self) -> int:
        return len(self._queue)

    def should_remind(self, job: ReminderJob, now: datetime | None = None) -> tuple[bool, str | None]:
        """Apply the interval rules.

        Returns:
            ``(True, None)`` when due, else ``(False, reason)``.
        """
        if not job.enabled:
            return False, "disabled"
        last = parse_timestamp(job.last_reminder_at)
        if last is None:
            return True, None
        now = parse_timestamp(now or self._clock())
        hours_since = (now - last).total_seconds() / 3600
        if hours_since < self._min_interval_hours:
            return False, f"sent {hours_since:.1f} hours ago"
        offset, _ = self._engine.resolve_offset(job.offset_minutes, periods=job.periods)
        if local_day_number(last, offset) == local_day_number(now, offset):
            return False, "already sent today"
        return True, None

    def build_context(self, job: ReminderJob) -> ReminderContext | None:
        """Compute today's cycle state for the job; None when there is none."""
        offset, _ = self._engine.resolve_offset(job.offset_minutes, periods=job.periods)
        state = self._engine.state(job.periods, job.settings, offset)
        if state is None:
            return None
        return ReminderContext(
            user_id=job.user_id,
            name=job.name,
            phase=state.phase,
            cycle_day=state.cycle_day,
            phase_description=state.phase_description,
            is_on_period=state.is_on_period,
            days_until_next_period=state.days_until_next_period,
            symptom_types=_entry_types(job.symptoms),
            mood_types=_entry_types(job.moods),
            avg_cycle_length=state.avg_cycle_length,
            avg_period_length=state.avg_period_length,
            offset_minutes=offset,
        )

    async def run_all(self) -> list[ReminderResult]:
        """Execute all queued jobs and clear the queue.

        Returns:
            One ReminderResult per job, in enqueue order.
        """
        if not self._queue:
            logger.debug("ReminderScheduler: no jobs in queue")
            self._results = []
            return []

        jobs = list(self._queue)
        self._queue.clear()
        logger.info("ReminderScheduler: running %d jobs", len(jobs))

        semaphore = asyncio.Semaphore(self._max_concurrent)
        outcomes = await asyncio.gather(
            *(self._run_job(job, semaphore) for job in jobs), return_exceptions=True
        )

        self._results = []
        for job, outcome in zip(jobs, outcomes):
            if isinstance(outcome, Exception):
                logger.error("Reminder job for %s crashed: %s", job.user_id, outcome)
                outcome = ReminderResult(
                    user_id=job.user_id, status=STATUS_FAILED, error=str(outcome)
                )
            self._results.append(outcome)

        counts = self.summary()
        logger.info(
            "ReminderScheduler: %d sent, %d failed, %d skipped",
            counts["sent"], counts["failed"], counts["skipped"],
        )
        return self._results

    async def _run_job(self, job: ReminderJob, semaphore: asyncio.Semaphore) -> ReminderResult:
        async with semaphore:
            return await self._execute(job)

    async def _execute(self, job: ReminderJob) -> ReminderResult:
        due, reason = self.should_remind(job)
        if not due:
            logger.debug("Skipping %s: %s", job.user_id, reason)
            return ReminderResult(user_id=job.user_id, status=STATUS_SKIPPED, reason=reason)

        context = self.build_context(job)
        if context is None:
            return ReminderResult(
                user_id=job.user_id, status=STATUS_SKIPPED, reason="no cycle data"
            )

        try:
            delivered = await self._on_reminder(context)
        except Exception as exc:
            logger.warning("Reminder delivery failed for %s: %s", job.user_id, exc)
            return ReminderResult(
                user_id=job.user_id, status=STATUS_FAILED, error=str(exc), context=context
            )
        if delivered is False:
            return ReminderResult(
                user_id=job.user_id, status=STATUS_FAILED, reason="not delivered", context=context
            )
        return ReminderResult(user_id=job.user_id, status=STATUS_SENT, context=context)

    def summary(self) -> dict[str, int]:
        """Counts for the last ``run_all``."""
        return {
            "total": len(self._results),
            STATUS_SENT: sum(1 for r in self._results if r.status == STATUS_SENT),
            STATUS_FAILED: sum(1 for r in self._results if r.status == STATUS_FAILED),
            STATUS_SKIPPED: sum(1 for r in self._results if r.status == STATUS_SKIPPED),
        }
