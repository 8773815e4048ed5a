"""Cron-driven trigger scheduler built on APScheduler."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from datetime import tzinfo
from typing import Awaitable, Callable

from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from broadcaster.errors import InvalidSchedule
from broadcaster.models import (
    CronSchedule,
    DailyTimesSchedule,
    IntervalSchedule,
    ScheduleSpec,
)

LOGGER = logging.getLogger(__name__)

Task = Callable[[], Awaitable[object]]

_CRON_WEEKDAYS = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")


def cron_day_of_week(field: str) -> str:
    """Translate a crontab weekday field into APScheduler day names.

    Crontab counts from Sunday (0, and 7 again) while APScheduler numbers
    days from Monday, so numeric values are expanded into explicit names.
    Fields that already use names pass through unchanged.
    """
    if field == "*" or any(char.isalpha() for char in field):
        return field

    days: list[str] = []
    for part in field.split(","):
        base, _, step_text = part.partition("/")
        step = _weekday_number(step_text, field) if step_text else 1
        if base == "*":
            low, high = 0, 6
        elif "-" in base:
            first, _, last = base.partition("-")
            low, high = _weekday_number(first, field), _weekday_number(last, field)
        else:
            low = _weekday_number(base, field)
            high = 6 if step_text else low
        if not 0 <= low <= high <= 7 or step < 1:
            raise InvalidSchedule(f"Invalid day-of-week field: {field!r}")
        for number in range(low, high + 1, step):
            name = _CRON_WEEKDAYS[number % 7]
            if name not in days:
                days.append(name)
    return ",".join(days)


def _weekday_number(text: str, field: str) -> int:
    if not text.isdigit():
        raise InvalidSchedule(f"Invalid day-of-week field: {field!r}")
    return int(text)


class ActiveTrigger:
    """A live recurring registration owned by a TriggerScheduler."""

    def __init__(self, job: Job, expression: str) -> None:
        self.job = job
        self.expression = expression

    @property
    def job_id(self) -> str:
        return self.job.id

    def cancel(self) -> None:
        try:
            self.job.remove()
        except JobLookupError:
            LOGGER.debug("Trigger %s (%s) was already removed", self.job_id, self.expression)

    def __repr__(self) -> str:
        return f"ActiveTrigger(job_id={self.job_id!r}, expression={self.expression!r})"


class TriggerScheduler:
    """Owns every trigger it creates and invokes tasks on each fire.

    Each fire spawns an independent asyncio task and returns immediately, so
    a slow run can overlap the next one. ``stop_all`` only cancels future
    fires; invocations already running are left to finish.
    """

    def __init__(
        self,
        timezone: str | tzinfo | None = None,
        scheduler: AsyncIOScheduler | None = None,
    ) -> None:
        if scheduler is None:
            scheduler = AsyncIOScheduler(timezone=timezone) if timezone else AsyncIOScheduler()
        self._scheduler = scheduler
        self._triggers: list[ActiveTrigger] = []
        self._inflight: set[asyncio.Task[None]] = set()
        self._started = False

    @property
    def active_triggers(self) -> tuple[ActiveTrigger, ...]:
        return tuple(self._triggers)

    @property
    def running(self) -> bool:
        return self._started

    def start(self) -> None:
        """Start firing registered triggers. Requires a running event loop."""

        if not self._started:
            self._scheduler.start()
            self._started = True
            LOGGER.info("Trigger scheduler started with %d trigger(s)", len(self._triggers))

    def shutdown(self) -> None:
        """Cancel all triggers and stop the scheduler. Safe to call repeatedly."""

        self.stop_all()
        if self._started:
            # AsyncIOScheduler may finish shutting down on a later loop iteration.
            self._started = False
            self._scheduler.shutdown(wait=False)
            LOGGER.info("Trigger scheduler shut down")

    def schedule_task(self, expression: str, task: Task) -> ActiveTrigger:
        """Register ``task`` to run on every match of a cron expression."""

        expression = CronSchedule(expression).to_cron()[0]
        trigger = self._build_trigger(expression)
        LOGGER.info("Scheduling task with cron expression: %s", expression)
        return self._register(expression, trigger, task)

    schedule_raw = schedule_task

    def schedule_interval(self, value: int, unit: str, task: Task) -> ActiveTrigger:
        (expression,) = IntervalSchedule(value, unit).to_cron()
        LOGGER.info("Scheduling task every %d %s (%s)", value, unit, expression)
        return self._register(expression, self._build_trigger(expression), task)

    def schedule_daily_times(self, times: Sequence[str], task: Task) -> list[ActiveTrigger]:
        """Register one trigger per daily time, in list order.

        Every time is validated before anything is registered.
        """
        spec = DailyTimesSchedule(times)
        prepared = [
            (time_of_day, expression, self._build_trigger(expression))
            for time_of_day, expression in zip(spec.times, spec.to_cron())
        ]
        triggers = []
        for time_of_day, expression, trigger in prepared:
            LOGGER.info("Scheduling task for daily time: %s (%s)", time_of_day, expression)
            triggers.append(self._register(expression, trigger, task))
        return triggers

    def schedule(self, spec: ScheduleSpec, task: Task) -> list[ActiveTrigger]:
        """Register triggers for any schedule spec variant."""

        if isinstance(spec, IntervalSchedule):
            return [self.schedule_interval(spec.value, spec.unit, task)]
        if isinstance(spec, DailyTimesSchedule):
            return self.schedule_daily_times(spec.times, task)
        if isinstance(spec, CronSchedule):
            return [self.schedule_raw(spec.expr, task)]
        raise InvalidSchedule(f"Unsupported schedule spec: {spec!r}")

    def stop_all(self) -> None:
        """Cancel every owned trigger. Safe to call repeatedly."""

        if not self._triggers:
            return
        LOGGER.info("Stopping %d scheduled task(s)", len(self._triggers))
        for trigger in self._triggers:
            trigger.cancel()
        self._triggers = []

    async def join(self) -> None:
        """Wait for invocations that are currently running."""

        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)

    def _build_trigger(self, expression: str) -> CronTrigger:
        fields = expression.split()
        second = fields.pop(0) if len(fields) == 6 else "0"
        minute, hour, day, month, day_of_week = fields
        try:
            return CronTrigger(
                second=second,
                minute=minute,
                hour=hour,
                day=day,
                month=month,
                day_of_week=cron_day_of_week(day_of_week),
                timezone=self._scheduler.timezone,
            )
        except ValueError as exc:
            raise InvalidSchedule(f"Invalid cron expression {expression!r}: {exc}") from exc

    def _register(self, expression: str, trigger: CronTrigger, task: Task) -> ActiveTrigger:
        job = self._scheduler.add_job(self._fire, trigger, args=[expression, task], name=expression)
        active = ActiveTrigger(job, expression)
        self._triggers.append(active)
        return active

    async def _fire(self, expression: str, task: Task) -> None:
        invocation = asyncio.create_task(self._invoke(expression, task), name=f"trigger:{expression}")
        self._inflight.add(invocation)
        invocation.add_done_callback(self._inflight.discard)

    async def _invoke(self, expression: str, task: Task) -> None:
        LOGGER.info("Running scheduled task: %s", expression)
        try:
            await task()
        except Exception:  # noqa: BLE001
            LOGGER.exception("Error in scheduled task (%s)", expression)
