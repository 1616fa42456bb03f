"""Cron scheduling for portainer-backup

Accepts five (minute precision), six (leading seconds) or seven (trailing
year) field cron expressions and fires one callback per matching tick.
A tick that fires while the previous one is still running is skipped.
"""

import re
import threading
from datetime import datetime
from typing import Callable, Optional

from apscheduler.schedulers.base import BaseScheduler
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from portainer_backup.logger import Logger, get_logger

JOB_ID = "portainer_backup"

_DAY_NAMES = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")
_DAY_NUMBER = re.compile(r"(?<!/)\b\d+\b")


def _day_of_week(field: str) -> str:
    """Map cron day numbers (0 or 7 = Sunday) to APScheduler day names"""
    return _DAY_NUMBER.sub(lambda m: _DAY_NAMES[int(m.group(0)) % 7], field)


def build_trigger(expression: str) -> CronTrigger:
    """Build a CronTrigger from a cron expression

    Raises:
        ValueError: if the expression has the wrong number of fields or
            any field is invalid
    """
    fields = expression.split()
    if len(fields) == 5:
        second, year = "0", None
        minute, hour, day, month, day_of_week = fields
    elif len(fields) == 6:
        year = None
        second, minute, hour, day, month, day_of_week = fields
    elif len(fields) == 7:
        second, minute, hour, day, month, day_of_week, year = fields
    else:
        raise ValueError(f"Expected 5, 6 or 7 cron fields, got {len(fields)}: [{expression}]")

    return CronTrigger(
        second=second,
        minute=minute,
        hour=hour,
        day=day,
        month=month,
        day_of_week=_day_of_week(day_of_week),
        year=year,
    )


def validate(expression: str) -> bool:
    """True if ``expression`` is a usable cron expression"""
    try:
        build_trigger(expression)
    except (ValueError, TypeError):
        return False
    return True


class CronScheduleAdapter:
    """Runs a callback on every tick of a cron expression

    Each tick is isolated: an exception is logged and the schedule keeps
    running. Ticks never overlap.
    """

    def __init__(
        self,
        expression: str,
        scheduler: Optional[BaseScheduler] = None,
        logger: Optional[Logger] = None,
    ):
        self.expression = expression
        self.trigger = build_trigger(expression)
        self.scheduler = scheduler or BlockingScheduler()
        self.logger = logger or get_logger()
        self._callback: Optional[Callable[[], object]] = None
        self._running = threading.Lock()
        self.ticks = 0
        self.skipped = 0

    def on_tick(self, callback: Callable[[], object]) -> None:
        """Register ``callback`` to run on every tick"""
        self._callback = callback
        self.scheduler.add_job(
            self.run_tick,
            trigger=self.trigger,
            id=JOB_ID,
            name="Scheduled Backup",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=3600,
            replace_existing=True,
        )
        self.logger.info("Backup scheduled", schedule=self.expression, next_run=str(self.next_fire_time()))

    def next_fire_time(self, now: Optional[datetime] = None) -> Optional[datetime]:
        now = now or datetime.now(self.trigger.timezone)
        return self.trigger.get_next_fire_time(None, now)

    def run_tick(self) -> bool:
        """Run one tick

        Returns:
            True if the callback ran, False if it was skipped because the
            previous tick is still running
        """
        if self._callback is None:
            raise RuntimeError("No tick callback registered")

        if not self._running.acquire(blocking=False):
            self.skipped += 1
            self.logger.warning("Previous scheduled run still in progress; tick skipped", schedule=self.expression)
            return False

        self.ticks += 1
        try:
            self.logger.info("Scheduled run started", tick=self.ticks)
            self._callback()
            self.logger.info("Scheduled run completed", tick=self.ticks)
        except Exception as e:
            self.logger.error("Scheduled run failed", tick=self.ticks, error=str(e))
        finally:
            self._running.release()
        return True

    def start(self) -> None:
        """Start the scheduler (blocks for a BlockingScheduler)"""
        self.scheduler.start()

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
