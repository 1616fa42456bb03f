"""Tests for cron scheduling."""

import threading
from datetime import datetime

import pytest
from apscheduler.schedulers.background import BackgroundScheduler

from portainer_backup.backup.scheduler import (
    JOB_ID,
    CronScheduleAdapter,
    build_trigger,
    validate,
)


class TestValidate:
    """Cron expression validation."""

    @pytest.mark.parametrize("expression", [
        "0 0 * * *",
        "*/5 * * * *",
        "0 0 0 * * *",
        "30 15 2 * * 1-5",
        "0 0 12 1 1 * 2030",
        "0 0 * * 0",
        "0 0 * * 7",
    ])
    def test_valid(self, expression):
        """Test five, six and seven field expressions."""
        assert validate(expression) is True

    @pytest.mark.parametrize("expression", [
        "",
        "not a cron",
        "* * * *",
        "0 0 0 0 * * * *",
        "61 * * * *",
        "0 0 25 * * *",
    ])
    def test_invalid(self, expression):
        """Test malformed expressions are rejected."""
        assert validate(expression) is False

    def test_five_fields_fire_on_the_minute(self):
        """Test that five-field expressions fire at second zero."""
        trigger = build_trigger("*/15 * * * *")
        now = datetime(2024, 1, 16, 12, 1, 30).astimezone()
        fire = trigger.get_next_fire_time(None, now)
        assert (fire.minute, fire.second) == (15, 0)

    def test_sunday_is_zero(self):
        """Test cron day numbering (0 = Sunday)."""
        trigger = build_trigger("0 0 * * 0")
        # 2024-01-16 is a Tuesday; next Sunday is the 21st
        now = datetime(2024, 1, 16, 12, 0, 0).astimezone()
        assert trigger.get_next_fire_time(None, now).day == 21


class TestCronScheduleAdapter:
    """Tick execution, overlap skipping and failure isolation."""

    @pytest.fixture
    def scheduler(self):
        scheduler = BackgroundScheduler()
        yield scheduler
        if scheduler.running:
            scheduler.shutdown(wait=False)

    def test_registers_single_instance_job(self, scheduler, test_logger):
        """Test that the job is registered with overlap protection."""
        adapter = CronScheduleAdapter("0 0 0 * * *", scheduler=scheduler, logger=test_logger)
        adapter.on_tick(lambda: None)

        job = scheduler.get_job(JOB_ID)
        assert job is not None
        assert job.max_instances == 1
        assert job.coalesce is True

    def test_next_fire_time(self, scheduler, test_logger):
        """Test the next fire time of a daily schedule."""
        adapter = CronScheduleAdapter("0 30 2 * * *", scheduler=scheduler, logger=test_logger)
        fire = adapter.next_fire_time()
        assert (fire.hour, fire.minute, fire.second) == (2, 30, 0)

    def test_run_tick_requires_callback(self, scheduler, test_logger):
        """Test that ticking without a callback is an error."""
        adapter = CronScheduleAdapter("0 0 0 * * *", scheduler=scheduler, logger=test_logger)
        with pytest.raises(RuntimeError):
            adapter.run_tick()

    def test_run_tick(self, scheduler, test_logger):
        """Test that a tick runs the callback."""
        calls = []
        adapter = CronScheduleAdapter("0 0 0 * * *", scheduler=scheduler, logger=test_logger)
        adapter.on_tick(lambda: calls.append(1))

        assert adapter.run_tick() is True
        assert adapter.run_tick() is True
        assert calls == [1, 1]
        assert adapter.ticks == 2

    def test_failing_tick_is_isolated(self, scheduler, test_logger, log_stream):
        """Test that an exception in one tick does not break the next."""
        calls = []

        def callback():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("first run failed")

        adapter = CronScheduleAdapter("0 0 0 * * *", scheduler=scheduler, logger=test_logger)
        adapter.on_tick(callback)

        assert adapter.run_tick() is True
        assert adapter.run_tick() is True
        assert len(calls) == 2
        assert "first run failed" in log_stream.getvalue()

    def test_overlapping_tick_skipped(self, scheduler, test_logger, log_stream):
        """Test that a tick firing during a running tick is skipped."""
        started = threading.Event()
        release = threading.Event()

        def slow():
            started.set()
            release.wait(5)

        adapter = CronScheduleAdapter("0 0 0 * * *", scheduler=scheduler, logger=test_logger)
        adapter.on_tick(slow)

        worker = threading.Thread(target=adapter.run_tick)
        worker.start()
        assert started.wait(5)

        assert adapter.run_tick() is False
        release.set()
        worker.join(5)

        assert adapter.ticks == 1
        assert adapter.skipped == 1
        assert "tick skipped" in log_stream.getvalue()
        assert adapter.run_tick() is True

    def test_invalid_expression_rejected(self, scheduler, test_logger):
        """Test that the adapter refuses an invalid expression."""
        with pytest.raises(ValueError):
            CronScheduleAdapter("bad", scheduler=scheduler, logger=test_logger)
