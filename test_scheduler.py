"""Tests for the backup scheduler's timing and non-overlap rule."""

import threading
from datetime import datetime

import pytest

from dgraph_backup.exceptions import BackupCancelledError, ExportNotReadyError, StorageError
from dgraph_backup.models import BackupResult
from dgraph_backup.scheduler import BackupScheduler, next_daily_run


def ok_result():
    return BackupResult(success=True, stage='done', archive_key='a.zip')


def test_next_daily_run_later_today():
    assert next_daily_run(datetime(2024, 5, 1, 1, 30), '03:00') == datetime(2024, 5, 1, 3, 0)


def test_next_daily_run_rolls_to_tomorrow():
    assert next_daily_run(datetime(2024, 5, 1, 3, 0), '03:00') == datetime(2024, 5, 2, 3, 0)
    assert next_daily_run(datetime(2024, 12, 31, 23, 59), '00:15') == datetime(2025, 1, 1, 0, 15)


def test_next_run_time_every_minutes():
    scheduler = BackupScheduler(ok_result, every_minutes=15)
    assert scheduler.next_run_time(datetime(2024, 5, 1, 3, 0)) == datetime(2024, 5, 1, 3, 15)
    assert scheduler.describe() == 'every 15 minute(s)'


def test_daily_schedule_overrides_period():
    scheduler = BackupScheduler(ok_result, every_minutes=15, at='03:00')
    assert scheduler.next_run_time(datetime(2024, 5, 1, 4, 0)) == datetime(2024, 5, 2, 3, 0)
    assert scheduler.describe() == 'daily at 03:00'


def test_tick_skipped_while_previous_run_in_flight():
    started = threading.Event()
    release = threading.Event()
    concurrent = []
    active = []

    def slow_backup():
        active.append(1)
        concurrent.append(len(active))
        started.set()
        release.wait(5)
        active.pop()
        return ok_result()

    scheduler = BackupScheduler(slow_backup)
    try:
        assert scheduler.tick() is True
        assert started.wait(5)
        assert scheduler.is_running
        assert scheduler.tick() is False
        assert scheduler.tick() is False
    finally:
        release.set()
        scheduler.executor.shutdown(wait=True)

    assert scheduler.runs_started == 1
    assert scheduler.runs_skipped == 2
    assert max(concurrent) == 1
    assert not scheduler.is_running


def test_tick_allowed_again_after_run_finishes():
    scheduler = BackupScheduler(ok_result)
    scheduler.tick()
    scheduler.executor.shutdown(wait=True)
    assert not scheduler.is_running
    assert scheduler.last_result.success


def test_fatal_error_stops_schedule_and_is_raised():
    def never_ready():
        raise ExportNotReadyError('./export', 10)

    scheduler = BackupScheduler(never_ready, every_minutes=60, run_immediately=True)

    with pytest.raises(ExportNotReadyError):
        scheduler.run_forever()
    assert scheduler.stop_event.is_set()
    assert scheduler.runs_started == 1


@pytest.mark.parametrize('outcome', [
    BackupResult(success=False, stage='upload', error='Failed to upload'),
    StorageError('listing failed'),
    BackupCancelledError('stopped'),
])
def test_non_fatal_failures_keep_schedule_alive(outcome):
    done = threading.Event()

    def backup():
        done.set()
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    scheduler = BackupScheduler(backup, every_minutes=60, run_immediately=True)
    stopper = threading.Thread(target=lambda: done.wait(5) and scheduler.stop())
    stopper.start()

    scheduler.run_forever()
    stopper.join()

    assert scheduler.runs_started == 1
    assert scheduler._fatal_error is None


def test_stop_interrupts_wait_for_next_tick():
    scheduler = BackupScheduler(ok_result, every_minutes=60)
    timer = threading.Timer(0.05, scheduler.stop)
    timer.start()

    scheduler.run_forever()

    assert scheduler.runs_started == 0


def test_tick_fires_when_clock_reaches_next_run():
    times = iter([datetime(2024, 5, 1, 3, 0)] + [datetime(2024, 5, 1, 3, 1)] * 100)
    ran = threading.Event()

    def backup():
        ran.set()
        return ok_result()

    scheduler = BackupScheduler(backup, every_minutes=1, clock=lambda: next(times))
    stopper = threading.Thread(target=lambda: ran.wait(5) and scheduler.stop())
    stopper.start()

    scheduler.run_forever()
    stopper.join()

    assert scheduler.runs_started >= 1
