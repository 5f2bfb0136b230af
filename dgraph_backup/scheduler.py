"""Run the backup pipeline on a fixed schedule, one run at a time."""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Callable, Optional

from dgraph_backup.exceptions import BackupCancelledError, BackupError, FatalBackupError
from dgraph_backup.models import BackupResult

logger = logging.getLogger(__name__)


def next_daily_run(now: datetime, at: str) -> datetime:
    """Next occurrence of HH:MM strictly after `now`."""
    hour, minute = (int(part) for part in at.split(':'))
    candidate = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


class BackupScheduler:
    """Timer-driven control loop that starts one backup per tick.

    A single worker thread executes runs. A tick that arrives while the
    previous run still holds the run lock is skipped, never queued.
    """

    def __init__(self, run_backup: Callable[[], BackupResult],
                 every_minutes: int = 1, at: Optional[str] = None,
                 run_immediately: bool = False,
                 stop_event: Optional[threading.Event] = None,
                 clock: Callable[[], datetime] = datetime.now):
        """
        Args:
            run_backup: Callable performing one backup run
            every_minutes: Period between ticks
            at: Daily HH:MM; overrides every_minutes when set
            run_immediately: Start a run as soon as the loop starts
            stop_event: Event that ends the loop; created if not given
            clock: Source of the current time
        """
        self.run_backup = run_backup
        self.every_minutes = every_minutes
        self.at = at
        self.run_immediately = run_immediately
        self.stop_event = stop_event or threading.Event()
        self.clock = clock

        self.executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='backup')
        self._run_lock = threading.Lock()
        self._fatal_error: Optional[BaseException] = None

        self.runs_started = 0
        self.runs_skipped = 0
        self.last_result: Optional[BackupResult] = None

    def next_run_time(self, now: datetime) -> datetime:
        if self.at:
            return next_daily_run(now, self.at)
        return now + timedelta(minutes=self.every_minutes)

    def describe(self) -> str:
        if self.at:
            return f"daily at {self.at}"
        return f"every {self.every_minutes} minute(s)"

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    def tick(self) -> bool:
        """Start a run unless one is in flight.

        Returns:
            True if a run was submitted, False if the tick was skipped.
        """
        if not self._run_lock.acquire(blocking=False):
            self.runs_skipped += 1
            logger.warning("Previous backup still running, skipping this tick")
            return False

        self.runs_started += 1
        try:
            self.executor.submit(self._execute)
        except RuntimeError:
            self._run_lock.release()
            raise
        return True

    def _execute(self):
        try:
            logger.info(f"Starting scheduled backup #{self.runs_started}")
            result = self.run_backup()
            self.last_result = result
            if result.success:
                logger.info(f"Scheduled backup finished: {result.archive_key}")
            else:
                logger.error(f"Scheduled backup failed at {result.stage}: {result.error}")
        except BackupCancelledError as e:
            logger.warning(f"Scheduled backup cancelled: {e}")
        except FatalBackupError as e:
            logger.critical(f"Fatal backup error, stopping schedule: {e}")
            self._fatal_error = e
            self.stop_event.set()
        except BackupError as e:
            logger.error(f"Scheduled backup failed: {e}")
        except Exception as e:
            logger.exception(f"Unexpected error in scheduled backup: {e}")
            self._fatal_error = e
            self.stop_event.set()
        finally:
            self._run_lock.release()

    def _sleep_until(self, when: datetime) -> bool:
        """Wait until `when`; True if stop was requested meanwhile."""
        while not self.stop_event.is_set():
            remaining = (when - self.clock()).total_seconds()
            if remaining <= 0:
                return False
            # Re-check periodically so wall-clock jumps are picked up
            self.stop_event.wait(min(remaining, 60))
        return True

    def run_forever(self):
        """Tick until stop() is called or a run fails fatally.

        Raises:
            FatalBackupError: re-raised from the run that caused the stop.
        """
        logger.info(f"Backup schedule started ({self.describe()})")
        try:
            if self.run_immediately:
                self.tick()

            while not self.stop_event.is_set():
                next_run = self.next_run_time(self.clock())
                logger.info(f"Next backup at {next_run:%Y-%m-%d %H:%M:%S}")
                if self._sleep_until(next_run):
                    break
                self.tick()
        finally:
            # Interrupts a run that is still waiting for its export
            self.stop_event.set()
            self.executor.shutdown(wait=True)
            logger.info("Backup schedule stopped")

        if self._fatal_error is not None:
            raise self._fatal_error

    def stop(self):
        """Request the loop to end; an in-flight wait is interrupted."""
        self.stop_event.set()

