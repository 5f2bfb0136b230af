"""Wait for the export directory to appear, backing off exponentially."""

import logging
import os
import threading
import time
from typing import Callable, Optional

from dgraph_backup.exceptions import BackupCancelledError
from dgraph_backup.models import RetryState

logger = logging.getLogger(__name__)


class ExponentialBackoff:
    """Doubling delay generator with a ceiling.

    The first call to duration() returns initial_delay, each further call
    multiplies the delay by `multiplier` until max_delay is reached.
    """

    def __init__(self, initial_delay: float = 0.1, max_delay: float = 300.0,
                 multiplier: float = 2.0):
        if initial_delay <= 0 or max_delay <= 0:
            raise ValueError("delays must be positive")
        self.initial_delay = initial_delay
        self.max_delay = max(max_delay, initial_delay)
        self.multiplier = multiplier
        self.attempt = 0

    def duration(self) -> float:
        """Return the next delay and advance the attempt counter."""
        delay = min(self.initial_delay * (self.multiplier ** self.attempt), self.max_delay)
        self.attempt += 1
        return delay

    def reset(self):
        self.attempt = 0


class ReadinessPoller:
    """Poll a filesystem path until it exists or attempts run out."""

    def __init__(self, backoff: Optional[ExponentialBackoff] = None,
                 exists: Callable[[str], bool] = os.path.exists,
                 sleep: Callable[[float], None] = time.sleep,
                 stop_event: Optional[threading.Event] = None):
        self.backoff = backoff or ExponentialBackoff()
        self.exists = exists
        self.sleep = sleep
        self.stop_event = stop_event
        self.state: Optional[RetryState] = None

    def _wait(self, delay: float, path):
        if self.stop_event is None:
            self.sleep(delay)
        elif self.stop_event.wait(delay):
            raise BackupCancelledError(f"Stopped while waiting for {path}")

    def wait_until_ready(self, path, max_attempts: int) -> bool:
        """Block until `path` exists.

        Args:
            path: File or directory written by the export job
            max_attempts: Maximum number of existence checks

        Returns:
            True once the path exists, False if it never appeared.

        Raises:
            BackupCancelledError: The stop event was set during a wait.
        """
        self.backoff.reset()
        self.state = RetryState(
            current_delay=self.backoff.initial_delay,
            max_delay=self.backoff.max_delay,
            max_attempts=max_attempts,
        )

        while not self.state.exhausted:
            if self.exists(str(path)):
                logger.info(f"✓ Export ready at {path}")
                return True

            delay = self.backoff.duration()
            self.state.current_delay = delay
            logger.info(f"Export is not ready yet, retrying in {delay:.1f}s "
                        f"(attempt {self.state.attempt_count + 1}/{max_attempts})")
            self._wait(delay, path)
            self.state.attempt_count += 1

        logger.error(f"No export at {path} after {max_attempts} attempts")
        return False
