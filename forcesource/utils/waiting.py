import logging
import time
from typing import Any, Callable, NamedTuple, Optional

logger = logging.getLogger(__name__)


def retry(
    func: Callable,
    should_retry: Callable[[Exception], bool] = lambda e: True,
    retries: int = 5,
    retry_interval: int = 5,
    retry_interval_add: int = 30,
):
    while True:
        try:
            return func()
        except Exception as e:
            if not (retries and should_retry(e)):
                raise
            if retry_interval:
                logger.warning(f"Sleeping for {retry_interval} seconds before retry...")
                time.sleep(retry_interval)
                if retry_interval_add:
                    retry_interval += retry_interval_add
            retries -= 1
            logger.warning(f"Retrying ({retries} attempts remaining)")


class PollResult(NamedTuple):
    """Outcome of a bounded poll.

    ``value`` is whatever the last attempt produced, whether or not the
    condition was met before the time limit.
    """

    found: bool
    value: Any
    attempts: int
    elapsed: int

    @property
    def timed_out(self) -> bool:
        return not self.found


def poll_until(
    action: Callable[[], Any],
    is_done: Callable[[Any], bool],
    time_limit: int,
    interval: int = 1,
    max_attempts: Optional[int] = None,
) -> PollResult:
    """Call ``action`` every ``interval`` seconds until ``is_done(value)``.

    Gives up once ``time_limit`` seconds (or ``max_attempts`` calls) have
    been spent and reports the last value instead of raising."""
    elapsed = 0
    attempts = 0
    while True:
        attempts += 1
        value = action()
        if is_done(value):
            return PollResult(True, value, attempts, elapsed)
        if elapsed >= time_limit or (max_attempts and attempts >= max_attempts):
            return PollResult(False, value, attempts, elapsed)
        time.sleep(interval)
        elapsed += interval
