from __future__ import annotations

import time
from typing import Callable


def wait_until(
    predicate: Callable[[], bool],
    timeout: float,
    interval: float = 0.5,
    backoff: float = 1.5,
    max_interval: float = 2.0,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> bool:
    """Poll ``predicate`` until it returns True or ``timeout`` seconds pass.

    The predicate is always evaluated at least once, and once more after the
    deadline so a condition that became true during the last sleep is not
    missed. Returns the final truth value; callers decide whether a timeout
    is fatal.
    """
    deadline = clock() + timeout
    delay = interval
    while True:
        if predicate():
            return True
        remaining = deadline - clock()
        if remaining <= 0:
            return False
        sleep(min(delay, remaining))
        delay = min(delay * backoff, max_interval)
