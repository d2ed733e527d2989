from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True)
class PollResult:
    ok: bool
    attempts: int


def poll_until(
    predicate: Callable[[], bool],
    *,
    attempts: int,
    interval_s: float,
    sleep: Callable[[float], None] = time.sleep,
) -> PollResult:
    """Evaluate ``predicate`` until it holds or ``attempts`` run out.

    Sleeps ``interval_s`` between attempts, never after the last one.
    Exceptions raised by the predicate are not retried.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")
    for attempt in range(1, attempts + 1):
        if predicate():
            return PollResult(ok=True, attempts=attempt)
        if attempt < attempts:
            sleep(max(0.0, float(interval_s)))
    return PollResult(ok=False, attempts=attempts)
