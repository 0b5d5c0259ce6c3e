from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class PollResult(Generic[T]):
    value: T
    satisfied: bool
    attempts: int
    elapsed_s: float


def poll_until(
    fn: Callable[[], T],
    done: Callable[[T], bool],
    timeout_s: float,
    interval_s: float,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
    on_attempt: Callable[[int, T], None] | None = None,
) -> PollResult[T]:
    """Call `fn` until `done(value)` holds or `timeout_s` elapses.

    `fn` always runs at least once. The last observed value is returned either
    way; the caller decides what an unsatisfied result means.
    """
    interval_s = max(0.0, float(interval_s))
    t0 = clock()
    attempts = 0
    while True:
        value = fn()
        attempts += 1
        if on_attempt is not None:
            on_attempt(attempts, value)
        elapsed = clock() - t0
        if done(value):
            return PollResult(value=value, satisfied=True, attempts=attempts, elapsed_s=elapsed)
        if elapsed >= timeout_s:
            return PollResult(value=value, satisfied=False, attempts=attempts, elapsed_s=elapsed)
        # The last wait is cut short so the final check lands on the deadline.
        sleep(min(interval_s, timeout_s - elapsed))
