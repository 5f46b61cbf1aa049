#!/usr/bin/env python3
"""
Request Pacing for Paprika Sync
===============================

Paprika has no published rate limit, so per-recipe detail fetches are paced as
a courtesy. The sync loop calls `pacer.wait()` before every detail fetch; the
pacer decides how long (if at all) to block.

Policies:
- NoPacing: never blocks (tests, local fakes)
- FixedIntervalPacer: at least `interval` seconds between consecutive calls
- TokenBucketPacer: `rate` calls per second on average, bursts up to `capacity`

Usage:
    from config import SYNC_CONFIG
    from tools.pacing import pacer_from_config

    pacer = pacer_from_config(SYNC_CONFIG)
    for item in items:
        pacer.wait()
        fetch(item)
"""

import threading
import time
from typing import Any, Callable, Dict, Optional

from tools.logging_utils import get_logger

logger = get_logger(__name__)

Clock = Callable[[], float]
Sleeper = Callable[[float], None]


class NoPacing:
    """Pacer that never waits."""

    def wait(self) -> float:
        return 0.0


class FixedIntervalPacer:
    """
    Enforce a minimum interval between consecutive wait() returns.

    The first call never blocks. Time spent by the caller between calls
    (network, database) counts toward the interval.
    """

    def __init__(self, interval: float, clock: Clock = time.monotonic, sleep: Sleeper = time.sleep):
        if interval < 0:
            raise ValueError(f"interval must be >= 0, got {interval}")
        self.interval = interval
        self._clock = clock
        self._sleep = sleep
        self._last: Optional[float] = None
        self._lock = threading.Lock()

    def wait(self) -> float:
        """Block until the interval has elapsed. Returns seconds slept."""
        with self._lock:
            now = self._clock()
            delay = 0.0
            if self._last is not None:
                delay = max(0.0, self._last + self.interval - now)
            if delay > 0:
                self._sleep(delay)
                now += delay
            self._last = now
            return delay


class TokenBucketPacer:
    """
    Token bucket: refills `rate` tokens per second up to `capacity`.

    Starts full, so the first `capacity` calls pass immediately.
    """

    def __init__(self, rate: float, capacity: int = 1, clock: Clock = time.monotonic, sleep: Sleeper = time.sleep):
        if rate <= 0:
            raise ValueError(f"rate must be > 0, got {rate}")
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.rate = float(rate)
        self.capacity = capacity
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(capacity)
        self._updated = clock()
        self._lock = threading.Lock()

    def _refill(self, now: float) -> None:
        elapsed = max(0.0, now - self._updated)
        self._tokens = min(float(self.capacity), self._tokens + elapsed * self.rate)
        self._updated = now

    def wait(self) -> float:
        """Take one token, sleeping until one is available. Returns seconds slept."""
        with self._lock:
            self._refill(self._clock())
            delay = 0.0
            if self._tokens < 1.0:
                delay = (1.0 - self._tokens) / self.rate
                self._sleep(delay)
                self._refill(self._updated + delay)
            self._tokens -= 1.0
            return delay


def pacer_from_config(sync_config: Dict[str, Any]):
    """
    Build the pacer described by the `sync` section of config.yaml.

    Args:
        sync_config: Mapping with `pacing` plus the knobs of that policy

    Raises:
        ValueError: On an unknown pacing mode
    """
    mode = sync_config.get("pacing", "fixed")
    if mode == "none":
        return NoPacing()
    if mode == "fixed":
        return FixedIntervalPacer(float(sync_config.get("item_delay_seconds", 0.1)))
    if mode == "token_bucket":
        return TokenBucketPacer(
            rate=float(sync_config.get("rate_per_second", 10.0)),
            capacity=int(sync_config.get("burst", 1)),
        )
    raise ValueError(f"Unknown pacing mode: {mode!r}")
