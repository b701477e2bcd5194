from __future__ import annotations

import unittest

from ig_compliance.rate_limit import RateLimiter


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class TestRateLimiter(unittest.TestCase):
    def test_admits_up_to_limit_without_waiting(self) -> None:
        clock = _Clock()
        limiter = RateLimiter(3, now_fn=clock, sleep_fn=clock.sleep)

        waits = [limiter.acquire() for _ in range(3)]

        self.assertEqual(waits, [0.0, 0.0, 0.0])
        self.assertEqual(clock.sleeps, [])
        self.assertEqual(limiter.count, 3)

    def test_waits_for_remaining_window_when_saturated(self) -> None:
        clock = _Clock()
        limiter = RateLimiter(2, now_fn=clock, sleep_fn=clock.sleep)

        limiter.acquire()
        clock.now = 15.0
        limiter.acquire()
        waited = limiter.acquire()

        self.assertEqual(clock.sleeps, [45.0])
        self.assertEqual(waited, 45.0)
        self.assertEqual(limiter.count, 1)
        self.assertEqual(limiter.window_start, 60.0)

    def test_window_resets_after_elapsed(self) -> None:
        clock = _Clock()
        limiter = RateLimiter(1, now_fn=clock, sleep_fn=clock.sleep)

        limiter.acquire()
        clock.now = 61.0
        waited = limiter.acquire()

        self.assertEqual(waited, 0.0)
        self.assertEqual(clock.sleeps, [])
        self.assertEqual(limiter.window_start, 61.0)

    def test_frozen_clock_still_releases(self) -> None:
        sleeps: list[float] = []
        limiter = RateLimiter(1, now_fn=lambda: 0.0, sleep_fn=sleeps.append)

        limiter.acquire()
        limiter.acquire()

        self.assertEqual(sleeps, [60.0])
        self.assertEqual(limiter.count, 1)

    def test_rejects_invalid_limits(self) -> None:
        with self.assertRaises(ValueError):
            RateLimiter(0)
        with self.assertRaises(ValueError):
            RateLimiter(1, window_seconds=0)


if __name__ == "__main__":
    unittest.main()
