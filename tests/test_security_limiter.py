"""Tests for cogen/security/limiter.py."""

from __future__ import annotations

import threading

import pytest

from cogen.core.exceptions import ErrorKind, RateLimitExceeded
from cogen.security.limiter import AdmissionLimiter


class TestAdmission:
    def test_counts_up_to_ceiling(self, clock):
        limiter = AdmissionLimiter(ceiling=3, window_seconds=10.0, clock=clock)
        assert [limiter.check("a") for _ in range(3)] == [1, 2, 3]

    def test_rejects_past_ceiling(self, clock):
        limiter = AdmissionLimiter(ceiling=2, window_seconds=10.0, clock=clock)
        limiter.check("a")
        limiter.check("a")
        with pytest.raises(RateLimitExceeded) as exc_info:
            limiter.check("a")
        assert exc_info.value.kind is ErrorKind.RATE_LIMIT_EXCEEDED
        assert exc_info.value.caller_id == "a"

    def test_count_saturates_at_ceiling(self, clock):
        limiter = AdmissionLimiter(ceiling=2, window_seconds=10.0, clock=clock)
        limiter.check("a")
        limiter.check("a")
        for _ in range(5):
            with pytest.raises(RateLimitExceeded):
                limiter.check("a")
        assert limiter.count("a") == 2

    def test_callers_are_independent(self, clock):
        limiter = AdmissionLimiter(ceiling=1, window_seconds=10.0, clock=clock)
        assert limiter.check("a") == 1
        assert limiter.check("b") == 1
        with pytest.raises(RateLimitExceeded):
            limiter.check("a")

    def test_retry_after_reports_remaining_window(self, clock):
        limiter = AdmissionLimiter(ceiling=1, window_seconds=10.0, clock=clock)
        limiter.check("a")
        clock.advance(4.0)
        with pytest.raises(RateLimitExceeded) as exc_info:
            limiter.check("a")
        assert exc_info.value.retry_after_seconds == pytest.approx(6.0)
        assert exc_info.value.to_payload()["retry_after_seconds"] == 6.0


class TestWindowReset:
    def test_new_window_resets_count_to_one(self, clock):
        limiter = AdmissionLimiter(ceiling=2, window_seconds=10.0, clock=clock)
        limiter.check("a")
        limiter.check("a")
        with pytest.raises(RateLimitExceeded):
            limiter.check("a")

        clock.advance(10.0)
        assert limiter.check("a") == 1
        assert limiter.count("a") == 1

    def test_window_still_open_just_before_boundary(self, clock):
        limiter = AdmissionLimiter(ceiling=1, window_seconds=10.0, clock=clock)
        limiter.check("a")
        clock.advance(9.999)
        with pytest.raises(RateLimitExceeded):
            limiter.check("a")

    def test_count_is_zero_after_window_elapses(self, clock):
        limiter = AdmissionLimiter(ceiling=5, window_seconds=10.0, clock=clock)
        limiter.check("a")
        clock.advance(11.0)
        assert limiter.count("a") == 0
        assert limiter.count("unknown") == 0

    def test_prune_drops_elapsed_windows(self, clock):
        limiter = AdmissionLimiter(ceiling=5, window_seconds=10.0, clock=clock)
        limiter.check("a")
        clock.advance(5.0)
        limiter.check("b")
        clock.advance(6.0)

        assert limiter.prune() == 1
        assert len(limiter) == 1
        assert limiter.count("b") == 1


class TestConcurrency:
    def test_never_admits_more_than_ceiling(self, clock):
        limiter = AdmissionLimiter(ceiling=50, window_seconds=60.0, clock=clock)
        admitted: list[int] = []
        rejected: list[int] = []
        lock = threading.Lock()
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            for _ in range(25):
                try:
                    n = limiter.check("shared")
                except RateLimitExceeded:
                    with lock:
                        rejected.append(1)
                else:
                    with lock:
                        admitted.append(n)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(admitted) == 50
        assert sorted(admitted) == list(range(1, 51))
        assert len(rejected) == 8 * 25 - 50
        assert limiter.count("shared") == 50


class TestValidation:
    def test_rejects_bad_ceiling(self):
        with pytest.raises(ValueError):
            AdmissionLimiter(ceiling=0)

    def test_rejects_bad_window(self):
        with pytest.raises(ValueError):
            AdmissionLimiter(window_seconds=0)
