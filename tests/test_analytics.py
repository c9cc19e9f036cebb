"""
Tests for UsageState and the reachability probe.
"""

import threading
import time
from datetime import datetime, timedelta

import pytest
import requests
from unittest.mock import Mock, patch

from card_ocr.analytics import MAX_ERROR_SAMPLES, MAX_TIMING_SAMPLES, UsageState
from card_ocr.network import ReachabilityProbe


class FakeClock:
    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now


class TestUsageState:
    """Test cases for UsageState."""

    @pytest.fixture
    def clock(self):
        return FakeClock(datetime(2024, 1, 1))

    @pytest.fixture
    def usage(self, clock):
        return UsageState(quota_ceiling=3, quota_period=timedelta(days=30), clock=clock)

    def test_counts(self, usage):
        usage.record_invocation("easyocr")
        usage.record_invocation("easyocr")
        usage.record_invocation("gemini")

        assert usage.count("easyocr") == 2
        assert usage.snapshot()["counts"] == {"easyocr": 2, "gemini": 1}

    def test_error_log_capped_oldest_evicted(self, usage):
        for i in range(MAX_ERROR_SAMPLES + 10):
            usage.record_error("gemini", "network_error", f"error {i}")
        errors = usage.snapshot()["errors"]

        assert len(errors) == MAX_ERROR_SAMPLES
        assert errors[0]["message"] == "error 10"
        assert errors[-1]["message"] == f"error {MAX_ERROR_SAMPLES + 9}"

    def test_timing_log_capped(self, usage):
        for i in range(MAX_TIMING_SAMPLES + 20):
            usage.record_timing("easyocr", float(i))

        assert len(usage.snapshot()["timings"]) == MAX_TIMING_SAMPLES

    def test_average_time_uses_successful_samples(self, usage):
        usage.record_timing("easyocr", 100.0)
        usage.record_timing("easyocr", 300.0)
        usage.record_timing("easyocr", 9999.0, success=False)

        assert usage.snapshot()["average_time_ms"]["easyocr"] == 200.0

    def test_quota(self, usage):
        usage.consume_quota()
        usage.consume_quota()
        assert usage.quota_remaining() == 1
        assert not usage.quota_exhausted()

        usage.consume_quota()
        assert usage.quota_exhausted()

    def test_exhaust_quota(self, usage):
        usage.exhaust_quota()

        assert usage.quota_exhausted()
        assert usage.quota_remaining() == 0

    def test_quota_period_rolls_over(self, usage, clock):
        usage.exhaust_quota()
        clock.now += timedelta(days=31)

        assert not usage.quota_exhausted()
        assert usage.quota_remaining() == 3

    def test_cost_estimate(self, usage):
        for _ in range(10):
            usage.record_invocation("gemini")

        assert usage.snapshot("gemini")["cost_estimate"] == pytest.approx(0.03)
        assert usage.snapshot()["cost_estimate"] == 0

    def test_reset(self, usage):
        usage.record_invocation("gemini")
        usage.record_error("gemini", "timeout", "slow")
        usage.record_timing("gemini", 10.0)
        usage.exhaust_quota()
        usage.reset()
        snapshot = usage.snapshot()

        assert snapshot["counts"] == {}
        assert snapshot["errors"] == []
        assert snapshot["timings"] == []
        assert snapshot["quota"]["used"] == 0

    def test_recommendations_slow_local(self, usage):
        usage.record_timing("easyocr", 20000.0)

        recommendations = usage.recommendations("easyocr", "gemini")
        assert any("Local recognition is slow" in r for r in recommendations)

    def test_recommendations_error_rate(self, usage):
        for _ in range(6):
            usage.record_error("gemini", "network_error", "down")

        recommendations = usage.recommendations("easyocr", "gemini")
        assert any("High error rate" in r for r in recommendations)

    def test_no_recommendations_when_healthy(self, usage):
        usage.record_timing("easyocr", 500.0)
        usage.record_timing("gemini", 800.0)

        assert usage.recommendations("easyocr", "gemini") == []

    def test_concurrent_updates(self, usage):
        def work():
            for _ in range(500):
                usage.record_invocation("easyocr")
                usage.record_error("easyocr", "timeout", "x")

        threads = [threading.Thread(target=work) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert usage.count("easyocr") == 4000
        assert len(usage.snapshot()["errors"]) == MAX_ERROR_SAMPLES


class TestReachabilityProbe:
    """Test cases for ReachabilityProbe."""

    @patch("card_ocr.network.requests.head")
    def test_reachable(self, mock_head):
        mock_head.return_value = Mock(status_code=200)

        assert ReachabilityProbe(url="https://example.com", timeout=1.0).is_reachable()

    @patch("card_ocr.network.requests.head")
    def test_server_error_is_unreachable(self, mock_head):
        mock_head.return_value = Mock(status_code=503)

        assert not ReachabilityProbe(timeout=1.0).is_reachable()

    @patch("card_ocr.network.requests.head")
    def test_request_exception_is_unreachable(self, mock_head):
        mock_head.side_effect = requests.ConnectionError("no route")

        assert not ReachabilityProbe(timeout=1.0).is_reachable()

    @patch("card_ocr.network.requests.head")
    def test_timeout(self, mock_head):
        mock_head.side_effect = lambda *args, **kwargs: time.sleep(1.0)
        probe = ReachabilityProbe(timeout=0.1)

        start = time.monotonic()
        assert not probe.is_reachable()
        assert time.monotonic() - start < 0.9

    @patch("card_ocr.network.requests.head")
    def test_cancel(self, mock_head):
        mock_head.side_effect = lambda *args, **kwargs: time.sleep(1.0)
        event = threading.Event()
        event.set()

        assert not ReachabilityProbe(timeout=5.0).is_reachable(event)
