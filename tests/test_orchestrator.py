"""
Tests for RecognitionOrchestrator.

Backends and the reachability probe are mocked; no engine or network is used.
"""

import threading
import time

import pytest
from unittest.mock import Mock

from card_ocr.backend import BackendKind
from card_ocr.exceptions import (
    BackendNetworkError,
    ExtractionFailed,
    MalformedResponseError,
    QuotaExceededError,
)
from card_ocr.models import RecognitionResult
from card_ocr.orchestrator import (
    REASON_DEFAULT,
    REASON_NETWORK,
    REASON_NO_CREDENTIALS,
    REASON_OFFLINE,
    REASON_QUOTA,
    RecognitionOrchestrator,
)
from card_ocr.settings import PipelineConfig


def make_backend(kind, configured=True, timeout=5.0):
    backend = Mock()
    backend.kind = kind
    backend.identifier = kind.value
    backend.timeout = timeout
    backend.is_configured.return_value = configured
    backend.describe.return_value = {"identifier": kind.value, "configured": configured}
    backend.recognize.return_value = RecognitionResult(
        raw_text=f"text from {kind.value}", overall_confidence=90.0, backend=kind.value
    )
    return backend


class TestStrategy:
    """Strategy precedence."""

    @pytest.fixture
    def local(self):
        return make_backend(BackendKind.LOCAL)

    @pytest.fixture
    def cloud(self):
        return make_backend(BackendKind.CLOUD)

    @pytest.fixture
    def probe(self):
        probe = Mock()
        probe.is_reachable.return_value = True
        return probe

    def test_default_is_cloud_with_local_fallback(self, local, cloud, probe):
        orchestrator = RecognitionOrchestrator(local, cloud, probe=probe)
        strategy = orchestrator.determine_strategy()

        assert strategy.primary == "gemini"
        assert strategy.fallback == "easyocr"
        assert strategy.reason == REASON_DEFAULT

    def test_forced_offline_wins_over_everything(self, local, cloud, probe):
        orchestrator = RecognitionOrchestrator(local, cloud, config=PipelineConfig(force_offline=True), probe=probe)
        strategy = orchestrator.determine_strategy()

        assert strategy.primary == "easyocr"
        assert strategy.fallback is None
        assert strategy.reason == REASON_OFFLINE
        probe.is_reachable.assert_not_called()

    def test_missing_credentials(self, local, probe):
        cloud = make_backend(BackendKind.CLOUD, configured=False)
        orchestrator = RecognitionOrchestrator(local, cloud, probe=probe)
        strategy = orchestrator.determine_strategy()

        assert strategy.reason == REASON_NO_CREDENTIALS
        assert strategy.fallback is None
        probe.is_reachable.assert_not_called()

    def test_no_cloud_backend_counts_as_missing_credentials(self, local, probe):
        orchestrator = RecognitionOrchestrator(local, None, probe=probe)

        assert orchestrator.determine_strategy().reason == REASON_NO_CREDENTIALS

    def test_network_unreachable(self, local, cloud, probe):
        probe.is_reachable.return_value = False
        orchestrator = RecognitionOrchestrator(local, cloud, probe=probe)
        strategy = orchestrator.determine_strategy()

        assert strategy.primary == "easyocr"
        assert strategy.reason == REASON_NETWORK

    def test_network_beats_quota(self, local, cloud, probe):
        probe.is_reachable.return_value = False
        orchestrator = RecognitionOrchestrator(local, cloud, probe=probe)
        orchestrator.usage.exhaust_quota()

        assert orchestrator.determine_strategy().reason == REASON_NETWORK

    def test_quota_exhausted(self, local, cloud, probe):
        orchestrator = RecognitionOrchestrator(local, cloud, config=PipelineConfig(quota_ceiling=2), probe=probe)
        orchestrator.usage.consume_quota(2)

        strategy = orchestrator.determine_strategy()
        assert strategy.primary == "easyocr"
        assert strategy.reason == REASON_QUOTA

    def test_cancel_event_passed_to_probe(self, local, cloud, probe):
        orchestrator = RecognitionOrchestrator(local, cloud, probe=probe)
        event = threading.Event()
        orchestrator.determine_strategy(event)

        probe.is_reachable.assert_called_once_with(event)

    def test_strategy_recomputed_per_request(self, local, cloud, probe):
        orchestrator = RecognitionOrchestrator(local, cloud, probe=probe)
        assert orchestrator.determine_strategy().reason == REASON_DEFAULT

        orchestrator.set_offline_mode(True)
        assert orchestrator.determine_strategy().reason == REASON_OFFLINE

        orchestrator.set_offline_mode(False)
        assert orchestrator.determine_strategy().reason == REASON_DEFAULT


class TestRecognition:
    """Invocation, fallback and usage accounting."""

    @pytest.fixture
    def local(self):
        return make_backend(BackendKind.LOCAL)

    @pytest.fixture
    def cloud(self):
        return make_backend(BackendKind.CLOUD)

    @pytest.fixture
    def orchestrator(self, local, cloud):
        probe = Mock()
        probe.is_reachable.return_value = True
        orchestrator = RecognitionOrchestrator(local, cloud, config=PipelineConfig(quota_ceiling=10), probe=probe)
        yield orchestrator
        orchestrator.shutdown()

    def test_primary_success(self, orchestrator, local, cloud):
        outcome = orchestrator.recognize(b"image")

        assert outcome.backend == "gemini"
        assert outcome.fallback_used is False
        assert outcome.result.raw_text == "text from gemini"
        assert outcome.primary_error is None
        local.recognize.assert_not_called()
        assert orchestrator.usage.quota_remaining() == 9
        assert orchestrator.usage.count("gemini") == 1

    def test_quota_exceeded_falls_back(self, orchestrator, local, cloud):
        cloud.recognize.side_effect = QuotaExceededError("429", backend="gemini")
        outcome = orchestrator.recognize(b"image")

        assert outcome.fallback_used is True
        assert outcome.backend == "easyocr"
        assert outcome.primary_error.kind == "quota_exceeded"
        local.recognize.assert_called_once_with(b"image")

    def test_quota_exceeded_switches_next_strategy_to_local(self, orchestrator, cloud):
        cloud.recognize.side_effect = QuotaExceededError("429", backend="gemini")
        orchestrator.recognize(b"image")

        assert orchestrator.determine_strategy().reason == REASON_QUOTA

    def test_backends_never_run_in_parallel(self, orchestrator, local, cloud):
        order = []

        def cloud_call(image):
            order.append("cloud")
            raise BackendNetworkError("down", backend="gemini")

        def local_call(image):
            order.append("local")
            return RecognitionResult(raw_text="ok", backend="easyocr")

        cloud.recognize.side_effect = cloud_call
        local.recognize.side_effect = local_call

        orchestrator.recognize(b"image")
        assert order == ["cloud", "local"]

    def test_unexpected_exception_is_wrapped_and_falls_back(self, orchestrator, cloud):
        cloud.recognize.side_effect = KeyError("boom")
        outcome = orchestrator.recognize(b"image")

        assert outcome.fallback_used is True
        assert isinstance(outcome.primary_error, MalformedResponseError)

    def test_both_backends_fail(self, orchestrator, local, cloud):
        cloud.recognize.side_effect = BackendNetworkError("down", backend="gemini")
        local.recognize.side_effect = MalformedResponseError("garbage", backend="easyocr")

        with pytest.raises(ExtractionFailed) as exc_info:
            orchestrator.recognize(b"image")

        error = exc_info.value
        assert error.kind == "network_error"
        assert error.details["fallback_kind"] == "malformed_response"
        assert error.strategy.reason == REASON_DEFAULT

    def test_failure_without_fallback_is_terminal(self, local, cloud):
        local.recognize.side_effect = MalformedResponseError("garbage", backend="easyocr")
        orchestrator = RecognitionOrchestrator(local, cloud, config=PipelineConfig(force_offline=True))

        with pytest.raises(ExtractionFailed) as exc_info:
            orchestrator.recognize(b"image")

        assert exc_info.value.kind == "malformed_response"
        assert "fallback_error" not in exc_info.value.details
        cloud.recognize.assert_not_called()

    def test_timeout_is_a_failure(self, cloud):
        local = make_backend(BackendKind.LOCAL, timeout=0.05)
        local.recognize.side_effect = lambda image: time.sleep(0.5)
        orchestrator = RecognitionOrchestrator(local, cloud, config=PipelineConfig(force_offline=True))

        with pytest.raises(ExtractionFailed) as exc_info:
            orchestrator.recognize(b"image")

        assert exc_info.value.kind == "timeout"
        orchestrator.shutdown()

    def test_slow_cloud_does_not_starve_local_fallback(self):
        cloud = make_backend(BackendKind.CLOUD, timeout=0.3)
        cloud.recognize.side_effect = lambda image: time.sleep(1.0)
        local = make_backend(BackendKind.LOCAL, timeout=0.5)

        def local_call(image):
            time.sleep(0.05)
            return RecognitionResult(raw_text="ok", backend="easyocr")

        local.recognize.side_effect = local_call
        probe = Mock()
        probe.is_reachable.return_value = True
        orchestrator = RecognitionOrchestrator(local, cloud, config=PipelineConfig(quota_ceiling=100), probe=probe)

        outcomes = []
        failures = []

        def work():
            try:
                outcomes.append(orchestrator.recognize(b"image"))
            except ExtractionFailed as e:
                failures.append(e)

        threads = [threading.Thread(target=work) for _ in range(6)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        orchestrator.shutdown()

        assert failures == []
        assert len(outcomes) == 6
        assert all(o.backend == "easyocr" and o.fallback_used for o in outcomes)
        assert all(o.primary_error.kind == "timeout" for o in outcomes)

    def test_errors_and_timings_recorded(self, orchestrator, cloud):
        cloud.recognize.side_effect = BackendNetworkError("down", backend="gemini")
        orchestrator.recognize(b"image")
        analytics = orchestrator.get_analytics()

        assert analytics["counts"] == {"gemini": 1, "easyocr": 1}
        assert analytics["errors"][0]["kind"] == "network_error"
        assert len(analytics["timings"]) == 2
        assert [t["success"] for t in analytics["timings"]] == [False, True]

    def test_analytics_disabled_skips_samples(self, local, cloud):
        probe = Mock()
        probe.is_reachable.return_value = True
        orchestrator = RecognitionOrchestrator(
            local, cloud, config=PipelineConfig(enable_analytics=False), probe=probe
        )
        orchestrator.recognize(b"image")
        analytics = orchestrator.get_analytics()

        assert analytics["counts"] == {"gemini": 1}
        assert analytics["timings"] == []

    def test_reset(self, orchestrator):
        orchestrator.recognize(b"image")
        orchestrator.reset()
        analytics = orchestrator.get_analytics()

        assert analytics["counts"] == {}
        assert analytics["quota"]["used"] == 0

    def test_health_check_does_not_recognize(self, orchestrator, local, cloud):
        health = orchestrator.health_check()

        assert health["strategy"]["primary"] == "gemini"
        assert health["network_reachable"] is True
        assert set(health["backends"]) == {"easyocr", "gemini"}
        assert health["quota_remaining"] == 10
        assert health["recommendations"] == []
        local.recognize.assert_not_called()
        cloud.recognize.assert_not_called()

    def test_set_cloud_api_key(self, orchestrator, cloud):
        orchestrator.set_cloud_api_key("new-key")

        cloud.set_api_key.assert_called_once_with("new-key")

    def test_set_cloud_api_key_without_cloud(self, local):
        orchestrator = RecognitionOrchestrator(local, None)

        with pytest.raises(ValueError):
            orchestrator.set_cloud_api_key("key")

    def test_shared_across_threads(self, orchestrator):
        threads = [threading.Thread(target=orchestrator.recognize, args=(b"image",)) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert orchestrator.usage.count("gemini") == 8
        assert orchestrator.usage.quota_remaining() == 2
