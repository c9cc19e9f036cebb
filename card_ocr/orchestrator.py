"""
Recognition strategy orchestrator.

HYBRID APPROACH:
1. Cloud (Gemini) first when credentials, network and quota allow
2. On any cloud failure -> local EasyOCR fallback
3. Otherwise local EasyOCR only, with no fallback

Backends are tried one after the other, never in parallel.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, Optional, Tuple

from .analytics import UsageState, elapsed_ms
from .backend import BackendKind, ImageInput, RecognitionBackend
from .exceptions import (
    ExtractionFailed,
    MalformedResponseError,
    QuotaExceededError,
    RecognitionError,
    RecognitionTimeout,
)
from .models import RecognitionResult, Strategy
from .network import ReachabilityProbe
from .settings import PipelineConfig

logger = logging.getLogger(__name__)

REASON_OFFLINE = "Offline mode forced by configuration"
REASON_NO_CREDENTIALS = "Cloud credentials not configured"
REASON_NETWORK = "Network unavailable"
REASON_QUOTA = "Cloud quota exhausted for the current period"
REASON_DEFAULT = "Cloud recognition with local fallback"

WORKERS_PER_BACKEND = 4


@dataclass(frozen=True)
class RecognitionOutcome:
    """A successful recognition plus how it was obtained."""
    result: RecognitionResult
    backend: str
    fallback_used: bool
    elapsed_ms: float
    strategy: Strategy
    primary_error: Optional[RecognitionError] = None


class RecognitionOrchestrator:
    """Chooses a backend per request, invokes it and keeps usage statistics."""

    def __init__(
        self,
        local: RecognitionBackend,
        cloud: Optional[RecognitionBackend] = None,
        config: Optional[PipelineConfig] = None,
        probe: Optional[ReachabilityProbe] = None,
        usage: Optional[UsageState] = None,
    ):
        self.config = config or PipelineConfig()
        self.local = local
        self.cloud = cloud
        self.probe = probe or ReachabilityProbe(
            url=self.config.network_probe_url,
            timeout=self.config.network_probe_timeout,
        )
        self.usage = usage or UsageState(
            quota_ceiling=self.config.quota_ceiling,
            quota_period=timedelta(days=self.config.quota_period_days),
        )
        self.force_offline = self.config.force_offline
        # One pool per backend so stuck cloud calls never hold up the local fallback
        self._executors: Dict[str, ThreadPoolExecutor] = {}
        for backend in (local, cloud):
            if backend is not None:
                self._executors[backend.identifier] = ThreadPoolExecutor(
                    max_workers=WORKERS_PER_BACKEND, thread_name_prefix=f"recognition-{backend.identifier}"
                )

        logger.info(
            f"Orchestrator ready (local={local.identifier}, "
            f"cloud={cloud.identifier if cloud else None}, offline={self.force_offline})"
        )

    # ======================================================
    # STRATEGY
    # ======================================================

    def _cloud_has_credentials(self) -> bool:
        return self.cloud is not None and self.cloud.is_configured()

    def _evaluate(self, cancel_event: Optional[threading.Event] = None) -> Tuple[Strategy, Optional[bool]]:
        """Walk the precedence chain; also report the probe result if it ran."""
        local_id = self.local.identifier

        if self.force_offline:
            return Strategy(local_id, None, REASON_OFFLINE), None
        if not self._cloud_has_credentials():
            return Strategy(local_id, None, REASON_NO_CREDENTIALS), None

        reachable = self.probe.is_reachable(cancel_event)
        if not reachable:
            return Strategy(local_id, None, REASON_NETWORK), False
        if self.usage.quota_exhausted():
            return Strategy(local_id, None, REASON_QUOTA), True

        return Strategy(self.cloud.identifier, local_id, REASON_DEFAULT), True

    def determine_strategy(self, cancel_event: Optional[threading.Event] = None) -> Strategy:
        """
        Pick primary and fallback backends for the next request.

        Precedence: forced offline > missing cloud credentials > network
        unreachable > quota exhausted > cloud with local fallback.

        Args:
            cancel_event: Aborts the network probe when set

        Returns:
            Strategy for this request
        """
        strategy, _ = self._evaluate(cancel_event)
        logger.info(f"Strategy: {strategy.primary} (fallback={strategy.fallback}) - {strategy.reason}")
        return strategy

    # ======================================================
    # INVOCATION
    # ======================================================

    def _backend(self, identifier: str) -> RecognitionBackend:
        if identifier == self.local.identifier:
            return self.local
        if self.cloud is not None and identifier == self.cloud.identifier:
            return self.cloud
        raise KeyError(f"Unknown backend: {identifier}")

    def _record_failure(self, backend: RecognitionBackend, error: RecognitionError, start: float) -> None:
        if backend.kind is BackendKind.CLOUD and isinstance(error, QuotaExceededError):
            self.usage.exhaust_quota()
        if self.config.enable_analytics:
            self.usage.record_error(backend.identifier, error.kind, str(error))
            self.usage.record_timing(backend.identifier, elapsed_ms(start), success=False)

    def _invoke(self, backend: RecognitionBackend, image: ImageInput) -> RecognitionResult:
        """Run one backend under its timeout, translating every failure to RecognitionError."""
        self.usage.record_invocation(backend.identifier)
        start = time.perf_counter()
        started = threading.Event()

        def run():
            started.set()
            return backend.recognize(image)

        future = self._executors[backend.identifier].submit(run)

        try:
            # The deadline counts from when a worker picks the call up; waiting
            # for a free worker is bounded by the same timeout
            if not started.wait(timeout=backend.timeout):
                raise FutureTimeout()
            result = future.result(timeout=backend.timeout)
        except FutureTimeout as e:
            # The worker keeps running; only this attempt is abandoned
            future.cancel()
            error = RecognitionTimeout(
                f"{backend.identifier} did not answer within {backend.timeout}s",
                backend=backend.identifier,
            )
            self._record_failure(backend, error, start)
            raise error from e
        except RecognitionError as e:
            self._record_failure(backend, e, start)
            raise
        except Exception as e:
            logger.exception(f"Unexpected failure in {backend.identifier}")
            error = MalformedResponseError(
                f"{backend.identifier} failed unexpectedly: {e}", backend=backend.identifier
            )
            self._record_failure(backend, error, start)
            raise error from e

        if backend.kind is BackendKind.CLOUD:
            self.usage.consume_quota()
        if self.config.enable_analytics:
            self.usage.record_timing(backend.identifier, elapsed_ms(start), success=True)
        return result

    def recognize(self, image: ImageInput, cancel_event: Optional[threading.Event] = None) -> RecognitionOutcome:
        """
        Recognize one image, falling back once if the strategy allows.

        Args:
            image: File path, encoded bytes or BGR array
            cancel_event: Aborts the network probe when set

        Returns:
            RecognitionOutcome

        Raises:
            ExtractionFailed: When every allowed backend failed
        """
        strategy = self.determine_strategy(cancel_event)
        start = time.perf_counter()
        primary = self._backend(strategy.primary)

        try:
            result = self._invoke(primary, image)
            return RecognitionOutcome(result, primary.identifier, False, elapsed_ms(start), strategy)
        except RecognitionError as primary_error:
            if strategy.fallback is None:
                logger.error(f"{primary.identifier} failed with no fallback: {primary_error}")
                raise ExtractionFailed(
                    f"Recognition failed: {primary_error.message}",
                    cause=primary_error,
                    strategy=strategy,
                ) from primary_error

            logger.warning(
                f"{primary.identifier} failed ({primary_error.kind}); falling back to {strategy.fallback}"
            )
            fallback = self._backend(strategy.fallback)
            try:
                result = self._invoke(fallback, image)
            except RecognitionError as fallback_error:
                logger.error(f"Fallback {fallback.identifier} also failed: {fallback_error}")
                raise ExtractionFailed(
                    f"Recognition failed: {primary_error.message}",
                    cause=primary_error,
                    strategy=strategy,
                    details={"fallback_error": str(fallback_error), "fallback_kind": fallback_error.kind},
                ) from fallback_error

            return RecognitionOutcome(
                result, fallback.identifier, True, elapsed_ms(start), strategy, primary_error
            )

    # ======================================================
    # DIAGNOSTICS
    # ======================================================

    def health_check(self, cancel_event: Optional[threading.Event] = None) -> Dict:
        """
        Re-evaluate the strategy without recognizing anything.

        Returns:
            Dictionary with backend availability, network state, strategy and recommendations
        """
        strategy, reachable = self._evaluate(cancel_event)
        backends = {self.local.identifier: self.local.describe()}
        if self.cloud is not None:
            backends[self.cloud.identifier] = self.cloud.describe()

        return {
            "strategy": strategy.to_dict(),
            "backends": backends,
            "network_reachable": reachable,
            "force_offline": self.force_offline,
            "quota_remaining": self.usage.quota_remaining(),
            "recommendations": self._recommendations(),
        }

    def _recommendations(self):
        cloud_id = self.cloud.identifier if self.cloud else BackendKind.CLOUD.value
        return self.usage.recommendations(self.local.identifier, cloud_id)

    def get_analytics(self) -> Dict:
        """Read-only snapshot of usage state."""
        cloud_id = self.cloud.identifier if self.cloud else BackendKind.CLOUD.value
        snapshot = self.usage.snapshot(cloud_id)
        snapshot["recommendations"] = self._recommendations()
        return snapshot

    def reset(self) -> None:
        self.usage.reset()

    # ======================================================
    # RECONFIGURATION
    # ======================================================

    def set_offline_mode(self, offline: bool) -> None:
        self.force_offline = offline
        logger.info(f"Offline mode {'enabled' if offline else 'disabled'}")

    def set_cloud_api_key(self, api_key: Optional[str]) -> None:
        if self.cloud is None:
            raise ValueError("No cloud backend configured")
        self.cloud.set_api_key(api_key)
        logger.info("Cloud API key updated")

    def shutdown(self) -> None:
        for executor in self._executors.values():
            executor.shutdown(wait=False)
