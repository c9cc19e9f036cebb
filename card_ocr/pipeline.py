"""
Business Card Extraction Pipeline
Recognition, layout analysis, field extraction and arbitration in one call.

HYBRID APPROACH:
1. Gemini first when credentials, network and quota allow
2. Any Gemini failure -> EasyOCR fallback
3. Both failed -> empty record with the error in its metadata
"""

import logging
import threading
import time
from typing import Dict, Optional

from .analytics import elapsed_ms
from .arbiter import ConfidenceArbiter
from .backend import ImageInput
from .exceptions import ExtractionFailed
from .models import ContactRecord, ExtractionMetadata, QualityReport, RecognitionResult
from .ocr import EasyOCRBackend
from .orchestrator import RecognitionOrchestrator
from .parser import TEXT_BACKEND, ContactParser
from .settings import PipelineConfig
from .vlm_ocr import GeminiBackend

logger = logging.getLogger(__name__)


class CardPipeline:
    """Complete pipeline for extracting contacts from business cards.

    One instance can serve concurrent requests; the orchestrator's usage
    state is the only shared mutable part.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        orchestrator: Optional[RecognitionOrchestrator] = None,
        parser: Optional[ContactParser] = None,
        arbiter: Optional[ConfidenceArbiter] = None,
    ):
        self.config = config or PipelineConfig()

        if orchestrator is None:
            local = EasyOCRBackend(
                languages=self.config.ocr_languages,
                gpu=self.config.ocr_gpu,
                timeout=self.config.local_timeout,
            )
            cloud = GeminiBackend(
                api_key=self.config.cloud_api_key,
                model=self.config.gemini_model,
                timeout=self.config.cloud_timeout,
            )
            orchestrator = RecognitionOrchestrator(local=local, cloud=cloud, config=self.config)

        self.orchestrator = orchestrator
        self.parser = parser or ContactParser()
        self.arbiter = arbiter or ConfidenceArbiter(floors=self.config.confidence_floors)

        logger.info("CardPipeline initialized")

    # ======================================================
    # SINGLE IMAGE
    # ======================================================

    def extract_contact(
        self,
        image: ImageInput,
        quality: Optional[QualityReport] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ContactRecord:
        """
        Extract a contact record from one card image.

        Args:
            image: File path, encoded bytes or BGR array
            quality: Verdict of an upstream image-quality gate, if any
            cancel_event: Aborts the network probe when set

        Returns:
            ContactRecord; on recognition failure an empty record whose
            metadata has status "failed" and the error
        """
        start = time.perf_counter()
        issues = tuple(quality.issues) if quality else ()
        if quality is not None and quality.acceptable is False:
            logger.warning(f"Processing image that failed the quality gate: {', '.join(issues) or 'no details'}")

        try:
            outcome = self.orchestrator.recognize(image, cancel_event=cancel_event)
        except ExtractionFailed as e:
            logger.error(f"Extraction failed: {e}")
            metadata = ExtractionMetadata(
                backend=None,
                elapsed_ms=elapsed_ms(start),
                fallback_used="fallback_error" in e.details,
                strategy=e.strategy.reason if e.strategy else None,
                status="failed",
                error=e.message,
                error_kind=e.kind,
                quality_issues=issues,
            )
            return ContactRecord(metadata=metadata)

        fields = self.parser.parse(outcome.result)
        metadata = ExtractionMetadata(
            backend=outcome.backend,
            elapsed_ms=elapsed_ms(start),
            fallback_used=outcome.fallback_used,
            strategy=outcome.strategy.reason,
            error=outcome.primary_error.message if outcome.primary_error else None,
            error_kind=outcome.primary_error.kind if outcome.primary_error else None,
            quality_issues=issues,
        )
        record = self.arbiter.build_record(fields, outcome.result, metadata)
        logger.info(
            f"Extracted card via {outcome.backend} in {metadata.elapsed_ms:.0f}ms "
            f"(fallback={outcome.fallback_used}, confidence={record.overall_confidence:.1f})"
        )
        return record

    def process_text(self, text: str) -> ContactRecord:
        """
        Extract a contact record from already-transcribed text.

        Args:
            text: Card text, one printed line per line

        Returns:
            ContactRecord with backend "text"
        """
        start = time.perf_counter()
        recognition = RecognitionResult(raw_text=text, overall_confidence=100.0, backend=TEXT_BACKEND)
        fields = self.parser.parse(recognition)
        metadata = ExtractionMetadata(backend=TEXT_BACKEND, elapsed_ms=elapsed_ms(start))
        return self.arbiter.build_record(fields, recognition, metadata)

    # ======================================================
    # STATUS / ANALYTICS
    # ======================================================

    def get_status(self) -> Dict:
        """Get pipeline status information."""
        health = self.orchestrator.health_check()
        return {
            **health,
            "confidence_floors": dict(self.arbiter.floors),
            "quota_ceiling": self.config.quota_ceiling,
        }

    def get_analytics(self) -> Dict:
        return self.orchestrator.get_analytics()

    def reset_analytics(self) -> None:
        self.orchestrator.reset()
        logger.info("Analytics reset")


def extract_contact(image: ImageInput, config: Optional[PipelineConfig] = None) -> ContactRecord:
    """Build a pipeline for ``config`` and extract one image."""
    pipeline = CardPipeline(config=config)
    try:
        return pipeline.extract_contact(image)
    finally:
        pipeline.orchestrator.shutdown()
