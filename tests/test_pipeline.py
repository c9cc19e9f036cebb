"""
Tests for CardPipeline.

Tests the full extraction flow with a mocked orchestrator.
"""

import pytest
from unittest.mock import Mock, patch

from card_ocr.exceptions import ExtractionFailed, QuotaExceededError, RecognitionTimeout
from card_ocr.models import QualityReport, RecognitionResult, Strategy
from card_ocr.ocr import EasyOCRBackend
from card_ocr.orchestrator import RecognitionOutcome
from card_ocr.pipeline import CardPipeline, extract_contact
from card_ocr.settings import PipelineConfig
from card_ocr.vlm_ocr import GeminiBackend

SAMPLE_CARD = "CEO John Smith\nAcme Corp\n(555) 123-4567\njohn@acme.com"

MEDICAL_CARD = (
    "Dr. Jane Lee\n"
    "Chief Medical Officer\n"
    "Health Solutions Inc\n"
    "jane.lee@health.com\n"
    "555-987-6543"
)

DEFAULT_STRATEGY = Strategy("gemini", "easyocr", "Cloud recognition with local fallback")


def outcome(text, backend="gemini", fallback_used=False, primary_error=None, confidence=95.0):
    return RecognitionOutcome(
        result=RecognitionResult(raw_text=text, overall_confidence=confidence, backend=backend),
        backend=backend,
        fallback_used=fallback_used,
        elapsed_ms=12.0,
        strategy=DEFAULT_STRATEGY,
        primary_error=primary_error,
    )


class TestCardPipeline:
    """Test cases for CardPipeline."""

    @pytest.fixture
    def orchestrator(self):
        orchestrator = Mock()
        orchestrator.recognize.return_value = outcome(SAMPLE_CARD)
        return orchestrator

    @pytest.fixture
    def pipeline(self, orchestrator):
        return CardPipeline(orchestrator=orchestrator)

    def test_default_construction(self):
        pipeline = CardPipeline(PipelineConfig(cloud_api_key="key", local_timeout=12.0))

        assert isinstance(pipeline.orchestrator.local, EasyOCRBackend)
        assert isinstance(pipeline.orchestrator.cloud, GeminiBackend)
        assert pipeline.orchestrator.local.timeout == 12.0
        assert pipeline.orchestrator.cloud.is_configured()
        pipeline.orchestrator.shutdown()

    def test_extract_sample_card(self, pipeline):
        record = pipeline.extract_contact(b"image")

        assert record.success
        assert record.name == "John Smith"
        assert record.title == "CEO"
        assert record.company == "Acme Corp"
        assert record.phone == "(555) 123-4567"
        assert record.phone_type == "office"
        assert record.email == "john@acme.com"
        assert record.website == "www.acme.com"
        assert record.metadata.backend == "gemini"
        assert record.metadata.fallback_used is False

    def test_extract_medical_card(self, pipeline, orchestrator):
        orchestrator.recognize.return_value = outcome(MEDICAL_CARD)
        record = pipeline.extract_contact(b"image")

        assert record.name == "Jane Lee"
        assert record.title == "Chief Medical Officer"
        assert record.company == "Health Solutions Inc"
        assert record.phone == "(555) 987-6543"
        assert record.website == "www.health.com"

    def test_record_invariants(self, pipeline, orchestrator):
        for text in (SAMPLE_CARD, MEDICAL_CARD):
            orchestrator.recognize.return_value = outcome(text)
            record = pipeline.extract_contact(b"image")

            for value in record.confidences.to_dict().values():
                assert 0 <= value <= 100
            assert 0 <= record.overall_confidence <= 100
            assert record.website == "www." + record.email.split("@")[1]
            assert record.name.lower() != record.company.lower()

    def test_fallback_metadata(self, pipeline, orchestrator):
        error = QuotaExceededError("429", backend="gemini")
        orchestrator.recognize.return_value = outcome(
            SAMPLE_CARD, backend="easyocr", fallback_used=True, primary_error=error
        )
        record = pipeline.extract_contact(b"image")

        assert record.success
        assert record.metadata.fallback_used is True
        assert record.metadata.backend == "easyocr"
        assert record.metadata.error_kind == "quota_exceeded"

    def test_extraction_failed_returns_empty_record(self, pipeline, orchestrator):
        cause = RecognitionTimeout("too slow", backend="easyocr")
        orchestrator.recognize.side_effect = ExtractionFailed(
            "Recognition failed: too slow",
            cause=cause,
            strategy=Strategy("easyocr", None, "Offline mode forced by configuration"),
        )
        record = pipeline.extract_contact(b"image")

        assert not record.success
        assert record.name is None and record.email is None
        assert record.metadata.status == "failed"
        assert record.metadata.error_kind == "timeout"
        assert record.metadata.fallback_used is False
        assert record.to_dict()["metadata"]["error"] == "Recognition failed: too slow"

    def test_failed_fallback_flagged(self, pipeline, orchestrator):
        orchestrator.recognize.side_effect = ExtractionFailed(
            "Recognition failed",
            cause=QuotaExceededError("429", backend="gemini"),
            strategy=DEFAULT_STRATEGY,
            details={"fallback_error": "garbage", "fallback_kind": "malformed_response"},
        )
        record = pipeline.extract_contact(b"image")

        assert record.metadata.fallback_used is True
        assert record.metadata.error_kind == "quota_exceeded"

    def test_quality_issues_recorded(self, pipeline):
        record = pipeline.extract_contact(b"image", quality=QualityReport(acceptable=False, issues=("blurry",)))

        assert record.success
        assert record.metadata.quality_issues == ("blurry",)

    def test_cancel_event_forwarded(self, pipeline, orchestrator):
        event = Mock()
        pipeline.extract_contact(b"image", cancel_event=event)

        orchestrator.recognize.assert_called_once_with(b"image", cancel_event=event)

    def test_backend_confidence_scales_overall(self, pipeline, orchestrator):
        orchestrator.recognize.return_value = outcome(SAMPLE_CARD, confidence=100.0)
        high = pipeline.extract_contact(b"image").overall_confidence
        orchestrator.recognize.return_value = outcome(SAMPLE_CARD, confidence=50.0)
        low = pipeline.extract_contact(b"image").overall_confidence

        assert low == pytest.approx(high / 2)

    def test_deterministic(self, pipeline):
        first = pipeline.extract_contact(b"image").to_dict()
        second = pipeline.extract_contact(b"image").to_dict()
        first.pop("metadata")
        second.pop("metadata")

        assert first == second

    def test_process_text(self, pipeline, orchestrator):
        record = pipeline.process_text(MEDICAL_CARD)

        assert record.name == "Jane Lee"
        assert record.metadata.backend == "text"
        orchestrator.recognize.assert_not_called()

    def test_process_empty_text(self, pipeline):
        record = pipeline.process_text("")

        assert record.success
        assert record.name is None
        assert record.overall_confidence == 0

    def test_custom_floors(self, orchestrator):
        pipeline = CardPipeline(config=PipelineConfig(confidence_floors={"title": 85}), orchestrator=orchestrator)
        record = pipeline.extract_contact(b"image")

        # "CEO" scores 80, below the raised floor
        assert record.title is None
        assert pipeline.arbiter.floors["name"] == 50
        assert pipeline.arbiter.floors["company"] == 50

    def test_get_status(self, pipeline, orchestrator):
        orchestrator.health_check.return_value = {"strategy": DEFAULT_STRATEGY.to_dict()}
        status = pipeline.get_status()

        assert status["strategy"]["primary"] == "gemini"
        assert status["confidence_floors"]["name"] == 50

    def test_analytics_passthrough(self, pipeline, orchestrator):
        orchestrator.get_analytics.return_value = {"counts": {"gemini": 3}}

        assert pipeline.get_analytics() == {"counts": {"gemini": 3}}
        pipeline.reset_analytics()
        orchestrator.reset.assert_called_once()


class TestExtractContactFunction:

    @patch("card_ocr.pipeline.CardPipeline")
    def test_builds_pipeline_and_shuts_down(self, mock_pipeline_class):
        instance = mock_pipeline_class.return_value
        instance.extract_contact.return_value = "record"
        config = PipelineConfig(force_offline=True)

        assert extract_contact(b"image", config) == "record"
        mock_pipeline_class.assert_called_once_with(config=config)
        instance.orchestrator.shutdown.assert_called_once()
