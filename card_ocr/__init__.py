"""
Package initialization for the business card contact extraction pipeline.
"""

from .arbiter import ConfidenceArbiter
from .layout import LayoutAnalyzer
from .models import ContactRecord, QualityReport, RecognitionResult
from .ocr import EasyOCRBackend
from .orchestrator import RecognitionOrchestrator
from .parser import ContactParser
from .pipeline import CardPipeline, extract_contact
from .settings import PipelineConfig
from .vlm_ocr import GeminiBackend

__all__ = [
    "CardPipeline",
    "ConfidenceArbiter",
    "ContactParser",
    "ContactRecord",
    "EasyOCRBackend",
    "GeminiBackend",
    "LayoutAnalyzer",
    "PipelineConfig",
    "QualityReport",
    "RecognitionOrchestrator",
    "RecognitionResult",
    "extract_contact",
]
