"""
Contact parser: runs the field extractors over one recognition result.
"""

import logging
from typing import Dict, List, Optional

from .exceptions import LayoutUnavailable
from .extractors import (
    AddressExtractor,
    CompanyExtractor,
    EmailExtractor,
    ExtractionContext,
    FieldExtractor,
    NameExtractor,
    PhoneExtractor,
    TitleExtractor,
    WebsiteExtractor,
)
from .layout import LayoutAnalyzer, lines_from_text
from .models import FieldCandidate, RecognitionResult

logger = logging.getLogger(__name__)

TEXT_BACKEND = "text"


def default_extractors() -> List[FieldExtractor]:
    # Company before name so the name extractor can skip the company line;
    # name before title so the title extractor can use the split-off role.
    return [
        EmailExtractor(),
        WebsiteExtractor(),
        PhoneExtractor(),
        CompanyExtractor(),
        NameExtractor(),
        TitleExtractor(),
        AddressExtractor(),
    ]


class ContactParser:
    """Turns a RecognitionResult into at most one candidate per field."""

    def __init__(self, layout_analyzer: Optional[LayoutAnalyzer] = None,
                 extractors: Optional[List[FieldExtractor]] = None):
        self.layout_analyzer = layout_analyzer or LayoutAnalyzer()
        self.extractors = extractors or default_extractors()

    def build_context(self, recognition: RecognitionResult) -> ExtractionContext:
        """Layout-aware lines when tokens exist, plain text lines otherwise."""
        try:
            layout = self.layout_analyzer.analyze(recognition.tokens)
            lines = list(layout.lines)
        except LayoutUnavailable as e:
            logger.info(f"Layout unavailable ({e.message}); using line-based extraction")
            layout = None
            lines = lines_from_text(recognition.raw_text)

        return ExtractionContext(
            raw_text=recognition.raw_text,
            lines=lines,
            layout=layout,
            backend_confidence=recognition.overall_confidence,
        )

    def parse(self, recognition: RecognitionResult) -> Dict[str, Optional[FieldCandidate]]:
        """
        Extract every field.

        Args:
            recognition: Output of a recognition backend

        Returns:
            Dictionary of field name to surviving candidate (or None)
        """
        context = self.build_context(recognition)
        for extractor in self.extractors:
            context.assigned[extractor.field_name] = extractor.extract(context)

        found = [name for name, candidate in context.assigned.items() if candidate]
        logger.info(f"Parsed {len(context.lines)} lines; fields found: {', '.join(found) or 'none'}")
        return dict(context.assigned)

    def parse_text(self, text: str) -> Dict[str, Optional[FieldCandidate]]:
        """Parse already-transcribed text with no spatial information."""
        return self.parse(RecognitionResult(raw_text=text, overall_confidence=100.0, backend=TEXT_BACKEND))
