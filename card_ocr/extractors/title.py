"""
Job title extraction.
"""

import logging
import re
from typing import List, Optional

from ..layout import MIDDLE
from ..models import FieldCandidate
from .base import ExtractionContext, FieldExtractor, apply_line_quality, fix_letter_lookalikes
from .vocabulary import TITLE_KEYWORDS, matching_keywords

logger = logging.getLogger(__name__)

BASE_CONFIDENCE = 70
PER_KEYWORD_BONUS = 10
MIDDLE_BAND_BONUS = 15
MAX_CONFIDENCE = 95


def _keyword_confidence(keywords: List[str]) -> float:
    return min(MAX_CONFIDENCE, BASE_CONFIDENCE + PER_KEYWORD_BONUS * len(keywords))


class TitleExtractor(FieldExtractor):
    """Scores lines by how many distinct title keywords they carry."""

    field_name = "title"

    def correct(self, text: str) -> str:
        return " ".join(fix_letter_lookalikes(text).split())

    @staticmethod
    def _skip(text: str) -> bool:
        return "@" in text or bool(re.search(r"\d{3}", text)) or not 2 < len(text) < 60

    def _from_line(self, line) -> Optional[FieldCandidate]:
        text = self.correct(line.text)
        if self._skip(text):
            return None
        keywords = matching_keywords(text, TITLE_KEYWORDS)
        if not keywords:
            return None

        candidate = FieldCandidate(
            text=text,
            confidence=_keyword_confidence(keywords),
            source="pattern",
            reasons=[f"Title keywords: {', '.join(keywords)}"],
            extras={"line": line.index},
        )
        if line.band == MIDDLE:
            candidate.adjust(MIDDLE_BAND_BONUS, "Located in middle section")
            candidate.confidence = min(MAX_CONFIDENCE, candidate.confidence)
        apply_line_quality(candidate, line)
        return candidate

    @staticmethod
    def _from_name_hint(context: ExtractionContext) -> Optional[FieldCandidate]:
        # The name extractor may have split a role off the name line
        name = context.assigned.get("name")
        hint = name.extras.get("title_hint") if name else None
        if not hint:
            return None
        keywords = matching_keywords(hint, TITLE_KEYWORDS)
        return FieldCandidate(
            text=hint,
            confidence=_keyword_confidence(keywords),
            source="context",
            reasons=["Separated from name line"],
        )

    def _disqualified(self, candidate: FieldCandidate, context: ExtractionContext) -> bool:
        company = context.assigned_text("company")
        name = context.assigned_text("name")
        if company and candidate.text.lower() == company.lower():
            return True
        return bool(name) and name.lower() in candidate.text.lower()

    def candidates(self, context: ExtractionContext) -> List[FieldCandidate]:
        results = []
        for line in context.lines:
            candidate = self._from_line(line)
            if candidate is not None:
                results.append(candidate)
        hinted = self._from_name_hint(context)
        if hinted is not None:
            results.append(hinted)
        return [c for c in results if not self._disqualified(c, context)]
