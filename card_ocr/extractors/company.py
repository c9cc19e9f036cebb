"""
Company name extraction.
"""

import logging
import re
from typing import List, Optional

from ..layout import TOP
from ..models import FieldCandidate
from .base import ExtractionContext, FieldExtractor, apply_line_quality, fix_letter_lookalikes
from .vocabulary import (
    BUSINESS_SUFFIXES,
    DEPARTMENT_WORDS,
    INDUSTRY_KEYWORDS,
    LOWERCASE_CONNECTORS,
    SUFFIX_CASING,
    TITLE_KEYWORDS,
    contains_keyword,
)

logger = logging.getLogger(__name__)

BASE_CONFIDENCE = 50
SUFFIX_BONUS = 35
INDUSTRY_BONUS = 20
WORD_COUNT_BONUS = 10
WORD_COUNT_PENALTY = 10
WORD_LENGTH_BONUS = 5
LOWERCASE_PENALTY = 10
PROMINENT_LOGO_BONUS = 5
MAX_CONFIDENCE = 95

SUFFIX_CORRECTIONS = (
    (re.compile(r"\b[l1]nc\b"), "Inc"),
    (re.compile(r"\b(?:L1C|LlC|11C|L1c)\b"), "LLC"),
    (re.compile(r"\bC0rp\b", re.IGNORECASE), "Corp"),
    (re.compile(r"\bLt[cd]\.?$"), "Ltd"),
)

_PERSON_SHAPE = re.compile(r"^[A-Z][a-z]+\s+[A-Z][a-z]+$")


def format_company(text: str) -> str:
    """Suffix-aware casing; connectors lower-case unless leading."""
    words = []
    for i, word in enumerate(text.split()):
        core = word.strip(".,")
        lowered = core.lower()
        if lowered in SUFFIX_CASING:
            formatted = word.replace(core, SUFFIX_CASING[lowered])
        elif i > 0 and lowered in LOWERCASE_CONNECTORS:
            formatted = word.lower()
        elif core.isupper() and len(core) <= 3:
            formatted = word
        else:
            formatted = word[:1].upper() + word[1:].lower()
        words.append(formatted)
    return " ".join(words)


def looks_like_person(text: str) -> bool:
    """Two title-case words with no business vocabulary, e.g. "John Smith"."""
    return bool(_PERSON_SHAPE.match(text)) and not (
        contains_keyword(text, BUSINESS_SUFFIXES) or contains_keyword(text, INDUSTRY_KEYWORDS)
    )


class CompanyExtractor(FieldExtractor):

    field_name = "company"

    def correct(self, text: str) -> str:
        for pattern, replacement in SUFFIX_CORRECTIONS:
            text = pattern.sub(replacement, text)
        text = fix_letter_lookalikes(text)
        return " ".join(text.split())

    @staticmethod
    def _skip(text: str) -> bool:
        lowered = text.lower()
        if "@" in text or "www" in lowered or "http" in lowered:
            return True
        if not text:
            return True
        letters = sum(c.isalpha() for c in text)
        return letters / len(text) < 0.5

    def _layout_candidate(self, text: str, line) -> Optional[FieldCandidate]:
        # A lone prominent word in the top band is usually a logo or brand name
        if line.band != TOP or line.prominence is None or line.prominence > 2:
            return None
        if not re.fullmatch(r"[A-Za-z]{3,}", text) or contains_keyword(text, TITLE_KEYWORDS):
            return None
        return FieldCandidate(
            text=format_company(text),
            confidence=BASE_CONFIDENCE + PROMINENT_LOGO_BONUS,
            source="layout",
            reasons=["Prominent single word in top section"],
        )

    def _score(self, text: str, line) -> Optional[FieldCandidate]:
        if self._skip(text):
            return None
        if contains_keyword(text, DEPARTMENT_WORDS):
            return None

        has_suffix = contains_keyword(text, BUSINESS_SUFFIXES)
        has_industry = contains_keyword(text, INDUSTRY_KEYWORDS)

        if contains_keyword(text, TITLE_KEYWORDS) and not has_suffix:
            return None
        if not has_suffix and not has_industry:
            return self._layout_candidate(text, line)
        if looks_like_person(text):
            return None

        candidate = FieldCandidate(text=format_company(text), confidence=BASE_CONFIDENCE,
                                   source="pattern", extras={"line": line.index})
        if has_suffix:
            candidate.adjust(SUFFIX_BONUS, "Contains business suffix")
        if has_industry:
            candidate.adjust(INDUSTRY_BONUS, "Contains industry keyword")

        words = text.split()
        if 1 <= len(words) <= 6:
            candidate.adjust(WORD_COUNT_BONUS, "Reasonable word count")
        else:
            candidate.adjust(-WORD_COUNT_PENALTY, "Too many words")
        if all(2 <= len(w) <= 20 for w in words):
            candidate.adjust(WORD_LENGTH_BONUS, "Reasonable word lengths")
        if text.islower() and not has_suffix:
            candidate.adjust(-LOWERCASE_PENALTY, "All lower-case")

        candidate.confidence = min(MAX_CONFIDENCE, candidate.confidence)
        return candidate

    def candidates(self, context: ExtractionContext) -> List[FieldCandidate]:
        results = []
        for line in context.lines:
            text = self.correct(line.text)
            candidate = self._score(text, line)
            if candidate is None:
                continue
            apply_line_quality(candidate, line)
            results.append(candidate)
        return results
