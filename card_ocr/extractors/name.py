"""
Person name extraction with title separation.

"Dr. Jane Lee" -> "Jane Lee"; "CEO John Smith" -> "John Smith" plus a
title hint "CEO" that the title extractor can use.
"""

import logging
import re
from typing import List, Optional, Tuple

from ..models import FieldCandidate
from .base import ExtractionContext, FieldExtractor, apply_line_quality, fix_letter_lookalikes
from .vocabulary import (
    BUSINESS_SUFFIXES,
    HONORIFICS,
    INDUSTRY_KEYWORDS,
    TITLE_KEYWORDS,
    contains_keyword,
)

logger = logging.getLogger(__name__)

BASE_CONFIDENCE = 60
PREFIX_BONUS = 10
SUFFIX_BONUS = 15
PATTERN_BONUS = 20
PROMINENCE_BONUS = 10
TOP_BAND_BONUS = 5
ODD_WORD_LENGTH_PENALTY = 5
MAX_CONFIDENCE = 95

# Prominence ranks that justify a name without the usual capitalization
PROMINENT_RANKS = 3

NAME_PATTERNS = (
    # First Last, First M. Last, First Last-Last
    re.compile(r"^[A-Z][a-z]+(?:\s+[A-Z]\.?)?\s+[A-Z][a-z]+(?:-[A-Z][a-z]+)?$"),
    # First Middle Last
    re.compile(r"^[A-Z][a-z]+\s+[A-Z][a-z]+\s+[A-Z][a-z]+$"),
    # Irish/Scottish prefixes
    re.compile(r"^[A-Z][a-z]+\s+(?:O'|Mc|Mac)[A-Z][a-z]+$"),
)


def format_name(name: str) -> str:
    """Capitalize each part; initials stay upper-case."""
    words = []
    for word in name.split():
        if "-" in word:
            words.append("-".join(part[:1].upper() + part[1:].lower() for part in word.split("-")))
        elif len(word) == 1 or (len(word) == 2 and word.endswith(".")):
            words.append(word.upper())
        else:
            words.append(word[:1].upper() + word[1:].lower())
    return " ".join(words)


def _is_role_word(word: str) -> bool:
    return word.lower() in TITLE_KEYWORDS


class NameExtractor(FieldExtractor):

    field_name = "name"

    def correct(self, text: str) -> str:
        text = fix_letter_lookalikes(text)
        text = re.sub(r"[^\w\s.'-]", " ", text)
        return " ".join(text.split())

    @staticmethod
    def _rejects_line(text: str, company: Optional[str]) -> bool:
        if "@" in text or re.search(r"\d", text) or "www" in text.lower():
            return True
        if len(text) < 3 or len(text) > 60:
            return True
        if company and text.lower() == company.lower():
            return True
        letters = sum(c.isalpha() for c in text)
        return letters / len(text) < 0.6

    @staticmethod
    def _strip_prefix(words: List[str]) -> Tuple[List[str], bool, List[str]]:
        """Drop leading honorifics and role words; role words become the title hint."""
        stripped = False
        role = []
        while len(words) > 2:
            head = words[0].lower().rstrip(".,")
            if head in HONORIFICS:
                stripped = True
            elif _is_role_word(head):
                role.append(words[0].rstrip(".,"))
                stripped = True
            else:
                break
            words = words[1:]
        return words, stripped, role

    @staticmethod
    def _looks_like_name(words: List[str]) -> bool:
        if not 1 <= len(words) <= 4:
            return False
        if not all(re.match(r"^[A-Z][a-zA-Z'.-]*$", w) for w in words):
            return False
        return not contains_keyword(" ".join(words), TITLE_KEYWORDS)

    def _strip_suffix(self, words: List[str]) -> Tuple[List[str], List[str]]:
        """Split "John Smith Senior Engineer" into name words and trailing role words."""
        if len(words) < 3:
            return words, []
        for i in range(len(words) - 1, max(1, len(words) - 3) - 1, -1):
            tail = " ".join(words[i:])
            head = words[:i]
            if contains_keyword(tail, TITLE_KEYWORDS) and len(head) >= 2 and self._looks_like_name(head):
                return head, words[i:]
        return words, []

    def _parse_line(self, line, context: ExtractionContext) -> Optional[FieldCandidate]:
        company = context.assigned_text("company")
        text = self.correct(line.text)
        if self._rejects_line(text, company):
            return None

        reasons = []
        confidence = BASE_CONFIDENCE
        words = text.split()

        words, had_prefix, role_prefix = self._strip_prefix(words)
        if had_prefix:
            confidence += PREFIX_BONUS
            reasons.append("Separated leading title")

        words, role_suffix = self._strip_suffix(words)
        if role_suffix:
            confidence += SUFFIX_BONUS
            reasons.append("Separated trailing title")

        name = " ".join(words)
        if not 2 <= len(words) <= 4:
            return None
        if contains_keyword(name, TITLE_KEYWORDS):
            return None
        if contains_keyword(name, BUSINESS_SUFFIXES) or contains_keyword(name, INDUSTRY_KEYWORDS):
            return None
        if company and name.lower() == company.lower():
            return None

        prominent = line.prominence is not None and line.prominence < PROMINENT_RANKS
        capitalized = all(w[:1].isupper() for w in words)
        if not capitalized and not prominent:
            return None

        source = "context"
        if any(p.match(name) for p in NAME_PATTERNS):
            confidence += PATTERN_BONUS
            reasons.append("Matches name pattern")
            source = "pattern"
        elif not capitalized:
            source = "layout"
            reasons.append("Accepted on prominence")

        if any(len(w.rstrip(".")) > 15 for w in words):
            confidence -= ODD_WORD_LENGTH_PENALTY
            reasons.append("Unusually long word")

        if prominent:
            confidence += PROMINENCE_BONUS
            reasons.append(f"Among largest text (rank {line.prominence + 1})")
        if line.band == "top":
            confidence += TOP_BAND_BONUS
            reasons.append("Located in top section")

        title_hint = " ".join(role_prefix + role_suffix) or None
        candidate = FieldCandidate(
            text=format_name(name),
            confidence=min(MAX_CONFIDENCE, confidence),
            source=source,
            reasons=reasons,
            extras={"title_hint": title_hint, "line": line.index},
        )
        apply_line_quality(candidate, line)
        return candidate

    def candidates(self, context: ExtractionContext) -> List[FieldCandidate]:
        results = []
        for line in context.lines:
            candidate = self._parse_line(line, context)
            if candidate is not None:
                results.append(candidate)
        return results
