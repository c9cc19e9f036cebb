"""
Phone number extraction with digit-level OCR correction.
"""

import logging
import re
from typing import List, Optional, Tuple

from ..models import FieldCandidate
from .base import ExtractionContext, FieldExtractor, PatternRule, apply_line_quality, fix_digit_lookalikes

logger = logging.getLogger(__name__)

_EXT = r"(?:\s*(?:ext\.?|extension|x|#)\s*(?P<ext>\d{1,5}))?"

# Ordered by reliability; earlier rules claim overlapping text first
PHONE_RULES = (
    PatternRule("international",
                re.compile(r"\+\d{1,3}[-.\s]?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}\b" + _EXT, re.IGNORECASE), 95),
    PatternRule("parenthesized",
                re.compile(r"\(\d{3}\)\s*\d{3}[-.\s]?\d{4}\b" + _EXT, re.IGNORECASE), 90),
    PatternRule("separated",
                re.compile(r"\b\d{3}[-.]\d{3}[-.]\d{4}\b" + _EXT, re.IGNORECASE), 85),
    PatternRule("bare_10_digit",
                re.compile(r"\b\d{10}\b" + _EXT, re.IGNORECASE), 75),
    PatternRule("spaced_international",
                re.compile(r"\+\d{1,3}\s\d{2}\s\d{4}\s\d{4}\b" + _EXT, re.IGNORECASE), 90),
)

# (digit count, adjustment, reason); 11 digits only counts with a leading 1
LENGTH_ADJUSTMENTS = {
    7: (-20, "Local number only"),
    10: (5, "Standard 10-digit number"),
}
NANP_WITH_COUNTRY_BONUS = 10
LONG_INTERNATIONAL_BONUS = 5
COUNTRY_CODE_BONUS = 5
CORRECTION_PENALTY = 5
FAX_PENALTY = 15

MOBILE_WORDS = ("mobile", "cell", "cellular", "mob", "m", "c")
OFFICE_WORDS = ("office", "work", "business", "direct", "desk", "tel", "phone", "main", "off", "o", "t", "p", "d")
FAX_WORDS = ("fax", "f")

PHONE_TYPES = ("office", "mobile", "unknown")


def format_phone(number: str, extension: Optional[str] = None) -> str:
    """
    Normalize a phone number for display.

    Args:
        number: Matched number without extension
        extension: Extension digits, if any

    Returns:
        "(555) 123-4567", "+1 555-123-4567", "+1 (555) 123-4567" or
        "+44 20 7946 0958" style string
    """
    number = number.strip()
    digits = re.sub(r"\D", "", number)

    if re.fullmatch(r"\+\d{1,3}\s\d{2}\s\d{4}\s\d{4}", number):
        # European grouping is kept as printed
        formatted = number
    elif number.startswith("+"):
        match = re.fullmatch(r"(\d{1,3})(\d{3})(\d{3})(\d{4})", digits)
        formatted = f"+{match.group(1)} {match.group(2)}-{match.group(3)}-{match.group(4)}" if match else number
    elif len(digits) == 10:
        formatted = f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
    elif len(digits) == 11 and digits.startswith("1"):
        formatted = f"+1 ({digits[1:4]}) {digits[4:7]}-{digits[7:]}"
    else:
        formatted = number

    if extension:
        formatted += f" ext. {extension}"
    return formatted


def _label_pattern(words) -> re.Pattern:
    # A label is a whole word, optionally followed by ':' or '.'
    return re.compile(r"(?<![\w-])(?:" + "|".join(re.escape(w) for w in words) + r")(?![\w-])\s*[:.]?",
                      re.IGNORECASE)


_LABELS = (
    ("mobile", _label_pattern(MOBILE_WORDS)),
    ("office", _label_pattern(OFFICE_WORDS)),
    ("fax", _label_pattern(FAX_WORDS)),
)


def classify_phone(line: str, start: int) -> str:
    """Label closest before the number decides; no label means office."""
    prefix = line[:start]
    best_label, best_pos = None, -1
    for label, pattern in _LABELS:
        for match in pattern.finditer(prefix):
            # single letters only count as labels when followed by ':' or '.'
            token = match.group(0).strip()
            if len(token.rstrip(":.")) == 1 and token[-1] not in ":.":
                continue
            if match.start() > best_pos:
                best_label, best_pos = label, match.start()
    if best_label is None:
        return "office"
    return "unknown" if best_label == "fax" else best_label


class PhoneExtractor(FieldExtractor):
    """Picks the most reliable number, preferring office lines on ties."""

    field_name = "phone"

    def correct(self, text: str) -> str:
        return fix_digit_lookalikes(text)

    def _matches(self, text: str) -> List[Tuple[PatternRule, re.Match]]:
        claimed = []
        found = []
        for rule in PHONE_RULES:
            for match in rule.pattern.finditer(text):
                span = match.span()
                if any(span[0] < end and start < span[1] for start, end in claimed):
                    continue
                claimed.append(span)
                found.append((rule, match))
        found.sort(key=lambda item: item[1].start())
        return found

    def _score(self, rule: PatternRule, match: re.Match, line_text: str, corrected: bool) -> Optional[FieldCandidate]:
        extension = match.group("ext")
        number = match.group(0)
        if extension:
            number = number[: match.start("ext") - match.start()]
            number = re.sub(r"\s*(?:ext\.?|extension|x|#)\s*$", "", number, flags=re.IGNORECASE)

        digits = re.sub(r"\D", "", number)
        if len(digits) < 7:
            return None

        candidate = FieldCandidate(
            text=format_phone(number, extension),
            confidence=rule.confidence,
            source="pattern",
            reasons=[f"Matched {rule.name} phone pattern"],
            extras={"digits": digits, "extension": extension},
        )

        if len(digits) in LENGTH_ADJUSTMENTS:
            delta, reason = LENGTH_ADJUSTMENTS[len(digits)]
            candidate.adjust(delta, reason)
        elif len(digits) == 11 and digits.startswith("1"):
            candidate.adjust(NANP_WITH_COUNTRY_BONUS, "North American number with country code")
        elif len(digits) > 11:
            candidate.adjust(LONG_INTERNATIONAL_BONUS, "International number")

        if number.strip().startswith("+"):
            candidate.adjust(COUNTRY_CODE_BONUS, "Country code present")

        if corrected:
            candidate.adjust(-CORRECTION_PENALTY, "OCR digit corrections applied")

        phone_type = classify_phone(line_text, match.start())
        candidate.extras["type"] = phone_type
        if phone_type == "unknown":
            candidate.adjust(-FAX_PENALTY, "Labelled as fax")
        else:
            candidate.reasons.append(f"Classified as {phone_type}")
        return candidate

    def candidates(self, context: ExtractionContext) -> List[FieldCandidate]:
        seen = set()
        results = []
        for line in context.lines:
            if "@" in line.text:
                continue
            text = self.correct(line.text)
            for rule, match in self._matches(text):
                corrected = match.group(0) not in line.text
                candidate = self._score(rule, match, text, corrected)
                if candidate is None:
                    continue
                key = (candidate.extras["digits"], candidate.extras["extension"])
                if key in seen:
                    continue
                seen.add(key)
                apply_line_quality(candidate, line)
                results.append(candidate)
        return results

    def choose(self, candidates: List[FieldCandidate]) -> Optional[FieldCandidate]:
        best = None
        for candidate in candidates:
            rank = (candidate.confidence, candidate.extras.get("type") == "office", candidate.priority)
            if best is None or rank > best[0]:
                best = (rank, candidate)
        return best[1] if best else None
