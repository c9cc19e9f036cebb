"""
Postal address extraction.

Two passes: a ZIP code anchors the city/state line, then the remaining
lines are scanned for a street.
"""

import logging
import re
from typing import List, Optional, Tuple

from ..models import Address, FieldCandidate
from .base import ExtractionContext, FieldExtractor, apply_line_quality, fix_digit_lookalikes
from .vocabulary import STREET_TYPES

logger = logging.getLogger(__name__)

ZIP_PATTERN = re.compile(r"\b\d{5}(?:-\d{4})?\b")
STATE_PATTERN = re.compile(r"\b([A-Z]{2})\.?$")
PHONE_LIKE = re.compile(r"\(?\d{3}\)?[-.\s]?\d{3}[-.]\d{4}")

TYPED_STREET = re.compile(
    r"^\d+\s+[A-Za-z0-9.\s]+?\b(?:" + "|".join(STREET_TYPES) + r")\b\.?(?:[,\s].*)?$",
    re.IGNORECASE,
)
GENERIC_STREET = re.compile(r"^\d+\s+[A-Za-z][A-Za-z0-9.\s]*$")

# Component weights; they sum to 100 before the cap
STREET_WEIGHT = 30
CITY_WEIGHT = 25
STATE_WEIGHT = 20
ZIP_WEIGHT = 25
MAX_CONFIDENCE = 95


def _split_locality(prefix: str) -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """Parse the text before a ZIP into (street, city, state)."""
    prefix = prefix.strip(" ,")
    state = None
    match = STATE_PATTERN.search(prefix)
    if match:
        state = match.group(1)
        prefix = prefix[:match.start()].strip(" ,")

    parts = [p.strip() for p in prefix.split(",") if p.strip()]
    street = None
    if len(parts) > 1 and parts[0][:1].isdigit():
        street = ", ".join(parts[:-1])
        parts = parts[-1:]
    city = parts[-1] if parts else None
    return street, city, state


class AddressExtractor(FieldExtractor):

    field_name = "address"

    def correct(self, text: str) -> str:
        return fix_digit_lookalikes(text)

    @staticmethod
    def _closes_line(text: str, match) -> bool:
        """A ZIP that ends its line after some locality text, as in "Austin, TX 78701"."""
        return bool(text[:match.start()].strip(" ,")) and not text[match.end():].strip(" ,.")

    def _find_anchor(self, context: ExtractionContext):
        # Prefer a ZIP closing a locality line; a leading 5-digit house number is a fallback
        fallback = (None, None, None)
        for line in context.lines:
            if "@" in line.text or PHONE_LIKE.search(line.text):
                continue
            text = self.correct(line.text)
            for match in ZIP_PATTERN.finditer(text):
                if self._closes_line(text, match):
                    return line, text, match
                if fallback[0] is None:
                    fallback = (line, text, match)
        return fallback

    def _find_street(self, context: ExtractionContext, skip_index: Optional[int]) -> Optional[str]:
        lines = [line for line in context.lines if line.index != skip_index
                 and "@" not in line.text and not PHONE_LIKE.search(line.text)]
        for pattern in (TYPED_STREET, GENERIC_STREET):
            for line in lines:
                text = self.correct(line.text).strip()
                if pattern.match(text):
                    return text.rstrip(",")
        return None

    def candidates(self, context: ExtractionContext) -> List[FieldCandidate]:
        anchor, text, match = self._find_anchor(context)

        street = city = state = zip_code = None
        if anchor is not None:
            zip_code = match.group(0)
            street, city, state = _split_locality(text[:match.start()])

        if street is None:
            # The anchor line is only spent when it carried a locality
            skip = anchor.index if anchor is not None and (city or state) else None
            street = self._find_street(context, skip)

        if not any((street, city, state, zip_code)):
            return []

        confidence = 0
        reasons = []
        for value, weight, label in ((street, STREET_WEIGHT, "street"), (city, CITY_WEIGHT, "city"),
                                     (state, STATE_WEIGHT, "state"), (zip_code, ZIP_WEIGHT, "zip")):
            if value:
                confidence += weight
                reasons.append(f"Found {label}")

        locality = " ".join(p for p in (f"{city}," if city else None, state, zip_code) if p)
        locality = locality.rstrip(",")
        full = ", ".join(p for p in (street, locality) if p)

        address = Address(street=street, city=city, state=state, zip=zip_code, full=full)
        candidate = FieldCandidate(
            text=full,
            confidence=min(MAX_CONFIDENCE, confidence),
            source="pattern" if zip_code else "context",
            reasons=reasons,
            extras={"address": address},
        )
        if anchor is not None:
            apply_line_quality(candidate, anchor)
        return [candidate]
