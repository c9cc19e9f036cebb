"""
Shared pieces for the per-field extractors.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Pattern

from ..layout import CardLayout, LayoutLine
from ..models import FieldCandidate

logger = logging.getLogger(__name__)

# Lines the engine itself was unsure about
LOW_LINE_CONFIDENCE = 60.0
LOW_LINE_PENALTY = 10.0

_DIGIT_LOOKALIKES = str.maketrans({
    "O": "0", "o": "0",
    "I": "1", "l": "1", "|": "1",
    "S": "5", "s": "5",
    "G": "6",
    "B": "8",
})
_NUMERIC_CHARS = set("0123456789()+-./|OoIlSsGB")


@dataclass(frozen=True)
class PatternRule:
    """One entry of an ordered rule table."""
    name: str
    pattern: Pattern
    confidence: float


@dataclass
class ExtractionContext:
    """Everything an extractor may look at.

    ``assigned`` fills up as extractors run, so later extractors can
    disqualify text an earlier one already claimed.
    """
    raw_text: str
    lines: List[LayoutLine]
    layout: Optional[CardLayout] = None
    backend_confidence: float = 100.0
    assigned: Dict[str, Optional[FieldCandidate]] = field(default_factory=dict)

    @property
    def has_layout(self) -> bool:
        return self.layout is not None

    @property
    def text(self) -> str:
        """Line-joined text, in the same order the line-based extractors see it."""
        return "\n".join(line.text for line in self.lines)

    def assigned_text(self, field_name: str) -> Optional[str]:
        candidate = self.assigned.get(field_name)
        return candidate.text if candidate else None


def fix_digit_lookalikes(text: str) -> str:
    """Swap letter look-alikes for digits, but only inside numeric-looking words."""
    words = []
    for word in text.split(" "):
        digits = sum(c.isdigit() for c in word)
        if digits >= 3 and set(word) <= _NUMERIC_CHARS:
            lookalikes = sum(c.isalpha() or c == "|" for c in word)
            if lookalikes < digits:
                word = word.translate(_DIGIT_LOOKALIKES)
        words.append(word)
    return " ".join(words)


def fix_letter_lookalikes(text: str) -> str:
    """Swap digits misread inside alphabetic words ("J0hn" -> "John")."""
    text = re.sub(r"(?<=[A-Za-z])0(?=[A-Za-z])", "o", text)
    text = re.sub(r"(?<=[A-Za-z])1(?=[A-Za-z])", "l", text)
    text = re.sub(r"(?<=[A-Za-z])5(?=[A-Za-z])", "s", text)
    return text.replace("|", "I")


def apply_line_quality(candidate: FieldCandidate, line: LayoutLine) -> None:
    if line.confidence is not None and line.confidence < LOW_LINE_CONFIDENCE:
        candidate.adjust(-LOW_LINE_PENALTY, f"Low recognition confidence ({line.confidence:.0f}%)")


def select_best(candidates: Iterable[FieldCandidate]) -> Optional[FieldCandidate]:
    """Highest confidence wins; ties go to pattern > layout > context, then first seen."""
    best = None
    for candidate in candidates:
        if best is None or (candidate.confidence, candidate.priority) > (best.confidence, best.priority):
            best = candidate
    return best


class FieldExtractor(ABC):
    """Base class: correct, generate candidates, then pick one."""

    field_name: str = ""

    def correct(self, text: str) -> str:
        """Field-specific OCR correction applied before matching."""
        return text

    @abstractmethod
    def candidates(self, context: ExtractionContext) -> List[FieldCandidate]:
        """All valid candidates, already adjusted and filtered."""

    def choose(self, candidates: List[FieldCandidate]) -> Optional[FieldCandidate]:
        return select_best(candidates)

    def extract(self, context: ExtractionContext) -> Optional[FieldCandidate]:
        best = self.choose(self.candidates(context))
        if best is None:
            logger.debug(f"{self.field_name}: no candidate")
        else:
            logger.debug(
                f"{self.field_name.upper()} detected: {best.text!r} "
                f"(confidence: {best.confidence:.0f}%, reasons: {', '.join(best.reasons)})"
            )
        return best
