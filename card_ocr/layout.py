"""
Layout analysis for recognized card tokens.

Splits the card into top/middle/bottom thirds, ranks tokens by glyph height
and rebuilds printed lines from token boxes. Larger text is more often a
person's name, the middle band more often a job title.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .exceptions import LayoutUnavailable
from .models import BoundingBox, Token

logger = logging.getLogger(__name__)

TOP = "top"
MIDDLE = "middle"
BOTTOM = "bottom"
BANDS = (TOP, MIDDLE, BOTTOM)

# Minimum vertical overlap (relative to the shorter box) to share a line
LINE_OVERLAP_RATIO = 0.5


@dataclass(frozen=True)
class LayoutLine:
    """One printed line, with spatial hints when tokens were available."""
    text: str
    index: int
    band: Optional[str] = None
    prominence: Optional[int] = None
    confidence: Optional[float] = None
    height: float = 0.0

    @property
    def has_layout(self) -> bool:
        return self.band is not None


@dataclass(frozen=True)
class CardLayout:
    envelope: BoundingBox
    top: Tuple[Token, ...]
    middle: Tuple[Token, ...]
    bottom: Tuple[Token, ...]
    by_prominence: Tuple[Token, ...]
    lines: Tuple[LayoutLine, ...]

    @property
    def width(self) -> float:
        return self.envelope.width

    @property
    def height(self) -> float:
        return self.envelope.height

    def band(self, name: str) -> Tuple[Token, ...]:
        return {TOP: self.top, MIDDLE: self.middle, BOTTOM: self.bottom}[name]

    def lines_in(self, band: str) -> List[LayoutLine]:
        return [line for line in self.lines if line.band == band]

    def summary(self) -> Dict[str, int]:
        return {
            "top": len(self.top),
            "middle": len(self.middle),
            "bottom": len(self.bottom),
            "lines": len(self.lines),
        }


def _envelope(tokens: Sequence[Token]) -> BoundingBox:
    box = tokens[0].bbox
    for token in tokens[1:]:
        box = box.union(token.bbox)
    return box


def _y_overlap_ratio(a: BoundingBox, b: BoundingBox) -> float:
    overlap = max(0.0, min(a.y1, b.y1) - max(a.y0, b.y0))
    denom = min(a.height, b.height)
    return overlap / denom if denom > 0 else 0.0


class LayoutAnalyzer:
    """Turns a token sequence into bands, a prominence ranking and lines."""

    def analyze(self, tokens: Iterable[Token]) -> CardLayout:
        """
        Analyze token geometry.

        Blank tokens carry no text to extract and are left out of the
        envelope, the bands, the ranking and the lines; the three bands
        partition the remaining tokens.

        Args:
            tokens: Tokens in recognition order

        Returns:
            CardLayout

        Raises:
            LayoutUnavailable: If there is no non-blank token
        """
        tokens = [t for t in tokens if t.text and t.text.strip()]
        if not tokens:
            raise LayoutUnavailable("No tokens to analyze")

        envelope = _envelope(tokens)
        bands: Dict[str, List[Token]] = {TOP: [], MIDDLE: [], BOTTOM: []}
        for token in tokens:
            bands[self._band_for(token.bbox.center_y, envelope)].append(token)

        # Keyed by input position; sorted() is stable, so equal heights keep recognition order
        order = sorted(range(len(tokens)), key=lambda i: -tokens[i].bbox.height)
        ranks = {position: rank for rank, position in enumerate(order)}

        lines = self._build_lines(tokens, envelope, ranks)

        layout = CardLayout(
            envelope=envelope,
            top=tuple(bands[TOP]),
            middle=tuple(bands[MIDDLE]),
            bottom=tuple(bands[BOTTOM]),
            by_prominence=tuple(tokens[i] for i in order),
            lines=tuple(lines),
        )
        logger.debug(f"Layout analysis: {layout.summary()}")
        return layout

    @staticmethod
    def _band_for(center_y: float, envelope: BoundingBox) -> str:
        if envelope.height <= 0:
            return TOP
        relative = (center_y - envelope.y0) / envelope.height
        if relative < 1 / 3:
            return TOP
        if relative < 2 / 3:
            return MIDDLE
        return BOTTOM

    def _build_lines(self, tokens: List[Token], envelope: BoundingBox,
                     ranks: Dict[int, int]) -> List[LayoutLine]:
        ordered = sorted(range(len(tokens)), key=lambda i: (tokens[i].bbox.center_y, tokens[i].bbox.x0))
        groups: List[List[int]] = []
        group_box: Optional[BoundingBox] = None

        for position in ordered:
            box = tokens[position].bbox
            if groups and _y_overlap_ratio(group_box, box) >= LINE_OVERLAP_RATIO:
                groups[-1].append(position)
                group_box = group_box.union(box)
            else:
                groups.append([position])
                group_box = box

        lines = []
        for index, group in enumerate(groups):
            group.sort(key=lambda i: tokens[i].bbox.x0)
            members = [tokens[i] for i in group]
            box = _envelope(members)
            lines.append(LayoutLine(
                text=" ".join(t.text.strip() for t in members),
                index=index,
                band=self._band_for(box.center_y, envelope),
                prominence=min(ranks[i] for i in group),
                confidence=sum(t.confidence for t in members) / len(members),
                height=max(t.bbox.height for t in members),
            ))
        return lines


def lines_from_text(raw_text: str) -> List[LayoutLine]:
    """Plain line split of the transcription, with no spatial hints."""
    lines = [line.strip() for line in (raw_text or "").splitlines()]
    return [LayoutLine(text=text, index=i) for i, text in enumerate(t for t in lines if t)]
