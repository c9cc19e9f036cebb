"""
Data model shared by the recognition, layout, extraction and arbitration stages.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


def clamp_confidence(value: float) -> float:
    """Clamp a confidence score into the 0-100 range."""
    return max(0.0, min(100.0, float(value)))


# =========================
# RECOGNITION
# =========================

@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box in image pixel coordinates."""
    x0: float
    y0: float
    x1: float
    y1: float

    @property
    def width(self) -> float:
        return self.x1 - self.x0

    @property
    def height(self) -> float:
        return self.y1 - self.y0

    @property
    def center_y(self) -> float:
        return (self.y0 + self.y1) / 2.0

    def union(self, other: "BoundingBox") -> "BoundingBox":
        return BoundingBox(
            min(self.x0, other.x0),
            min(self.y0, other.y0),
            max(self.x1, other.x1),
            max(self.y1, other.y1),
        )


@dataclass(frozen=True)
class Token:
    """A single recognized word with its box and 0-100 confidence."""
    text: str
    bbox: BoundingBox
    confidence: float = 100.0


@dataclass(frozen=True)
class RecognitionResult:
    """Output of one backend for one image."""
    raw_text: str
    tokens: Tuple[Token, ...] = ()
    overall_confidence: float = 0.0
    backend: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "raw_text": self.raw_text,
            "token_count": len(self.tokens),
            "overall_confidence": round(self.overall_confidence, 2),
            "backend": self.backend,
        }


# =========================
# EXTRACTION
# =========================

SOURCE_PRIORITY = {"pattern": 3, "layout": 2, "context": 1}


@dataclass
class FieldCandidate:
    """A provisional value proposed by an extractor."""
    text: str
    confidence: float
    source: str = "pattern"
    priority: Optional[int] = None
    reasons: List[str] = field(default_factory=list)
    extras: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.source not in SOURCE_PRIORITY:
            raise ValueError(f"Unknown candidate source: {self.source}")
        self.confidence = clamp_confidence(self.confidence)
        if self.priority is None:
            self.priority = SOURCE_PRIORITY[self.source]

    def adjust(self, delta: float, reason: str) -> None:
        """Shift confidence by ``delta`` and record why."""
        self.confidence = clamp_confidence(self.confidence + delta)
        self.reasons.append(reason)


@dataclass(frozen=True)
class Address:
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    full: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "street": self.street,
            "city": self.city,
            "state": self.state,
            "zip": self.zip,
            "full": self.full,
        }


@dataclass(frozen=True)
class FieldConfidences:
    name: float = 0.0
    title: float = 0.0
    company: float = 0.0
    phone: float = 0.0
    email: float = 0.0
    website: float = 0.0
    address: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "name": round(self.name, 2),
            "title": round(self.title, 2),
            "company": round(self.company, 2),
            "phone": round(self.phone, 2),
            "email": round(self.email, 2),
            "website": round(self.website, 2),
            "address": round(self.address, 2),
        }


@dataclass(frozen=True)
class QualityReport:
    """Verdict handed over by the image-quality gate, when there is one."""
    acceptable: Optional[bool] = None
    issues: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Strategy:
    primary: str
    fallback: Optional[str]
    reason: str

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"primary": self.primary, "fallback": self.fallback, "reason": self.reason}


@dataclass(frozen=True)
class ExtractionMetadata:
    backend: Optional[str] = None
    elapsed_ms: float = 0.0
    fallback_used: bool = False
    strategy: Optional[str] = None
    status: str = "success"
    error: Optional[str] = None
    error_kind: Optional[str] = None
    quality_issues: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "backend": self.backend,
            "elapsed_ms": round(self.elapsed_ms, 2),
            "fallback_used": self.fallback_used,
            "strategy": self.strategy,
            "status": self.status,
            "error": self.error,
            "error_kind": self.error_kind,
            "quality_issues": list(self.quality_issues),
        }


@dataclass(frozen=True)
class ContactRecord:
    """Final, immutable extraction result for one card."""
    name: Optional[str] = None
    title: Optional[str] = None
    company: Optional[str] = None
    phone: Optional[str] = None
    phone_type: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    address: Optional[Address] = None
    confidences: FieldConfidences = field(default_factory=FieldConfidences)
    overall_confidence: float = 0.0
    raw_text: str = ""
    metadata: ExtractionMetadata = field(default_factory=ExtractionMetadata)

    @property
    def success(self) -> bool:
        return self.metadata.status == "success"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name or "",
            "title": self.title or "",
            "company": self.company or "",
            "phone": self.phone or "",
            "phone_type": self.phone_type or "",
            "email": self.email or "",
            "website": self.website or "",
            "address": self.address.to_dict() if self.address else None,
            "field_confidence": self.confidences.to_dict(),
            "confidence_score": round(self.overall_confidence, 2),
            "raw_text": self.raw_text,
            "metadata": self.metadata.to_dict(),
        }
