"""
Confidence arbiter: resolves cross-field conflicts and builds the final record.

Rules run in a fixed order; later rules see the effect of earlier ones.
    1. Name containing a title keyword is discarded
    2. Company identical to name is discarded
    3. Low-confidence title carrying a legal suffix becomes the company
    4. Fields below their confidence floor are cleared
"""

import logging
from typing import Dict, Optional

from .extractors.email import website_from_email
from .extractors.vocabulary import LEGAL_SUFFIXES, TITLE_KEYWORDS, contains_keyword
from .models import (
    Address,
    ContactRecord,
    ExtractionMetadata,
    FieldCandidate,
    FieldConfidences,
    RecognitionResult,
    clamp_confidence,
)
from .settings import DEFAULT_CONFIDENCE_FLOORS

logger = logging.getLogger(__name__)

FIELDS = ("name", "title", "company", "phone", "email", "website", "address")

# Weights for the overall score; they sum to 1
FIELD_WEIGHTS = {
    "name": 0.25,
    "email": 0.25,
    "phone": 0.15,
    "company": 0.15,
    "title": 0.10,
    "website": 0.05,
    "address": 0.05,
}

TITLE_TO_COMPANY_MAX_CONFIDENCE = 80.0
DERIVED_WEBSITE_MIN_CONFIDENCE = 80.0
DERIVED_WEBSITE_PENALTY = 10.0


class ConfidenceArbiter:

    def __init__(self, floors: Optional[Dict[str, float]] = None):
        self.floors = {**DEFAULT_CONFIDENCE_FLOORS, **(floors or {})}

    # ======================================================
    # RULES
    # ======================================================

    def resolve(self, fields: Dict[str, Optional[FieldCandidate]]) -> Dict[str, Optional[FieldCandidate]]:
        """
        Apply the rule chain.

        Args:
            fields: Surviving candidate per field, as produced by the parser

        Returns:
            New dictionary with conflicts resolved; the input is not modified
        """
        fields = {name: fields.get(name) for name in FIELDS}

        name = fields["name"]
        if name and contains_keyword(name.text, TITLE_KEYWORDS):
            logger.debug(f"Discarding name {name.text!r}: contains title keyword")
            fields["name"] = None

        name, company = fields["name"], fields["company"]
        if name and company and name.text.lower() == company.text.lower():
            logger.debug(f"Discarding company {company.text!r}: same as name")
            fields["company"] = None

        title = fields["title"]
        if (title and fields["company"] is None
                and contains_keyword(title.text, LEGAL_SUFFIXES)
                and title.confidence < TITLE_TO_COMPANY_MAX_CONFIDENCE):
            logger.debug(f"Moving {title.text!r} from title to company")
            fields["company"] = FieldCandidate(
                text=title.text,
                confidence=title.confidence,
                source=title.source,
                reasons=list(title.reasons) + ["Moved from title"],
            )
            fields["title"] = None

        for field_name, floor in self.floors.items():
            candidate = fields.get(field_name)
            if candidate and candidate.confidence < floor:
                logger.debug(f"Clearing {field_name} {candidate.text!r}: {candidate.confidence:.0f} < {floor:.0f}")
                fields[field_name] = None

        return self._derive_website(fields)

    @staticmethod
    def _derive_website(fields: Dict[str, Optional[FieldCandidate]]) -> Dict[str, Optional[FieldCandidate]]:
        # The email domain always wins over any printed URL
        email = fields["email"]
        if email:
            fields["website"] = FieldCandidate(
                text=website_from_email(email.text),
                confidence=max(DERIVED_WEBSITE_MIN_CONFIDENCE, email.confidence - DERIVED_WEBSITE_PENALTY),
                source="context",
                reasons=["Derived from email domain"],
            )
        return fields

    # ======================================================
    # RECORD
    # ======================================================

    @staticmethod
    def overall_confidence(fields: Dict[str, Optional[FieldCandidate]], backend_confidence: float) -> float:
        score = sum(
            FIELD_WEIGHTS[name] * candidate.confidence
            for name, candidate in fields.items()
            if candidate and name in FIELD_WEIGHTS
        )
        return clamp_confidence(score * clamp_confidence(backend_confidence) / 100.0)

    def build_record(self, fields: Dict[str, Optional[FieldCandidate]], recognition: RecognitionResult,
                     metadata: ExtractionMetadata) -> ContactRecord:
        """
        Resolve conflicts and produce the terminal ContactRecord.

        Args:
            fields: Parser output
            recognition: The recognition result the fields came from
            metadata: Backend and timing diagnostics

        Returns:
            Immutable ContactRecord
        """
        resolved = self.resolve(fields)

        def text(field_name: str) -> Optional[str]:
            candidate = resolved[field_name]
            return candidate.text if candidate else None

        def score(field_name: str) -> float:
            candidate = resolved[field_name]
            return candidate.confidence if candidate else 0.0

        phone = resolved["phone"]
        address_candidate = resolved["address"]
        address: Optional[Address] = address_candidate.extras.get("address") if address_candidate else None

        return ContactRecord(
            name=text("name"),
            title=text("title"),
            company=text("company"),
            phone=text("phone"),
            phone_type=phone.extras.get("type") if phone else None,
            email=text("email"),
            website=text("website"),
            address=address,
            confidences=FieldConfidences(**{name: score(name) for name in FIELDS}),
            overall_confidence=self.overall_confidence(resolved, recognition.overall_confidence),
            raw_text=recognition.raw_text,
            metadata=metadata,
        )
