"""
Email and website extraction.
"""

import logging
import re
from typing import List, Optional

from ..models import FieldCandidate
from .base import ExtractionContext, FieldExtractor, PatternRule, select_best
from .vocabulary import FREE_MAIL_DOMAINS, GENERIC_INBOXES, VALID_DOMAINS

logger = logging.getLogger(__name__)

_USER = r"[a-zA-Z0-9](?:[a-zA-Z0-9._%+-]*[a-zA-Z0-9])?"
_HOST = r"[a-zA-Z0-9](?:[a-zA-Z0-9.-]*[a-zA-Z0-9])?"

EMAIL_RULES = (
    PatternRule("standard", re.compile(rf"{_USER}@{_HOST}\.[a-zA-Z]{{2,}}\b"), 95),
    # ".c0m" style domains the standard pattern cannot see
    PatternRule("ocr_variant", re.compile(rf"{_USER}@{_HOST}\.c[o0]m\b", re.IGNORECASE), 80),
)

_VALID_USER = re.compile(r"^[a-z0-9._%+-]+$")
_VALID_DOMAIN = re.compile(r"^[a-z0-9.-]+\.[a-z]{2,}$")

DOMAIN_MATCH_BONUS = 10
DOMAIN_MISS_PENALTY = 15
CORRECTION_PENALTY = 10
MIN_VALID_CONFIDENCE = 50


def website_from_email(email: str) -> str:
    return "www." + email.split("@", 1)[1]


class EmailExtractor(FieldExtractor):
    """Finds the contact email; business addresses beat free-mail ones."""

    field_name = "email"

    def correct(self, text: str) -> str:
        text = text.replace("|", "l")
        # "john @ acme . com" -> "john@acme.com"
        text = re.sub(r"(\S)\s*@\s*(\S)", r"\1@\2", text)
        text = re.sub(r"(@[\w-]+)\s*\.\s*(com|org|net|edu|gov|io|c0m)\b", r"\1.\2", text, flags=re.IGNORECASE)
        return text

    @staticmethod
    def _fix_domain(email: str) -> str:
        user, domain = email.split("@", 1)
        domain = re.sub(r"\.c0m$", ".com", domain)
        domain = re.sub(r"(?<=[a-z])0(?=[a-z])", "o", domain)
        return f"{user}@{domain}"

    @staticmethod
    def domain_allowed(domain: str) -> bool:
        parts = domain.split(".")
        return parts[-1] in VALID_DOMAINS or ".".join(parts[-2:]) in VALID_DOMAINS

    @staticmethod
    def is_business(email: str) -> bool:
        user, domain = email.split("@", 1)
        if domain not in FREE_MAIL_DOMAINS:
            return True
        return user.startswith(GENERIC_INBOXES)

    def _score(self, email: str, rule: PatternRule, corrected: bool) -> Optional[FieldCandidate]:
        user, domain = email.split("@", 1)
        if not _VALID_USER.match(user) or not _VALID_DOMAIN.match(domain):
            return None

        candidate = FieldCandidate(
            text=email,
            confidence=rule.confidence,
            source="pattern",
            reasons=[f"Matched {rule.name} email pattern"],
            extras={"domain": domain},
        )

        if self.domain_allowed(domain):
            candidate.adjust(DOMAIN_MATCH_BONUS, "Recognized domain suffix")
        else:
            candidate.adjust(-DOMAIN_MISS_PENALTY, f"Unrecognized domain suffix: {domain}")

        if corrected:
            candidate.adjust(-CORRECTION_PENALTY, "OCR corrections applied")

        business = self.is_business(email)
        candidate.extras["business"] = business
        candidate.reasons.append("Business address" if business else "Personal address")
        return candidate

    def candidates(self, context: ExtractionContext) -> List[FieldCandidate]:
        source_text = context.text or context.raw_text
        original = source_text.lower()
        corrected_text = self.correct(source_text)

        seen = set()
        results = []
        for rule in EMAIL_RULES:
            for match in rule.pattern.finditer(corrected_text):
                found = match.group(0).lower()
                email = self._fix_domain(found)
                if email in seen:
                    continue
                seen.add(email)

                corrected = email != found or found not in original
                candidate = self._score(email, rule, corrected)
                if candidate is not None and candidate.confidence > MIN_VALID_CONFIDENCE:
                    results.append(candidate)
        return results

    def choose(self, candidates: List[FieldCandidate]) -> Optional[FieldCandidate]:
        business = [c for c in candidates if c.extras.get("business")]
        return select_best(business or candidates)


WEBSITE_PATTERN = re.compile(
    r"\b(?:https?://)?(?:www\.)[a-z0-9-]+(?:\.[a-z0-9-]+)+(?:/\S*)?"
    r"|\bhttps?://[a-z0-9-]+(?:\.[a-z0-9-]+)+(?:/\S*)?",
    re.IGNORECASE,
)
WEBSITE_CONFIDENCE = 85


class WebsiteExtractor(FieldExtractor):
    """Explicit URLs. Only consulted when no email supplies the domain."""

    field_name = "website"

    def correct(self, text: str) -> str:
        text = re.sub(r"www\s*\.\s*", "www.", text, flags=re.IGNORECASE)
        return re.sub(r"\.c0m\b", ".com", text, flags=re.IGNORECASE)

    def candidates(self, context: ExtractionContext) -> List[FieldCandidate]:
        results = []
        for line in context.lines:
            if "@" in line.text:
                continue
            for match in WEBSITE_PATTERN.finditer(self.correct(line.text)):
                url = match.group(0).rstrip(".,;/")
                url = re.sub(r"^https?://", "", url, flags=re.IGNORECASE).lower()
                if not url.startswith("www."):
                    url = "www." + url
                results.append(FieldCandidate(
                    text=url,
                    confidence=WEBSITE_CONFIDENCE,
                    source="pattern",
                    reasons=["Explicit web address"],
                ))
        return results
