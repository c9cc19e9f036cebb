"""
Word lists shared by the extractors and the arbiter.
"""

import re
from functools import lru_cache
from typing import Iterable, List, Pattern

HONORIFICS = frozenset({
    "mr", "mrs", "ms", "miss", "mx", "dr", "prof", "professor", "rev", "reverend", "sir",
})

TITLE_KEYWORDS = (
    "ceo", "cto", "cfo", "coo", "cmo", "cio", "ciso",
    "president", "vice president", "vp", "svp", "evp",
    "director", "manager", "senior", "lead", "head", "chief", "principal",
    "associate", "coordinator", "specialist", "analyst", "consultant",
    "engineer", "developer", "designer", "architect", "supervisor", "executive",
    "officer", "founder", "co-founder", "owner", "partner", "administrator",
    "assistant", "representative", "advisor", "attorney", "accountant", "agent",
    "broker", "realtor", "chairman", "chairwoman",
)

BUSINESS_SUFFIXES = (
    "llc", "inc", "corp", "corporation", "ltd", "limited", "co", "company", "plc", "gmbh",
    "enterprises", "enterprise", "group", "solutions", "services", "associates",
    "partners", "partnership", "holdings", "ventures", "technologies", "tech",
    "systems", "consulting", "consultants", "advisors", "agency", "firm",
    "organization", "foundation", "institute", "center", "centre", "labs", "studio",
)

# Strictly legal-entity markers; a title carrying one of these is really a company line
LEGAL_SUFFIXES = ("llc", "inc", "corp", "corporation", "company", "ltd", "limited", "plc", "gmbh")

INDUSTRY_KEYWORDS = (
    "software", "technology", "digital", "data", "analytics", "consulting",
    "marketing", "advertising", "design", "creative", "media", "communications",
    "financial", "insurance", "real estate", "construction", "manufacturing",
    "healthcare", "medical", "pharmaceutical", "biotech", "research",
    "education", "training", "hospitality", "retail", "logistics", "transport",
    "law", "legal", "bank", "capital", "realty", "dental", "clinic",
)

DEPARTMENT_WORDS = ("department", "dept", "division", "unit", "team", "branch")

LOWERCASE_CONNECTORS = frozenset({"of", "and", "the", "for", "in", "on", "at", "by", "&"})

SUFFIX_CASING = {
    "llc": "LLC",
    "inc": "Inc",
    "corp": "Corp",
    "ltd": "Ltd",
    "co": "Co",
    "plc": "PLC",
    "gmbh": "GmbH",
}

FREE_MAIL_DOMAINS = frozenset({
    "gmail.com", "yahoo.com", "hotmail.com", "outlook.com", "icloud.com",
    "me.com", "aol.com", "live.com", "msn.com", "protonmail.com",
})

GENERIC_INBOXES = (
    "info", "contact", "sales", "support", "admin", "office",
    "hello", "team", "mail", "inquiries", "business",
)

VALID_DOMAINS = frozenset({
    "com", "org", "net", "edu", "gov", "mil", "int",
    "co.uk", "co.au", "co.nz", "com.au", "co.jp", "co.kr",
    "ca", "de", "fr", "it", "es", "nl", "be", "ch", "at",
    "se", "no", "dk", "fi", "pl", "cz", "hu", "ru", "us", "uk", "in",
    "io", "ai", "tech", "dev", "app", "cloud", "digital",
    "online", "site", "website", "pro", "biz", "info", "co",
})

STREET_TYPES = (
    "street", "st", "avenue", "ave", "road", "rd", "drive", "dr", "lane", "ln",
    "boulevard", "blvd", "way", "place", "pl", "court", "ct", "parkway", "pkwy",
    "highway", "hwy", "circle", "cir", "square", "sq", "terrace", "suite", "ste",
)


@lru_cache(maxsize=None)
def _keyword_pattern(keyword: str) -> Pattern:
    return re.compile(rf"(?<![\w-]){re.escape(keyword)}(?![\w-])", re.IGNORECASE)


def matching_keywords(text: str, vocabulary: Iterable[str]) -> List[str]:
    """Vocabulary entries present in ``text`` as whole words, in vocabulary order."""
    return [kw for kw in vocabulary if _keyword_pattern(kw).search(text)]


def contains_keyword(text: str, vocabulary: Iterable[str]) -> bool:
    return any(_keyword_pattern(kw).search(text) for kw in vocabulary)
