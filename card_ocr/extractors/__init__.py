"""Per-field extractors."""

from .address import AddressExtractor
from .base import ExtractionContext, FieldExtractor, select_best
from .company import CompanyExtractor
from .email import EmailExtractor, WebsiteExtractor, website_from_email
from .name import NameExtractor
from .phone import PhoneExtractor
from .title import TitleExtractor

__all__ = [
    "AddressExtractor",
    "CompanyExtractor",
    "EmailExtractor",
    "ExtractionContext",
    "FieldExtractor",
    "NameExtractor",
    "PhoneExtractor",
    "TitleExtractor",
    "WebsiteExtractor",
    "select_best",
    "website_from_email",
]
