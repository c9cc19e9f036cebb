"""
Tests for ConfidenceArbiter.

Tests the conflict rules, their order, floors and record assembly.
"""

import pytest

from card_ocr.arbiter import ConfidenceArbiter
from card_ocr.models import Address, ExtractionMetadata, FieldCandidate, RecognitionResult


def candidate(text, confidence=90, **extras):
    return FieldCandidate(text=text, confidence=confidence, extras=extras)


class TestConfidenceArbiter:
    """Test cases for ConfidenceArbiter."""

    @pytest.fixture
    def arbiter(self):
        return ConfidenceArbiter()

    def test_name_with_title_keyword_discarded(self, arbiter):
        resolved = arbiter.resolve({"name": candidate("Sales Manager")})

        assert resolved["name"] is None

    def test_company_equal_to_name_discarded(self, arbiter):
        resolved = arbiter.resolve({"name": candidate("Jane Lee"), "company": candidate("JANE LEE")})

        assert resolved["name"].text == "Jane Lee"
        assert resolved["company"] is None

    def test_title_with_legal_suffix_moves_to_company(self, arbiter):
        resolved = arbiter.resolve({"title": candidate("Director Holdings LLC", 70)})

        assert resolved["title"] is None
        assert resolved["company"].text == "Director Holdings LLC"
        assert resolved["company"].confidence == 70
        assert "Moved from title" in resolved["company"].reasons

    def test_confident_title_not_moved(self, arbiter):
        resolved = arbiter.resolve({"title": candidate("Director Holdings LLC", 85)})

        assert resolved["title"].text == "Director Holdings LLC"
        assert resolved["company"] is None

    def test_title_not_moved_when_company_present(self, arbiter):
        resolved = arbiter.resolve({
            "title": candidate("Partner, Smith & Co LLC", 70),
            "company": candidate("Acme Corp"),
        })

        assert resolved["title"] is not None
        assert resolved["company"].text == "Acme Corp"

    def test_rule_order_name_discard_protects_company(self, arbiter):
        # Rule 1 removes the name first, so rule 2 has nothing to compare against
        resolved = arbiter.resolve({"name": candidate("Lead Partners"), "company": candidate("Lead Partners")})

        assert resolved["name"] is None
        assert resolved["company"].text == "Lead Partners"

    def test_rule_order_company_discard_then_title_move(self, arbiter):
        resolved = arbiter.resolve({
            "name": candidate("Jane Lee"),
            "company": candidate("Jane Lee"),
            "title": candidate("Lee Family Holdings Inc", 65),
        })

        assert resolved["company"].text == "Lee Family Holdings Inc"
        assert resolved["title"] is None

    def test_moved_title_still_subject_to_company_floor(self):
        arbiter = ConfidenceArbiter(floors={"company": 70})
        resolved = arbiter.resolve({"title": candidate("Acme Inc", 65)})

        assert resolved["title"] is None
        assert resolved["company"] is None

    def test_confidence_floors(self, arbiter):
        resolved = arbiter.resolve({
            "name": candidate("Jane Lee", 49),
            "title": candidate("Director", 59),
            "company": candidate("Acme Corp", 50),
        })

        assert resolved["name"] is None
        assert resolved["title"] is None
        assert resolved["company"].text == "Acme Corp"

    def test_partial_floor_override_keeps_other_defaults(self):
        arbiter = ConfidenceArbiter(floors={"name": 70})

        assert arbiter.floors == {"name": 70, "title": 60.0, "company": 50.0}
        resolved = arbiter.resolve({
            "name": candidate("Jane Lee", 65),
            "title": candidate("Director", 59),
            "company": candidate("Acme Corp", 49),
        })

        assert resolved["name"] is None
        assert resolved["title"] is None
        assert resolved["company"] is None

    def test_website_derived_from_email(self, arbiter):
        resolved = arbiter.resolve({
            "email": candidate("jane@health.com", 100),
            "website": candidate("www.other.org", 85),
        })

        assert resolved["website"].text == "www.health.com"
        assert resolved["website"].confidence == 90

    def test_derived_website_confidence_floor(self, arbiter):
        resolved = arbiter.resolve({"email": candidate("jane@health.com", 60)})

        assert resolved["website"].confidence == 80

    def test_printed_website_kept_without_email(self, arbiter):
        resolved = arbiter.resolve({"website": candidate("www.acme.com", 85)})

        assert resolved["website"].text == "www.acme.com"

    def test_resolve_does_not_mutate_input(self, arbiter):
        fields = {"name": candidate("Sales Manager")}
        arbiter.resolve(fields)

        assert fields["name"] is not None

    def test_overall_confidence(self, arbiter):
        fields = {"name": candidate("Jane Lee", 80), "email": candidate("jane@health.com", 100)}

        assert arbiter.overall_confidence(fields, 100) == pytest.approx(45.0)
        assert arbiter.overall_confidence(fields, 50) == pytest.approx(22.5)

    def test_build_record(self, arbiter):
        address = Address(street="1 Main St", city="Springfield", state="IL", zip="62701",
                          full="1 Main St, Springfield, IL 62701")
        fields = {
            "name": candidate("Jane Lee", 90),
            "email": candidate("jane@health.com", 100),
            "phone": candidate("(555) 987-6543", 90, type="office"),
            "address": candidate(address.full, 95, address=address),
        }
        recognition = RecognitionResult(raw_text="...", overall_confidence=100.0, backend="gemini")
        record = arbiter.build_record(fields, recognition, ExtractionMetadata(backend="gemini"))

        assert record.name == "Jane Lee"
        assert record.website == "www.health.com"
        assert record.phone_type == "office"
        assert record.address.city == "Springfield"
        assert record.confidences.website == 90
        assert record.title is None and record.confidences.title == 0
        assert 0 <= record.overall_confidence <= 100
        assert record.metadata.backend == "gemini"
