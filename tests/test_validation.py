"""
Tests for CardValidator and the format checks.
"""

import pytest

from cardscan import CardValidator, ParsedCandidate, ParseSource, check_text_quality
from cardscan.validation import is_valid_email, is_valid_phone, is_valid_url


def candidate(**fields):
    return ParsedCandidate(source=ParseSource.LOCAL, confidence=0.8, **fields)


class TestFormatChecks:
    """Test cases for email, phone and URL checks."""

    def test_email(self):
        """Test email validation."""
        assert is_valid_email("xiaoming.wang@techcorp.com")
        assert is_valid_email("user.name+tag@domain.co.uk")
        assert not is_valid_email("not-an-email")
        assert not is_valid_email("a..b@example.com")
        assert not is_valid_email(".a@example.com")

    def test_phone(self):
        """Test Taiwan and international numbers."""
        assert is_valid_phone("02-2345-6789")
        assert is_valid_phone("0912-345-678")
        assert is_valid_phone("+886 912 345 678")
        assert is_valid_phone("+1 415 555 0132")
        assert not is_valid_phone("0912-345-67")
        assert not is_valid_phone("123")
        assert not is_valid_phone("call me")

    def test_url(self):
        """Test URLs with and without scheme."""
        assert is_valid_url("https://www.acme.com")
        assert is_valid_url("www.acme.com")
        assert is_valid_url("acme.com.tw/about")
        assert not is_valid_url("javascript:alert(1)")
        assert not is_valid_url("ftp://acme.com")
        assert not is_valid_url("")


class TestCardValidator:
    """Test cases for CardValidator."""

    @pytest.fixture
    def validator(self):
        """Create validator instance."""
        return CardValidator()

    def test_clean_candidate_unchanged(self, validator):
        """Test valid fields pass without issues."""
        outcome = validator.validate(candidate(
            name="王小明",
            email="xiaoming.wang@techcorp.com",
            phone="02-2345-6789",
            website="www.techcorp.com",
        ))

        assert outcome.issues == []
        assert outcome.candidate.email == "xiaoming.wang@techcorp.com"
        assert outcome.candidate.website == "www.techcorp.com"

    def test_invalid_email_dropped(self, validator):
        """Test a malformed email is removed with a warning."""
        outcome = validator.validate(candidate(name="王小明", email="wang@@example"))

        assert outcome.candidate.email is None
        assert outcome.warnings == ["email format invalid"]
        assert outcome.issues[0].fatal is False

    def test_invalid_mobile_dropped(self, validator):
        """Test a malformed mobile number is removed."""
        outcome = validator.validate(candidate(name="王小明", mobile="0912-34"))

        assert outcome.candidate.mobile is None
        assert "mobile format invalid" in outcome.warnings

    def test_markup_sanitized(self, validator):
        """Test markup is stripped from text fields."""
        outcome = validator.validate(candidate(name="王小明", company="<b>Acme</b> Inc"))

        assert outcome.candidate.company == "Acme Inc"
        assert outcome.warnings == ["company sanitized: unsafe content removed"]

    def test_symbolic_name_dropped(self, validator):
        """Test a name made only of digits or symbols is removed."""
        outcome = validator.validate(candidate(name="12345"))

        assert outcome.candidate.name is None
        assert outcome.warnings == ["name format invalid"]

    def test_long_fields_truncated(self, validator):
        """Test length caps per field."""
        outcome = validator.validate(candidate(name="A" * 150, company="B" * 300, notes="C" * 1200))

        assert len(outcome.candidate.name) == 100
        assert len(outcome.candidate.company) == 255
        assert len(outcome.candidate.notes) == 1000
        assert "name truncated to 100 characters" in outcome.warnings

    def test_original_not_mutated(self, validator):
        """Test the input candidate is left untouched."""
        original = candidate(name="王小明", email="bad")
        validator.validate(original)

        assert original.email == "bad"


class TestTextQuality:
    """Test cases for check_text_quality."""

    def test_clean_text(self, card_text):
        """Test ordinary card text raises nothing."""
        assert check_text_quality(card_text) == []

    def test_too_short(self):
        """Test the optional length floor."""
        issues = check_text_quality("王小明", min_length=5)

        assert [issue.message for issue in issues] == ["OCR text quality may be poor: text too short"]
        assert check_text_quality("王小明") == []

    def test_too_many_digits(self):
        """Test mostly numeric text is flagged."""
        messages = [issue.message for issue in check_text_quality("王 0912345678 0223456789")]

        assert messages == ["OCR text quality may be poor: too many digits"]

    def test_too_many_special_characters(self):
        """Test symbol-heavy text is flagged."""
        messages = [issue.message for issue in check_text_quality("王小明 ~~## ^^**")]

        assert messages == ["OCR text quality may be poor: too many special characters"]

    def test_blank_text(self):
        """Test blank text only fails the length check."""
        assert check_text_quality("   ") == []
        assert len(check_text_quality("   ", min_length=1)) == 1
