"""
Tests for SecurityValidator class.
"""

import pytest

from cardscan import SecurityValidator, SecurityViolation


class TestValidateContent:
    """Test cases for screening raw OCR text."""

    @pytest.fixture
    def validator(self):
        """Create validator that rejects active injection."""
        return SecurityValidator()

    def test_clean_text_passes(self, validator, card_text):
        """Test ordinary card text is returned without findings."""
        screening = validator.validate_content(card_text)

        assert screening.text == card_text
        assert screening.findings == []
        assert screening.sanitized is False

    def test_script_rejected(self, validator):
        """Test script blocks are fatal by default."""
        with pytest.raises(SecurityViolation) as exc:
            validator.validate_content("王小明\n<script>alert(1)</script>")

        assert exc.value.violation == "INJECTION_DETECTED"
        assert exc.value.code == "SECURITY_VIOLATION"

    def test_script_sanitized_when_allowed(self):
        """Test sanitizing mode removes the payload and records it."""
        validator = SecurityValidator(reject_active_injection=False)

        screening = validator.validate_content("王小明\n<script>alert(1)</script>\n經理")

        assert screening.text == "王小明\n經理"
        assert screening.findings == ["potentially malicious content removed from OCR text"]

    def test_passive_markup_stripped(self, validator):
        """Test harmless tags are stripped with a finding."""
        screening = validator.validate_content("<b>王小明</b>\n經理")

        assert screening.text == "王小明\n經理"
        assert screening.findings == ["markup or control characters removed from OCR text"]

    def test_size_limit(self):
        """Test oversized content is rejected."""
        validator = SecurityValidator(max_content_length=10)

        with pytest.raises(SecurityViolation) as exc:
            validator.validate_content("x" * 11)

        assert exc.value.violation == "SIZE_LIMIT"

    def test_control_character_flood(self, validator):
        """Test text made mostly of control characters is rejected."""
        with pytest.raises(SecurityViolation) as exc:
            validator.validate_content("\x01\x02\x03\x04ab")

        assert exc.value.violation == "SUSPICIOUS_CONTENT"

    def test_company_name_with_parenthesis_passes(self, validator):
        """Test words like "Exec (" in a company name are not script calls."""
        text = "王小明\nExec (Asia) Pte. Ltd.\n經理"

        screening = validator.validate_content(text)

        assert screening.text == text
        assert screening.findings == []
        assert SecurityValidator.sanitize("Exec (Asia) Pte. Ltd.") == "Exec (Asia) Pte. Ltd."

    def test_eval_call_detected(self, validator):
        """Test a lowercase eval call is still an injection."""
        assert validator.detect_injection("eval('x')") is not None
        assert validator.detect_injection("Eval (Global) Inc.") is None

    def test_sql_injection_detected(self, validator):
        """Test SQL payloads are detected."""
        assert validator.detect_injection("x'; DROP TABLE cards; --") is not None
        assert validator.detect_injection("王小明 經理") is None


class TestSanitize:
    """Test cases for field sanitization."""

    SAMPLES = [
        "王小明",
        "<b>Acme</b> Inc",
        "<scr<script>ipt>alert(1)</script>",
        "javascript:javascript:void(0)",
        "<img src=x onerror=alert(1)>",
        "a\x00b\x07c",
        "  spaced   out  ",
    ]

    def test_idempotent(self):
        """Test sanitizing twice equals sanitizing once."""
        for text in self.SAMPLES:
            once = SecurityValidator.sanitize(text)
            assert SecurityValidator.sanitize(once) == once, f"Failed for: {text!r}"

    def test_removes_markup(self):
        """Test tags and scripts are gone."""
        assert SecurityValidator.sanitize("<b>Acme</b> Inc") == "Acme Inc"
        assert "alert" not in SecurityValidator.sanitize("<script>alert(1)</script>")

    def test_empty(self):
        """Test empty input."""
        assert SecurityValidator.sanitize("") == ""


class TestMaskSensitiveInfo:
    """Test cases for log masking."""

    def test_email_masked(self):
        """Test email local parts are hidden."""
        masked = SecurityValidator.mask_sensitive_info("xiaoming.wang@techcorp.com")

        assert "xiaoming.wang@techcorp.com" not in masked
        assert masked.endswith("@techcorp.com")

    def test_phone_masked(self):
        """Test phone numbers are not logged in full."""
        masked = SecurityValidator.mask_sensitive_info("手機: 0912-345-678")

        assert "0912-345-678" not in masked

    def test_api_key_masked(self):
        """Test API-key-like tokens are redacted."""
        masked = SecurityValidator.mask_sensitive_info("key AIzaSyA1234567890abcdefghij")

        assert "[API_KEY]" in masked
