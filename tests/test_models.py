"""
Tests for the data model and error types.
"""

import pytest

from cardscan import (
    ImageTooLarge,
    OCRResult,
    ParsedCandidate,
    ParseHints,
    ParseSource,
    StageTimeout,
    ValidationIssue,
)
from cardscan.models import clamp_confidence


class TestConfidence:
    """Test cases for confidence clamping."""

    def test_clamp(self):
        """Test values are forced into [0, 1]."""
        assert clamp_confidence(1.7) == 1.0
        assert clamp_confidence(-0.2) == 0.0
        assert clamp_confidence(None) == 0.0
        assert clamp_confidence(float("nan")) == 0.0

    def test_ocr_result_clamped(self):
        """Test OCRResult never stores an out-of-range confidence."""
        assert OCRResult(raw_text="x", confidence=3).confidence == 1.0

    def test_candidate_clamped(self):
        """Test ParsedCandidate clamps and coerces source."""
        candidate = ParsedCandidate(source="ai", confidence=-1)

        assert candidate.source is ParseSource.AI
        assert candidate.confidence == 0.0


class TestParseHints:
    """Test cases for ParseHints."""

    def test_from_dict(self):
        """Test unknown and empty keys are ignored."""
        hints = ParseHints.from_dict({"language": "zh-TW", "country": "", "color": "blue"})

        assert hints.language == "zh-TW"
        assert hints.country is None
        assert hints.to_dict() == {"language": "zh-TW"}

    def test_from_empty(self):
        """Test empty input gives no hints."""
        assert ParseHints.from_dict(None) is None
        assert ParseHints.from_dict({}) is None


class TestErrors:
    """Test cases for error types."""

    def test_to_dict(self):
        """Test error serialization."""
        data = ImageTooLarge(200, 100).to_dict()

        assert data["error_type"] == "IMAGE_TOO_LARGE"
        assert data["details"] == {"field": "image", "size": 200, "limit": 100}

    def test_timeout_is_service_unavailable(self):
        """Test timeouts belong to the service-unavailable family."""
        error = StageTimeout("ocr", 2.5)

        assert error.fatal is True
        assert error.details["stage"] == "ocr"
        assert "2.5s" in error.message

    def test_validation_issue_not_fatal(self):
        """Test validation issues are warnings."""
        issue = ValidationIssue("email", "email format invalid")

        assert issue.fatal is False
        assert str(issue) == "email format invalid"

    def test_validation_issue_frozen(self):
        """Test issues are immutable."""
        issue = ValidationIssue("email", "email format invalid")

        with pytest.raises(AttributeError):
            issue.field = "phone"
