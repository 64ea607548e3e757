"""
Field validation and sanitization for parsed card data.

Format problems never raise: the field is dropped (or trimmed) and a
``ValidationIssue`` is recorded for the caller to surface as a warning.
"""

import re
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .errors import ValidationIssue
from .models import CARD_FIELDS, ParsedCandidate
from .security import SecurityValidator

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 100
MAX_NOTES_LENGTH = 1000
MAX_FIELD_LENGTH = 255

EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?(?:\.[A-Za-z0-9-]+)*\.[A-Za-z]{2,}$")
PHONE_CHARS = re.compile(r"^\+?[\d\s\-().]+$")
URL_PATTERN = re.compile(r"^https?://[^\s/$.?#][^\s]*\.[^\s]*$", re.IGNORECASE)
DANGEROUS_SCHEMES = ("javascript:", "data:", "vbscript:", "file:")
NAME_INVALID = re.compile(r"^[\d\W_]+$")


# =========================
# FORMAT CHECKS
# =========================

def is_valid_email(email: str) -> bool:
    if not email or len(email) > 254 or ".." in email:
        return False
    local = email.partition("@")[0]
    if not local or len(local) > 64 or local.startswith(".") or local.endswith("."):
        return False
    return bool(EMAIL_PATTERN.match(email))


def is_valid_phone(phone: str) -> bool:
    """Accept Taiwan and international numbers written with common separators."""
    if not phone or not PHONE_CHARS.match(phone.strip()):
        return False
    digits = re.sub(r"\D", "", phone)
    if not 7 <= len(digits) <= 15:
        return False
    if digits.startswith("886"):
        return 11 <= len(digits) <= 12
    if digits.startswith("09"):
        return len(digits) == 10
    return True


def is_valid_url(url: str) -> bool:
    if not url:
        return False
    candidate = url.strip()
    lowered = candidate.lower()
    if lowered.startswith(DANGEROUS_SCHEMES):
        return False
    if not lowered.startswith(("http://", "https://")):
        if "://" in lowered:
            return False
        candidate = "https://" + candidate
    return bool(URL_PATTERN.match(candidate))


# =========================
# VALIDATOR
# =========================

@dataclass
class ValidationOutcome:
    candidate: ParsedCandidate
    issues: List[ValidationIssue] = field(default_factory=list)

    @property
    def warnings(self) -> List[str]:
        return [issue.message for issue in self.issues]


class CardValidator:
    """Sanitizes every text field, then applies format checks and caps."""

    FORMAT_CHECKS = {
        "email": is_valid_email,
        "phone": is_valid_phone,
        "mobile": is_valid_phone,
        "website": is_valid_url,
    }
    LENGTH_LIMITS = {
        "name": MAX_NAME_LENGTH,
        "notes": MAX_NOTES_LENGTH,
    }

    def __init__(self, security: Optional[SecurityValidator] = None):
        self.security = security or SecurityValidator()

    def validate(self, candidate: ParsedCandidate) -> ValidationOutcome:
        issues: List[ValidationIssue] = []
        values = {}

        for name in CARD_FIELDS:
            value = getattr(candidate, name)
            if value is None:
                values[name] = None
                continue

            cleaned = self.security.sanitize(value)
            if cleaned != " ".join(value.split()):
                issues.append(ValidationIssue(name, f"{name} sanitized: unsafe content removed"))

            if not cleaned:
                values[name] = None
                continue

            check = self.FORMAT_CHECKS.get(name)
            if check and not check(cleaned):
                logger.debug(f"Dropping invalid {name}")
                issues.append(ValidationIssue(name, f"{name} format invalid"))
                values[name] = None
                continue

            if name == "name" and NAME_INVALID.match(cleaned):
                issues.append(ValidationIssue(name, "name format invalid"))
                values[name] = None
                continue

            limit = self.LENGTH_LIMITS.get(name, MAX_FIELD_LENGTH)
            if len(cleaned) > limit:
                issues.append(ValidationIssue(name, f"{name} truncated to {limit} characters"))
                cleaned = cleaned[:limit].rstrip()

            values[name] = cleaned

        if issues:
            logger.info(f"Validation recorded {len(issues)} issue(s)")
        return ValidationOutcome(candidate.copy(**values), issues)


# =========================
# TEXT QUALITY
# =========================

MAX_DIGIT_RATIO = 0.7
MAX_SPECIAL_RATIO = 0.3
ORDINARY_CHARS = re.compile(r"[A-Za-z0-9\u4e00-\u9fff\s]")


def check_text_quality(text: str, min_length: Optional[int] = None) -> List[ValidationIssue]:
    """Flag recognized text that looks like a poor scan.

    Args:
        text: Raw OCR text
        min_length: Shortest acceptable text; ``None`` skips the length check

    Returns:
        Issues for short text, digit-heavy text and symbol-heavy text
    """
    issues: List[ValidationIssue] = []
    total = len(text.strip())

    if min_length is not None and total < min_length:
        issues.append(ValidationIssue("raw_text", "OCR text quality may be poor: text too short"))
    if not total:
        return issues

    digits = sum(1 for c in text if "0" <= c <= "9")
    if digits / total > MAX_DIGIT_RATIO:
        issues.append(ValidationIssue("raw_text", "OCR text quality may be poor: too many digits"))

    special = len(ORDINARY_CHARS.sub("", text))
    if special / total > MAX_SPECIAL_RATIO:
        issues.append(ValidationIssue("raw_text", "OCR text quality may be poor: too many special characters"))

    return issues
