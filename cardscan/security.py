"""
Content screening for recognized card text.

Active injection attempts (script blocks, ``javascript:`` URLs, inline event
handlers, SQL statements) are rejected; passive markup and stray control
characters are stripped.
"""

import re
import logging
from dataclasses import dataclass, field
from typing import List

from .errors import SecurityViolation

logger = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 100_000
CONTROL_FLOOD_RATIO = 0.2

CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")

ACTIVE_INJECTION = [
    re.compile(r"<\s*script\b", re.IGNORECASE),
    re.compile(r"javascript\s*:", re.IGNORECASE),
    re.compile(r"vbscript\s*:", re.IGNORECASE),
    re.compile(r"data\s*:\s*text/html", re.IGNORECASE),
    re.compile(r"<[^>]*\bon[a-z]+\s*=", re.IGNORECASE),
    # Case-sensitive: "Eval (Asia) Ltd." is a company name
    re.compile(r"\beval\s*\(\s*['\"\w]"),
    re.compile(r"document\s*\.\s*cookie|window\s*\.\s*location", re.IGNORECASE),
    re.compile(r";\s*(?:DROP|DELETE|TRUNCATE|ALTER)\s+(?:TABLE|DATABASE|FROM)\b", re.IGNORECASE),
    re.compile(r"\bUNION\s+(?:ALL\s+)?SELECT\b", re.IGNORECASE),
    re.compile(r"'\s*OR\s+'?1'?\s*=\s*'?1", re.IGNORECASE),
]

# Order matters: whole blocks first, then any leftover tag
STRIP_PATTERNS = [
    re.compile(r"<\s*(script|style|iframe|object|embed)\b[^>]*>.*?<\s*/\s*\1\s*>", re.IGNORECASE | re.DOTALL),
    re.compile(r"<[^<>]*>"),
    re.compile(r"(?:javascript|vbscript)\s*:", re.IGNORECASE),
    re.compile(r"data\s*:\s*text/html[^\s]*", re.IGNORECASE),
    re.compile(r"\bon(?:error|load|click|mouse\w*|key\w*|focus|blur|submit|change|input)\s*=", re.IGNORECASE),
    re.compile(r"\b(?:eval|alert)\s*\(\s*(?=['\"\w)])"),
    re.compile(r"document\s*\.\s*cookie|window\s*\.\s*location", re.IGNORECASE),
]

SENSITIVE_PATTERNS = [
    (re.compile(r"\b(?:\d[ -]?){13,16}\b"), "****-****-****-****"),
    (re.compile(r"\b(?:sk|pk|AIza)[-_A-Za-z0-9]{16,}\b"), "[API_KEY]"),
    (re.compile(r"(?i)(password|passwd|pwd)\s*[:=]\s*\S+"), r"\1: [REDACTED]"),
    (re.compile(r"([A-Za-z0-9._%+-])[A-Za-z0-9._%+-]*@([A-Za-z0-9.-]+\.[A-Za-z]{2,})"), r"\1***@\2"),
    (re.compile(r"(\+?\d[\d\s-]{4,}?)(\d{3,4})\b"), r"***\2"),
]


@dataclass
class ContentScreening:
    """Screened text plus a description of everything that was removed."""

    text: str
    findings: List[str] = field(default_factory=list)

    @property
    def sanitized(self) -> bool:
        return bool(self.findings)


class SecurityValidator:
    """Screens raw OCR text and sanitizes individual field values."""

    def __init__(self, reject_active_injection: bool = True, max_content_length: int = MAX_CONTENT_LENGTH):
        self.reject_active_injection = reject_active_injection
        self.max_content_length = max_content_length

    def validate_content(self, text: str) -> ContentScreening:
        """Screen raw recognized text.

        Args:
            text: Raw OCR text

        Returns:
            ContentScreening with the cleaned text and findings

        Raises:
            SecurityViolation: Oversized content, control-character flood, or
                an active injection attempt when rejection is enabled
        """
        if len(text) > self.max_content_length:
            raise SecurityViolation(
                f"Content exceeds {self.max_content_length} characters",
                violation="SIZE_LIMIT",
            )

        controls = len(CONTROL_CHARS.findall(text))
        if text and controls / len(text) > CONTROL_FLOOD_RATIO:
            raise SecurityViolation("Content is flooded with control characters", violation="SUSPICIOUS_CONTENT")

        findings = []
        injection = self.detect_injection(text)
        if injection:
            if self.reject_active_injection:
                logger.warning(f"Rejected OCR text with active injection: {injection}")
                raise SecurityViolation(
                    "Active injection attempt detected in recognized text",
                    violation="INJECTION_DETECTED",
                    details={"pattern": injection},
                )
            findings.append("potentially malicious content removed from OCR text")

        cleaned = self.sanitize(text, preserve_lines=True)
        if not findings and cleaned != _collapse(text, preserve_lines=True):
            findings.append("markup or control characters removed from OCR text")

        return ContentScreening(text=cleaned, findings=findings)

    @staticmethod
    def detect_injection(text: str):
        for pattern in ACTIVE_INJECTION:
            m = pattern.search(text)
            if m:
                return m.group(0)
        return None

    @staticmethod
    def sanitize(text: str, preserve_lines: bool = False) -> str:
        """Strip markup, script fragments and control characters.

        Runs the strip patterns until nothing changes, so
        ``sanitize(sanitize(x)) == sanitize(x)``.
        """
        if not text:
            return ""
        previous = None
        while previous != text:
            previous = text
            for pattern in STRIP_PATTERNS:
                text = pattern.sub("", text)
            text = CONTROL_CHARS.sub("", text)
            text = _collapse(text, preserve_lines)
        return text

    @staticmethod
    def mask_sensitive_info(text: str) -> str:
        """Mask emails, phone numbers, card numbers and keys for log output."""
        for pattern, replacement in SENSITIVE_PATTERNS:
            text = pattern.sub(replacement, text)
        return text


def _collapse(text: str, preserve_lines: bool) -> str:
    if not preserve_lines:
        return " ".join(text.split())
    lines = (" ".join(line.split()) for line in text.replace("\r\n", "\n").split("\n"))
    return "\n".join(line for line in lines if line)
