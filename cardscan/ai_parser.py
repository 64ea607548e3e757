"""
AI parsing adapter contract and the Gemini implementation.

The Gemini parser only sees recognized text, never the image.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any, Dict, Optional

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from .errors import InvalidInput, QuotaExceeded, RateLimited, ServiceUnavailable
from .models import CARD_FIELDS, ParsedCandidate, ParseHints, ParseSource, utcnow

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 10_000
QUOTA_RESET_WINDOW = timedelta(hours=1)
DEFAULT_RETRY_AFTER = 60.0


class AIParsingAdapter(ABC):
    """Turns recognized text into a parsed candidate with ``source=ai``."""

    service_id = "ai"

    @abstractmethod
    async def parse_card_from_text(self, text: str, hints: Optional[ParseHints] = None) -> ParsedCandidate:
        """Parse card text.

        Raises:
            ServiceUnavailable: The service failed or returned garbage
            QuotaExceeded: The account quota is used up
            RateLimited: Too many requests right now
            InvalidInput: The text was rejected
        """

    def is_available(self) -> bool:
        return True


# =========================
# GEMINI
# =========================

class GeminiCardParser(AIParsingAdapter):
    """Gemini-based parser for business card text."""

    service_id = "gemini"

    EXTRACTION_PROMPT = """Extract the contact details from this business card text.

Return a JSON object with these exact fields (use null if not found):
{{
    "name": "Full name of the person",
    "company": "Company/organization name",
    "job_title": "Job title/position",
    "email": "Email address",
    "phone": "Office or landline number",
    "mobile": "Mobile number",
    "address": "Full address",
    "website": "Website URL",
    "notes": "Anything else worth keeping",
    "confidence": 0.0
}}

Rules:
- Extract EXACTLY what the text says, don't invent information
- Keep names in their original script
- "confidence" is your certainty between 0 and 1
- Return ONLY valid JSON, no markdown or explanation
{hints}
Card text:
{text}"""

    def __init__(self, api_key: Optional[str] = None, model: str = "gemini-2.5-flash", client: Any = None):
        """
        Initialize the Gemini parser.

        Args:
            api_key: Google API key
            model: Gemini model name
            client: Pre-built ``genai.Client`` (mainly for tests)
        """
        self.model_name = model
        self.client = client
        if self.client is None and api_key:
            self.client = genai.Client(api_key=api_key)
            logger.info(f"Gemini parser initialized with model: {self.model_name}")
        elif self.client is None:
            logger.warning("No Gemini API key provided; AI parsing disabled")

    def is_available(self) -> bool:
        return self.client is not None

    def build_prompt(self, text: str, hints: Optional[ParseHints] = None) -> str:
        hint_lines = []
        if hints:
            if hints.language:
                hint_lines.append(f"- The card is most likely written in: {hints.language}")
            if hints.country:
                hint_lines.append(f"- Phone numbers and addresses follow the conventions of: {hints.country}")
            if hints.card_type:
                hint_lines.append(f"- Card type: {hints.card_type}")
            if hints.industry:
                hint_lines.append(f"- Industry: {hints.industry}")
        return self.EXTRACTION_PROMPT.format(hints="\n".join(hint_lines), text=text)

    async def parse_card_from_text(self, text: str, hints: Optional[ParseHints] = None) -> ParsedCandidate:
        if not self.is_available():
            raise ServiceUnavailable("Gemini is not configured", service=self.service_id)
        if not text or not text.strip():
            raise InvalidInput("Text to parse is empty", field="text")
        if len(text) > MAX_TEXT_LENGTH:
            raise InvalidInput(f"Text exceeds {MAX_TEXT_LENGTH} characters", field="text")

        logger.info(f"Calling Gemini API ({len(text)} chars)")
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model_name,
                contents=self.build_prompt(text, hints),
                config=types.GenerateContentConfig(
                    temperature=0.1,
                    max_output_tokens=1024,
                    response_mime_type="application/json",
                ),
            )
        except genai_errors.APIError as e:
            raise self._map_api_error(e) from e

        response_text = response.text or ""
        logger.debug(f"Gemini response: {response_text[:500]}")

        data = self._parse_response(response_text)
        if not data or not isinstance(data, dict):
            raise ServiceUnavailable("Failed to parse Gemini response", service=self.service_id)
        return self._to_candidate(data)

    def _map_api_error(self, error: "genai_errors.APIError") -> Exception:
        message = str(getattr(error, "message", None) or error)
        code = getattr(error, "code", None)
        logger.warning(f"Gemini API error {code}: {message}")
        if code == 429:
            if "quota" in message.lower():
                return QuotaExceeded(message, reset_time=utcnow() + QUOTA_RESET_WINDOW, service=self.service_id)
            return RateLimited(message, retry_after=DEFAULT_RETRY_AFTER, service=self.service_id)
        if code == 400:
            return InvalidInput(message, field="text")
        return ServiceUnavailable(message, service=self.service_id)

    def _parse_response(self, response_text: str) -> Dict:
        """Parse JSON from a Gemini response."""
        try:
            data = json.loads(response_text)
            return data if isinstance(data, dict) else {}
        except json.JSONDecodeError:
            pass

        # Markdown code block
        json_match = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", response_text)
        if json_match:
            try:
                return json.loads(json_match.group(1))
            except json.JSONDecodeError:
                pass

        # Bare object somewhere in the text
        json_match = re.search(r"\{[\s\S]*\}", response_text)
        if json_match:
            try:
                return json.loads(json_match.group(0))
            except json.JSONDecodeError:
                pass

        return {}

    def _to_candidate(self, data: Dict[str, Any]) -> ParsedCandidate:
        data = dict(data)
        if "title" in data and "job_title" not in data:
            data["job_title"] = data["title"]
        if "jobTitle" in data and "job_title" not in data:
            data["job_title"] = data["jobTitle"]

        values = {}
        for name in CARD_FIELDS:
            value = data.get(name)
            if isinstance(value, list):
                value = value[0] if value else None
            values[name] = (str(value).strip() or None) if value is not None else None

        confidence = data.get("confidence")
        if not isinstance(confidence, (int, float)):
            # Certainty proxy: share of the core fields that came back
            core = ("name", "email", "phone", "company", "job_title")
            confidence = sum(1 for f in core if values.get(f)) / len(core) * 0.95

        return ParsedCandidate(source=ParseSource.AI, confidence=confidence, **values)
