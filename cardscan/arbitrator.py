"""
Reconciles the local and AI parses of one card.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .models import CARD_FIELDS, ParsedCandidate, ParseSource, clamp_confidence, utcnow

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE_THRESHOLD = 0.7


@dataclass
class Arbitration:
    candidate: ParsedCandidate
    warnings: List[str] = field(default_factory=list)


def _present(value: Optional[str]) -> bool:
    return bool(value and value.strip())


class ConfidenceArbitrator:
    """Merge policy.

    * no AI candidate: the local candidate is returned untouched;
    * otherwise each field takes the AI value when non-empty and the local
      value when AI left it empty;
    * ``hybrid`` means at least one populated field came from each side,
      ``ai`` means AI supplied every populated field;
    * the final confidence is the AI confidence, which already satisfies the
      floor of ``min(ai, local)`` for merged results.
    """

    def __init__(self, default_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD):
        self.default_threshold = default_threshold

    def arbitrate(
        self,
        local: ParsedCandidate,
        ai: Optional[ParsedCandidate] = None,
        ocr_confidence: Optional[float] = None,
        threshold: Optional[float] = None,
    ) -> Arbitration:
        warnings = []
        low = self.check_ocr_confidence(ocr_confidence, threshold)
        if low:
            warnings.append(low)

        if ai is None:
            return Arbitration(local, warnings)

        if not any(_present(v) for v in ai.field_values().values()):
            logger.info("AI candidate has no fields; keeping local extraction")
            warnings.append("AI parser returned no fields, local extraction used")
            return Arbitration(local, warnings)

        merged = {}
        from_ai = 0
        from_local = 0
        for name in CARD_FIELDS:
            ai_value = getattr(ai, name)
            local_value = getattr(local, name)
            if _present(ai_value):
                merged[name] = ai_value
                from_ai += 1
            elif _present(local_value):
                merged[name] = local_value
                from_local += 1
            else:
                merged[name] = None

        source = ParseSource.HYBRID if from_local else ParseSource.AI
        confidence = ai.confidence
        if source is ParseSource.HYBRID:
            confidence = max(confidence, min(ai.confidence, local.confidence))

        logger.debug(f"Arbitration: {from_ai} fields from AI, {from_local} from local -> {source.value}")
        candidate = ParsedCandidate(
            source=source,
            confidence=clamp_confidence(confidence),
            parsed_at=utcnow(),
            **merged,
        )
        return Arbitration(candidate, warnings)

    def check_ocr_confidence(self, ocr_confidence: Optional[float], threshold: Optional[float] = None) -> Optional[str]:
        if ocr_confidence is None:
            return None
        limit = self.default_threshold if threshold is None else threshold
        if ocr_confidence < limit:
            return f"OCR confidence low: {ocr_confidence:.2f}"
        return None
