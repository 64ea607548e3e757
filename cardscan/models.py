"""
Data model for the card processing pipeline.
"""

import uuid
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union


def clamp_confidence(value: Optional[float]) -> float:
    """Clamp a confidence score into [0, 1]; ``None`` and NaN become 0.0."""
    if value is None or value != value:
        return 0.0
    return max(0.0, min(1.0, float(value)))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =========================
# OCR
# =========================

@dataclass(frozen=True)
class OCRResult:
    raw_text: str
    confidence: float
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    processing_time_ms: int = 0
    processed_at: datetime = field(default_factory=utcnow)
    engine_id: str = "unknown"

    def __post_init__(self):
        object.__setattr__(self, "confidence", clamp_confidence(self.confidence))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "raw_text": self.raw_text,
            "confidence": round(self.confidence, 4),
            "processing_time_ms": self.processing_time_ms,
            "processed_at": self.processed_at.isoformat(),
            "engine_id": self.engine_id,
        }


@dataclass
class OCROptions:
    min_confidence: float = 0.15
    min_text_length: int = 2
    apply_corrections: bool = True


@dataclass
class PreprocessOptions:
    """Image enhancement hints forwarded to the OCR adapter.

    ``contrast`` and ``brightness`` are in [-100, 100]; 0 leaves the image
    untouched.
    """

    contrast: float = 0.0
    brightness: float = 0.0
    sharpen: bool = False
    grayscale: bool = False
    denoise: bool = False
    deskew: bool = False
    target_width: Optional[int] = None


# =========================
# PARSING
# =========================

class ParseSource(str, Enum):
    LOCAL = "local"
    AI = "ai"
    HYBRID = "hybrid"


CARD_FIELDS = (
    "name",
    "company",
    "job_title",
    "email",
    "phone",
    "mobile",
    "address",
    "website",
    "notes",
)


@dataclass
class ParseHints:
    language: Optional[str] = None
    country: Optional[str] = None
    card_type: Optional[str] = None
    industry: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["ParseHints"]:
        if not data:
            return None
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known and v})

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in vars(self).items() if v}


@dataclass
class ParsedCandidate:
    source: ParseSource
    confidence: float = 0.0
    name: Optional[str] = None
    company: Optional[str] = None
    job_title: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    mobile: Optional[str] = None
    address: Optional[str] = None
    website: Optional[str] = None
    notes: Optional[str] = None
    parsed_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        self.source = ParseSource(self.source)
        self.confidence = clamp_confidence(self.confidence)

    def field_values(self) -> Dict[str, Optional[str]]:
        return {name: getattr(self, name) for name in CARD_FIELDS}

    def filled_fields(self) -> List[str]:
        return [name for name, value in self.field_values().items() if value]

    def copy(self, **changes) -> "ParsedCandidate":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        data = self.field_values()
        data.update({
            "confidence": round(self.confidence, 4),
            "source": self.source.value,
            "parsed_at": self.parsed_at.isoformat(),
        })
        return data


# =========================
# RESULTS
# =========================

@dataclass
class BusinessCard:
    id: str
    name: str
    company: Optional[str] = None
    job_title: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    mobile: Optional[str] = None
    address: Optional[str] = None
    website: Optional[str] = None
    notes: Optional[str] = None
    image_ref: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValueError("BusinessCard requires a non-empty name")

    @classmethod
    def from_candidate(cls, card_id: str, candidate: ParsedCandidate, image_ref: Optional[str] = None) -> "BusinessCard":
        values = candidate.field_values()
        return cls(id=card_id, image_ref=image_ref, **values)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "company": self.company,
            "job_title": self.job_title,
            "email": self.email,
            "phone": self.phone,
            "mobile": self.mobile,
            "address": self.address,
            "website": self.website,
            "notes": self.notes,
            "image_ref": self.image_ref,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class StageTiming:
    name: str
    started_at: datetime
    finished_at: datetime
    duration_ms: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "duration_ms": round(self.duration_ms, 3),
        }


@dataclass
class ProcessingMetrics:
    started_at: datetime
    finished_at: datetime
    total_ms: float
    stages: List[StageTiming] = field(default_factory=list)

    def stage_duration(self, name: str) -> Optional[float]:
        for stage in self.stages:
            if stage.name == name:
                return stage.duration_ms
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "total_ms": round(self.total_ms, 3),
            "stages": [s.to_dict() for s in self.stages],
        }


@dataclass
class ProcessingResult:
    card: BusinessCard
    parsed_data: ParsedCandidate
    ocr_result: Optional[OCRResult] = None
    warnings: List[str] = field(default_factory=list)
    processing_steps: List[str] = field(default_factory=list)
    metrics: Optional[ProcessingMetrics] = None

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "card": self.card.to_dict(),
            "parsed_data": self.parsed_data.to_dict(),
            "ocr_result": self.ocr_result.to_dict() if self.ocr_result else None,
            "warnings": list(self.warnings),
            "has_warnings": self.has_warnings,
            "processing_steps": list(self.processing_steps),
            "metrics": self.metrics.to_dict() if self.metrics else None,
        }


@dataclass
class BatchItem:
    payload: Union[bytes, OCRResult]
    item_id: Optional[str] = None


@dataclass
class BatchFailure:
    index: int
    item_id: str
    error: Exception

    def to_dict(self) -> Dict[str, Any]:
        data = {"index": self.index, "item_id": self.item_id}
        if hasattr(self.error, "to_dict"):
            data.update(self.error.to_dict())
        else:
            data.update({"error_type": type(self.error).__name__, "error": str(self.error)})
        return data


@dataclass
class BatchResult:
    successful: List[Any] = field(default_factory=list)
    failed: List[BatchFailure] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.successful) + len(self.failed)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "successful": len(self.successful),
            "failed": len(self.failed),
            "results": [r.to_dict() for r in self.successful],
            "errors": [f.to_dict() for f in self.failed],
        }


# =========================
# RUN OPTIONS
# =========================

@dataclass
class ProcessOptions:
    """Per-call switches for ``CardPipeline.process``.

    ``confidence_threshold`` falls back to the pipeline configuration when
    left as ``None``.
    """

    confidence_threshold: Optional[float] = None
    dry_run: bool = False
    track_metrics: bool = False
    save_result: bool = True
    use_ai: bool = True
    enable_sanitization: bool = True
    auto_cleanup: bool = True
    validate_quality: bool = False
    quality_min_length: Optional[int] = None
    preprocess: Optional[PreprocessOptions] = None
    ocr_options: Optional[OCROptions] = None
