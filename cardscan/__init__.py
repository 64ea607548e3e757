"""
Business card scanning package.

Turns card images (or already recognized text) into validated contact
records through OCR, local extraction, optional AI parsing and confidence
arbitration.
"""

from .ai_parser import AIParsingAdapter, GeminiCardParser
from .arbitrator import Arbitration, ConfidenceArbitrator
from .cache import OCRResultCache
from .errors import (
    BatchCancelled,
    CardPipelineError,
    ConnectionFailure,
    ExternalServiceError,
    ImageTooLarge,
    InvalidInput,
    QuotaExceeded,
    RateLimited,
    SecurityViolation,
    ServiceUnavailable,
    StageTimeout,
    StorageFailure,
    StorageSpaceExceeded,
    UnexpectedError,
    UnsupportedImageFormat,
    ValidationIssue,
)
from .models import (
    BatchFailure,
    BatchItem,
    BatchResult,
    BusinessCard,
    OCROptions,
    OCRResult,
    ParsedCandidate,
    ParseHints,
    ParseSource,
    PreprocessOptions,
    ProcessingMetrics,
    ProcessingResult,
    ProcessOptions,
    StageTiming,
)
from .normalizer import normalize_text
from .ocr import EasyOCRAdapter, OCRAdapter
from .parser import LocalCardParser
from .pipeline import CardPipeline, PipelineConfig
from .security import SecurityValidator
from .storage import InMemoryCardStore, PersistenceGateway
from .validation import CardValidator, check_text_quality

__all__ = [
    "AIParsingAdapter",
    "Arbitration",
    "BatchCancelled",
    "BatchFailure",
    "BatchItem",
    "BatchResult",
    "BusinessCard",
    "CardPipeline",
    "CardPipelineError",
    "CardValidator",
    "ConfidenceArbitrator",
    "ConnectionFailure",
    "EasyOCRAdapter",
    "ExternalServiceError",
    "GeminiCardParser",
    "ImageTooLarge",
    "InMemoryCardStore",
    "InvalidInput",
    "LocalCardParser",
    "OCRAdapter",
    "OCROptions",
    "OCRResult",
    "OCRResultCache",
    "ParseHints",
    "ParseSource",
    "ParsedCandidate",
    "PersistenceGateway",
    "PipelineConfig",
    "PreprocessOptions",
    "ProcessOptions",
    "ProcessingMetrics",
    "ProcessingResult",
    "QuotaExceeded",
    "RateLimited",
    "SecurityValidator",
    "SecurityViolation",
    "ServiceUnavailable",
    "StageTimeout",
    "StageTiming",
    "StorageFailure",
    "StorageSpaceExceeded",
    "UnexpectedError",
    "UnsupportedImageFormat",
    "ValidationIssue",
    "check_text_quality",
    "normalize_text",
]
