"""
Business Card Processing Pipeline

Sequences one card through:
1. input validation (and optional image preprocessing)
2. OCR (reused from the OCR cache when enabled), optional quality check
3. security screening and text normalization
4. local rule-based extraction
5. optional AI parsing
6. confidence arbitration
7. field validation and sanitization
8. persistence (skipped in dry run)
9. cleanup

Fatal problems raise ``CardPipelineError`` subclasses; everything else ends
up in ``ProcessingResult.warnings``.
"""

import asyncio
import hashlib
import logging
import uuid
from dataclasses import asdict, dataclass
from typing import Awaitable, List, Optional, Sequence, Tuple, Union

from .ai_parser import AIParsingAdapter
from .arbitrator import DEFAULT_CONFIDENCE_THRESHOLD, ConfidenceArbitrator
from .cache import DEFAULT_CACHE_TTL, OCRResultCache
from .errors import (
    BatchCancelled,
    CardPipelineError,
    ExternalServiceError,
    ImageTooLarge,
    InvalidInput,
    ServiceUnavailable,
    StageTimeout,
    StorageFailure,
    UnexpectedError,
    UnsupportedImageFormat,
)
from .metrics import RunTracker
from .models import (
    BatchFailure,
    BatchItem,
    BatchResult,
    BusinessCard,
    OCRResult,
    ParseHints,
    ProcessingResult,
    ProcessOptions,
)
from .normalizer import normalize_text
from .ocr import DEFAULT_MAX_IMAGE_BYTES, OCRAdapter
from .parser import LocalCardParser
from .security import SecurityValidator
from .storage import InMemoryCardStore, PersistenceGateway
from .validation import CardValidator, check_text_quality

logger = logging.getLogger(__name__)

ImageSource = Union[bytes, bytearray, OCRResult]

IMAGE_SIGNATURES = (
    (b"\xff\xd8\xff", "jpeg"),
    (b"\x89PNG\r\n\x1a\n", "png"),
    (b"GIF87a", "gif"),
    (b"GIF89a", "gif"),
    (b"BM", "bmp"),
    (b"II*\x00", "tiff"),
    (b"MM\x00*", "tiff"),
)


def detect_image_format(data: bytes) -> Optional[str]:
    """Identify an encoded image by its magic bytes."""
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "webp"
    for signature, name in IMAGE_SIGNATURES:
        if data.startswith(signature):
            return name
    return None


@dataclass
class PipelineConfig:
    """Settings injected into ``CardPipeline``; timeouts are in seconds."""

    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD
    max_image_bytes: int = DEFAULT_MAX_IMAGE_BYTES
    validate_image_format: bool = True
    ocr_timeout: Optional[float] = 60.0
    ai_timeout: Optional[float] = 30.0
    persist_timeout: Optional[float] = 10.0
    item_timeout: Optional[float] = 120.0
    batch_concurrency: int = 3
    ai_fallback_to_local: bool = False
    reject_active_injection: bool = True
    ocr_cache_size: int = 0
    ocr_cache_ttl: Optional[float] = DEFAULT_CACHE_TTL

    @classmethod
    def from_config(cls, config) -> "PipelineConfig":
        """Build from a ``config.Config`` class."""
        return cls(
            confidence_threshold=config.CONFIDENCE_THRESHOLD,
            max_image_bytes=config.MAX_CONTENT_LENGTH,
            validate_image_format=config.VALIDATE_IMAGE_FORMAT,
            ocr_timeout=config.OCR_TIMEOUT,
            ai_timeout=config.AI_TIMEOUT,
            persist_timeout=config.PERSIST_TIMEOUT,
            item_timeout=config.ITEM_TIMEOUT,
            batch_concurrency=config.BATCH_CONCURRENCY,
            ai_fallback_to_local=config.AI_FALLBACK_TO_LOCAL,
            reject_active_injection=config.REJECT_ACTIVE_INJECTION,
            ocr_cache_size=config.OCR_CACHE_SIZE,
            ocr_cache_ttl=config.OCR_CACHE_TTL,
        )


class CardPipeline:
    """Complete pipeline for processing business cards.

    Collaborators are injected; only the local parser, the security validator
    and the in-memory store have defaults. Without an OCR adapter only
    ``OCRResult`` inputs are accepted, and without an AI parser arbitration
    is local-only.
    """

    def __init__(
        self,
        ocr: Optional[OCRAdapter] = None,
        ai_parser: Optional[AIParsingAdapter] = None,
        store: Optional[PersistenceGateway] = None,
        parser: Optional[LocalCardParser] = None,
        security: Optional[SecurityValidator] = None,
        validator: Optional[CardValidator] = None,
        arbitrator: Optional[ConfidenceArbitrator] = None,
        config: Optional[PipelineConfig] = None,
        ocr_cache: Optional[OCRResultCache] = None,
    ):
        self.config = config or PipelineConfig()
        self.ocr = ocr
        self.ai_parser = ai_parser
        self.store = store or InMemoryCardStore()
        self.parser = parser or LocalCardParser()
        self.security = security or SecurityValidator(reject_active_injection=self.config.reject_active_injection)
        self.validator = validator or CardValidator(self.security)
        self.arbitrator = arbitrator or ConfidenceArbitrator(self.config.confidence_threshold)
        if ocr_cache is None and self.config.ocr_cache_size > 0:
            ocr_cache = OCRResultCache(self.config.ocr_cache_size, self.config.ocr_cache_ttl)
        self.ocr_cache = ocr_cache

        logger.info(
            f"CardPipeline initialized (ocr={type(ocr).__name__ if ocr else None}, "
            f"ai={type(ai_parser).__name__ if ai_parser else None})"
        )

    # ======================================================
    # SINGLE ITEM
    # ======================================================

    async def process(
        self,
        source: ImageSource,
        hints: Optional[ParseHints] = None,
        options: Optional[ProcessOptions] = None,
    ) -> ProcessingResult:
        """
        Process one business card.

        Args:
            source: Encoded image bytes or an existing OCRResult
            hints: Optional bias signals for the AI parser
            options: Per-call switches

        Returns:
            ProcessingResult with the card, warnings and step log

        Raises:
            CardPipelineError: Any fatal failure for this item
        """
        options = options or ProcessOptions()
        threshold = self._resolve_threshold(options)
        tracker = RunTracker(options.track_metrics, run_id=uuid.uuid4().hex[:8])

        run = self._run(source, hints, options, threshold, tracker)
        if not self.config.item_timeout:
            return await run
        try:
            return await asyncio.wait_for(run, self.config.item_timeout)
        except asyncio.TimeoutError:
            logger.error(f"[{tracker.run_id}] item timed out after {self.config.item_timeout}s")
            raise StageTimeout("item", self.config.item_timeout) from None

    async def process_text(
        self,
        text: str,
        hints: Optional[ParseHints] = None,
        options: Optional[ProcessOptions] = None,
        ocr_confidence: float = 1.0,
    ) -> ProcessingResult:
        """Process text that was recognized elsewhere (skip OCR)."""
        ocr_result = OCRResult(raw_text=text or "", confidence=ocr_confidence, engine_id="manual")
        return await self.process(ocr_result, hints=hints, options=options)

    async def _run(
        self,
        source: ImageSource,
        hints: Optional[ParseHints],
        options: ProcessOptions,
        threshold: float,
        tracker: RunTracker,
    ) -> ProcessingResult:
        run_id = tracker.run_id
        warnings: List[str] = []
        image_bytes: Optional[bytes] = None
        image_ref: Optional[str] = None

        # 1️⃣ VALIDATE INPUT / OCR
        if isinstance(source, OCRResult):
            with tracker.stage("validate_input", "OCR result validation"):
                self._validate_text(source.raw_text)
            ocr_result = source
        else:
            with tracker.stage("validate_input", "input validation"):
                image_bytes = self._validate_image(source)
                image_ref = "sha256:" + hashlib.sha256(image_bytes).hexdigest()
            if self.ocr is None:
                raise ServiceUnavailable("No OCR adapter configured", service="ocr")

            cache_key = None
            ocr_result = None
            if self.ocr_cache is not None:
                cache_key = self.ocr_cache.key_for(image_ref, options.preprocess, options.ocr_options)
                ocr_result = self.ocr_cache.get(cache_key)

            if ocr_result is not None:
                logger.info(f"[{run_id}] Reusing cached OCR result {ocr_result.id}")
                tracker.add_step("OCR result cache hit")
            else:
                ocr_result = await self._recognize(image_bytes, options, tracker)
                if cache_key is not None:
                    self.ocr_cache.put(cache_key, ocr_result)

        if options.validate_quality:
            with tracker.stage("quality", "OCR quality check"):
                issues = check_text_quality(ocr_result.raw_text, options.quality_min_length)
            warnings.extend(issue.message for issue in issues)

        logger.info(f"[{run_id}] OCR text: {len(ocr_result.raw_text)} chars, confidence {ocr_result.confidence:.2%}")
        logger.debug(f"[{run_id}] OCR text: {self.security.mask_sensitive_info(ocr_result.raw_text)!r}")

        # 2️⃣ SECURITY SCREENING + NORMALIZATION
        with tracker.stage("security", "security screening"):
            screening = self.security.validate_content(ocr_result.raw_text)
        if screening.findings:
            warnings.extend(screening.findings)
            tracker.add_step("content sanitization")

        with tracker.stage("normalize", "text normalization"):
            text = normalize_text(screening.text)
        if not text:
            raise InvalidInput("No text left after screening", field="raw_text")

        # 3️⃣ LOCAL EXTRACTION
        with tracker.stage("extract_local", "local field extraction"):
            local = self.parser.extract(text)

        # 4️⃣ AI PARSING (optional)
        ai_candidate = None
        if options.use_ai and self.ai_parser is not None and self.ai_parser.is_available():
            try:
                with tracker.stage("ai_parse", "AI text parsing"):
                    ai_candidate = await self._call(
                        "ai_parse",
                        self.ai_parser.parse_card_from_text(text, hints),
                        self.config.ai_timeout,
                    )
            except ExternalServiceError as e:
                if not self.config.ai_fallback_to_local:
                    raise
                logger.warning(f"[{run_id}] AI parsing failed, using local extraction: {e}")
                warnings.append(f"AI parsing unavailable, local extraction used: {e.message}")
                tracker.add_step("AI parsing fallback to local")

        # 5️⃣ ARBITRATION
        with tracker.stage("arbitrate", "confidence arbitration"):
            arbitration = self.arbitrator.arbitrate(local, ai_candidate, ocr_result.confidence, threshold)
        # OCR-level warnings lead the list
        warnings = arbitration.warnings + warnings
        candidate = arbitration.candidate

        # 6️⃣ VALIDATION + SANITIZATION
        if options.enable_sanitization:
            with tracker.stage("validate", "data validation and sanitization"):
                outcome = self.validator.validate(candidate)
            warnings.extend(outcome.warnings)
            candidate = outcome.candidate

        if not candidate.name:
            raise InvalidInput("No name could be extracted from the card", field="name")

        # 7️⃣ PERSIST
        if options.dry_run:
            card = BusinessCard.from_candidate(f"dry-run-{uuid.uuid4().hex}", candidate, image_ref)
            tracker.add_step("dry run (persistence skipped)")
        elif options.save_result:
            draft = BusinessCard.from_candidate(f"temp-{uuid.uuid4().hex}", candidate, image_ref)
            with tracker.stage("persist", "card persistence"):
                card = await self._call("persist", self.store.save_card(draft), self.config.persist_timeout)
        else:
            card = BusinessCard.from_candidate(f"temp-{uuid.uuid4().hex}", candidate, image_ref)
            tracker.add_step("persistence skipped")

        # 8️⃣ CLEANUP
        if options.auto_cleanup:
            with tracker.stage("cleanup", "resource cleanup"):
                image_bytes = None

        metrics = tracker.finish()
        logger.info(
            f"[{run_id}] Completed: source={candidate.source.value}, "
            f"confidence={candidate.confidence:.2f}, warnings={len(warnings)}"
        )
        return ProcessingResult(
            card=card,
            parsed_data=candidate,
            ocr_result=ocr_result,
            warnings=warnings,
            processing_steps=list(tracker.steps),
            metrics=metrics,
        )

    async def _recognize(self, image_bytes: bytes, options: ProcessOptions, tracker: RunTracker) -> OCRResult:
        if options.preprocess is not None:
            with tracker.stage("preprocess", "image preprocessing"):
                image_bytes = await self._call(
                    "preprocess",
                    self.ocr.preprocess_image(image_bytes, options.preprocess),
                    self.config.ocr_timeout,
                )

        with tracker.stage("ocr", "OCR text recognition"):
            ocr_result = await self._call(
                "ocr",
                self.ocr.recognize_text(image_bytes, options.ocr_options),
                self.config.ocr_timeout,
            )
        self._validate_text(ocr_result.raw_text)
        return ocr_result

    # ======================================================
    # BATCH
    # ======================================================

    async def process_batch(
        self,
        items: Sequence[Union[ImageSource, BatchItem]],
        concurrency: Optional[int] = None,
        hints: Optional[ParseHints] = None,
        options: Optional[ProcessOptions] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> BatchResult:
        """
        Process several cards with at most ``concurrency`` in flight.

        Every item ends up in exactly one of ``successful`` or ``failed``.
        Items that have not started when ``cancel_event`` is set fail with
        ``BatchCancelled``; items already running finish normally.
        """
        limit = self.config.batch_concurrency if concurrency is None else concurrency
        if limit < 1:
            raise InvalidInput(f"Concurrency must be at least 1, got {limit}", field="concurrency")
        self._resolve_threshold(options or ProcessOptions())

        semaphore = asyncio.Semaphore(limit)
        entries = [self._batch_entry(index, item) for index, item in enumerate(items)]
        logger.info(f"Processing batch of {len(entries)} items (concurrency={limit})")

        async def run_one(item_id: str, payload: ImageSource) -> ProcessingResult:
            async with semaphore:
                if cancel_event is not None and cancel_event.is_set():
                    raise BatchCancelled(f"Batch cancelled before item {item_id} started")
                return await self.process(payload, hints=hints, options=options)

        outcomes = await asyncio.gather(
            *(run_one(item_id, payload) for _, item_id, payload in entries),
            return_exceptions=True,
        )

        result = BatchResult()
        for (index, item_id, _), outcome in zip(entries, outcomes):
            if isinstance(outcome, ProcessingResult):
                result.successful.append(outcome)
            elif isinstance(outcome, CardPipelineError):
                logger.warning(f"Batch item {item_id} failed: {outcome.code}: {outcome.message}")
                result.failed.append(BatchFailure(index=index, item_id=item_id, error=outcome))
            elif isinstance(outcome, Exception):
                logger.error(f"Batch item {item_id} raised unexpectedly: {outcome}")
                result.failed.append(
                    BatchFailure(index=index, item_id=item_id, error=UnexpectedError("process", outcome))
                )
            else:
                raise outcome

        logger.info(f"Batch finished: {len(result.successful)} ok, {len(result.failed)} failed")
        return result

    @staticmethod
    def _batch_entry(index: int, item: Union[ImageSource, BatchItem]) -> Tuple[int, str, ImageSource]:
        if isinstance(item, BatchItem):
            payload = item.payload
            item_id = item.item_id
        else:
            payload = item
            item_id = None
        if item_id is None:
            item_id = payload.id if isinstance(payload, OCRResult) else f"item-{index}"
        return index, item_id, payload

    # ======================================================
    # HELPERS
    # ======================================================

    def _resolve_threshold(self, options: ProcessOptions) -> float:
        threshold = options.confidence_threshold
        if threshold is None:
            threshold = self.config.confidence_threshold
        if not isinstance(threshold, (int, float)) or not 0.0 <= threshold <= 1.0:
            raise InvalidInput(
                f"Confidence threshold must be within [0, 1], got {threshold}",
                field="confidence_threshold",
            )
        return float(threshold)

    def _validate_image(self, image) -> bytes:
        if not isinstance(image, (bytes, bytearray, memoryview)):
            raise InvalidInput("Expected encoded image bytes or an OCRResult", field="image")
        data = bytes(image)
        if not data:
            raise InvalidInput("Image is empty", field="image")
        if len(data) > self.config.max_image_bytes:
            raise ImageTooLarge(len(data), self.config.max_image_bytes)
        if self.config.validate_image_format and detect_image_format(data) is None:
            raise UnsupportedImageFormat("Image is not JPEG, PNG, GIF, BMP, TIFF or WebP")
        return data

    @staticmethod
    def _validate_text(text: str) -> None:
        if not text or not text.strip():
            raise InvalidInput("OCR produced no text", field="raw_text")

    @staticmethod
    async def _call(stage: str, awaitable: Awaitable, timeout: Optional[float]):
        """Await a collaborator under a stage timeout, keeping errors typed."""
        try:
            return await asyncio.wait_for(awaitable, timeout)
        except asyncio.TimeoutError:
            logger.error(f"{stage} timed out after {timeout}s")
            raise StageTimeout(stage, timeout) from None
        except CardPipelineError:
            raise
        except Exception as e:
            logger.error(f"{stage} failed unexpectedly: {e}", exc_info=True)
            if stage == "persist":
                raise StorageFailure(f"Persistence failed: {e}") from e
            raise UnexpectedError(stage, e) from e

    # ======================================================
    # STATUS
    # ======================================================

    def get_status(self) -> dict:
        """Get pipeline status information."""
        return {
            "ocr": self.ocr.get_status() if self.ocr else None,
            "ai_parser": {
                "service": self.ai_parser.service_id if self.ai_parser else None,
                "available": bool(self.ai_parser and self.ai_parser.is_available()),
            },
            "store": type(self.store).__name__,
            "ocr_cache": self.ocr_cache.get_status() if self.ocr_cache else None,
            "config": asdict(self.config),
        }
