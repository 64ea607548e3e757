"""
OCR adapter contract and the EasyOCR implementation.
"""

import asyncio
import logging
import os
import re
import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence, Tuple

import easyocr

from .errors import ImageTooLarge, InvalidInput, ServiceUnavailable
from .models import OCROptions, OCRResult, PreprocessOptions
from .preprocessing import ImagePreprocessor

logger = logging.getLogger(__name__)

DEFAULT_MAX_IMAGE_BYTES = 16 * 1024 * 1024


class OCRAdapter(ABC):
    """Turns image bytes into raw text plus a confidence score."""

    engine_id = "unknown"

    @abstractmethod
    async def recognize_text(self, image_bytes: bytes, options: Optional[OCROptions] = None) -> OCRResult:
        """Recognize the text on a card image.

        Raises:
            UnsupportedImageFormat: The bytes are not a decodable image
            ImageTooLarge: The image exceeds the adapter's size limit
            ServiceUnavailable: The engine failed
        """

    async def preprocess_image(self, image_bytes: bytes, options: PreprocessOptions) -> bytes:
        """Apply enhancement hints before recognition; default is a no-op."""
        return image_bytes

    def get_status(self) -> dict:
        return {"engine": self.engine_id}


# =========================
# EASYOCR
# =========================

class EasyOCRAdapter(OCRAdapter):
    """EasyOCR engine running in a thread pool."""

    engine_id = "easyocr"

    # Known l/1 and o/0 confusions in Latin words
    WORD_CORRECTIONS = {
        "Rea1": "Real",
        "Sa1es": "Sales",
        "Genera1": "General",
        "So1utions": "Solutions",
        "Techno1ogy": "Technology",
        "G1oba1": "Global",
        "Financia1": "Financial",
        "Digita1": "Digital",
        "Ema1l": "Email",
        "Mobi1e": "Mobile",
    }

    def __init__(
        self,
        languages: List[str] = None,
        gpu: bool = False,
        model_dir: str = "./models",
        max_image_bytes: int = DEFAULT_MAX_IMAGE_BYTES,
        workers: int = 2,
    ):
        """
        Initialize the EasyOCR reader.

        Args:
            languages: EasyOCR language codes (traditional Chinese + English by default)
            gpu: Use GPU for OCR
            model_dir: Directory for model storage
            max_image_bytes: Largest accepted encoded image
            workers: Thread pool size for blocking OCR calls
        """
        self.languages = languages or ["ch_tra", "en"]
        self.gpu = gpu
        self.max_image_bytes = max_image_bytes

        os.makedirs(model_dir, exist_ok=True)

        logger.info(f"Initializing EasyOCR with languages: {self.languages}")
        self.reader = easyocr.Reader(
            lang_list=self.languages,
            gpu=self.gpu,
            model_storage_directory=model_dir,
            download_enabled=True,
            verbose=False,
        )
        self.executor = ThreadPoolExecutor(max_workers=workers)
        logger.info("EasyOCR initialized successfully")

    def get_status(self) -> dict:
        return {"engine": self.engine_id, "languages": self.languages, "gpu": self.gpu}

    async def preprocess_image(self, image_bytes: bytes, options: PreprocessOptions) -> bytes:
        self._check_size(image_bytes)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, self._preprocess_sync, image_bytes, options)

    def _preprocess_sync(self, image_bytes: bytes, options: PreprocessOptions) -> bytes:
        img = ImagePreprocessor.decode(image_bytes)
        return ImagePreprocessor.encode(ImagePreprocessor.apply(img, options))

    async def recognize_text(self, image_bytes: bytes, options: Optional[OCROptions] = None) -> OCRResult:
        options = options or OCROptions()
        self._check_size(image_bytes)

        start = time.monotonic()
        loop = asyncio.get_running_loop()
        try:
            results = await loop.run_in_executor(self.executor, self._read, image_bytes)
        except (RuntimeError, ValueError, OSError) as e:
            logger.error(f"OCR extraction error: {e}", exc_info=True)
            raise ServiceUnavailable(f"OCR engine failed: {e}", service=self.engine_id) from e

        lines, confidences = self._collect_lines(results, options)
        elapsed_ms = int((time.monotonic() - start) * 1000)
        confidence = self._weighted_confidence(lines, confidences)
        logger.info(f"Extracted {len(lines)} lines with {confidence:.2%} confidence")

        return OCRResult(
            raw_text="\n".join(lines),
            confidence=confidence,
            processing_time_ms=elapsed_ms,
            engine_id=self.engine_id,
        )

    def _check_size(self, image_bytes: bytes) -> None:
        if not image_bytes:
            raise InvalidInput("Image is empty", field="image")
        if len(image_bytes) > self.max_image_bytes:
            raise ImageTooLarge(len(image_bytes), self.max_image_bytes)

    def _read(self, image_bytes: bytes) -> list:
        img = ImagePreprocessor.decode(image_bytes)
        return self.reader.readtext(img, detail=1, paragraph=False)

    def _collect_lines(self, results: Sequence, options: OCROptions) -> Tuple[List[str], List[float]]:
        """Order detections top to bottom and drop weak or garbage ones."""
        lines = []
        confidences = []
        for bbox, text, confidence in sorted(results, key=lambda r: (r[0][0][1], r[0][0][0])):
            text = " ".join(text.split())
            if not text or confidence < options.min_confidence or len(text) < options.min_text_length:
                continue
            if options.apply_corrections:
                text = self._correct_ocr_text(text)
            # Mostly punctuation means a smudge or a logo
            if sum(1 for c in text if c.isalnum()) / len(text) <= 0.5:
                continue
            lines.append(text)
            confidences.append(float(confidence))
        return lines, confidences

    @staticmethod
    def _weighted_confidence(lines: List[str], confidences: List[float]) -> float:
        """Average confidence weighted by line length."""
        if not confidences:
            return 0.0
        weights = [len(line) for line in lines]
        total = sum(weights)
        if total == 0:
            return sum(confidences) / len(confidences)
        return sum(c * w for c, w in zip(confidences, weights)) / total

    def _correct_ocr_text(self, text: str) -> str:
        """Fix l/1 and o/0 confusions inside Latin words."""
        for wrong, correct in self.WORD_CORRECTIONS.items():
            text = re.sub(re.escape(wrong), correct, text, flags=re.IGNORECASE)

        # A digit wedged between letters is almost always a letter
        text = re.sub(r"([a-zA-Z])11([a-zA-Z])", r"\1ll\2", text)
        text = re.sub(r"([a-zA-Z])1([a-zA-Z])", r"\1l\2", text)
        text = re.sub(r"([a-zA-Z])0([a-zA-Z])", r"\1o\2", text)

        text = re.sub(r"@(\w+)\s*\.\s*com\b", r"@\1.com", text, flags=re.IGNORECASE)
        text = re.sub(r"www\s*\.\s*", "www.", text, flags=re.IGNORECASE)
        return text

    def shutdown(self) -> None:
        logger.info("Shutting down OCR executor")
        self.executor.shutdown(wait=True)
