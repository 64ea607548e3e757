"""
In-memory cache of OCR results keyed by image digest.

Recognizing the same card twice (a re-upload, a retried batch) reuses the
first result instead of running the OCR engine again.
"""

import logging
import time
from collections import OrderedDict
from typing import Callable, Optional, Tuple

from .models import OCRResult

logger = logging.getLogger(__name__)

DEFAULT_CACHE_SIZE = 100
DEFAULT_CACHE_TTL = 24 * 60 * 60


class OCRResultCache:
    """Least-recently-used cache; entries expire ``ttl`` seconds after insertion."""

    def __init__(
        self,
        capacity: int = DEFAULT_CACHE_SIZE,
        ttl: Optional[float] = DEFAULT_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        if capacity < 1:
            raise ValueError(f"Cache capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self.ttl = ttl
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[float, OCRResult]]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def key_for(image_ref: str, *variants) -> str:
        """Cache key for an image digest plus anything that changes the OCR output."""
        return "|".join([image_ref] + [repr(v) for v in variants])

    def get(self, key: str) -> Optional[OCRResult]:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None

        stored_at, result = entry
        if self.ttl and self._clock() - stored_at >= self.ttl:
            logger.debug(f"OCR cache entry expired: {key[:20]}")
            del self._entries[key]
            self.misses += 1
            return None

        self._entries.move_to_end(key)
        self.hits += 1
        return result

    def put(self, key: str, result: OCRResult) -> None:
        self._entries[key] = (self._clock(), result)
        self._entries.move_to_end(key)
        while len(self._entries) > self.capacity:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def get_status(self) -> dict:
        return {
            "size": len(self._entries),
            "capacity": self.capacity,
            "hits": self.hits,
            "misses": self.misses,
        }
