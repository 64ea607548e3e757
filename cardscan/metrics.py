"""
Per-run step log and stage timing.
"""

import logging
import time
from contextlib import contextmanager
from datetime import timedelta
from typing import List, Optional

from .models import ProcessingMetrics, StageTiming, utcnow

logger = logging.getLogger(__name__)


class RunTracker:
    """Step labels and stage timings for a single pipeline run.

    Durations come from ``time.monotonic``; wall-clock timestamps are derived
    from one anchor taken at construction, so every recorded interval has
    ``started_at <= finished_at``.
    """

    def __init__(self, track_metrics: bool = False, run_id: Optional[str] = None):
        self.track_metrics = track_metrics
        self.run_id = run_id
        self.steps: List[str] = []
        self.stages: List[StageTiming] = []
        self._wall_anchor = utcnow()
        self._mono_anchor = time.monotonic()

    def add_step(self, label: str) -> None:
        self.steps.append(label)
        logger.debug(f"[{self.run_id}] step: {label}")

    def _wall(self, mono: float):
        return self._wall_anchor + timedelta(seconds=mono - self._mono_anchor)

    @contextmanager
    def stage(self, name: str, label: Optional[str] = None):
        """Time a stage; the step label is recorded once the stage finishes."""
        start = time.monotonic()
        yield
        end = time.monotonic()
        duration_ms = (end - start) * 1000
        logger.debug(f"⏱️ [{self.run_id}] {name}: {duration_ms:.1f}ms")
        if self.track_metrics:
            self.stages.append(StageTiming(
                name=name,
                started_at=self._wall(start),
                finished_at=self._wall(end),
                duration_ms=duration_ms,
            ))
        if label:
            self.add_step(label)

    def finish(self) -> Optional[ProcessingMetrics]:
        if not self.track_metrics:
            return None
        end = time.monotonic()
        return ProcessingMetrics(
            started_at=self._wall_anchor,
            finished_at=self._wall(end),
            total_ms=(end - self._mono_anchor) * 1000,
            stages=list(self.stages),
        )
