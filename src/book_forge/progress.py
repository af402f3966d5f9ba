"""Progress reporting.

Stages report discrete (percentage, message) updates. Sinks are
fire-and-forget: a failing sink is logged and ignored, and consumers must
tolerate skipped or out-of-order updates.

Usage:
    progress = ProgressReporter(lambda pct, msg: print(f"{pct:5.1f}% {msg}"))
    progress.report(10, "Researching...")

    planning = progress.scoped(0, 40)   # 0-100 inside planning maps to 0-40 overall
    planning.report(50, "Outline ready")  # reported as 20%
"""

import logging
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)

ProgressSink = Callable[[float, str], None]


class ProgressReporter:
    """Clamps, throttles and forwards progress updates to a sink."""

    def __init__(
        self,
        sink: Optional[ProgressSink] = None,
        min_interval: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.sink = sink
        self.min_interval = min_interval
        self.clock = clock
        self._last_sent: Optional[float] = None
        self.last_percentage = 0.0
        self.last_message = ""

    def report(self, percentage: float, message: str) -> None:
        percentage = max(0.0, min(100.0, float(percentage)))
        self.last_percentage = percentage
        self.last_message = message
        if self.sink is None:
            return

        now = self.clock()
        boundary = percentage in (0.0, 100.0)
        if not boundary and self._last_sent is not None and now - self._last_sent < self.min_interval:
            return
        self._last_sent = now

        try:
            self.sink(percentage, message)
        except Exception as e:
            logger.warning("Progress sink failed at %.0f%%: %s", percentage, e)

    def scoped(self, start: float, end: float) -> "ScopedProgress":
        return ScopedProgress(self, start, end)


class ScopedProgress:
    """View of a reporter that maps 0-100 onto a sub-range."""

    def __init__(self, parent: ProgressReporter, start: float, end: float):
        self.parent = parent
        self.start = start
        self.end = end

    def report(self, percentage: float, message: str) -> None:
        fraction = max(0.0, min(100.0, float(percentage))) / 100.0
        self.parent.report(self.start + fraction * (self.end - self.start), message)

    def scoped(self, start: float, end: float) -> "ScopedProgress":
        span = self.end - self.start
        return ScopedProgress(self.parent, self.start + span * start / 100.0, self.start + span * end / 100.0)
