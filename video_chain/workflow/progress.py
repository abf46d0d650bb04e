"""
Progress Events
===============

Structured progress notifications published by the chain. Any number of
listeners (CLI printer, logger, test recorder) subscribe to a channel
independently of the run's control flow.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    """One milestone of a run."""

    phase: str
    percent: float
    message: str
    segment_ordinal: Optional[int] = None
    segment_count: Optional[int] = None

    def __str__(self) -> str:
        where = ""
        if self.segment_ordinal is not None and self.segment_count:
            where = f"[{self.segment_ordinal}/{self.segment_count}] "
        return f"{where}{self.message} ({self.percent:.1f}%)"


ProgressListener = Callable[[ProgressEvent], None]


class ProgressChannel:
    """Fan-out of progress events to subscribed listeners."""

    def __init__(self):
        self._listeners: List[ProgressListener] = []

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        """Register a listener; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: ProgressEvent) -> None:
        logger.debug(f"Progress: {event.phase} {event}")
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                # Listener failures never abort the run
                logger.warning(f"Progress listener {listener!r} failed: {e}")

    def __len__(self) -> int:
        return len(self._listeners)


class ProgressRecorder:
    """Listener that keeps every event; handy for tests and metadata."""

    def __init__(self):
        self.events: List[ProgressEvent] = []

    def __call__(self, event: ProgressEvent) -> None:
        self.events.append(event)

    def phases(self) -> List[str]:
        return [e.phase for e in self.events]

    def percents(self, phase: Optional[str] = None) -> List[float]:
        return [e.percent for e in self.events if phase is None or e.phase == phase]
