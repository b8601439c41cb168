"""Progress observers injected once per pipeline run."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, List, Protocol

from .logging import get_logger
from .models import ProgressEvent, Stage


class ProgressObserver(Protocol):
    """Receives discrete progress events from pipeline components."""

    def notify(self, event: ProgressEvent) -> None:
        """Handle a single progress event."""


class NullObserver:
    def notify(self, event: ProgressEvent) -> None:
        return None


class CallbackObserver:
    """Adapts a plain callable to the observer protocol."""

    def __init__(self, callback: Callable[[ProgressEvent], None]) -> None:
        self._callback = callback

    def notify(self, event: ProgressEvent) -> None:
        self._callback(event)


class LoggingObserver:
    """Writes progress to the frontextract logger, advisory stages as warnings."""

    def __init__(self) -> None:
        self.logger = get_logger("progress")

    def notify(self, event: ProgressEvent) -> None:
        if event.stage in {Stage.ERROR, Stage.WARNING}:
            self.logger.warning("[%s] %s", event.stage.value, event.message)
        else:
            self.logger.info("[%s %3d%%] %s", event.stage.value, event.percent, event.message)


class RecordingObserver:
    """Keeps every event; thread-safe because workers may report concurrently."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.events: List[ProgressEvent] = []

    def notify(self, event: ProgressEvent) -> None:
        with self._lock:
            self.events.append(event)

    def stages(self) -> List[Stage]:
        with self._lock:
            return [event.stage for event in self.events]


class FanoutObserver:
    def __init__(self, *observers: ProgressObserver) -> None:
        self._observers = [observer for observer in observers if observer is not None]

    def notify(self, event: ProgressEvent) -> None:
        for observer in self._observers:
            observer.notify(event)


@dataclass(frozen=True)
class SubRange:
    """Maps a component-local fraction onto its fixed window of overall progress."""

    start: int
    end: int

    def at(self, done: int, total: int) -> int:
        if total <= 0:
            return self.end
        fraction = min(max(done / total, 0.0), 1.0)
        return self.start + round((self.end - self.start) * fraction)


UNPACK_RANGE = SubRange(10, 40)
REORGANIZE_RANGE = SubRange(60, 85)


def emit(
    observer: ProgressObserver | None, stage: Stage, percent: int, message: str
) -> None:
    """Send an event when an observer is attached."""
    if observer is None:
        return
    observer.notify(ProgressEvent(stage=stage, percent=max(0, min(100, int(percent))), message=message))


__all__ = [
    "CallbackObserver",
    "FanoutObserver",
    "LoggingObserver",
    "NullObserver",
    "ProgressObserver",
    "REORGANIZE_RANGE",
    "RecordingObserver",
    "SubRange",
    "UNPACK_RANGE",
    "emit",
]
