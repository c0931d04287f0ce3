from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field

from ava.models.context import TrackerContexts
from ava.models.events import Event
from ava.models.friction import FrictionDetection
from ava.models.sessions import SessionActivity

logger = logging.getLogger(__name__)

WILDCARD = "*"
DEFAULT_HISTORY_LIMIT = 20


@dataclass(frozen=True, slots=True)
class DetectionInput:
    """Everything a detector may look at for one event.

    ``history`` holds earlier events of the session, oldest first, and never
    includes ``event`` itself. ``activity`` holds the session counters with
    ``event`` already counted.
    """

    event: Event
    history: Sequence[Event]
    contexts: TrackerContexts
    activity: SessionActivity = field(default_factory=SessionActivity)


Detector = Callable[[DetectionInput], FrictionDetection | None]


class DetectorRegistry:
    """Ordered table of detectors keyed by event type.

    Every detector registered for the event's type runs, followed by the
    wildcard detectors; each contributes at most one detection.
    """

    def __init__(self, history_limit: int = DEFAULT_HISTORY_LIMIT) -> None:
        self._history_limit = max(1, history_limit)
        self._detectors: dict[str, list[Detector]] = {}

    def register(self, event_types: str | Iterable[str], detector: Detector) -> None:
        names = [event_types] if isinstance(event_types, str) else list(event_types)
        if not names:
            raise ValueError("at least one event type is required")
        for name in names:
            bucket = self._detectors.setdefault(name, [])
            if detector not in bucket:
                bucket.append(detector)

    def detector(self, *event_types: str) -> Callable[[Detector], Detector]:
        def _decorate(func: Detector) -> Detector:
            self.register(event_types, func)
            return func

        return _decorate

    def detectors_for(self, event_type: str) -> list[Detector]:
        return [*self._detectors.get(event_type, []), *self._detectors.get(WILDCARD, [])]

    def handles(self, event_type: str) -> bool:
        return event_type in self._detectors and event_type != WILDCARD

    def event_types(self) -> list[str]:
        return sorted(name for name in self._detectors if name != WILDCARD)

    def detect(
        self,
        event: Event,
        history: Sequence[Event],
        contexts: TrackerContexts | None = None,
        *,
        activity: SessionActivity | None = None,
    ) -> list[FrictionDetection]:
        detection_input = DetectionInput(
            event=event,
            history=tuple(history[-self._history_limit :]),
            contexts=contexts or TrackerContexts(),
            activity=activity if activity is not None else SessionActivity(),
        )
        detections: list[FrictionDetection] = []
        for detector in self.detectors_for(event.event_type):
            try:
                detection = detector(detection_input)
            except Exception:
                # One broken detector must not hide the others' signals.
                logger.exception(
                    "detector %s failed on %s",
                    getattr(detector, "__name__", repr(detector)),
                    event.event_type,
                )
                continue
            if detection is not None:
                detections.append(detection)
        return detections


__all__ = ["DEFAULT_HISTORY_LIMIT", "DetectionInput", "Detector", "DetectorRegistry", "WILDCARD"]
