"""Prometheus metrics for the decision engine.

All metric objects are module-level singletons registered on the default
``prometheus_client`` registry.
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager

from prometheus_client import Counter, Histogram, generate_latest

EVENTS_TOTAL = Counter("ava_events_total", "Total events processed", ["event_type"])
DETECTIONS_TOTAL = Counter(
    "ava_friction_detections_total", "Friction detections by type", ["friction_type"]
)
DECISIONS_TOTAL = Counter(
    "ava_decisions_total",
    "Intervention decisions by outcome",
    ["policy", "outcome"],
)
INTERVENTIONS_TOTAL = Counter(
    "ava_interventions_total", "Interventions fired by type", ["intervention_type"]
)
PROCESSING_ERRORS_TOTAL = Counter(
    "ava_processing_errors_total", "Events skipped because processing failed", ["stage"]
)
EVENT_PROCESSING_SECONDS = Histogram(
    "ava_event_processing_seconds", "Per-event pipeline duration in seconds"
)
metrics_generate_latest = generate_latest


@contextmanager
def observe_event_processing(event_type: str) -> Iterator[None]:
    """Count the event and observe pipeline duration, even if the body raises."""
    EVENTS_TOTAL.labels(event_type=event_type).inc()
    start = time.monotonic()
    try:
        yield
    finally:
        EVENT_PROCESSING_SECONDS.observe(time.monotonic() - start)


__all__ = [
    "DECISIONS_TOTAL",
    "DETECTIONS_TOTAL",
    "EVENTS_TOTAL",
    "EVENT_PROCESSING_SECONDS",
    "INTERVENTIONS_TOTAL",
    "PROCESSING_ERRORS_TOTAL",
    "metrics_generate_latest",
    "observe_event_processing",
]
