from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime

from ava.config import GatesConfig
from ava.models.friction import FrictionDetection, FrictionType
from ava.models.interventions import InterventionStage, StageApproach, StageProgress
from ava.models.sessions import SessionState

_APPROACHES: dict[int, StageApproach] = {1: "helpful", 2: "persuasive", 3: "offer"}


def stage_info(stage: int) -> InterventionStage:
    bounded = min(max(stage, 1), 3)
    return InterventionStage(stage=bounded, approach=_APPROACHES[bounded])


class StageTracker:
    """Escalates repeat interventions of one type through up to three stages.

    A type moves to its next stage only once the previous stage has been
    shown and the escalation delay has passed since then.
    """

    def __init__(self, config: GatesConfig | None = None) -> None:
        self._config = config or GatesConfig()

    def next_stage(self, session: SessionState, intervention_type: str, now: datetime, max_stages: int) -> int:
        progress = session.stages.get(str(intervention_type))
        if progress is None:
            return 1
        elapsed_ms = (now - progress.last_stage_at).total_seconds() * 1000.0
        if elapsed_ms > self._config.stage_escalation_delay_ms and progress.current_stage < max_stages:
            return progress.current_stage + 1
        return min(progress.current_stage, max_stages)

    def advance(self, session: SessionState, intervention_type: str, stage: int, now: datetime) -> None:
        session.stages[str(intervention_type)] = StageProgress(current_stage=stage, last_stage_at=now)


def rank_interventions(
    detections: Iterable[FrictionDetection],
    priorities: Mapping[str, int],
) -> list[FrictionDetection]:
    """Order candidate detections, strongest first, one per friction type.

    Exit intent always ranks first; the rest by confidence times the type's
    priority. Ties keep detection order.
    """
    strongest: dict[FrictionType, FrictionDetection] = {}
    for detection in detections:
        current = strongest.get(detection.type)
        if current is None or detection.confidence > current.confidence:
            strongest[detection.type] = detection

    def _weight(detection: FrictionDetection) -> tuple[int, float]:
        if detection.type == FrictionType.exit_intent:
            return (1, 0.0)
        return (0, detection.confidence * priorities.get(detection.type.value, 0))

    return sorted(strongest.values(), key=_weight, reverse=True)


def select_intervention(
    detections: Iterable[FrictionDetection],
    priorities: Mapping[str, int],
) -> FrictionDetection | None:
    ranked = rank_interventions(detections, priorities)
    return ranked[0] if ranked else None


__all__ = ["StageTracker", "rank_interventions", "select_intervention", "stage_info"]
