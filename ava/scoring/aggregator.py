"""Time-decayed, confidence-weighted score aggregation.

Scores are recomputed from the full contribution history on every read
instead of maintaining a running decayed total. That keeps decay exact and
needs no periodic tick, at O(n) cost per query in the number of
contributions.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from datetime import datetime

from ava.config import ScoringConfig
from ava.models.friction import FrictionDetection
from ava.models.scores import (
    ContributorImpact,
    Dimension,
    ScoreBreakdown,
    ScoredContribution,
    ScoreVector,
    SessionScoreState,
)
from ava.scoring.deltas import SCORE_DELTAS

logger = logging.getLogger(__name__)

SCORE_MIN = 0.0
SCORE_MAX = 100.0


def clamp(value: float, low: float, high: float) -> float:
    """Clamp into ``[low, high]``; NaN collapses to ``low``."""
    if math.isnan(value):
        return low
    return min(max(value, low), high)


def time_decay(age_ms: float, half_life_ms: float) -> float:
    """Exponential decay factor in ``(0, 1]`` for a contribution ``age_ms`` old."""
    age = max(age_ms, 0.0)
    return math.exp(-(math.log(2) / half_life_ms) * age)


def diminishing_multiplier(occurrence_index: int, factor: float, max_tracked: int) -> float:
    return factor ** min(max(occurrence_index, 0), max_tracked)


def _age_ms(earlier: datetime, later: datetime) -> float:
    return (later - earlier).total_seconds() * 1000.0


def new_score_state(started_at: datetime) -> SessionScoreState:
    return SessionScoreState(started_at=started_at)


class ScoreAggregator:
    def __init__(
        self,
        config: ScoringConfig | None = None,
        deltas: Mapping[str, ScoreVector] | None = None,
    ) -> None:
        self._config = config or ScoringConfig()
        self._deltas: dict[str, ScoreVector] = dict(SCORE_DELTAS if deltas is None else deltas)

    @property
    def config(self) -> ScoringConfig:
        return self._config

    def base_delta_for(self, scenario: str) -> ScoreVector | None:
        return self._deltas.get(scenario)

    def apply(
        self,
        state: SessionScoreState,
        scenario: str,
        base_delta: ScoreVector | Mapping[str, float],
        confidence: float,
        *,
        at: datetime,
    ) -> SessionScoreState:
        """Return a new state with one weighted contribution appended."""
        if not isinstance(base_delta, ScoreVector):
            base_delta = ScoreVector(
                **{
                    dim.value: float(base_delta.get(dim.value, 0.0))
                    for dim in Dimension
                }
            )

        weight = clamp(confidence, 0.0, 1.0)
        occurrence_index = state.occurrence_counts.get(scenario, 0)
        multiplier = diminishing_multiplier(
            occurrence_index,
            self._config.diminishing_factor,
            self._config.max_occurrences_tracked,
        )
        contribution = ScoredContribution(
            scenario=scenario,
            delta=base_delta.scaled(weight * multiplier),
            timestamp=at,
            confidence=weight,
            occurrence_index=occurrence_index,
        )
        return SessionScoreState(
            contributions=(*state.contributions, contribution),
            occurrence_counts={**state.occurrence_counts, scenario: occurrence_index + 1},
            started_at=state.started_at,
        )

    def scenario_for(self, detection: FrictionDetection) -> str | None:
        for tag in detection.evidence:
            if tag in self._deltas:
                return tag
        if detection.type.value in self._deltas:
            return detection.type.value
        return None

    def apply_detections(
        self,
        state: SessionScoreState,
        detections: Iterable[FrictionDetection],
        *,
        at: datetime,
    ) -> SessionScoreState:
        for detection in detections:
            scenario = self.scenario_for(detection)
            if scenario is None:
                logger.debug(
                    "no score delta for %s evidence=%s",
                    detection.type.value,
                    list(detection.evidence),
                )
                continue
            state = self.apply(
                state,
                scenario,
                self._deltas[scenario],
                detection.confidence,
                at=at,
            )
        return state

    def current_scores(
        self,
        state: SessionScoreState,
        now: datetime,
        baseline_clarity: float | None = None,
    ) -> ScoreVector:
        baseline = self._config.baseline_clarity if baseline_clarity is None else baseline_clarity
        totals = {dim.value: 0.0 for dim in Dimension}
        totals[Dimension.clarity.value] = baseline

        for contribution in state.contributions:
            decay = time_decay(_age_ms(contribution.timestamp, now), self._config.half_life_ms)
            for dim in Dimension:
                totals[dim.value] += contribution.delta.get(dim) * decay

        return ScoreVector(
            **{name: clamp(total, SCORE_MIN, SCORE_MAX) for name, total in totals.items()}
        )

    def breakdown(self, state: SessionScoreState, now: datetime) -> ScoreBreakdown:
        impacts: list[ContributorImpact] = []
        for contribution in state.contributions:
            decay = time_decay(_age_ms(contribution.timestamp, now), self._config.half_life_ms)
            if decay < self._config.active_decay_threshold:
                continue
            impacts.append(
                ContributorImpact(
                    scenario=contribution.scenario,
                    current_impact=contribution.delta.magnitude() * decay,
                    decay_factor=decay,
                    occurred_at=contribution.timestamp,
                )
            )

        impacts.sort(key=lambda impact: impact.current_impact, reverse=True)
        total = len(state.contributions)
        return ScoreBreakdown(
            total_contributions=total,
            active_contributions=len(impacts),
            decayed_contributions=total - len(impacts),
            top_contributors=impacts[: self._config.top_contributors],
        )


__all__ = [
    "SCORE_MAX",
    "SCORE_MIN",
    "ScoreAggregator",
    "clamp",
    "diminishing_multiplier",
    "new_score_state",
    "time_decay",
]
