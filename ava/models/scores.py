from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class Dimension(StrEnum):
    intent = "intent"
    friction = "friction"
    clarity = "clarity"
    receptivity = "receptivity"
    value = "value"


class ScoreVector(BaseModel):
    """Signed value per behavioral dimension.

    Used both for contribution deltas (unbounded, signed) and for read-time
    scores (clamped to [0, 100] by the aggregator).
    """

    model_config = ConfigDict(frozen=True)

    intent: float = 0.0
    friction: float = 0.0
    clarity: float = 0.0
    receptivity: float = 0.0
    value: float = 0.0

    def get(self, dimension: Dimension | str) -> float:
        return float(getattr(self, Dimension(dimension).value))

    @property
    def help_need(self) -> float:
        return self.friction - self.clarity

    def scaled(self, factor: float) -> ScoreVector:
        return ScoreVector(**{dim.value: self.get(dim) * factor for dim in Dimension})

    def magnitude(self) -> float:
        """Sum of absolute per-dimension values."""
        return sum(abs(self.get(dim)) for dim in Dimension)

    def as_dict(self) -> dict[str, float]:
        return {dim.value: self.get(dim) for dim in Dimension}


class ScoredContribution(BaseModel):
    model_config = ConfigDict(frozen=True)

    scenario: str
    delta: ScoreVector
    timestamp: datetime
    confidence: float = Field(ge=0.0, le=1.0)
    occurrence_index: int = Field(ge=0)


class SessionScoreState(BaseModel):
    """Append-only contribution history for one session."""

    model_config = ConfigDict(frozen=True)

    contributions: tuple[ScoredContribution, ...] = ()
    occurrence_counts: dict[str, int] = Field(default_factory=dict)
    started_at: datetime


class ContributorImpact(BaseModel):
    scenario: str
    current_impact: float
    decay_factor: float
    occurred_at: datetime


class ScoreBreakdown(BaseModel):
    total_contributions: int
    active_contributions: int
    decayed_contributions: int
    top_contributors: list[ContributorImpact] = Field(default_factory=list)


class ScoreSnapshot(BaseModel):
    session_id: str
    scores: ScoreVector
    breakdown: ScoreBreakdown
    session_age_ms: float
    taken_at: datetime


__all__ = [
    "ContributorImpact",
    "Dimension",
    "ScoreBreakdown",
    "ScoreSnapshot",
    "ScoreVector",
    "ScoredContribution",
    "SessionScoreState",
]
