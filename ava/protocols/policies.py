from __future__ import annotations

from typing import Protocol, runtime_checkable

from ava.models.interventions import FiringDecision
from ava.models.scores import ScoreVector
from ava.protocols.runtime import RandomSource


@runtime_checkable
class FiringPolicy(Protocol):
    name: str

    def decide(
        self,
        scores: ScoreVector,
        *,
        dismissed: bool,
        in_payment: bool,
        session_age_ms: float,
        rng: RandomSource | None = None,
    ) -> FiringDecision: ...


__all__ = ["FiringPolicy"]
