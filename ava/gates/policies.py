"""Score-driven firing policies.

The probabilistic policy is canonical: it turns distance from the intent and
help-need thresholds into a firing probability and draws against an injected
random source. The deterministic policy is the hard-threshold alternative.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from ava.config import DecisionConfig, ReliabilityStep
from ava.models.interventions import FiringDecision
from ava.models.scores import ScoreVector
from ava.protocols.policies import FiringPolicy
from ava.protocols.runtime import RandomSource


def _soft_sigmoid(margin: float, soft_range: float) -> float:
    z = margin / (soft_range / 3.0)
    if z >= 0:
        return 1.0 / (1.0 + math.exp(-z))
    # Same curve, rearranged so large negative margins cannot overflow.
    exp_z = math.exp(z)
    return exp_z / (1.0 + exp_z)


def session_reliability(session_age_ms: float, ramp: Sequence[ReliabilityStep]) -> float:
    """Confidence in the scores given how long the session has been observed."""
    for step in ramp:
        if session_age_ms < step.below_ms:
            return step.factor
    return 1.0


def calculate_intervention_probability(
    scores: ScoreVector,
    session_age_ms: float,
    config: DecisionConfig | None = None,
) -> float:
    cfg = config or DecisionConfig()
    intent_margin = scores.intent - cfg.intent_threshold
    help_margin = scores.help_need - cfg.help_need_threshold

    if intent_margin < -cfg.soft_threshold_range and help_margin < -cfg.soft_threshold_range:
        return 0.0

    intent_p = _soft_sigmoid(intent_margin, cfg.soft_threshold_range)
    help_p = _soft_sigmoid(help_margin, cfg.soft_threshold_range)
    combined = math.sqrt(intent_p * help_p)

    scaled = cfg.probability_min + combined * (cfg.probability_max - cfg.probability_min)
    return scaled * session_reliability(session_age_ms, cfg.reliability_ramp)


def _blocked(dismissed: bool, in_payment: bool) -> FiringDecision | None:
    if dismissed:
        return FiringDecision(fire=False, probability=0.0, reason="dismissed")
    if in_payment:
        return FiringDecision(fire=False, probability=0.0, reason="in_payment")
    return None


class ProbabilisticSoftThresholdPolicy:
    name = "probabilistic"

    def __init__(self, config: DecisionConfig | None = None) -> None:
        self._config = config or DecisionConfig()

    def decide(
        self,
        scores: ScoreVector,
        *,
        dismissed: bool,
        in_payment: bool,
        session_age_ms: float,
        rng: RandomSource | None = None,
    ) -> FiringDecision:
        blocked = _blocked(dismissed, in_payment)
        if blocked is not None:
            return blocked

        probability = calculate_intervention_probability(scores, session_age_ms, self._config)
        if probability < self._config.min_probability:
            return FiringDecision(fire=False, probability=probability, reason="below_min_probability")
        if rng is None:
            raise ValueError("probabilistic policy requires a random source")

        fire = rng.random() < probability
        return FiringDecision(
            fire=fire,
            probability=probability,
            reason="draw_passed" if fire else "draw_failed",
        )


class DeterministicThresholdPolicy:
    name = "deterministic"

    def __init__(self, config: DecisionConfig | None = None) -> None:
        self._config = config or DecisionConfig()

    def decide(
        self,
        scores: ScoreVector,
        *,
        dismissed: bool,
        in_payment: bool,
        session_age_ms: float,
        rng: RandomSource | None = None,
    ) -> FiringDecision:
        blocked = _blocked(dismissed, in_payment)
        if blocked is not None:
            return blocked

        if (
            scores.intent >= self._config.intent_threshold
            and scores.help_need >= self._config.help_need_threshold
        ):
            return FiringDecision(fire=True, probability=1.0, reason="thresholds_met")
        return FiringDecision(fire=False, probability=0.0, reason="thresholds_not_met")


def build_policy(config: DecisionConfig | None = None) -> FiringPolicy:
    cfg = config or DecisionConfig()
    if cfg.policy == "deterministic":
        return DeterministicThresholdPolicy(cfg)
    return ProbabilisticSoftThresholdPolicy(cfg)


__all__ = [
    "DeterministicThresholdPolicy",
    "ProbabilisticSoftThresholdPolicy",
    "build_policy",
    "calculate_intervention_probability",
    "session_reliability",
]
