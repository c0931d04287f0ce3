from __future__ import annotations

import math

import pytest
from ava.config import DecisionConfig
from ava.gates.policies import (
    DeterministicThresholdPolicy,
    ProbabilisticSoftThresholdPolicy,
    build_policy,
    calculate_intervention_probability,
    session_reliability,
)
from ava.models.scores import ScoreVector

from tests.fakes import SequenceRandom

SETTLED_MS = 300_000
AT_THRESHOLDS = ScoreVector(intent=60, friction=20, clarity=0)
QUIET = ScoreVector(clarity=100)


class TestProbability:
    @pytest.mark.parametrize(
        ("age_ms", "factor"),
        [(0, 0.3), (29_999, 0.3), (30_000, 0.6), (59_999, 0.6), (90_000, 0.85), (120_000, 1.0), (10**9, 1.0)],
    )
    def test_reliability_ramp(self, age_ms: float, factor: float) -> None:
        assert session_reliability(age_ms, DecisionConfig().reliability_ramp) == factor

    def test_forced_zero_far_below_both_thresholds(self) -> None:
        assert calculate_intervention_probability(QUIET, SETTLED_MS) == 0.0

    def test_one_margin_inside_soft_range_is_not_forced_zero(self) -> None:
        scores = ScoreVector(intent=0, friction=40, clarity=20)
        assert calculate_intervention_probability(scores, SETTLED_MS) > 0.0

    def test_exactly_at_thresholds(self) -> None:
        # Both sigmoids sit at 0.5, so the geometric mean is 0.5.
        expected = 0.30 + 0.5 * (0.95 - 0.30)
        assert calculate_intervention_probability(AT_THRESHOLDS, SETTLED_MS) == pytest.approx(expected)

    def test_upper_bound(self) -> None:
        scores = ScoreVector(intent=100, friction=100, clarity=0)
        probability = calculate_intervention_probability(scores, SETTLED_MS)
        assert 0.94 < probability <= 0.95

    def test_young_session_scaled_down(self) -> None:
        settled = calculate_intervention_probability(AT_THRESHOLDS, SETTLED_MS)
        young = calculate_intervention_probability(AT_THRESHOLDS, 10_000)
        assert young == pytest.approx(settled * 0.3)

    def test_monotonic_in_intent(self) -> None:
        values = [
            calculate_intervention_probability(ScoreVector(intent=intent, friction=30), SETTLED_MS)
            for intent in (40, 50, 60, 70, 80)
        ]
        assert values == sorted(values)

    def test_extreme_soft_range_does_not_overflow(self) -> None:
        config = DecisionConfig(soft_threshold_range=0.001)
        probability = calculate_intervention_probability(ScoreVector(intent=100, friction=0, clarity=100), SETTLED_MS, config)
        assert math.isfinite(probability)


class TestProbabilisticPolicy:
    def test_draw_below_probability_fires(self) -> None:
        rng = SequenceRandom([0.6])
        decision = ProbabilisticSoftThresholdPolicy().decide(
            AT_THRESHOLDS, dismissed=False, in_payment=False, session_age_ms=SETTLED_MS, rng=rng
        )
        assert decision.fire is True
        assert decision.reason == "draw_passed"
        assert rng.calls == 1

    def test_draw_above_probability_holds(self) -> None:
        decision = ProbabilisticSoftThresholdPolicy().decide(
            AT_THRESHOLDS,
            dismissed=False,
            in_payment=False,
            session_age_ms=SETTLED_MS,
            rng=SequenceRandom([0.7]),
        )
        assert decision.fire is False
        assert decision.reason == "draw_failed"
        assert decision.probability == pytest.approx(0.625)

    def test_low_probability_short_circuits(self) -> None:
        rng = SequenceRandom([0.0])
        decision = ProbabilisticSoftThresholdPolicy().decide(
            QUIET, dismissed=False, in_payment=False, session_age_ms=SETTLED_MS, rng=rng
        )
        assert (decision.fire, decision.reason) == (False, "below_min_probability")
        assert rng.calls == 0

    @pytest.mark.parametrize(("dismissed", "in_payment", "reason"), [(True, False, "dismissed"), (False, True, "in_payment")])
    def test_hard_blockers(self, dismissed: bool, in_payment: bool, reason: str) -> None:
        rng = SequenceRandom([0.0])
        decision = ProbabilisticSoftThresholdPolicy().decide(
            ScoreVector(intent=100, friction=100),
            dismissed=dismissed,
            in_payment=in_payment,
            session_age_ms=SETTLED_MS,
            rng=rng,
        )
        assert (decision.fire, decision.probability, decision.reason) == (False, 0.0, reason)
        assert rng.calls == 0

    def test_requires_random_source(self) -> None:
        with pytest.raises(ValueError, match="random source"):
            ProbabilisticSoftThresholdPolicy().decide(
                AT_THRESHOLDS, dismissed=False, in_payment=False, session_age_ms=SETTLED_MS
            )


class TestDeterministicPolicy:
    def test_fires_at_thresholds(self) -> None:
        decision = DeterministicThresholdPolicy().decide(
            AT_THRESHOLDS, dismissed=False, in_payment=False, session_age_ms=0
        )
        assert (decision.fire, decision.probability) == (True, 1.0)

    @pytest.mark.parametrize(
        "scores",
        [ScoreVector(intent=59.9, friction=20), ScoreVector(intent=60, friction=19.9), ScoreVector(intent=90, friction=50, clarity=40)],
    )
    def test_holds_below_thresholds(self, scores: ScoreVector) -> None:
        decision = DeterministicThresholdPolicy().decide(scores, dismissed=False, in_payment=False, session_age_ms=0)
        assert (decision.fire, decision.probability) == (False, 0.0)

    def test_blockers(self) -> None:
        policy = DeterministicThresholdPolicy()
        assert policy.decide(AT_THRESHOLDS, dismissed=True, in_payment=False, session_age_ms=0).fire is False
        assert policy.decide(AT_THRESHOLDS, dismissed=False, in_payment=True, session_age_ms=0).fire is False


def test_build_policy_follows_config() -> None:
    assert build_policy().name == "probabilistic"
    assert isinstance(build_policy(DecisionConfig(policy="deterministic")), DeterministicThresholdPolicy)
