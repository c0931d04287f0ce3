"""Cooldown, pacing and context gates for proactive interventions.

Gate checks are cheap and deterministic, so they run before the firing
policy; a denied intervention never consumes a random draw.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from ava.config import DecisionConfig, GatesConfig, InterventionRule
from ava.gates.policies import build_policy
from ava.models.friction import FrictionType
from ava.models.interventions import FiringDecision, GateVerdict, InterventionRecord
from ava.models.scores import ScoreVector
from ava.models.sessions import SessionActivity, SessionState
from ava.protocols.policies import FiringPolicy
from ava.protocols.runtime import RandomSource

logger = logging.getLogger(__name__)


class UnknownInterventionTypeError(LookupError):
    """Raised when no rule is registered for an intervention type."""


def _ms_between(earlier: datetime, later: datetime) -> float:
    return (later - earlier).total_seconds() * 1000.0


class InterventionGatekeeper:
    def __init__(
        self,
        config: GatesConfig | None = None,
        policy: FiringPolicy | None = None,
        decision_config: DecisionConfig | None = None,
    ) -> None:
        self._config = config or GatesConfig()
        self._policy = policy or build_policy(decision_config)

    @property
    def policy(self) -> FiringPolicy:
        return self._policy

    def rule_for(self, intervention_type: str) -> InterventionRule:
        rule = self._config.rules.get(str(intervention_type))
        if rule is None:
            raise UnknownInterventionTypeError(intervention_type)
        return rule

    def priority_for(self, intervention_type: str) -> int:
        try:
            return self.rule_for(intervention_type).priority
        except UnknownInterventionTypeError:
            return 0

    def evaluate(
        self,
        session: SessionState,
        intervention_type: str,
        now: datetime,
        activity: SessionActivity | None = None,
        *,
        new_user: bool = False,
    ) -> GateVerdict:
        session.ensure_started(now)
        try:
            rule = self.rule_for(intervention_type)
        except UnknownInterventionTypeError:
            logger.warning("no intervention rule registered for %s", intervention_type)
            return GateVerdict(allowed=False, reason="unknown_type")

        if session.age_ms(now) < rule.min_session_age_ms:
            return GateVerdict(allowed=False, reason="session_too_young")

        context_denial = self._check_context(rule, activity or session.activity)
        if context_denial is not None:
            return GateVerdict(allowed=False, reason=context_denial)

        same_type = [record for record in session.interventions if record.type == str(intervention_type)]
        if same_type:
            if rule.once_per_session:
                return GateVerdict(allowed=False, reason="once_per_session")
            last = max(record.timestamp for record in same_type)
            if _ms_between(last, now) < rule.cooldown_ms * self._interval_factor(new_user):
                return GateVerdict(allowed=False, reason="cooldown")

        if rule.max_occurrences is not None and len(same_type) >= rule.max_occurrences:
            return GateVerdict(allowed=False, reason="occurrence_cap")

        if not rule.exempt_from_pacing:
            pacing_denial = self._check_pacing(session.interventions, now, new_user)
            if pacing_denial is not None:
                return GateVerdict(allowed=False, reason=pacing_denial)

        return GateVerdict(allowed=True, reason="allowed")

    def can_fire(
        self,
        session: SessionState,
        intervention_type: str,
        now: datetime,
        activity: SessionActivity | None = None,
        *,
        new_user: bool = False,
    ) -> bool:
        return self.evaluate(session, intervention_type, now, activity, new_user=new_user).allowed

    def decide(
        self,
        scores: ScoreVector,
        *,
        intervention_type: FrictionType,
        dismissed: bool,
        in_payment: bool,
        session_age_ms: float,
        rng: RandomSource | None = None,
    ) -> FiringDecision:
        rule = self._config.rules.get(str(intervention_type))
        if rule is not None and rule.bypass_score_policy:
            if dismissed:
                decision = FiringDecision(fire=False, probability=0.0, reason="dismissed")
            elif in_payment:
                decision = FiringDecision(fire=False, probability=0.0, reason="in_payment")
            else:
                decision = FiringDecision(fire=True, probability=1.0, reason="score_policy_bypassed")
        else:
            decision = self._policy.decide(
                scores,
                dismissed=dismissed,
                in_payment=in_payment,
                session_age_ms=session_age_ms,
                rng=rng,
            )
        return decision.model_copy(update={"type": intervention_type})

    def record_dismissal(self, session: SessionState, now: datetime) -> datetime:
        session.dismissed_until = now + timedelta(milliseconds=self._config.dismissal_cooldown_ms)
        session.dismissal_count += 1
        return session.dismissed_until

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _check_context(rule: InterventionRule, activity: SessionActivity) -> str | None:
        if rule.min_price_hovers is not None and activity.price_hover_count < rule.min_price_hovers:
            return "insufficient_price_hovers"
        if rule.min_scroll_count is not None and activity.scroll_count < rule.min_scroll_count:
            return "insufficient_scrolling"
        if rule.min_products_viewed is not None and activity.products_viewed < rule.min_products_viewed:
            return "insufficient_products_viewed"
        return None

    def _interval_factor(self, new_user: bool) -> float:
        return self._config.new_user_interval_factor if new_user else 1.0

    def _check_pacing(self, records: list[InterventionRecord], now: datetime, new_user: bool) -> str | None:
        cap = self._config.max_interventions_per_session
        if new_user:
            cap += self._config.new_user_extra_interventions
        if len(records) >= cap:
            return "session_cap"
        if records:
            last = max(record.timestamp for record in records)
            if _ms_between(last, now) < self._config.min_interval_ms * self._interval_factor(new_user):
                return "min_interval"
        return None


__all__ = ["InterventionGatekeeper", "UnknownInterventionTypeError"]
