"""Per-session orchestration of the detection -> scoring -> decision flow.

The engine owns no global state: sessions live in an injected store, time
comes from an injected clock and firing draws from an injected random
source. Events for one session are processed strictly in order under a
per-session lock; different sessions proceed concurrently.
"""

from __future__ import annotations

import contextlib
import inspect
import logging
import random
from collections.abc import Awaitable, Callable
from datetime import datetime

from prometheus_client import Counter

from ava.config import AvaSettings
from ava.context.resolvers import resolve
from ava.core.clock import SystemClock
from ava.core.logging import correlation_scope
from ava.core.metrics import (
    DECISIONS_TOTAL,
    DETECTIONS_TOTAL,
    INTERVENTIONS_TOTAL,
    PROCESSING_ERRORS_TOTAL,
    observe_event_processing,
)
from ava.friction.detectors import PRODUCT_VIEW_EVENTS, build_default_registry
from ava.friction.payload import as_int, as_str
from ava.friction.registry import DetectorRegistry
from ava.gates.gatekeeper import InterventionGatekeeper
from ava.gates.staging import StageTracker, rank_interventions
from ava.models.context import TrackerContexts
from ava.models.events import Event
from ava.models.friction import FrictionDetection
from ava.models.interventions import InterventionDecision, InterventionRecord
from ava.models.scores import ScoreSnapshot
from ava.models.sessions import SessionActivity, SessionState
from ava.protocols.runtime import Clock, RandomSource
from ava.protocols.sessions import SessionStore
from ava.scoring.aggregator import ScoreAggregator, new_score_state
from ava.scripts.generator import generate, max_stage_for
from ava.sessions.locks import SessionLocks
from ava.sessions.store import InMemorySessionStore

logger = logging.getLogger(__name__)

DecisionListener = Callable[[InterventionDecision], Awaitable[None] | None]

_SCROLL_EVENTS = frozenset({"scroll", "scroll_depth", "scroll_velocity"})
_ACTIVITY_EVENTS = frozenset(
    {"page_view", "element_hover", "hover", "add_to_cart", "product_detail"}
) | _SCROLL_EVENTS | PRODUCT_VIEW_EVENTS
_OTHER_EVENT_LABEL = "other"


def _record_activity(activity: SessionActivity, event: Event) -> None:
    payload = event.payload
    if event.event_type == "element_hover" and as_str(payload, "element_type") == "product_price":
        activity.price_hover_count += 1
    elif event.event_type == "hover" and as_str(payload, "element") == "price":
        activity.price_hover_count += 1
    elif event.event_type in _SCROLL_EVENTS:
        activity.scroll_count += max(as_int(payload, "count") or 1, 1)
    elif event.event_type in PRODUCT_VIEW_EVENTS or event.event_type == "product_detail":
        product_id = as_str(payload, "product_id")
        if product_id:
            activity.viewed_product_ids.add(product_id)
    elif event.event_type == "add_to_cart":
        activity.cart_additions += 1


class InterventionEngine:
    def __init__(
        self,
        settings: AvaSettings | None = None,
        *,
        store: SessionStore | None = None,
        clock: Clock | None = None,
        rng: RandomSource | None = None,
        registry: DetectorRegistry | None = None,
        aggregator: ScoreAggregator | None = None,
        gatekeeper: InterventionGatekeeper | None = None,
    ) -> None:
        self._settings = settings or AvaSettings()
        self._store: SessionStore = store or InMemorySessionStore()
        self._clock: Clock = clock or SystemClock()
        self._rng: RandomSource = rng or random.Random(self._settings.decision.seed)
        self._registry = registry or build_default_registry(self._settings.engine.history_size)
        self._aggregator = aggregator or ScoreAggregator(self._settings.scoring)
        self._gatekeeper = gatekeeper or InterventionGatekeeper(
            self._settings.gates,
            decision_config=self._settings.decision,
        )
        self._stages = StageTracker(self._settings.gates)
        self._locks = SessionLocks()
        self._listeners: list[DecisionListener] = []
        self._metrics_enabled = self._settings.observability.metrics_enabled

    @property
    def store(self) -> SessionStore:
        return self._store

    def add_listener(self, listener: DecisionListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: DecisionListener) -> None:
        with contextlib.suppress(ValueError):
            self._listeners.remove(listener)

    async def process_event(
        self,
        event: Event,
        contexts: TrackerContexts | None = None,
    ) -> InterventionDecision | None:
        """Run one event through the pipeline and return the decision, if any.

        Failures are contained to the event: they are logged, counted and
        reported as "no decision" so other sessions keep flowing.
        """
        trackers = contexts or TrackerContexts()
        with (
            correlation_scope(session_id=event.session_id, event_type=event.event_type),
            self._observe(self._metric_label(event.event_type)),
        ):
            async with self._locks.hold(event.session_id):
                try:
                    decision = await self._process_locked(event, trackers)
                except Exception:
                    logger.exception("event processing failed, skipping event")
                    self._count_error("engine")
                    return None

            if decision is not None:
                await self._notify(decision)
            return decision

    async def record_dismissal(self, session_id: str) -> datetime:
        """Mark the latest intervention as dismissed; returns the block deadline."""
        with correlation_scope(session_id=session_id):
            async with self._locks.hold(session_id):
                now = self._clock.now()
                state = await self._load(session_id, now)
                deadline = self._gatekeeper.record_dismissal(state, now)
                await self._store.put(state)
        logger.info("intervention dismissed, suppressed until %s", deadline.isoformat())
        return deadline

    async def snapshot(self, session_id: str) -> ScoreSnapshot | None:
        async with self._locks.hold(session_id):
            state = await self._store.get(session_id)
            if state is None:
                return None
            now = self._clock.now()
            scores_state = state.scores or new_score_state(state.ensure_started(now))
            return ScoreSnapshot(
                session_id=session_id,
                scores=self._aggregator.current_scores(scores_state, now),
                breakdown=self._aggregator.breakdown(scores_state, now),
                session_age_ms=state.age_ms(now),
                taken_at=now,
            )

    async def end_session(self, session_id: str) -> None:
        async with self._locks.hold(session_id):
            await self._store.delete(session_id)
        self._locks.discard(session_id)
        with correlation_scope(session_id=session_id):
            logger.info("session ended")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _load(self, session_id: str, now: datetime) -> SessionState:
        stored = await self._store.get(session_id)
        # Work on a copy; the store only sees state that was fully processed.
        state = SessionState(session_id=session_id) if stored is None else stored.model_copy(deep=True)
        started_at = state.ensure_started(now)
        if state.scores is None:
            state.scores = new_score_state(started_at)
        return state

    async def _process_locked(
        self,
        event: Event,
        contexts: TrackerContexts,
    ) -> InterventionDecision | None:
        now = self._clock.now()
        state = await self._load(event.session_id, now)

        _record_activity(state.activity, event)
        detections = self._registry.detect(event, state.history, contexts, activity=state.activity)
        state.history.append(event)
        overflow = len(state.history) - self._settings.engine.history_size
        if overflow > 0:
            del state.history[:overflow]

        if not detections:
            await self._store.put(state)
            return None

        for detection in detections:
            self._count(DETECTIONS_TOTAL, friction_type=detection.type.value)
        state.scores = self._aggregator.apply_detections(
            state.scores or new_score_state(now), detections, at=event.timestamp
        )

        decision = self._decide(state, event, contexts, detections, now)
        await self._store.put(state)
        return decision

    def _decide(
        self,
        state: SessionState,
        event: Event,
        contexts: TrackerContexts,
        detections: list[FrictionDetection],
        now: datetime,
    ) -> InterventionDecision | None:
        policy_name = self._gatekeeper.policy.name
        priorities = {item.type.value: self._gatekeeper.priority_for(item.type) for item in detections}
        candidate: FrictionDetection | None = None
        for ranked in rank_interventions(detections, priorities):
            verdict = self._gatekeeper.evaluate(state, ranked.type, now, new_user=contexts.is_new_user)
            if verdict.allowed:
                candidate = ranked
                break
            logger.debug("%s gated: %s", ranked.type.value, verdict.reason)

        if candidate is None:
            self._count(DECISIONS_TOTAL, policy=policy_name, outcome="gated")
            return None

        scores = self._aggregator.current_scores(state.scores or new_score_state(now), now)
        firing = self._gatekeeper.decide(
            scores,
            intervention_type=candidate.type,
            dismissed=state.is_dismissed(now),
            in_payment=contexts.cart.in_payment,
            session_age_ms=state.age_ms(now),
            rng=self._rng,
        )
        if not firing.fire:
            self._count(DECISIONS_TOTAL, policy=policy_name, outcome="held")
            logger.debug(
                "%s held: %s (p=%.3f)", candidate.type.value, firing.reason, firing.probability
            )
            return None

        rule = self._gatekeeper.rule_for(candidate.type)
        max_stages = min(rule.max_stages, max_stage_for(candidate.type))
        stage = self._stages.next_stage(state, candidate.type, now, max_stages)
        context = resolve(
            candidate.type,
            event,
            contexts.product,
            contexts.cart,
            contexts.comparison,
            contexts.search,
            candidate,
            user_location=contexts.user_location,
        )
        intervention = generate(candidate.type, context, stage)

        state.interventions.append(
            InterventionRecord(type=candidate.type.value, timestamp=now, message=intervention.script)
        )
        self._stages.advance(state, candidate.type, stage, now)
        self._count(DECISIONS_TOTAL, policy=policy_name, outcome="fired")
        self._count(INTERVENTIONS_TOTAL, intervention_type=candidate.type.value)
        logger.info(
            "intervention %s fired at stage %d (p=%.3f, %s)",
            candidate.type.value,
            stage,
            firing.probability,
            firing.reason,
        )
        return InterventionDecision(
            session_id=state.session_id,
            type=candidate.type,
            priority=rule.priority,
            stage=stage,
            context=context,
            intervention=intervention,
            probability=firing.probability,
            reason=firing.reason,
            decided_at=now,
        )

    async def _notify(self, decision: InterventionDecision) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(decision)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("decision listener failed")
                self._count_error("listener")

    def _metric_label(self, event_type: str) -> str:
        # Event types come from clients; unknown ones share a label so series stay bounded.
        if event_type in _ACTIVITY_EVENTS or self._registry.handles(event_type):
            return event_type
        return _OTHER_EVENT_LABEL

    def _observe(self, event_type: str) -> contextlib.AbstractContextManager[None]:
        if self._metrics_enabled:
            return observe_event_processing(event_type)
        return contextlib.nullcontext()

    def _count(self, counter: Counter, **labels: str) -> None:
        if self._metrics_enabled:
            counter.labels(**labels).inc()

    def _count_error(self, stage: str) -> None:
        self._count(PROCESSING_ERRORS_TOTAL, stage=stage)


__all__ = ["DecisionListener", "InterventionEngine"]
