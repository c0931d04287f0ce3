from __future__ import annotations

from ava.models.context import (
    CartContext,
    CartItem,
    ComparedProduct,
    ComparisonContext,
    InterventionContext,
    ProductContext,
    ProductView,
    SearchContext,
    SearchIntent,
    SearchQuery,
    TrackerContexts,
)
from ava.models.events import Event
from ava.models.friction import FrictionDetection, FrictionType
from ava.models.interventions import (
    FiringDecision,
    GateVerdict,
    GeneratedIntervention,
    InterventionDecision,
    InterventionRecord,
    InterventionStage,
    StageProgress,
    UIType,
)
from ava.models.scores import (
    ContributorImpact,
    Dimension,
    ScoreBreakdown,
    ScoredContribution,
    ScoreSnapshot,
    ScoreVector,
    SessionScoreState,
)
from ava.models.sessions import SessionActivity, SessionState

__all__ = [
    "CartContext",
    "CartItem",
    "ComparedProduct",
    "ComparisonContext",
    "ContributorImpact",
    "Dimension",
    "Event",
    "FiringDecision",
    "FrictionDetection",
    "FrictionType",
    "GateVerdict",
    "GeneratedIntervention",
    "InterventionContext",
    "InterventionDecision",
    "InterventionRecord",
    "InterventionStage",
    "ProductContext",
    "ProductView",
    "ScoreBreakdown",
    "ScoreSnapshot",
    "ScoreVector",
    "ScoredContribution",
    "SearchContext",
    "SearchIntent",
    "SearchQuery",
    "SessionActivity",
    "SessionScoreState",
    "SessionState",
    "StageProgress",
    "TrackerContexts",
    "UIType",
]
