from ava.gates.gatekeeper import InterventionGatekeeper, UnknownInterventionTypeError
from ava.gates.policies import (
    DeterministicThresholdPolicy,
    ProbabilisticSoftThresholdPolicy,
    build_policy,
    calculate_intervention_probability,
    session_reliability,
)
from ava.gates.staging import StageTracker, rank_interventions, select_intervention, stage_info

__all__ = [
    "DeterministicThresholdPolicy",
    "InterventionGatekeeper",
    "ProbabilisticSoftThresholdPolicy",
    "StageTracker",
    "UnknownInterventionTypeError",
    "build_policy",
    "calculate_intervention_probability",
    "rank_interventions",
    "select_intervention",
    "session_reliability",
]
