from ava.scoring.aggregator import (
    ScoreAggregator,
    clamp,
    diminishing_multiplier,
    new_score_state,
    time_decay,
)
from ava.scoring.deltas import SCORE_DELTAS

__all__ = [
    "SCORE_DELTAS",
    "ScoreAggregator",
    "clamp",
    "diminishing_multiplier",
    "new_score_state",
    "time_decay",
]
