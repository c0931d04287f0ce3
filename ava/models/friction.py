from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FrictionType(StrEnum):
    exit_intent = "exit_intent"
    price_sensitivity = "price_sensitivity"
    search_frustration = "search_frustration"
    specs_confusion = "specs_confusion"
    indecision = "indecision"
    comparison_loop = "comparison_loop"
    high_interest_stalling = "high_interest_stalling"
    checkout_hesitation = "checkout_hesitation"
    navigation_confusion = "navigation_confusion"
    gift_anxiety = "gift_anxiety"
    form_fatigue = "form_fatigue"
    visual_doom_scrolling = "visual_doom_scrolling"
    trust_gap = "trust_gap"


class FrictionDetection(BaseModel):
    """A typed, confidence-scored signal produced by one detector.

    ``evidence`` keeps insertion order and drops duplicates; the first tag is
    the primary evidence used for scoring and checkout message selection.
    """

    model_config = ConfigDict(frozen=True)

    type: FrictionType
    confidence: float = Field(ge=0.0, le=1.0)
    evidence: tuple[str, ...] = ()
    timestamp: datetime
    context: dict[str, object] = Field(default_factory=dict)

    @field_validator("evidence", mode="before")
    @classmethod
    def _dedupe_evidence(cls, value: object) -> object:
        if isinstance(value, str):
            return (value,)
        if isinstance(value, (list, tuple, set, frozenset)):
            return tuple(dict.fromkeys(str(tag) for tag in value))
        return value

    @property
    def primary_evidence(self) -> str | None:
        return self.evidence[0] if self.evidence else None


__all__ = ["FrictionDetection", "FrictionType"]
