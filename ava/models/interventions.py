from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from ava.models.context import InterventionContext
from ava.models.friction import FrictionType


class UIType(StrEnum):
    popup_product_card = "popup_product_card"
    popup_small = "popup_small"
    popup_comparison = "popup_comparison"
    popup_custom = "popup_custom"
    voice_only = "voice_only"


StageApproach = Literal["helpful", "persuasive", "offer"]


class InterventionRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    timestamp: datetime
    message: str = ""


class GeneratedIntervention(BaseModel):
    model_config = ConfigDict(frozen=True)

    script: str
    ui_type: UIType


class GateVerdict(BaseModel):
    allowed: bool
    reason: str


class FiringDecision(BaseModel):
    fire: bool
    type: FrictionType | None = None
    probability: float = Field(ge=0.0, le=1.0)
    reason: str


class StageProgress(BaseModel):
    current_stage: int = Field(default=1, ge=1, le=3)
    last_stage_at: datetime


class InterventionStage(BaseModel):
    stage: int = Field(ge=1, le=3)
    approach: StageApproach


class InterventionDecision(BaseModel):
    """Engine output handed to the delivery layer."""

    session_id: str
    type: FrictionType
    priority: int
    stage: int = Field(ge=1, le=3)
    context: InterventionContext
    intervention: GeneratedIntervention
    probability: float = Field(ge=0.0, le=1.0)
    reason: str
    decided_at: datetime


__all__ = [
    "FiringDecision",
    "GateVerdict",
    "GeneratedIntervention",
    "InterventionDecision",
    "InterventionRecord",
    "InterventionStage",
    "StageApproach",
    "StageProgress",
    "UIType",
]
