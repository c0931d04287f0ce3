from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from ava.models.events import Event
from ava.models.interventions import InterventionRecord, StageProgress
from ava.models.scores import SessionScoreState


class SessionActivity(BaseModel):
    """Cumulative behaviour counters consulted by secondary context gates."""

    price_hover_count: int = 0
    scroll_count: int = 0
    viewed_product_ids: set[str] = Field(default_factory=set)
    cart_additions: int = 0

    @property
    def products_viewed(self) -> int:
        return len(self.viewed_product_ids)


class SessionState(BaseModel):
    """Everything the engine keeps for one session, keyed by ``session_id``."""

    session_id: str
    started_at: datetime | None = None
    scores: SessionScoreState | None = None
    history: list[Event] = Field(default_factory=list)
    interventions: list[InterventionRecord] = Field(default_factory=list)
    stages: dict[str, StageProgress] = Field(default_factory=dict)
    activity: SessionActivity = Field(default_factory=SessionActivity)
    dismissed_until: datetime | None = None
    dismissal_count: int = 0

    def ensure_started(self, now: datetime) -> datetime:
        if self.started_at is None:
            self.started_at = now
        return self.started_at

    def age_ms(self, now: datetime) -> float:
        started_at = self.ensure_started(now)
        return max((now - started_at).total_seconds() * 1000.0, 0.0)

    def is_dismissed(self, now: datetime) -> bool:
        return self.dismissed_until is not None and now < self.dismissed_until


__all__ = ["SessionActivity", "SessionState"]
