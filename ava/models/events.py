from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Event(BaseModel):
    """One behavioral event emitted by the storefront collector."""

    model_config = ConfigDict(frozen=True)

    session_id: str = Field(min_length=1)
    event_type: str
    payload: dict[str, object] = Field(default_factory=dict)
    timestamp: datetime

    @field_validator("payload", mode="before")
    @classmethod
    def _coerce_missing_payload(cls, value: object) -> object:
        # Collectors send null payloads for bare signals such as exit_intent.
        if value is None:
            return {}
        return value

    @field_validator("timestamp")
    @classmethod
    def _ensure_timestamp_timezone_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
            raise ValueError("timestamp must be timezone-aware")
        return value


__all__ = ["Event"]
