from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import pytest
from ava.config import AvaSettings
from ava.models.events import Event

from tests.fakes import ManualClock, SequenceRandom

T0 = datetime(2026, 3, 14, 12, 0, tzinfo=UTC)


@pytest.fixture
def t0() -> datetime:
    return T0


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(T0)


@pytest.fixture
def rng() -> SequenceRandom:
    return SequenceRandom([0.0])


@pytest.fixture
def settings() -> AvaSettings:
    return AvaSettings()


@pytest.fixture
def make_event() -> Callable[..., Event]:
    def _make(
        event_type: str,
        payload: dict[str, object] | None = None,
        *,
        at: datetime = T0,
        seconds: float = 0.0,
        session_id: str = "s-1",
    ) -> Event:
        return Event(
            session_id=session_id,
            event_type=event_type,
            payload=payload or {},
            timestamp=at + timedelta(seconds=seconds),
        )

    return _make
