from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    def now(self) -> datetime: ...


@runtime_checkable
class RandomSource(Protocol):
    def random(self) -> float: ...


__all__ = ["Clock", "RandomSource"]
