"""Lenient accessors for collector payload fields.

Collector payloads are untrusted JSON; these helpers return ``None`` for
missing or mistyped values instead of raising.
"""

from __future__ import annotations

import math
from collections.abc import Mapping


def as_float(payload: Mapping[str, object], key: str) -> float | None:
    value = payload.get(key)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def as_int(payload: Mapping[str, object], key: str) -> int | None:
    number = as_float(payload, key)
    if number is None:
        return None
    return int(number)


def as_str(payload: Mapping[str, object], key: str) -> str | None:
    value = payload.get(key)
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def as_bool(payload: Mapping[str, object], key: str) -> bool:
    value = payload.get(key)
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes"}
    return False


__all__ = ["as_bool", "as_float", "as_int", "as_str"]
