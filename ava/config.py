from __future__ import annotations

import math
import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ava.models.friction import FrictionType

_MINUTE_MS = 60_000.0


class ScoringConfig(BaseModel):
    half_life_ms: float = Field(default=120_000.0, gt=0)
    diminishing_factor: float = Field(default=0.7, gt=0.0, le=1.0)
    max_occurrences_tracked: int = Field(default=5, ge=0)
    baseline_clarity: float = Field(default=100.0, ge=0.0, le=100.0)
    active_decay_threshold: float = Field(default=0.05, ge=0.0, le=1.0)
    """Contributions whose decay factor drops below this count as fully decayed."""
    top_contributors: int = Field(default=5, ge=1)


class ReliabilityStep(BaseModel):
    below_ms: float = Field(gt=0)
    factor: float = Field(ge=0.0, le=1.0)


def _default_reliability_ramp() -> list[ReliabilityStep]:
    return [
        ReliabilityStep(below_ms=30_000, factor=0.3),
        ReliabilityStep(below_ms=60_000, factor=0.6),
        ReliabilityStep(below_ms=120_000, factor=0.85),
    ]


class DecisionConfig(BaseModel):
    """Firing policy settings.

    ``probabilistic`` is the canonical policy; ``deterministic`` is the
    hard-threshold alternative kept for deployments that need reproducible
    firing without a random source.
    """

    policy: Literal["probabilistic", "deterministic"] = "probabilistic"
    intent_threshold: float = 60.0
    help_need_threshold: float = 20.0
    soft_threshold_range: float = Field(default=15.0, gt=0)
    probability_min: float = Field(default=0.30, ge=0.0, le=1.0)
    probability_max: float = Field(default=0.95, ge=0.0, le=1.0)
    min_probability: float = Field(default=0.05, ge=0.0, le=1.0)
    reliability_ramp: list[ReliabilityStep] = Field(default_factory=_default_reliability_ramp)
    seed: int | None = None

    @model_validator(mode="after")
    def _validate_ranges(self) -> DecisionConfig:
        if self.probability_min > self.probability_max:
            raise ValueError("decision.probability_min must not exceed probability_max")
        bounds = [step.below_ms for step in self.reliability_ramp]
        if bounds != sorted(bounds) or len(set(bounds)) != len(bounds):
            raise ValueError("decision.reliability_ramp must be strictly ascending by below_ms")
        return self


class InterventionRule(BaseModel):
    cooldown_ms: float = Field(default=0.0, ge=0)
    """Minimum gap between two firings of the type; ``inf`` means once per session."""
    min_session_age_ms: float = Field(default=0.0, ge=0)
    max_occurrences: int | None = Field(default=None, ge=1)
    min_price_hovers: int | None = Field(default=None, ge=0)
    min_scroll_count: int | None = Field(default=None, ge=0)
    min_products_viewed: int | None = Field(default=None, ge=0)
    priority: int = Field(default=1, ge=1)
    max_stages: int = Field(default=1, ge=1, le=3)
    bypass_score_policy: bool = False
    exempt_from_pacing: bool = False

    @property
    def once_per_session(self) -> bool:
        return math.isinf(self.cooldown_ms)


def default_intervention_rules() -> dict[str, InterventionRule]:
    return {
        FrictionType.exit_intent: InterventionRule(
            cooldown_ms=5 * _MINUTE_MS,
            min_session_age_ms=2 * _MINUTE_MS,
            max_occurrences=2,
            priority=10,
            max_stages=3,
            bypass_score_policy=True,
            exempt_from_pacing=True,
        ),
        FrictionType.price_sensitivity: InterventionRule(
            cooldown_ms=5 * _MINUTE_MS,
            min_session_age_ms=1 * _MINUTE_MS,
            min_price_hovers=3,
            priority=8,
            max_stages=3,
        ),
        FrictionType.search_frustration: InterventionRule(
            cooldown_ms=2 * _MINUTE_MS,
            min_session_age_ms=5 * _MINUTE_MS,
            min_scroll_count=50,
            min_products_viewed=10,
            priority=7,
        ),
        FrictionType.specs_confusion: InterventionRule(cooldown_ms=2 * _MINUTE_MS, priority=5),
        FrictionType.indecision: InterventionRule(cooldown_ms=3 * _MINUTE_MS, priority=7, max_stages=2),
        FrictionType.comparison_loop: InterventionRule(
            cooldown_ms=3 * _MINUTE_MS, priority=6, max_stages=2
        ),
        FrictionType.high_interest_stalling: InterventionRule(
            cooldown_ms=4 * _MINUTE_MS, priority=8, max_stages=3
        ),
        FrictionType.checkout_hesitation: InterventionRule(
            cooldown_ms=2 * _MINUTE_MS, priority=9, max_stages=2
        ),
        FrictionType.navigation_confusion: InterventionRule(cooldown_ms=3 * _MINUTE_MS, priority=4),
        FrictionType.trust_gap: InterventionRule(cooldown_ms=math.inf, priority=4),
        FrictionType.gift_anxiety: InterventionRule(cooldown_ms=5 * _MINUTE_MS, priority=4),
        FrictionType.visual_doom_scrolling: InterventionRule(
            cooldown_ms=5 * _MINUTE_MS, priority=3
        ),
        FrictionType.form_fatigue: InterventionRule(cooldown_ms=math.inf, priority=4),
    }


class GatesConfig(BaseModel):
    min_interval_ms: float = Field(default=20_000.0, ge=0)
    max_interventions_per_session: int = Field(default=5, ge=1)
    dismissal_cooldown_ms: float = Field(default=90_000.0, ge=0)
    stage_escalation_delay_ms: float = Field(default=60_000.0, ge=0)
    new_user_interval_factor: float = Field(default=0.7, gt=0.0, le=1.0)
    """Scales repeat cooldowns and the minimum interval for first-time visitors."""
    new_user_extra_interventions: int = Field(default=2, ge=0)
    rules: dict[str, InterventionRule] = Field(default_factory=default_intervention_rules)

    @field_validator("rules", mode="before")
    @classmethod
    def _merge_with_default_rules(cls, value: object) -> object:
        # Partial overrides in YAML only touch the keys they name.
        if not isinstance(value, dict):
            return value
        merged: dict[str, object] = {
            str(name): rule.model_dump() for name, rule in default_intervention_rules().items()
        }
        for name, override in value.items():
            base = merged.get(str(name))
            if isinstance(base, dict) and isinstance(override, dict):
                merged[str(name)] = {**base, **override}
            else:
                merged[str(name)] = override
        return merged


class EngineConfig(BaseModel):
    history_size: int = Field(default=20, ge=1)


class ObservabilityConfig(BaseModel):
    log_level: str = "INFO"
    json_logs: bool = False
    metrics_enabled: bool = True


class AvaSettings(BaseSettings):
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    decision: DecisionConfig = Field(default_factory=DecisionConfig)
    gates: GatesConfig = Field(default_factory=GatesConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    model_config = SettingsConfigDict(
        env_prefix="AVA_",
        env_nested_delimiter="__",
        extra="ignore",
    )


def _coerce_env_value(value: str) -> object:
    parsed = yaml.safe_load(value)
    return value if parsed is None else parsed


def _set_nested(mapping: dict[str, object], path: list[str], value: object) -> None:
    current = mapping
    for key in path[:-1]:
        existing = current.get(key)
        if not isinstance(existing, dict):
            existing = {}
            current[key] = existing
        current = existing
    current[path[-1]] = value


def _apply_env_overrides(data: dict[str, object]) -> dict[str, object]:
    merged = dict(data)
    prefix = "AVA_"
    for key, raw_value in os.environ.items():
        if not key.startswith(prefix):
            continue
        path = key[len(prefix) :].lower().split("__")
        _set_nested(merged, path, _coerce_env_value(raw_value))
    return merged


def load_config(path: str | Path = "config/ava.yaml") -> AvaSettings:
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"config file not found: {config_path}")

    loaded = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    if not isinstance(loaded, dict):
        raise ValueError("config file must contain a top-level mapping")

    raw = loaded.get("ava", loaded)
    if not isinstance(raw, dict):
        raise ValueError("ava config section must be a mapping")

    merged = _apply_env_overrides(raw)
    return AvaSettings.model_validate(merged)


__all__ = [
    "AvaSettings",
    "DecisionConfig",
    "EngineConfig",
    "GatesConfig",
    "InterventionRule",
    "ObservabilityConfig",
    "ReliabilityStep",
    "ScoringConfig",
    "default_intervention_rules",
    "load_config",
]
