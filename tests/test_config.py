"""Tests for configuration loading and validation."""

from __future__ import annotations

import math
from pathlib import Path

import pytest
from ava.config import AvaSettings, DecisionConfig, GatesConfig, ReliabilityStep, load_config
from ava.models.friction import FrictionType
from pydantic import ValidationError


class TestDefaults:
    def test_settings_defaults(self) -> None:
        settings = AvaSettings()
        assert settings.scoring.half_life_ms == 120_000
        assert settings.decision.policy == "probabilistic"
        assert settings.gates.min_interval_ms == 20_000
        assert settings.gates.max_interventions_per_session == 5
        assert settings.engine.history_size == 20

    def test_every_friction_type_has_a_rule(self) -> None:
        rules = GatesConfig().rules
        assert set(rules) == {item.value for item in FrictionType}

    def test_exit_intent_rule(self) -> None:
        rule = GatesConfig().rules["exit_intent"]
        assert rule.bypass_score_policy is True
        assert rule.exempt_from_pacing is True
        assert rule.max_occurrences == 2
        assert rule.once_per_session is False

    def test_trust_gap_is_once_per_session(self) -> None:
        assert GatesConfig().rules["trust_gap"].once_per_session is True

    def test_new_user_leniency_defaults(self) -> None:
        gates = GatesConfig()
        assert gates.new_user_interval_factor == pytest.approx(0.7)
        assert gates.new_user_extra_interventions == 2

    def test_new_user_factor_must_shorten(self) -> None:
        with pytest.raises(ValidationError):
            GatesConfig(new_user_interval_factor=1.5)


class TestDecisionValidation:
    def test_probability_bounds_must_be_ordered(self) -> None:
        with pytest.raises(ValidationError, match="probability_min"):
            DecisionConfig(probability_min=0.9, probability_max=0.5)

    def test_reliability_ramp_must_ascend(self) -> None:
        ramp = [ReliabilityStep(below_ms=60_000, factor=0.6), ReliabilityStep(below_ms=30_000, factor=0.3)]
        with pytest.raises(ValidationError, match="reliability_ramp"):
            DecisionConfig(reliability_ramp=ramp)

    def test_unknown_policy_rejected(self) -> None:
        with pytest.raises(ValidationError):
            DecisionConfig(policy="coin_flip")


class TestRuleMerging:
    def test_partial_override_keeps_other_fields(self) -> None:
        gates = GatesConfig.model_validate({"rules": {"exit_intent": {"cooldown_ms": 1000}}})
        exit_rule = gates.rules["exit_intent"]
        assert exit_rule.cooldown_ms == 1000
        assert exit_rule.priority == 10
        assert gates.rules["price_sensitivity"].min_price_hovers == 3

    def test_new_rule_added(self) -> None:
        gates = GatesConfig.model_validate({"rules": {"custom_nudge": {"priority": 2}}})
        assert gates.rules["custom_nudge"].priority == 2
        assert "exit_intent" in gates.rules


class TestLoadConfig:
    def test_reads_ava_section(self, tmp_path: Path) -> None:
        path = tmp_path / "ava.yaml"
        path.write_text(
            "ava:\n"
            "  decision:\n"
            "    policy: deterministic\n"
            "  gates:\n"
            "    rules:\n"
            "      specs_confusion:\n"
            "        cooldown_ms: .inf\n",
            encoding="utf-8",
        )
        settings = load_config(path)
        assert settings.decision.policy == "deterministic"
        assert math.isinf(settings.gates.rules["specs_confusion"].cooldown_ms)
        assert settings.gates.rules["specs_confusion"].priority == 5

    def test_bare_mapping_without_section(self, tmp_path: Path) -> None:
        path = tmp_path / "ava.yaml"
        path.write_text("engine:\n  history_size: 7\n", encoding="utf-8")
        assert load_config(path).engine.history_size == 7

    def test_environment_overrides_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "ava.yaml"
        path.write_text("ava:\n  decision:\n    policy: probabilistic\n", encoding="utf-8")
        monkeypatch.setenv("AVA_DECISION__POLICY", "deterministic")
        monkeypatch.setenv("AVA_GATES__MIN_INTERVAL_MS", "5000")

        settings = load_config(path)
        assert settings.decision.policy == "deterministic"
        assert settings.gates.min_interval_ms == 5000

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError, match="config file not found"):
            load_config(tmp_path / "missing.yaml")

    def test_top_level_must_be_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "ava.yaml"
        path.write_text("- one\n- two\n", encoding="utf-8")
        with pytest.raises(ValueError, match="top-level mapping"):
            load_config(path)

    def test_invalid_values_raise_validation_error(self, tmp_path: Path) -> None:
        path = tmp_path / "ava.yaml"
        path.write_text("ava:\n  scoring:\n    half_life_ms: 0\n", encoding="utf-8")
        with pytest.raises(ValidationError):
            load_config(path)

    def test_sample_config_loads(self) -> None:
        sample = Path(__file__).resolve().parent.parent / "config" / "ava.yaml"
        settings = load_config(sample)
        assert settings.gates.rules["trust_gap"].once_per_session is True
        assert settings.gates.new_user_interval_factor == pytest.approx(0.7)
        assert settings.gates.new_user_extra_interventions == 2
