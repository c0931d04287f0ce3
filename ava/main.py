"""Ava CLI: offline replay of recorded storefront sessions."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from pathlib import Path

import click
from pydantic import ValidationError

from ava.config import AvaSettings, DecisionConfig, load_config
from ava.core.clock import ReplayClock
from ava.core.logging import setup_logging
from ava.engine import InterventionEngine
from ava.models.context import TrackerContexts
from ava.models.events import Event
from ava.models.interventions import InterventionDecision
from ava.models.scores import ScoreSnapshot

_DEFAULT_CONFIG = Path("config/ava.yaml")


@dataclass(frozen=True, slots=True)
class ReplayRecord:
    event: Event
    contexts: TrackerContexts


def read_events(path: Path) -> list[ReplayRecord]:
    """Parse a JSONL file of events; each line may carry a ``contexts`` object."""
    records: list[ReplayRecord] = []
    with path.open(encoding="utf-8") as handle:
        for lineno, line in enumerate(handle, start=1):
            if not line.strip():
                continue
            try:
                raw = json.loads(line)
                if not isinstance(raw, dict):
                    raise ValueError("each line must be a JSON object")
                contexts = TrackerContexts.model_validate(raw.pop("contexts", None) or {})
                event = Event.model_validate(raw)
            except (ValueError, ValidationError) as exc:
                raise click.ClickException(f"{path}:{lineno}: invalid event: {exc}") from exc
            records.append(ReplayRecord(event=event, contexts=contexts))
    return records


def _resolve_settings(config_path: Path | None, policy: str | None, seed: int | None) -> AvaSettings:
    if config_path is not None:
        settings = load_config(config_path)
    elif _DEFAULT_CONFIG.exists():
        settings = load_config(_DEFAULT_CONFIG)
    else:
        settings = AvaSettings()

    overrides: dict[str, object] = {}
    if policy is not None:
        overrides["policy"] = policy
    if seed is not None:
        overrides["seed"] = seed
    if overrides:
        decision = DecisionConfig.model_validate({**settings.decision.model_dump(), **overrides})
        settings = settings.model_copy(update={"decision": decision})
    return settings


async def replay(
    records: list[ReplayRecord],
    settings: AvaSettings,
) -> tuple[InterventionEngine, list[InterventionDecision]]:
    """Feed records through a fresh engine, clocked by the event timestamps."""
    clock = ReplayClock(records[0].event.timestamp if records else None)
    engine = InterventionEngine(settings, clock=clock)
    decisions: list[InterventionDecision] = []
    for record in records:
        clock.advance_to(record.event.timestamp)
        decision = await engine.process_event(record.event, record.contexts)
        if decision is not None:
            decisions.append(decision)
    return engine, decisions


async def _snapshots(engine: InterventionEngine) -> list[ScoreSnapshot]:
    snapshots: list[ScoreSnapshot] = []
    for session_id in await engine.store.list_session_ids():
        snapshot = await engine.snapshot(session_id)
        if snapshot is not None:
            snapshots.append(snapshot)
    return snapshots


def _format_decision(decision: InterventionDecision) -> str:
    return (
        f"{decision.decided_at.isoformat()} {decision.session_id} "
        f"{decision.type.value} stage={decision.stage} p={decision.probability:.2f} "
        f"ui={decision.intervention.ui_type.value} :: {decision.intervention.script}"
    )


def _format_snapshot(snapshot: ScoreSnapshot) -> str:
    scores = " ".join(f"{name}={value:.1f}" for name, value in snapshot.scores.as_dict().items())
    top = ", ".join(item.scenario for item in snapshot.breakdown.top_contributors) or "-"
    return (
        f"{snapshot.session_id} age={snapshot.session_age_ms / 1000:.0f}s {scores} "
        f"active={snapshot.breakdown.active_contributions}/{snapshot.breakdown.total_contributions} "
        f"top=[{top}]"
    )


_events_argument = click.argument(
    "events_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
_config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML config; defaults to config/ava.yaml when present.",
)
_policy_option = click.option(
    "--policy",
    type=click.Choice(["probabilistic", "deterministic"], case_sensitive=False),
    default=None,
)
_seed_option = click.option("--seed", type=int, default=None, help="Seed for the firing draw.")
_json_option = click.option("--json", "as_json", is_flag=True, help="Emit one JSON object per line.")


@click.group()
@click.option("--log-level", default="WARNING", show_default=True)
@click.option("--json-logs", is_flag=True, help="Write logs to stderr as JSON.")
def cli(log_level: str, json_logs: bool) -> None:
    """Ava signal scoring and intervention engine."""
    setup_logging(log_level.upper(), json_output=json_logs)


@cli.command("replay")
@_events_argument
@_config_option
@_policy_option
@_seed_option
@_json_option
def replay_command(
    events_path: Path,
    config_path: Path | None,
    policy: str | None,
    seed: int | None,
    as_json: bool,
) -> None:
    """Replay a JSONL event log and print every intervention decision."""
    settings = _resolve_settings(config_path, policy.lower() if policy else None, seed)
    records = read_events(events_path)
    _engine, decisions = asyncio.run(replay(records, settings))

    for decision in decisions:
        click.echo(decision.model_dump_json() if as_json else _format_decision(decision))
    if not as_json:
        click.echo(f"{len(records)} events, {len(decisions)} interventions")


@cli.command("snapshot")
@_events_argument
@_config_option
@_policy_option
@_seed_option
@_json_option
def snapshot_command(
    events_path: Path,
    config_path: Path | None,
    policy: str | None,
    seed: int | None,
    as_json: bool,
) -> None:
    """Replay a JSONL event log and print the final score snapshot per session."""
    settings = _resolve_settings(config_path, policy.lower() if policy else None, seed)
    records = read_events(events_path)

    async def _run() -> list[ScoreSnapshot]:
        engine, _decisions = await replay(records, settings)
        return await _snapshots(engine)

    for snapshot in asyncio.run(_run()):
        click.echo(snapshot.model_dump_json() if as_json else _format_snapshot(snapshot))


__all__ = ["cli", "read_events", "replay"]


if __name__ == "__main__":
    cli()
