from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path

import pytest
from ava.main import cli, read_events
from click.testing import CliRunner

_SESSION = [
    {"session_id": "s-1", "event_type": "page_view", "timestamp": "2026-03-14T12:00:00+00:00"},
    {"session_id": "s-1", "event_type": "exit_intent", "payload": None, "timestamp": "2026-03-14T12:03:00+00:00"},
]


@pytest.fixture(autouse=True)
def restore_root_logger() -> Iterator[None]:
    root = logging.getLogger()
    handlers, filters, level = list(root.handlers), list(root.filters), root.level
    yield
    root.handlers[:] = handlers
    root.filters[:] = filters
    root.setLevel(level)


@pytest.fixture
def events_file(tmp_path: Path) -> Path:
    path = tmp_path / "events.jsonl"
    path.write_text("\n".join(json.dumps(item) for item in _SESSION) + "\n\n", encoding="utf-8")
    return path


def test_read_events_parses_contexts(tmp_path: Path) -> None:
    path = tmp_path / "events.jsonl"
    line = {
        **_SESSION[1],
        "contexts": {"cart": {"items": [{"product_id": "p-1", "product_price": 20, "quantity": 2}]}},
    }
    path.write_text(json.dumps(line) + "\n", encoding="utf-8")

    [record] = read_events(path)

    assert record.event.event_type == "exit_intent"
    assert record.contexts.cart.total_value == 40.0
    assert "contexts" not in record.event.payload


def test_replay_prints_decisions(events_file: Path) -> None:
    result = CliRunner().invoke(cli, ["replay", str(events_file), "--policy", "deterministic"])

    assert result.exit_code == 0, result.output
    assert "exit_intent stage=1" in result.output
    assert "2 events, 1 interventions" in result.output


def test_replay_json_output(events_file: Path) -> None:
    result = CliRunner().invoke(cli, ["replay", str(events_file), "--json", "--seed", "7"])

    assert result.exit_code == 0, result.output
    lines = [json.loads(line) for line in result.output.splitlines() if line.strip()]
    assert [item["type"] for item in lines] == ["exit_intent"]
    assert lines[0]["intervention"]["ui_type"] == "popup_product_card"


def test_snapshot_prints_scores(events_file: Path) -> None:
    result = CliRunner().invoke(cli, ["snapshot", str(events_file)])

    assert result.exit_code == 0, result.output
    assert "s-1 age=180s" in result.output
    assert "intent=" in result.output


def test_invalid_line_reports_location(tmp_path: Path) -> None:
    path = tmp_path / "broken.jsonl"
    path.write_text(json.dumps(_SESSION[0]) + "\n{not json}\n", encoding="utf-8")

    result = CliRunner().invoke(cli, ["replay", str(path)])

    assert result.exit_code != 0
    assert "invalid event" in result.output
    assert ":2:" in result.output
