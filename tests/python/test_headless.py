import csv
import json

import pytest

from prowler.app.headless import run_headless


def _read_csv(path):
    with path.open(newline="") as handle:
        return list(csv.reader(handle))


def test_headless_basic_log_header(tmp_path):
    log_path = tmp_path / "basic.csv"
    run_headless(steps=2, seed=1, log_path=log_path, deterministic_log=True, log_format="basic")
    rows = _read_csv(log_path)
    assert len(rows) == 3
    assert rows[0] == [
        "tick",
        "population",
        "spawns",
        "despawns",
        "player_health",
        "player_hits",
        "tick_ms",
    ]
    assert rows[1][-1] == "0.000"


def test_headless_detailed_log_header_and_ratios(tmp_path):
    log_path = tmp_path / "detailed.csv"
    run_headless(steps=3, seed=2, log_path=log_path, deterministic_log=True, log_format="detailed")
    rows = _read_csv(log_path)
    assert len(rows) == 4
    header = rows[0]
    assert header[:8] == [
        "tick",
        "population",
        "spawns",
        "despawns",
        "player_health",
        "player_hits",
        "messages",
        "tick_ms",
    ]
    assert "state_patrol" in header
    assert "state_reveal" in header
    assert header[-1] == "tick_ms_per_agent"

    idx = {name: i for i, name in enumerate(header)}
    for row in rows[1:]:
        population = int(row[idx["population"]])
        state_total = sum(int(row[i]) for name, i in idx.items() if name.startswith("state_"))
        assert state_total == population
        assert float(row[idx["tick_ms_per_agent"]]) == pytest.approx(0.0)


def test_headless_deterministic_logs_match(tmp_path):
    first = tmp_path / "first.csv"
    second = tmp_path / "second.csv"
    run_headless(steps=200, seed=7, log_path=first, deterministic_log=True, log_format="detailed")
    run_headless(steps=200, seed=7, log_path=second, deterministic_log=True, log_format="detailed")
    assert first.read_text() == second.read_text()


def test_headless_rejects_unknown_log_format(tmp_path):
    with pytest.raises(ValueError):
        run_headless(steps=1, seed=1, log_path=tmp_path / "x.csv", log_format="verbose")


def test_headless_reads_yaml_config(tmp_path):
    config_path = tmp_path / "sim.yaml"
    config_path.write_text(
        "spawn_points: []\n"
        "initial_spawns:\n"
        "  - {x: 700, y: 700, archetype: guard}\n"
        "  - {x: 100, y: 700, archetype: trap}\n"
    )
    log_path = tmp_path / "run.csv"
    run_headless(steps=1, seed=1, log_path=log_path, deterministic_log=True, log_format="basic", config_path=config_path)
    rows = _read_csv(log_path)
    assert rows[1][1] == "2"


def test_headless_summary_output(tmp_path):
    log_path = tmp_path / "summary.csv"
    summary_path = tmp_path / "summary.json"
    run_headless(
        steps=4,
        seed=3,
        log_path=log_path,
        deterministic_log=True,
        log_format="basic",
        summary_path=summary_path,
        summary_window=2,
    )
    payload = json.loads(summary_path.read_text())
    assert payload["steps"] == 4
    assert payload["seed"] == 3
    assert payload["log_format"] == "basic"
    assert "tick_ms" in payload
    assert "population" in payload
    assert "player_health" in payload
    assert set(payload["totals"]) == {"spawns", "despawns", "messages", "player_hits"}
    assert set(payload["state_share"]) >= {"patrol", "chase", "attack"}
    assert payload["tail_window"]["window"] == 2
