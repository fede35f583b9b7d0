from __future__ import annotations

import argparse
import csv
import json
import logging
import math
from pathlib import Path
from typing import Optional

from ..sim.core.config import SimulationConfig
from ..sim.core.state_machine import StateKind
from ..sim.core.world import World

logger = logging.getLogger(__name__)

_STATE_COLUMNS = [kind.value for kind in StateKind]

_BASIC_HEADER = [
    "tick",
    "population",
    "spawns",
    "despawns",
    "player_health",
    "player_hits",
    "tick_ms",
]

_DETAILED_HEADER = [
    "tick",
    "population",
    "spawns",
    "despawns",
    "player_health",
    "player_hits",
    "messages",
    "tick_ms",
    *(f"state_{name}" for name in _STATE_COLUMNS),
    "avg_speed",
    "avg_health_fraction",
    "avg_pack_bonus",
    "revealed",
    "modified",
    "tick_ms_per_agent",
]


def _format_basic_row(metrics: object, tick_ms: float) -> list[object]:
    return [
        metrics.tick,
        metrics.population,
        metrics.spawns,
        metrics.despawns,
        f"{metrics.player_health:.2f}",
        metrics.player_hits,
        f"{tick_ms:.3f}",
    ]


def _format_detailed_row(world: World, metrics: object, tick_ms: float) -> list[object]:
    population = metrics.population
    speed_sum = 0.0
    health_sum = 0.0
    bonus_sum = 0.0
    revealed = 0
    modified = 0
    for agent in world.agents:
        velocity = agent.velocity
        speed_sum += math.hypot(velocity.x, velocity.y)
        health_sum += agent.health_fraction
        bonus_sum += agent.pack_bonus
        if agent.revealed:
            revealed += 1
        if agent.modifiers:
            modified += 1
    if population <= 0:
        avg_speed = 0.0
        avg_health = 0.0
        avg_bonus = 0.0
        tick_ms_per_agent = 0.0
    else:
        avg_speed = speed_sum / population
        avg_health = health_sum / population
        avg_bonus = bonus_sum / population
        tick_ms_per_agent = tick_ms / population

    return [
        metrics.tick,
        population,
        metrics.spawns,
        metrics.despawns,
        f"{metrics.player_health:.2f}",
        metrics.player_hits,
        metrics.messages,
        f"{tick_ms:.3f}",
        *(metrics.states.get(name, 0) for name in _STATE_COLUMNS),
        f"{avg_speed:.4f}",
        f"{avg_health:.4f}",
        f"{avg_bonus:.4f}",
        revealed,
        modified,
        f"{tick_ms_per_agent:.4f}",
    ]


def _percentile(sorted_values: list[float], percentile: float) -> float:
    if not sorted_values:
        return 0.0
    if len(sorted_values) == 1:
        return float(sorted_values[0])
    pos = (len(sorted_values) - 1) * percentile
    low = int(math.floor(pos))
    high = int(math.ceil(pos))
    if low == high:
        return float(sorted_values[low])
    weight = pos - low
    return float(sorted_values[low] + (sorted_values[high] - sorted_values[low]) * weight)


def _summary_stats(values: list[float]) -> dict[str, float]:
    if not values:
        return {"min": 0.0, "max": 0.0, "avg": 0.0, "p50": 0.0, "p90": 0.0, "p95": 0.0, "p99": 0.0}
    sorted_values = sorted(values)
    count = len(values)
    return {
        "min": float(sorted_values[0]),
        "max": float(sorted_values[-1]),
        "avg": float(sum(values) / count),
        "p50": _percentile(sorted_values, 0.50),
        "p90": _percentile(sorted_values, 0.90),
        "p95": _percentile(sorted_values, 0.95),
        "p99": _percentile(sorted_values, 0.99),
    }


def _load_config(config_path: Optional[Path]) -> SimulationConfig:
    if config_path is None:
        return SimulationConfig()
    return SimulationConfig.from_yaml(config_path)


def run_headless(
    steps: int,
    seed: Optional[int],
    log_path: Optional[Path],
    deterministic_log: bool = False,
    log_format: str = "detailed",
    summary_path: Optional[Path] = None,
    summary_window: int = 5000,
    config_path: Optional[Path] = None,
) -> None:
    log_mode = log_format.lower().strip()
    if log_mode not in {"basic", "detailed"}:
        raise ValueError(f"Unknown log format: {log_format}")

    config = _load_config(config_path)
    if seed is not None:
        config.seed = seed
    world = World(config)

    writer = None
    csv_file = None
    if log_path:
        csv_file = Path(log_path).open("w", newline="")
        writer = csv.writer(csv_file)
        writer.writerow(_DETAILED_HEADER if log_mode == "detailed" else _BASIC_HEADER)

    tick_ms_series: list[float] = []
    population_series: list[int] = []
    health_series: list[float] = []
    state_totals: dict[str, int] = {name: 0 for name in _STATE_COLUMNS}
    total_spawns = 0
    total_despawns = 0
    total_messages = 0
    max_tick_ms = (-1.0, -1)
    max_population = (-1, -1)

    try:
        for tick in range(steps):
            metrics = world.step(tick)
            tick_ms = 0.0 if deterministic_log else metrics.tick_duration_ms

            if summary_path:
                tick_ms_series.append(tick_ms)
                population_series.append(metrics.population)
                health_series.append(metrics.player_health)
                total_spawns += metrics.spawns
                total_despawns += metrics.despawns
                total_messages += metrics.messages
                for name, count in metrics.states.items():
                    state_totals[name] = state_totals.get(name, 0) + count
                if tick_ms > max_tick_ms[0]:
                    max_tick_ms = (tick_ms, tick)
                if metrics.population > max_population[0]:
                    max_population = (metrics.population, tick)

            if writer:
                if log_mode == "detailed":
                    writer.writerow(_format_detailed_row(world, metrics, tick_ms))
                else:
                    writer.writerow(_format_basic_row(metrics, tick_ms))
    finally:
        if csv_file:
            csv_file.close()

    player = world.player
    logger.info(
        "headless run finished: steps=%d seed=%d population=%d player_hits=%d",
        steps,
        config.seed,
        len(world.agents),
        player.hits if player is not None else 0,
    )

    if summary_path:
        window = max(1, int(summary_window))
        tail_slice = slice(max(0, len(tick_ms_series) - window), len(tick_ms_series))
        agent_ticks = sum(state_totals.values())
        summary = {
            "steps": steps,
            "seed": config.seed,
            "log_format": log_mode,
            "deterministic_log": deterministic_log,
            "tick_ms": _summary_stats(tick_ms_series),
            "population": _summary_stats([float(v) for v in population_series]),
            "player_health": _summary_stats(health_series),
            "totals": {
                "spawns": total_spawns,
                "despawns": total_despawns,
                "messages": total_messages,
                "player_hits": player.hits if player is not None else 0,
            },
            "state_share": {
                name: (count / agent_ticks if agent_ticks else 0.0) for name, count in state_totals.items()
            },
            "peaks": {
                "tick_ms": {"value": float(max_tick_ms[0]), "tick": max_tick_ms[1]},
                "population": {"value": max_population[0], "tick": max_population[1]},
            },
            "tail_window": {
                "window": window,
                "tick_ms": _summary_stats(tick_ms_series[tail_slice]),
                "population": _summary_stats([float(v) for v in population_series[tail_slice]]),
            },
        }
        Path(summary_path).write_text(json.dumps(summary, indent=2))


def main() -> None:
    parser = argparse.ArgumentParser(description="Headless prowler enemy AI simulation")
    parser.add_argument("--steps", type=int, default=3000)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--config", type=Path, default=None, help="YAML simulation config")
    parser.add_argument("--log", type=Path, default=None, help="CSV file to write metrics")
    parser.add_argument(
        "--log-format",
        choices=["basic", "detailed"],
        default="detailed",
        help="CSV format to write when --log is provided.",
    )
    parser.add_argument(
        "--summary",
        type=Path,
        default=None,
        help="Optional JSON file to write summary stats for the run.",
    )
    parser.add_argument(
        "--summary-window",
        type=int,
        default=5000,
        help="Tail window size (ticks) for summary stats.",
    )
    parser.add_argument(
        "--deterministic-log",
        action="store_true",
        help="Write deterministic CSV (tick_ms is forced to 0.000 so identical seeds match).",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Python logging level for the run.",
    )
    args = parser.parse_args()
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")
    run_headless(
        args.steps,
        args.seed,
        args.log,
        deterministic_log=args.deterministic_log,
        log_format=args.log_format,
        summary_path=args.summary,
        summary_window=args.summary_window,
        config_path=args.config,
    )


if __name__ == "__main__":
    main()
