from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .metrics import TickMetrics


@dataclass(slots=True)
class Snapshot:
    tick: int
    metrics: TickMetrics
    agents: List[Dict[str, Any]]
    player: Optional["SnapshotPlayer"]
    world: "SnapshotWorld"
    metadata: "SnapshotMetadata"
    effects: List[Dict[str, Any]]


@dataclass(slots=True)
class SnapshotPlayer:
    x: float
    y: float
    health: float
    max_health: float
    alive: bool


@dataclass(slots=True)
class SnapshotWorld:
    size: float


@dataclass(slots=True)
class SnapshotMetadata:
    world_size: float
    sim_dt: float
    tick_rate: float
    seed: int
    config_version: str
