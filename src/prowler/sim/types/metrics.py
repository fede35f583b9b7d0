from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict


@dataclass(slots=True)
class TickMetrics:
    tick: int
    population: int
    spawns: int
    despawns: int
    states: Dict[str, int] = field(default_factory=dict)
    player_health: float = 0.0
    player_hits: int = 0
    messages: int = 0
    tick_duration_ms: float = 0.0
