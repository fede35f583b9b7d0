from __future__ import annotations

import math
from dataclasses import dataclass, field, fields, is_dataclass, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


@dataclass
class AgentStatsConfig:
    health: float = 30.0
    speed: float = 50.0
    contact_damage: float = 5.0
    armor: float = 0.0


@dataclass
class VisionConfig:
    view_distance: float = 200.0
    view_angle: float = math.pi / 3
    view_direction: float = 0.0


@dataclass
class HearingConfig:
    hearing_range: float = 150.0


@dataclass
class PatrolConfig:
    wait_time: float = 2000.0
    arrive_radius: float = 10.0
    speed_factor: float = 1.0
    span: float = 100.0
    # Offsets relative to the spawn point; empty means a two-point line of ``span``.
    waypoints: List[tuple[float, float]] = field(default_factory=list)


@dataclass
class ChaseConfig:
    speed_factor: float = 1.6
    attack_distance: float = 60.0
    lose_target_time: float = 3000.0
    arrive_radius: float = 10.0
    surround_min_allies: int = 0
    surround_engage_distance: float = 200.0
    surround_ally_radius: float = 200.0


@dataclass
class AttackConfig:
    cooldown: float = 1000.0
    range: float = 60.0
    windup: float = 200.0
    knockback: float = 200.0
    disengage_factor: float = 1.5


@dataclass
class AlertConfig:
    duration: float = 5000.0
    broadcast_radius: float = 200.0
    search_radius: float = 150.0
    retarget_chance: float = 0.02
    min_speed_factor: float = 1.0
    max_speed_factor: float = 2.0


@dataclass
class SurroundConfig:
    radius: float = 100.0
    speed_factor: float = 1.2
    arrive_radius: float = 20.0


@dataclass
class BerserkConfig:
    duration: float = 8000.0
    speed_multiplier: float = 1.5
    damage_multiplier: float = 1.3
    inspire_radius: float = 150.0
    inspire_duration: float = 3000.0
    inspire_speed: float = 1.2
    inspire_damage: float = 1.1
    roar_chance: float = 0.05
    debris_chance: float = 0.02


@dataclass
class FearConfig:
    duration: float = 5000.0
    speed_factor: float = 80.0 / 70.0
    jitter: float = math.pi * 0.5
    reevaluate_interval: float = 500.0
    close_range: float = 100.0
    recovery_rate: float = 0.5


@dataclass
class DisguiseConfig:
    trigger_distance: float = 50.0
    burst_radius: float = 60.0
    identity: str = "revealed"


@dataclass
class ArchetypeConfig:
    stats: AgentStatsConfig = field(default_factory=AgentStatsConfig)
    vision: VisionConfig = field(default_factory=VisionConfig)
    hearing: HearingConfig = field(default_factory=HearingConfig)
    initial_state: str = "patrol"
    extra_states: List[str] = field(default_factory=list)
    patrol: PatrolConfig = field(default_factory=PatrolConfig)
    chase: ChaseConfig = field(default_factory=ChaseConfig)
    attack: AttackConfig = field(default_factory=AttackConfig)
    alert: AlertConfig = field(default_factory=AlertConfig)
    surround: SurroundConfig = field(default_factory=SurroundConfig)
    berserk: BerserkConfig = field(default_factory=BerserkConfig)
    fear: FearConfig = field(default_factory=FearConfig)
    disguise: DisguiseConfig = field(default_factory=DisguiseConfig)
    pack: bool = False
    pack_range: float = 100.0
    pack_bonus_step: float = 0.15
    regroup_radius: float = 200.0
    regroup_speed_factor: float = 0.5
    team: bool = False
    team_count: int = 3
    comm_range: float = 150.0
    adaptive: bool = False
    berserk_threshold: Optional[float] = None
    fear_distance: Optional[float] = None
    pool_size: int = 3


@dataclass
class SpawnPointConfig:
    x: float = 0.0
    y: float = 0.0
    archetype: str = "basic"


@dataclass
class PlayerConfig:
    start: tuple[float, float] = (400.0, 400.0)
    speed: float = 90.0
    health: float = 100.0
    waypoints: List[tuple[float, float]] = field(
        default_factory=lambda: [(150.0, 150.0), (650.0, 150.0), (650.0, 650.0), (150.0, 650.0)]
    )
    footstep_interval: float = 400.0
    footstep_volume: float = 1.0
    attack_range: float = 50.0
    attack_damage: float = 10.0
    attack_cooldown: float = 600.0
    respawn_time: float = 3000.0


@dataclass
class ManagerConfig:
    max_agents: int = 8
    spawn_cooldown: float = 5000.0
    min_spawn_distance: float = 300.0


def _team_ai(
    stats: AgentStatsConfig,
    vision: Optional[VisionConfig] = None,
    hearing: Optional[HearingConfig] = None,
    patrol: Optional[PatrolConfig] = None,
    lose_target_time: float = 3000.0,
) -> ArchetypeConfig:
    return ArchetypeConfig(
        stats=stats,
        vision=vision or VisionConfig(),
        hearing=hearing or HearingConfig(),
        patrol=patrol or PatrolConfig(),
        extra_states=["alert", "surround"],
        chase=ChaseConfig(lose_target_time=lose_target_time, surround_min_allies=2),
        team=True,
        adaptive=True,
    )


def default_archetypes() -> Dict[str, ArchetypeConfig]:
    return {
        "basic": ArchetypeConfig(),
        "patrol": ArchetypeConfig(
            stats=AgentStatsConfig(health=20, speed=40, contact_damage=3),
            vision=VisionConfig(view_distance=150),
            patrol=PatrolConfig(span=80),
            chase=ChaseConfig(speed_factor=1.2),
            attack=AttackConfig(cooldown=1500),
        ),
        "chaser": ArchetypeConfig(
            stats=AgentStatsConfig(health=15, speed=80, contact_damage=4),
            vision=VisionConfig(view_distance=200, view_angle=math.pi / 2),
            patrol=PatrolConfig(
                wait_time=1000,
                speed_factor=0.6,
                waypoints=[(-120.0, 0.0), (120.0, 0.0), (0.0, -60.0), (0.0, 60.0)],
            ),
            chase=ChaseConfig(speed_factor=1.0, attack_distance=50, lose_target_time=5000),
            attack=AttackConfig(cooldown=800, range=50),
        ),
        "guard": ArchetypeConfig(
            stats=AgentStatsConfig(health=50, speed=30, contact_damage=15, armor=5),
            vision=VisionConfig(view_distance=120),
            patrol=PatrolConfig(wait_time=3000, span=50),
            chase=ChaseConfig(speed_factor=1.5, attack_distance=70, lose_target_time=2000),
            attack=AttackConfig(cooldown=1200, range=70),
        ),
        "berserker": ArchetypeConfig(
            stats=AgentStatsConfig(health=40, speed=50, contact_damage=8),
            extra_states=["berserk"],
            berserk_threshold=0.5,
        ),
        "coward": ArchetypeConfig(
            stats=AgentStatsConfig(health=15, speed=70, contact_damage=3),
            vision=VisionConfig(view_distance=150, view_angle=math.pi),
            extra_states=["fear"],
            fear_distance=120.0,
        ),
        "pack": ArchetypeConfig(
            stats=AgentStatsConfig(health=25, speed=55, contact_damage=5),
            pack=True,
            pool_size=6,
        ),
        "trap": ArchetypeConfig(
            stats=AgentStatsConfig(health=30, speed=45, contact_damage=12),
            initial_state="disguise",
            extra_states=["disguise", "reveal"],
        ),
        "smart": _team_ai(
            AgentStatsConfig(health=35, speed=55, contact_damage=6),
            vision=VisionConfig(view_distance=180, view_angle=math.pi / 2),
            hearing=HearingConfig(hearing_range=200),
        ),
        # Team variants share the smart state set and differ in stats and senses.
        "aggressive": _team_ai(
            AgentStatsConfig(health=35, speed=70, contact_damage=8),
            vision=VisionConfig(view_distance=220),
            lose_target_time=6000,
        ),
        "defensive": _team_ai(
            AgentStatsConfig(health=50, speed=55, contact_damage=6),
            vision=VisionConfig(view_distance=150),
            patrol=PatrolConfig(wait_time=3000),
        ),
        "scout": _team_ai(
            AgentStatsConfig(health=20, speed=80, contact_damage=6),
            vision=VisionConfig(view_distance=250, view_angle=math.pi),
        ),
    }


@dataclass
class SimulationConfig:
    time_step: float = 16.0
    seed: int = 42
    world_size: float = 800.0
    config_version: str = "v1"
    player: PlayerConfig = field(default_factory=PlayerConfig)
    manager: ManagerConfig = field(default_factory=ManagerConfig)
    archetypes: Dict[str, ArchetypeConfig] = field(default_factory=default_archetypes)
    spawn_points: List[SpawnPointConfig] = field(
        default_factory=lambda: [
            SpawnPointConfig(100.0, 100.0, "patrol"),
            SpawnPointConfig(700.0, 100.0, "chaser"),
            SpawnPointConfig(700.0, 700.0, "pack"),
            SpawnPointConfig(100.0, 700.0, "smart"),
        ]
    )
    initial_spawns: List[SpawnPointConfig] = field(default_factory=list)

    @staticmethod
    def from_yaml(path: Path) -> "SimulationConfig":
        data = yaml.safe_load(Path(path).read_text())
        return load_config(data or {})


_POINT_FIELDS = {"start", "waypoints"}


def _pair(value: Any) -> tuple[float, float]:
    if isinstance(value, (tuple, list)) and len(value) == 2:
        return (float(value[0]), float(value[1]))
    raise TypeError(f"expected an [x, y] pair, got {value!r}")


def _merge(base: Any, raw: Dict[str, Any]) -> Any:
    """Return a copy of dataclass ``base`` with ``raw`` applied, recursing into nested sections."""
    known = {f.name for f in fields(base)}
    unknown = set(raw) - known
    if unknown:
        raise TypeError(f"unknown {type(base).__name__} keys: {sorted(unknown)}")
    values: Dict[str, Any] = {}
    for key, value in raw.items():
        current = getattr(base, key)
        if is_dataclass(current) and isinstance(value, dict):
            values[key] = _merge(current, value)
        elif key == "start":
            values[key] = _pair(value)
        elif key in _POINT_FIELDS:
            values[key] = [_pair(point) for point in value]
        else:
            values[key] = value
    return replace(base, **values)


def load_config(raw: dict) -> SimulationConfig:
    archetypes = default_archetypes()
    for name, entry in (raw.get("archetypes") or {}).items():
        entry = dict(entry or {})
        base_name = entry.pop("base", name)
        base = archetypes.get(base_name, ArchetypeConfig())
        archetypes[name] = _merge(base, entry)

    spawn_points = [SpawnPointConfig(**point) for point in raw.get("spawn_points", [])]
    initial_spawns = [SpawnPointConfig(**point) for point in raw.get("initial_spawns", [])]
    defaults = SimulationConfig()
    sim_values = {
        k: v
        for k, v in raw.items()
        if k not in {"player", "manager", "archetypes", "spawn_points", "initial_spawns"}
    }
    return SimulationConfig(
        player=_merge(defaults.player, raw.get("player") or {}),
        manager=_merge(defaults.manager, raw.get("manager") or {}),
        archetypes=archetypes,
        spawn_points=spawn_points if "spawn_points" in raw else defaults.spawn_points,
        initial_spawns=initial_spawns,
        **sim_values,
    )
