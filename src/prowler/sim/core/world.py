from __future__ import annotations

import logging
from time import perf_counter
from typing import Any, Dict, List, Optional

from pygame.math import Vector2

from .agent import Agent
from .config import SimulationConfig
from .manager import AgentManager
from .rng import DeterministicRng
from .scene import EffectLog, Player, Scene, SimClock
from ..types.metrics import TickMetrics
from ..types.snapshot import Snapshot, SnapshotMetadata, SnapshotPlayer, SnapshotWorld
from ..utils.math2d import _clamp_value, _safe_normalize_xy, distance_between

logger = logging.getLogger(__name__)

_WAYPOINT_RADIUS = 10.0
_KNOCKBACK_DRAG = 0.85


class World:
    """Headless host for the AI: owns the scene, the scripted player and the physics sink.

    The AI only ever computes velocities. Each tick the world advances the clock,
    drives the player, lets the manager run every agent, then integrates positions.
    """

    def __init__(self, config: SimulationConfig):
        self._config = config
        self._rng = DeterministicRng(config.seed)
        self._effects = EffectLog()
        self._clock = SimClock()
        self._scene = Scene(player=None, clock=self._clock, effects=self._effects, rng=self._rng)
        self._manager = self._build_manager()
        self._metrics: TickMetrics | None = None
        self._recent_effects: List[Dict[str, Any]] = []
        self._waypoint_index = 0
        self._footstep_timer = 0.0
        self._attack_timer = 0.0
        self._respawn_timer = 0.0
        self._bootstrap()

    @property
    def config(self) -> SimulationConfig:
        return self._config

    @property
    def scene(self) -> Scene:
        return self._scene

    @property
    def manager(self) -> AgentManager:
        return self._manager

    @property
    def agents(self) -> List[Agent]:
        return self._manager.agents

    @property
    def player(self) -> Optional[Player]:
        return self._scene.player

    @property
    def metrics(self) -> TickMetrics | None:
        return self._metrics

    def _build_manager(self) -> AgentManager:
        manager = AgentManager(self._scene, self._config.manager)
        for name, archetype in self._config.archetypes.items():
            manager.register_archetype(name, archetype)
        for point in self._config.spawn_points:
            manager.add_spawn_point(point.x, point.y, point.archetype)
        return manager

    def _bootstrap(self) -> None:
        self._scene.player = self._new_player()
        for point in self._config.initial_spawns:
            self._manager.spawn_agent(point.x, point.y, point.archetype)
        self._effects.drain()

    def _new_player(self) -> Player:
        settings = self._config.player
        return Player(
            position=Vector2(settings.start),
            health=settings.health,
            max_health=settings.health,
        )

    def reset(self) -> None:
        self._rng.reset()
        self._clock.reset()
        self._effects.drain()
        self._manager = self._build_manager()
        self._metrics = None
        self._recent_effects = []
        self._waypoint_index = 0
        self._footstep_timer = 0.0
        self._attack_timer = 0.0
        self._respawn_timer = 0.0
        self._bootstrap()
        logger.info("world reset (seed=%s)", self._config.seed)

    def step(self, tick: int) -> TickMetrics:
        start = perf_counter()
        dt = self._config.time_step
        manager = self._manager
        spawned = manager.spawned
        despawned = manager.despawned
        delivered = manager.delivered

        self._clock.advance(dt)
        self._update_player(dt)
        manager.update(dt)
        self._integrate(dt)
        self._recent_effects = self._effects.drain()

        duration_ms = (perf_counter() - start) * 1000.0
        self._metrics = self._collect_metrics(
            tick,
            manager.spawned - spawned,
            manager.despawned - despawned,
            manager.delivered - delivered,
            duration_ms,
        )
        return self._metrics

    def _update_player(self, dt: float) -> None:
        player = self._scene.player
        settings = self._config.player
        if player is None:
            return
        if not player.alive:
            self._respawn_timer += dt
            if self._respawn_timer >= settings.respawn_time:
                self._respawn_timer = 0.0
                self._scene.player = self._new_player()
                logger.debug("player respawned")
            return

        if player.velocity.length() > settings.speed * 1.05:
            # Still sliding from a hit.
            player.velocity *= _KNOCKBACK_DRAG
        elif settings.waypoints:
            target = settings.waypoints[self._waypoint_index % len(settings.waypoints)]
            if distance_between(player.x, player.y, target[0], target[1]) < _WAYPOINT_RADIUS:
                self._waypoint_index = (self._waypoint_index + 1) % len(settings.waypoints)
                target = settings.waypoints[self._waypoint_index]
            direction = _safe_normalize_xy(target[0] - player.x, target[1] - player.y)
            player.set_velocity(direction.x * settings.speed, direction.y * settings.speed)
        else:
            player.set_velocity(0.0, 0.0)

        self._footstep_timer += dt
        if self._footstep_timer >= settings.footstep_interval:
            self._footstep_timer = 0.0
            for agent in self._manager.arena:
                agent.hearing.add_sound_event(player.x, player.y, settings.footstep_volume, "footstep")

        self._attack_timer += dt
        if self._attack_timer >= settings.attack_cooldown:
            target_agent = self._manager.nearest_agent(player.x, player.y)
            if target_agent is not None and target_agent.distance_to(player.x, player.y) <= settings.attack_range:
                target_agent.take_damage(settings.attack_damage)
                self._attack_timer = 0.0

    def _integrate(self, dt: float) -> None:
        seconds = dt / 1000.0
        size = self._config.world_size
        for agent in self._manager.arena:
            position = agent.position
            position.update(
                _clamp_value(position.x + agent.velocity.x * seconds, 0.0, size),
                _clamp_value(position.y + agent.velocity.y * seconds, 0.0, size),
            )
        player = self._scene.player
        if player is not None and player.alive:
            player.position.update(
                _clamp_value(player.x + player.velocity.x * seconds, 0.0, size),
                _clamp_value(player.y + player.velocity.y * seconds, 0.0, size),
            )

    def _collect_metrics(
        self, tick: int, spawns: int, despawns: int, messages: int, duration_ms: float
    ) -> TickMetrics:
        states: Dict[str, int] = {}
        population = 0
        for agent in self._manager.arena:
            population += 1
            name = agent.current_state_name
            states[name] = states.get(name, 0) + 1
        player = self._scene.player
        return TickMetrics(
            tick=tick,
            population=population,
            spawns=spawns,
            despawns=despawns,
            states=states,
            player_health=player.health if player is not None else 0.0,
            player_hits=player.hits if player is not None else 0,
            messages=messages,
            tick_duration_ms=duration_ms,
        )

    def snapshot(self, tick: int) -> Snapshot:
        metrics = self._metrics or self._collect_metrics(tick, 0, 0, 0, 0.0)
        player = self._scene.player
        config = self._config
        return Snapshot(
            tick=tick,
            metrics=metrics,
            agents=[self._agent_snapshot(agent) for agent in self._manager.arena],
            player=None
            if player is None
            else SnapshotPlayer(
                x=player.x,
                y=player.y,
                health=player.health,
                max_health=player.max_health,
                alive=player.alive,
            ),
            world=SnapshotWorld(size=config.world_size),
            metadata=SnapshotMetadata(
                world_size=config.world_size,
                sim_dt=config.time_step,
                tick_rate=1000.0 / config.time_step,
                seed=config.seed,
                config_version=config.config_version,
            ),
            effects=list(self._recent_effects),
        )

    def _agent_snapshot(self, agent: Agent) -> Dict[str, Any]:
        return {
            "id": agent.id,
            "slot": agent.slot,
            "archetype": agent.archetype,
            "x": agent.x,
            "y": agent.y,
            "vx": agent.velocity.x,
            "vy": agent.velocity.y,
            "facing": agent.facing,
            "state": agent.current_state_name,
            "health": agent.health,
            "max_health": agent.max_health,
            "team": agent.team_id,
            "pack_bonus": agent.pack_bonus,
            "speed": agent.speed,
            "revealed": agent.revealed,
            "is_alive": agent.alive,
        }
