from __future__ import annotations

from typing import Optional

from pygame.math import Vector2

from prowler.sim.core.config import ArchetypeConfig, default_archetypes
from prowler.sim.core.manager import AgentManager
from prowler.sim.core.rng import DeterministicRng
from prowler.sim.core.scene import EffectLog, Player, Scene
from prowler.sim.systems.archetypes import build_agent


def make_scene(player_at: Optional[tuple[float, float]] = None, seed: int = 1) -> Scene:
    player = Player(position=Vector2(player_at)) if player_at is not None else None
    return Scene(player=player, effects=EffectLog(), rng=DeterministicRng(seed))


def make_agent(scene: Scene, archetype: str = "basic", x: float = 0.0, y: float = 0.0, config: Optional[ArchetypeConfig] = None):
    if config is None:
        config = default_archetypes()[archetype]
    return build_agent(archetype, config, scene, agent_id=1, x=x, y=y)


def make_manager(scene: Scene, *archetypes: str, **overrides: ArchetypeConfig) -> AgentManager:
    manager = AgentManager(scene)
    presets = default_archetypes()
    for name in archetypes:
        manager.register_archetype(name, presets[name])
    for name, config in overrides.items():
        manager.register_archetype(name, config)
    return manager
