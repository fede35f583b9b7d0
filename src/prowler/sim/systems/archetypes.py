from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Dict, Optional

from ..core.agent import Agent
from ..core.config import ArchetypeConfig
from ..core.scene import Scene
from ..core.state_machine import State
from .behaviors import BerserkState, DisguiseState, FearState, ReflexState, RevealState
from .states import AlertState, AttackState, ChaseState, PatrolState, SurroundState

if TYPE_CHECKING:
    from ..core.manager import AgentManager

logger = logging.getLogger(__name__)

_BASE_STATES: tuple[Callable[[Agent], State], ...] = (PatrolState, ChaseState, AttackState)

_EXTRA_STATES: Dict[str, Callable[[Agent], State]] = {
    "alert": AlertState,
    "surround": SurroundState,
    "berserk": BerserkState,
    "fear": FearState,
    "disguise": DisguiseState,
    "reveal": RevealState,
}


def _needs_reflex(config: ArchetypeConfig) -> bool:
    extras = set(config.extra_states)
    return (
        "reveal" in extras
        or ("berserk" in extras and config.berserk_threshold is not None)
        or "fear" in extras
    )


def build_agent(
    name: str,
    config: ArchetypeConfig,
    scene: Scene,
    manager: Optional["AgentManager"] = None,
    agent_id: int = -1,
    x: float = 0.0,
    y: float = 0.0,
) -> Agent:
    """Assemble a single concrete Agent from archetype data."""
    agent = Agent(id=agent_id, archetype=name, scene=scene, tuning=config, manager=manager)
    machine = agent.state_machine
    for factory in _BASE_STATES:
        machine.add_state(factory(agent))
    for state_name in config.extra_states:
        factory = _EXTRA_STATES.get(state_name)
        if factory is None:
            logger.warning("Archetype %r lists unknown state %r", name, state_name)
            continue
        machine.add_state(factory(agent))
    if _needs_reflex(config):
        machine.set_global_state(ReflexState(agent))
    agent.reset(x, y)
    return agent
