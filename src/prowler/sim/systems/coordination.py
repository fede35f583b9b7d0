from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Tuple

from pygame.math import Vector2

from ..core.messages import Message, MessageKind
from ..core.state_machine import StateKind
from ..utils.math2d import TAU, _polar

if TYPE_CHECKING:
    from ..core.agent import Agent
    from ..core.config import BerserkConfig
    from ..core.manager import AgentManager, WorldView
    from ..core.scene import Player

PACK_TINT = 0xFF44FF
PACK_ALONE_TINT = 0xFFAAFF


def world_view(agent: Agent) -> Optional[WorldView]:
    if agent.manager is None:
        return None
    return agent.manager.view


def coordinate(manager: AgentManager, agent: Agent) -> None:
    """Run the archetype's cross-agent behaviors after the agent's own update."""
    if not agent.alive:
        return
    view = manager.view
    tuning = agent.tuning
    if tuning.pack:
        update_pack_bonus(agent, view)
        pack_regroup(agent, view)
    if tuning.team:
        share_sightings(agent, view)
    if tuning.adaptive:
        adapt_difficulty(agent, agent.scene.live_player())


def update_pack_bonus(agent: Agent, view: WorldView) -> float:
    tuning = agent.tuning
    pack_size = 1 + len(view.pack_mates_in_range(agent, tuning.pack_range))
    # Recomputed from the base stats every tick; never compounds.
    bonus = 1.0 + tuning.pack_bonus_step * (pack_size - 1)
    if bonus != agent.pack_bonus:
        agent.pack_bonus = bonus
        agent.scene.effects.tint(agent, PACK_TINT if pack_size > 1 else PACK_ALONE_TINT)
    return bonus


def pack_regroup(agent: Agent, view: WorldView) -> None:
    if not agent.state_machine.is_in_state(StateKind.PATROL):
        return
    tuning = agent.tuning
    mates = view.pack_mates_in_range(agent, tuning.regroup_radius)
    if not mates:
        return
    cx = sum(mate.x for mate in mates) / len(mates)
    cy = sum(mate.y for mate in mates) / len(mates)
    if agent.distance_to(cx, cy) > tuning.pack_range:
        agent.move_toward(cx, cy, agent.speed * tuning.regroup_speed_factor)


def share_sightings(agent: Agent, view: WorldView) -> int:
    mine = agent.memory.get("last_player_position")
    if mine is None or agent.team_id < 0:
        return 0
    shared = 0
    for mate in view.teammates_in_range(agent, agent.tuning.comm_range):
        if mate.sighting is None or mine.time > mate.sighting.time:
            agent.post(Message(MessageKind.SHARE_SIGHTING, agent.id, mate.id, mine))
            shared += 1
    return shared


def broadcast_alert(agent: Agent, radius: float) -> int:
    view = world_view(agent)
    if view is None:
        return 0
    sent = 0
    for other in view.agents_in_range(agent.x, agent.y, radius):
        if other.id == agent.id:
            continue
        agent.post(Message(MessageKind.ALERT, agent.id, other.id, (agent.x, agent.y)))
        sent += 1
    return sent


def broadcast_inspire(agent: Agent, config: BerserkConfig) -> int:
    view = world_view(agent)
    if view is None:
        return 0
    payload = {
        "speed": config.inspire_speed,
        "damage": config.inspire_damage,
        "duration": config.inspire_duration,
    }
    sent = 0
    for other in view.pack_mates_in_range(agent, config.inspire_radius):
        agent.post(Message(MessageKind.INSPIRE, agent.id, other.id, payload))
        sent += 1
    return sent


def adapt_difficulty(agent: Agent, player: Optional[Player]) -> None:
    if player is None or player.max_health <= 0:
        return
    fraction = player.health / player.max_health
    if fraction < 0.3:
        agent.base_damage = max(3.0, agent.base_damage - 0.1)
        agent.base_speed = max(30.0, agent.base_speed - 0.5)
    elif fraction > 0.8:
        agent.base_damage = min(10.0, agent.base_damage + 0.05)
        agent.base_speed = min(80.0, agent.base_speed + 0.2)


def surround_rank(agent: Agent) -> Tuple[int, int]:
    view = world_view(agent)
    if view is None:
        return 0, 1
    slots = {participant.slot for participant in view.participants(StateKind.SURROUND)}
    slots.add(agent.slot)
    ordered = sorted(slots)
    return ordered.index(agent.slot), len(ordered)


def surround_point(px: float, py: float, rank: int, total: int, radius: float) -> Tuple[float, Vector2]:
    angle = (rank / total) * TAU if total > 0 else 0.0
    return angle, Vector2(px, py) + _polar(angle, radius)
