from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

from .agent import Agent, Sighting
from .config import ArchetypeConfig, ManagerConfig, SpawnPointConfig
from .messages import Message
from .pool import AgentPool
from .scene import Scene
from .state_machine import StateKind, StateName
from ..systems import coordination
from ..systems.archetypes import build_agent
from ..utils.math2d import distance_between

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AgentView:
    slot: int
    id: int
    archetype: str
    team_id: int
    x: float
    y: float
    state: str
    alive: bool
    sighting: Optional[Sighting]


class WorldView:
    """Read-only picture of the population taken at the start of a tick.

    Cross-agent queries read this instead of live peers, so what an agent sees of
    its neighbors does not depend on where it falls in the update order.
    """

    def __init__(self, agents: List[AgentView]):
        self.agents = agents
        self._by_id = {view.id: view for view in agents}

    @classmethod
    def build(cls, arena: "AgentArena") -> "WorldView":
        views = [
            AgentView(
                slot=agent.slot,
                id=agent.id,
                archetype=agent.archetype,
                team_id=agent.team_id,
                x=agent.x,
                y=agent.y,
                state=agent.current_state_name,
                alive=agent.alive,
                sighting=agent.memory.get("last_player_position"),
            )
            for agent in arena
            if agent.alive
        ]
        return cls(views)

    def get(self, agent_id: int) -> Optional[AgentView]:
        return self._by_id.get(agent_id)

    def agents_in_range(self, x: float, y: float, radius: float) -> List[AgentView]:
        return [view for view in self.agents if distance_between(x, y, view.x, view.y) <= radius]

    def pack_mates_in_range(self, agent: Agent, radius: float) -> List[AgentView]:
        return [
            view
            for view in self.agents
            if view.id != agent.id
            and view.archetype == agent.archetype
            and distance_between(agent.x, agent.y, view.x, view.y) < radius
        ]

    def teammates_in_range(self, agent: Agent, radius: float) -> List[AgentView]:
        if agent.team_id < 0:
            return []
        return [
            view
            for view in self.agents
            if view.id != agent.id
            and view.team_id == agent.team_id
            and distance_between(agent.x, agent.y, view.x, view.y) < radius
        ]

    def participants(self, state: StateName) -> List[AgentView]:
        key = state.value if isinstance(state, StateKind) else str(state)
        return [view for view in self.agents if view.state == key]

    def __len__(self) -> int:
        return len(self.agents)


class AgentArena:
    """Slot storage for live agents; iteration is ascending slot order and freed
    slots are reused lowest-first."""

    def __init__(self) -> None:
        self._slots: List[Optional[Agent]] = []
        self._free: List[int] = []
        self._count = 0

    def insert(self, agent: Agent) -> int:
        if self._free:
            slot = heapq.heappop(self._free)
            self._slots[slot] = agent
        else:
            slot = len(self._slots)
            self._slots.append(agent)
        agent.slot = slot
        self._count += 1
        return slot

    def remove(self, agent: Agent) -> bool:
        slot = agent.slot
        if slot < 0 or slot >= len(self._slots) or self._slots[slot] is not agent:
            return False
        self._slots[slot] = None
        heapq.heappush(self._free, slot)
        agent.slot = -1
        self._count -= 1
        return True

    def get(self, slot: int) -> Optional[Agent]:
        if 0 <= slot < len(self._slots):
            return self._slots[slot]
        return None

    def find(self, agent_id: int) -> Optional[Agent]:
        for agent in self:
            if agent.id == agent_id:
                return agent
        return None

    def __iter__(self) -> Iterator[Agent]:
        for agent in list(self._slots):
            if agent is not None:
                yield agent

    def __len__(self) -> int:
        return self._count

    def clear(self) -> None:
        self._slots.clear()
        self._free.clear()
        self._count = 0


class AgentManager:
    def __init__(self, scene: Scene, config: Optional[ManagerConfig] = None):
        self.scene = scene
        self.config = config if config is not None else ManagerConfig()
        self.arena = AgentArena()
        self.view = WorldView([])
        self.archetypes: Dict[str, ArchetypeConfig] = {}
        self.pools: Dict[str, AgentPool] = {}
        self.spawn_points: List[SpawnPointConfig] = []
        self.max_agents = self.config.max_agents
        self.spawn_cooldown = self.config.spawn_cooldown
        # First auto-spawn is allowed immediately.
        self.spawn_timer = self.spawn_cooldown
        self.active = True
        self._outbox: List[Message] = []
        self._next_id = 0
        self.spawned = 0
        self.despawned = 0
        self.delivered = 0

    def register_archetype(self, name: str, config: ArchetypeConfig, pool_size: Optional[int] = None) -> None:
        self.archetypes[name] = config
        size = config.pool_size if pool_size is None else pool_size
        self.pools[name] = AgentPool(lambda: build_agent(name, config, self.scene, manager=self), size)

    def add_spawn_point(self, x: float, y: float, archetype: str = "basic") -> None:
        self.spawn_points.append(SpawnPointConfig(x, y, archetype))

    @property
    def agents(self) -> List[Agent]:
        return list(self.arena)

    def active_count(self) -> int:
        return len(self.arena)

    def spawn_agent(self, x: float, y: float, archetype: str = "basic") -> Optional[Agent]:
        if len(self.arena) >= self.max_agents:
            return None
        pool = self.pools.get(archetype)
        if pool is None:
            logger.warning("Archetype %r is not registered", archetype)
            return None
        agent = pool.acquire(x, y)
        if agent is None:
            return None
        agent.id = self._next_id
        self._next_id += 1
        config = self.archetypes[archetype]
        agent.team_id = self.scene.rng.next_int(config.team_count) if config.team else -1
        agent.manager = self
        self.arena.insert(agent)
        self.spawned += 1
        logger.debug("spawned %s agent %s at (%.1f, %.1f)", archetype, agent.id, x, y)
        return agent

    def remove_agent(self, agent: Agent) -> bool:
        if not self.arena.remove(agent):
            return False
        pool = self.pools.get(agent.archetype)
        if pool is not None:
            pool.release(agent)
        else:
            agent.cleanup()
        self.despawned += 1
        logger.debug("despawned agent %s", agent.id)
        return True

    def post(self, message: Message) -> None:
        self._outbox.append(message)

    def update(self, dt: float) -> None:
        if not self.active:
            return
        self._update_spawner(dt)
        self.view = WorldView.build(self.arena)
        for agent in self.arena:
            agent.update(dt)
            coordination.coordinate(self, agent)
        self._dispatch()
        for agent in self.arena:
            if not agent.alive or agent.should_destroy:
                self.remove_agent(agent)

    def _dispatch(self) -> None:
        # Messages posted while delivering go out on the next tick.
        outbox, self._outbox = self._outbox, []
        for message in outbox:
            receiver = self.arena.find(message.receiver_id)
            if receiver is None or not receiver.alive:
                logger.warning("Dropping %s message for missing agent %s", message.kind.value, message.receiver_id)
                continue
            receiver.receive(message)
            self.delivered += 1

    def _update_spawner(self, dt: float) -> None:
        self.spawn_timer += dt
        if self.spawn_timer < self.spawn_cooldown:
            return
        if len(self.arena) >= self.max_agents or not self.spawn_points:
            return
        player = self.scene.live_player()
        if player is None:
            return
        candidates = [
            point
            for point in self.spawn_points
            if distance_between(point.x, point.y, player.x, player.y) > self.config.min_spawn_distance
        ]
        if not candidates:
            return
        self.spawn_timer = 0.0
        point = self.scene.rng.sample_choice(candidates)
        self.spawn_agent(point.x, point.y, point.archetype)

    def get_agent(self, agent_id: int) -> Optional[Agent]:
        return self.arena.find(agent_id)

    def nearest_agent(self, x: float, y: float) -> Optional[Agent]:
        nearest: Optional[Agent] = None
        best = float("inf")
        for agent in self.arena:
            if not agent.alive:
                continue
            distance = distance_between(x, y, agent.x, agent.y)
            if distance < best:
                best = distance
                nearest = agent
        return nearest

    def agents_in_range(self, x: float, y: float, radius: float) -> List[Agent]:
        return [
            agent
            for agent in self.arena
            if agent.alive and distance_between(x, y, agent.x, agent.y) <= radius
        ]

    def clear(self) -> None:
        for agent in list(self.arena):
            self.remove_agent(agent)
        self.arena.clear()
        self._outbox.clear()
        self.view = WorldView([])
        self.spawn_timer = self.spawn_cooldown

    def set_active(self, active: bool) -> None:
        self.active = active

    def set_max_agents(self, count: int) -> None:
        self.max_agents = count

    def set_spawn_cooldown(self, cooldown: float) -> None:
        self.spawn_cooldown = cooldown

    def debug_info(self) -> List[Dict[str, object]]:
        return [agent.debug_info() for agent in self.arena]
