from __future__ import annotations

import logging
import math
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Optional

from pygame.math import Vector2

from .config import ArchetypeConfig
from .messages import Message, MessageKind
from .scene import Scene
from .state_machine import StateKind, StateMachine
from ..systems.hearing import HearingSystem
from ..systems.vision import VisionSystem
from ..utils.math2d import _heading_from_velocity, _polar, _safe_normalize_xy, angle_between, distance_between

if TYPE_CHECKING:
    from .manager import AgentManager

logger = logging.getLogger(__name__)

SIGHTING_HISTORY = 10
ALERT_HISTORY = 20
DAMAGE_KNOCKBACK = 100.0
DROP_CHANCE = 0.3


@dataclass(frozen=True, slots=True)
class Sighting:
    x: float
    y: float
    time: float


@dataclass(slots=True)
class StatModifier:
    speed: float = 1.0
    damage: float = 1.0
    remaining: Optional[float] = None


def _fresh_memory() -> Dict[str, Any]:
    return {
        "last_player_position": None,
        "player_sightings": deque(maxlen=SIGHTING_HISTORY),
        "alert_events": deque(maxlen=ALERT_HISTORY),
        "last_heard_position": None,
    }


@dataclass(slots=True, eq=False)
class Agent:
    id: int
    archetype: str
    scene: Scene
    tuning: ArchetypeConfig = field(default_factory=ArchetypeConfig)
    position: Vector2 = field(default_factory=Vector2)
    velocity: Vector2 = field(default_factory=Vector2)
    slot: int = -1
    team_id: int = -1
    health: float = 0.0
    max_health: float = 0.0
    base_speed: float = 0.0
    base_damage: float = 0.0
    armor: float = 0.0
    pack_bonus: float = 1.0
    initial_state: str = StateKind.PATROL.value
    home: Vector2 = field(default_factory=Vector2)
    modifiers: Dict[str, StatModifier] = field(default_factory=dict)
    memory: Dict[str, Any] = field(default_factory=_fresh_memory)
    alive: bool = True
    should_destroy: bool = False
    revealed: bool = False
    manager: Optional["AgentManager"] = None
    state_machine: StateMachine = field(init=False)
    vision: VisionSystem = field(init=False)
    hearing: HearingSystem = field(init=False)

    def __post_init__(self) -> None:
        self.state_machine = StateMachine(self)
        self.vision = VisionSystem(self)
        self.hearing = HearingSystem(self, self.scene.clock)
        self._apply_tuning()

    def _apply_tuning(self) -> None:
        stats = self.tuning.stats
        self.max_health = stats.health
        self.health = stats.health
        self.base_speed = stats.speed
        self.base_damage = stats.contact_damage
        self.armor = stats.armor
        self.pack_bonus = 1.0
        self.initial_state = self.tuning.initial_state
        vision = self.tuning.vision
        self.vision.set_view_distance(vision.view_distance)
        self.vision.set_view_angle(vision.view_angle)
        self.vision.set_view_direction(vision.view_direction)
        self.hearing.set_hearing_range(self.tuning.hearing.hearing_range)

    @property
    def x(self) -> float:
        return self.position.x

    @property
    def y(self) -> float:
        return self.position.y

    @property
    def facing(self) -> float:
        return self.vision.view_direction

    @facing.setter
    def facing(self, direction: float) -> None:
        self.vision.set_view_direction(direction)

    @property
    def speed(self) -> float:
        value = self.base_speed * self.pack_bonus
        for modifier in self.modifiers.values():
            value *= modifier.speed
        return value

    @property
    def contact_damage(self) -> float:
        value = self.base_damage * self.pack_bonus
        for modifier in self.modifiers.values():
            value *= modifier.damage
        return value

    @property
    def health_fraction(self) -> float:
        if self.max_health <= 0:
            return 0.0
        return self.health / self.max_health

    @property
    def current_state_name(self) -> str:
        return self.state_machine.current_state_name

    def distance_to(self, x: float, y: float) -> float:
        return distance_between(self.position.x, self.position.y, x, y)

    def move_toward(self, x: float, y: float, speed: float) -> float:
        """Point the velocity at (x, y) with magnitude ``speed``; return the remaining distance."""
        dx = x - self.position.x
        dy = y - self.position.y
        direction = _safe_normalize_xy(dx, dy)
        self.velocity.update(direction.x * speed, direction.y * speed)
        return math.hypot(dx, dy)

    def stop(self) -> None:
        self.velocity.update(0.0, 0.0)

    def face(self, x: float, y: float) -> None:
        self.facing = angle_between(self.position.x, self.position.y, x, y)

    def add_modifier(self, name: str, modifier: StatModifier) -> None:
        self.modifiers[name] = modifier

    def remove_modifier(self, name: str) -> None:
        self.modifiers.pop(name, None)

    def _tick_modifiers(self, dt: float) -> None:
        expired = []
        for name, modifier in self.modifiers.items():
            if modifier.remaining is None:
                continue
            modifier.remaining -= dt
            if modifier.remaining <= 0:
                expired.append(name)
        for name in expired:
            del self.modifiers[name]
            if name == "inspire":
                self.scene.effects.clear_tint(self)

    def update(self, dt: float) -> None:
        if not self.alive:
            return
        self._tick_modifiers(dt)
        self.state_machine.update(dt)
        self._remember_player()
        if self.velocity.length_squared() > 1e-6:
            self.facing = _heading_from_velocity(self.velocity)

    def _remember_player(self) -> None:
        player = self.scene.live_player()
        if player is None or not self.vision.can_see(player):
            return
        sighting = Sighting(player.x, player.y, self.scene.clock.now())
        self.memory["last_player_position"] = sighting
        self.memory["player_sightings"].append(sighting)

    def take_damage(self, amount: float) -> None:
        if not self.alive:
            return
        effects = self.scene.effects
        if self.armor > 0:
            amount = max(1.0, amount - self.armor)
            effects.float_text(self.x, self.y - 20, "ARMOR!")
        self.health -= amount
        effects.flash(self, 0xFF6666, 200)
        self.velocity = _polar(self.scene.rng.next_angle(), DAMAGE_KNOCKBACK)
        if self.health <= 0:
            self.die()
            return
        self.state_machine.handle_message(Message(MessageKind.DAMAGED, self.id, self.id, amount))

    def die(self) -> None:
        if not self.alive:
            return
        self.alive = False
        self.should_destroy = True
        self.stop()
        effects = self.scene.effects
        effects.tint(self, 0x666666)
        if self.scene.rng.next_float() < DROP_CHANCE:
            effects.burst(self.x, self.y, 10.0, "coin")
        logger.debug("agent %s (%s) died", self.id, self.archetype)

    def post(self, message: Message) -> None:
        if self.manager is not None:
            self.manager.post(message)

    def receive(self, message: Message) -> bool:
        kind = message.kind
        if kind is MessageKind.SHARE_SIGHTING:
            shared: Sighting = message.payload
            mine: Optional[Sighting] = self.memory.get("last_player_position")
            if mine is not None and shared.time <= mine.time:
                return False
            self.memory["last_player_position"] = shared
            return self.state_machine.handle_message(message)
        if kind is MessageKind.INSPIRE:
            if not (
                self.state_machine.is_in_state(StateKind.PATROL) or self.state_machine.is_in_state(StateKind.CHASE)
            ):
                return False
            payload = message.payload or {}
            speed = payload.get("speed", 1.2)
            damage = payload.get("damage", 1.1)
            duration = payload.get("duration", 3000.0)
            current = self.modifiers.get("inspire")
            if current is not None:
                # Roars stack multiplicatively and share one expiry.
                speed *= current.speed
                damage *= current.damage
                duration = max(duration, current.remaining or 0.0)
            self.add_modifier("inspire", StatModifier(speed=speed, damage=damage, remaining=duration))
            self.scene.effects.tint(self, 0xFFFF00)
            return True
        if kind is MessageKind.ALERT:
            self.memory["alert_events"].append(
                {"from": message.sender_id, "time": self.scene.clock.now(), "position": message.payload}
            )
        return self.state_machine.handle_message(message)

    def raise_alert(self) -> None:
        self.state_machine.change_state(StateKind.ALERT)

    def reset(self, x: float, y: float) -> None:
        self.position.update(x, y)
        self.home = Vector2(x, y)
        self.stop()
        self._apply_tuning()
        self.alive = True
        self.should_destroy = False
        self.revealed = False
        self.memory = _fresh_memory()
        self.modifiers.clear()
        self.hearing.clear_sounds()
        self.scene.effects.clear_tint(self)
        self.state_machine.reset()
        self.state_machine.change_state(self.initial_state)

    def cleanup(self) -> None:
        self.alive = False
        self.stop()
        self.modifiers.clear()
        self.hearing.clear_sounds()
        self.memory = _fresh_memory()
        self.state_machine.reset()

    def debug_info(self) -> Dict[str, Any]:
        last_seen: Optional[Sighting] = self.memory.get("last_player_position")
        return {
            "id": self.id,
            "slot": self.slot,
            "archetype": self.archetype,
            "state": self.current_state_name,
            "health": f"{self.health:g}/{self.max_health:g}",
            "position": [round(self.x, 1), round(self.y, 1)],
            "facing": self.facing,
            "speed": self.speed,
            "contact_damage": self.contact_damage,
            "pack_bonus": self.pack_bonus,
            "team": self.team_id,
            "modifiers": sorted(self.modifiers),
            "revealed": self.revealed,
            "last_seen": None if last_seen is None else [last_seen.x, last_seen.y, last_seen.time],
            "sounds": len(self.hearing.sound_events),
        }
