from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from pygame.math import Vector2

from .rng import DeterministicRng

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Player:
    position: Vector2
    velocity: Vector2 = field(default_factory=Vector2)
    health: float = 100.0
    max_health: float = 100.0
    alive: bool = True
    damage_taken: float = 0.0
    hits: int = 0

    @property
    def x(self) -> float:
        return self.position.x

    @property
    def y(self) -> float:
        return self.position.y

    def set_velocity(self, vx: float, vy: float) -> None:
        self.velocity.update(vx, vy)

    def take_damage(self, amount: float) -> None:
        if not self.alive:
            return
        self.health = max(0.0, self.health - amount)
        self.damage_taken += amount
        self.hits += 1
        if self.health <= 0.0:
            self.alive = False


class SimClock:
    """Monotonic millisecond clock advanced by the host loop."""

    def __init__(self, start: float = 0.0):
        self._start = start
        self._now = start

    def now(self) -> float:
        return self._now

    def advance(self, dt: float) -> None:
        self._now += dt

    def reset(self) -> None:
        self._now = self._start


class FeedbackHooks:
    """Fire-and-forget visual/audio hooks. The base implementation does nothing."""

    def tint(self, agent: Any, color: int) -> None:
        pass

    def clear_tint(self, agent: Any) -> None:
        pass

    def flash(self, agent: Any, color: int, duration: float) -> None:
        pass

    def shake(self, duration: float, intensity: float) -> None:
        pass

    def burst(self, x: float, y: float, radius: float, kind: str) -> None:
        pass

    def set_identity(self, agent: Any, identity: str) -> None:
        pass

    def float_text(self, x: float, y: float, text: str) -> None:
        pass

    def play_animation(self, agent: Any, name: str, on_complete: Callable[[], None]) -> bool:
        # Returning False tells the caller no animation ran and on_complete will not fire.
        return False


class EffectLog(FeedbackHooks):
    """Records every hook call so hosts (and tests) can inspect what the AI requested."""

    def __init__(self) -> None:
        self.events: List[Dict[str, Any]] = []

    def _record(self, kind: str, **data: Any) -> None:
        data["kind"] = kind
        self.events.append(data)

    def tint(self, agent: Any, color: int) -> None:
        self._record("tint", agent=agent.id, color=color)

    def clear_tint(self, agent: Any) -> None:
        self._record("clear_tint", agent=agent.id)

    def flash(self, agent: Any, color: int, duration: float) -> None:
        self._record("flash", agent=agent.id, color=color, duration=duration)

    def shake(self, duration: float, intensity: float) -> None:
        self._record("shake", duration=duration, intensity=intensity)

    def burst(self, x: float, y: float, radius: float, kind: str) -> None:
        self._record("burst", x=x, y=y, radius=radius, effect=kind)

    def set_identity(self, agent: Any, identity: str) -> None:
        self._record("identity", agent=agent.id, identity=identity)

    def float_text(self, x: float, y: float, text: str) -> None:
        self._record("text", x=x, y=y, text=text)

    def drain(self) -> List[Dict[str, Any]]:
        events = self.events
        self.events = []
        return events


@dataclass
class Scene:
    player: Optional[Player] = None
    clock: SimClock = field(default_factory=SimClock)
    effects: FeedbackHooks = field(default_factory=FeedbackHooks)
    rng: DeterministicRng = field(default_factory=lambda: DeterministicRng(0))

    def live_player(self) -> Optional[Player]:
        player = self.player
        if player is None or not player.alive:
            return None
        return player
