from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, Optional

from pygame.math import Vector2

from ..core.messages import Message, MessageKind
from ..core.state_machine import State, StateKind
from ..utils.math2d import _polar, angle_between, distance_between
from . import coordination

if TYPE_CHECKING:
    from ..core.agent import Agent
    from ..core.config import AlertConfig, AttackConfig, ChaseConfig, PatrolConfig, SurroundConfig

logger = logging.getLogger(__name__)

PATROL_TINT = 0xFFFFFF
CHASE_TINT = 0xFF6666
ATTACK_TINT = 0xFF0000
ALERT_TINT = 0xFFAA00
SURROUND_TINT = 0xFF4444


class PatrolState(State):
    name = StateKind.PATROL

    def __init__(self, owner: "Agent", config: Optional["PatrolConfig"] = None):
        super().__init__(owner)
        self.config = config if config is not None else owner.tuning.patrol
        self.patrol_points: List[Vector2] = []
        self.current_index = 0
        self.wait_timer = 0.0
        self.waiting = False

    def set_patrol_path(self, points: List[Vector2]) -> None:
        self.patrol_points = [Vector2(point) for point in points]
        self.current_index = 0

    def _build_default_path(self) -> List[Vector2]:
        home = self.owner.home
        if self.config.waypoints:
            return [Vector2(home.x + dx, home.y + dy) for dx, dy in self.config.waypoints]
        span = self.config.span
        return [Vector2(home.x - span, home.y), Vector2(home.x + span, home.y)]

    def enter(self) -> None:
        self.owner.scene.effects.tint(self.owner, PATROL_TINT)
        if not self.patrol_points:
            self.patrol_points = self._build_default_path()
        self._advance()

    def _advance(self) -> None:
        if self.patrol_points:
            self.current_index = (self.current_index + 1) % len(self.patrol_points)

    def update(self, dt: float) -> None:
        owner = self.owner
        player = self.player
        if player is not None and owner.vision.can_see(player):
            self.change_state(StateKind.CHASE)
            return

        sound = owner.hearing.get_latest_sound()
        if sound is not None and sound.category == "footstep":
            # Any footstep triggers a chase, however faint.
            owner.memory["last_heard_position"] = Vector2(sound.x, sound.y)
            self.change_state(StateKind.CHASE)
            return

        if self.waiting:
            self.wait_timer += dt
            if self.wait_timer >= self.config.wait_time:
                self.waiting = False
                self.wait_timer = 0.0
                self._advance()
            return
        self._move()

    def _move(self) -> None:
        if not self.patrol_points:
            return
        point = self.patrol_points[self.current_index]
        owner = self.owner
        if owner.distance_to(point.x, point.y) < self.config.arrive_radius:
            self.waiting = True
            owner.stop()
        else:
            owner.move_toward(point.x, point.y, owner.speed * self.config.speed_factor)

    def handle_message(self, message: Message) -> bool:
        if message.kind in (MessageKind.ALERT, MessageKind.SHARE_SIGHTING):
            if StateKind.ALERT.value in self.state_machine.states:
                self.change_state(StateKind.ALERT)
                return True
        return False

    def exit(self) -> None:
        self.owner.stop()
        self.waiting = False
        self.wait_timer = 0.0

    def reset(self) -> None:
        self.patrol_points = []
        self.current_index = 0
        self.waiting = False
        self.wait_timer = 0.0


class ChaseState(State):
    name = StateKind.CHASE

    def __init__(self, owner: "Agent", config: Optional["ChaseConfig"] = None):
        super().__init__(owner)
        self.config = config if config is not None else owner.tuning.chase
        self.lose_target_timer = 0.0
        self.last_known: Optional[Vector2] = None
        self._pressing = False

    def enter(self) -> None:
        owner = self.owner
        owner.scene.effects.tint(owner, CHASE_TINT)
        self.lose_target_timer = 0.0
        heard = owner.memory.get("last_heard_position")
        owner.memory["last_heard_position"] = None
        self.last_known = Vector2(heard) if heard is not None else None
        previous = self.state_machine.previous_state if self.state_machine is not None else None
        # Coming back from a strike, keep pressing instead of re-forming the ring.
        self._pressing = previous is not None and previous.key == StateKind.ATTACK.value

    def update(self, dt: float) -> None:
        owner = self.owner
        player = self.player
        if player is None:
            self.change_state(StateKind.PATROL)
            return

        config = self.config
        speed = owner.speed * config.speed_factor
        if owner.vision.can_see(player):
            self.lose_target_timer = 0.0
            self.last_known = Vector2(player.x, player.y)
            distance = owner.move_toward(player.x, player.y, speed)
            if distance < config.attack_distance:
                self.change_state(StateKind.ATTACK)
                return
            if self._should_surround(distance):
                self.change_state(StateKind.SURROUND)
            return

        self.lose_target_timer += dt
        if self.last_known is not None:
            if owner.distance_to(self.last_known.x, self.last_known.y) > config.arrive_radius:
                owner.move_toward(self.last_known.x, self.last_known.y, speed)
            else:
                self.last_known = None
                owner.stop()
        else:
            owner.stop()
        if self.lose_target_timer >= config.lose_target_time:
            self.change_state(StateKind.PATROL)

    def _should_surround(self, distance: float) -> bool:
        config = self.config
        if config.surround_min_allies <= 0 or self._pressing:
            return False
        if StateKind.SURROUND.value not in self.state_machine.states:
            return False
        if distance >= config.surround_engage_distance:
            return False
        view = coordination.world_view(self.owner)
        if view is None:
            return False
        allies = view.teammates_in_range(self.owner, config.surround_ally_radius)
        return len(allies) >= config.surround_min_allies

    def handle_message(self, message: Message) -> bool:
        if message.kind is MessageKind.SHARE_SIGHTING and message.payload is not None:
            self.last_known = Vector2(message.payload.x, message.payload.y)
            return True
        return False

    def exit(self) -> None:
        self.owner.stop()
        self.lose_target_timer = 0.0
        self.last_known = None

    def reset(self) -> None:
        self.lose_target_timer = 0.0
        self.last_known = None
        self._pressing = False


class AttackState(State):
    """Stand still, face the player and strike on a cooldown.

    A strike has a windup: either the host plays an "attack" animation and calls
    back, or a fixed ``windup`` delay elapses. Range is re-checked when the strike
    resolves, so a player who stepped away takes no damage.
    """

    name = StateKind.ATTACK

    def __init__(self, owner: "Agent", config: Optional["AttackConfig"] = None):
        super().__init__(owner)
        self.config = config if config is not None else owner.tuning.attack
        self.attack_timer = 0.0
        self.attacking = False
        self.windup_timer: Optional[float] = None
        self.strikes = 0

    def enter(self) -> None:
        self.owner.scene.effects.tint(self.owner, ATTACK_TINT)
        self.attack_timer = 0.0
        self.attacking = False
        self.windup_timer = None

    def update(self, dt: float) -> None:
        owner = self.owner
        player = self.player
        if player is None:
            self.change_state(StateKind.PATROL)
            return

        config = self.config
        if owner.distance_to(player.x, player.y) > config.range * config.disengage_factor:
            self.change_state(StateKind.CHASE)
            return

        owner.stop()
        owner.face(player.x, player.y)
        self.attack_timer += dt
        if self.attacking:
            if self.windup_timer is not None:
                self.windup_timer += dt
                if self.windup_timer >= config.windup:
                    self._resolve()
        elif self.attack_timer >= config.cooldown:
            self._begin_strike()

    def _begin_strike(self) -> None:
        self.attacking = True
        self.attack_timer = 0.0
        if self.owner.scene.effects.play_animation(self.owner, "attack", self._on_animation_complete):
            self.windup_timer = None
        else:
            self.windup_timer = 0.0

    def _on_animation_complete(self) -> None:
        if self.attacking:
            self._resolve()

    def _resolve(self) -> None:
        self.attacking = False
        self.windup_timer = None
        player = self.player
        owner = self.owner
        if player is None:
            return
        if owner.distance_to(player.x, player.y) > self.config.range:
            return
        player.take_damage(owner.contact_damage)
        knockback = _polar(angle_between(owner.x, owner.y, player.x, player.y), self.config.knockback)
        player.set_velocity(knockback.x, knockback.y)
        owner.scene.effects.shake(200, 0.01)
        self.strikes += 1

    def exit(self) -> None:
        self.attacking = False
        self.windup_timer = None
        self.attack_timer = 0.0
        self.owner.stop()

    def reset(self) -> None:
        self.exit()
        self.strikes = 0


class AlertState(State):
    name = StateKind.ALERT

    def __init__(self, owner: "Agent", config: Optional["AlertConfig"] = None):
        super().__init__(owner)
        self.config = config if config is not None else owner.tuning.alert
        self.alert_timer = 0.0
        self.anchor = Vector2()
        self.search_target: Optional[Vector2] = None
        self.search_speed = 0.0

    def enter(self) -> None:
        owner = self.owner
        owner.scene.effects.tint(owner, ALERT_TINT)
        self.alert_timer = 0.0
        self.search_target = None
        last_seen = owner.memory.get("last_player_position")
        self.anchor = Vector2(last_seen.x, last_seen.y) if last_seen is not None else Vector2(owner.position)
        owner.memory["alert_events"].append(
            {"from": owner.id, "time": owner.scene.clock.now(), "position": (self.anchor.x, self.anchor.y)}
        )
        coordination.broadcast_alert(owner, self.config.broadcast_radius)

    def update(self, dt: float) -> None:
        self.alert_timer += dt
        player = self.player
        if player is not None and self.owner.vision.can_see(player):
            self.change_state(StateKind.CHASE)
            return
        if self.alert_timer >= self.config.duration:
            self.change_state(StateKind.PATROL)
            return
        self._search()

    def _search(self) -> None:
        owner = self.owner
        rng = owner.scene.rng
        config = self.config
        if self.search_target is None or rng.next_float() < config.retarget_chance:
            offset = _polar(rng.next_angle(), rng.next_range(0.0, config.search_radius))
            self.search_target = self.anchor + offset
            self.search_speed = owner.speed * rng.next_range(config.min_speed_factor, config.max_speed_factor)
        target = self.search_target
        if distance_between(owner.x, owner.y, target.x, target.y) < 10.0:
            owner.stop()
        else:
            owner.move_toward(target.x, target.y, self.search_speed)

    def exit(self) -> None:
        self.owner.stop()
        self.alert_timer = 0.0
        self.search_target = None

    def reset(self) -> None:
        self.exit()


class SurroundState(State):
    name = StateKind.SURROUND

    def __init__(self, owner: "Agent", config: Optional["SurroundConfig"] = None):
        super().__init__(owner)
        self.config = config if config is not None else owner.tuning.surround
        self.target_position: Optional[Vector2] = None
        self.surround_angle = 0.0

    def enter(self) -> None:
        self.owner.scene.effects.tint(self.owner, SURROUND_TINT)
        self._compute_target()

    def update(self, dt: float) -> None:
        owner = self.owner
        if self.player is None:
            self.change_state(StateKind.PATROL)
            return
        # Slots are recomputed every tick, so joins and leaves reshuffle the ring.
        self._compute_target()
        target = self.target_position
        if target is None:
            return
        if owner.distance_to(target.x, target.y) > self.config.arrive_radius:
            owner.move_toward(target.x, target.y, owner.speed * self.config.speed_factor)
        else:
            self.change_state(StateKind.ATTACK)

    def _compute_target(self) -> None:
        player = self.player
        if player is None:
            return
        rank, total = coordination.surround_rank(self.owner)
        self.surround_angle, self.target_position = coordination.surround_point(
            player.x, player.y, rank, total, self.config.radius
        )

    def exit(self) -> None:
        self.owner.stop()
        self.target_position = None

    def reset(self) -> None:
        self.target_position = None
        self.surround_angle = 0.0
