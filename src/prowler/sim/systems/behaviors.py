from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from ..core.agent import StatModifier
from ..core.messages import Message, MessageKind
from ..core.state_machine import State, StateKind
from ..utils.math2d import _polar, angle_between
from . import coordination

if TYPE_CHECKING:
    from ..core.agent import Agent
    from ..core.config import BerserkConfig, DisguiseConfig, FearConfig

logger = logging.getLogger(__name__)

BERSERK_TINT = 0xFF0000
FEAR_TINT = 0x4444FF
DISGUISE_TINT = 0xFFD700
REVEAL_TINT = 0xFF4444


class BerserkState(State):
    name = StateKind.BERSERK

    def __init__(self, owner: "Agent", config: Optional["BerserkConfig"] = None):
        super().__init__(owner)
        self.config = config if config is not None else owner.tuning.berserk
        self.berserk_timer = 0.0
        self.roars = 0

    def enter(self) -> None:
        owner = self.owner
        config = self.config
        self.berserk_timer = 0.0
        owner.add_modifier("berserk", StatModifier(config.speed_multiplier, config.damage_multiplier))
        effects = owner.scene.effects
        effects.tint(owner, BERSERK_TINT)
        effects.burst(owner.x, owner.y, 40.0, "berserk")
        logger.debug("agent %s goes berserk", owner.id)
        self._roar()

    def update(self, dt: float) -> None:
        owner = self.owner
        config = self.config
        rng = owner.scene.rng
        self.berserk_timer += dt
        if rng.next_float() < config.roar_chance:
            self._roar()
        if rng.next_float() < config.debris_chance:
            owner.scene.effects.burst(owner.x, owner.y, 30.0, "debris")

        if self.berserk_timer >= config.duration:
            self.change_state(StateKind.PATROL)
            return

        player = self.player
        if player is not None and owner.vision.can_see(player):
            owner.move_toward(player.x, player.y, owner.speed)

    def _roar(self) -> None:
        self.roars += 1
        coordination.broadcast_inspire(self.owner, self.config)

    def exit(self) -> None:
        self.owner.remove_modifier("berserk")
        self.owner.scene.effects.clear_tint(self.owner)
        self.berserk_timer = 0.0

    def reset(self) -> None:
        self.berserk_timer = 0.0
        self.roars = 0


class FearState(State):
    name = StateKind.FEAR

    def __init__(self, owner: "Agent", config: Optional["FearConfig"] = None):
        super().__init__(owner)
        self.config = config if config is not None else owner.tuning.fear
        self.fear_timer = 0.0
        self.reevaluate_timer = 0.0
        self.flee_angle = 0.0

    def enter(self) -> None:
        self.owner.scene.effects.tint(self.owner, FEAR_TINT)
        self.fear_timer = 0.0
        self.reevaluate_timer = 0.0
        self.flee_angle = self.owner.facing
        self._find_flee_direction()

    def _find_flee_direction(self) -> None:
        player = self.player
        if player is None:
            return
        owner = self.owner
        away = angle_between(player.x, player.y, owner.x, owner.y)
        self.flee_angle = away + owner.scene.rng.next_jitter(self.config.jitter)

    def update(self, dt: float) -> None:
        owner = self.owner
        config = self.config
        self.fear_timer += dt
        self.reevaluate_timer += dt
        if self.reevaluate_timer >= config.reevaluate_interval:
            self.reevaluate_timer = 0.0
            self._find_flee_direction()
        speed = owner.speed * config.speed_factor
        owner.velocity = _polar(self.flee_angle, speed)

        if self.fear_timer >= config.duration:
            self.change_state(StateKind.PATROL)
            return

        player = self.player
        if player is not None and owner.distance_to(player.x, player.y) < config.close_range:
            self.fear_timer = max(0.0, self.fear_timer - dt * config.recovery_rate)

    def exit(self) -> None:
        self.owner.stop()
        self.owner.scene.effects.clear_tint(self.owner)
        self.fear_timer = 0.0

    def reset(self) -> None:
        self.fear_timer = 0.0
        self.reevaluate_timer = 0.0


class DisguiseState(State):
    name = StateKind.DISGUISE

    def __init__(self, owner: "Agent", config: Optional["DisguiseConfig"] = None):
        super().__init__(owner)
        self.config = config if config is not None else owner.tuning.disguise

    def enter(self) -> None:
        owner = self.owner
        if owner.revealed:
            # One-way: a revealed agent never goes back into hiding.
            self.change_state(StateKind.REVEAL)
            return
        owner.stop()
        owner.scene.effects.tint(owner, DISGUISE_TINT)
        owner.scene.effects.set_identity(owner, "disguised")

    def update(self, dt: float) -> None:
        owner = self.owner
        owner.stop()
        player = self.player
        if player is None:
            return
        if owner.distance_to(player.x, player.y) < self.config.trigger_distance:
            self.change_state(StateKind.REVEAL)


class RevealState(State):
    name = StateKind.REVEAL

    def __init__(self, owner: "Agent", config: Optional["DisguiseConfig"] = None):
        super().__init__(owner)
        self.config = config if config is not None else owner.tuning.disguise

    def enter(self) -> None:
        owner = self.owner
        effects = owner.scene.effects
        owner.revealed = True
        effects.set_identity(owner, self.config.identity)
        effects.tint(owner, REVEAL_TINT)
        effects.burst(owner.x, owner.y, self.config.burst_radius, "reveal")
        effects.shake(200, 0.01)
        logger.debug("agent %s revealed", owner.id)

    def update(self, dt: float) -> None:
        owner = self.owner
        player = self.player
        if player is not None and owner.vision.can_see(player):
            self.change_state(StateKind.CHASE)


class ReflexState(State):
    """Global state carrying an archetype's reactions to proximity and damage."""

    name = "reflex"

    def update(self, dt: float) -> None:
        owner = self.owner
        fear_distance = owner.tuning.fear_distance
        machine = self.state_machine
        if fear_distance is None or machine is None:
            return
        if StateKind.FEAR.value not in machine.states or machine.is_in_state(StateKind.FEAR):
            return
        player = self.player
        if player is None:
            return
        if owner.distance_to(player.x, player.y) < fear_distance and owner.vision.can_see(player):
            machine.change_state(StateKind.FEAR)

    def handle_message(self, message: Message) -> bool:
        if message.kind is not MessageKind.DAMAGED:
            return False
        owner = self.owner
        machine = self.state_machine
        states = machine.states
        if StateKind.REVEAL.value in states and not owner.revealed:
            machine.change_state(StateKind.REVEAL)
            return True
        threshold = owner.tuning.berserk_threshold
        if (
            threshold is not None
            and StateKind.BERSERK.value in states
            and owner.health_fraction <= threshold
            and not machine.is_in_state(StateKind.BERSERK)
        ):
            machine.change_state(StateKind.BERSERK)
            return True
        if StateKind.FEAR.value in states and not machine.is_in_state(StateKind.FEAR):
            machine.change_state(StateKind.FEAR)
            return True
        return False
