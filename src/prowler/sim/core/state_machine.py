from __future__ import annotations

import logging
from collections import deque
from enum import Enum
from typing import TYPE_CHECKING, Deque, Dict, Optional, Union

from .messages import Message

if TYPE_CHECKING:
    from .agent import Agent
    from .scene import Player

logger = logging.getLogger(__name__)


class StateKind(str, Enum):
    PATROL = "patrol"
    CHASE = "chase"
    ATTACK = "attack"
    ALERT = "alert"
    SURROUND = "surround"
    BERSERK = "berserk"
    FEAR = "fear"
    DISGUISE = "disguise"
    REVEAL = "reveal"


StateName = Union[StateKind, str]


def _key(name: StateName) -> str:
    return name.value if isinstance(name, StateKind) else str(name)


class State:
    """One behavior of an agent.

    Subclasses override the hooks they need. ``owner`` and ``state_machine`` are
    back-references assigned on registration; a state never owns its agent.
    """

    name: StateName = "state"

    def __init__(self, owner: "Agent", name: Optional[StateName] = None):
        if name is not None:
            self.name = name
        self.owner = owner
        self.state_machine: Optional[StateMachine] = None

    @property
    def key(self) -> str:
        return _key(self.name)

    @property
    def player(self) -> Optional["Player"]:
        return self.owner.scene.live_player()

    def change_state(self, name: StateName) -> None:
        if self.state_machine is not None:
            self.state_machine.change_state(name)

    def enter(self) -> None:
        pass

    def update(self, dt: float) -> None:
        pass

    def exit(self) -> None:
        pass

    def handle_message(self, message: Message) -> bool:
        return False

    def reset(self) -> None:
        pass


class StateMachine:
    def __init__(self, owner: "Agent"):
        self.owner = owner
        self.states: Dict[str, State] = {}
        self.current_state: Optional[State] = None
        self.previous_state: Optional[State] = None
        self.global_state: Optional[State] = None
        self._transitioning = False
        self._pending: Deque[str] = deque()

    def add_state(self, state: State) -> State:
        state.owner = self.owner
        state.state_machine = self
        self.states[state.key] = state
        return state

    def set_global_state(self, state: Optional[State]) -> None:
        if state is not None:
            state.owner = self.owner
            state.state_machine = self
        self.global_state = state

    def change_state(self, name: StateName) -> None:
        key = _key(name)
        if key not in self.states:
            logger.warning("State %r not found on agent %s", key, self.owner.id)
            return
        if self._transitioning:
            # Requested from enter()/exit(); runs once the current transition completes.
            self._pending.append(key)
            return
        self._transitioning = True
        try:
            self._transition(key)
            while self._pending:
                self._transition(self._pending.popleft())
        finally:
            self._transitioning = False
            self._pending.clear()

    def _transition(self, key: str) -> None:
        new_state = self.states[key]
        self.previous_state = self.current_state
        if self.current_state is not None:
            self.current_state.exit()
        logger.debug("agent %s: %s -> %s", self.owner.id, self.current_state_name, key)
        self.current_state = new_state
        new_state.enter()

    def update(self, dt: float) -> None:
        if self.global_state is not None:
            self.global_state.update(dt)
        if self.current_state is not None:
            self.current_state.update(dt)

    def handle_message(self, message: Message) -> bool:
        if self.current_state is not None and self.current_state.handle_message(message):
            return True
        if self.global_state is not None and self.global_state.handle_message(message):
            return True
        return False

    def revert_to_previous_state(self) -> None:
        if self.previous_state is not None:
            self.change_state(self.previous_state.key)

    def is_in_state(self, name: StateName) -> bool:
        return self.current_state is not None and self.current_state.key == _key(name)

    @property
    def current_state_name(self) -> str:
        if self.current_state is None:
            return "none"
        return self.current_state.key

    def reset(self) -> None:
        for state in self.states.values():
            state.reset()
        if self.global_state is not None:
            self.global_state.reset()
        self.current_state = None
        self.previous_state = None
        self._pending.clear()
