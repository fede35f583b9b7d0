from __future__ import annotations

from typing import Callable, List, Optional

from .agent import Agent


class AgentPool:
    """Recycles agents of one archetype.

    ``factory`` builds a fresh agent; ``acquire`` prefers a pooled instance and
    resets it in place so it re-enters its initial state.
    """

    def __init__(self, factory: Callable[[], Agent], initial_size: int = 3, max_size: Optional[int] = None):
        self._factory = factory
        self._max_size = max_size
        self._available: List[Agent] = []
        self._created = 0
        self._in_use = 0
        self.warm_up(initial_size)

    def warm_up(self, count: int) -> None:
        for _ in range(count):
            if self._max_size is not None and self._created >= self._max_size:
                return
            agent = self._factory()
            agent.cleanup()
            self._created += 1
            self._available.append(agent)

    def acquire(self, x: float, y: float) -> Optional[Agent]:
        if self._available:
            agent = self._available.pop()
        elif self._max_size is None or self._created < self._max_size:
            agent = self._factory()
            self._created += 1
        else:
            return None
        agent.reset(x, y)
        self._in_use += 1
        return agent

    def release(self, agent: Agent) -> None:
        agent.cleanup()
        self._available.append(agent)
        self._in_use = max(0, self._in_use - 1)

    @property
    def available_count(self) -> int:
        return len(self._available)

    @property
    def in_use_count(self) -> int:
        return self._in_use

    @property
    def created_count(self) -> int:
        return self._created

    def clear(self) -> None:
        self._available.clear()
        self._in_use = 0
