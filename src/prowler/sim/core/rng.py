from __future__ import annotations

import math
import random
from typing import Optional, Sequence, TypeVar

T = TypeVar("T")


class DeterministicRng:
    def __init__(self, seed: int):
        self._seed = seed
        self._random = random.Random(seed)

    @property
    def seed(self) -> int:
        return self._seed

    def reset(self) -> None:
        self._random.seed(self._seed)

    def next_float(self) -> float:
        return self._random.random()

    def next_range(self, low: float, high: float) -> float:
        return self._random.uniform(low, high)

    def next_int(self, max_value: int) -> int:
        return self._random.randrange(max_value)

    def next_angle(self) -> float:
        return self._random.uniform(0.0, 2.0 * math.pi)

    def next_jitter(self, spread: float) -> float:
        # Centered on zero, total width ``spread``.
        return (self._random.random() - 0.5) * spread

    def sample_choice(self, items: Sequence[T]) -> Optional[T]:
        if not items:
            return None
        return self._random.choice(items)
