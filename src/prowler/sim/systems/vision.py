from __future__ import annotations

import math
from typing import Any, Iterable, List

from ..utils.math2d import TAU, angle_between, distance_between


class VisionSystem:
    """Cone-of-sight test from the owner's position toward a point target.

    Targets are anything exposing ``x`` and ``y``. The angle is the full cone
    width in radians and is not clamped; callers pass sane values.
    """

    def __init__(
        self,
        owner: Any,
        view_distance: float = 200.0,
        view_angle: float = math.pi / 3,
        view_direction: float = 0.0,
    ):
        self.owner = owner
        self.view_distance = view_distance
        self.view_angle = view_angle
        self.view_direction = view_direction

    def can_see(self, target: Any) -> bool:
        if target is None:
            return False
        ox, oy = self.owner.x, self.owner.y
        if distance_between(ox, oy, target.x, target.y) > self.view_distance:
            return False
        bearing = angle_between(ox, oy, target.x, target.y)
        diff = abs(bearing - self.view_direction) % TAU
        if min(diff, TAU - diff) > self.view_angle / 2:
            return False
        return self.has_line_of_sight(target)

    def has_line_of_sight(self, target: Any) -> bool:
        # No obstacle model; every target inside the cone is visible.
        return True

    def targets_in_view(self, targets: Iterable[Any]) -> List[Any]:
        return [target for target in targets if self.can_see(target)]

    def set_view_distance(self, distance: float) -> None:
        self.view_distance = distance

    def set_view_angle(self, angle: float) -> None:
        self.view_angle = angle

    def set_view_direction(self, direction: float) -> None:
        self.view_direction = direction
