from __future__ import annotations

import math

from pygame.math import Vector2

TAU = 2.0 * math.pi


def distance_between(x1: float, y1: float, x2: float, y2: float) -> float:
    return math.hypot(x2 - x1, y2 - y1)


def angle_between(x1: float, y1: float, x2: float, y2: float) -> float:
    return math.atan2(y2 - y1, x2 - x1)


def _polar(angle: float, length: float) -> Vector2:
    return Vector2(math.cos(angle) * length, math.sin(angle) * length)


def _safe_normalize_xy(x: float, y: float) -> Vector2:
    magnitude_sq = x * x + y * y
    if magnitude_sq < 1e-10:
        return Vector2()
    inv = 1.0 / math.sqrt(magnitude_sq)
    return Vector2(x * inv, y * inv)


def _heading_from_velocity(vector: Vector2) -> float:
    if vector.length_squared() < 1e-12:
        return 0.0
    return math.atan2(vector.y, vector.x)


def _clamp_value(value: float, min_value: float, max_value: float) -> float:
    return max(min_value, min(max_value, value))
