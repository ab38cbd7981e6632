from __future__ import annotations

import math
from typing import Optional

from pygame.math import Vector2

TWO_PI = 2.0 * math.pi


def _forward_from_heading(heading: float) -> Vector2:
    # Heading 0 faces +Y; positive headings turn counter-clockwise.
    return Vector2(-math.sin(heading), math.cos(heading))


def _heading_from_direction(direction: Vector2) -> float:
    return math.atan2(direction.y, direction.x) - math.pi / 2.0


def _normalize_angle(angle: float) -> float:
    """Wrap ``angle`` into (-pi, pi]."""
    wrapped = math.fmod(angle + math.pi, TWO_PI)
    if wrapped <= 0.0:
        wrapped += TWO_PI
    return wrapped - math.pi


def _direction_to(origin: Vector2, target: Vector2) -> Optional[Vector2]:
    dx = target.x - origin.x
    dy = target.y - origin.y
    length = math.hypot(dx, dy)
    if length == 0.0:
        return None
    x = dx / length
    y = dy / length
    if not (math.isfinite(x) and math.isfinite(y)):
        return None
    return Vector2(x, y)
