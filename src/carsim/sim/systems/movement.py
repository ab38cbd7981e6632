from __future__ import annotations

from pygame.math import Vector2

from ..core.agent import AStarNavigator, Motion
from ..core.config import ControllerConfig
from ..utils.math2d import _direction_to, _forward_from_heading, _heading_from_direction, _normalize_angle


def forward_motion(heading: float, speed: float, dt: float) -> Motion:
    return Motion(displacement=_forward_from_heading(heading) * (speed * dt))


def follow_path(
    navigator: AStarNavigator,
    position: Vector2,
    heading: float,
    controller: ControllerConfig,
    dt: float,
) -> Motion:
    """
    Steer toward ``navigator.path[current_target]``.

    Reaching a waypoint only advances the index; the car does not move on that
    tick. An exhausted path is cleared so the next tick drives forward until the
    next recalculation.
    """

    if not navigator.path:
        return forward_motion(heading, controller.speed, dt)

    if not navigator.has_path:
        navigator.clear_path()
        return Motion()

    target = navigator.path[navigator.current_target]
    if position.distance_to(target) < controller.waypoint_threshold:
        navigator.current_target += 1
        if navigator.current_target >= len(navigator.path):
            navigator.clear_path()
        return Motion()

    direction = _direction_to(position, target)
    if direction is None:
        return forward_motion(heading, controller.speed, dt)

    angle_diff = _normalize_angle(_heading_from_direction(direction) - heading)
    return Motion(
        displacement=direction * (controller.speed * dt),
        rotation=angle_diff * controller.rotation_gain * dt,
    )
