from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from pygame.math import Vector2

from ..core.agent import AStarNavigator
from ..core.config import NavigationConfig
from .pathfinding import find_path

if TYPE_CHECKING:
    from ..core.oracle import CollisionOracle

log = logging.getLogger(__name__)


def should_recalculate(timer_finished: bool, distance_since_scan: Optional[float], threshold: float) -> bool:
    """A car that has never scanned has no distance and always recalculates."""
    if distance_since_scan is None:
        return True
    return timer_finished or distance_since_scan > threshold


def recalculate_path(
    navigator: AStarNavigator,
    oracle: CollisionOracle,
    position: Vector2,
    navigation: NavigationConfig,
) -> None:
    navigator.grid.update_obstacles(oracle, position, navigation.scan_radius, navigation.ray_length_factor)
    goal = Vector2(position.x, position.y + navigation.goal_offset)
    navigator.path = find_path(
        navigator.grid,
        position,
        goal,
        fallback_step=navigation.fallback_step,
        fallback_steps=navigation.fallback_steps,
    )
    navigator.current_target = 0
    navigator.last_position = Vector2(position)
    navigator.revision += 1


def update_recalculation(
    navigator: AStarNavigator,
    oracle: CollisionOracle,
    position: Vector2,
    navigation: NavigationConfig,
    dt: float,
) -> bool:
    navigator.recalculate_timer.tick(dt)
    last = navigator.last_position
    distance = None if last is None else last.distance_to(position)
    if not should_recalculate(navigator.recalculate_timer.just_finished, distance, navigation.displacement_threshold):
        return False
    recalculate_path(navigator, oracle, position, navigation)
    log.debug(
        "recalculated path at (%.1f, %.1f): %d waypoints, %d blocked cells",
        position.x,
        position.y,
        len(navigator.path),
        len(navigator.grid.obstacles),
    )
    return True
