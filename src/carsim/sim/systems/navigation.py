from __future__ import annotations

from typing import TYPE_CHECKING

from pygame.math import Vector2

from ..core.agent import AStarNavigator, Car, CruiseNavigator, Motion, NavigationStrategy, Navigator
from ..core.config import SimulationConfig
from ..core.grid import Grid
from ..core.timer import RepeatingTimer
from ..utils.math2d import _normalize_angle
from .movement import follow_path, forward_motion
from .recalculation import update_recalculation

if TYPE_CHECKING:
    from ..core.oracle import CollisionOracle


def create_navigator(strategy: NavigationStrategy, config: SimulationConfig) -> Navigator:
    if strategy is NavigationStrategy.ASTAR:
        grid_config = config.grid
        grid = Grid(grid_config.width, grid_config.height, grid_config.cell_size, Vector2(grid_config.origin))
        return AStarNavigator(grid=grid, recalculate_timer=RepeatingTimer(config.navigation.recalculate_interval))
    if strategy is NavigationStrategy.CRUISE:
        return CruiseNavigator()
    raise ValueError(f"Unknown navigation strategy: {strategy}")


def update_navigator(car: Car, oracle: CollisionOracle, config: SimulationConfig, dt: float) -> tuple[Motion, bool]:
    """Run one tick of the car's strategy. Returns the intended motion and whether a path was recalculated."""
    navigator = car.navigator
    if isinstance(navigator, AStarNavigator):
        recalculated = update_recalculation(navigator, oracle, car.position, config.navigation, dt)
        return follow_path(navigator, car.position, car.heading, config.controller, dt), recalculated
    return forward_motion(car.heading, config.controller.speed, dt), False


def apply_motion(car: Car, motion: Motion) -> None:
    car.position += motion.displacement
    car.distance_travelled += motion.displacement.length()
    if motion.rotation:
        car.heading = _normalize_angle(car.heading + motion.rotation)
