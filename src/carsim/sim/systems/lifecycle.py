from __future__ import annotations

from typing import Iterable, List

from pygame.math import Vector2

from ..core.agent import Car, NavigationStrategy
from ..core.config import SimulationConfig, SpawnConfig
from ..types.metrics import SimStats
from .navigation import create_navigator


def spawn_position(index: int, spawn: SpawnConfig) -> Vector2:
    """Cars are laid out in rows of ``spawn.columns`` behind the starting line."""
    column = index % spawn.columns
    row = index // spawn.columns
    return Vector2(
        spawn.origin_x + column * spawn.column_spacing,
        spawn.origin_y + row * spawn.row_spacing,
    )


def spawn_population(config: SimulationConfig, start_id: int = 0) -> List[Car]:
    strategy = NavigationStrategy(config.navigation.strategy)
    cars: List[Car] = []
    for index in range(config.spawn.population):
        position = spawn_position(index, config.spawn)
        cars.append(
            Car(
                id=start_id + index,
                position=position,
                navigator=create_navigator(strategy, config),
                spawn_position=Vector2(position),
            )
        )
    return cars


def update_stats(stats: SimStats, cars: Iterable[Car], distance_scale: float) -> SimStats:
    alive = 0
    max_score = 0.0
    max_distance = 0.0
    for car in cars:
        if not car.alive:
            continue
        alive += 1
        score = car.position.y / distance_scale
        if score > max_score:
            max_score = score
            max_distance = car.position.y
    stats.cars_alive = alive
    stats.max_current_score = max_score
    stats.max_distance_travelled = max_distance
    return stats
