from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union

from pygame.math import Vector2

from .grid import Grid
from .timer import RepeatingTimer


class NavigationStrategy(str, Enum):
    ASTAR = "astar"
    CRUISE = "cruise"


@dataclass(slots=True)
class Motion:
    displacement: Vector2 = field(default_factory=Vector2)
    rotation: float = 0.0


@dataclass(slots=True)
class AStarNavigator:
    grid: Grid
    recalculate_timer: RepeatingTimer
    path: List[Vector2] = field(default_factory=list)
    current_target: int = 0
    last_position: Optional[Vector2] = None
    # Incremented on every replan.
    revision: int = 0

    @property
    def has_path(self) -> bool:
        return self.current_target < len(self.path)

    def clear_path(self) -> None:
        self.path.clear()
        self.current_target = 0


@dataclass(slots=True)
class CruiseNavigator:
    """Holds the current heading; used as a baseline against the A* cars."""


Navigator = Union[AStarNavigator, CruiseNavigator]


@dataclass(slots=True)
class Car:
    id: int
    position: Vector2
    navigator: Navigator
    heading: float = 0.0
    alive: bool = True
    distance_travelled: float = 0.0
    spawn_position: Vector2 = field(default_factory=Vector2)
    crashed_into: int = -1
