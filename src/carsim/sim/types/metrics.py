from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class SimStats:
    cars_alive: int = 0
    max_current_score: float = 0.0
    max_distance_travelled: float = 0.0


@dataclass(slots=True)
class TickMetrics:
    tick: int
    cars_alive: int
    crashes: int
    recalculations: int
    max_score: float
    max_distance: float
    average_speed: float
    blocked_cells: int
    tick_duration_ms: float = 0.0


@dataclass(slots=True)
class CrashEvent:
    tick: int
    car_id: int
    collider_id: int
    tag: str
    x: float
    y: float
