from __future__ import annotations

from ..types.metrics import SimStats, TickMetrics


def create_metrics(
    tick: int,
    crashes: int,
    recalculations: int,
    duration_ms: float,
    stats: SimStats,
    average_speed: float,
    blocked_cells: int,
) -> TickMetrics:
    return TickMetrics(
        tick=tick,
        cars_alive=stats.cars_alive,
        crashes=crashes,
        recalculations=recalculations,
        max_score=stats.max_current_score,
        max_distance=stats.max_distance_travelled,
        average_speed=average_speed,
        blocked_cells=blocked_cells,
        tick_duration_ms=duration_ms,
    )
