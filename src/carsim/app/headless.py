from __future__ import annotations

import argparse
import csv
import json
import logging
import math
from pathlib import Path
from typing import Optional

from ..sim.core.agent import AStarNavigator
from ..sim.core.config import SimulationConfig
from ..sim.core.world import World

log = logging.getLogger(__name__)


_BASIC_HEADER = [
    "tick",
    "cars_alive",
    "crashes",
    "recalculations",
    "max_score",
    "max_distance",
    "tick_ms",
]

_DETAILED_HEADER = [
    "tick",
    "cars_alive",
    "crashes",
    "recalculations",
    "max_score",
    "max_distance",
    "tick_ms",
    "avg_speed",
    "blocked_cells",
    "blocked_cells_per_car",
    "recalculations_per_car",
    "tick_ms_per_car",
    "min_y",
    "mean_y",
    "cars_following_path",
    "mean_abs_heading",
]


def _format_basic_row(metrics: object, tick_ms: float) -> list[object]:
    return [
        metrics.tick,
        metrics.cars_alive,
        metrics.crashes,
        metrics.recalculations,
        f"{metrics.max_score:.4f}",
        f"{metrics.max_distance:.2f}",
        f"{tick_ms:.3f}",
    ]


def _format_detailed_row(world: World, metrics: object, tick_ms: float) -> list[object]:
    cars_alive = metrics.cars_alive
    if cars_alive <= 0:
        blocked_cells_per_car = 0.0
        recalculations_per_car = 0.0
        tick_ms_per_car = 0.0
        min_y = 0.0
        mean_y = 0.0
        following = 0
        mean_abs_heading = 0.0
    else:
        blocked_cells_per_car = metrics.blocked_cells / cars_alive
        recalculations_per_car = metrics.recalculations / cars_alive
        tick_ms_per_car = tick_ms / cars_alive

        min_y = math.inf
        y_sum = 0.0
        heading_sum = 0.0
        following = 0
        for car in world.cars:
            if not car.alive:
                continue
            y = car.position.y
            if y < min_y:
                min_y = y
            y_sum += y
            heading_sum += abs(car.heading)
            navigator = car.navigator
            if isinstance(navigator, AStarNavigator) and navigator.has_path:
                following += 1
        mean_y = y_sum / cars_alive
        mean_abs_heading = heading_sum / cars_alive

    return [
        *_format_basic_row(metrics, tick_ms),
        f"{metrics.average_speed:.4f}",
        metrics.blocked_cells,
        f"{blocked_cells_per_car:.4f}",
        f"{recalculations_per_car:.4f}",
        f"{tick_ms_per_car:.4f}",
        f"{min_y:.2f}",
        f"{mean_y:.2f}",
        following,
        f"{mean_abs_heading:.4f}",
    ]


def _percentile(sorted_values: list[float], percentile: float) -> float:
    if not sorted_values:
        return 0.0
    if len(sorted_values) == 1:
        return float(sorted_values[0])
    pos = (len(sorted_values) - 1) * percentile
    low = int(math.floor(pos))
    high = int(math.ceil(pos))
    if low == high:
        return float(sorted_values[low])
    weight = pos - low
    return float(sorted_values[low] + (sorted_values[high] - sorted_values[low]) * weight)


def _summary_stats(values: list[float]) -> dict[str, float]:
    if not values:
        return {"min": 0.0, "max": 0.0, "avg": 0.0, "p50": 0.0, "p90": 0.0, "p99": 0.0}
    sorted_values = sorted(values)
    return {
        "min": float(sorted_values[0]),
        "max": float(sorted_values[-1]),
        "avg": float(sum(values) / len(values)),
        "p50": _percentile(sorted_values, 0.50),
        "p90": _percentile(sorted_values, 0.90),
        "p99": _percentile(sorted_values, 0.99),
    }


def _correlation(xs: list[float], ys: list[float]) -> float:
    if len(xs) != len(ys) or len(xs) < 2:
        return 0.0
    mean_x = sum(xs) / len(xs)
    mean_y = sum(ys) / len(ys)
    num = 0.0
    denom_x = 0.0
    denom_y = 0.0
    for x, y in zip(xs, ys):
        dx = x - mean_x
        dy = y - mean_y
        num += dx * dy
        denom_x += dx * dx
        denom_y += dy * dy
    denom = math.sqrt(denom_x * denom_y)
    if denom == 0.0:
        return 0.0
    return float(num / denom)


def run_headless(
    steps: int,
    seed: Optional[int],
    log_path: Optional[Path],
    deterministic_log: bool = False,
    log_format: str = "detailed",
    summary_path: Optional[Path] = None,
    summary_window: int = 600,
    config_path: Optional[Path] = None,
    strategy: Optional[str] = None,
    population: Optional[int] = None,
) -> World:
    config = SimulationConfig.from_yaml(config_path) if config_path else SimulationConfig()
    if seed is not None:
        config.seed = seed
    if strategy is not None:
        config.navigation.strategy = strategy
    if population is not None:
        config.spawn.population = population

    log_mode = log_format.lower().strip()
    if log_mode not in {"basic", "detailed"}:
        raise ValueError(f"Unknown log format: {log_format}")

    world = World(config)

    writer = None
    csv_file = None
    if log_path:
        csv_file = Path(log_path).open("w", newline="")
        writer = csv.writer(csv_file)
        writer.writerow(_DETAILED_HEADER if log_mode == "detailed" else _BASIC_HEADER)

    tick_ms_series: list[float] = []
    alive_series: list[int] = []
    recalculation_series: list[int] = []
    score_series: list[float] = []
    total_crashes = 0
    crashes_by_tag: dict[str, int] = {}
    max_tick_ms = (-1.0, -1)
    max_score = (0.0, -1)

    log.info("running %d ticks (seed=%d, strategy=%s)", steps, config.seed, config.navigation.strategy)
    try:
        for tick in range(steps):
            metrics = world.step(tick)
            tick_ms = 0.0 if deterministic_log else metrics.tick_duration_ms
            total_crashes += metrics.crashes
            for event in world.crash_events:
                crashes_by_tag[event.tag] = crashes_by_tag.get(event.tag, 0) + 1

            if summary_path:
                tick_ms_series.append(tick_ms)
                alive_series.append(metrics.cars_alive)
                recalculation_series.append(metrics.recalculations)
                score_series.append(metrics.max_score)
                if tick_ms > max_tick_ms[0]:
                    max_tick_ms = (tick_ms, tick)
                if metrics.max_score > max_score[0]:
                    max_score = (metrics.max_score, tick)

            if writer:
                if log_mode == "detailed":
                    writer.writerow(_format_detailed_row(world, metrics, tick_ms))
                else:
                    writer.writerow(_format_basic_row(metrics, tick_ms))
    finally:
        if csv_file:
            csv_file.close()

    log.info(
        "finished: %d cars alive, %d crashes, max score %.3f",
        world.stats.cars_alive,
        total_crashes,
        world.stats.max_current_score,
    )

    if summary_path:
        window = max(1, int(summary_window))
        tail_slice = slice(max(0, len(tick_ms_series) - window), len(tick_ms_series))
        summary = {
            "steps": steps,
            "seed": config.seed,
            "strategy": config.navigation.strategy,
            "population": config.spawn.population,
            "log_format": log_mode,
            "deterministic_log": deterministic_log,
            "total_crashes": total_crashes,
            "crashes_by_tag": crashes_by_tag,
            "final": {
                "cars_alive": world.stats.cars_alive,
                "max_score": world.stats.max_current_score,
                "max_distance": world.stats.max_distance_travelled,
            },
            "tick_ms": _summary_stats(tick_ms_series),
            "cars_alive": _summary_stats([float(v) for v in alive_series]),
            "recalculations": _summary_stats([float(v) for v in recalculation_series]),
            "correlations": {
                "tick_ms_vs_recalculations": _correlation(tick_ms_series, [float(v) for v in recalculation_series]),
            },
            "peaks": {
                "tick_ms": {"value": float(max_tick_ms[0]), "tick": max_tick_ms[1]},
                "max_score": {"value": float(max_score[0]), "tick": max_score[1]},
            },
            "tail_window": {
                "window": window,
                "tick_ms": _summary_stats(tick_ms_series[tail_slice]),
                "recalculations": _summary_stats([float(v) for v in recalculation_series[tail_slice]]),
                "max_score": _summary_stats(score_series[tail_slice]),
            },
        }
        Path(summary_path).write_text(json.dumps(summary, indent=2))

    return world


def main() -> None:
    parser = argparse.ArgumentParser(description="Headless corridor driving simulation")
    parser.add_argument("--steps", type=int, default=3000)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--config", type=Path, default=None, help="YAML file with simulation settings")
    parser.add_argument("--strategy", choices=["astar", "cruise"], default=None)
    parser.add_argument("--population", type=int, default=None)
    parser.add_argument("--log", type=Path, default=None, help="CSV file to write metrics")
    parser.add_argument(
        "--log-format",
        choices=["basic", "detailed"],
        default="detailed",
        help="CSV format to write when --log is provided.",
    )
    parser.add_argument(
        "--summary",
        type=Path,
        default=None,
        help="Optional JSON file to write summary stats for the run.",
    )
    parser.add_argument(
        "--summary-window",
        type=int,
        default=600,
        help="Tail window size (ticks) for summary stats.",
    )
    parser.add_argument(
        "--deterministic-log",
        action="store_true",
        help="Write deterministic CSV (tick_ms is forced to 0.000 so identical seeds match).",
    )
    parser.add_argument("--log-level", default="INFO", help="Python logging level (DEBUG shows path recalculations)")
    args = parser.parse_args()
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    run_headless(
        args.steps,
        args.seed,
        args.log,
        deterministic_log=args.deterministic_log,
        log_format=args.log_format,
        summary_path=args.summary,
        summary_window=args.summary_window,
        config_path=args.config,
        strategy=args.strategy,
        population=args.population,
    )


if __name__ == "__main__":
    main()
