from __future__ import annotations

import logging
from time import perf_counter
from typing import Any, Dict, List

from pygame.math import Vector2

from .agent import AStarNavigator, Car
from .config import SimulationConfig, validate_config
from .oracle import Collider, Group, ObstacleField, QueryFilter
from .rng import DeterministicRng
from ..systems import lifecycle, metrics as metrics_system, navigation
from ..types.metrics import CrashEvent, SimStats, TickMetrics
from ..types.snapshot import Snapshot, SnapshotMetadata, SnapshotWorld

log = logging.getLogger(__name__)

_OBSTACLE_RNG_SALT = 0x0B57AC1E5EED0001

CRASH_FILTER = QueryFilter(memberships=Group.CAR, filters=Group.OBSTACLE | Group.ROAD)


def _derive_stream_seed(seed: int, salt: int) -> int:
    return (int(seed) ^ int(salt)) & 0xFFFFFFFFFFFFFFFF


class World:
    def __init__(self, config: SimulationConfig):
        validate_config(config)
        self._config = config
        self._obstacle_rng = DeterministicRng(_derive_stream_seed(config.seed, _OBSTACLE_RNG_SALT))
        self._field = ObstacleField(config.obstacles.bucket_size)
        self._cars: List[Car] = []
        self._stats = SimStats()
        self._metrics: TickMetrics | None = None
        self._crash_events: List[CrashEvent] = []
        self._next_id = 0
        self._build_road()
        self._place_obstacles()
        self._bootstrap_population()

    @property
    def cars(self) -> List[Car]:
        return self._cars

    @property
    def stats(self) -> SimStats:
        return self._stats

    @property
    def metrics(self) -> TickMetrics | None:
        return self._metrics

    @property
    def crash_events(self) -> List[CrashEvent]:
        """Crashes removed during the latest step."""
        return self._crash_events

    @property
    def obstacle_field(self) -> ObstacleField:
        return self._field

    def reset(self) -> None:
        self._cars.clear()
        self._field.clear()
        self._obstacle_rng.reset()
        self._stats = SimStats()
        self._metrics = None
        self._crash_events = []
        self._next_id = 0
        self._build_road()
        self._place_obstacles()
        self._bootstrap_population()

    def step(self, tick: int) -> TickMetrics:
        start = perf_counter()
        config = self._config
        dt = config.time_step
        field = self._field
        crashes = 0
        recalculations = 0
        speed_sum = 0.0
        moved = 0
        blocked_cells = 0

        for car in self._cars:
            if not car.alive:
                continue
            motion, recalculated = navigation.update_navigator(car, field, config, dt)
            navigation.apply_motion(car, motion)
            speed_sum += motion.displacement.length() / dt
            moved += 1
            if recalculated:
                recalculations += 1
            if isinstance(car.navigator, AStarNavigator):
                blocked_cells += len(car.navigator.grid.obstacles)
            if config.remove_crashed:
                hit = field.contains_point(car.position, CRASH_FILTER)
                if hit is not None:
                    car.alive = False
                    car.crashed_into = hit.id
                    crashes += 1

        self._crash_events = self._remove_crashed(tick) if crashes else []

        stats = lifecycle.update_stats(self._stats, self._cars, config.distance_scale)
        average_speed = speed_sum / moved if moved else 0.0
        duration_ms = (perf_counter() - start) * 1000.0
        self._metrics = metrics_system.create_metrics(
            tick, crashes, recalculations, duration_ms, stats, average_speed, blocked_cells
        )
        return self._metrics

    def snapshot(self, tick: int) -> Snapshot:
        metrics = self._metrics if self._metrics is not None else self._snapshot_metrics_from_state(tick)
        config = self._config
        return Snapshot(
            tick=tick,
            metrics=metrics,
            cars=[self._car_snapshot(car) for car in self._cars if car.alive],
            world=SnapshotWorld(
                road_min_x=config.road.min_x,
                road_max_x=config.road.max_x,
                road_length=config.road.length,
            ),
            metadata=SnapshotMetadata(
                sim_dt=config.time_step,
                tick_rate=1.0 / config.time_step,
                seed=config.seed,
                config_version=config.config_version,
                strategy=config.navigation.strategy,
            ),
            obstacles=[self._obstacle_snapshot(collider) for collider in self._field.colliders if collider.tag == "obstacle"],
        )

    def _car_snapshot(self, car: Car) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": car.id,
            "x": car.position.x,
            "y": car.position.y,
            "heading": car.heading,
            "is_alive": car.alive,
            "distance_travelled": car.distance_travelled,
            "score": car.position.y / self._config.distance_scale,
            "progress": car.position.y - car.spawn_position.y,
        }
        navigator = car.navigator
        if isinstance(navigator, AStarNavigator):
            payload["path"] = [[point.x, point.y] for point in navigator.path[navigator.current_target:]]
            payload["current_target"] = navigator.current_target
            payload["blocked_cells"] = len(navigator.grid.obstacles)
        return payload

    @staticmethod
    def _obstacle_snapshot(collider: Collider) -> Dict[str, float]:
        return {
            "id": collider.id,
            "min_x": collider.min_x,
            "min_y": collider.min_y,
            "max_x": collider.max_x,
            "max_y": collider.max_y,
        }

    def _snapshot_metrics_from_state(self, tick: int) -> TickMetrics:
        stats = lifecycle.update_stats(SimStats(), self._cars, self._config.distance_scale)
        return metrics_system.create_metrics(tick, 0, 0, 0.0, stats, 0.0, 0)

    def _bootstrap_population(self) -> None:
        cars = lifecycle.spawn_population(self._config, start_id=self._next_id)
        self._next_id += len(cars)
        self._cars.extend(cars)
        lifecycle.update_stats(self._stats, self._cars, self._config.distance_scale)
        log.info(
            "spawned %d %s cars, %d obstacles on the road",
            len(cars),
            self._config.navigation.strategy,
            self._config.obstacles.count,
        )

    def _build_road(self) -> None:
        road = self._config.road
        half_thickness = road.wall_thickness * 0.5
        half_length = road.length * 0.5
        walls = [
            (Vector2(road.min_x - half_thickness, half_length), half_thickness, half_length),
            (Vector2(road.max_x + half_thickness, half_length), half_thickness, half_length),
            (
                Vector2((road.min_x + road.max_x) * 0.5, road.length + half_thickness),
                (road.max_x - road.min_x) * 0.5 + road.wall_thickness,
                half_thickness,
            ),
        ]
        for center, half_width, half_height in walls:
            self._field.insert(
                Collider.cuboid(
                    len(self._field.colliders),
                    center,
                    half_width,
                    half_height,
                    memberships=Group.ROAD,
                    tag="road",
                )
            )

    def _place_obstacles(self) -> None:
        road = self._config.road
        obstacles = self._config.obstacles
        half_width = obstacles.width * 0.5
        half_height = obstacles.height * 0.5
        for _ in range(obstacles.count):
            center = self._obstacle_rng.next_point(
                road.min_x + half_width,
                road.max_x - half_width,
                obstacles.min_y + half_height,
                road.length - half_height,
            )
            self._field.insert(
                Collider.cuboid(
                    len(self._field.colliders),
                    center,
                    half_width,
                    half_height,
                    memberships=Group.OBSTACLE,
                    tag="obstacle",
                )
            )

    def _remove_crashed(self, tick: int) -> List[CrashEvent]:
        survivors: List[Car] = []
        events: List[CrashEvent] = []
        for car in self._cars:
            if car.alive:
                survivors.append(car)
                continue
            collider = self._field.get(car.crashed_into)
            tag = collider.tag if collider is not None else "unknown"
            events.append(
                CrashEvent(
                    tick=tick,
                    car_id=car.id,
                    collider_id=car.crashed_into,
                    tag=tag,
                    x=car.position.x,
                    y=car.position.y,
                )
            )
            log.debug("car %d crashed into %s %d at tick %d", car.id, tag, car.crashed_into, tick)
        self._cars = survivors
        return events
