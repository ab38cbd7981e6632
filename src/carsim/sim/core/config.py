from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .agent import NavigationStrategy


@dataclass
class GridConfig:
    width: int = 100
    height: int = 200  # longer for the road
    cell_size: float = 20.0
    origin: tuple[float, float] = (600.0, 0.0)


@dataclass
class NavigationConfig:
    strategy: str = "astar"
    scan_radius: float = 300.0
    goal_offset: float = 500.0
    recalculate_interval: float = 1.0
    displacement_threshold: float = 50.0
    ray_length_factor: float = 0.5
    fallback_step: float = 50.0
    fallback_steps: int = 3


@dataclass
class ControllerConfig:
    speed: float = 100.0
    waypoint_threshold: float = 50.0
    rotation_gain: float = 2.0


@dataclass
class SpawnConfig:
    population: int = 20
    origin_x: float = 850.0
    origin_y: float = 400.0
    columns: int = 10
    column_spacing: float = 15.0
    row_spacing: float = 30.0


@dataclass
class RoadConfig:
    min_x: float = 640.0
    max_x: float = 1200.0
    length: float = 4000.0
    wall_thickness: float = 10.0


@dataclass
class ObstacleConfig:
    count: int = 24
    width: float = 40.0
    height: float = 80.0
    min_y: float = 700.0
    bucket_size: float = 100.0


@dataclass
class SimulationConfig:
    time_step: float = 1.0 / 60.0
    seed: int = 42
    distance_scale: float = 340.0
    remove_crashed: bool = True
    config_version: str = "v1"
    grid: GridConfig = field(default_factory=GridConfig)
    navigation: NavigationConfig = field(default_factory=NavigationConfig)
    controller: ControllerConfig = field(default_factory=ControllerConfig)
    spawn: SpawnConfig = field(default_factory=SpawnConfig)
    road: RoadConfig = field(default_factory=RoadConfig)
    obstacles: ObstacleConfig = field(default_factory=ObstacleConfig)

    @staticmethod
    def from_yaml(path: Path) -> "SimulationConfig":
        data = yaml.safe_load(Path(path).read_text()) or {}
        return load_config(data)


@dataclass
class AppConfig:
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    broadcast_interval: int = 2


_SECTIONS = {"grid", "navigation", "controller", "spawn", "road", "obstacles"}


def load_config(raw: dict) -> SimulationConfig:
    def _pair(value: tuple[float, float] | list[float] | None, default: tuple[float, float]) -> tuple[float, float]:
        if isinstance(value, (tuple, list)) and len(value) == 2:
            return (float(value[0]), float(value[1]))
        return default

    grid_raw = raw.get("grid", {})
    grid = GridConfig(
        origin=_pair(grid_raw.get("origin"), GridConfig().origin),
        **{k: v for k, v in grid_raw.items() if k != "origin"},
    )
    navigation = NavigationConfig(**raw.get("navigation", {}))
    controller = ControllerConfig(**raw.get("controller", {}))
    spawn = SpawnConfig(**raw.get("spawn", {}))
    road = RoadConfig(**raw.get("road", {}))
    obstacles = ObstacleConfig(**raw.get("obstacles", {}))
    sim_values = {k: v for k, v in raw.items() if k not in _SECTIONS}
    config = SimulationConfig(
        grid=grid,
        navigation=navigation,
        controller=controller,
        spawn=spawn,
        road=road,
        obstacles=obstacles,
        **sim_values,
    )
    validate_config(config)
    return config


def validate_config(config: SimulationConfig) -> None:
    if config.time_step <= 0:
        raise ValueError(f"time_step must be positive, got {config.time_step}")
    if config.grid.width <= 0 or config.grid.height <= 0:
        raise ValueError(f"Grid dimensions must be positive, got {config.grid.width}x{config.grid.height}")
    if config.grid.cell_size <= 0:
        raise ValueError(f"Grid cell_size must be positive, got {config.grid.cell_size}")
    if config.spawn.population < 0:
        raise ValueError(f"Spawn population cannot be negative, got {config.spawn.population}")
    if config.spawn.columns <= 0:
        raise ValueError(f"Spawn columns must be positive, got {config.spawn.columns}")
    if config.distance_scale <= 0:
        raise ValueError(f"distance_scale must be positive, got {config.distance_scale}")
    try:
        NavigationStrategy(config.navigation.strategy)
    except ValueError:
        known = ", ".join(s.value for s in NavigationStrategy)
        raise ValueError(f"Unknown navigation strategy: {config.navigation.strategy} (expected one of {known})") from None
