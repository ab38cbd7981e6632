from __future__ import annotations

from typing import TYPE_CHECKING, Set, Tuple

from pygame.math import Vector2

from .oracle import Group, QueryFilter

if TYPE_CHECKING:
    from .oracle import CollisionOracle

Cell = Tuple[int, int]

# Probe directions for the obstacle scan: up, right, down, left.
_SCAN_DIRECTIONS = (
    Vector2(0.0, 1.0),
    Vector2(1.0, 0.0),
    Vector2(0.0, -1.0),
    Vector2(-1.0, 0.0),
)

# Cars only see obstacles during a scan, never road walls.
OBSTACLE_SCAN_FILTER = QueryFilter(memberships=Group.CAR, filters=Group.OBSTACLE)


class Grid:
    """Occupancy grid anchored at ``origin`` in world space.

    Cells are addressed by integer (column, row). The blocked set only ever holds
    the result of the latest scan; it is cleared before every rebuild.
    """

    def __init__(self, width: int, height: int, cell_size: float, origin: Vector2) -> None:
        if width <= 0 or height <= 0:
            raise ValueError(f"Grid dimensions must be positive, got {width}x{height}")
        if cell_size <= 0:
            raise ValueError(f"Grid cell_size must be positive, got {cell_size}")
        self.width = width
        self.height = height
        self.cell_size = cell_size
        self.origin = Vector2(origin)
        self.obstacles: Set[Cell] = set()

    def world_to_grid(self, position: Vector2) -> Cell:
        # int() truncates toward zero, so points just left of/below the origin map to cell 0.
        return (
            int((position.x - self.origin.x) / self.cell_size),
            int((position.y - self.origin.y) / self.cell_size),
        )

    def grid_to_world(self, cell: Cell) -> Vector2:
        return Vector2(
            cell[0] * self.cell_size + self.origin.x,
            cell[1] * self.cell_size + self.origin.y,
        )

    def is_valid(self, cell: Cell) -> bool:
        return 0 <= cell[0] < self.width and 0 <= cell[1] < self.height

    def is_walkable(self, cell: Cell) -> bool:
        return self.is_valid(cell) and cell not in self.obstacles

    def update_obstacles(
        self,
        oracle: CollisionOracle,
        center: Vector2,
        scan_radius: float,
        ray_length_factor: float = 0.5,
    ) -> None:
        self.obstacles.clear()

        center_x, center_y = self.world_to_grid(center)
        scan_cells = int(scan_radius / self.cell_size)
        ray_length = self.cell_size * ray_length_factor
        obstacles = self.obstacles

        for x in range(center_x - scan_cells, center_x + scan_cells):
            for y in range(center_y - scan_cells, center_y + scan_cells):
                cell = (x, y)
                if not self.is_valid(cell):
                    continue
                world_pos = self.grid_to_world(cell)
                for direction in _SCAN_DIRECTIONS:
                    if oracle.cast_ray(world_pos, direction, ray_length, False, OBSTACLE_SCAN_FILTER) is not None:
                        obstacles.add(cell)
                        break
