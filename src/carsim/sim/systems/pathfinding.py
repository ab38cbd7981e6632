from __future__ import annotations

import heapq
from dataclasses import dataclass
from itertools import count
from typing import Dict, List, Optional, Set

from pygame.math import Vector2

from ..core.grid import Cell, Grid

MOVE_COST = 10

# North, east, south, west. Diagonals are never expanded.
_NEIGHBOR_OFFSETS = ((0, -1), (1, 0), (0, 1), (-1, 0))


@dataclass(slots=True)
class SearchNode:
    cell: Cell
    g_cost: int
    h_cost: int
    parent: Optional[Cell] = None

    @property
    def f_cost(self) -> int:
        return self.g_cost + self.h_cost


def manhattan_distance(a: Cell, b: Cell) -> int:
    return abs(a[0] - b[0]) + abs(a[1] - b[1])


def fallback_path(start: Vector2, goal: Vector2, step: float = 50.0, steps: int = 3) -> List[Vector2]:
    path = [Vector2(start.x, start.y + step * i) for i in range(1, steps + 1)]
    path.append(Vector2(goal))
    return path


def find_path(
    grid: Grid,
    start: Vector2,
    goal: Vector2,
    fallback_step: float = 50.0,
    fallback_steps: int = 3,
) -> List[Vector2]:
    """
    A* over the 4-connected walkable cells of ``grid``.

    The returned waypoints exclude the start cell and end on the goal cell. When
    the start or goal is not walkable, or the goal is unreachable, a short
    forward path ending at the raw ``goal`` is returned instead, so the result is
    never empty.
    """

    start_cell = grid.world_to_grid(start)
    goal_cell = grid.world_to_grid(goal)

    if not grid.is_walkable(start_cell) or not grid.is_walkable(goal_cell):
        return fallback_path(start, goal, fallback_step, fallback_steps)
    if start_cell == goal_cell:
        return [grid.grid_to_world(goal_cell)]

    # Entries are (f, -h, seq, node): lowest f first, then the larger h, then FIFO.
    sequence = count()
    open_heap: list[tuple[int, int, int, SearchNode]] = []
    closed: Set[Cell] = set()
    came_from: Dict[Cell, Cell] = {}
    g_score: Dict[Cell, int] = {start_cell: 0}

    start_node = SearchNode(start_cell, 0, manhattan_distance(start_cell, goal_cell) * MOVE_COST)
    heapq.heappush(open_heap, (start_node.f_cost, -start_node.h_cost, next(sequence), start_node))

    while open_heap:
        current = heapq.heappop(open_heap)[3]
        if current.cell == goal_cell:
            return reconstruct_path(came_from, current.cell, grid)
        if current.cell in closed:
            continue
        closed.add(current.cell)

        cx, cy = current.cell
        for dx, dy in _NEIGHBOR_OFFSETS:
            neighbor = (cx + dx, cy + dy)
            if not grid.is_walkable(neighbor) or neighbor in closed:
                continue
            tentative_g = current.g_cost + MOVE_COST
            existing_g = g_score.get(neighbor)
            if existing_g is not None and tentative_g >= existing_g:
                continue
            came_from[neighbor] = current.cell
            g_score[neighbor] = tentative_g
            node = SearchNode(neighbor, tentative_g, manhattan_distance(neighbor, goal_cell) * MOVE_COST, current.cell)
            heapq.heappush(open_heap, (node.f_cost, -node.h_cost, next(sequence), node))

    return fallback_path(start, goal, fallback_step, fallback_steps)


def reconstruct_path(came_from: Dict[Cell, Cell], current: Cell, grid: Grid) -> List[Vector2]:
    cells = [current]
    while current in came_from:
        current = came_from[current]
        cells.append(current)
    cells.reverse()
    # The first cell is where the car already is.
    return [grid.grid_to_world(cell) for cell in cells[1:]]
