from __future__ import annotations

import math
from dataclasses import dataclass
from enum import IntFlag
from typing import Dict, Iterator, List, Optional, Protocol, Tuple

from pygame.math import Vector2


class Group(IntFlag):
    NONE = 0
    CAR = 1
    OBSTACLE = 2
    ROAD = 4
    ALL = 0xFFFF


@dataclass(frozen=True, slots=True)
class QueryFilter:
    memberships: Group = Group.ALL
    filters: Group = Group.ALL

    def accepts(self, collider: "Collider") -> bool:
        return bool(self.memberships & collider.filters) and bool(collider.memberships & self.filters)


@dataclass(frozen=True, slots=True)
class RayHit:
    collider_id: int
    time_of_impact: float
    point: Vector2


@dataclass(frozen=True, slots=True)
class Collider:
    id: int
    min_x: float
    min_y: float
    max_x: float
    max_y: float
    memberships: Group = Group.OBSTACLE
    filters: Group = Group.ALL
    tag: str = "obstacle"

    @staticmethod
    def cuboid(
        collider_id: int,
        center: Vector2,
        half_width: float,
        half_height: float,
        memberships: Group = Group.OBSTACLE,
        filters: Group = Group.ALL,
        tag: str = "obstacle",
    ) -> "Collider":
        return Collider(
            id=collider_id,
            min_x=center.x - half_width,
            min_y=center.y - half_height,
            max_x=center.x + half_width,
            max_y=center.y + half_height,
            memberships=memberships,
            filters=filters,
            tag=tag,
        )

    def contains(self, point: Vector2) -> bool:
        return self.min_x <= point.x <= self.max_x and self.min_y <= point.y <= self.max_y

    def ray_intersection(self, origin: Vector2, direction: Vector2, max_distance: float, solid: bool) -> Optional[float]:
        """
        Slab test against the box. Returns the time of impact along ``direction`` or None.

        With ``solid`` a ray starting inside the box hits at 0; otherwise it hits where it exits.
        """

        t_enter = -math.inf
        t_exit = math.inf
        for o, d, low, high in (
            (origin.x, direction.x, self.min_x, self.max_x),
            (origin.y, direction.y, self.min_y, self.max_y),
        ):
            if abs(d) < 1e-12:
                if o < low or o > high:
                    return None
                continue
            inv = 1.0 / d
            t1 = (low - o) * inv
            t2 = (high - o) * inv
            if t1 > t2:
                t1, t2 = t2, t1
            t_enter = max(t_enter, t1)
            t_exit = min(t_exit, t2)
            if t_enter > t_exit:
                return None

        if t_exit < 0.0:
            return None
        if t_enter >= 0.0:
            toi = t_enter
        elif solid:
            toi = 0.0
        else:
            toi = t_exit
        if toi > max_distance:
            return None
        return toi


class CollisionOracle(Protocol):
    def cast_ray(
        self,
        origin: Vector2,
        direction: Vector2,
        max_distance: float,
        solid: bool,
        query_filter: QueryFilter,
    ) -> Optional[RayHit]:
        ...


class ObstacleField:
    """Static box colliders hashed into square buckets for ray and point queries."""

    def __init__(self, bucket_size: float) -> None:
        if bucket_size <= 0:
            raise ValueError(f"bucket_size must be positive, got {bucket_size}")
        self._bucket_size = bucket_size
        self._buckets: Dict[Tuple[int, int], List[Collider]] = {}
        self._colliders: List[Collider] = []
        self._by_id: Dict[int, Collider] = {}

    @property
    def colliders(self) -> List[Collider]:
        return self._colliders

    def get(self, collider_id: int) -> Optional[Collider]:
        return self._by_id.get(collider_id)

    def clear(self) -> None:
        self._buckets.clear()
        self._colliders.clear()
        self._by_id.clear()

    def insert(self, collider: Collider) -> None:
        self._colliders.append(collider)
        self._by_id[collider.id] = collider
        for key in self._keys_in_box(collider.min_x, collider.min_y, collider.max_x, collider.max_y):
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = []
                self._buckets[key] = bucket
            bucket.append(collider)

    def cast_ray(
        self,
        origin: Vector2,
        direction: Vector2,
        max_distance: float,
        solid: bool,
        query_filter: QueryFilter,
    ) -> Optional[RayHit]:
        end_x = origin.x + direction.x * max_distance
        end_y = origin.y + direction.y * max_distance
        best: Optional[Collider] = None
        best_toi = math.inf
        seen: set[int] = set()
        buckets = self._buckets

        for key in self._keys_in_box(min(origin.x, end_x), min(origin.y, end_y), max(origin.x, end_x), max(origin.y, end_y)):
            bucket = buckets.get(key)
            if not bucket:
                continue
            for collider in bucket:
                if collider.id in seen:
                    continue
                seen.add(collider.id)
                if not query_filter.accepts(collider):
                    continue
                toi = collider.ray_intersection(origin, direction, max_distance, solid)
                if toi is not None and toi < best_toi:
                    best = collider
                    best_toi = toi

        if best is None:
            return None
        return RayHit(collider_id=best.id, time_of_impact=best_toi, point=origin + direction * best_toi)

    def contains_point(self, point: Vector2, query_filter: QueryFilter) -> Optional[Collider]:
        bucket = self._buckets.get(self._bucket_key(point.x, point.y))
        if not bucket:
            return None
        for collider in bucket:
            if query_filter.accepts(collider) and collider.contains(point):
                return collider
        return None

    def _bucket_key(self, x: float, y: float) -> Tuple[int, int]:
        return (int(x // self._bucket_size), int(y // self._bucket_size))

    def _keys_in_box(self, min_x: float, min_y: float, max_x: float, max_y: float) -> Iterator[Tuple[int, int]]:
        low_x, low_y = self._bucket_key(min_x, min_y)
        high_x, high_y = self._bucket_key(max_x, max_y)
        for bx in range(low_x, high_x + 1):
            for by in range(low_y, high_y + 1):
                yield (bx, by)
