from __future__ import annotations

import random

from pygame.math import Vector2


class DeterministicRng:
    def __init__(self, seed: int):
        self._seed = seed
        self._random = random.Random(seed)

    def reset(self) -> None:
        self._random.seed(self._seed)

    def next_range(self, low: float, high: float) -> float:
        if high <= low:
            return low
        return self._random.uniform(low, high)

    def next_point(self, min_x: float, max_x: float, min_y: float, max_y: float) -> Vector2:
        return Vector2(self.next_range(min_x, max_x), self.next_range(min_y, max_y))
