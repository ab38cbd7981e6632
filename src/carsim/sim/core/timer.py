from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class RepeatingTimer:
    duration: float
    elapsed: float = 0.0
    times_finished_this_tick: int = 0

    def tick(self, delta: float) -> None:
        self.times_finished_this_tick = 0
        if self.duration <= 0.0:
            self.times_finished_this_tick = 1
            return
        self.elapsed += delta
        while self.elapsed >= self.duration:
            self.elapsed -= self.duration
            self.times_finished_this_tick += 1

    @property
    def just_finished(self) -> bool:
        return self.times_finished_this_tick > 0
