"""Strategies for filling a week automatically."""

import random
from dataclasses import dataclass, field
from typing import Protocol

from menu_scheduler.domain.combinations import Combination


class ScheduleStrategy(Protocol):
    """Chooses the combinations for one day of the week."""

    def choose_for_day(self, pool: list[Combination], day: str) -> list[Combination]:
        """Return the ordered combinations to assign to `day`."""


@dataclass
class UniformRandomStrategy(ScheduleStrategy):
    """Placeholder heuristic: a random count, then uniform draws.

    Results are non-deterministic unless a seeded `rng` is supplied. Draws
    are made with replacement, so a day may list the same combination more
    than once.
    """

    min_per_day: int = 2
    max_per_day: int = 4
    rng: random.Random = field(default_factory=random.Random)

    def choose_for_day(self, pool: list[Combination], day: str) -> list[Combination]:
        if not pool:
            return []
        count = self.rng.randint(self.min_per_day, self.max_per_day)
        return [pool[self.rng.randrange(len(pool))] for _ in range(count)]
