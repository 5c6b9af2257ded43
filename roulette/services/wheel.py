# roulette/services/wheel.py
# Random subset selection for the wheel and the spin draw.

import random
from typing import Optional, Sequence, Union

import structlog

from roulette.core.config import settings
from roulette.core.errors import EmptySelectionError
from roulette.models.dto import Candidate, WheelOption, WheelState

logger = structlog.get_logger(__name__)

WheelEntry = Union[Candidate, WheelOption]


def to_option(entry: WheelEntry) -> WheelOption:
    if isinstance(entry, WheelOption):
        return entry
    return WheelOption(name=entry.name, map_view_url=entry.map_view_url)


class WheelSelector:
    """
    Builds wheels and spins them.

    - `build_wheel` shuffles uniformly and keeps the first `size` candidates.
    - `spin` draws one option uniformly at random.
    - `add_to_wheel` re-injects an entry without ever exceeding `size`.

    Pass a seeded `random.Random` for reproducible draws.
    """

    def __init__(self, rng: Optional[random.Random] = None, size: int = settings.WHEEL_SIZE):
        if size < 1:
            raise ValueError("wheel size must be at least 1")
        self._rng = rng or random.Random()
        self.size = size

    def shuffle(self, items: Sequence) -> list:
        """Fisher-Yates over a copy; every permutation is equally likely."""
        pool = list(items)
        for i in range(len(pool) - 1, 0, -1):
            j = self._rng.randint(0, i)
            pool[i], pool[j] = pool[j], pool[i]
        return pool

    def build_wheel(self, candidates: Sequence[Candidate]) -> WheelState:
        chosen = self.shuffle(candidates)[: self.size]
        wheel = WheelState(options=[to_option(c) for c in chosen])
        logger.debug("wheel_built", candidates=len(candidates), options=len(wheel))
        return wheel

    def spin(self, wheel: WheelState) -> WheelOption:
        if wheel.is_empty:
            raise EmptySelectionError()
        index = self._rng.randrange(len(wheel.options))
        winner = wheel.options[index]
        logger.info("wheel_spun", index=index, winner=winner.name, options=len(wheel))
        return winner

    def add_to_wheel(self, wheel: WheelState, entry: WheelEntry) -> WheelState:
        """
        Returns a new wheel with `entry` appended. A full wheel loses its last
        option first, so the new entry takes over the final slot.
        """
        options = list(wheel.options)
        if len(options) >= self.size:
            evicted = options.pop()
            logger.debug("wheel_option_evicted", name=evicted.name)
        options.append(to_option(entry))
        return WheelState(options=options)
