# roulette/core/errors.py
# Error kinds surfaced by the pipeline. None of them is fatal to the process:
# each aborts only the operation in flight.

from typing import Optional

from roulette.models.dto import ErrorResponse


class RouletteError(Exception):
    """Base class. `error` is a stable machine code, `user_message` the default text."""

    error = "ROULETTE_ERROR"
    user_message = "Something went wrong."

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.user_message
        super().__init__(self.detail)

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(error=self.error, detail=self.detail)


class LocationUnavailableError(RouletteError):
    error = "LOCATION_UNAVAILABLE"
    user_message = "Please enable location access (or pass a location) to fetch restaurants."


class NetworkError(RouletteError):
    error = "NETWORK_ERROR"
    user_message = "Could not reach the map service. Please try again."

    def __init__(self, detail: Optional[str] = None, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(detail)


class EmptyResultSetError(RouletteError):
    """Nothing usable came back. `reason` tells the two cases apart."""

    NO_RESULTS = "no_results"
    NO_NAMED_RESULTS = "no_named_results"

    error = "EMPTY_RESULT_SET"
    _messages = {
        NO_RESULTS: "No restaurants found! Try adjusting your settings.",
        NO_NAMED_RESULTS: "No restaurants found with names! Try adjusting your settings.",
    }

    def __init__(self, reason: str = NO_RESULTS):
        if reason not in self._messages:
            raise ValueError(f"unknown empty result reason: {reason!r}")
        self.reason = reason
        super().__init__(self._messages[reason])


class EmptySelectionError(RouletteError):
    error = "EMPTY_SELECTION"
    user_message = "The wheel is empty. Fetch restaurants before spinning."


class IndexOutOfRangeError(RouletteError, IndexError):
    error = "INDEX_OUT_OF_RANGE"
    user_message = "No history entry at that position."

    def __init__(self, index: int, size: int):
        self.index = index
        self.size = size
        super().__init__(f"History index {index} is out of range (history has {size} entries).")


class StaleResultError(RouletteError):
    """A newer fetch was issued while this one was in flight; its result was discarded."""

    error = "STALE_RESULT"
    user_message = "A newer search replaced this one."

    def __init__(self, generation: int, latest: int):
        self.generation = generation
        self.latest = latest
        super().__init__(f"Discarded result of fetch #{generation}; latest is #{latest}.")
