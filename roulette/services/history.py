# roulette/services/history.py
# Bounded, newest-first log of past winners.

from datetime import datetime, timezone
from typing import Callable, Iterable, Iterator, List, Tuple

from roulette.core.config import settings
from roulette.core.errors import IndexOutOfRangeError
from roulette.models.dto import Candidate, HistoryEntry


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso_timestamp(dt: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision, e.g. 2025-10-25T04:00:00.123Z"""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class HistoryStore:
    """
    Append-only log capped at `limit` entries, most recent first.

    Entries are never edited; the only way one leaves the log is by being
    pushed past the tail by newer appends.
    """

    def __init__(
        self,
        entries: Iterable[HistoryEntry] = (),
        limit: int = settings.HISTORY_LIMIT,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.limit = limit
        self._clock = clock
        self._entries: List[HistoryEntry] = list(entries)[:limit]

    def append(self, candidate: Candidate) -> HistoryEntry:
        data = candidate.model_dump()
        data.pop("timestamp", None)
        entry = HistoryEntry(**data, timestamp=iso_timestamp(self._clock()))
        self._entries.insert(0, entry)
        del self._entries[self.limit:]
        return entry

    def get(self, index: int) -> HistoryEntry:
        if index < 0 or index >= len(self._entries):
            raise IndexOutOfRangeError(index, len(self._entries))
        return self._entries[index]

    @property
    def entries(self) -> Tuple[HistoryEntry, ...]:
        return tuple(self._entries)

    def to_payload(self) -> List[dict]:
        return [entry.model_dump() for entry in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[HistoryEntry]:
        return iter(tuple(self._entries))
