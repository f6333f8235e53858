"""Accumulation and lookup of artifact resolution statistics."""

import abc
import datetime
import logging
import threading
from collections.abc import Iterator, Mapping
from dataclasses import dataclass

import pydantic

log = logging.getLogger(__name__)

DEFAULT_SHARDS = 16


@dataclass(frozen=True, order=True)
class Identifier:
    """Coordinates of a resolved artifact within a repository."""

    repository: str
    gav: str

    def __str__(self) -> str:
        return f"{self.repository}/{self.gav}"


class ResolvedEntry(pydantic.BaseModel, frozen=True):
    """How many times an artifact was resolved."""

    gav: str
    count: int = pydantic.Field(ge=0)


class StatisticsRepository(abc.ABC):
    """Storage of resolved requests counts.

    Implementations are called concurrently by all request handlers and must never fail on
    valid input, statistics must not break the serving path.
    """

    @abc.abstractmethod
    def increment_resolved_requests(
        self, requests: Mapping[Identifier, int], date: datetime.date
    ) -> None:
        """Add the given counts to the recorded ones.

        :param requests: resolved artifacts and how many times each of them was resolved
        :param date: the bucket the requests belong to, see ResolvedRequestsInterval.bucket()
        """

    @abc.abstractmethod
    def find_resolved_requests_by_phrase(
        self, repository: str, phrase: str, limit: int
    ) -> list[ResolvedEntry]:
        """Find the most resolved artifacts matching a phrase, most resolved first."""

    @abc.abstractmethod
    def count_unique_resolved_requests(self) -> int:
        """Return the number of distinct artifacts ever resolved."""

    @abc.abstractmethod
    def count_resolved_requests(self) -> int:
        """Return the total number of resolved requests."""


def _gav_of(identifier: Identifier | str) -> str:
    # plain string keys are accepted as their own coordinates
    if isinstance(identifier, Identifier):
        return identifier.gav
    return str(identifier)


class _Shard:
    __slots__ = ("counts", "lock")

    def __init__(self) -> None:
        self.counts: dict[Identifier, int] = {}
        self.lock = threading.Lock()


class InMemoryStatisticsRepository(StatisticsRepository):
    """
    Statistics kept in memory for the lifetime of the process.

    Identifiers are spread across shards, each guarded by its own lock, so that concurrent
    increments of different artifacts rarely wait for each other while increments of the same
    artifact are never lost.

    Only cumulative totals are kept, the date of increments is ignored. Queries copy the shards
    one by one and are therefore weakly consistent: a query running concurrently with an
    increment may see some of its counts but not others.

    >>> statistics = InMemoryStatisticsRepository()
    >>> statistics.increment_resolved_requests(
    ...     {Identifier("releases", "a/b/1.0"): 2}, datetime.date.today()
    ... )
    >>> statistics.count_resolved_requests()
    2
    """

    def __init__(self, shards: int = DEFAULT_SHARDS) -> None:
        if shards < 1:
            raise ValueError(f"At least one shard is required, got {shards}")
        self._shards = tuple(_Shard() for _ in range(shards))

    def _shard_for(self, identifier: Identifier) -> _Shard:
        return self._shards[hash(identifier) % len(self._shards)]

    def _snapshot(self) -> Iterator[tuple[Identifier, int]]:
        for shard in self._shards:
            with shard.lock:
                items = list(shard.counts.items())
            yield from items

    def increment_resolved_requests(
        self,
        requests: Mapping[Identifier, int],
        date: datetime.date,  # noqa: ARG002
    ) -> None:
        for identifier, count in requests.items():
            if count < 0:
                log.warning("Ignoring negative count %d of resolved %s", count, identifier)
                continue

            shard = self._shard_for(identifier)
            with shard.lock:
                shard.counts[identifier] = shard.counts.get(identifier, 0) + count

    def find_resolved_requests_by_phrase(
        self,
        repository: str,  # noqa: ARG002
        phrase: str,
        limit: int,
    ) -> list[ResolvedEntry]:
        if limit <= 0:
            return []

        matching = [
            (identifier, count)
            for identifier, count in self._snapshot()
            if phrase in str(identifier)
        ]
        # equal counts are ordered by the identifier to keep results stable
        matching.sort(key=lambda item: (-item[1], str(item[0])))

        return [
            ResolvedEntry(gav=_gav_of(identifier), count=count)
            for identifier, count in matching[:limit]
        ]

    def count_unique_resolved_requests(self) -> int:
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += len(shard.counts)
        return total

    def count_resolved_requests(self) -> int:
        return sum(count for _, count in self._snapshot())
