import datetime
import threading
from concurrent.futures import ThreadPoolExecutor

import pydantic
import pytest

from depository.core.statistics import (
    Identifier,
    InMemoryStatisticsRepository,
    ResolvedEntry,
    StatisticsRepository,
)

A = Identifier("releases", "com/example/a/1.0.0/a-1.0.0.jar")
B = Identifier("releases", "com/example/b/2.0.0/b-2.0.0.jar")
C = Identifier("snapshots", "org/test/c/0.1-SNAPSHOT/c-0.1-SNAPSHOT.jar")


@pytest.fixture
def statistics() -> InMemoryStatisticsRepository:
    return InMemoryStatisticsRepository()


def test_identifier() -> None:
    assert str(A) == "releases/com/example/a/1.0.0/a-1.0.0.jar"
    assert A == Identifier("releases", "com/example/a/1.0.0/a-1.0.0.jar")
    assert sorted([C, B, A]) == [A, B, C]


def test_resolved_entry_is_read_only() -> None:
    entry = ResolvedEntry(gav="a", count=1)

    with pytest.raises(pydantic.ValidationError):
        entry.count = 2  # type: ignore[misc]

    with pytest.raises(pydantic.ValidationError):
        ResolvedEntry(gav="a", count=-1)


def test_is_a_statistics_repository(statistics: InMemoryStatisticsRepository) -> None:
    assert isinstance(statistics, StatisticsRepository)


def test_empty(statistics: InMemoryStatisticsRepository) -> None:
    assert statistics.count_unique_resolved_requests() == 0
    assert statistics.count_resolved_requests() == 0
    assert statistics.find_resolved_requests_by_phrase("releases", "", 10) == []


def test_increment(statistics: InMemoryStatisticsRepository, today: datetime.date) -> None:
    statistics.increment_resolved_requests({A: 3}, today)
    statistics.increment_resolved_requests({A: 2, B: 1}, today)

    assert statistics.count_unique_resolved_requests() == 2
    assert statistics.count_resolved_requests() == 6
    assert statistics.find_resolved_requests_by_phrase("releases", "/a/", 10) == [
        ResolvedEntry(gav=A.gav, count=5)
    ]


def test_date_is_ignored(statistics: InMemoryStatisticsRepository) -> None:
    statistics.increment_resolved_requests({A: 1}, datetime.date(2020, 1, 1))
    statistics.increment_resolved_requests({A: 1}, datetime.date(2024, 12, 31))

    assert statistics.find_resolved_requests_by_phrase("releases", "a-1.0.0", 1) == [
        ResolvedEntry(gav=A.gav, count=2)
    ]


def test_zero_count_registers_identifier(
    statistics: InMemoryStatisticsRepository, today: datetime.date
) -> None:
    statistics.increment_resolved_requests({A: 0}, today)

    assert statistics.count_unique_resolved_requests() == 1
    assert statistics.count_resolved_requests() == 0


def test_negative_count_is_ignored(
    statistics: InMemoryStatisticsRepository,
    today: datetime.date,
    caplog: pytest.LogCaptureFixture,
) -> None:
    statistics.increment_resolved_requests({A: 4, B: -2}, today)

    assert statistics.count_unique_resolved_requests() == 1
    assert statistics.count_resolved_requests() == 4
    assert "Ignoring negative count -2" in caplog.text


class TestFindResolvedRequestsByPhrase:
    @pytest.fixture
    def statistics(self, today: datetime.date) -> InMemoryStatisticsRepository:
        statistics = InMemoryStatisticsRepository()
        statistics.increment_resolved_requests({A: 5, B: 10, C: 1}, today)
        return statistics

    def test_ordered_by_count(self, statistics: InMemoryStatisticsRepository) -> None:
        assert statistics.find_resolved_requests_by_phrase("releases", "", 10) == [
            ResolvedEntry(gav=B.gav, count=10),
            ResolvedEntry(gav=A.gav, count=5),
            ResolvedEntry(gav=C.gav, count=1),
        ]

    def test_limit(self, statistics: InMemoryStatisticsRepository) -> None:
        assert statistics.find_resolved_requests_by_phrase("releases", "", 2) == [
            ResolvedEntry(gav=B.gav, count=10),
            ResolvedEntry(gav=A.gav, count=5),
        ]

    @pytest.mark.parametrize("limit", [0, -1])
    def test_non_positive_limit(self, statistics: InMemoryStatisticsRepository, limit: int) -> None:
        assert statistics.find_resolved_requests_by_phrase("releases", "", limit) == []

    @pytest.mark.parametrize(
        "phrase, expected_gavs",
        [
            ("com/example", [B.gav, A.gav]),
            ("snapshots/", [C.gav]),
            ("SNAPSHOT", [C.gav]),
            ("snapshot/", []),
            ("COM/EXAMPLE", []),
            ("missing", []),
        ],
    )
    def test_phrase_is_case_sensitive_substring(
        self, statistics: InMemoryStatisticsRepository, phrase: str, expected_gavs: list[str]
    ) -> None:
        entries = statistics.find_resolved_requests_by_phrase("releases", phrase, 10)
        assert [entry.gav for entry in entries] == expected_gavs

    def test_equal_counts_are_ordered_by_identifier(self, today: datetime.date) -> None:
        statistics = InMemoryStatisticsRepository()
        identifiers = [Identifier("releases", f"com/example/lib-{i}/1.0") for i in (3, 1, 2)]
        statistics.increment_resolved_requests(dict.fromkeys(identifiers, 7), today)

        entries = statistics.find_resolved_requests_by_phrase("releases", "lib", 10)

        assert [entry.gav for entry in entries] == [
            "com/example/lib-1/1.0",
            "com/example/lib-2/1.0",
            "com/example/lib-3/1.0",
        ]

    def test_queries_do_not_mutate(self, statistics: InMemoryStatisticsRepository) -> None:
        statistics.find_resolved_requests_by_phrase("releases", "", 10)
        statistics.find_resolved_requests_by_phrase("releases", "missing", 10)

        assert statistics.count_unique_resolved_requests() == 3
        assert statistics.count_resolved_requests() == 16


def test_plain_string_identifiers(
    statistics: InMemoryStatisticsRepository, today: datetime.date
) -> None:
    statistics.increment_resolved_requests({"a": 3}, today)  # type: ignore[dict-item]
    statistics.increment_resolved_requests({"a": 2, "b": 1}, today)  # type: ignore[dict-item]

    assert statistics.find_resolved_requests_by_phrase("releases", "a", 10) == [
        ResolvedEntry(gav="a", count=5)
    ]


@pytest.mark.parametrize("shards", [1, 4, 16])
def test_concurrent_increments_of_same_identifier(shards: int, today: datetime.date) -> None:
    statistics = InMemoryStatisticsRepository(shards=shards)
    n_callers, n_increments = 8, 1000

    def increment() -> None:
        for _ in range(n_increments):
            statistics.increment_resolved_requests({A: 1}, today)

    threads = [threading.Thread(target=increment) for _ in range(n_callers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert statistics.count_unique_resolved_requests() == 1
    assert statistics.count_resolved_requests() == n_callers * n_increments


def test_concurrent_increments_of_many_identifiers(
    statistics: InMemoryStatisticsRepository, today: datetime.date
) -> None:
    identifiers = [Identifier("releases", f"com/example/lib-{i}/1.0") for i in range(50)]

    def increment(offset: int) -> None:
        for i in range(200):
            identifier = identifiers[(offset + i) % len(identifiers)]
            statistics.increment_resolved_requests({identifier: 1, A: 1}, today)

    with ThreadPoolExecutor(max_workers=8) as executor:
        list(executor.map(increment, range(16)))

    assert statistics.count_unique_resolved_requests() == 51
    assert statistics.count_resolved_requests() == 2 * 16 * 200
    assert statistics.find_resolved_requests_by_phrase("releases", "a-1.0.0", 1) == [
        ResolvedEntry(gav=A.gav, count=16 * 200)
    ]


def test_reads_during_writes_never_fail(
    statistics: InMemoryStatisticsRepository, today: datetime.date
) -> None:
    stop = threading.Event()
    totals: list[int] = []
    uniques: list[int] = []

    def write() -> None:
        for i in range(2000):
            statistics.increment_resolved_requests({Identifier("releases", f"lib-{i}"): 1}, today)
        stop.set()

    def read() -> None:
        while not stop.is_set():
            totals.append(statistics.count_resolved_requests())
            uniques.append(statistics.count_unique_resolved_requests())
            statistics.find_resolved_requests_by_phrase("releases", "lib", 5)

    threads = [threading.Thread(target=write), threading.Thread(target=read)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    # totals never decrease
    assert totals == sorted(totals)
    assert uniques == sorted(uniques)
    assert statistics.count_resolved_requests() == 2000
    assert statistics.count_unique_resolved_requests() == 2000


def test_at_least_one_shard() -> None:
    with pytest.raises(ValueError, match="At least one shard is required"):
        InMemoryStatisticsRepository(shards=0)
