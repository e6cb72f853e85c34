"""Tests for the query cache."""

import threading

from nestblue_sync.cache import QueryCache

from conftest import FakeClock


class Counter:
    """Fetch function counting its calls."""

    def __init__(self, *results) -> None:
        self.results = list(results)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result


def test_fresh_entry_is_served_from_cache(clock: FakeClock) -> None:
    """Test that a second fetch inside the stale window does not call the function."""
    cache = QueryCache(clock=clock)
    fn = Counter(["a"])

    first = cache.fetch(("costs",), fn, stale_time=300)
    clock.advance(299)
    second = cache.fetch(("costs",), fn, stale_time=300)

    assert fn.calls == 1
    assert first.from_cache is False
    assert second.from_cache is True
    assert second.data == ["a"]


def test_stale_entry_is_refetched(clock: FakeClock) -> None:
    """Test that fetching after the stale window calls the function again."""
    cache = QueryCache(clock=clock)
    fn = Counter(["a"], ["b"])

    cache.fetch(("costs",), fn, stale_time=300)
    clock.advance(300)
    assert cache.is_stale(("costs",))
    result = cache.fetch(("costs",), fn, stale_time=300)

    assert fn.calls == 2
    assert result.data == ["b"]


def test_force_refetches_fresh_entry(clock: FakeClock) -> None:
    """Test refetch ignores freshness."""
    cache = QueryCache(clock=clock)
    fn = Counter(1, 2)
    cache.fetch(("k",), fn)
    assert cache.refetch(("k",), fn).data == 2
    assert fn.calls == 2


def test_invalidate_by_prefix(clock: FakeClock) -> None:
    """Test that invalidating a prefix marks every matching key stale."""
    cache = QueryCache(clock=clock)
    cache.set_data(("tasks",), [])
    cache.set_data(("tasks", "project", "p1"), [])
    cache.set_data(("sprints",), [])

    assert cache.invalidate(("tasks",)) == 2
    assert cache.is_stale(("tasks",))
    assert cache.is_stale(("tasks", "project", "p1"))
    assert not cache.is_stale(("sprints",))


def test_invalidate_exact(clock: FakeClock) -> None:
    """Test exact invalidation leaves longer keys alone."""
    cache = QueryCache(clock=clock)
    cache.set_data(("tasks",), [])
    cache.set_data(("tasks", "project", "p1"), [])

    assert cache.invalidate(("tasks",), exact=True) == 1
    assert not cache.is_stale(("tasks", "project", "p1"))


def test_invalidated_entry_keeps_data_until_refetch(clock: FakeClock) -> None:
    """Test that invalidation does not drop data."""
    cache = QueryCache(clock=clock)
    fn = Counter(["old"], ["new"])
    cache.fetch(("k",), fn)
    cache.invalidate(("k",))
    assert cache.get_data(("k",)) == ["old"]
    assert cache.fetch(("k",), fn).data == ["new"]


def test_failed_fetch_keeps_previous_data(clock: FakeClock) -> None:
    """Test that an error is recorded without discarding the last good data."""
    cache = QueryCache(clock=clock)
    error = RuntimeError("server down")
    fn = Counter(["a"], error)

    cache.fetch(("k",), fn)
    result = cache.refetch(("k",), fn)

    assert result.error is error
    assert result.data == ["a"]
    assert not result.is_success
    assert cache.peek(("k",)).error is error


def test_failed_fetch_is_not_retried(clock: FakeClock) -> None:
    """Test that one fetch makes exactly one call even when it fails."""
    cache = QueryCache(clock=clock)
    fn = Counter(RuntimeError("boom"))

    result = cache.fetch(("k",), fn)

    assert fn.calls == 1
    assert result.data is None
    assert isinstance(result.error, RuntimeError)


def test_error_entry_is_refetched(clock: FakeClock) -> None:
    """Test that an entry whose last fetch failed is never fresh."""
    cache = QueryCache(clock=clock)
    fn = Counter(RuntimeError("boom"), ["ok"])
    cache.fetch(("k",), fn)
    result = cache.fetch(("k",), fn)
    assert result.is_success
    assert result.data == ["ok"]


def test_garbage_collection(clock: FakeClock) -> None:
    """Test that unread entries expire after their gc time."""
    cache = QueryCache(clock=clock)
    cache.fetch(("old",), Counter(1), gc_time=600)
    clock.advance(400)
    cache.fetch(("recent",), Counter(2), gc_time=600)
    clock.advance(201)

    assert cache.collect_garbage() == 1
    assert ("old",) not in cache
    assert ("recent",) in cache
    assert len(cache) == 1


def test_peek_does_not_fetch(clock: FakeClock) -> None:
    """Test peeking at missing and present keys."""
    cache = QueryCache(clock=clock)
    assert cache.peek(("k",)) is None
    assert cache.is_stale(("k",))
    cache.set_data(("k",), [1])
    assert cache.peek(("k",)).data == [1]


def test_remove_and_clear(clock: FakeClock) -> None:
    """Test removing by prefix and clearing."""
    cache = QueryCache(clock=clock)
    cache.set_data(("tasks",), [])
    cache.set_data(("tasks", "project", "p1"), [])
    cache.set_data(("costs",), [])
    cache.remove(("tasks",))
    assert len(cache) == 1
    cache.clear()
    assert len(cache) == 0


def test_concurrent_fetches_share_one_call() -> None:
    """Test that fetches of one key while a fetch is running share its result."""
    cache = QueryCache()
    started = threading.Event()
    release = threading.Event()
    calls = []

    def fetch_slowly():
        calls.append(1)
        started.set()
        release.wait(timeout=5)
        return ["shared"]

    results = []
    first = threading.Thread(target=lambda: results.append(cache.fetch(("k",), fetch_slowly)))
    first.start()
    assert started.wait(timeout=5)
    assert cache.is_fetching(("k",))

    second = threading.Thread(target=lambda: results.append(cache.fetch(("k",), fetch_slowly)))
    second.start()
    release.set()
    first.join(timeout=5)
    second.join(timeout=5)

    assert len(calls) == 1
    assert [result.data for result in results] == [["shared"], ["shared"]]
    assert not cache.is_fetching(("k",))
