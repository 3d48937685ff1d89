import asyncio

import pytest

from compliance_console.sync.cache import CacheKey, RemoteCache

pytestmark = pytest.mark.unit


def test_cache_key_ignores_order_and_none():
    a = CacheKey.of("/requirements", {"page": 1, "due": None, "archived": True})
    b = CacheKey.of("/requirements", {"archived": True, "page": 1})
    assert a == b
    assert a.as_params() == {"archived": "true", "page": "1"}


def test_seed_is_served_until_first_response():
    async def scenario():
        gate = asyncio.Event()

        async def fetch(key):
            await gate.wait()
            return "fresh"

        cache = RemoteCache(fetch, CacheKey.of("/x"), seed="seed")
        task = asyncio.ensure_future(cache.revalidate())
        await asyncio.sleep(0)
        assert cache.data == "seed"
        assert cache.is_validating
        assert not cache.is_loading
        gate.set()
        assert await task == "fresh"
        assert cache.data == "fresh"
        assert not cache.is_validating

    asyncio.run(scenario())


def test_response_for_previous_key_is_dropped():
    async def scenario():
        gates = {"/a": asyncio.Event(), "/b": asyncio.Event()}

        async def fetch(key):
            await gates[key.path].wait()
            return key.path

        seen = []
        cache = RemoteCache(fetch, CacheKey.of("/a"))
        cache.subscribe(seen.append)
        slow = asyncio.ensure_future(cache.revalidate())
        await asyncio.sleep(0)
        switched = asyncio.ensure_future(cache.set_key(CacheKey.of("/b")))
        await asyncio.sleep(0)
        gates["/b"].set()
        assert await switched == "/b"
        gates["/a"].set()
        assert await slow is None
        assert cache.data == "/b"
        assert seen == ["/b"]

    asyncio.run(scenario())


def test_last_resolved_response_wins_for_same_key():
    async def scenario():
        gates = [asyncio.Event(), asyncio.Event()]
        calls = []

        async def fetch(key):
            index = len(calls)
            calls.append(index)
            await gates[index].wait()
            return f"response-{index}"

        cache = RemoteCache(fetch, CacheKey.of("/x"))
        first = asyncio.ensure_future(cache.revalidate())
        second = asyncio.ensure_future(cache.revalidate())
        await asyncio.sleep(0)
        gates[1].set()
        await second
        gates[0].set()
        await first
        assert cache.data == "response-0"

    asyncio.run(scenario())


def test_error_keeps_previous_data():
    async def scenario():
        outcomes = ["ok", RuntimeError("boom")]

        async def fetch(key):
            outcome = outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        errors = []
        cache = RemoteCache(fetch, CacheKey.of("/x"))
        cache.subscribe(on_error=errors.append)
        await cache.revalidate()
        assert await cache.revalidate() is None
        assert cache.data == "ok"
        assert str(cache.error) == "boom"
        assert [str(e) for e in errors] == ["boom"]

    asyncio.run(scenario())


def test_set_key_with_same_key_does_not_refetch():
    async def scenario():
        calls = []

        async def fetch(key):
            calls.append(key)
            return len(calls)

        cache = RemoteCache(fetch, CacheKey.of("/x"))
        await cache.revalidate()
        assert await cache.set_key(CacheKey.of("/x")) == 1
        assert len(calls) == 1

    asyncio.run(scenario())


def test_close_discards_late_response():
    async def scenario():
        gate = asyncio.Event()
        calls = []

        async def fetch(key):
            calls.append(key)
            await gate.wait()
            return "late"

        cache = RemoteCache(fetch, CacheKey.of("/x"))
        pending = asyncio.ensure_future(cache.revalidate())
        await asyncio.sleep(0)
        await cache.close()
        gate.set()
        assert await pending is None
        assert cache.data is None
        assert cache.closed
        with pytest.raises(RuntimeError):
            cache.start()

    asyncio.run(scenario())


def test_mutate_publishes_locally():
    async def fetch(key):
        raise AssertionError("not fetched")

    seen = []
    cache = RemoteCache(fetch, CacheKey.of("/x"))
    cache.subscribe(seen.append)
    cache.mutate("local")
    assert cache.data == "local"
    assert seen == ["local"]
