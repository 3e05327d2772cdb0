from __future__ import annotations

import pytest

from adcvd_tracker.services.result_cache import InMemoryTTLCache, build_cache_key, cached_run


class _Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_fresh_entries_are_returned_and_stale_ones_evicted_on_read():
    clock = _Clock()
    cache = InMemoryTTLCache(ttl_seconds=60, clock=clock)
    cache.set("k", {"countries": []})

    clock.now += 59
    assert cache.get("k").payload == {"countries": []}

    clock.now += 2
    assert len(cache) == 1
    assert cache.get("k") is None
    assert len(cache) == 0


def test_returned_payloads_are_copies():
    cache = InMemoryTTLCache(ttl_seconds=60)
    payload = {"countries": [{"country": "China"}]}
    cache.set("k", payload)
    payload["countries"].clear()

    entry = cache.get("k")
    entry.payload["countries"].append({"country": "Vietnam"})
    assert cache.get("k").payload == {"countries": [{"country": "China"}]}


def test_cache_key_includes_pipeline_inputs_and_options_digest():
    base = build_cache_key("tracker", "7317.00.55", "2024", {"fetch_cap": 30})
    assert base.startswith("tracker:7317.00.55:2024:")
    assert base == build_cache_key("tracker", "7317.00.55", "2024", {"fetch_cap": 30})
    assert base != build_cache_key("verifier", "7317.00.55", "2024", {"fetch_cap": 30})
    assert base != build_cache_key("tracker", "7317.00.55", "2024", {"fetch_cap": 12})
    assert base != build_cache_key("tracker", "7317.00.55", "2023", {"fetch_cap": 30})


@pytest.mark.asyncio
async def test_cached_run_computes_once():
    cache = InMemoryTTLCache(ttl_seconds=60)
    calls = 0

    async def compute():
        nonlocal calls
        calls += 1
        return {"n": calls}

    first, first_hit = await cached_run(cache, "k", compute)
    second, second_hit = await cached_run(cache, "k", compute)

    assert calls == 1
    assert (first_hit, second_hit) == (False, True)
    assert first == second == {"n": 1}


@pytest.mark.asyncio
async def test_failures_are_not_cached():
    cache = InMemoryTTLCache(ttl_seconds=60)

    async def fail():
        raise RuntimeError("feed down")

    with pytest.raises(RuntimeError):
        await cached_run(cache, "k", fail)
    assert cache.get("k") is None
