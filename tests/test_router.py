import asyncio

import pytest

from agent_brain.errors import ConfigurationError, FatalRoutingError
from agent_brain.models import Complexity
from agent_brain.providers import ProviderOptions, ProviderRegistry
from agent_brain.router import ProviderRouter, ResultCache
from conftest import FakeClock, FakeProvider


def _router(*providers, **kw):
    return ProviderRouter(ProviderRegistry(providers), **kw)


def test_candidates_excludes_incapable_providers():
    router = _router(FakeProvider("small", "simple"), FakeProvider("big", "complex"))
    assert router.candidates(Complexity.SIMPLE) == ["small", "big"]
    assert router.candidates(Complexity.COMPLEX) == ["big"]


def test_candidates_order_by_score_then_declaration():
    router = _router(FakeProvider("a"), FakeProvider("b"), FakeProvider("c"))
    order = router.candidates(Complexity.MODERATE, ranking=[("c", 2.0), ("a", 0.7)])
    # b has no score and takes the baseline, tying with a
    assert order == ["c", "a", "b"]


def test_preferred_provider_goes_first_only_when_capable():
    router = _router(FakeProvider("a", "simple"), FakeProvider("b"))
    assert router.candidates(Complexity.SIMPLE, preferred_provider="b") == ["b", "a"]
    assert router.candidates(Complexity.COMPLEX, preferred_provider="a") == ["b"]


def test_no_capable_provider_is_configuration_error():
    a = FakeProvider("a", "simple")
    router = _router(a)
    with pytest.raises(ConfigurationError):
        asyncio.run(router.complete("hi", complexity=Complexity.COMPLEX, task_type="legal"))
    assert a.calls == 0


def test_first_choice_success_is_not_self_healed():
    router = _router(FakeProvider("a"), FakeProvider("b"))
    result = asyncio.run(router.complete("hi", complexity=Complexity.SIMPLE, task_type="triage"))
    assert result.provider == "a"
    assert result.response == "a: hi"
    assert result.self_healed is False
    assert [a.provider for a in result.attempts] == ["a"]


def test_fallback_marks_self_healed_and_records_attempts():
    a, b = FakeProvider("a"), FakeProvider("b")
    a.fail_next = 1
    router = _router(a, b)
    result = asyncio.run(router.complete("hi", complexity=Complexity.SIMPLE, task_type="triage"))
    assert result.provider == "b"
    assert result.self_healed is True
    assert [(x.provider, x.success) for x in result.attempts] == [("a", False), ("b", True)]
    assert result.attempts[0].error == "injected fault"


def test_exhausted_chain_records_every_attempt():
    providers = [FakeProvider(p, always_fail=True) for p in ("a", "b", "c")]
    router = _router(*providers)
    with pytest.raises(FatalRoutingError) as info:
        asyncio.run(router.complete("hi", complexity=Complexity.MODERATE, task_type="t"))
    assert len(info.value.attempts) == 3
    assert all(not a.success for a in info.value.attempts)
    assert all(p.calls == 1 for p in providers)


def test_fallback_disabled_stops_after_first_failure():
    a, b = FakeProvider("a", always_fail=True), FakeProvider("b")
    router = _router(a, b)
    with pytest.raises(FatalRoutingError) as info:
        asyncio.run(
            router.complete("hi", complexity=Complexity.SIMPLE, task_type="t", fallback_chain=False)
        )
    assert len(info.value.attempts) == 1
    assert b.calls == 0


def test_non_retryable_failure_stops_chain():
    a, b = FakeProvider("a", always_fail=True, retryable=False), FakeProvider("b")
    router = _router(a, b)
    with pytest.raises(FatalRoutingError):
        asyncio.run(router.complete("hi", complexity=Complexity.SIMPLE, task_type="t"))
    assert b.calls == 0


def test_timeout_counts_as_failure_and_falls_back():
    slow, fast = FakeProvider("slow", delay=1.0), FakeProvider("fast")
    router = _router(slow, fast, timeout=0.05)
    result = asyncio.run(router.complete("hi", complexity=Complexity.SIMPLE, task_type="t"))
    assert result.provider == "fast"
    assert result.self_healed is True
    assert "timed out" in result.attempts[0].error


def test_unexpected_exception_is_treated_as_failure():
    class Broken(FakeProvider):
        async def invoke(self, prompt, options):
            raise RuntimeError("adapter bug")

    router = _router(Broken("broken"), FakeProvider("ok"))
    result = asyncio.run(router.complete("hi", complexity=Complexity.SIMPLE, task_type="t"))
    assert result.provider == "ok"
    assert result.attempts[0].error == "adapter bug"


def test_identical_requests_within_ttl_are_cached():
    a = FakeProvider("a", cost=1.0)
    router = _router(a)

    async def run():
        first = await router.complete("same", complexity=Complexity.SIMPLE, task_type="t")
        second = await router.complete("same", complexity=Complexity.SIMPLE, task_type="t")
        return first, second

    first, second = asyncio.run(run())
    assert first.cached is False and second.cached is True
    assert second.response == first.response
    assert second.cost == 0.0
    assert second.attempts == []
    assert a.calls == 1


def test_cache_key_includes_options():
    a = FakeProvider("a")
    router = _router(a)

    async def run():
        await router.complete("same", complexity=Complexity.SIMPLE, task_type="t")
        return await router.complete(
            "same",
            complexity=Complexity.SIMPLE,
            task_type="t",
            options=ProviderOptions(max_tokens=5),
        )

    result = asyncio.run(run())
    assert result.cached is False
    assert a.calls == 2


def test_failures_are_never_cached():
    a = FakeProvider("a")
    a.fail_next = 1
    router = _router(a)

    async def run():
        with pytest.raises(FatalRoutingError):
            await router.complete("x", complexity=Complexity.SIMPLE, task_type="t")
        return await router.complete("x", complexity=Complexity.SIMPLE, task_type="t")

    result = asyncio.run(run())
    assert result.cached is False
    assert a.calls == 2


def test_result_cache_expires():
    clock = FakeClock()
    cache = ResultCache(10.0, clock)
    router = _router(FakeProvider("a"))
    result = asyncio.run(router.complete("x", complexity=Complexity.SIMPLE, task_type="t"))
    cache.put("k", result)
    assert cache.get("k") is result
    clock.advance(11)
    assert cache.get("k") is None
    assert len(cache) == 0


def test_result_cache_put_sweeps_expired_entries():
    clock = FakeClock()
    cache = ResultCache(10.0, clock)
    result = asyncio.run(_router(FakeProvider("a")).complete("x", complexity=Complexity.SIMPLE, task_type="t"))
    for i in range(20):
        cache.put(f"k{i}", result)
        clock.advance(11)
    assert len(cache) == 1
    assert cache.get("k19") is None
    cache.put("live", result)
    assert len(cache) == 1
    assert cache.get("live") is result


def test_router_logs_failed_attempts(monkeypatch):
    events = []

    async def capture(event, data):
        events.append((event, data))

    monkeypatch.setattr("agent_brain.router.log_event", capture)
    a, b = FakeProvider("a"), FakeProvider("b")
    a.fail_next = 1
    asyncio.run(_router(a, b).complete("hi", complexity=Complexity.SIMPLE, task_type="t"))
    names = [e for e, _ in events]
    assert names == ["router_error", "router_self_healed"]
    assert events[0][1]["provider"] == "a"
