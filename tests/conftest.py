import asyncio

import pytest

from agent_brain.agent import build_runtime
from agent_brain.config import Settings
from agent_brain.models import Complexity
from agent_brain.providers import Provider, ProviderRegistry, ProviderSpec


class FakeProvider(Provider):
    """Scriptable provider: counts calls and fails on demand."""

    def __init__(
        self,
        pid: str,
        max_complexity: str = "complex",
        cost: float = 0.0,
        *,
        always_fail: bool = False,
        retryable: bool = True,
        delay: float = 0.0,
    ) -> None:
        super().__init__(
            ProviderSpec(
                id=pid,
                kind="fake",
                max_complexity=Complexity(max_complexity),
                cost_per_1k_input=cost,
                cost_per_1k_output=cost,
            )
        )
        self.calls = 0
        self.fail_next = 0
        self.always_fail = always_fail
        self.retryable = retryable
        self.delay = delay
        self.last_options = None

    async def _invoke(self, prompt, options, start):
        self.calls += 1
        self.last_options = options
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.always_fail or self.fail_next:
            if self.fail_next:
                self.fail_next -= 1
            return self._failure("injected fault", start, retryable=self.retryable)
        return self._response(f"{self.id}: {prompt}", start, tokens_in=10, tokens_out=20)


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def settings(tmp_path):
    return Settings(data_dir=tmp_path / "data", router_timeout=2.0, cache_ttl=300.0)


@pytest.fixture
def make_directory(settings):
    def _make(*providers: Provider):
        return build_runtime(settings, registry=ProviderRegistry(providers))

    return _make
