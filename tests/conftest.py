"""Pytest configuration and shared fixtures."""
import asyncio
from collections.abc import AsyncIterator
from typing import Any

import pytest

from parlance.config import ParlanceSettings
from parlance.execution import CodeExecutor, ExecutionResult
from parlance.llm import FragmentStream, ModelProvider, ProviderMessage


class ScriptedProvider(ModelProvider):
    """Provider that replays a fixed list of fragments.

    ``gate`` (if set) must be released before each fragment is yielded;
    ``error`` (if set) is raised after the scripted fragments.
    """

    def __init__(
        self,
        fragments: list[bytes | str] | None = None,
        *,
        model: str = "scripted-model",
        gate: asyncio.Event | None = None,
        error: Exception | None = None,
        hang: bool = False,
    ):
        self.fragments = list(fragments or [])
        self.gate = gate
        self.error = error
        self.hang = hang
        self.requests: list[list[ProviderMessage]] = []
        self.streams: list[FragmentStream] = []
        self.closed = False
        self._model = model

    @property
    def model(self) -> str:
        return self._model

    @property
    def streams_closed(self) -> int:
        return sum(stream.closed for stream in self.streams)

    async def stream(self, messages: list[ProviderMessage], **kwargs: Any) -> FragmentStream:
        self.requests.append(list(messages))
        stream = FragmentStream(self._generate())
        self.streams.append(stream)
        return stream

    async def _generate(self) -> AsyncIterator[bytes | str]:
        for fragment in self.fragments:
            if self.gate is not None:
                await self.gate.wait()
            yield fragment
        if self.hang:
            await asyncio.Event().wait()
        if self.error is not None:
            raise self.error

    async def close(self) -> None:
        self.closed = True


class FakeExecutor(CodeExecutor):
    """Executor that returns canned results without running anything."""

    def __init__(self, result: ExecutionResult | None = None, error: Exception | None = None):
        self.result = result or ExecutionResult(ok=True, output="ok\n", exit_code=0)
        self.error = error
        self.gate: asyncio.Event | None = None
        self.calls: list[tuple[str, str]] = []

    async def execute(self, language: str, code: str) -> ExecutionResult:
        self.calls.append((language, code))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def settings():
    """Return settings with short timeouts for tests."""
    return ParlanceSettings(fragment_timeout=1.0, fallback_threshold=4096, execution_timeout=5.0)


@pytest.fixture
def fake_executor():
    return FakeExecutor()


@pytest.fixture
def sample_response():
    """Return a response body with text, an executable fence and inline markers."""
    return (
        "Here is code:\n"
        "```python exec\n"
        "print(1)\n"
        "```\n"
        "See [^1] and [file:report.pdf|pdf|2048]."
    )


@pytest.fixture
def make_executor():
    """Return a factory for fake executors."""
    return FakeExecutor


@pytest.fixture
def make_provider():
    """Return a factory for scripted providers."""
    return ScriptedProvider
