"""Shared test utilities and fixtures for streambridge tests."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any
import asyncio

import pytest

from streambridge.core.settings import Settings
from streambridge.services.bridge import AsyncBridge
from streambridge.services.stream_registry import StreamRegistry


class FakeSubscription:
    def __init__(self, *, fail_on_unsubscribe: bool = False) -> None:
        self.unsubscribe_calls = 0
        self._fail_on_unsubscribe = fail_on_unsubscribe

    def unsubscribe(self) -> None:
        self.unsubscribe_calls += 1
        if self._fail_on_unsubscribe:
            raise RuntimeError("transport already closed")


class FakeAgent:
    """Agent double that replays scripted events to its subscriber while running."""

    def __init__(
        self,
        script: list[tuple[str, dict[str, Any]]] | None = None,
        *,
        result: object = None,
        error: Exception | None = None,
        subscription: FakeSubscription | None = None,
    ) -> None:
        self.script = script or []
        self.result = result
        self.error = error
        self.subscription = subscription or FakeSubscription()
        self.subscriber: Any = None
        self.run_calls: list[tuple[tuple[Any, ...], dict[str, Any]]] = []

    def subscribe(self, subscriber: Any) -> FakeSubscription:
        self.subscriber = subscriber
        return self.subscription

    async def run_agent(self, *args: Any, **kwargs: Any) -> object:
        self.run_calls.append((args, kwargs))
        for callback, event in self.script:
            getattr(self.subscriber, callback)(agent_event(**event))
            await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return self.result


def agent_event(**event: Any) -> SimpleNamespace:
    return SimpleNamespace(event=event)


@pytest.fixture
def bridge() -> AsyncBridge[Any]:
    return AsyncBridge(name="test-bridge")


@pytest.fixture
def registry() -> StreamRegistry:
    return StreamRegistry()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(APP_ENV="test", LOG_LEVEL="WARNING")
