from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import Any
import asyncio
import logging
import uuid

from streambridge.services.bridge import AsyncBridge, BridgeError
from streambridge.services.contracts import ItemSink

logger = logging.getLogger(__name__)

Producer = Callable[[ItemSink[Any]], Awaitable[None]]


class UnknownStreamError(BridgeError, KeyError):
    """Raised when a stream id is not registered."""


@dataclass
class RegisteredStream:
    bridge: AsyncBridge[Any]
    task: asyncio.Task[None] | None = None


class StreamRegistry:
    """Keeps producer-fed bridges addressable by id until a consumer drains them."""

    def __init__(self) -> None:
        self._streams: dict[str, RegisteredStream] = {}

    def __contains__(self, stream_id: object) -> bool:
        return stream_id in self._streams

    def __len__(self) -> int:
        return len(self._streams)

    async def start(self, producer: Producer, *, stream_id: str | None = None) -> str:
        """Run ``producer`` against a new bridge in the background and return its id."""

        stream_id = self._claim_id(stream_id)
        bridge: AsyncBridge[Any] = AsyncBridge(name=stream_id)
        task = asyncio.create_task(self._produce(stream_id=stream_id, bridge=bridge, producer=producer))
        self._streams[stream_id] = RegisteredStream(bridge=bridge, task=task)
        logger.debug("stream producer started", extra={"stream_id": stream_id})
        return stream_id

    def register(self, bridge: AsyncBridge[Any], *, stream_id: str | None = None) -> str:
        """Expose a bridge that is fed elsewhere, e.g. by an agent event adapter."""

        stream_id = self._claim_id(stream_id)
        self._streams[stream_id] = RegisteredStream(bridge=bridge)
        return stream_id

    def get(self, stream_id: str) -> AsyncBridge[Any] | None:
        entry = self._streams.get(stream_id)
        return entry.bridge if entry is not None else None

    async def stream(self, stream_id: str) -> AsyncIterator[Any]:
        """Yield the values of a registered stream; the id is released once drained."""

        entry = self._streams.get(stream_id)
        if entry is None:
            raise UnknownStreamError(stream_id)
        try:
            async with entry.bridge:
                async for value in entry.bridge:
                    yield value
        finally:
            self.close(stream_id)

    def close(self, stream_id: str) -> bool:
        entry = self._streams.pop(stream_id, None)
        if entry is None:
            return False
        if entry.task is not None and not entry.task.done():
            entry.task.cancel()
        entry.bridge.complete(quiet=True)
        return True

    async def aclose(self) -> None:
        tasks = [entry.task for entry in self._streams.values() if entry.task is not None]
        for stream_id in list(self._streams):
            self.close(stream_id)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _claim_id(self, stream_id: str | None) -> str:
        stream_id = stream_id or str(uuid.uuid4())
        if stream_id in self._streams:
            raise ValueError(f"stream id '{stream_id}' is already registered")
        return stream_id

    async def _produce(self, *, stream_id: str, bridge: AsyncBridge[Any], producer: Producer) -> None:
        try:
            await producer(bridge)
        except asyncio.CancelledError:
            bridge.complete(quiet=True)
            raise
        except Exception as exc:
            logger.exception("stream producer failed", extra={"stream_id": stream_id})
            bridge.fail(exc, quiet=True)
        else:
            bridge.complete(quiet=True)
