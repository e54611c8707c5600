"""Adapters from callback-style agent subscriptions to pull-based streams.

An agent exposes ``subscribe(subscriber)`` and calls exactly one of the
subscriber callbacks per emitted event. The adapter forwards those callbacks
into an :class:`AgentEventStream`, which callers drain with ``async for``.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Generic, Protocol, TypeVar
import asyncio
import functools
import logging

from streambridge.services.bridge import AsyncBridge, IteratorResult, StreamAbortedError
from streambridge.services.contracts import ItemSink

logger = logging.getLogger(__name__)

R = TypeVar("R")
R_co = TypeVar("R_co", covariant=True)


class AgentEventParams(Protocol):
    """Callback payload; ``event`` carries the raw agent event."""

    event: Any


class AgentSubscriber(Protocol):
    def on_event(self, params: AgentEventParams) -> None:
        ...

    def on_run_error_event(self, params: AgentEventParams) -> None:
        ...

    def on_run_finished_event(self, params: AgentEventParams) -> None:
        ...


class Subscription(Protocol):
    def unsubscribe(self) -> None:
        ...


class StreamingAgent(Protocol[R_co]):
    def subscribe(self, subscriber: AgentSubscriber) -> Subscription:
        ...

    async def run_agent(self, *args: Any, **kwargs: Any) -> R_co:
        ...


SubscribeFn = Callable[[AgentSubscriber], Subscription]


class ForwardingSubscriber:
    """Pushes every agent event into a sink and ends the sink on terminal events."""

    def __init__(self, sink: ItemSink[AgentEventParams]) -> None:
        self._sink = sink

    def on_event(self, params: AgentEventParams) -> None:
        self._sink.push(params)

    def on_run_error_event(self, params: AgentEventParams) -> None:
        self._sink.push(params)
        self._sink.fail(getattr(params, "event", params))

    def on_run_finished_event(self, params: AgentEventParams) -> None:
        self._sink.push(params)
        self._sink.complete()


class AgentEventStream(AsyncBridge[AgentEventParams]):
    """Bridge that also owns the agent subscription and the abort watcher."""

    def __init__(self, *, name: str | None = None) -> None:
        super().__init__(name=name)
        self._subscription: Subscription | None = None
        self._abort_watch: asyncio.Task[Any] | None = None

    def attach(self, subscription: Subscription, abort: asyncio.Event | None = None) -> None:
        self._subscription = subscription
        if abort is None:
            return
        if abort.is_set():
            self._on_abort()
            return
        self._abort_watch = asyncio.get_running_loop().create_task(abort.wait())
        self._abort_watch.add_done_callback(self._on_abort_watch_done)

    async def cancel(self) -> IteratorResult[AgentEventParams]:
        self._unsubscribe()
        self._stop_watching()
        return await super().cancel()

    def _closed(self) -> None:
        self._stop_watching()

    def _on_abort_watch_done(self, task: asyncio.Task[Any]) -> None:
        if not task.cancelled():
            self._on_abort()

    def _on_abort(self) -> None:
        logger.debug("agent stream aborted", extra={"bridge_name": self.name})
        self._unsubscribe()
        self.fail(StreamAbortedError("Aborted"), quiet=True)

    def _unsubscribe(self) -> None:
        subscription, self._subscription = self._subscription, None
        if subscription is None:
            return
        try:
            subscription.unsubscribe()
        except Exception:
            logger.warning("failed to unsubscribe agent stream", exc_info=True, extra={"bridge_name": self.name})

    def _stop_watching(self) -> None:
        watch, self._abort_watch = self._abort_watch, None
        if watch is None or watch.done():
            return
        loop = watch.get_loop()
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            watch.cancel()
            return
        try:
            loop.call_soon_threadsafe(watch.cancel)
        except RuntimeError:
            logger.debug("abort watcher loop is closed", extra={"bridge_name": self.name})


def events_to_stream(
    subscribe: SubscribeFn,
    *,
    abort: asyncio.Event | None = None,
    name: str | None = None,
) -> AgentEventStream:
    """Subscribe to an agent and expose its events as an async-iterable stream.

    Setting ``abort`` unsubscribes and fails the stream with
    :class:`StreamAbortedError`. Cancelling the stream unsubscribes as well.
    """

    stream = AgentEventStream(name=name)
    subscription = subscribe(ForwardingSubscriber(stream))
    stream.attach(subscription, abort)
    return stream


class StreamingAgentRun(Generic[R]):
    """Events of a running agent plus the awaitable result of the run."""

    def __init__(self, events: AgentEventStream, task: asyncio.Task[R]) -> None:
        self._events = events
        self._task = task

    @property
    def events(self) -> AgentEventStream:
        return self._events

    def __aiter__(self) -> AgentEventStream:
        return self._events

    async def result(self) -> R:
        return await self._task

    async def cancel(self) -> None:
        await self._events.cancel()
        if not self._task.done():
            self._task.cancel()


def _end_stream_with_run(events: AgentEventStream, task: asyncio.Task[Any]) -> None:
    # A run that ends normally may still emit events afterwards, so only errors end the stream.
    if task.cancelled():
        events.fail(StreamAbortedError("Aborted"), quiet=True)
        return
    error = task.exception()
    if error is not None:
        logger.warning("agent run failed", exc_info=error, extra={"bridge_name": events.name})
        events.fail(error, quiet=True)


def start_streaming_agent(
    agent: StreamingAgent[R],
    *args: Any,
    abort: asyncio.Event | None = None,
    **kwargs: Any,
) -> StreamingAgentRun[R]:
    """Run an agent and stream its events.

    The subscription is in place before the run starts so no early event is
    missed. Must be called from a running event loop.
    """

    events = events_to_stream(agent.subscribe, abort=abort)
    task = asyncio.ensure_future(agent.run_agent(*args, **kwargs))
    task.add_done_callback(functools.partial(_end_stream_with_run, events))
    return StreamingAgentRun(events, task)
