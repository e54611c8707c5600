"""Push-to-pull bridge between callback-style producers and async consumers.

Producers call :meth:`AsyncBridge.push`, :meth:`AsyncBridge.complete` and
:meth:`AsyncBridge.fail` whenever they like; none of them ever blocks or
raises. Consumers pull with ``await bridge.next()`` or ``async for``::

    bridge: AsyncBridge[str] = AsyncBridge()
    bridge.push("a")
    bridge.complete()

    async with bridge:
        async for value in bridge:
            ...

A failure reported through :meth:`AsyncBridge.fail` is raised to every reader
already waiting, or otherwise to the next reader only. After that single
delivery the bridge reads as completed.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass, replace
from types import TracebackType
from typing import Any, Generic, TypeVar
import asyncio
import enum
import logging
import threading

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BridgeError(Exception):
    """Base class for errors produced by streaming bridges."""


class UnknownBridgeError(BridgeError):
    """Stored when a producer fails a bridge without giving a reason."""

    def __init__(self, message: str = "Unknown error") -> None:
        super().__init__(message)


class StreamAbortedError(BridgeError):
    """Stored when a consumer or an abort signal tears the stream down."""

    def __init__(self, message: str = "Stream aborted") -> None:
        super().__init__(message)


class ProducerError(BridgeError):
    """Wraps a failure payload that is not an exception.

    Mapping keys and object attributes of the payload are readable directly on
    the error, so ``ProducerError({"code": 42}).code == 42``.
    """

    def __init__(self, detail: object) -> None:
        super().__init__(_describe(detail))
        self.detail = detail

    def __getattr__(self, name: str) -> Any:
        if name.startswith("__"):
            raise AttributeError(name)
        detail = self.__dict__.get("detail")
        if isinstance(detail, Mapping):
            if name in detail:
                return detail[name]
            raise AttributeError(name)
        return getattr(detail, name)


def _describe(detail: object) -> str:
    if isinstance(detail, Mapping):
        message = detail.get("message")
        if isinstance(message, str) and message:
            return message
    message = getattr(detail, "message", None)
    if isinstance(message, str) and message:
        return message
    return repr(detail)


def normalize_error(error: object, default: type[BaseException] = UnknownBridgeError) -> BaseException:
    """Return a raisable, non-null error for any failure payload."""

    if error is None:
        return default()
    if isinstance(error, (StopIteration, StopAsyncIteration)):
        # Futures refuse StopIteration and async for swallows StopAsyncIteration.
        wrapped = ProducerError(error)
        wrapped.__cause__ = error
        return wrapped
    if isinstance(error, BaseException):
        return error
    return ProducerError(error)


class BridgeState(str, enum.Enum):
    OPEN = "open"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class Failure:
    """Terminal error of a failed bridge and whether a reader has seen it."""

    error: BaseException
    delivered: bool = False


@dataclass(frozen=True)
class IteratorResult(Generic[T]):
    value: T | None = None
    done: bool = False

    @classmethod
    def end(cls) -> IteratorResult[Any]:
        return cls(value=None, done=True)


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class AsyncBridge(Generic[T]):
    """Unbounded FIFO channel with sink operations and an async iterator side.

    All state transitions happen under one lock, so producers running on other
    threads may push while a reader waits on its event loop.
    """

    def __init__(self, *, name: str | None = None, logger: logging.Logger | None = None) -> None:
        self._name = name
        self._logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._buffer: deque[T] = deque()
        self._waiters: deque[asyncio.Future[IteratorResult[T]]] = deque()
        self._state = BridgeState.OPEN
        self._failure: Failure | None = None
        self._failure_readers = 0

    def __repr__(self) -> str:
        return f"<AsyncBridge name={self._name!r} state={self._state.value} buffered={len(self._buffer)}>"

    @property
    def name(self) -> str | None:
        return self._name

    @property
    def state(self) -> BridgeState:
        return self._state

    @property
    def failure(self) -> Failure | None:
        return self._failure

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    @property
    def pending_reads(self) -> int:
        with self._lock:
            return sum(1 for waiter in self._waiters if not waiter.done())

    # Sink side

    def push(self, value: T) -> None:
        with self._lock:
            if self._state is not BridgeState.OPEN:
                self._warn("push")
                return
            waiter = self._pop_waiter()
            if waiter is None:
                self._buffer.append(value)
                return
            self._settle(waiter, result=IteratorResult(value=value, done=False))

    def complete(self, quiet: bool = False) -> None:
        with self._lock:
            if self._state is not BridgeState.OPEN:
                if not quiet:
                    self._warn("complete")
                return
            self._state = BridgeState.COMPLETED
            waiters = self._drain_waiters()
            for waiter in waiters:
                self._settle(waiter, result=IteratorResult.end())
        self._closed()

    finish = complete

    def fail(self, error: object, *, quiet: bool = False) -> None:
        normalized = normalize_error(error)
        with self._lock:
            if self._state is not BridgeState.OPEN:
                if not quiet:
                    self._warn("fail")
                return
            self._state = BridgeState.FAILED
            waiters = self._drain_waiters()
            self._failure = Failure(error=normalized, delivered=bool(waiters))
            self._failure_readers = len(waiters)
            for waiter in waiters:
                self._settle(waiter, error=normalized)
        self._closed()

    # Iterator side

    async def next(self) -> IteratorResult[T]:
        with self._lock:
            if self._failure is not None and not self._failure.delivered:
                self._failure = replace(self._failure, delivered=True)
                raise self._failure.error
            if self._buffer:
                return IteratorResult(value=self._buffer.popleft(), done=False)
            if self._state is not BridgeState.OPEN:
                return IteratorResult.end()
            waiter: asyncio.Future[IteratorResult[T]] = asyncio.get_running_loop().create_future()
            self._waiters.append(waiter)
        try:
            return await waiter
        except asyncio.CancelledError:
            self._abandon(waiter)
            raise

    async def cancel(self) -> IteratorResult[T]:
        self.complete(quiet=True)
        return IteratorResult.end()

    async def aclose(self) -> IteratorResult[T]:
        return await self.cancel()

    async def throw_into(self, error: object = None) -> IteratorResult[T]:
        self.fail(normalize_error(error, default=StreamAbortedError), quiet=True)
        return IteratorResult.end()

    def __aiter__(self) -> AsyncBridge[T]:
        return self

    async def __anext__(self) -> T:
        result = await self.next()
        if result.done:
            raise StopAsyncIteration
        return result.value  # type: ignore[return-value]

    async def __aenter__(self) -> AsyncBridge[T]:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc is None or isinstance(exc, (asyncio.CancelledError, GeneratorExit)):
            await self.cancel()
        else:
            await self.throw_into(exc)

    # Internals

    def _closed(self) -> None:
        """Hook run once, outside the lock, after the bridge leaves the open state."""

    def _warn(self, operation: str) -> None:
        self._logger.warning(
            "%s ignored: bridge is already %s",
            operation,
            self._state.value,
            extra={"bridge_name": self._name, "bridge_state": self._state.value, "operation": operation},
        )

    def _pop_waiter(self) -> asyncio.Future[IteratorResult[T]] | None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                return waiter
        return None

    def _drain_waiters(self) -> list[asyncio.Future[IteratorResult[T]]]:
        waiters = [waiter for waiter in self._waiters if not waiter.done()]
        self._waiters.clear()
        return waiters

    def _settle(
        self,
        waiter: asyncio.Future[IteratorResult[T]],
        *,
        result: IteratorResult[T] | None = None,
        error: BaseException | None = None,
    ) -> None:
        loop = waiter.get_loop()
        if _running_loop() is loop:
            self._resolve(waiter, result, error)
            return
        try:
            loop.call_soon_threadsafe(self._resolve_late, waiter, result, error)
        except RuntimeError:
            self._logger.warning(
                "dropping bridged item: reader event loop is closed",
                extra={"bridge_name": self._name},
            )

    @staticmethod
    def _resolve(
        waiter: asyncio.Future[IteratorResult[T]],
        result: IteratorResult[T] | None,
        error: BaseException | None,
    ) -> None:
        if error is not None:
            waiter.set_exception(error)
        else:
            waiter.set_result(result)  # type: ignore[arg-type]

    def _resolve_late(
        self,
        waiter: asyncio.Future[IteratorResult[T]],
        result: IteratorResult[T] | None,
        error: BaseException | None,
    ) -> None:
        if not waiter.done():
            self._resolve(waiter, result, error)
            return
        with self._lock:
            self._reclaim(result, error)

    def _abandon(self, waiter: asyncio.Future[IteratorResult[T]]) -> None:
        with self._lock:
            if waiter in self._waiters:
                self._waiters.remove(waiter)
                return
            if not waiter.done() or waiter.cancelled():
                # Settled from another thread; _resolve_late reclaims it.
                return
            error = waiter.exception()
            self._reclaim(None if error is not None else waiter.result(), error)

    def _reclaim(self, result: IteratorResult[T] | None, error: BaseException | None) -> None:
        """Give an outcome handed to a reader that went away back to the bridge."""

        if error is not None:
            self._failure_readers -= 1
            if self._failure_readers <= 0 and self._failure is not None:
                self._failure = replace(self._failure, delivered=False)
            return
        if result is None or result.done:
            return
        waiter = self._pop_waiter()
        if waiter is None:
            self._buffer.appendleft(result.value)  # type: ignore[arg-type]
        else:
            self._settle(waiter, result=result)
