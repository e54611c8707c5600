from __future__ import annotations

from typing import Protocol, TypeVar

from streambridge.services.bridge import IteratorResult

T = TypeVar("T")
T_contra = TypeVar("T_contra", contravariant=True)


class ItemSink(Protocol[T_contra]):
    """Producer-facing side of a stream: emit values, then end it exactly once."""

    def push(self, value: T_contra) -> None:
        """Emit a value; dropped without raising once the stream has ended."""

    def complete(self, quiet: bool = False) -> None:
        """End the stream gracefully; already-emitted values remain readable."""

    def fail(self, error: object, *, quiet: bool = False) -> None:
        """End the stream with an error delivered once to the consuming side."""


class ItemSource(Protocol[T]):
    """Consumer-facing side of a stream."""

    async def next(self) -> IteratorResult[T]:
        """Return the next value, end-of-stream, or raise the stream's failure."""

    async def cancel(self) -> IteratorResult[T]:
        """Stop reading early; never raises."""

    async def throw_into(self, error: object = None) -> IteratorResult[T]:
        """Abort the stream from the consuming side; never raises."""

    def __aiter__(self) -> ItemSource[T]:
        ...

    async def __anext__(self) -> T:
        ...
