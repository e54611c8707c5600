"""Push-to-pull streaming bridge for async Python services."""

from streambridge.services.bridge import (
    AsyncBridge,
    BridgeError,
    BridgeState,
    Failure,
    IteratorResult,
    ProducerError,
    StreamAbortedError,
    UnknownBridgeError,
    normalize_error,
)
from streambridge.services.contracts import ItemSink, ItemSource

__all__ = [
    "AsyncBridge",
    "BridgeError",
    "BridgeState",
    "Failure",
    "ItemSink",
    "ItemSource",
    "IteratorResult",
    "ProducerError",
    "StreamAbortedError",
    "UnknownBridgeError",
    "normalize_error",
]
