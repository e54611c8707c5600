"""Streaming primitives and the services built on them."""

from streambridge.services.agent_events import AgentEventStream, events_to_stream, start_streaming_agent
from streambridge.services.bridge import AsyncBridge, BridgeState, IteratorResult
from streambridge.services.stream_registry import StreamRegistry

__all__ = [
    "AgentEventStream",
    "AsyncBridge",
    "BridgeState",
    "IteratorResult",
    "StreamRegistry",
    "events_to_stream",
    "start_streaming_agent",
]
