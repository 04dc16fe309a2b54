"""Structured agent events: wire codec, stream parser and dedupe."""

from .codec import (
    STRUCTURED_TITLE,
    decode_payload,
    emit_frame,
    encode_frame,
    encode_payload,
    validate,
)
from .dedupe import EventDedupe, build_dedupe_key
from .parser import StreamEventParser
from .types import (
    EventSource,
    EventStatus,
    EventType,
    RuntimeEvent,
    StructuredEvent,
)

__all__ = [
    "STRUCTURED_TITLE",
    "EventDedupe",
    "EventSource",
    "EventStatus",
    "EventType",
    "RuntimeEvent",
    "StreamEventParser",
    "StructuredEvent",
    "build_dedupe_key",
    "decode_payload",
    "emit_frame",
    "encode_frame",
    "encode_payload",
    "validate",
]
