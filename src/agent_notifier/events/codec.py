"""Wire codec for structured agent events.

Frames are OSC 777 notify sequences whose title is a fixed discriminator:

    ESC ] 777 ; notify ; AGENT_TASK_EVENT_V1 ; <base64url(JSON)> BEL

Terminals that do not understand OSC 777 swallow the sequence, so agents
can write frames into their normal output without the user seeing them.
"""

import base64
import binascii
import json
import logging
import math
import sys
from typing import Any, Optional, Union

from agent_notifier.errors import CodecError

from .types import (
    OPTIONAL_FIELDS,
    PROTOCOL_VERSION,
    EventSource,
    EventStatus,
    EventType,
    StructuredEvent,
)

logger = logging.getLogger(__name__)

ESC = "\x1b"
BEL = "\x07"
OSC_PREFIX = ESC + "]"
ST = ESC + "\\"
NOTIFY_PREFIX = "777;notify;"
STRUCTURED_TITLE = "AGENT_TASK_EVENT_V1"

_SOURCES = {s.value: s for s in EventSource}
_EVENT_TYPES = {e.value: e for e in EventType}
_STATUSES = {s.value: s for s in EventStatus}


def encode_payload(payload: Union[StructuredEvent, dict[str, Any]]) -> str:
    """Serialize a payload to unpadded URL-safe base64 of compact JSON."""
    if isinstance(payload, StructuredEvent):
        payload = payload.to_payload()
    raw = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")


def encode_frame(payload: Union[StructuredEvent, dict[str, Any]]) -> str:
    """Wrap a payload in a single-line OSC 777 frame."""
    return f"{OSC_PREFIX}{NOTIFY_PREFIX}{STRUCTURED_TITLE};{encode_payload(payload)}{BEL}"


def emit_frame(
    payload: Union[StructuredEvent, dict[str, Any]],
    tty_path: str = "/dev/tty",
) -> bool:
    """Write a frame to the controlling terminal.

    Falls back to stdout and stderr when the terminal cannot be opened.
    Never raises.

    Args:
        payload: Event or wire dict to emit.
        tty_path: Terminal device to write to.

    Returns:
        True if the frame reached the terminal device, False if the
        fallback streams were used (or nothing could be written).
    """
    try:
        frame = encode_frame(payload)
    except (TypeError, ValueError) as e:
        logger.debug("Frame encode failed: %s", e)
        return False

    try:
        with open(tty_path, "w", encoding="utf-8") as tty:
            tty.write(frame)
            tty.flush()
        return True
    except OSError as e:
        logger.debug("Writing frame to %s failed, falling back: %s", tty_path, e)

    for stream in (sys.stdout, sys.stderr):
        try:
            stream.write(frame)
            stream.flush()
        except (OSError, ValueError, AttributeError):
            pass
    return False


def _b64url_decode(encoded: str) -> bytes:
    """Decode unpadded URL-safe base64.

    Raises:
        CodecError: If the input is empty or not valid base64url.
    """
    if not encoded:
        raise CodecError("empty payload")
    padded = encoded + "=" * ((4 - len(encoded) % 4) % 4)
    try:
        return base64.b64decode(padded, altchars=b"-_", validate=True)
    except (binascii.Error, ValueError) as e:
        raise CodecError(f"base64 decode failed: {e}") from e


def decode_payload(encoded: str) -> Any:
    """Decode the base64url JSON part of a frame.

    Returns:
        The parsed JSON value (not yet validated).

    Raises:
        CodecError: If base64, UTF-8 or JSON decoding fails.
    """
    raw = _b64url_decode(encoded.strip())
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise CodecError(f"invalid JSON payload: {e}") from e


def _maybe_string(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never a valid number on the wire
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate(value: Any) -> Optional[StructuredEvent]:
    """Validate a parsed payload.

    Returns a complete StructuredEvent or None. Never raises and never
    returns a partially filled event.
    """
    if not isinstance(value, dict):
        return None

    version = value.get("version")
    if not _is_number(version) or version != PROTOCOL_VERSION:
        return None

    source = value.get("source")
    event = value.get("event")
    status = value.get("status")
    if not (
        isinstance(source, str) and source in _SOURCES
        and isinstance(event, str) and event in _EVENT_TYPES
        and isinstance(status, str) and status in _STATUSES
    ):
        return None

    message = value.get("message")
    if not isinstance(message, str) or not message:
        return None

    created_at = value.get("createdAt")
    if not _is_number(created_at) or not math.isfinite(created_at):
        return None

    optional = {attr: _maybe_string(value.get(wire)) for wire, attr in OPTIONAL_FIELDS.items()}

    return StructuredEvent(
        source=_SOURCES[source],
        event=_EVENT_TYPES[event],
        status=_STATUSES[status],
        message=message,
        created_at=created_at,
        **optional,
    )
