"""Stream parser that taps structured events out of terminal output."""

import logging
from typing import Callable, Optional

from agent_notifier.errors import CodecError

from .codec import (
    BEL,
    ESC,
    NOTIFY_PREFIX,
    OSC_PREFIX,
    ST,
    STRUCTURED_TITLE,
    decode_payload,
    validate,
)
from .types import StructuredEvent

logger = logging.getLogger(__name__)


class StreamEventParser:
    """Finds AGENT_TASK_EVENT_V1 frames in incremental terminal output.

    Features:
    - Frames split across any number of chunks are reassembled
    - Both BEL and ESC \\ terminators are accepted
    - Unrelated OSC sequences are skipped without disturbing later frames
    - Observed text is never re-emitted; this is a tap, not a filter

    Usage:
        parser = StreamEventParser(on_event=handle)
        for chunk in output_stream:
            parser.feed(chunk)
        parser.flush()
    """

    def __init__(
        self,
        on_event: Optional[Callable[[StructuredEvent], None]] = None,
        on_debug: Optional[Callable[[str], None]] = None,
    ):
        """Initialize StreamEventParser.

        Args:
            on_event: Called once for every decoded event.
            on_debug: Called with a short reason when a candidate frame is
                skipped.
        """
        self._on_event = on_event
        self._on_debug = on_debug
        self._buffer = ""

    @property
    def pending(self) -> str:
        """Text retained for the next feed (an unterminated sequence)."""
        return self._buffer

    def feed(self, chunk: str) -> list[StructuredEvent]:
        """Consume a chunk of output.

        Args:
            chunk: Arbitrary text from the session's output stream.

        Returns:
            Events decoded from this call, in stream order.
        """
        if not chunk:
            return []
        self._buffer += chunk
        return self._process_buffer()

    def flush(self) -> None:
        """Drop any retained partial sequence (stream closed)."""
        if self._buffer:
            self._debug("Discarding unterminated sequence on flush")
        self._buffer = ""

    def _process_buffer(self) -> list[StructuredEvent]:
        events: list[StructuredEvent] = []
        buffer = self._buffer
        cursor = 0

        while cursor < len(buffer):
            osc_start = buffer.find(OSC_PREFIX, cursor)
            if osc_start == -1:
                # A trailing ESC may be the first half of the next prefix
                self._buffer = ESC if buffer.endswith(ESC) else ""
                return events

            content_start = osc_start + len(OSC_PREFIX)
            bel_end = buffer.find(BEL, content_start)
            st_end = buffer.find(ST, content_start)

            if bel_end != -1 and (st_end == -1 or bel_end < st_end):
                osc_end, terminator_len = bel_end, len(BEL)
            elif st_end != -1:
                osc_end, terminator_len = st_end, len(ST)
            else:
                # Frame split mid-stream: keep it for the next chunk
                self._buffer = buffer[osc_start:]
                return events

            event = self._parse_structured(buffer[content_start:osc_end])
            if event is not None:
                events.append(event)
                self._deliver(event)
            cursor = osc_end + terminator_len

        self._buffer = ""
        return events

    def _parse_structured(self, content: str) -> Optional[StructuredEvent]:
        content = content.strip()
        if not content.startswith(NOTIFY_PREFIX):
            return None

        rest = content[len(NOTIFY_PREFIX):]
        title, sep, encoded = rest.partition(";")
        if not sep:
            self._debug("Structured OSC skipped: missing title separator")
            return None
        if title != STRUCTURED_TITLE:
            self._debug(f"Structured OSC skipped: unexpected title {title[:40]!r}")
            return None

        try:
            parsed = decode_payload(encoded)
        except CodecError as e:
            self._debug(f"Structured OSC skipped: {e}")
            return None

        event = validate(parsed)
        if event is None:
            self._debug("Structured OSC skipped: schema validation failed")
        return event

    def _deliver(self, event: StructuredEvent) -> None:
        if self._on_event is None:
            return
        try:
            self._on_event(event)
        except Exception:
            logger.exception("Event callback failed for %s:%s", event.source.value, event.event.value)

    def _debug(self, message: str) -> None:
        logger.debug(message)
        if self._on_debug is not None:
            self._on_debug(message)
