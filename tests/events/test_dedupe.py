"""Tests for EventDedupe."""

from conftest import make_event

from agent_notifier.events.dedupe import MIN_RETENTION_MS, EventDedupe, build_dedupe_key
from agent_notifier.events.types import EventStatus


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


def make_dedupe(window_ms: float = 3000, clock: FakeClock | None = None):
    clock = clock or FakeClock()
    window = {"ms": window_ms}
    return EventDedupe(lambda: window["ms"], clock=clock), clock, window


class TestBuildDedupeKey:
    """Test dedupe key derivation."""

    def test_explicit_key_wins(self):
        """An explicit dedupe key replaces the content key."""
        event = make_event(message="anything", dedupe_key="turn-7")
        assert build_dedupe_key(event) == "term-1:turn-7"

    def test_content_key_normalizes_message(self):
        """Message is trimmed, lowercased and whitespace-collapsed."""
        a = make_event(message="  Task   Finished\n")
        b = make_event(message="task finished")

        assert build_dedupe_key(a) == build_dedupe_key(b)
        assert build_dedupe_key(a) == "term-1:codex:turn_complete:success:task finished"

    def test_terminal_id_scopes_key(self):
        """Same content in another terminal is a different key."""
        a = make_event(terminal_id="t1")
        b = make_event(terminal_id="t2")
        assert build_dedupe_key(a) != build_dedupe_key(b)

    def test_status_is_part_of_key(self):
        """Status participates in the content key."""
        a = make_event(status=EventStatus.SUCCESS)
        b = make_event(status=EventStatus.WARNING)
        assert build_dedupe_key(a) != build_dedupe_key(b)


class TestWindow:
    """Test time-window suppression."""

    def test_first_event_emitted(self):
        """A new event is emitted."""
        dedupe, _, _ = make_dedupe()
        assert dedupe.should_emit(make_event()) is True

    def test_duplicate_inside_window_suppressed(self):
        """Same key 2999 ms later is suppressed."""
        dedupe, clock, _ = make_dedupe(3000)
        dedupe.should_emit(make_event())
        clock.advance(2999)

        assert dedupe.should_emit(make_event()) is False

    def test_duplicate_after_window_emitted(self):
        """Same key 3001 ms later is emitted."""
        dedupe, clock, _ = make_dedupe(3000)
        dedupe.should_emit(make_event())
        clock.advance(3001)

        assert dedupe.should_emit(make_event()) is True

    def test_suppressed_event_does_not_extend_window(self):
        """The window is measured from the last emitted event."""
        dedupe, clock, _ = make_dedupe(3000)
        dedupe.should_emit(make_event())
        clock.advance(2000)
        assert dedupe.should_emit(make_event()) is False
        clock.advance(1500)

        assert dedupe.should_emit(make_event()) is True

    def test_different_terminals_not_deduped(self):
        """Identical events in different terminals are both emitted."""
        dedupe, _, _ = make_dedupe()
        assert dedupe.should_emit(make_event(terminal_id="a")) is True
        assert dedupe.should_emit(make_event(terminal_id="b")) is True

    def test_explicit_keys_dedupe_different_messages(self):
        """Events sharing a dedupe key are duplicates even if text differs."""
        dedupe, _, _ = make_dedupe()
        assert dedupe.should_emit(make_event(message="one", dedupe_key="k")) is True
        assert dedupe.should_emit(make_event(message="two", dedupe_key="k")) is False

    def test_distinct_explicit_keys_never_collapse(self):
        """Different dedupe keys are distinct events even with identical text."""
        dedupe, _, _ = make_dedupe()
        assert dedupe.should_emit(make_event(message="Done", dedupe_key="a")) is True
        assert dedupe.should_emit(make_event(message="Done", dedupe_key="b")) is True

    def test_window_read_on_every_call(self):
        """A changed window applies immediately."""
        dedupe, clock, window = make_dedupe(3000)
        dedupe.should_emit(make_event())
        clock.advance(1000)
        window["ms"] = 500

        assert dedupe.should_emit(make_event()) is True

    def test_zero_window_never_suppresses(self):
        """Window 0 disables dedupe."""
        dedupe, _, _ = make_dedupe(0)
        assert dedupe.should_emit(make_event()) is True
        assert dedupe.should_emit(make_event()) is True


class TestEviction:
    """Test record retention."""

    def test_records_evicted_after_retention(self):
        """Records older than max(4 x window, 60 s) are dropped."""
        dedupe, clock, _ = make_dedupe(3000)
        dedupe.should_emit(make_event(message="old"))
        clock.advance(MIN_RETENTION_MS + 1)
        dedupe.should_emit(make_event(message="new"))

        assert len(dedupe) == 1

    def test_records_kept_within_retention(self):
        """Records younger than the retention threshold stay."""
        dedupe, clock, _ = make_dedupe(3000)
        dedupe.should_emit(make_event(message="old"))
        clock.advance(MIN_RETENTION_MS - 1)
        dedupe.should_emit(make_event(message="new"))

        assert len(dedupe) == 2

    def test_large_window_extends_retention(self):
        """With a large window retention is four windows."""
        dedupe, clock, _ = make_dedupe(30_000)
        dedupe.should_emit(make_event(message="old"))
        clock.advance(100_000)
        dedupe.should_emit(make_event(message="new"))

        assert len(dedupe) == 2

    def test_clear_session(self):
        """clear_session forgets one terminal's records only."""
        dedupe, _, _ = make_dedupe()
        dedupe.should_emit(make_event(terminal_id="a"))
        dedupe.should_emit(make_event(terminal_id="b"))

        dedupe.clear_session("a")

        assert len(dedupe) == 1
        assert dedupe.should_emit(make_event(terminal_id="a")) is True
