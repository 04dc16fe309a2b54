"""Pytest configuration and shared fixtures."""

import asyncio
from pathlib import Path

import pytest
import pytest_asyncio

from agent_notifier.config import Config, HomesConfig
from agent_notifier.events.types import (
    EventSource,
    EventStatus,
    EventType,
    RuntimeEvent,
)


@pytest.fixture(autouse=True)
def reset_logging_state():
    """Reset logging state before each test."""
    from agent_notifier.logging import reset_logging

    reset_logging()
    yield
    reset_logging()


@pytest_asyncio.fixture(autouse=True, loop_scope="function")
async def cleanup_aiohttp_sessions():
    """Give aiohttp sessions time to clean up their connectors."""
    yield
    await asyncio.sleep(0)


@pytest.fixture
def homes(tmp_path) -> HomesConfig:
    """Tool homes inside the test's temp directory."""
    return HomesConfig(
        claude=str(tmp_path / ".claude"),
        codex=str(tmp_path / ".codex"),
        opencode=str(tmp_path / ".opencode"),
    )


@pytest.fixture
def config(homes) -> Config:
    """Default config with tool homes redirected to tmp_path."""
    return Config(homes=homes)


def make_event(
    message: str = "Task finished",
    source: EventSource = EventSource.CODEX,
    event: EventType = EventType.TURN_COMPLETE,
    status: EventStatus = EventStatus.SUCCESS,
    terminal_id: str = "term-1",
    session_handle=None,
    **kwargs,
) -> RuntimeEvent:
    """Build a RuntimeEvent with sensible defaults."""
    return RuntimeEvent(
        source=source,
        event=event,
        status=status,
        message=message,
        created_at=kwargs.pop("created_at", 1_700_000_000_000),
        terminal_id=terminal_id,
        session_handle=session_handle if session_handle is not None else terminal_id,
        **kwargs,
    )


class FakeHost:
    """In-memory TerminalHost recording toasts and focus requests."""

    def __init__(self, alive: bool = True, fail_toast: bool = False):
        self.toasts: list[tuple[str, bool]] = []
        self.focused: list = []
        self.alive = alive
        self.fail_toast = fail_toast

    async def show_toast(self, text: str, warning: bool = False) -> None:
        if self.fail_toast:
            raise RuntimeError("toast failed")
        self.toasts.append((text, warning))

    async def focus(self, handle) -> bool:
        self.focused.append(handle)
        return self.alive


class FakeBackend:
    """Notifier backend recording calls and yielding scripted clicks."""

    def __init__(self, clicks: int = 0, error: Exception | None = None):
        self.calls: list[tuple[str, str, dict]] = []
        self.clicks = clicks
        self.error = error
        self.closed = False

    async def notify(self, title, message, metadata):
        from agent_notifier.notifications import ClickEvent

        self.calls.append((title, message, metadata))
        if self.error is not None:
            raise self.error
        for _ in range(self.clicks):
            yield ClickEvent(action="default", metadata=metadata)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def adapters_dir() -> Path:
    """The bundled adapter scripts."""
    from agent_notifier.sync.base import ADAPTERS_DIR

    return ADAPTERS_DIR
