"""OS notification backends.

A backend implements ``notify(title, message, metadata)`` and returns an
async iterator of click events. Sending happens when iteration starts;
the iterator ends when the notification is dismissed (or immediately for
backends without click support).
"""

import asyncio
import logging
import platform
import shutil
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Optional, Protocol

import aiohttp

from agent_notifier.errors import NotifierBackendError

logger = logging.getLogger(__name__)

APP_NAME = "Agent Task Notifier"
FOCUS_ACTION = "default"


@dataclass(frozen=True)
class ClickEvent:
    """User activated a notification."""

    action: str
    metadata: dict[str, Any] = field(default_factory=dict)


class NotifierBackend(Protocol):
    """Protocol for OS notification backends."""

    def notify(
        self, title: str, message: str, metadata: dict[str, Any]
    ) -> AsyncIterator[ClickEvent]:
        """Show a notification and yield click events."""
        ...


class NullNotifier:
    """Backend that shows nothing."""

    async def notify(
        self, title: str, message: str, metadata: dict[str, Any]
    ) -> AsyncIterator[ClickEvent]:
        logger.debug("Null notifier dropped: %s", title)
        return
        yield  # pragma: no cover


class DesktopNotifier:
    """Desktop notifications via ``notify-send`` (Linux) or ``osascript`` (macOS).

    On Linux the notification carries a default action; ``notify-send
    --wait`` prints the action key when the user clicks it, which is
    reported as a ClickEvent. macOS notifications sent through osascript
    cannot report clicks.
    """

    def __init__(
        self,
        system: Optional[str] = None,
        which_func: Optional[Callable[[str], Optional[str]]] = None,
    ):
        """Initialize DesktopNotifier.

        Args:
            system: Platform name override (``Linux``, ``Darwin``).
            which_func: Injection point for shutil.which (for testing).
        """
        self._system = system or platform.system()
        self._which = which_func or shutil.which

    async def notify(
        self, title: str, message: str, metadata: dict[str, Any]
    ) -> AsyncIterator[ClickEvent]:
        if self._system == "Darwin":
            await self._notify_macos(title, message)
            return

        binary = self._which("notify-send")
        if not binary:
            raise NotifierBackendError("notify-send not found")

        proc = await asyncio.create_subprocess_exec(
            binary,
            f"--app-name={APP_NAME}",
            "--wait",
            f"--action={FOCUS_ACTION}=Focus Terminal",
            title,
            message,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await proc.communicate()
        except asyncio.CancelledError:
            if proc.returncode is None:
                proc.kill()
            raise

        if proc.returncode != 0:
            raise NotifierBackendError(f"notify-send failed: {stderr.decode(errors='replace').strip()}")

        for line in stdout.decode(errors="replace").splitlines():
            if line.strip() == FOCUS_ACTION:
                yield ClickEvent(action=FOCUS_ACTION, metadata=dict(metadata))

    async def _notify_macos(self, title: str, message: str) -> None:
        script = (
            f"display notification {_applescript_quote(message)} "
            f"with title {_applescript_quote(title)}"
        )
        proc = await asyncio.create_subprocess_exec(
            "osascript",
            "-e",
            script,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
        _, stderr = await proc.communicate()
        if proc.returncode != 0:
            raise NotifierBackendError(f"osascript failed: {stderr.decode(errors='replace').strip()}")


def _applescript_quote(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


class NtfyNotifier:
    """Push notifications through an ntfy topic.

    Useful when the agents run on a remote machine. Pushes cannot report
    clicks back; a configured click URL is opened by the ntfy app instead.
    """

    REQUEST_TIMEOUT = 10.0  # seconds

    def __init__(
        self,
        topic: str,
        server: str = "https://ntfy.sh",
        click_url: Optional[str] = None,
        http_session: Optional[aiohttp.ClientSession] = None,
    ):
        """Initialize NtfyNotifier.

        Args:
            topic: ntfy topic to publish to.
            server: ntfy server URL.
            click_url: URL attached to every push.
            http_session: Optional aiohttp session (for testing).
        """
        self._topic = topic
        self._server = server.rstrip("/")
        self._click_url = click_url
        self._session = http_session
        self._owns_session = http_session is None

    @property
    def url(self) -> str:
        """Full topic URL."""
        return f"{self._server}/{self._topic}"

    async def notify(
        self, title: str, message: str, metadata: dict[str, Any]
    ) -> AsyncIterator[ClickEvent]:
        if self._session is None:
            self._session = aiohttp.ClientSession()

        headers = {"Title": title, "Tags": "robot"}
        if metadata.get("status") == "warning":
            headers["Priority"] = "high"
        if self._click_url:
            headers["Click"] = self._click_url

        try:
            async with self._session.post(
                self.url,
                data=message.encode("utf-8"),
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.REQUEST_TIMEOUT),
            ) as resp:
                if resp.status != 200:
                    text = await resp.text()
                    raise NotifierBackendError(f"ntfy returned {resp.status}: {text[:100]}")
        except aiohttp.ClientError as e:
            raise NotifierBackendError(f"ntfy publish failed: {e}") from e

        logger.debug("Published notification to %s", self._topic)
        return
        yield  # pragma: no cover

    async def close(self) -> None:
        """Close the HTTP session if owned."""
        if self._owns_session and self._session:
            await self._session.close()
            self._session = None
