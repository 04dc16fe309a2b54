"""tmux service for executing tmux commands."""

import asyncio
import re
from dataclasses import dataclass
from typing import Optional, Protocol

from agent_notifier.errors import HostError, HostVersionError

# Separator for -F formats; never appears in ids or commands
FIELD_SEP = "\t"

_VERSION_PATTERN = re.compile(r"(\d+)\.(\d+)")


class CommandExecutorProtocol(Protocol):
    """Protocol for running external commands."""

    async def run(self, *args: str, check: bool = True) -> tuple[bytes, bytes, int]:
        """Run command and return (stdout, stderr, returncode)."""
        ...


@dataclass(frozen=True)
class PaneInfo:
    """Information about a tmux pane."""

    pane_id: str  # e.g., "%3"
    session_name: str
    window_id: str  # e.g., "@1"
    current_command: str  # Foreground process name, e.g. "codex"
    start_command: str  # Command the pane was created with, often empty
    tty: str

    @property
    def command_line(self) -> str:
        """Best-effort command line used for agent detection."""
        return " ".join(part for part in (self.current_command, self.start_command) if part)


def parse_version(text: str) -> tuple[int, int]:
    """Extract (major, minor) from `tmux -V` output such as "tmux next-3.5a".

    Raises:
        HostError: No version number in the text.
    """
    match = _VERSION_PATTERN.search(text)
    if not match:
        raise HostError(f"Could not parse tmux version from: {text.strip()!r}")
    return int(match.group(1)), int(match.group(2))


class AsyncCommandExecutor:
    """Execute shell commands asynchronously."""

    async def run(self, *args: str, check: bool = True) -> tuple[bytes, bytes, int]:
        """Run command and return (stdout, stderr, returncode).

        Args:
            *args: Command and arguments to run.
            check: If True, raise HostError on non-zero exit.

        Returns:
            Tuple of (stdout, stderr, returncode).

        Raises:
            HostError: If check=True and command fails.
        """
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise HostError(f"Command not found: {args[0]}") from e
        stdout, stderr = await proc.communicate()
        returncode = proc.returncode or 0

        if check and returncode != 0:
            raise HostError(f"Command failed: {stderr.decode(errors='replace')}")

        return stdout, stderr, returncode


class TmuxService:
    """Thin async wrapper over the tmux commands the notifier needs.

    Only the version check is cached; every other call goes to tmux. The
    executor is injectable so tests can script tmux output.
    """

    # pipe-pane, list-panes -a and #{pane_start_command} all exist from 2.6
    MIN_VERSION = (2, 6)

    def __init__(
        self,
        executor: Optional[CommandExecutorProtocol] = None,
        tmux_path: str = "tmux",
        socket_path: Optional[str] = None,
    ):
        """Initialize TmuxService.

        Args:
            executor: Command executor for running tmux. Defaults to
                AsyncCommandExecutor.
            tmux_path: Path to tmux binary. Defaults to "tmux".
            socket_path: Path to tmux socket. If None, uses the default
                tmux server.
        """
        self._executor = executor or AsyncCommandExecutor()
        self._tmux_path = tmux_path
        self._socket_path = socket_path
        self._verified = False

    @property
    def tmux_path(self) -> str:
        """Path to the tmux binary."""
        return self._tmux_path

    @property
    def socket_path(self) -> Optional[str]:
        """tmux socket path, if not the default server."""
        return self._socket_path

    def build_args(self, *args: str) -> tuple[str, ...]:
        """Build a full tmux command line with the socket option if set."""
        if self._socket_path:
            return (self._tmux_path, "-S", self._socket_path, *args)
        return (self._tmux_path, *args)

    async def _run(self, *args: str, check: bool = True) -> tuple[bytes, bytes, int]:
        return await self._executor.run(*self.build_args(*args), check=check)

    async def verify(self) -> None:
        """Check once that tmux runs and is at least MIN_VERSION.

        Raises:
            HostError: tmux is missing or prints no version.
            HostVersionError: tmux is older than MIN_VERSION.
        """
        if self._verified:
            return

        stdout, _, _ = await self._run("-V")
        version = parse_version(stdout.decode(errors="replace"))
        if version < self.MIN_VERSION:
            found = ".".join(map(str, version))
            wanted = ".".join(map(str, self.MIN_VERSION))
            raise HostVersionError(f"tmux {found} is too old, {wanted} or newer is required")
        self._verified = True

    async def list_panes(self) -> list[PaneInfo]:
        """List every pane on the server.

        Returns:
            List of PaneInfo objects. Empty if no server is running.
        """
        await self.verify()

        format_str = FIELD_SEP.join(
            [
                "#{pane_id}",
                "#{session_name}",
                "#{window_id}",
                "#{pane_current_command}",
                "#{pane_start_command}",
                "#{pane_tty}",
            ]
        )

        stdout, stderr, returncode = await self._run("list-panes", "-a", "-F", format_str, check=False)

        # A stopped server just means there is nothing to watch
        if returncode != 0:
            stderr_str = stderr.decode(errors="replace")
            if any(msg in stderr_str for msg in ["no server", "no sessions", "error connecting"]):
                return []
            raise HostError(f"list-panes failed: {stderr_str}")

        panes = []
        for line in stdout.decode(errors="replace").splitlines():
            if not line:
                continue
            parts = line.split(FIELD_SEP)
            if len(parts) >= 6:
                panes.append(
                    PaneInfo(
                        pane_id=parts[0],
                        session_name=parts[1],
                        window_id=parts[2],
                        current_command=parts[3],
                        start_command=parts[4].strip('"'),
                        tty=parts[5],
                    )
                )

        return panes

    async def list_clients(self) -> list[str]:
        """List attached client ttys."""
        stdout, _, returncode = await self._run("list-clients", "-F", "#{client_tty}", check=False)
        if returncode != 0:
            return []
        return [line for line in stdout.decode(errors="replace").splitlines() if line]

    async def pane_exists(self, pane_id: str) -> bool:
        """Check whether a pane is still alive."""
        stdout, _, returncode = await self._run(
            "display-message", "-p", "-t", pane_id, "#{pane_id}", check=False
        )
        return returncode == 0 and stdout.decode().strip() == pane_id

    async def display_message(self, text: str, client: Optional[str] = None) -> None:
        """Show a message in a client's status line.

        Args:
            text: Message text. ``#`` is escaped so it is not expanded as
                a format.
            client: Client tty. If None, tmux picks the current client.
        """
        args = ["display-message"]
        if client:
            args.extend(["-c", client])
        args.append(text.replace("#", "##"))
        await self._run(*args)

    async def focus_pane(self, pane_id: str) -> None:
        """Make a pane the active pane of its window and the window current."""
        await self._run("select-window", "-t", pane_id)
        await self._run("select-pane", "-t", pane_id)

    async def switch_client(self, client: str, pane_id: str) -> None:
        """Point a client at the session holding a pane."""
        await self._run("switch-client", "-c", client, "-t", pane_id)

    async def pipe_pane(self, pane_id: str, shell_command: Optional[str] = None) -> None:
        """Start (or with no command, stop) piping a pane's output.

        A new pipe replaces any existing one for the pane.
        """
        args = ["pipe-pane", "-t", pane_id]
        if shell_command:
            args.append(shell_command)
        await self._run(*args)
