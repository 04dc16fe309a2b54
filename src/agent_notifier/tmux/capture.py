"""Pane output capture via tmux pipe-pane."""

import asyncio
import itertools
import logging
import os
import shlex
import stat
import tempfile
from pathlib import Path
from typing import Callable, Optional

from agent_notifier.errors import HostError

from .service import TmuxService

logger = logging.getLogger(__name__)

_fifo_counter = itertools.count()


def fifo_dir() -> Path:
    """Private directory holding the capture FIFOs."""
    path = Path(tempfile.gettempdir()) / "agent-notifier"
    path.mkdir(mode=0o700, exist_ok=True)
    return path


class PaneCapture:
    """Captures output from a tmux pane via pipe-pane.

    tmux runs ``cat >> FIFO`` for the pane; the FIFO is read with the event
    loop's reader callbacks. Bytes arriving close together are coalesced
    and handed to ``on_output`` in chunks of at most ``max_chunk_size``.
    Chunk boundaries are arbitrary and may split escape sequences or UTF-8
    characters.
    """

    def __init__(
        self,
        service: TmuxService,
        pane_id: str,
        on_output: Callable[[bytes], None],
        chunk_interval_ms: int = 50,
        max_chunk_size: int = 4096,
    ):
        """Initialize the pane capture.

        Args:
            service: tmux service used to set up the pipe.
            pane_id: Pane to capture (e.g., "%3").
            on_output: Called with each captured chunk.
            chunk_interval_ms: How long to wait for more bytes before
                delivering a partial chunk.
            max_chunk_size: Largest chunk delivered at once.
        """
        self._service = service
        self._pane_id = pane_id
        self._on_output = on_output
        self._chunk_interval = chunk_interval_ms / 1000.0
        self._max_chunk_size = max_chunk_size

        self._fifo_path: Optional[Path] = None
        self._buffer = bytearray()
        self._data_ready = asyncio.Event()
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def pane_id(self) -> str:
        """Captured pane."""
        return self._pane_id

    @property
    def is_running(self) -> bool:
        """Return True if capture is currently running."""
        return self._running

    async def start(self) -> None:
        """Create the FIFO and point the pane's pipe at it.

        Raises:
            HostError: If pipe-pane setup fails.
            OSError: If the FIFO cannot be created.
        """
        if self._running:
            return

        slug = self._pane_id.lstrip("%")
        self._fifo_path = fifo_dir() / f"pane-{os.getpid()}-{slug}-{next(_fifo_counter)}.fifo"
        if self._fifo_path.exists():
            self._fifo_path.unlink()
        os.mkfifo(self._fifo_path, mode=stat.S_IRUSR | stat.S_IWUSR)

        try:
            await self._service.pipe_pane(self._pane_id, f"cat >> {shlex.quote(str(self._fifo_path))}")
        except HostError:
            self._remove_fifo()
            raise

        self._running = True
        self._task = asyncio.create_task(self._pump())
        logger.debug("Capturing pane %s via %s", self._pane_id, self._fifo_path)

    async def stop(self, pane_alive: bool = True) -> None:
        """Stop capturing and deliver anything still buffered.

        Args:
            pane_alive: If False the pane is gone and its pipe is not reset.
        """
        if not self._running:
            return
        self._running = False

        if pane_alive:
            try:
                await self._service.pipe_pane(self._pane_id)
            except HostError as e:
                logger.debug("Could not reset pipe for pane %s: %s", self._pane_id, e)

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        self._remove_fifo()

    def _remove_fifo(self) -> None:
        if self._fifo_path is None:
            return
        try:
            self._fifo_path.unlink()
        except FileNotFoundError:
            pass

    def _on_readable(self, fd: int) -> None:
        try:
            data = os.read(fd, self._max_chunk_size)
        except BlockingIOError:
            return
        if data:
            self._buffer.extend(data)
            self._data_ready.set()

    def _deliver(self) -> None:
        while self._buffer:
            chunk = bytes(self._buffer[: self._max_chunk_size])
            del self._buffer[: self._max_chunk_size]
            try:
                self._on_output(chunk)
            except Exception:
                logger.exception("Output handler failed for pane %s", self._pane_id)

    async def _pump(self) -> None:
        """Forward FIFO bytes to on_output until cancelled."""
        loop = asyncio.get_running_loop()
        try:
            read_fd = os.open(self._fifo_path, os.O_RDONLY | os.O_NONBLOCK)
        except OSError as e:
            logger.error("Cannot open capture FIFO for pane %s: %s", self._pane_id, e)
            return
        # Our own write end keeps the FIFO from signalling EOF between writers
        hold_fd = os.open(self._fifo_path, os.O_WRONLY | os.O_NONBLOCK)
        loop.add_reader(read_fd, self._on_readable, read_fd)
        try:
            while True:
                await self._data_ready.wait()
                self._data_ready.clear()
                if len(self._buffer) < self._max_chunk_size:
                    await asyncio.sleep(self._chunk_interval)
                self._deliver()
        finally:
            loop.remove_reader(read_fd)
            os.close(read_fd)
            os.close(hold_fd)
            self._deliver()
