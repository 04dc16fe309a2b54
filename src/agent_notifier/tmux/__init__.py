"""tmux terminal host: pane discovery, output capture, toasts and focus."""

from .capture import PaneCapture
from .host import TmuxHost
from .service import AsyncCommandExecutor, PaneInfo, TmuxService
from .watcher import TmuxWatcher

__all__ = [
    "AsyncCommandExecutor",
    "PaneCapture",
    "PaneInfo",
    "TmuxHost",
    "TmuxService",
    "TmuxWatcher",
]
