"""CLI entry point for agent-task-notifier."""

import json
import sys
import time
from pathlib import Path

import click

from agent_notifier import __version__
from agent_notifier.config import get_config_path, load_config
from agent_notifier.logging import apply_log_level, setup_logging
from agent_notifier.sync import TOOLS


class ConsoleHost:
    """Terminal host that prints toasts to the console and cannot focus."""

    async def show_toast(self, text: str, warning: bool = False) -> None:
        click.echo(text, err=warning)

    async def focus(self, handle) -> bool:
        return False


def _build_monitor(config, host):
    """Wire a Monitor with the configured backend and the given host."""
    from agent_notifier.monitor import Monitor
    from agent_notifier.notifications import NotificationDispatcher, create_backend
    from agent_notifier.sync import build_reconcilers

    state = {"config": config}
    dispatcher = NotificationDispatcher(create_backend(config), host, lambda: state["config"])
    monitor = Monitor(config, dispatcher, build_reconcilers(config.homes))
    return monitor, dispatcher, state


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=False, path_type=Path),
    default=None,
    help="Path to config file.",
)
@click.option("--verbose", "-v", is_flag=True, help="Log at DEBUG level.")
@click.pass_context
def main(ctx: click.Context, config: Path | None, verbose: bool) -> None:
    """Agent Task Notifier - Desktop notifications for AI coding agents."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = get_config_path(config)
    ctx.obj["config"] = load_config(config)
    ctx.obj["logger"] = setup_logging(ctx.obj["config"], level="DEBUG" if verbose else None)


@main.command()
def version() -> None:
    """Show version."""
    click.echo(f"agent-notifier version {__version__}")


@main.command()
@click.pass_context
def watch(ctx: click.Context) -> None:
    """Watch tmux panes and notify on agent events."""
    import asyncio
    import signal

    from agent_notifier.errors import HostError
    from agent_notifier.tmux import TmuxHost, TmuxService, TmuxWatcher

    config = ctx.obj["config"]
    config_path = ctx.obj["config_path"]
    logger = ctx.obj["logger"]

    async def _watch():
        service = TmuxService(tmux_path=config.tmux.tmux_path, socket_path=config.tmux.socket_path)
        try:
            await service.verify()
        except HostError as e:
            click.echo(f"Error: {e}", err=True)
            raise SystemExit(1)

        monitor, _, state = _build_monitor(config, TmuxHost(service))
        watcher = TmuxWatcher(service, monitor, poll_interval=config.tmux.poll_interval)

        def _reload():
            state["config"] = load_config(config_path)
            monitor.reload_config(state["config"])
            apply_log_level(state["config"])

        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGHUP, _reload)
            loop.add_signal_handler(signal.SIGTERM, watcher.stop)
        except (NotImplementedError, AttributeError):
            logger.debug("Signal handlers not supported on this platform")

        click.echo("Watching tmux panes for agent events")
        click.echo("Press Ctrl+C to stop")
        try:
            await watcher.run()
        finally:
            await watcher.close()
            await monitor.close()

    try:
        asyncio.run(_watch())
    except KeyboardInterrupt:
        click.echo("\nShutting down...")


@main.command()
@click.argument("tool", type=click.Choice([*TOOLS, "all"]), default="all")
@click.pass_context
def repair(ctx: click.Context, tool: str) -> None:
    """Rewrite agent configuration to call the notifier adapters."""
    import asyncio

    from agent_notifier.sync import SyncStatus

    config = ctx.obj["config"]

    async def _repair():
        monitor, _, _ = _build_monitor(config, ConsoleHost())
        try:
            if tool == "all":
                results = await monitor.repair_all()
            else:
                results = {tool: await monitor.repair(tool)}
        finally:
            await monitor.close()
        return results

    results = asyncio.run(_repair())
    for name, result in results.items():
        click.echo(f"{name:<10} {result.status.value:<10} {result.detail}")

    if any(result.status == SyncStatus.FAILED for result in results.values()):
        raise SystemExit(1)


@main.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show configuration and managed paths."""
    from agent_notifier.sync import build_reconcilers

    config = ctx.obj["config"]
    config_path = ctx.obj["config_path"]

    exists = "" if config_path.exists() else " (not found, using defaults)"
    click.echo(f"Config file: {config_path}{exists}")
    click.echo(f"Enabled: {'yes' if config.enabled else 'no'}")
    click.echo(f"Backend: {config.backend}")
    click.echo(f"OS notifications: {'on' if config.os_notification else 'off'}")
    click.echo(f"Toasts: {'on' if config.toast else 'off'}")
    click.echo(f"Dedupe window: {config.dedupe_window_ms} ms")

    for name, reconciler in build_reconcilers(config.homes).items():
        click.echo(f"\n{reconciler.display_name} ({name})")
        for label, path in reconciler.paths().items():
            state = "present" if path.exists() else "missing"
            click.echo(f"  {label:<28} {state:<8} {path}")


@main.command()
@click.option("--source", type=click.Choice(["codex", "claude", "opencode"]), required=True)
@click.option(
    "--event",
    "event_type",
    type=click.Choice(["turn_complete", "approval_requested", "stop", "subagent_stop"]),
    required=True,
)
@click.option("--status", "event_status", type=click.Choice(["success", "info", "warning"]), default="success")
@click.option("--message", "-m", required=True, help="Notification body.")
@click.option("--title", default=None)
@click.option("--session-id", default=None)
@click.option("--task-id", default=None)
@click.option("--turn-id", default=None)
@click.option("--dedupe-key", default=None)
@click.option("--tty", "tty_path", default="/dev/tty", help="Terminal device to write to.")
@click.option("--print", "print_only", is_flag=True, help="Print the frame to stdout instead.")
def emit(
    source: str,
    event_type: str,
    event_status: str,
    message: str,
    title: str | None,
    session_id: str | None,
    task_id: str | None,
    turn_id: str | None,
    dedupe_key: str | None,
    tty_path: str,
    print_only: bool,
) -> None:
    """Emit a structured event frame to the terminal."""
    from agent_notifier.events import (
        EventSource,
        EventStatus,
        EventType,
        StructuredEvent,
        emit_frame,
        encode_frame,
    )

    if not message.strip():
        click.echo("Error: message must not be empty", err=True)
        raise SystemExit(1)

    event = StructuredEvent(
        source=EventSource(source),
        event=EventType(event_type),
        status=EventStatus(event_status),
        message=message,
        created_at=int(time.time() * 1000),
        title=title or None,
        session_id=session_id or None,
        task_id=task_id or None,
        turn_id=turn_id or None,
        dedupe_key=dedupe_key or None,
    )

    if print_only:
        click.echo(encode_frame(event), nl=False)
        return

    emit_frame(event, tty_path=tty_path)


@main.command()
@click.option("--debug", is_flag=True, help="Print skipped frames to stderr.")
def decode(debug: bool) -> None:
    """Decode structured event frames from stdin."""
    import codecs

    from agent_notifier.events import StreamEventParser

    on_debug = (lambda message: click.echo(message, err=True)) if debug else None
    parser = StreamEventParser(on_debug=on_debug)
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    count = 0
    stream = click.get_binary_stream("stdin")
    for chunk in iter(lambda: stream.read(4096), b""):
        for event in parser.feed(decoder.decode(chunk)):
            click.echo(json.dumps(event.to_payload(), ensure_ascii=False))
            count += 1
    for event in parser.feed(decoder.decode(b"", final=True)):
        click.echo(json.dumps(event.to_payload(), ensure_ascii=False))
        count += 1
    parser.flush()

    if debug:
        click.echo(f"{count} event(s) decoded", err=True)


@main.command("test-notification")
@click.option("--pane", default=None, help="tmux pane to show the toast in and focus on click.")
@click.option("--wait", "wait_seconds", type=float, default=10.0, help="Seconds to wait for a click.")
@click.pass_context
def test_notification(ctx: click.Context, pane: str | None, wait_seconds: float) -> None:
    """Send a test notification through the configured channels."""
    import asyncio

    config = ctx.obj["config"]

    async def _send():
        if pane:
            from agent_notifier.tmux import TmuxHost, TmuxService

            host = TmuxHost(TmuxService(tmux_path=config.tmux.tmux_path, socket_path=config.tmux.socket_path))
        else:
            host = ConsoleHost()

        monitor, dispatcher, _ = _build_monitor(config, host)
        try:
            sent = await monitor.send_test_notification(pane or "console")
            try:
                await asyncio.wait_for(dispatcher.wait_idle(), timeout=wait_seconds)
            except asyncio.TimeoutError:
                pass
        finally:
            await monitor.close()
        return sent

    if not asyncio.run(_send()):
        click.echo("Notifier is disabled; nothing sent.", err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    sys.exit(main())
