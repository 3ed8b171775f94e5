"""CLI interface for claude-notify."""

import logging
from pathlib import Path
from typing import Optional

import click

from claude_notify import __version__
from claude_notify.config import (
    SESSIONS_DIR, Config, default_socket_path, load_config, validate_config,
)
from claude_notify.exceptions import ConfigValidationError, SpawnError
from claude_notify.terminal.bridge import send_text
from claude_notify.terminal.supervisor import run_session


def setup_logging(config: Config):
    """Configure logging.

    The terminal belongs to the supervised process, so debug output goes to
    a file in the working directory; otherwise only warnings reach stderr.
    """
    if config.debug:
        logging.basicConfig(
            level=logging.DEBUG,
            filename=str(config.debug_log_path),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )
    else:
        logging.basicConfig(
            level=logging.WARNING,
            format="%(name)s - %(levelname)s - %(message)s",
        )


@click.command(context_settings={
    "ignore_unknown_options": True,
    "allow_interspersed_args": False,
})
@click.version_option(__version__)
@click.option(
    "--timeout", "-t",
    type=int,
    default=None,
    help="Idle timeout in milliseconds before sending notification (default: 15000)"
)
@click.option(
    "--webhook-url", "-w",
    default=None,
    help="Slack webhook URL for notifications (or set SLACK_WEBHOOK_URL)"
)
@click.option(
    "--disable-notifications",
    is_flag=True,
    help="Run without notifications (transparent pass-through only)"
)
@click.option(
    "--debug", "-d",
    is_flag=True,
    help="Write state transition audit log to ./claude-notify-audit.log"
)
@click.option(
    "--bridge",
    is_flag=True,
    help="Accept replies via claude-notify-send"
)
@click.option(
    "--socket", "socket_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Bridge socket path (implies --bridge)"
)
@click.option(
    "--command",
    default=None,
    help="Command to supervise (default: claude)"
)
@click.option(
    "--config", "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: ~/.claude-notify/config.yaml)"
)
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
def main(
    timeout: Optional[int],
    webhook_url: Optional[str],
    disable_notifications: bool,
    debug: bool,
    bridge: bool,
    socket_path: Optional[Path],
    command: Optional[str],
    config_path: Optional[Path],
    args: tuple[str, ...],
):
    """Run Claude and get a Slack message when it is waiting for input.

    All other arguments are passed through to the supervised command.

    Example:
        claude-notify --timeout 30000 -- --resume
    """
    overrides = {
        "timeout_ms": timeout,
        "webhook_url": webhook_url,
        "disable_notifications": True if disable_notifications else None,
        "debug": True if debug else None,
        "bridge": True if bridge else None,
        "socket_path": str(socket_path) if socket_path else None,
        "command": command,
        "command_args": list(args) or None,
    }

    try:
        config = load_config(config_path, overrides)
        warnings = validate_config(config)
    except ConfigValidationError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    setup_logging(config)
    for warning in warnings:
        click.echo(f"Warning: {warning}", err=True)

    try:
        exit_code = run_session(config)
    except SpawnError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    raise SystemExit(exit_code)


def resolve_socket(session: Optional[int], socket_path: Optional[Path]) -> Optional[Path]:
    """Pick the bridge socket: explicit path, session PID, or the only live session."""
    if socket_path:
        return socket_path
    if session is not None:
        return default_socket_path(session)
    candidates = sorted(SESSIONS_DIR.glob("*.sock")) if SESSIONS_DIR.exists() else []
    if len(candidates) == 1:
        return candidates[0]
    return None


@click.command()
@click.version_option(__version__)
@click.argument("text")
@click.option(
    "--session", "-s",
    type=int,
    default=None,
    help="Session ID (PID) from the notification"
)
@click.option(
    "--socket", "socket_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Bridge socket path"
)
def send_main(text: str, session: Optional[int], socket_path: Optional[Path]):
    """Type TEXT into a running claude-notify session, followed by Enter.

    Example:
        claude-notify-send --session 4242 "yes, go ahead"
    """
    target = resolve_socket(session, socket_path)
    if target is None:
        click.echo("Error: could not pick a session. Use --session or --socket.", err=True)
        raise SystemExit(1)

    if not send_text(str(target), text):
        click.echo(f"Error: no session listening at {target}", err=True)
        raise SystemExit(1)

    click.echo(f"-> {target.stem}: {text[:50]}{'...' if len(text) > 50 else ''}")


if __name__ == "__main__":
    main()
