"""
Session supervisor - the event loop that wires everything together.

What it does:
- Spawns the supervised command on a PTY and mirrors its output
- Forwards raw stdin to it (stdin in raw mode)
- Feeds output and input to the ActivityMonitor
- Drains the shared event queue (timer, bridge, delivery, signals)
- Propagates the child's exit code

Everything that touches session state runs on this loop's thread.
"""

import logging
import os
import queue
import select
import signal
import sys
from typing import Optional

from claude_notify.config import Config, default_socket_path
from claude_notify.exceptions import SpawnError
from claude_notify.monitor.audit import AuditLog
from claude_notify.monitor.engine import ActivityMonitor
from claude_notify.notifier import SlackNotifier
from claude_notify.terminal.bridge import BridgeServer
from claude_notify.terminal.pty_session import PtySession, RawTerminal, terminal_size, write_all

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.1
STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM, signal.SIGHUP)


class SignalRelay:
    """Turns signals into queue events so they are handled on the loop thread."""

    def __init__(self, events: queue.Queue):
        self.events = events
        self._previous: dict[int, object] = {}

    def install(self):
        for sig in STOP_SIGNALS:
            self._previous[sig] = signal.signal(sig, self._on_stop)
        self._previous[signal.SIGWINCH] = signal.signal(signal.SIGWINCH, self._on_resize)

    def restore(self):
        for sig, handler in self._previous.items():
            signal.signal(sig, handler)
        self._previous.clear()

    def _on_stop(self, signum, frame):
        self.events.put(("signal", signum))

    def _on_resize(self, signum, frame):
        self.events.put(("resize", None))


class Supervisor:
    """Runs one supervised session from spawn to exit."""

    def __init__(
        self,
        config: Config,
        stdin_fd: Optional[int] = None,
        stdout_fd: Optional[int] = None,
    ):
        self.config = config
        self.stdin_fd = sys.stdin.fileno() if stdin_fd is None else stdin_fd
        self.stdout_fd = sys.stdout.fileno() if stdout_fd is None else stdout_fd
        self.session_id = os.getpid()
        self.events: queue.Queue = queue.Queue()

        self.pty = PtySession(
            [config.command, *config.command_args],
            cwd=config.working_directory,
        )
        notifier = None
        if not config.notifications_disabled and config.webhook_url:
            notifier = SlackNotifier(config.webhook_url)
        self.monitor = ActivityMonitor(
            config,
            forward=self.pty.write,
            notifier=notifier,
            audit=AuditLog(config.audit_log_path if config.debug else None),
            events=self.events,
            session_id=self.session_id,
        )
        self.bridge: Optional[BridgeServer] = None
        self.stop_reason = "claude_exited"
        self._stdin_open = True

    def start_bridge(self) -> bool:
        if not self.config.bridge_enabled:
            return False
        socket_path = self.config.socket_path or default_socket_path(self.session_id)
        bridge = BridgeServer(str(socket_path), self.events)
        if not bridge.start():
            self.monitor.record("BRIDGE_START_FAILED", {"socket_path": str(socket_path)})
            return False
        self.bridge = bridge
        self.monitor.reply_hint_available = True
        self.monitor.record("BRIDGE_STARTED", {"socket_path": str(socket_path)})
        return True

    def run(self) -> int:
        """Spawn, supervise, clean up. Returns the child's exit code.

        Raises:
            SpawnError: If the command cannot be started
        """
        self.monitor.record("SESSION_STARTED", {
            "config": {
                "notification_timeout": self.config.timeout_ms,
                "notifications_enabled": not self.config.notifications_disabled,
                "has_webhook": bool(self.config.webhook_url),
                "bridge_enabled": self.config.bridge_enabled,
            },
            "command": [self.config.command, *self.config.command_args],
        })

        try:
            self.pty.spawn()
        except SpawnError as e:
            self.monitor.record("CLAUDE_SPAWN_ERROR", {"error": str(e)})
            logger.error(f"Spawn failed: {e}")
            raise

        relay = SignalRelay(self.events)
        relay.install()
        self.start_bridge()
        try:
            with RawTerminal(self.stdin_fd):
                self._loop()
        finally:
            self.monitor.shutdown(self.stop_reason)
            if self.bridge:
                self.bridge.stop()
            relay.restore()
            # Reap and release on every path, including a failed loop
            self.pty.close()

        exit_code = self.pty.wait()
        self.monitor.record("CLAUDE_EXITED", {"exit_code": exit_code, "reason": self.stop_reason})
        return exit_code

    def _loop(self):
        master_fd = self.pty.fileno()
        while True:
            for kind, payload in self.monitor.process_events():
                self._handle_event(kind, payload)

            watch = [master_fd]
            if self._stdin_open:
                watch.append(self.stdin_fd)
            readable, _, _ = select.select(watch, [], [], POLL_INTERVAL)

            if master_fd in readable:
                data = self.pty.read()
                if not data:
                    break  # Child closed the PTY
                write_all(self.stdout_fd, data)
                self.monitor.handle_output(data)
            elif self.pty.poll() is not None:
                break  # Exited without closing the PTY (e.g. orphaned grandchildren)

            if self.stdin_fd in readable:
                data = os.read(self.stdin_fd, 4096)
                if data:
                    self.monitor.handle_input(data)
                else:
                    self._stdin_open = False

    def _handle_event(self, kind: str, payload):
        if kind == "signal":
            name = signal.Signals(payload).name
            self.monitor.record(f"{name}_RECEIVED")
            self.stop_reason = name.lower()
            self.pty.terminate()
        elif kind == "resize":
            columns, rows = terminal_size()
            self.pty.resize(columns, rows)
        else:
            logger.debug(f"Unhandled event: {kind}")


def run_session(config: Config) -> int:
    """Supervise config.command until it exits. Returns its exit code."""
    return Supervisor(config).run()
