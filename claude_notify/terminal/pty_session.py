"""
PTY-backed subprocess for the supervised command.

The child runs as a session leader with the PTY slave as its controlling
terminal, so it behaves exactly as if started from the user's shell.
"""

import errno
import fcntl
import logging
import os
import pty
import shutil
import signal
import struct
import subprocess
import termios
import tty
from pathlib import Path
from typing import Optional, Union

from claude_notify.exceptions import SpawnError

logger = logging.getLogger(__name__)

READ_SIZE = 4096
DEFAULT_SIZE = (80, 24)  # columns, rows
TERMINATE_GRACE = 3.0


def terminal_size() -> tuple[int, int]:
    """Current (columns, rows) of our terminal, or 80x24."""
    size = shutil.get_terminal_size(DEFAULT_SIZE)
    return size.columns, size.lines


def set_winsize(fd: int, columns: int, rows: int):
    winsize = struct.pack("HHHH", rows, columns, 0, 0)
    fcntl.ioctl(fd, termios.TIOCSWINSZ, winsize)


def build_env(base: Optional[dict] = None) -> dict:
    """Child environment: inherited, with color forced on."""
    env = dict(os.environ if base is None else base)
    env["FORCE_COLOR"] = "1"
    env["TERM"] = "xterm-256color"
    return env


def _acquire_controlling_tty():
    # Runs in the child after setsid(); stdin is already the PTY slave
    fcntl.ioctl(0, termios.TIOCSCTTY, 0)


def write_all(fd: int, data: bytes):
    """os.write until every byte is out (PTYs accept partial writes)."""
    view = memoryview(data)
    while view:
        written = os.write(fd, view)
        view = view[written:]


class PtySession:
    """One supervised command attached to a fresh PTY."""

    def __init__(
        self,
        command: list[str],
        cwd: Optional[Union[str, Path]] = None,
        env: Optional[dict] = None,
    ):
        self.command = command
        self.cwd = cwd
        self.env = env
        self.master_fd: Optional[int] = None
        self.process: Optional[subprocess.Popen] = None

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process else None

    def fileno(self) -> int:
        return self.master_fd

    def spawn(self, size: Optional[tuple[int, int]] = None) -> int:
        """Start the command on a new PTY sized like our terminal.

        Returns:
            Child PID

        Raises:
            SpawnError: If the PTY or the process cannot be created
        """
        columns, rows = size or terminal_size()
        try:
            master_fd, slave_fd = pty.openpty()
        except OSError as e:
            raise SpawnError(f"Could not allocate a PTY: {e}")

        try:
            set_winsize(slave_fd, columns, rows)
            self.process = subprocess.Popen(
                self.command,
                stdin=slave_fd,
                stdout=slave_fd,
                stderr=slave_fd,
                cwd=self.cwd,
                env=build_env(self.env),
                start_new_session=True,
                preexec_fn=_acquire_controlling_tty,
            )
        except (OSError, subprocess.SubprocessError) as e:
            os.close(master_fd)
            raise SpawnError(f"Could not start {self.command[0]!r}: {e}")
        finally:
            # The child holds its own copy
            os.close(slave_fd)

        self.master_fd = master_fd
        logger.debug(f"Spawned {self.command} pid={self.process.pid} size={columns}x{rows}")
        return self.process.pid

    def read(self, size: int = READ_SIZE) -> bytes:
        """Read available output. Returns b"" once the child side is closed."""
        if self.master_fd is None:
            return b""
        try:
            return os.read(self.master_fd, size)
        except OSError as e:
            # Linux reports EIO on the master when the last slave fd closes
            if e.errno in (errno.EIO, errno.EBADF):
                return b""
            raise

    def write(self, data: bytes):
        """Forward raw input bytes to the child."""
        if self.master_fd is None:
            return
        try:
            write_all(self.master_fd, data)
        except OSError as e:
            logger.debug(f"PTY write failed: {e}")

    def resize(self, columns: int, rows: int):
        if self.master_fd is None:
            return
        try:
            set_winsize(self.master_fd, columns, rows)
        except OSError as e:
            logger.debug(f"PTY resize failed: {e}")

    def poll(self) -> Optional[int]:
        return self.process.poll() if self.process else None

    def terminate(self):
        """Ask the child to stop (SIGTERM)."""
        if self.process and self.process.poll() is None:
            try:
                self.process.send_signal(signal.SIGTERM)
            except ProcessLookupError:
                pass

    def wait(self, timeout: Optional[float] = None) -> int:
        """Reap the child and return its exit code (128+N if killed by signal N)."""
        if self.process is None:
            return 1
        try:
            returncode = self.process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            self.process.kill()
            returncode = self.process.wait()
        if returncode < 0:
            return 128 - returncode
        return returncode

    def close(self):
        """Terminate if still running, reap, and release the PTY."""
        if self.process and self.process.poll() is None:
            self.terminate()
            self.wait(timeout=TERMINATE_GRACE)
        if self.master_fd is not None:
            try:
                os.close(self.master_fd)
            except OSError:
                pass
            self.master_fd = None


class RawTerminal:
    """Context manager putting stdin in raw mode (no-op if not a TTY)."""

    def __init__(self, fd: int):
        self.fd = fd
        self._saved: Optional[list] = None

    def __enter__(self) -> "RawTerminal":
        if os.isatty(self.fd):
            self._saved = termios.tcgetattr(self.fd)
            tty.setraw(self.fd)
        return self

    def __exit__(self, exc_type, exc, tb):
        self.restore()
        return False

    def restore(self):
        if self._saved is not None:
            termios.tcsetattr(self.fd, termios.TCSADRAIN, self._saved)
            self._saved = None
