"""
Inbound bridge: a Unix domain socket that injects text into the session.

Each newline-terminated UTF-8 line a client writes becomes one
("bridge", text) event on the session's event queue, where the monitor
applies it exactly like typed input followed by Enter.

Usage:
    bridge = BridgeServer("/path/to/socket", events)
    bridge.start()
    # ... accept loop runs in background thread
    bridge.stop()
"""

import logging
import os
import queue
import select
import socket
import threading
import time
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

MAX_CLIENTS = 5


class BridgeServer:
    """Unix domain socket server feeding the session event queue.

    Thread-safe: runs accept loop in background thread,
    puts messages into a queue that is consumed by the event loop.
    """

    def __init__(
        self,
        socket_path: str,
        events: queue.Queue,
        source_name: str = "bridge",
    ):
        """
        Args:
            socket_path: Path for the Unix domain socket
            events: Session event queue (receives (source_name, text) tuples)
            source_name: Event kind for messages (default: "bridge")
        """
        self.socket_path = str(socket_path)
        self.events = events
        self.source_name = source_name
        self._server_socket: Optional[socket.socket] = None
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._clients: list[socket.socket] = []
        self._client_buffers: dict[socket.socket, bytes] = {}
        self._lock = threading.Lock()

    def start(self) -> bool:
        """Start the server in a background thread.

        Returns:
            True if started successfully, False otherwise
        """
        if self._running:
            return True

        # Remove stale socket file
        socket_file = Path(self.socket_path)
        if socket_file.exists():
            test_sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
            try:
                test_sock.connect(self.socket_path)
                # Connection succeeded - another session owns this path
                logger.warning(f"Another session already listening at {self.socket_path}")
                return False
            except (ConnectionRefusedError, FileNotFoundError):
                socket_file.unlink(missing_ok=True)
            except OSError as e:
                logger.debug(f"Error checking stale socket: {e}")
                socket_file.unlink(missing_ok=True)
            finally:
                test_sock.close()

        socket_file.parent.mkdir(parents=True, exist_ok=True)

        try:
            self._server_socket = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
            self._server_socket.bind(self.socket_path)
            # Only the owner may type into the session
            os.chmod(self.socket_path, 0o600)
            self._server_socket.listen(MAX_CLIENTS)
            self._server_socket.setblocking(False)
        except OSError as e:
            logger.warning(f"Failed to create bridge socket: {e}")
            if self._server_socket:
                self._server_socket.close()
                self._server_socket = None
            return False

        self._running = True
        self._thread = threading.Thread(target=self._accept_loop, name="bridge", daemon=True)
        self._thread.start()

        logger.info(f"Bridge listening on {self.socket_path}")
        return True

    def stop(self):
        """Stop the server and cleanup."""
        self._running = False

        with self._lock:
            for client in self._clients:
                try:
                    client.close()
                except OSError:
                    pass
            self._clients.clear()
            self._client_buffers.clear()

        if self._server_socket:
            try:
                self._server_socket.close()
            except OSError:
                pass
            self._server_socket = None

        try:
            Path(self.socket_path).unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.debug(f"Error removing socket file: {e}")

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=2.0)
        self._thread = None

        logger.info("Bridge stopped")

    def _accept_loop(self):
        """Accept connections and read messages (background thread)."""
        while self._running:
            try:
                read_list = [self._server_socket]
                with self._lock:
                    read_list.extend(self._clients)

                # 0.5s timeout for shutdown responsiveness
                try:
                    readable, _, _ = select.select(read_list, [], [], 0.5)
                except (ValueError, OSError, TypeError):
                    # Socket closed during select
                    if not self._running:
                        break
                    continue

                for sock in readable:
                    if sock is self._server_socket:
                        self._accept_client()
                    else:
                        self._read_client(sock)

            except Exception as e:
                if self._running:
                    logger.debug(f"Bridge accept loop error: {e}")
                    time.sleep(0.1)  # Avoid tight loop on persistent errors

    def _accept_client(self):
        try:
            client, _ = self._server_socket.accept()
            client.setblocking(False)
            with self._lock:
                self._clients.append(client)
                self._client_buffers[client] = b""
        except BlockingIOError:
            pass
        except OSError as e:
            logger.debug(f"Bridge accept error: {e}")

    def _read_client(self, client: socket.socket):
        """Read data from a client and queue complete lines."""
        try:
            data = client.recv(8192)
        except BlockingIOError:
            return
        except OSError:
            self._remove_client(client)
            return

        if not data:
            # Client disconnected; a final unterminated line still counts
            with self._lock:
                remainder = self._client_buffers.get(client, b"")
            self._queue_line(remainder)
            self._remove_client(client)
            return

        with self._lock:
            self._client_buffers[client] += data
            lines = []
            while b"\n" in self._client_buffers[client]:
                line, self._client_buffers[client] = self._client_buffers[client].split(b"\n", 1)
                lines.append(line)
        for line in lines:
            self._queue_line(line)

    def _queue_line(self, line: bytes):
        try:
            decoded = line.decode("utf-8").strip()
        except UnicodeDecodeError:
            logger.debug(f"Dropping malformed bridge message: {line[:40]!r}")
            return
        if decoded:
            self.events.put((self.source_name, decoded))

    def _remove_client(self, client: socket.socket):
        with self._lock:
            if client in self._clients:
                self._clients.remove(client)
            self._client_buffers.pop(client, None)
        try:
            client.close()
        except OSError:
            pass

    @property
    def is_running(self) -> bool:
        return self._running and self._thread is not None and self._thread.is_alive()

    @property
    def client_count(self) -> int:
        with self._lock:
            return len(self._clients)


def send_text(socket_path: str, text: str, timeout: float = 5.0) -> bool:
    """Deliver text to a running session's bridge.

    Returns:
        True if sent successfully, False otherwise
    """
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        sock.settimeout(timeout)
        sock.connect(str(socket_path))
        sock.sendall((text.replace("\n", " ") + "\n").encode("utf-8"))
        return True
    except OSError as e:
        logger.debug(f"Bridge send error: {e}")
        return False
    finally:
        sock.close()
