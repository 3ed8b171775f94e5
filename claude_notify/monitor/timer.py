"""
Single-slot cancellable notification timer.

The timer never touches session state itself. On expiry it hands itself to
on_expire, which posts it to the event queue; the engine then drops it unless
it is still the session's pending timer and was never cancelled.
"""

import threading
from typing import Callable, Optional


class NotificationTimer:
    """Fires on_expire(self) once after delay seconds unless cancelled first.

    Thread-safe: cancel() may race with expiry; whichever takes the lock
    first wins, and a cancelled timer never calls on_expire.
    """

    def __init__(self, delay: float, on_expire: Callable[["NotificationTimer"], None]):
        self.delay = delay
        self.on_expire = on_expire
        self._lock = threading.Lock()
        self._cancelled = False
        self._fired = False
        self._thread: Optional[threading.Timer] = None

    def start(self) -> "NotificationTimer":
        """Start the countdown. Returns self for chaining."""
        with self._lock:
            if self._thread is not None or self._cancelled:
                return self
            self._thread = threading.Timer(self.delay, self._expire)
            self._thread.daemon = True
        self._thread.start()
        return self

    def cancel(self) -> bool:
        """Cancel the timer. Idempotent.

        Returns:
            True if this call stopped a timer that had not fired yet
        """
        with self._lock:
            was_live = not self._cancelled and not self._fired
            self._cancelled = True
        if self._thread is not None:
            self._thread.cancel()
        return was_live

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def fired(self) -> bool:
        return self._fired

    def _expire(self):
        with self._lock:
            if self._cancelled:
                return
            self._fired = True
        self.on_expire(self)
