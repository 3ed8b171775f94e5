"""Session state for one supervised process."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from claude_notify.monitor.timer import NotificationTimer

OUTPUT_BUFFER_LIMIT = 500_000  # Bytes of output kept for task extraction


class ActivityState(str, Enum):
    """What the supervised process is doing, as inferred from its output."""
    IDLE = "IDLE"  # Startup, nothing to report yet
    WORKING = "WORKING"
    WAITING = "WAITING"
    NOTIFIED = "NOTIFIED"


@dataclass
class Session:
    """Mutable session state. Only touched from the event loop thread."""
    state: ActivityState = ActivityState.IDLE
    user_has_engaged: bool = False
    notification_sent: bool = False
    is_busy: bool = False
    pending_timer: Optional[NotificationTimer] = None
    output_buffer: list[bytes] = field(default_factory=list)
    output_buffer_size: int = 0

    def buffer_output(self, chunk: bytes):
        """Append a chunk, dropping the oldest ones past OUTPUT_BUFFER_LIMIT."""
        self.output_buffer.append(chunk)
        self.output_buffer_size += len(chunk)
        while self.output_buffer_size > OUTPUT_BUFFER_LIMIT and len(self.output_buffer) > 1:
            dropped = self.output_buffer.pop(0)
            self.output_buffer_size -= len(dropped)

    def clear_output(self):
        self.output_buffer.clear()
        self.output_buffer_size = 0

    def snapshot(self) -> dict:
        """Full state snapshot for the audit log."""
        return {
            "current_state": self.state.value,
            "user_has_engaged": self.user_has_engaged,
            "notification_sent": self.notification_sent,
            "is_busy": self.is_busy,
            "timers": {
                "notification_timer": self.pending_timer is not None,
            },
        }
