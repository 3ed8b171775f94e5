"""Activity inference and notification timing for a supervised Claude session."""

from claude_notify.monitor.classifier import BUSY_MARKER, detect_busy
from claude_notify.monitor.engine import ActivityMonitor
from claude_notify.monitor.state import ActivityState, Session
from claude_notify.monitor.transitions import Transition, decide_transition

__all__ = [
    "BUSY_MARKER",
    "ActivityMonitor",
    "ActivityState",
    "Session",
    "Transition",
    "decide_transition",
    "detect_busy",
]
