"""
Transition table for the activity state machine.

Each output chunk is reduced to (busy marker present, current state) and
looked up here. Pairs missing from the table are no-ops.
"""

from enum import Enum

from claude_notify.monitor.state import ActivityState


class Transition(str, Enum):
    ENTER_WORKING = "enter_working"
    ENTER_WAITING = "enter_waiting"
    REMAIN_IDLE = "remain_idle"
    REMAIN_WAITING = "remain_waiting"
    NO_CHANGE = "no_change"


TRANSITIONS: dict[tuple[bool, ActivityState], Transition] = {
    # Marker appeared: Claude started working
    (True, ActivityState.IDLE): Transition.ENTER_WORKING,
    (True, ActivityState.WAITING): Transition.ENTER_WORKING,
    (True, ActivityState.NOTIFIED): Transition.ENTER_WORKING,
    # Marker disappeared: Claude needs interaction
    (False, ActivityState.WORKING): Transition.ENTER_WAITING,
    # Still in startup
    (False, ActivityState.IDLE): Transition.REMAIN_IDLE,
    # More output while waiting never restarts the countdown
    (False, ActivityState.WAITING): Transition.REMAIN_WAITING,
    (False, ActivityState.NOTIFIED): Transition.REMAIN_WAITING,
}


def decide_transition(marker_present: bool, state: ActivityState) -> Transition:
    """Look up the transition for one output chunk."""
    return TRANSITIONS.get((marker_present, state), Transition.NO_CHANGE)
