"""
Activity monitor - the state machine behind claude-notify.

What it does:
- Classifies each output chunk (busy marker or not) and applies the
  transition table
- Arms one notification timer per WORKING -> WAITING edge
- Cancels the timer and resets flags on any user or bridge input
- On expiry, checks eligibility and sends one alert per idle episode

Threading: every handle_* method must run on the event loop thread. Timer
expiry, bridge messages and delivery results arrive from other threads
through `events` and are applied by process_events().
"""

import logging
import os
import queue
from dataclasses import dataclass
from typing import Any, Callable, Optional

from claude_notify.config import Config
from claude_notify.monitor.audit import AuditLog
from claude_notify.monitor.classifier import detect_busy, preview
from claude_notify.monitor.extractor import extract_task_summary
from claude_notify.monitor.state import ActivityState, Session
from claude_notify.monitor.timer import NotificationTimer
from claude_notify.monitor.transitions import Transition, decide_transition
from claude_notify.notifier import Alert, DeliveryResult

logger = logging.getLogger(__name__)

LINE_SUBMIT_BYTES = (b"\r", b"\n")


@dataclass
class Eligibility:
    """Result of the alert gate. reason is for diagnostics only."""
    eligible: bool
    reason: str


def check_eligibility(session: Session, notifications_enabled: bool) -> Eligibility:
    """Alert only if the user has engaged, no alert was sent yet this
    episode, Claude is not busy, and notifications are enabled."""
    if not session.user_has_engaged:
        return Eligibility(False, "user_not_engaged")
    if session.notification_sent:
        return Eligibility(False, "notification_already_sent")
    if session.is_busy:
        return Eligibility(False, "still_working")
    if not notifications_enabled:
        return Eligibility(False, "notifications_disabled")
    return Eligibility(True, "all_conditions_met")


def is_line_submission(data: bytes) -> bool:
    return any(b in data for b in LINE_SUBMIT_BYTES)


class ActivityMonitor:
    """Owns the Session and applies output, input and timer events to it."""

    def __init__(
        self,
        config: Config,
        forward: Callable[[bytes], Any],
        notifier: Optional[Any] = None,
        audit: Optional[AuditLog] = None,
        events: Optional[queue.Queue] = None,
        timer_factory: Callable[..., NotificationTimer] = NotificationTimer,
        session_id: Optional[int] = None,
        reply_hint_available: bool = False,
    ):
        """
        Args:
            config: Runtime config (delay, notifications switch, working dir)
            forward: Writes raw input bytes to the supervised process
            notifier: Object with send_async(alert, on_result); None disables delivery
            audit: Decision trace sink (default: no-op)
            events: Queue shared with background threads (timer, bridge, delivery)
            timer_factory: Builds timers as factory(delay_seconds, on_expire)
            session_id: Reported in alerts (default: this process's PID)
            reply_hint_available: Whether the inbound bridge is listening
        """
        self.config = config
        self.forward = forward
        self.notifier = notifier
        self.audit = audit or AuditLog(None)
        self.events: queue.Queue = events if events is not None else queue.Queue()
        self.timer_factory = timer_factory
        self.session_id = session_id if session_id is not None else os.getpid()
        self.reply_hint_available = reply_hint_available
        self.session = Session()

    @property
    def state(self) -> ActivityState:
        return self.session.state

    @property
    def notifications_enabled(self) -> bool:
        return not self.config.notifications_disabled

    def record(self, event: str, context: Optional[dict] = None, decision: Optional[str] = None) -> dict:
        return self.audit.record(event, self.session.snapshot(), context, decision)

    # --- State transitions ---

    def transition_to(self, new_state: ActivityState, trigger: str, **context):
        old_state = self.session.state
        self.session.state = new_state
        logger.debug(f"{old_state.value} -> {new_state.value} ({trigger})")
        self.record("STATE_TRANSITION", {
            "from": old_state.value,
            "to": new_state.value,
            "trigger": trigger,
            **context,
        })

    def handle_output(self, chunk: bytes) -> Transition:
        """Apply one chunk of subprocess output. Only output drives state forward."""
        marker_present = detect_busy(chunk)
        self.session.buffer_output(chunk)

        self.record("CLAUDE_OUTPUT_RECEIVED", {
            "data_length": len(chunk),
            "contains_interrupt_text": marker_present,
            "current_state": self.session.state.value,
            "cleaned_preview": preview(chunk),
        })

        transition = decide_transition(marker_present, self.session.state)

        if transition == Transition.ENTER_WORKING:
            self.session.is_busy = True
            self.clear_timer("entered_working_state")
            self.transition_to(ActivityState.WORKING, "interrupt_text_appeared")
        elif transition == Transition.ENTER_WAITING:
            self.session.is_busy = False
            self.transition_to(ActivityState.WAITING, "interrupt_text_disappeared")
            self.maybe_start_timer()
        elif transition == Transition.REMAIN_IDLE:
            self.record("REMAINING_IN_IDLE", {"reason": "startup_output_no_interrupt_text"})
        elif transition == Transition.REMAIN_WAITING:
            self.record("OUTPUT_WHILE_WAITING", {
                "reason": "claude_output_in_waiting_state",
                "current_state": self.session.state.value,
            })

        return transition

    def handle_input(self, data: bytes, source: str = "stdin"):
        """Apply one batch of user keystrokes (or bridge-injected text).

        The bytes are forwarded first, whatever the state.
        """
        self.forward(data)

        is_enter = is_line_submission(data)
        previous_sent = self.session.notification_sent

        self.record("USER_INPUT_RECEIVED", {
            "source": source,
            "data_length": len(data),
            "is_enter_key": is_enter,
            "current_state": self.session.state.value,
            "key_preview": data.hex()[:20],
        })

        # Any keystroke shows awareness
        self.clear_timer("user_input_received")
        self.session.notification_sent = False
        if previous_sent:
            self.record("NOTIFICATION_STATE_RESET", {
                "from": True,
                "to": False,
                "trigger": f"{source}_input",
            })

        if is_enter and not self.session.user_has_engaged:
            self.session.user_has_engaged = True
            self.record("USER_ENGAGEMENT_CHANGED", {
                "from": False,
                "to": True,
                "trigger": "first_message_submitted",
            })

        # Back to WAITING, but only a fresh WORKING -> WAITING edge re-arms the timer
        if self.session.state == ActivityState.NOTIFIED:
            self.transition_to(ActivityState.WAITING, "user_input_after_notification")

        if is_enter:
            self.session.clear_output()

    def deliver_bridge_text(self, text: str):
        """Inject bridge text as if typed: the text, then Enter."""
        self.record("BRIDGE_MESSAGE_RECEIVED", {"data_length": len(text)})
        self.handle_input(text.encode("utf-8"), source="bridge")
        self.handle_input(b"\r", source="bridge")

    # --- Notification timer ---

    def maybe_start_timer(self) -> bool:
        """Arm the notification timer unless one is already pending."""
        decision = (
            self.session.state == ActivityState.WAITING
            and self.session.pending_timer is None
        )
        self.record(
            "NOTIFICATION_TIMER_EVALUATION",
            {
                "reason": "conditions_met" if decision else "not_in_waiting_state_or_timer_active",
                "user_engaged": self.session.user_has_engaged,
            },
            decision="START_TIMER" if decision else "SKIP_TIMER",
        )
        if not decision:
            return False

        timer = self.timer_factory(self.config.delay_seconds, self._post_timer_expired)
        self.session.pending_timer = timer
        timer.start()
        self.record("NOTIFICATION_TIMER_STARTED", {"timeout_ms": self.config.timeout_ms})
        return True

    def clear_timer(self, reason: str) -> bool:
        """Cancel the pending timer, if any. Idempotent."""
        timer = self.session.pending_timer
        if timer is None:
            return False
        self.session.pending_timer = None
        timer.cancel()
        self.record("NOTIFICATION_TIMER_CLEARED", {"reason": reason})
        return True

    def _post_timer_expired(self, timer: NotificationTimer):
        # Runs on the timer thread: hand off, never touch the session here
        self.events.put(("timer", timer))

    def handle_timer_expired(self, timer: NotificationTimer) -> bool:
        """Apply a timer expiry. Returns True if an alert was sent."""
        if timer is not self.session.pending_timer or timer.cancelled:
            self.record("NOTIFICATION_TIMER_STALE", {"reason": "timer_cancelled_or_replaced"},
                        decision="IGNORED")
            return False

        self.session.pending_timer = None
        self.record("NOTIFICATION_TIMER_EXPIRED")

        eligibility = self.evaluate_eligibility()
        if not eligibility.eligible:
            return False

        self.send_notification()
        self.session.notification_sent = True
        self.transition_to(ActivityState.NOTIFIED, "notification_sent")
        return True

    def evaluate_eligibility(self) -> Eligibility:
        result = check_eligibility(self.session, self.notifications_enabled)
        self.record(
            "NOTIFICATION_EVALUATION",
            {
                "conditions": {
                    "user_has_engaged": self.session.user_has_engaged,
                    "notification_not_sent": not self.session.notification_sent,
                    "claude_not_working": not self.session.is_busy,
                    "notifications_enabled": self.notifications_enabled,
                },
                "reason": result.reason,
            },
            decision="SEND_NOTIFICATION" if result.eligible else "SKIP_NOTIFICATION",
        )
        return result

    # --- Delivery ---

    def build_alert(self) -> Alert:
        return Alert(
            summary_text=extract_task_summary(self.session.output_buffer),
            session_id=self.session_id,
            working_directory=str(self.config.working_directory),
            reply_hint_available=self.reply_hint_available,
        )

    def send_notification(self):
        """Hand the alert to the notifier. Fire-and-forget."""
        alert = self.build_alert()
        self.record("SLACK_NOTIFICATION_ATTEMPT", {"summary_length": len(alert.summary_text)})

        if self.notifier is None:
            self.record("SLACK_NOTIFICATION_SKIPPED", {"reason": "no_notifier"})
            return

        try:
            self.notifier.send_async(alert, on_result=self._post_delivery_result)
        except Exception as e:
            logger.debug(f"Could not start notification delivery: {e}")
            self.record("SLACK_NOTIFICATION_FAILED", {"error": str(e), "reason": "dispatch_error"})

    def _post_delivery_result(self, result: DeliveryResult):
        # Runs on the delivery thread
        self.events.put(("delivery", result))

    def handle_delivery_result(self, result: DeliveryResult):
        """Record the outcome. Never affects state."""
        if result.ok:
            self.record("SLACK_NOTIFICATION_SUCCESS", result.to_dict())
        else:
            self.record("SLACK_NOTIFICATION_FAILED", result.to_dict())

    # --- Event queue ---

    def dispatch(self, kind: str, payload: Any) -> bool:
        """Apply one queued event. Returns False for kinds this monitor does not own."""
        if kind == "timer":
            self.handle_timer_expired(payload)
        elif kind == "delivery":
            self.handle_delivery_result(payload)
        elif kind == "bridge":
            self.deliver_bridge_text(payload)
        else:
            return False
        return True

    def process_events(self, timeout: float = 0.0) -> list[tuple[str, Any]]:
        """Drain the event queue, waiting up to timeout for the first event.

        Returns:
            Events not owned by the monitor (e.g. signals), in arrival order
        """
        unhandled = []
        wait = timeout
        while True:
            try:
                if wait > 0:
                    kind, payload = self.events.get(timeout=wait)
                else:
                    kind, payload = self.events.get_nowait()
            except queue.Empty:
                break
            wait = 0
            if not self.dispatch(kind, payload):
                unhandled.append((kind, payload))
        return unhandled

    def shutdown(self, reason: str):
        """Release the pending timer before exit."""
        self.record("CLEANUP_STARTED", {"reason": reason})
        self.clear_timer("cleanup")
        self.record("CLEANUP_COMPLETED")
