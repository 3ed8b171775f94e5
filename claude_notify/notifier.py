"""Slack incoming-webhook notifier."""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

logger = logging.getLogger(__name__)

WAITING_MESSAGE = "Claude is waiting for your input"
DEFAULT_TIMEOUT = 10.0


@dataclass
class Alert:
    """What gets sent when Claude has been idle long enough."""
    summary_text: str
    session_id: int
    working_directory: str
    reply_hint_available: bool = False


@dataclass
class DeliveryResult:
    """Outcome of one delivery attempt (diagnostics only)."""
    ok: bool
    status_code: Optional[int] = None
    error: Optional[str] = None
    reason: str = "sent"

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "status_code": self.status_code,
            "error": self.error,
            "reason": self.reason,
        }


def reply_hint(session_id: int) -> str:
    return f'Reply: `claude-notify-send --session {session_id} "<your response>"`'


def build_slack_payload(alert: Alert) -> dict:
    """Build the webhook payload: headline, task summary, session context."""
    blocks = [
        {
            "type": "section",
            "text": {"type": "mrkdwn", "text": f"🤖 *{WAITING_MESSAGE}*"},
        },
    ]
    if alert.summary_text:
        blocks.append({
            "type": "section",
            "text": {"type": "mrkdwn", "text": f"```\n{alert.summary_text}\n```"},
        })

    context = [
        {
            "type": "mrkdwn",
            "text": f"Session ID: {alert.session_id} | Directory: `{alert.working_directory}`",
        },
    ]
    if alert.reply_hint_available:
        context.append({"type": "mrkdwn", "text": reply_hint(alert.session_id)})
    blocks.append({"type": "context", "elements": context})

    return {
        "text": alert.summary_text or WAITING_MESSAGE,
        "blocks": blocks,
    }


class SlackNotifier:
    """Posts alerts to a Slack incoming webhook.

    Best effort: send() never raises, it reports failures in the
    returned DeliveryResult. No retries.
    """

    def __init__(self, webhook_url: str, timeout: float = DEFAULT_TIMEOUT):
        self.webhook_url = webhook_url
        self.timeout = timeout

    def send(self, alert: Alert) -> DeliveryResult:
        """Deliver one alert synchronously."""
        payload = build_slack_payload(alert)
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(self.webhook_url, json=payload)
                response.raise_for_status()
        except httpx.TimeoutException:
            return DeliveryResult(ok=False, error=f"timed out after {self.timeout}s", reason="timeout")
        except httpx.HTTPStatusError as e:
            return DeliveryResult(
                ok=False,
                status_code=e.response.status_code,
                error=e.response.text[:200],
                reason="api_error",
            )
        except httpx.HTTPError as e:
            return DeliveryResult(ok=False, error=str(e), reason="network_error")
        return DeliveryResult(ok=True, status_code=response.status_code)

    def send_async(
        self,
        alert: Alert,
        on_result: Optional[Callable[[DeliveryResult], None]] = None,
    ) -> threading.Thread:
        """Deliver in a daemon thread so the event loop never waits on the network."""

        def worker():
            try:
                result = self.send(alert)
            except Exception as e:
                result = DeliveryResult(ok=False, error=str(e), reason="unexpected_error")
            if not result.ok:
                logger.debug(f"Slack delivery failed ({result.reason}): {result.error}")
            if on_result:
                on_result(result)

        thread = threading.Thread(target=worker, name="slack-notify", daemon=True)
        thread.start()
        return thread
