"""Shared fixtures for claude-notify tests."""

import pytest

from claude_notify.config import Config
from claude_notify.monitor.engine import ActivityMonitor
from claude_notify.notifier import DeliveryResult


class FakeTimer:
    """Manually fired stand-in for NotificationTimer."""

    def __init__(self, delay, on_expire):
        self.delay = delay
        self.on_expire = on_expire
        self.started = False
        self._cancelled = False
        self._fired = False

    def start(self):
        self.started = True
        return self

    def cancel(self):
        was_live = not self._cancelled and not self._fired
        self._cancelled = True
        return was_live

    @property
    def cancelled(self):
        return self._cancelled

    @property
    def fired(self):
        return self._fired

    def fire(self) -> bool:
        """Simulate expiry. Like the real timer, a cancelled one does nothing."""
        if self._cancelled:
            return False
        self._fired = True
        self.on_expire(self)
        return True


class TimerFactory:
    """Records every timer the monitor creates."""

    def __init__(self):
        self.timers: list[FakeTimer] = []

    def __call__(self, delay, on_expire):
        timer = FakeTimer(delay, on_expire)
        self.timers.append(timer)
        return timer

    @property
    def latest(self) -> FakeTimer:
        return self.timers[-1]


class RecordingNotifier:
    """Notifier that records alerts and reports a canned result inline."""

    def __init__(self, result: DeliveryResult = None):
        self.alerts = []
        self.result = result or DeliveryResult(ok=True, status_code=200)

    def send_async(self, alert, on_result=None):
        self.alerts.append(alert)
        if on_result:
            on_result(self.result)


@pytest.fixture
def sample_config(tmp_path):
    """Config with a short delay and a webhook configured."""
    return Config(
        timeout_ms=100,
        webhook_url="https://hooks.slack.com/services/T000/B000/XXXX",
        working_directory=tmp_path,
    )


@pytest.fixture
def timers():
    return TimerFactory()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def forwarded():
    """Bytes the monitor forwarded to the supervised process."""
    return []


@pytest.fixture
def monitor(sample_config, timers, notifier, forwarded):
    """Monitor with fake timers and a recording notifier."""
    return ActivityMonitor(
        sample_config,
        forward=forwarded.append,
        notifier=notifier,
        timer_factory=timers,
        session_id=4242,
    )

