"""claude-notify - Slack alerts when a supervised Claude session is waiting for input."""

__version__ = "1.1.0"
