"""
Exception hierarchy for claude-notify.

All exceptions inherit from ClaudeNotifyError for easy catching.
"""


class ClaudeNotifyError(Exception):
    """Base exception for claude-notify."""
    pass


class ConfigValidationError(ClaudeNotifyError):
    """Raised when config validation fails.

    Raised when:
    - Notifications are enabled but no webhook URL is configured
    - The idle timeout is not a positive number of milliseconds
    - The YAML config file cannot be parsed
    """
    pass


class SpawnError(ClaudeNotifyError):
    """The supervised command could not be started.

    Raised when:
    - The command is not found on PATH
    - The command is not executable
    - The PTY could not be allocated
    """
    pass
