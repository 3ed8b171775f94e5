"""
Entry point for running claude-notify as a module.

Usage:
    python -m claude_notify [OPTIONS] [CLAUDE_ARGS]...
"""

from claude_notify.cli import main

if __name__ == "__main__":
    main()
