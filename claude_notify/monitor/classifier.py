"""Output classification: is Claude busy with an interruptible operation?"""

import re
from typing import Union

# Claude prints "(esc to interrupt)" in its spinner line only while working
BUSY_MARKER = "to interrupt)"

# CSI (colors, cursor movement), OSC (titles, hyperlinks), and two-byte ESC forms
ANSI_PATTERN = re.compile(
    r"\x1b\[[0-?]*[ -/]*[@-~]"
    r"|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)"
    r"|\x1b[@-Z\\-_]"
)


def as_text(chunk: Union[bytes, str]) -> str:
    """Decode a raw output chunk. Undecodable bytes are dropped."""
    if isinstance(chunk, bytes):
        return chunk.decode("utf-8", errors="ignore")
    return chunk


def strip_ansi(text: str) -> str:
    """Remove terminal color and formatting escape sequences."""
    return ANSI_PATTERN.sub("", text)


def detect_busy(chunk: Union[bytes, str]) -> bool:
    """Detect if the chunk carries the busy marker."""
    if not chunk:
        return False
    return BUSY_MARKER in as_text(chunk)


def preview(chunk: Union[bytes, str], limit: int = 100) -> str:
    """Short color-free preview of a chunk for the audit log."""
    return strip_ansi(as_text(chunk))[:limit]
