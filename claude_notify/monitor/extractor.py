"""Task summary extraction from buffered Claude output."""

from typing import Sequence, Union

from claude_notify.monitor.classifier import as_text, strip_ansi

TASK_BOUNDARY = "●"  # Claude prefixes each assistant step with this glyph
FOOTER_PHRASE = "to interrupt"  # Spinner footer, e.g. "✻ Thinking… (esc to interrupt)"
MAX_SUMMARY_CHARS = 1000


def extract_task_summary(chunks: Sequence[Union[bytes, str]]) -> str:
    """Reduce buffered output to the most recent unit of work.

    - Strips terminal escape sequences
    - Keeps only the text after the last task boundary (whole buffer if none)
    - Cuts at the first busy-footer line, dropping it and everything after
    - Trims and caps at MAX_SUMMARY_CHARS

    Returns:
        Summary text, or "" if nothing useful remains
    """
    if not chunks:
        return ""

    if all(isinstance(c, bytes) for c in chunks):
        # Join before decoding so multi-byte glyphs split across reads survive
        text = b"".join(chunks).decode("utf-8", errors="replace")
    else:
        text = "".join(as_text(c) for c in chunks)

    text = strip_ansi(text).replace("\r\n", "\n").replace("\r", "\n")

    if TASK_BOUNDARY in text:
        text = text.rsplit(TASK_BOUNDARY, 1)[1]

    kept = []
    for line in text.split("\n"):
        if FOOTER_PHRASE in line.lower():
            break
        kept.append(line)

    return "\n".join(kept).strip()[:MAX_SUMMARY_CHARS]
