"""Tests for task summary extraction."""

from claude_notify.monitor.extractor import MAX_SUMMARY_CHARS, extract_task_summary


class TestExtractTaskSummary:
    """Test extract_task_summary function."""

    def test_keeps_text_after_last_boundary(self):
        """Earlier steps and the spinner footer are dropped."""
        chunks = ["● Step1\n", "● Step2\nmore\n", "✻ Working… (esc to interrupt)\n", "tail"]
        assert extract_task_summary(chunks) == "Step2\nmore"

    def test_footer_without_parenthesis(self):
        buffer = "●Step1\nwork\n●Step2\nmore\n✻ esc to interrupt)\nfooter"
        assert extract_task_summary([buffer]) == "Step2\nmore"

    def test_bytes_split_mid_glyph(self):
        """A boundary split across two reads is still found."""
        data = "old\n● newest step\n".encode("utf-8")
        split = data.index(b"\xe2\x97\x8f") + 1
        assert extract_task_summary([data[:split], data[split:]]) == "newest step"

    def test_no_boundary_uses_whole_buffer(self):
        assert extract_task_summary([b"just some text\r\n"]) == "just some text"

    def test_strips_ansi(self):
        chunks = [b"\x1b[1m\xe2\x97\x8f\x1b[0m \x1b[32mAll tests pass\x1b[0m\r\n"]
        assert extract_task_summary(chunks) == "All tests pass"

    def test_footer_match_is_case_insensitive(self):
        chunks = ["● Done\nPress ESC TO INTERRUPT\nafter"]
        assert extract_task_summary(chunks) == "Done"

    def test_caps_length(self):
        summary = extract_task_summary(["● " + "x" * 5000])
        assert len(summary) == MAX_SUMMARY_CHARS

    def test_empty_buffer(self):
        assert extract_task_summary([]) == ""

    def test_only_footer(self):
        assert extract_task_summary(["● \n(esc to interrupt)"]) == ""

    def test_carriage_returns_normalized(self):
        assert extract_task_summary([b"\xe2\x97\x8f a\r\nb\rc"]) == "a\nb\nc"
