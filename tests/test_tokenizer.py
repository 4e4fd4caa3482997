"""Tests for DEX line tokenization."""

from __future__ import annotations

from dex_monitor.ingestion.tokenizer import tokenize, tokenize_line


class TestTokenizeLine:
    """Test single-line tokenization."""

    def test_splits_code_and_fields(self):
        seg = tokenize_line("CA17*0*25*4", 3)
        assert seg.code == "CA17"
        assert seg.fields == ("0", "25", "4")
        assert seg.line_number == 3

    def test_blank_line_is_none(self):
        assert tokenize_line("") is None
        assert tokenize_line("   ") is None

    def test_code_is_trimmed(self):
        seg = tokenize_line("  VA1*100*2")
        assert seg.code == "VA1"

    def test_empty_fields_are_kept(self):
        seg = tokenize_line("MA5*ERROR**dS")
        assert seg.fields == ("ERROR", "", "dS")

    def test_field_past_end_is_empty(self):
        seg = tokenize_line("PA1*10")
        assert seg.field(0) == "10"
        assert seg.field(1) == ""
        assert seg.field(5) == ""


class TestTokenize:
    """Test document tokenization."""

    def test_crlf_and_lf_line_endings(self):
        crlf = list(tokenize("VA1*100*2\r\nPA1*1*50\r\n"))
        lf = list(tokenize("VA1*100*2\nPA1*1*50\n"))
        assert [s.code for s in crlf] == ["VA1", "PA1"]
        assert [(s.code, s.fields) for s in crlf] == [(s.code, s.fields) for s in lf]

    def test_skips_blank_lines_keeps_line_numbers(self):
        segs = list(tokenize("VA1*100*2\n\n\nPA1*1*50"))
        assert [s.line_number for s in segs] == [1, 4]

    def test_empty_input(self):
        assert list(tokenize("")) == []
        assert list(tokenize(None)) == []

    def test_sample_document(self, sample_dex):
        segs = list(tokenize(sample_dex))
        assert segs[0].code == "DXS"
        assert segs[-1].code == "DXE"
        assert len(segs) == 19

    def test_only_newlines_end_a_line(self):
        """Form feed, file separator and Unicode line separators are field text."""
        raw = "PA1*10*1\f50\r\nEA1*E\x1cJL*240115*930\nMA5*ERROR*dS\u2028SS01"
        segs = list(tokenize(raw))
        assert [s.line_number for s in segs] == [1, 2, 3]
        assert segs[0].fields == ("10", "1\f50")
        assert segs[1].fields[0] == "E\x1cJL"
        assert segs[2].fields == ("ERROR", "dS\u2028SS01")
