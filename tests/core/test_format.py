"""Tests for shared formatting utilities."""

from collections import namedtuple

import numpy as np

from reformdid.core.format import (
    THICK_SEP,
    THIN_SEP,
    WIDTH,
    adjust_separators,
    attach_format,
    compute_significance,
    format_count_table,
    format_event_table,
    format_footer,
    format_kv_line,
    format_section_header,
    format_significance_note,
    format_title,
    format_value,
)


class TestFormatTitle:
    def test_title_only(self):
        lines = format_title("My Title")
        assert lines == [THICK_SEP, " My Title", THICK_SEP]

    def test_title_with_subtitle(self):
        lines = format_title("Main Title", "Sub Title")
        assert lines[1:3] == [" Main Title", " Sub Title"]
        assert len(lines) == 4


class TestSections:
    def test_section_header(self):
        assert format_section_header("Data Info") == ["", THIN_SEP, " Data Info", THIN_SEP]

    def test_footer_with_reference(self):
        assert format_footer("Reference") == [THICK_SEP, " Reference"]
        assert format_footer() == [THICK_SEP]

    def test_significance_note(self):
        lines = format_significance_note()
        assert lines[1] == THIN_SEP
        assert "does not cover 0" in lines[-1]


class TestFormatValue:
    def test_float(self):
        assert format_value(1.2345) == "1.2345"

    def test_missing(self):
        assert format_value(None) == "NA"
        assert format_value(float("nan")) == "NA"
        assert format_value(None, na_str="---") == "---"

    def test_custom_format(self):
        assert format_value(1.5, fmt=".2f") == "1.50"


class TestComputeSignificance:
    def test_excludes_zero(self):
        assert compute_significance(0.5, 1.5) == "*"
        assert compute_significance(-1.5, -0.5) == "*"

    def test_covers_zero(self):
        assert compute_significance(-0.5, 0.5) == " "
        assert compute_significance(0.0, 1.0) == " "

    def test_nan(self):
        assert compute_significance(float("nan"), 1.0) == " "


def test_kv_line():
    assert format_kv_line("Key", "Value") == " Key: Value"
    assert format_kv_line("Count", 42, indent=3) == "   Count: 42"


class TestFormatEventTable:
    def test_reference_year_has_no_interval(self):
        lines = format_event_table(
            np.array([-1, 0, 1]),
            np.array([0.0, 0.1, 0.2]),
            np.array([np.nan, 0.01, 0.5]),
            np.array([np.nan, 0.08, -0.8]),
            np.array([np.nan, 0.12, 1.2]),
            95,
        )
        text = "\n".join(lines)
        assert "[95% Conf. Interval]" in text
        assert "Event Time" in text
        ref_row = next(line for line in lines if " -1 " in line)
        assert "NA" in ref_row
        sig_row = next(line for line in lines if "0.1000" in line)
        assert "*" in sig_row

    def test_group_column(self):
        lines = format_event_table(
            np.array([0, 0]),
            np.array([0.1, 0.3]),
            np.array([0.01, 0.02]),
            np.array([0.08, 0.26]),
            np.array([0.12, 0.34]),
            90,
            group_labels=["Low", "High"],
        )
        text = "\n".join(lines)
        assert "Group" in text
        assert "Low" in text
        assert "High" in text


def test_count_table():
    lines = format_count_table(["Reason", "Units"], [["fold_failed", "3"]], left_columns=["Reason"])
    text = "\n".join(lines)
    assert lines[0] == ""
    assert "fold_failed" in text
    assert "Units" in text


def test_adjust_separators_widens_to_content():
    long_line = "x" * (WIDTH + 10)
    lines = adjust_separators([THICK_SEP, long_line, THIN_SEP, "short"])

    assert lines[0] == "=" * (WIDTH + 10)
    assert lines[2] == "-" * (WIDTH + 10)
    assert lines[3] == "short"


def test_attach_format():
    Result = namedtuple("Result", ["value"])
    attach_format(Result, lambda r: f"value={r.value}")

    r = Result(3)
    assert repr(r) == "value=3"
    assert str(r) == "value=3"
