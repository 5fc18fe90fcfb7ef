"""Shared formatting utilities for all result output."""

import numpy as np
from prettytable import PrettyTable, TableStyle

WIDTH = 78
THICK_SEP = "=" * WIDTH
THIN_SEP = "-" * WIDTH


def _make_table(headers, rows, align_map):
    """Create a PrettyTable with SINGLE_BORDER style and per-column alignment."""
    t = PrettyTable()
    t.set_style(TableStyle.SINGLE_BORDER)
    t.field_names = headers
    for row in rows:
        t.add_row(row)
    for h in headers:
        t.align[h] = align_map.get(h, "r")
    return str(t)


def format_title(title, subtitle=None):
    """Return title block lines with thick separators."""
    lines = [THICK_SEP, f" {title}"]
    if subtitle is not None:
        lines.append(f" {subtitle}")
    lines.append(THICK_SEP)
    return lines


def format_section_header(label):
    """Return section header lines with thin separators."""
    return ["", THIN_SEP, f" {label}", THIN_SEP]


def format_footer(reference=None):
    """Return footer lines with thick separator and optional reference."""
    lines = [THICK_SEP]
    if reference is not None:
        lines.append(f" {reference}")
    return lines


def format_significance_note():
    """Return significance code legend line."""
    return ["", THIN_SEP, " Signif. codes: '*' confidence interval does not cover 0"]


def format_value(val, fmt=".4f", na_str="NA"):
    """Format a numeric value, returning na_str for None/NaN."""
    if val is None or (isinstance(val, float) and np.isnan(val)):
        return na_str
    return f"{val:{fmt}}"


def compute_significance(lci, uci):
    """Return ``'*'`` if the confidence interval excludes zero."""
    if np.isnan(lci) or np.isnan(uci):
        return " "
    return "*" if (uci < 0) or (lci > 0) else " "


def format_kv_line(key, value, indent=1):
    """Format a key-value pair with indentation."""
    return f"{' ' * indent}{key}: {value}"


def format_event_table(relative_years, estimates, std_errors, lower, upper, conf_level, group_labels=None):
    """Build an event-study table with confidence intervals.

    When ``group_labels`` is given a leading ``Group`` column is added, which is
    how grouped trajectories are rendered in a single table.
    """
    ci_header = f"[{conf_level}% Conf. Interval]"
    headers = ["Event Time", "Estimate", "Std. Error", ci_header]
    if group_labels is not None:
        headers = ["Group", *headers]
    rows = []

    for i in range(len(relative_years)):
        ev = f"{relative_years[i]:.0f}"
        a = format_value(float(estimates[i]))

        if np.isnan(std_errors[i]):
            row = [ev, a, "NA", "NA"]
        else:
            sig = compute_significance(lower[i], upper[i])
            ci_str = f"[{lower[i]:8.4f}, {upper[i]:8.4f}] {sig}"
            row = [ev, a, f"{std_errors[i]:.4f}", ci_str]

        if group_labels is not None:
            row = [str(group_labels[i]), *row]
        rows.append(row)

    table = _make_table(headers, rows, {ci_header: "l", "Group": "l"})
    return ["", *table.split("\n")]


def format_count_table(headers, rows, left_columns=None):
    """Build a plain table of labels and counts."""
    align_map = dict.fromkeys(left_columns or [], "l")
    table = _make_table(headers, rows, align_map)
    return ["", *table.split("\n")]


def adjust_separators(lines):
    """Widen separator lines to match the widest content line."""
    max_w = max((len(line) for line in lines), default=WIDTH)
    max_w = max(max_w, WIDTH)
    return [
        "=" * max_w
        if line and all(c == "=" for c in line)
        else "-" * max_w
        if line and all(c == "-" for c in line)
        else line
        for line in lines
    ]


def attach_format(result_class, format_func):
    """Monkey-patch ``__repr__`` and ``__str__`` on a result class."""

    def _repr(self):
        return format_func(self)

    def _str(self):
        return format_func(self)

    result_class.__repr__ = _repr
    result_class.__str__ = _str
