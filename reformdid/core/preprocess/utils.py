"""Utility functions for preprocessing."""

import re

import polars as pl

from .constants import LAG_PREFIX, LEAD_PREFIX


def indicator_name(relative_year):
    """Name of the event indicator for a relative year.

    Negative years are leads (``lead_3`` is three periods before reform) and
    non-negative years are lags (``lag_0`` is the reform period itself).
    """
    relative_year = int(relative_year)
    if relative_year < 0:
        return f"{LEAD_PREFIX}{-relative_year}"
    return f"{LAG_PREFIX}{relative_year}"


def relative_year(name):
    """Inverse of :func:`indicator_name`."""
    if name.startswith(LEAD_PREFIX):
        return -int(name[len(LEAD_PREFIX) :])
    if name.startswith(LAG_PREFIX):
        return int(name[len(LAG_PREFIX) :])
    raise ValueError(f"'{name}' is not an event indicator name.")


def event_indicator_names(n_leads, n_lags):
    """All event indicator names from ``lead_{n_leads}`` to ``lag_{n_lags}``."""
    return [indicator_name(k) for k in range(-n_leads, n_lags + 1)]


def bin_event_time(expr, n_leads, n_lags):
    """Clip an event-time expression into the retained window.

    Every period at or before ``-n_leads`` collapses onto the earliest lead and
    every period at or after ``n_lags`` onto the latest lag.
    """
    return expr.clip(-n_leads, n_lags)


def parse_formula(formula):
    """Parse formula string to extract components."""
    parts = formula.split("~")
    if len(parts) != 2:
        raise ValueError("Formula must be in the form 'y ~ x1 + x2 + ...'")

    outcome = parts[0].strip()
    predictors_str = parts[1].strip()

    var_pattern = r"\b[a-zA-Z_]\w*\b"
    all_vars = re.findall(var_pattern, predictors_str)

    exclude = {"C", "I", "Q", "bs", "ns", "log", "exp", "sqrt", "abs", "np"}
    predictors = [v for v in all_vars if v not in exclude]

    seen = set()
    predictors = [x for x in predictors if not (x in seen or seen.add(x))]

    return {
        "outcome": outcome,
        "predictors": predictors,
        "formula": formula,
    }


def extract_vars_from_formula(formula):
    """Extract all variable names from formula string."""
    parsed = parse_formula(formula)
    vars_list = []
    if parsed["outcome"]:
        vars_list.append(parsed["outcome"])
    vars_list.extend(parsed["predictors"])
    return vars_list


def has_controls(xformla):
    """Whether a covariate formula adds anything beyond an intercept."""
    return xformla is not None and xformla.replace(" ", "") not in ("~1", "")


def varying_within(df: pl.DataFrame, idname, cols):
    """Return the columns of ``cols`` whose value changes within some unit.

    Nulls count as a distinct value, so a covariate observed in some periods and
    missing in others is reported as varying.
    """
    if not cols:
        return []
    counts = df.group_by(idname).agg([pl.col(c).n_unique().alias(c) for c in cols])
    return [c for c in cols if (counts[c] > 1).any()]
