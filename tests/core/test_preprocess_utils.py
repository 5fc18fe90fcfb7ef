"""Tests for preprocessing utility functions."""

import polars as pl
import pytest

from reformdid.core.preprocess.utils import (
    bin_event_time,
    event_indicator_names,
    extract_vars_from_formula,
    has_controls,
    indicator_name,
    parse_formula,
    relative_year,
    varying_within,
)


@pytest.mark.parametrize(
    "k, expected",
    [(-5, "lead_5"), (-1, "lead_1"), (0, "lag_0"), (17, "lag_17"), (3.0, "lag_3")],
)
def test_indicator_name(k, expected):
    assert indicator_name(k) == expected


@pytest.mark.parametrize("k", [-5, -2, 0, 1, 17])
def test_relative_year_inverts_indicator_name(k):
    assert relative_year(indicator_name(k)) == k


def test_relative_year_rejects_other_names():
    with pytest.raises(ValueError, match="not an event indicator"):
        relative_year("spend_q")


def test_event_indicator_names():
    assert event_indicator_names(2, 1) == ["lead_2", "lead_1", "lag_0", "lag_1"]
    assert len(event_indicator_names(5, 17)) == 23


def test_bin_event_time():
    df = pl.DataFrame({"e": [-9, -5, -2, 0, 17, 30, None]})

    result = df.select(bin_event_time(pl.col("e"), 5, 17))["e"].to_list()

    assert result == [-5, -5, -2, 0, 17, 17, None]


def test_parse_formula():
    parsed = parse_formula("y ~ trend + C(region) + log(pop)")

    assert parsed["outcome"] == "y"
    assert parsed["predictors"] == ["trend", "region", "pop"]


def test_parse_formula_rejects_missing_tilde():
    with pytest.raises(ValueError, match="Formula must be"):
        parse_formula("y + x")


def test_extract_vars_from_formula():
    assert extract_vars_from_formula("~ trend + trend:pop") == ["trend", "pop"]


@pytest.mark.parametrize(
    "xformla, expected",
    [(None, False), ("~1", False), ("~ 1", False), ("~ trend", True)],
)
def test_has_controls(xformla, expected):
    assert has_controls(xformla) is expected


def test_varying_within():
    df = pl.DataFrame(
        {
            "id": [1, 1, 2, 2],
            "fold": ["a", "a", "b", "b"],
            "q": [1, 2, 3, 3],
            "x": [1.0, None, 2.0, 2.0],
        }
    )

    assert varying_within(df, "id", ["fold", "q", "x"]) == ["q", "x"]
    assert varying_within(df, "id", []) == []
