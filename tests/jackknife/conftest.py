"""Hand-built panels for the jackknife tests."""

import polars as pl
import pytest

from reformdid import preprocess_event_study

YEARS = range(2000, 2012)


def build_panel(units, effects):
    """Noise-free panel from ``(fold, reform_year, level)`` triples.

    The outcome is a unit effect plus a common trend plus, from the reform
    year on, the effect of the unit's covariate level.
    """
    rows = []
    for uid, (fold, reform, level) in enumerate(units, start=1):
        for t in YEARS:
            post = reform > 0 and t >= reform
            rows.append(
                {
                    "unit": uid,
                    "fold": fold,
                    "t": t,
                    "y": 2.0 + 0.07 * uid + 0.03 * (t - 2000) + (effects[level] if post else 0.0),
                    "g": reform,
                    "q": level,
                }
            )
    return pl.DataFrame(rows)


def _fold_units(fold, treated_levels, control_levels):
    units = [(fold, reform, level) for level in treated_levels for reform in (2004, 2006)]
    units += [(fold, 0, level) for level in control_levels]
    return units


@pytest.fixture
def jk_columns():
    return {
        "yname": "y",
        "tname": "t",
        "idname": "unit",
        "foldname": "fold",
        "gname": "g",
        "n_leads": 2,
        "n_lags": 4,
    }


@pytest.fixture
def scenario_one_panel():
    """Three folds, two levels, level 2 adds 1.0 to a zero base effect."""
    units = []
    for fold in ("A", "B", "C"):
        units += _fold_units(fold, [1, 2], [1, 2])
    return build_panel(units, {1: 0.0, 2: 1.0})


@pytest.fixture
def scenario_two_panel():
    """Level 3 is treated only in fold A. Fold B holds a never-treated level-3 unit."""
    units = _fold_units("A", [1, 2, 3], [1, 2])
    units += _fold_units("B", [1, 2], [1, 3])
    units += _fold_units("C", [1, 2], [1, 2])
    return build_panel(units, {1: 0.5, 2: 0.75, 3: 1.5})


@pytest.fixture
def single_treated_fold_panel():
    """Only fold A is ever treated, so holding it out leaves no event variation."""
    units = _fold_units("A", [1, 2], [1, 2])
    units += _fold_units("B", [], [1, 2, 1])
    units += _fold_units("C", [], [2, 1, 2])
    return build_panel(units, {1: 0.2, 2: 0.4})


@pytest.fixture
def scenario_one_dp(scenario_one_panel, jk_columns):
    return preprocess_event_study(scenario_one_panel, covariates=["q"], **jk_columns)


@pytest.fixture
def scenario_two_dp(scenario_two_panel, jk_columns):
    return preprocess_event_study(scenario_two_panel, covariates=["q"], **jk_columns)


@pytest.fixture
def control_level_panel():
    """Treated units hold levels 1 and 2, every never-treated unit holds level 0."""
    units = []
    for fold in ("A", "B", "C"):
        units += _fold_units(fold, [1, 2], [0, 0])
    return build_panel(units, {0: 0.0, 1: 0.25, 2: 1.0})


@pytest.fixture
def missing_reference_panel():
    """Only fold A has treated units at level 1, the reference level."""
    units = _fold_units("A", [1, 2], [1])
    units += _fold_units("B", [2, 3], [1])
    units += _fold_units("C", [2, 3], [1])
    return build_panel(units, {1: 0.5, 2: 1.0, 3: 1.5})
