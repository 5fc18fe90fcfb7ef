"""Shared fixtures for reformdid tests."""

import numpy as np
import polars as pl
import pytest

from reformdid import gen_reform_panel, preprocess_event_study

PANEL_COLUMNS = {
    "yname": "ln_pp_exp",
    "tname": "year",
    "idname": "district",
    "foldname": "state",
}

THREE_COV_EFFECTS = {
    (("spend_q", 2),): 0.05,
    (("inc_q", 2),): -0.02,
    (("urban", 2),): 0.04,
    (("spend_q", 2), ("inc_q", 2)): 0.01,
    (("inc_q", 2), ("urban", 2)): -0.015,
    (("spend_q", 2), ("inc_q", 2), ("urban", 2)): 0.025,
}


@pytest.fixture
def rng():
    return np.random.default_rng(20160101)


@pytest.fixture
def panel_columns():
    return dict(PANEL_COLUMNS)


@pytest.fixture
def three_cov_effects():
    return dict(THREE_COV_EFFECTS)


@pytest.fixture(scope="session")
def reform_panel():
    return gen_reform_panel(
        n_folds=8,
        units_per_fold=6,
        covariates={"spend_q": 2},
        base_effect=0.05,
        interaction_effects={(("spend_q", 2),): 0.10},
        random_state=7,
    )


@pytest.fixture(scope="session")
def two_cov_panel():
    return gen_reform_panel(
        n_folds=10,
        units_per_fold=12,
        covariates={"spend_q": 2, "inc_q": 2},
        base_effect=0.04,
        interaction_effects={
            (("spend_q", 2),): 0.06,
            (("inc_q", 2),): -0.03,
            (("spend_q", 2), ("inc_q", 2)): 0.02,
        },
        random_state=11,
    )


@pytest.fixture(scope="session")
def three_cov_panel():
    return gen_reform_panel(
        n_folds=12,
        units_per_fold=16,
        covariates={"spend_q": 2, "inc_q": 2, "urban": 2},
        base_effect=0.03,
        interaction_effects=THREE_COV_EFFECTS,
        random_state=5,
    )


@pytest.fixture
def reform_dp(reform_panel):
    return preprocess_event_study(reform_panel, covariates=["spend_q"], weightsname="weight", **PANEL_COLUMNS)


@pytest.fixture
def tiny_panel():
    """Three folds, two units each, reform in 2003 for fold 1 and 2004 for fold 2."""
    rows = []
    years = range(2000, 2008)
    reform = {1: 2003, 2: 2004, 3: 0}
    uid = 0
    for fold in (1, 2, 3):
        for spend in (1, 2):
            uid += 1
            for t in years:
                g = reform[fold]
                rows.append(
                    {
                        "unit": uid,
                        "fold": fold,
                        "t": t,
                        "y": 1.0 + 0.1 * uid + 0.05 * (t - 2000) + (0.2 if g and t >= g else 0.0),
                        "g": g,
                        "spend": spend,
                    }
                )
    return pl.DataFrame(rows)
