"""Tests for the synthetic reform panel generator."""

import numpy as np
import polars as pl
import pytest

from reformdid import gen_reform_panel


def test_panel_shape_and_columns():
    df = gen_reform_panel(n_folds=4, units_per_fold=3, start_year=1990, end_year=1999, random_state=0)

    assert df.shape[0] == 4 * 3 * 10
    for col in ["district", "state", "year", "ln_pp_exp", "weight", "reform_year", "event_time", "spend_q", "inc_q"]:
        assert col in df.columns
    assert df["district"].n_unique() == 12
    assert df["state"].n_unique() == 4
    assert df.select(["district", "year"]).is_duplicated().sum() == 0


def test_reform_is_assigned_per_fold():
    df = gen_reform_panel(n_folds=6, units_per_fold=4, random_state=1)

    per_fold = df.group_by("state").agg(pl.col("reform_year").n_unique().alias("n"))
    assert (per_fold["n"] == 1).all()

    reform = df.group_by("state").agg(pl.col("reform_year").first())["reform_year"]
    assert (reform == 0).any()
    assert (reform > 0).any()


def test_never_treated_have_no_event_time():
    df = gen_reform_panel(n_folds=4, units_per_fold=2, random_state=2)

    controls = df.filter(pl.col("reform_year") == 0)
    treated = df.filter(pl.col("reform_year") > 0)
    assert controls["event_time"].null_count() == len(controls)
    assert treated["event_time"].null_count() == 0
    np.testing.assert_array_equal(
        treated["event_time"].to_numpy(),
        (treated["year"] - treated["reform_year"]).to_numpy(),
    )


def test_deterministic_under_random_state():
    a = gen_reform_panel(n_folds=4, units_per_fold=2, noise_sd=0.1, random_state=42)
    b = gen_reform_panel(n_folds=4, units_per_fold=2, noise_sd=0.1, random_state=42)

    assert a.equals(b)


def test_covariates_are_integer_levels():
    df = gen_reform_panel(n_folds=4, units_per_fold=5, covariates={"spend_q": 3}, random_state=3)

    assert df.schema["spend_q"] == pl.Int64
    assert set(df["spend_q"].unique().to_list()) <= {1, 2, 3}
    assert "inc_q" not in df.columns
    per_unit = df.group_by("district").agg(pl.col("spend_q").n_unique().alias("n"))
    assert (per_unit["n"] == 1).all()


def test_treatment_effect_enters_post_periods():
    df = gen_reform_panel(
        n_folds=4,
        units_per_fold=1,
        covariates={"spend_q": 2},
        base_effect=0.0,
        interaction_effects=None,
        random_state=4,
    )
    baseline = gen_reform_panel(
        n_folds=4,
        units_per_fold=1,
        covariates={"spend_q": 2},
        base_effect=0.5,
        random_state=4,
    )

    diff = baseline["ln_pp_exp"] - df["ln_pp_exp"]
    post = (df["reform_year"] > 0) & (df["year"] >= df["reform_year"])
    np.testing.assert_allclose(diff.filter(post).to_numpy(), 0.5)
    np.testing.assert_allclose(diff.filter(~post).to_numpy(), 0.0)


def test_missing_covariate_share():
    df = gen_reform_panel(n_folds=10, units_per_fold=10, missing_covariate_share=0.3, random_state=5)

    units = df.group_by("district").agg(pl.col("spend_q").first())
    assert units["spend_q"].null_count() > 0
    per_unit = df.group_by("district").agg(pl.col("spend_q").null_count().alias("n_null"), pl.len().alias("n"))
    assert ((per_unit["n_null"] == 0) | (per_unit["n_null"] == per_unit["n"])).all()


@pytest.mark.parametrize(
    "kwargs, match",
    [
        ({"n_folds": 1}, "n_folds"),
        ({"units_per_fold": 0}, "units_per_fold"),
        ({"start_year": 2000, "end_year": 1990}, "end_year"),
        ({"reform_years": (1990, 1980)}, "reform_years"),
        ({"missing_covariate_share": 1.0}, "missing_covariate_share"),
        ({"interaction_effects": {(("spend_q", 9),): 0.1}}, "unknown covariate level"),
    ],
)
def test_invalid_arguments(kwargs, match):
    with pytest.raises(ValueError, match=match):
        gen_reform_panel(**kwargs)
