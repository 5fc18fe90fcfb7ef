# pylint: disable=redefined-outer-name
"""Tests for leave-one-fold-out predictions."""

import time

import numpy as np
import polars as pl
import pytest
from polars.testing import assert_frame_equal

import reformdid.jackknife.jackknife as jackknife_module
from reformdid import (
    FoldFailureWarning,
    IncompleteCovariatesWarning,
    JackknifeResult,
    Term,
    compute_full_sample,
    compute_jackknife,
    fit_event_study,
    preprocess_event_study,
)

WINDOW = (2, 4)


@pytest.fixture
def scenario_one_jk(scenario_one_dp):
    return compute_jackknife(scenario_one_dp, window=WINDOW)


def test_result_structure(scenario_one_jk):
    jk = scenario_one_jk

    assert isinstance(jk, JackknifeResult)
    assert jk.predictions.columns == [
        "unit",
        "t",
        "fold",
        "predicted_effect",
        "fold_excluded",
        "n_substituted",
        "zero_substituted",
    ]
    assert jk.fold_status["status"].to_list() == ["ok", "ok", "ok"]
    assert jk.fold_status["fold"].to_list() == ["A", "B", "C"]
    assert set(jk.fold_effects) == {"A", "B", "C"}
    assert jk.failed_folds == []
    assert jk.window == WINDOW


def test_coverage(scenario_one_jk, scenario_one_dp):
    preds = scenario_one_jk.predictions

    assert preds.select("unit", "t").is_duplicated().sum() == 0
    assert (preds["fold_excluded"] == preds["fold"]).all()
    assert len(preds) == len(scenario_one_dp.data)


def test_completeness(scenario_one_jk, scenario_one_dp):
    predicted = set(scenario_one_jk.predictions["unit"].unique().to_list())

    assert predicted == set(scenario_one_dp.unit_data["unit"].to_list())
    assert scenario_one_jk.dropped_units.is_empty()


def test_leave_one_out_recovers_interaction(scenario_one_jk, scenario_one_dp):
    units = scenario_one_jk.unit_predictions().join(scenario_one_dp.unit_data.select("unit", "q"), on="unit")

    level_two = units.filter(pl.col("q") == 2)["predicted_effect"].to_numpy()
    level_one = units.filter(pl.col("q") == 1)["predicted_effect"].to_numpy()
    np.testing.assert_allclose(level_two, 1.0, atol=1e-8)
    np.testing.assert_allclose(level_one, 0.0, atol=1e-8)
    assert not units["zero_substituted"].any()


def test_each_fold_is_excluded_from_its_own_model(scenario_one_dp, monkeypatch):
    calls = []
    original = jackknife_module.fit_event_study

    def recording_fit(dp, covariates=None, exclude_folds=(), **kwargs):
        calls.append(list(exclude_folds))
        return original(dp, covariates=covariates, exclude_folds=exclude_folds, **kwargs)

    monkeypatch.setattr(jackknife_module, "fit_event_study", recording_fit)
    compute_jackknife(scenario_one_dp, window=WINDOW)

    assert sorted(calls) == [["A"], ["B"], ["C"]]


def test_zero_substitution_for_unobserved_level(scenario_two_dp):
    jk = compute_jackknife(scenario_two_dp, window=WINDOW)
    level_three = (("q", 3),)

    effects_a = jk.fold_effects["A"]
    assert effects_a.effect(level_three) == 0.0
    assert Term("lag_2", level_three) in effects_a.substituted
    assert effects_a.substitution_counts[level_three] == 3

    units = jk.unit_predictions().join(scenario_two_dp.unit_data.select("unit", "fold", "q"), on="unit")
    a_level_three = units.filter((pl.col("fold") == "A") & (pl.col("q") == 3))
    assert (a_level_three["predicted_effect"] == effects_a.effect(())).all()
    assert (a_level_three["n_substituted"] == 3).all()
    assert a_level_three["zero_substituted"].all()
    np.testing.assert_allclose(a_level_three["predicted_effect"].to_numpy(), 0.5, atol=1e-8)

    b_level_three = units.filter((pl.col("fold") == "B") & (pl.col("q") == 3))
    assert len(b_level_three) == 1
    np.testing.assert_allclose(b_level_three["predicted_effect"].item(), 1.5, atol=1e-8)
    assert not b_level_three["zero_substituted"].item()
    assert jk.fold_effects["B"].substituted == ()


def test_idempotent(scenario_two_dp):
    first = compute_jackknife(scenario_two_dp, window=WINDOW)
    second = compute_jackknife(scenario_two_dp, window=WINDOW)

    assert_frame_equal(first.predictions, second.predictions, check_exact=True)
    assert_frame_equal(first.fold_status, second.fold_status, check_exact=True)
    assert_frame_equal(first.dropped_units, second.dropped_units, check_exact=True)


def test_parallel_matches_sequential(scenario_two_dp):
    sequential = compute_jackknife(scenario_two_dp, window=WINDOW, n_jobs=1)
    parallel = compute_jackknife(scenario_two_dp, window=WINDOW, n_jobs=2)

    assert_frame_equal(sequential.predictions, parallel.predictions)


def test_failed_fold_is_recorded(single_treated_fold_panel, jk_columns):
    dp = preprocess_event_study(single_treated_fold_panel, covariates=["q"], **jk_columns)

    with pytest.warns(FoldFailureWarning, match="Fold A skipped"):
        jk = compute_jackknife(dp, window=WINDOW)

    status = dict(zip(jk.fold_status["fold"], jk.fold_status["status"], strict=True))
    assert status == {"A": "failed", "B": "ok", "C": "ok"}
    assert jk.failed_folds == ["A"]
    assert "No event-time regressor" in jk.fold_status.filter(pl.col("fold") == "A")["message"].item()

    assert not (jk.predictions["fold"] == "A").any()
    a_units = dp.unit_data.filter(pl.col("fold") == "A")["unit"].to_list()
    dropped = jk.dropped_units.filter(pl.col("reason") == "fold_failed")
    assert sorted(dropped["unit"].to_list()) == sorted(a_units)
    assert (dropped["fold"] == "A").all()


def test_timed_out_fold_is_recorded(scenario_one_dp, monkeypatch):
    original = jackknife_module.fit_event_study

    def slow_fit(dp, covariates=None, exclude_folds=(), **kwargs):
        if list(exclude_folds) == ["B"]:
            time.sleep(3.0)
        return original(dp, covariates=covariates, exclude_folds=exclude_folds, **kwargs)

    monkeypatch.setattr(jackknife_module, "fit_event_study", slow_fit)

    with pytest.warns(FoldFailureWarning, match="timeout"):
        jk = compute_jackknife(scenario_one_dp, window=WINDOW, n_jobs=3, fold_timeout=1.0)

    status = dict(zip(jk.fold_status["fold"], jk.fold_status["status"], strict=True))
    assert status["B"] == "timeout"
    assert status["A"] == "ok"
    assert status["C"] == "ok"
    assert set(jk.dropped_units["reason"].to_list()) == {"fold_failed"}
    assert not (jk.predictions["fold"] == "B").any()


def test_timed_out_fold_does_not_block_sequential_run(scenario_one_dp, monkeypatch):
    original = jackknife_module.fit_event_study

    def slow_fit(dp, covariates=None, exclude_folds=(), **kwargs):
        if list(exclude_folds) == ["A"]:
            time.sleep(4.0)
        return original(dp, covariates=covariates, exclude_folds=exclude_folds, **kwargs)

    monkeypatch.setattr(jackknife_module, "fit_event_study", slow_fit)
    start = time.monotonic()

    with pytest.warns(FoldFailureWarning, match="timeout"):
        jk = compute_jackknife(scenario_one_dp, window=WINDOW, fold_timeout=1.0)

    assert time.monotonic() - start < 3.5
    assert jk.fold_status["status"].to_list() == ["timeout", "ok", "ok"]
    assert jk.estimation_params["n_jobs"] == 1


def test_treated_folds_only(scenario_one_panel, jk_columns):
    data = scenario_one_panel.with_columns(
        pl.when(pl.col("unit").is_in([17, 18])).then(pl.lit("D")).otherwise(pl.col("fold")).alias("fold")
    )
    dp = preprocess_event_study(data, covariates=["q"], **jk_columns)

    jk = compute_jackknife(dp, window=WINDOW, folds="treated")

    assert jk.fold_status["fold"].to_list() == ["A", "B", "C"]
    not_estimated = jk.dropped_units.filter(pl.col("reason") == "fold_not_estimated")
    assert sorted(not_estimated["unit"].to_list()) == [17, 18]
    assert set(not_estimated["fold"].to_list()) == {"D"}
    assert not (jk.predictions["fold"] == "D").any()
    assert jk.estimation_params["folds"] == "treated"


def test_incomplete_covariates_listed(scenario_one_panel, jk_columns):
    data = scenario_one_panel.with_columns(
        pl.when(pl.col("unit") == 1).then(None).otherwise(pl.col("q")).alias("q")
    )
    with pytest.warns(IncompleteCovariatesWarning):
        dp = preprocess_event_study(data, covariates=["q"], **jk_columns)

    jk = compute_jackknife(dp, window=WINDOW)

    unit_one = jk.predictions.filter(pl.col("unit") == 1)
    assert len(unit_one) == len(dp.data.filter(pl.col("unit") == 1))
    assert unit_one["predicted_effect"].null_count() == len(unit_one)
    dropped = jk.dropped_units
    assert dropped["unit"].to_list() == [1]
    assert dropped["reason"].to_list() == ["incomplete_baseline_covariates"]


def test_full_sample_predictions(scenario_one_dp):
    full = compute_full_sample(scenario_one_dp, window=WINDOW)

    assert full.predictions["fold_excluded"].null_count() == len(full.predictions)
    assert len(full.fold_status) == 1
    assert full.fold_status["fold"].item() is None
    assert full.estimation_params["out_of_sample"] is False

    units = full.unit_predictions().join(scenario_one_dp.unit_data.select("unit", "q"), on="unit")
    expected = np.where(units["q"].to_numpy() == 2, 1.0, 0.0)
    np.testing.assert_allclose(units["predicted_effect"].to_numpy(), expected, atol=1e-8)


def test_repr(scenario_one_jk):
    text = repr(scenario_one_jk)

    assert "Leave-One-Fold-Out Predicted Effects" in text
    assert "Fold status" in text


@pytest.mark.parametrize("window", [(4, 2), (0, 9), ("a", 2)])
def test_invalid_window(scenario_one_dp, window):
    with pytest.raises(ValueError, match="window"):
        compute_full_sample(scenario_one_dp, window=window)


def _treated_predictions(jk, panel):
    units = panel.filter(pl.col("g") > 0).select("unit", "fold", "q").unique()
    return jk.unit_predictions().join(units, on="unit")


def test_control_only_level_is_not_a_reference(control_level_panel, jk_columns):
    dp = preprocess_event_study(control_level_panel, covariates=["q"], **jk_columns)

    jk = compute_jackknife(dp, window=WINDOW)

    assert jk.fold_status["status"].to_list() == ["ok", "ok", "ok"]
    effects = jk.fold_effects["A"]
    assert effects.reference_levels == {"q": 1}
    assert set(effects.effects) == {(), (("q", 2),)}
    assert effects.substituted == ()

    units = _treated_predictions(jk, control_level_panel)
    np.testing.assert_allclose(units.filter(pl.col("q") == 1)["predicted_effect"].to_numpy(), 0.25, atol=1e-8)
    np.testing.assert_allclose(units.filter(pl.col("q") == 2)["predicted_effect"].to_numpy(), 1.0, atol=1e-8)


def test_fold_without_reference_level_drops_redundant_cells(missing_reference_panel, jk_columns):
    dp = preprocess_event_study(missing_reference_panel, covariates=["q"], **jk_columns)

    result = fit_event_study(dp, exclude_folds=["A"])

    assert result.reference_levels == {"q": 1}
    assert Term("lag_3", (("q", 2),)) in result.empty_terms
    assert Term("lag_3", (("q", 3),)) in result.terms
    np.testing.assert_allclose(result.coefficient(Term("lag_3", ())), 1.0, atol=1e-8)
    np.testing.assert_allclose(result.coefficient(Term("lag_3", (("q", 3),))), 0.5, atol=1e-8)


def test_fold_without_reference_level_is_estimated(missing_reference_panel, jk_columns):
    dp = preprocess_event_study(missing_reference_panel, covariates=["q"], **jk_columns)

    jk = compute_jackknife(dp, window=WINDOW)

    assert jk.fold_status["status"].to_list() == ["ok", "ok", "ok"]
    assert jk.fold_status.filter(pl.col("fold") == "A")["n_empty_terms"].item() > 0
    assert jk.fold_effects["A"].substitution_counts[(("q", 2),)] == 3

    units = _treated_predictions(jk, missing_reference_panel)
    a_level_two = units.filter((pl.col("fold") == "A") & (pl.col("q") == 2))
    np.testing.assert_allclose(a_level_two["predicted_effect"].to_numpy(), 1.0, atol=1e-8)
    assert a_level_two["zero_substituted"].all()
    b_level_three = units.filter((pl.col("fold") == "B") & (pl.col("q") == 3))
    np.testing.assert_allclose(b_level_three["predicted_effect"].to_numpy(), 1.5, atol=1e-8)
