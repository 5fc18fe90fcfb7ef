"""Leave-one-fold-out orchestration."""

import logging
import warnings
from typing import NamedTuple

import numpy as np
import polars as pl

from reformdid.core.errors import FoldFailureWarning, ModelFitError
from reformdid.core.parallel import parallel_map
from reformdid.core.preprocess.constants import DEFAULT_WINDOW, DropReason, FoldSelection, FoldStatus
from reformdid.core.preprocess.models import EventStudyData
from reformdid.eventstudy.estimator import fit_event_study

from .coefficients import AverageEffects, extract_average_effects
from .predict import predict_effects
from .results import JackknifeResult

log = logging.getLogger(__name__)


class FoldOutcome(NamedTuple):
    """Outcome of estimating one fold."""

    fold: object
    status: FoldStatus
    effects: AverageEffects | None
    n_obs: int | None = None
    n_units: int | None = None
    n_clusters: int | None = None
    n_empty_terms: int | None = None
    message: str | None = None


def compute_jackknife(
    dp: EventStudyData,
    window=DEFAULT_WINDOW,
    folds="all",
    n_jobs=1,
    fold_timeout=None,
    covariates=None,
) -> JackknifeResult:
    """Leave-one-fold-out predictions of each unit's treatment effect.

    For every fold, the event study is estimated on the panel with the fold's
    units removed, its coefficients are averaged over ``window`` and the
    averages predict the effect of the fold's own units. Fold subsets are
    concatenated so that every predicted unit appears once, labelled with the
    fold that was held out.

    Parameters
    ----------
    dp : EventStudyData
        Preprocessed panel.
    window : tuple[int, int], default (2, 7)
        Inclusive range of post-reform years averaged into the prediction.
    folds : {"all", "treated"}, default "all"
        Folds to hold out in turn. ``"treated"`` skips folds without an
        ever-treated unit, whose units are then listed as not estimated.
    n_jobs : int, default 1
        Parallel workers. 1 runs folds sequentially, -1 uses all cores.
    fold_timeout : float | None, default None
        Seconds a single fold may run before it is recorded as timed out.
    covariates : list[str] | None
        Covariates of the specification. Defaults to the covariates declared at
        preprocessing.

    Returns
    -------
    JackknifeResult
        Predictions, per-fold status and dropped units.

    Warns
    -----
    FoldFailureWarning
        For every fold that could not be estimated or timed out.
    """
    config = dp.config
    covariates = list(config.covariates if covariates is None else covariates)
    selection = FoldSelection(folds)
    selected = dp.fold_ids if selection == FoldSelection.ALL else dp.treated_fold_ids

    log.info("Running %d leave-one-fold-out estimations (%s folds)", len(selected), selection.value)

    args_list = [(dp, fold, covariates, window) for fold in selected]
    raw = parallel_map(_estimate_fold, args_list, n_jobs=n_jobs, timeout=fold_timeout, return_exceptions=True)

    outcomes = []
    for fold, item in zip(selected, raw, strict=True):
        if isinstance(item, TimeoutError):
            outcome = FoldOutcome(fold, FoldStatus.TIMEOUT, None, message=str(item))
        elif isinstance(item, Exception):
            raise item
        else:
            outcome = item
        if outcome.status != FoldStatus.OK:
            log.warning("Fold %s skipped (%s): %s", fold, outcome.status.value, outcome.message)
            warnings.warn(f"Fold {fold} skipped ({outcome.status.value}): {outcome.message}", FoldFailureWarning)
        outcomes.append(outcome)

    unit_frames = []
    dropped_frames = [dp.dropped_units]
    fold_col = config.foldname
    fold_dtype = dp.unit_data.schema[fold_col]

    for outcome in outcomes:
        fold_units = dp.unit_data.filter(pl.col(fold_col) == outcome.fold)
        if outcome.status != FoldStatus.OK:
            dropped_frames.append(_dropped(fold_units, dp, DropReason.FOLD_FAILED))
            continue
        preds = predict_effects(fold_units, outcome.effects, config.idname).with_columns(
            pl.lit(outcome.fold, dtype=fold_dtype).alias("fold_excluded")
        )
        unit_frames.append(preds)
        incomplete = _unpredicted(fold_units, preds, config.idname)
        dropped_frames.append(_dropped(incomplete, dp, DropReason.INCOMPLETE_COVARIATES))

    not_estimated = dp.unit_data.filter(~pl.col(fold_col).is_in(list(selected)))
    dropped_frames.append(_dropped(not_estimated, dp, DropReason.FOLD_NOT_ESTIMATED))

    n_ok = sum(1 for o in outcomes if o.status == FoldStatus.OK)
    log.info("Jackknife finished: %d of %d folds estimated", n_ok, len(outcomes))

    return JackknifeResult(
        predictions=_expand_to_panel(dp, unit_frames, fold_dtype),
        fold_status=_fold_status_table(outcomes, fold_dtype),
        dropped_units=_concat_dropped(dropped_frames, dp),
        fold_effects={o.fold: o.effects for o in outcomes if o.status == FoldStatus.OK},
        window=tuple(window),
        covariates=tuple(covariates),
        estimation_params={
            "idname": config.idname,
            "tname": config.tname,
            "foldname": config.foldname,
            "folds": selection.value,
            "n_jobs": n_jobs,
            "fold_timeout": fold_timeout,
            "out_of_sample": True,
        },
    )


def compute_full_sample(dp: EventStudyData, window=DEFAULT_WINDOW, covariates=None) -> JackknifeResult:
    """In-sample predictions from a single model on every fold.

    The counterpart of :func:`compute_jackknife` without holding anything
    out, for comparison with the out-of-sample predictions. ``fold_excluded``
    is missing for every row.

    Parameters
    ----------
    dp : EventStudyData
        Preprocessed panel.
    window : tuple[int, int], default (2, 7)
        Inclusive range of post-reform years averaged into the prediction.
    covariates : list[str] | None
        Covariates of the specification.

    Returns
    -------
    JackknifeResult
        Predictions for every unit, a single status row and dropped units.
    """
    config = dp.config
    covariates = list(config.covariates if covariates is None else covariates)
    fold_dtype = dp.unit_data.schema[config.foldname]

    result = fit_event_study(dp, covariates=covariates)
    effects = extract_average_effects(result, window)

    preds = predict_effects(dp.unit_data, effects, config.idname).with_columns(
        pl.lit(None, dtype=fold_dtype).alias("fold_excluded")
    )
    incomplete = _unpredicted(dp.unit_data, preds, config.idname)
    outcome = FoldOutcome(
        None,
        FoldStatus.OK,
        effects,
        n_obs=result.n_obs,
        n_units=result.n_units,
        n_clusters=result.n_clusters,
        n_empty_terms=len(result.empty_terms),
    )

    return JackknifeResult(
        predictions=_expand_to_panel(dp, [preds], fold_dtype),
        fold_status=_fold_status_table([outcome], fold_dtype),
        dropped_units=_concat_dropped(
            [dp.dropped_units, _dropped(incomplete, dp, DropReason.INCOMPLETE_COVARIATES)], dp
        ),
        fold_effects={None: effects},
        window=tuple(window),
        covariates=tuple(covariates),
        estimation_params={
            "idname": config.idname,
            "tname": config.tname,
            "foldname": config.foldname,
            "folds": None,
            "n_jobs": 1,
            "fold_timeout": None,
            "out_of_sample": False,
        },
    )


def _estimate_fold(dp, fold, covariates, window) -> FoldOutcome:
    """Estimate without ``fold`` and average its coefficients."""
    log.debug("Estimating with fold %s held out", fold)
    try:
        result = fit_event_study(dp, covariates=covariates, exclude_folds=[fold])
    except (ModelFitError, np.linalg.LinAlgError) as exc:
        return FoldOutcome(fold, FoldStatus.FAILED, None, message=str(exc))

    effects = extract_average_effects(result, window)
    return FoldOutcome(
        fold,
        FoldStatus.OK,
        effects,
        n_obs=result.n_obs,
        n_units=result.n_units,
        n_clusters=result.n_clusters,
        n_empty_terms=len(result.empty_terms),
    )


def _expand_to_panel(dp, unit_frames, fold_dtype) -> pl.DataFrame:
    """Attach unit predictions to every period of the unit."""
    config = dp.config
    if unit_frames:
        unit_preds = pl.concat(unit_frames, how="vertical_relaxed")
    else:
        unit_preds = pl.DataFrame(
            schema={
                config.idname: dp.unit_data.schema[config.idname],
                "predicted_effect": pl.Float64,
                "n_substituted": pl.Int64,
                "zero_substituted": pl.Boolean,
                "fold_excluded": fold_dtype,
            }
        )

    panel = dp.data.select(config.idname, config.tname, config.foldname)
    return (
        panel.join(unit_preds, on=config.idname, how="inner")
        .select(
            config.idname,
            config.tname,
            config.foldname,
            "predicted_effect",
            "fold_excluded",
            "n_substituted",
            "zero_substituted",
        )
        .sort(config.idname, config.tname)
    )


def _unpredicted(units: pl.DataFrame, preds: pl.DataFrame, idname) -> pl.DataFrame:
    """Rows of ``units`` whose prediction is missing."""
    missing = preds.filter(pl.col("predicted_effect").is_null()).select(idname)
    return units.join(missing, on=idname, how="semi")


def _dropped(units: pl.DataFrame, dp, reason: DropReason) -> pl.DataFrame:
    """Dropped-units rows for ``units`` with a single reason."""
    config = dp.config
    return units.select(
        pl.col(config.idname),
        pl.col(config.foldname),
        pl.lit(reason.value, dtype=pl.String).alias("reason"),
    )


def _concat_dropped(frames, dp) -> pl.DataFrame:
    """Stack dropped-units tables, sorted by unit."""
    frames = [f for f in frames if f.width > 0]
    if not frames:
        return _dropped(dp.unit_data.clear(), dp, DropReason.FOLD_FAILED)
    return pl.concat(frames, how="vertical_relaxed").sort(dp.config.idname)


def _fold_status_table(outcomes, fold_dtype) -> pl.DataFrame:
    """One row per fold with its status and sample sizes."""
    return pl.DataFrame(
        {
            "fold": [o.fold for o in outcomes],
            "status": [o.status.value for o in outcomes],
            "n_obs": [o.n_obs for o in outcomes],
            "n_units": [o.n_units for o in outcomes],
            "n_clusters": [o.n_clusters for o in outcomes],
            "n_empty_terms": [o.n_empty_terms for o in outcomes],
            "message": [o.message for o in outcomes],
        },
        schema={
            "fold": fold_dtype,
            "status": pl.String,
            "n_obs": pl.Int64,
            "n_units": pl.Int64,
            "n_clusters": pl.Int64,
            "n_empty_terms": pl.Int64,
            "message": pl.String,
        },
    )
