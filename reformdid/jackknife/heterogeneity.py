"""End-to-end jackknife heterogeneity analysis."""

import logging
import warnings

import polars as pl

from reformdid.core.errors import GroupedEstimationWarning, ModelFitError
from reformdid.core.preprocess.config import ClassificationConfig, JackknifeConfig
from reformdid.core.preprocess.constants import (
    DEFAULT_WINDOW,
    ClassificationPolicy,
    DegeneracyFallback,
    FoldSelection,
)
from reformdid.core.preprocessing import preprocess_event_study

from .classify import classify_heterogeneity
from .grouped import grouped_event_study
from .jackknife import compute_jackknife
from .results import HeterogeneityAnalysisResult

log = logging.getLogger(__name__)


def jackknife_heterogeneity(
    data,
    yname,
    tname,
    idname,
    foldname,
    covariates,
    window=DEFAULT_WINDOW,
    folds="all",
    n_jobs=1,
    fold_timeout=None,
    policy="sign",
    threshold=0.0,
    n_groups=2,
    fallback="rank",
    **kwargs,
) -> HeterogeneityAnalysisResult:
    """Run the heterogeneity pipeline from a raw panel.

    Preprocesses the panel, computes leave-one-fold-out predictions from the
    covariate-interacted event study, classifies ever-treated units by their
    predicted effect and re-estimates the event study by group.

    Parameters
    ----------
    data : DataFrame
        Long panel.
    yname, tname, idname, foldname : str
        Outcome, period, unit and fold columns.
    covariates : list[str]
        Ordered baseline covariates whose interactions predict the effect.
    window : tuple[int, int], default (2, 7)
        Inclusive range of post-reform years averaged into the prediction.
    folds : {"all", "treated"}, default "all"
        Folds to hold out.
    n_jobs : int, default 1
        Parallel workers for the fold estimations.
    fold_timeout : float | None, default None
        Per-fold time limit in seconds.
    policy : {"sign", "rank"}, default "sign"
        Classification policy.
    threshold : float, default 0.0
        Sign-policy threshold.
    n_groups : int, default 2
        Number of treated groups.
    fallback : {"rank", "none", "raise"}, default "rank"
        Response to a degenerate sign split.
    **kwargs
        Passed to :func:`~reformdid.preprocess_event_study`.

    Returns
    -------
    HeterogeneityAnalysisResult
        Predictions, classification, per-group trajectories and dropped units.

    Warns
    -----
    GroupedEstimationWarning
        If the event study by group cannot be estimated, for instance because
        every fold failed. The jackknife and classification are still
        returned, with ``grouped`` set to None.
    """
    jk_config = JackknifeConfig(
        window=tuple(window),
        folds=FoldSelection(folds),
        n_jobs=n_jobs,
        fold_timeout=fold_timeout,
    )
    cls_config = ClassificationConfig(
        policy=ClassificationPolicy(policy),
        threshold=threshold,
        n_groups=n_groups,
        fallback=DegeneracyFallback(fallback),
    )

    dp = preprocess_event_study(
        data,
        yname=yname,
        tname=tname,
        idname=idname,
        foldname=foldname,
        covariates=covariates,
        **kwargs,
    )

    jk = compute_jackknife(dp, **jk_config.to_dict())
    classification = classify_heterogeneity(jk.predictions, dp.unit_data, idname, **cls_config.to_dict())
    grouped = None
    grouped_message = None
    try:
        grouped = grouped_event_study(dp, classification)
    except ModelFitError as exc:
        grouped_message = str(exc)
        log.warning("Grouped event study not estimated: %s", grouped_message)
        warnings.warn(f"Grouped event study not estimated: {grouped_message}", GroupedEstimationWarning)

    log.info(
        "Heterogeneity analysis: %d units predicted, %d dropped, %d groups",
        jk.predictions.filter(pl.col("predicted_effect").is_not_null())[idname].n_unique(),
        jk.dropped_units[idname].n_unique(),
        0 if grouped is None else len(grouped.groups),
    )

    return HeterogeneityAnalysisResult(
        jackknife=jk,
        classification=classification,
        grouped=grouped,
        grouped_message=grouped_message,
        dropped_units=jk.dropped_units.unique(maintain_order=True).sort(idname),
        n_units=dp.n_units,
        n_treated=dp.n_treated,
    )
