"""Fixed-effects event-study estimator."""

import logging

import numpy as np
import polars as pl
import statsmodels.api as sm

from reformdid.core.errors import ModelFitError
from reformdid.core.preprocess.constants import EVER_TREATED_COLUMN, CovarianceType
from reformdid.core.preprocess.models import EventStudyData
from reformdid.core.preprocess.utils import relative_year
from reformdid.core.preprocessing import preprocess_event_study

from .design import Term, build_design
from .results import TRAJECTORY_SCHEMA, EventStudyResult

log = logging.getLogger(__name__)


def fit_event_study(
    dp: EventStudyData,
    covariates=None,
    exclude_folds=(),
    reference_levels=None,
    covariate_levels=None,
) -> EventStudyResult:
    r"""Estimate a weighted fixed-effects event study.

    The model regresses the outcome on event-time indicators, optionally
    interacted with every subset of ``covariates``, and on period effects.
    Unit effects are absorbed by the weighted within transformation:

    .. math::

        y_{it} = \alpha_i + \lambda_t
            + \sum_{k \neq r} \Big(\beta_k + \sum_{S} \sum_{l \in L_S}
            \gamma_{k,S,l} 1\{x_{iS} = l\}\Big) D^k_{it} + \varepsilon_{it}

    where :math:`r` is the reference year, :math:`S` runs over non-empty
    covariate subsets and :math:`L_S` over their non-reference level
    combinations. Interaction columns without observations in the sample, and
    those a missing reference cell makes redundant, are dropped and recorded
    as empty.

    Parameters
    ----------
    dp : EventStudyData
        Preprocessed panel.
    covariates : list[str] | None
        Ordered baseline covariates to interact. Defaults to the covariates
        declared at preprocessing.
    exclude_folds : iterable
        Folds whose units are removed from the estimation sample.
    reference_levels : dict[str, int] | None
        Omitted level per covariate. Defaults to the lowest level held by an
        ever-treated unit of the full panel, so the reference does not move
        across folds.
    covariate_levels : dict[str, list[int]] | None
        Levels per covariate. Defaults to the levels held by ever-treated
        units of the full panel. Levels seen only among never-treated units
        never meet an event indicator and get no interaction.

    Returns
    -------
    EventStudyResult
        Event-term estimates, covariance and bookkeeping.

    Raises
    ------
    ModelFitError
        If the design is rank deficient, fewer than two clusters remain or no
        event-time regressor is identified.
    """
    config = dp.config
    covariates = list(config.covariates if covariates is None else covariates)
    exclude_folds = list(exclude_folds)

    levels = {}
    for cov in covariates:
        if covariate_levels is not None and cov in covariate_levels:
            levels[cov] = sorted(covariate_levels[cov])
        elif cov in dp.data.columns:
            levels[cov] = _treated_levels(dp, cov)
        else:
            raise ValueError(f"covariate '{cov}' is not a column of the preprocessed panel")
        if not levels[cov]:
            raise ValueError(f"covariate '{cov}' has no observed levels")

    references = {cov: levels[cov][0] for cov in covariates}
    if reference_levels is not None:
        for cov, level in reference_levels.items():
            if cov not in references:
                raise ValueError(f"reference level given for '{cov}', which is not a covariate")
            if level not in levels[cov]:
                raise ValueError(f"reference level {level} of '{cov}' is not one of {levels[cov]}")
            references[cov] = level

    sample = dp.without_folds(exclude_folds)
    design = build_design(sample, config, covariates, levels, references)

    model = sm.WLS(design.y, design.X, weights=design.weights)
    # unit effects were absorbed by the within transformation
    df_resid = len(design.y) - design.X.shape[1] - design.n_units
    if df_resid <= 0:
        raise ModelFitError(f"No residual degrees of freedom left after absorbing {design.n_units} unit effects.")
    model.df_resid = df_resid
    if config.cov_type == CovarianceType.CLUSTER:
        fit = model.fit(cov_type="cluster", cov_kwds={"groups": design.groups})
    else:
        fit = model.fit(cov_type="HC1")

    params = np.asarray(fit.params)
    vcov = np.asarray(fit.cov_params())
    n_event = len(design.terms)
    if not np.all(np.isfinite(params[:n_event])):
        raise ModelFitError("Non-finite coefficient estimates.")

    event_vcov = vcov[:n_event, :n_event]
    log.debug(
        "Fitted event study: %d obs, %d units, %d clusters, %d terms, %d empty",
        len(design.y),
        design.n_units,
        design.n_clusters,
        n_event,
        len(design.empty_terms),
    )

    return EventStudyResult(
        terms=tuple(design.terms),
        estimates=params[:n_event],
        std_errors=np.sqrt(np.clip(np.diag(event_vcov), 0.0, None)),
        vcov=event_vcov,
        empty_terms=tuple(design.empty_terms),
        covariates=tuple(covariates),
        covariate_levels=levels,
        reference_levels=references,
        event_names=tuple(config.event_names),
        reference_period=config.reference_period,
        nuisance_names=tuple(design.nuisance_names),
        nuisance_estimates=params[n_event:],
        n_obs=len(design.y),
        n_units=design.n_units,
        n_clusters=design.n_clusters,
        ci_level=config.ci_level,
        estimation_params={
            "yname": config.yname,
            "idname": config.idname,
            "tname": config.tname,
            "cluster": config.cluster_column,
            "cov_type": config.cov_type.value,
            "excluded_folds": exclude_folds,
            "n_leads": config.n_leads,
            "n_lags": config.n_lags,
        },
    )


def event_study(
    data,
    yname,
    tname,
    idname,
    foldname,
    covariates=None,
    reference_levels=None,
    **kwargs,
) -> EventStudyResult:
    """Preprocess a long panel and fit the event study in one call.

    Parameters
    ----------
    data : DataFrame
        Long panel.
    yname, tname, idname, foldname : str
        Outcome, period, unit and fold columns.
    covariates : list[str] | None
        Baseline covariates interacted with the event indicators.
    reference_levels : dict[str, int] | None
        Omitted level per covariate.
    **kwargs
        Passed to :func:`~reformdid.preprocess_event_study`.

    Returns
    -------
    EventStudyResult
        Fitted event study.
    """
    dp = preprocess_event_study(
        data,
        yname=yname,
        tname=tname,
        idname=idname,
        foldname=foldname,
        covariates=covariates,
        **kwargs,
    )
    return fit_event_study(dp, reference_levels=reference_levels)


def event_study_table(result: EventStudyResult, group_label="All", cells=()) -> pl.DataFrame:
    """Dynamic trajectory of one cell, reference year included.

    Parameters
    ----------
    result : EventStudyResult
        Fitted event study.
    group_label : str, default "All"
        Value written to the ``group_label`` column.
    cells : tuple[tuple[str, int], ...], default ()
        Covariate cell whose trajectory is reported. The trajectory at year
        ``k`` is the base coefficient plus the interactions of every sub-cell
        of ``cells`` at ``k``. Interactions that were not estimated count as 0.

    Returns
    -------
    pl.DataFrame
        Columns ``group_label``, ``relative_year``, ``point_estimate``,
        ``standard_error``, ``ci_lower`` and ``ci_upper``. The reference year
        has estimate 0 and a missing standard error. Years whose base
        coefficient is not identified are missing.
    """
    z = result.critical_value
    sub_cells = _sub_cells(tuple(cells))

    rows = []
    for name in result.event_names:
        k = relative_year(name)
        if k == result.reference_period:
            rows.append((group_label, k, 0.0, np.nan, np.nan, np.nan))
            continue
        if not result.has_term(Term(name, ())):
            rows.append((group_label, k, np.nan, np.nan, np.nan, np.nan))
            continue
        est, se = result.lincom({Term(name, c): 1.0 for c in sub_cells})
        rows.append((group_label, k, est, se, est - z * se, est + z * se))

    return pl.DataFrame(rows, schema=TRAJECTORY_SCHEMA, orient="row")


def _sub_cells(cells):
    """The base cell and every non-empty sub-cell of ``cells``, order kept."""
    subsets = [()]
    for pair in cells:
        subsets += [(*s, pair) for s in subsets]
    return subsets


def _treated_levels(dp, cov):
    """Sorted levels of ``cov`` among ever-treated units, or all levels if none is treated."""
    observed = dp.data.select(cov, EVER_TREATED_COLUMN).drop_nulls(cov)
    treated = observed.filter(pl.col(EVER_TREATED_COLUMN))[cov].unique().to_list()
    return sorted(treated or observed[cov].unique().to_list())
