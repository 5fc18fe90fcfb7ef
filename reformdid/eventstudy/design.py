"""Design matrix construction for the fixed-effects event study."""

import logging
from dataclasses import dataclass, field
from itertools import combinations, product
from typing import NamedTuple

import numpy as np
import pandas as pd
import polars as pl
import scipy.linalg
import scipy.sparse as sp
from formulaic import model_matrix

from reformdid.core.errors import ModelFitError
from reformdid.core.preprocess.constants import WEIGHTS_COLUMN
from reformdid.core.preprocess.utils import has_controls, indicator_name

log = logging.getLogger(__name__)

_RANK_TOL = 1e-9


class Term(NamedTuple):
    """An event-time regressor, optionally interacted with covariate levels.

    Attributes
    ----------
    event : str
        Event indicator name, e.g. ``lag_3``.
    cells : tuple[tuple[str, int], ...]
        ``(covariate, level)`` pairs the indicator is interacted with. Empty for
        the base event-time effect.
    """

    event: str
    cells: tuple = ()

    @property
    def label(self) -> str:
        """Readable column label such as ``lag_3:spend_q=2``."""
        if not self.cells:
            return self.event
        return ":".join([self.event, *(f"{cov}={level}" for cov, level in self.cells)])


def interaction_cells(covariates, covariate_levels, reference_levels):
    """Every non-reference level combination of every covariate subset.

    Subsets are visited by size and then in the order of ``covariates``, so a
    two-covariate specification yields the first covariate's cells, the
    second's, and then their two-way cells.

    Parameters
    ----------
    covariates : list[str]
        Ordered covariate names.
    covariate_levels : dict[str, list[int]]
        Levels of each covariate.
    reference_levels : dict[str, int]
        Omitted level of each covariate.

    Returns
    -------
    list[tuple[tuple[str, int], ...]]
        Cell keys, the base effect ``()`` excluded.
    """
    non_reference = {
        cov: [lvl for lvl in covariate_levels[cov] if lvl != reference_levels[cov]] for cov in covariates
    }
    cells = []
    for size in range(1, len(covariates) + 1):
        for subset in combinations(covariates, size):
            for lvls in product(*(non_reference[c] for c in subset)):
                cells.append(tuple(zip(subset, lvls, strict=True)))
    return cells


@dataclass
class Design:
    """Within-transformed estimation arrays.

    Attributes
    ----------
    y : ndarray
        Demeaned outcome.
    X : ndarray
        Demeaned regressors, event terms first.
    weights : ndarray
        Analytic weights.
    groups : ndarray
        Integer cluster codes.
    terms : list[Term]
        Event terms in column order.
    nuisance_names : list[str]
        Period effects and controls, following the event terms.
    empty_terms : list[Term]
        Event terms the sample cannot identify: cells without observations
        and cells made redundant by a missing reference cell.
    n_units : int
        Units in the estimation sample.
    """

    y: np.ndarray
    X: np.ndarray
    weights: np.ndarray
    groups: np.ndarray
    terms: list
    nuisance_names: list
    empty_terms: list = field(default_factory=list)
    n_units: int = 0

    @property
    def n_clusters(self) -> int:
        """Number of distinct clusters."""
        return len(np.unique(self.groups))


def build_design(data: pl.DataFrame, config, covariates, covariate_levels, reference_levels) -> Design:
    """Assemble the within-transformed event-study design.

    Parameters
    ----------
    data : pl.DataFrame
        Estimation sample produced by preprocessing.
    config : EventStudyConfig
        Event-study configuration.
    covariates : list[str]
        Ordered covariates interacted with the event indicators.
    covariate_levels : dict[str, list[int]]
        Levels used to expand each covariate.
    reference_levels : dict[str, int]
        Omitted level of each covariate.

    Returns
    -------
    Design
        Arrays ready for weighted least squares.
    """
    data = data.filter(pl.col(WEIGHTS_COLUMN) > 0)
    if covariates:
        n_before = data[config.idname].n_unique()
        data = data.drop_nulls(subset=covariates)
        n_missing = n_before - data[config.idname].n_unique()
        if n_missing > 0:
            log.info("Excluded %d units with missing baseline covariates from the estimation sample", n_missing)

    if data.is_empty():
        raise ModelFitError("The estimation sample is empty.")

    reference = indicator_name(config.reference_period)
    event_names = [e for e in config.event_names if e != reference]
    cells = [(), *interaction_cells(covariates, covariate_levels, reference_levels)]

    event_exprs = []
    candidates = []
    for c in cells:
        cell_mask = pl.lit(1.0)
        for cov, level in c:
            cell_mask = cell_mask * (pl.col(cov) == level).cast(pl.Float64)
        for e in event_names:
            term = Term(e, c)
            candidates.append(term)
            event_exprs.append((pl.col(e) * cell_mask).alias(term.label))

    event_block = data.select(event_exprs).to_numpy()
    identified = _identified_columns(event_block, candidates)
    terms = [t for t, keep in zip(candidates, identified, strict=True) if keep]
    empty_terms = [t for t, keep in zip(candidates, identified, strict=True) if not keep]
    event_block = event_block[:, identified]

    if empty_terms:
        log.debug("Dropped %d event columns without identifying variation", len(empty_terms))
    if not any(not t.cells for t in terms):
        raise ModelFitError("No event-time regressor is identified in the estimation sample.")

    period_block, period_names = _period_dummies(data[config.tname].to_numpy())
    control_block, control_names = _controls(data, config.xformla)

    X = np.column_stack([event_block, period_block, control_block])
    y = data[config.yname].cast(pl.Float64).to_numpy()
    w = data[WEIGHTS_COLUMN].to_numpy()

    _, unit_codes = np.unique(data[config.idname].to_numpy(), return_inverse=True)
    demeaned = _within(np.column_stack([X, y]), unit_codes, w)
    X_dm, y_dm = demeaned[:, :-1], demeaned[:, -1]

    _, groups = np.unique(data[config.cluster_column].to_numpy(), return_inverse=True)

    design = Design(
        y=y_dm,
        X=X_dm,
        weights=w,
        groups=groups,
        terms=terms,
        nuisance_names=period_names + control_names,
        empty_terms=empty_terms,
        n_units=int(unit_codes.max()) + 1,
    )
    _check_rank(design)
    return design


def _identified_columns(event_block, candidates):
    """Mask of the event columns kept for estimation.

    The columns of one event indicator are non-zero only on the rows where
    that indicator is on, so each indicator's block is reduced on its own. The
    base column is kept first. Interaction columns follow by subset size, and
    within a size from the last cell to the first. A column that adds no rank
    to those already kept is dropped. An all-zero column never adds rank.
    When the sample holds no treated observation at a reference level, the
    base column equals the sum of the remaining cells. The lowest remaining
    level then takes the place of the reference, and its cells are dropped.
    """
    keep = np.zeros(len(candidates), dtype=bool)
    by_event = {}
    for i, term in enumerate(candidates):
        by_event.setdefault(term.event, []).append(i)

    for idx in by_event.values():
        rows = np.any(event_block[:, idx] != 0, axis=1)
        if not rows.any():
            continue
        block = event_block[rows]
        kept = []
        for i in sorted(idx, key=lambda j: (len(candidates[j].cells), -j)):
            if np.linalg.matrix_rank(block[:, [*kept, i]]) > len(kept):
                kept.append(i)
        keep[kept] = True
    return keep


def _period_dummies(periods):
    """Period indicators with the first observed period omitted."""
    values = np.unique(periods)
    dummies = (periods[:, None] == values[None, 1:]).astype(float)
    return dummies, [f"period_{v}" for v in values[1:]]


def _controls(data: pl.DataFrame, xformla):
    """Additional controls from a right-hand-side formula, intercept removed."""
    if not has_controls(xformla):
        return np.empty((len(data), 0)), []
    rhs = xformla.split("~", 1)[1]
    frame = pd.DataFrame({name: data[name].to_numpy() for name in data.columns})
    mm = model_matrix(rhs, frame, na_action="raise")
    mm = mm.drop(columns=[c for c in mm.columns if c == "Intercept"])
    return np.asarray(mm, dtype=float), [f"control_{c}" for c in mm.columns]


def _within(values, unit_codes, weights):
    """Subtract weighted unit means from every column."""
    n = len(unit_codes)
    D = sp.csr_matrix((np.ones(n), (np.arange(n), unit_codes)))
    wsum = np.asarray(D.T @ weights).ravel()
    means = (D.T @ (values * weights[:, None])) / wsum[:, None]
    return values - D @ means


def _check_rank(design: Design) -> None:
    """Raise :class:`ModelFitError` unless the weighted design has full column rank."""
    if design.n_clusters < 2:
        raise ModelFitError(f"At least two clusters are required, found {design.n_clusters}.")

    Xw = design.X * np.sqrt(design.weights)[:, None]
    if Xw.shape[0] < Xw.shape[1]:
        raise ModelFitError(f"{Xw.shape[0]} observations cannot identify {Xw.shape[1]} regressors.")

    _, R, piv = scipy.linalg.qr(Xw, mode="economic", pivoting=True)
    diag = np.abs(np.diag(R))
    if diag.size == 0 or diag[0] == 0:
        raise ModelFitError("The design matrix is identically zero after absorbing unit effects.")

    rank = int(np.sum(diag > _RANK_TOL * diag[0]))
    if rank < Xw.shape[1]:
        names = [t.label for t in design.terms] + design.nuisance_names
        dependent = sorted(names[i] for i in piv[rank:])
        raise ModelFitError(
            f"The design is rank deficient ({rank} of {Xw.shape[1]} columns identified). "
            f"Collinear regressors: {', '.join(dependent)}"
        )
