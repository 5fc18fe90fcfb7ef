"""Result containers for the event-study estimator."""

from typing import NamedTuple

import numpy as np
import polars as pl
from scipy import stats

from reformdid.core.preprocess.utils import relative_year

from .design import Term

TRAJECTORY_SCHEMA = {
    "group_label": pl.String,
    "relative_year": pl.Int64,
    "point_estimate": pl.Float64,
    "standard_error": pl.Float64,
    "ci_lower": pl.Float64,
    "ci_upper": pl.Float64,
}


class EventStudyResult(NamedTuple):
    """Fitted fixed-effects event study.

    Attributes
    ----------
    terms : tuple[Term, ...]
        Identified event terms, in coefficient order.
    estimates : ndarray
        Point estimates of the event terms.
    std_errors : ndarray
        Standard errors of the event terms.
    vcov : ndarray
        Covariance matrix of the event terms.
    empty_terms : tuple[Term, ...]
        Terms dropped because no observation of the sample falls in them.
        Their coefficient is 0 wherever they are used downstream.
    covariates : tuple[str, ...]
        Covariates interacted with the event indicators, in order.
    covariate_levels : dict[str, list[int]]
        Levels each covariate was expanded over.
    reference_levels : dict[str, int]
        Omitted level of each covariate.
    event_names : tuple[str, ...]
        All event indicator names of the window, the reference included.
    reference_period : int
        Omitted relative year.
    nuisance_names : tuple[str, ...]
        Period effects and controls.
    nuisance_estimates : ndarray
        Point estimates of the nuisance regressors.
    n_obs : int
        Observations in the estimation sample.
    n_units : int
        Units in the estimation sample.
    n_clusters : int
        Clusters in the estimation sample.
    ci_level : float
        Confidence level in percent.
    estimation_params : dict
        Column names, covariance type and excluded folds.
    """

    terms: tuple
    estimates: np.ndarray
    std_errors: np.ndarray
    vcov: np.ndarray
    empty_terms: tuple
    covariates: tuple
    covariate_levels: dict
    reference_levels: dict
    event_names: tuple
    reference_period: int
    nuisance_names: tuple
    nuisance_estimates: np.ndarray
    n_obs: int
    n_units: int
    n_clusters: int
    ci_level: float
    estimation_params: dict

    @property
    def term_index(self) -> dict:
        """Mapping from term to coefficient position."""
        return {term: i for i, term in enumerate(self.terms)}

    @property
    def critical_value(self) -> float:
        """Two-sided normal critical value at ``ci_level``."""
        return float(stats.norm.ppf(1 - (1 - self.ci_level / 100) / 2))

    def has_term(self, term: Term) -> bool:
        """Whether ``term`` was estimated."""
        return term in self.term_index

    def coefficient(self, term: Term, default=None):
        """Point estimate of ``term``, ``default`` when it was not estimated."""
        idx = self.term_index.get(term)
        if idx is None:
            return default
        return float(self.estimates[idx])

    def lincom(self, weights) -> tuple[float, float]:
        """Linear combination of event-term coefficients.

        Parameters
        ----------
        weights : dict[Term, float]
            Weight on each term. Terms that were not estimated contribute 0.

        Returns
        -------
        tuple[float, float]
            Estimate ``r'b`` and delta-method standard error ``sqrt(r'Vr)``.
        """
        r = np.zeros(len(self.terms))
        index = self.term_index
        for term, weight in weights.items():
            idx = index.get(term)
            if idx is not None:
                r[idx] += weight
        estimate = float(r @ self.estimates)
        std_error = float(np.sqrt(max(r @ self.vcov @ r, 0.0)))
        return estimate, std_error

    def to_dataframe(self) -> pl.DataFrame:
        """Convert to Polars DataFrame, empty terms included."""
        z = self.critical_value
        rows = []
        for term, est, se in zip(self.terms, self.estimates, self.std_errors, strict=True):
            rows.append((term, float(est), float(se), False))
        for term in self.empty_terms:
            rows.append((term, None, None, True))

        return pl.DataFrame(
            {
                "term": [t.label for t, *_ in rows],
                "event": [t.event for t, *_ in rows],
                "relative_year": [relative_year(t.event) for t, *_ in rows],
                "cell": [",".join(f"{c}={v}" for c, v in t.cells) for t, *_ in rows],
                "estimate": [r[1] for r in rows],
                "std_error": [r[2] for r in rows],
                "ci_lower": [None if r[1] is None else r[1] - z * r[2] for r in rows],
                "ci_upper": [None if r[1] is None else r[1] + z * r[2] for r in rows],
                "empty": [r[3] for r in rows],
            },
            schema_overrides=dict.fromkeys(["estimate", "std_error", "ci_lower", "ci_upper"], pl.Float64),
        )
