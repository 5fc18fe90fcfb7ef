"""Coefficient extraction and lag-window averaging."""

import logging
from typing import NamedTuple

import numpy as np

from reformdid.core.preprocess.constants import DEFAULT_WINDOW
from reformdid.core.preprocess.utils import indicator_name, relative_year
from reformdid.eventstudy.design import Term, interaction_cells
from reformdid.eventstudy.results import EventStudyResult

log = logging.getLogger(__name__)


class AverageEffects(NamedTuple):
    """Window-averaged effects keyed by covariate cell.

    Attributes
    ----------
    effects : dict[tuple, float]
        Average effect of each cell. The key is a tuple of
        ``(covariate, level)`` pairs and ``()`` holds the base effect.
    window : tuple[int, int]
        Inclusive range of relative years averaged over.
    covariates : tuple[str, ...]
        Covariates of the fitted specification, in order.
    reference_levels : dict[str, int]
        Omitted level of each covariate.
    substituted : tuple[Term, ...]
        Coefficients that were not estimated and entered the average as 0.
    """

    effects: dict
    window: tuple
    covariates: tuple
    reference_levels: dict
    substituted: tuple

    def effect(self, cells=()) -> float:
        """Average effect of a cell, 0 for cells outside the specification."""
        return self.effects.get(tuple(cells), 0.0)

    @property
    def substitution_counts(self) -> dict:
        """Number of substituted years per cell."""
        counts = dict.fromkeys(self.effects, 0)
        for term in self.substituted:
            counts[term.cells] = counts.get(term.cells, 0) + 1
        return counts


def extract_average_effects(result: EventStudyResult, window=DEFAULT_WINDOW) -> AverageEffects:
    """Average base and interaction coefficients over a window of relative years.

    For the base effect and every non-reference level combination of every
    covariate subset of the fitted specification, the coefficients at the
    relative years of ``window`` are collected and averaged. A coefficient that
    was not estimated (an empty or redundant cell) enters the average as 0 and the
    substitution is recorded.

    Parameters
    ----------
    result : EventStudyResult
        Fitted event study.
    window : tuple[int, int], default (2, 7)
        Inclusive range of relative years.

    Returns
    -------
    AverageEffects
        Typed lookup from covariate cell to average effect.
    """
    lo, hi = _check_window(result, window)

    cells = [(), *interaction_cells(result.covariates, result.covariate_levels, result.reference_levels)]
    years = list(range(lo, hi + 1))

    effects = {}
    substituted = []
    for c in cells:
        values = []
        for k in years:
            if k == result.reference_period:
                values.append(0.0)
                continue
            term = Term(indicator_name(k), c)
            value = result.coefficient(term)
            if value is None:
                substituted.append(term)
                value = 0.0
            values.append(value)
        effects[c] = float(np.mean(values))

    if substituted:
        log.info(
            "Substituted 0 for %d coefficients not identified in the sample: %s",
            len(substituted),
            ", ".join(t.label for t in substituted),
        )

    return AverageEffects(
        effects=effects,
        window=(lo, hi),
        covariates=tuple(result.covariates),
        reference_levels=dict(result.reference_levels),
        substituted=tuple(substituted),
    )


def _check_window(result, window):
    """Validate an averaging window against the fitted event window."""
    try:
        lo, hi = (int(v) for v in window)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"window must be a pair of integers, got {window!r}") from exc

    event_years = [relative_year(e) for e in result.event_names]
    if lo > hi:
        raise ValueError(f"window start {lo} is after window end {hi}")
    if lo < min(event_years) or hi > max(event_years):
        raise ValueError(f"window [{lo}, {hi}] is outside the event window [{min(event_years)}, {max(event_years)}]")
    return lo, hi
