"""Result containers for the jackknife heterogeneity analysis."""

from typing import NamedTuple

import polars as pl

from reformdid.eventstudy.results import TRAJECTORY_SCHEMA


class JackknifeResult(NamedTuple):
    """Leave-one-fold-out predictions.

    Attributes
    ----------
    predictions : pl.DataFrame
        One row per unit and period of every unit with a prediction:
        unit, period, fold, ``predicted_effect``, ``fold_excluded``,
        ``n_substituted`` and ``zero_substituted``.
    fold_status : pl.DataFrame
        One row per fold with its status, sample sizes, number of empty terms
        and failure message.
    dropped_units : pl.DataFrame
        Units without a prediction, or with a missing one, and the reason.
    fold_effects : dict
        Window-averaged effects of each successful fold.
    window : tuple[int, int]
        Averaging window.
    covariates : tuple[str, ...]
        Covariates of the specification.
    estimation_params : dict
        Column names and run settings.
    """

    predictions: pl.DataFrame
    fold_status: pl.DataFrame
    dropped_units: pl.DataFrame
    fold_effects: dict
    window: tuple
    covariates: tuple
    estimation_params: dict

    @property
    def failed_folds(self) -> list:
        """Folds that failed or timed out."""
        return self.fold_status.filter(pl.col("status") != "ok")["fold"].to_list()

    def unit_predictions(self) -> pl.DataFrame:
        """One row per unit with its prediction."""
        idname = self.estimation_params["idname"]
        return self.predictions.group_by(idname, maintain_order=True).agg(
            pl.col("predicted_effect").first(),
            pl.col("fold_excluded").first(),
            pl.col("n_substituted").first(),
            pl.col("zero_substituted").first(),
        )

    def to_dataframe(self) -> pl.DataFrame:
        """Convert to Polars DataFrame."""
        return self.predictions


class ClassificationResult(NamedTuple):
    """Heterogeneity groups of every unit.

    Attributes
    ----------
    labels : pl.DataFrame
        One row per unit: unit id, ``ever_treated``, ``predicted_effect``,
        integer ``group`` and readable ``group_label``. Treated units without
        a prediction have a missing group.
    policy : str
        Policy actually applied, after any fallback.
    requested_policy : str
        Policy requested by the caller.
    threshold : float
        Sign-policy threshold.
    n_groups : int
        Number of treated groups.
    degenerate : bool
        Whether the requested split left a group empty.
    fallback_applied : str | None
        Fallback used after a degenerate sign split.
    group_names : dict[int, str]
        Readable name of each group code.
    """

    labels: pl.DataFrame
    policy: str
    requested_policy: str
    threshold: float
    n_groups: int
    degenerate: bool
    fallback_applied: str | None
    group_names: dict

    @property
    def group_counts(self) -> pl.DataFrame:
        """Units per group among ever-treated and never-treated units."""
        return (
            self.labels.group_by("group", "group_label", "ever_treated")
            .agg(pl.len().alias("n_units"))
            .sort("group", "ever_treated", nulls_last=True)
        )

    def to_dataframe(self) -> pl.DataFrame:
        """Convert to Polars DataFrame."""
        return self.labels


class GroupedEventStudyResult(NamedTuple):
    """Per-group dynamic trajectories.

    Attributes
    ----------
    coefficients : pl.DataFrame
        ``group_label``, ``relative_year``, ``point_estimate``,
        ``standard_error``, ``ci_lower`` and ``ci_upper``.
    result : EventStudyResult
        Event study with the group interacted with the event indicators.
    reference_group : int
        Group whose trajectory is the base coefficients.
    groups : tuple[int, ...]
        Groups reported, all containing ever-treated units.
    group_names : dict[int, str]
        Readable name of each group code.
    n_excluded_units : int
        Units left out because their group is missing.
    """

    coefficients: pl.DataFrame
    result: object
    reference_group: int
    groups: tuple
    group_names: dict
    n_excluded_units: int

    def to_dataframe(self) -> pl.DataFrame:
        """Convert to Polars DataFrame."""
        return self.coefficients


class HeterogeneityAnalysisResult(NamedTuple):
    """End-to-end jackknife heterogeneity analysis.

    Attributes
    ----------
    jackknife : JackknifeResult
        Out-of-sample predictions.
    classification : ClassificationResult
        Heterogeneity groups.
    grouped : GroupedEventStudyResult | None
        Per-group trajectories, None when the grouped event study could not
        be estimated.
    dropped_units : pl.DataFrame
        Every unit left out at some stage, with the reason.
    n_units : int
        Units in the preprocessed panel.
    n_treated : int
        Ever-treated units in the preprocessed panel.
    grouped_message : str | None
        Why the grouped event study was not estimated.
    """

    jackknife: JackknifeResult
    classification: ClassificationResult
    grouped: GroupedEventStudyResult | None
    dropped_units: pl.DataFrame
    n_units: int
    n_treated: int
    grouped_message: str | None = None

    def to_dataframe(self) -> pl.DataFrame:
        """Convert to Polars DataFrame. Empty when no grouped trajectory was estimated."""
        if self.grouped is None:
            return pl.DataFrame(schema=TRAJECTORY_SCHEMA)
        return self.grouped.coefficients
