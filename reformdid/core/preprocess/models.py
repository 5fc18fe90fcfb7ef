"""Data models for preprocessed data containers."""

from dataclasses import dataclass, field

import polars as pl

from .config import EventStudyConfig
from .constants import EVER_TREATED_COLUMN


@dataclass
class EventStudyData:
    """Preprocessed event-study panel.

    Attributes
    ----------
    data : pl.DataFrame
        Long panel with normalised weights, binned event time and one indicator
        column per event time.
    unit_data : pl.DataFrame
        One row per unit with its fold, cluster, treatment flag, reform year and
        baseline covariates.
    config : EventStudyConfig
        Configuration, updated with the properties of the retained panel.
    dropped_units : pl.DataFrame
        Units removed during preprocessing and the reason.
    """

    data: pl.DataFrame
    unit_data: pl.DataFrame
    config: EventStudyConfig
    dropped_units: pl.DataFrame = field(default_factory=lambda: pl.DataFrame())

    @property
    def fold_ids(self) -> list:
        """Sorted fold identifiers."""
        return list(self.config.fold_ids)

    @property
    def treated_fold_ids(self) -> list:
        """Folds containing at least one ever-treated unit."""
        folds = self.unit_data.filter(pl.col(EVER_TREATED_COLUMN))[self.config.foldname].unique()
        return sorted(folds.to_list())

    @property
    def n_units(self) -> int:
        """Number of retained units."""
        return self.config.id_count

    @property
    def n_treated(self) -> int:
        """Number of retained ever-treated units."""
        return self.config.treated_count

    def without_folds(self, folds) -> pl.DataFrame:
        """Panel rows with every unit of ``folds`` removed."""
        folds = list(folds)
        if not folds:
            return self.data
        return self.data.filter(~pl.col(self.config.foldname).is_in(folds))

    def complete_covariates(self, covariates=None) -> pl.Series:
        """Boolean mask over ``unit_data`` rows whose covariates are all observed."""
        covariates = self.config.covariates if covariates is None else covariates
        mask = pl.lit(True)
        for cov in covariates:
            mask = mask & pl.col(cov).is_not_null()
        return self.unit_data.select(mask.alias("complete"))["complete"]


@dataclass
class ValidationResult:
    """Validation result."""

    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def raise_if_invalid(self) -> None:
        """Raise if invalid."""
        if not self.is_valid:
            error_msg = "\n".join(self.errors)
            raise ValueError(f"Validation failed:\n{error_msg}")
