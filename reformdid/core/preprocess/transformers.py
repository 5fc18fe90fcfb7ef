"""Data transformation classes for preprocessing."""

import warnings

import numpy as np
import polars as pl

from .base import BaseTransformer
from .config import EventStudyConfig
from .constants import (
    EVER_TREATED_COLUMN,
    REFORM_YEAR_COLUMN,
    WEIGHTS_COLUMN,
)
from .utils import (
    bin_event_time,
    extract_vars_from_formula,
    has_controls,
    indicator_name,
)


class ColumnSelector(BaseTransformer):
    """Column selector."""

    def transform(self, data: pl.DataFrame, config: EventStudyConfig) -> pl.DataFrame:
        """Transform data."""
        cols_to_keep = [config.idname, config.foldname, config.tname, config.yname]

        if config.ename in data.columns:
            cols_to_keep.append(config.ename)
        if config.gname is not None:
            cols_to_keep.append(config.gname)
        if config.weightsname:
            cols_to_keep.append(config.weightsname)
        if config.clustervar:
            cols_to_keep.append(config.clustervar)

        cols_to_keep.extend(config.covariates)

        if has_controls(config.xformla):
            cols_to_keep.extend(extract_vars_from_formula(config.xformla))

        cols_to_keep = list(dict.fromkeys(cols_to_keep))
        return data.select(cols_to_keep)


class CovariateCaster(BaseTransformer):
    """Cast baseline covariates to integer levels."""

    def transform(self, data: pl.DataFrame, config: EventStudyConfig) -> pl.DataFrame:
        """Transform data."""
        if not config.covariates:
            return data
        casts = []
        for cov in config.covariates:
            expr = pl.col(cov).fill_nan(None) if data.schema[cov].is_float() else pl.col(cov)
            casts.append(expr.cast(pl.Int64))
        return data.with_columns(casts)


class EventTimeBuilder(BaseTransformer):
    """Derive event time and the reform year.

    When the event-time column is absent it is computed as ``tname - gname``
    for units with a positive reform year. Units with a missing or zero reform
    year are never treated.
    """

    def transform(self, data: pl.DataFrame, config: EventStudyConfig) -> pl.DataFrame:
        """Transform data."""
        if config.ename not in data.columns:
            treated = pl.col(config.gname).is_not_null() & (pl.col(config.gname) > 0)
            data = data.with_columns(
                pl.when(treated).then(pl.col(config.tname) - pl.col(config.gname)).otherwise(None).alias(config.ename)
            )

        data = data.with_columns(pl.col(config.ename).cast(pl.Int64))
        return data.with_columns(
            (pl.col(config.tname) - pl.col(config.ename)).alias(REFORM_YEAR_COLUMN),
            pl.col(config.ename).is_not_null().alias(EVER_TREATED_COLUMN),
        )


class BalancedWindowFilter(BaseTransformer):
    """Keep ever-treated units with a complete outcome window.

    Every ever-treated unit must have a non-missing outcome at each event time
    from ``-n_leads`` to ``n_lags``. Never-treated units are exempt.
    """

    def __init__(self):
        """Initialize filter."""
        self.dropped: pl.DataFrame | None = None

    def transform(self, data: pl.DataFrame, config: EventStudyConfig) -> pl.DataFrame:
        """Transform data."""
        self.dropped = None
        if not config.balance_window:
            return data

        window_size = config.n_leads + config.n_lags + 1
        in_window = (
            data.filter(
                pl.col(EVER_TREATED_COLUMN)
                & pl.col(config.ename).is_between(-config.n_leads, config.n_lags)
                & pl.col(config.yname).is_not_null()
                & pl.col(config.yname).is_not_nan()
            )
            .group_by(config.idname)
            .agg(pl.col(config.ename).n_unique().alias("_n_window"))
        )
        complete = in_window.filter(pl.col("_n_window") == window_size)[config.idname]

        treated_ids = data.filter(pl.col(EVER_TREATED_COLUMN))[config.idname].unique()
        incomplete = treated_ids.filter(~treated_ids.is_in(complete))

        if len(incomplete) > 0:
            warnings.warn(
                f"{len(incomplete)} ever-treated units lack a complete outcome window "
                f"[{-config.n_leads}, {config.n_lags}] and will be dropped",
                UserWarning,
            )
            self.dropped = (
                data.filter(pl.col(config.idname).is_in(incomplete.implode()))
                .select(config.idname, config.foldname)
                .unique()
                .sort(config.idname)
            )

        return data.filter(~pl.col(config.idname).is_in(incomplete.implode()))


class MissingDataHandler(BaseTransformer):
    """Drop rows without an outcome, period or weight.

    Missing baseline covariates are kept. Those units stay in the panel and are
    only left out of specifications that condition on the covariate.
    """

    def transform(self, data: pl.DataFrame, config: EventStudyConfig) -> pl.DataFrame:
        """Transform data."""
        n_orig = len(data)
        required = [config.tname, config.yname]
        if config.weightsname:
            required.append(config.weightsname)
        if has_controls(config.xformla):
            required.extend(extract_vars_from_formula(config.xformla))

        data_clean = data.drop_nulls(subset=list(dict.fromkeys(required)))
        data_clean = data_clean.filter(pl.col(config.yname).is_not_nan())
        n_new = len(data_clean)

        if n_orig > n_new:
            warnings.warn(f"Dropped {n_orig - n_new} rows from original data due to missing values")

        return data_clean


class WeightNormalizer(BaseTransformer):
    """Weight normalizer."""

    def transform(self, data: pl.DataFrame, config: EventStudyConfig) -> pl.DataFrame:
        """Transform data."""
        if config.weightsname is None:
            weights = np.ones(len(data))
        else:
            weights = data[config.weightsname].cast(pl.Float64).to_numpy()

        mean_weight = weights.mean() if len(weights) > 0 else 1.0
        if mean_weight <= 0:
            raise ValueError("Weights must have a positive mean.")

        return data.with_columns(pl.Series(WEIGHTS_COLUMN, weights / mean_weight))


class EventIndicatorBuilder(BaseTransformer):
    """One indicator column per binned event time.

    Indicators are mutually exclusive. Never-treated units have every indicator
    equal to zero. Any indicator columns supplied with the input are rebuilt so
    that binning is always the one described by ``n_leads`` and ``n_lags``.
    """

    def transform(self, data: pl.DataFrame, config: EventStudyConfig) -> pl.DataFrame:
        """Transform data."""
        binned = bin_event_time(pl.col(config.ename), config.n_leads, config.n_lags)
        data = data.with_columns(binned.alias("_binned_event"))
        indicators = [
            (pl.col("_binned_event") == k).fill_null(False).cast(pl.Float64).alias(indicator_name(k))
            for k in range(-config.n_leads, config.n_lags + 1)
        ]
        return data.with_columns(indicators).drop("_binned_event")


class DataSorter(BaseTransformer):
    """Data sorter."""

    def transform(self, data: pl.DataFrame, config: EventStudyConfig) -> pl.DataFrame:
        """Transform data."""
        return data.sort([config.foldname, config.idname, config.tname])


class ConfigUpdater:
    """Config updater."""

    @staticmethod
    def update(data: pl.DataFrame, config: EventStudyConfig) -> None:
        """Update config."""
        tlist = sorted(data[config.tname].unique().to_list())

        config.time_periods = np.array(tlist)
        config.time_periods_count = len(tlist)
        config.fold_ids = sorted(data[config.foldname].unique().to_list())
        config.id_count = data[config.idname].n_unique()
        config.treated_count = data.filter(pl.col(EVER_TREATED_COLUMN))[config.idname].n_unique()
        config.covariate_levels = {
            cov: sorted(data[cov].drop_nulls().unique().to_list()) for cov in config.covariates
        }


class DataTransformerPipeline:
    """Data transformer pipeline."""

    def __init__(self, transformers: list[BaseTransformer] | None = None):
        """Initialize data transformer pipeline."""
        self.transformers = transformers or []

    @staticmethod
    def get_event_study_pipeline() -> "DataTransformerPipeline":
        """Get event-study pipeline."""
        return DataTransformerPipeline(
            [
                ColumnSelector(),
                CovariateCaster(),
                EventTimeBuilder(),
                BalancedWindowFilter(),
                MissingDataHandler(),
                WeightNormalizer(),
                EventIndicatorBuilder(),
                DataSorter(),
            ]
        )

    @property
    def dropped_units(self) -> pl.DataFrame | None:
        """Units and folds removed by the balanced-window filter in the last run."""
        for transformer in self.transformers:
            if isinstance(transformer, BalancedWindowFilter):
                return transformer.dropped
        return None

    def transform(self, data: pl.DataFrame, config: EventStudyConfig) -> pl.DataFrame:
        """Transform data."""
        for transformer in self.transformers:
            data = transformer.transform(data, config)

        if data.is_empty():
            raise ValueError("No observations left after preprocessing.")

        ConfigUpdater.update(data, config)

        return data
