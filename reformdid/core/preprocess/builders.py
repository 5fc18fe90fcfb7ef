"""Builder pattern for constructing preprocessed data objects."""

import logging
import warnings
from typing import Any

import polars as pl

from ..dataframe import to_polars
from ..errors import IncompleteCovariatesWarning
from .config import EventStudyConfig
from .constants import EVER_TREATED_COLUMN, REFORM_YEAR_COLUMN, DropReason
from .models import EventStudyData
from .transformers import DataTransformerPipeline
from .validators import CompositeValidator

log = logging.getLogger(__name__)


class PreprocessDataBuilder:
    """Builder for constructing preprocessed event-study panels."""

    def __init__(self):
        """Initialize builder."""
        self._data: pl.DataFrame | None = None
        self._config: EventStudyConfig | None = None
        self._validator: CompositeValidator | None = None
        self._transformer: DataTransformerPipeline | None = None
        self._warnings: list[str] = []

    def with_data(self, data: Any) -> "PreprocessDataBuilder":
        """Set the data.

        Parameters
        ----------
        data : DataFrame
            Long panel in any Arrow-compatible DataFrame format.

        Returns
        -------
        PreprocessDataBuilder
            Self for method chaining.
        """
        self._data = to_polars(data)
        return self

    def with_config(self, config: EventStudyConfig) -> "PreprocessDataBuilder":
        """Set the configuration.

        Parameters
        ----------
        config : EventStudyConfig
            Event-study configuration.

        Returns
        -------
        PreprocessDataBuilder
            Self for method chaining.
        """
        if not isinstance(config, EventStudyConfig):
            raise TypeError(f"Expected EventStudyConfig, got {type(config).__name__}")
        self._config = config
        self._validator = CompositeValidator()
        self._transformer = DataTransformerPipeline.get_event_study_pipeline()
        return self

    def with_config_dict(self, **kwargs: Any) -> "PreprocessDataBuilder":
        """Set configuration from keyword arguments."""
        return self.with_config(EventStudyConfig(**kwargs))

    def validate(self) -> "PreprocessDataBuilder":
        """Validate data and configuration.

        Returns
        -------
        PreprocessDataBuilder
            Self for method chaining.

        Raises
        ------
        ValueError
            If data or config not set, or if validation fails.
        """
        if self._data is None:
            raise ValueError("Data not set. Use with_data() first.")
        if self._config is None or self._validator is None:
            raise ValueError("Configuration not set. Use with_config() first.")

        result = self._validator.validate(self._data, self._config)

        self._warnings.extend(result.warnings)
        for warning in result.warnings:
            warnings.warn(warning)

        result.raise_if_invalid()

        return self

    def transform(self) -> "PreprocessDataBuilder":
        """Apply data transformations.

        Returns
        -------
        PreprocessDataBuilder
            Self for method chaining.
        """
        if self._data is None or self._config is None:
            raise ValueError("Must set data and config before transforming")
        if self._transformer is None:
            raise ValueError("Transformer not initialized. Use with_config() first.")

        self._data = self._transformer.transform(self._data, self._config)

        if self._config.treated_count == 0:
            raise ValueError(
                "No ever-treated units left after preprocessing. Event time must be observed "
                "for at least one unit with a complete outcome window."
            )

        log.info(
            "Preprocessed panel: %d units (%d ever treated), %d periods, %d folds",
            self._config.id_count,
            self._config.treated_count,
            self._config.time_periods_count,
            len(self._config.fold_ids),
        )
        return self

    def build(self) -> EventStudyData:
        """Build the final preprocessed data object.

        Returns
        -------
        EventStudyData
            Panel, one-row-per-unit table and dropped units.
        """
        if self._data is None or self._config is None:
            raise ValueError("Must set data and config before building")

        unit_data = self._create_unit_data()
        self._warn_incomplete_covariates(unit_data)

        dropped = self._transformer.dropped_units if self._transformer is not None else None
        if dropped is None:
            dropped = self._data.select(self._config.idname, self._config.foldname).clear()
        reason = pl.lit(DropReason.INCOMPLETE_WINDOW.value, dtype=pl.String).alias("reason")
        dropped_units = dropped.with_columns(reason)

        return EventStudyData(
            data=self._data,
            unit_data=unit_data,
            config=self._config,
            dropped_units=dropped_units,
        )

    def _create_unit_data(self) -> pl.DataFrame:
        """Extract time-invariant unit data."""
        cfg = self._config
        cols = [cfg.idname, cfg.foldname, cfg.cluster_column, EVER_TREATED_COLUMN, REFORM_YEAR_COLUMN]
        cols.extend(cfg.covariates)
        cols = list(dict.fromkeys(cols))

        return self._data.group_by(cfg.idname, maintain_order=True).agg(
            [pl.col(c).first() for c in cols if c != cfg.idname]
        ).sort(cfg.idname)

    def _warn_incomplete_covariates(self, unit_data: pl.DataFrame) -> None:
        """Warn about units missing a baseline covariate."""
        if not self._config.covariates:
            return
        incomplete = unit_data.filter(pl.any_horizontal([pl.col(c).is_null() for c in self._config.covariates]))
        if len(incomplete) > 0:
            msg = (
                f"{len(incomplete)} units lack one or more baseline covariates "
                f"({DropReason.INCOMPLETE_COVARIATES.value}). They stay in the panel but are "
                "excluded from specifications that condition on the missing covariate."
            )
            self._warnings.append(msg)
            warnings.warn(msg, IncompleteCovariatesWarning)
