"""Grouped re-estimation by heterogeneity class."""

import dataclasses
import logging

import polars as pl

from reformdid.core.errors import ModelFitError
from reformdid.core.preprocess.constants import GROUP_COLUMN
from reformdid.core.preprocess.models import EventStudyData
from reformdid.eventstudy.estimator import event_study_table, fit_event_study

from .results import ClassificationResult, GroupedEventStudyResult

log = logging.getLogger(__name__)


def grouped_event_study(dp: EventStudyData, classification: ClassificationResult) -> GroupedEventStudyResult:
    """Event study with the heterogeneity group interacted with event time.

    The group code enters the specification as a single categorical covariate.
    The lowest group holding ever-treated units is the reference, so its
    trajectory is the base coefficients. The trajectory of every other group
    is the base plus its interaction, computed as a linear combination with a
    delta-method standard error.

    Parameters
    ----------
    dp : EventStudyData
        Preprocessed panel.
    classification : ClassificationResult
        Group of every unit.

    Returns
    -------
    GroupedEventStudyResult
        Per-group coefficient table and the fitted event study.

    Raises
    ------
    ModelFitError
        If no ever-treated unit has a group or the grouped design cannot be
        estimated.
    """
    idname = dp.config.idname
    labels = classification.labels.select(idname, pl.col("group").alias(GROUP_COLUMN))

    data = dp.data.join(labels, on=idname, how="left")
    n_excluded = data.filter(pl.col(GROUP_COLUMN).is_null())[idname].n_unique()
    if n_excluded > 0:
        log.info("Excluded %d units without a heterogeneity group from the grouped estimation", n_excluded)
    data = data.filter(pl.col(GROUP_COLUMN).is_not_null())

    treated_groups = sorted(
        classification.labels.filter(pl.col("ever_treated") & pl.col("group").is_not_null())["group"]
        .unique()
        .to_list()
    )
    if not treated_groups:
        raise ModelFitError("No ever-treated unit has a heterogeneity group.")

    levels = sorted(data[GROUP_COLUMN].unique().to_list())
    reference = treated_groups[0]

    config = dataclasses.replace(dp.config, covariates=[GROUP_COLUMN])
    config.covariate_levels = {GROUP_COLUMN: levels}
    grouped_dp = EventStudyData(data=data, unit_data=dp.unit_data, config=config, dropped_units=dp.dropped_units)

    result = fit_event_study(
        grouped_dp,
        covariates=[GROUP_COLUMN],
        reference_levels={GROUP_COLUMN: reference},
        covariate_levels={GROUP_COLUMN: levels},
    )

    tables = []
    for group in treated_groups:
        cells = () if group == reference else ((GROUP_COLUMN, group),)
        label = classification.group_names.get(group, str(group))
        tables.append(event_study_table(result, group_label=label, cells=cells))

    return GroupedEventStudyResult(
        coefficients=pl.concat(tables),
        result=result,
        reference_group=reference,
        groups=tuple(treated_groups),
        group_names=dict(classification.group_names),
        n_excluded_units=n_excluded,
    )
