"""Heterogeneity classification of predicted effects."""

import logging
import warnings

import numpy as np
import polars as pl

from reformdid.core.dataframe import to_polars
from reformdid.core.errors import DegenerateClassificationWarning
from reformdid.core.preprocess.constants import EVER_TREATED_COLUMN, ClassificationPolicy, DegeneracyFallback

from .results import ClassificationResult

log = logging.getLogger(__name__)

LOW_LABEL = "Low"
HIGH_LABEL = "High"


def classify_heterogeneity(
    predictions,
    unit_data,
    idname,
    policy="sign",
    threshold=0.0,
    n_groups=2,
    fallback="rank",
) -> ClassificationResult:
    """Split ever-treated units into groups by predicted effect.

    Parameters
    ----------
    predictions : DataFrame
        Prediction table with ``idname`` and ``predicted_effect``, either one
        row per unit or one row per unit and period.
    unit_data : DataFrame
        One row per unit with ``idname`` and the ever-treated flag.
    idname : str
        Unit identifier column.
    policy : {"sign", "rank"}, default "sign"
        ``"sign"`` puts units whose prediction exceeds ``threshold`` in the
        High group. ``"rank"`` forms ``n_groups`` equal-count groups from the
        ordered predictions of ever-treated units, ties broken by unit id.
    threshold : float, default 0.0
        Sign-policy threshold.
    n_groups : int, default 2
        Number of treated groups. Two groups are labelled Low (0) and High
        (1). More groups are labelled 1..n_groups, with never-treated units in
        group 0.
    fallback : {"rank", "none", "raise"}, default "rank"
        Response to a sign split that puts all or none of the treated units in
        High: switch to a rank-based median split, keep the degenerate split,
        or raise.

    Returns
    -------
    ClassificationResult
        Group codes and labels of every unit.

    Warns
    -----
    DegenerateClassificationWarning
        If a split leaves one of the treated groups empty.
    """
    policy = ClassificationPolicy(policy)
    fallback = DegeneracyFallback(fallback)
    if not isinstance(n_groups, int) or n_groups < 2:
        raise ValueError(f"n_groups must be an integer >= 2, got {n_groups}")
    if policy == ClassificationPolicy.SIGN and n_groups != 2:
        raise ValueError("The sign policy splits units into exactly two groups.")

    units = _unit_table(to_polars(predictions), to_polars(unit_data), idname)
    treated = units.filter(pl.col("ever_treated") & pl.col("predicted_effect").is_not_null())
    group_names = _group_names(n_groups)

    applied = policy
    fallback_applied = None
    degenerate = False

    if policy == ClassificationPolicy.SIGN:
        codes = (treated["predicted_effect"] > threshold).cast(pl.Int64)
        n_high = int(codes.sum())
        if len(treated) > 0 and n_high in (0, len(treated)):
            degenerate = True
            side = "High" if n_high == len(treated) else "Low"
            msg = (
                f"Every treated unit is classified {side} at threshold {threshold}. "
                f"Applying fallback '{fallback.value}'."
            )
            warnings.warn(msg, DegenerateClassificationWarning)
            log.warning(msg)
            if fallback == DegeneracyFallback.RAISE:
                raise ValueError(f"Degenerate sign classification: every treated unit is {side}.")
            if fallback == DegeneracyFallback.RANK:
                codes = _rank_codes(treated, idname, n_groups)
                applied = ClassificationPolicy.RANK
                fallback_applied = fallback.value
    else:
        codes = _rank_codes(treated, idname, n_groups)
        if len(treated) < n_groups:
            degenerate = True
            msg = f"{len(treated)} treated units cannot fill {n_groups} groups. Some groups are empty."
            warnings.warn(msg, DegenerateClassificationWarning)
            log.warning(msg)

    treated_codes = treated.select(idname).with_columns(codes.alias("group"))
    labels = (
        units.join(treated_codes, on=idname, how="left")
        .with_columns(pl.when(pl.col("ever_treated")).then(pl.col("group")).otherwise(0).cast(pl.Int64).alias("group"))
        .with_columns(
            pl.col("group").replace_strict(group_names, default=None, return_dtype=pl.String).alias("group_label")
        )
        .sort(idname)
    )

    return ClassificationResult(
        labels=labels,
        policy=applied.value,
        requested_policy=policy.value,
        threshold=threshold,
        n_groups=n_groups,
        degenerate=degenerate,
        fallback_applied=fallback_applied,
        group_names=group_names,
    )


def _unit_table(predictions: pl.DataFrame, unit_data: pl.DataFrame, idname) -> pl.DataFrame:
    """One row per unit with its treatment flag and prediction."""
    if "predicted_effect" not in predictions.columns:
        raise ValueError("predictions must contain a 'predicted_effect' column")
    treated_col = EVER_TREATED_COLUMN if EVER_TREATED_COLUMN in unit_data.columns else "ever_treated"
    if treated_col not in unit_data.columns:
        raise ValueError(f"unit_data must contain an ever-treated flag ('{EVER_TREATED_COLUMN}')")

    unit_preds = predictions.group_by(idname).agg(pl.col("predicted_effect").first())
    return unit_data.select(pl.col(idname), pl.col(treated_col).cast(pl.Boolean).alias("ever_treated")).join(
        unit_preds, on=idname, how="left"
    )


def _rank_codes(treated: pl.DataFrame, idname, n_groups) -> pl.Series:
    """Equal-count group codes from ordered predictions.

    Units are ordered by prediction and then by id, so ties are broken
    deterministically. Rank ``r`` of ``n`` units falls in group
    ``floor(r * n_groups / n)``, which puts the extra unit of an uneven split in
    the lower groups. Codes are 0/1 for two groups and 1..n_groups otherwise.
    """
    n = len(treated)
    if n == 0:
        return pl.Series("group", [], dtype=pl.Int64)
    order = treated.with_row_index("_pos").sort("predicted_effect", idname)["_pos"].to_numpy()
    ranks = np.empty(n, dtype=np.int64)
    ranks[order] = np.arange(n)
    codes = (ranks * n_groups) // n
    if n_groups > 2:
        codes = codes + 1
    return pl.Series("group", codes, dtype=pl.Int64)


def _group_names(n_groups) -> dict:
    """Readable name of each group code."""
    if n_groups == 2:
        return {0: LOW_LABEL, 1: HIGH_LABEL}
    return {g: str(g) for g in range(n_groups + 1)}
