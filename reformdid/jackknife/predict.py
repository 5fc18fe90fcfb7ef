"""Per-unit predicted-effect assembly."""

import polars as pl

from .coefficients import AverageEffects


def predict_effects(unit_data, effects: AverageEffects, idname) -> pl.DataFrame:
    """Predict each unit's treatment effect from its baseline covariates.

    The prediction is the base effect plus, for every non-empty subset of the
    specification's covariates, the effect of the cell the unit realizes. A
    subset in which the unit sits at a reference level contributes nothing.
    Units with any missing covariate get a missing prediction.

    Parameters
    ----------
    unit_data : pl.DataFrame
        One row per unit with its baseline covariates.
    effects : AverageEffects
        Window-averaged effects from a fitted specification.
    idname : str
        Unit identifier column.

    Returns
    -------
    pl.DataFrame
        ``idname``, ``predicted_effect``, ``n_substituted`` (zero-substituted
        coefficients entering the prediction) and ``zero_substituted``.
    """
    covariates = list(effects.covariates)
    missing = [c for c in covariates if c not in unit_data.columns]
    if missing:
        raise ValueError(f"unit_data lacks covariates {missing}")

    counts = effects.substitution_counts
    prediction = pl.lit(effects.effect(()))
    n_substituted = pl.lit(counts.get((), 0))

    for cells, value in effects.effects.items():
        if not cells:
            continue
        realized = pl.all_horizontal([pl.col(cov) == level for cov, level in cells])
        prediction = prediction + pl.when(realized).then(pl.lit(value)).otherwise(0.0)
        if counts.get(cells, 0):
            n_substituted = n_substituted + pl.when(realized).then(pl.lit(counts[cells])).otherwise(0)

    complete = pl.all_horizontal([pl.col(c).is_not_null() for c in covariates]) if covariates else pl.lit(True)

    return unit_data.select(
        pl.col(idname),
        pl.when(complete).then(prediction).otherwise(None).cast(pl.Float64).alias("predicted_effect"),
        pl.when(complete).then(n_substituted).otherwise(None).cast(pl.Int64).alias("n_substituted"),
    ).with_columns((pl.col("n_substituted") > 0).alias("zero_substituted"))
