"""Synthetic datasets."""

import numpy as np
import polars as pl

__all__ = ["gen_reform_panel"]


def gen_reform_panel(
    n_folds=20,
    units_per_fold=15,
    start_year=1967,
    end_year=2005,
    reform_years=(1975, 1985),
    treated_share=0.5,
    covariates=None,
    base_effect=0.05,
    interaction_effects=None,
    noise_sd=0.0,
    missing_covariate_share=0.0,
    random_state=None,
) -> pl.DataFrame:
    """Generate a staggered school-finance reform panel.

    Units (districts) are nested in folds (states). A share of the folds adopt
    a reform in a year drawn from ``reform_years`` and every unit of a reformed
    fold is treated from that year on. Units of the remaining folds are never
    treated. The log outcome is the sum of a unit effect, a year effect, the
    treatment effect in post-reform years and optional noise:

    .. math::

        y_{it} = \\alpha_i + \\lambda_t
            + 1\\{t \\geq g_i\\}\\Big(\\beta + \\sum_{S} \\gamma_{S}(x_i)\\Big)
            + \\varepsilon_{it}

    where the sum runs over every subset of covariate levels listed in
    ``interaction_effects`` that the unit's baseline covariates realize.

    Parameters
    ----------
    n_folds : int, default=20
        Number of folds.
    units_per_fold : int, default=15
        Units in each fold.
    start_year, end_year : int
        First and last calendar year, inclusive.
    reform_years : tuple[int, int], default=(1975, 1985)
        Inclusive range of reform years.
    treated_share : float, default=0.5
        Share of folds that adopt a reform. At least one fold is reformed and
        at least one is not.
    covariates : dict[str, int] | None
        Baseline categorical covariates and their number of levels. Levels are
        ``1..n``. Defaults to a quartile of baseline spending and a quartile of
        baseline income.
    base_effect : float, default=0.05
        Effect for units whose covariates are all at the reference level.
    interaction_effects : dict[tuple, float] | None
        Additional effects keyed by tuples of ``(covariate, level)`` pairs. A
        unit receives an entry when it realizes every pair of the key.
    noise_sd : float, default=0.0
        Standard deviation of the idiosyncratic error. With zero noise the
        event-study coefficients are recovered exactly.
    missing_covariate_share : float, default=0.0
        Share of units whose covariates are set to missing, independently per
        covariate.
    random_state : int, Generator, or None, default=None
        Controls randomness for reproducibility.

    Returns
    -------
    pl.DataFrame
        Long panel with columns ``district``, ``state``, ``year``, ``ln_pp_exp``,
        ``weight``, ``reform_year``, ``event_time`` and one column per covariate.
    """
    if n_folds < 2:
        raise ValueError(f"n_folds must be >= 2, got {n_folds}")
    if units_per_fold < 1:
        raise ValueError(f"units_per_fold must be >= 1, got {units_per_fold}")
    if end_year <= start_year:
        raise ValueError("end_year must be after start_year")
    if reform_years[0] > reform_years[1]:
        raise ValueError("reform_years must be an increasing (first, last) pair")
    if not 0 <= missing_covariate_share < 1:
        raise ValueError("missing_covariate_share must be in [0, 1)")

    covariates = {"spend_q": 4, "inc_q": 4} if covariates is None else dict(covariates)
    interaction_effects = {} if interaction_effects is None else dict(interaction_effects)
    for key in interaction_effects:
        for cov, level in key:
            if cov not in covariates or not 1 <= level <= covariates[cov]:
                raise ValueError(f"interaction key {key} refers to an unknown covariate level")

    rng = np.random.default_rng(random_state)

    n_treated_folds = int(np.clip(round(n_folds * treated_share), 1, n_folds - 1))
    treated_folds = rng.permutation(n_folds)[:n_treated_folds]
    fold_reform = np.zeros(n_folds, dtype=np.int64)
    fold_reform[treated_folds] = rng.integers(reform_years[0], reform_years[1] + 1, size=n_treated_folds)

    n_units = n_folds * units_per_fold
    unit_ids = np.arange(1, n_units + 1)
    unit_fold = np.repeat(np.arange(1, n_folds + 1), units_per_fold)
    unit_reform = np.repeat(fold_reform, units_per_fold)
    unit_fe = rng.normal(8.5, 0.3, size=n_units)
    unit_weight = rng.uniform(0.5, 1.5, size=n_units)

    levels = {cov: rng.integers(1, n + 1, size=n_units) for cov, n in covariates.items()}

    unit_effect = np.full(n_units, base_effect, dtype=float)
    for key, value in interaction_effects.items():
        realized = np.ones(n_units, dtype=bool)
        for cov, level in key:
            realized &= levels[cov] == level
        unit_effect += np.where(realized, value, 0.0)

    years = np.arange(start_year, end_year + 1)
    year_fe = 0.02 * (years - start_year) + rng.normal(0.0, 0.01, size=len(years))

    unit_idx = np.repeat(np.arange(n_units), len(years))
    year_idx = np.tile(np.arange(len(years)), n_units)
    year_col = years[year_idx]
    reform_col = unit_reform[unit_idx]
    treated = reform_col > 0
    post = treated & (year_col >= reform_col)

    y = unit_fe[unit_idx] + year_fe[year_idx] + np.where(post, unit_effect[unit_idx], 0.0)
    if noise_sd > 0:
        y = y + rng.normal(0.0, noise_sd, size=len(y))

    data = pl.DataFrame(
        {
            "district": unit_ids[unit_idx],
            "state": unit_fold[unit_idx],
            "year": year_col,
            "ln_pp_exp": y,
            "weight": unit_weight[unit_idx],
            "reform_year": reform_col,
            "event_time": year_col - reform_col,
        }
    ).with_columns(pl.when(pl.col("reform_year") > 0).then(pl.col("event_time")).otherwise(None).alias("event_time"))

    cov_columns = {}
    for cov in covariates:
        values = levels[cov].astype(float)
        if missing_covariate_share > 0:
            values[rng.random(n_units) < missing_covariate_share] = np.nan
        cov_columns[cov] = pl.Series(cov, values[unit_idx]).fill_nan(None).cast(pl.Int64)

    return data.with_columns(list(cov_columns.values()))

