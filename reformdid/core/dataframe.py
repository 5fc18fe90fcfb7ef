"""Conversion of user panels to polars."""

from typing import Any

import narwhals as nw
import polars as pl

DataFrame = Any  # polars, pandas, pyarrow or anything exposing __arrow_c_stream__


def to_polars(df: Any) -> pl.DataFrame:
    """Return the panel ``df`` as an eager polars DataFrame.

    Polars frames pass through untouched and lazy frames are collected. Other
    inputs go through the Arrow PyCapsule interface, which covers pandas 2.2+,
    pyarrow tables and duckdb relations.

    Parameters
    ----------
    df : DataFrame
        Long panel in any Arrow-compatible container.

    Returns
    -------
    pl.DataFrame
        The same data as a polars DataFrame.

    Raises
    ------
    TypeError
        If ``df`` does not implement ``__arrow_c_stream__``.
    """
    if isinstance(df, pl.DataFrame):
        return df
    if isinstance(df, pl.LazyFrame):
        return df.collect()
    if hasattr(df, "__arrow_c_stream__"):
        return nw.from_arrow(df, backend=pl).to_native()

    raise TypeError(f"Expected a panel implementing '__arrow_c_stream__', got: {type(df).__name__}")
