"""Conversion of target tables to pandas.

Target rows arrive as a pandas ``DataFrame``, a Polars ``DataFrame`` or
``LazyFrame``, or a mapping of equal-length columns.  Everything is
turned into a pandas ``DataFrame`` before encoding, because patsy
builds design matrices from pandas only.  Returned tables are always
pandas.

Polars is optional: when it is not installed only pandas frames and
mappings are accepted.  Install the ``polars`` extra, which also brings
the pyarrow backend that ``DataFrame.to_pandas`` needs.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, TypeAlias

import pandas as pd

if TYPE_CHECKING:
    import polars as pl

    DataFrameLike: TypeAlias = (
        pd.DataFrame | pl.DataFrame | pl.LazyFrame | Mapping[str, Any]
    )
else:
    DataFrameLike: TypeAlias = pd.DataFrame

try:
    import polars as pl

    _HAS_POLARS = True
except ImportError:
    _HAS_POLARS = False


def _accepted_types() -> str:
    kinds = ["a pandas DataFrame"]
    if _HAS_POLARS:
        kinds.append("a Polars DataFrame/LazyFrame")
    kinds.append("a mapping of columns")
    return ", ".join(kinds[:-1]) + f" or {kinds[-1]}"


def _ensure_pandas_df(obj: DataFrameLike, *, name: str = "tb") -> pd.DataFrame:
    """Return *obj* as a :class:`pandas.DataFrame`.

    pandas frames are returned as-is (callers copy before writing).
    Polars frames keep their column order; lazy frames are collected
    first.

    Args:
        obj: The table to convert.
        name: Argument name used in error messages.

    Raises:
        TypeError: If *obj* is not a table.
        ValueError: If a mapping's columns differ in length.
    """
    if isinstance(obj, pd.DataFrame):
        return obj

    if _HAS_POLARS:
        if isinstance(obj, pl.LazyFrame):
            obj = obj.collect()
        if isinstance(obj, pl.DataFrame):
            return obj.to_pandas()

    if isinstance(obj, Mapping):
        return pd.DataFrame(dict(obj))

    msg = f"'{name}' must be {_accepted_types()}, got {type(obj).__name__}."
    raise TypeError(msg)
