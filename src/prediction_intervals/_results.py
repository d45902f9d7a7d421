"""Typed result object for interval requests.

:class:`IntervalResult` is a frozen dataclass that provides:

* **Attribute access**: ``result.lower``, ``result.method``, etc.
* **Bracket access**: ``result["method"]`` for fields and
  ``result["LCB0.025"]`` for output columns, plus ``result.get`` and
  ``in``.
* **Serialisation**: ``.to_dict()`` returns plain Python values that
  ``json.dumps`` accepts; non-finite floats become ``None``.
* **Column attachment**: ``.attach(tb)`` returns a copy of the target
  table with the prediction and result columns appended.

Column collisions
~~~~~~~~~~~~~~~~~
``attach`` never drops a collision silently.  A result column whose
name already exists in the table is overwritten with an
:class:`~.exceptions.OverwriteWarning`.  The prediction column is the
one exception: if the table already holds the same predictions (e.g.
from an earlier ``add_ci`` call) it is left as is without a warning.
"""

from __future__ import annotations

import math
import warnings
from dataclasses import dataclass, field, fields
from typing import TYPE_CHECKING, Any

import numpy as np
import pandas as pd

from .exceptions import OverwriteWarning

if TYPE_CHECKING:
    from .families import ResponseFamily

# ------------------------------------------------------------------ #
# Serialisation helper
# ------------------------------------------------------------------ #


def _numpy_to_python(obj: Any) -> Any:
    """Recursively convert NumPy values to JSON-safe Python values.

    Arrays become lists, NumPy scalars become ``bool`` / ``int`` /
    ``float``, and NaN or infinite floats become ``None``.  Dicts,
    lists and tuples are converted element-wise.
    """
    if isinstance(obj, np.ndarray):
        return [_numpy_to_python(item) for item in obj.tolist()]
    if isinstance(obj, np.bool_):
        return bool(obj)
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, (float, np.floating)):
        value = float(obj)
        return value if math.isfinite(value) else None
    if isinstance(obj, dict):
        return {k: _numpy_to_python(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return type(obj)(_numpy_to_python(item) for item in obj)
    return obj


# ------------------------------------------------------------------ #
# IntervalResult
# ------------------------------------------------------------------ #


@dataclass(frozen=True, eq=False)
class IntervalResult:
    """Per-row result of a CI, PI, probability or quantile request.

    Returned by the ``compute_*`` functions; the ``add_*`` functions
    return ``result.attach(tb)``.
    """

    kind: str
    """``"ci"``, ``"pi"``, ``"probability"`` or ``"quantile"``."""

    prediction: np.ndarray
    """Direct model prediction at each target row, shape ``(N,)``."""

    columns: dict[str, np.ndarray]
    """Result columns in output order: two bounds, or one value."""

    yhat_name: str
    """Name of the prediction column."""

    method: str
    """``"parametric"`` or ``"boot"``."""

    family: ResponseFamily
    """Response family of the fitted model."""

    link: str
    """Link name of the fitted model."""

    alpha: float | None = None
    """Significance level (interval requests)."""

    n_sims: int | None = None
    """Simulation or bootstrap count; ``None`` for closed-form results."""

    n_nonconverged: int = 0
    """Bootstrap refits that did not converge."""

    index: pd.Index | None = field(default=None, repr=False)
    """Row index of the target table."""

    # -- bracket access ---------------------------------------------- #

    def __getitem__(self, key: str) -> Any:
        """Look up a field, or an output column by its name."""
        if key == self.yhat_name:
            return self.prediction
        if key in self.columns:
            return self.columns[key]
        if key in self._field_names():
            return getattr(self, key)
        raise KeyError(key)

    def get(self, key: str, default: Any = None) -> Any:
        try:
            return self[key]
        except KeyError:
            return default

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        return key == self.yhat_name or key in self.columns or key in self._field_names()

    @classmethod
    def _field_names(cls) -> frozenset[str]:
        return frozenset(f.name for f in fields(cls))

    # -- views --------------------------------------------------------- #

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self.columns)

    @property
    def lower(self) -> np.ndarray | None:
        """Lower bound (interval results only)."""
        if self.kind not in ("ci", "pi"):
            return None
        return self.columns[self.names[0]]

    @property
    def upper(self) -> np.ndarray | None:
        """Upper bound (interval results only)."""
        if self.kind not in ("ci", "pi"):
            return None
        return self.columns[self.names[1]]

    @property
    def value(self) -> np.ndarray | None:
        """Probability or quantile (single-value results only)."""
        if self.kind in ("ci", "pi"):
            return None
        return self.columns[self.names[0]]

    def to_dict(self) -> dict[str, Any]:
        """Plain dictionary of every field except the row index.

        The family is reported by name.
        """
        out: dict[str, Any] = {}
        for f in fields(self):
            if f.name == "index":
                continue
            val = getattr(self, f.name)
            if f.name == "family":
                val = val.name
            out[f.name] = _numpy_to_python(val)
        return out

    def to_frame(self) -> pd.DataFrame:
        """Prediction and result columns as a DataFrame."""
        data = {self.yhat_name: self.prediction, **self.columns}
        return pd.DataFrame(data, index=self.index)

    # -- attachment ---------------------------------------------------- #

    def attach(self, tb: pd.DataFrame) -> pd.DataFrame:
        """Return a copy of *tb* with the result columns appended.

        Raises:
            ValueError: If *tb* has a different number of rows.
        """
        if len(tb) != self.prediction.shape[0]:
            msg = (
                f"Result has {self.prediction.shape[0]} rows, the table "
                f"has {len(tb)}."
            )
            raise ValueError(msg)
        out = tb.copy()

        if self.yhat_name in out.columns:
            existing = pd.to_numeric(out[self.yhat_name], errors="coerce").to_numpy(
                dtype=float
            )
            if not np.allclose(existing, self.prediction, equal_nan=True):
                warnings.warn(
                    f"Column '{self.yhat_name}' already exists with different "
                    "values and is overwritten.",
                    OverwriteWarning,
                    stacklevel=3,
                )
                out[self.yhat_name] = self.prediction
        else:
            out[self.yhat_name] = self.prediction

        for name, values in self.columns.items():
            if name in out.columns:
                warnings.warn(
                    f"Column '{name}' already exists and is overwritten.",
                    OverwriteWarning,
                    stacklevel=3,
                )
            out[name] = values
        return out
