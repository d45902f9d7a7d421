"""Reduce simulation matrices to per-row intervals, quantiles and probabilities.

Every reducer takes an ``(M, N)`` matrix (M draws, N target rows) and
works column by column; columns are never reordered.

Response quantiles use the type-1 (inverted-CDF) rule: the smallest
order statistic whose empirical CDF reaches the requested level,

    Q(p) = min{ y₍ₖ₎ : k/M ≥ p }.

No interpolation happens, so every reported endpoint is one of the
simulated responses and stays in the family's support (a Poisson PI
never ends at 2.5).  Confidence intervals for continuous conditional
means are the exception and use ordinary interpolated percentiles.

Comparison operators
~~~~~~~~~~~~~~~~~~~~
================  ============  ==================================
operator          aliases       column-name word
================  ============  ==================================
``<``                           ``less_than``
``>``                           ``greater_than``
``<=``            ``=<``        ``less_than_or_equal_to``
``>=``            ``=>``        ``greater_than_or_equal_to``
``=``             ``==``        ``equal_to``
================  ============  ==================================
"""

from __future__ import annotations

from collections.abc import Callable

import numpy as np

from .exceptions import UsageError

_COMPARISON_ALIASES: dict[str, str] = {
    "<": "<",
    ">": ">",
    "<=": "<=",
    "=<": "<=",
    ">=": ">=",
    "=>": ">=",
    "=": "=",
    "==": "=",
}

_COMPARISON_OPS: dict[str, Callable[[np.ndarray, np.ndarray], np.ndarray]] = {
    "<": np.less,
    ">": np.greater,
    "<=": np.less_equal,
    ">=": np.greater_equal,
    "=": np.equal,
}

COMPARISON_WORDS: dict[str, str] = {
    "<": "less_than",
    ">": "greater_than",
    "<=": "less_than_or_equal_to",
    ">=": "greater_than_or_equal_to",
    "=": "equal_to",
}


def normalize_comparison(comparison: str) -> str:
    """Return the canonical form of a comparison operator.

    Raises:
        UsageError: If *comparison* is not a recognised operator.
    """
    key = str(comparison).strip()
    if key not in _COMPARISON_ALIASES:
        msg = (
            f"Malformed probability statement: comparison {comparison!r} "
            f"must be one of {sorted(_COMPARISON_ALIASES)}."
        )
        raise UsageError(msg)
    return _COMPARISON_ALIASES[key]


def prediction_bounds(sims: np.ndarray, alpha: float) -> tuple[np.ndarray, np.ndarray]:
    """Type-1 α/2 and 1 − α/2 quantiles of each column."""
    q = np.quantile(sims, [alpha / 2.0, 1.0 - alpha / 2.0], axis=0, method="inverted_cdf")
    return q[0], q[1]


def response_quantile(sims: np.ndarray, p: float) -> np.ndarray:
    """Type-1 quantile at level *p* of each column."""
    return np.asarray(np.quantile(sims, p, axis=0, method="inverted_cdf"))


def exceedance_probability(
    sims: np.ndarray,
    q: float | np.ndarray,
    comparison: str = "<",
) -> np.ndarray:
    """Share of draws in each column satisfying ``draw <op> q``.

    Args:
        sims: Simulation matrix, shape ``(M, N)``.
        q: Threshold, scalar or one per target row.
        comparison: Operator, see the module table.

    Returns:
        Probabilities, shape ``(N,)``.
    """
    op = _COMPARISON_OPS[normalize_comparison(comparison)]
    q = np.broadcast_to(np.asarray(q, dtype=float), sims.shape[1:])
    return np.asarray(op(sims, q[None, :]).mean(axis=0))


def percentile_bounds(draws: np.ndarray, alpha: float) -> tuple[np.ndarray, np.ndarray]:
    """Interpolated α/2 and 1 − α/2 percentiles of continuous draws."""
    q = np.quantile(draws, [alpha / 2.0, 1.0 - alpha / 2.0], axis=0)
    return q[0], q[1]
