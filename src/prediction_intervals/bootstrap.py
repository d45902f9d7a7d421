"""Case-resampling bootstrap confidence intervals for GLMs.

Each replicate b draws n row indices with replacement, refits the
model with the same formula and family on those rows, and predicts
the conditional mean at every target row.  The B × N matrix of refit
predictions is reduced to bias-corrected and accelerated (BCa)
intervals (Efron, 1987):

    z₀ = Φ⁻¹( #{θ*_b < θ̂} / B )

    a  = Σᵢ (θ̄₍.₎ − θ₍ᵢ₎)³ / (6 · [Σᵢ (θ̄₍.₎ − θ₍ᵢ₎)²]^{3/2})

    α₁ = Φ( z₀ + (z₀ + z_{α/2})   / (1 − a·(z₀ + z_{α/2})) )
    α₂ = Φ( z₀ + (z₀ + z_{1−α/2}) / (1 − a·(z₀ + z_{1−α/2})) )

    CI = [ θ*_(α₁), θ*_(α₂) ]

θ₍ᵢ₎ are jackknife estimates.  For n ≤ ``_JACKKNIFE_MAX_GROUPS`` these
are leave-one-out refits; larger data sets are split into that many
contiguous blocks and one block is left out at a time (grouped
jackknife).  Neither uses the random generator.

Generator use and parallelism
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
All B index vectors are drawn from the generator up front, in
replicate order.  The refits themselves are deterministic, so running
them through ``joblib.Parallel(prefer="threads")`` changes wall-clock
time only; results are identical for every ``n_jobs``.

Non-converged replicates
~~~~~~~~~~~~~~~~~~~~~~~~
``nonconverged`` selects what happens to replicates whose refit
reports non-convergence:

=============  ==============================================
``"include"``  keep their predictions as produced; warn
``"drop"``     discard them before forming the interval; warn
``"raise"``    raise :class:`~.exceptions.ConvergenceError`
=============  ==============================================

Replicates that cannot be used at all (the refit raises, or a
resample lost a factor level needed by the target rows) are always
discarded and counted separately.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from scipy import stats

from .adapter import FittedModel, encode_rows, quiet_refits
from .exceptions import (
    ConvergenceError,
    ConvergenceWarning,
    EncodingError,
    UnsupportedModelError,
    UsageError,
)

logger = logging.getLogger(__name__)

NONCONVERGED_POLICIES = ("include", "drop", "raise")

_JACKKNIFE_MAX_GROUPS = 200


@dataclass(frozen=True)
class BootstrapCI:
    """BCa interval and replicate accounting."""

    prediction: np.ndarray
    lower: np.ndarray
    upper: np.ndarray
    n_replicates: int
    """Replicates that entered the interval."""
    n_nonconverged: int
    """Replicates whose refit did not converge."""
    n_failed: int
    """Replicates discarded because the refit or encoding failed."""


def _refit_predict(
    model: FittedModel,
    data: pd.DataFrame,
    rows: np.ndarray,
    tb: pd.DataFrame,
    response: bool,
    reference: pd.DataFrame | None,
) -> tuple[np.ndarray | None, bool]:
    """Refit on ``data.iloc[rows]`` and predict at *tb*.

    Returns ``(None, False)`` when the replicate is unusable.
    """
    sample = data.iloc[rows].reset_index(drop=True)
    try:
        fm = model.refit(sample)  # type: ignore[misc]
        X = encode_rows(fm, tb, reference=reference)
    except (EncodingError, np.linalg.LinAlgError, ValueError) as exc:
        logger.debug("Bootstrap refit discarded: %s", exc)
        return None, False
    pred = fm.predict(X, scale="response" if response else "link")
    if not np.all(np.isfinite(pred)):
        return None, False
    return pred, fm.converged


def _run_refits(
    model: FittedModel,
    data: pd.DataFrame,
    row_sets: list[np.ndarray],
    tb: pd.DataFrame,
    response: bool,
    reference: pd.DataFrame | None,
    n_jobs: int,
) -> list[tuple[np.ndarray | None, bool]]:
    with quiet_refits():
        if n_jobs == 1:
            return [
                _refit_predict(model, data, rows, tb, response, reference)
                for rows in row_sets
            ]
        return list(
            Parallel(n_jobs=n_jobs, prefer="threads")(
                delayed(_refit_predict)(model, data, rows, tb, response, reference)
                for rows in row_sets
            )
        )


def _jackknife_acceleration(
    model: FittedModel,
    data: pd.DataFrame,
    tb: pd.DataFrame,
    response: bool,
    reference: pd.DataFrame | None,
    n_jobs: int,
) -> np.ndarray:
    """BCa acceleration per target row from jackknife refits."""
    n = len(data)
    blocks = np.array_split(np.arange(n), min(n, _JACKKNIFE_MAX_GROUPS))
    all_rows = np.arange(n)
    row_sets = [np.setdiff1d(all_rows, block) for block in blocks]
    outcomes = _run_refits(model, data, row_sets, tb, response, reference, n_jobs)
    estimates = np.array([pred for pred, _ in outcomes if pred is not None])
    if estimates.shape[0] < 2:
        logger.debug("Too few jackknife refits; acceleration set to 0.")
        return np.zeros(len(tb))
    d = estimates.mean(axis=0) - estimates
    num = np.sum(d**3, axis=0)
    den = 6.0 * np.sum(d**2, axis=0) ** 1.5
    with np.errstate(divide="ignore", invalid="ignore"):
        a = np.where(den > 0, num / den, 0.0)
    return a


def _column_quantiles(sorted_draws: np.ndarray, probs: np.ndarray) -> np.ndarray:
    """Interpolated quantile of each column at its own level."""
    B = sorted_draws.shape[0]
    probs = np.where(np.isnan(probs), 0.5, probs)
    pos = np.clip(probs, 0.0, 1.0) * (B - 1)
    lo = np.floor(pos).astype(int)
    hi = np.minimum(lo + 1, B - 1)
    frac = pos - lo
    cols = np.arange(sorted_draws.shape[1])
    return (1.0 - frac) * sorted_draws[lo, cols] + frac * sorted_draws[hi, cols]


def bca_interval(
    replicates: np.ndarray,
    estimate: np.ndarray,
    acceleration: np.ndarray,
    alpha: float,
) -> tuple[np.ndarray, np.ndarray]:
    """BCa bounds per column of a ``(B, N)`` replicate matrix.

    Args:
        replicates: Bootstrap replicates θ*, shape ``(B, N)``.
        estimate: Full-data estimates θ̂, shape ``(N,)``.
        acceleration: Acceleration constants a, shape ``(N,)``.
        alpha: Significance level.

    Returns:
        ``(lower, upper)``.
    """
    B = replicates.shape[0]
    share = np.mean(replicates < estimate[None, :], axis=0)
    share = np.clip(share, 1.0 / (B + 1), B / (B + 1))
    z0 = stats.norm.ppf(share)

    def _adjusted(level: float) -> np.ndarray:
        z = stats.norm.ppf(level)
        with np.errstate(divide="ignore", invalid="ignore"):
            shifted = z0 + (z0 + z) / (1.0 - acceleration * (z0 + z))
        return np.asarray(stats.norm.cdf(shifted))

    sorted_draws = np.sort(replicates, axis=0)
    lower = _column_quantiles(sorted_draws, _adjusted(alpha / 2.0))
    upper = _column_quantiles(sorted_draws, _adjusted(1.0 - alpha / 2.0))
    return lower, upper


def case_bootstrap_ci(
    model: FittedModel,
    tb: pd.DataFrame,
    alpha: float,
    *,
    response: bool = True,
    n_sims: int,
    rng: np.random.Generator,
    n_jobs: int = 1,
    nonconverged: str = "include",
    reference: pd.DataFrame | None = None,
) -> BootstrapCI:
    """BCa confidence intervals from case-resampling refits.

    Args:
        model: Fitted-model snapshot with ``refit`` and ``data``.
        tb: Target rows.
        alpha: Significance level.
        response: Intervals for the mean (``True``) or for η.
        n_sims: Number of bootstrap replicates B.
        rng: Generator for the resample indices.
        n_jobs: Parallel refit workers (threads); ``-1`` for all cores.
        nonconverged: ``"include"``, ``"drop"`` or ``"raise"``.
        reference: Reference frame for encoding, see
            :func:`~.adapter.encode_rows`.

    Returns:
        A :class:`BootstrapCI`.

    Raises:
        UnsupportedModelError: If the model cannot be refitted.
        UsageError: If *nonconverged* is unknown or too few replicates
            survive.
        ConvergenceError: Under ``nonconverged="raise"``.
    """
    if nonconverged not in NONCONVERGED_POLICIES:
        msg = f"nonconverged must be one of {NONCONVERGED_POLICIES}, got {nonconverged!r}."
        raise UsageError(msg)
    if model.refit is None or model.data is None:
        msg = (
            "Case-resampling bootstrap needs a formula-built fit with its "
            "training data; use method='parametric'."
        )
        raise UnsupportedModelError(msg)

    data = model.data
    n = len(data)
    X = encode_rows(model, tb, reference=reference)
    estimate = model.predict(X, scale="response" if response else "link")

    row_sets = list(rng.integers(0, n, size=(n_sims, n)))
    logger.debug("Running %d bootstrap refits on %d rows (n_jobs=%d).", n_sims, n, n_jobs)
    outcomes = _run_refits(model, data, row_sets, tb, response, reference, n_jobs)

    usable = [(pred, conv) for pred, conv in outcomes if pred is not None]
    n_failed = len(outcomes) - len(usable)
    n_nonconv = sum(1 for _, conv in usable if not conv)

    if n_nonconv:
        if nonconverged == "raise":
            msg = (
                f"{n_nonconv} of {n_sims} bootstrap refits did not converge "
                "(nonconverged='raise')."
            )
            raise ConvergenceError(msg)
        if nonconverged == "drop":
            usable = [(pred, conv) for pred, conv in usable if conv]
        warnings.warn(
            f"{n_nonconv} of {n_sims} bootstrap refits did not converge and "
            f"were {'dropped' if nonconverged == 'drop' else 'included'}; "
            "coverage probabilities may be inaccurate.",
            ConvergenceWarning,
            stacklevel=3,
        )
    if n_failed:
        logger.debug("%d bootstrap replicates discarded as unusable.", n_failed)
        warnings.warn(
            f"{n_failed} of {n_sims} bootstrap refits failed and were discarded.",
            ConvergenceWarning,
            stacklevel=3,
        )
    if len(usable) < 2:
        msg = f"Only {len(usable)} usable bootstrap replicates out of {n_sims}."
        raise UsageError(msg)

    replicates = np.vstack([pred for pred, _ in usable])
    acceleration = _jackknife_acceleration(model, data, tb, response, reference, n_jobs)
    lower, upper = bca_interval(replicates, estimate, acceleration, alpha)
    return BootstrapCI(
        prediction=estimate,
        lower=lower,
        upper=upper,
        n_replicates=replicates.shape[0],
        n_nonconverged=n_nonconv,
        n_failed=n_failed,
    )
