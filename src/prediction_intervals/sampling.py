"""Draws from the estimated sampling distribution of a fitted model.

Parameter uncertainty enters every simulation path here.  Each draw m
produces a coefficient vector

    β*ₘ ~ N(β̂, Σ̂)

and, for mixed models, a random-effect vector per draw.  The linear
predictor for target row i in group g under draw m is then

    η*ₘᵢ = xᵢᵗβ*ₘ + zᵢᵗb*ₘ,g      (random effects included:
                                   b*ₘ,g ~ N(b̂_g, Var(b̂_g)) around
                                   the estimated group effect)
    η*ₘᵢ = xᵢᵗβ*ₘ + zᵢᵗuₘ         (random effects excluded: a fresh
                                   group effect uₘ ~ N(0, Σ_b))

so the simulated spread matches the variance the closed-form
intervals use.

Multivariate-normal draws use an SVD factorisation of Σ̂, so a
singular or near-singular covariance (e.g. a perfectly separated
logistic fit) is sampled on its range rather than rejected.

Generator order
~~~~~~~~~~~~~~~
All draws come from one ``numpy.random.Generator`` in a fixed order:
coefficients, then random effects, then dispersion, then responses
(the last two in :mod:`.simulate`).  Keeping the order fixed is what
makes a seeded call reproducible bit for bit.
"""

from __future__ import annotations

import logging

import numpy as np

from .adapter import FittedModel, RandomEffects

logger = logging.getLogger(__name__)


def sample_coefficients(
    coef: np.ndarray,
    cov: np.ndarray,
    n_draws: int,
    rng: np.random.Generator,
) -> np.ndarray:
    """Draw coefficient vectors from N(β̂, Σ̂).

    Args:
        coef: Point estimate β̂, shape ``(p,)``.
        cov: Covariance Σ̂, shape ``(p, p)``.  May be singular.
        n_draws: Number of draws M.
        rng: Generator to draw from.

    Returns:
        Array of shape ``(M, p)``.
    """
    coef = np.asarray(coef, dtype=float)
    cov = np.asarray(cov, dtype=float)
    return np.asarray(
        rng.multivariate_normal(
            coef, cov, size=n_draws, method="svd", check_valid="ignore"
        )
    )


def sample_random_effects(
    cov: np.ndarray,
    n_draws: int,
    rng: np.random.Generator,
) -> np.ndarray:
    """Draw zero-mean random-effect vectors, shape ``(M, d)``."""
    cov = np.atleast_2d(np.asarray(cov, dtype=float))
    mean = np.zeros(cov.shape[0])
    return np.asarray(
        rng.multivariate_normal(
            mean, cov, size=n_draws, method="svd", check_valid="ignore"
        )
    )


def sample_group_effects(
    re_: RandomEffects,
    Z: np.ndarray,
    group_index: np.ndarray,
    n_draws: int,
    rng: np.random.Generator,
) -> np.ndarray:
    """Per-row contributions ``zᵢᵗb*ₘ,g`` around the estimated group effects.

    Each draw takes one vector per group, b*ₘ,g ~ N(b̂_g, Var(b̂_g)),
    shared by that group's rows.  Without a conditional covariance the
    fitted Σ_b stands in for Var(b̂_g); rows of unseen groups
    (``group_index == -1``) draw from N(0, Σ_b).

    Returns:
        Array of shape ``(M, N)``.
    """
    out = np.empty((n_draws, Z.shape[0]))
    for g in np.unique(group_index):
        rows = group_index == g
        if g < 0:
            mean, cov = np.zeros(re_.dim), re_.cov
        else:
            mean = re_.blups[g]
            cov = re_.cov if re_.blup_cov is None else re_.blup_cov[g]
        b = rng.multivariate_normal(
            mean, cov, size=n_draws, method="svd", check_valid="ignore"
        )
        out[:, rows] = b @ Z[rows].T
    return out


def sample_dispersion(
    dispersion: float,
    df_resid: float,
    n_draws: int,
    rng: np.random.Generator,
) -> np.ndarray:
    """Draw φ* = φ̂·ν / χ²_ν, shape ``(M,)``.

    This is the scaled-inverse-χ² distribution of the dispersion
    estimate.  With no finite residual degrees of freedom the point
    estimate is returned unchanged for every draw.
    """
    if not np.isfinite(df_resid) or df_resid <= 0:
        logger.debug("No finite residual df; dispersion held at %g.", dispersion)
        return np.full(n_draws, float(dispersion))
    return float(dispersion) * df_resid / rng.chisquare(df_resid, size=n_draws)


def linear_predictor_draws(
    model: FittedModel,
    X: np.ndarray,
    *,
    n_draws: int,
    rng: np.random.Generator,
    Z: np.ndarray | None = None,
    group_index: np.ndarray | None = None,
    include_random: bool = True,
) -> np.ndarray:
    """Simulated linear predictors for the target rows.

    Args:
        model: Fitted-model snapshot.
        X: Encoded target rows, shape ``(N, p_retained)``.
        n_draws: Number of draws M.
        rng: Generator to draw from.
        Z: Random-effect design rows, shape ``(N, d)`` (mixed models).
        group_index: Per-row group positions from
            :func:`~prediction_intervals.adapter.random_effect_design`.
        include_random: Condition on the estimated group effects
            (``True``) or draw a fresh group effect per draw.

    Returns:
        Array of shape ``(M, N)``; column *i* belongs to target row *i*.
    """
    beta = sample_coefficients(model.coef_retained, model.cov_retained, n_draws, rng)
    eta = beta @ X.T

    re_ = model.random_effects
    if re_ is not None and Z is not None:
        if include_random:
            if group_index is None:
                msg = "group_index is required when random effects are included."
                raise ValueError(msg)
            eta = eta + sample_group_effects(re_, Z, group_index, n_draws, rng)
        else:
            u = sample_random_effects(re_.cov, n_draws, rng)
            eta = eta + u @ Z.T
    logger.debug(
        "Drew %d linear predictors for %d rows (random effects %s).",
        n_draws,
        X.shape[0],
        "conditional" if include_random else "sampled",
    )
    return np.asarray(eta)
