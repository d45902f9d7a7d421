"""Closed-form intervals, probabilities and quantiles.

Confidence intervals
~~~~~~~~~~~~~~~~~~~~
For any GLM (and the fixed part of a mixed model) the estimated linear
predictor is approximately normal:

    η̂ = xᵗβ̂,    se(η̂) = √(xᵗ Σ̂ x)

    CI_link = η̂ ∓ c · se(η̂)

with c the 1 − α/2 quantile of N(0, 1) for binomial and Poisson fits
and of Student-t on ν residual degrees of freedom otherwise.  The
response-scale interval is g⁻¹ of the link-scale endpoints, swapped
when g⁻¹ is decreasing (see :mod:`.links`).

Gaussian predictive distribution
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
For gaussian fits under an identity, log or inverse link a new
response is

    y = μ̂ + e,    (y − μ̂) / s ~ t_ν,    s² = φ̂ + se(μ̂)²

where se(μ̂) = |dμ/dη| · se(η̂) is the delta-method standard error on
the response scale and φ̂ = σ̂².  Prediction intervals, probabilities
and quantiles all come from this one distribution.

Linear mixed models
~~~~~~~~~~~~~~~~~~~
A mixed model adds the random-effect variance to se(η̂)²:

======================  =======================  ======================
                        random effects included  random effects excluded
======================  =======================  ======================
confidence interval     zᵗ Var(b̂_g) z            0
prediction quantities   zᵗ Var(b̂_g) z            zᵗ Σ_b z
======================  =======================  ======================

and ν = n − p − 2 (one grouping-factor variance plus the residual
variance).
"""

from __future__ import annotations

import logging
from typing import Any

import numpy as np
from scipy import stats

from .adapter import FittedModel
from .exceptions import UnsupportedModelError
from .reduce import normalize_comparison

logger = logging.getLogger(__name__)


def _reference_distribution(model: FittedModel, *, predictive: bool = False) -> Any:
    """N(0, 1) or Student-t on ν, as a frozen scipy distribution."""
    asymptotic = model.family.asymptotic_normal and not predictive
    if asymptotic or not np.isfinite(model.df_resid):
        return stats.norm()
    if model.df_resid <= 0:
        msg = (
            f"The fit has {model.df_resid:g} residual degrees of freedom; "
            "a Student-t critical value is undefined."
        )
        raise UnsupportedModelError(msg)
    return stats.t(model.df_resid)


def critical_value(model: FittedModel, alpha: float) -> float:
    """1 − α/2 quantile of the reference distribution for *model*."""
    return float(_reference_distribution(model).ppf(1.0 - alpha / 2.0))


def random_effect_variance(
    model: FittedModel,
    Z: np.ndarray | None,
    group_index: np.ndarray | None,
    *,
    include_random: bool,
    predictive: bool,
) -> np.ndarray | None:
    """Random-effect contribution to the variance of η̂, per row.

    Returns ``None`` for models without random effects.
    """
    re_ = model.random_effects
    if re_ is None or Z is None:
        return None
    if include_random:
        if group_index is None:
            msg = "group_index is required when random effects are included."
            raise ValueError(msg)
        return re_.conditional_variance(Z, group_index)
    if predictive:
        return np.einsum("ij,jk,ik->i", Z, re_.cov, Z)
    return np.zeros(Z.shape[0])


def _link_scale(
    model: FittedModel,
    X: np.ndarray,
    extra_var: np.ndarray | None,
    offset: np.ndarray | None,
) -> tuple[np.ndarray, np.ndarray]:
    eta = model.linear_predictor(X)
    if offset is not None:
        eta = eta + offset
    var = model.linear_se(X) ** 2
    if extra_var is not None:
        var = var + extra_var
    return eta, np.sqrt(var)


def parametric_ci(
    model: FittedModel,
    X: np.ndarray,
    alpha: float,
    *,
    response: bool = True,
    extra_var: np.ndarray | None = None,
    offset: np.ndarray | None = None,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Wald confidence interval for the mean at each target row.

    Args:
        model: Fitted-model snapshot.
        X: Encoded target rows.
        alpha: Significance level.
        response: Report on the response scale (``True``) or the
            linear-predictor scale.
        extra_var: Additional per-row variance on the link scale
            (random effects, see :func:`random_effect_variance`).
        offset: Per-row random-effect contribution to η̂.

    Returns:
        ``(prediction, lower, upper)`` arrays, each of shape ``(N,)``.
    """
    eta, se = _link_scale(model, X, extra_var, offset)
    c = critical_value(model, alpha)
    lower, upper = eta - c * se, eta + c * se
    if not response:
        return eta, lower, upper
    pred = np.asarray(model.link.inverse(eta), dtype=float)
    lower, upper = model.link.transform_bounds(lower, upper)
    logger.debug(
        "Parametric CI with critical value %.4f (link %s%s).",
        c,
        model.link.name,
        ", bounds swapped" if model.link.decreasing else "",
    )
    return pred, lower, upper


def _predictive_distribution(
    model: FittedModel,
    X: np.ndarray,
    extra_var: np.ndarray | None,
    offset: np.ndarray | None,
) -> tuple[np.ndarray, np.ndarray, Any]:
    """Centre, scale and reference distribution of a new response."""
    family, link = model.family, model.link
    if not family.has_closed_form(link.name):
        msg = (
            f"Closed-form prediction is available for gaussian fits with "
            f"{sorted(_closed_form_links())} links, not family "
            f"'{family.name}' with link '{link.name}'. Use method='boot'."
        )
        raise UnsupportedModelError(msg)
    eta, se_eta = _link_scale(model, X, extra_var, offset)
    mu = np.asarray(link.inverse(eta), dtype=float)
    se_mu = np.abs(np.asarray(link.inverse_deriv(eta), dtype=float)) * se_eta
    scale = np.sqrt(model.dispersion + se_mu**2)
    return mu, scale, _reference_distribution(model, predictive=True)


def _closed_form_links() -> frozenset[str]:
    from .families import resolve_family

    return resolve_family("gaussian").closed_form_links


def parametric_pi(
    model: FittedModel,
    X: np.ndarray,
    alpha: float,
    *,
    extra_var: np.ndarray | None = None,
    offset: np.ndarray | None = None,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Student-t prediction interval ``μ̂ ∓ t·√(φ̂ + se(μ̂)²)``.

    Returns:
        ``(prediction, lower, upper)``.

    Raises:
        UnsupportedModelError: Unless the fit is gaussian with a
            closed-form link.
    """
    mu, scale, dist = _predictive_distribution(model, X, extra_var, offset)
    t = float(dist.ppf(1.0 - alpha / 2.0))
    return mu, mu - t * scale, mu + t * scale


def parametric_probability(
    model: FittedModel,
    X: np.ndarray,
    q: float | np.ndarray,
    comparison: str = "<",
    *,
    extra_var: np.ndarray | None = None,
    offset: np.ndarray | None = None,
) -> tuple[np.ndarray, np.ndarray]:
    """P(Y <op> q) under the gaussian predictive distribution.

    The response is continuous, so ``<`` and ``<=`` coincide and
    ``=`` has probability zero.

    Returns:
        ``(prediction, probability)``.
    """
    op = normalize_comparison(comparison)
    mu, scale, dist = _predictive_distribution(model, X, extra_var, offset)
    z = (np.asarray(q, dtype=float) - mu) / scale
    if op in ("<", "<="):
        prob = dist.cdf(z)
    elif op in (">", ">="):
        prob = dist.sf(z)
    else:
        prob = np.zeros_like(mu)
    return mu, np.asarray(prob, dtype=float)


def parametric_quantile(
    model: FittedModel,
    X: np.ndarray,
    p: float,
    *,
    extra_var: np.ndarray | None = None,
    offset: np.ndarray | None = None,
) -> tuple[np.ndarray, np.ndarray]:
    """Quantile at level *p* of the gaussian predictive distribution.

    Returns:
        ``(prediction, quantile)``.
    """
    mu, scale, dist = _predictive_distribution(model, X, extra_var, offset)
    return mu, mu + float(dist.ppf(p)) * scale
