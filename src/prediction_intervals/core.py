"""Public request API: confidence intervals, prediction intervals,
response probabilities and response quantiles for fitted models.

Every request runs the same pipeline once, with nothing cached between
calls:

    validate request → adapt fitted model → encode target rows
        → dispatch on (family, link, request kind, method)
        → parametric engine, or sampler → simulator → reducer
        → IntervalResult → columns attached to a copy of the table

Dispatch
~~~~~~~~
=============  ===============================  ===========================
request        ``method="parametric"``          ``method="boot"``
=============  ===============================  ===========================
CI (GLM)       Wald interval on η, mapped       case-resampling BCa
               through g⁻¹ (default)            (default B = 2000)
CI (mixed)     Wald interval with random-       simulated g⁻¹(xᵗβ* + …)
               effect variance (LMM default)    percentiles (GLMM default,
                                                M = 200)
PI / probs /   Student-t predictive             simulated responses,
quantile       distribution; gaussian fits      type-1 quantiles (default
               with identity/log/inverse        elsewhere, M = 10000)
               links only (default there)
=============  ===============================  ===========================

The point prediction reported alongside every result is the direct
model prediction, never a simulation average, so it does not depend on
the seed or on M.

Default column names
~~~~~~~~~~~~~~~~~~~~
=============  =============================================
request        names
=============  =============================================
CI             ``LCB{α/2}``, ``UCB{1−α/2}``
PI             ``LPB{α/2}``, ``UPB{1−α/2}``
probability    ``prob_less_than{q}``, ``prob_greater_than{q}``,
               ``prob_less_than_or_equal_to{q}``, …
quantile       ``quantile{p}``
=============  =============================================

Numbers are rendered with up to 15 significant digits
(``LCB0.025``, ``quantile0.9``).
"""

from __future__ import annotations

import logging
import warnings
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
import pandas as pd

from ._compat import DataFrameLike, _ensure_pandas_df
from ._config import default_n_sims, resolve_rng
from ._results import IntervalResult
from .adapter import FittedModel, as_fitted_model, encode_rows, random_effect_design
from .bootstrap import NONCONVERGED_POLICIES, case_bootstrap_ci
from .exceptions import ConvergenceWarning, UsageError
from .parametric import (
    parametric_ci,
    parametric_pi,
    parametric_probability,
    parametric_quantile,
    random_effect_variance,
)
from .reduce import (
    COMPARISON_WORDS,
    exceedance_probability,
    normalize_comparison,
    percentile_bounds,
    prediction_bounds,
    response_quantile,
)
from .simulate import simulate_means, simulate_responses

logger = logging.getLogger(__name__)

_METHODS = ("parametric", "boot")
_DISPERSION_MODES = ("fixed", "sampled")


# ------------------------------------------------------------------ #
# Request validation
# ------------------------------------------------------------------ #


def _check_level(value: float, name: str) -> float:
    """Require *value* in the open interval (0, 1)."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        msg = f"{name} must be a number in (0, 1), got {value!r}."
        raise UsageError(msg) from None
    if not 0.0 < value < 1.0:
        msg = f"{name} must be in (0, 1), got {value}."
        raise UsageError(msg)
    return value


def _check_n_sims(n_sims: int | None, kind: str) -> int:
    if n_sims is None:
        return default_n_sims(kind)
    if isinstance(n_sims, bool) or not isinstance(n_sims, (int, np.integer)):
        msg = f"n_sims must be a positive integer, got {n_sims!r}."
        raise UsageError(msg)
    if n_sims < 1:
        msg = f"n_sims must be a positive integer, got {n_sims}."
        raise UsageError(msg)
    return int(n_sims)


def _check_option(value: str, options: tuple[str, ...], name: str) -> str:
    if value not in options:
        msg = f"{name} must be one of {options}, got {value!r}."
        raise UsageError(msg)
    return value


def _format_number(x: float) -> str:
    return f"{x:.15g}"


def _interval_names(
    names: Sequence[str] | None,
    lower_prefix: str,
    upper_prefix: str,
    alpha: float,
    yhat_name: str,
) -> tuple[str, str]:
    if names is None:
        names = (
            f"{lower_prefix}{_format_number(alpha / 2.0)}",
            f"{upper_prefix}{_format_number(1.0 - alpha / 2.0)}",
        )
    elif isinstance(names, str) or len(names) != 2:
        msg = f"names must be a pair of column names, got {names!r}."
        raise UsageError(msg)
    lower, upper = (str(n) for n in names)
    if lower == upper or yhat_name in (lower, upper):
        msg = (
            f"Interval names {names!r} must be distinct from each other and "
            f"from yhat_name '{yhat_name}'."
        )
        raise UsageError(msg)
    return lower, upper


def _value_name(name: str | None, default: str, yhat_name: str) -> str:
    name = default if name is None else str(name)
    if name == yhat_name:
        msg = f"name '{name}' must differ from yhat_name."
        raise UsageError(msg)
    return name


def _resolve_method(kind: str, model: FittedModel, method: str | None) -> str:
    """Pick the default method for a request or validate an explicit one."""
    if method is not None:
        return _check_option(method, _METHODS, "method")
    if kind == "ci":
        gaussian_identity = (
            model.family.name == "gaussian" and model.link.name == "identity"
        )
        chosen = "boot" if model.is_mixed and not gaussian_identity else "parametric"
    elif model.family.has_closed_form(model.link.name):
        chosen = "parametric"
    else:
        chosen = "boot"
    logger.debug(
        "Default method for %s on %s/%s: %s.",
        kind,
        model.family.name,
        model.link.name,
        chosen,
    )
    return chosen


# ------------------------------------------------------------------ #
# Shared preparation
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class _Prepared:
    """Adapted model and encoded target rows for one request."""

    model: FittedModel
    tb: pd.DataFrame
    X: np.ndarray
    Z: np.ndarray | None
    group_index: np.ndarray | None
    include_random: bool
    reference: pd.DataFrame | None = None

    @property
    def offset(self) -> np.ndarray | None:
        re_ = self.model.random_effects
        if re_ is None or self.Z is None or not self.include_random:
            return None
        return re_.offset(self.Z, self.group_index)

    def predict(self, *, response: bool = True) -> np.ndarray:
        scale = "response" if response else "link"
        if self.include_random:
            return self.model.predict(
                self.X, scale=scale, Z=self.Z, group_index=self.group_index
            )
        return self.model.predict(self.X, scale=scale)

    def extra_variance(self, *, predictive: bool) -> np.ndarray | None:
        return random_effect_variance(
            self.model,
            self.Z,
            self.group_index,
            include_random=self.include_random,
            predictive=predictive,
        )


def _prepare(
    tb: DataFrameLike,
    fit: object,
    *,
    groups: str | None,
    reference: DataFrameLike | None,
    include_random: bool,
) -> _Prepared:
    tb = _ensure_pandas_df(tb, name="tb")
    if reference is not None:
        reference = _ensure_pandas_df(reference, name="reference")
    model = as_fitted_model(fit, groups=groups)
    if not model.converged:
        warnings.warn(
            "The fitted model did not converge; coverage probabilities may "
            "be inaccurate.",
            ConvergenceWarning,
            stacklevel=4,
        )
    X = encode_rows(model, tb, reference=reference)
    Z = group_index = None
    if model.is_mixed:
        Z, group_index = random_effect_design(model, tb, strict=include_random)
    return _Prepared(
        model=model,
        tb=tb,
        X=X,
        Z=Z,
        group_index=group_index,
        include_random=include_random,
        reference=reference,
    )


def _simulate(
    prep: _Prepared,
    n_sims: int | None,
    random_state: int | np.random.Generator | None,
    dispersion: str,
) -> tuple[np.ndarray, int]:
    n = _check_n_sims(n_sims, "simulation")
    rng = resolve_rng(random_state)
    sims = simulate_responses(
        prep.model,
        prep.X,
        n_sims=n,
        rng=rng,
        Z=prep.Z,
        group_index=prep.group_index,
        include_random=prep.include_random,
        dispersion=dispersion,
    )
    return sims, n


# ------------------------------------------------------------------ #
# Confidence intervals
# ------------------------------------------------------------------ #


def compute_ci(
    tb: DataFrameLike,
    fit: object,
    *,
    alpha: float = 0.05,
    names: Sequence[str] | None = None,
    yhat_name: str = "pred",
    response: bool = True,
    method: str | None = None,
    n_sims: int | None = None,
    include_random: bool = True,
    groups: str | None = None,
    reference: DataFrameLike | None = None,
    random_state: int | np.random.Generator | None = None,
    n_jobs: int = 1,
    nonconverged: str = "include",
) -> IntervalResult:
    """Confidence intervals for the conditional mean at each target row.

    Args:
        tb: Target rows (pandas or Polars).
        fit: A statsmodels results object or a
            :class:`~prediction_intervals.adapter.FittedModel`.
        alpha: Significance level; coverage is ``1 - alpha``.
        names: Lower and upper column names.  Defaults to
            ``LCB{alpha/2}`` and ``UCB{1-alpha/2}``.
        yhat_name: Prediction column name.
        response: Intervals for the mean (``True``) or for the linear
            predictor.
        method: ``"parametric"`` or ``"boot"``; see the module table.
        n_sims: Bootstrap / simulation count.
        include_random: Condition on the estimated random effects
            (mixed models).
        groups: Grouping column of the target rows (mixed models).
        reference: Frame containing every factor level of the fit.
        random_state: Seed or generator for simulation paths.
        n_jobs: Parallel refit workers for the case bootstrap.
        nonconverged: Policy for non-converged bootstrap refits,
            ``"include"``, ``"drop"`` or ``"raise"``.

    Returns:
        An :class:`IntervalResult` of kind ``"ci"``.

    Raises:
        UsageError: If the request is malformed.
        UnsupportedModelError: If the model or method is unsupported.
        EncodingError: If the target rows cannot be encoded.
        ConvergenceError: Under ``nonconverged="raise"``.
    """
    alpha = _check_level(alpha, "alpha")
    _check_option(nonconverged, NONCONVERGED_POLICIES, "nonconverged")
    lower_name, upper_name = _interval_names(names, "LCB", "UCB", alpha, yhat_name)
    prep = _prepare(
        tb, fit, groups=groups, reference=reference, include_random=include_random
    )
    model = prep.model
    method = _resolve_method("ci", model, method)

    n_used: int | None = None
    n_nonconverged = 0
    if method == "parametric":
        pred, lower, upper = parametric_ci(
            model,
            prep.X,
            alpha,
            response=response,
            extra_var=prep.extra_variance(predictive=False),
            offset=prep.offset,
        )
    elif model.is_mixed:
        n_used = _check_n_sims(n_sims, "mixed_boot")
        draws = simulate_means(
            model,
            prep.X,
            n_sims=n_used,
            rng=resolve_rng(random_state),
            Z=prep.Z,
            group_index=prep.group_index,
            include_random=include_random,
            response=response,
        )
        lower, upper = percentile_bounds(draws, alpha)
        pred = prep.predict(response=response)
    else:
        n_used = _check_n_sims(n_sims, "ci_boot")
        boot = case_bootstrap_ci(
            model,
            prep.tb,
            alpha,
            response=response,
            n_sims=n_used,
            rng=resolve_rng(random_state),
            n_jobs=n_jobs,
            nonconverged=nonconverged,
            reference=prep.reference,
        )
        pred, lower, upper = boot.prediction, boot.lower, boot.upper
        n_nonconverged = boot.n_nonconverged

    return IntervalResult(
        kind="ci",
        prediction=np.asarray(pred, dtype=float),
        columns={lower_name: np.asarray(lower), upper_name: np.asarray(upper)},
        yhat_name=yhat_name,
        method=method,
        family=model.family,
        link=model.link.name,
        alpha=alpha,
        n_sims=n_used,
        n_nonconverged=n_nonconverged,
        index=prep.tb.index,
    )


# ------------------------------------------------------------------ #
# Prediction intervals
# ------------------------------------------------------------------ #


def compute_pi(
    tb: DataFrameLike,
    fit: object,
    *,
    alpha: float = 0.05,
    names: Sequence[str] | None = None,
    yhat_name: str = "pred",
    method: str | None = None,
    n_sims: int | None = None,
    include_random: bool = True,
    dispersion: str = "fixed",
    groups: str | None = None,
    reference: DataFrameLike | None = None,
    random_state: int | np.random.Generator | None = None,
) -> IntervalResult:
    """Prediction intervals for a new response at each target row.

    Simulated intervals are type-1 quantiles of the simulated
    responses, so for count families both bounds are counts.

    Args:
        dispersion: ``"fixed"`` holds φ̂ at its estimate, ``"sampled"``
            draws it per simulation.

    See :func:`compute_ci` for the remaining arguments.

    Raises:
        UnsupportedModelError: For Bernoulli, inverse Gaussian, quasi
            and quasibinomial fits, or ``method="parametric"`` outside
            the gaussian closed-form links.
    """
    alpha = _check_level(alpha, "alpha")
    _check_option(dispersion, _DISPERSION_MODES, "dispersion")
    lower_name, upper_name = _interval_names(names, "LPB", "UPB", alpha, yhat_name)
    prep = _prepare(
        tb, fit, groups=groups, reference=reference, include_random=include_random
    )
    model = prep.model
    model.family.require_prediction_support("Prediction intervals")
    method = _resolve_method("pi", model, method)

    n_used: int | None = None
    if method == "parametric":
        pred, lower, upper = parametric_pi(
            model,
            prep.X,
            alpha,
            extra_var=prep.extra_variance(predictive=True),
            offset=prep.offset,
        )
    else:
        sims, n_used = _simulate(prep, n_sims, random_state, dispersion)
        lower, upper = prediction_bounds(sims, alpha)
        pred = prep.predict()

    return IntervalResult(
        kind="pi",
        prediction=np.asarray(pred, dtype=float),
        columns={lower_name: np.asarray(lower), upper_name: np.asarray(upper)},
        yhat_name=yhat_name,
        method=method,
        family=model.family,
        link=model.link.name,
        alpha=alpha,
        n_sims=n_used,
        index=prep.tb.index,
    )


# ------------------------------------------------------------------ #
# Response probabilities
# ------------------------------------------------------------------ #


def compute_probs(
    tb: DataFrameLike,
    fit: object,
    q: float,
    *,
    name: str | None = None,
    yhat_name: str = "pred",
    comparison: str = "<",
    method: str | None = None,
    n_sims: int | None = None,
    include_random: bool = True,
    dispersion: str = "fixed",
    groups: str | None = None,
    reference: DataFrameLike | None = None,
    random_state: int | np.random.Generator | None = None,
) -> IntervalResult:
    """Probability that a new response satisfies ``Y <comparison> q``.

    Args:
        q: Threshold on the response scale.
        name: Column name; defaults to ``prob_less_than{q}`` etc.
        comparison: ``"<"``, ``">"``, ``"<="`` (``"=<"``), ``">="``
            (``"=>"``) or ``"="`` (``"=="``).

    See :func:`compute_pi` for the remaining arguments.
    """
    op = normalize_comparison(comparison)
    try:
        q = float(q)
    except (TypeError, ValueError):
        msg = f"q must be a finite number, got {q!r}."
        raise UsageError(msg) from None
    if not np.isfinite(q):
        msg = f"q must be a finite number, got {q}."
        raise UsageError(msg)
    _check_option(dispersion, _DISPERSION_MODES, "dispersion")
    name = _value_name(
        name, f"prob_{COMPARISON_WORDS[op]}{_format_number(q)}", yhat_name
    )
    prep = _prepare(
        tb, fit, groups=groups, reference=reference, include_random=include_random
    )
    model = prep.model
    model.family.require_prediction_support("Response probabilities")
    method = _resolve_method("probability", model, method)

    n_used: int | None = None
    if method == "parametric":
        pred, prob = parametric_probability(
            model,
            prep.X,
            q,
            op,
            extra_var=prep.extra_variance(predictive=True),
            offset=prep.offset,
        )
    else:
        sims, n_used = _simulate(prep, n_sims, random_state, dispersion)
        prob = exceedance_probability(sims, q, op)
        pred = prep.predict()

    return IntervalResult(
        kind="probability",
        prediction=np.asarray(pred, dtype=float),
        columns={name: np.asarray(prob)},
        yhat_name=yhat_name,
        method=method,
        family=model.family,
        link=model.link.name,
        n_sims=n_used,
        index=prep.tb.index,
    )


# ------------------------------------------------------------------ #
# Response quantiles
# ------------------------------------------------------------------ #


def compute_quantile(
    tb: DataFrameLike,
    fit: object,
    p: float,
    *,
    name: str | None = None,
    yhat_name: str = "pred",
    method: str | None = None,
    n_sims: int | None = None,
    include_random: bool = True,
    dispersion: str = "fixed",
    groups: str | None = None,
    reference: DataFrameLike | None = None,
    random_state: int | np.random.Generator | None = None,
) -> IntervalResult:
    """Quantile at level *p* of a new response at each target row.

    Args:
        p: Quantile level in (0, 1).
        name: Column name; defaults to ``quantile{p}``.

    See :func:`compute_pi` for the remaining arguments.
    """
    p = _check_level(p, "p")
    _check_option(dispersion, _DISPERSION_MODES, "dispersion")
    name = _value_name(name, f"quantile{_format_number(p)}", yhat_name)
    prep = _prepare(
        tb, fit, groups=groups, reference=reference, include_random=include_random
    )
    model = prep.model
    model.family.require_prediction_support("Response quantiles")
    method = _resolve_method("quantile", model, method)

    n_used: int | None = None
    if method == "parametric":
        pred, value = parametric_quantile(
            model,
            prep.X,
            p,
            extra_var=prep.extra_variance(predictive=True),
            offset=prep.offset,
        )
    else:
        sims, n_used = _simulate(prep, n_sims, random_state, dispersion)
        value = response_quantile(sims, p)
        pred = prep.predict()

    return IntervalResult(
        kind="quantile",
        prediction=np.asarray(pred, dtype=float),
        columns={name: np.asarray(value)},
        yhat_name=yhat_name,
        method=method,
        family=model.family,
        link=model.link.name,
        n_sims=n_used,
        index=prep.tb.index,
    )


# ------------------------------------------------------------------ #
# Table-augmenting wrappers
# ------------------------------------------------------------------ #


def add_ci(tb: DataFrameLike, fit: object, **kwargs) -> pd.DataFrame:
    """Append confidence-interval columns to a copy of *tb*.

    Accepts the keyword arguments of :func:`compute_ci`.  Colliding
    column names are overwritten with an
    :class:`~prediction_intervals.exceptions.OverwriteWarning`.
    """
    tb = _ensure_pandas_df(tb, name="tb")
    return compute_ci(tb, fit, **kwargs).attach(tb)


def add_pi(tb: DataFrameLike, fit: object, **kwargs) -> pd.DataFrame:
    """Append prediction-interval columns to a copy of *tb*.

    Accepts the keyword arguments of :func:`compute_pi`.
    """
    tb = _ensure_pandas_df(tb, name="tb")
    return compute_pi(tb, fit, **kwargs).attach(tb)


def add_probs(tb: DataFrameLike, fit: object, q: float, **kwargs) -> pd.DataFrame:
    """Append a response-probability column to a copy of *tb*.

    Accepts the keyword arguments of :func:`compute_probs`.
    """
    tb = _ensure_pandas_df(tb, name="tb")
    return compute_probs(tb, fit, q, **kwargs).attach(tb)


def add_quantile(tb: DataFrameLike, fit: object, p: float, **kwargs) -> pd.DataFrame:
    """Append a response-quantile column to a copy of *tb*.

    Accepts the keyword arguments of :func:`compute_quantile`.
    """
    tb = _ensure_pandas_df(tb, name="tb")
    return compute_quantile(tb, fit, p, **kwargs).attach(tb)
