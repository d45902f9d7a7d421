"""prediction_intervals — Intervals, probabilities and quantiles for fitted models.

Augments a table of target rows with confidence intervals, prediction
intervals, response probabilities and response quantiles computed from
an already fitted generalized linear model, linear mixed model or
generalized linear mixed model (statsmodels results, or any fit
described through :class:`FittedModel`).  Closed-form paths cover
Wald confidence intervals and gaussian predictive distributions;
everything else runs a seeded parametric bootstrap or a
case-resampling BCa bootstrap.

Public API:
    .. autosummary::
        add_ci
        add_pi
        add_probs
        add_quantile
        compute_ci
        compute_pi
        compute_probs
        compute_quantile
        as_fitted_model
        FittedModel
        RandomEffects
        IntervalResult
        ResponseFamily
        Link
        resolve_family
        register_family
        available_families
        resolve_link
        available_links
        set_seed
        get_rng
"""

from ._config import get_rng, set_seed
from ._results import IntervalResult
from .adapter import FittedModel, RandomEffects, as_fitted_model
from .core import (
    add_ci,
    add_pi,
    add_probs,
    add_quantile,
    compute_ci,
    compute_pi,
    compute_probs,
    compute_quantile,
)
from .exceptions import (
    ConvergenceError,
    ConvergenceWarning,
    EncodingError,
    OverwriteWarning,
    PredictionIntervalsError,
    UnsupportedModelError,
    UsageError,
)
from .families import (
    ResponseFamily,
    available_families,
    register_family,
    resolve_family,
)
from .links import Link, available_links, resolve_link

__version__ = "0.1.0"

__all__ = [
    "add_ci",
    "add_pi",
    "add_probs",
    "add_quantile",
    "compute_ci",
    "compute_pi",
    "compute_probs",
    "compute_quantile",
    "as_fitted_model",
    "FittedModel",
    "RandomEffects",
    "IntervalResult",
    "ResponseFamily",
    "Link",
    "resolve_family",
    "register_family",
    "available_families",
    "resolve_link",
    "available_links",
    "set_seed",
    "get_rng",
    "PredictionIntervalsError",
    "UsageError",
    "UnsupportedModelError",
    "EncodingError",
    "ConvergenceError",
    "ConvergenceWarning",
    "OverwriteWarning",
]
