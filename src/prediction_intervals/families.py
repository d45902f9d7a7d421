"""Response families as a closed lookup table.

A :class:`ResponseFamily` bundles everything the interval engines need
to know about a response distribution:

* **sampler** — draws one response per conditional mean μ, given the
  dispersion φ̂ (and θ̂ for the negative binomial).  This is the
  residual-uncertainty half of the parametric bootstrap; parameter
  uncertainty enters upstream through the sampled coefficients.
* **variance** — the variance function V(μ), so that
  ``Var(Y) = φ·V(μ)``.
* **support** — the set responses live in (``"real"``, ``"positive"``,
  ``"count"``, ``"binary"``).  Discrete supports are why every
  quantile reduction downstream uses the inverted-CDF rule.
* **closed_form_links** — links under which prediction intervals have
  an exact Student-t form (gaussian only), so no simulation is needed.
* **asymptotic_normal** — whether parametric confidence intervals use a
  standard-normal critical value (binomial, Poisson) instead of a
  Student-t on the residual degrees of freedom.
* **prediction_supported** — whether prediction intervals,
  probabilities and quantiles can be requested at all.

Dispatch is a dictionary lookup on the family name, not a class
hierarchy: the supported set is small and fixed.

Quasipoisson
~~~~~~~~~~~~
A quasipoisson fit has no likelihood to simulate from.  Responses are
drawn from a negative binomial with the same mean and the fitted
variance φ̂·μ, i.e. size ``μ/(φ̂ − 1)`` and success probability
``1/φ̂``.  φ̂ is held at its point estimate unless dispersion sampling
is requested explicitly, which makes the resulting intervals slightly
conservative.  Where φ̂ ≤ 1 no over-dispersed count model exists and the
draw falls back to Poisson(μ).
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from .exceptions import UnsupportedModelError

# Rate clamp for count samplers; keeps numpy's samplers in range.
_MU_MIN = 1e-10
_MU_MAX = 1e8

Sampler = Callable[..., np.ndarray]


# ------------------------------------------------------------------ #
# Response samplers
# ------------------------------------------------------------------ #
#
# Every sampler has the signature
#
#     sampler(mu, *, dispersion, theta, rng) -> ndarray
#
# where ``mu`` has shape (M, N) and ``dispersion`` is a scalar or an
# (M, 1) column broadcast across target rows.


def _sample_gaussian(
    mu: np.ndarray,
    *,
    dispersion: float | np.ndarray,
    theta: float | None,  # noqa: ARG001
    rng: np.random.Generator,
) -> np.ndarray:
    """Normal(μ, sd = √φ)."""
    sd = np.sqrt(np.broadcast_to(dispersion, mu.shape))
    return np.asarray(rng.normal(loc=mu, scale=sd))


def _sample_bernoulli(
    mu: np.ndarray,
    *,
    dispersion: float | np.ndarray,  # noqa: ARG001
    theta: float | None,  # noqa: ARG001
    rng: np.random.Generator,
) -> np.ndarray:
    """Bernoulli(μ)."""
    return np.asarray(rng.binomial(1, np.clip(mu, 0.0, 1.0)))


def _sample_poisson(
    mu: np.ndarray,
    *,
    dispersion: float | np.ndarray,  # noqa: ARG001
    theta: float | None,  # noqa: ARG001
    rng: np.random.Generator,
) -> np.ndarray:
    """Poisson(μ)."""
    return np.asarray(rng.poisson(lam=np.clip(mu, 0.0, _MU_MAX)))


def _sample_quasipoisson(
    mu: np.ndarray,
    *,
    dispersion: float | np.ndarray,
    theta: float | None,  # noqa: ARG001
    rng: np.random.Generator,
) -> np.ndarray:
    """NB(mean μ, size μ/(φ − 1)); Poisson(μ) wherever φ ≤ 1."""
    mu = np.clip(mu, _MU_MIN, _MU_MAX)
    phi = np.broadcast_to(np.asarray(dispersion, dtype=float), mu.shape)
    over = phi > 1.0
    out = np.empty(mu.shape, dtype=np.int64)
    if not over.all():
        out[~over] = rng.poisson(lam=mu[~over])
    if over.any():
        size = mu[over] / (phi[over] - 1.0)
        out[over] = rng.negative_binomial(n=size, p=1.0 / phi[over])
    return out


def _sample_gamma(
    mu: np.ndarray,
    *,
    dispersion: float | np.ndarray,
    theta: float | None,  # noqa: ARG001
    rng: np.random.Generator,
) -> np.ndarray:
    """Gamma(shape = 1/φ, rate = shape/μ), which has mean μ."""
    mu = np.clip(mu, _MU_MIN, None)
    phi = np.broadcast_to(np.asarray(dispersion, dtype=float), mu.shape)
    shape = 1.0 / phi
    return np.asarray(rng.gamma(shape=shape, scale=mu * phi))


def _sample_negative_binomial(
    mu: np.ndarray,
    *,
    dispersion: float | np.ndarray,  # noqa: ARG001
    theta: float | None,
    rng: np.random.Generator,
) -> np.ndarray:
    """NB(mean μ, size θ): ``Var(Y) = μ + μ²/θ``."""
    if theta is None or not theta > 0:
        msg = "negative_binomial sampling requires a positive size parameter theta."
        raise UnsupportedModelError(msg)
    mu = np.clip(mu, _MU_MIN, _MU_MAX)
    return np.asarray(rng.negative_binomial(n=theta, p=theta / (theta + mu)))


# ------------------------------------------------------------------ #
# Variance functions
# ------------------------------------------------------------------ #


def _var_constant(mu: np.ndarray, theta: float | None = None) -> np.ndarray:  # noqa: ARG001
    return np.ones_like(np.asarray(mu, dtype=float))


def _var_mu(mu: np.ndarray, theta: float | None = None) -> np.ndarray:  # noqa: ARG001
    return np.asarray(mu, dtype=float)


def _var_binomial(mu: np.ndarray, theta: float | None = None) -> np.ndarray:  # noqa: ARG001
    mu = np.asarray(mu, dtype=float)
    return mu * (1.0 - mu)


def _var_mu_squared(mu: np.ndarray, theta: float | None = None) -> np.ndarray:  # noqa: ARG001
    return np.asarray(mu, dtype=float) ** 2


def _var_mu_cubed(mu: np.ndarray, theta: float | None = None) -> np.ndarray:  # noqa: ARG001
    return np.asarray(mu, dtype=float) ** 3


def _var_negative_binomial(mu: np.ndarray, theta: float | None = None) -> np.ndarray:
    mu = np.asarray(mu, dtype=float)
    if theta is None:
        return mu
    return mu + mu**2 / theta


# ------------------------------------------------------------------ #
# ResponseFamily
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class ResponseFamily:
    """One entry of the family lookup table.

    Attributes:
        name: Table key (``"gaussian"``, ``"poisson"``, …).
        support: ``"real"``, ``"positive"``, ``"count"`` or ``"binary"``.
        variance: Variance function ``V(mu, theta=None)``.
        sampler: Response sampler, or ``None`` when no simulation model
            is implemented for the family.
        asymptotic_normal: Use a normal rather than Student-t critical
            value for parametric confidence intervals.
        closed_form_links: Links for which prediction intervals are
            computed in closed form.
        prediction_supported: Whether prediction intervals,
            probabilities and quantiles may be requested.
        unsupported_reason: Message used when they may not.
    """

    name: str
    support: str
    variance: Callable[..., np.ndarray]
    sampler: Sampler | None = None
    asymptotic_normal: bool = False
    closed_form_links: frozenset[str] = field(default_factory=frozenset)
    prediction_supported: bool = True
    unsupported_reason: str = ""

    @property
    def is_discrete(self) -> bool:
        return self.support in ("count", "binary")

    def has_closed_form(self, link: str) -> bool:
        """Return ``True`` if PIs under *link* need no simulation."""
        return link in self.closed_form_links

    def require_prediction_support(self, kind: str) -> None:
        """Raise ``UnsupportedModelError`` if *kind* cannot be computed.

        Args:
            kind: Human-readable request name used in the message
                (e.g. ``"prediction intervals"``).
        """
        if not self.prediction_supported or self.sampler is None:
            reason = self.unsupported_reason or "no response simulator is implemented"
            msg = f"{kind} are not supported for family '{self.name}': {reason}."
            raise UnsupportedModelError(msg)

    def sample(
        self,
        mu: np.ndarray,
        *,
        dispersion: float | np.ndarray = 1.0,
        theta: float | None = None,
        rng: np.random.Generator,
    ) -> np.ndarray:
        """Draw one response per entry of *mu*."""
        if self.sampler is None:
            msg = f"Family '{self.name}' has no response simulator."
            raise UnsupportedModelError(msg)
        return self.sampler(mu, dispersion=dispersion, theta=theta, rng=rng)

    def in_support(self, values: np.ndarray) -> np.ndarray:
        """Elementwise membership of *values* in the family's support."""
        values = np.asarray(values, dtype=float)
        finite = np.isfinite(values)
        if self.support == "binary":
            return finite & np.isin(values, (0.0, 1.0))
        if self.support == "count":
            return finite & (values >= 0) & (values == np.round(values))
        if self.support == "positive":
            return finite & (values > 0)
        return finite


# ------------------------------------------------------------------ #
# Registry
# ------------------------------------------------------------------ #

_FAMILIES: dict[str, ResponseFamily] = {}
"""Registry mapping family names to :class:`ResponseFamily` entries."""


def register_family(family: ResponseFamily) -> None:
    """Register *family* under its ``name``.

    Raises:
        TypeError: If *family* is not a ``ResponseFamily``.
    """
    if not isinstance(family, ResponseFamily):
        msg = f"{family!r} is not a ResponseFamily."
        raise TypeError(msg)
    _FAMILIES[family.name] = family


def resolve_family(family: str | ResponseFamily) -> ResponseFamily:
    """Resolve a family name or instance to a ``ResponseFamily``.

    Instances are returned as-is, names are looked up in the registry.

    Raises:
        UnsupportedModelError: If the name is not registered.
    """
    if isinstance(family, ResponseFamily):
        return family
    key = str(family).strip().lower().replace("-", "_").replace(" ", "_")
    if key in _FAMILIES:
        return _FAMILIES[key]
    msg = f"Unknown family '{family}'. Choose from: {sorted(_FAMILIES)}"
    raise UnsupportedModelError(msg)


def available_families() -> list[str]:
    """Return the sorted names of the registered families."""
    return sorted(_FAMILIES)


def _builtin_families() -> list[ResponseFamily]:
    no_bootstrap = "its bootstrap parameters are not implemented"
    return [
        ResponseFamily(
            name="gaussian",
            support="real",
            variance=_var_constant,
            sampler=_sample_gaussian,
            closed_form_links=frozenset({"identity", "log", "inverse"}),
        ),
        ResponseFamily(
            name="binomial",
            support="binary",
            variance=_var_binomial,
            sampler=_sample_bernoulli,
            asymptotic_normal=True,
            prediction_supported=False,
            unsupported_reason=(
                "the response is Bernoulli, so only the fitted probability "
                "is meaningful"
            ),
        ),
        ResponseFamily(
            name="poisson",
            support="count",
            variance=_var_mu,
            sampler=_sample_poisson,
            asymptotic_normal=True,
        ),
        ResponseFamily(
            name="quasipoisson",
            support="count",
            variance=_var_mu,
            sampler=_sample_quasipoisson,
        ),
        ResponseFamily(
            name="gamma",
            support="positive",
            variance=_var_mu_squared,
            sampler=_sample_gamma,
        ),
        ResponseFamily(
            name="negative_binomial",
            support="count",
            variance=_var_negative_binomial,
            sampler=_sample_negative_binomial,
        ),
        ResponseFamily(
            name="inverse_gaussian",
            support="positive",
            variance=_var_mu_cubed,
            prediction_supported=False,
            unsupported_reason=no_bootstrap,
        ),
        ResponseFamily(
            name="quasi",
            support="real",
            variance=_var_constant,
            prediction_supported=False,
            unsupported_reason=no_bootstrap,
        ),
        ResponseFamily(
            name="quasibinomial",
            support="real",
            variance=_var_binomial,
            prediction_supported=False,
            unsupported_reason=no_bootstrap,
        ),
    ]


for _fam in _builtin_families():
    register_family(_fam)


def family_from_statsmodels(sm_family: Any, scale: float = 1.0) -> ResponseFamily:
    """Map a statsmodels GLM family instance to a table entry.

    A Poisson or binomial fit whose scale was estimated (``scale != 1``,
    e.g. ``fit(scale="X2")``) is treated as quasipoisson or
    quasibinomial.

    Raises:
        UnsupportedModelError: If the family class is not recognised.
    """
    cls_name = type(sm_family).__name__
    quasi_scale = not np.isclose(scale, 1.0)
    if cls_name == "Poisson":
        return _FAMILIES["quasipoisson" if quasi_scale else "poisson"]
    if cls_name == "Binomial":
        return _FAMILIES["quasibinomial" if quasi_scale else "binomial"]
    mapping = {
        "Gaussian": "gaussian",
        "Gamma": "gamma",
        "NegativeBinomial": "negative_binomial",
        "InverseGaussian": "inverse_gaussian",
        "Tweedie": "quasi",
    }
    if cls_name in mapping:
        return _FAMILIES[mapping[cls_name]]
    msg = f"statsmodels family '{cls_name}' is not supported."
    raise UnsupportedModelError(msg)
