"""Link functions as a closed lookup table.

Each supported link is a frozen :class:`Link` carrying the inverse
link g⁻¹ (linear predictor → mean), its derivative dμ/dη (used for
delta-method standard errors on the response scale) and a
``decreasing`` flag.

Why the flag matters
~~~~~~~~~~~~~~~~~~~~
A confidence interval is built on the linear-predictor scale as
``(η̂ − c·se, η̂ + c·se)`` and mapped through g⁻¹.  When g⁻¹ is
decreasing (the canonical gamma link 1/μ, or 1/μ² for the inverse
Gaussian), the image of the lower endpoint is the *upper* bound on the
response scale.  The parametric engine reads ``decreasing`` and swaps
the transformed endpoints so that ``lower ≤ upper`` always holds.

=====================  ====================  ==========  ===========
Name                   g⁻¹(η)                dμ/dη       decreasing
=====================  ====================  ==========  ===========
``identity``           η                     1           no
``log``                exp(η)                exp(η)      no
``logit``              1/(1 + exp(−η))       μ(1 − μ)    no
``probit``             Φ(η)                  φ(η)        no
``cloglog``            1 − exp(−exp(η))      …           no
``loglog``             exp(−exp(−η))         …           no
``sqrt``               η²                    2η          no
``inverse``            1/η                   −1/η²       yes
``inverse_squared``    η^(−1/2)              −η^(−3/2)/2 yes
=====================  ====================  ==========  ===========

Statsmodels link objects are mapped onto this table by
:func:`resolve_link`; a general ``Power`` link falls back to the
statsmodels object's own inverse and derivative.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import numpy as np
from scipy import special
from scipy import stats

from .exceptions import UnsupportedModelError


@dataclass(frozen=True)
class Link:
    """Inverse link and its derivative.

    Attributes:
        name: Table key (e.g. ``"log"``).
        inverse: Vectorised g⁻¹, maps η to μ.
        inverse_deriv: Vectorised dμ/dη.
        decreasing: ``True`` when g⁻¹ is monotonically decreasing.
    """

    name: str
    inverse: Callable[[np.ndarray], np.ndarray]
    inverse_deriv: Callable[[np.ndarray], np.ndarray]
    decreasing: bool = False

    def transform_bounds(
        self, lower: np.ndarray, upper: np.ndarray
    ) -> tuple[np.ndarray, np.ndarray]:
        """Map linear-predictor bounds to the response scale.

        Endpoints are swapped for decreasing links so the returned
        pair is ordered.
        """
        lo = np.asarray(self.inverse(lower))
        hi = np.asarray(self.inverse(upper))
        if self.decreasing:
            return hi, lo
        return lo, hi


# ------------------------------------------------------------------ #
# Built-in links
# ------------------------------------------------------------------ #


def _identity(eta: np.ndarray) -> np.ndarray:
    return np.asarray(eta, dtype=float)


def _ones(eta: np.ndarray) -> np.ndarray:
    return np.ones_like(np.asarray(eta, dtype=float))


def _cloglog_inverse(eta: np.ndarray) -> np.ndarray:
    return -np.expm1(-np.exp(eta))


def _cloglog_deriv(eta: np.ndarray) -> np.ndarray:
    return np.exp(eta - np.exp(eta))


def _loglog_inverse(eta: np.ndarray) -> np.ndarray:
    return np.exp(-np.exp(-eta))


def _loglog_deriv(eta: np.ndarray) -> np.ndarray:
    return np.exp(-eta - np.exp(-eta))


def _logit_deriv(eta: np.ndarray) -> np.ndarray:
    mu = special.expit(eta)
    return mu * (1.0 - mu)


def _inverse(eta: np.ndarray) -> np.ndarray:
    return 1.0 / np.asarray(eta, dtype=float)


def _inverse_deriv(eta: np.ndarray) -> np.ndarray:
    return -1.0 / np.asarray(eta, dtype=float) ** 2


def _inverse_squared(eta: np.ndarray) -> np.ndarray:
    return 1.0 / np.sqrt(eta)


def _inverse_squared_deriv(eta: np.ndarray) -> np.ndarray:
    return -0.5 * np.asarray(eta, dtype=float) ** -1.5


_LINKS: dict[str, Link] = {
    "identity": Link("identity", _identity, _ones),
    "log": Link("log", np.exp, np.exp),
    "logit": Link("logit", special.expit, _logit_deriv),
    "probit": Link("probit", special.ndtr, stats.norm.pdf),
    "cloglog": Link("cloglog", _cloglog_inverse, _cloglog_deriv),
    "loglog": Link("loglog", _loglog_inverse, _loglog_deriv),
    "sqrt": Link("sqrt", np.square, lambda eta: 2.0 * np.asarray(eta, dtype=float)),
    "inverse": Link("inverse", _inverse, _inverse_deriv, decreasing=True),
    "inverse_squared": Link(
        "inverse_squared", _inverse_squared, _inverse_squared_deriv, decreasing=True
    ),
}
"""Registry mapping link names to :class:`Link` instances."""

# statsmodels link class name → table key.
_SM_LINK_NAMES: dict[str, str] = {
    "Identity": "identity",
    "identity": "identity",
    "Log": "log",
    "log": "log",
    "Logit": "logit",
    "logit": "logit",
    "Probit": "probit",
    "probit": "probit",
    "CLogLog": "cloglog",
    "cloglog": "cloglog",
    "LogLog": "loglog",
    "loglog": "loglog",
    "Sqrt": "sqrt",
    "InversePower": "inverse",
    "inverse_power": "inverse",
    "InverseSquared": "inverse_squared",
    "inverse_squared": "inverse_squared",
}

# Power links whose exponent coincides with a table entry.
_POWER_ALIASES: dict[float, str] = {
    1.0: "identity",
    -1.0: "inverse",
    -2.0: "inverse_squared",
    0.5: "sqrt",
}


def resolve_link(link: str | Link | Any) -> Link:
    """Resolve a link name, :class:`Link`, or statsmodels link object.

    Args:
        link: A table key (``"log"``), a ``Link`` instance (returned
            as-is), or a ``statsmodels.genmod.families.links.Link``
            instance.

    Returns:
        The matching ``Link``.

    Raises:
        UnsupportedModelError: If the link is not recognised.
    """
    if isinstance(link, Link):
        return link
    if isinstance(link, str):
        key = _SM_LINK_NAMES.get(link, link)
        if key in _LINKS:
            return _LINKS[key]
        msg = f"Unknown link '{link}'. Choose from: {sorted(_LINKS)}"
        raise UnsupportedModelError(msg)

    cls_name = type(link).__name__
    if cls_name in _SM_LINK_NAMES:
        return _LINKS[_SM_LINK_NAMES[cls_name]]

    power = getattr(link, "power", None)
    if cls_name == "Power" and power is not None:
        power = float(power)
        if power in _POWER_ALIASES:
            return _LINKS[_POWER_ALIASES[power]]
        if power == 0.0:
            return _LINKS["log"]
        return Link(
            name=f"power({power:g})",
            inverse=link.inverse,
            inverse_deriv=link.inverse_deriv,
            decreasing=power < 0,
        )

    msg = f"Link '{cls_name}' is not supported."
    raise UnsupportedModelError(msg)


def available_links() -> list[str]:
    """Return the sorted names of the built-in links."""
    return sorted(_LINKS)
