"""Read-only view over an externally fitted model.

Every interval engine in the package consumes a :class:`FittedModel`:
a frozen snapshot of the quantities a fitted GLM or mixed model
exposes.

* β̂ — coefficient estimates (``coef``), in design-column order.
* Σ̂ — their covariance matrix (``cov``).
* ν — residual degrees of freedom (``df_resid``).
* the response family and link (table entries from
  :mod:`.families` and :mod:`.links`).
* φ̂ — dispersion on the variance scale (``dispersion``); 1 for
  Poisson and binomial, σ̂² for gaussian fits.
* θ̂ — negative-binomial size, when applicable.
* the random-effect structure of a mixed model (:class:`RandomEffects`).

:func:`as_fitted_model` builds the snapshot from statsmodels results:

=====================================  ==================================
statsmodels results                    family / notes
=====================================  ==================================
``GLM``                                family and link from
                                       ``model.family``; an estimated
                                       scale on Poisson/binomial marks a
                                       quasi fit
``OLS`` / ``WLS``                      gaussian, identity link
``NegativeBinomial`` (discrete, NB2)   negative binomial, θ̂ = 1/α̂
``MixedLM``                            gaussian LMM, one grouping factor,
                                       random intercept and slopes
``BinomialBayesMixedGLM`` /            GLMM with a single random
``PoissonBayesMixedGLM``               intercept
=====================================  ==================================

Encoding target rows
~~~~~~~~~~~~~~~~~~~~
The design matrix for the target rows has to reproduce the original
fit's columns exactly, including dummy columns for factor levels the
target rows do not contain.  :func:`encode_rows` tries, in order:

1. the fit's patsy ``DesignInfo``, which remembers every factor level
   seen during fitting;
2. joint encoding — stack a reference frame (by default the training
   data) on top of the target rows, encode them together, and keep
   only the target rows;
3. plain column lookup by design-column name, for array-based fits.

A factor level the model never saw raises :class:`EncodingError`.

Rank deficiency
~~~~~~~~~~~~~~~
Coefficients reported as NaN (columns dropped as collinear by the
fitting library) are excluded: ``retained`` masks them out of X, β̂
and Σ̂ alike.
"""

from __future__ import annotations

import logging
import re
import warnings
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Any

import numpy as np
import pandas as pd
import patsy
from patsy import PatsyError
from statsmodels.tools.sm_exceptions import (
    ConvergenceWarning as SmConvergenceWarning,
)
from statsmodels.tools.sm_exceptions import (
    HessianInversionWarning,
    PerfectSeparationWarning,
)
from typing_extensions import Self

from .exceptions import EncodingError, UnsupportedModelError, UsageError
from .families import ResponseFamily, family_from_statsmodels, resolve_family
from .links import Link, resolve_link

logger = logging.getLogger(__name__)

_CONSTANT_NAMES = frozenset({"const", "Intercept", "intercept", "(Intercept)"})

# Trailing "[level]" / "[T.level]" of a patsy dummy-column name.
_LEVEL_PATTERN = re.compile(r"\[(?:T\.)?(.+)\]$")


# ------------------------------------------------------------------ #
# Random effects
# ------------------------------------------------------------------ #


@dataclass(frozen=True, eq=False)
class RandomEffects:
    """Random-effect structure of a mixed model (one grouping factor).

    Attributes:
        group_col: Name of the grouping column in target tables.
        levels: Group levels, in the row order of *blups*.
        blups: Predicted random effects, shape ``(G, d)``.  Column 0
            is the random intercept, columns ``1..d-1`` the slopes.
        cov: Fitted variance-component covariance, shape ``(d, d)``.
        slope_cols: Target-table columns carrying the random slopes.
        blup_cov: Conditional covariance of each group's random
            effects, shape ``(G, d, d)``, if the fit provides it.
    """

    group_col: str
    levels: tuple[Any, ...]
    blups: np.ndarray
    cov: np.ndarray
    slope_cols: tuple[str, ...] = ()
    blup_cov: np.ndarray | None = None

    def __post_init__(self) -> None:
        blups = np.atleast_2d(np.asarray(self.blups, dtype=float))
        if blups.shape[0] != len(self.levels) and blups.shape[1] == len(self.levels):
            blups = blups.T
        cov = np.atleast_2d(np.asarray(self.cov, dtype=float))
        d = self.dim
        if blups.shape != (len(self.levels), d):
            msg = (
                f"blups must have shape ({len(self.levels)}, {d}), "
                f"got {blups.shape}."
            )
            raise ValueError(msg)
        if cov.shape != (d, d):
            msg = f"cov must have shape ({d}, {d}), got {cov.shape}."
            raise ValueError(msg)
        object.__setattr__(self, "blups", blups)
        object.__setattr__(self, "cov", cov)
        object.__setattr__(self, "levels", tuple(self.levels))
        object.__setattr__(self, "slope_cols", tuple(self.slope_cols))
        if self.blup_cov is not None:
            blup_cov = np.asarray(self.blup_cov, dtype=float).reshape(-1, d, d)
            object.__setattr__(self, "blup_cov", blup_cov)

    @property
    def dim(self) -> int:
        """Random effects per group (intercept + slopes)."""
        return 1 + len(self.slope_cols)

    def design(self, tb: pd.DataFrame) -> np.ndarray:
        """Random-effect design rows ``[1, slope_1, …]``, shape ``(N, d)``."""
        cols = [np.ones(len(tb))]
        for name in self.slope_cols:
            if name not in tb.columns:
                msg = f"Random-slope column '{name}' is missing from the target rows."
                raise EncodingError(msg)
            cols.append(pd.to_numeric(tb[name]).to_numpy(dtype=float))
        return np.column_stack(cols)

    def group_index(self, tb: pd.DataFrame, *, strict: bool = True) -> np.ndarray:
        """Map each target row to its group's position in *levels*.

        Rows whose level has no estimated random effect get ``-1``,
        or raise when *strict* is set.  Without *strict* the grouping
        column may be absent; every row is then treated as a new group.

        Raises:
            EncodingError: If *strict* and the grouping column is missing
                or a level is unseen.
        """
        if self.group_col not in tb.columns:
            if not strict:
                return np.full(len(tb), -1)
            msg = f"Grouping column '{self.group_col}' is missing from the target rows."
            raise EncodingError(msg)
        values = tb[self.group_col]
        idx = pd.Index(self.levels).get_indexer(values)
        if np.any(idx < 0):
            # Levels recovered from column names are strings.
            str_idx = pd.Index([str(lv) for lv in self.levels]).get_indexer(
                values.astype(str)
            )
            idx = np.where(idx < 0, str_idx, idx)
        if strict and np.any(idx < 0):
            unseen = sorted({str(v) for v in values[idx < 0]})
            msg = (
                f"Group level(s) {unseen} of '{self.group_col}' have no "
                "estimated random effect. Set include_random=False to "
                "predict for new groups."
            )
            raise EncodingError(msg)
        return np.asarray(idx)

    def offset(self, Z: np.ndarray, group_index: np.ndarray) -> np.ndarray:
        """Per-row contribution ``zᵗb̂_g``; zero for unseen groups."""
        b = np.where(group_index[:, None] >= 0, self.blups[group_index], 0.0)
        return np.einsum("ij,ij->i", Z, b)

    def conditional_variance(self, Z: np.ndarray, group_index: np.ndarray) -> np.ndarray:
        """``zᵗ Var(b̂_g) z`` per row; the marginal ``zᵗ Σ_b z`` for unseen groups."""
        marginal = np.einsum("ij,jk,ik->i", Z, self.cov, Z)
        if self.blup_cov is None:
            return marginal
        cond = np.einsum("ij,ijk,ik->i", Z, self.blup_cov[group_index], Z)
        return np.where(group_index >= 0, cond, marginal)


# ------------------------------------------------------------------ #
# FittedModel
# ------------------------------------------------------------------ #


@dataclass(frozen=True, eq=False)
class FittedModel:
    """Frozen snapshot of a fitted GLM or mixed model.

    Construct directly to describe a model fitted by any library, or
    use :func:`as_fitted_model` for statsmodels results.

    Attributes:
        coef: Coefficient vector β̂, shape ``(p,)``.  NaN entries mark
            columns dropped for rank deficiency.
        cov: Covariance of β̂, shape ``(p, p)`` or restricted to the
            retained columns.
        family: Response family (name or table entry).
        link: Link (name, table entry or statsmodels link object).
        df_resid: Residual degrees of freedom ν.
        dispersion: Dispersion φ̂ on the variance scale.
        theta: Negative-binomial size θ̂.
        exog_names: Design-column names, in ``coef`` order.
        design_info: patsy ``DesignInfo`` of the fixed-effect design.
        formula: Model formula (``"y ~ x + f"`` or right-hand side only).
        data: Training frame, used for joint encoding and refits.
        random_effects: Random-effect structure of a mixed model.
        converged: Whether the fitting library reported convergence.
        n_obs: Number of observations used in the fit.
        refit: ``frame -> FittedModel`` callable refitting the same
            formula and family on new data.
        source: The wrapped results object, if any.
    """

    coef: np.ndarray
    cov: np.ndarray
    family: ResponseFamily
    link: Link
    df_resid: float = np.inf
    dispersion: float = 1.0
    theta: float | None = None
    exog_names: tuple[str, ...] = ()
    design_info: Any = None
    formula: str | None = None
    data: pd.DataFrame | None = None
    random_effects: RandomEffects | None = None
    converged: bool = True
    n_obs: int | None = None
    refit: Callable[[pd.DataFrame], FittedModel] | None = field(
        default=None, repr=False
    )
    source: Any = field(default=None, repr=False)

    def __post_init__(self) -> None:
        coef = np.ravel(np.asarray(self.coef, dtype=float))
        cov = np.atleast_2d(np.asarray(self.cov, dtype=float))
        n_keep = int(np.isfinite(coef).sum())
        if cov.shape not in ((coef.size, coef.size), (n_keep, n_keep)):
            msg = (
                f"cov must have shape ({coef.size}, {coef.size}) or "
                f"({n_keep}, {n_keep}), got {cov.shape}."
            )
            raise ValueError(msg)
        if self.exog_names and len(self.exog_names) != coef.size:
            msg = (
                f"exog_names has {len(self.exog_names)} entries for "
                f"{coef.size} coefficients."
            )
            raise ValueError(msg)
        if not self.dispersion > 0:
            msg = f"dispersion must be positive, got {self.dispersion}."
            raise ValueError(msg)
        object.__setattr__(self, "coef", coef)
        object.__setattr__(self, "cov", cov)
        object.__setattr__(self, "family", resolve_family(self.family))
        object.__setattr__(self, "link", resolve_link(self.link))
        object.__setattr__(self, "exog_names", tuple(self.exog_names))
        object.__setattr__(self, "df_resid", float(self.df_resid))
        object.__setattr__(self, "dispersion", float(self.dispersion))

    # ---- Retained (non-aliased) parameters -------------------------

    @property
    def retained(self) -> np.ndarray:
        """Boolean mask of coefficients kept by the fit."""
        return np.isfinite(self.coef)

    @property
    def coef_retained(self) -> np.ndarray:
        return self.coef[self.retained]

    @property
    def cov_retained(self) -> np.ndarray:
        keep = self.retained
        if self.cov.shape[0] == keep.sum():
            return self.cov
        return self.cov[np.ix_(keep, keep)]

    @property
    def is_mixed(self) -> bool:
        return self.random_effects is not None

    # ---- Predictions -----------------------------------------------

    def linear_predictor(self, X: np.ndarray) -> np.ndarray:
        """η̂ = Xβ̂ for a design already restricted to retained columns."""
        return np.asarray(X @ self.coef_retained)

    def linear_se(self, X: np.ndarray) -> np.ndarray:
        """Standard error of η̂ per row: √diag(X Σ̂ Xᵗ)."""
        var = np.einsum("ij,jk,ik->i", X, self.cov_retained, X)
        return np.sqrt(np.clip(var, 0.0, None))

    def predict(
        self,
        X: np.ndarray,
        *,
        scale: str = "response",
        Z: np.ndarray | None = None,
        group_index: np.ndarray | None = None,
    ) -> np.ndarray:
        """Direct point prediction at the target rows.

        Args:
            X: Encoded target rows (retained columns).
            scale: ``"response"`` for g⁻¹(η̂), ``"link"`` for η̂.
            Z: Random-effect design rows; when given together with
                *group_index*, the prediction is conditional on each
                row's estimated group effect.
            group_index: Per-row group positions (``-1`` for unseen).
        """
        eta = self.linear_predictor(X)
        if Z is not None and group_index is not None and self.random_effects is not None:
            eta = eta + self.random_effects.offset(Z, group_index)
        if scale == "link":
            return eta
        if scale == "response":
            return np.asarray(self.link.inverse(eta), dtype=float)
        msg = f"scale must be 'response' or 'link', got {scale!r}."
        raise ValueError(msg)

    def with_random_effects(self, random_effects: RandomEffects) -> Self:
        """Return a copy carrying *random_effects*."""
        return replace(self, random_effects=random_effects)


# ------------------------------------------------------------------ #
# Target-row encoding
# ------------------------------------------------------------------ #


def _rhs(formula: str) -> str:
    """Right-hand side of a formula (the whole string if one-sided)."""
    return formula.split("~", 1)[1] if "~" in formula else formula


def _encode_with_design_info(design_info: Any, tb: pd.DataFrame) -> pd.DataFrame:
    try:
        (dm,) = patsy.build_design_matrices(
            [design_info], tb, NA_action="raise", return_type="dataframe"
        )
    except PatsyError as exc:
        msg = f"Target rows cannot be encoded against the fitted design: {exc}"
        raise EncodingError(msg) from exc
    return dm


def _encode_jointly(
    formula: str,
    tb: pd.DataFrame,
    reference: pd.DataFrame | None,
    exog_names: tuple[str, ...],
) -> pd.DataFrame:
    """Encode *tb* stacked under *reference* and keep the target rows.

    Stacking guarantees that factor levels present in the reference
    frame but absent from the target rows still produce their dummy
    columns.
    """
    base = reference if reference is not None else tb.iloc[:0]
    frame = pd.concat([base, tb], ignore_index=True, sort=False)
    try:
        dm = patsy.dmatrix(_rhs(formula), frame, NA_action="raise", return_type="dataframe")
    except PatsyError as exc:
        msg = f"Target rows cannot be encoded with formula '{formula}': {exc}"
        raise EncodingError(msg) from exc
    dm = dm.iloc[len(base) :].reset_index(drop=True)
    if not exog_names:
        return dm

    extra = [c for c in dm.columns if c not in exog_names]
    unknown = [c for c in extra if np.any(dm[c].to_numpy() != 0)]
    if unknown:
        msg = (
            f"Target rows contain level(s) unknown to the fitted model: {unknown}. "
            "Supply a reference frame containing every level of the fit."
        )
        raise EncodingError(msg)
    missing = [c for c in exog_names if c not in dm.columns]
    if missing:
        msg = f"Encoded target rows lack design column(s) {missing}."
        raise EncodingError(msg)
    return dm[list(exog_names)]


def _encode_by_name(exog_names: tuple[str, ...], tb: pd.DataFrame) -> pd.DataFrame:
    cols: dict[str, np.ndarray] = {}
    for name in exog_names:
        if name in tb.columns:
            cols[name] = pd.to_numeric(tb[name]).to_numpy(dtype=float)
        elif name in _CONSTANT_NAMES:
            cols[name] = np.ones(len(tb))
        else:
            msg = f"Target rows lack the design column '{name}'."
            raise EncodingError(msg)
    return pd.DataFrame(cols)


def encode_rows(
    model: FittedModel,
    tb: pd.DataFrame,
    *,
    reference: pd.DataFrame | None = None,
) -> np.ndarray:
    """Build the fixed-effect design matrix for the target rows.

    Args:
        model: The fitted-model snapshot.
        tb: Target rows.
        reference: Frame containing every factor level of the original
            fit, used for joint encoding when the fit carries no patsy
            ``DesignInfo``.  Defaults to the training data.

    Returns:
        Design matrix of shape ``(N, p_retained)``, rows in *tb* order.

    Raises:
        EncodingError: If the rows cannot be encoded.
    """
    if model.design_info is not None and reference is None:
        dm = _encode_with_design_info(model.design_info, tb)
        path = "design_info"
    elif model.formula is not None:
        ref = reference if reference is not None else model.data
        dm = _encode_jointly(model.formula, tb, ref, model.exog_names)
        path = "joint"
    elif model.exog_names:
        dm = _encode_by_name(model.exog_names, tb)
        path = "by_name"
    else:
        msg = (
            "The fitted model carries no design information, formula or "
            "column names; target rows cannot be encoded."
        )
        raise EncodingError(msg)

    X = np.asarray(dm, dtype=float)
    if X.shape[1] != model.coef.size:
        msg = (
            f"Encoded target rows have {X.shape[1]} columns, the model has "
            f"{model.coef.size} coefficients."
        )
        raise EncodingError(msg)
    logger.debug("Encoded %d target rows via %s.", X.shape[0], path)
    return X[:, model.retained]


def random_effect_design(
    model: FittedModel,
    tb: pd.DataFrame,
    *,
    strict: bool = True,
) -> tuple[np.ndarray, np.ndarray]:
    """Random-effect design rows and group indices for the target rows.

    Returns:
        ``(Z, group_index)`` with shapes ``(N, d)`` and ``(N,)``.

    Raises:
        ValueError: If the model has no random effects.
        EncodingError: See :meth:`RandomEffects.group_index`.
    """
    re_ = model.random_effects
    if re_ is None:
        msg = "random_effect_design() requires a mixed model."
        raise ValueError(msg)
    return re_.design(tb), re_.group_index(tb, strict=strict)


# ------------------------------------------------------------------ #
# statsmodels adapters
# ------------------------------------------------------------------ #


def _design_info(sm_model: Any) -> Any:
    """patsy ``DesignInfo`` of a formula-built statsmodels model, if any."""
    info = getattr(getattr(sm_model, "data", None), "design_info", None)
    if isinstance(info, patsy.DesignInfo):
        return info
    return None


def _training_frame(sm_model: Any) -> pd.DataFrame | None:
    frame = getattr(getattr(sm_model, "data", None), "frame", None)
    return frame if isinstance(frame, pd.DataFrame) else None


def _reject_offsets(sm_model: Any) -> None:
    for attr in ("offset", "exposure"):
        values = getattr(sm_model, attr, None)
        if values is not None and np.any(np.asarray(values) != 0):
            msg = f"Models with an {attr} term are not supported."
            raise UnsupportedModelError(msg)


@contextmanager
def quiet_refits() -> Iterator[None]:
    """Silence statsmodels convergence chatter for a batch of refits.

    ``warnings.catch_warnings`` saves and restores the process-wide
    filter list, so enter this once in the calling thread around the
    whole batch, never inside a worker thread.  Refit convergence is
    read from the results instead.
    """
    with warnings.catch_warnings():
        warnings.filterwarnings("ignore", category=SmConvergenceWarning)
        warnings.filterwarnings("ignore", category=PerfectSeparationWarning)
        warnings.filterwarnings("ignore", category=HessianInversionWarning)
        warnings.filterwarnings("ignore", category=RuntimeWarning)
        yield


def _from_glm(result: Any) -> FittedModel:
    import statsmodels.formula.api as smf

    sm_model = result.model
    _reject_offsets(sm_model)
    scale = float(result.scale)
    family = family_from_statsmodels(sm_model.family, scale)
    theta = None
    if family.name == "negative_binomial":
        theta = 1.0 / float(sm_model.family.alpha)

    formula = getattr(sm_model, "formula", None)
    frame = _training_frame(sm_model)
    refit = None
    if formula is not None and frame is not None:
        fit_kwargs: dict[str, Any] = {}
        if family.name in ("quasipoisson", "quasibinomial"):
            fit_kwargs["scale"] = "X2"

        def refit(data: pd.DataFrame) -> FittedModel:
            new = smf.glm(formula, data=data, family=sm_model.family).fit(
                **fit_kwargs
            )
            return _from_glm(new)

    return FittedModel(
        coef=np.asarray(result.params, dtype=float),
        cov=np.asarray(result.cov_params(), dtype=float),
        family=family,
        link=resolve_link(sm_model.family.link),
        df_resid=float(result.df_resid),
        dispersion=scale,
        theta=theta,
        exog_names=tuple(sm_model.exog_names),
        design_info=_design_info(sm_model),
        formula=formula,
        data=frame,
        converged=bool(getattr(result, "converged", True)),
        n_obs=int(result.nobs),
        refit=refit,
        source=result,
    )


def _from_ols(result: Any) -> FittedModel:
    import statsmodels.formula.api as smf

    sm_model = result.model
    formula = getattr(sm_model, "formula", None)
    frame = _training_frame(sm_model)
    refit = None
    if formula is not None and frame is not None:

        def refit(data: pd.DataFrame) -> FittedModel:
            return _from_ols(smf.ols(formula, data=data).fit())

    return FittedModel(
        coef=np.asarray(result.params, dtype=float),
        cov=np.asarray(result.cov_params(), dtype=float),
        family="gaussian",
        link="identity",
        df_resid=float(result.df_resid),
        dispersion=float(result.scale),
        exog_names=tuple(sm_model.exog_names),
        design_info=_design_info(sm_model),
        formula=formula,
        data=frame,
        n_obs=int(result.nobs),
        refit=refit,
        source=result,
    )


def _from_discrete_nb(result: Any) -> FittedModel:
    import statsmodels.formula.api as smf

    sm_model = result.model
    _reject_offsets(sm_model)
    if getattr(sm_model, "loglike_method", "nb2") != "nb2":
        msg = (
            f"NegativeBinomial loglike_method '{sm_model.loglike_method}' is "
            "not supported; refit with loglike_method='nb2'."
        )
        raise UnsupportedModelError(msg)
    params = np.asarray(result.params, dtype=float)
    cov = np.asarray(result.cov_params(), dtype=float)
    alpha = float(params[-1])
    retvals = getattr(result, "mle_retvals", None) or {}

    formula = getattr(sm_model, "formula", None)
    frame = _training_frame(sm_model)
    refit = None
    if formula is not None and frame is not None:

        def refit(data: pd.DataFrame) -> FittedModel:
            new = smf.negativebinomial(formula, data=data).fit(disp=0, maxiter=200)
            return _from_discrete_nb(new)

    return FittedModel(
        coef=params[:-1],
        cov=cov[:-1, :-1],
        family="negative_binomial",
        link="log",
        df_resid=float(result.df_resid),
        theta=1.0 / alpha,
        exog_names=tuple(sm_model.exog_names)[: params.size - 1],
        design_info=_design_info(sm_model),
        formula=formula,
        data=frame,
        converged=bool(retvals.get("converged", True)),
        n_obs=int(result.nobs),
        refit=refit,
        source=result,
    )


def _from_mixedlm(result: Any, groups: str) -> FittedModel:
    sm_model = result.model
    if getattr(sm_model, "k_vc", 0):
        msg = "MixedLM fits with variance-component formulas are not supported."
        raise UnsupportedModelError(msg)
    k_fe = int(sm_model.k_fe)
    exog_re = np.asarray(sm_model.exog_re, dtype=float)
    re_names = list(
        getattr(sm_model, "exog_re_names", None)
        or result.random_effects[sm_model.group_labels[0]].index
    )
    constant = [j for j in range(exog_re.shape[1]) if np.allclose(exog_re[:, j], 1.0)]
    if constant != [0]:
        msg = (
            "MixedLM random-effect design must have a random intercept in "
            "its first column."
        )
        raise UnsupportedModelError(msg)

    levels = list(sm_model.group_labels)
    blups = np.vstack([np.asarray(result.random_effects[g], dtype=float) for g in levels])
    blup_cov = np.stack(
        [np.asarray(result.random_effects_cov[g], dtype=float) for g in levels]
    )
    random_effects = RandomEffects(
        group_col=groups,
        levels=tuple(levels),
        blups=blups,
        cov=np.asarray(result.cov_re, dtype=float),
        slope_cols=tuple(re_names[1:]),
        blup_cov=blup_cov,
    )
    n_obs = int(result.nobs)
    # One variance component for the grouping factor plus the residual.
    df_resid = n_obs - k_fe - 2

    return FittedModel(
        coef=np.asarray(result.fe_params, dtype=float),
        cov=np.asarray(result.cov_params(), dtype=float)[:k_fe, :k_fe],
        family="gaussian",
        link="identity",
        df_resid=float(df_resid),
        dispersion=float(result.scale),
        exog_names=tuple(sm_model.exog_names[:k_fe]),
        design_info=_design_info(sm_model),
        formula=getattr(sm_model, "formula", None),
        data=_training_frame(sm_model),
        random_effects=random_effects,
        converged=bool(getattr(result, "converged", True)),
        n_obs=n_obs,
        source=result,
    )


def _from_bayes_mixed_glm(result: Any, groups: str) -> FittedModel:
    sm_model = result.model
    if int(sm_model.k_vcp) != 1:
        msg = (
            "Bayesian mixed GLMs are supported with a single random-intercept "
            f"variance component, got {sm_model.k_vcp}."
        )
        raise UnsupportedModelError(msg)
    k_fep = int(sm_model.k_fep)
    cov_all = np.asarray(result.cov_params(), dtype=float)
    if cov_all.ndim == 1:
        cov_all = np.diag(cov_all)

    vc_names = getattr(sm_model, "vc_names", None)
    n_re = len(np.ravel(result.vc_mean))
    if vc_names:
        levels = []
        for name in vc_names:
            match = _LEVEL_PATTERN.search(str(name))
            levels.append(match.group(1) if match else str(name))
    else:
        levels = list(range(n_re))
    re_var = float(np.exp(2.0 * np.ravel(result.vcp_mean)[0]))
    random_effects = RandomEffects(
        group_col=groups,
        levels=tuple(levels),
        blups=np.ravel(result.vc_mean)[:, None],
        cov=np.array([[re_var]]),
        blup_cov=(np.ravel(result.vc_sd) ** 2).reshape(-1, 1, 1),
    )

    retvals = getattr(result, "optim_retvals", None)
    converged = bool(getattr(retvals, "success", True)) if retvals is not None else True
    n_obs = int(np.asarray(sm_model.endog).shape[0])
    exog_names = getattr(sm_model, "exog_names", None) or getattr(
        sm_model, "fep_names", ()
    )

    return FittedModel(
        coef=np.ravel(result.fe_mean),
        cov=cov_all[:k_fep, :k_fep],
        family=family_from_statsmodels(sm_model.family),
        link=resolve_link(sm_model.family.link),
        df_resid=float(n_obs - k_fep),
        exog_names=tuple(exog_names),
        design_info=_design_info(sm_model),
        formula=getattr(sm_model, "formula", None),
        data=_training_frame(sm_model),
        random_effects=random_effects,
        converged=converged,
        n_obs=n_obs,
        source=result,
    )


def as_fitted_model(fit: Any, *, groups: str | None = None) -> FittedModel:
    """Adapt *fit* to a :class:`FittedModel`.

    Args:
        fit: A ``FittedModel`` (returned as-is) or a statsmodels
            results object.
        groups: Name of the grouping column in target tables; required
            for mixed models.

    Returns:
        The fitted-model snapshot.

    Raises:
        UnsupportedModelError: If *fit* is not a supported results type.
        UsageError: If a mixed model is given without *groups*.
    """
    if isinstance(fit, FittedModel):
        return fit

    from statsmodels.discrete.discrete_model import NegativeBinomial
    from statsmodels.genmod.bayes_mixed_glm import (
        BinomialBayesMixedGLM,
        PoissonBayesMixedGLM,
    )
    from statsmodels.genmod.generalized_linear_model import GLM
    from statsmodels.regression.linear_model import RegressionModel
    from statsmodels.regression.mixed_linear_model import MixedLM

    sm_model = getattr(fit, "model", None)
    if isinstance(sm_model, GLM):
        return _from_glm(fit)
    if isinstance(sm_model, NegativeBinomial):
        return _from_discrete_nb(fit)
    if isinstance(sm_model, (MixedLM, BinomialBayesMixedGLM, PoissonBayesMixedGLM)):
        if groups is None:
            msg = (
                "Mixed models need groups= naming the grouping column of "
                "the target rows."
            )
            raise UsageError(msg)
        if isinstance(sm_model, MixedLM):
            return _from_mixedlm(fit, groups)
        return _from_bayes_mixed_glm(fit, groups)
    if isinstance(sm_model, RegressionModel):
        return _from_ols(fit)

    msg = f"Unsupported model type '{type(fit).__name__}'."
    raise UnsupportedModelError(msg)
