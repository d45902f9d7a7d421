"""Tests for the public request API (compute_* / add_*)."""

import warnings

import numpy as np
import pandas as pd
import pytest
import statsmodels.api as sm
import statsmodels.formula.api as smf

from prediction_intervals import (
    ConvergenceWarning,
    FittedModel,
    OverwriteWarning,
    UnsupportedModelError,
    UsageError,
    add_ci,
    add_pi,
    add_probs,
    add_quantile,
    compute_ci,
    compute_pi,
    compute_probs,
    compute_quantile,
)

# ------------------------------------------------------------------ #
# Fixtures
# ------------------------------------------------------------------ #


@pytest.fixture()
def gaussian_data():
    rng = np.random.default_rng(42)
    n = 80
    x = rng.uniform(0.0, 2.0, n)
    y = 1.0 + 2.0 * x + rng.standard_normal(n) * 0.5
    return pd.DataFrame({"x": x, "y": y})


@pytest.fixture()
def ols_fit(gaussian_data):
    return smf.ols("y ~ x", data=gaussian_data).fit()


@pytest.fixture()
def count_data():
    rng = np.random.default_rng(7)
    n = 100
    x = rng.uniform(0.0, 2.0, n)
    y = rng.poisson(np.exp(0.5 + 0.6 * x))
    return pd.DataFrame({"x": x, "y": y})


@pytest.fixture()
def poisson_fit(count_data):
    return smf.glm("y ~ x", data=count_data, family=sm.families.Poisson()).fit()


@pytest.fixture()
def tb():
    return pd.DataFrame({"x": [0.25, 1.0, 1.75]})


# ------------------------------------------------------------------ #
# Column naming
# ------------------------------------------------------------------ #


class TestColumnNames:
    def test_ci_defaults(self, tb, ols_fit):
        out = add_ci(tb, ols_fit)
        assert list(out.columns) == ["x", "pred", "LCB0.025", "UCB0.975"]
        np.testing.assert_allclose(out["pred"], ols_fit.predict(tb))

    def test_pi_defaults(self, tb, ols_fit):
        out = add_pi(tb, ols_fit, alpha=0.1)
        assert list(out.columns) == ["x", "pred", "LPB0.05", "UPB0.95"]

    @pytest.mark.parametrize(
        ("comparison", "expected"),
        [
            ("<", "prob_less_than3"),
            (">", "prob_greater_than3"),
            ("=<", "prob_less_than_or_equal_to3"),
            (">=", "prob_greater_than_or_equal_to3"),
            ("==", "prob_equal_to3"),
        ],
    )
    def test_probability_defaults(self, tb, ols_fit, comparison, expected):
        out = add_probs(tb, ols_fit, 3, comparison=comparison)
        assert list(out.columns) == ["x", "pred", expected]

    def test_quantile_default(self, tb, ols_fit):
        out = add_quantile(tb, ols_fit, 0.9)
        assert list(out.columns) == ["x", "pred", "quantile0.9"]

    def test_two_named_intervals(self, tb, ols_fit):
        with warnings.catch_warnings():
            warnings.simplefilter("error", OverwriteWarning)
            out = add_ci(tb, ols_fit, alpha=0.05, names=("lwr95", "upr95"))
            out = add_ci(out, ols_fit, alpha=0.2, names=("lwr80", "upr80"))
        assert list(out.columns) == ["x", "pred", "lwr95", "upr95", "lwr80", "upr80"]
        assert (out["lwr95"] < out["lwr80"]).all()
        assert (out["upr80"] < out["upr95"]).all()

    def test_repeated_default_names_warn(self, tb, ols_fit):
        out = add_ci(tb, ols_fit)
        with pytest.warns(OverwriteWarning, match="LCB0.025"):
            out = add_ci(out, ols_fit)
        assert list(out.columns) == ["x", "pred", "LCB0.025", "UCB0.975"]

    def test_custom_yhat_name(self, tb, ols_fit):
        out = add_ci(tb, ols_fit, yhat_name="fitted")
        assert "fitted" in out.columns
        assert "pred" not in out.columns


# ------------------------------------------------------------------ #
# Request validation
# ------------------------------------------------------------------ #


class TestValidation:
    @pytest.mark.parametrize("alpha", [0.0, 1.0, -0.1, 1.5, "a"])
    def test_alpha(self, tb, ols_fit, alpha):
        with pytest.raises(UsageError, match="alpha"):
            compute_ci(tb, ols_fit, alpha=alpha)

    @pytest.mark.parametrize("p", [0.0, 1.0])
    def test_quantile_level(self, tb, ols_fit, p):
        with pytest.raises(UsageError):
            compute_quantile(tb, ols_fit, p)

    def test_method(self, tb, ols_fit):
        with pytest.raises(UsageError, match="method"):
            compute_ci(tb, ols_fit, method="bayes")

    @pytest.mark.parametrize("names", [("a", "a"), ("pred", "b"), ("a",), "ab"])
    def test_names(self, tb, ols_fit, names):
        with pytest.raises(UsageError):
            compute_ci(tb, ols_fit, names=names)

    def test_value_name_clashes_with_prediction(self, tb, ols_fit):
        with pytest.raises(UsageError, match="yhat_name"):
            compute_quantile(tb, ols_fit, 0.5, name="pred")

    @pytest.mark.parametrize("n_sims", [0, -5, 2.5, True])
    def test_n_sims(self, tb, poisson_fit, n_sims):
        with pytest.raises(UsageError, match="n_sims"):
            compute_pi(tb, poisson_fit, n_sims=n_sims)

    def test_comparison(self, tb, ols_fit):
        with pytest.raises(UsageError, match="Malformed probability statement"):
            compute_probs(tb, ols_fit, 1.0, comparison="!=")

    def test_threshold(self, tb, ols_fit):
        with pytest.raises(UsageError, match="q must be"):
            compute_probs(tb, ols_fit, np.inf)

    def test_dispersion(self, tb, poisson_fit):
        with pytest.raises(UsageError, match="dispersion"):
            compute_pi(tb, poisson_fit, dispersion="random")

    def test_nonconverged_policy(self, tb, poisson_fit):
        with pytest.raises(UsageError, match="nonconverged"):
            compute_ci(tb, poisson_fit, method="boot", nonconverged="skip")

    def test_unsupported_object(self, tb):
        with pytest.raises(UnsupportedModelError, match="Unsupported model type"):
            compute_ci(tb, object())


# ------------------------------------------------------------------ #
# Gaussian closed forms
# ------------------------------------------------------------------ #


class TestLinearModel:
    def test_ci_matches_statsmodels(self, tb, ols_fit):
        result = compute_ci(tb, ols_fit, alpha=0.05)
        frame = ols_fit.get_prediction(tb).summary_frame(alpha=0.05)
        assert result.method == "parametric"
        np.testing.assert_allclose(result.lower, frame["mean_ci_lower"])
        np.testing.assert_allclose(result.upper, frame["mean_ci_upper"])

    def test_pi_matches_statsmodels(self, tb, ols_fit):
        result = compute_pi(tb, ols_fit, alpha=0.1)
        frame = ols_fit.get_prediction(tb).summary_frame(alpha=0.1)
        np.testing.assert_allclose(result.lower, frame["obs_ci_lower"])
        np.testing.assert_allclose(result.upper, frame["obs_ci_upper"])

    def test_width_monotone_in_level(self, tb, ols_fit):
        wide = compute_pi(tb, ols_fit, alpha=0.01)
        narrow = compute_pi(tb, ols_fit, alpha=0.2)
        assert ((wide.upper - wide.lower) > (narrow.upper - narrow.lower)).all()

    def test_probability_and_quantile_agree(self, tb, ols_fit):
        q = compute_quantile(tb, ols_fit, 0.8).value
        prob = compute_probs(tb.iloc[[1]], ols_fit, q[1]).value
        assert prob[0] == pytest.approx(0.8)

    def test_simulated_pi_close_to_closed_form(self, tb, ols_fit):
        closed = compute_pi(tb, ols_fit)
        simulated = compute_pi(tb, ols_fit, method="boot", n_sims=20000, random_state=3)
        assert simulated.method == "boot"
        np.testing.assert_allclose(simulated.lower, closed.lower, atol=0.1)
        np.testing.assert_allclose(simulated.upper, closed.upper, atol=0.1)

    def test_link_scale_ci(self, tb, poisson_fit):
        result = compute_ci(tb, poisson_fit, response=False)
        eta = np.log(poisson_fit.predict(tb))
        np.testing.assert_allclose(result.prediction, eta)
        assert (result.lower < eta).all()


class TestInverseLink:
    @pytest.fixture()
    def inverse_fit(self):
        rng = np.random.default_rng(11)
        n = 120
        x = rng.uniform(0.0, 2.0, n)
        y = 1.0 / (0.5 + 0.3 * x) + rng.standard_normal(n) * 0.05
        data = pd.DataFrame({"x": x, "y": y})
        family = sm.families.Gaussian(link=sm.families.links.InversePower())
        return smf.glm("y ~ x", data=data, family=family).fit()

    @pytest.mark.parametrize("alpha", [0.01, 0.05, 0.5])
    def test_bounds_ordered(self, tb, inverse_fit, alpha):
        for compute in (compute_ci, compute_pi):
            result = compute(tb, inverse_fit, alpha=alpha)
            assert (result.lower <= result.prediction).all()
            assert (result.prediction <= result.upper).all()

    def test_pi_default_is_parametric(self, tb, inverse_fit):
        assert compute_pi(tb, inverse_fit).method == "parametric"


# ------------------------------------------------------------------ #
# Simulated families
# ------------------------------------------------------------------ #


class TestCountFamilies:
    def test_poisson_pi_bounds_are_counts(self, tb, poisson_fit):
        result = compute_pi(tb, poisson_fit, n_sims=2000, random_state=1)
        assert result.method == "boot"
        assert result.n_sims == 2000
        np.testing.assert_array_equal(result.lower, np.round(result.lower))
        np.testing.assert_array_equal(result.upper, np.round(result.upper))
        assert (result.lower >= 0).all()
        assert (result.lower <= result.prediction).all()
        assert (result.prediction <= result.upper).all()

    def test_seeded_reproducible(self, tb, poisson_fit):
        a = compute_pi(tb, poisson_fit, n_sims=500, random_state=9)
        b = compute_pi(tb, poisson_fit, n_sims=500, random_state=9)
        np.testing.assert_array_equal(a.lower, b.lower)
        np.testing.assert_array_equal(a.upper, b.upper)

    def test_prediction_independent_of_seed(self, tb, poisson_fit):
        a = compute_pi(tb, poisson_fit, n_sims=200, random_state=1)
        b = compute_pi(tb, poisson_fit, n_sims=300, random_state=2)
        np.testing.assert_array_equal(a.prediction, b.prediction)
        np.testing.assert_allclose(a.prediction, poisson_fit.predict(tb))

    def test_probability_in_unit_interval(self, tb, poisson_fit):
        result = compute_probs(tb, poisson_fit, 3, comparison="<=", n_sims=1000, random_state=0)
        assert ((result.value >= 0) & (result.value <= 1)).all()
        # Larger means leave less mass at or below 3.
        assert result.value[0] > result.value[2]

    def test_quantile_is_count(self, tb, poisson_fit):
        result = compute_quantile(tb, poisson_fit, 0.5, n_sims=1000, random_state=0)
        np.testing.assert_array_equal(result.value, np.round(result.value))

    def test_parametric_pi_unavailable(self, tb, poisson_fit):
        with pytest.raises(UnsupportedModelError, match="method='boot'"):
            compute_pi(tb, poisson_fit, method="parametric")

    def test_negative_binomial(self, tb):
        rng = np.random.default_rng(5)
        n = 200
        x = rng.uniform(0.0, 2.0, n)
        mu = np.exp(0.5 + 0.5 * x)
        y = rng.negative_binomial(2.0, 2.0 / (2.0 + mu))
        data = pd.DataFrame({"x": x, "y": y})
        fit = smf.negativebinomial("y ~ x", data=data).fit(disp=0)
        result = compute_pi(tb, fit, n_sims=1000, random_state=0)
        assert result.family.name == "negative_binomial"
        assert (result.lower >= 0).all()
        np.testing.assert_array_equal(result.upper, np.round(result.upper))

    def test_quasipoisson(self, tb):
        rng = np.random.default_rng(6)
        n = 200
        x = rng.uniform(0.0, 2.0, n)
        mu = np.exp(0.5 + 0.5 * x)
        y = rng.negative_binomial(1.5, 1.5 / (1.5 + mu))
        data = pd.DataFrame({"x": x, "y": y})
        fit = smf.glm("y ~ x", data=data, family=sm.families.Poisson()).fit(scale="X2")
        result = compute_pi(tb, fit, n_sims=1000, random_state=0)
        assert result.family.name == "quasipoisson"
        assert (result.lower >= 0).all()

    def test_gamma(self, tb):
        rng = np.random.default_rng(8)
        n = 150
        x = rng.uniform(0.0, 2.0, n)
        mu = np.exp(0.2 + 0.4 * x)
        y = rng.gamma(4.0, mu / 4.0)
        data = pd.DataFrame({"x": x, "y": y})
        family = sm.families.Gamma(link=sm.families.links.Log())
        fit = smf.glm("y ~ x", data=data, family=family).fit()
        result = compute_pi(tb, fit, n_sims=2000, random_state=0, dispersion="sampled")
        assert result.method == "boot"
        assert (result.lower > 0).all()
        assert (result.lower < result.prediction).all()


class TestBernoulli:
    @pytest.fixture()
    def logit_fit(self):
        rng = np.random.default_rng(3)
        n = 150
        x = rng.standard_normal(n)
        y = rng.binomial(1, 1.0 / (1.0 + np.exp(-(0.3 + 1.2 * x))))
        data = pd.DataFrame({"x": x, "y": y})
        return smf.glm("y ~ x", data=data, family=sm.families.Binomial()).fit()

    def test_ci_in_unit_interval(self, tb, logit_fit):
        result = compute_ci(tb, logit_fit)
        assert (result.lower > 0).all()
        assert (result.upper < 1).all()

    @pytest.mark.parametrize(
        "request_",
        [
            lambda tb, fit: compute_pi(tb, fit),
            lambda tb, fit: compute_probs(tb, fit, 0.5),
            lambda tb, fit: compute_quantile(tb, fit, 0.5),
        ],
    )
    def test_predictive_requests_rejected(self, tb, logit_fit, request_):
        with pytest.raises(UnsupportedModelError, match="Bernoulli"):
            request_(tb, logit_fit)


# ------------------------------------------------------------------ #
# Case bootstrap and convergence
# ------------------------------------------------------------------ #


class TestBootstrapCI:
    def test_poisson_boot(self, tb, poisson_fit):
        result = compute_ci(tb, poisson_fit, method="boot", n_sims=150, random_state=4)
        assert result.method == "boot"
        assert result.n_sims == 150
        assert (result.lower < result.prediction).all()
        assert (result.prediction < result.upper).all()

    def test_boot_close_to_parametric(self, tb, poisson_fit):
        boot = compute_ci(tb, poisson_fit, method="boot", n_sims=400, random_state=4)
        wald = compute_ci(tb, poisson_fit)
        np.testing.assert_allclose(boot.lower, wald.lower, rtol=0.2)
        np.testing.assert_allclose(boot.upper, wald.upper, rtol=0.2)

    def test_categorical_predictor(self):
        rng = np.random.default_rng(12)
        n = 90
        data = pd.DataFrame(
            {"site": rng.choice(["a", "b", "c"], n), "x": rng.standard_normal(n)}
        )
        effect = data["site"].map({"a": 0.0, "b": 0.5, "c": 1.0})
        data["y"] = rng.poisson(np.exp(0.5 + effect + 0.3 * data["x"]))
        fit = smf.glm("y ~ site + x", data=data, family=sm.families.Poisson()).fit()
        target = pd.DataFrame({"site": ["c", "a"], "x": [0.0, 0.0]})
        result = compute_ci(target, fit, method="boot", n_sims=100, random_state=0)
        assert result.prediction[0] > result.prediction[1]


class TestConvergenceWarning:
    def test_unconverged_fit_warns(self, tb):
        model = FittedModel(
            coef=[1.0, 0.5],
            cov=np.eye(2) * 0.01,
            family="poisson",
            link="log",
            exog_names=("Intercept", "x"),
            converged=False,
        )
        with pytest.warns(ConvergenceWarning, match="did not converge"):
            out = add_ci(tb, model)
        assert list(out.columns) == ["x", "pred", "LCB0.025", "UCB0.975"]
