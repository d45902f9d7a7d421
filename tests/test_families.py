"""Tests for the response-family lookup table."""

import numpy as np
import pytest
import statsmodels.api as sm

from prediction_intervals.exceptions import UnsupportedModelError
from prediction_intervals.families import (
    ResponseFamily,
    available_families,
    family_from_statsmodels,
    register_family,
    resolve_family,
)

# ------------------------------------------------------------------ #
# Fixtures
# ------------------------------------------------------------------ #


@pytest.fixture()
def rng():
    return np.random.default_rng(42)


@pytest.fixture()
def mu():
    return np.tile(np.array([0.5, 2.0, 8.0]), (20000, 1))


# ------------------------------------------------------------------ #
# Registry
# ------------------------------------------------------------------ #


class TestRegistry:
    def test_builtins_present(self):
        for name in (
            "gaussian",
            "binomial",
            "poisson",
            "quasipoisson",
            "gamma",
            "negative_binomial",
            "inverse_gaussian",
            "quasi",
            "quasibinomial",
        ):
            assert name in available_families()

    def test_resolve_normalises_name(self):
        assert resolve_family("Negative-Binomial").name == "negative_binomial"

    def test_resolve_passthrough(self):
        fam = resolve_family("poisson")
        assert resolve_family(fam) is fam

    def test_unknown(self):
        with pytest.raises(UnsupportedModelError, match="Unknown family"):
            resolve_family("tweedie_compound")

    def test_register_rejects_non_family(self):
        with pytest.raises(TypeError):
            register_family("poisson")

    def test_register_custom(self):
        custom = ResponseFamily(
            name="test_constant",
            support="real",
            variance=lambda mu, theta=None: np.ones_like(mu),
        )
        register_family(custom)
        try:
            assert resolve_family("test_constant") is custom
        finally:
            from prediction_intervals import families

            families._FAMILIES.pop("test_constant")


# ------------------------------------------------------------------ #
# Capabilities
# ------------------------------------------------------------------ #


class TestCapabilities:
    @pytest.mark.parametrize(
        "name", ["binomial", "inverse_gaussian", "quasi", "quasibinomial"]
    )
    def test_prediction_unsupported(self, name):
        with pytest.raises(UnsupportedModelError, match=name):
            resolve_family(name).require_prediction_support("Prediction intervals")

    def test_bernoulli_message(self):
        with pytest.raises(UnsupportedModelError, match="Bernoulli"):
            resolve_family("binomial").require_prediction_support("Quantiles")

    def test_gaussian_closed_form_links(self):
        fam = resolve_family("gaussian")
        assert fam.has_closed_form("identity")
        assert fam.has_closed_form("inverse")
        assert not fam.has_closed_form("sqrt")

    def test_asymptotic_normal(self):
        assert resolve_family("poisson").asymptotic_normal
        assert resolve_family("binomial").asymptotic_normal
        assert not resolve_family("gamma").asymptotic_normal

    def test_in_support(self):
        counts = resolve_family("poisson")
        np.testing.assert_array_equal(
            counts.in_support(np.array([0.0, 2.0, 1.5, -1.0])),
            [True, True, False, False],
        )


# ------------------------------------------------------------------ #
# Samplers
# ------------------------------------------------------------------ #


class TestSamplers:
    def test_poisson_support_and_mean(self, mu, rng):
        fam = resolve_family("poisson")
        draws = fam.sample(mu, rng=rng)
        assert fam.in_support(draws).all()
        np.testing.assert_allclose(draws.mean(axis=0), mu[0], rtol=0.1)

    def test_quasipoisson_variance(self, mu, rng):
        fam = resolve_family("quasipoisson")
        draws = fam.sample(mu, dispersion=3.0, rng=rng)
        assert fam.in_support(draws).all()
        np.testing.assert_allclose(draws.mean(axis=0), mu[0], rtol=0.1)
        np.testing.assert_allclose(draws.var(axis=0), 3.0 * mu[0], rtol=0.2)

    def test_quasipoisson_underdispersed_falls_back(self, mu, rng):
        fam = resolve_family("quasipoisson")
        draws = fam.sample(mu, dispersion=0.8, rng=rng)
        assert fam.in_support(draws).all()
        np.testing.assert_allclose(draws.var(axis=0), mu[0], rtol=0.2)

    def test_gamma_mean_and_variance(self, mu, rng):
        fam = resolve_family("gamma")
        draws = fam.sample(mu, dispersion=0.25, rng=rng)
        assert (draws > 0).all()
        np.testing.assert_allclose(draws.mean(axis=0), mu[0], rtol=0.1)
        np.testing.assert_allclose(draws.var(axis=0), 0.25 * mu[0] ** 2, rtol=0.2)

    def test_negative_binomial_variance(self, mu, rng):
        fam = resolve_family("negative_binomial")
        draws = fam.sample(mu, theta=2.0, rng=rng)
        assert fam.in_support(draws).all()
        np.testing.assert_allclose(
            draws.var(axis=0), mu[0] + mu[0] ** 2 / 2.0, rtol=0.2
        )

    def test_negative_binomial_needs_theta(self, mu, rng):
        with pytest.raises(UnsupportedModelError, match="theta"):
            resolve_family("negative_binomial").sample(mu, rng=rng)

    def test_gaussian_sd(self, mu, rng):
        draws = resolve_family("gaussian").sample(mu, dispersion=4.0, rng=rng)
        np.testing.assert_allclose(draws.std(axis=0), 2.0, rtol=0.1)

    def test_family_without_sampler(self, mu, rng):
        with pytest.raises(UnsupportedModelError, match="no response simulator"):
            resolve_family("quasi").sample(mu, rng=rng)


# ------------------------------------------------------------------ #
# statsmodels mapping
# ------------------------------------------------------------------ #


class TestFamilyFromStatsmodels:
    @pytest.mark.parametrize(
        ("sm_family", "scale", "expected"),
        [
            (sm.families.Gaussian(), 2.5, "gaussian"),
            (sm.families.Poisson(), 1.0, "poisson"),
            (sm.families.Poisson(), 2.3, "quasipoisson"),
            (sm.families.Binomial(), 1.0, "binomial"),
            (sm.families.Binomial(), 1.7, "quasibinomial"),
            (sm.families.Gamma(), 0.3, "gamma"),
            (sm.families.NegativeBinomial(alpha=0.5), 1.0, "negative_binomial"),
            (sm.families.InverseGaussian(), 0.1, "inverse_gaussian"),
            (sm.families.Tweedie(var_power=1.5), 1.2, "quasi"),
        ],
    )
    def test_mapping(self, sm_family, scale, expected):
        assert family_from_statsmodels(sm_family, scale).name == expected

    def test_unknown_family(self):
        with pytest.raises(UnsupportedModelError):
            family_from_statsmodels(object())
