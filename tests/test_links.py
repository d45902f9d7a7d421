"""Tests for the link lookup table."""

import numpy as np
import pytest
import statsmodels.api as sm

from prediction_intervals.exceptions import UnsupportedModelError
from prediction_intervals.links import Link, available_links, resolve_link

ETA = np.array([0.2, 0.7, 1.5, 3.0])


class TestLinkTable:
    @pytest.mark.parametrize("name", available_links())
    def test_derivative_matches_finite_difference(self, name):
        link = resolve_link(name)
        h = 1e-6
        numeric = (link.inverse(ETA + h) - link.inverse(ETA - h)) / (2 * h)
        # cloglog saturates near 1 at large η, so compare absolutely there.
        np.testing.assert_allclose(
            link.inverse_deriv(ETA), numeric, rtol=1e-5, atol=1e-9
        )

    @pytest.mark.parametrize("name", available_links())
    def test_decreasing_flag_matches_derivative_sign(self, name):
        link = resolve_link(name)
        decreasing = bool(np.all(link.inverse_deriv(ETA) < 0))
        assert link.decreasing is decreasing

    def test_cloglog_derivative_in_saturated_tail(self):
        eta = np.array([3.0, 3.5])
        np.testing.assert_allclose(
            resolve_link("cloglog").inverse_deriv(eta), np.exp(eta - np.exp(eta))
        )

    def test_logit_inverse(self):
        np.testing.assert_allclose(resolve_link("logit").inverse(0.0), 0.5)


class TestTransformBounds:
    def test_increasing_keeps_order(self):
        lo, hi = resolve_link("log").transform_bounds(np.array([0.0]), np.array([1.0]))
        assert lo[0] < hi[0]

    def test_inverse_link_swaps(self):
        link = resolve_link("inverse")
        lo, hi = link.transform_bounds(np.array([0.5]), np.array([2.0]))
        np.testing.assert_allclose(lo, [0.5])
        np.testing.assert_allclose(hi, [2.0])
        assert np.all(lo <= hi)


class TestResolveLink:
    def test_passthrough(self):
        link = resolve_link("identity")
        assert resolve_link(link) is link

    @pytest.mark.parametrize(
        ("sm_link", "expected"),
        [
            (sm.families.links.Log(), "log"),
            (sm.families.links.Logit(), "logit"),
            (sm.families.links.Identity(), "identity"),
            (sm.families.links.InversePower(), "inverse"),
            (sm.families.links.InverseSquared(), "inverse_squared"),
            (sm.families.links.CLogLog(), "cloglog"),
        ],
    )
    def test_statsmodels_links(self, sm_link, expected):
        assert resolve_link(sm_link).name == expected

    def test_generic_power_link(self):
        link = resolve_link(sm.families.links.Power(power=-3.0))
        assert isinstance(link, Link)
        assert link.decreasing
        np.testing.assert_allclose(link.inverse(np.array([8.0])), [0.5])

    def test_unknown_name(self):
        with pytest.raises(UnsupportedModelError, match="Unknown link"):
            resolve_link("cauchit-ish")

    def test_unknown_object(self):
        with pytest.raises(UnsupportedModelError, match="not supported"):
            resolve_link(object())
