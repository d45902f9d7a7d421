"""Tests for the simulation-matrix reducers."""

import numpy as np
import pytest

from prediction_intervals.exceptions import UsageError
from prediction_intervals.reduce import (
    exceedance_probability,
    normalize_comparison,
    percentile_bounds,
    prediction_bounds,
    response_quantile,
)


@pytest.fixture()
def counts():
    rng = np.random.default_rng(0)
    return rng.poisson([1.5, 4.0, 12.0], size=(5000, 3)).astype(float)


class TestTypeOneQuantiles:
    def test_bounds_are_observed_values(self, counts):
        lower, upper = prediction_bounds(counts, 0.1)
        for j in range(counts.shape[1]):
            assert lower[j] in counts[:, j]
            assert upper[j] in counts[:, j]
        np.testing.assert_array_equal(lower, np.round(lower))
        np.testing.assert_array_equal(upper, np.round(upper))

    def test_smallest_order_statistic_reaching_level(self):
        sims = np.array([[1.0], [2.0], [3.0], [4.0]])
        # Empirical CDF: 0.25, 0.5, 0.75, 1.0
        np.testing.assert_array_equal(response_quantile(sims, 0.5), [2.0])
        np.testing.assert_array_equal(response_quantile(sims, 0.51), [3.0])

    def test_columns_not_reordered(self, counts):
        q = response_quantile(counts, 0.5)
        assert q[0] < q[1] < q[2]

    def test_width_monotone_in_level(self, counts):
        lo90, hi90 = prediction_bounds(counts, 0.10)
        lo99, hi99 = prediction_bounds(counts, 0.01)
        assert ((hi99 - lo99) >= (hi90 - lo90)).all()


class TestExceedanceProbability:
    @pytest.fixture()
    def sims(self):
        return np.array([[0.0, 5.0], [1.0, 5.0], [2.0, 6.0], [3.0, 7.0]])

    @pytest.mark.parametrize(
        ("op", "expected"),
        [
            ("<", 0.5),
            (">", 0.25),
            ("<=", 0.75),
            ("=<", 0.75),
            (">=", 0.5),
            ("=>", 0.5),
            ("=", 0.25),
            ("==", 0.25),
        ],
    )
    def test_operators(self, sims, op, expected):
        # Each column has the same rank pattern around its threshold.
        result = exceedance_probability(sims, np.array([2.0, 6.0]), op)
        np.testing.assert_allclose(result, [expected, expected])

    def test_scalar_threshold(self, sims):
        np.testing.assert_allclose(exceedance_probability(sims, 5.0, ">"), [0.0, 0.5])

    @pytest.mark.parametrize("op", ["!=", "<>", "lt", ""])
    def test_malformed_operator(self, sims, op):
        with pytest.raises(UsageError, match="Malformed probability statement"):
            exceedance_probability(sims, 1.0, op)

    def test_normalize(self):
        assert normalize_comparison(" =< ") == "<="


class TestPercentileBounds:
    def test_interpolates(self):
        draws = np.linspace(0.0, 1.0, 101)[:, None]
        lower, upper = percentile_bounds(draws, 0.05)
        np.testing.assert_allclose(lower, [0.025])
        np.testing.assert_allclose(upper, [0.975])
