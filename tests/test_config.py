"""Tests for the random-number configuration system."""

import os

import numpy as np
import pytest

from prediction_intervals._config import (
    default_n_sims,
    get_rng,
    resolve_rng,
    set_seed,
)


def _reset():
    import prediction_intervals._config as _cfg

    _cfg._seed_override = None
    _cfg._shared_rng = None
    os.environ.pop("PREDICTION_INTERVALS_SEED", None)


class TestGetRng:
    """Tests for get_rng() seed resolution order."""

    def setup_method(self):
        _reset()

    def teardown_method(self):
        _reset()

    def test_returns_generator(self):
        assert isinstance(get_rng(), np.random.Generator)

    def test_same_generator_on_repeat_calls(self):
        assert get_rng() is get_rng()

    def test_env_var_seeds_stream(self):
        os.environ["PREDICTION_INTERVALS_SEED"] = "123"
        expected = np.random.default_rng(123).random(3)
        np.testing.assert_array_equal(get_rng().random(3), expected)

    def test_env_var_must_be_integer(self):
        os.environ["PREDICTION_INTERVALS_SEED"] = "abc"
        with pytest.raises(ValueError, match="must be an integer"):
            get_rng()

    def test_programmatic_override_wins_over_env(self):
        os.environ["PREDICTION_INTERVALS_SEED"] = "1"
        set_seed(2)
        expected = np.random.default_rng(2).random(3)
        np.testing.assert_array_equal(get_rng().random(3), expected)


class TestSetSeed:
    """Tests for set_seed() validation and stream restart."""

    def setup_method(self):
        _reset()

    def teardown_method(self):
        _reset()

    def test_restarts_stream(self):
        set_seed(7)
        first = get_rng().random(4)
        set_seed(7)
        np.testing.assert_array_equal(get_rng().random(4), first)

    def test_rejects_negative(self):
        with pytest.raises(ValueError, match="non-negative"):
            set_seed(-1)

    def test_none_clears_override(self):
        set_seed(5)
        set_seed(None)
        import prediction_intervals._config as _cfg

        assert _cfg._seed_override is None


class TestResolveRng:
    def setup_method(self):
        _reset()

    def teardown_method(self):
        _reset()

    def test_none_is_shared(self):
        assert resolve_rng(None) is get_rng()

    def test_generator_passthrough(self):
        rng = np.random.default_rng(0)
        assert resolve_rng(rng) is rng

    def test_int_gives_fresh_generator(self):
        a = resolve_rng(11).random(2)
        b = resolve_rng(11).random(2)
        np.testing.assert_array_equal(a, b)


class TestDefaultNSims:
    @pytest.mark.parametrize(
        ("kind", "expected"),
        [("ci_boot", 2000), ("simulation", 10000), ("mixed_boot", 200)],
    )
    def test_defaults(self, kind, expected):
        assert default_n_sims(kind) == expected

    def test_unknown_kind(self):
        with pytest.raises(KeyError):
            default_n_sims("nope")
