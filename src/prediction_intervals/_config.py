"""Random-number and simulation-count configuration.

Every simulation path in the package draws from a single
``numpy.random.Generator``.  Callers either pass ``random_state=`` per
call or rely on the process-wide generator held here.

Resolution order for the process-wide generator's seed (first match
wins):
    1. Programmatic override via :func:`set_seed`.
    2. The ``PREDICTION_INTERVALS_SEED`` environment variable.
    3. Fresh OS entropy (no fixed seed).

The generator is created lazily on the first :func:`get_rng` call and
then reused, so successive calls continue the same stream.  Calling
:func:`set_seed` discards the current generator and restarts the
stream from the new seed.

Examples:
    Make a whole session reproducible from the shell::

        export PREDICTION_INTERVALS_SEED=20240501

    Or programmatically::

        import prediction_intervals
        prediction_intervals.set_seed(20240501)

    Restore entropy seeding::

        prediction_intervals.set_seed(None)
"""

from __future__ import annotations

import os

import numpy as np

_SEED_ENV_VAR = "PREDICTION_INTERVALS_SEED"

# Default number of simulations per code path.
_DEFAULT_N_SIMS: dict[str, int] = {
    "ci_boot": 2_000,
    "simulation": 10_000,
    "mixed_boot": 200,
}

# Sentinel indicating "no programmatic override has been set".
_seed_override: int | None = None
_shared_rng: np.random.Generator | None = None


def _env_seed() -> int | None:
    """Return the seed from the environment, or ``None`` if unset."""
    raw = os.environ.get(_SEED_ENV_VAR, "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        msg = f"{_SEED_ENV_VAR} must be an integer, got {raw!r}."
        raise ValueError(msg) from None


def get_rng() -> np.random.Generator:
    """Return the process-wide generator, creating it on first use.

    Returns:
        The shared ``numpy.random.Generator``.
    """
    global _shared_rng
    if _shared_rng is None:
        seed = _seed_override if _seed_override is not None else _env_seed()
        _shared_rng = np.random.default_rng(seed)
    return _shared_rng


def set_seed(seed: int | None) -> None:
    """Reseed the process-wide generator.

    Args:
        seed: Non-negative integer seed, or ``None`` to fall back to the
            environment variable / OS entropy on the next draw.

    Raises:
        ValueError: If *seed* is negative.
    """
    global _seed_override, _shared_rng
    if seed is not None and seed < 0:
        msg = f"Seed must be non-negative, got {seed}."
        raise ValueError(msg)
    _seed_override = seed
    _shared_rng = None


def resolve_rng(
    random_state: int | np.random.Generator | None,
) -> np.random.Generator:
    """Map a per-call ``random_state`` to a generator.

    ``None`` selects the process-wide generator, an integer seeds a
    fresh generator for this call only, and a ``Generator`` is used
    as-is (its state advances).
    """
    if random_state is None:
        return get_rng()
    if isinstance(random_state, np.random.Generator):
        return random_state
    return np.random.default_rng(random_state)


def default_n_sims(kind: str) -> int:
    """Default simulation count for a code path.

    Args:
        kind: ``"ci_boot"`` (case-resampling CI for GLMs),
            ``"simulation"`` (simulated PIs, probabilities and
            quantiles) or ``"mixed_boot"`` (mixed-model CI bootstrap).

    Raises:
        KeyError: If *kind* is unknown.
    """
    return _DEFAULT_N_SIMS[kind]
