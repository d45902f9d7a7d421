"""Exceptions and warnings raised by prediction_intervals.

Errors double as ``ValueError`` / ``RuntimeError`` subclasses so that
callers who already catch the builtin types keep working.

=========================  ==========================================
Class                      Raised when
=========================  ==========================================
``UsageError``             malformed request: α outside (0, 1), bad
                           comparison operator, unknown method, …
``UnsupportedModelError``  family/link combination not covered for
                           the requested interval kind
``EncodingError``          target rows cannot be encoded against the
                           fitted model's design
``ConvergenceError``       a bootstrap refit failed to converge under
                           ``nonconverged="raise"``
``ConvergenceWarning``     the fitted model (or some bootstrap
                           replicates) did not converge
``OverwriteWarning``       an output column already exists and is
                           overwritten
=========================  ==========================================
"""

__all__ = [
    "PredictionIntervalsError",
    "UsageError",
    "UnsupportedModelError",
    "EncodingError",
    "ConvergenceError",
    "ConvergenceWarning",
    "OverwriteWarning",
]


class PredictionIntervalsError(Exception):
    """Base exception for all prediction_intervals errors."""


class UsageError(PredictionIntervalsError, ValueError):
    """The request itself is malformed.

    Common causes:
    - ``alpha`` or a quantile level outside (0, 1)
    - comparison operator other than ``<``, ``>``, ``<=``, ``>=``, ``=``
    - unknown ``method`` selector, or one the model class does not offer
    - non-positive simulation count
    """


class UnsupportedModelError(PredictionIntervalsError, ValueError):
    """The model's family/link combination is not supported for this request.

    Prediction intervals, probabilities and quantiles are not available
    for Bernoulli responses, and are not implemented for inverse
    Gaussian, quasi and quasibinomial fits.
    """


class EncodingError(PredictionIntervalsError, ValueError):
    """Target rows cannot be encoded against the fitted model.

    Common causes:
    - a factor level that the model never saw
    - a covariate or grouping column missing from the target table
    - a group level with no estimated random effect
    """


class ConvergenceError(PredictionIntervalsError, RuntimeError):
    """A bootstrap refit did not converge and the policy is ``"raise"``."""


class ConvergenceWarning(UserWarning):
    """Results may be inaccurate because a fit did not converge."""


class OverwriteWarning(UserWarning):
    """An output column collided with an existing column and was overwritten."""
