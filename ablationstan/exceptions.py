"""Custom exception classes for the AblationStan package.

This module defines the exceptions used throughout the AblationStan package. All
custom exceptions inherit from the base AblationStanError class to allow for
unified exception handling when needed. The more specific exceptions also
inherit from the matching built-in exception so that callers who catch
``ValueError`` or ``RuntimeError`` keep working.
"""


class AblationStanError(Exception):
    """Base class for all exceptions in the AblationStan package.

    Example:
        >>> try:
        ...     # AblationStan operations
        ...     pass
        ... except AblationStanError as e:
        ...     print(f"AblationStan error occurred: {e}")
    """


class InvalidArgument(AblationStanError, ValueError):
    """Raised when a configuration value or function argument is malformed.

    Examples include negative draw counts, non-positive chain or iteration counts,
    an unknown predictor encoding, or prior bounds with ``lower >= upper``.
    """


class DataError(AblationStanError, ValueError):
    """Raised when the observations cannot be used for fitting.

    The observation collection is empty, contains missing values, has predictor
    and outcome arrays of different lengths, or lacks a required column.
    """


class SamplingFailure(AblationStanError, RuntimeError):
    """Raised when the MCMC stage does not produce a valid posterior sample set.

    The underlying error reported by the sampler (if any) is chained to this
    exception.
    """


class ConvergenceWarning(UserWarning):
    """Issued when MCMC diagnostics indicate that the chains may not have mixed."""
