# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Utility functions for the AblationStan package.

This module provides various utility functions that support the core
functionality of AblationStan, including:

    - Lazy importing of the heavier, CmdStan-backed modules
    - Construction of seeded random number generators
    - Argument validation helpers shared by the configuration and the stages

Users will not typically need to interact with this module directly--it is designed
to be used internally by AblationStan.
"""

from __future__ import annotations

import importlib.util
import sys

from typing import Sequence

import numpy as np

from ablationstan import custom_types
from ablationstan.exceptions import InvalidArgument


def lazy_import(name: str):
    """Import a module only when it is first needed.

    This function implements lazy module importing to improve package import
    performance by deferring module loading until actual use.

    :param name: The fully qualified module name to import
    :type name: str

    :returns: The imported module
    :rtype: module

    :raises ImportError: If the specified module cannot be found

    .. note::
        If the module is already imported, returns the cached version
        from sys.modules for efficiency.
    """
    # Check if the module is already imported
    if name in sys.modules:
        return sys.modules[name]

    # If not, import it lazily (modified from here:
    # https://docs.python.org/3/library/importlib.html#implementing-lazy-imports)
    spec = importlib.util.find_spec(name)
    if spec is None:
        raise ImportError(f"Module '{name}' not found.")

    # Create the module with a lazy loader
    spec.loader = importlib.util.LazyLoader(spec.loader)
    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    spec.loader.exec_module(module)
    return module


def get_rng(
    seed: custom_types.SeedType | np.random.Generator = None,
) -> np.random.Generator:
    """Get a random number generator for sampling operations.

    :param seed: Seed for reproducible generation, or an existing generator, which
        is returned unchanged. Defaults to None (system entropy).
    :type seed: Union[custom_types.SeedType, np.random.Generator]

    :returns: NumPy random number generator
    :rtype: np.random.Generator
    """
    if isinstance(seed, np.random.Generator):
        return seed
    return np.random.default_rng(seed)


def check_count(
    value: custom_types.Integer, name: str, allow_zero: bool = False
) -> None:
    """Check that a count is an integer above zero (or at least zero).

    :param value: The count to check
    :type value: custom_types.Integer
    :param name: Name of the argument, used in the error message
    :type name: str
    :param allow_zero: Whether zero is a valid count. Defaults to False.
    :type allow_zero: bool

    :raises InvalidArgument: If the count is out of range
    """
    if isinstance(value, (bool, np.bool_)):
        raise InvalidArgument(f"`{name}` must be an integer, got a boolean.")
    if allow_zero and value < 0:
        raise InvalidArgument(f"`{name}` must be non-negative, got {value}.")
    if not allow_zero and value <= 0:
        raise InvalidArgument(f"`{name}` must be a positive integer, got {value}.")


def check_quantiles(
    quantiles: Sequence[custom_types.Float],
) -> tuple[float, float]:
    """Validate a (lower, upper) pair of quantiles.

    :param quantiles: Lower and upper quantile, each strictly between 0 and 1
    :type quantiles: Sequence[custom_types.Float]

    :returns: The validated quantiles as plain floats
    :rtype: tuple[float, float]

    :raises InvalidArgument: If there are not exactly two quantiles, if they are not
        between 0 and 1, or if they are not in increasing order

    Example:
        >>> check_quantiles((0.025, 0.975))
        (0.025, 0.975)
    """
    if len(quantiles) != 2:
        raise InvalidArgument(
            f"Exactly two quantiles (lower, upper) are required, got {len(quantiles)}."
        )
    lower, upper = (float(q) for q in quantiles)

    # Check that the quantiles are between 0 and 1
    if not all(0 < q < 1 for q in (lower, upper)):
        raise InvalidArgument(
            f"Quantiles must be between 0 and 1, got ({lower}, {upper})."
        )
    if lower >= upper:
        raise InvalidArgument(
            f"The lower quantile must be below the upper quantile, got ({lower}, {upper})."
        )

    return lower, upper
