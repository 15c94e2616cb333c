# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Custom type definitions for AblationStan.

This module provides type aliases used throughout the AblationStan package for
type checking and documentation purposes. Scalar aliases accept both Python and
NumPy scalars, since values pulled out of arrays are NumPy scalars.
"""

from typing import Union

import numpy as np
import numpy.typing as npt

# Scalar types
Integer = Union[int, np.integer]
"""Type alias for integer values.

Accepts both Python's built-in int and NumPy integer types.

:type: Union[int, np.integer]
"""

Float = Union[float, np.floating]
"""Type alias for floating-point values.

Accepts both Python's built-in float and NumPy floating-point types.

:type: Union[float, np.floating]
"""

# Array types
FloatArray = npt.NDArray[np.floating]
"""Type alias for arrays of floating-point values.

:type: npt.NDArray[np.floating]
"""

# Seeds
SeedType = Union[int, np.integer, None]
"""Type alias for random seeds. ``None`` means "seed from system entropy".

:type: Union[int, np.integer, None]
"""
