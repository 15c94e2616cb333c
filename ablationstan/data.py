# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Observed (predictor, outcome) pairs for the regression.

The :py:class:`Observations` class holds the paired predictor and outcome values
used to fit the model and validates them on construction: there must be at least
one observation, both arrays must have the same length, and no value may be
missing or infinite. Observations can be loaded from a delimited text file with
:py:func:`load_observations` or generated from a known linear-Gaussian truth with
:py:func:`simulate_observations`.

Example:
    >>> from ablationstan.data import load_observations
    >>> obs = load_observations("abl_data_2.csv", predictor="time", outcome="temp")
    >>> obs.centered_predictor.mean()  # ~0
"""

from __future__ import annotations

import os

from typing import Iterable

import numpy as np
import pandas as pd

from ablationstan import custom_types, utils
from ablationstan.config import PredictorEncoding
from ablationstan.defaults import DEFAULT_OUTCOME_COLUMN, DEFAULT_PREDICTOR_COLUMN
from ablationstan.exceptions import DataError, InvalidArgument


def _to_readonly_array(values: Iterable, name: str) -> custom_types.FloatArray:
    """Convert to a read-only 1D float64 array, rejecting missing values."""
    try:
        array = np.array(
            pd.to_numeric(pd.Series(list(values), dtype=object), errors="raise"),
            dtype=np.float64,
        )
    except (TypeError, ValueError) as err:
        raise DataError(f"The {name} values must all be numeric.") from err

    if not np.all(np.isfinite(array)):
        raise DataError(
            f"The {name} values contain {np.sum(~np.isfinite(array))} missing or "
            "non-finite entries."
        )

    array.flags.writeable = False
    return array


class Observations:
    """Paired predictor and outcome values.

    :param predictor: Predictor values (e.g., ablation time in seconds)
    :type predictor: Iterable[custom_types.Float]
    :param outcome: Outcome values (e.g., tissue temperature in deg C)
    :type outcome: Iterable[custom_types.Float]
    :param predictor_name: Name of the predictor. Defaults to "time".
    :type predictor_name: str
    :param outcome_name: Name of the outcome. Defaults to "temp".
    :type outcome_name: str

    :raises DataError: If there are no observations, the lengths differ, or any
        value is missing or non-finite

    Both arrays are read-only. The centered predictor is derived once from the
    sample mean of the predictor.
    """

    def __init__(
        self,
        predictor: Iterable[custom_types.Float],
        outcome: Iterable[custom_types.Float],
        predictor_name: str = DEFAULT_PREDICTOR_COLUMN,
        outcome_name: str = DEFAULT_OUTCOME_COLUMN,
    ):
        self._predictor = _to_readonly_array(predictor, "predictor")
        self._outcome = _to_readonly_array(outcome, "outcome")

        if len(self._predictor) != len(self._outcome):
            raise DataError(
                f"Predictor and outcome lengths differ: {len(self._predictor)} != "
                f"{len(self._outcome)}."
            )
        if len(self._predictor) == 0:
            raise DataError("At least one observation is required.")

        self.predictor_name = predictor_name
        self.outcome_name = outcome_name

        # Derived once
        self._predictor_mean = float(self._predictor.mean())
        self._centered_predictor = self._predictor - self._predictor_mean
        self._centered_predictor.flags.writeable = False

    def __len__(self) -> int:
        return len(self._predictor)

    def __repr__(self) -> str:
        return (
            f"Observations(n={len(self)}, predictor={self.predictor_name!r}, "
            f"outcome={self.outcome_name!r})"
        )

    @classmethod
    def from_dataframe(
        cls,
        df: pd.DataFrame,
        predictor: str = DEFAULT_PREDICTOR_COLUMN,
        outcome: str = DEFAULT_OUTCOME_COLUMN,
    ) -> "Observations":
        """Build observations from two columns of a data frame.

        :raises DataError: If either column is missing
        """
        if missing := [col for col in (predictor, outcome) if col not in df.columns]:
            raise DataError(
                f"Missing columns {missing}. Available columns: {list(df.columns)}."
            )
        return cls(
            df[predictor].tolist(),
            df[outcome].tolist(),
            predictor_name=predictor,
            outcome_name=outcome,
        )

    def to_dataframe(self) -> pd.DataFrame:
        """The observations with the raw and centered predictor and the outcome."""
        return pd.DataFrame(
            {
                self.predictor_name: self.predictor,
                f"{self.predictor_name}_c": self.centered_predictor,
                self.outcome_name: self.outcome,
            }
        )

    def encode_predictor(
        self, encoding: PredictorEncoding | str
    ) -> custom_types.FloatArray:
        """The predictor in the requested encoding."""
        encoding = PredictorEncoding.parse(encoding)
        if encoding is PredictorEncoding.CENTERED:
            return self.centered_predictor
        return self.predictor

    @property
    def predictor(self) -> custom_types.FloatArray:
        """Predictor values as observed."""
        return self._predictor

    @property
    def outcome(self) -> custom_types.FloatArray:
        """Outcome values."""
        return self._outcome

    @property
    def predictor_mean(self) -> float:
        """Sample mean of the predictor."""
        return self._predictor_mean

    @property
    def outcome_mean(self) -> float:
        """Sample mean of the outcome."""
        return float(self._outcome.mean())

    @property
    def centered_predictor(self) -> custom_types.FloatArray:
        """Predictor values minus their sample mean."""
        return self._centered_predictor


def load_observations(
    path: str | os.PathLike,
    predictor: str = DEFAULT_PREDICTOR_COLUMN,
    outcome: str = DEFAULT_OUTCOME_COLUMN,
    **read_csv_kwargs,
) -> Observations:
    """Load observations from a delimited text file.

    :param path: Path to the file
    :type path: Union[str, os.PathLike]
    :param predictor: Name of the predictor column. Defaults to "time".
    :type predictor: str
    :param outcome: Name of the outcome column. Defaults to "temp".
    :type outcome: str
    :param read_csv_kwargs: Passed through to ``pandas.read_csv``

    :returns: The observations. Columns other than the two requested are ignored.
    :rtype: Observations

    :raises FileNotFoundError: If the file does not exist
    :raises DataError: If a column is missing or holds missing/non-numeric values
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Data file {path} does not exist.")
    return Observations.from_dataframe(
        pd.read_csv(path, **read_csv_kwargs), predictor=predictor, outcome=outcome
    )


def simulate_observations(
    n: custom_types.Integer,
    intercept: custom_types.Float,
    slope: custom_types.Float,
    sigma: custom_types.Float,
    predictor_low: custom_types.Float = 15.0,
    predictor_high: custom_types.Float = 40.0,
    seed: custom_types.SeedType | np.random.Generator = None,
    predictor_name: str = DEFAULT_PREDICTOR_COLUMN,
    outcome_name: str = DEFAULT_OUTCOME_COLUMN,
) -> Observations:
    """Simulate observations from a known linear-Gaussian process.

    Predictor values are drawn uniformly on ``[predictor_low, predictor_high]``
    and outcomes from ``Normal(intercept + slope * predictor, sigma)``.

    :param n: Number of observations
    :type n: custom_types.Integer
    :param intercept: True intercept (outcome at predictor = 0)
    :type intercept: custom_types.Float
    :param slope: True slope
    :type slope: custom_types.Float
    :param sigma: True residual scale
    :type sigma: custom_types.Float
    :param predictor_low: Lower end of the predictor range. Defaults to 15.
    :type predictor_low: custom_types.Float
    :param predictor_high: Upper end of the predictor range. Defaults to 40.
    :type predictor_high: custom_types.Float
    :param seed: Seed or generator. Defaults to None.
    :type seed: Union[custom_types.SeedType, np.random.Generator]

    :returns: The simulated observations
    :rtype: Observations

    :raises InvalidArgument: If ``n`` is not positive, ``sigma`` is negative, or the
        predictor range is empty
    """
    utils.check_count(n, "n")
    if sigma < 0:
        raise InvalidArgument(f"`sigma` must be non-negative, got {sigma}.")
    if predictor_low >= predictor_high:
        raise InvalidArgument(
            f"`predictor_low` ({predictor_low}) must be below `predictor_high` "
            f"({predictor_high})."
        )

    rng = utils.get_rng(seed)
    predictor = rng.uniform(predictor_low, predictor_high, size=int(n))
    outcome = rng.normal(intercept + slope * predictor, sigma)
    return Observations(
        predictor, outcome, predictor_name=predictor_name, outcome_name=outcome_name
    )
