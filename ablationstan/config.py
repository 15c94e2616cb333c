# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Run configuration for the ablation regression analysis.

A single :py:class:`AnalysisConfig` instance is threaded through every stage of
the analysis (prior simulation, posterior sampling, posterior predictive
simulation). There is no global random state: every stage reads its seed from
the configuration it is handed.

The predictor encoding is a two-valued enumeration, :py:class:`PredictorEncoding`,
which selects between fitting on the as-observed predictor and on the predictor
after subtracting its sample mean.

Example:
    >>> from ablationstan.config import AnalysisConfig, PredictorEncoding
    >>> config = AnalysisConfig(warmup_iters=1000, total_iters=2000)
    >>> centered = config.replace(predictor_encoding=PredictorEncoding.CENTERED)
"""

from __future__ import annotations

import dataclasses
import enum

from typing import Any, Mapping

import numpy as np

from ablationstan import custom_types, utils
from ablationstan.defaults import (
    DEFAULT_CHAINS,
    DEFAULT_DRAW_COUNT,
    DEFAULT_INTERVAL_QUANTILES,
    DEFAULT_PRIOR_INTERCEPT,
    DEFAULT_PRIOR_SIGMA,
    DEFAULT_PRIOR_SLOPE,
    DEFAULT_QUERY_START,
    DEFAULT_QUERY_STEP,
    DEFAULT_QUERY_STOP,
    DEFAULT_SAMPLER_SEED,
    DEFAULT_SEED,
    DEFAULT_TOTAL_ITERS,
    DEFAULT_WARMUP_ITERS,
)
from ablationstan.exceptions import InvalidArgument
from ablationstan.model import priors as priors_module


class PredictorEncoding(str, enum.Enum):
    """How the predictor enters the linear mean.

    ``RAW`` uses the predictor as observed, so the intercept is the expected
    outcome at a predictor value of zero. ``CENTERED`` subtracts the sample mean
    of the predictor first, so the intercept is the expected outcome at the mean
    predictor value.
    """

    RAW = "raw"
    CENTERED = "centered"

    @classmethod
    def parse(cls, value: "PredictorEncoding | str") -> "PredictorEncoding":
        """Convert a string (case-insensitive) or an encoding to an encoding.

        :raises InvalidArgument: If the value names no known encoding
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError as err:
            raise InvalidArgument(
                f"Unknown predictor encoding '{value}'. Options are: "
                f"{', '.join(member.value for member in cls)}."
            ) from err


def _as_pair(value: Any, name: str) -> tuple[float, float]:
    """Coerce a two-element sequence of numbers to a tuple of floats."""
    try:
        first, second = value
        return float(first), float(second)
    except (TypeError, ValueError) as err:
        raise InvalidArgument(
            f"`{name}` must be a pair of numbers, got {value!r}."
        ) from err


def _as_count(value: Any, name: str) -> int:
    """Coerce a whole number to an int. Booleans and fractional values are rejected."""
    if isinstance(value, (bool, np.bool_)):
        raise InvalidArgument(f"`{name}` must be an integer, got a boolean.")
    if isinstance(value, (int, np.integer)):
        return int(value)
    if isinstance(value, (float, np.floating)) and float(value).is_integer():
        return int(value)
    raise InvalidArgument(f"`{name}` must be an integer, got {value!r}.")


@dataclasses.dataclass(frozen=True)
class AnalysisConfig:
    """Configuration of one run of the analysis.

    :param seed: Seed for prior simulation and posterior predictive simulation.
    :param draw_count: Number of prior simulation draws. Zero is allowed.
    :param chains: Number of MCMC chains.
    :param warmup_iters: Discarded warmup iterations per chain.
    :param total_iters: Total iterations per chain (warmup + retained).
    :param predictor_encoding: ``raw`` or ``centered``.
    :param prior_intercept: (location, scale) of the normal intercept prior.
    :param prior_slope: (location, scale) of the underlying normal of the log-normal
        slope prior.
    :param prior_sigma: (lower, upper) bounds of the uniform residual scale prior.
    :param sampler_seed: Seed handed to the MCMC sampler. Defaults to 4; ``None``
        reuses ``seed``.
    :param query_start: First predictor value of the predictive grid.
    :param query_stop: Last predictor value of the predictive grid (inclusive).
    :param query_step: Spacing of the predictive grid.
    :param interval_quantiles: Quantiles bounding the predictive interval.

    :raises InvalidArgument: On construction, if any field is malformed.
    """

    seed: int = DEFAULT_SEED
    draw_count: int = DEFAULT_DRAW_COUNT
    chains: int = DEFAULT_CHAINS
    warmup_iters: int = DEFAULT_WARMUP_ITERS
    total_iters: int = DEFAULT_TOTAL_ITERS
    predictor_encoding: PredictorEncoding = PredictorEncoding.RAW
    prior_intercept: tuple[float, float] = DEFAULT_PRIOR_INTERCEPT
    prior_slope: tuple[float, float] = DEFAULT_PRIOR_SLOPE
    prior_sigma: tuple[float, float] = DEFAULT_PRIOR_SIGMA
    sampler_seed: int | None = DEFAULT_SAMPLER_SEED
    query_start: float = DEFAULT_QUERY_START
    query_stop: float = DEFAULT_QUERY_STOP
    query_step: float = DEFAULT_QUERY_STEP
    interval_quantiles: tuple[float, float] = DEFAULT_INTERVAL_QUANTILES

    def __post_init__(self) -> None:
        # Normalize the fields that accept more than one input type. The dataclass
        # is frozen, so we go through object.__setattr__.
        normalized = {
            "predictor_encoding": PredictorEncoding.parse(self.predictor_encoding),
            "prior_intercept": _as_pair(self.prior_intercept, "prior_intercept"),
            "prior_slope": _as_pair(self.prior_slope, "prior_slope"),
            "prior_sigma": _as_pair(self.prior_sigma, "prior_sigma"),
            "interval_quantiles": utils.check_quantiles(
                tuple(self.interval_quantiles)
            ),
        }
        for name in ("seed", "draw_count", "chains", "warmup_iters", "total_iters"):
            normalized[name] = _as_count(getattr(self, name), name)
        if self.sampler_seed is not None:
            normalized["sampler_seed"] = _as_count(self.sampler_seed, "sampler_seed")
        for name, value in normalized.items():
            object.__setattr__(self, name, value)

        # Counts
        utils.check_count(self.draw_count, "draw_count", allow_zero=True)
        utils.check_count(self.chains, "chains")
        utils.check_count(self.warmup_iters, "warmup_iters", allow_zero=True)
        utils.check_count(self.total_iters, "total_iters")
        if self.warmup_iters >= self.total_iters:
            raise InvalidArgument(
                f"`total_iters` ({self.total_iters}) must exceed `warmup_iters` "
                f"({self.warmup_iters}) so that at least one draw is retained."
            )

        # Predictive grid
        if self.query_step <= 0:
            raise InvalidArgument(
                f"`query_step` must be positive, got {self.query_step}."
            )
        if self.query_stop < self.query_start:
            raise InvalidArgument(
                f"`query_stop` ({self.query_stop}) is below `query_start` "
                f"({self.query_start})."
            )

        # Building the priors validates their hyperparameters
        _ = self.priors

    @classmethod
    def from_dict(cls, options: Mapping[str, Any]) -> "AnalysisConfig":
        """Build a configuration from a mapping, ignoring ``None`` values.

        :raises InvalidArgument: If the mapping holds unrecognized options
        """
        known = {field.name for field in dataclasses.fields(cls)}
        if unknown := set(options) - known:
            raise InvalidArgument(
                f"Unrecognized configuration options: {', '.join(sorted(unknown))}"
            )
        return cls(**{k: v for k, v in options.items() if v is not None})

    def as_dict(self) -> dict[str, Any]:
        """Return the configuration as a JSON-friendly dictionary."""
        options = dataclasses.asdict(self)
        options["predictor_encoding"] = self.predictor_encoding.value
        return options

    def replace(self, **changes: Any) -> "AnalysisConfig":
        """Return a copy of the configuration with some fields changed."""
        return dataclasses.replace(self, **changes)

    @property
    def retained_iters(self) -> int:
        """Number of retained (post-warmup) iterations per chain."""
        return self.total_iters - self.warmup_iters

    @property
    def effective_sampler_seed(self) -> int:
        """Seed handed to the sampler."""
        return self.seed if self.sampler_seed is None else self.sampler_seed

    @property
    def priors(self) -> priors_module.PriorSpecification:
        """The prior specification described by this configuration."""
        return priors_module.PriorSpecification(
            intercept=priors_module.Normal(
                mu=self.prior_intercept[0], sigma=self.prior_intercept[1]
            ),
            slope=priors_module.LogNormal(
                mu=self.prior_slope[0], sigma=self.prior_slope[1]
            ),
            sigma=priors_module.Uniform(
                lower=self.prior_sigma[0], upper=self.prior_sigma[1]
            ),
        )

    @property
    def query_values(self) -> custom_types.FloatArray:
        """The grid of predictor values for the posterior predictive intervals."""
        n_steps = int(
            np.floor((self.query_stop - self.query_start) / self.query_step + 1e-9)
        )
        return self.query_start + self.query_step * np.arange(n_steps + 1)
