# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Prior distributions and prior predictive simulation.

This module holds the prior distributions that can be placed on the three
parameters of the linear regression (intercept, slope, and residual scale), the
:py:class:`PriorSpecification` that bundles one prior per parameter, and the
prior simulator, :py:func:`simulate_prior`, which draws parameter values from
the priors before any data is seen.

Each prior class knows three things about its distribution:

    - How to draw from it, via the matching SciPy distribution
    - How to write it in Stan, with hyperparameters passed in as data
    - Its support, which is used both for validation and for the bounds of the
      parameter declaration in the generated Stan program

The slope of the ablation model is physically constrained: tissue is only ever
heated, so the slope prior must place no mass on negative values. The residual
scale prior must likewise be non-negative. Both constraints are checked when a
:py:class:`PriorSpecification` is built.

Example:
    >>> from ablationstan.model import priors
    >>> spec = priors.PriorSpecification(
    ...     intercept=priors.Normal(mu=75.0, sigma=15.0),
    ...     slope=priors.LogNormal(mu=0.0, sigma=0.8),
    ...     sigma=priors.Uniform(lower=0.0, upper=30.0),
    ... )
    >>> draws = priors.simulate_prior(150, spec, seed=1999)
    >>> lines = draws.regression_lines(predictor_mean=25.0)
"""

from __future__ import annotations

import dataclasses

from abc import ABC
from typing import Callable, ClassVar, Iterable

import numpy as np
import pandas as pd

from scipy import stats

from ablationstan import custom_types, utils
from ablationstan.exceptions import InvalidArgument


def _inverse_transform(x: custom_types.Float) -> float:
    """Converts a rate to a scale."""
    return 1 / x


def _exp_transform(x: custom_types.Float) -> float:
    """Converts a log-scale location to the scale of a SciPy log-normal."""
    return float(np.exp(x))


class Prior(ABC):
    """Base class for prior distributions on a scalar parameter.

    :param hyperparameters: Distribution hyperparameters, named as in Stan (e.g.,
        ``mu`` and ``sigma`` for a normal distribution)

    :raises InvalidArgument: If hyperparameters are missing, unexpected, not finite,
        or non-positive where they must be positive

    :cvar STAN_DIST: Stan distribution name for code generation
    :cvar SCIPY_DIST: Corresponding SciPy distribution
    :cvar STAN_TO_SCIPY_NAMES: Hyperparameter name mapping for the SciPy interface,
        in the order Stan expects the arguments
    :cvar STAN_TO_SCIPY_TRANSFORMS: Hyperparameter transformations converting between
        Stan and SciPy parametrizations
    :cvar POSITIVE_PARAMS: Hyperparameters that must be strictly positive
    :cvar LOWER_BOUND: Lower bound of the support
    :cvar UPPER_BOUND: Upper bound of the support
    """

    STAN_DIST: ClassVar[str] = ""
    """Name of the distribution in Stan code (e.g. "normal", "lognormal")."""

    SCIPY_DIST: ClassVar[stats.rv_continuous]
    """Corresponding SciPy distribution (e.g., `scipy.stats.norm`)."""

    STAN_TO_SCIPY_NAMES: ClassVar[dict[str, str]] = {}
    """Maps Stan hyperparameter names to SciPy keyword names."""

    STAN_TO_SCIPY_TRANSFORMS: ClassVar[
        dict[str, Callable[[custom_types.Float], float]]
    ] = {}
    """
    Some distributions are parametrized differently between Stan and SciPy. This
    dictionary provides transformation functions to convert hyperparameters from
    Stan's parametrization to SciPy's parametrization.
    """

    POSITIVE_PARAMS: ClassVar[frozenset[str]] = frozenset()
    """Hyperparameters that must be strictly positive."""

    LOWER_BOUND: ClassVar[float] = -np.inf
    """Lower bound of the support of the distribution."""

    UPPER_BOUND: ClassVar[float] = np.inf
    """Upper bound of the support of the distribution."""

    def __init__(self, **hyperparameters: custom_types.Float):
        # Make sure we have exactly the expected hyperparameters
        expected = set(self.STAN_TO_SCIPY_NAMES)
        if missing := expected - hyperparameters.keys():
            raise InvalidArgument(
                f"Missing hyperparameters {sorted(missing)} for {self.__class__.__name__}."
            )
        if extra := hyperparameters.keys() - expected:
            raise InvalidArgument(
                f"Unexpected hyperparameters {sorted(extra)} for {self.__class__.__name__}."
            )

        # Store in Stan argument order
        self.hyperparameters: dict[str, float] = {
            name: float(hyperparameters[name]) for name in self.STAN_TO_SCIPY_NAMES
        }

        # All values must be finite and some must be positive
        for name, value in self.hyperparameters.items():
            if not np.isfinite(value):
                raise InvalidArgument(
                    f"Hyperparameter '{name}' of {self.__class__.__name__} must be "
                    f"finite, got {value}."
                )
            if name in self.POSITIVE_PARAMS and value <= 0:
                raise InvalidArgument(
                    f"Hyperparameter '{name}' of {self.__class__.__name__} must be "
                    f"positive, got {value}."
                )

    def __repr__(self) -> str:
        args = ", ".join(f"{k}={v!r}" for k, v in self.hyperparameters.items())
        return f"{self.__class__.__name__}({args})"

    def __eq__(self, other: object) -> bool:
        return (
            type(self) is type(other) and self.hyperparameters == other.hyperparameters
        )

    def __hash__(self) -> int:
        return hash((type(self), tuple(self.hyperparameters.items())))

    def scipy_kwargs(self) -> dict[str, float]:
        """Hyperparameters renamed and transformed for the SciPy distribution."""
        return {
            self.STAN_TO_SCIPY_NAMES[name]: self.STAN_TO_SCIPY_TRANSFORMS.get(
                name, float
            )(value)
            for name, value in self.hyperparameters.items()
        }

    def draw(
        self, n: custom_types.Integer, rng: np.random.Generator
    ) -> custom_types.FloatArray:
        """Draw ``n`` independent values from the prior.

        :param n: Number of draws. Zero gives an empty array.
        :type n: custom_types.Integer
        :param rng: Random number generator used for the draws
        :type rng: np.random.Generator

        :returns: Array of shape ``(n,)``
        :rtype: custom_types.FloatArray
        """
        utils.check_count(n, "n", allow_zero=True)
        return np.asarray(
            self.SCIPY_DIST.rvs(**self.scipy_kwargs(), size=int(n), random_state=rng),
            dtype=np.float64,
        ).reshape(int(n))

    def stan_args(self, varname: str) -> list[str]:
        """Names of the Stan data variables holding the hyperparameters."""
        return [f"{varname}_{name}" for name in self.hyperparameters]

    def stan_data(self, varname: str) -> dict[str, float]:
        """Hyperparameter values keyed by their Stan data variable names."""
        return dict(zip(self.stan_args(varname), self.hyperparameters.values()))

    def stan_bounds(self, varname: str) -> str:
        """Bounds for the parameter declaration, e.g. ``<lower=0>``."""
        # pylint: disable=unused-argument
        bounds = []
        if np.isfinite(self.LOWER_BOUND):
            bounds.append(f"lower={self.LOWER_BOUND:g}")
        if np.isfinite(self.UPPER_BOUND):
            bounds.append(f"upper={self.UPPER_BOUND:g}")
        return f"<{', '.join(bounds)}>" if bounds else ""

    def stan_statement(self, varname: str, target: str | None = None) -> str:
        """Stan sampling statement for the parameter, e.g.
        ``slope ~ lognormal(slope_mu, slope_sigma);``.

        :param varname: Parameter name, which prefixes the hyperparameter data names
        :type varname: str
        :param target: Stan expression the prior is placed on. Defaults to
            ``varname``.
        :type target: Optional[str]
        """
        target = varname if target is None else target
        return f"{target} ~ {self.STAN_DIST}({', '.join(self.stan_args(varname))});"

    @property
    def support(self) -> tuple[float, float]:
        """(lower, upper) bounds of the support of the distribution."""
        return float(self.LOWER_BOUND), float(self.UPPER_BOUND)

    @property
    def family(self) -> str:
        """Lower-case name of the distribution family."""
        return self.__class__.__name__.lower()


class Normal(Prior):
    r"""Normal prior.

    .. math::
        P(x | \mu, \sigma) = \frac{1}{\sigma\sqrt{2\pi}}
        \exp\left(-\frac{(x-\mu)^2}{2\sigma^2}\right)
    """

    STAN_DIST = "normal"
    SCIPY_DIST = stats.norm
    STAN_TO_SCIPY_NAMES = {"mu": "loc", "sigma": "scale"}
    POSITIVE_PARAMS = frozenset({"sigma"})

    def __init__(self, *, mu: custom_types.Float, sigma: custom_types.Float):
        super().__init__(mu=mu, sigma=sigma)


class HalfNormal(Prior):
    """Normal prior with location zero, truncated to non-negative values."""

    STAN_DIST = "normal"
    SCIPY_DIST = stats.halfnorm
    STAN_TO_SCIPY_NAMES = {"sigma": "scale"}
    POSITIVE_PARAMS = frozenset({"sigma"})
    LOWER_BOUND = 0.0

    def __init__(self, *, sigma: custom_types.Float):
        super().__init__(sigma=sigma)

    def stan_statement(self, varname: str, target: str | None = None) -> str:
        target = varname if target is None else target
        return f"{target} ~ normal(0, {self.stan_args(varname)[0]});"


class LogNormal(Prior):
    r"""Log-normal prior. ``mu`` and ``sigma`` are the location and scale of the
    underlying normal distribution of :math:`\log(x)`.

    Support is :math:`(0, \infty)`, which makes this the natural choice for a slope
    that is known to be positive.
    """

    STAN_DIST = "lognormal"
    SCIPY_DIST = stats.lognorm
    STAN_TO_SCIPY_NAMES = {"mu": "scale", "sigma": "s"}
    STAN_TO_SCIPY_TRANSFORMS = {"mu": _exp_transform}
    POSITIVE_PARAMS = frozenset({"sigma"})
    LOWER_BOUND = 0.0

    def __init__(self, *, mu: custom_types.Float, sigma: custom_types.Float):
        super().__init__(mu=mu, sigma=sigma)


class Exponential(Prior):
    """Exponential prior parametrized by its rate, ``beta``."""

    STAN_DIST = "exponential"
    SCIPY_DIST = stats.expon
    STAN_TO_SCIPY_NAMES = {"beta": "scale"}
    STAN_TO_SCIPY_TRANSFORMS = {"beta": _inverse_transform}
    POSITIVE_PARAMS = frozenset({"beta"})
    LOWER_BOUND = 0.0

    def __init__(self, *, beta: custom_types.Float):
        super().__init__(beta=beta)


class Uniform(Prior):
    """Uniform prior on ``[lower, upper]``.

    The bounds are also written into the Stan parameter declaration, which Stan
    requires for a uniform prior to define a proper posterior.
    """

    STAN_DIST = "uniform"
    SCIPY_DIST = stats.uniform
    STAN_TO_SCIPY_NAMES = {"lower": "loc", "upper": "scale"}

    def __init__(self, *, lower: custom_types.Float, upper: custom_types.Float):
        super().__init__(lower=lower, upper=upper)
        if self.hyperparameters["lower"] >= self.hyperparameters["upper"]:
            raise InvalidArgument(
                "The lower bound of a uniform prior must be below its upper bound, "
                f"got lower={lower}, upper={upper}."
            )

    def scipy_kwargs(self) -> dict[str, float]:
        # SciPy's uniform is parametrized by its start and width
        lower, upper = self.hyperparameters["lower"], self.hyperparameters["upper"]
        return {"loc": lower, "scale": upper - lower}

    def stan_bounds(self, varname: str) -> str:
        lower_name, upper_name = self.stan_args(varname)
        return f"<lower={lower_name}, upper={upper_name}>"

    @property
    def support(self) -> tuple[float, float]:
        return self.hyperparameters["lower"], self.hyperparameters["upper"]


@dataclasses.dataclass(frozen=True)
class PriorSpecification:
    """One prior per regression parameter.

    :param intercept: Prior on the intercept
    :param slope: Prior on the slope. Its support must be non-negative.
    :param sigma: Prior on the residual scale. Its support must be non-negative.

    :raises InvalidArgument: If the slope or sigma prior puts mass on negative values
    """

    intercept: Prior
    slope: Prior
    sigma: Prior

    PARAMETER_NAMES: ClassVar[tuple[str, str, str]] = ("intercept", "slope", "sigma")

    def __post_init__(self) -> None:
        for name in self.PARAMETER_NAMES:
            if not isinstance(getattr(self, name), Prior):
                raise InvalidArgument(
                    f"The {name} prior must be a Prior instance, got "
                    f"{type(getattr(self, name)).__name__}."
                )

        # Heating only: the slope cannot be negative. A scale cannot be negative.
        for name in ("slope", "sigma"):
            prior = getattr(self, name)
            if prior.support[0] < 0:
                raise InvalidArgument(
                    f"The {name} prior must have non-negative support, but {prior!r} "
                    f"has support {prior.support}."
                )

    def items(self) -> Iterable[tuple[str, Prior]]:
        """Yields (parameter name, prior) pairs in declaration order."""
        for name in self.PARAMETER_NAMES:
            yield name, getattr(self, name)

    def stan_data(self) -> dict[str, float]:
        """All hyperparameters keyed by their Stan data variable names."""
        data = {}
        for name, prior in self.items():
            data.update(prior.stan_data(name))
        return data

    @property
    def families(self) -> tuple[str, str, str]:
        """Distribution families of the intercept, slope, and sigma priors."""
        return tuple(prior.family for _, prior in self.items())


@dataclasses.dataclass(frozen=True)
class PriorDraws:
    """Independent draws from a :py:class:`PriorSpecification`.

    Draws are intended for prior predictive checks: each (intercept, slope) pair
    is a regression line the model considers plausible before seeing data.
    """

    intercept: custom_types.FloatArray
    slope: custom_types.FloatArray
    sigma: custom_types.FloatArray

    def __post_init__(self) -> None:
        # Freeze the arrays
        for name in PriorSpecification.PARAMETER_NAMES:
            array = np.array(getattr(self, name), dtype=np.float64)
            array.flags.writeable = False
            object.__setattr__(self, name, array)

        if not len(self.intercept) == len(self.slope) == len(self.sigma):
            raise InvalidArgument("All prior draw arrays must have the same length.")

    def __len__(self) -> int:
        return len(self.intercept)

    def to_dataframe(self) -> pd.DataFrame:
        """The draws as a table with columns intercept, slope, and sigma."""
        return pd.DataFrame(
            {name: getattr(self, name) for name in PriorSpecification.PARAMETER_NAMES}
        )

    def regression_lines(self, predictor_mean: custom_types.Float) -> pd.DataFrame:
        """Express each draw as a line in raw predictor units.

        The intercept prior is read as a prior on the outcome at the mean predictor
        value, so the line ``y = slope * (x - mean) + intercept`` is rewritten as
        ``y = slope * x + (intercept - slope * mean)``.

        :param predictor_mean: Sample mean of the observed predictor
        :type predictor_mean: custom_types.Float

        :returns: Table with columns intercept and slope, one row per draw
        :rtype: pd.DataFrame
        """
        return pd.DataFrame(
            {
                "intercept": self.intercept - self.slope * predictor_mean,
                "slope": self.slope.copy(),
            }
        )

    def predictive_means(
        self,
        query_values: Iterable[custom_types.Float],
        predictor_mean: custom_types.Float,
    ) -> custom_types.FloatArray:
        """Evaluate every prior regression line at the query predictor values.

        :returns: Array of shape ``(n_draws, n_queries)``
        :rtype: custom_types.FloatArray
        """
        query_values = np.asarray(list(query_values), dtype=np.float64)
        return self.intercept[:, None] + self.slope[:, None] * (
            query_values[None, :] - predictor_mean
        )


def simulate_prior(
    n: custom_types.Integer,
    priors: PriorSpecification,
    seed: custom_types.SeedType | np.random.Generator = None,
) -> PriorDraws:
    """Draw ``n`` independent values of intercept, slope, and sigma from their priors.

    :param n: Number of draws. Zero yields empty arrays.
    :type n: custom_types.Integer
    :param priors: The priors to draw from
    :type priors: PriorSpecification
    :param seed: Seed (or generator) for the draws. The same seed and ``n`` always
        reproduce the same draws. Defaults to None (not reproducible).
    :type seed: Union[custom_types.SeedType, np.random.Generator]

    :returns: The draws
    :rtype: PriorDraws

    :raises InvalidArgument: If ``n`` is negative

    Draws are taken in a fixed order (all intercepts, then all slopes, then all
    sigmas) from a single generator.
    """
    utils.check_count(n, "n", allow_zero=True)
    rng = utils.get_rng(seed)
    return PriorDraws(
        **{name: prior.draw(n, rng) for name, prior in priors.items()}
    )
