# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Posterior predictive simulation.

For each posterior draw of (intercept, slope, sigma), a new outcome at a query
predictor value ``x`` is drawn from ``Normal(intercept + slope * x, sigma)``. The
spread of these draws combines parameter uncertainty with observation noise, and
their quantiles form the posterior predictive interval at ``x``.

The regression-line band (uncertainty in the mean alone, without observation
noise) is available through :py:func:`mean_lines`.
"""

from __future__ import annotations

from typing import Iterable

import numpy as np
import pandas as pd

from tqdm import tqdm

from ablationstan import custom_types, utils
from ablationstan.defaults import DEFAULT_INTERVAL_QUANTILES
from ablationstan.model.results import PosteriorSamples


def simulate_predictive(
    posterior: PosteriorSamples,
    query_value: custom_types.Float,
    rng: np.random.Generator,
) -> custom_types.FloatArray:
    """Draw one simulated outcome per posterior draw at a single query value.

    :param posterior: Posterior draws
    :type posterior: PosteriorSamples
    :param query_value: Predictor value, in the encoding of the posterior
    :type query_value: custom_types.Float
    :param rng: Random number generator. Advanced by ``len(posterior)`` normal
        draws.
    :type rng: np.random.Generator

    :returns: Array of shape ``(len(posterior),)``
    :rtype: custom_types.FloatArray
    """
    return rng.normal(
        posterior.intercept + posterior.slope * query_value, posterior.sigma
    )


def predictive_intervals(
    posterior: PosteriorSamples,
    query_values: Iterable[custom_types.Float],
    seed: custom_types.SeedType | np.random.Generator = None,
    quantiles: tuple[custom_types.Float, custom_types.Float] = DEFAULT_INTERVAL_QUANTILES,
    queries_are_encoded: bool = True,
    return_draws: bool = False,
    progress: bool = False,
) -> pd.DataFrame | tuple[pd.DataFrame, custom_types.FloatArray]:
    """Posterior predictive intervals over a sequence of query values.

    :param posterior: Posterior draws
    :type posterior: PosteriorSamples
    :param query_values: Predictor values to query
    :type query_values: Iterable[custom_types.Float]
    :param seed: Seed (or generator) for the simulation. The generator is seeded
        once before the sweep, so the whole interval sequence reproduces for a
        fixed seed. Defaults to None.
    :type seed: Union[custom_types.SeedType, np.random.Generator]
    :param quantiles: Lower and upper quantile of the interval. Defaults to
        (0.025, 0.975).
    :type quantiles: tuple[custom_types.Float, custom_types.Float]
    :param queries_are_encoded: Whether the queries are already in the posterior's
        predictor encoding. If False, they are raw predictor values and are
        shifted by the predictor mean for a centered posterior. Defaults to True.
    :type queries_are_encoded: bool
    :param return_draws: Whether to also return the simulated outcomes. Defaults
        to False.
    :type return_draws: bool
    :param progress: Whether to show a progress bar. Defaults to False.
    :type progress: bool

    :returns: Table with columns query, lower, and upper, one row per query in
        input order. The ``query`` column holds the values as given. If
        ``return_draws``, also an array of shape ``(len(posterior), n_queries)``.
    :rtype: Union[pd.DataFrame, tuple[pd.DataFrame, custom_types.FloatArray]]

    :raises InvalidArgument: If the quantiles are malformed
    """
    lower_q, upper_q = utils.check_quantiles(quantiles)
    query_values = np.asarray(list(query_values), dtype=np.float64)
    evaluated = (
        query_values if queries_are_encoded else posterior.encode_query(query_values)
    )

    # One generator for the whole sweep, advanced in query order
    rng = utils.get_rng(seed)
    draws = np.empty((len(posterior), len(query_values)))
    bounds = np.empty((len(query_values), 2))
    for i, query in tqdm(
        enumerate(evaluated),
        total=len(evaluated),
        desc="Simulating posterior predictive",
        disable=not progress,
    ):
        draws[:, i] = simulate_predictive(posterior, query, rng)
        bounds[i] = np.quantile(draws[:, i], [lower_q, upper_q])

    intervals = pd.DataFrame(
        {"query": query_values, "lower": bounds[:, 0], "upper": bounds[:, 1]}
    )

    if return_draws:
        return intervals, draws
    return intervals


def posterior_mean_line(posterior: PosteriorSamples) -> tuple[float, float]:
    """(intercept, slope) of the posterior-mean regression line, in the encoding
    of the posterior."""
    return float(posterior.intercept.mean()), float(posterior.slope.mean())


def mean_lines(
    posterior: PosteriorSamples, query_values: Iterable[custom_types.Float]
) -> custom_types.FloatArray:
    """Evaluate every posterior regression line at the query values.

    This is the posterior of the mean outcome, without observation noise.

    :returns: Array of shape ``(len(posterior), n_queries)``
    :rtype: custom_types.FloatArray
    """
    query_values = np.asarray(list(query_values), dtype=np.float64)
    return (
        posterior.intercept[:, None] + posterior.slope[:, None] * query_values[None, :]
    )
