# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Tests for posterior predictive simulation."""

import numpy as np
import pandas as pd
import pytest

from ablationstan.config import AnalysisConfig
from ablationstan.exceptions import InvalidArgument
from ablationstan.model import predictive


def test_simulate_predictive(raw_posterior):
    rng = np.random.default_rng(1)
    draws = predictive.simulate_predictive(raw_posterior, 25.0, rng)
    assert draws.shape == (len(raw_posterior),)

    expected = np.random.default_rng(1).normal(
        raw_posterior.intercept + raw_posterior.slope * 25.0, raw_posterior.sigma
    )
    np.testing.assert_array_equal(draws, expected)


def test_intervals_are_ordered(raw_posterior):
    intervals = predictive.predictive_intervals(
        raw_posterior, AnalysisConfig().query_values, seed=1999
    )
    assert list(intervals.columns) == ["query", "lower", "upper"]
    assert len(intervals) == 76
    assert np.all(intervals["lower"] <= intervals["upper"])
    np.testing.assert_array_equal(intervals["query"], AnalysisConfig().query_values)


def test_intervals_are_reproducible(centered_posterior):
    queries = np.linspace(-15.0, 15.0, 7)
    first = predictive.predictive_intervals(centered_posterior, queries, seed=1999)
    second = predictive.predictive_intervals(centered_posterior, queries, seed=1999)
    pd.testing.assert_frame_equal(first, second, check_exact=True)

    other = predictive.predictive_intervals(centered_posterior, queries, seed=2000)
    assert not np.array_equal(first["lower"], other["lower"])


def test_intervals_use_one_generator(raw_posterior):
    """The generator is advanced query by query."""
    intervals, draws = predictive.predictive_intervals(
        raw_posterior, [10.0, 20.0], seed=5, return_draws=True
    )
    rng = np.random.default_rng(5)
    first = predictive.simulate_predictive(raw_posterior, 10.0, rng)
    second = predictive.simulate_predictive(raw_posterior, 20.0, rng)
    np.testing.assert_array_equal(draws[:, 0], first)
    np.testing.assert_array_equal(draws[:, 1], second)
    assert intervals.loc[1, "lower"] == pytest.approx(np.quantile(second, 0.025))
    assert intervals.loc[1, "upper"] == pytest.approx(np.quantile(second, 0.975))


def test_intervals_widen_away_from_mean(raw_posterior, observations):
    center = observations.predictor_mean
    intervals = predictive.predictive_intervals(
        raw_posterior, [center, center + 40.0], seed=1999
    )
    widths = (intervals["upper"] - intervals["lower"]).to_numpy()
    assert widths[1] > widths[0]


def test_encodings_agree_in_raw_units(raw_posterior, centered_posterior):
    queries = [-15.0, 0.0, 25.0, 60.0]
    raw = predictive.predictive_intervals(
        raw_posterior, queries, seed=1999, queries_are_encoded=False
    )
    centered = predictive.predictive_intervals(
        centered_posterior, queries, seed=1999, queries_are_encoded=False
    )
    np.testing.assert_array_equal(raw["query"], centered["query"])
    np.testing.assert_allclose(raw["lower"], centered["lower"], atol=1.5)
    np.testing.assert_allclose(raw["upper"], centered["upper"], atol=1.5)


def test_custom_quantiles(raw_posterior):
    wide = predictive.predictive_intervals(raw_posterior, [25.0], seed=1)
    narrow = predictive.predictive_intervals(
        raw_posterior, [25.0], seed=1, quantiles=(0.25, 0.75)
    )
    assert narrow.loc[0, "upper"] - narrow.loc[0, "lower"] < (
        wide.loc[0, "upper"] - wide.loc[0, "lower"]
    )
    with pytest.raises(InvalidArgument):
        predictive.predictive_intervals(raw_posterior, [25.0], quantiles=(0.5, 0.1))


def test_mean_lines(centered_posterior):
    intercept, slope = predictive.posterior_mean_line(centered_posterior)
    assert intercept == pytest.approx(centered_posterior.intercept.mean())
    assert slope == pytest.approx(centered_posterior.slope.mean())

    lines = predictive.mean_lines(centered_posterior, [0.0, 10.0])
    assert lines.shape == (len(centered_posterior), 2)
    np.testing.assert_array_equal(lines[:, 0], centered_posterior.intercept)

    # The mean band is narrower than the predictive interval
    band = np.quantile(lines[:, 1], [0.025, 0.975])
    intervals = predictive.predictive_intervals(centered_posterior, [10.0], seed=3)
    assert band[1] - band[0] < intervals.loc[0, "upper"] - intervals.loc[0, "lower"]
