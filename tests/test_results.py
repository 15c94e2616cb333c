# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Tests for posterior samples: summaries, diagnostics, and serialization."""

import warnings

import arviz as az
import numpy as np
import pandas as pd
import pytest

from ablationstan.config import PredictorEncoding
from ablationstan.exceptions import ConvergenceWarning, InvalidArgument
from ablationstan.model.results import PosteriorSamples

from conftest import TRUE_SIGMA, TRUE_SLOPE


def test_draw_layout(raw_posterior):
    assert len(raw_posterior) == 4000
    assert raw_posterior.n_chains == 4
    assert list(raw_posterior.draws.columns) == ["intercept", "slope", "sigma"]

    # Draws are concatenated in chain order
    chains = raw_posterior.inference_obj.posterior["slope"].values
    np.testing.assert_array_equal(raw_posterior.slope[:1000], chains[0])
    np.testing.assert_array_equal(raw_posterior.slope[-1000:], chains[-1])


def test_summary(raw_posterior):
    summary = raw_posterior.summary()
    assert list(summary.index) == ["intercept", "slope", "sigma"]
    assert list(summary.columns) == ["mean", "sd", "lower", "upper"]
    assert np.all(summary["lower"] < summary["mean"])
    assert np.all(summary["mean"] < summary["upper"])
    assert summary.loc["slope", "lower"] < TRUE_SLOPE < summary.loc["slope", "upper"]
    assert summary.loc["sigma", "lower"] < TRUE_SIGMA < summary.loc["sigma", "upper"]

    narrow = raw_posterior.summary(interval=0.5)
    assert np.all(
        narrow["upper"] - narrow["lower"] < summary["upper"] - summary["lower"]
    )

    with pytest.raises(InvalidArgument):
        raw_posterior.summary(interval=1.5)


def test_missing_columns():
    with pytest.raises(InvalidArgument):
        PosteriorSamples(pd.DataFrame({"intercept": [1.0]}), "raw", 0.0)


def test_encoding_conversion(raw_posterior, centered_posterior, observations):
    converted = raw_posterior.to_encoding(PredictorEncoding.CENTERED)
    assert converted.encoding is PredictorEncoding.CENTERED
    np.testing.assert_array_equal(converted.slope, raw_posterior.slope)
    np.testing.assert_allclose(
        converted.intercept,
        raw_posterior.intercept + raw_posterior.slope * observations.predictor_mean,
    )

    # And back again
    np.testing.assert_allclose(
        converted.to_encoding("raw").intercept, raw_posterior.intercept
    )
    assert raw_posterior.to_encoding("raw") is raw_posterior

    # The converted raw fit agrees with the centered fit
    assert converted.intercept.mean() == pytest.approx(
        centered_posterior.intercept.mean(), abs=0.5
    )


def test_encode_query(raw_posterior, centered_posterior, observations):
    np.testing.assert_array_equal(raw_posterior.encode_query([10.0]), [10.0])
    np.testing.assert_allclose(
        centered_posterior.encode_query([10.0]), [10.0 - observations.predictor_mean]
    )


def test_head_and_subset(raw_posterior):
    head = raw_posterior.head(10)
    assert len(head) == 10
    assert head.inference_obj is None
    np.testing.assert_array_equal(head.sigma, raw_posterior.sigma[:10])
    np.testing.assert_array_equal(
        raw_posterior.subset(slice(5, 8)).intercept, raw_posterior.intercept[5:8]
    )


def test_diagnostics_pass(raw_posterior):
    with warnings.catch_warnings():
        warnings.simplefilter("error", ConvergenceWarning)
        report = raw_posterior.diagnose(silent=True)

    assert report.passed
    assert report.n_divergent == 0
    assert report.ebfmi.shape == (4,)
    stats = report.to_dataframe()
    assert list(stats.index) == ["intercept", "slope", "sigma"]
    assert set(stats.columns) == {"r_hat", "ess_bulk", "ess_tail"}


def test_diagnostics_flag_unmixed_chains(capsys):
    rng = np.random.default_rng(0)
    offsets = np.arange(4)[:, None] * 5.0
    inference_obj = az.from_dict(
        posterior={
            "intercept": rng.normal(60.0, 1.0, (4, 1000)) + offsets,
            "slope": rng.lognormal(0.0, 0.1, (4, 1000)),
            "sigma": rng.uniform(2.0, 4.0, (4, 1000)),
        }
    )
    posterior = PosteriorSamples.from_inference_data(inference_obj, "raw", 25.0)

    with pytest.warns(ConvergenceWarning, match="intercept"):
        report = posterior.diagnose()

    assert not report.passed
    assert bool(report.variable_tests.sel(metric="r_hat")["intercept"])
    assert not bool(report.variable_tests.sel(metric="r_hat")["sigma"])
    assert report.n_divergent is None
    assert "Diagnostic tests" in capsys.readouterr().out


def test_csv_round_trip(raw_posterior, tmp_path):
    path = tmp_path / "posterior.csv"
    raw_posterior.to_csv(path)
    reloaded = PosteriorSamples.from_csv(path)

    pd.testing.assert_frame_equal(
        reloaded.draws, raw_posterior.draws, check_exact=True
    )
    assert reloaded.encoding is PredictorEncoding.RAW
    assert reloaded.predictor_mean == raw_posterior.predictor_mean

    # No chain structure, so no diagnostics
    with pytest.raises(ValueError):
        reloaded.diagnose()


def test_csv_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        PosteriorSamples.from_csv(tmp_path / "missing.csv")

    path = tmp_path / "plain.csv"
    path.write_text("intercept,slope,sigma\n1,2,3\n")
    with pytest.raises(ValueError):
        PosteriorSamples.from_csv(path)


def test_netcdf_round_trip(centered_posterior, tmp_path):
    path = tmp_path / "posterior.nc"
    centered_posterior.save_netcdf(path)
    reloaded = PosteriorSamples.from_netcdf(path)

    np.testing.assert_array_equal(reloaded.draws, centered_posterior.draws)
    assert reloaded.encoding is PredictorEncoding.CENTERED
    assert reloaded.predictor_mean == centered_posterior.predictor_mean
    assert reloaded.n_chains == 4

    # Writing leaves the in-memory samples untouched
    attrs = centered_posterior.inference_obj.posterior.attrs
    assert "predictor_encoding" not in attrs
    assert "predictor_mean" not in attrs
    assert set(reloaded.inference_obj.groups()) == set(
        centered_posterior.inference_obj.groups()
    )


def test_netcdf_without_chains(raw_posterior, tmp_path):
    path = tmp_path / "head.nc"
    raw_posterior.head(50).save_netcdf(path)
    reloaded = PosteriorSamples.from_netcdf(path)
    assert reloaded.n_chains == 1
    np.testing.assert_array_equal(reloaded.intercept, raw_posterior.intercept[:50])
