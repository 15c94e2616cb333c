# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Tests for the analysis configuration."""

import numpy as np
import pytest

from ablationstan.config import AnalysisConfig, PredictorEncoding
from ablationstan.exceptions import InvalidArgument
from ablationstan.model import priors


def test_defaults():
    config = AnalysisConfig()
    assert config.seed == 1999
    assert config.draw_count == 150
    assert config.chains == 4
    assert config.warmup_iters == 40000
    assert config.total_iters == 41000
    assert config.retained_iters == 1000
    assert config.predictor_encoding is PredictorEncoding.RAW
    assert config.prior_intercept == (75.0, 15.0)
    assert config.prior_slope == (0.0, 0.8)
    assert config.prior_sigma == (0.0, 30.0)
    assert config.effective_sampler_seed == 4
    assert config.interval_quantiles == (0.025, 0.975)


def test_query_grid_is_inclusive():
    values = AnalysisConfig().query_values
    assert len(values) == 76
    assert values[0] == -15.0
    assert values[-1] == 60.0
    np.testing.assert_allclose(np.diff(values), 1.0)

    values = AnalysisConfig(query_start=0.0, query_stop=1.0, query_step=0.1).query_values
    assert len(values) == 11
    assert values[-1] == pytest.approx(1.0)


def test_priors_from_config():
    spec = AnalysisConfig(prior_sigma=(1.0, 10.0)).priors
    assert spec.families == ("normal", "lognormal", "uniform")
    assert spec.intercept == priors.Normal(mu=75.0, sigma=15.0)
    assert spec.slope == priors.LogNormal(mu=0.0, sigma=0.8)
    assert spec.sigma.support == (1.0, 10.0)


@pytest.mark.parametrize(
    "options",
    [
        {"draw_count": -1},
        {"chains": 0},
        {"chains": 2.5},
        {"chains": True},
        {"draw_count": "150"},
        {"total_iters": 0},
        {"warmup_iters": 10.5},
        {"sampler_seed": 4.5},
        {"warmup_iters": 1000, "total_iters": 1000},
        {"warmup_iters": 2000, "total_iters": 1000},
        {"predictor_encoding": "standardized"},
        {"prior_sigma": (5.0, 5.0)},
        {"prior_intercept": (75.0, -1.0)},
        {"prior_slope": (0.0,)},
        {"query_step": 0.0},
        {"query_start": 10.0, "query_stop": 0.0},
        {"interval_quantiles": (0.975, 0.025)},
        {"interval_quantiles": (0.0, 0.5)},
    ],
)
def test_invalid_configurations(options):
    with pytest.raises(InvalidArgument):
        AnalysisConfig(**options)


def test_zero_draw_count_is_allowed():
    assert AnalysisConfig(draw_count=0).draw_count == 0


def test_whole_number_counts_are_coerced():
    config = AnalysisConfig(chains=np.int64(2), total_iters=3000.0, seed=np.int32(7))
    assert config.chains == 2 and type(config.chains) is int
    assert config.total_iters == 3000 and type(config.total_iters) is int
    assert type(config.seed) is int


def test_encoding_parsing():
    assert PredictorEncoding.parse("CENTERED") is PredictorEncoding.CENTERED
    assert PredictorEncoding.parse(PredictorEncoding.RAW) is PredictorEncoding.RAW
    assert AnalysisConfig(predictor_encoding="centered").predictor_encoding is (
        PredictorEncoding.CENTERED
    )


def test_from_dict_and_as_dict():
    config = AnalysisConfig.from_dict(
        {"seed": 7, "chains": None, "prior_sigma": [0, 20]}
    )
    assert config.seed == 7
    assert config.chains == 4
    assert config.prior_sigma == (0.0, 20.0)

    options = config.as_dict()
    assert options["predictor_encoding"] == "raw"
    assert AnalysisConfig.from_dict(options) == config

    with pytest.raises(InvalidArgument, match="Unrecognized"):
        AnalysisConfig.from_dict({"n_samples": 10})


def test_replace_revalidates():
    config = AnalysisConfig()
    centered = config.replace(predictor_encoding="centered")
    assert centered.predictor_encoding is PredictorEncoding.CENTERED
    assert config.predictor_encoding is PredictorEncoding.RAW
    with pytest.raises(InvalidArgument):
        config.replace(warmup_iters=config.total_iters)
