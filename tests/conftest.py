# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Shared fixtures for the AblationStan tests."""

import arviz as az
import cmdstanpy
import numpy as np
import pytest

from ablationstan.config import AnalysisConfig, PredictorEncoding
from ablationstan.data import simulate_observations
from ablationstan.model.results import PosteriorSamples
from ablationstan.model.sampler import PosteriorSampler

# True values of the synthetic ablation data
TRUE_INTERCEPT = 60.0
TRUE_SLOPE = 0.5
TRUE_SIGMA = 3.0


def cmdstan_available() -> bool:
    """Whether a CmdStan installation can be found."""
    try:
        cmdstanpy.cmdstan_path()
    except (ValueError, RuntimeError):
        return False
    return True


requires_cmdstan = pytest.mark.skipif(
    not cmdstan_available(), reason="CmdStan is not installed"
)


class ConjugateSampler(PosteriorSampler):
    """Exact posterior sampler for the regression under flat priors.

    Draws sigma from its scaled inverse chi-squared marginal and then
    (intercept, slope) from their conditional normal. The priors are ignored. The
    draws are arranged in chains with placeholder sampler statistics so that the
    diagnostics can run.
    """

    def __init__(self):
        self.calls = []

    def _sample(
        self,
        observations,
        encoding,
        priors,
        *,
        chains,
        warmup_iters,
        retained_iters,
        seed,
    ):
        self.calls.append(
            {"encoding": encoding, "priors": priors, "chains": chains, "seed": seed}
        )
        rng = np.random.default_rng(seed)
        n_draws = chains * retained_iters

        # Least squares fit
        x = observations.encode_predictor(encoding)
        design = np.column_stack([np.ones_like(x), x])
        xtx_inv = np.linalg.inv(design.T @ design)
        beta_hat = xtx_inv @ design.T @ observations.outcome
        rss = np.sum((observations.outcome - design @ beta_hat) ** 2)
        dof = len(observations) - 2

        # Exact posterior draws
        sigma = np.sqrt(rss / rng.chisquare(dof, size=n_draws))
        chol = np.linalg.cholesky(xtx_inv)
        beta = beta_hat[None, :] + sigma[:, None] * (
            rng.standard_normal((n_draws, 2)) @ chol.T
        )

        def by_chain(values):
            return values.reshape(chains, retained_iters)

        inference_obj = az.from_dict(
            posterior={
                "intercept": by_chain(beta[:, 0]),
                "slope": by_chain(beta[:, 1]),
                "sigma": by_chain(sigma),
            },
            sample_stats={
                "diverging": np.zeros((chains, retained_iters), dtype=bool),
                "energy": by_chain(rng.standard_normal(n_draws)),
            },
        )
        return PosteriorSamples.from_inference_data(
            inference_obj, encoding, observations.predictor_mean
        )


@pytest.fixture(name="observations")
def fixture_observations():
    """Twenty observations from a known linear-Gaussian truth."""
    return simulate_observations(
        20, TRUE_INTERCEPT, TRUE_SLOPE, TRUE_SIGMA, seed=2024
    )


@pytest.fixture(name="sampler")
def fixture_sampler():
    """Test double for the posterior sampler."""
    return ConjugateSampler()


@pytest.fixture(name="config")
def fixture_config():
    """Default configuration with a short run."""
    return AnalysisConfig(chains=4, warmup_iters=100, total_iters=1100)


@pytest.fixture(name="raw_posterior")
def fixture_raw_posterior(observations, sampler, config):
    """Posterior of the raw-encoding model."""
    return sampler.sample(
        observations,
        PredictorEncoding.RAW,
        config.priors,
        chains=config.chains,
        warmup_iters=config.warmup_iters,
        total_iters=config.total_iters,
        seed=4,
    )


@pytest.fixture(name="centered_posterior")
def fixture_centered_posterior(observations, sampler, config):
    """Posterior of the centered-encoding model."""
    return sampler.sample(
        observations,
        PredictorEncoding.CENTERED,
        config.priors,
        chains=config.chains,
        warmup_iters=config.warmup_iters,
        total_iters=config.total_iters,
        seed=4,
    )
