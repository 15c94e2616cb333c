# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Posterior samplers for the linear regression.

A posterior sampler has a single contract: given the observations, the predictor
encoding, and the priors, return joint posterior draws of intercept, slope, and
sigma. :py:class:`PosteriorSampler` defines that contract and validates the
arguments and the output of every implementation, so that downstream stages can
rely on the draws being complete, finite, and physically valid.

:py:class:`StanSampler` is the provided implementation. It runs the No-U-Turn
sampler through CmdStanPy and keeps the chain structure and sampler statistics of
the run in an ArviZ ``InferenceData`` object for diagnostics.

Example:
    >>> sampler = StanSampler(output_dir="stan_cache")
    >>> posterior = sampler.sample(
    ...     observations, "centered", config.priors, chains=4, warmup_iters=1000,
    ...     total_iters=2000, seed=4,
    ... )
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

import arviz as az
import numpy as np

from ablationstan import custom_types, utils
from ablationstan.config import PredictorEncoding
from ablationstan.data import Observations
from ablationstan.defaults import DEFAULT_FORCE_COMPILE
from ablationstan.exceptions import InvalidArgument, SamplingFailure
from ablationstan.model.priors import PriorSpecification
from ablationstan.model.results import PosteriorSamples

# CmdStanPy is only loaded once a Stan model is needed
stan = utils.lazy_import("ablationstan.model.stan")


class PosteriorSampler(ABC):
    """Abstract posterior sampler for the linear regression.

    Subclasses implement :py:meth:`_sample`. The public :py:meth:`sample` method
    validates the run settings before calling it and the draws after.
    """

    def sample(
        self,
        observations: Observations,
        encoding: PredictorEncoding | str,
        priors: PriorSpecification,
        *,
        chains: custom_types.Integer,
        warmup_iters: custom_types.Integer,
        total_iters: custom_types.Integer,
        seed: custom_types.Integer,
    ) -> PosteriorSamples:
        """Draw from the posterior of intercept, slope, and sigma.

        :param observations: Observed predictor and outcome values
        :type observations: Observations
        :param encoding: Whether the model uses the raw or the centered predictor
        :type encoding: Union[PredictorEncoding, str]
        :param priors: Priors on intercept, slope, and sigma
        :type priors: PriorSpecification
        :param chains: Number of independent chains
        :type chains: custom_types.Integer
        :param warmup_iters: Discarded iterations per chain
        :type warmup_iters: custom_types.Integer
        :param total_iters: Total iterations per chain, warmup included
        :type total_iters: custom_types.Integer
        :param seed: Sampler seed
        :type seed: custom_types.Integer

        :returns: ``chains * (total_iters - warmup_iters)`` draws, concatenated in
            chain order
        :rtype: PosteriorSamples

        :raises InvalidArgument: If the run settings are malformed
        :raises SamplingFailure: If the sampler fails or returns invalid draws
        """
        encoding = PredictorEncoding.parse(encoding)
        utils.check_count(chains, "chains")
        utils.check_count(warmup_iters, "warmup_iters", allow_zero=True)
        utils.check_count(total_iters, "total_iters")
        if warmup_iters >= total_iters:
            raise InvalidArgument(
                f"`total_iters` ({total_iters}) must exceed `warmup_iters` "
                f"({warmup_iters})."
            )

        posterior = self._sample(
            observations,
            encoding,
            priors,
            chains=int(chains),
            warmup_iters=int(warmup_iters),
            retained_iters=int(total_iters) - int(warmup_iters),
            seed=int(seed),
        )
        self._check_posterior(
            posterior, int(chains) * (int(total_iters) - int(warmup_iters))
        )
        return posterior

    @abstractmethod
    def _sample(
        self,
        observations: Observations,
        encoding: PredictorEncoding,
        priors: PriorSpecification,
        *,
        chains: int,
        warmup_iters: int,
        retained_iters: int,
        seed: int,
    ) -> PosteriorSamples:
        """Run the sampler. Arguments are already validated."""

    @staticmethod
    def _check_posterior(posterior: PosteriorSamples, expected_draws: int) -> None:
        """Make sure the sampler returned a complete, valid set of draws.

        :raises SamplingFailure: If draws are missing or invalid
        """
        if len(posterior) != expected_draws:
            raise SamplingFailure(
                f"Expected {expected_draws} posterior draws, got {len(posterior)}."
            )
        draws = posterior.draws.to_numpy()
        if not np.all(np.isfinite(draws)):
            raise SamplingFailure("The sampler returned non-finite draws.")
        if np.any(posterior.sigma < 0):
            raise SamplingFailure("The sampler returned negative sigma draws.")


class StanSampler(PosteriorSampler):
    """Posterior sampler backed by Stan's No-U-Turn sampler.

    :param output_dir: Directory for Stan programs, executables, and sampler
        output. Defaults to None (a temporary directory per compiled model).
    :type output_dir: Optional[str]
    :param force_compile: Whether to recompile even when a cached executable
        exists. Defaults to False.
    :type force_compile: bool
    :param stanc_options: Options for the Stan compiler. Defaults to None.
    :type stanc_options: Optional[dict[str, Any]]
    :param cpp_options: Options for C++ compilation. Defaults to None.
    :type cpp_options: Optional[dict[str, Any]]
    :param sample_kwargs: Further keyword arguments for ``CmdStanModel.sample``
        (e.g., ``show_console``, ``adapt_delta``)

    Compiled models are kept per combination of prior families, so repeated runs
    with the same families (e.g., both predictor encodings) compile once.
    """

    def __init__(
        self,
        output_dir: Optional[str] = None,
        force_compile: bool = DEFAULT_FORCE_COMPILE,
        stanc_options: Optional[dict[str, Any]] = None,
        cpp_options: Optional[dict[str, Any]] = None,
        **sample_kwargs,
    ):
        self.output_dir = output_dir
        self.force_compile = force_compile
        self.stanc_options = stanc_options
        self.cpp_options = cpp_options
        self.sample_kwargs = sample_kwargs
        self._models = {}

    def get_model(self, priors: PriorSpecification) -> "stan.StanModel":
        """Get the compiled Stan model for the families of ``priors``.

        :raises SamplingFailure: If CmdStan is unavailable or compilation fails
        """
        # Only the first request for a family combination may force compilation
        if priors.families not in self._models:
            try:
                self._models[priors.families] = stan.StanModel(
                    priors,
                    output_dir=self.output_dir,
                    force_compile=self.force_compile,
                    stanc_options=self.stanc_options,
                    cpp_options=self.cpp_options,
                )
            except (RuntimeError, ValueError) as err:
                raise SamplingFailure(
                    f"Could not compile the Stan model for prior families "
                    f"{priors.families}: {err}"
                ) from err
        return self._models[priors.families]

    def _sample(
        self,
        observations: Observations,
        encoding: PredictorEncoding,
        priors: PriorSpecification,
        *,
        chains: int,
        warmup_iters: int,
        retained_iters: int,
        seed: int,
    ) -> PosteriorSamples:
        model = self.get_model(priors)
        try:
            fit = model.sample(
                observations,
                encoding,
                chains=chains,
                iter_warmup=warmup_iters,
                iter_sampling=retained_iters,
                seed=seed,
                priors=priors,
                **self.sample_kwargs,
            )
            inference_obj = az.from_cmdstanpy(posterior=fit)
        except (RuntimeError, ValueError) as err:
            raise SamplingFailure(f"Stan sampling failed: {err}") from err

        return PosteriorSamples.from_inference_data(
            inference_obj, encoding, observations.predictor_mean
        )
