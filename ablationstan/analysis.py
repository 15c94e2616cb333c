# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""End-to-end Bayesian linear regression analysis.

One call to :py:func:`run_analysis` runs every stage for one predictor encoding:

    1. Prior simulation, for prior predictive checks
    2. Posterior sampling
    3. MCMC diagnostics of the posterior
    4. Posterior summary statistics
    5. Posterior predictive intervals over the query grid

Each stage reads its settings and seed from the :py:class:`AnalysisConfig` it is
handed. :py:func:`compare_encodings` runs the pipeline once per encoding, and
:py:func:`compare_intervals` lines the resulting predictive intervals up at the
same real-world predictor values.

Example:
    >>> from ablationstan import AnalysisConfig, load_observations, run_analysis
    >>> obs = load_observations("abl_data_2.csv")
    >>> results = run_analysis(obs, AnalysisConfig(predictor_encoding="centered"))
    >>> results.summary
    >>> results.save("output")
"""

from __future__ import annotations

import dataclasses
import json
import os.path

from typing import Iterable, Optional

import pandas as pd

from ablationstan import custom_types
from ablationstan.config import AnalysisConfig, PredictorEncoding
from ablationstan.data import Observations
from ablationstan.model.predictive import predictive_intervals
from ablationstan.model.priors import PriorDraws, simulate_prior
from ablationstan.model.results import DiagnosticReport, PosteriorSamples
from ablationstan.model.sampler import PosteriorSampler, StanSampler


@dataclasses.dataclass
class AnalysisResults:
    """Outputs of every stage of one analysis run.

    :ivar config: Configuration of the run
    :ivar observations: The observed data
    :ivar prior_draws: Draws from the priors
    :ivar posterior: Posterior draws
    :ivar intervals: Posterior predictive intervals over the query grid, in the
        encoding of the run
    :ivar summary: Posterior summary table
    :ivar diagnostics: MCMC diagnostic report, or None when the sampler did not
        provide a chain structure
    """

    config: AnalysisConfig
    observations: Observations
    prior_draws: PriorDraws
    posterior: PosteriorSamples
    intervals: pd.DataFrame
    summary: pd.DataFrame
    diagnostics: Optional[DiagnosticReport] = None

    def save(self, output_dir: str, save_netcdf: bool = False) -> list[str]:
        """Write every table of the run to ``output_dir``.

        File names are prefixed with the predictor encoding, so the results of
        both encodings can share a directory.

        :param output_dir: Existing output directory
        :type output_dir: str
        :param save_netcdf: Whether to also write the posterior, with its chain
            structure, as NetCDF. Defaults to False.
        :type save_netcdf: bool

        :returns: Paths of the written files
        :rtype: list[str]

        :raises FileNotFoundError: If ``output_dir`` does not exist
        """
        if not os.path.isdir(output_dir):
            raise FileNotFoundError(f"Output directory {output_dir} does not exist.")

        def build_path(name: str) -> str:
            return os.path.join(output_dir, f"{self.encoding.value}_{name}")

        written = []

        config_path = build_path("config.json")
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(self.config.as_dict(), f, indent=2)
        written.append(config_path)

        tables = {
            "prior_draws.csv": self.prior_draws.to_dataframe(),
            "predictive_intervals.csv": self.intervals,
            "summary.csv": self.summary,
        }
        if self.diagnostics is not None:
            tables["diagnostics.csv"] = self.diagnostics.to_dataframe()
        for name, table in tables.items():
            path = build_path(name)
            table.to_csv(path, index=name in {"summary.csv", "diagnostics.csv"})
            written.append(path)

        posterior_path = build_path("posterior.csv")
        self.posterior.to_csv(posterior_path)
        written.append(posterior_path)

        if save_netcdf:
            netcdf_path = build_path("posterior.nc")
            self.posterior.save_netcdf(netcdf_path)
            written.append(netcdf_path)

        return written

    @property
    def encoding(self) -> PredictorEncoding:
        """Predictor encoding of the run."""
        return self.config.predictor_encoding


def run_analysis(
    observations: Observations,
    config: Optional[AnalysisConfig] = None,
    sampler: Optional[PosteriorSampler] = None,
    diagnose: bool = True,
    silent: bool = False,
    progress: bool = False,
) -> AnalysisResults:
    """Run the full analysis for the encoding selected in ``config``.

    :param observations: Observed data
    :type observations: Observations
    :param config: Run configuration. Defaults to None (default configuration).
    :type config: Optional[AnalysisConfig]
    :param sampler: Posterior sampler. Defaults to None (a new
        :py:class:`~ablationstan.model.sampler.StanSampler`).
    :type sampler: Optional[PosteriorSampler]
    :param diagnose: Whether to run MCMC diagnostics. Defaults to True.
    :type diagnose: bool
    :param silent: Whether to suppress the printed diagnostic summary. Defaults to
        False.
    :type silent: bool
    :param progress: Whether to show a progress bar for predictive simulation.
        Defaults to False.
    :type progress: bool

    :returns: Outputs of all stages
    :rtype: AnalysisResults

    :raises SamplingFailure: If posterior sampling fails. No partial results are
        returned.
    """
    config = config or AnalysisConfig()
    sampler = sampler or StanSampler()
    priors = config.priors

    # Prior simulation
    prior_draws = simulate_prior(config.draw_count, priors, seed=config.seed)

    # Posterior sampling
    posterior = sampler.sample(
        observations,
        config.predictor_encoding,
        priors,
        chains=config.chains,
        warmup_iters=config.warmup_iters,
        total_iters=config.total_iters,
        seed=config.effective_sampler_seed,
    )

    # Diagnostics need the chain structure
    diagnostics = None
    if diagnose and posterior.inference_obj is not None:
        diagnostics = posterior.diagnose(silent=silent)

    # Posterior predictive intervals over the grid, in the encoding of the run
    intervals = predictive_intervals(
        posterior,
        config.query_values,
        seed=config.seed,
        quantiles=config.interval_quantiles,
        progress=progress,
    )

    return AnalysisResults(
        config=config,
        observations=observations,
        prior_draws=prior_draws,
        posterior=posterior,
        intervals=intervals,
        summary=posterior.summary(),
        diagnostics=diagnostics,
    )


def compare_encodings(
    observations: Observations,
    config: Optional[AnalysisConfig] = None,
    sampler: Optional[PosteriorSampler] = None,
    **kwargs,
) -> dict[PredictorEncoding, AnalysisResults]:
    """Run the analysis once per predictor encoding.

    The two runs share every setting except the encoding, and share the sampler
    (so the Stan model compiles once).

    :param kwargs: Passed through to :py:func:`run_analysis`

    :returns: Results keyed by encoding
    :rtype: dict[PredictorEncoding, AnalysisResults]
    """
    config = config or AnalysisConfig()
    sampler = sampler or StanSampler()
    return {
        encoding: run_analysis(
            observations,
            config.replace(predictor_encoding=encoding),
            sampler=sampler,
            **kwargs,
        )
        for encoding in PredictorEncoding
    }


def compare_intervals(
    results: dict[PredictorEncoding, AnalysisResults],
    query_values: Iterable[custom_types.Float],
    seed: custom_types.SeedType = None,
) -> pd.DataFrame:
    """Predictive intervals of each encoding at the same raw predictor values.

    :param results: Results keyed by encoding, as from :py:func:`compare_encodings`
    :type results: dict[PredictorEncoding, AnalysisResults]
    :param query_values: Predictor values in raw units
    :type query_values: Iterable[custom_types.Float]
    :param seed: Seed for the predictive simulation of every encoding. Defaults to
        None (the seed of each run's configuration).
    :type seed: custom_types.SeedType

    :returns: Table with a ``query`` column and ``lower_<encoding>`` and
        ``upper_<encoding>`` columns per encoding
    :rtype: pd.DataFrame
    """
    query_values = list(query_values)
    combined = pd.DataFrame({"query": pd.Series(query_values, dtype=float)})
    for encoding, res in results.items():
        intervals = predictive_intervals(
            res.posterior,
            query_values,
            seed=res.config.seed if seed is None else seed,
            quantiles=res.config.interval_quantiles,
            queries_are_encoded=False,
        )
        combined[f"lower_{encoding.value}"] = intervals["lower"].to_numpy()
        combined[f"upper_{encoding.value}"] = intervals["upper"].to_numpy()
    return combined
