# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Posterior samples of the regression parameters and their analysis.

This module provides :py:class:`PosteriorSamples`, the table of joint posterior
draws of (intercept, slope, sigma) produced by a
:py:class:`~ablationstan.model.sampler.PosteriorSampler`, together with the
tools used to analyze it:

    - Summary statistics (mean, error, equal-tailed credible interval)
    - MCMC convergence diagnostics (R-hat, ESS, divergences, E-BFMI)
    - Conversion between the raw and centered predictor encodings
    - Lossless CSV serialization and NetCDF serialization with chain structure

When the samples come from Stan, the ArviZ ``InferenceData`` object holding the
chain/draw structure and the sampler statistics is kept in ``inference_obj``,
allowing further analysis with ArviZ directly.

Example:
    >>> res = sampler.sample(observations, "centered", priors, chains=4,
    ...                      warmup_iters=1000, total_iters=2000, seed=4)
    >>> res.summary()
    >>> report = res.diagnose()
    >>> res.to_csv("posterior.csv")
"""

from __future__ import annotations

import dataclasses
import json
import os
import warnings

from typing import Any, Optional, Sequence

import arviz as az
import numpy as np
import numpy.typing as npt
import pandas as pd
import xarray as xr

from ablationstan import custom_types
from ablationstan.config import PredictorEncoding
from ablationstan.defaults import (
    DEFAULT_CREDIBLE_INTERVAL,
    DEFAULT_EBFMI_THRESH,
    DEFAULT_ESS_THRESH,
    DEFAULT_RHAT_THRESH,
)
from ablationstan.exceptions import ConvergenceWarning, InvalidArgument

PARAMETER_NAMES: tuple[str, str, str] = ("intercept", "slope", "sigma")
"""Column names of a posterior sample table, in order."""

_METADATA_PREFIX = "# "


@dataclasses.dataclass(frozen=True)
class DiagnosticReport:
    """Outcome of the MCMC diagnostics for one posterior.

    :ivar variable_stats: Dataset of R-hat, bulk ESS, and tail ESS per parameter,
        stacked along a ``metric`` dimension
    :ivar variable_tests: Dataset of booleans, True where a parameter failed the
        test for a metric
    :ivar n_divergent: Number of divergent transitions, or None when the sampler
        statistics are unavailable
    :ivar ebfmi: E-BFMI per chain, or None when the sampler statistics are
        unavailable
    :ivar thresholds: Thresholds used for the tests
    """

    variable_stats: xr.Dataset
    variable_tests: xr.Dataset
    n_divergent: Optional[int]
    ebfmi: Optional[npt.NDArray]
    thresholds: dict[str, float]

    def failures(self) -> list[str]:
        """Human-readable descriptions of every failed test."""
        messages = []
        for metric in self.variable_tests.metric.values.tolist():
            failed = [
                varname
                for varname, flag in self.variable_tests.sel(metric=metric).items()
                if bool(flag.values)
            ]
            if failed:
                messages.append(f"{metric} test failed for {', '.join(failed)}")
        if self.n_divergent:
            messages.append(f"{self.n_divergent} divergent transitions")
        if self.ebfmi is not None and np.any(
            self.ebfmi < self.thresholds["ebfmi"]
        ):
            n_low = int(np.sum(self.ebfmi < self.thresholds["ebfmi"]))
            messages.append(f"{n_low} of {len(self.ebfmi)} chains had a low E-BFMI")
        return messages

    def report(self) -> None:
        """Print a summary of the diagnostic results."""
        header = "Diagnostic tests results' summaries:"
        print(header)
        print("-" * len(header))
        for metric in self.variable_stats.metric.values.tolist():
            values = ", ".join(
                f"{varname}={float(value.values):.3f}"
                for varname, value in self.variable_stats.sel(metric=metric).items()
            )
            print(f"{metric}: {values}")
        if self.n_divergent is not None:
            print(f"divergent transitions: {self.n_divergent}")
        if self.ebfmi is not None:
            print(f"E-BFMI per chain: {np.round(self.ebfmi, 3).tolist()}")
        failures = self.failures()
        print("All tests passed." if not failures else "; ".join(failures) + ".")

    def to_dataframe(self) -> pd.DataFrame:
        """Per-parameter diagnostic statistics as a table."""
        return (
            self.variable_stats.to_array(dim="parameter")
            .to_pandas()
            .loc[list(PARAMETER_NAMES)]
        )

    @property
    def passed(self) -> bool:
        """Whether every diagnostic test passed."""
        return not self.failures()


class PosteriorSamples:
    """Joint posterior draws of intercept, slope, and sigma.

    :param draws: Table with columns intercept, slope, and sigma, one row per
        retained draw. Draws from several chains are concatenated in chain order.
    :type draws: pd.DataFrame
    :param encoding: Predictor encoding the model was fitted with
    :type encoding: Union[PredictorEncoding, str]
    :param predictor_mean: Sample mean of the observed predictor, used to translate
        between encodings
    :type predictor_mean: custom_types.Float
    :param inference_obj: ArviZ object holding the chain structure and sampler
        statistics. Defaults to None.
    :type inference_obj: Optional[az.InferenceData]

    :raises InvalidArgument: If a parameter column is missing
    """

    def __init__(
        self,
        draws: pd.DataFrame,
        encoding: PredictorEncoding | str,
        predictor_mean: custom_types.Float,
        inference_obj: Optional[az.InferenceData] = None,
    ):
        if missing := [name for name in PARAMETER_NAMES if name not in draws.columns]:
            raise InvalidArgument(f"Posterior draws are missing columns {missing}.")

        self._draws = (
            draws.loc[:, list(PARAMETER_NAMES)].astype(np.float64).reset_index(drop=True)
        )
        self.encoding = PredictorEncoding.parse(encoding)
        self.predictor_mean = float(predictor_mean)
        self.inference_obj = inference_obj

    @classmethod
    def from_inference_data(
        cls,
        inference_obj: az.InferenceData,
        encoding: PredictorEncoding | str,
        predictor_mean: custom_types.Float,
    ) -> "PosteriorSamples":
        """Build posterior samples from an ArviZ object.

        Draws are flattened in (chain, draw) order, so retained iterations of the
        first chain come first.
        """
        posterior = inference_obj.posterior  # pylint: disable=no-member
        draws = pd.DataFrame(
            {
                name: np.asarray(
                    posterior[name].transpose("chain", "draw").values
                ).reshape(-1)
                for name in PARAMETER_NAMES
            }
        )
        return cls(draws, encoding, predictor_mean, inference_obj=inference_obj)

    def __len__(self) -> int:
        return len(self._draws)

    def __repr__(self) -> str:
        return (
            f"PosteriorSamples(n={len(self)}, encoding={self.encoding.value!r}, "
            f"predictor_mean={self.predictor_mean!r})"
        )

    def _with_draws(self, draws: pd.DataFrame) -> "PosteriorSamples":
        """New instance with the same metadata but different draws."""
        return PosteriorSamples(draws, self.encoding, self.predictor_mean)

    def head(self, n: custom_types.Integer = 1000) -> "PosteriorSamples":
        """The first ``n`` draws (without chain structure)."""
        return self._with_draws(self._draws.iloc[: int(n)])

    def subset(self, rows: slice) -> "PosteriorSamples":
        """A contiguous sub-range of the draws (without chain structure)."""
        return self._with_draws(self._draws.iloc[rows])

    def to_encoding(self, encoding: PredictorEncoding | str) -> "PosteriorSamples":
        """Reparametrize the draws for another predictor encoding.

        Slope and sigma are unchanged. The intercept moves between the outcome at a
        predictor value of zero (raw) and at the mean predictor value (centered).
        """
        encoding = PredictorEncoding.parse(encoding)
        if encoding is self.encoding:
            return self

        draws = self.draws
        shift = draws["slope"] * self.predictor_mean
        if encoding is PredictorEncoding.RAW:
            draws["intercept"] = draws["intercept"] - shift
        else:
            draws["intercept"] = draws["intercept"] + shift
        return PosteriorSamples(draws, encoding, self.predictor_mean)

    def encode_query(
        self, query_values: Sequence[custom_types.Float] | npt.NDArray
    ) -> custom_types.FloatArray:
        """Translate raw predictor values into this posterior's encoding."""
        query_values = np.asarray(query_values, dtype=np.float64)
        if self.encoding is PredictorEncoding.CENTERED:
            return query_values - self.predictor_mean
        return query_values

    def summary(
        self, interval: custom_types.Float = DEFAULT_CREDIBLE_INTERVAL
    ) -> pd.DataFrame:
        """Per-parameter posterior summary.

        :param interval: Mass of the equal-tailed credible interval. Defaults to 0.95.
        :type interval: custom_types.Float

        :returns: Table indexed by parameter with columns mean, sd, lower, upper
        :rtype: pd.DataFrame

        :raises InvalidArgument: If ``interval`` is not between 0 and 1
        """
        if not 0 < interval < 1:
            raise InvalidArgument(
                f"`interval` must be between 0 and 1, got {interval}."
            )
        tail = (1 - interval) / 2
        quantiles = self._draws.quantile([tail, 1 - tail])
        summary = pd.DataFrame(
            {
                "mean": self._draws.mean(),
                "sd": self._draws.std(ddof=1),
                "lower": quantiles.iloc[0],
                "upper": quantiles.iloc[1],
            }
        )
        summary.index.name = "parameter"
        return summary

    def diagnose(
        self,
        r_hat_thresh: custom_types.Float = DEFAULT_RHAT_THRESH,
        ess_thresh: custom_types.Float = DEFAULT_ESS_THRESH,
        ebfmi_thresh: custom_types.Float = DEFAULT_EBFMI_THRESH,
        silent: bool = False,
    ) -> DiagnosticReport:
        """Run the MCMC diagnostics.

        :param r_hat_thresh: R-hat threshold for convergence. Defaults to 1.01.
        :type r_hat_thresh: custom_types.Float
        :param ess_thresh: ESS threshold per chain. Defaults to 100.
        :type ess_thresh: custom_types.Float
        :param ebfmi_thresh: E-BFMI threshold. Defaults to 0.2.
        :type ebfmi_thresh: custom_types.Float
        :param silent: Whether to suppress the printed summary. Defaults to False.
        :type silent: bool

        :returns: The diagnostic report
        :rtype: DiagnosticReport

        :raises ValueError: If there is no chain structure to diagnose

        Failure Conditions:
        - **R-hat**: Split R-hat statistic >= threshold (poor convergence)
        - **ESS Bulk**: Bulk effective sample size <= threshold x n_chains
        - **ESS Tail**: Tail effective sample size <= threshold x n_chains
        - **Divergence**: Any divergent transition
        - **E-BFMI**: Any chain below the E-BFMI threshold

        A :py:class:`~ablationstan.exceptions.ConvergenceWarning` is issued when any
        test fails. Nothing is raised for failed tests.
        """
        if self.inference_obj is None:
            raise ValueError(
                "Diagnostics need the chain structure of the samples, which is not "
                "available (e.g., the samples were loaded from CSV)."
            )

        # pylint: disable=no-member
        posterior = self.inference_obj.posterior[list(PARAMETER_NAMES)]
        n_chains = posterior.sizes["chain"]

        # Variable-level statistics
        variable_stats = xr.concat(
            [
                az.rhat(posterior).assign_coords(metric="r_hat"),
                az.ess(posterior, method="bulk").assign_coords(metric="ess_bulk"),
                az.ess(posterior, method="tail").assign_coords(metric="ess_tail"),
            ],
            dim="metric",
        )
        variable_tests = xr.concat(
            [
                variable_stats.sel(metric="r_hat") >= r_hat_thresh,
                variable_stats.sel(metric="ess_bulk") <= ess_thresh * n_chains,
                variable_stats.sel(metric="ess_tail") <= ess_thresh * n_chains,
            ],
            dim="metric",
        )

        # Sample-level statistics are only available from Stan fits
        n_divergent, ebfmi = None, None
        if "sample_stats" in self.inference_obj.groups():
            sample_stats = self.inference_obj.sample_stats
            if "diverging" in sample_stats:
                n_divergent = int(sample_stats["diverging"].sum().item())
            if "energy" in sample_stats:
                ebfmi = np.asarray(az.bfmi(self.inference_obj))
        # pylint: enable=no-member

        report = DiagnosticReport(
            variable_stats=variable_stats,
            variable_tests=variable_tests,
            n_divergent=n_divergent,
            ebfmi=ebfmi,
            thresholds={
                "r_hat": float(r_hat_thresh),
                "ess": float(ess_thresh),
                "ebfmi": float(ebfmi_thresh),
            },
        )

        if not silent:
            report.report()
        if failures := report.failures():
            warnings.warn(
                "MCMC diagnostics indicate the chains may not have converged: "
                + "; ".join(failures)
                + ". Consider more warmup iterations or a different sigma prior.",
                ConvergenceWarning,
            )

        return report

    def to_csv(self, path: str | os.PathLike) -> None:
        """Write the draws to a CSV file.

        Values are written with their shortest round-trip representation, so
        :py:meth:`from_csv` reproduces them exactly. The encoding and predictor mean
        are stored in a leading comment line.
        """
        metadata = {
            "predictor_encoding": self.encoding.value,
            "predictor_mean": self.predictor_mean,
        }
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(_METADATA_PREFIX + json.dumps(metadata) + "\n")
            self._draws.to_csv(f, index=False)

    @classmethod
    def from_csv(cls, path: str | os.PathLike) -> "PosteriorSamples":
        """Load draws written by :py:meth:`to_csv`.

        :raises FileNotFoundError: If the file does not exist
        :raises ValueError: If the metadata line is missing or malformed
        """
        if not os.path.exists(path):
            raise FileNotFoundError(f"Posterior file {path} does not exist.")

        with open(path, "r", encoding="utf-8") as f:
            first_line = f.readline()
            if not first_line.startswith(_METADATA_PREFIX):
                raise ValueError(f"{path} is not a posterior sample file.")
            try:
                metadata = json.loads(first_line[len(_METADATA_PREFIX) :])
            except json.JSONDecodeError as err:
                raise ValueError(f"Malformed metadata line in {path}.") from err
            draws = pd.read_csv(f, float_precision="round_trip")

        return cls(
            draws,
            metadata["predictor_encoding"],
            metadata["predictor_mean"],
        )

    def save_netcdf(self, path: str | os.PathLike) -> None:
        """Write the samples, with chain structure if available, to NetCDF."""
        inference_obj = self.inference_obj
        if inference_obj is None:
            inference_obj = az.from_dict(
                posterior={
                    name: self._draws[name].to_numpy()[None, :]
                    for name in PARAMETER_NAMES
                }
            )
        # Metadata goes on a copy of the posterior group
        groups = {
            group: getattr(inference_obj, group) for group in inference_obj.groups()
        }
        groups["posterior"] = groups["posterior"].copy()
        groups["posterior"].attrs.update(self.metadata())
        az.InferenceData(**groups).to_netcdf(str(path))

    @classmethod
    def from_netcdf(cls, path: str | os.PathLike) -> "PosteriorSamples":
        """Load samples written by :py:meth:`save_netcdf`.

        :raises FileNotFoundError: If the file does not exist
        """
        if not os.path.exists(path):
            raise FileNotFoundError(f"Posterior file {path} does not exist.")

        # If the path to the netcdf file does not end with ".nc", raise a warning
        if not str(path).endswith(".nc"):
            warnings.warn(f"The file {path} does not end with '.nc'.")

        inference_obj = az.from_netcdf(str(path), engine="h5netcdf")
        attrs = inference_obj.posterior.attrs  # pylint: disable=no-member
        return cls.from_inference_data(
            inference_obj, attrs["predictor_encoding"], attrs["predictor_mean"]
        )

    @property
    def draws(self) -> pd.DataFrame:
        """Copy of the draws table."""
        return self._draws.copy()

    @property
    def intercept(self) -> custom_types.FloatArray:
        """Intercept draws."""
        return self._draws["intercept"].to_numpy()

    @property
    def slope(self) -> custom_types.FloatArray:
        """Slope draws."""
        return self._draws["slope"].to_numpy()

    @property
    def sigma(self) -> custom_types.FloatArray:
        """Residual scale draws."""
        return self._draws["sigma"].to_numpy()

    @property
    def n_chains(self) -> Optional[int]:
        """Number of chains, if the chain structure is known."""
        if self.inference_obj is None:
            return None
        return int(self.inference_obj.posterior.sizes["chain"])  # pylint: disable=no-member

    def metadata(self) -> dict[str, Any]:
        """Encoding and predictor mean, as stored alongside serialized draws."""
        return {
            "predictor_encoding": self.encoding.value,
            "predictor_mean": self.predictor_mean,
        }
