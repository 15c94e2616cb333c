# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Stan code generation and compilation for the linear regression model.

This module translates a :py:class:`~ablationstan.model.priors.PriorSpecification`
into a Stan program for the model

.. math::
    \\begin{align*}
    y_i &\\sim \\text{Normal}(\\alpha + \\beta x_i, \\sigma)
    \\end{align*}

and manages compilation and execution of that program through CmdStanPy.

Prior hyperparameters and the bounds of bounded priors are passed to Stan as
data rather than written into the program, so the generated code depends only on
the *families* of the three priors. One compiled executable therefore serves
every configuration that shares prior families, and executables are cached in
the output directory under a name derived from the families.

Users will not normally interact with this module directly. Instead, they will use
:py:class:`~ablationstan.model.sampler.StanSampler`, which builds a
:py:class:`StanModel` on demand.
"""

from __future__ import annotations

import os.path
import weakref

from tempfile import TemporaryDirectory
from typing import Any, Optional

import numpy as np

from cmdstanpy import CmdStanMCMC, CmdStanModel

from ablationstan import custom_types
from ablationstan.config import PredictorEncoding
from ablationstan.data import Observations
from ablationstan.defaults import (
    DEFAULT_CPP_OPTIONS,
    DEFAULT_FORCE_COMPILE,
    DEFAULT_MODEL_NAME,
    DEFAULT_STANC_OPTIONS,
)
from ablationstan.model.priors import PriorSpecification

# Spaces per indentation level in generated Stan code
DEFAULT_INDENTATION = 4

CENTERED_INTERCEPT = "centered_intercept"
"""Name of the sampled intercept: the expected outcome at the mean predictor value."""


class LinearRegressionProgram:
    """Stan program for a single-predictor linear regression with Gaussian noise.

    :param priors: Priors on intercept, slope, and sigma. Only their families
        affect the generated code.
    :type priors: PriorSpecification

    The intercept prior is a prior on the expected outcome at the mean predictor
    value, whatever the encoding of ``x``. The program therefore always samples
    that centered intercept and recovers the intercept of the requested encoding
    afterwards, which makes the raw and centered fits the same model. The program
    has five blocks:

    - ``data``: the number of observations, predictor ``x``, outcome ``y``, the
      mean ``x_mean`` of the predictor as passed in (zero for the centered
      encoding), and one real-valued entry per prior hyperparameter
    - ``transformed data``: the centered predictor ``x_centered``
    - ``parameters``: ``centered_intercept``, ``slope``, and ``sigma``, each
      declared with the bounds of its prior's support
    - ``model``: one sampling statement per prior plus the likelihood
    - ``generated quantities``: ``intercept``, the intercept for ``x`` as passed in
    """

    def __init__(self, priors: PriorSpecification):
        self.priors = priors

    @staticmethod
    def combine_lines(lines: list[str], indentation_level: int = 1) -> str:
        """Indent and join lines of Stan code."""
        indentation = " " * DEFAULT_INDENTATION * indentation_level
        return "\n".join(indentation + line for line in lines)

    def _write_block(self, block_name: str, lines: list[str]) -> str:
        return f"{block_name} {{\n{self.combine_lines(lines)}\n}}"

    @staticmethod
    def _sampled_name(name: str) -> str:
        """Name of the Stan parameter carrying the prior of ``name``."""
        return CENTERED_INTERCEPT if name == "intercept" else name

    @property
    def data_block(self) -> str:
        """Declarations of observed data and prior hyperparameters."""
        lines = ["int<lower=1> N;", "vector[N] x;", "vector[N] y;", "real x_mean;"]
        for name, prior in self.priors.items():
            for hyperparam, stan_name in zip(
                prior.hyperparameters, prior.stan_args(name)
            ):
                bound = "<lower=0>" if hyperparam in prior.POSITIVE_PARAMS else ""
                lines.append(f"real{bound} {stan_name};")
        return self._write_block("data", lines)

    @property
    def transformed_data_block(self) -> str:
        """The predictor centered on its mean."""
        return self._write_block(
            "transformed data", ["vector[N] x_centered = x - x_mean;"]
        )

    @property
    def parameters_block(self) -> str:
        """Declarations of the three parameters, bounded by their prior supports."""
        return self._write_block(
            "parameters",
            [
                f"real{prior.stan_bounds(name)} {self._sampled_name(name)};"
                for name, prior in self.priors.items()
            ],
        )

    @property
    def model_block(self) -> str:
        """Prior statements followed by the likelihood."""
        lines = [
            prior.stan_statement(name, target=self._sampled_name(name))
            for name, prior in self.priors.items()
        ]
        lines.append(
            f"y ~ normal({CENTERED_INTERCEPT} + slope * x_centered, sigma);"
        )
        return self._write_block("model", lines)

    @property
    def generated_quantities_block(self) -> str:
        """The intercept in the encoding of ``x``."""
        return self._write_block(
            "generated quantities",
            [f"real intercept = {CENTERED_INTERCEPT} - slope * x_mean;"],
        )

    @property
    def code(self) -> str:
        """The complete Stan program."""
        return (
            "\n".join(
                (
                    self.data_block,
                    self.transformed_data_block,
                    self.parameters_block,
                    self.model_block,
                    self.generated_quantities_block,
                )
            )
            + "\n"
        )

    @property
    def name(self) -> str:
        """Name of the program, unique per combination of prior families."""
        return "_".join((DEFAULT_MODEL_NAME,) + self.priors.families)


def gather_inputs(
    observations: Observations,
    encoding: PredictorEncoding | str,
    priors: PriorSpecification,
) -> dict[str, Any]:
    """Build the Stan data dictionary.

    :param observations: Observed predictor and outcome values
    :type observations: Observations
    :param encoding: Whether the raw or the mean-centered predictor is used
    :type encoding: Union[PredictorEncoding, str]
    :param priors: Priors whose hyperparameters are passed as data
    :type priors: PriorSpecification

    :returns: Data dictionary for ``CmdStanModel.sample``
    :rtype: dict[str, Any]
    """
    encoding = PredictorEncoding.parse(encoding)
    data = {
        "N": len(observations),
        "x": np.asarray(observations.encode_predictor(encoding)),
        "y": np.asarray(observations.outcome),
        "x_mean": (
            observations.predictor_mean if encoding is PredictorEncoding.RAW else 0.0
        ),
    }
    data.update(priors.stan_data())
    return data


class StanModel(CmdStanModel):
    """CmdStanModel for the linear regression, generated from a prior specification.

    :param priors: Priors used to generate the program
    :type priors: PriorSpecification
    :param output_dir: Directory for the Stan program, executable, and sampler
        output. Defaults to None (a temporary directory living as long as this
        object).
    :type output_dir: Optional[str]
    :param force_compile: Whether to force recompilation. Defaults to False.
    :type force_compile: bool
    :param stanc_options: Options for the Stan compiler. Defaults to None (uses
        defaults).
    :type stanc_options: Optional[dict[str, Any]]
    :param cpp_options: Options for C++ compilation. Defaults to None (uses defaults).
    :type cpp_options: Optional[dict[str, Any]]

    :ivar program: Generated LinearRegressionProgram instance
    :ivar output_dir: Directory containing Stan files
    :ivar stan_executable_path: Path to compiled Stan executable

    :raises FileNotFoundError: If ``output_dir`` does not exist
    """

    def __init__(
        self,
        priors: PriorSpecification,
        output_dir: Optional[str] = None,
        force_compile: bool = DEFAULT_FORCE_COMPILE,
        stanc_options: Optional[dict[str, Any]] = None,
        cpp_options: Optional[dict[str, Any]] = None,
    ):
        # Set default options
        self._stanc_options = dict(stanc_options or DEFAULT_STANC_OPTIONS)
        cpp_options = dict(cpp_options or DEFAULT_CPP_OPTIONS)

        # Build the program
        self.program = LinearRegressionProgram(priors)

        # Set the output directory and the executable path
        self._set_output_dir(output_dir)
        self.stan_executable_path = os.path.join(self.output_dir, self.program.name)

        # Write the Stan program. An unchanged program is not rewritten.
        self.write_stan_program()

        # Initialize the CmdStanModel
        super().__init__(
            stan_file=self.stan_program_path,
            exe_file=(
                self.stan_executable_path
                if os.path.exists(self.stan_executable_path) and not force_compile
                else None
            ),
            force_compile=force_compile,
            stanc_options=self._stanc_options,
            cpp_options=cpp_options or None,
        )

    def _set_output_dir(self, output_dir: Optional[str]) -> None:
        """Configure output directory with automatic cleanup for temporary directories.

        :raises FileNotFoundError: If specified directory doesn't exist
        """
        # Make a temporary directory if none is specified. Set up a weak reference
        # to clean up the temporary directory when the model is deleted.
        if output_dir is None:
            tempdir = TemporaryDirectory()
            weakref.finalize(self, tempdir.cleanup)
            output_dir = tempdir.name

        if not os.path.exists(output_dir):
            raise FileNotFoundError(f"Output directory {output_dir} does not exist.")

        self.output_dir = os.path.abspath(output_dir)

    def write_stan_program(self) -> None:
        """Write the generated Stan program to disk."""
        code = self.code()
        if os.path.exists(self.stan_program_path):
            with open(self.stan_program_path, "r", encoding="utf-8") as f:
                if f.read() == code:
                    return

        with open(self.stan_program_path, "w", encoding="utf-8") as f:
            f.write(code)

    def code(self) -> str:
        """Get the complete Stan program code."""
        return self.program.code

    def sample(  # pylint: disable=arguments-differ
        self,
        observations: Observations,
        encoding: PredictorEncoding | str,
        *,
        chains: custom_types.Integer,
        iter_warmup: custom_types.Integer,
        iter_sampling: custom_types.Integer,
        seed: custom_types.Integer,
        priors: Optional[PriorSpecification] = None,
        **kwargs,
    ) -> CmdStanMCMC:
        """Run the No-U-Turn sampler on the observations.

        :param observations: Observed data
        :type observations: Observations
        :param encoding: Predictor encoding
        :type encoding: Union[PredictorEncoding, str]
        :param chains: Number of chains, run in parallel processes
        :type chains: custom_types.Integer
        :param iter_warmup: Warmup iterations per chain
        :type iter_warmup: custom_types.Integer
        :param iter_sampling: Retained iterations per chain
        :type iter_sampling: custom_types.Integer
        :param seed: Sampler seed
        :type seed: custom_types.Integer
        :param priors: Priors whose hyperparameters are passed as data. Must share
            families with the priors the program was generated from. Defaults to
            those priors.
        :type priors: Optional[PriorSpecification]
        :param kwargs: Further keyword arguments for ``CmdStanModel.sample``

        :returns: The CmdStanPy fit
        :rtype: CmdStanMCMC

        :raises ValueError: If ``priors`` has different families than the program
        """
        priors = priors or self.program.priors
        if priors.families != self.program.priors.families:
            raise ValueError(
                f"Prior families {priors.families} do not match the compiled program "
                f"({self.program.priors.families})."
            )

        kwargs.setdefault("parallel_chains", chains)
        kwargs.setdefault("output_dir", self.output_dir)
        kwargs.setdefault("show_progress", False)

        return super().sample(
            data=gather_inputs(observations, encoding, priors),
            chains=int(chains),
            iter_warmup=int(iter_warmup),
            iter_sampling=int(iter_sampling),
            adapt_engaged=int(iter_warmup) > 0,
            seed=int(seed),
            **kwargs,
        )

    @property
    def stan_program_path(self) -> str:
        """Get path to the generated Stan program file."""
        return self.stan_executable_path + ".stan"
