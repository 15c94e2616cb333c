# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
AblationStan: Bayesian linear regression of ablation temperature data with Stan.

AblationStan fits a single-predictor linear regression with Gaussian noise, such
as tissue temperature against ablation time, and propagates the posterior into
predictions. The predictor can enter the model as observed or centered on its
sample mean, and both variants run through the same pipeline so that they can be
compared directly.

Key Features:
    - Prior simulation for prior predictive checks
    - Posterior sampling with Stan, behind a pluggable sampler interface
    - Automated MCMC diagnostics (R-hat, ESS, divergences, E-BFMI)
    - Posterior predictive intervals over a grid of predictor values
    - Lossless serialization of posterior samples
    - Type-safe interfaces with comprehensive runtime type checking

There is no global random state. Every stage takes its seed from an
:py:class:`~ablationstan.config.AnalysisConfig` or an explicit argument.

Example:
    >>> import ablationstan as abl
    >>> obs = abl.load_observations("abl_data_2.csv")
    >>> config = abl.AnalysisConfig(predictor_encoding="centered")
    >>> results = abl.run_analysis(obs, config)
    >>> results.intervals.head()
"""

from typeguard import install_import_hook

# Define the version
__version__ = "0.1.0"

# Set up type checking
install_import_hook("ablationstan")

# Import objects that should be easily accessible from the package level
# pylint: disable=wrong-import-position
from ablationstan import utils
from ablationstan.config import AnalysisConfig, PredictorEncoding
from ablationstan.data import Observations, load_observations, simulate_observations
from ablationstan.exceptions import (
    AblationStanError,
    ConvergenceWarning,
    DataError,
    InvalidArgument,
    SamplingFailure,
)
from ablationstan.model.priors import PriorSpecification, simulate_prior

# Lazy imports for performance
analysis = utils.lazy_import("ablationstan.analysis")
predictive = utils.lazy_import("ablationstan.model.predictive")
results = utils.lazy_import("ablationstan.model.results")
sampler = utils.lazy_import("ablationstan.model.sampler")


def run_analysis(*args, **kwargs):
    """Shortcut for :py:func:`ablationstan.analysis.run_analysis`."""
    return analysis.run_analysis(*args, **kwargs)


def compare_encodings(*args, **kwargs):
    """Shortcut for :py:func:`ablationstan.analysis.compare_encodings`."""
    return analysis.compare_encodings(*args, **kwargs)
