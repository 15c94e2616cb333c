# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Default configuration values for AblationStan package components.

This module centralizes default values used across the AblationStan package,
including the prior settings of the ablation analysis, MCMC run lengths, the grid
of predictor values used for posterior predictive intervals, Stan compilation
options, and diagnostic thresholds.

The module is organized into logical groups covering:
    - Random seeds
    - Prior simulation and prior hyperparameters
    - MCMC sampling
    - Posterior predictive simulation
    - Input data column naming
    - Stan model compilation settings
    - Diagnostic thresholds for model validation

Default values cannot be programmatically altered. Use
:py:class:`~ablationstan.config.AnalysisConfig` to override them for a run.
"""

from typing import Any

# Seeds
DEFAULT_SEED: int = 1999
"""Default seed for prior simulation and posterior predictive simulation.

:type: int
"""

DEFAULT_SAMPLER_SEED: int = 4
"""Default seed passed to the Stan sampler.

:type: int
"""

# Prior simulation
DEFAULT_DRAW_COUNT: int = 150
"""Default number of prior predictive draws.

:type: int
"""

DEFAULT_PRIOR_INTERCEPT: tuple[float, float] = (75.0, 15.0)
"""Default (location, scale) of the normal prior on the intercept.

:type: tuple[float, float]
"""

DEFAULT_PRIOR_SLOPE: tuple[float, float] = (0.0, 0.8)
"""Default (location, scale) of the log-normal prior on the slope. Both values
refer to the underlying normal distribution on the log scale.

:type: tuple[float, float]
"""

DEFAULT_PRIOR_SIGMA: tuple[float, float] = (0.0, 30.0)
"""Default (lower, upper) bounds of the uniform prior on the residual scale.

:type: tuple[float, float]
"""

# MCMC
DEFAULT_CHAINS: int = 4
"""Default number of MCMC chains.

:type: int
"""

DEFAULT_WARMUP_ITERS: int = 40000
"""Default number of warmup iterations per chain. Uniform priors on the residual
scale are slow to mix, hence the long warmup.

:type: int
"""

DEFAULT_TOTAL_ITERS: int = 41000
"""Default total number of iterations per chain (warmup + retained).

:type: int
"""

# Posterior predictive
DEFAULT_QUERY_START: float = -15.0
"""First predictor value of the posterior predictive grid.

:type: float
"""

DEFAULT_QUERY_STOP: float = 60.0
"""Last predictor value of the posterior predictive grid (inclusive).

:type: float
"""

DEFAULT_QUERY_STEP: float = 1.0
"""Spacing of the posterior predictive grid.

:type: float
"""

DEFAULT_INTERVAL_QUANTILES: tuple[float, float] = (0.025, 0.975)
"""Quantiles bounding the pointwise posterior predictive interval.

:type: tuple[float, float]
"""

DEFAULT_CREDIBLE_INTERVAL: float = 0.95
"""Mass of the equal-tailed credible interval reported in posterior summaries.

:type: float
"""

# Input data
DEFAULT_PREDICTOR_COLUMN: str = "time"
"""Name of the predictor column in the input file.

:type: str
"""

DEFAULT_OUTCOME_COLUMN: str = "temp"
"""Name of the outcome column in the input file.

:type: str
"""

# Defaults for the Stan model
DEFAULT_FORCE_COMPILE: bool = False
"""Default setting for forcing Stan model recompilation.

When False, uses cached compiled models when available. When True,
forces recompilation even if a cached version exists.

:type: bool
"""

DEFAULT_STANC_OPTIONS: dict[str, Any] = {"warn-pedantic": True}
"""Default options passed to the Stan compiler (stanc).

:type: dict[str, bool]
"""

DEFAULT_CPP_OPTIONS: dict[str, Any] = {}
"""Default C++ compilation options for Stan models. Chains are run as separate
processes by CmdStan, so no threading support is requested.

:type: dict[str, Any]
"""

DEFAULT_MODEL_NAME: str = "linear_regression"
"""Default prefix for the names of generated Stan models.

:type: str
"""

# Defaults for Stan diagnostics
DEFAULT_EBFMI_THRESH: float = 0.2
"""Default threshold for Energy Bayesian Fraction of Missing Information (E-BFMI).

Values below this threshold may indicate inefficient sampling and
potential bias in MCMC results.

:type: float
"""

DEFAULT_ESS_THRESH: int = 100  # Per chain
"""Default threshold for Effective Sample Size (ESS) per chain.

Minimum effective sample size considered adequate for reliable
posterior inference from each MCMC chain.

:type: int
"""

DEFAULT_RHAT_THRESH: float = 1.01
"""Default threshold for R-hat convergence diagnostic.

Values above this threshold indicate potential convergence issues
in MCMC sampling across chains.

:type: float
"""
