# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Stan probabilistic programming language integration for AblationStan.

This submodule turns a prior specification into a Stan program for the linear
regression, compiles it with CmdStan (caching the executable per combination of
prior families), and runs the No-U-Turn sampler on the observed data.

Importing this submodule imports CmdStanPy. A CmdStan installation is only needed
once a model is actually compiled.
"""

from ablationstan.model.stan.stan_model import (
    LinearRegressionProgram,
    StanModel,
    gather_inputs,
)
