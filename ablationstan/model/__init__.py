# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Model construction, sampling, and posterior analysis for AblationStan.

This subpackage holds everything between the observed data and the final
predictive intervals:

    - :py:mod:`~ablationstan.model.priors`: prior distributions on intercept, slope,
      and residual scale, and prior simulation
    - :py:mod:`~ablationstan.model.sampler`: the posterior sampler abstraction and
      its Stan implementation
    - :py:mod:`~ablationstan.model.stan`: Stan code generation and compilation
    - :py:mod:`~ablationstan.model.results`: posterior samples, summaries, and MCMC
      diagnostics
    - :py:mod:`~ablationstan.model.predictive`: posterior predictive simulation

Submodules are imported explicitly. Nothing is imported here so that the
lightweight modules can be used without loading CmdStanPy or ArviZ.
"""
