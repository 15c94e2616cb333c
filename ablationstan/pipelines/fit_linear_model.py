# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Fits the Bayesian linear regression to a CSV of observations."""

from __future__ import annotations

import argparse
import dataclasses
import os.path

from ablationstan.analysis import compare_encodings, compare_intervals, run_analysis
from ablationstan.config import AnalysisConfig, PredictorEncoding
from ablationstan.data import load_observations
from ablationstan.defaults import DEFAULT_OUTCOME_COLUMN, DEFAULT_PREDICTOR_COLUMN
from ablationstan.model.sampler import StanSampler

# Configuration fields that take a single value on the command line
SCALAR_OPTIONS = {
    "seed": int,
    "draw_count": int,
    "chains": int,
    "warmup_iters": int,
    "total_iters": int,
    "sampler_seed": int,
    "query_start": float,
    "query_stop": float,
    "query_step": float,
}

# Configuration fields that take a pair of values on the command line
PAIR_OPTIONS = {
    "prior_intercept": ("MU", "SIGMA"),
    "prior_slope": ("MU", "SIGMA"),
    "prior_sigma": ("LOWER", "UPPER"),
    "interval_quantiles": ("LOWER", "UPPER"),
}


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Fit a Bayesian linear regression with Stan."
    )
    defaults = {
        field.name: field.default for field in dataclasses.fields(AnalysisConfig)
    }

    # A few required arguments
    required_group = parser.add_argument_group("required arguments")
    required_group.add_argument(
        "--data",
        type=str,
        required=True,
        help="Path to a CSV file holding the observations.",
    )
    required_group.add_argument(
        "--output_dir",
        type=str,
        required=True,
        help="Path to the folder where the output will be saved.",
    )

    # Now some optionals
    optional_group = parser.add_argument_group("optional arguments")
    optional_group.add_argument(
        "--predictor",
        type=str,
        default=DEFAULT_PREDICTOR_COLUMN,
        help=f"Name of the predictor column. Default = {DEFAULT_PREDICTOR_COLUMN}.",
    )
    optional_group.add_argument(
        "--outcome",
        type=str,
        default=DEFAULT_OUTCOME_COLUMN,
        help=f"Name of the outcome column. Default = {DEFAULT_OUTCOME_COLUMN}.",
    )
    optional_group.add_argument(
        "--encoding",
        type=str,
        choices=[encoding.value for encoding in PredictorEncoding] + ["both"],
        default="both",
        help="Predictor encoding(s) to fit. Default = both.",
    )
    optional_group.add_argument(
        "--force_compile",
        action="store_true",
        help="Force compilation of the model even if it is already compiled.",
    )
    optional_group.add_argument(
        "--save_netcdf",
        action="store_true",
        help="Also save the posterior, with its chain structure, as NetCDF.",
    )
    optional_group.add_argument(
        "--show_console",
        action="store_true",
        help="Stream the CmdStan console output.",
    )

    # Now the configuration values that can be overridden
    config_group = parser.add_argument_group(
        "configuration",
        description="Analysis configuration. Unset options keep their defaults.",
    )
    for name, type_ in SCALAR_OPTIONS.items():
        config_group.add_argument(
            f"--{name}",
            type=type_,
            default=None,
            help=f"Default = {defaults[name]}.",
        )
    for name, metavar in PAIR_OPTIONS.items():
        config_group.add_argument(
            f"--{name}",
            type=float,
            nargs=2,
            metavar=metavar,
            default=None,
            help=f"Default = {' '.join(str(v) for v in defaults[name])}.",
        )

    return parser.parse_args(argv)


def check_args(args: argparse.Namespace) -> None:
    """Checks command line arguments for validity."""
    # Data file must exist
    if not os.path.exists(args.data):
        raise ValueError(f"Data file does not exist: {args.data}.")

    # Output dir must exist
    if not os.path.exists(args.output_dir):
        raise ValueError(f"Output directory does not exist: {args.output_dir}.")


def build_config(args: argparse.Namespace) -> AnalysisConfig:
    """Builds the analysis configuration from the provided overrides."""
    return AnalysisConfig.from_dict(
        {
            name: getattr(args, name)
            for name in list(SCALAR_OPTIONS) + list(PAIR_OPTIONS)
        }
    )


def run_fit(args: argparse.Namespace) -> None:
    """Run the analysis for the requested encoding(s) and save the outputs."""
    # Prepare the run
    config = build_config(args)
    observations = load_observations(
        args.data, predictor=args.predictor, outcome=args.outcome
    )
    sampler = StanSampler(
        output_dir=args.output_dir,
        force_compile=args.force_compile,
        show_console=args.show_console,
    )
    print(f"Loaded {len(observations)} observations from {args.data}.")

    # Run the analysis
    if args.encoding == "both":
        print("Fitting the raw and centered models...")
        results = compare_encodings(observations, config, sampler=sampler)
    else:
        encoding = PredictorEncoding.parse(args.encoding)
        print(f"Fitting the {encoding.value} model...")
        results = {
            encoding: run_analysis(
                observations,
                config.replace(predictor_encoding=encoding),
                sampler=sampler,
            )
        }

    # Save the outputs
    print("Saving results...")
    for encoding, res in results.items():
        print(f"Posterior summary ({encoding.value}):")
        print(res.summary)
        res.save(args.output_dir, save_netcdf=args.save_netcdf)

    # When both models are fit, line up their intervals in raw units
    if len(results) > 1:
        comparison = compare_intervals(results, config.query_values)
        comparison.to_csv(
            os.path.join(args.output_dir, "interval_comparison.csv"), index=False
        )


def main():
    """Main function to fit the linear regression from the command line."""
    # Parse command line arguments
    args = parse_args()

    # Check arguments
    check_args(args)

    # Run the fit
    run_fit(args)


if __name__ == "__main__":
    main()
