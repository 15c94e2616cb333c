# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Tests for the command-line pipeline."""

import os

import pandas as pd
import pytest

from ablationstan.config import PredictorEncoding
from ablationstan.pipelines import fit_linear_model

from conftest import ConjugateSampler


@pytest.fixture(name="data_path")
def fixture_data_path(observations, tmp_path):
    path = tmp_path / "ablation.csv"
    observations.to_dataframe().to_csv(path, index=False)
    return str(path)


def test_parse_args_defaults(data_path, tmp_path):
    args = fit_linear_model.parse_args(
        ["--data", data_path, "--output_dir", str(tmp_path)]
    )
    assert args.encoding == "both"
    assert not args.force_compile
    config = fit_linear_model.build_config(args)
    assert config.total_iters == 41000
    assert config.prior_sigma == (0.0, 30.0)


def test_parse_args_overrides(data_path, tmp_path):
    args = fit_linear_model.parse_args(
        [
            "--data",
            data_path,
            "--output_dir",
            str(tmp_path),
            "--encoding",
            "centered",
            "--chains",
            "2",
            "--warmup_iters",
            "500",
            "--total_iters",
            "1500",
            "--prior_sigma",
            "0",
            "10",
        ]
    )
    config = fit_linear_model.build_config(args)
    assert config.chains == 2
    assert config.retained_iters == 1000
    assert config.prior_sigma == (0.0, 10.0)
    assert PredictorEncoding.parse(args.encoding) is PredictorEncoding.CENTERED


def test_check_args(data_path, tmp_path):
    args = fit_linear_model.parse_args(
        ["--data", str(tmp_path / "missing.csv"), "--output_dir", str(tmp_path)]
    )
    with pytest.raises(ValueError, match="Data file"):
        fit_linear_model.check_args(args)

    args = fit_linear_model.parse_args(
        ["--data", data_path, "--output_dir", str(tmp_path / "missing")]
    )
    with pytest.raises(ValueError, match="Output directory"):
        fit_linear_model.check_args(args)


def test_run_fit(data_path, tmp_path, monkeypatch):
    output_dir = tmp_path / "output"
    output_dir.mkdir()
    monkeypatch.setattr(
        fit_linear_model, "StanSampler", lambda **kwargs: ConjugateSampler()
    )
    args = fit_linear_model.parse_args(
        [
            "--data",
            data_path,
            "--output_dir",
            str(output_dir),
            "--warmup_iters",
            "100",
            "--total_iters",
            "600",
            "--query_start",
            "0",
            "--query_stop",
            "50",
            "--query_step",
            "5",
        ]
    )
    fit_linear_model.check_args(args)
    fit_linear_model.run_fit(args)

    files = set(os.listdir(output_dir))
    for encoding in ("raw", "centered"):
        assert f"{encoding}_posterior.csv" in files
        assert f"{encoding}_summary.csv" in files

    comparison = pd.read_csv(output_dir / "interval_comparison.csv")
    assert len(comparison) == 11
    assert {"lower_raw", "upper_centered"} <= set(comparison.columns)
