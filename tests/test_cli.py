"""Tests for the depinfer command-line entry point."""

from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from depinfer import cli


def _write_inputs(tmp_path: Path) -> tuple[Path, Path]:
    rng = np.random.default_rng(0)
    drugs = [f"drug{i}" for i in range(18)]
    scores = pd.DataFrame(
        rng.uniform(0.05, 0.95, size=(18, 4)), index=drugs, columns=["ABL1", "KIT", "FLT3", "BTK"]
    )
    scores["KIT_like"] = scores["KIT"]
    responses = pd.DataFrame(
        {"s1": 1.5 * scores["BTK"], "s2": -scores["ABL1"]}, index=drugs
    ) + rng.normal(scale=0.02, size=(18, 2))
    targets_csv = tmp_path / "targets.csv"
    responses_csv = tmp_path / "responses.csv"
    scores.to_csv(targets_csv)
    responses.to_csv(responses_csv)
    return targets_csv, responses_csv


def test_cli_writes_result_tables(tmp_path: Path) -> None:
    targets_csv, responses_csv = _write_inputs(tmp_path)
    outdir = tmp_path / "out"

    cli.main(
        [
            "--targets",
            str(targets_csv),
            "--responses",
            str(responses_csv),
            "--output-dir",
            str(outdir),
            "--no-transform",
            "--cutoff",
            "0.99",
            "--repeats",
            "3",
            "--seed",
            "1",
        ]
    )

    coef = pd.read_csv(outdir / "coef_mat.csv", index_col=0)
    freq = pd.read_csv(outdir / "freq_mat.csv", index_col=0)
    repeats = pd.read_csv(outdir / "repeats.csv")
    clusters = json.loads((outdir / "target_clusters.json").read_text())
    config = json.loads((outdir / "config.json").read_text())

    assert list(coef.columns) == ["s1", "s2"]
    assert coef.shape == freq.shape == (4, 2)
    assert clusters == {"KIT": ["KIT_like"]}
    assert list(repeats.columns) == ["repeat", "lambda", "var_explained"]
    assert len(repeats) == 3
    assert config["repeats"] == 3
    assert config["transform"] is False
    assert (outdir / "target_matrix.csv").exists()


def test_cli_requires_inputs() -> None:
    with pytest.raises(SystemExit):
        cli.parse_args(["--targets", "t.csv"])


def test_cli_reports_missing_file(tmp_path: Path) -> None:
    _, responses_csv = _write_inputs(tmp_path)
    with pytest.raises(SystemExit, match="Input not found"):
        cli.main(
            [
                "--targets",
                str(tmp_path / "absent.csv"),
                "--responses",
                str(responses_csv),
                "--output-dir",
                str(tmp_path / "out"),
            ]
        )
