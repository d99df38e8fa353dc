"""End-to-end tests for the DepInfeR pipeline."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

import depinfer.pipeline as pipeline
from depinfer.config import DepInferConfig
from depinfer.pipeline import run_depinfer, run_lasso_regression
from depinfer.validation import DepInferInputError


def _problem(n_drugs: int = 10, n_proteins: int = 5, n_samples: int = 3, seed: int = 0):
    rng = np.random.default_rng(seed)
    drugs = [f"drug{i}" for i in range(n_drugs)]
    x = pd.DataFrame(
        rng.uniform(0.0, 1.0, size=(n_drugs, n_proteins)),
        index=drugs,
        columns=[f"prot{j}" for j in range(n_proteins)],
    )
    beta = np.zeros((n_proteins, n_samples))
    beta[1] = 1.5
    beta[4] = -1.0
    y = pd.DataFrame(
        x.to_numpy() @ beta + rng.normal(scale=0.05, size=(n_drugs, n_samples)),
        index=drugs,
        columns=[f"sample{k}" for k in range(n_samples)],
    )
    return x, y


def test_result_bundle_shapes_for_five_repeats() -> None:
    x, y = _problem()
    result = run_lasso_regression(x, y, repeats=5, seed=0)

    assert result.coef_mat.shape == (5, 3)
    assert result.freq_mat.shape == (5, 3)
    assert len(result.lambda_list) == 5
    assert len(result.var_explained) == 5
    assert list(result.coef_mat.index) == list(x.columns)
    assert list(result.coef_mat.columns) == list(y.columns)
    pd.testing.assert_frame_equal(result.input_x, x)
    pd.testing.assert_frame_equal(result.input_y, y)


def test_frequency_matches_nonzero_pattern() -> None:
    x, y = _problem(n_drugs=15, seed=1)
    result = run_lasso_regression(x, y, repeats=4, seed=3)
    freq = result.freq_mat.to_numpy()

    assert np.all((freq >= 0.0) & (freq <= 1.0))
    assert np.all(np.isclose(freq * 4, np.round(freq * 4)))
    never_selected = freq == 0.0
    assert np.all(result.coef_mat.to_numpy()[never_selected] == 0.0)


def test_seeded_runs_are_reproducible() -> None:
    x, y = _problem(seed=2)
    first = run_lasso_regression(x, y, repeats=3, seed=5)
    second = run_lasso_regression(x, y, repeats=3, seed=5)
    np.testing.assert_allclose(first.lambda_list, second.lambda_list)
    pd.testing.assert_frame_equal(first.coef_mat, second.coef_mat)


def test_strong_dependency_is_recovered() -> None:
    x, y = _problem(n_drugs=40, seed=4)
    result = run_lasso_regression(x, y, repeats=3, seed=0)
    assert np.all(result.coef_mat.loc["prot1"] > 0.5)
    assert np.all(result.freq_mat.loc["prot1"] == 1.0)
    assert np.all(result.var_explained > 0.8)


def test_mismatched_rows_rejected_before_regression(monkeypatch: pytest.MonkeyPatch) -> None:
    x, y = _problem()

    def fail(*args, **kwargs):
        raise AssertionError("regression must not run")

    monkeypatch.setattr(pipeline, "run_lasso_ensemble", fail)
    with pytest.raises(DepInferInputError, match="same number of drugs"):
        run_lasso_regression(x, y.iloc[:-1], repeats=2)
    with pytest.raises(DepInferInputError, match="different order"):
        run_lasso_regression(x, y.iloc[::-1], repeats=2)
    renamed = y.rename(index={"drug0": "other"})
    with pytest.raises(DepInferInputError, match="different drugs"):
        run_lasso_regression(x, renamed, repeats=2)


def test_invalid_regression_options() -> None:
    x, y = _problem()
    with pytest.raises(DepInferInputError, match="repeats"):
        run_lasso_regression(x, y, repeats=0)
    with pytest.raises(DepInferInputError, match="lambda_rule"):
        run_lasso_regression(x, y, repeats=1, lambda_rule="lambda.max")
    with pytest.raises(DepInferInputError, match="only 10 drugs"):
        run_lasso_regression(x, y, repeats=1, folds=11)
    with pytest.raises(DepInferInputError, match="missing"):
        x_nan = x.copy()
        x_nan.iloc[0, 0] = np.nan
        run_lasso_regression(x_nan, y, repeats=1)
    with pytest.raises(DepInferInputError, match="2-D"):
        run_lasso_regression(np.ones(10), y, repeats=1)


def test_run_depinfer_from_kd_values() -> None:
    rng = np.random.default_rng(7)
    drugs = [f"drug{i}" for i in range(24)]
    kd = pd.DataFrame(
        10.0 ** rng.uniform(0.0, 4.0, size=(24, 4)),
        index=drugs,
        columns=["ABL1", "KIT", "FLT3", "BTK"],
    )
    kd["ABL1_dup"] = kd["ABL1"]
    kd.iloc[2, 1] = np.nan
    affinity = (np.arctan((-np.log10(kd.fillna(1e10)) + 2) * 3) + np.pi / 2) / np.pi
    response = pd.DataFrame(
        {"p1": 2.0 * affinity["BTK"], "p2": 1.5 * affinity["FLT3"]},
        index=drugs,
    ) + rng.normal(scale=0.02, size=(24, 2))

    config = DepInferConfig(cutoff=0.999, repeats=3, seed=1)
    processed, result = run_depinfer(kd, response, config)

    assert "ABL1" in processed.target_matrix.columns
    assert "ABL1_dup" not in processed.target_matrix.columns
    assert any(set(c.members) == {"ABL1", "ABL1_dup"} for c in processed.target_clusters)
    assert result.coef_mat.shape == (processed.target_matrix.shape[1], 2)
    assert np.all((processed.target_matrix.to_numpy() > 0) & (processed.target_matrix.to_numpy() < 1))
    assert result.coef_mat.loc["BTK", "p1"] > 0.0


def test_run_depinfer_checks_alignment_before_processing(monkeypatch: pytest.MonkeyPatch) -> None:
    x, y = _problem()

    def fail(*args, **kwargs):
        raise AssertionError("targets must not be processed")

    monkeypatch.setattr(pipeline, "process_targets", fail)
    with pytest.raises(DepInferInputError):
        run_depinfer(x, y.iloc[:-2], DepInferConfig(transform=False, repeats=2))


def test_config_validation() -> None:
    with pytest.raises(DepInferInputError, match="cutoff"):
        DepInferConfig(cutoff=-0.1).validate()
    with pytest.raises(DepInferInputError, match="folds"):
        DepInferConfig(folds=1).validate()
    payload = DepInferConfig(keep=("ABL1",), seed=3).to_dict()
    assert payload["keep"] == ["ABL1"]
    assert payload["repeats"] == 100
