"""
End-to-end entry points.

  - ``run_lasso_regression``: validate the affinity/response pair, run the LASSO ensemble
    and aggregate it into a ``DependencyResult``.
  - ``run_depinfer``: pre-process raw targets per ``DepInferConfig`` and then run the
    regression on the processed matrix.
"""

from __future__ import annotations

import logging
from typing import Tuple

import numpy as np
import pandas as pd

from .aggregation import DependencyResult, aggregate_lasso_fits
from .config import DepInferConfig
from .lasso_ensemble import Executor, run_lasso_ensemble
from .target_processing import ProcessedTargets, process_targets
from .validation import (
    as_matrix,
    check_aligned,
    check_folds,
    check_lambda_rule,
    check_positive_int,
)

logger = logging.getLogger(__name__)


def run_lasso_regression(
    target_matrix: pd.DataFrame | np.ndarray,
    response_matrix: pd.DataFrame | np.ndarray,
    *,
    repeats: int = 100,
    folds: int = 3,
    lambda_rule: str = "lambda.min",
    standardize: bool = False,
    n_jobs: int | None = 1,
    executor: Executor | None = None,
    seed: int | None = None,
) -> DependencyResult:
    """
    Infer per-sample protein dependency coefficients.

    Parameters
    - target_matrix: drug x protein affinity matrix (already pre-processed).
    - response_matrix: drug x sample viability matrix with the same drug rows.
    - repeats: number of cross-validated fits to aggregate.
    - folds, lambda_rule, standardize: per-fit solver options.
    - n_jobs / executor: parallel backend for the repeats.
    - seed: root seed for the per-repeat fold assignment.

    Returns
    - DependencyResult (coef_mat, freq_mat, lambda_list, var_explained, input_x, input_y).
    """
    repeats = check_positive_int(repeats, name="repeats")
    check_lambda_rule(lambda_rule)
    x = as_matrix(target_matrix, name="target_matrix", col_prefix="protein")
    y = as_matrix(response_matrix, name="response_matrix", col_prefix="sample")
    check_aligned(x, y)
    folds = check_folds(folds, x.shape[0])

    fits = run_lasso_ensemble(
        x.to_numpy(dtype=float),
        y.to_numpy(dtype=float),
        repeats=repeats,
        folds=folds,
        lambda_rule=lambda_rule,
        standardize=standardize,
        n_jobs=n_jobs,
        executor=executor,
        seed=seed,
    )
    result = aggregate_lasso_fits(fits, x, y)
    finite_r2 = result.var_explained[np.isfinite(result.var_explained)]
    logger.info(
        "Aggregated %d repeats: median lambda=%.4g, median variance explained=%.3f",
        result.n_repeats,
        float(np.median(result.lambda_list)),
        float(np.median(finite_r2)) if finite_r2.size else float("nan"),
    )
    return result


def run_depinfer(
    targets: pd.DataFrame | np.ndarray,
    responses: pd.DataFrame | np.ndarray,
    config: DepInferConfig | None = None,
    *,
    executor: Executor | None = None,
) -> Tuple[ProcessedTargets, DependencyResult]:
    """Pre-process ``targets`` and fit them against ``responses``."""
    config = (config or DepInferConfig()).validate()
    y = as_matrix(responses, name="responses", col_prefix="sample")
    x_raw = as_matrix(targets, name="targets", col_prefix="protein", allow_missing=True)
    # Drug rows must align before any processing.
    check_aligned(x_raw, y)
    check_folds(config.folds, x_raw.shape[0])

    processed = process_targets(
        x_raw,
        transform=config.transform,
        dedupe=config.dedupe,
        keep=list(config.keep),
        cutoff=config.cutoff,
    )
    result = run_lasso_regression(
        processed.target_matrix,
        y,
        repeats=config.repeats,
        folds=config.folds,
        lambda_rule=config.lambda_rule,
        standardize=config.standardize,
        n_jobs=config.n_jobs,
        executor=executor,
        seed=config.seed,
    )
    return processed, result
