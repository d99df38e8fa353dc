"""
Repeated cross-validated multi-response LASSO.

The solver boundary is ``fit_multitask_lasso_cv``: one scikit-learn ``MultiTaskLassoCV`` fit
(group-L1 penalty across samples, i.e. glmnet's ``mgaussian`` family with ``alpha=1``) with a
shuffled K-fold split, penalty chosen by ``lambda.min`` or ``lambda.1se``.

``run_lasso_ensemble`` repeats that fit with independent fold assignments and returns the raw
per-repeat results in repeat order. Repeats share no mutable state and run through a joblib
``Parallel`` map unless another executor is supplied.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Callable, List, Sequence

from joblib import Parallel, delayed
import numpy as np
from sklearn.linear_model import MultiTaskLasso, MultiTaskLassoCV
from sklearn.model_selection import KFold
from sklearn.preprocessing import StandardScaler

from .validation import DepInferInputError, EnsembleFitError, check_lambda_rule, check_positive_int

logger = logging.getLogger(__name__)

Executor = Callable[[Callable[[int], "LassoFit"], Sequence[int]], List["LassoFit"]]

MAX_ITER: int = 10000


@dataclass(frozen=True)
class LassoFit:
    """Raw output of one cross-validated fit."""

    coef: np.ndarray  # (P, S) proteins x samples
    intercept: np.ndarray  # (S,)
    lambda_: float
    var_explained: float
    seed: int | None = None


def variance_explained(y: np.ndarray, y_hat: np.ndarray) -> float:
    """Pooled ``1 - RSS / TSS`` over all response columns; NaN if the response is constant."""
    y = np.asarray(y, dtype=float)
    rss = float(np.sum((y - y_hat) ** 2))
    tss = float(np.sum((y - y.mean(axis=0, keepdims=True)) ** 2))
    if tss <= 0.0:
        return float("nan")
    return 1.0 - rss / tss


def select_lambda_1se(alphas: np.ndarray, mse_path: np.ndarray) -> float:
    """Largest penalty whose mean CV error is within one standard error of the minimum."""
    alphas = np.asarray(alphas, dtype=float)
    mse_path = np.asarray(mse_path, dtype=float)
    n_folds = mse_path.shape[1]
    cv_mean = mse_path.mean(axis=1)
    cv_se = mse_path.std(axis=1, ddof=1) / np.sqrt(n_folds) if n_folds > 1 else np.zeros_like(cv_mean)
    i_min = int(np.argmin(cv_mean))
    within = cv_mean <= cv_mean[i_min] + cv_se[i_min]
    return float(np.max(alphas[within]))


def fit_multitask_lasso_cv(
    x: np.ndarray,
    y: np.ndarray,
    *,
    folds: int = 3,
    lambda_rule: str = "lambda.min",
    standardize: bool = False,
    seed: int | None = None,
) -> LassoFit:
    """
    One cross-validated multi-response LASSO fit.

    Parameters
    - x: (N, P) drug x protein predictors.
    - y: (N, S) drug x sample responses.
    - folds: number of CV folds (shuffled with ``seed``).
    - lambda_rule: "lambda.min" or "lambda.1se".
    - standardize: scale predictors to unit variance for fitting; coefficients are returned on
      the original scale.

    Returns
    - LassoFit with coef of shape (P, S).
    """
    check_lambda_rule(lambda_rule)
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if y.ndim == 1:
        y = y[:, None]

    scaler: StandardScaler | None = None
    x_fit = x
    if standardize:
        scaler = StandardScaler().fit(x)
        x_fit = scaler.transform(x)

    cv = KFold(n_splits=int(folds), shuffle=True, random_state=seed)
    model = MultiTaskLassoCV(cv=cv, fit_intercept=True, max_iter=MAX_ITER)
    model.fit(x_fit, y)

    alpha = float(model.alpha_)
    coef = np.asarray(model.coef_, dtype=float).T
    intercept = np.asarray(model.intercept_, dtype=float)
    if lambda_rule == "lambda.1se":
        alpha = select_lambda_1se(model.alphas_, model.mse_path_)
        refit = MultiTaskLasso(alpha=alpha, fit_intercept=True, max_iter=MAX_ITER).fit(x_fit, y)
        coef = np.asarray(refit.coef_, dtype=float).T
        intercept = np.asarray(refit.intercept_, dtype=float)

    if scaler is not None:
        coef = coef / scaler.scale_[:, None]
        intercept = intercept - scaler.mean_ @ coef

    y_hat = x @ coef + intercept[None, :]
    return LassoFit(
        coef=coef,
        intercept=intercept,
        lambda_=alpha,
        var_explained=variance_explained(y, y_hat),
        seed=seed,
    )


def joblib_executor(n_jobs: int | None = 1) -> Executor:
    """Ordered parallel map over repeat indices backed by ``joblib.Parallel``."""

    def _execute(fn: Callable[[int], LassoFit], indices: Sequence[int]) -> List[LassoFit]:
        return list(Parallel(n_jobs=n_jobs)(delayed(fn)(i) for i in indices))

    return _execute


def spawn_repeat_seeds(repeats: int, seed: int | None) -> list[int]:
    """Independent per-repeat CV seeds derived from one root seed."""
    children = np.random.SeedSequence(seed).spawn(repeats)
    return [int(child.generate_state(1)[0]) for child in children]


class _RepeatTask:
    """Picklable per-repeat callable; holds read-only inputs only."""

    def __init__(
        self,
        x: np.ndarray,
        y: np.ndarray,
        seeds: Sequence[int],
        *,
        folds: int,
        lambda_rule: str,
        standardize: bool,
    ) -> None:
        self.x = x
        self.y = y
        self.seeds = list(seeds)
        self.folds = folds
        self.lambda_rule = lambda_rule
        self.standardize = standardize

    def __call__(self, i: int) -> LassoFit:
        try:
            return fit_multitask_lasso_cv(
                self.x,
                self.y,
                folds=self.folds,
                lambda_rule=self.lambda_rule,
                standardize=self.standardize,
                seed=self.seeds[i],
            )
        except Exception as exc:
            raise EnsembleFitError(f"LASSO fit failed in repeat {i}: {exc}") from exc


def run_lasso_ensemble(
    x: np.ndarray,
    y: np.ndarray,
    *,
    repeats: int,
    folds: int = 3,
    lambda_rule: str = "lambda.min",
    standardize: bool = False,
    n_jobs: int | None = 1,
    executor: Executor | None = None,
    seed: int | None = None,
) -> List[LassoFit]:
    """
    Run ``repeats`` independent cross-validated fits of ``y ~ x``.

    Results are ordered by repeat index regardless of completion order. Any failed repeat
    aborts the whole call with ``EnsembleFitError``.
    """
    repeats = check_positive_int(repeats, name="repeats")
    check_lambda_rule(lambda_rule)
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if y.ndim == 1:
        y = y[:, None]
    if x.shape[0] != y.shape[0]:
        raise DepInferInputError(f"x and y must have the same number of rows; got {x.shape[0]} vs {y.shape[0]}")

    seeds = spawn_repeat_seeds(repeats, seed)
    task = _RepeatTask(x, y, seeds, folds=folds, lambda_rule=lambda_rule, standardize=standardize)
    run = executor if executor is not None else joblib_executor(n_jobs)

    logger.info(
        "Running %d LASSO repeats (%d drugs, %d proteins, %d samples, %d-fold CV, %s)",
        repeats,
        x.shape[0],
        x.shape[1],
        y.shape[1],
        folds,
        lambda_rule,
    )
    try:
        fits = list(run(task, list(range(repeats))))
    except EnsembleFitError:
        raise
    except Exception as exc:
        raise EnsembleFitError(f"LASSO ensemble failed: {exc}") from exc

    if len(fits) != repeats:
        raise EnsembleFitError(f"executor returned {len(fits)} results for {repeats} repeats")
    logger.debug("Selected lambdas: %s", [round(f.lambda_, 6) for f in fits])
    return fits
