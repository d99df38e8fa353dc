"""Run configuration for the DepInfeR pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Tuple

from .validation import (
    DepInferInputError,
    check_cutoff,
    check_lambda_rule,
    check_positive_int,
)


@dataclass(frozen=True)
class DepInferConfig:
    """
    Options for target pre-processing and the LASSO ensemble.

    Attributes:
        transform: apply the -log10 / arctan Kd transform to the affinity matrix.
        dedupe: collapse proteins with cosine similarity >= cutoff.
        keep: protein ids that must stay as columns (and lead the priority order).
        cutoff: cosine similarity threshold in [0, 1].
        repeats: number of independent cross-validated fits.
        folds: cross-validation folds per fit.
        lambda_rule: "lambda.min" or "lambda.1se".
        standardize: standardize predictors inside each fit.
        n_jobs: joblib workers for the repeats (-1 = all cores).
        seed: root seed for fold assignment; None draws fresh entropy.
    """

    transform: bool = True
    dedupe: bool = True
    keep: Tuple[str, ...] = ()
    cutoff: float = 0.8
    repeats: int = 100
    folds: int = 3
    lambda_rule: str = "lambda.min"
    standardize: bool = False
    n_jobs: int | None = 1
    seed: int | None = None

    def validate(self) -> "DepInferConfig":
        check_cutoff(self.cutoff)
        check_positive_int(self.repeats, name="repeats")
        check_positive_int(self.folds, name="folds")
        check_lambda_rule(self.lambda_rule)
        if self.folds < 2:
            raise DepInferInputError(f"folds must be at least 2; got {self.folds}")
        if self.n_jobs == 0:
            raise DepInferInputError("n_jobs must be non-zero")
        return self

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["keep"] = list(self.keep)
        return payload
