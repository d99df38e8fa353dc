"""
Input checks shared by the target-processing and regression entry points.

All checks run eagerly, before any numerical work, and raise ``DepInferInputError`` rather
than coercing questionable input. Matrices are normalised to ``pandas.DataFrame`` so that
drug, protein and sample labels travel with the numbers.
"""

from __future__ import annotations

import numbers
from typing import Iterable, Sequence

import numpy as np
import pandas as pd


LAMBDA_RULES: tuple[str, ...] = ("lambda.min", "lambda.1se")


class DepInferInputError(ValueError):
    """Raised when caller-supplied matrices or options are rejected."""


class DegenerateClusteringError(DepInferInputError):
    """Raised when target reduction would collapse the protein axis to a single column."""


class EnsembleFitError(RuntimeError):
    """Raised when the sparse regression solver fails for any repeat."""


def as_matrix(
    data: pd.DataFrame | np.ndarray,
    *,
    name: str,
    row_prefix: str = "drug",
    col_prefix: str = "col",
    allow_missing: bool = False,
) -> pd.DataFrame:
    """
    Coerce a 2-D numeric matrix into a float ``DataFrame`` copy.

    Plain arrays get default labels (``{row_prefix}_0``, ``{col_prefix}_0``, ...). Labels are
    converted to ``str`` and must be unique on both axes.
    """
    if isinstance(data, pd.DataFrame):
        df = data.copy()
    elif isinstance(data, np.ndarray):
        if data.ndim != 2:
            raise DepInferInputError(f"{name} must be a 2-D matrix; got shape {data.shape}")
        df = pd.DataFrame(
            data,
            index=[f"{row_prefix}_{i}" for i in range(data.shape[0])],
            columns=[f"{col_prefix}_{j}" for j in range(data.shape[1])],
        )
    else:
        raise DepInferInputError(
            f"{name} must be a pandas.DataFrame or 2-D numpy array; got {type(data).__name__}"
        )

    if df.shape[0] == 0 or df.shape[1] == 0:
        raise DepInferInputError(f"{name} must be non-empty; got shape {df.shape}")

    non_numeric = [c for c, dtype in df.dtypes.items() if not pd.api.types.is_numeric_dtype(dtype)]
    if non_numeric:
        raise DepInferInputError(f"{name} has non-numeric columns: {non_numeric[:5]}")

    df.index = df.index.map(str)
    df.columns = df.columns.map(str)
    for axis_name, labels in (("row", df.index), ("column", df.columns)):
        if labels.has_duplicates:
            dupes = sorted(labels[labels.duplicated()].unique().tolist())
            raise DepInferInputError(f"{name} has duplicate {axis_name} labels: {dupes[:5]}")

    values = df.to_numpy(dtype=float)
    if np.isinf(values).any():
        raise DepInferInputError(f"{name} contains infinite values")
    if not allow_missing and np.isnan(values).any():
        raise DepInferInputError(f"{name} contains missing values")
    return df.astype(float)


def check_cutoff(cutoff: float) -> float:
    if isinstance(cutoff, bool) or not isinstance(cutoff, numbers.Real):
        raise DepInferInputError(f"cutoff must be a real number in [0, 1]; got {cutoff!r}")
    value = float(cutoff)
    if not (0.0 <= value <= 1.0):
        raise DepInferInputError(f"cutoff must lie in [0, 1]; got {value}")
    return value


def check_positive_int(value: int, *, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise DepInferInputError(f"{name} must be a positive integer; got {value!r}")
    if int(value) < 1:
        raise DepInferInputError(f"{name} must be a positive integer; got {int(value)}")
    return int(value)


def check_lambda_rule(rule: str) -> str:
    if rule not in LAMBDA_RULES:
        raise DepInferInputError(f"lambda_rule must be one of {list(LAMBDA_RULES)}; got {rule!r}")
    return rule


def check_keep(keep: Iterable[str] | None, available: Sequence[str]) -> list[str]:
    """Validate ``keep`` against the available protein ids, preserving caller order."""
    if keep is None:
        return []
    if isinstance(keep, str):
        keep = [keep]
    keep_list: list[str] = []
    for protein in keep:
        protein = str(protein)
        if protein not in keep_list:
            keep_list.append(protein)
    available_set = set(map(str, available))
    unknown = [p for p in keep_list if p not in available_set]
    if unknown:
        raise DepInferInputError(f"keep references unknown protein ids: {unknown}")
    return keep_list


def check_aligned(target_matrix: pd.DataFrame, response_matrix: pd.DataFrame) -> None:
    """Require identical drug rows (count, identity and order) in both matrices."""
    n_x, n_y = target_matrix.shape[0], response_matrix.shape[0]
    if n_x != n_y:
        raise DepInferInputError(
            f"target and response matrices must have the same number of drugs; got {n_x} vs {n_y}"
        )
    if not target_matrix.index.equals(response_matrix.index):
        x_only = sorted(set(target_matrix.index) - set(response_matrix.index))
        y_only = sorted(set(response_matrix.index) - set(target_matrix.index))
        if not x_only and not y_only:
            raise DepInferInputError("target and response matrices list the same drugs in a different order")
        raise DepInferInputError(
            "target and response matrices have different drugs: "
            f"only in targets={x_only[:5]}, only in responses={y_only[:5]}"
        )


def check_folds(folds: int, n_drugs: int) -> int:
    folds = check_positive_int(folds, name="folds")
    if folds < 2:
        raise DepInferInputError(f"folds must be at least 2; got {folds}")
    if folds > n_drugs:
        raise DepInferInputError(
            f"cannot run {folds}-fold cross-validation with only {n_drugs} drugs"
        )
    return folds
