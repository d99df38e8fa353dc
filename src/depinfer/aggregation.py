"""Aggregation of repeated LASSO fits into dependency coefficient and frequency matrices."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np
import pandas as pd

from .lasso_ensemble import LassoFit


@dataclass(frozen=True)
class DependencyResult:
    """
    Stabilised protein dependency estimates.

    Attributes:
        coef_mat: proteins x samples median coefficient across repeats.
        freq_mat: proteins x samples fraction of repeats with a non-zero coefficient.
        lambda_list: (R,) selected penalty per repeat, in repeat order.
        var_explained: (R,) variance explained per repeat, in repeat order.
        input_x: drug x protein matrix used for fitting.
        input_y: drug x sample matrix used for fitting.
    """

    coef_mat: pd.DataFrame
    freq_mat: pd.DataFrame
    lambda_list: np.ndarray
    var_explained: np.ndarray
    input_x: pd.DataFrame
    input_y: pd.DataFrame

    @property
    def n_repeats(self) -> int:
        return int(self.lambda_list.shape[0])

    def to_long(self) -> pd.DataFrame:
        """Tidy table with one row per (protein, sample)."""
        frames = []
        for name, mat in (("coef", self.coef_mat), ("freq", self.freq_mat)):
            frames.append(
                mat.rename_axis(index="protein")
                .reset_index()
                .melt(id_vars="protein", var_name="sample", value_name=name)
            )
        return frames[0].merge(frames[1], on=["protein", "sample"], how="inner")

    def repeats_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "repeat": np.arange(self.n_repeats, dtype=int),
                "lambda": self.lambda_list,
                "var_explained": self.var_explained,
            }
        )


def stack_coefficients(fits: Sequence[LassoFit]) -> np.ndarray:
    """Stack per-repeat coefficients into a (protein, sample, repeat) array."""
    if len(fits) == 0:
        raise ValueError("at least one fit is required for aggregation")
    shapes = {np.shape(f.coef) for f in fits}
    if len(shapes) != 1:
        raise ValueError(f"coefficient matrices differ in shape across repeats: {sorted(shapes)}")
    return np.stack([np.asarray(f.coef, dtype=float) for f in fits], axis=-1)


def aggregate_lasso_fits(
    fits: Sequence[LassoFit],
    target_matrix: pd.DataFrame,
    response_matrix: pd.DataFrame,
) -> DependencyResult:
    """Median coefficients and selection frequencies over repeats, labelled by protein/sample."""
    coefs = stack_coefficients(fits)
    expected = (target_matrix.shape[1], response_matrix.shape[1])
    if coefs.shape[:2] != expected:
        raise ValueError(
            f"coefficient shape {coefs.shape[:2]} does not match proteins x samples {expected}"
        )

    coef_mat = np.median(coefs, axis=-1)
    freq_mat = np.mean(coefs != 0.0, axis=-1)
    return DependencyResult(
        coef_mat=pd.DataFrame(coef_mat, index=target_matrix.columns, columns=response_matrix.columns),
        freq_mat=pd.DataFrame(freq_mat, index=target_matrix.columns, columns=response_matrix.columns),
        lambda_list=np.asarray([f.lambda_ for f in fits], dtype=float),
        var_explained=np.asarray([f.var_explained for f in fits], dtype=float),
        input_x=target_matrix.copy(),
        input_y=response_matrix.copy(),
    )
