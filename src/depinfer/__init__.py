"""
DepInfeR: inferring sample-specific protein dependencies

Relates ex-vivo drug response profiles (drug x sample) to drug-protein affinities
(drug x protein) with repeated, cross-validated multi-response LASSO to estimate a sparse
protein x sample dependency matrix and per-entry selection frequencies.
"""

__version__ = "1.0.0"

from .aggregation import DependencyResult, aggregate_lasso_fits
from .config import DepInferConfig
from .lasso_ensemble import LassoFit, fit_multitask_lasso_cv, run_lasso_ensemble
from .pipeline import run_depinfer, run_lasso_regression
from .target_processing import (
    ProcessedTargets,
    TargetCluster,
    cosine_similarity_matrix,
    process_targets,
    transform_affinity,
)
from .validation import DegenerateClusteringError, DepInferInputError, EnsembleFitError

__all__ = [
    "DepInferConfig",
    "DependencyResult",
    "LassoFit",
    "ProcessedTargets",
    "TargetCluster",
    "DepInferInputError",
    "DegenerateClusteringError",
    "EnsembleFitError",
    "aggregate_lasso_fits",
    "cosine_similarity_matrix",
    "fit_multitask_lasso_cv",
    "process_targets",
    "run_depinfer",
    "run_lasso_ensemble",
    "run_lasso_regression",
    "transform_affinity",
]
