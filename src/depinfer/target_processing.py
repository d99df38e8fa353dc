"""
Pre-processing of the drug-protein affinity matrix.

Two optional steps, applied in order:
  - Kd transform: ``-log10(Kd)``, missing values filled with a very weak pKd (-10), then an
    arctan squashing into (0, 1) so strong binders sit near 1 and weak/missing near 0.
  - Redundancy reduction: proteins whose affinity profiles across drugs are nearly parallel
    (cosine similarity >= cutoff) are collapsed onto one representative column.

Representatives are chosen by priority: caller-specified ``keep`` proteins first, then
proteins by total affinity (column sum, descending). A Ward dendrogram over ``1 - cosine``
is built alongside the grouping for reporting.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Iterable, List, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy.cluster.hierarchy import leaves_list, linkage
from scipy.spatial.distance import squareform

from .validation import (
    DegenerateClusteringError,
    DepInferInputError,
    as_matrix,
    check_cutoff,
    check_keep,
)

logger = logging.getLogger(__name__)

# pKd assigned to drug-protein pairs without a measured Kd.
MISSING_PKD: float = -10.0
ARCTAN_SHIFT: float = 2.0
ARCTAN_GAIN: float = 3.0
# Absolute slack on the similarity comparison so identical profiles merge at cutoff=1.
SIMILARITY_TOL: float = 1e-12


@dataclass(frozen=True)
class TargetCluster:
    """A group of redundant proteins collapsed onto ``representative`` (listed first)."""

    representative: str
    members: Tuple[str, ...]

    @property
    def merged(self) -> Tuple[str, ...]:
        """Members dropped from the reduced matrix."""
        return tuple(m for m in self.members if m != self.representative)


@dataclass(frozen=True)
class ProcessedTargets:
    """Output of ``process_targets``."""

    target_matrix: pd.DataFrame  # drugs x retained proteins
    target_clusters: List[TargetCluster] = field(default_factory=list)
    similarity: pd.DataFrame | None = None  # proteins x proteins cosine similarity
    linkage: np.ndarray | None = None  # (P-1, 4) Ward linkage over ``similarity`` order
    priority: Tuple[str, ...] = ()

    def cluster_map(self) -> dict[str, Tuple[str, ...]]:
        """Map each representative to all proteins it stands for (itself included)."""
        mapping = {str(p): (str(p),) for p in self.target_matrix.columns}
        for cluster in self.target_clusters:
            mapping[cluster.representative] = cluster.members
        return mapping


def arctan_transform(x: np.ndarray, *, b: float = ARCTAN_SHIFT, g: float = ARCTAN_GAIN) -> np.ndarray:
    """Map the real line monotonically onto (0, 1): ``(atan((x + b) * g) + pi/2) / pi``."""
    return (np.arctan((np.asarray(x, dtype=float) + b) * g) + np.pi / 2.0) / np.pi


def transform_affinity(targets: pd.DataFrame | np.ndarray) -> pd.DataFrame:
    """
    Convert raw Kd values into bounded affinity scores.

    Missing Kd values become ``MISSING_PKD`` on the -log10 scale before squashing. Kd values
    must be strictly positive.
    """
    df = as_matrix(targets, name="targets", col_prefix="protein", allow_missing=True)
    kd = df.to_numpy(dtype=float)
    measured = ~np.isnan(kd)
    if np.any(kd[measured] <= 0.0):
        raise DepInferInputError("Kd values must be strictly positive before log-transform")

    pkd = np.full_like(kd, MISSING_PKD)
    pkd[measured] = -np.log10(kd[measured])
    n_missing = int((~measured).sum())
    if n_missing:
        logger.debug("Filled %d missing Kd values with pKd=%s", n_missing, MISSING_PKD)
    return pd.DataFrame(arctan_transform(pkd), index=df.index, columns=df.columns)


def cosine_similarity_matrix(targets: pd.DataFrame) -> pd.DataFrame:
    """
    Pairwise cosine similarity between protein columns.

    Proteins with an all-zero profile have similarity 0 to every other protein and 1 to
    themselves.
    """
    values = targets.to_numpy(dtype=float)
    if np.isnan(values).any():
        raise DepInferInputError(
            "targets contain missing values; transform or impute before computing similarity"
        )
    gram = values.T @ values
    norms = np.sqrt(np.diag(gram))
    denom = np.outer(norms, norms)
    with np.errstate(divide="ignore", invalid="ignore"):
        sim = np.where(denom > 0.0, gram / denom, 0.0)
    sim = np.clip(sim, -1.0, 1.0)
    np.fill_diagonal(sim, 1.0)
    return pd.DataFrame(sim, index=targets.columns, columns=targets.columns)


def target_priority_order(targets: pd.DataFrame, keep: Sequence[str] = ()) -> list[str]:
    """
    Proteins ordered by importance: ``keep`` first (caller order), then by column sum
    descending. Ties keep the input column order.
    """
    sums = targets.sum(axis=0).to_numpy(dtype=float)
    order = np.argsort(-sums, kind="mergesort")
    ranked = [str(targets.columns[i]) for i in order]
    keep_list = [str(p) for p in keep]
    keep_set = set(keep_list)
    return keep_list + [p for p in ranked if p not in keep_set]


def ward_linkage(similarity: pd.DataFrame, *, method: str = "ward") -> np.ndarray | None:
    """Hierarchical linkage on ``1 - similarity``; ``None`` for fewer than two proteins."""
    if similarity.shape[0] < 2:
        return None
    dist = 1.0 - similarity.to_numpy(dtype=float)
    dist = np.clip((dist + dist.T) / 2.0, 0.0, None)
    np.fill_diagonal(dist, 0.0)
    return linkage(squareform(dist, checks=False), method=method)


def group_by_priority(
    similarity: pd.DataFrame,
    priority: Sequence[str],
    *,
    cutoff: float,
    keep: Iterable[str] = (),
) -> list[Tuple[str, ...]]:
    """
    Greedy priority-ordered grouping.

    Walking ``priority``, each protein not yet assigned opens a group as its representative
    and absorbs every unassigned protein (except ``keep`` proteins) whose similarity to it is
    at least ``cutoff``. Returns groups in priority order, representative first.
    """
    keep_set = set(keep)
    sim = similarity.loc[list(priority), list(priority)].to_numpy(dtype=float)
    threshold = cutoff - SIMILARITY_TOL
    assigned = np.zeros(len(priority), dtype=bool)
    groups: list[Tuple[str, ...]] = []
    for i, rep in enumerate(priority):
        if assigned[i]:
            continue
        assigned[i] = True
        members = [rep]
        for j in range(i + 1, len(priority)):
            if assigned[j] or priority[j] in keep_set:
                continue
            if sim[i, j] >= threshold:
                assigned[j] = True
                members.append(priority[j])
        groups.append(tuple(members))
    return groups


def _all_identical(similarity: pd.DataFrame, group: Tuple[str, ...]) -> bool:
    # A full collapse is only accepted when every profile points the same way.
    rep_sim = similarity.loc[group[0], list(group)].to_numpy(dtype=float)
    return bool(np.all(rep_sim >= 1.0 - SIMILARITY_TOL))


def remove_correlated_targets(
    targets: pd.DataFrame,
    *,
    cutoff: float = 0.8,
    keep: Sequence[str] = (),
    linkage_method: str = "ward",
) -> ProcessedTargets:
    """Collapse redundant protein columns of an (already transformed) affinity matrix."""
    similarity = cosine_similarity_matrix(targets)
    priority = target_priority_order(targets, keep)
    groups = group_by_priority(similarity, priority, cutoff=cutoff, keep=keep)

    n_proteins = targets.shape[1]
    if n_proteins >= 2 and len(groups) == 1 and not _all_identical(similarity, groups[0]):
        raise DegenerateClusteringError(
            f"cutoff={cutoff} collapses all {n_proteins} proteins into one target group "
            f"({groups[0][0]}); raise the cutoff or pass keep"
        )

    tree = ward_linkage(similarity, method=linkage_method)
    if tree is not None:
        # Report members in dendrogram order after the representative.
        leaf_rank = {str(similarity.index[k]): r for r, k in enumerate(leaves_list(tree))}
        groups = [(g[0], *sorted(g[1:], key=leaf_rank.__getitem__)) for g in groups]

    representatives = [g[0] for g in groups]
    clusters = [TargetCluster(representative=g[0], members=g) for g in groups if len(g) > 1]
    logger.info(
        "Reduced %d proteins to %d target columns (%d groups merged, cutoff=%.3f)",
        n_proteins,
        len(representatives),
        len(clusters),
        cutoff,
    )
    return ProcessedTargets(
        target_matrix=targets.loc[:, representatives].copy(),
        target_clusters=clusters,
        similarity=similarity,
        linkage=tree,
        priority=tuple(priority),
    )


def process_targets(
    targets: pd.DataFrame | np.ndarray,
    *,
    transform: bool = True,
    dedupe: bool = True,
    keep: Iterable[str] | None = None,
    cutoff: float = 0.8,
    linkage_method: str = "ward",
) -> ProcessedTargets:
    """
    Pre-process a drug x protein affinity matrix.

    Parameters
    - targets: drug x protein matrix of Kd values (``transform=True``) or affinity scores.
    - transform: apply the -log10 / arctan Kd transform.
    - dedupe: collapse proteins with cosine similarity >= ``cutoff`` onto one representative.
    - keep: protein ids that must remain as columns; they lead the priority order.
    - cutoff: cosine similarity threshold in [0, 1].
    - linkage_method: SciPy linkage method for the reported dendrogram.

    Returns
    - ProcessedTargets with the processed matrix and the merged target groups.
    """
    if not isinstance(transform, bool) or not isinstance(dedupe, bool):
        raise DepInferInputError("transform and dedupe must be booleans")
    cutoff = check_cutoff(cutoff)
    df = as_matrix(targets, name="targets", col_prefix="protein", allow_missing=True)
    keep_list = check_keep(keep, list(df.columns))

    if transform:
        df = transform_affinity(df)
    elif df.isna().to_numpy().any():
        raise DepInferInputError("targets contain missing values; only Kd input may be missing")

    if not dedupe:
        return ProcessedTargets(target_matrix=df)
    return remove_correlated_targets(df, cutoff=cutoff, keep=keep_list, linkage_method=linkage_method)
