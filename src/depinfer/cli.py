#!/usr/bin/env python3
"""
Run DepInfeR on CSV matrices.

Inputs are drug x protein (targets) and drug x sample (responses) CSVs with drug ids in the
first column.

Outputs under --output-dir:
  - coef_mat.csv, freq_mat.csv: protein x sample dependency coefficients / frequencies
  - repeats.csv: selected lambda and variance explained per repeat
  - target_matrix.csv: processed drug x protein matrix used for fitting
  - target_clusters.json: representative -> merged proteins
  - config.json
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Sequence

import pandas as pd

from .config import DepInferConfig
from .lasso_ensemble import MAX_ITER
from .pipeline import run_depinfer
from .validation import LAMBDA_RULES

LOGGER = logging.getLogger(__name__)


def _setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
        force=True,
    )
    logging.getLogger("joblib").setLevel(logging.WARNING)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Infer per-sample protein dependencies from drug affinity and response matrices.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--targets", type=Path, required=True, help="Drug x protein affinity CSV.")
    parser.add_argument("--responses", type=Path, required=True, help="Drug x sample response CSV.")
    parser.add_argument("--output-dir", type=Path, required=True, help="Directory for result tables.")
    parser.add_argument(
        "--no-transform",
        action="store_true",
        help="Targets are already affinity scores; skip the -log10/arctan Kd transform.",
    )
    parser.add_argument(
        "--no-dedupe", action="store_true", help="Keep all proteins (no similarity reduction)."
    )
    parser.add_argument(
        "--keep", nargs="*", default=[], help="Protein ids that must be retained as columns."
    )
    parser.add_argument("--cutoff", type=float, default=0.8, help="Cosine similarity cutoff.")
    parser.add_argument("--repeats", type=int, default=100, help="Number of LASSO repeats.")
    parser.add_argument("--folds", type=int, default=3, help="Cross-validation folds per repeat.")
    parser.add_argument(
        "--lambda-rule", choices=list(LAMBDA_RULES), default="lambda.min", help="Penalty selection rule."
    )
    parser.add_argument(
        "--standardize", action="store_true", help="Standardize predictors inside each fit."
    )
    parser.add_argument("--n-jobs", type=int, default=1, help="Parallel workers (-1 = all cores).")
    parser.add_argument("--seed", type=int, default=None, help="Root seed for CV fold assignment.")
    parser.add_argument("--log-level", default="INFO", help="Logging level.")
    return parser.parse_args(argv)


def _read_matrix(path: Path) -> pd.DataFrame:
    if not path.exists():
        raise SystemExit(f"Input not found: {path}")
    return pd.read_csv(path, index_col=0)


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    _setup_logging(args.log_level)

    config = DepInferConfig(
        transform=not args.no_transform,
        dedupe=not args.no_dedupe,
        keep=tuple(args.keep),
        cutoff=args.cutoff,
        repeats=args.repeats,
        folds=args.folds,
        lambda_rule=args.lambda_rule,
        standardize=args.standardize,
        n_jobs=args.n_jobs,
        seed=args.seed,
    )
    targets = _read_matrix(args.targets)
    responses = _read_matrix(args.responses)
    LOGGER.info("Loaded targets %s and responses %s", targets.shape, responses.shape)

    processed, result = run_depinfer(targets, responses, config)

    out_dir = args.output_dir
    out_dir.mkdir(parents=True, exist_ok=True)
    result.coef_mat.to_csv(out_dir / "coef_mat.csv")
    result.freq_mat.to_csv(out_dir / "freq_mat.csv")
    result.repeats_frame().to_csv(out_dir / "repeats.csv", index=False)
    processed.target_matrix.to_csv(out_dir / "target_matrix.csv")
    clusters = {c.representative: list(c.merged) for c in processed.target_clusters}
    (out_dir / "target_clusters.json").write_text(json.dumps(clusters, indent=2), encoding="utf-8")
    payload = {**config.to_dict(), "max_iter": MAX_ITER}
    (out_dir / "config.json").write_text(json.dumps(payload, indent=2), encoding="utf-8")
    LOGGER.info("Wrote results for %d proteins x %d samples to %s", *result.coef_mat.shape, out_dir)


if __name__ == "__main__":
    main()
