"""Step 1: K-means clustering of numeric survey variables.

K-means needs numeric input, so the chosen variables are first narrowed to
numeric columns with non-negligible variance. Two tutorial presets exist:

* ``full`` – 24 variables (education, ideology, religion, the MCPR items,
  the IAT D-score and both thermometers) on their raw scale, K = 2.
* ``focused`` – ideology, IAT D-score and the Black feeling thermometer,
  standardized first, K = 5.

K is a human choice. The script always computes the total within-cluster
sum of squares for K = 1..10 and saves the elbow plot so you can check the
choice; it never picks K for you.

Run directly as a script::

    python -m iat_uml.kmeans_clustering --preset focused

Notes (how to read these clusters):
- Cluster ids start at 1. Labels are arbitrary: rerunning with another seed
  may permute them while keeping the same partition.
- Scale matters. On raw scales the variable with the widest range
  dominates the Euclidean distance; standardizing gives every variable an
  equal say.
"""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.cluster import KMeans

from .common import OutputLayout, add_common_arguments, configure_logging, set_seed
from .config import DEFAULT_CLEAN_DATASET, DEFAULT_SEED, KMEANS_PRESETS, KMeansConfig, get_preset
from .data_loading import load_optional_codebook, load_survey
from .errors import DegenerateInputError, ParameterError
from .features import select_features, standardize, summarize_standardization
from .persistence import append_derived, save_dataset
from .reporting import (
    cluster_means,
    cluster_sizes,
    log_table,
    markdown_table,
    plot_clusters,
    plot_elbow,
    variable_table,
    write_markdown_note,
)

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class KMeansResult:
    labels: pd.Series
    centers: pd.DataFrame
    sizes: pd.Series
    withinss: pd.Series
    tot_withinss: float
    totss: float

    @property
    def betweenss(self) -> float:
        return self.totss - self.tot_withinss


def _check_k(k: int, n_rows: int) -> None:
    if k <= 0:
        raise ParameterError(f"Number of clusters must be positive, got {k}")
    if k > n_rows:
        raise ParameterError(f"Cannot form {k} clusters from {n_rows} rows")


def total_sum_of_squares(matrix: pd.DataFrame) -> float:
    data = matrix.to_numpy(dtype=float)
    return float(np.sum((data - data.mean(axis=0)) ** 2))


def run_kmeans(matrix: pd.DataFrame, k: int, n_init: int = 25, seed: int = DEFAULT_SEED) -> KMeansResult:
    """Lloyd's k-means with ``n_init`` seeded restarts, keeping the lowest WSS."""

    if matrix.empty:
        raise DegenerateInputError("K-means needs at least one row and one column")
    _check_k(k, len(matrix))

    data = matrix.to_numpy(dtype=float)
    model = KMeans(n_clusters=int(k), n_init=int(n_init), random_state=seed)
    raw_labels = model.fit_predict(data)
    labels = pd.Series(raw_labels + 1, index=matrix.index, name="cluster")

    ids = np.arange(1, k + 1)
    centers = pd.DataFrame(model.cluster_centers_, columns=matrix.columns, index=pd.Index(ids, name="cluster"))
    withinss = pd.Series(
        [
            float(np.sum((data[raw_labels == i] - model.cluster_centers_[i]) ** 2))
            for i in range(k)
        ],
        index=pd.Index(ids, name="cluster"),
        name="withinss",
    )
    sizes = cluster_sizes(labels).reindex(ids, fill_value=0)
    return KMeansResult(
        labels=labels,
        centers=centers,
        sizes=sizes,
        withinss=withinss,
        tot_withinss=float(withinss.sum()),
        totss=total_sum_of_squares(matrix),
    )


def within_cluster_ss(
    matrix: pd.DataFrame,
    max_k: int = 10,
    n_init: int = 25,
    seed: int = DEFAULT_SEED,
) -> pd.Series:
    """Total within-cluster sum of squares for K = 1..max_k (elbow curve)."""

    if max_k <= 0:
        raise ParameterError(f"max_k must be positive, got {max_k}")
    upper = min(int(max_k), len(matrix))
    values = {}
    for k in range(1, upper + 1):
        LOGGER.info("Fitting K-Means with k=%s for the elbow curve", k)
        values[k] = run_kmeans(matrix, k, n_init=n_init, seed=seed).tot_withinss
    return pd.Series(values, name="tot_withinss").rename_axis("k")


def prepare_matrix(frame: pd.DataFrame, config: KMeansConfig) -> pd.DataFrame:
    numeric = select_features(frame, config.variables, numeric_only=True, strict=True)
    return standardize(numeric) if config.scale else numeric


def analyze(
    frame: pd.DataFrame,
    config: KMeansConfig,
    layout: OutputLayout,
    name: str = "kmeans",
    codebook: Optional[pd.DataFrame] = None,
) -> KMeansResult:
    """Run the full k-means step and write its artifacts under ``layout``."""

    matrix = prepare_matrix(frame, config)
    LOGGER.info(
        "K-means on %d respondents x %d variables (scaled=%s)",
        matrix.shape[0],
        matrix.shape[1],
        config.scale,
    )
    if config.scale:
        LOGGER.info("Standardization check: %s", summarize_standardization(matrix))

    wss = within_cluster_ss(matrix, config.max_k, config.n_init, config.seed)
    wss.to_frame().reset_index().to_csv(layout.tables / f"{name}_elbow.csv", index=False)
    plot_elbow(wss, layout.figures / f"{name}_elbow.png")

    set_seed(config.seed)
    result = run_kmeans(matrix, config.k, n_init=config.n_init, seed=config.seed)
    summary = pd.DataFrame(
        {
            "cluster": result.sizes.index,
            "size": result.sizes.to_numpy(),
            "withinss": result.withinss.to_numpy(),
        }
    )
    log_table("K-means cluster sizes", summary)
    LOGGER.info(
        "between_SS / total_SS = %.1f%%",
        100.0 * result.betweenss / result.totss if result.totss else float("nan"),
    )

    means = cluster_means(matrix, result.labels)
    means.to_csv(layout.tables / f"{name}_cluster_means.csv", index=False)
    log_table("Cluster means", means)

    clustered = append_derived(frame, result.labels)
    save_dataset(clustered, layout.data / f"iat_{name}_clusters.pkl")
    plot_clusters(matrix, result.labels, layout.figures / f"{name}_clusters.png", title="K-means clusters")

    write_markdown_note(
        layout.notes / f"{name}.md",
        "K-Means Clustering",
        {
            "Configuration": [
                f"- Standardized: {config.scale}",
                f"- K = {config.k}, restarts = {config.n_init}, seed = {config.seed}",
            ],
            "Variables": markdown_table(variable_table(matrix.columns, codebook)),
            "Elbow Curve": markdown_table(wss.to_frame().reset_index(), decimals=2),
            "Cluster Sizes": markdown_table(summary, decimals=2),
            "Cluster Means": markdown_table(means),
            "Fit": [
                f"- Total SS: {result.totss:.2f}",
                f"- Total within-cluster SS: {result.tot_withinss:.2f}",
                f"- Between-cluster SS: {result.betweenss:.2f}",
            ],
        },
    )
    return result


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="K-means clustering of numeric survey variables")
    add_common_arguments(parser, DEFAULT_CLEAN_DATASET)
    parser.add_argument(
        "--preset",
        type=str,
        default="focused",
        choices=sorted(KMEANS_PRESETS),
        help="Variable set, scaling and K used in the tutorial.",
    )
    parser.add_argument(
        "--k",
        type=int,
        default=None,
        help="Number of clusters (overrides the preset's elbow-chosen K).",
    )
    parser.add_argument(
        "--n-init",
        type=int,
        default=25,
        help="Number of random restarts per fit.",
    )
    parser.add_argument(
        "--max-k",
        type=int,
        default=10,
        help="Largest K evaluated for the elbow curve.",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=DEFAULT_SEED,
        help="Random seed for reproducible cluster assignment.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    configure_logging(args.log_level)

    preset = get_preset(KMEANS_PRESETS, args.preset)
    config = KMeansConfig(
        k=int(args.k if args.k is not None else preset.params["k"]),
        variables=preset.variables,
        scale=preset.scale,
        n_init=args.n_init,
        max_k=args.max_k,
        seed=args.seed,
    )
    layout = OutputLayout(args.output_root).create()
    frame = load_survey(args.input)
    codebook = load_optional_codebook(args.codebook)
    analyze(frame, config, layout, name=f"kmeans_{args.preset}", codebook=codebook)


if __name__ == "__main__":
    main()
