"""Step 3: Agglomerative hierarchical clustering with Ward's criterion.

Every respondent starts as its own cluster; at each step the two clusters
whose merger increases the total within-cluster variance the least are
joined. The full merge history is the dendrogram. Undoing the last K - 1
merges yields a flat partition into exactly K groups, even when several
merges share a height.

Ward's criterion needs Euclidean distances, so the selected variables are
standardized first. Rows with a missing value in any selected variable are
dropped beforehand.

Run directly as a script::

    python -m iat_uml.hierarchical_clustering --n-clusters 3

Notes (cost):
- The distance matrix holds N * (N - 1) / 2 entries. For the full survey
  use ``--sample-size`` to cluster a seeded random subset instead.
"""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
import pandas as pd
from scipy.cluster.hierarchy import cut_tree, linkage
from scipy.spatial.distance import pdist

from .common import OutputLayout, add_common_arguments, configure_logging, set_seed
from .config import DEFAULT_CLEAN_DATASET, DEFAULT_SEED, HierarchicalConfig
from .data_loading import load_optional_codebook, load_survey
from .errors import DegenerateInputError, ParameterError
from .features import select_features, standardize
from .persistence import append_derived, save_dataset
from .reporting import (
    cluster_means,
    cluster_sizes,
    log_table,
    markdown_table,
    plot_clusters,
    plot_dendrogram,
    variable_table,
    write_markdown_note,
)

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Dendrogram:
    linkage: np.ndarray
    labels: pd.Index
    distances: np.ndarray

    @property
    def n_leaves(self) -> int:
        return len(self.labels)


def build_dendrogram(matrix: pd.DataFrame, method: str = "ward") -> Dendrogram:
    """Euclidean distances and the complete Ward merge history."""

    if matrix.shape[1] == 0:
        raise DegenerateInputError("Hierarchical clustering needs at least one column")
    if len(matrix) < 2:
        raise DegenerateInputError(
            f"Hierarchical clustering needs at least two rows, got {len(matrix)}"
        )
    data = matrix.to_numpy(dtype=float)
    if not np.isfinite(data).all():
        raise DegenerateInputError("Feature matrix contains missing or infinite values")

    distances = pdist(data, metric="euclidean")
    merges = linkage(distances, method=method)
    return Dendrogram(linkage=merges, labels=matrix.index, distances=distances)


def cut_dendrogram(dendrogram: Dendrogram, n_clusters: int) -> pd.Series:
    """Cut the tree into exactly ``n_clusters`` groups numbered from 1."""

    if not 1 <= n_clusters <= dendrogram.n_leaves:
        raise ParameterError(
            f"n_clusters must lie in 1..{dendrogram.n_leaves}, got {n_clusters}"
        )
    # Cut by merge order, not by height, so tied heights still give K groups.
    flat = cut_tree(dendrogram.linkage, n_clusters=int(n_clusters)).ravel() + 1
    return pd.Series(flat.astype(int), index=dendrogram.labels, name="cluster")


def prepare_matrix(frame: pd.DataFrame, config: HierarchicalConfig) -> pd.DataFrame:
    """Selected variables without incomplete rows, optionally down-sampled."""

    selected = select_features(frame, config.variables, numeric_only=True, strict=True)
    complete = selected.dropna()
    if len(complete) < len(selected):
        LOGGER.info("Dropped %d rows with missing values", len(selected) - len(complete))
    if config.sample_size is not None and config.sample_size < len(complete):
        complete = complete.sample(n=config.sample_size, random_state=config.seed).sort_index()
        LOGGER.info("Clustering a random sample of %d rows", len(complete))
    return complete


def analyze(
    frame: pd.DataFrame,
    config: HierarchicalConfig,
    layout: OutputLayout,
    codebook: Optional[pd.DataFrame] = None,
) -> pd.Series:
    raw = prepare_matrix(frame, config)
    matrix = standardize(raw)
    LOGGER.info(
        "Ward clustering on %d respondents x %d variables",
        matrix.shape[0],
        matrix.shape[1],
    )

    tree = build_dendrogram(matrix, method=config.method)
    plot_dendrogram(tree.linkage, layout.figures / "hc_dendrogram.png", n_clusters=config.n_clusters)
    labels = cut_dendrogram(tree, config.n_clusters)

    sizes = cluster_sizes(labels).reset_index()
    log_table("Hierarchical cluster sizes", sizes)

    means = cluster_means(raw, labels)
    means.to_csv(layout.tables / "hc_cluster_means.csv", index=False)
    log_table("Cluster means (original scale)", means)

    save_dataset(append_derived(raw, labels), layout.data / "iat_hc_clusters.pkl")
    plot_clusters(matrix, labels, layout.figures / "hc_clusters.png", title="Hierarchical clusters (Ward)")

    heights = tree.linkage[:, 2]
    write_markdown_note(
        layout.notes / "hierarchical.md",
        "Hierarchical Clustering (Ward)",
        {
            "Configuration": [
                f"- Linkage: {config.method} on Euclidean distances of standardized variables",
                f"- Respondents clustered: {matrix.shape[0]}",
                f"- Clusters cut: {config.n_clusters}",
                f"- Largest merge height: {float(heights.max()):.3f}",
            ],
            "Variables": markdown_table(variable_table(matrix.columns, codebook)),
            "Cluster Sizes": markdown_table(sizes),
            "Cluster Means": markdown_table(means),
        },
    )
    return labels


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ward hierarchical clustering of survey variables")
    add_common_arguments(parser, DEFAULT_CLEAN_DATASET)
    parser.add_argument(
        "--n-clusters",
        type=int,
        default=3,
        help="Number of groups to cut the dendrogram into (tutorial choice: 3).",
    )
    parser.add_argument(
        "--sample-size",
        type=int,
        default=None,
        help="Cluster a random subset of this many respondents.",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=DEFAULT_SEED,
        help="Random seed for the optional row sample.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    configure_logging(args.log_level)
    set_seed(args.seed)

    config = HierarchicalConfig(
        n_clusters=args.n_clusters,
        sample_size=args.sample_size,
        seed=args.seed,
    )
    layout = OutputLayout(args.output_root).create()
    frame = load_survey(args.input)
    codebook = load_optional_codebook(args.codebook)
    analyze(frame, config, layout, codebook=codebook)


if __name__ == "__main__":
    main()
