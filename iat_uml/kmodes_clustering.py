"""Step 1b: K-modes clustering of categorical survey variables.

K-means averages coordinates, which is meaningless for answers such as
"how did you hear about this website". K-modes swaps the mean for the mode
and Euclidean distance for the number of mismatching answers, so it works
directly on character columns.

All character columns of the cleaned dataset are used except a few
bookkeeping fields (session status, study name, ...). Each cluster is
summarised by its modal answer per variable, and a mosaic plot shows how
one chosen variable is distributed across clusters.

Run directly as a script::

    python -m iat_uml.kmodes_clustering --k 3
"""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
import pandas as pd
from kmodes.kmodes import KModes

from .common import OutputLayout, add_common_arguments, configure_logging, set_seed
from .config import DEFAULT_CLEAN_DATASET, DEFAULT_SEED, KModesConfig
from .data_loading import load_optional_codebook, load_survey
from .errors import DegenerateInputError, MissingColumnError, ParameterError
from .features import select_categorical, to_categorical
from .persistence import append_derived, save_dataset
from .reporting import (
    cluster_modes,
    cluster_sizes,
    log_table,
    markdown_table,
    plot_elbow,
    plot_mosaic,
    variable_table,
    write_markdown_note,
)

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class KModesResult:
    labels: pd.Series
    modes: pd.DataFrame
    sizes: pd.Series
    cost: float


def run_kmodes(
    frame: pd.DataFrame,
    k: int,
    n_init: int = 10,
    max_iter: int = 10,
    init: str = "Huang",
    seed: int = DEFAULT_SEED,
) -> KModesResult:
    """Mode-based partitioning; the restart with the lowest total mismatch wins."""

    if frame.empty:
        raise DegenerateInputError("K-modes needs at least one row and one column")
    if k <= 0:
        raise ParameterError(f"Number of clusters must be positive, got {k}")
    if k > len(frame):
        raise ParameterError(f"Cannot form {k} clusters from {len(frame)} rows")

    levels = to_categorical(frame)
    data = levels.astype(str).to_numpy()
    model = KModes(
        n_clusters=int(k),
        init=init,
        n_init=int(n_init),
        max_iter=int(max_iter),
        random_state=seed,
        verbose=0,
    )
    raw_labels = np.asarray(model.fit_predict(data))
    labels = pd.Series(raw_labels + 1, index=frame.index, name="cluster")

    ids = np.arange(1, k + 1)
    modes = pd.DataFrame(
        model.cluster_centroids_,
        columns=frame.columns,
        index=pd.Index(ids, name="cluster"),
    )
    return KModesResult(
        labels=labels,
        modes=modes,
        sizes=cluster_sizes(labels).reindex(ids, fill_value=0),
        cost=float(model.cost_),
    )


def kmodes_costs(
    frame: pd.DataFrame,
    max_k: int = 10,
    n_init: int = 10,
    max_iter: int = 10,
    init: str = "Huang",
    seed: int = DEFAULT_SEED,
) -> pd.Series:
    """Total mismatch cost for K = 1..max_k, for elbow inspection."""

    if max_k <= 0:
        raise ParameterError(f"max_k must be positive, got {max_k}")
    costs = {}
    for k in range(1, min(int(max_k), len(frame)) + 1):
        LOGGER.info("Fitting K-Modes with k=%s for the cost curve", k)
        costs[k] = run_kmodes(frame, k, n_init, max_iter, init, seed).cost
    return pd.Series(costs, name="cost").rename_axis("k")


def analyze(
    frame: pd.DataFrame,
    config: KModesConfig,
    layout: OutputLayout,
    elbow: bool = False,
    codebook: Optional[pd.DataFrame] = None,
) -> KModesResult:
    categorical = select_categorical(frame, exclude=config.excluded)
    if categorical.shape[1] == 0:
        raise DegenerateInputError("No categorical columns left after exclusions")
    LOGGER.info(
        "K-modes on %d respondents x %d categorical variables",
        categorical.shape[0],
        categorical.shape[1],
    )

    if config.mosaic_variable not in categorical.columns:
        raise MissingColumnError(config.mosaic_variable, "is not among the clustered variables")

    cost_section = {}
    if elbow:
        costs = kmodes_costs(
            categorical, config.max_k, config.n_init, config.max_iter, config.init, config.seed
        )
        costs.to_frame().reset_index().to_csv(layout.tables / "kmodes_costs.csv", index=False)
        plot_elbow(
            costs,
            layout.figures / "kmodes_elbow.png",
            ylabel="Total mismatches (cost)",
            title="K-Modes cost by K",
        )
        cost_section["Cost Curve"] = markdown_table(costs.to_frame().reset_index(), decimals=1)

    set_seed(config.seed)
    result = run_kmodes(
        categorical, config.k, config.n_init, config.max_iter, config.init, config.seed
    )
    LOGGER.info("K-modes cost: %.1f", result.cost)
    log_table("K-modes cluster sizes", result.sizes.reset_index())

    modes = cluster_modes(to_categorical(categorical), result.labels)
    modes.to_csv(layout.tables / "kmodes_cluster_modes.csv", index=False)
    result.modes.reset_index().to_csv(layout.tables / "kmodes_centroids.csv", index=False)

    plot_mosaic(
        result.labels,
        to_categorical(categorical[[config.mosaic_variable]])[config.mosaic_variable],
        layout.figures / f"kmodes_mosaic_{config.mosaic_variable}.png",
    )

    clustered = append_derived(frame, result.labels)
    save_dataset(clustered, layout.data / "iat_kmodes_clusters.pkl")

    sections = {
        "Configuration": [
            f"- K = {config.k}, restarts = {config.n_init}, init = {config.init}, seed = {config.seed}",
            f"- Excluded: {', '.join(config.excluded)}",
            f"- Cost: {result.cost:.1f}",
        ],
        "Variables": markdown_table(variable_table(categorical.columns, codebook)),
        **cost_section,
        "Cluster Sizes": markdown_table(result.sizes.reset_index()),
        "Cluster Modes": markdown_table(modes),
    }
    write_markdown_note(layout.notes / "kmodes.md", "K-Modes Clustering", sections)
    return result


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="K-modes clustering of categorical survey variables")
    add_common_arguments(parser, DEFAULT_CLEAN_DATASET)
    parser.add_argument("--k", type=int, default=3, help="Number of clusters (tutorial choice: 3).")
    parser.add_argument("--n-init", type=int, default=10, help="Number of random restarts.")
    parser.add_argument("--max-iter", type=int, default=10, help="Iterations per restart.")
    parser.add_argument(
        "--init",
        type=str,
        default="Huang",
        choices=["Huang", "Cao", "random"],
        help="Initial mode selection method.",
    )
    parser.add_argument(
        "--mosaic-variable",
        type=str,
        default="broughtwebsite",
        help="Categorical variable plotted against the clusters.",
    )
    parser.add_argument(
        "--elbow",
        action="store_true",
        help="Also compute the cost curve for K = 1..--max-k (slow on the full dataset).",
    )
    parser.add_argument("--max-k", type=int, default=10, help="Largest K for the cost curve.")
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

    config = KModesConfig(
        k=args.k,
        n_init=args.n_init,
        max_iter=args.max_iter,
        init=args.init,
        max_k=args.max_k,
        mosaic_variable=args.mosaic_variable,
        seed=args.seed,
    )
    layout = OutputLayout(args.output_root).create()
    frame = load_survey(args.input)
    codebook = load_optional_codebook(args.codebook)
    analyze(frame, config, layout, elbow=args.elbow, codebook=codebook)


if __name__ == "__main__":
    main()
