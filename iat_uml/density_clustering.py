"""Step 2: Density-based clustering (DBSCAN).

DBSCAN does not ask for a number of clusters. Instead it asks two
questions about every respondent:

* ``eps`` – how far away may another respondent be and still count as a
  neighbour?
* ``min_pts`` – how many neighbours (the respondent included) make a dense
  region?

Points with at least ``min_pts`` neighbours are *core points*. Clusters grow
from core points through chains of neighbouring core points and the
non-core points within reach of them. Everything else is noise, labelled 0.

``eps`` is read off the k-distance plot: sort every point's distance to its
``min_pts``-th nearest neighbour and look for the knee where the curve
shoots up. The plot is always written with the chosen ``eps`` marked so you
can check the choice.

Run directly as a script::

    python -m iat_uml.density_clustering --preset focused
"""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.cluster import DBSCAN
from sklearn.neighbors import NearestNeighbors

from .common import OutputLayout, add_common_arguments, configure_logging, set_seed
from .config import (
    DBSCAN_PRESETS,
    DEFAULT_CLEAN_DATASET,
    DEFAULT_SEED,
    DBSCANConfig,
    get_preset,
)
from .data_loading import load_optional_codebook, load_survey
from .errors import DegenerateInputError, MissingColumnError, ParameterError
from .features import select_features, standardize, summarize_standardization
from .persistence import append_derived, save_dataset
from .reporting import (
    NOISE_LABEL,
    cluster_means,
    cluster_sizes,
    log_table,
    markdown_table,
    plot_clusters,
    plot_k_distance,
    variable_table,
    write_markdown_note,
)

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class DBSCANResult:
    labels: pd.Series
    is_core: pd.Series
    eps: float
    min_pts: int

    @property
    def n_clusters(self) -> int:
        return int(self.labels[self.labels != NOISE_LABEL].nunique())

    @property
    def noise_rate(self) -> float:
        return float(np.mean(self.labels.to_numpy() == NOISE_LABEL)) if len(self.labels) else float("nan")


def _check_params(eps: float, min_pts: int) -> None:
    if not eps > 0:
        raise ParameterError(f"eps must be positive, got {eps}")
    if min_pts <= 0:
        raise ParameterError(f"min_pts must be positive, got {min_pts}")


def k_distances(matrix: pd.DataFrame, min_pts: int) -> np.ndarray:
    """Sorted distance from each point to its ``min_pts``-th neighbour (itself included)."""

    if min_pts <= 0:
        raise ParameterError(f"min_pts must be positive, got {min_pts}")
    if len(matrix) < min_pts:
        raise DegenerateInputError(
            f"Need at least {min_pts} rows for a {min_pts}-NN distance curve, got {len(matrix)}"
        )
    nn = NearestNeighbors(n_neighbors=int(min_pts))
    nn.fit(matrix.to_numpy(dtype=float))
    distances, _ = nn.kneighbors(matrix.to_numpy(dtype=float))
    return np.sort(distances[:, -1])


def run_dbscan(matrix: pd.DataFrame, eps: float, min_pts: int) -> DBSCANResult:
    """Label every row with a cluster id (1..n) or noise (0)."""

    _check_params(eps, min_pts)
    if matrix.empty:
        raise DegenerateInputError("DBSCAN needs at least one row and one column")

    model = DBSCAN(eps=float(eps), min_samples=int(min_pts))
    raw_labels = model.fit_predict(matrix.to_numpy(dtype=float))
    # sklearn marks noise with -1 and numbers clusters from 0.
    labels = pd.Series(raw_labels + 1, index=matrix.index, name="cluster")
    core = np.zeros(len(matrix), dtype=bool)
    core[model.core_sample_indices_] = True
    return DBSCANResult(
        labels=labels,
        is_core=pd.Series(core, index=matrix.index, name="is_core"),
        eps=float(eps),
        min_pts=int(min_pts),
    )


def prepare_matrix(frame: pd.DataFrame, config: DBSCANConfig) -> pd.DataFrame:
    numeric = select_features(frame, config.variables, numeric_only=True, strict=True)
    return standardize(numeric) if config.scale else numeric


def analyze(
    frame: pd.DataFrame,
    config: DBSCANConfig,
    layout: OutputLayout,
    name: str = "dbscan",
    codebook: Optional[pd.DataFrame] = None,
) -> DBSCANResult:
    matrix = prepare_matrix(frame, config)
    LOGGER.info(
        "DBSCAN on %d respondents x %d variables (scaled=%s)",
        matrix.shape[0],
        matrix.shape[1],
        config.scale,
    )
    if config.scale:
        LOGGER.info("Standardization check: %s", summarize_standardization(matrix))
    if config.crosstab_variable not in frame.columns:
        raise MissingColumnError(config.crosstab_variable)

    kth = k_distances(matrix, config.min_pts)
    plot_k_distance(kth, config.min_pts, layout.figures / f"{name}_kdist.png", eps=config.eps)
    share_below = float(np.mean(kth <= config.eps))
    LOGGER.info(
        "%.1f%% of points have their %d-NN within eps=%.3f",
        100.0 * share_below,
        config.min_pts,
        config.eps,
    )

    result = run_dbscan(matrix, config.eps, config.min_pts)
    LOGGER.info(
        "DBSCAN found %d clusters; %d noise points (%.1f%%); %d core points",
        result.n_clusters,
        int((result.labels == NOISE_LABEL).sum()),
        100.0 * result.noise_rate,
        int(result.is_core.sum()),
    )
    sizes = cluster_sizes(result.labels).reset_index()
    log_table("DBSCAN cluster sizes (0 = noise)", sizes)

    crosstab = pd.crosstab(result.labels, frame.loc[matrix.index, config.crosstab_variable])
    crosstab.to_csv(layout.tables / f"{name}_crosstab_{config.crosstab_variable}.csv")

    means = cluster_means(matrix, result.labels)
    means.to_csv(layout.tables / f"{name}_cluster_means.csv", index=False)
    log_table("Cluster means", means)

    clustered = append_derived(frame, result.labels)
    save_dataset(clustered, layout.data / f"iat_{name}_clusters.pkl")
    plot_clusters(
        matrix,
        result.labels,
        layout.figures / f"{name}_clusters.png",
        title="DBSCAN clusters (noise removed)",
        drop_noise=True,
    )

    write_markdown_note(
        layout.notes / f"{name}.md",
        "Density-Based Clustering (DBSCAN)",
        {
            "Configuration": [
                f"- Standardized: {config.scale}",
                f"- eps = {config.eps}, minPts = {config.min_pts}",
                f"- Share of points with {config.min_pts}-NN distance <= eps: {share_below:.2%}",
            ],
            "Variables": markdown_table(variable_table(matrix.columns, codebook)),
            "Result": [
                f"- Clusters: {result.n_clusters}",
                f"- Noise rate: {result.noise_rate:.2%}",
                f"- Core points: {int(result.is_core.sum())}",
            ],
            "Cluster Sizes (0 = noise)": markdown_table(sizes),
            "Cluster Means": markdown_table(means),
        },
    )
    return result


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="DBSCAN clustering of numeric survey variables")
    add_common_arguments(parser, DEFAULT_CLEAN_DATASET)
    parser.add_argument(
        "--preset",
        type=str,
        default="focused",
        choices=sorted(DBSCAN_PRESETS),
        help="Variable set, scaling, eps and minPts used in the tutorial.",
    )
    parser.add_argument(
        "--eps",
        type=float,
        default=None,
        help="Neighbourhood radius (overrides the preset's knee-chosen value).",
    )
    parser.add_argument(
        "--min-pts",
        type=int,
        default=None,
        help="Minimum neighbours, the point included, for a core point.",
    )
    parser.add_argument(
        "--crosstab-variable",
        type=str,
        default="Tblack_0to10",
        help="Variable tabulated against the cluster labels.",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=DEFAULT_SEED,
        help="Random seed (DBSCAN itself is deterministic).",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    configure_logging(args.log_level)
    set_seed(args.seed)

    preset = get_preset(DBSCAN_PRESETS, args.preset)
    config = DBSCANConfig(
        eps=float(args.eps if args.eps is not None else preset.params["eps"]),
        min_pts=int(args.min_pts if args.min_pts is not None else preset.params["min_pts"]),
        variables=preset.variables,
        scale=preset.scale,
        crosstab_variable=args.crosstab_variable,
    )
    layout = OutputLayout(args.output_root).create()
    frame = load_survey(args.input)
    codebook = load_optional_codebook(args.codebook)
    analyze(frame, config, layout, name=f"dbscan_{args.preset}", codebook=codebook)


if __name__ == "__main__":
    main()
