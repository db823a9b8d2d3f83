"""Tables, figures and markdown notes for the analysis steps.

Presentation choices (number formatting, colours, figure sizes) are kept
here so the analysis modules only ever hand over plain data frames and
arrays.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from matplotlib.axes import Axes
from scipy.cluster.hierarchy import dendrogram
from scipy.spatial import ConvexHull, QhullError
from sklearn.decomposition import PCA
from statsmodels.graphics.mosaicplot import mosaic

from .common import ensure_directory
from .data_loading import describe_variables

LOGGER = logging.getLogger(__name__)

FIGURE_DPI = 150
NOISE_LABEL = 0

# ----------------------------------------------------------------------------
# Tables
# ----------------------------------------------------------------------------


def first_mode(values: pd.Series) -> object:
    """Most frequent value; ties go to the value seen first."""

    present = values.dropna()
    if present.empty:
        return np.nan
    counts = present.value_counts()
    top = counts.max()
    for value in present.unique():
        if counts[value] == top:
            return value
    return np.nan


def cluster_means(features: pd.DataFrame, labels: pd.Series) -> pd.DataFrame:
    """Mean of each feature per cluster, one row per cluster id."""

    grouped = features.groupby(labels.rename("cluster"), sort=True).mean()
    return grouped.reset_index()


def cluster_modes(features: pd.DataFrame, labels: pd.Series) -> pd.DataFrame:
    """Modal level of each categorical feature per cluster."""

    grouped = features.astype(object).groupby(labels.rename("cluster"), sort=True).agg(first_mode)
    return grouped.reset_index()


def cluster_sizes(labels: pd.Series) -> pd.Series:
    return labels.value_counts().sort_index().rename("size")


def format_table(frame: pd.DataFrame, decimals: int = 4) -> str:
    """Render ``frame`` as fixed-point text (no scientific notation)."""

    with pd.option_context(
        "display.float_format",
        lambda value: f"{value:.{decimals}f}",
        "display.max_columns",
        None,
        "display.width",
        200,
    ):
        return frame.to_string(index=False)


def log_table(title: str, frame: pd.DataFrame, decimals: int = 4) -> None:
    LOGGER.info("%s\n%s", title, format_table(frame, decimals))


def write_markdown_note(
    output_path: Path,
    title: str,
    sections: Dict[str, Sequence[str]],
) -> None:
    """Write a note with one ``##`` heading per entry of ``sections``."""

    ensure_directory(output_path.parent)
    lines = [f"# {title}", ""]
    for heading, body in sections.items():
        lines.append(f"## {heading}")
        lines.append("")
        lines.extend(body)
        lines.append("")
    output_path.write_text("\n".join(lines), encoding="utf-8")


def variable_table(variables: Iterable[str], codebook: Optional[pd.DataFrame]) -> pd.DataFrame:
    """Variables used by an analysis next to their codebook description."""

    descriptions = describe_variables([str(v) for v in variables], codebook)
    return descriptions.rename_axis("variable").reset_index()


def markdown_table(frame: pd.DataFrame, decimals: int = 4) -> List[str]:
    if frame.empty:
        return ["- (empty)"]
    return [frame.round(decimals).to_markdown(index=False)]


# ----------------------------------------------------------------------------
# Figures
# ----------------------------------------------------------------------------


def _save(fig: plt.Figure, output_path: Path) -> None:
    ensure_directory(output_path.parent)
    fig.tight_layout()
    fig.savefig(output_path, bbox_inches="tight")
    plt.close(fig)
    LOGGER.info("Saved figure %s", output_path)


def plot_elbow(
    values: pd.Series,
    output_path: Path,
    ylabel: str = "Total within-cluster sum of squares",
    title: str = "Elbow Method for Optimal K",
) -> None:
    """Line plot of a cost curve indexed by K, dashed line at the steepest drop."""

    fig, ax = plt.subplots(figsize=(6, 4), dpi=FIGURE_DPI)
    ks = values.index.to_numpy()
    ax.plot(ks, values.to_numpy(), marker="o", color="#3b7ddd")
    if len(values) > 1:
        steepest = int(np.argmin(np.diff(values.to_numpy()))) + 1
        ax.axvline(steepest, linestyle="--", color="gray")
    ax.set_xticks(ks)
    ax.set_xlabel("Number of clusters K")
    ax.set_ylabel(ylabel)
    ax.set_title(title)
    ax.ticklabel_format(axis="y", style="plain")
    _save(fig, output_path)


def project_2d(features: pd.DataFrame) -> np.ndarray:
    """First two principal components, or the raw columns if fewer than three."""

    data = features.to_numpy(dtype=float)
    if data.shape[1] <= 2:
        if data.shape[1] == 1:
            return np.column_stack([data[:, 0], np.zeros(data.shape[0])])
        return data
    return PCA(n_components=2, svd_solver="full").fit_transform(data)


def _draw_hull(ax: Axes, points: np.ndarray, color: object) -> None:
    if points.shape[0] < 3:
        return
    try:
        hull = ConvexHull(points)
    except QhullError:
        return
    vertices = np.append(hull.vertices, hull.vertices[0])
    ax.fill(points[vertices, 0], points[vertices, 1], color=color, alpha=0.15)
    ax.plot(points[vertices, 0], points[vertices, 1], color=color, linewidth=0.8)


def plot_clusters(
    features: pd.DataFrame,
    labels: pd.Series,
    output_path: Path,
    title: str = "Cluster plot",
    drop_noise: bool = False,
) -> None:
    """Scatter on the first two principal components with convex hulls per cluster."""

    labels_arr = labels.to_numpy()
    if drop_noise:
        keep = labels_arr != NOISE_LABEL
        features = features[keep]
        labels_arr = labels_arr[keep]
    fig, ax = plt.subplots(figsize=(6, 5), dpi=FIGURE_DPI)
    if len(features):
        coords = project_2d(features)
        colours = plt.get_cmap("tab10")
        for position, cluster_id in enumerate(np.unique(labels_arr)):
            mask = labels_arr == cluster_id
            count = int(mask.sum())
            colour = colours(position % 10)
            label = f"noise (n={count})" if cluster_id == NOISE_LABEL else f"cluster {cluster_id} (n={count})"
            ax.scatter(coords[mask, 0], coords[mask, 1], s=10, alpha=0.8, color=colour, label=label)
            if cluster_id != NOISE_LABEL:
                _draw_hull(ax, coords[mask], colour)
        ax.legend(loc="best", fontsize="small", frameon=False)
    dims = "PC" if features.shape[1] > 2 else "dim "
    ax.set_xlabel(f"{dims}1")
    ax.set_ylabel(f"{dims}2")
    ax.set_title(title)
    _save(fig, output_path)


def plot_k_distance(
    kth_distances: np.ndarray,
    k: int,
    output_path: Path,
    eps: Optional[float] = None,
) -> None:
    fig, ax = plt.subplots(figsize=(6, 4), dpi=FIGURE_DPI)
    ax.plot(np.arange(kth_distances.size), kth_distances)
    if eps is not None:
        ax.axhline(eps, color="red", linestyle="--", label=f"eps = {eps:g}")
        ax.legend(loc="upper left", frameon=False)
    ax.set_xlabel("Points sorted by distance")
    ax.set_ylabel(f"{k}-NN distance")
    ax.set_title("DBSCAN k-distance curve")
    _save(fig, output_path)


def plot_dendrogram(
    linkage_matrix: np.ndarray,
    output_path: Path,
    n_clusters: Optional[int] = None,
    title: str = "Dendrogram of Hierarchical Clustering",
) -> None:
    fig, ax = plt.subplots(figsize=(8, 5), dpi=FIGURE_DPI)
    threshold = None
    if n_clusters is not None and 1 < n_clusters <= linkage_matrix.shape[0]:
        # Between the merges that leave n_clusters and n_clusters - 1 groups.
        heights = linkage_matrix[:, 2]
        threshold = float((heights[-n_clusters] + heights[-(n_clusters - 1)]) / 2.0)
    dendrogram(linkage_matrix, ax=ax, no_labels=True, color_threshold=threshold)
    if threshold is not None:
        ax.axhline(threshold, color="gray", linestyle="--")
    ax.set_ylabel("Height")
    ax.set_title(title)
    _save(fig, output_path)


def plot_scree(
    proportions: pd.Series,
    output_path: Path,
    max_components: int = 10,
) -> None:
    shown = proportions.iloc[:max_components] * 100.0
    fig, ax = plt.subplots(figsize=(7, 4), dpi=FIGURE_DPI)
    positions = np.arange(len(shown))
    ax.bar(positions, shown.to_numpy(), color="#3b7ddd")
    ax.plot(positions, shown.to_numpy(), color="black", marker="o")
    for x, value in zip(positions, shown.to_numpy()):
        ax.annotate(f"{value:.1f}%", (x, value), textcoords="offset points", xytext=(0, 4),
                    ha="center", fontsize=7)
    ax.set_xticks(positions)
    ax.set_xticklabels(list(shown.index), rotation=45)
    ax.set_xlabel("Principal Component")
    ax.set_ylabel("Percentage of Variance Explained")
    ax.set_title("Scree Plot")
    _save(fig, output_path)


def plot_biplot(
    scores: pd.DataFrame,
    loadings: pd.DataFrame,
    output_path: Path,
) -> None:
    """Scores on PC1/PC2 with variable loadings drawn as arrows."""

    fig, ax = plt.subplots(figsize=(7, 6), dpi=FIGURE_DPI)
    xs = scores.iloc[:, 0].to_numpy()
    ys = scores.iloc[:, 1].to_numpy() if scores.shape[1] > 1 else np.zeros_like(xs)
    ax.scatter(xs, ys, s=6, alpha=0.4, color="gray")
    scale = max(float(np.max(np.abs(xs))), float(np.max(np.abs(ys))), 1e-12)
    for variable, row in loadings.iterrows():
        dx = float(row.iloc[0]) * scale
        dy = float(row.iloc[1]) * scale if loadings.shape[1] > 1 else 0.0
        ax.arrow(0, 0, dx, dy, color="#da5b3b", width=scale * 0.002, length_includes_head=True)
        ax.annotate(str(variable), (dx, dy), fontsize=6, color="#da5b3b")
    ax.axhline(0, color="black", linewidth=0.5)
    ax.axvline(0, color="black", linewidth=0.5)
    ax.set_xlabel(str(scores.columns[0]))
    ax.set_ylabel(str(scores.columns[1]) if scores.shape[1] > 1 else "")
    ax.set_title("PCA Biplot")
    _save(fig, output_path)


def plot_mosaic(
    labels: pd.Series,
    variable: pd.Series,
    output_path: Path,
    title: str = "Mosaic Plot of Clusters by Categorical Variable",
) -> None:
    table = pd.DataFrame(
        {"cluster": labels.astype(str).to_numpy(), str(variable.name): variable.astype(str).to_numpy()}
    )
    fig, ax = plt.subplots(figsize=(8, 6), dpi=FIGURE_DPI)
    mosaic(
        table,
        ["cluster", str(variable.name)],
        ax=ax,
        title=title,
        statistic=True,
        labelizer=lambda key: "",
    )
    _save(fig, output_path)


def plot_rules(rules: pd.DataFrame, output_path: Path) -> None:
    """Support vs confidence scatter, shaded by lift."""

    fig, ax = plt.subplots(figsize=(6, 5), dpi=FIGURE_DPI)
    if not rules.empty:
        points = ax.scatter(
            rules["support"],
            rules["confidence"],
            c=rules["lift"],
            cmap="Reds",
            s=14,
            alpha=0.8,
        )
        fig.colorbar(points, ax=ax, label="lift")
    ax.set_xlabel("support")
    ax.set_ylabel("confidence")
    ax.set_title(f"Scatter plot for {len(rules)} rules")
    _save(fig, output_path)
