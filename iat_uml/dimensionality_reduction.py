"""Step 4: Principal component analysis of the numeric survey variables.

PCA rotates the standardized variables into uncorrelated components
ordered by how much of the total variance each explains. Because every
input has variance 1 after standardization, the component variances add
up to the number of variables.

Non-numeric variables in the PCA list are dropped with a warning (PCA
needs numbers), as are rows with any missing value. Outputs:

* ``tables/pca_variance.csv`` – standard deviation, proportion and
  cumulative proportion of variance per component.
* ``tables/pca_loadings.csv`` – variable loadings with codebook labels.
* ``figures/pca_scree.png`` and ``figures/pca_biplot.png``.
* ``data/iat_pca_data_with_scores.pkl`` – the analysed respondents with
  their component scores appended.

Run directly as a script::

    python -m iat_uml.dimensionality_reduction
"""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.decomposition import PCA

from .common import OutputLayout, add_common_arguments, configure_logging
from .config import DEFAULT_CLEAN_DATASET, PCAConfig
from .data_loading import describe_variables, load_optional_codebook, load_survey
from .errors import DegenerateInputError
from .features import select_features, standardize, summarize_standardization
from .persistence import append_derived, save_dataset
from .reporting import log_table, markdown_table, plot_biplot, plot_scree, write_markdown_note

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class PCAResult:
    sdev: pd.Series
    loadings: pd.DataFrame
    scores: pd.DataFrame
    variance_summary: pd.DataFrame


def run_pca(standardized: pd.DataFrame) -> PCAResult:
    """Full-rank PCA of an already standardized matrix."""

    n_rows, n_cols = standardized.shape
    if n_rows < 2 or n_cols == 0:
        raise DegenerateInputError(
            f"PCA needs at least two rows and one column, got {n_rows} x {n_cols}"
        )

    n_components = min(n_rows, n_cols)
    names = [f"PC{i}" for i in range(1, n_components + 1)]
    model = PCA(n_components=n_components, svd_solver="full")
    scores = model.fit_transform(standardized.to_numpy(dtype=float))

    # explained_variance_ uses the n - 1 denominator, like the input scaling.
    variances = np.clip(model.explained_variance_, 0.0, None)
    sdev = pd.Series(np.sqrt(variances), index=names, name="standard_deviation")
    proportion = variances / variances.sum()
    summary = pd.DataFrame(
        {
            "standard_deviation": sdev.to_numpy(),
            "proportion_of_variance": proportion,
            "cumulative_proportion": np.cumsum(proportion),
        },
        index=pd.Index(names, name="component"),
    )
    loadings = pd.DataFrame(
        model.components_.T,
        index=pd.Index(standardized.columns, name="variable"),
        columns=names,
    )
    return PCAResult(
        sdev=sdev,
        loadings=loadings,
        scores=pd.DataFrame(scores, index=standardized.index, columns=names),
        variance_summary=summary,
    )


def prepare_matrix(frame: pd.DataFrame, config: PCAConfig) -> pd.DataFrame:
    """Numeric PCA variables, complete rows only."""

    numeric = select_features(frame, config.variables, numeric_only=True, strict=False)
    complete = numeric.dropna()
    if len(complete) < len(numeric):
        LOGGER.info("Dropped %d rows with missing values", len(numeric) - len(complete))
    return complete


def analyze(
    frame: pd.DataFrame,
    config: PCAConfig,
    layout: OutputLayout,
    codebook: Optional[pd.DataFrame] = None,
) -> PCAResult:
    numeric = prepare_matrix(frame, config)
    matrix = standardize(numeric)
    LOGGER.info("PCA on %d respondents x %d variables", matrix.shape[0], matrix.shape[1])
    LOGGER.info("Standardization check: %s", summarize_standardization(matrix))

    result = run_pca(matrix)
    summary = result.variance_summary.reset_index()
    summary.to_csv(layout.tables / "pca_variance.csv", index=False)
    log_table("Importance of components", summary.head(config.scree_components))
    LOGGER.info(
        "Sum of component variances %.4f for %d standardized variables",
        float((result.sdev ** 2).sum()),
        matrix.shape[1],
    )

    loadings = result.loadings.copy()
    loadings.insert(0, "description", describe_variables(loadings.index, codebook).to_numpy())
    loadings.reset_index().to_csv(layout.tables / "pca_loadings.csv", index=False)

    plot_scree(
        result.variance_summary["proportion_of_variance"],
        layout.figures / "pca_scree.png",
        max_components=config.scree_components,
    )
    plot_biplot(result.scores, result.loadings, layout.figures / "pca_biplot.png")

    with_scores = append_derived(frame.loc[matrix.index], result.scores)
    save_dataset(with_scores, layout.data / "iat_pca_data_with_scores.pkl")

    shown = min(2, result.loadings.shape[1])
    top_loadings = (
        result.loadings.iloc[:, :shown]
        .assign(description=describe_variables(result.loadings.index, codebook).to_numpy())
        .reset_index()
    )
    write_markdown_note(
        layout.notes / "pca.md",
        "Principal Component Analysis",
        {
            "Input": [
                f"- Respondents: {matrix.shape[0]}",
                f"- Variables: {matrix.shape[1]} (standardized)",
            ],
            "Importance of Components": markdown_table(summary.head(config.scree_components)),
            "Loadings on the Leading Components": markdown_table(top_loadings),
        },
    )
    return result


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="PCA of the numeric survey variables")
    add_common_arguments(parser, DEFAULT_CLEAN_DATASET)
    parser.add_argument(
        "--scree-components",
        type=int,
        default=10,
        help="Number of components shown in the scree plot and note.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    configure_logging(args.log_level)

    config = PCAConfig(scree_components=args.scree_components)
    layout = OutputLayout(args.output_root).create()
    frame = load_survey(args.input)
    codebook = load_optional_codebook(args.codebook)
    analyze(frame, config, layout, codebook=codebook)


if __name__ == "__main__":
    main()
