"""Step 0: cleaning the raw IAT survey dataset.

The cleaning rules are deliberately simple so students can reason about
every respondent that disappears:

- Variables with more than ``missing_threshold`` percent missing values are
  dropped, except the MCPR items (the scale the later steps rely on) and the
  race sub-category indicators, which are sparse by construction.
- Respondents who skipped any MCPR item are dropped.
- Respondents with a missing value anywhere else are dropped, again except
  in the race sub-category indicators.

The race sub-category exemption therefore covers both the column filter and
the row filter; the MCPR prefix only shields columns.

Run directly as a script to regenerate the cleaned dataset::

    python -m iat_uml.data_cleaning --input data/RaceIAT.public.2023.sav

Artifacts: ``outputs/data/iat_clean.pkl``, a missingness table under
``outputs/tables`` and a short note under ``outputs/notes``.
"""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

import pandas as pd

from .common import OutputLayout, add_common_arguments, configure_logging, set_seed
from .config import DEFAULT_CLEAN_DATASET, DEFAULT_RAW_DATASET, DEFAULT_SEED, CleaningConfig
from .data_loading import describe_variables, load_optional_codebook, load_survey
from .errors import ConfigurationError
from .persistence import save_dataset

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class CleaningResult:
    """Cleaned data plus the bookkeeping needed to explain it."""

    data: pd.DataFrame
    missingness: pd.DataFrame
    removed_variables: List[str]
    rows_before: int
    rows_after_protected: int


def missingness_summary(frame: pd.DataFrame) -> pd.DataFrame:
    """Count and percentage of missing values per variable, worst first."""

    n_miss = frame.isna().sum()
    total = len(frame)
    pct_miss = n_miss / total * 100.0 if total else n_miss.astype(float) * 0.0
    summary = pd.DataFrame(
        {
            "variable": n_miss.index.astype(str),
            "n_miss": n_miss.to_numpy(dtype=int),
            "pct_miss": pct_miss.to_numpy(dtype=float),
        }
    )
    return summary.sort_values("n_miss", ascending=False, kind="stable").reset_index(drop=True)


def protected_columns(frame: pd.DataFrame, prefix: str) -> List[str]:
    return [str(col) for col in frame.columns if str(col).startswith(prefix)]


def clean_dataset(frame: pd.DataFrame, config: CleaningConfig) -> CleaningResult:
    """Apply the missingness rules and return a dense dataset.

    Raises ``ConfigurationError`` when no column carries the protected
    prefix, since the row filter would otherwise be vacuous.
    """

    protected = protected_columns(frame, config.protected_prefix)
    if not protected:
        raise ConfigurationError(
            f"No columns start with protected prefix '{config.protected_prefix}'"
        )
    exempt = [col for col in config.sparse_exempt if col in frame.columns]
    absent = sorted(set(config.sparse_exempt) - set(exempt))
    if absent:
        LOGGER.debug("Exempt columns not present in dataset: %s", ", ".join(absent))

    summary = missingness_summary(frame)
    over = summary["pct_miss"] > config.missing_threshold
    keep_anyway = summary["variable"].str.startswith(config.protected_prefix) | summary[
        "variable"
    ].isin(exempt)
    removed = summary.loc[over & ~keep_anyway, "variable"].tolist()
    LOGGER.info(
        "Removing %d variables with more than %.0f%% missing values",
        len(removed),
        config.missing_threshold,
    )
    cleaned = frame.drop(columns=removed)

    rows_before = len(cleaned)
    cleaned = cleaned[cleaned[protected].notna().all(axis=1)]
    rows_after_protected = len(cleaned)
    LOGGER.info(
        "Dropped %d respondents with incomplete %s responses",
        rows_before - rows_after_protected,
        config.protected_prefix,
    )

    required = [col for col in cleaned.columns if col not in exempt]
    cleaned = cleaned[cleaned[required].notna().all(axis=1)]
    LOGGER.info(
        "Dropped %d respondents with other missing values; %d remain",
        rows_after_protected - len(cleaned),
        len(cleaned),
    )

    if config.sample_size is not None and len(cleaned) > config.sample_size:
        cleaned = cleaned.sample(n=config.sample_size, random_state=config.seed).sort_index()
        LOGGER.info("Down-sampled to %d respondents (seed=%d)", len(cleaned), config.seed)

    return CleaningResult(
        data=cleaned.copy(),
        missingness=summary,
        removed_variables=removed,
        rows_before=rows_before,
        rows_after_protected=rows_after_protected,
    )


def write_cleaning_note(
    result: CleaningResult,
    config: CleaningConfig,
    codebook: Optional[pd.DataFrame],
    output_path: Path,
) -> None:
    lines = ["# Data Cleaning Notes", ""]
    lines.append(f"- Respondents in raw data: {result.rows_before}")
    lines.append(
        f"- After requiring complete `{config.protected_prefix}*` responses: "
        f"{result.rows_after_protected}"
    )
    lines.append(f"- After removing other incomplete responses: {len(result.data)}")
    lines.append(f"- Variables retained: {result.data.shape[1]}")
    lines.append("")

    lines.append(f"## Variables Removed (> {config.missing_threshold:.0f}% missing)")
    lines.append("")
    if result.removed_variables:
        removed = result.missingness[
            result.missingness["variable"].isin(result.removed_variables)
        ].copy()
        removed["description"] = describe_variables(removed["variable"], codebook).to_numpy()
        lines.append(removed.round(2).to_markdown(index=False))
    else:
        lines.append("- None.")
    lines.append("")

    lines.append("## Exempt From Row Filter")
    lines.append("")
    for column in config.sparse_exempt:
        lines.append(f"- `{column}`")
    lines.append("")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text("\n".join(lines), encoding="utf-8")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Clean the Race IAT survey dataset")
    add_common_arguments(parser, DEFAULT_RAW_DATASET)
    parser.add_argument(
        "--output",
        type=Path,
        default=DEFAULT_CLEAN_DATASET,
        help="Where to write the cleaned dataset (.pkl).",
    )
    parser.add_argument(
        "--missing-threshold",
        type=float,
        default=40.0,
        help="Drop variables with more than this percentage of missing values.",
    )
    parser.add_argument(
        "--sample-size",
        type=int,
        default=None,
        help="Optionally down-sample the cleaned respondents to this many rows.",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=DEFAULT_SEED,
        help="Random seed for down-sampling.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    configure_logging(args.log_level)
    set_seed(args.seed)

    config = CleaningConfig(
        missing_threshold=args.missing_threshold,
        sample_size=args.sample_size,
        seed=args.seed,
    )
    layout = OutputLayout(args.output_root).create()
    raw = load_survey(args.input)
    codebook = load_optional_codebook(args.codebook)

    result = clean_dataset(raw, config)

    summary_path = layout.tables / "missingness_summary.csv"
    result.missingness.to_csv(summary_path, index=False)
    LOGGER.info("Wrote missingness summary to %s", summary_path)

    save_dataset(result.data, args.output, protected=args.input)
    write_cleaning_note(result, config, codebook, layout.notes / "data_cleaning.md")
    LOGGER.info(
        "Cleaned dataset: %d respondents x %d variables",
        result.data.shape[0],
        result.data.shape[1],
    )


if __name__ == "__main__":
    main()
