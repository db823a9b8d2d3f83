"""Step 5: Market basket analysis with the Apriori algorithm.

Each respondent is treated as a shopping basket whose items are their
answers, written ``variable=value`` (for example ``politicalid7=4``).
Apriori finds the item sets that appear in at least ``min_support`` of the
baskets, growing them one item at a time and skipping any candidate with
an infrequent subset. Rules ``A => B`` are then kept when

* support(A and B) >= min_support, and
* confidence = support(A and B) / support(A) >= min_confidence.

``lift`` = confidence / support(B) tells how much more often B occurs
with A than on its own.

Continuous IAT D-scores are cut into quartiles first; otherwise every
respondent would carry a unique score and the items would never repeat.
Missing answers contribute no item.

Run directly as a script::

    python -m iat_uml.association_rules --min-support 0.1 --min-confidence 0.8
"""

from __future__ import annotations

import argparse
import logging
from typing import List, Optional, Sequence

import pandas as pd
from mlxtend.frequent_patterns import apriori
from mlxtend.frequent_patterns import association_rules as derive_rules
from mlxtend.preprocessing import TransactionEncoder

from .common import OutputLayout, add_common_arguments, configure_logging
from .config import DEFAULT_CLEAN_DATASET, AprioriConfig
from .data_loading import load_optional_codebook, load_survey
from .errors import DegenerateInputError, ParameterError
from .features import MISSING_LEVEL, bin_continuous, select_features, to_categorical
from .persistence import format_itemset, save_rules
from .reporting import (
    log_table,
    markdown_table,
    plot_rules,
    variable_table,
    write_markdown_note,
)

LOGGER = logging.getLogger(__name__)

RULE_COLUMNS = ["antecedents", "consequents", "support", "confidence", "lift"]


def _baskets(frame: pd.DataFrame) -> List[List[str]]:
    levels = to_categorical(frame).astype(str)
    baskets: List[List[str]] = []
    for _, row in levels.iterrows():
        baskets.append(
            [f"{column}={value}" for column, value in row.items() if value != MISSING_LEVEL]
        )
    return baskets


def to_transactions(frame: pd.DataFrame) -> pd.DataFrame:
    """One-hot boolean frame: one row per respondent, one column per item."""

    baskets = _baskets(frame)
    if not baskets or not any(baskets):
        raise DegenerateInputError("No transactions to mine: every basket is empty")
    encoder = TransactionEncoder()
    encoded = encoder.fit(baskets).transform(baskets)
    return pd.DataFrame(encoded, columns=encoder.columns_, index=frame.index)


def frequent_itemsets(
    transactions: pd.DataFrame,
    min_support: float,
    max_len: Optional[int] = None,
) -> pd.DataFrame:
    """Item sets whose support reaches ``min_support``."""

    if not 0.0 < float(min_support) <= 1.0:
        raise ParameterError(f"min_support must lie in (0, 1], got {min_support!r}")
    if transactions.empty:
        raise DegenerateInputError("No transactions to mine")
    frequent = apriori(
        transactions,
        min_support=float(min_support),
        use_colnames=True,
        max_len=max_len,
        verbose=0,
    )
    LOGGER.info("Found %d frequent item sets at support >= %.3f", len(frequent), min_support)
    return frequent


def _empty_rules() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "antecedents": pd.Series(dtype=object),
            "consequents": pd.Series(dtype=object),
            "support": pd.Series(dtype=float),
            "confidence": pd.Series(dtype=float),
            "lift": pd.Series(dtype=float),
        }
    )


def rules_from_itemsets(
    frequent: pd.DataFrame,
    n_transactions: int,
    min_confidence: float,
) -> pd.DataFrame:
    """Rules meeting ``min_confidence``, best confidence (then support) first."""

    if not 0.0 <= float(min_confidence) <= 1.0:
        raise ParameterError(f"min_confidence must lie in [0, 1], got {min_confidence!r}")
    if frequent.empty or frequent["itemsets"].map(len).max() < 2:
        LOGGER.warning("No frequent item set has two items; no rules can be formed")
        return _empty_rules()

    rules = derive_rules(
        frequent,
        num_itemsets=n_transactions,
        metric="confidence",
        min_threshold=float(min_confidence),
    )
    if rules.empty:
        LOGGER.warning("No rule reaches confidence >= %.3f", min_confidence)
        return _empty_rules()
    rules = rules[RULE_COLUMNS].sort_values(
        ["confidence", "support"], ascending=[False, False], kind="mergesort"
    )
    return rules.reset_index(drop=True)


def mine_rules(frame: pd.DataFrame, config: AprioriConfig) -> pd.DataFrame:
    """Select, discretise and encode ``frame``, then mine association rules."""

    selected = select_features(frame, config.variables, min_variance=None, strict=True)
    binned = bin_continuous(
        selected,
        [column for column in config.binned if column in selected.columns],
        n_bins=config.n_bins,
    )
    transactions = to_transactions(binned)
    LOGGER.info(
        "Encoded %d transactions over %d distinct items",
        transactions.shape[0],
        transactions.shape[1],
    )
    frequent = frequent_itemsets(transactions, config.min_support, config.max_len)
    return rules_from_itemsets(frequent, len(transactions), config.min_confidence)


def _readable(rules: pd.DataFrame) -> pd.DataFrame:
    table = rules.copy()
    for column in ("antecedents", "consequents"):
        table[column] = table[column].apply(format_itemset)
    return table


def analyze(
    frame: pd.DataFrame,
    config: AprioriConfig,
    layout: OutputLayout,
    codebook: Optional[pd.DataFrame] = None,
) -> pd.DataFrame:
    rules = mine_rules(frame, config)
    LOGGER.info("Mined %d association rules", len(rules))

    save_rules(rules, layout.tables / "association_rules.csv")
    top = _readable(rules.head(config.top_n))
    if not top.empty:
        log_table(f"Top {len(top)} rules by confidence", top)
    plot_rules(rules, layout.figures / "association_rules_scatter.png")

    lift_summary: List[str] = []
    if not rules.empty:
        lift_summary = [
            f"- Lift range: {rules['lift'].min():.3f} to {rules['lift'].max():.3f}",
            f"- Support range: {rules['support'].min():.3f} to {rules['support'].max():.3f}",
        ]
    write_markdown_note(
        layout.notes / "association_rules.md",
        "Market Basket Analysis (Apriori)",
        {
            "Configuration": [
                f"- Minimum support: {config.min_support}",
                f"- Minimum confidence: {config.min_confidence}",
                f"- Maximum item set length: {config.max_len}",
                f"- Quantile-binned variables: {', '.join(config.binned)} ({config.n_bins} bins)",
            ],
            "Variables": markdown_table(variable_table(config.variables, codebook)),
            "Result": [f"- Rules: {len(rules)}", *lift_summary],
            f"Top {config.top_n} Rules by Confidence": markdown_table(top),
        },
    )
    return rules


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Association rule mining on survey answers")
    add_common_arguments(parser, DEFAULT_CLEAN_DATASET)
    parser.add_argument(
        "--min-support",
        type=float,
        default=0.10,
        help="Minimum share of respondents containing an item set.",
    )
    parser.add_argument(
        "--min-confidence",
        type=float,
        default=0.80,
        help="Minimum confidence of a reported rule.",
    )
    parser.add_argument("--max-len", type=int, default=10, help="Largest item set size.")
    parser.add_argument("--top-n", type=int, default=20, help="Rules shown in the log and note.")
    parser.add_argument(
        "--n-bins",
        type=int,
        default=4,
        help="Quantile bins for the continuous IAT scores.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    configure_logging(args.log_level)

    config = AprioriConfig(
        min_support=args.min_support,
        min_confidence=args.min_confidence,
        max_len=args.max_len,
        top_n=args.top_n,
        n_bins=args.n_bins,
    )
    layout = OutputLayout(args.output_root).create()
    frame = load_survey(args.input)
    codebook = load_optional_codebook(args.codebook)
    analyze(frame, config, layout, codebook=codebook)


if __name__ == "__main__":
    main()
