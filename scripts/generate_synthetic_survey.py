#!/usr/bin/env python3
"""Write a synthetic Race IAT survey and codebook for running the tutorial.

The public dataset has to be downloaded from Project Implicit separately.
This script produces stand-ins with the same variable names:

* ``data/iat_synthetic.csv`` (or ``.pkl``) – respondent-level survey.
* ``data/iat_synthetic_codebook.csv`` – variable descriptions.

Feed them to the cleaning step::

    python scripts/generate_synthetic_survey.py
    python -m iat_uml.data_cleaning --input data/iat_synthetic.csv \\
        --codebook data/iat_synthetic_codebook.csv
"""

from __future__ import annotations

import argparse
from pathlib import Path

from iat_uml.config import DEFAULT_DATA_DIR, DEFAULT_SEED
from iat_uml.synthetic import make_synthetic_survey


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Generate a synthetic survey with the tutorial's variable names",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=DEFAULT_DATA_DIR,
        help="Directory for the survey and codebook files (default: data)",
    )
    parser.add_argument(
        "--n-respondents",
        type=int,
        default=600,
        help="Number of synthetic respondents (default: 600)",
    )
    parser.add_argument(
        "--format",
        choices=["csv", "pkl"],
        default="csv",
        help="File format of the survey (default: csv)",
    )
    parser.add_argument("--seed", type=int, default=DEFAULT_SEED, help="Random seed")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    args.output_dir.mkdir(parents=True, exist_ok=True)

    survey, codebook = make_synthetic_survey(args.n_respondents, seed=args.seed)
    survey_path = args.output_dir / f"iat_synthetic.{args.format}"
    codebook_path = args.output_dir / "iat_synthetic_codebook.csv"
    if args.format == "pkl":
        survey.to_pickle(survey_path)
    else:
        survey.to_csv(survey_path, index=False)
    codebook.to_csv(codebook_path, index=False)

    print(f"Created survey: {survey_path} ({survey.shape[0]} x {survey.shape[1]})")
    print(f"Created codebook: {codebook_path}")


if __name__ == "__main__":
    main()
