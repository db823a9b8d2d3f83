"""Loading the survey dataset and its variable codebook.

The public Race IAT release ships as an SPSS ``.sav`` file with an Excel
codebook. Later steps read the cleaned dataset back from a pickle, which
keeps column dtypes (numeric vs character) exactly as cleaning left them.
CSV copies of either file are accepted as well.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

import pandas as pd

LOGGER = logging.getLogger(__name__)

CODEBOOK_COLUMNS = ["variable", "description"]


def load_survey(path: Path) -> pd.DataFrame:
    """Read a respondent-level dataset from ``.sav``, ``.pkl`` or ``.csv``."""

    if not path.exists():
        raise FileNotFoundError(f"Survey dataset not found: {path}")

    suffix = path.suffix.lower()
    LOGGER.info("Loading survey dataset from %s", path)
    if suffix == ".sav":
        # Keep value codes numeric; labels only matter for interpretation.
        frame = pd.read_spss(path, convert_categoricals=False)
    elif suffix in {".pkl", ".pickle"}:
        frame = pd.read_pickle(path)
    elif suffix == ".csv":
        frame = pd.read_csv(path)
    else:
        raise ValueError(f"Unsupported dataset format '{suffix}' for {path}")

    if not isinstance(frame, pd.DataFrame):
        raise ValueError(f"{path} does not contain a data frame")
    LOGGER.info("Loaded %d respondents x %d variables", frame.shape[0], frame.shape[1])
    return frame


def load_codebook(path: Path) -> pd.DataFrame:
    """Read the codebook and normalise it to ``variable`` / ``description``.

    The first column is taken as the variable name and the second as its
    label, whatever the sheet calls them.
    """

    if not path.exists():
        raise FileNotFoundError(f"Codebook not found: {path}")

    suffix = path.suffix.lower()
    if suffix in {".xlsx", ".xls"}:
        raw = pd.read_excel(path)
    elif suffix == ".csv":
        raw = pd.read_csv(path)
    else:
        raise ValueError(f"Unsupported codebook format '{suffix}' for {path}")

    if raw.shape[1] < 2:
        raise ValueError(
            f"Codebook {path} needs at least two columns (variable, description)"
        )
    codebook = raw.iloc[:, :2].copy()
    codebook.columns = CODEBOOK_COLUMNS
    codebook = codebook.dropna(subset=["variable"])
    codebook["variable"] = codebook["variable"].astype(str).str.strip()
    codebook["description"] = codebook["description"].fillna("").astype(str)
    codebook = codebook.drop_duplicates(subset="variable").reset_index(drop=True)
    LOGGER.info("Loaded codebook with %d variables", len(codebook))
    return codebook


def load_optional_codebook(path: Optional[Path]) -> Optional[pd.DataFrame]:
    if path is None:
        return None
    return load_codebook(path)


def describe_variables(
    variables: Iterable[str],
    codebook: Optional[pd.DataFrame],
) -> pd.Series:
    """Map variable names to their codebook description ('' when unknown)."""

    names = list(variables)
    if codebook is None:
        return pd.Series([""] * len(names), index=names, name="description", dtype=object)
    lookup = codebook.set_index("variable")["description"]
    return lookup.reindex(names).fillna("").rename("description")
