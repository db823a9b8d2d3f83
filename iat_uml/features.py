"""Feature selection and preprocessing shared by every analysis.

Selection is by explicit variable list (see ``iat_uml.config``). A
variable that is not in the dataset is always an error: cluster profiles
are read column by column, so silently analysing a different set of
variables would make them misleading.

Standardization follows R's ``scale()``: centre on the column mean and
divide by the *sample* standard deviation (ddof=1), so each scaled column
has sample mean 0 and sample standard deviation 1.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional, Sequence

import numpy as np
import pandas as pd

from .config import NEAR_ZERO_VARIANCE
from .errors import DegenerateInputError, MissingColumnError

LOGGER = logging.getLogger(__name__)

MISSING_LEVEL = "NA"


def select_features(
    frame: pd.DataFrame,
    variables: Sequence[str],
    numeric_only: bool = False,
    min_variance: Optional[float] = NEAR_ZERO_VARIANCE,
    strict: bool = True,
) -> pd.DataFrame:
    """Return ``frame`` narrowed to ``variables`` in the requested order.

    ``numeric_only`` drops non-numeric columns and ``min_variance`` drops
    numeric columns whose variance does not exceed the threshold. With
    ``strict`` a requested variable removed by either filter raises
    ``MissingColumnError``; otherwise it is dropped with a warning.
    """

    for variable in variables:
        if variable not in frame.columns:
            raise MissingColumnError(variable)

    subset = frame[list(variables)]
    dropped: Dict[str, str] = {}
    if numeric_only:
        for column in subset.columns:
            if not pd.api.types.is_numeric_dtype(subset[column]):
                dropped[column] = "is not numeric"
    if min_variance is not None:
        for column in subset.columns:
            if column in dropped or not pd.api.types.is_numeric_dtype(subset[column]):
                continue
            variance = subset[column].var()
            if not variance > min_variance:
                dropped[column] = f"has near-zero variance ({variance:.3g})"

    for column, reason in dropped.items():
        if strict:
            raise MissingColumnError(column, reason)
        LOGGER.warning("Dropping '%s': column %s", column, reason)

    kept = [column for column in variables if column not in dropped]
    return subset[kept].copy()


def select_categorical(frame: pd.DataFrame, exclude: Iterable[str] = ()) -> pd.DataFrame:
    """Non-numeric (character or category) columns of ``frame`` minus ``exclude``."""

    excluded = list(exclude)
    for variable in excluded:
        if variable not in frame.columns:
            raise MissingColumnError(variable)
    columns = [
        column
        for column in frame.columns
        if column not in excluded and not pd.api.types.is_numeric_dtype(frame[column])
    ]
    return frame[columns].copy()


def standardize(frame: pd.DataFrame) -> pd.DataFrame:
    """Centre and scale every column: ``(x - mean) / std`` with ddof=1."""

    if frame.empty:
        raise DegenerateInputError("Cannot standardize an empty feature matrix")
    numeric = frame.astype(float)
    means = numeric.mean()
    stds = numeric.std(ddof=1)
    for column, std in stds.items():
        if not np.isfinite(std) or std <= 0.0:
            raise DegenerateInputError(
                f"Column '{column}' has zero variance; standardization is undefined"
            )
    return (numeric - means) / stds


def summarize_standardization(frame: pd.DataFrame) -> Dict[str, float]:
    """Largest absolute column mean and mean sample standard deviation."""

    if frame.empty:
        return {"max_abs_mean": float("nan"), "mean_std": float("nan")}
    return {
        "max_abs_mean": float(np.max(np.abs(frame.mean().to_numpy()))),
        "mean_std": float(np.mean(frame.std(ddof=1).to_numpy())),
    }


def _as_level(value: object) -> str:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return MISSING_LEVEL
    if isinstance(value, (float, np.floating)) and float(value).is_integer():
        return str(int(value))
    return str(value).strip()


def to_categorical(frame: pd.DataFrame) -> pd.DataFrame:
    """Represent every column as string levels (``3.0`` -> ``"3"``, NaN -> ``"NA"``)."""

    converted = {
        column: frame[column].astype(object).map(_as_level).astype("category")
        for column in frame.columns
    }
    return pd.DataFrame(converted, index=frame.index)


def bin_continuous(
    frame: pd.DataFrame,
    columns: Iterable[str],
    n_bins: int = 4,
) -> pd.DataFrame:
    """Replace the named numeric columns with quantile interval labels."""

    binned = frame.copy()
    for column in columns:
        if column not in binned.columns:
            raise MissingColumnError(column)
        values = pd.to_numeric(binned[column], errors="coerce")
        bins = pd.qcut(values, q=n_bins, duplicates="drop")
        binned[column] = bins.astype(str).where(bins.notna(), MISSING_LEVEL)
        LOGGER.debug("Binned '%s' into %d intervals", column, bins.cat.categories.size)
    return binned
