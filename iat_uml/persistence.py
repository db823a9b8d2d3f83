"""Writing derived datasets and rule sets to disk.

Derived tables are the cleaned dataset plus one or more new columns
(cluster id, component scores). They are pickled so the next session gets
back exactly the dtypes it saved. The cleaned dataset itself is never
overwritten by an analysis step.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional, Union

import pandas as pd

LOGGER = logging.getLogger(__name__)


def append_derived(
    base: pd.DataFrame,
    derived: Union[pd.Series, pd.DataFrame],
) -> pd.DataFrame:
    """Concatenate derived columns onto ``base`` by row index."""

    extra = derived.to_frame() if isinstance(derived, pd.Series) else derived
    if not extra.index.equals(base.index):
        if len(extra) != len(base) or not extra.index.isin(base.index).all():
            raise ValueError(
                "Derived columns do not align with the dataset rows "
                f"({len(extra)} derived vs {len(base)} base rows)"
            )
        extra = extra.reindex(base.index)
    overlap = sorted(set(map(str, extra.columns)) & set(map(str, base.columns)))
    if overlap:
        raise ValueError(f"Derived columns already exist in dataset: {', '.join(overlap)}")
    return pd.concat([base, extra], axis=1)


def _same_file(a: Path, b: Path) -> bool:
    return a.expanduser().resolve() == b.expanduser().resolve()


def save_dataset(
    frame: pd.DataFrame,
    path: Path,
    protected: Optional[Union[Path, Iterable[Path]]] = None,
) -> Path:
    """Pickle ``frame`` to ``path``, refusing to replace a protected input."""

    if protected is not None:
        protected_paths = [protected] if isinstance(protected, Path) else list(protected)
        for source in protected_paths:
            if _same_file(Path(source), path):
                raise ValueError(f"Refusing to overwrite input dataset {source}")
    path.parent.mkdir(parents=True, exist_ok=True)
    frame.to_pickle(path)
    LOGGER.info("Saved %d rows x %d columns to %s", frame.shape[0], frame.shape[1], path)
    return path


def format_itemset(items: Iterable[object]) -> str:
    return "{" + ", ".join(sorted(str(item) for item in items)) + "}"


def save_rules(rules: pd.DataFrame, path: Path) -> Path:
    """Write association rules as CSV with item sets rendered ``{a, b}``."""

    table = rules.copy()
    for column in ("antecedents", "consequents"):
        if column in table.columns:
            table[column] = table[column].apply(format_itemset)
    path.parent.mkdir(parents=True, exist_ok=True)
    table.to_csv(path, index=False)
    LOGGER.info("Saved %d association rules to %s", len(table), path)
    return path
