"""Shared helpers for the tutorial steps.

Reproducibility, logging setup and the ``outputs/`` directory layout live
here so every step script writes its artifacts to the same places.
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from pathlib import Path

import numpy as np

from .config import DEFAULT_OUTPUT_ROOT

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=LOG_FORMAT,
    )


def set_seed(seed: int) -> None:
    """Seed the global random sources used by the numerical libraries."""

    random.seed(seed)
    np.random.seed(seed)


def ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


@dataclass(frozen=True)
class OutputLayout:
    """Artifact directories under a single output root."""

    root: Path = DEFAULT_OUTPUT_ROOT

    @property
    def data(self) -> Path:
        return self.root / "data"

    @property
    def tables(self) -> Path:
        return self.root / "tables"

    @property
    def figures(self) -> Path:
        return self.root / "figures"

    @property
    def notes(self) -> Path:
        return self.root / "notes"

    def create(self) -> "OutputLayout":
        for directory in (self.data, self.tables, self.figures, self.notes):
            ensure_directory(directory)
        return self


def add_common_arguments(parser, default_input: Path) -> None:
    """Register the flags every analysis step shares."""

    parser.add_argument(
        "--input",
        type=Path,
        default=default_input,
        help="Path to the cleaned dataset (.pkl, .csv or .sav).",
    )
    parser.add_argument(
        "--codebook",
        type=Path,
        default=None,
        help="Optional variable codebook (.xlsx or .csv) used to annotate reports.",
    )
    parser.add_argument(
        "--output-root",
        type=Path,
        default=DEFAULT_OUTPUT_ROOT,
        help="Root directory for generated artifacts.",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=LOG_LEVELS,
        help="Logging verbosity.",
    )
