"""Exceptions raised by the tutorial pipeline.

Each subclasses the builtin a caller would otherwise expect (``KeyError``
for a missing column, ``ValueError`` for bad input), so generic handlers
keep working.
"""

from __future__ import annotations


class MissingColumnError(KeyError):
    """A requested variable is not available in the dataset."""

    def __init__(self, column: str, reason: str = "not found in dataset") -> None:
        self.column = column
        self.reason = reason
        super().__init__(f"Column '{column}' {reason}")

    def __str__(self) -> str:
        return f"Column '{self.column}' {self.reason}"


class DegenerateInputError(ValueError):
    """Input that would make an analysis meaningless (zero variance, no rows)."""


class ParameterError(ValueError):
    """Analysis parameter outside its valid range."""


class ConfigurationError(ValueError):
    """Configuration that does not match the dataset it is applied to."""
