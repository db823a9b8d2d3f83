"""
Tests for the data cleaning step.
"""

import numpy as np
import pandas as pd
import pytest

from iat_uml.config import CleaningConfig
from iat_uml.data_cleaning import (
    clean_dataset,
    main,
    missingness_summary,
    protected_columns,
)
from iat_uml.errors import ConfigurationError, ParameterError


class TestMissingnessSummary:
    """Tests for the per-variable missingness table."""

    def test_counts_and_percentages(self, small_survey):
        """Counts and percentages match the raw data, worst variable first."""
        summary = missingness_summary(small_survey)

        assert list(summary.columns) == ["variable", "n_miss", "pct_miss"]
        assert summary.iloc[0]["variable"] == "mostly_empty"
        assert summary.iloc[0]["n_miss"] == 5
        row = summary.set_index("variable").loc["edu"]
        assert row["n_miss"] == 1
        assert np.isclose(row["pct_miss"], 100.0 / 6)

    def test_complete_variables_report_zero(self, small_survey):
        """Variables without gaps are listed with zero missing."""
        summary = missingness_summary(small_survey).set_index("variable")
        assert summary.loc["STATE", "n_miss"] == 0
        assert summary.loc["mcpr2", "pct_miss"] == 0.0


class TestCleanDataset:
    """Tests for the cleaning rules."""

    def test_drops_sparse_variable(self, small_survey):
        """Variables above the threshold are removed."""
        result = clean_dataset(small_survey, CleaningConfig())
        assert "mostly_empty" not in result.data.columns
        assert result.removed_variables == ["mostly_empty"]

    def test_keeps_exempt_variable(self, small_survey):
        """Exempt sub-category columns survive despite heavy missingness."""
        result = clean_dataset(small_survey, CleaningConfig())
        assert "raceomb_003sub_asian" in result.data.columns

    def test_drops_incomplete_respondents(self, small_survey):
        """Rows missing an mcpr item or any non-exempt value disappear."""
        result = clean_dataset(small_survey, CleaningConfig())

        assert result.rows_before == 6
        assert result.rows_after_protected == 5
        assert list(result.data.index) == [0, 1, 4, 5]
        assert result.data["mcpr1"].notna().all()

    def test_no_missing_outside_exempt_columns(self, clean_survey):
        """Only the exempt columns may still contain missing values."""
        config = CleaningConfig()
        required = [c for c in clean_survey.columns if c not in config.sparse_exempt]
        assert not clean_survey[required].isna().any().any()

    def test_protected_block_kept_even_when_sparse(self):
        """mcpr items are never dropped by the variable filter."""
        frame = pd.DataFrame(
            {
                "mcpr1": [1.0, np.nan, np.nan, np.nan, 2.0],
                "edu": [1.0, 2.0, 3.0, 4.0, 5.0],
            }
        )
        result = clean_dataset(frame, CleaningConfig())
        assert "mcpr1" in result.data.columns
        assert list(result.data.index) == [0, 4]

    def test_idempotent(self, synthetic_survey):
        """Cleaning a cleaned dataset changes nothing."""
        survey, _ = synthetic_survey
        once = clean_dataset(survey, CleaningConfig()).data
        twice = clean_dataset(once, CleaningConfig()).data
        pd.testing.assert_frame_equal(once, twice)

    def test_missing_protected_group(self, small_survey):
        """Without any mcpr column the configuration is rejected."""
        with pytest.raises(ConfigurationError):
            clean_dataset(small_survey.drop(columns=["mcpr1", "mcpr2"]), CleaningConfig())

    def test_sample_size_is_seeded(self, synthetic_survey):
        """Down-sampling returns the same rows for the same seed."""
        survey, _ = synthetic_survey
        first = clean_dataset(survey, CleaningConfig(sample_size=50, seed=3)).data
        second = clean_dataset(survey, CleaningConfig(sample_size=50, seed=3)).data

        assert len(first) == 50
        assert list(first.index) == list(second.index)
        assert first.index.is_monotonic_increasing

    def test_threshold_out_of_range(self):
        """The threshold is a percentage."""
        with pytest.raises(ParameterError):
            CleaningConfig(missing_threshold=140.0)


class TestProtectedColumns:
    """Tests for the protected column lookup."""

    def test_prefix_match(self, small_survey):
        """All columns with the prefix are returned in order."""
        assert protected_columns(small_survey, "mcpr") == ["mcpr1", "mcpr2"]


class TestCleaningCommand:
    """Tests for the command line entry point."""

    def test_writes_artifacts(self, tmp_path, synthetic_survey):
        """The script writes the dataset, the missingness table and the note."""
        survey, codebook = synthetic_survey
        raw_path = tmp_path / "raw.csv"
        codebook_path = tmp_path / "codebook.csv"
        survey.to_csv(raw_path, index=False)
        codebook.to_csv(codebook_path, index=False)
        output = tmp_path / "outputs" / "data" / "iat_clean.pkl"

        main(
            [
                "--input",
                str(raw_path),
                "--codebook",
                str(codebook_path),
                "--output-root",
                str(tmp_path / "outputs"),
                "--output",
                str(output),
                "--log-level",
                "WARNING",
            ]
        )

        cleaned = pd.read_pickle(output)
        assert len(cleaned) > 0
        assert (tmp_path / "outputs" / "tables" / "missingness_summary.csv").exists()
        note = (tmp_path / "outputs" / "notes" / "data_cleaning.md").read_text()
        assert "raceombmulti_followup" in note

    def test_refuses_to_overwrite_input(self, tmp_path, synthetic_survey):
        """The raw dataset can never be the cleaning output."""
        survey, _ = synthetic_survey
        raw_path = tmp_path / "raw.pkl"
        survey.to_pickle(raw_path)

        with pytest.raises(ValueError):
            main(
                [
                    "--input",
                    str(raw_path),
                    "--output-root",
                    str(tmp_path / "outputs"),
                    "--output",
                    str(raw_path),
                ]
            )
