"""
Tests for saving derived datasets and rules.
"""

import pandas as pd
import pytest

from iat_uml.data_loading import describe_variables, load_codebook, load_survey
from iat_uml.persistence import append_derived, format_itemset, save_dataset, save_rules


@pytest.fixture
def base():
    return pd.DataFrame({"a": [1, 2, 3], "b": ["x", "y", "z"]}, index=[10, 20, 30])


class TestAppendDerived:
    """Tests for attaching derived columns."""

    def test_aligned_by_index(self, base):
        """Derived values land on the rows with the same label."""
        labels = pd.Series([3, 1, 2], index=[30, 10, 20], name="cluster")
        combined = append_derived(base, labels)

        assert list(combined.columns) == ["a", "b", "cluster"]
        assert list(combined["cluster"]) == [1, 2, 3]
        assert list(combined.index) == [10, 20, 30]

    def test_frame_of_scores(self, base):
        """Several derived columns can be appended at once."""
        scores = pd.DataFrame({"PC1": [0.1, 0.2, 0.3], "PC2": [1.0, 2.0, 3.0]}, index=base.index)
        combined = append_derived(base, scores)
        assert list(combined.columns) == ["a", "b", "PC1", "PC2"]

    def test_misaligned_rows(self, base):
        """Derived rows that do not match the dataset are rejected."""
        with pytest.raises(ValueError):
            append_derived(base, pd.Series([1, 2], index=[10, 20], name="cluster"))
        with pytest.raises(ValueError):
            append_derived(base, pd.Series([1, 2, 3], index=[10, 20, 99], name="cluster"))

    def test_name_collision(self, base):
        """An existing column is never overwritten."""
        with pytest.raises(ValueError):
            append_derived(base, pd.Series([1, 2, 3], index=base.index, name="a"))


class TestSaveDataset:
    """Tests for pickling derived datasets."""

    def test_round_trip(self, base, tmp_path):
        """The pickled frame comes back identical."""
        path = save_dataset(base, tmp_path / "data" / "derived.pkl")
        pd.testing.assert_frame_equal(pd.read_pickle(path), base)

    def test_protected_path(self, base, tmp_path):
        """The upstream dataset cannot be overwritten."""
        source = tmp_path / "iat_clean.pkl"
        base.to_pickle(source)
        with pytest.raises(ValueError):
            save_dataset(base.assign(c=1), tmp_path / "." / "iat_clean.pkl", protected=source)
        pd.testing.assert_frame_equal(pd.read_pickle(source), base)


class TestSaveRules:
    """Tests for writing rule tables."""

    def test_itemsets_rendered(self, tmp_path):
        """Item sets are written as sorted brace lists."""
        rules = pd.DataFrame(
            {
                "antecedents": [frozenset({"b=2", "a=1"})],
                "consequents": [frozenset({"c=3"})],
                "support": [0.5],
                "confidence": [0.9],
                "lift": [1.2],
            }
        )
        path = save_rules(rules, tmp_path / "rules.csv")
        written = pd.read_csv(path)

        assert written.loc[0, "antecedents"] == "{a=1, b=2}"
        assert written.loc[0, "consequents"] == "{c=3}"

    def test_format_itemset(self):
        """Items are sorted as text."""
        assert format_itemset(["z", "a"]) == "{a, z}"
        assert format_itemset([]) == "{}"


class TestLoading:
    """Tests for reading datasets and codebooks."""

    def test_missing_file(self, tmp_path):
        """A missing dataset raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_survey(tmp_path / "absent.sav")

    def test_unsupported_format(self, tmp_path):
        """Unknown extensions are rejected."""
        path = tmp_path / "survey.json"
        path.write_text("{}")
        with pytest.raises(ValueError):
            load_survey(path)

    def test_codebook_columns_normalised(self, tmp_path):
        """The first two columns become variable and description."""
        path = tmp_path / "codebook.csv"
        pd.DataFrame(
            {"Variable Name": ["edu", " att7", None], "Label": ["Education", None, "orphan"]}
        ).to_csv(path, index=False)

        codebook = load_codebook(path)
        assert list(codebook.columns) == ["variable", "description"]
        assert list(codebook["variable"]) == ["edu", "att7"]
        assert list(describe_variables(["att7", "edu", "zzz"], codebook)) == ["", "Education", ""]

    def test_codebook_xlsx(self, tmp_path):
        """Excel codebooks are read as well."""
        path = tmp_path / "codebook.xlsx"
        pd.DataFrame({"name": ["edu"], "label": ["Education"]}).to_excel(path, index=False)
        assert load_codebook(path).loc[0, "description"] == "Education"
