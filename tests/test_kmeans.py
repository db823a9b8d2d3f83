"""
Tests for the k-means step.
"""

import numpy as np
import pandas as pd
import pytest

from iat_uml.config import KMEANS_PRESETS, KMeansConfig, NUMERIC_FOCUSED, get_preset
from iat_uml.errors import ConfigurationError, DegenerateInputError, ParameterError
from iat_uml.kmeans_clustering import (
    analyze,
    run_kmeans,
    total_sum_of_squares,
    within_cluster_ss,
)


class TestRunKMeans:
    """Tests for a single k-means fit."""

    def test_two_group_scenario(self, two_groups):
        """Six points in two tight groups split into the obvious halves."""
        result = run_kmeans(two_groups, k=2, n_init=25, seed=1234)
        labels = result.labels

        assert set(labels.unique()) == {1, 2}
        assert labels.loc[11] == labels.loc[12] == labels.loc[13]
        assert labels.loc[14] == labels.loc[15] == labels.loc[16]
        assert labels.loc[11] != labels.loc[14]
        assert list(result.sizes) == [3, 3]

    def test_three_column_scenario(self, three_column_groups):
        """Two separated groups in three columns get two labels and no mixing."""
        labels = run_kmeans(three_column_groups, k=2, n_init=25, seed=1234).labels

        assert labels.iloc[:3].nunique() == 1
        assert labels.iloc[3:].nunique() == 1
        assert labels.iloc[0] != labels.iloc[3]

    def test_centers_are_group_means(self, two_groups):
        """Each centre is the mean of its members."""
        result = run_kmeans(two_groups, k=2, seed=1234)
        for cluster_id, center in result.centers.iterrows():
            members = two_groups[result.labels == cluster_id]
            assert np.allclose(center.to_numpy(), members.mean().to_numpy())

    def test_sum_of_squares_decomposition(self, two_groups):
        """Total SS equals within SS plus between SS."""
        result = run_kmeans(two_groups, k=2, seed=1234)

        assert np.isclose(result.totss, total_sum_of_squares(two_groups))
        assert np.isclose(result.tot_withinss + result.betweenss, result.totss)
        assert result.tot_withinss < 0.1

    def test_deterministic(self, clean_survey):
        """Same seed, same data, same labels."""
        matrix = clean_survey[list(NUMERIC_FOCUSED)]
        first = run_kmeans(matrix, k=3, n_init=5, seed=99)
        second = run_kmeans(matrix, k=3, n_init=5, seed=99)

        pd.testing.assert_series_equal(first.labels, second.labels)
        assert np.isclose(first.tot_withinss, second.tot_withinss)

    def test_labels_align_with_index(self, two_groups):
        """Labels carry the input row index."""
        result = run_kmeans(two_groups, k=2, seed=1234)
        assert list(result.labels.index) == list(two_groups.index)
        assert result.labels.name == "cluster"

    @pytest.mark.parametrize("k", [0, -1, 7])
    def test_invalid_k(self, two_groups, k):
        """K must lie between 1 and the number of rows."""
        with pytest.raises(ParameterError):
            run_kmeans(two_groups, k=k)

    def test_empty_matrix(self):
        """An empty matrix cannot be clustered."""
        with pytest.raises(DegenerateInputError):
            run_kmeans(pd.DataFrame(), k=1)


class TestElbow:
    """Tests for the within-cluster sum of squares curve."""

    def test_length_and_monotone_start(self, two_groups):
        """One value per K and the K=1 value equals the total SS."""
        wss = within_cluster_ss(two_groups, max_k=4, n_init=10, seed=1234)

        assert list(wss.index) == [1, 2, 3, 4]
        assert np.isclose(wss.loc[1], total_sum_of_squares(two_groups))
        assert wss.loc[2] < wss.loc[1]

    def test_capped_by_rows(self, two_groups):
        """K never exceeds the number of rows."""
        wss = within_cluster_ss(two_groups, max_k=10, n_init=2, seed=1234)
        assert wss.index.max() == len(two_groups)


class TestPresets:
    """Tests for the tutorial presets."""

    def test_known_presets(self):
        """Both tutorial runs are available with their chosen K."""
        assert get_preset(KMEANS_PRESETS, "full").params["k"] == 2
        assert get_preset(KMEANS_PRESETS, "focused").scale is True

    def test_unknown_preset(self):
        """Unknown names list the valid choices."""
        with pytest.raises(ConfigurationError):
            get_preset(KMEANS_PRESETS, "everything")

    def test_config_rejects_bad_k(self):
        """K is a required positive parameter."""
        with pytest.raises(ParameterError):
            KMeansConfig(k=0)


class TestAnalyze:
    """Tests for the full k-means step."""

    def test_writes_artifacts(self, clean_survey, layout):
        """Elbow table, cluster means, clustered dataset, figures and note are written."""
        config = KMeansConfig(k=3, n_init=5, max_k=4, seed=1234)
        result = analyze(clean_survey, config, layout, name="kmeans_focused")

        elbow = pd.read_csv(layout.tables / "kmeans_focused_elbow.csv")
        assert list(elbow["k"]) == [1, 2, 3, 4]
        clustered = pd.read_pickle(layout.data / "iat_kmeans_focused_clusters.pkl")
        assert len(clustered) == len(clean_survey)
        assert (clustered["cluster"] == result.labels).all()
        assert (layout.figures / "kmeans_focused_elbow.png").exists()
        assert (layout.figures / "kmeans_focused_clusters.png").exists()
        assert "K-Means Clustering" in (layout.notes / "kmeans_focused.md").read_text()

    def test_unknown_variable(self, clean_survey, layout):
        """A variable list naming an absent column fails before clustering."""
        config = KMeansConfig(k=2, variables=("politicalid_7", "not_a_column"))
        with pytest.raises(KeyError):
            analyze(clean_survey, config, layout)
