"""
Shared fixtures for the tutorial tests.
"""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from iat_uml.common import OutputLayout
from iat_uml.config import CleaningConfig
from iat_uml.data_cleaning import clean_dataset
from iat_uml.synthetic import make_synthetic_survey


@pytest.fixture(scope="session")
def synthetic_survey():
    """Raw synthetic survey and its codebook."""
    return make_synthetic_survey(n_respondents=240, seed=7)


@pytest.fixture(scope="session")
def clean_survey(synthetic_survey):
    """The synthetic survey after the standard cleaning rules."""
    survey, _ = synthetic_survey
    return clean_dataset(survey, CleaningConfig()).data


@pytest.fixture
def layout(tmp_path):
    """Output directories under a temporary root."""
    return OutputLayout(tmp_path / "outputs").create()


@pytest.fixture
def two_groups():
    """Six rows forming two well-separated groups of three."""
    return pd.DataFrame(
        {
            "x": [0.0, 0.1, 0.2, 10.0, 10.1, 10.2],
            "y": [0.0, 0.1, 0.0, 10.0, 10.1, 10.0],
        },
        index=[11, 12, 13, 14, 15, 16],
    )


@pytest.fixture
def three_column_groups():
    """Six rows, three numeric columns, two well-separated groups."""
    return pd.DataFrame(
        {
            "x": [0.0, 0.0, 1.0, 10.0, 10.0, 11.0],
            "y": [0.0, 1.0, 0.0, 10.0, 11.0, 10.0],
            "z": [0.0, 0.5, 0.0, 10.0, 10.5, 10.0],
        }
    )


@pytest.fixture
def small_survey():
    """A hand-written survey with an mcpr block, a sparse column and an exempt column."""
    return pd.DataFrame(
        {
            "mcpr1": [1.0, 2.0, np.nan, 4.0, 5.0, 6.0],
            "mcpr2": [1.0, 1.0, 2.0, 2.0, 3.0, 3.0],
            "edu": [3.0, 4.0, 5.0, np.nan, 6.0, 7.0],
            "mostly_empty": [np.nan, np.nan, np.nan, np.nan, 1.0, np.nan],
            "raceomb_003sub_asian": [np.nan, np.nan, 1.0, np.nan, np.nan, 0.0],
            "STATE": ["CA", "TX", "NY", "CA", "TX", "NY"],
        }
    )
