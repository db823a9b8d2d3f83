"""Synthetic stand-in for the public Race IAT survey.

The real dataset is distributed by Project Implicit and is not bundled.
``make_synthetic_survey`` produces a frame with the same variable names
and roughly the same structure, which is enough to run every step of the
tutorial end to end:

* three latent respondent profiles that shift ideology, the IAT D-score
  and the feeling thermometers, so the clustering steps have something to
  find;
* the 17 ``mcpr`` items, a few of them with scattered missing answers;
* the race sub-category indicators, answered by a minority only;
* one mostly-empty follow-up item that cleaning should remove;
* character session and geography fields for k-modes.
"""

from __future__ import annotations

from typing import Dict, Tuple

import numpy as np
import pandas as pd

from .config import DEFAULT_SEED, MCPR_ITEMS, RACE_SUBCATEGORY_COLUMNS

SPARSE_COLUMN = "raceombmulti_followup"

STATES = ["CA", "TX", "NY", "FL", "IL", "OH", "WA", "GA"]
METRO_AREAS = {
    "CA": "Los Angeles-Long Beach-Anaheim",
    "TX": "Dallas-Fort Worth-Arlington",
    "NY": "New York-Newark-Jersey City",
    "FL": "Miami-Fort Lauderdale-Pompano Beach",
    "IL": "Chicago-Naperville-Elgin",
    "OH": "Columbus",
    "WA": "Seattle-Tacoma-Bellevue",
    "GA": "Atlanta-Sandy Springs-Alpharetta",
}
WEBSITE_SOURCES = ["class", "news", "friend", "search", "social", "other"]
OCCUPATIONS = ["15-1100", "25-2000", "29-1000", "41-2000", "43-4000", "-999"]

# Profile-specific means: (politicalid_7, D score, Tblack, Twhite)
PROFILES: Tuple[Tuple[float, float, float, float], ...] = (
    (2.0, 0.05, 8.0, 7.0),
    (4.0, 0.35, 6.0, 6.5),
    (6.0, 0.60, 4.5, 8.0),
)

DESCRIPTIONS: Dict[str, str] = {
    "session_id": "Session identifier",
    "session_status": "Session completion status",
    "study_name": "Study name",
    "previous_session_schema": "Schema of the previous session",
    "D_biep.White_Good_all": "IAT D-score, all blocks (positive = White-good association)",
    "D_biep.White_Good_36": "IAT D-score, blocks 3 and 6",
    "D_biep.White_Good_47": "IAT D-score, blocks 4 and 7",
    "att7": "Preference for White vs Black people (7-point)",
    "Tblack_0to10": "Feeling thermometer toward Black people (0-10)",
    "Twhite_0to10": "Feeling thermometer toward White people (0-10)",
    "edu": "Highest level of education",
    "edu_14": "Highest level of education (14 categories)",
    "politicalid_7": "Political identity (1 = strongly liberal, 7 = strongly conservative)",
    "politicalid7": "Political identity, alternate coding",
    "religion2014": "Religious affiliation",
    "religionid": "Religiosity (1 = not at all, 4 = strongly)",
    "occuSelf": "Occupation code",
    "occupation_self_002": "Occupation, self-reported category",
    "occuSelfDetail": "Occupation detail code",
    "MSANo": "Metropolitan statistical area number",
    "MSAName": "Metropolitan statistical area name",
    "CountyNo": "County number",
    "STATE": "State of residence",
    "broughtwebsite": "How the respondent came to the website",
    SPARSE_COLUMN: "Follow-up on multiracial identity",
}


def _codebook(columns) -> pd.DataFrame:
    rows = []
    for column in columns:
        if column in DESCRIPTIONS:
            description = DESCRIPTIONS[column]
        elif column.startswith("mcpr"):
            description = f"Motivation to control prejudiced reactions, item {column[4:]}"
        elif column.startswith("raceomb"):
            description = f"Race sub-category indicator ({column.split('_')[-1]})"
        else:
            description = ""
        rows.append({"variable": column, "description": description})
    return pd.DataFrame(rows, columns=["variable", "description"])


def _with_missing(values: np.ndarray, rate: float, rng: np.random.Generator) -> np.ndarray:
    out = values.astype(float)
    out[rng.random(out.size) < rate] = np.nan
    return out


def make_synthetic_survey(
    n_respondents: int = 600,
    seed: int = DEFAULT_SEED,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Return ``(survey, codebook)`` with the tutorial's variable names."""

    if n_respondents <= 0:
        raise ValueError(f"n_respondents must be positive, got {n_respondents}")

    rng = np.random.default_rng(seed)
    n = int(n_respondents)
    profile = rng.integers(0, len(PROFILES), size=n)
    means = np.asarray(PROFILES)[profile]

    politics = np.clip(np.rint(means[:, 0] + rng.normal(0.0, 0.7, n)), 1, 7)
    d_all = means[:, 1] + rng.normal(0.0, 0.18, n)
    t_black = np.clip(np.rint(means[:, 2] + rng.normal(0.0, 1.2, n)), 0, 10)
    t_white = np.clip(np.rint(means[:, 3] + rng.normal(0.0, 1.2, n)), 0, 10)

    data: Dict[str, object] = {
        "session_id": np.arange(1, n + 1),
        "session_status": rng.choice(["C", "C", "C", "R"], size=n),
        "study_name": np.full(n, "race.0003"),
        "previous_session_schema": rng.choice(["none", "race", "gender"], size=n),
        "D_biep.White_Good_all": d_all,
        "D_biep.White_Good_36": d_all + rng.normal(0.0, 0.1, n),
        "D_biep.White_Good_47": d_all + rng.normal(0.0, 0.1, n),
        "att7": np.clip(np.rint(4 + 2.5 * d_all + rng.normal(0.0, 0.8, n)), 1, 7),
        "Tblack_0to10": t_black,
        "Twhite_0to10": t_white,
        "edu": rng.integers(1, 15, size=n).astype(float),
        "edu_14": rng.integers(1, 15, size=n).astype(float),
        "politicalid_7": politics,
        "politicalid7": politics,
        "religion2014": _with_missing(rng.integers(1, 12, size=n), 0.01, rng),
        "religionid": np.clip(np.rint(1 + politics / 2.5 + rng.normal(0.0, 0.6, n)), 1, 4),
        "occuSelf": rng.choice(OCCUPATIONS, size=n),
        "occupation_self_002": rng.choice(["student", "employed", "retired", "other"], size=n),
        "occuSelfDetail": rng.choice(["a", "b", "c", "d"], size=n),
    }

    states = rng.choice(STATES, size=n)
    state_ids = np.array([STATES.index(state) for state in states])
    data["STATE"] = states
    data["MSAName"] = np.array([METRO_AREAS[state] for state in states])
    data["MSANo"] = (1000 + 10 * state_ids).astype(float)
    data["CountyNo"] = (1 + 3 * state_ids + rng.integers(0, 3, size=n)).astype(float)
    data["broughtwebsite"] = np.array(WEBSITE_SOURCES)[
        np.clip(profile * 2 + rng.integers(0, 2, size=n), 0, len(WEBSITE_SOURCES) - 1)
    ]

    # Each profile favours one answer on every MCPR item.
    for position, item in enumerate(MCPR_ITEMS):
        favoured = 1 + (profile * 2 + position) % 6
        answers = np.where(rng.random(n) < 0.6, favoured, rng.integers(1, 7, size=n))
        data[item] = _with_missing(answers, 0.01 if position % 4 == 0 else 0.0, rng)

    answered = rng.random(n) < 0.3
    for column in RACE_SUBCATEGORY_COLUMNS:
        flags = (rng.random(n) < 0.2).astype(float)
        flags[~answered] = np.nan
        data[column] = flags
    data[SPARSE_COLUMN] = _with_missing(rng.integers(1, 4, size=n), 0.9, rng)

    survey = pd.DataFrame(data)
    return survey, _codebook(survey.columns)
