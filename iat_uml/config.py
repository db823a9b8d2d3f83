"""Analysis configuration: variable subsets, parameters and tutorial presets.

Every analysis receives one of the dataclasses below instead of reading
module-level literals, so the same routine can be pointed at a different
variable list or parameter choice from a test or from the command line.

The presets reproduce the runs of the original tutorial. Their K, ``eps``
and support/confidence values were chosen by inspecting plots of the 2023
dataset; treat them as documented choices, not as defaults that carry over
to other data.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple

from .errors import ConfigurationError, ParameterError

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

DEFAULT_DATA_DIR = Path("data")
DEFAULT_RAW_DATASET = DEFAULT_DATA_DIR / "RaceIAT.public.2023.sav"
DEFAULT_CODEBOOK = DEFAULT_DATA_DIR / "Race_IAT_public_2023_codebook.xlsx"
DEFAULT_OUTPUT_ROOT = Path("outputs")
DEFAULT_CLEAN_DATASET = DEFAULT_OUTPUT_ROOT / "data" / "iat_clean.pkl"

DEFAULT_SEED = 1234

# ---------------------------------------------------------------------------
# Variable subsets
# ---------------------------------------------------------------------------

MCPR_PREFIX = "mcpr"
MCPR_ITEMS: Tuple[str, ...] = tuple(f"mcpr{i}" for i in range(1, 18))

# Race sub-category indicators are only answered by part of the sample.
RACE_SUBCATEGORY_COLUMNS: Tuple[str, ...] = (
    "raceombmulti",
    "raceomb_003sub_asian",
    "raceomb_003sub_black",
    "raceomb_003sub_hispanic",
    "raceomb_003sub_pacific",
    "raceomb_003sub_middleeast",
    "raceomb_003sub_white",
)

NUMERIC_FULL: Tuple[str, ...] = (
    "edu",
    "politicalid_7",
    "religion2014",
    "religionid",
    *MCPR_ITEMS,
    "D_biep.White_Good_all",
    "Tblack_0to10",
    "Twhite_0to10",
)

NUMERIC_FOCUSED: Tuple[str, ...] = (
    "politicalid_7",
    "D_biep.White_Good_all",
    "Tblack_0to10",
)

KMODES_EXCLUDED: Tuple[str, ...] = (
    "session_status",
    "study_name",
    "occuSelf",
    "previous_session_schema",
)

PCA_VARIABLES: Tuple[str, ...] = (
    "D_biep.White_Good_all",
    "att7",
    "Tblack_0to10",
    "Twhite_0to10",
    "D_biep.White_Good_36",
    "D_biep.White_Good_47",
    "edu",
    "edu_14",
    "occuSelf",
    "occupation_self_002",
    "occuSelfDetail",
    "politicalid_7",
    "politicalid7",
    "MSANo",
    "CountyNo",
    "MSAName",
    "STATE",
    "religion2014",
    "religionid",
    "broughtwebsite",
    *MCPR_ITEMS,
)

BASKET_VARIABLES: Tuple[str, ...] = (
    "D_biep.White_Good_all",
    "att7",
    "Tblack_0to10",
    "Twhite_0to10",
    "D_biep.White_Good_36",
    "D_biep.White_Good_47",
    "edu",
    "occuSelf",
    "politicalid7",
    "CountyNo",
    "STATE",
    "religionid",
    "broughtwebsite",
    *MCPR_ITEMS,
)

# Continuous IAT scores would otherwise turn every respondent into a unique item.
BASKET_BINNED: Tuple[str, ...] = (
    "D_biep.White_Good_all",
    "D_biep.White_Good_36",
    "D_biep.White_Good_47",
)

NEAR_ZERO_VARIANCE = 1e-10


def _check_positive_int(name: str, value: int) -> None:
    if int(value) != value or value <= 0:
        raise ParameterError(f"{name} must be a positive integer, got {value!r}")


def _check_fraction(name: str, value: float, allow_zero: bool = True) -> None:
    lower_ok = float(value) >= 0.0 if allow_zero else float(value) > 0.0
    if not (lower_ok and float(value) <= 1.0):
        bounds = "[0, 1]" if allow_zero else "(0, 1]"
        raise ParameterError(f"{name} must lie in {bounds}, got {value!r}")


# ---------------------------------------------------------------------------
# Per-analysis configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CleaningConfig:
    missing_threshold: float = 40.0
    protected_prefix: str = MCPR_PREFIX
    sparse_exempt: Tuple[str, ...] = RACE_SUBCATEGORY_COLUMNS
    sample_size: Optional[int] = None
    seed: int = DEFAULT_SEED

    def __post_init__(self) -> None:
        if not 0.0 <= float(self.missing_threshold) <= 100.0:
            raise ParameterError(
                f"missing_threshold is a percentage in [0, 100], got {self.missing_threshold!r}"
            )
        if not self.protected_prefix:
            raise ConfigurationError("protected_prefix must be a non-empty string")
        if self.sample_size is not None:
            _check_positive_int("sample_size", self.sample_size)


@dataclass(frozen=True)
class KMeansConfig:
    k: int
    variables: Tuple[str, ...] = NUMERIC_FOCUSED
    scale: bool = True
    n_init: int = 25
    max_k: int = 10
    seed: int = DEFAULT_SEED

    def __post_init__(self) -> None:
        _check_positive_int("k", self.k)
        _check_positive_int("n_init", self.n_init)
        _check_positive_int("max_k", self.max_k)


@dataclass(frozen=True)
class KModesConfig:
    k: int
    excluded: Tuple[str, ...] = KMODES_EXCLUDED
    n_init: int = 10
    max_iter: int = 10
    init: str = "Huang"
    max_k: int = 10
    mosaic_variable: str = "broughtwebsite"
    seed: int = DEFAULT_SEED

    def __post_init__(self) -> None:
        _check_positive_int("k", self.k)
        _check_positive_int("n_init", self.n_init)
        _check_positive_int("max_iter", self.max_iter)
        _check_positive_int("max_k", self.max_k)
        if self.init not in {"Huang", "Cao", "random"}:
            raise ParameterError(f"Unknown k-modes init method: {self.init!r}")


@dataclass(frozen=True)
class DBSCANConfig:
    eps: float
    min_pts: int
    variables: Tuple[str, ...] = NUMERIC_FOCUSED
    scale: bool = True
    crosstab_variable: str = "Tblack_0to10"

    def __post_init__(self) -> None:
        if not float(self.eps) > 0.0:
            raise ParameterError(f"eps must be positive, got {self.eps!r}")
        _check_positive_int("min_pts", self.min_pts)


@dataclass(frozen=True)
class HierarchicalConfig:
    n_clusters: int
    variables: Tuple[str, ...] = NUMERIC_FOCUSED
    method: str = "ward"
    sample_size: Optional[int] = None
    seed: int = DEFAULT_SEED

    def __post_init__(self) -> None:
        _check_positive_int("n_clusters", self.n_clusters)
        if self.method != "ward":
            raise ConfigurationError("Only Ward's linkage is supported")
        if self.sample_size is not None:
            _check_positive_int("sample_size", self.sample_size)


@dataclass(frozen=True)
class PCAConfig:
    variables: Tuple[str, ...] = PCA_VARIABLES
    scree_components: int = 10


@dataclass(frozen=True)
class AprioriConfig:
    min_support: float = 0.10
    min_confidence: float = 0.80
    max_len: int = 10
    top_n: int = 20
    variables: Tuple[str, ...] = BASKET_VARIABLES
    binned: Tuple[str, ...] = BASKET_BINNED
    n_bins: int = 4

    def __post_init__(self) -> None:
        _check_fraction("min_support", self.min_support, allow_zero=False)
        _check_fraction("min_confidence", self.min_confidence)
        _check_positive_int("max_len", self.max_len)
        _check_positive_int("top_n", self.top_n)
        _check_positive_int("n_bins", self.n_bins)


# ---------------------------------------------------------------------------
# Tutorial presets
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Preset:
    """A named tutorial run: variables, scaling and the chosen parameters."""

    variables: Tuple[str, ...]
    scale: bool
    params: Dict[str, float] = field(default_factory=dict)


KMEANS_PRESETS: Dict[str, Preset] = {
    # 24 survey variables on their raw scale, two clusters from the elbow plot.
    "full": Preset(variables=NUMERIC_FULL, scale=False, params={"k": 2}),
    # Ideology, IAT score and Black thermometer, standardized, five clusters.
    "focused": Preset(variables=NUMERIC_FOCUSED, scale=True, params={"k": 5}),
}

DBSCAN_PRESETS: Dict[str, Preset] = {
    "full": Preset(variables=NUMERIC_FULL, scale=False, params={"eps": 0.45, "min_pts": 5}),
    "focused": Preset(variables=NUMERIC_FOCUSED, scale=True, params={"eps": 0.61, "min_pts": 5}),
}


def get_preset(presets: Dict[str, Preset], name: str) -> Preset:
    try:
        return presets[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown preset '{name}'; choose one of: {', '.join(sorted(presets))}"
        ) from None
