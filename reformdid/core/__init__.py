"""Core functionality shared across estimators."""

from .data import gen_reform_panel
from .dataframe import to_polars
from .errors import (
    DegenerateClassificationWarning,
    FoldFailureWarning,
    GroupedEstimationWarning,
    IncompleteCovariatesWarning,
    ModelFitError,
)
from .parallel import parallel_map
from .preprocessing import preprocess_event_study

__all__ = [
    "DegenerateClassificationWarning",
    "FoldFailureWarning",
    "GroupedEstimationWarning",
    "IncompleteCovariatesWarning",
    "ModelFitError",
    "gen_reform_panel",
    "parallel_map",
    "preprocess_event_study",
    "to_polars",
]
