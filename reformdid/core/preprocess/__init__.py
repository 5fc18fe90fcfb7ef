"""Preprocessing functions."""

from .builders import PreprocessDataBuilder
from .config import ClassificationConfig, EventStudyConfig, JackknifeConfig
from .constants import (
    DEFAULT_CI_LEVEL,
    DEFAULT_N_LAGS,
    DEFAULT_N_LEADS,
    DEFAULT_REFERENCE_PERIOD,
    DEFAULT_WINDOW,
    EVER_TREATED_COLUMN,
    GROUP_COLUMN,
    REFORM_YEAR_COLUMN,
    WEIGHTS_COLUMN,
    ClassificationPolicy,
    CovarianceType,
    DegeneracyFallback,
    DropReason,
    FoldSelection,
    FoldStatus,
)
from .models import EventStudyData, ValidationResult
from .transformers import DataTransformerPipeline
from .utils import bin_event_time, event_indicator_names, indicator_name, relative_year
from .validators import CompositeValidator

__all__ = [
    "DEFAULT_CI_LEVEL",
    "DEFAULT_N_LAGS",
    "DEFAULT_N_LEADS",
    "DEFAULT_REFERENCE_PERIOD",
    "DEFAULT_WINDOW",
    "EVER_TREATED_COLUMN",
    "GROUP_COLUMN",
    "REFORM_YEAR_COLUMN",
    "WEIGHTS_COLUMN",
    "ClassificationConfig",
    "ClassificationPolicy",
    "CompositeValidator",
    "CovarianceType",
    "DataTransformerPipeline",
    "DegeneracyFallback",
    "DropReason",
    "EventStudyConfig",
    "EventStudyData",
    "FoldSelection",
    "FoldStatus",
    "JackknifeConfig",
    "PreprocessDataBuilder",
    "ValidationResult",
    "bin_event_time",
    "event_indicator_names",
    "indicator_name",
    "relative_year",
]
