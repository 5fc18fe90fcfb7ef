"""Leave-one-fold-out heterogeneity analysis."""

from . import format as _format  # noqa: F401
from .classify import classify_heterogeneity
from .coefficients import AverageEffects, extract_average_effects
from .grouped import grouped_event_study
from .heterogeneity import jackknife_heterogeneity
from .jackknife import FoldOutcome, compute_full_sample, compute_jackknife
from .predict import predict_effects
from .results import ClassificationResult, GroupedEventStudyResult, HeterogeneityAnalysisResult, JackknifeResult

__all__ = [
    "AverageEffects",
    "ClassificationResult",
    "FoldOutcome",
    "GroupedEventStudyResult",
    "HeterogeneityAnalysisResult",
    "JackknifeResult",
    "classify_heterogeneity",
    "compute_full_sample",
    "compute_jackknife",
    "extract_average_effects",
    "grouped_event_study",
    "jackknife_heterogeneity",
    "predict_effects",
]
