"""Event-study and jackknife heterogeneity estimators for school-finance reforms."""

from reformdid.core.data import gen_reform_panel
from reformdid.core.errors import (
    DegenerateClassificationWarning,
    FoldFailureWarning,
    GroupedEstimationWarning,
    IncompleteCovariatesWarning,
    ModelFitError,
)
from reformdid.core.preprocess.builders import PreprocessDataBuilder
from reformdid.core.preprocess.config import ClassificationConfig, EventStudyConfig, JackknifeConfig
from reformdid.core.preprocess.models import EventStudyData
from reformdid.core.preprocessing import preprocess_event_study
from reformdid.eventstudy import (
    EventStudyResult,
    Term,
    event_study,
    event_study_table,
    fit_event_study,
    interaction_cells,
)
from reformdid.jackknife import (
    AverageEffects,
    ClassificationResult,
    GroupedEventStudyResult,
    HeterogeneityAnalysisResult,
    JackknifeResult,
    classify_heterogeneity,
    compute_full_sample,
    compute_jackknife,
    extract_average_effects,
    grouped_event_study,
    jackknife_heterogeneity,
    predict_effects,
)

__version__ = "0.1.0"

__all__ = [
    "AverageEffects",
    "ClassificationConfig",
    "ClassificationResult",
    "DegenerateClassificationWarning",
    "EventStudyConfig",
    "EventStudyData",
    "EventStudyResult",
    "FoldFailureWarning",
    "GroupedEstimationWarning",
    "GroupedEventStudyResult",
    "HeterogeneityAnalysisResult",
    "IncompleteCovariatesWarning",
    "JackknifeConfig",
    "JackknifeResult",
    "ModelFitError",
    "PreprocessDataBuilder",
    "Term",
    "classify_heterogeneity",
    "compute_full_sample",
    "compute_jackknife",
    "event_study",
    "event_study_table",
    "extract_average_effects",
    "fit_event_study",
    "gen_reform_panel",
    "grouped_event_study",
    "interaction_cells",
    "jackknife_heterogeneity",
    "predict_effects",
    "preprocess_event_study",
]
