"""Fixed-effects event-study estimator."""

from . import format as _format  # noqa: F401
from .design import Term, interaction_cells
from .estimator import event_study, event_study_table, fit_event_study
from .results import EventStudyResult

__all__ = [
    "EventStudyResult",
    "Term",
    "event_study",
    "event_study_table",
    "fit_event_study",
    "interaction_cells",
]
