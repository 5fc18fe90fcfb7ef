"""Constants and enums for preprocessing and estimation."""

from enum import Enum

DEFAULT_N_LEADS = 5
DEFAULT_N_LAGS = 17
DEFAULT_REFERENCE_PERIOD = -1
DEFAULT_WINDOW = (2, 7)
DEFAULT_CI_LEVEL = 95.0

WEIGHTS_COLUMN = "_weight"
EVER_TREATED_COLUMN = "_ever_treated"
REFORM_YEAR_COLUMN = "_reform_year"
GROUP_COLUMN = "_het_group"

LEAD_PREFIX = "lead_"
LAG_PREFIX = "lag_"


class CovarianceType(str, Enum):
    """Covariance estimator for the event-study regression."""

    CLUSTER = "cluster"
    HC1 = "hc1"


class FoldSelection(str, Enum):
    """Which folds the jackknife excludes in turn."""

    ALL = "all"
    TREATED = "treated"


class ClassificationPolicy(str, Enum):
    """Rule used to split treated units into heterogeneity groups."""

    SIGN = "sign"
    RANK = "rank"


class DegeneracyFallback(str, Enum):
    """What to do when a sign-based split leaves a group empty."""

    RANK = "rank"
    NONE = "none"
    RAISE = "raise"


class FoldStatus(str, Enum):
    """Outcome of a single jackknife fold."""

    OK = "ok"
    FAILED = "failed"
    TIMEOUT = "timeout"


class DropReason(str, Enum):
    """Why a unit is missing from a prediction table."""

    FOLD_FAILED = "fold_failed"
    FOLD_NOT_ESTIMATED = "fold_not_estimated"
    INCOMPLETE_WINDOW = "incomplete_outcome_window"
    INCOMPLETE_COVARIATES = "incomplete_baseline_covariates"
