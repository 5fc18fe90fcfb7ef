"""Configuration classes for preprocessing and estimation."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np

from .constants import (
    DEFAULT_CI_LEVEL,
    DEFAULT_N_LAGS,
    DEFAULT_N_LEADS,
    DEFAULT_REFERENCE_PERIOD,
    DEFAULT_WINDOW,
    ClassificationPolicy,
    CovarianceType,
    DegeneracyFallback,
    FoldSelection,
)
from .utils import event_indicator_names


@dataclass
class EventStudyConfig:
    """Event-study config.

    The first block holds user choices. The second block is filled in by the
    preprocessing pipeline and describes the panel that was actually kept.
    """

    yname: str
    tname: str
    idname: str
    foldname: str

    ename: str = "event_time"
    gname: str | None = None
    weightsname: str | None = None
    clustervar: str | None = None
    covariates: list[str] = field(default_factory=list)
    xformla: str = "~1"
    n_leads: int = DEFAULT_N_LEADS
    n_lags: int = DEFAULT_N_LAGS
    reference_period: int = DEFAULT_REFERENCE_PERIOD
    ci_level: float = DEFAULT_CI_LEVEL
    cov_type: CovarianceType = CovarianceType.CLUSTER
    balance_window: bool = True

    covariate_levels: dict[str, list[int]] = field(default_factory=dict)
    time_periods: np.ndarray = field(default_factory=lambda: np.array([]))
    time_periods_count: int = 0
    fold_ids: list = field(default_factory=list)
    id_count: int = 0
    treated_count: int = 0

    @property
    def cluster_column(self) -> str:
        """Column used for clustering, the fold by default."""
        return self.clustervar if self.clustervar is not None else self.foldname

    @property
    def event_names(self) -> list[str]:
        """Event indicator names in relative-time order, reference included."""
        return event_indicator_names(self.n_leads, self.n_lags)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {k: v.value if isinstance(v, Enum) else v for k, v in self.__dict__.items()}


@dataclass
class JackknifeConfig:
    """Leave-one-fold-out config."""

    window: tuple[int, int] = DEFAULT_WINDOW
    folds: FoldSelection = FoldSelection.ALL
    n_jobs: int = 1
    fold_timeout: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {k: v.value if isinstance(v, Enum) else v for k, v in self.__dict__.items()}


@dataclass
class ClassificationConfig:
    """Heterogeneity classification config."""

    policy: ClassificationPolicy = ClassificationPolicy.SIGN
    threshold: float = 0.0
    n_groups: int = 2
    fallback: DegeneracyFallback = DegeneracyFallback.RANK

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {k: v.value if isinstance(v, Enum) else v for k, v in self.__dict__.items()}
