"""Exceptions and warnings raised during estimation."""


class ModelFitError(RuntimeError):
    """An event-study regression could not be estimated.

    Raised when the design is rank deficient after empty interaction cells are
    removed, when fewer than two clusters remain, or when no event-time
    regressor is identified in the estimation sample.
    """


class FoldFailureWarning(UserWarning):
    """A jackknife fold was skipped and its units received no prediction."""


class DegenerateClassificationWarning(UserWarning):
    """A heterogeneity split left one of its groups empty."""


class IncompleteCovariatesWarning(UserWarning):
    """Some units lack one or more baseline covariates."""


class GroupedEstimationWarning(UserWarning):
    """The event study by heterogeneity group could not be estimated."""
