"""Event-study preprocessing."""

from .preprocess.builders import PreprocessDataBuilder
from .preprocess.config import EventStudyConfig
from .preprocess.constants import (
    DEFAULT_CI_LEVEL,
    DEFAULT_N_LAGS,
    DEFAULT_N_LEADS,
    DEFAULT_REFERENCE_PERIOD,
    CovarianceType,
)


def preprocess_event_study(
    data,
    yname,
    tname,
    idname,
    foldname,
    ename="event_time",
    gname=None,
    weightsname=None,
    clustervar=None,
    covariates=None,
    xformla=None,
    n_leads=DEFAULT_N_LEADS,
    n_lags=DEFAULT_N_LAGS,
    reference_period=DEFAULT_REFERENCE_PERIOD,
    ci_level=DEFAULT_CI_LEVEL,
    cov_type="cluster",
    balance_window=True,
):
    """Process a long panel for event-study and jackknife estimation.

    Parameters
    ----------
    data : DataFrame
        Long panel, one row per unit and period. Any object implementing the
        Arrow PyCapsule interface is accepted.
    yname : str
        Name of the outcome column (already logged).
    tname : str
        Name of the integer time period column.
    idname : str
        Name of the unit identifier column.
    foldname : str
        Name of the fold column (the state, in the school-finance
        application). Every unit belongs to exactly one fold.
    ename : str, default "event_time"
        Name of the event-time column, missing for never-treated units. When
        the column does not exist it is derived from ``gname``.
    gname : str | None, default None
        Name of the reform-year column, 0 or missing for never-treated units.
    weightsname : str | None, default None
        Name of the analytic weight column. Unit weights when omitted.
    clustervar : str | None, default None
        Cluster column. Defaults to the fold column.
    covariates : list[str] | None, default None
        Baseline categorical covariates with integer levels, fixed within unit.
    xformla : str | None, default None
        Formula of additional controls, e.g. ``"~ x1 + x2"``.
    n_leads : int, default 5
        Number of pre-reform indicators. Earlier periods are binned into
        ``lead_{n_leads}``.
    n_lags : int, default 17
        Last post-reform indicator. Later periods are binned into
        ``lag_{n_lags}``.
    reference_period : int, default -1
        Omitted relative year.
    ci_level : float, default 95
        Confidence level in percent.
    cov_type : {"cluster", "hc1"}, default "cluster"
        Covariance estimator.
    balance_window : bool, default True
        Drop ever-treated units without a complete outcome window.

    Returns
    -------
    EventStudyData
        Container with the processed panel, unit table and dropped units.
    """
    config = EventStudyConfig(
        yname=yname,
        tname=tname,
        idname=idname,
        foldname=foldname,
        ename=ename,
        gname=gname,
        weightsname=weightsname,
        clustervar=clustervar,
        covariates=list(covariates) if covariates is not None else [],
        xformla=xformla if xformla is not None else "~1",
        n_leads=n_leads,
        n_lags=n_lags,
        reference_period=reference_period,
        ci_level=ci_level,
        cov_type=CovarianceType(cov_type),
        balance_window=balance_window,
    )

    builder = PreprocessDataBuilder()
    return builder.with_data(data).with_config(config).validate().transform().build()
