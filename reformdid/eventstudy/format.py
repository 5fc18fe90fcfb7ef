"""Formatting for event-study results."""

import numpy as np

from reformdid.core.format import (
    adjust_separators,
    attach_format,
    format_event_table,
    format_footer,
    format_kv_line,
    format_section_header,
    format_significance_note,
    format_title,
)
from reformdid.core.preprocess.utils import relative_year

from .estimator import event_study_table
from .results import EventStudyResult


def format_event_study_result(result: EventStudyResult) -> str:
    """Format a fitted event study for display."""
    lines = []
    conf_level = int(result.ci_level)

    lines.extend(format_title("Fixed-Effects Event Study"))

    table = event_study_table(result)
    lines.append("")
    lines.append(" Base event-time effects:")
    lines.extend(
        format_event_table(
            table["relative_year"].to_numpy(),
            table["point_estimate"].to_numpy(),
            table["standard_error"].to_numpy(),
            table["ci_lower"].to_numpy(),
            table["ci_upper"].to_numpy(),
            conf_level,
        )
    )

    n_interactions = sum(1 for t in result.terms if t.cells)
    if result.covariates:
        lines.append("")
        lines.append(f" Interaction terms estimated: {n_interactions}")
        lines.append(f" Empty interaction terms (set to 0): {sum(1 for t in result.empty_terms if t.cells)}")

    lines.extend(format_significance_note())

    lines.extend(format_section_header("Data Info"))
    lines.append(format_kv_line("Observations", result.n_obs))
    lines.append(format_kv_line("Units", result.n_units))
    lines.append(format_kv_line("Clusters", result.n_clusters))

    params = result.estimation_params
    lines.extend(format_section_header("Estimation Details"))
    window = [relative_year(e) for e in result.event_names]
    lines.append(format_kv_line("Event window", f"[{min(window)}, {max(window)}], endpoints binned"))
    lines.append(format_kv_line("Reference year", result.reference_period))
    if result.covariates:
        refs = ", ".join(f"{c}={result.reference_levels[c]}" for c in result.covariates)
        lines.append(format_kv_line("Covariates", ", ".join(result.covariates)))
        lines.append(format_kv_line("Reference levels", refs))
    if params.get("excluded_folds"):
        lines.append(format_kv_line("Excluded folds", ", ".join(str(f) for f in params["excluded_folds"])))

    lines.extend(format_section_header("Inference"))
    lines.append(format_kv_line("Confidence level", f"{conf_level}%"))
    if params.get("cov_type") == "cluster":
        lines.append(format_kv_line("Clustered standard errors", params.get("cluster")))
    else:
        lines.append(format_kv_line("Standard errors", "Heteroskedasticity-robust (HC1)"))
    if np.any(result.std_errors == 0):
        lines.append(" Some standard errors are exactly zero (perfect fit)")

    lines.extend(format_footer("See Jackson, Johnson and Persico (2016) for details."))

    lines = adjust_separators(lines)
    return "\n".join(lines)


attach_format(EventStudyResult, format_event_study_result)
