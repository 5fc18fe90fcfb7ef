"""Formatting for jackknife heterogeneity results."""

import polars as pl

from reformdid.core.format import (
    adjust_separators,
    attach_format,
    format_count_table,
    format_event_table,
    format_footer,
    format_kv_line,
    format_section_header,
    format_significance_note,
    format_title,
    format_value,
)

from .results import (
    ClassificationResult,
    GroupedEventStudyResult,
    HeterogeneityAnalysisResult,
    JackknifeResult,
)


def _jackknife_lines(result: JackknifeResult):
    lines = []
    params = result.estimation_params
    idname = params["idname"]
    preds = result.unit_predictions()

    lines.append("")
    lines.append(" Predicted effects (one per unit):")
    predicted = preds["predicted_effect"].drop_nulls()
    rows = [
        ["Units predicted", f"{len(predicted)}"],
        ["Mean", format_value(predicted.mean() if len(predicted) else None)],
        ["Std. Dev.", format_value(predicted.std() if len(predicted) > 1 else None)],
        ["Min", format_value(predicted.min() if len(predicted) else None)],
        ["Max", format_value(predicted.max() if len(predicted) else None)],
        ["With zero-substituted terms", f"{int(preds['zero_substituted'].fill_null(False).sum())}"],
    ]
    lines.extend(format_count_table(["Statistic", "Value"], rows, left_columns=["Statistic"]))

    if params.get("out_of_sample"):
        status_rows = [
            [status, f"{n}"]
            for status, n in result.fold_status.group_by("status").len().sort("status").iter_rows()
        ]
        lines.append("")
        lines.append(" Fold status:")
        lines.extend(format_count_table(["Status", "Folds"], status_rows, left_columns=["Status"]))
        if result.failed_folds:
            lines.append(format_kv_line("Failed folds", ", ".join(str(f) for f in result.failed_folds)))

    if len(result.dropped_units) > 0:
        reasons = result.dropped_units.group_by("reason").agg(pl.col(idname).n_unique()).sort("reason")
        reason_rows = [[reason, f"{n}"] for reason, n in reasons.iter_rows()]
        lines.append("")
        lines.append(" Dropped units:")
        lines.extend(format_count_table(["Reason", "Units"], reason_rows, left_columns=["Reason"]))
    return lines


def format_jackknife_result(result: JackknifeResult) -> str:
    """Format leave-one-fold-out predictions for display."""
    lines = []
    params = result.estimation_params
    title = "Leave-One-Fold-Out Predicted Effects" if params.get("out_of_sample") else "Full-Sample Predicted Effects"
    lines.extend(format_title(title))
    lines.extend(_jackknife_lines(result))

    lines.extend(format_section_header("Estimation Details"))
    lo, hi = result.window
    lines.append(format_kv_line("Averaging window", f"[{lo}, {hi}]"))
    lines.append(format_kv_line("Covariates", ", ".join(result.covariates) if result.covariates else "None"))
    if params.get("out_of_sample"):
        lines.append(format_kv_line("Fold column", params["foldname"]))
        lines.append(format_kv_line("Folds held out", params["folds"]))

    lines.extend(format_footer())
    return "\n".join(adjust_separators(lines))


def _group_count_lines(result: ClassificationResult):
    rows = []
    for _, label, treated, n in result.group_counts.iter_rows():
        rows.append([label if label is not None else "Unclassified", "Yes" if treated else "No", f"{n}"])
    return format_count_table(["Group", "Ever Treated", "Units"], rows, left_columns=["Group"])


def format_classification_result(result: ClassificationResult) -> str:
    """Format a heterogeneity classification for display."""
    lines = []
    lines.extend(format_title("Heterogeneity Classification"))

    lines.extend(_group_count_lines(result))

    lines.extend(format_section_header("Classification Details"))
    lines.append(format_kv_line("Policy", result.policy))
    if result.requested_policy == "sign":
        lines.append(format_kv_line("Threshold", result.threshold))
    if result.policy == "rank":
        lines.append(format_kv_line("Groups", result.n_groups))
    if result.degenerate:
        lines.append(" Degenerate split detected")
    if result.fallback_applied is not None:
        lines.append(format_kv_line("Fallback applied", result.fallback_applied))

    lines.extend(format_footer())
    return "\n".join(adjust_separators(lines))


def _grouped_lines(result: GroupedEventStudyResult):
    coef = result.coefficients
    conf_level = int(result.result.ci_level)
    lines = []
    lines.append("")
    lines.append(" Event-time effects by group:")
    lines.extend(
        format_event_table(
            coef["relative_year"].to_numpy(),
            coef["point_estimate"].to_numpy(),
            coef["standard_error"].to_numpy(),
            coef["ci_lower"].to_numpy(),
            coef["ci_upper"].to_numpy(),
            conf_level,
            group_labels=coef["group_label"].to_list(),
        )
    )
    lines.extend(format_significance_note())
    return lines


def format_grouped_result(result: GroupedEventStudyResult) -> str:
    """Format per-group trajectories for display."""
    lines = []
    lines.extend(format_title("Event Study by Heterogeneity Group"))
    lines.extend(_grouped_lines(result))

    lines.extend(format_section_header("Data Info"))
    lines.append(format_kv_line("Observations", result.result.n_obs))
    lines.append(format_kv_line("Units", result.result.n_units))
    lines.append(format_kv_line("Clusters", result.result.n_clusters))
    if result.n_excluded_units:
        lines.append(format_kv_line("Units without a group", result.n_excluded_units))

    lines.extend(format_section_header("Estimation Details"))
    ref_name = result.group_names.get(result.reference_group, str(result.reference_group))
    lines.append(format_kv_line("Reference group", f"{ref_name} (base coefficients)"))
    lines.append(format_kv_line("Other groups", "base + group interaction"))

    lines.extend(format_footer("See Jackson, Johnson and Persico (2016) for details."))
    return "\n".join(adjust_separators(lines))


def format_heterogeneity_result(result: HeterogeneityAnalysisResult) -> str:
    """Format an end-to-end heterogeneity analysis for display."""
    lines = []
    lines.extend(format_title("Jackknife Heterogeneity Analysis"))
    lines.extend(_jackknife_lines(result.jackknife))

    lines.append("")
    lines.append(" Classification:")
    lines.extend(_group_count_lines(result.classification))

    if result.grouped is not None:
        lines.extend(_grouped_lines(result.grouped))
    else:
        lines.append("")
        lines.append(f" Grouped event study not estimated: {result.grouped_message}")

    lines.extend(format_section_header("Data Info"))
    lines.append(format_kv_line("Units", result.n_units))
    lines.append(format_kv_line("Ever-treated units", result.n_treated))
    idname = result.jackknife.estimation_params["idname"]
    lines.append(format_kv_line("Dropped units", result.dropped_units[idname].n_unique()))

    lines.extend(format_footer("See Jackson, Johnson and Persico (2016) for details."))
    return "\n".join(adjust_separators(lines))


attach_format(JackknifeResult, format_jackknife_result)
attach_format(ClassificationResult, format_classification_result)
attach_format(GroupedEventStudyResult, format_grouped_result)
attach_format(HeterogeneityAnalysisResult, format_heterogeneity_result)
