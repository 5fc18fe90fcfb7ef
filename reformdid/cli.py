"""CLI entry point for the jackknife heterogeneity analysis."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

import polars as pl

from reformdid.core.preprocess.constants import DEFAULT_N_LAGS, DEFAULT_N_LEADS, DEFAULT_REFERENCE_PERIOD
from reformdid.jackknife.heterogeneity import jackknife_heterogeneity

logger = logging.getLogger(__name__)


def read_panel(path: str | Path) -> pl.DataFrame:
    """Read a long panel from CSV or Parquet."""
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".parquet":
        return pl.read_parquet(path)
    if suffix == ".csv":
        return pl.read_csv(path, null_values=["", "NA", "."])
    raise ValueError(f"Unsupported input format '{suffix}'. Use .csv or .parquet")


def write_outputs(result, output_dir: str | Path) -> dict[str, Path]:
    """Write prediction, classification, coefficient, dropped-unit and fold tables."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    tables = {
        "predictions": result.jackknife.predictions,
        "classification": result.classification.labels,
        "coefficients": result.to_dataframe(),
        "dropped_units": result.dropped_units,
        "fold_status": result.jackknife.fold_status,
    }
    paths = {}
    for name, table in tables.items():
        path = output_dir / f"{name}.csv"
        table.write_csv(path)
        paths[name] = path
    return paths


def build_parser() -> argparse.ArgumentParser:
    """Argument parser for ``reformdid-jackknife``."""
    parser = argparse.ArgumentParser(
        description="Leave-one-fold-out heterogeneity analysis of reform effects",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("input", type=str, help="Long panel (.csv or .parquet)")
    parser.add_argument("--yname", required=True, help="Outcome column (already logged)")
    parser.add_argument("--tname", required=True, help="Time period column")
    parser.add_argument("--idname", required=True, help="Unit identifier column")
    parser.add_argument("--foldname", required=True, help="Fold (state) column")
    parser.add_argument("--covariates", nargs="+", required=True, help="Ordered baseline covariates")
    parser.add_argument("--ename", default="event_time", help="Event-time column")
    parser.add_argument("--gname", default=None, help="Reform-year column, used when event time is absent")
    parser.add_argument("--weightsname", default=None, help="Analytic weight column")
    parser.add_argument("--clustervar", default=None, help="Cluster column (defaults to the fold column)")
    parser.add_argument("--n-leads", type=int, default=DEFAULT_N_LEADS, help="Number of pre-reform indicators")
    parser.add_argument("--n-lags", type=int, default=DEFAULT_N_LAGS, help="Last post-reform indicator")
    parser.add_argument("--reference-period", type=int, default=DEFAULT_REFERENCE_PERIOD, help="Omitted year")
    parser.add_argument("--window", type=int, nargs=2, default=[2, 7], metavar=("START", "END"))
    parser.add_argument("--folds", choices=["all", "treated"], default="all", help="Folds to hold out")
    parser.add_argument("--n-jobs", type=int, default=1, help="Parallel workers (-1 for all cores)")
    parser.add_argument("--fold-timeout", type=float, default=None, help="Per-fold time limit in seconds")
    parser.add_argument("--policy", choices=["sign", "rank"], default="sign", help="Classification policy")
    parser.add_argument("--threshold", type=float, default=0.0, help="Sign-policy threshold")
    parser.add_argument("--n-groups", type=int, default=2, help="Number of treated groups")
    parser.add_argument(
        "--fallback",
        choices=["rank", "none", "raise"],
        default="rank",
        help="Response to a degenerate sign split",
    )
    parser.add_argument("--output-dir", type=str, default="reformdid_output", help="Output directory")
    parser.add_argument("--quiet", action="store_true", help="Suppress verbose output")
    return parser


def main(argv=None):
    """Run the jackknife heterogeneity CLI."""
    args = build_parser().parse_args(argv)

    log_level = logging.WARNING if args.quiet else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        handlers=[logging.StreamHandler()],
    )

    logger.info("Reading %s", args.input)
    data = read_panel(args.input)

    result = jackknife_heterogeneity(
        data,
        yname=args.yname,
        tname=args.tname,
        idname=args.idname,
        foldname=args.foldname,
        covariates=args.covariates,
        window=tuple(args.window),
        folds=args.folds,
        n_jobs=args.n_jobs,
        fold_timeout=args.fold_timeout,
        policy=args.policy,
        threshold=args.threshold,
        n_groups=args.n_groups,
        fallback=args.fallback,
        ename=args.ename,
        gname=args.gname,
        weightsname=args.weightsname,
        clustervar=args.clustervar,
        n_leads=args.n_leads,
        n_lags=args.n_lags,
        reference_period=args.reference_period,
    )

    if not args.quiet:
        print(result)

    paths = write_outputs(result, args.output_dir)
    logger.info("Results saved to:")
    for name, path in paths.items():
        logger.info("  %s: %s", name, path)


if __name__ == "__main__":
    main()
