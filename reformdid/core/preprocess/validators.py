"""Validation classes for preprocessing."""

import polars as pl

from .base import BaseValidator
from .config import EventStudyConfig
from .constants import CovarianceType
from .models import ValidationResult
from .utils import extract_vars_from_formula, has_controls, varying_within


class ArgumentValidator(BaseValidator):
    """Argument validator."""

    def validate(self, data: pl.DataFrame, config: EventStudyConfig) -> ValidationResult:
        """Validate data."""
        errors = []

        if not isinstance(config.n_leads, int) or config.n_leads < 1:
            errors.append("n_leads must be a positive integer")
        if not isinstance(config.n_lags, int) or config.n_lags < 0:
            errors.append("n_lags must be a non-negative integer")

        if not errors and not -config.n_leads <= config.reference_period <= config.n_lags:
            errors.append(
                f"reference_period={config.reference_period} must lie in the event window "
                f"[{-config.n_leads}, {config.n_lags}]"
            )

        if not 0 < config.ci_level < 100:
            errors.append("ci_level must be between 0 and 100")

        if not isinstance(config.cov_type, CovarianceType):
            errors.append(f"cov_type must be one of {[c.value for c in CovarianceType]}")

        if len(set(config.covariates)) != len(config.covariates):
            errors.append("covariates must not contain duplicates")

        return self._create_result(errors)


class ColumnValidator(BaseValidator):
    """Column validator."""

    def validate(self, data: pl.DataFrame, config: EventStudyConfig) -> ValidationResult:
        """Validate data."""
        errors = []
        data_columns = data.columns

        required_cols = {
            "yname": config.yname,
            "tname": config.tname,
            "idname": config.idname,
            "foldname": config.foldname,
        }

        for col_type, col_name in required_cols.items():
            if col_name not in data_columns:
                errors.append(f"{col_type} = '{col_name}' must be a column in the dataset")

        if config.ename not in data_columns and (config.gname is None or config.gname not in data_columns):
            errors.append(
                f"ename = '{config.ename}' must be a column in the dataset, "
                "or gname must name a reform-year column to derive it from"
            )

        if config.weightsname and config.weightsname not in data_columns:
            errors.append(f"weightsname = '{config.weightsname}' must be a column in the dataset")

        if config.clustervar and config.clustervar not in data_columns:
            errors.append(f"clustervar = '{config.clustervar}' must be a column in the dataset")

        for cov in config.covariates:
            if cov not in data_columns:
                errors.append(f"covariates contains '{cov}' which is not in the dataset")

        if has_controls(config.xformla):
            for var in extract_vars_from_formula(config.xformla):
                if var not in data_columns:
                    errors.append(f"xformla variable '{var}' is not in the dataset")

        if errors:
            return self._create_result(errors)

        numeric_cols = {"tname": config.tname, "yname": config.yname}
        if config.ename in data_columns:
            numeric_cols["ename"] = config.ename
        if config.gname is not None:
            numeric_cols["gname"] = config.gname
        if config.weightsname:
            numeric_cols["weightsname"] = config.weightsname

        for col_type, col_name in numeric_cols.items():
            if not data.schema[col_name].is_numeric():
                errors.append(f"{col_type} = '{col_name}' is not numeric. Please convert it")

        for cov in config.covariates:
            dtype = data.schema[cov]
            if dtype.is_integer():
                continue
            if dtype.is_float():
                values = data[cov].drop_nulls().drop_nans()
                if (values.round(0) == values).all():
                    continue
            errors.append(f"covariate '{cov}' must hold integer levels. Please discretize it")

        return self._create_result(errors)


class PanelStructureValidator(BaseValidator):
    """Panel structure validator."""

    def validate(self, data: pl.DataFrame, config: EventStudyConfig) -> ValidationResult:
        """Validate data."""
        errors = []

        if data.select([config.idname, config.tname]).is_duplicated().any():
            errors.append(
                "The value of idname must be unique (by tname). Some units are observed more than once in a period."
            )

        return self._create_result(errors)


class FoldPartitionValidator(BaseValidator):
    """Fold partition validator."""

    def validate(self, data: pl.DataFrame, config: EventStudyConfig) -> ValidationResult:
        """Validate data."""
        errors = []

        n_missing = data[config.foldname].null_count()
        if n_missing > 0:
            errors.append(f"foldname = '{config.foldname}' has {n_missing} missing values. Every unit needs a fold")

        if varying_within(data, config.idname, [config.foldname]):
            errors.append(f"foldname = '{config.foldname}' must be the same across all periods for each unit")

        if data[config.foldname].n_unique() < 2:
            errors.append("At least two folds are required")

        return self._create_result(errors)


class BaselineCovariateValidator(BaseValidator):
    """Baseline covariate validator."""

    def validate(self, data: pl.DataFrame, config: EventStudyConfig) -> ValidationResult:
        """Validate data."""
        errors = []
        warnings = []

        for cov in varying_within(data, config.idname, config.covariates):
            errors.append(
                f"covariate '{cov}' must be fixed within each unit. Baseline covariates are assigned "
                "once per unit from a single reference period"
            )

        return self._create_result(errors, warnings)


class TreatmentTimingValidator(BaseValidator):
    """Treatment timing validator."""

    def validate(self, data: pl.DataFrame, config: EventStudyConfig) -> ValidationResult:
        """Validate data."""
        errors = []

        if config.gname is not None and varying_within(data, config.idname, [config.gname]):
            errors.append(
                "The value of gname (reform year) must be the same across all periods for each particular unit."
            )

        if config.ename in data.columns:
            implied = data.select(
                pl.col(config.idname),
                (pl.col(config.tname) - pl.col(config.ename)).alias("_implied_reform"),
                pl.col(config.ename).is_null().alias("_untreated"),
            )
            if varying_within(implied, config.idname, ["_untreated"]):
                errors.append(
                    f"ename = '{config.ename}' must be either missing in every period (never treated) "
                    "or observed in every period (ever treated) for each unit"
                )
            elif varying_within(implied.drop_nulls("_implied_reform"), config.idname, ["_implied_reform"]):
                errors.append(
                    f"ename = '{config.ename}' is inconsistent with tname: {config.tname} - {config.ename} "
                    "must be the same reform year in every period of a unit"
                )

        return self._create_result(errors)


class WeightValidator(BaseValidator):
    """Weight validator."""

    def validate(self, data: pl.DataFrame, config: EventStudyConfig) -> ValidationResult:
        """Validate data."""
        errors = []
        warnings = []

        if not config.weightsname:
            return self._create_result(errors, warnings)

        weights = data[config.weightsname]
        if (weights.drop_nulls() < 0).any():
            errors.append(f"weightsname = '{config.weightsname}' contains negative values")

        n_missing = weights.null_count()
        if n_missing > 0:
            warnings.append(f"{n_missing} observations have missing weights and will be dropped")

        return self._create_result(errors, warnings)


class ClusterValidator(BaseValidator):
    """Cluster validator."""

    def validate(self, data: pl.DataFrame, config: EventStudyConfig) -> ValidationResult:
        """Validate data."""
        errors = []

        if config.cov_type != CovarianceType.CLUSTER or config.clustervar is None:
            return self._create_result(errors)

        if data[config.clustervar].null_count() > 0:
            errors.append(f"clustervar = '{config.clustervar}' has missing values")

        if varying_within(data, config.idname, [config.clustervar]):
            errors.append(
                "Time-varying cluster variables are not supported. Units must be nested within clusters."
            )

        return self._create_result(errors)


class CompositeValidator(BaseValidator):
    """Composite validator."""

    def __init__(self, validators: list[BaseValidator] | None = None):
        """Initialize composite validator."""
        if validators is not None:
            self.validators = validators
        else:
            self.validators = self._get_default_validators()

    @staticmethod
    def _get_default_validators() -> list[BaseValidator]:
        """Get default validators."""
        return [
            ArgumentValidator(),
            ColumnValidator(),
            PanelStructureValidator(),
            FoldPartitionValidator(),
            BaselineCovariateValidator(),
            TreatmentTimingValidator(),
            WeightValidator(),
            ClusterValidator(),
        ]

    def validate(self, data: pl.DataFrame, config: EventStudyConfig) -> ValidationResult:
        """Validate data.

        Validators after the first failing structural check are skipped because
        they assume the referenced columns exist.
        """
        all_errors = []
        all_warnings = []

        for validator in self.validators:
            result = validator.validate(data, config)
            all_errors.extend(result.errors)
            all_warnings.extend(result.warnings)
            if all_errors and isinstance(validator, (ArgumentValidator, ColumnValidator)):
                break

        return ValidationResult(is_valid=len(all_errors) == 0, errors=all_errors, warnings=all_warnings)
