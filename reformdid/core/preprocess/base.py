"""Base classes for validators and transformers."""

from abc import ABC, abstractmethod

import polars as pl

from .config import EventStudyConfig
from .models import ValidationResult


class BaseValidator(ABC):
    """Base validator."""

    @abstractmethod
    def validate(self, data: pl.DataFrame, config: EventStudyConfig) -> ValidationResult:
        """Validate data."""

    @staticmethod
    def _create_result(errors: list[str] | None = None, warnings: list[str] | None = None) -> ValidationResult:
        """Create result."""
        errors = errors or []
        warnings = warnings or []
        return ValidationResult(is_valid=len(errors) == 0, errors=errors, warnings=warnings)


class BaseTransformer(ABC):
    """Base transformer."""

    @abstractmethod
    def transform(self, data: pl.DataFrame, config: EventStudyConfig) -> pl.DataFrame:
        """Transform data."""
