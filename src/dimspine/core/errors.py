"""
Structured error types for dimspine.

Only run-level failures are exceptions. A field that does not parse is an
``UNRESOLVED`` value, and a sale that cannot be conformed is a quarantine
entry; neither ever raises. What remains is the structural tier: an extract
that cannot be read, a dimension that produced no rows, a publish that could
not swap tables, a setting that does not validate.

Manifesto:
    - **Typed hierarchy:** One base class, one subclass per failure domain
    - **Rich context:** Errors carry run_id, ordering, dimension, table
    - **Error chaining:** The original exception is kept as ``cause``
    - **Serializable:** ``to_dict()`` feeds structured logs and the run ledger

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────┐
        │                     DimspineError                         │
        │        (category, context, cause, to_dict())              │
        ├──────────────────────────────────────────────────────────┤
        │  ExtractError        DimensionBuildError   PublishError   │
        │  (SOURCE)            (PIPELINE)            (DATABASE)     │
        │                                                           │
        │  ConfigError         ReconciliationError                  │
        │  (CONFIG)            (VALIDATION)                         │
        └──────────────────────────────────────────────────────────┘

Examples:
    >>> err = DimensionBuildError("customer", "no rows with a natural key")
    >>> err.category.value
    'PIPELINE'
    >>> err.to_dict()["context"]["dimension"]
    'customer'

Tags:
    errors, exceptions, error-hierarchy, dimspine
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories used for logging and run-ledger classification."""

    SOURCE = "SOURCE"  # Extract missing, unreadable, malformed header
    PIPELINE = "PIPELINE"  # Dimension build or run orchestration failure
    DATABASE = "DATABASE"  # Warehouse publish / landing failure
    CONFIG = "CONFIG"  # Invalid settings
    VALIDATION = "VALIDATION"  # Reconciliation divergence
    INTERNAL = "INTERNAL"  # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        run_id: Pipeline run identifier
        ordering: Ordering strategy name (etl / elt)
        dimension: Dimension being built when the error happened
        table: Extract or warehouse table involved
        metadata: Anything else worth logging
    """

    run_id: str | None = None
    ordering: str | None = None
    dimension: str | None = None
    table: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Non-empty fields only."""
        result: dict[str, Any] = {}
        for key in ("run_id", "ordering", "dimension", "table"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class DimspineError(Exception):
    """
    Base exception for all dimspine errors.

    Subclasses set ``default_category``. Context can be added after
    construction with the fluent ``with_context()``::

        raise PublishError("swap failed", cause=exc).with_context(run_id=run_id)
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> DimspineError:
        """Add context to this error (fluent API)."""
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# SOURCE ERRORS
# =============================================================================


class ExtractError(DimspineError):
    """A raw extract is missing, unreadable, or lacks required columns."""

    default_category = ErrorCategory.SOURCE

    def __init__(
        self,
        message: str,
        *,
        entity: str | None = None,
        missing_columns: list[str] | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.entity = entity
        self.missing_columns = missing_columns or []
        if entity is not None:
            self.context.table = entity

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.missing_columns:
            result["missing_columns"] = self.missing_columns
        return result


# =============================================================================
# PIPELINE ERRORS
# =============================================================================


class PipelineError(DimspineError):
    """Pipeline execution error."""

    default_category = ErrorCategory.PIPELINE


class DimensionBuildError(PipelineError):
    """
    A dimension build could not produce a single surrogate key.

    Fatal to the run: fact resolution assumes non-empty lookup tables, so
    the runner aborts before resolving any sale.
    """

    def __init__(self, dimension: str, reason: str, **kwargs: Any):
        super().__init__(f"Dimension '{dimension}' build failed: {reason}", **kwargs)
        self.dimension = dimension
        self.reason = reason
        self.context.dimension = dimension


# =============================================================================
# DATABASE ERRORS
# =============================================================================


class PublishError(DimspineError):
    """Atomic swap of warehouse tables failed; previous tables are intact."""

    default_category = ErrorCategory.DATABASE


class LandingError(DimspineError):
    """Raw extracts could not be landed into the warehouse."""

    default_category = ErrorCategory.DATABASE


# =============================================================================
# CONFIGURATION / VALIDATION ERRORS
# =============================================================================


class ConfigError(DimspineError):
    """Configuration value is invalid."""

    default_category = ErrorCategory.CONFIG

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid configuration for {key}: {value!r}")


class ReconciliationError(DimspineError):
    """Two pipeline outputs diverged and the caller asked for a hard failure."""

    default_category = ErrorCategory.VALIDATION

    def __init__(self, message: str, *, discrepancies: list[str] | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.discrepancies = discrepancies or []


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "DimspineError",
    "ExtractError",
    "PipelineError",
    "DimensionBuildError",
    "PublishError",
    "LandingError",
    "ConfigError",
    "ReconciliationError",
]
