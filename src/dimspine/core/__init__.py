"""dimspine core -- domain-agnostic run primitives.

Architecture::

    errors.py          Structured error hierarchy (DimspineError and subclasses)
    logging.py         structlog configuration, LogContext
    settings.py        pydantic-settings DimspineSettings, load_settings()
    timestamps.py      ULID generation + UTC helpers
    quarantine.py      Append-only quarantine log and reasons
"""

from dimspine.core.errors import (
    ConfigError,
    DimensionBuildError,
    DimspineError,
    ErrorCategory,
    ErrorContext,
    ExtractError,
    LandingError,
    PipelineError,
    PublishError,
    ReconciliationError,
)
from dimspine.core.quarantine import FACT_REASON_PRIORITY, QuarantineEntry, QuarantineLog, QuarantineReason
from dimspine.core.timestamps import generate_ulid, utc_now

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
    "QuarantineReason",
    "QuarantineEntry",
    "QuarantineLog",
    "FACT_REASON_PRIORITY",
    "generate_ulid",
    "utc_now",
]
