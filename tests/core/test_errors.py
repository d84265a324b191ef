"""Tests for dimspine.core.errors: hierarchy, context and serialization."""

from __future__ import annotations

import pytest

from dimspine.core.errors import (
    ConfigError,
    DimensionBuildError,
    DimspineError,
    ErrorCategory,
    ExtractError,
    LandingError,
    PipelineError,
    PublishError,
    ReconciliationError,
)


class TestHierarchy:
    @pytest.mark.parametrize(
        "exc, category",
        [
            (ExtractError("x"), ErrorCategory.SOURCE),
            (DimensionBuildError("customer", "empty"), ErrorCategory.PIPELINE),
            (PublishError("x"), ErrorCategory.DATABASE),
            (LandingError("x"), ErrorCategory.DATABASE),
            (ConfigError("max_workers", 0), ErrorCategory.CONFIG),
            (ReconciliationError("x"), ErrorCategory.VALIDATION),
            (DimspineError("x"), ErrorCategory.INTERNAL),
        ],
    )
    def test_default_category(self, exc, category):
        assert isinstance(exc, DimspineError)
        assert exc.category == category

    def test_dimension_build_error_is_pipeline_error(self):
        assert isinstance(DimensionBuildError("product", "empty"), PipelineError)

    def test_category_override(self):
        assert DimspineError("x", category=ErrorCategory.SOURCE).category == ErrorCategory.SOURCE


class TestContext:
    def test_dimension_build_sets_dimension(self):
        err = DimensionBuildError("calendar", "no parseable timestamps")
        assert err.context.dimension == "calendar"
        assert "calendar" in str(err)
        assert "no parseable timestamps" in str(err)

    def test_with_context_known_and_metadata(self):
        err = PublishError("swap failed").with_context(run_id="r1", ordering="elt", attempt=2)
        assert err.context.run_id == "r1"
        assert err.context.ordering == "elt"
        assert err.context.metadata == {"attempt": 2}

    def test_extract_error_sets_table(self):
        err = ExtractError("missing", entity="sales", missing_columns=["date"])
        assert err.context.table == "sales"
        assert err.missing_columns == ["date"]


class TestSerialization:
    def test_to_dict(self):
        err = DimensionBuildError("customer", "empty").with_context(run_id="r1")
        d = err.to_dict()
        assert d["error_type"] == "DimensionBuildError"
        assert d["category"] == "PIPELINE"
        assert d["context"] == {"run_id": "r1", "dimension": "customer"}

    def test_cause_chained(self):
        cause = ValueError("boom")
        err = PublishError("swap failed", cause=cause)
        assert err.__cause__ is cause
        assert err.to_dict()["cause"] == "boom"

    def test_extract_missing_columns_in_dict(self):
        d = ExtractError("missing", entity="sales", missing_columns=["date"]).to_dict()
        assert d["missing_columns"] == ["date"]

    def test_empty_context_omitted(self):
        assert "context" not in DimspineError("x").to_dict()

    def test_reconciliation_discrepancies(self):
        err = ReconciliationError("diverged", discrepancies=["row_count differs"])
        assert err.discrepancies == ["row_count differs"]

    def test_repr(self):
        assert repr(ConfigError("k", 1, "bad k")) == "ConfigError('bad k', category=CONFIG)"
