"""
Tests for scanspine.core.errors.

Covers:
- Category and retryable defaults per subclass
- Fluent context attachment and serialization
- Partial results carried by format and backend errors
- categorize_error / wrap_error for foreign exceptions
"""

import pytest

from scanspine.core.errors import (
    ArchiveError,
    BackendError,
    ConfigError,
    ErrorCategory,
    LicenseFormatError,
    LicenseMismatchError,
    NetworkError,
    ScanCancelledError,
    ScanspineError,
    SourceError,
    SourceNotFoundError,
    UnknownLicenseError,
    ValidationError,
    categorize_error,
    wrap_error,
)
from scanspine.framework.backends.protocol import Verdict
from scanspine.licenses.license import License


class TestHierarchy:
    @pytest.mark.parametrize(
        ("error", "category", "retryable"),
        [
            (NetworkError("timeout"), ErrorCategory.NETWORK, True),
            (SourceError("unreadable"), ErrorCategory.SOURCE, False),
            (SourceNotFoundError("missing"), ErrorCategory.SOURCE, False),
            (ArchiveError("corrupt"), ErrorCategory.SOURCE, False),
            (LicenseFormatError(), ErrorCategory.PARSE, False),
            (BackendError("boom"), ErrorCategory.BACKEND, False),
            (UnknownLicenseError("X"), ErrorCategory.VALIDATION, False),
            (ConfigError("bad"), ErrorCategory.CONFIG, False),
            (ScanCancelledError("stop"), ErrorCategory.ORCHESTRATION, False),
        ],
    )
    def test_defaults(self, error, category, retryable):
        assert isinstance(error, ScanspineError)
        assert error.category == category
        assert error.retryable is retryable

    def test_retryable_override(self):
        assert NetworkError("too many redirects", retryable=False).retryable is False

    def test_identity_errors_are_validation_errors(self):
        assert isinstance(UnknownLicenseError("X"), ValidationError)
        assert isinstance(LicenseMismatchError("origin"), ValidationError)

    def test_unknown_license_message(self):
        error = UnknownLicenseError("NOPE-1.0")
        assert error.message == "unknown registry identifier: NOPE-1.0"
        assert error.license_id == "NOPE-1.0"

    def test_mismatch_names_field(self):
        error = LicenseMismatchError("custom")
        assert error.field == "custom"
        assert "custom" in str(error)


class TestContext:
    def test_with_context_known_and_extra_fields(self):
        error = SourceError("clone failed").with_context(source="git+https://x/y", http_status=500)
        assert error.context.source == "git+https://x/y"
        assert error.context.metadata == {"http_status": 500}

    def test_with_context_returns_self(self):
        error = BackendError("boom")
        assert error.with_context(backend="cran") is error

    def test_to_dict(self):
        cause = OSError("denied")
        error = SourceError("cannot read", cause=cause).with_context(path="/x")
        data = error.to_dict()
        assert data["error_type"] == "SourceError"
        assert data["category"] == "SOURCE"
        assert data["context"] == {"path": "/x"}
        assert data["cause"] == "denied"
        assert error.__cause__ is cause

    def test_to_dict_without_context(self):
        assert "context" not in ConfigError("bad").to_dict()


class TestPartialResults:
    def test_format_error_keeps_licenses(self):
        claims = [License(custom="MIT")]
        error = LicenseFormatError(licenses=claims)
        assert error.message == "invalid license format"
        assert error.licenses == claims

    def test_format_error_defaults_empty(self):
        assert LicenseFormatError().licenses == []

    def test_backend_error_keeps_partial(self):
        partial = Verdict(backend="cran", licenses=(License(custom="MIT"),))
        assert BackendError("bad field", partial=partial).partial is partial


class TestUtilities:
    def test_categorize(self):
        assert categorize_error(ConfigError("x")) == ErrorCategory.CONFIG
        assert categorize_error(ConnectionResetError()) == ErrorCategory.NETWORK
        assert categorize_error(PermissionError()) == ErrorCategory.SOURCE
        assert categorize_error(ValueError()) == ErrorCategory.PARSE
        assert categorize_error(RuntimeError()) == ErrorCategory.UNKNOWN

    def test_wrap_foreign_error(self):
        original = RuntimeError("kaput")
        wrapped = wrap_error(original, source="file:///x")
        assert isinstance(wrapped, ScanspineError)
        assert wrapped.cause is original
        assert wrapped.context.source == "file:///x"
        assert "kaput" in wrapped.message

    def test_wrap_keeps_existing_context(self):
        error = SourceError("x").with_context(source="a")
        assert wrap_error(error, source="b") is error
        assert error.context.source == "a"
