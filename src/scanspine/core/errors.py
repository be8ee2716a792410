"""
Structured error types for scanspine.

Provides a hierarchy of typed errors with metadata for attribution,
categorization, and reporting. A scan touches many sources and many
backends at once, so an error is only useful if it says *where* it happened:
which source identifier, which backend, which content item.

Every ScanspineError carries:
- **Category:** What kind of error (network, source, parse, backend, ...)
- **Retryable:** Whether repeating the operation may succeed
- **Context:** Source / backend / item attribution plus custom fields
- **Cause:** Chained underlying exception for root cause analysis

Manifesto:
    - **Typed Error Hierarchy:** Traversal, backend, format and config
      errors are different things and are handled differently
    - **Attribution:** Non-fatal errors end up in the Result Aggregate keyed
      by source, so they must know their source
    - **Error Chaining:** Preserve original exceptions while adding context

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                       ScanspineError                             │
        │  (category, retryable, context, cause)                           │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  TransientError    SourceError          ParseError               │
        │  (retryable=True)  (SOURCE)             (PARSE)                  │
        │       │                │                    │                    │
        │  NetworkError      SourceNotFoundError  LicenseFormatError       │
        │                    ArchiveError         (carries partial claims) │
        │                                                                  │
        │  BackendError      ValidationError      ConfigError              │
        │  (BACKEND)         (VALIDATION)         (CONFIG, fatal)          │
        │  (partial verdict)     │                                         │
        │                    UnknownLicenseError  OrchestrationError       │
        │                    InvalidLicenseError  (ORCHESTRATION)          │
        └─────────────────────────────────────────────────────────────────┘

    Fatal vs non-fatal:
        ConfigError and cancellation stop a run. Everything else is recorded
        against a source in the Result Aggregate and the run continues.

Examples:
    Attributing a backend failure:

    >>> error = BackendError("cannot parse DESCRIPTION")
    >>> error.with_context(source="file:///src", backend="cran", item="DESCRIPTION")
    BackendError('cannot parse DESCRIPTION', category=BACKEND)
    >>> error.context.backend
    'cran'

    Chaining errors for root cause:

    >>> try:
    ...     open("/nonexistent")
    ... except OSError as e:
    ...     raise SourceError("unreadable path", cause=e)
    Traceback (most recent call last):
    ...
    SourceError: unreadable path

Guardrails:
    ❌ DON'T: Let a bare Exception escape a backend into the engine log only
    ✅ DO: Wrap it with wrap_error() so it is attributed and kept

    ❌ DON'T: Swallow the original exception
    ✅ DO: Pass it as cause= for error chaining

Tags:
    error-handling, exception-hierarchy, attribution, scanspine

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from scanspine.framework.backends.protocol import Verdict
    from scanspine.licenses.license import License


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and routing.

    Categories follow the error taxonomy of a scan:
    - **Traversal:** NETWORK, SOURCE
    - **Analysis:** BACKEND, PARSE
    - **Identity:** VALIDATION
    - **Fatal:** CONFIG, ORCHESTRATION
    - **Internal:** INTERNAL, UNKNOWN
    """

    # Traversal errors (attributed to one source)
    NETWORK = "NETWORK"           # Clone, download, DNS
    SOURCE = "SOURCE"             # Unreadable path, unsupported archive

    # Analysis errors (attributed to source, backend, item)
    BACKEND = "BACKEND"           # Backend could not complete analysis
    PARSE = "PARSE"               # License field / expression format

    # License identity
    VALIDATION = "VALIDATION"     # Unknown registry ID, malformed claim

    # Run-level errors
    CONFIG = "CONFIG"             # No backends, bad settings
    ORCHESTRATION = "ORCHESTRATION"  # Engine misuse, cancellation

    # Internal errors
    INTERNAL = "INTERNAL"         # Bugs, unexpected state
    UNKNOWN = "UNKNOWN"           # Uncategorized errors


@dataclass
class ErrorContext:
    """
    Structured attribution for errors.

    Attributes:
        source: Source identifier of the Traversal Unit involved
        backend: Name of the backend involved
        item: Logical path of the content item involved
        url: URL that was being accessed
        path: Filesystem path that was being accessed
        metadata: Additional key-value pairs
    """

    source: str | None = None
    backend: str | None = None
    item: str | None = None

    url: str | None = None
    path: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["source", "backend", "item", "url", "path"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class ScanspineError(Exception):
    """
    Base exception for all scanspine errors.

    Subclasses set ``default_category`` and ``default_retryable`` so the
    common case needs only a message.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> ScanspineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise SourceError("clone failed").with_context(
                source="git+https://github.com/org/repo",
                url="https://github.com/org/repo",
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
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
# TRAVERSAL ERRORS
# =============================================================================


class TransientError(ScanspineError):
    """Temporary error that may succeed on retry."""

    default_category = ErrorCategory.NETWORK
    default_retryable = True


class NetworkError(TransientError):
    """Clone, fetch or download failed at the network level."""


class SourceError(ScanspineError):
    """A source could not be read."""

    default_category = ErrorCategory.SOURCE
    default_retryable = False


class SourceNotFoundError(SourceError):
    """The path, repository or URL does not exist."""


class ArchiveError(SourceError):
    """Corrupt archive, unsafe member path, or unsupported format."""


# =============================================================================
# ANALYSIS ERRORS
# =============================================================================


class ParseError(ScanspineError):
    """Input a parser claims to understand is malformed."""

    default_category = ErrorCategory.PARSE


class LicenseFormatError(ParseError):
    """
    A license expression is malformed.

    The parser may still have recovered some claims; they are kept on
    ``licenses`` because an error and a partial result coexist here.
    """

    def __init__(self, message: str = "invalid license format", *, licenses: list[License] | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.licenses = list(licenses or [])


class BackendError(ScanspineError):
    """
    A backend could not complete its analysis of one content item.

    ``partial`` holds whatever verdict the backend could still produce; the
    engine records it next to the error instead of discarding it.
    """

    default_category = ErrorCategory.BACKEND

    def __init__(self, message: str, *, partial: Verdict | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.partial = partial


# =============================================================================
# LICENSE IDENTITY ERRORS
# =============================================================================


class ValidationError(ScanspineError):
    """A license claim is not valid."""

    default_category = ErrorCategory.VALIDATION


class UnknownLicenseError(ValidationError):
    """A registry identifier was not found in the registry."""

    def __init__(self, license_id: str, message: str | None = None):
        super().__init__(message or f"unknown registry identifier: {license_id}")
        self.license_id = license_id


class InvalidLicenseError(ValidationError):
    """A claim has no usable representation (custom without origin, or empty)."""


class LicenseMismatchError(ValidationError):
    """Two claims differ; ``field`` names the first differing field."""

    def __init__(self, field_name: str):
        super().__init__(f"the {field_name} field differs")
        self.field = field_name


# =============================================================================
# RUN-LEVEL ERRORS
# =============================================================================


class ConfigError(ScanspineError):
    """Configuration error, fatal to the run."""

    default_category = ErrorCategory.CONFIG


class OrchestrationError(ScanspineError):
    """The engine or a Traversal Unit was driven incorrectly."""

    default_category = ErrorCategory.ORCHESTRATION


class ScanCancelledError(OrchestrationError):
    """Recorded against sources whose scan was interrupted."""


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def categorize_error(error: BaseException) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, ScanspineError):
        return error.category
    if isinstance(error, ConnectionError):
        return ErrorCategory.NETWORK
    if isinstance(error, OSError):
        return ErrorCategory.SOURCE
    if isinstance(error, (ValueError, UnicodeError)):
        return ErrorCategory.PARSE
    return ErrorCategory.UNKNOWN


def wrap_error(error: BaseException, message: str | None = None, **context: Any) -> ScanspineError:
    """
    Return ``error`` as a ScanspineError with ``context`` attached.

    ScanspineErrors are annotated in place; anything else is wrapped in a
    ScanspineError of the matching category with the original as cause.
    """
    if isinstance(error, ScanspineError):
        for key, value in context.items():
            if getattr(error.context, key, None) is None:
                error.with_context(**{key: value})
        return error
    wrapped = ScanspineError(
        message or f"{type(error).__name__}: {error}",
        category=categorize_error(error),
        cause=error if isinstance(error, Exception) else None,
    )
    return wrapped.with_context(**context)


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "ScanspineError",
    # Traversal
    "TransientError",
    "NetworkError",
    "SourceError",
    "SourceNotFoundError",
    "ArchiveError",
    # Analysis
    "ParseError",
    "LicenseFormatError",
    "BackendError",
    # Identity
    "ValidationError",
    "UnknownLicenseError",
    "InvalidLicenseError",
    "LicenseMismatchError",
    # Run-level
    "ConfigError",
    "OrchestrationError",
    "ScanCancelledError",
    # Utilities
    "categorize_error",
    "wrap_error",
]
