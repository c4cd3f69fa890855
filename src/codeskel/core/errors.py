"""codeskel error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Index (grammars, query resources, extraction)
- 9xxx: Internal

Per-file extraction failures (3003-3005) are local: the index logs them and
keeps going. Language failures (3001-3002) are fatal for that language.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002

    # Index (3xxx)
    GRAMMAR_UNAVAILABLE = 3001
    QUERY_RESOURCE_INVALID = 3002
    PARSE_FAILED = 3003
    UNSUPPORTED_LANGUAGE = 3004
    CONCURRENT_MODIFICATION = 3005
    FILE_UNREADABLE = 3006

    # Internal (9xxx)
    INTERNAL_ERROR = 9001
    INTERNAL_TIMEOUT = 9002


@dataclass(frozen=True, slots=True)
class CodeSkelError(Exception):
    """Base error with structured context."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'PARSE_FAILED')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(CodeSkelError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )


class LanguageError(CodeSkelError):
    """A language cannot be served at all (grammar or query resource broken)."""

    @classmethod
    def grammar_unavailable(cls, language: str, module: str) -> "LanguageError":
        return cls(
            code=ErrorCode.GRAMMAR_UNAVAILABLE,
            message=f"Grammar for '{language}' is not installed (module {module})",
            details={"language": language, "module": module},
        )

    @classmethod
    def query_invalid(cls, language: str, resource: str, reason: str) -> "LanguageError":
        return cls(
            code=ErrorCode.QUERY_RESOURCE_INVALID,
            message=f"Query resource {resource} for '{language}' failed to load: {reason}",
            details={"language": language, "resource": resource, "reason": reason},
        )


class ExtractionError(CodeSkelError):
    """A single file could not be extracted. Always local to that file."""

    @classmethod
    def parse_failed(cls, path: str, reason: str) -> "ExtractionError":
        return cls(
            code=ErrorCode.PARSE_FAILED,
            message=f"Failed to parse {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def unsupported_language(cls, path: str) -> "ExtractionError":
        return cls(
            code=ErrorCode.UNSUPPORTED_LANGUAGE,
            message=f"No language profile handles {path}",
            details={"path": path},
        )

    @classmethod
    def unreadable(cls, path: str, reason: str) -> "ExtractionError":
        return cls(
            code=ErrorCode.FILE_UNREADABLE,
            message=f"Cannot read {path}: {reason}",
            retryable=True,
            details={"path": path, "reason": reason},
        )

    @classmethod
    def concurrent_modification(cls, path: str) -> "ExtractionError":
        return cls(
            code=ErrorCode.CONCURRENT_MODIFICATION,
            message=f"{path} changed while it was being extracted",
            retryable=True,
            details={"path": path},
        )


class InternalError(CodeSkelError):
    """Internal/unexpected errors."""

    @classmethod
    def unexpected(cls, reason: str, **details: Any) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Internal error: {reason}",
            details=details,
        )

    @classmethod
    def timeout(cls, operation: str, seconds: float) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_TIMEOUT,
            message=f"{operation} did not finish within {seconds:.1f}s",
            retryable=True,
            details={"operation": operation, "timeout_sec": seconds},
        )
