"""Core module exports."""

from codeskel.core.errors import (
    CodeSkelError,
    ConfigError,
    ErrorCode,
    ExtractionError,
    InternalError,
    LanguageError,
)
from codeskel.core.logging import (
    clear_pass_id,
    configure_logging,
    get_logger,
    get_pass_id,
    set_pass_id,
)
from codeskel.core.progress import spinner, status

__all__ = [
    # Errors
    "CodeSkelError",
    "ConfigError",
    "ErrorCode",
    "ExtractionError",
    "InternalError",
    "LanguageError",
    # Logging
    "clear_pass_id",
    "configure_logging",
    "get_logger",
    "get_pass_id",
    "set_pass_id",
    # Progress
    "spinner",
    "status",
]
