"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (CODESKEL__SECTION__KEY)
3. Repo YAML (.codeskel/config.yaml)
4. Global YAML (~/.config/codeskel/config.yaml)
5. Built-in defaults (this file)

Examples:
    CODESKEL__LOGGING__LEVEL=DEBUG
    CODESKEL__INDEXER__MAX_WORKERS=8
    CODESKEL__INDEX__FAIL_ON_SYNTAX_ERROR=false
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration."""

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        CODESKEL__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG logs every skipped capture.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class IndexConfig(BaseModel):
    """What gets indexed.

    Env vars:
        CODESKEL__INDEX__MAX_FILE_SIZE_MB: Skip files larger than this
        CODESKEL__INDEX__FAIL_ON_SYNTAX_ERROR: Treat trees with ERROR nodes as unparseable
    """

    max_file_size_mb: int = Field(
        default=10,
        description="Skip files larger than this (MB). Generated bundles are rarely useful.",
    )
    excluded_extensions: list[str] = Field(
        default_factory=lambda: [".min.js", ".bundle.js", ".map"],
        description="File suffixes to exclude from indexing.",
    )
    languages: list[str] = Field(
        default_factory=lambda: ["javascript", "python"],
        description="Enabled language profiles.",
    )
    fail_on_syntax_error: bool = Field(
        default=True,
        description="A file whose tree contains syntax errors yields no code units. "
        "Disable to index whatever the error-tolerant parser recovered.",
    )

    @field_validator("max_file_size_mb")
    @classmethod
    def validate_max_file_size(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"max_file_size_mb must be positive, got {v}")
        return v


class IndexerConfig(BaseModel):
    """Background rebuild configuration.

    Env vars:
        CODESKEL__INDEXER__MAX_WORKERS: Parallel extraction workers per pass
        CODESKEL__INDEXER__REBUILD_TIMEOUT_SEC: Max wait for a lazily built index
    """

    max_workers: int = Field(
        default=4,
        description="Parallel extraction workers. Passes themselves are always serialized.",
    )
    rebuild_timeout_sec: float = Field(
        default=120.0,
        description="How long a first query waits for the initial build.",
    )

    @field_validator("max_workers")
    @classmethod
    def validate_max_workers(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"max_workers must be >= 1, got {v}")
        return v


class WatcherConfig(BaseModel):
    """File watcher configuration.

    Env vars:
        CODESKEL__WATCHER__DEBOUNCE_MS: Change batching window
        CODESKEL__WATCHER__FORCE_POLLING: Poll instead of using OS notifications
    """

    debounce_ms: int = Field(
        default=500,
        description="Batch changes arriving within this window into one rebuild request.",
    )
    force_polling: bool = Field(
        default=False,
        description="Use mtime polling (network mounts, WSL /mnt/*).",
    )


class CodeSkelConfig(BaseModel):
    """Root configuration for codeskel."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    index: IndexConfig = Field(default_factory=IndexConfig)
    indexer: IndexerConfig = Field(default_factory=IndexerConfig)
    watcher: WatcherConfig = Field(default_factory=WatcherConfig)
