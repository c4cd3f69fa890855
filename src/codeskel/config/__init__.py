"""Config module exports."""

from codeskel.config.loader import load_config
from codeskel.config.models import (
    CodeSkelConfig,
    IndexConfig,
    IndexerConfig,
    LoggingConfig,
    WatcherConfig,
)

__all__ = [
    "load_config",
    "CodeSkelConfig",
    "IndexConfig",
    "IndexerConfig",
    "LoggingConfig",
    "WatcherConfig",
]
