"""Index module - query-driven symbol extraction and skeleton rendering.

This module provides:
- Language profiles: per-grammar hooks driven by tree-sitter capture queries
- Extraction: one iterative traversal per file producing code units
- Skeletons: declaration outlines with bodies elided
- Symbol index: thread-safe snapshot queries with background rebuilds

Public API is in `codeskel.index.ops`:
- SymbolIndex: High-level orchestration and queries
- IndexStats, IndexerStatus, IndexSnapshot: Result types

Internal implementations are in `codeskel.index._internal/`.
"""

from codeskel.index.models import (
    DISABLED_SUMMARY,
    EMPTY_SUMMARY,
    MODULE_CONTAINER,
    CodeUnit,
    CodeUnitKind,
    FileExtraction,
    FileState,
    SkeletonSummary,
    SkeletonType,
    UsageHits,
    to_class_name,
)
from codeskel.index.ops import IndexerState, IndexerStatus, IndexSnapshot, IndexStats, SymbolIndex

__all__ = [
    # Models
    "CodeUnit",
    "CodeUnitKind",
    "FileExtraction",
    "FileState",
    "SkeletonSummary",
    "SkeletonType",
    "UsageHits",
    "DISABLED_SUMMARY",
    "EMPTY_SUMMARY",
    "MODULE_CONTAINER",
    "to_class_name",
    # Ops
    "SymbolIndex",
    "IndexSnapshot",
    "IndexStats",
    "IndexerState",
    "IndexerStatus",
]
