"""Shared fixtures for index tests."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest

from codeskel.index._internal.extraction import ExtractionEngine
from codeskel.index.models import FileExtraction
from codeskel.index.ops import SymbolIndex


@pytest.fixture
def write_tree() -> Callable[[Path, dict[str, str]], Path]:
    """Write ``{rel_path: content}`` under a root and return the root."""

    def _write(root: Path, files: dict[str, str]) -> Path:
        for rel_path, content in files.items():
            path = root / rel_path
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
        return root

    return _write


@pytest.fixture
def engine() -> ExtractionEngine:
    return ExtractionEngine()


@pytest.fixture
def extract(engine: ExtractionEngine) -> Callable[[str, str], FileExtraction]:
    """Extract in-memory source text as if it lived at ``rel_path``."""

    def _extract(rel_path: str, source: str) -> FileExtraction:
        return engine.extract(rel_path, source.encode("utf-8"))

    return _extract


@pytest.fixture
def index_factory(tmp_path: Path) -> Iterator[Callable[..., SymbolIndex]]:
    """Create SymbolIndex instances that are closed after the test."""
    created: list[SymbolIndex] = []

    def _make(root: Path | None = None, *args: Any, **kwargs: Any) -> SymbolIndex:
        index = SymbolIndex(root or tmp_path, *args, **kwargs)
        created.append(index)
        return index

    yield _make
    for index in created:
        index.close()
