"""Textual containment scans.

These over-match on purpose: a substring hit inside a longer identifier, a
comment or a string literal still counts. Callers that need token-exact
results use the structural references recorded at extraction time.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from codeskel.index.models import CodeUnit, FileExtraction


def innermost_unit_at(extraction: FileExtraction, offset: int) -> CodeUnit | None:
    """Smallest unit whose byte span contains ``offset``."""
    best: CodeUnit | None = None
    best_len = -1
    for unit in extraction.units:
        start, end = extraction.spans[unit]
        if start <= offset < end and (best is None or end - start < best_len):
            best, best_len = unit, end - start
    return best


def containment_scan(
    files: Iterable[FileExtraction],
    identifier: str,
    exclude: Iterable[CodeUnit] = (),
) -> frozenset[CodeUnit]:
    """Innermost units whose source text contains ``identifier`` as a substring."""
    if not identifier:
        return frozenset()
    needle = identifier.encode("utf-8")
    hits: set[CodeUnit] = set()
    for extraction in files:
        source = extraction.source_bytes
        pos = source.find(needle)
        while pos != -1:
            unit = innermost_unit_at(extraction, pos)
            if unit is not None:
                hits.add(unit)
            pos = source.find(needle, pos + 1)
    hits.difference_update(exclude)
    return frozenset(hits)


def classes_mentioned_in(files: Mapping[str, FileExtraction], text: str) -> tuple[CodeUnit, ...]:
    """Classes of every tracked file whose relative path occurs in ``text``."""
    found: list[CodeUnit] = []
    for path in sorted(files):
        if path in text:
            found.extend(files[path].classes)
    return tuple(found)
