"""Symbol model shared by extraction, rendering and the index.

Naming convention (consumed by anything that displays or queries units):
- nested classes join with ``$``: ``Outer$Inner``
- members join container and member with ``.``: ``Outer.method``
- top-level fields live in the synthetic ``_module_`` container: ``_module_.x``
- top-level functions are bare: ``main``

The ``_module_`` token is a naming convention only. It is not a class and is
never the parent of anything in a skeleton.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from functools import cached_property

MODULE_CONTAINER = "_module_"
NESTED_CLASS_SEPARATOR = "$"
MEMBER_SEPARATOR = "."


class CodeUnitKind(str, Enum):
    CLASS = "class"
    FUNCTION = "function"
    FIELD = "field"


class SkeletonType(str, Enum):
    """Rendering strategy for a capture tag."""

    CLASS_LIKE = "class_like"
    FUNCTION_LIKE = "function_like"
    FIELD_LIKE = "field_like"
    UNSUPPORTED = "unsupported"


class FileState(str, Enum):
    """Lifecycle of a tracked file in the index.

    UNINDEXED -> INDEXED -> STALE -> INDEXED
    UNINDEXED -> PARSE_FAILED (until the next attempt)
    """

    UNINDEXED = "unindexed"
    INDEXED = "indexed"
    STALE = "stale"
    PARSE_FAILED = "parse_failed"


@dataclass(frozen=True, order=True)
class CodeUnit:
    """A class, function or field declared in a source file.

    Identity is the first four fields; two units are equal iff they come
    from the same file, package, kind and short name.

    ``identifier`` and ``parent_short_name`` are recorded where the unit is
    created and never parsed back out of ``short_name``: JavaScript names
    may themselves contain ``$`` (``$Store``, ``Api.$http``). Hand-built
    units without a recorded identifier fall back to the last name segment.
    """

    source: str  # repo-relative POSIX path
    package_name: str
    kind: CodeUnitKind
    short_name: str
    identifier: str = field(default="", compare=False)
    parent_short_name: str | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if not self.identifier:
            object.__setattr__(self, "identifier", _last_segment(self.kind, self.short_name))

    @classmethod
    def cls(
        cls,
        source: str,
        package_name: str,
        short_name: str,
        *,
        identifier: str = "",
        parent: str | None = None,
    ) -> CodeUnit:
        return cls(source, package_name, CodeUnitKind.CLASS, short_name, identifier, parent)

    @classmethod
    def fn(
        cls,
        source: str,
        package_name: str,
        short_name: str,
        *,
        identifier: str = "",
        parent: str | None = None,
    ) -> CodeUnit:
        return cls(source, package_name, CodeUnitKind.FUNCTION, short_name, identifier, parent)

    @classmethod
    def field(
        cls,
        source: str,
        package_name: str,
        short_name: str,
        *,
        identifier: str = "",
        parent: str | None = None,
    ) -> CodeUnit:
        if MEMBER_SEPARATOR not in short_name:
            raise ValueError(f"Field name must be container-qualified: {short_name!r}")
        return cls(source, package_name, CodeUnitKind.FIELD, short_name, identifier, parent)

    @property
    def fq_name(self) -> str:
        if self.package_name:
            return f"{self.package_name}.{self.short_name}"
        return self.short_name

    @property
    def is_class(self) -> bool:
        return self.kind is CodeUnitKind.CLASS

    @property
    def is_function(self) -> bool:
        return self.kind is CodeUnitKind.FUNCTION

    @property
    def is_field(self) -> bool:
        return self.kind is CodeUnitKind.FIELD

    def __str__(self) -> str:
        return self.fq_name


def _last_segment(kind: CodeUnitKind, short_name: str) -> str:
    """``Outer$Inner.m`` -> ``m``, ``Outer$Inner`` -> ``Inner``."""
    name = short_name
    if kind is not CodeUnitKind.CLASS and MEMBER_SEPARATOR in name:
        name = name.rsplit(MEMBER_SEPARATOR, 1)[1]
    return name.rsplit(NESTED_CLASS_SEPARATOR, 1)[-1]


def to_class_name(method_name: str) -> str:
    """Strip the member segment: ``pkg.Foo.bar`` -> ``pkg.Foo``."""
    last_dot = method_name.rfind(MEMBER_SEPARATOR)
    if last_dot == -1:
        return method_name
    return method_name[:last_dot]


@dataclass(frozen=True)
class FileFingerprint:
    """Cheap change detector taken from ``os.stat``."""

    mtime_ns: int
    size: int


@dataclass(frozen=True)
class FileExtraction:
    """Everything one extraction pass learned about one file.

    ``units`` keeps source order. The mappings are keyed by unit and are
    never mutated after construction.
    """

    path: str
    language: str
    source_text: str
    fingerprint: FileFingerprint | None
    units: tuple[CodeUnit, ...] = ()
    skeleton_types: Mapping[CodeUnit, SkeletonType] = field(default_factory=dict)
    signatures: Mapping[CodeUnit, tuple[str, ...]] = field(default_factory=dict)
    children: Mapping[CodeUnit, tuple[CodeUnit, ...]] = field(default_factory=dict)
    spans: Mapping[CodeUnit, tuple[int, int]] = field(default_factory=dict)
    references: Mapping[CodeUnit, frozenset[str]] = field(default_factory=dict)

    @property
    def top_level(self) -> tuple[CodeUnit, ...]:
        return tuple(u for u in self.units if u.parent_short_name is None)

    @property
    def classes(self) -> tuple[CodeUnit, ...]:
        return tuple(u for u in self.units if u.is_class)

    @cached_property
    def source_bytes(self) -> bytes:
        return self.source_text.encode("utf-8")

    def span_text(self, unit: CodeUnit) -> str:
        start, end = self.spans[unit]
        return self.source_bytes[start:end].decode("utf-8", errors="replace")


@dataclass(frozen=True)
class UsageHits:
    """Usage results split by resolution strategy.

    ``structural`` hits come from identifier tokens inside a unit's syntax
    tree. ``heuristic`` hits come from the containment scan, which matches
    substrings of source text and therefore over-matches.
    """

    identifier: str
    structural: frozenset[CodeUnit] = frozenset()
    heuristic: frozenset[CodeUnit] = frozenset()

    @property
    def all(self) -> frozenset[CodeUnit]:
        return self.structural | self.heuristic


@dataclass(frozen=True)
class SkeletonSummary:
    """Rendered skeletons for a group of classes, ready for an outer wrapper."""

    short_names: tuple[str, ...]
    class_names: frozenset[str]
    text: str

    @property
    def description(self) -> str:
        return "Summary of " + ", ".join(sorted(self.short_names))


EMPTY_SUMMARY = SkeletonSummary(("Enabled, but no references found",), frozenset(), "")
DISABLED_SUMMARY = SkeletonSummary((), frozenset(), "")
