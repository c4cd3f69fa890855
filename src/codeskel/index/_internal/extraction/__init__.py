"""Query-driven extraction of code units from one source file.

The engine knows nothing about any particular language. It runs the
profile's capture query, groups captures per match, and walks the tree once
(iteratively, in document order) keeping three pieces of scope state:

- the class chain: names of enclosing class-like nodes, ``None`` for an
  anonymous one (captures beneath an anonymous class are skipped)
- the unit stack: the innermost materialized unit, used for parent/child
  links and for attributing identifier references
- the local depth: captures inside a captured function or field are local
  declarations and never become units
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

import structlog
import tree_sitter

from codeskel.core.errors import ExtractionError
from codeskel.index._internal.extraction.skeleton import SkeletonRenderer
from codeskel.index._internal.grammars import load_query
from codeskel.index._internal.languages import PROFILES, LanguageProfile, get_profile_for_path
from codeskel.index._internal.languages.base import node_text
from codeskel.index.models import (
    NESTED_CLASS_SEPARATOR,
    CodeUnit,
    FileExtraction,
    FileFingerprint,
    SkeletonType,
)

if TYPE_CHECKING:
    from tree_sitter import Node

logger = structlog.get_logger()

_NAME_SUFFIX = ".name"

# Dedupe order when several patterns capture the same name node.
_STRENGTH: dict[SkeletonType, int] = {
    SkeletonType.CLASS_LIKE: 3,
    SkeletonType.FUNCTION_LIKE: 2,
    SkeletonType.FIELD_LIKE: 1,
    SkeletonType.UNSUPPORTED: 0,
}


@dataclass(frozen=True, slots=True)
class Capture:
    """One definition capture, alive only during a single extraction."""

    tag: str
    node: Node
    name_node: Node
    pattern_index: int


def namespace_hint(rel_path: str) -> str:
    """Package path derived from the file's directory: ``src/app/x.js`` -> ``src.app``."""
    parent = PurePosixPath(rel_path).parent
    if str(parent) in ("", "."):
        return ""
    return ".".join(part for part in parent.parts if part not in ("", "."))


def group_captures(
    profile: LanguageProfile,
    matches: list[tuple[int, dict[str, list[Node]]]],
) -> dict[int, list[Capture]]:
    """Turn raw query matches into captures keyed by definition node id.

    Every capture name that is not a ``<kind>.name`` helper is a tag; its
    name node is the ``<kind>.name`` capture of the same match. Captures
    named ``_...`` only feed query predicates and are not tags. Tags the
    profile ignores are dropped here, before dispatch.
    """
    ignored = profile.ignored_captures()
    best: dict[int, Capture] = {}
    for pattern_index, captures in matches:
        for tag, nodes in captures.items():
            if tag.endswith(_NAME_SUFFIX) or tag.startswith("_") or not nodes:
                continue
            if tag in ignored:
                continue
            name_nodes = captures.get(tag.rsplit(".", 1)[0] + _NAME_SUFFIX)
            if not name_nodes:
                logger.debug("capture_without_name", language=profile.name, tag=tag)
                continue
            capture = Capture(tag, nodes[0], name_nodes[0], pattern_index)
            key = capture.name_node.id
            current = best.get(key)
            if current is None or _outranks(profile, capture, current):
                best[key] = capture

    by_node: dict[int, list[Capture]] = defaultdict(list)
    for capture in sorted(best.values(), key=lambda c: (c.node.start_byte, c.pattern_index)):
        by_node[capture.node.id].append(capture)
    return by_node


def _outranks(profile: LanguageProfile, candidate: Capture, current: Capture) -> bool:
    a = _STRENGTH[profile.skeleton_type_for(candidate.tag)]
    b = _STRENGTH[profile.skeleton_type_for(current.tag)]
    if a != b:
        return a > b
    return candidate.pattern_index < current.pattern_index


def first_error_line(root: Node) -> int | None:
    """1-based line of the first ERROR or MISSING node, in document order."""
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            return node.start_point[0] + 1
        if node.has_error:
            stack.extend(reversed(node.children))
    return None


@dataclass
class _Frame:
    """What entering a node pushed, so leaving it can pop the same."""

    chain: bool = False
    unit: bool = False
    local: bool = False


@dataclass
class _FileBuilder:
    """Mutable accumulation for one file; frozen into a FileExtraction at the end."""

    units: list[CodeUnit] = field(default_factory=list)
    skeleton_types: dict[CodeUnit, SkeletonType] = field(default_factory=dict)
    signatures: dict[CodeUnit, list[str]] = field(default_factory=dict)
    children: dict[CodeUnit, list[CodeUnit]] = field(default_factory=dict)
    spans: dict[CodeUnit, tuple[int, int]] = field(default_factory=dict)
    references: dict[CodeUnit, set[str]] = field(default_factory=lambda: defaultdict(set))

    def add(
        self,
        unit: CodeUnit,
        skeleton_type: SkeletonType,
        signature: str | None,
        span: tuple[int, int],
        parent: CodeUnit | None,
    ) -> CodeUnit:
        if unit in self.skeleton_types:
            # Same (kind, short name) again: one unit, several signatures.
            if signature is not None and signature not in self.signatures[unit]:
                self.signatures[unit].append(signature)
            return unit
        self.units.append(unit)
        self.skeleton_types[unit] = skeleton_type
        self.signatures[unit] = [signature] if signature is not None else []
        self.spans[unit] = span
        if parent is not None:
            self.children.setdefault(parent, []).append(unit)
        return unit

    def freeze(
        self, path: str, language: str, text: str, fingerprint: FileFingerprint | None
    ) -> FileExtraction:
        return FileExtraction(
            path=path,
            language=language,
            source_text=text,
            fingerprint=fingerprint,
            units=tuple(self.units),
            skeleton_types=dict(self.skeleton_types),
            signatures={u: tuple(s) for u, s in self.signatures.items()},
            children={u: tuple(c) for u, c in self.children.items()},
            spans=dict(self.spans),
            references={u: frozenset(self.references.get(u, ())) for u in self.units},
        )


class ExtractionEngine:
    """Parses files and turns profile captures into code units.

    Safe to share across threads: each call builds its own parser and
    query cursor, and the profiles are stateless.
    """

    def __init__(
        self,
        profiles: Mapping[str, LanguageProfile] | None = None,
        *,
        fail_on_syntax_error: bool = True,
    ) -> None:
        self._profiles = dict(profiles) if profiles is not None else dict(PROFILES)
        self._fail_on_syntax_error = fail_on_syntax_error
        self._renderer = SkeletonRenderer(self._profiles)

    @property
    def profiles(self) -> Mapping[str, LanguageProfile]:
        return self._profiles

    @property
    def renderer(self) -> SkeletonRenderer:
        return self._renderer

    def supports(self, rel_path: str) -> bool:
        return get_profile_for_path(rel_path, self._profiles) is not None

    def extract(
        self,
        rel_path: str,
        content: bytes,
        fingerprint: FileFingerprint | None = None,
    ) -> FileExtraction:
        """Extract all code units declared in one file.

        Raises:
            ExtractionError: unsupported extension, undecodable bytes or a
                tree with syntax errors. The file then contributes no units.
            LanguageError: the grammar or query for the language is unusable.
        """
        profile = get_profile_for_path(rel_path, self._profiles)
        if profile is None:
            raise ExtractionError.unsupported_language(rel_path)

        try:
            text = content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ExtractionError.parse_failed(rel_path, f"not valid UTF-8: {e.reason}") from e

        query = load_query(profile.name, profile.query_resource())
        tree = tree_sitter.Parser(profile.grammar()).parse(content)
        root = tree.root_node
        if root.has_error and self._fail_on_syntax_error:
            line = first_error_line(root)
            raise ExtractionError.parse_failed(rel_path, f"syntax error near line {line}")

        matches = tree_sitter.QueryCursor(query).matches(root)
        by_node = group_captures(profile, matches)
        builder = self._walk(profile, rel_path, content, root, by_node)

        logger.debug(
            "file_extracted", path=rel_path, language=profile.name, units=len(builder.units)
        )
        return builder.freeze(rel_path, profile.name, text, fingerprint)

    def _walk(
        self,
        profile: LanguageProfile,
        rel_path: str,
        source: bytes,
        root: Node,
        by_node: dict[int, list[Capture]],
    ) -> _FileBuilder:
        builder = _FileBuilder()
        package = namespace_hint(rel_path)
        name_ids = {c.name_node.id for caps in by_node.values() for c in caps}

        chain: list[str | None] = []
        unit_stack: list[CodeUnit] = []
        local_depth = 0

        # (node, frame): frame is None on entry and set on the exit marker.
        stack: list[tuple[Node, _Frame | None]] = [(root, None)]
        while stack:
            node, frame = stack.pop()
            if frame is not None:
                if frame.chain:
                    chain.pop()
                if frame.unit:
                    unit_stack.pop()
                if frame.local:
                    local_depth -= 1
                continue

            frame = _Frame()
            class_name: str | None = None
            for capture in by_node.get(node.id, ()):
                skeleton_type = profile.skeleton_type_for(capture.tag)
                simple_name = node_text(capture.name_node, source)
                if skeleton_type is SkeletonType.CLASS_LIKE:
                    class_name = simple_name
                if local_depth == 0 and None not in chain:
                    unit = self._materialize(
                        profile,
                        builder,
                        rel_path,
                        package,
                        capture,
                        simple_name,
                        chain,
                        unit_stack,
                        source,
                    )
                    if unit is not None and not frame.unit:
                        unit_stack.append(unit)
                        frame.unit = True
                if skeleton_type in (SkeletonType.FUNCTION_LIKE, SkeletonType.FIELD_LIKE):
                    frame.local = True

            if profile.is_class_like(node):
                chain.append(class_name)
                frame.chain = True
            if frame.local:
                local_depth += 1

            if unit_stack and node.type.endswith("identifier") and node.id not in name_ids:
                builder.references[unit_stack[-1]].add(node_text(node, source))

            if frame.chain or frame.unit or frame.local:
                stack.append((node, frame))
            stack.extend((child, None) for child in reversed(node.children))

        return builder

    def _materialize(
        self,
        profile: LanguageProfile,
        builder: _FileBuilder,
        rel_path: str,
        package: str,
        capture: Capture,
        simple_name: str,
        chain: list[str | None],
        unit_stack: list[CodeUnit],
        source: bytes,
    ) -> CodeUnit | None:
        class_chain = NESTED_CLASS_SEPARATOR.join(name for name in chain if name)
        unit = profile.create_code_unit(rel_path, capture.tag, simple_name, package, class_chain)
        if unit is None:
            return None
        skeleton_type = profile.skeleton_type_for(capture.tag)
        signature = self._renderer.signature_for(
            profile, skeleton_type, capture.node, source, simple_name
        )
        parent = unit_stack[-1] if unit_stack else None
        span = (capture.node.start_byte, capture.node.end_byte)
        return builder.add(unit, skeleton_type, signature, span, parent)


__all__ = ["Capture", "ExtractionEngine", "first_error_line", "group_captures", "namespace_hint"]
