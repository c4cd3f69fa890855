"""Language profile contract.

A profile is the only place that knows how a grammar spells classes,
functions and fields. The extraction engine and the skeleton renderer call
these hooks and never inspect node types themselves.

Profiles are stateless and shared across extraction threads.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, ClassVar, Protocol, runtime_checkable

import structlog

from codeskel.index.models import (
    MEMBER_SEPARATOR,
    MODULE_CONTAINER,
    NESTED_CLASS_SEPARATOR,
    CodeUnit,
    SkeletonType,
)

if TYPE_CHECKING:
    from tree_sitter import Language, Node

logger = structlog.get_logger()

_WHITESPACE = re.compile(r"\s+")


@runtime_checkable
class LanguageProfile(Protocol):
    """Per-language hooks consumed by extraction and rendering."""

    name: str
    extensions: frozenset[str]

    def grammar(self) -> Language: ...

    def query_resource(self) -> str: ...

    def create_code_unit(
        self,
        file: str,
        capture_tag: str,
        simple_name: str,
        namespace_hint: str,
        class_chain: str,
    ) -> CodeUnit | None: ...

    def ignored_captures(self) -> frozenset[str]: ...

    def body_placeholder(self) -> str: ...

    def skeleton_type_for(self, capture_tag: str) -> SkeletonType: ...

    def render_function_signature(
        self,
        node: Node,
        source: bytes,
        export_prefix: str,
        async_prefix: str,
        name: str,
        params: str,
        return_type: str,
    ) -> str: ...

    def visibility_prefix(self, node: Node, source: bytes) -> str: ...

    def render_class_header(
        self, node: Node, source: bytes, export_prefix: str, signature_text: str
    ) -> str: ...

    def language_specific_closer(self, unit: CodeUnit) -> str: ...

    def is_class_like(self, node: Node) -> bool: ...


# =============================================================================
# Shared helpers
# =============================================================================


def node_text(node: Node | None, source: bytes) -> str:
    """Source text of a node; empty for a missing node."""
    if node is None:
        return ""
    return source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")


def collapse_whitespace(text: str) -> str:
    """Fold a possibly multi-line fragment onto one line."""
    text = _WHITESPACE.sub(" ", text).strip()
    return text.replace("( ", "(").replace(" )", ")")


class BaseProfile:
    """Defaults shared by the bundled profiles.

    Subclasses set ``name``, ``extensions`` and ``_SKELETON_TYPES`` and
    implement the rendering hooks.
    """

    name: ClassVar[str]
    extensions: ClassVar[frozenset[str]]
    _SKELETON_TYPES: ClassVar[dict[str, SkeletonType]] = {
        "class.definition": SkeletonType.CLASS_LIKE,
        "function.definition": SkeletonType.FUNCTION_LIKE,
        "field.definition": SkeletonType.FIELD_LIKE,
    }

    def query_resource(self) -> str:
        return f"queries/{self.name}.scm"

    def ignored_captures(self) -> frozenset[str]:
        return frozenset()

    def skeleton_type_for(self, capture_tag: str) -> SkeletonType:
        return self._SKELETON_TYPES.get(capture_tag, SkeletonType.UNSUPPORTED)

    def create_code_unit(
        self,
        file: str,
        capture_tag: str,
        simple_name: str,
        namespace_hint: str,
        class_chain: str,
    ) -> CodeUnit | None:
        parent = class_chain or None
        match capture_tag:
            case "class.definition":
                short_name = (
                    f"{class_chain}{NESTED_CLASS_SEPARATOR}{simple_name}"
                    if class_chain
                    else simple_name
                )
                return CodeUnit.cls(
                    file, namespace_hint, short_name, identifier=simple_name, parent=parent
                )
            case "function.definition":
                short_name = (
                    f"{class_chain}{MEMBER_SEPARATOR}{simple_name}" if class_chain else simple_name
                )
                return CodeUnit.fn(
                    file, namespace_hint, short_name, identifier=simple_name, parent=parent
                )
            case "field.definition":
                container = class_chain or MODULE_CONTAINER
                return CodeUnit.field(
                    file,
                    namespace_hint,
                    f"{container}{MEMBER_SEPARATOR}{simple_name}",
                    identifier=simple_name,
                    parent=parent,
                )
            case _:
                logger.debug(
                    "capture_ignored", language=self.name, tag=capture_tag, name=simple_name
                )
                return None

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
