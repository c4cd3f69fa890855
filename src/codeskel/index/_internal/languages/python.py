"""Python profile (.py/.pyi)."""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

from codeskel.index._internal.grammars import load_language
from codeskel.index._internal.languages.base import BaseProfile
from codeskel.index.models import CodeUnit

if TYPE_CHECKING:
    from tree_sitter import Language, Node


class PythonProfile(BaseProfile):
    name: ClassVar[str] = "python"
    extensions: ClassVar[frozenset[str]] = frozenset({".py", ".pyi"})

    def grammar(self) -> Language:
        return load_language(self.name)

    def body_placeholder(self) -> str:
        return "..."

    def is_class_like(self, node: Node) -> bool:
        return node.type == "class_definition"

    def language_specific_closer(self, unit: CodeUnit) -> str:  # noqa: ARG002
        return ""

    def visibility_prefix(self, node: Node, source: bytes) -> str:  # noqa: ARG002
        # Python has no declaration modifiers; privacy is a naming convention.
        return ""

    def render_class_header(
        self,
        node: Node,  # noqa: ARG002
        source: bytes,  # noqa: ARG002
        export_prefix: str,
        signature_text: str,
    ) -> str:
        # The header text up to the body already ends with the colon.
        return f"{export_prefix}{signature_text.removesuffix(':').rstrip()}:"

    def render_function_signature(
        self,
        node: Node,  # noqa: ARG002
        source: bytes,  # noqa: ARG002
        export_prefix: str,
        async_prefix: str,
        name: str,
        params: str,
        return_type: str,
    ) -> str:
        suffix = f" -> {return_type}" if return_type else ""
        return f"{export_prefix}{async_prefix}def {name}{params}{suffix}:"
