"""Skeleton rendering: declarations with bodies elided.

Signature lines are computed once, at extraction time, from the parse tree;
rendering a skeleton later only needs the frozen FileExtraction.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING

from codeskel.index._internal.languages.base import LanguageProfile, collapse_whitespace, node_text
from codeskel.index.models import CodeUnit, FileExtraction, SkeletonType

if TYPE_CHECKING:
    from tree_sitter import Node

INDENT = "  "


def header_text(node: Node, source: bytes) -> str:
    """Declaration text up to the body, folded onto one line."""
    body = node.child_by_field_name("body")
    end = body.start_byte if body is not None else node.end_byte
    return collapse_whitespace(source[node.start_byte : end].decode("utf-8", errors="replace"))


def async_prefix(node: Node) -> str:
    return "async " if any(child.type == "async" for child in node.children) else ""


def parameters_text(node: Node, source: bytes) -> str:
    params = node.child_by_field_name("parameters") or node.child_by_field_name("parameter")
    return collapse_whitespace(node_text(params, source))


def return_type_text(node: Node, source: bytes) -> str:
    return collapse_whitespace(node_text(node.child_by_field_name("return_type"), source))


def dedent_continuation(text: str, column: int) -> str:
    """Strip the declaration's own indentation from every line after the first."""
    lines = text.splitlines()
    if len(lines) < 2 or column == 0:
        return text
    prefix = " " * column
    return "\n".join([lines[0], *(ln.removeprefix(prefix) for ln in lines[1:])])


def terminator_after(node: Node) -> str:
    """An explicit ``;`` that closes the statement right after ``node``.

    The last declarator of ``let a = 1, b = 2;`` and a class field both sit
    next to the terminator; ``a`` is followed by a comma and gets nothing.
    """
    sibling = node.next_sibling
    return ";" if sibling is not None and sibling.type == ";" else ""


class SkeletonRenderer:
    """Builds signature lines and renders unit skeletons."""

    def __init__(self, profiles: Mapping[str, LanguageProfile]) -> None:
        self._profiles = profiles

    def signature_for(
        self,
        profile: LanguageProfile,
        skeleton_type: SkeletonType,
        node: Node,
        source: bytes,
        name: str,
    ) -> str | None:
        """Render the one declaration line(s) of a captured node, or None if unsupported."""
        match skeleton_type:
            case SkeletonType.CLASS_LIKE:
                return profile.render_class_header(
                    node, source, profile.visibility_prefix(node, source), header_text(node, source)
                )
            case SkeletonType.FUNCTION_LIKE:
                signature = profile.render_function_signature(
                    node,
                    source,
                    profile.visibility_prefix(node, source),
                    async_prefix(node),
                    name,
                    parameters_text(node, source),
                    return_type_text(node, source),
                )
                return f"{signature} {profile.body_placeholder()}"
            case SkeletonType.FIELD_LIKE:
                text = dedent_continuation(node_text(node, source).strip(), node.start_point[1])
                return profile.visibility_prefix(node, source) + text + terminator_after(node)
            case _:
                return None

    def render(self, extraction: FileExtraction, unit: CodeUnit) -> str:
        """Skeleton text of one unit; empty when the unit has no skeleton.

        Walks the child tree with an explicit stack of ``(unit, depth, closing)``
        frames so nesting depth is bounded only by memory.
        """
        profile = self._profiles.get(extraction.language)
        if profile is None:
            return ""
        lines: list[str] = []
        stack: list[tuple[CodeUnit, int, bool]] = [(unit, 0, False)]
        while stack:
            current, depth, closing = stack.pop()
            indent = INDENT * depth
            if closing:
                closer = profile.language_specific_closer(current)
                if closer:
                    lines.append(indent + closer)
                continue

            skeleton_type = extraction.skeleton_types.get(current, SkeletonType.UNSUPPORTED)
            signatures = extraction.signatures.get(current, ())
            if skeleton_type is SkeletonType.UNSUPPORTED or not signatures:
                continue

            if skeleton_type is SkeletonType.CLASS_LIKE:
                lines.append(indent + signatures[0])
                stack.append((current, depth, True))
                stack.extend(
                    (child, depth + 1, False)
                    for child in reversed(extraction.children.get(current, ()))
                )
                continue

            for signature in signatures:
                lines.extend(indent + line for line in signature.splitlines())
        return "\n".join(lines)
