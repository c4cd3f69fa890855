"""JavaScript profile (ES modules and CommonJS, .js/.mjs/.cjs/.jsx)."""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

from codeskel.index._internal.grammars import load_language
from codeskel.index._internal.languages.base import BaseProfile, collapse_whitespace, node_text
from codeskel.index.models import CodeUnit

if TYPE_CHECKING:
    from tree_sitter import Language, Node

_DECLARATIONS = frozenset({"lexical_declaration", "variable_declaration"})
_CLASS_NODES = frozenset({"class_declaration", "class", "class_expression"})
_METHOD_MODIFIERS = frozenset({"static", "static get", "async", "get", "set", "*"})


class JavascriptProfile(BaseProfile):
    name: ClassVar[str] = "javascript"
    extensions: ClassVar[frozenset[str]] = frozenset({".js", ".mjs", ".cjs", ".jsx"})

    def grammar(self) -> Language:
        return load_language(self.name)

    def body_placeholder(self) -> str:
        return "{...}"

    def is_class_like(self, node: Node) -> bool:
        return node.type in _CLASS_NODES

    def language_specific_closer(self, unit: CodeUnit) -> str:
        return "}" if unit.is_class else ""

    def visibility_prefix(self, node: Node, source: bytes) -> str:
        """Export and binding keywords that precede a declaration.

        ``export const x = 1`` on the declarator gives ``"export const "``;
        ``export class Foo`` gives ``"export "``; ``let y`` gives ``"let "``;
        an exported arrow function (the declarator's value) gives ``"export "``.
        """
        parent = node.parent
        if parent is None:
            return ""

        if node.type == "variable_declarator" and parent.type in _DECLARATIONS:
            keyword = _declaration_keyword(parent, source)
            return _export_prefix(parent) + (f"{keyword} " if keyword else "")

        if parent.type == "export_statement":
            return _export_prefix(node)

        if parent.type == "variable_declarator":
            declaration = parent.parent
            if declaration is not None and declaration.type in _DECLARATIONS:
                return _export_prefix(declaration)

        return ""

    def render_class_header(
        self, node: Node, source: bytes, export_prefix: str, signature_text: str
    ) -> str:
        parent = node.parent
        if node.type != "class_declaration" and parent is not None:
            if parent.type == "variable_declarator":
                binding = _binding_keyword(parent, source)
                name = node_text(parent.child_by_field_name("name"), source)
                return f"{export_prefix}{binding}{name} = {signature_text} {{"
            if parent.type == "field_definition":
                static = "static " if _has_child(parent, "static") else ""
                name = node_text(parent.child_by_field_name("property"), source)
                return f"{static}{name} = {signature_text} {{"
            if parent.type == "assignment_expression":
                target = node_text(parent.child_by_field_name("left"), source)
                return f"{target} = {signature_text} {{"
        return f"{export_prefix}{signature_text} {{"

    def render_function_signature(
        self,
        node: Node,
        source: bytes,
        export_prefix: str,
        async_prefix: str,
        name: str,
        params: str,
        return_type: str,
    ) -> str:
        suffix = f": {return_type}" if return_type else ""
        match node.type:
            case "method_definition":
                return f"{_method_modifiers(node, source)}{name}{params}{suffix}"
            case "arrow_function":
                lhs = _assignment_target(node, source, export_prefix, name)
                return f"{lhs} = {async_prefix}{params}{suffix} =>"
            case "function_expression" | "generator_function":
                lhs = _assignment_target(node, source, export_prefix, name)
                star = "*" if node.type == "generator_function" else ""
                return f"{lhs} = {async_prefix}function{star}{params}{suffix}"
            case "generator_function_declaration":
                return f"{export_prefix}{async_prefix}function* {name}{params}{suffix}"
            case _:
                return f"{export_prefix}{async_prefix}function {name}{params}{suffix}"


def _has_child(node: Node, child_type: str) -> bool:
    return any(child.type == child_type for child in node.children)


def _export_prefix(node: Node) -> str:
    parent = node.parent
    if parent is None or parent.type != "export_statement":
        return ""
    return "export default " if _has_child(parent, "default") else "export "


def _declaration_keyword(declaration: Node, source: bytes) -> str:
    first = declaration.child(0)
    return node_text(first, source) if first is not None else ""


def _binding_keyword(declarator: Node, source: bytes) -> str:
    declaration = declarator.parent
    if declaration is None or declaration.type not in _DECLARATIONS:
        return ""
    keyword = _declaration_keyword(declaration, source)
    return f"{keyword} " if keyword else ""


def _assignment_target(node: Node, source: bytes, export_prefix: str, name: str) -> str:
    """Left-hand side for a function bound to a variable, a class field or an export."""
    parent = node.parent
    if parent is not None and parent.type == "assignment_expression":
        return node_text(parent.child_by_field_name("left"), source)
    if parent is not None and parent.type == "field_definition":
        static = "static " if _has_child(parent, "static") else ""
        return f"{static}{name}"
    if parent is not None and parent.type == "variable_declarator":
        return f"{export_prefix}{_binding_keyword(parent, source)}{name}"
    return f"{export_prefix}{name}"


def _method_modifiers(node: Node, source: bytes) -> str:
    """``static``, ``async``, ``get``/``set`` and ``*`` written before a method name."""
    name_node = node.child_by_field_name("name")
    words: list[str] = []
    star = ""
    for child in node.children:
        if name_node is not None and child.start_byte >= name_node.start_byte:
            break
        text = collapse_whitespace(node_text(child, source))
        if text == "*":
            star = "*"
        elif text in _METHOD_MODIFIERS:
            words.append(text)
    prefix = " ".join(words)
    return f"{prefix} {star}" if prefix else star
