"""Tree-sitter grammar and query loading.

Grammars and compiled queries are loaded once per language and cached for
the life of the process; both are safe to share across threads (each
extraction creates its own Parser and QueryCursor).

A grammar that cannot be imported or a query resource that does not compile
is fatal for that language and surfaces as LanguageError.
"""

from __future__ import annotations

import importlib
import threading
from importlib import resources
from importlib.util import find_spec
from typing import NamedTuple

import structlog
import tree_sitter

from codeskel.core.errors import LanguageError

logger = structlog.get_logger()

_QUERY_PACKAGE = "codeskel.index._internal.languages"


class GrammarPackage(NamedTuple):
    """PyPI package, minimum version, import module, language function."""

    package: str
    min_version: str
    module: str
    language_func: str = "language"


GRAMMAR_PACKAGES: dict[str, GrammarPackage] = {
    "javascript": GrammarPackage("tree-sitter-javascript", "0.23.0", "tree_sitter_javascript"),
    "python": GrammarPackage("tree-sitter-python", "0.23.0", "tree_sitter_python"),
}

_lock = threading.Lock()
_languages: dict[str, tree_sitter.Language] = {}
_queries: dict[tuple[str, str], tree_sitter.Query] = {}


def is_grammar_installed(language: str) -> bool:
    """Check if the grammar package for a language is importable."""
    pkg = GRAMMAR_PACKAGES.get(language)
    return pkg is not None and find_spec(pkg.module) is not None


def get_missing_grammars(languages: list[str]) -> list[tuple[str, str]]:
    """Return (package, min_version) for enabled languages whose grammar is absent."""
    missing: list[tuple[str, str]] = []
    for lang in languages:
        pkg = GRAMMAR_PACKAGES.get(lang)
        if pkg is not None and not is_grammar_installed(lang):
            missing.append((pkg.package, pkg.min_version))
    return missing


def load_language(language: str) -> tree_sitter.Language:
    """Load (and cache) the tree-sitter Language for a profile name."""
    cached = _languages.get(language)
    if cached is not None:
        return cached

    pkg = GRAMMAR_PACKAGES.get(language)
    if pkg is None:
        raise LanguageError.grammar_unavailable(language, "<unregistered>")

    with _lock:
        if language in _languages:
            return _languages[language]
        try:
            module = importlib.import_module(pkg.module)
            lang = tree_sitter.Language(getattr(module, pkg.language_func)())
        except (ImportError, AttributeError) as err:
            logger.error("grammar_load_failed", language=language, module=pkg.module)
            raise LanguageError.grammar_unavailable(language, pkg.module) from err
        _languages[language] = lang
        logger.debug("grammar_loaded", language=language)
        return lang


def read_query_resource(resource: str) -> str:
    """Read a query resource shipped inside the languages package."""
    return resources.files(_QUERY_PACKAGE).joinpath(resource).read_text(encoding="utf-8")


def load_query(language: str, resource: str) -> tree_sitter.Query:
    """Compile (and cache) the capture query for a language."""
    key = (language, resource)
    cached = _queries.get(key)
    if cached is not None:
        return cached

    lang = load_language(language)
    with _lock:
        if key in _queries:
            return _queries[key]
        try:
            query_text = read_query_resource(resource)
        except OSError as err:
            raise LanguageError.query_invalid(language, resource, str(err)) from err
        try:
            query = tree_sitter.Query(lang, query_text)
        except ValueError as err:  # tree_sitter.QueryError subclasses ValueError
            logger.error("query_compile_failed", language=language, resource=resource)
            raise LanguageError.query_invalid(language, resource, str(err)) from err
        _queries[key] = query
        return query
