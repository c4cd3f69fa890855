"""CLI utilities."""

from typing import Any

from codeskel.config.models import CodeSkelConfig
from codeskel.core.progress import status
from codeskel.index._internal.grammars import get_missing_grammars
from codeskel.index.ops import SymbolIndex


def open_index(obj: dict[str, Any]) -> SymbolIndex:
    """Create the index for the root selected on the command group.

    Warns (without failing) about enabled languages whose grammar package is
    missing; files of those languages end up unindexed.
    """
    config: CodeSkelConfig = obj["config"]
    for package, min_version in get_missing_grammars(config.index.languages):
        status(f"Grammar not installed: {package}>={min_version}", style="warning")
    return SymbolIndex(obj["root"], config)
