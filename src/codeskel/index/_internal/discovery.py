"""Tracked file discovery.

A file is tracked when its extension belongs to an enabled profile and it is
not excluded by directory pruning, .skelignore patterns, configured excluded
suffixes or the size limit.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from codeskel.config.models import IndexConfig
from codeskel.index._internal.ignore import IgnoreChecker
from codeskel.index._internal.languages import LanguageProfile, get_profile_for_path

logger = structlog.get_logger()


def _walk_with_pruning(root: Path, checker: IgnoreChecker) -> list[tuple[str, str]]:
    """Walk all files, pruning ignored dirs. Returns (rel_dir_posix, filename)."""
    results: list[tuple[str, str]] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = [d for d in dirnames if not checker.should_prune_dir(d)]
        rel_dir_posix = Path(dirpath).relative_to(root).as_posix()
        if rel_dir_posix == ".":
            rel_dir_posix = ""
        for filename in filenames:
            results.append((rel_dir_posix, filename))
    return results


@dataclass
class DiscoveryResult:
    files: list[str] = field(default_factory=list)
    skipped_too_large: list[str] = field(default_factory=list)


class FileDiscovery:
    """Lists the tracked files under a root, sorted by relative POSIX path."""

    def __init__(
        self,
        root: Path,
        profiles: Mapping[str, LanguageProfile],
        config: IndexConfig | None = None,
    ) -> None:
        self.root = root
        self._profiles = profiles
        self._config = config or IndexConfig()
        self._checker = IgnoreChecker(root)

    @property
    def ignore_checker(self) -> IgnoreChecker:
        return self._checker

    def reload_ignores(self) -> None:
        self._checker = IgnoreChecker(self.root)

    def is_candidate(self, rel_path: str) -> bool:
        """Extension and pattern checks only (no filesystem access)."""
        *dirs, name = rel_path.split("/")
        if any(self._checker.should_prune_dir(d) for d in dirs):
            return False
        if any(name.endswith(suffix) for suffix in self._config.excluded_extensions):
            return False
        if get_profile_for_path(rel_path, self._profiles) is None:
            return False
        return not self._checker.is_excluded_rel(rel_path)

    def discover(self) -> DiscoveryResult:
        result = DiscoveryResult()
        max_bytes = self._config.max_file_size_mb * 1024 * 1024
        for rel_dir, filename in _walk_with_pruning(self.root, self._checker):
            rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
            if not self.is_candidate(rel_path):
                continue
            try:
                size = (self.root / rel_path).stat().st_size
            except OSError:
                continue
            if size > max_bytes:
                result.skipped_too_large.append(rel_path)
                continue
            result.files.append(rel_path)

        result.files.sort()
        if result.skipped_too_large:
            logger.info("files_skipped_too_large", count=len(result.skipped_too_large))
        return result

    def filter(self, paths: Iterable[str]) -> list[str]:
        """Tracked subset of explicit relative paths (used for caller-supplied file lists)."""
        return sorted({p for p in paths if self.is_candidate(p)})
