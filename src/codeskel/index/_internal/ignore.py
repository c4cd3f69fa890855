"""Ignore pattern matching with tiered architecture.

Shared by file discovery and the file watcher.

Tiered Architecture:
- HARDCODED_DIRS: Always excluded, cannot be overridden (VCS, .codeskel)
- DEFAULT_PRUNABLE_DIRS: Excluded by default, user can opt-in via !pattern
- .skelignore patterns: User-configurable file/directory patterns
"""

from __future__ import annotations

import fnmatch
from pathlib import Path

from codeskel.core.excludes import (
    DEFAULT_PRUNABLE_DIRS,
    HARDCODED_DIRS,
    PRUNABLE_DIRS,
    is_hardcoded_dir,
)

__all__ = [
    "PRUNABLE_DIRS",
    "HARDCODED_DIRS",
    "DEFAULT_PRUNABLE_DIRS",
    "IgnoreChecker",
]


class IgnoreChecker:
    """Checks if paths should be ignored based on tiered patterns.

    Pattern syntax:
    - Standard glob patterns (fnmatch)
    - Directory patterns ending in / match contents
    - Negation with ! prefix (e.g., !vendor/ to opt-in vendor directory)
    - A .skelignore in a subdirectory scopes its patterns to that directory
    """

    IGNORE_FILE_NAME = ".skelignore"

    def __init__(self, root: Path, extra_patterns: list[str] | None = None) -> None:
        self._root = root
        self._patterns: list[str] = []
        self._negated_dirs: set[str] = set()
        self._ignore_paths: list[Path] = []
        self._load_recursive(root)
        if extra_patterns:
            self._patterns.extend(extra_patterns)

    @property
    def negated_dirs(self) -> frozenset[str]:
        """Directory names opted back in with ``!name/`` at the root."""
        return frozenset(self._negated_dirs)

    @property
    def ignore_file_paths(self) -> list[Path]:
        return self._ignore_paths.copy()

    def should_prune_dir(self, dirname: str) -> bool:
        """Check if a directory should be skipped during traversal.

        Example:
            # User adds "!vendor/" to .skelignore
            checker.should_prune_dir("vendor")        # False (opted-in)
            checker.should_prune_dir(".git")          # True (hardcoded)
            checker.should_prune_dir("node_modules")  # True (default)
        """
        if is_hardcoded_dir(dirname):
            return True
        if dirname in DEFAULT_PRUNABLE_DIRS:
            return dirname not in self._negated_dirs
        return False

    def _load_recursive(self, root: Path) -> None:
        root_file = root / self.IGNORE_FILE_NAME
        if root_file.exists():
            self._load_ignore_file(root_file)
            self._ignore_paths.append(root_file)

        for dirpath, dirnames, filenames in root.walk():
            dirnames[:] = [d for d in dirnames if d not in PRUNABLE_DIRS]
            if dirpath == root:
                continue
            if self.IGNORE_FILE_NAME in filenames:
                path = dirpath / self.IGNORE_FILE_NAME
                self._load_ignore_file(path, prefix=dirpath.relative_to(root).as_posix())
                self._ignore_paths.append(path)

    def _load_ignore_file(self, path: Path, prefix: str = "") -> None:
        try:
            content = path.read_text()
        except OSError:
            return
        for raw in content.splitlines():
            line = raw.strip()
            if not line or line.startswith("#"):
                continue

            is_negation = line.startswith("!")
            if is_negation:
                line = line[1:]
                # Only root-level negations override directory pruning
                dir_name = line.rstrip("/")
                if not prefix and dir_name and "/" not in dir_name and "*" not in dir_name:
                    self._negated_dirs.add(dir_name)

            pattern = f"{line}**" if line.endswith("/") else line
            if prefix:
                pattern = f"{prefix}/{pattern}"
            if is_negation:
                pattern = f"!{pattern}"
            self._patterns.append(pattern)

    def is_excluded_rel(self, rel_path: str) -> bool:
        """Check a repo-relative path against the loaded patterns.

        The last matching pattern wins, so a later ``!pattern`` re-includes
        what an earlier pattern excluded (same as .gitignore).
        """
        rel_posix = rel_path.replace("\\", "/")
        parents = [p.as_posix() for p in Path(rel_posix).parents if p != Path(".")]

        excluded = False
        for pattern in self._patterns:
            negated = pattern.startswith("!")
            glob = pattern[1:] if negated else pattern
            if fnmatch.fnmatch(rel_posix, glob) or (
                not negated and any(fnmatch.fnmatch(parent, glob) for parent in parents)
            ):
                excluded = not negated
        return excluded

    def should_ignore(self, path: Path) -> bool:
        try:
            rel_path = path.relative_to(self._root)
        except ValueError:
            return True
        if any(self.should_prune_dir(part) for part in rel_path.parts[:-1]):
            return True
        return self.is_excluded_rel(rel_path.as_posix())
