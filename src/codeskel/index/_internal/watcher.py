"""File watcher feeding external mutations into the symbol index.

Design:
- watchfiles.watch runs on a daemon thread and batches changes with its own
  debounce window
- Changes are filtered through the same rules as discovery (enabled
  extensions, pruned dirs, .skelignore) before they reach the index
- A .skelignore change reloads the rules and requests a full refresh
- Falls back to mtime polling for cross-filesystem roots (WSL /mnt/*)

The watcher never touches the index state directly: it only calls
``request_rebuild``, which holds requests while the index is paused.
"""

from __future__ import annotations

import threading
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
from watchfiles import Change, watch

from codeskel.index._internal.ignore import IgnoreChecker

if TYPE_CHECKING:
    from codeskel.index.ops import SymbolIndex

logger = structlog.get_logger()

_EXT_NAMES: dict[str, str] = {
    ".py": "Python",
    ".pyi": "Python stub",
    ".js": "JavaScript",
    ".mjs": "JavaScript module",
    ".cjs": "CommonJS",
    ".jsx": "JSX",
}


def _is_cross_filesystem(path: Path) -> bool:
    """Detect if path is on a cross-filesystem mount (WSL /mnt/*, network drives, etc.)."""
    path_str = str(path.resolve())
    # WSL accessing Windows filesystem: /mnt/c/, /mnt/d/, etc.
    if (
        path_str.startswith("/mnt/")
        and len(path_str) > 6
        and path_str[5].isalpha()
        and path_str[6] == "/"
    ):
        return True
    return path_str.startswith(("/run/user/", "/media/", "/net/"))


def _summarize_changes_by_type(paths: list[str]) -> str:
    """Summarize changes like ``"2 Python files, 1 JavaScript file"``."""
    counts: Counter[str] = Counter(Path(p).suffix.lower() for p in paths)
    parts: list[str] = []
    for ext, count in counts.most_common(3):
        name = _EXT_NAMES.get(ext, ext.lstrip(".").upper() if ext else "other")
        word = "file" if count == 1 else "files"
        parts.append(f"{count} {name} {word}")
    remaining = len(paths) - sum(count for _, count in counts.most_common(3))
    if remaining > 0:
        parts.append(f"{remaining} {'other' if remaining == 1 else 'others'}")
    return ", ".join(parts)


@dataclass
class FileWatcher:
    """Watches the index root and requests rebuilds for changed tracked files."""

    index: SymbolIndex
    debounce_ms: int = 500
    force_polling: bool | None = None

    _thread: threading.Thread | None = field(default=None, init=False)
    _stop_event: threading.Event = field(default_factory=threading.Event, init=False)
    _batches: int = field(default=0, init=False)

    def __post_init__(self) -> None:
        if self.force_polling is None:
            self.force_polling = _is_cross_filesystem(self.index.root)

    @property
    def root(self) -> Path:
        return self.index.root

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def batches_dispatched(self) -> int:
        return self._batches

    def start(self) -> None:
        """Start watching on a daemon thread (no-op if already running)."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, name="codeskel-watcher", daemon=True
        )
        self._thread.start()
        logger.info(
            "file_watcher_started",
            root=str(self.root),
            polling=self.force_polling,
            debounce_ms=self.debounce_ms,
        )

    def stop(self, timeout: float = 5.0) -> None:
        """Signal the watch loop to exit and wait for the thread."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("file_watcher_stopped", batches=self._batches)

    def _run(self) -> None:
        for changes in watch(
            self.root,
            watch_filter=self.accept,
            debounce=self.debounce_ms,
            stop_event=self._stop_event,
            force_polling=self.force_polling,
            raise_interrupt=False,
        ):
            self.dispatch(changes)

    def accept(self, change: Change, path: str) -> bool:  # noqa: ARG002
        """watchfiles filter: tracked candidates and ignore files only."""
        p = Path(path)
        if p.name == IgnoreChecker.IGNORE_FILE_NAME:
            return True
        try:
            rel_path = p.relative_to(self.root).as_posix()
        except ValueError:
            return False
        return self.index.discovery.is_candidate(rel_path)

    def dispatch(self, changes: set[tuple[Change, str]]) -> None:
        """Turn one batch of raw changes into a rebuild request."""
        rel_paths: set[str] = set()
        ignore_changed = False
        for _change, path in changes:
            p = Path(path)
            if p.name == IgnoreChecker.IGNORE_FILE_NAME:
                ignore_changed = True
                continue
            try:
                rel_paths.add(p.relative_to(self.root).as_posix())
            except ValueError:
                continue

        if not rel_paths and not ignore_changed:
            return
        self._batches += 1

        if ignore_changed:
            self.index.discovery.reload_ignores()
            logger.info("ignore_rules_changed", action="full_refresh")
            self.index.request_rebuild()
            return

        paths = sorted(rel_paths)
        logger.info("changes_detected", summary=_summarize_changes_by_type(paths))
        self.index.request_rebuild(paths)
