"""Tests for the file watcher's change filtering and dispatch."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest
from watchfiles import Change

from codeskel.index._internal.discovery import FileDiscovery
from codeskel.index._internal.languages import PROFILES
from codeskel.index._internal.watcher import (
    FileWatcher,
    _is_cross_filesystem,
    _summarize_changes_by_type,
)


@pytest.fixture
def index(tmp_path: Path) -> MagicMock:
    index = MagicMock()
    index.root = tmp_path
    index.discovery = FileDiscovery(tmp_path, PROFILES)
    return index


@pytest.fixture
def watcher(index: MagicMock) -> FileWatcher:
    return FileWatcher(index, debounce_ms=10, force_polling=True)


class TestAccept:
    def test_given_tracked_source_when_filtered_then_accepted(
        self, watcher: FileWatcher, tmp_path: Path
    ) -> None:
        assert watcher.accept(Change.modified, str(tmp_path / "src" / "a.js"))

    @pytest.mark.parametrize(
        "rel_path", ["node_modules/x/a.js", "notes.txt", "dist/bundle.js", "a.min.js"]
    )
    def test_given_untracked_path_when_filtered_then_rejected(
        self, watcher: FileWatcher, tmp_path: Path, rel_path: str
    ) -> None:
        assert not watcher.accept(Change.added, str(tmp_path / rel_path))

    def test_given_ignore_file_when_filtered_then_accepted(
        self, watcher: FileWatcher, tmp_path: Path
    ) -> None:
        assert watcher.accept(Change.modified, str(tmp_path / "pkg" / ".skelignore"))

    def test_given_path_outside_root_when_filtered_then_rejected(
        self, watcher: FileWatcher
    ) -> None:
        assert not watcher.accept(Change.added, "/somewhere/else/a.js")


class TestDispatch:
    def test_given_source_changes_when_dispatched_then_rebuild_for_sorted_paths(
        self, watcher: FileWatcher, index: MagicMock, tmp_path: Path
    ) -> None:
        """One batch becomes one rebuild request naming the changed files."""
        # Given
        changes = {
            (Change.modified, str(tmp_path / "b.js")),
            (Change.added, str(tmp_path / "a.py")),
            (Change.deleted, str(tmp_path / "src" / "c.js")),
        }

        # When
        watcher.dispatch(changes)

        # Then
        index.request_rebuild.assert_called_once_with(["a.py", "b.js", "src/c.js"])
        assert watcher.batches_dispatched == 1

    def test_given_ignore_file_change_when_dispatched_then_full_refresh(
        self, watcher: FileWatcher, index: MagicMock, tmp_path: Path
    ) -> None:
        """A .skelignore edit reloads the rules and rebuilds everything."""
        # Given
        (tmp_path / ".skelignore").write_text("gen/\n")
        changes = {
            (Change.modified, str(tmp_path / ".skelignore")),
            (Change.modified, str(tmp_path / "gen" / "a.js")),
        }

        # When
        watcher.dispatch(changes)

        # Then
        index.request_rebuild.assert_called_once_with()
        assert not index.discovery.is_candidate("gen/a.js")

    def test_given_only_foreign_paths_when_dispatched_then_nothing(
        self, watcher: FileWatcher, index: MagicMock
    ) -> None:
        # When
        watcher.dispatch({(Change.added, "/other/root/a.js")})

        # Then
        index.request_rebuild.assert_not_called()
        assert watcher.batches_dispatched == 0


class TestLifecycle:
    def test_given_watcher_when_started_and_stopped_then_thread_exits(
        self, watcher: FileWatcher
    ) -> None:
        # When
        watcher.start()
        running = watcher.is_running
        watcher.stop(timeout=5)

        # Then
        assert running
        assert not watcher.is_running

    def test_given_no_polling_preference_when_local_root_then_native_events(
        self, index: MagicMock
    ) -> None:
        assert FileWatcher(index).force_polling is _is_cross_filesystem(index.root)


class TestHelpers:
    def test_given_wsl_mount_when_checked_then_cross_filesystem(self) -> None:
        assert _is_cross_filesystem(Path("/mnt/c/Users/dev/repo"))

    def test_given_mixed_changes_when_summarized_then_grouped_by_language(self) -> None:
        # When
        summary = _summarize_changes_by_type(["a.py", "b.py", "c.js"])

        # Then
        assert summary == "2 Python files, 1 JavaScript file"
