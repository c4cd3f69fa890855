"""Tests for rebuild serialization, pausing and read races.

A gated reader blocks the extraction of one file so a test can interleave
mutations with an in-flight pass deterministically.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from pathlib import Path

import pytest

from codeskel.index.models import FileState
from codeskel.index.ops import IndexerState, SymbolIndex

IndexFactory = Callable[..., SymbolIndex]

WAIT = 10.0


class _GatedReader:
    """Blocks the first read of ``name`` until ``release`` is set."""

    def __init__(self, name: str, *, read_first: bool = False) -> None:
        self.name = name
        self.read_first = read_first
        self.entered = threading.Event()
        self.release = threading.Event()
        self._armed = True

    def __call__(self, path: Path) -> bytes:
        if path.name != self.name or not self._armed:
            return path.read_bytes()
        self._armed = False
        data = path.read_bytes() if self.read_first else b""
        self.entered.set()
        self.release.wait(WAIT)
        return data if self.read_first else path.read_bytes()


def _class_names(index: SymbolIndex, path: str) -> list[str]:
    return [u.short_name for u in index.classes_in_file(path)]


@pytest.fixture
def target(tmp_path: Path) -> Path:
    path = tmp_path / "a.js"
    path.write_text("export class Before {}\n")
    return path


class TestPauseResume:
    def test_given_pause_mid_read_when_resumed_then_half_written_never_published(
        self, tmp_path: Path, target: Path, index_factory: IndexFactory
    ) -> None:
        """A pass interrupted by a pause discards its work; resume re-reads."""
        # Given
        reader = _GatedReader("a.js")
        index = index_factory(tmp_path, reader=reader)
        first = index.request_rebuild()
        assert reader.entered.wait(WAIT)

        # When
        index.pause(["a.js"])
        target.write_text("export class Half {")
        reader.release.set()
        stats = first.result(timeout=WAIT)

        # Then
        assert stats.discarded
        assert not index.snapshot.built
        assert _class_names(index, "a.js") == []

        # When
        target.write_text("export class After {}\n")
        resumed = index.resume()
        assert resumed is not None
        resumed.result(timeout=WAIT)

        # Then
        assert _class_names(index, "a.js") == ["After"]
        assert index.file_state("a.js") is FileState.INDEXED

    def test_given_paused_index_when_rebuild_requested_then_deferred_until_resume(
        self, tmp_path: Path, target: Path, index_factory: IndexFactory
    ) -> None:
        # Given
        index = index_factory(tmp_path)
        index.pause()

        # When
        deferred = index.request_rebuild()

        # Then
        assert not deferred.done()
        assert index.status.paused
        assert index.status.state is IndexerState.PAUSED

        # When
        resumed = index.resume()
        assert resumed is not None

        # Then
        assert deferred.result(timeout=WAIT) is resumed.result(timeout=WAIT)
        assert _class_names(index, "a.js") == ["Before"]

    def test_given_nested_pauses_when_resumed_then_outermost_resume_rebuilds(
        self, tmp_path: Path, target: Path, index_factory: IndexFactory
    ) -> None:
        # Given
        index = index_factory(tmp_path)
        index.pause()
        index.pause()

        # When
        inner = index.resume()

        # Then
        assert inner is None
        assert index.status.paused

        # When
        outer = index.resume()

        # Then
        assert outer is not None
        outer.result(timeout=WAIT)
        assert not index.status.paused

    def test_given_no_pause_when_resumed_then_none(
        self, tmp_path: Path, index_factory: IndexFactory
    ) -> None:
        assert index_factory(tmp_path).resume() is None

    def test_given_mutating_paths_when_resumed_then_reextracted_even_if_unchanged(
        self, tmp_path: Path, target: Path, index_factory: IndexFactory
    ) -> None:
        """Files named at pause time are always re-read on resume."""
        # Given
        index = index_factory(tmp_path)
        index.request_rebuild().result(timeout=WAIT)
        index.pause([target])

        # When
        resumed = index.resume()
        assert resumed is not None
        stats = resumed.result(timeout=WAIT)

        # Then
        assert stats.files_processed == 1
        assert stats.files_indexed == 1


class TestSupersede:
    def test_given_newer_request_when_pass_in_flight_then_old_pass_discarded(
        self, tmp_path: Path, target: Path, index_factory: IndexFactory
    ) -> None:
        """Passes never interleave; a superseded pass publishes nothing."""
        # Given
        reader = _GatedReader("a.js", read_first=True)
        index = index_factory(tmp_path, reader=reader)
        first = index.request_rebuild()
        assert reader.entered.wait(WAIT)

        # When
        target.write_text("export class Newer {}\n")
        second = index.request_rebuild(["a.js"])
        reader.release.set()

        # Then
        assert first.result(timeout=WAIT).discarded
        stats = second.result(timeout=WAIT)
        assert not stats.discarded
        assert stats.files_indexed == 1
        assert _class_names(index, "a.js") == ["Newer"]


class TestReadRace:
    def test_given_file_changed_during_read_when_pass_completes_then_stale_and_retried(
        self, tmp_path: Path, target: Path, index_factory: IndexFactory
    ) -> None:
        """A fingerprint mismatch marks the file stale and schedules a follow-up."""
        # Given
        reader = _GatedReader("a.js", read_first=True)
        index = index_factory(tmp_path, reader=reader)
        first = index.request_rebuild()
        assert reader.entered.wait(WAIT)

        # When
        target.write_text("export class ChangedWhileReading {}\n")
        reader.release.set()
        stats = first.result(timeout=WAIT)

        # Then
        assert stats.files_stale == 1
        assert stats.files_indexed == 0
        assert index.wait_for_idle(WAIT)
        assert _class_names(index, "a.js") == ["ChangedWhileReading"]
        assert index.file_state("a.js") is FileState.INDEXED
