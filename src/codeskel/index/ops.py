"""High-level orchestration of the symbol index.

SymbolIndex is the entry point for all queries and rebuilds. It enforces
these invariants:

- Rebuild passes run on ONE dedicated worker thread, so they queue and
  never interleave. File extraction inside a pass fans out over a separate
  extraction pool.
- Readers only ever see an immutable IndexSnapshot. A pass builds its
  replacement off to the side and publishes it with a single reference swap
  under ``_lock``.
- Every request bumps a generation counter. A pass that observes a newer
  generation, or a pause, discards its work instead of publishing.
- A file whose fingerprint changes between the start and the end of its
  read is marked STALE and scheduled for another pass.
"""

from __future__ import annotations

import contextvars
import threading
import time
from collections.abc import Callable, Iterable, Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath
from types import MappingProxyType
from typing import Any

import structlog

from codeskel.config.models import CodeSkelConfig
from codeskel.core.errors import ExtractionError, InternalError, LanguageError
from codeskel.core.logging import clear_pass_id, set_pass_id
from codeskel.index._internal.discovery import FileDiscovery
from codeskel.index._internal.extraction import ExtractionEngine
from codeskel.index._internal.heuristics import classes_mentioned_in, containment_scan
from codeskel.index._internal.languages import LanguageProfile, enabled_profiles
from codeskel.index.models import (
    DISABLED_SUMMARY,
    EMPTY_SUMMARY,
    CodeUnit,
    FileExtraction,
    FileFingerprint,
    FileState,
    SkeletonSummary,
    UsageHits,
)

logger = structlog.get_logger()

Reader = Callable[[Path], bytes]
TrackedFiles = Callable[[], Iterable[str | Path]]


def _read_bytes(path: Path) -> bytes:
    return path.read_bytes()


def _fingerprint(path: Path) -> FileFingerprint:
    st = path.stat()
    return FileFingerprint(st.st_mtime_ns, st.st_size)


@dataclass
class IndexStats:
    """Statistics from one rebuild pass."""

    files_processed: int = 0
    files_indexed: int = 0
    files_failed: int = 0
    files_removed: int = 0
    files_stale: int = 0
    units_indexed: int = 0
    duration_seconds: float = 0.0
    discarded: bool = False  # superseded or paused; nothing was published


class IndexerState(Enum):
    """Rebuild worker state."""

    IDLE = "idle"
    REBUILDING = "rebuilding"
    PAUSED = "paused"
    STOPPED = "stopped"


@dataclass
class IndexerStatus:
    """Current indexer status."""

    state: IndexerState
    paused: bool
    pending_passes: int
    files_tracked: int
    last_stats: IndexStats | None = None
    last_error: str | None = None


@dataclass(frozen=True)
class IndexSnapshot:
    """Immutable view of the index at one publication.

    ``names`` maps both short names and fully qualified names to the units
    carrying them, ordered by file path and then source order.
    """

    files: Mapping[str, FileExtraction]
    states: Mapping[str, FileState]
    fingerprints: Mapping[str, FileFingerprint]
    names: Mapping[str, tuple[CodeUnit, ...]]
    built: bool = False

    @classmethod
    def empty(cls) -> IndexSnapshot:
        return cls(
            MappingProxyType({}), MappingProxyType({}), MappingProxyType({}), MappingProxyType({})
        )

    @classmethod
    def build(
        cls,
        files: dict[str, FileExtraction],
        states: dict[str, FileState],
        fingerprints: dict[str, FileFingerprint],
    ) -> IndexSnapshot:
        names: dict[str, list[CodeUnit]] = {}
        for path in sorted(files):
            for unit in files[path].units:
                names.setdefault(unit.short_name, []).append(unit)
                if unit.fq_name != unit.short_name:
                    names.setdefault(unit.fq_name, []).append(unit)
        return cls(
            files=MappingProxyType(dict(files)),
            states=MappingProxyType(dict(states)),
            fingerprints=MappingProxyType(dict(fingerprints)),
            names=MappingProxyType({k: tuple(v) for k, v in names.items()}),
            built=True,
        )

    def units_named(self, name: str) -> tuple[CodeUnit, ...]:
        return self.names.get(name, ())

    def all_units(self) -> Iterable[CodeUnit]:
        for path in sorted(self.files):
            yield from self.files[path].units

    @property
    def unit_count(self) -> int:
        return sum(len(extraction.units) for extraction in self.files.values())


@dataclass
class _Outcome:
    """Result of one file in one pass."""

    path: str
    state: FileState
    extraction: FileExtraction | None = None
    fingerprint: FileFingerprint | None = None
    error: str | None = None
    removed: bool = False
    fatal: bool = False


@dataclass
class _PassWork:
    forced: set[str] = field(default_factory=set)
    force_all: bool = False


class SymbolIndex:
    """Thread-safe symbol index over the tracked files of one root.

    Usage::

        with SymbolIndex(repo_root) as index:
            index.classes_in_file("src/app/models.js")
            index.skeleton_of(["Foo", "helper"])
            index.usages_of("render")

    The first query triggers the initial build and waits for it (up to
    ``indexer.rebuild_timeout_sec``). Later changes are picked up through
    ``request_rebuild``, typically called by FileWatcher.
    """

    def __init__(
        self,
        root: Path,
        config: CodeSkelConfig | None = None,
        *,
        profiles: Mapping[str, LanguageProfile] | None = None,
        tracked_files: TrackedFiles | None = None,
        reader: Reader | None = None,
    ) -> None:
        self.root = Path(root).resolve()
        self.config = config or CodeSkelConfig()
        selected = (
            dict(profiles) if profiles is not None else enabled_profiles(self.config.index.languages)
        )
        self._engine = ExtractionEngine(
            selected, fail_on_syntax_error=self.config.index.fail_on_syntax_error
        )
        self._discovery = FileDiscovery(self.root, selected, self.config.index)
        self._tracked_files = tracked_files
        self._reader: Reader = reader or _read_bytes

        # Guards every field below plus the snapshot reference.
        self._lock = threading.RLock()
        self._idle = threading.Condition(self._lock)
        self._snapshot = IndexSnapshot.empty()
        self._generation = 0
        self._pause_depth = 0
        self._mutating: set[str] = set()
        self._work = _PassWork()
        self._pending_passes = 0
        self._deferred: list[Future[IndexStats]] = []
        self._state = IndexerState.IDLE
        self._last_stats: IndexStats | None = None
        self._last_error: str | None = None
        self._closed = False

        self._rebuild_executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="codeskel-rebuild"
        )
        self._extract_executor = ThreadPoolExecutor(
            max_workers=self.config.indexer.max_workers,
            thread_name_prefix="codeskel-extract",
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def __enter__(self) -> SymbolIndex:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self) -> None:
        """Stop accepting work and wait for the running pass to finish."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            deferred, self._deferred = self._deferred, []
            self._state = IndexerState.STOPPED
        for future in deferred:
            future.cancel()
        self._rebuild_executor.shutdown(wait=True, cancel_futures=True)
        self._extract_executor.shutdown(wait=True, cancel_futures=True)
        logger.info("symbol_index_closed", root=str(self.root))

    @property
    def engine(self) -> ExtractionEngine:
        return self._engine

    @property
    def discovery(self) -> FileDiscovery:
        return self._discovery

    @property
    def snapshot(self) -> IndexSnapshot:
        """Last published snapshot (never blocks, never triggers a build)."""
        return self._snapshot

    @property
    def status(self) -> IndexerStatus:
        with self._lock:
            return IndexerStatus(
                state=self._state,
                paused=self._pause_depth > 0,
                pending_passes=self._pending_passes,
                files_tracked=len(self._snapshot.states),
                last_stats=self._last_stats,
                last_error=self._last_error,
            )

    # =========================================================================
    # Rebuild control
    # =========================================================================

    def request_rebuild(
        self, paths: Iterable[str | Path] | None = None, *, force: bool = False
    ) -> Future[IndexStats]:
        """Queue a rebuild pass.

        Files whose fingerprint changed since the last publication are always
        re-extracted. ``paths`` are re-extracted even if their fingerprint
        looks unchanged; ``force`` re-extracts everything.

        While paused the request is held; the returned future completes with
        the pass that runs on resume().
        """
        with self._lock:
            if self._closed:
                raise InternalError.unexpected("rebuild requested on a closed index")
            if paths is not None:
                self._work.forced.update(self._relativize(p) for p in paths)
            self._work.force_all = self._work.force_all or force
            self._generation += 1
            if self._pause_depth:
                future: Future[IndexStats] = Future()
                self._deferred.append(future)
                logger.debug("rebuild_deferred", generation=self._generation)
                return future
            return self._submit_locked()

    def pause(self, paths: Iterable[str | Path] | None = None) -> None:
        """Stop publishing until resume().

        No pass starts while paused and an in-flight pass aborts at its next
        file boundary. ``paths`` names files that are about to be rewritten;
        they are never read while paused and are re-extracted on resume.
        Pauses nest: each pause() needs its own resume().
        """
        with self._lock:
            self._pause_depth += 1
            if paths is not None:
                self._mutating.update(self._relativize(p) for p in paths)
            self._state = IndexerState.PAUSED
            depth = self._pause_depth
        logger.info("indexer_paused", depth=depth, mutating=len(self._mutating))

    def resume(self) -> Future[IndexStats] | None:
        """Lift one pause; the outermost resume triggers a rebuild.

        Returns the future of that rebuild, or None when still paused.
        """
        with self._lock:
            if self._pause_depth == 0:
                logger.warning("resume_without_pause")
                return None
            self._pause_depth -= 1
            if self._pause_depth:
                return None
            self._work.forced.update(self._mutating)
            self._mutating.clear()
            self._state = IndexerState.IDLE
            if self._closed:
                return None
            self._generation += 1
            future = self._submit_locked()
            deferred, self._deferred = self._deferred, []

        for waiter in deferred:
            future.add_done_callback(lambda done, waiter=waiter: _forward(done, waiter))
        logger.info("indexer_resumed", deferred_requests=len(deferred))
        return future

    def wait_for_idle(self, timeout: float | None = None) -> bool:
        """Block until no pass is queued or running. False on timeout."""
        with self._idle:
            return self._idle.wait_for(lambda: self._pending_passes == 0, timeout)

    def _submit_locked(self) -> Future[IndexStats]:
        generation = self._generation
        self._pending_passes += 1
        return self._rebuild_executor.submit(self._run_pass, generation)

    def _should_abort(self, generation: int) -> bool:
        with self._lock:
            return generation != self._generation or self._pause_depth > 0

    def _requeue(self, work: _PassWork) -> None:
        with self._lock:
            self._work.forced.update(work.forced)
            self._work.force_all = self._work.force_all or work.force_all

    # =========================================================================
    # Rebuild pass (runs on the rebuild thread)
    # =========================================================================

    def _run_pass(self, generation: int) -> IndexStats:
        try:
            return self._rebuild(generation)
        except Exception as e:
            with self._lock:
                self._last_error = str(e)
            logger.exception("rebuild_failed", generation=generation)
            raise
        finally:
            with self._lock:
                self._pending_passes -= 1
                if self._state is IndexerState.REBUILDING:
                    self._state = IndexerState.IDLE
                self._idle.notify_all()

    def _rebuild(self, generation: int) -> IndexStats:
        with self._lock:
            if self._should_abort(generation):
                logger.debug("rebuild_skipped", generation=generation)
                return IndexStats(discarded=True)
            work, self._work = self._work, _PassWork()
            self._state = IndexerState.REBUILDING
            base = self._snapshot

        set_pass_id()
        start = time.perf_counter()
        try:
            tracked = self._list_tracked()
            tracked_set = set(tracked)
            todo = [
                p
                for p in tracked
                if work.force_all or p in work.forced or self._needs_extraction(base, p)
            ]
            removed = [p for p in base.states if p not in tracked_set]
            logger.info(
                "rebuild_started",
                generation=generation,
                tracked=len(tracked),
                changed=len(todo),
                removed=len(removed),
            )

            outcomes = self._extract_all(todo, generation)
            if outcomes is None:
                self._requeue(work)
                logger.info("rebuild_discarded", generation=generation, reason="aborted")
                return IndexStats(discarded=True, duration_seconds=time.perf_counter() - start)

            snapshot, stats = self._merge(base, outcomes, removed)
            fatal = next((o.error for o in outcomes if o.fatal), None)
            with self._lock:
                if self._should_abort(generation):
                    self._requeue(work)
                    logger.info("rebuild_discarded", generation=generation, reason="superseded")
                    return IndexStats(discarded=True, duration_seconds=time.perf_counter() - start)
                stats.duration_seconds = time.perf_counter() - start
                self._snapshot = snapshot
                self._last_stats = stats
                self._last_error = fatal

            logger.info(
                "rebuild_completed",
                generation=generation,
                indexed=stats.files_indexed,
                failed=stats.files_failed,
                removed=stats.files_removed,
                stale=stats.files_stale,
                units=stats.units_indexed,
                duration_ms=round(stats.duration_seconds * 1000, 1),
            )

            stale = [o.path for o in outcomes if o.state is FileState.STALE]
            if stale:
                logger.info("stale_files_rescheduled", count=len(stale))
                with self._lock:
                    if not self._closed:
                        self._work.forced.update(stale)
                        self._generation += 1
                        self._submit_locked()
            return stats
        finally:
            clear_pass_id()

    def _list_tracked(self) -> list[str]:
        if self._tracked_files is not None:
            return self._discovery.filter(self._relativize(p) for p in self._tracked_files())
        return self._discovery.discover().files

    def _needs_extraction(self, base: IndexSnapshot, rel_path: str) -> bool:
        state = base.states.get(rel_path)
        if state is None or state in (FileState.UNINDEXED, FileState.STALE):
            return True
        try:
            current = _fingerprint(self.root / rel_path)
        except OSError:
            return True
        return current != base.fingerprints.get(rel_path)

    def _extract_all(self, todo: list[str], generation: int) -> list[_Outcome] | None:
        """Extract files in parallel; None if the pass was aborted midway."""
        # Each worker runs in a copy of this context so its events keep the pass_id.
        futures = [
            self._extract_executor.submit(
                contextvars.copy_context().run, self._extract_one, p, generation
            )
            for p in todo
        ]
        outcomes: list[_Outcome] = []
        for future in futures:
            if future.cancelled():
                continue
            outcome = future.result()
            if outcome is None:
                for other in futures:
                    other.cancel()
                return None
            outcomes.append(outcome)
        return outcomes

    def _extract_one(self, rel_path: str, generation: int) -> _Outcome | None:
        if self._should_abort(generation):
            return None

        path = self.root / rel_path
        try:
            before = _fingerprint(path)
            content = self._reader(path)
            after = _fingerprint(path)
        except FileNotFoundError:
            return _Outcome(rel_path, FileState.UNINDEXED, removed=True)
        except OSError as e:
            err = ExtractionError.unreadable(rel_path, str(e))
            logger.warning("file_unreadable", path=rel_path, error=err.message)
            return _Outcome(rel_path, FileState.PARSE_FAILED, error=err.message)

        if self._should_abort(generation):
            return None
        if before != after:
            err = ExtractionError.concurrent_modification(rel_path)
            logger.warning("file_changed_during_read", path=rel_path, code=err.error_name)
            return _Outcome(rel_path, FileState.STALE, error=err.message)

        try:
            extraction = self._engine.extract(rel_path, content, after)
        except ExtractionError as e:
            logger.warning("file_parse_failed", path=rel_path, error=e.message)
            return _Outcome(rel_path, FileState.PARSE_FAILED, fingerprint=after, error=e.message)
        except LanguageError as e:
            logger.error("language_unavailable", path=rel_path, error=str(e))
            return _Outcome(rel_path, FileState.UNINDEXED, error=str(e), fatal=True)
        except Exception as e:
            logger.exception("file_extraction_crashed", path=rel_path)
            return _Outcome(rel_path, FileState.PARSE_FAILED, fingerprint=after, error=str(e))
        return _Outcome(rel_path, FileState.INDEXED, extraction=extraction, fingerprint=after)

    def _merge(
        self, base: IndexSnapshot, outcomes: list[_Outcome], removed: list[str]
    ) -> tuple[IndexSnapshot, IndexStats]:
        files = dict(base.files)
        states = dict(base.states)
        fingerprints = dict(base.fingerprints)
        stats = IndexStats(files_processed=len(outcomes))

        for rel_path in removed:
            files.pop(rel_path, None)
            states.pop(rel_path, None)
            fingerprints.pop(rel_path, None)
            stats.files_removed += 1

        for outcome in outcomes:
            p = outcome.path
            if outcome.removed:
                files.pop(p, None)
                states.pop(p, None)
                fingerprints.pop(p, None)
                stats.files_removed += 1
                continue
            match outcome.state:
                case FileState.INDEXED:
                    assert outcome.extraction is not None and outcome.fingerprint is not None
                    files[p] = outcome.extraction
                    fingerprints[p] = outcome.fingerprint
                    stats.files_indexed += 1
                case FileState.STALE:
                    # Keep the last good extraction visible until the retry lands.
                    stats.files_stale += 1
                case _:
                    files.pop(p, None)
                    if outcome.fingerprint is not None:
                        fingerprints[p] = outcome.fingerprint
                    else:
                        fingerprints.pop(p, None)
                    stats.files_failed += 1
            states[p] = outcome.state

        snapshot = IndexSnapshot.build(files, states, fingerprints)
        stats.units_indexed = snapshot.unit_count
        return snapshot, stats

    # =========================================================================
    # Queries
    # =========================================================================

    def _ensure_built(self) -> IndexSnapshot:
        """Lazily build on first use; returns the snapshot to query."""
        snapshot = self._snapshot
        if snapshot.built:
            return snapshot
        with self._lock:
            if self._pause_depth or self._closed:
                return self._snapshot
            if self._pending_passes == 0:
                self._generation += 1
                self._submit_locked()
        timeout = self.config.indexer.rebuild_timeout_sec
        if not self.wait_for_idle(timeout):
            err = InternalError.timeout("initial_build", timeout)
            logger.warning("initial_build_timeout", error=err.message)
        return self._snapshot

    def _relativize(self, file: str | Path) -> str:
        path = Path(file)
        if path.is_absolute():
            try:
                return path.resolve().relative_to(self.root).as_posix()
            except ValueError:
                return path.as_posix()
        return PurePosixPath(str(file).replace("\\", "/")).as_posix()

    def file_state(self, file: str | Path) -> FileState:
        return self._ensure_built().states.get(self._relativize(file), FileState.UNINDEXED)

    def classes_in_file(self, file: str | Path) -> tuple[CodeUnit, ...]:
        """CLASS units declared in ``file``, in source order (nested ones included)."""
        extraction = self._ensure_built().files.get(self._relativize(file))
        return extraction.classes if extraction is not None else ()

    def declarations_in_file(self, file: str | Path) -> tuple[CodeUnit, ...]:
        extraction = self._ensure_built().files.get(self._relativize(file))
        return extraction.units if extraction is not None else ()

    def skeletons_in_file(self, file: str | Path) -> dict[CodeUnit, str]:
        """Skeleton of every top-level unit of ``file``, in source order."""
        extraction = self._ensure_built().files.get(self._relativize(file))
        if extraction is None:
            return {}
        renderer = self._engine.renderer
        rendered = {unit: renderer.render(extraction, unit) for unit in extraction.top_level}
        return {unit: text for unit, text in rendered.items() if text}

    def get_definition(self, fq_name: str) -> CodeUnit | None:
        for unit in self._ensure_built().units_named(fq_name):
            if unit.fq_name == fq_name:
                return unit
        return None

    def _resolve(self, snapshot: IndexSnapshot, names: str | Iterable[str]) -> list[CodeUnit]:
        if isinstance(names, str):
            names = [names]
        found: dict[CodeUnit, None] = {}
        for name in names:
            for unit in snapshot.units_named(name):
                found.setdefault(unit, None)

        def order(unit: CodeUnit) -> tuple[str, int]:
            return unit.source, snapshot.files[unit.source].units.index(unit)

        return sorted(found, key=order)

    def skeleton_of(self, names: str | Iterable[str]) -> str:
        """Skeletons of the units matching ``names`` (short or fully qualified).

        Units are ordered by file path and then source order and joined by a
        blank line. Returns "" when nothing matches.
        """
        snapshot = self._ensure_built()
        return self._render(snapshot, self._resolve(snapshot, names))

    def _render(self, snapshot: IndexSnapshot, units: list[CodeUnit]) -> str:
        renderer = self._engine.renderer
        texts = [renderer.render(snapshot.files[u.source], u) for u in units]
        return "\n\n".join(text for text in texts if text)

    def summary_of(self, names: str | Iterable[str], *, enabled: bool = True) -> SkeletonSummary:
        """Skeleton text plus the names it covers, for an outer context wrapper."""
        if not enabled:
            return DISABLED_SUMMARY
        snapshot = self._ensure_built()
        units = self._resolve(snapshot, names)
        if not units:
            return EMPTY_SUMMARY
        return SkeletonSummary(
            short_names=tuple(dict.fromkeys(u.short_name for u in units)),
            class_names=frozenset(u.fq_name for u in units if u.is_class),
            text=self._render(snapshot, units),
        )

    def find_usages(self, identifier: str) -> UsageHits:
        """Usages of ``identifier`` split by strategy.

        Both strategies attribute a hit to the innermost unit and leave out
        units named ``identifier`` themselves.
        """
        snapshot = self._ensure_built()
        definitions = {u for u in snapshot.all_units() if u.identifier == identifier}
        structural = {
            unit
            for extraction in snapshot.files.values()
            for unit, refs in extraction.references.items()
            if identifier in refs
        } - definitions
        heuristic = containment_scan(
            snapshot.files.values(), identifier, exclude=structural | definitions
        )
        logger.debug(
            "usages_resolved",
            identifier=identifier,
            structural=len(structural),
            heuristic=len(heuristic),
        )
        return UsageHits(identifier, frozenset(structural), heuristic)

    def usages_of(self, identifier: str) -> frozenset[CodeUnit]:
        return self.find_usages(identifier).all

    def classes_mentioned_in(self, text: str) -> tuple[CodeUnit, ...]:
        """Classes of tracked files whose relative path appears in ``text``."""
        return classes_mentioned_in(self._ensure_built().files, text)


def _forward(source: Future[Any], target: Future[Any]) -> None:
    if target.done():
        return
    if source.cancelled():
        target.cancel()
    elif (exc := source.exception()) is not None:
        target.set_exception(exc)
    else:
        target.set_result(source.result())
