# -----------------------------------------------------------------------------
# Copyright (C) 2025 Iliyas Jorio.
# This file is part of BlameLog, distributed under the GNU GPL v3.
# For full terms, see the included LICENSE file.
# -----------------------------------------------------------------------------

"""
Point-in-time blame by hunk replay.

For each file, the provenance of every line (the id of the commit that
last wrote it) is computed by applying the file's hunks in chronological
order, starting from the file's creation, instead of running an
annotation tool per query.

Replays are cached per file as a handful of checkpoints, so that a query
can resume from the nearest checkpoint at or before its revision.
"""

from __future__ import annotations

import bisect
import dataclasses
import logging
import threading
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from typing import NamedTuple

from blamelog.appconsts import APP_DEBUG
from blamelog.history import Commit, Diff, File, History, isContinuous
from blamelog.settings import DEFAULT_SETTINGS, Settings
from blamelog.toolbox.benchmark import Benchmark, benchmark

_logger = logging.getLogger(__name__)


class BlameError(Exception):
    def __init__(self, message: str, path: str = "", revision: str = ""):
        super().__init__(message)
        self.path = path
        self.revision = revision


class BlameNotFoundError(BlameError):
    """ No data: unknown revision, unknown path, or the file doesn't exist at that revision. """


class BlameInconsistentError(BlameError):
    """ Corrupt data: broken checksum chain or invalid hunks in the file's history. """


class BlameLine(NamedTuple):
    line: int
    commitId: str


@dataclasses.dataclass(frozen=True)
class AnnotatedLine:
    line: int
    commit: Commit

    @property
    def commitId(self) -> str:
        return self.commit.id


class _Checkpoint(NamedTuple):
    position: int  # position of the last applied diff within the file's diff list
    stamps: tuple[str, ...]


class FileReplay:
    """
    Replays the diffs of a single file and keeps checkpoints of the
    provenance sequences it has computed.

    Checkpoints are an optimization only: resuming from any checkpoint
    gives the same result as replaying from the file's creation.
    """

    def __init__(self, history: History, file: File, maxCheckpoints: int):
        self.history = history
        self.file = file
        self.maxCheckpoints = maxCheckpoints
        self.diffOrdinals = [history.diffs[i].commit.ordinal for i in file.diffIds]
        self.checkpoints: list[_Checkpoint] = []
        self.diffsApplied = 0
        self._lastUse: dict[int, int] = {}
        self._clock = 0
        self._lock = threading.Lock()

    def diffAt(self, position: int) -> Diff:
        return self.history.diffs[self.file.diffIds[position]]

    def positionAt(self, ordinal: int) -> int:
        """ Position of the last diff at or before a commit ordinal (-1 if none). """
        return bisect.bisect_right(self.diffOrdinals, ordinal) - 1

    def stampsAt(self, position: int) -> tuple[str, ...]:
        with self._lock:
            positions = [cp.position for cp in self.checkpoints]
            i = bisect.bisect_right(positions, position) - 1

            if i >= 0:
                checkpoint = self.checkpoints[i]
                self._touch(checkpoint.position)
                if checkpoint.position == position:
                    return checkpoint.stamps
                start = checkpoint.position + 1
                stamps = list(checkpoint.stamps)
            else:
                start = 0
                stamps = []

            for p in range(start, position + 1):
                stamps = self.apply(p, stamps)
            self.diffsApplied += position + 1 - start

            result = tuple(stamps)

            if APP_DEBUG and start > 0:
                # Resuming from a checkpoint must agree with a replay from scratch
                fresh = []
                for p in range(position + 1):
                    fresh = self.apply(p, fresh)
                assert result == tuple(fresh), f"{self.file.path}: checkpoint replay diverges at {position}"

            self._remember(_Checkpoint(position, result))
            return result

    def _touch(self, position: int):
        self._clock += 1
        self._lastUse[position] = self._clock

    def _remember(self, checkpoint: _Checkpoint):
        bisect.insort(self.checkpoints, checkpoint, key=lambda cp: cp.position)
        self._touch(checkpoint.position)

        if len(self.checkpoints) > self.maxCheckpoints:
            # Evict the least recently used checkpoint
            victim = min(self._lastUse, key=self._lastUse.__getitem__)
            del self._lastUse[victim]
            self.checkpoints = [cp for cp in self.checkpoints if cp.position != victim]

    def apply(self, position: int, prior: list[str]) -> list[str]:
        """
        Apply the diff at `position` to the provenance sequence of the
        previous version of the file. Return the new sequence.
        """
        diff = self.diffAt(position)
        path = self.file.path
        commitId = diff.commit.id

        if position > 0 and not isContinuous(self.diffAt(position - 1), diff):
            previous = self.diffAt(position - 1)
            raise BlameInconsistentError(
                f"{path}: {commitId} starts from blob {diff.checksumBefore or '(none)'} "
                f"but {previous.commit.id} left blob {previous.checksumAfter or '(none)'}",
                path, commitId)

        if diff.isCreation:
            prior = []

        result = []
        cursor = 0  # index of the next unconsumed line in prior

        for hunk in diff.hunks:
            # A zero-length old span inserts *after* oldStart
            start = hunk.oldStart if hunk.oldLength == 0 else hunk.oldStart - 1
            end = start + hunk.oldLength

            if start < cursor:
                raise BlameInconsistentError(f"{path}: {commitId}: hunk {hunk} overlaps or is out of order", path, commitId)
            if end > len(prior):
                raise BlameInconsistentError(
                    f"{path}: {commitId}: hunk {hunk} goes past the end of the file ({len(prior)} lines)",
                    path, commitId)

            result.extend(prior[cursor:start])

            expectedNewStart = len(result) + 1 if hunk.newLength else len(result)
            if hunk.newStart != expectedNewStart:
                raise BlameInconsistentError(
                    f"{path}: {commitId}: hunk {hunk} should start at new line {expectedNewStart}",
                    path, commitId)

            result.extend([commitId] * hunk.newLength)
            cursor = end

        result.extend(prior[cursor:])

        if diff.isDeletion:
            if result:
                _logger.debug(f"{path}: deletion in {commitId} leaves {len(result)} lines, discarding them")
            result = []

        return result


class BlameIndex:
    """
    Answers blame queries over a fully-parsed (frozen) History.

    Queries on different files never share state; queries on the same
    file are serialized by that file's replay lock.
    """

    def __init__(self, history: History, settings: Settings | None = None):
        if not history.frozen:
            _logger.warning("Building a BlameIndex over a History that is still mutable")
        self.history = history
        self.settings = settings or DEFAULT_SETTINGS
        self._replays: dict[str, FileReplay] = {}
        self._replaysLock = threading.Lock()

    def __repr__(self):
        return f"BlameIndex({self.history!r}, {len(self._replays)} files replayed)"

    def replayFor(self, path: str) -> FileReplay:
        with self._replaysLock:
            try:
                return self._replays[path]
            except KeyError:
                pass

            try:
                file = self.history.files[path]
            except KeyError:
                raise BlameNotFoundError(f"{path}: no such file in history", path) from None

            replay = FileReplay(self.history, file, self.settings.maxCheckpoints)
            self._replays[path] = replay
            return replay

    def _locate(self, path: str, revision: str) -> tuple[FileReplay, int]:
        ordinal = self.history.commitOrdinal(revision)
        if ordinal is None:
            raise BlameNotFoundError(f"unknown revision {revision}", path, revision)

        replay = self.replayFor(path)

        position = replay.positionAt(ordinal)
        if position < 0:
            raise BlameNotFoundError(f"{path}: doesn't exist yet at {revision}", path, revision)

        if replay.diffAt(position).isDeletion:
            raise BlameNotFoundError(f"{path}: deleted at or before {revision}", path, revision)

        return replay, position

    def stamps(self, path: str, revision: str) -> tuple[str, ...]:
        replay, position = self._locate(path, revision)
        try:
            return replay.stampsAt(position)
        except BlameInconsistentError as exc:
            exc.revision = revision
            raise

    def blame(self, path: str, revision: str) -> list[BlameLine]:
        """
        Return, for each line of `path` as of `revision`, the id of the
        commit that last wrote it. Lines are numbered from 1.

        Raises BlameNotFoundError or BlameInconsistentError.
        """
        stamps = self.stamps(path, revision)
        return [BlameLine(i, commitId) for i, commitId in enumerate(stamps, start=1)]

    def annotate(self, path: str, revision: str) -> list[AnnotatedLine]:
        """ Like blame(), with the full Commit (author, date) for each line. """
        commits = self.history.commits
        stamps = self.stamps(path, revision)
        return [AnnotatedLine(i, commits[commitId]) for i, commitId in enumerate(stamps, start=1)]

    def warm(
            self,
            paths: Iterable[str] | None = None,
            revision: str = "",
            workers: int = 0,
    ) -> dict[str, BlameError]:
        """
        Pre-compute the replay of several files (all of them by default)
        up to `revision` (the latest commit by default), spreading the
        files across a thread pool.

        Return the errors encountered, keyed by path. Files that are
        absent or deleted at `revision` are reported as BlameNotFoundError.
        """
        if paths is None:
            paths = list(self.history.files)
        if not revision and self.history.hashes:
            revision = self.history.hashes[-1]
        workers = workers or self.settings.workers

        errors: dict[str, BlameError] = {}

        def warmOne(path: str):
            try:
                self.stamps(path, revision)
            except BlameError as exc:
                return path, exc
            return path, None

        with Benchmark("Warm", unit="files") as bench:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="blamewarm") as pool:
                for path, error in pool.map(warmOne, paths):
                    bench.tick()
                    if error is not None:
                        errors[path] = error

        inconsistent = sum(1 for e in errors.values() if isinstance(e, BlameInconsistentError))
        if inconsistent:
            _logger.warning(f"{inconsistent} files have an inconsistent history")
        return errors


@benchmark
def blame(history: History, path: str, revision: str) -> list[BlameLine]:
    """ One-off blame query. Use a BlameIndex to benefit from caching across queries. """
    return BlameIndex(history).blame(path, revision)
