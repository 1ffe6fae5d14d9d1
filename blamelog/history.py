# -----------------------------------------------------------------------------
# Copyright (C) 2025 Iliyas Jorio.
# This file is part of BlameLog, distributed under the GNU GPL v3.
# For full terms, see the included LICENSE file.
# -----------------------------------------------------------------------------

"""
In-memory history of a repository, as reconstructed from a "git log -U0"
stream: commits, per-file diffs, and the hunks of each diff.

Diffs are stored once, in the `History.diffs` arena. Files and commits
refer to them by their position in the arena, which never changes once
a diff has been appended.
"""

from __future__ import annotations

import dataclasses
import datetime
import logging
from collections.abc import Iterator

_logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class Hunk:
    oldStart: int
    oldLength: int
    newStart: int
    newLength: int

    def __str__(self):
        return f"@@ -{self.oldStart},{self.oldLength} +{self.newStart},{self.newLength} @@"

    @property
    def isInsertion(self) -> bool:
        return self.oldLength == 0

    @property
    def isDeletion(self) -> bool:
        return self.newLength == 0


@dataclasses.dataclass(eq=False)
class Commit:
    id: str
    ordinal: int
    author: str = ""
    date: int = 0  # YYYYMMDD
    diffIds: list[int] = dataclasses.field(default_factory=list)

    def __repr__(self):
        return f"Commit({self.id}, #{self.ordinal})"

    @property
    def dateValue(self) -> datetime.date | None:
        if not self.date:
            return None
        year, monthDay = divmod(self.date, 10000)
        month, day = divmod(monthDay, 100)
        try:
            return datetime.date(year, month, day)
        except ValueError:
            return None


@dataclasses.dataclass(eq=False)
class Diff:
    commit: Commit
    path: str
    checksumBefore: str  # empty = no blob (file creation)
    checksumAfter: str  # empty = no blob (file deletion)
    hunks: list[Hunk] = dataclasses.field(default_factory=list)

    def __repr__(self):
        return f"Diff({self.commit.id}, {self.path!r}, {self.checksumBefore[:7]}..{self.checksumAfter[:7]})"

    @property
    def isCreation(self) -> bool:
        return not self.checksumBefore

    @property
    def isDeletion(self) -> bool:
        return not self.checksumAfter


@dataclasses.dataclass
class File:
    path: str
    diffIds: list[int] = dataclasses.field(default_factory=list)

    def __len__(self):
        return len(self.diffIds)


class History:
    hashes: list[str]
    commits: dict[str, Commit]
    files: dict[str, File]
    diffs: list[Diff]
    hashLength: int

    def __init__(self, hashLength: int = 16):
        self.hashes = []
        self.commits = {}
        self.files = {}
        self.diffs = []
        self.hashLength = hashLength
        self.collisions = 0
        self._frozen = False

    def __len__(self):
        return len(self.hashes)

    def __repr__(self):
        return f"History({len(self.hashes)} commits, {len(self.files)} files, {len(self.diffs)} diffs)"

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self):
        self._frozen = True

    def _assertMutable(self):
        if self._frozen:
            raise RuntimeError("History is frozen")

    # -------------------------------------------------------------------------
    # Building

    def addCommit(self, fullId: str) -> Commit:
        self._assertMutable()

        commitId = fullId[:self.hashLength]
        ordinal = len(self.hashes)

        if commitId in self.commits:
            # Accepted risk: the later commit shadows the earlier one.
            self.collisions += 1
            _logger.warning(f"Commit id prefix collision on {commitId} (#{self.commits[commitId].ordinal} and #{ordinal})")

        commit = Commit(commitId, ordinal)
        self.hashes.append(commitId)
        self.commits[commitId] = commit
        return commit

    def addDiff(self, commit: Commit, path: str, checksumBefore: str | None, checksumAfter: str) -> Diff:
        """
        Append a new diff to the arena and link it to its commit and file.
        If checksumBefore is None, it is inherited from the after-checksum
        of the path's most recent diff.
        """
        self._assertMutable()

        file = self.files.get(path)
        if file is None:
            file = File(path)
            self.files[path] = file

        if checksumBefore is None:
            checksumBefore = self.diffs[file.diffIds[-1]].checksumAfter if file.diffIds else ""

        diff = Diff(commit, path, checksumBefore, checksumAfter)
        diffId = len(self.diffs)
        self.diffs.append(diff)
        file.diffIds.append(diffId)
        commit.diffIds.append(diffId)
        return diff

    def addHunk(self, diff: Diff, hunk: Hunk):
        self._assertMutable()
        diff.hunks.append(hunk)

    # -------------------------------------------------------------------------
    # Queries

    def fileDiffs(self, path: str) -> list[Diff]:
        try:
            file = self.files[path]
        except KeyError:
            return []
        return [self.diffs[i] for i in file.diffIds]

    def commitDiffs(self, commitId: str) -> list[Diff]:
        commit = self.commits[commitId[:self.hashLength]]
        return [self.diffs[i] for i in commit.diffIds]

    def iterCommits(self) -> Iterator[Commit]:
        """ Yield commits oldest-first. Shadowed (colliding) ids are skipped. """
        for ordinal, commitId in enumerate(self.hashes):
            commit = self.commits[commitId]
            if commit.ordinal == ordinal:
                yield commit

    def commitOrdinal(self, revision: str) -> int | None:
        """
        Chronological position of a revision, or None if unknown.
        Full-length ids are truncated to the stored prefix length.
        """
        commit = self.commits.get(revision[:self.hashLength])
        if commit is None:
            return None
        return commit.ordinal

    def continuityBreaks(self, path: str) -> list[int]:
        """
        Return the arena positions of the diffs on `path` whose
        before-checksum doesn't match the after-checksum of the previous
        diff on the same path. A creation right after a deletion is fine.
        """
        breaks = []
        file = self.files.get(path)
        if file is None:
            return breaks

        for prevId, diffId in zip(file.diffIds, file.diffIds[1:]):
            if not isContinuous(self.diffs[prevId], self.diffs[diffId]):
                breaks.append(diffId)

        return breaks


def isContinuous(previous: Diff, diff: Diff) -> bool:
    if diff.isCreation and previous.isDeletion:
        return True
    return diff.checksumBefore == previous.checksumAfter
