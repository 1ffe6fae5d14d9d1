# -----------------------------------------------------------------------------
# Copyright (C) 2025 Iliyas Jorio.
# This file is part of BlameLog, distributed under the GNU GPL v3.
# For full terms, see the included LICENSE file.
# -----------------------------------------------------------------------------

from __future__ import annotations

import enum
import logging
from collections.abc import Iterable

from blamelog.appconsts import DEVNULL_PATH
from blamelog.grammar import (
    AUTHOR_PREFIX, COMMIT_PREFIX, DATE_PREFIX, DIFF_PREFIX, HUNK_PREFIX, INDEX_PREFIX, NEW_PATH_PREFIX, OLD_PATH_PREFIX,
    isEmptyBlob, parseDate, parseDiffGitPath, parseHunkHeader, parseIndexLine,
)
from blamelog.history import Commit, Diff, History
from blamelog.linereader import LineReader
from blamelog.settings import DEFAULT_SETTINGS, Settings
from blamelog.toolbox.benchmark import Benchmark

_logger = logging.getLogger(__name__)


class ParserState(enum.Enum):
    Preamble = enum.auto()  # no commit seen yet
    InCommit = enum.auto()  # commit open, no diff open
    InDiff = enum.auto()  # diff open; hunks go into it


class GitLogParser:
    """
    Single forward pass over a "git log -U0" stream (raw or stripped)
    that builds a History.

    Each parser instance owns its author deduplication table and is meant
    to parse exactly one stream. Structural lines that don't have the
    expected shape are skipped and counted in `formatSkips`; only read
    errors abort the parse.
    """

    def __init__(self, settings: Settings = DEFAULT_SETTINGS):
        self.settings = settings
        self.history = History(settings.hashLength)
        self.state = ParserState.Preamble
        self.commit: Commit | None = None
        self.diff: Diff | None = None
        self.pendingChecksums: tuple[str, str] | None = None
        self.pendingPath = ""
        self.authors: dict[str, str] = {}
        self.formatSkips = 0
        self.linesSkipped = 0
        self._authorSeen = False
        self._dateSeen = False
        self._used = False

    def parse(self, stream: Iterable[str] | Iterable[bytes]) -> History:
        if self._used:
            raise RuntimeError("GitLogParser instances are single-use")
        self._used = True

        reader = LineReader(stream, self.settings.maxLineLength)

        with Benchmark("Parse", unit="lines") as bench:
            for line in reader:
                self.feed(line, reader)
            self._flushPending()
            bench.tick(reader.lineNumber)

        history = self.history
        history.freeze()

        _logger.info(f"Parsed {history} from {reader.lineNumber} lines "
                     f"({self.linesSkipped} content lines skipped, {self.formatSkips} malformed lines)")
        return history

    def feed(self, line: str, reader: LineReader):
        if line.startswith(COMMIT_PREFIX):
            self._onCommit(line)
        elif line.startswith(DIFF_PREFIX):
            self._onDiffGit(line)
        elif line.startswith(INDEX_PREFIX):
            self._onIndex(line, reader)
        elif line.startswith(OLD_PATH_PREFIX):
            self._onOldPath(line, reader)
        elif line.startswith(HUNK_PREFIX):
            self._onHunk(line, reader)
        elif line.startswith(AUTHOR_PREFIX):
            self._onAuthor(line, reader)
        elif line.startswith(DATE_PREFIX):
            self._onDate(line, reader)
        else:
            # Anything else (mode changes, binary notices, commit
            # messages...) isn't modeled.
            pass

    def _formatSkip(self, reader: LineReader, message: str):
        self.formatSkips += 1
        if self.formatSkips <= self.settings.maxFormatWarnings:
            _logger.warning(f"Line {reader.lineNumber}: {message}")
        else:
            _logger.debug(f"Line {reader.lineNumber}: {message}")

    def _onCommit(self, line: str):
        self._flushPending()
        fullId = line[len(COMMIT_PREFIX):].strip()
        self.commit = self.history.addCommit(fullId)
        self.diff = None
        self._authorSeen = False
        self._dateSeen = False
        self.state = ParserState.InCommit

    def _onDiffGit(self, line: str):
        self._flushPending()
        if self.state == ParserState.InDiff:
            self.diff = None
            self.state = ParserState.InCommit

        path = parseDiffGitPath(line)
        if path is None:
            _logger.debug(f"Can't tell the path from {line[:80]!r}")
        self.pendingPath = path or ""

    def _flushPending(self):
        """
        Record a file section that carried an index line but no "---"/"+++"
        pair. git prints such sections for empty blobs (creating or deleting
        an empty file) and for binary files. Only creations of empty files
        and deletions matter to blame; binary changes are left out.
        """
        checksums, path = self.pendingChecksums, self.pendingPath
        self.pendingChecksums = None
        self.pendingPath = ""

        if checksums is None or not path or self.state == ParserState.Preamble:
            return

        checksumBefore, checksumAfter = checksums
        isDeletion = not checksumAfter
        isEmptyCreation = not checksumBefore and isEmptyBlob(checksumAfter)
        if not (isDeletion or isEmptyCreation):
            return

        self.history.addDiff(self.commit, path, checksumBefore, checksumAfter)

    def _onIndex(self, line: str, reader: LineReader):
        checksums = parseIndexLine(line)
        if checksums is None:
            self._formatSkip(reader, f"malformed index line: {line[:80]!r}")
            return
        self.pendingChecksums = checksums

    def _onOldPath(self, line: str, reader: LineReader):
        path = _cleanPath(line[len(OLD_PATH_PREFIX):])

        nextLine = reader.readLine()
        if nextLine is None or not nextLine.startswith(NEW_PATH_PREFIX):
            if nextLine is not None:
                reader.pushBack(nextLine)
            if path == DEVNULL_PATH:
                self._formatSkip(reader, "'--- /dev/null' isn't followed by a '+++' line")
                return
        elif path == DEVNULL_PATH:
            path = _cleanPath(nextLine[len(NEW_PATH_PREFIX):])

        if self.state == ParserState.Preamble:
            self._formatSkip(reader, f"diff on {path!r} outside of any commit")
            return

        if self.pendingChecksums is None:
            checksumBefore, checksumAfter = None, ""
        else:
            checksumBefore, checksumAfter = self.pendingChecksums
        self.pendingChecksums = None
        self.pendingPath = ""

        self.diff = self.history.addDiff(self.commit, path, checksumBefore, checksumAfter)
        self.state = ParserState.InDiff

    def _onHunk(self, line: str, reader: LineReader):
        parsed = parseHunkHeader(line)
        if parsed is None:
            self._formatSkip(reader, f"malformed hunk header: {line[:80]!r}")
            return

        hunk, isStripped = parsed

        if self.state == ParserState.InDiff:
            self.history.addHunk(self.diff, hunk)
        else:
            self._formatSkip(reader, f"hunk outside of any diff: {line[:80]!r}")

        # Stay in sync with the stream even if the hunk was rejected
        if not isStripped:
            self.linesSkipped += reader.skipContent(hunk.oldLength + hunk.newLength)

    def _onAuthor(self, line: str, reader: LineReader):
        if self.state == ParserState.Preamble:
            self._formatSkip(reader, "author outside of any commit")
            return
        if self._authorSeen:
            return
        self._authorSeen = True

        author = line[len(AUTHOR_PREFIX):].strip()
        self.commit.author = self.authors.setdefault(author, author)

    def _onDate(self, line: str, reader: LineReader):
        if self.state == ParserState.Preamble:
            self._formatSkip(reader, "date outside of any commit")
            return
        if self._dateSeen:
            return
        self._dateSeen = True

        date = parseDate(line[len(DATE_PREFIX):])
        if not date:
            _logger.debug(f"Line {reader.lineNumber}: unparsable date {line!r} in commit {self.commit.id}")
        self.commit.date = date


def _cleanPath(path: str) -> str:
    # git appends a tab to paths that contain spaces
    return path.removesuffix("\t")


def parseGitLog(stream: Iterable[str] | Iterable[bytes], settings: Settings | None = None) -> History:
    """
    Parse a raw or stripped "git log -U0" stream into a History.
    Raises LogReadError if the stream can't be read.
    """
    parser = GitLogParser(settings or DEFAULT_SETTINGS)
    return parser.parse(stream)
