# -----------------------------------------------------------------------------
# Copyright (C) 2025 Iliyas Jorio.
# This file is part of BlameLog, distributed under the GNU GPL v3.
# For full terms, see the included LICENSE file.
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

_logger = logging.getLogger(__name__)


class LogReadError(Exception):
    """ The log stream could not be read (I/O failure or oversized line). """

    def __init__(self, message: str, lineNumber: int = 0):
        super().__init__(message)
        self.lineNumber = lineNumber


def stripEol(line: str) -> str:
    if line.endswith("\n"):
        line = line[:-1]
        if line.endswith("\r"):
            line = line[:-1]
    return line


class LineReader:
    """
    Iterate over the lines of a log stream without their line terminators.

    Accepts any iterable of str or bytes (text file, binary pipe, list of
    strings). Bytes are decoded as UTF-8; undecodable sequences are
    replaced. Lines may be put back with pushBack() to be read again.
    """

    def __init__(self, stream: Iterable[str] | Iterable[bytes], maxLineLength: int):
        self._iterator = iter(stream)
        self._pushedBack: list[str] = []
        self.maxLineLength = maxLineLength
        self.lineNumber = 0

    def __iter__(self) -> Iterator[str]:
        return self

    def __next__(self) -> str:
        if self._pushedBack:
            self.lineNumber += 1
            return self._pushedBack.pop()

        try:
            raw = next(self._iterator)
        except (OSError, UnicodeDecodeError) as exc:
            raise LogReadError(f"Cannot read log after line {self.lineNumber}: {exc}", self.lineNumber) from exc

        self.lineNumber += 1

        if len(raw) > self.maxLineLength:
            raise LogReadError(f"Line {self.lineNumber} exceeds {self.maxLineLength} characters", self.lineNumber)

        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")

        return stripEol(raw)

    def readLine(self) -> str | None:
        """ Return the next line, or None at the end of the stream. """
        try:
            return next(self)
        except StopIteration:
            return None

    def pushBack(self, line: str):
        self._pushedBack.append(line)
        self.lineNumber -= 1

    def skipContent(self, count: int) -> int:
        r"""
        Discard the `count` content lines that follow a hunk header.

        "\ No newline at end of file" markers interleaved with the content
        are discarded without counting towards `count`. Return how many
        content lines were actually discarded.
        """
        skipped = 0
        while skipped < count:
            line = self.readLine()
            if line is None:
                _logger.warning(f"Log ended while skipping hunk content ({skipped} of {count} lines)")
                break
            if line.startswith("\\"):
                continue
            skipped += 1
        return skipped
