# -----------------------------------------------------------------------------
# Copyright (C) 2025 Iliyas Jorio.
# This file is part of BlameLog, distributed under the GNU GPL v3.
# For full terms, see the included LICENSE file.
# -----------------------------------------------------------------------------

"""
Reduce a "git log -U0" stream to its structure.

The content lines of each hunk are dropped and the hunk header is marked
with a trailing dash ("@@-") so that the parser knows not to expect
them. Everything else that the parser doesn't model is dropped as well.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TextIO

from blamelog.grammar import HUNK_PREFIX, STRUCTURAL_PREFIXES, parseHunkHeader, stripHunkHeader
from blamelog.linereader import LineReader
from blamelog.settings import DEFAULT_SETTINGS, Settings
from blamelog.toolbox.benchmark import Benchmark

_logger = logging.getLogger(__name__)


def stripGitLog(
        input: Iterable[str] | Iterable[bytes],
        output: TextIO,
        settings: Settings | None = None,
) -> int:
    """
    Copy the structure of a log from `input` to `output`, without hunk
    content. Return the number of lines written.

    If `output` stops accepting data (e.g. we're piped into "head"), stop
    quietly. Errors reading `input` raise LogReadError.
    """
    settings = settings or DEFAULT_SETTINGS
    reader = LineReader(input, settings.maxLineLength)
    written = 0

    with Benchmark("Strip", unit="lines") as bench:
        for line in reader:
            if line.startswith(HUNK_PREFIX):
                parsed = parseHunkHeader(line)
                if parsed is None:
                    # Let the parser deal with it (it'll skip it too)
                    _logger.debug(f"Line {reader.lineNumber}: passing through malformed hunk header")
                else:
                    hunk, isStripped = parsed
                    if not isStripped:
                        line = stripHunkHeader(line)
                        reader.skipContent(hunk.oldLength + hunk.newLength)
            elif not line.startswith(STRUCTURAL_PREFIXES):
                continue

            try:
                output.write(line + "\n")
            except OSError as exc:
                # BrokenPipeError is an OSError
                _logger.debug(f"Output closed after {written} lines, stopping: {exc}")
                break
            written += 1

        bench.tick(reader.lineNumber)

    return written
