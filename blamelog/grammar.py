# -----------------------------------------------------------------------------
# Copyright (C) 2025 Iliyas Jorio.
# This file is part of BlameLog, distributed under the GNU GPL v3.
# For full terms, see the included LICENSE file.
# -----------------------------------------------------------------------------

"""
Line shapes of the accepted log grammar:

    commit <identifier>
    Author: <address>
    Date: <YYYYMMDD>
    diff --git <path> <path>
    index <before-hash>..<after-hash>[ <mode>]
    --- <path-or-dev-null>
    +++ <path>
    @@ -<oldStart>[,<oldLength>] +<newStart>[,<newLength>] @@[-]
    <content lines: present unless header ends in "@@-">

A dash right after the second "@@" means the content lines that would
normally follow the header have been stripped from the log.
"""

from __future__ import annotations

import re

from blamelog.appconsts import EMPTY_BLOB_ID, NULL_HASH_CHAR, STRIPPED_MARKER
from blamelog.history import Hunk

COMMIT_PREFIX = "commit "
AUTHOR_PREFIX = "Author: "
DATE_PREFIX = "Date: "
DIFF_PREFIX = "diff --git "
INDEX_PREFIX = "index "
OLD_PATH_PREFIX = "--- "
NEW_PATH_PREFIX = "+++ "
HUNK_PREFIX = "@@ "

STRUCTURAL_PREFIXES = (
    COMMIT_PREFIX,
    AUTHOR_PREFIX,
    DATE_PREFIX,
    DIFF_PREFIX,
    INDEX_PREFIX,
    OLD_PATH_PREFIX,
    NEW_PATH_PREFIX,
)

_indexPattern = re.compile(r"index ([0-9a-f]+)\.\.([0-9a-f]+)")
_hunkPattern = re.compile(r"@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@(-?)")


def emptyZero(checksum: str) -> str:
    """ Substitute the empty string for an all-zero hash ("no blob"). """
    if checksum.count(NULL_HASH_CHAR) == len(checksum):
        return ""
    return checksum


def parseIndexLine(line: str) -> tuple[str, str] | None:
    match = _indexPattern.match(line)
    if not match:
        return None
    before, after = match.groups()
    return emptyZero(before), emptyZero(after)


def isEmptyBlob(checksum: str) -> bool:
    """ Whether a (possibly abbreviated) checksum names the empty blob. """
    return bool(checksum) and EMPTY_BLOB_ID.startswith(checksum)


def parseDiffGitPath(line: str) -> str | None:
    """
    Extract the path from a "diff --git <path> <path>" line. Without
    prefixes and without renames both paths are the same, so the line is
    split down the middle. Return None if the two halves differ.
    """
    rest = line[len(DIFF_PREFIX):]
    half, remainder = divmod(len(rest), 2)
    if not remainder or rest[half] != " ":
        return None
    path = rest[:half]
    if not path or path != rest[half + 1:]:
        return None
    return path


def parseHunkHeader(line: str) -> tuple[Hunk, bool] | None:
    """
    Parse a hunk header. Return the hunk and whether its content was
    stripped from the log, or None if the header is malformed.
    Omitted lengths default to 1.
    """
    match = _hunkPattern.match(line)
    if not match:
        return None

    oldStart, oldLength, newStart, newLength, marker = match.groups()
    hunk = Hunk(
        oldStart=int(oldStart),
        oldLength=int(oldLength) if oldLength else 1,
        newStart=int(newStart),
        newLength=int(newLength) if newLength else 1)
    return hunk, marker == STRIPPED_MARKER


def stripHunkHeader(line: str) -> str:
    """
    Rewrite a hunk header with the stripped-content marker. The
    coordinates are kept as written; any function context after the
    second "@@" is dropped.
    """
    rest = line[len(HUNK_PREFIX):]
    end = rest.index(" @@")
    return f"{HUNK_PREFIX}{rest[:end]} @@{STRIPPED_MARKER}"


def parseDate(text: str) -> int:
    """ Parse a YYYYMMDD date. Malformed dates yield 0. """
    text = text.strip()
    if len(text) != 8 or not text.isascii() or not text.isdigit():
        return 0
    return int(text)
