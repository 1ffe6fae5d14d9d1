# -----------------------------------------------------------------------------
# Copyright (C) 2025 Iliyas Jorio.
# This file is part of BlameLog, distributed under the GNU GPL v3.
# For full terms, see the included LICENSE file.
# -----------------------------------------------------------------------------

"""
Parse a "git log -U0" stream into a History of commits, diffs and hunks,
and answer "which commit last wrote each line of this file at this
revision" by replaying the hunks, without running git blame per query.

CAVEAT: Renames and copies are not followed (the log is produced with
--no-renames, so a rename is a deletion plus a creation).
"""

from blamelog.appconsts import APP_VERSION as __version__
from blamelog.blameindex import (
    AnnotatedLine,
    BlameError,
    BlameIndex,
    BlameInconsistentError,
    BlameLine,
    BlameNotFoundError,
    blame,
)
from blamelog.gitlog import GitLogError, GitLogProcess, readGitLog
from blamelog.history import Commit, Diff, File, History, Hunk
from blamelog.linereader import LogReadError
from blamelog.logparser import GitLogParser, ParserState, parseGitLog
from blamelog.logstripper import stripGitLog
from blamelog.settings import Settings
from blamelog.snapshot import HistorySnapshot, SnapshotHolder
