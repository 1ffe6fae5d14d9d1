# -----------------------------------------------------------------------------
# Copyright (C) 2025 Iliyas Jorio.
# This file is part of BlameLog, distributed under the GNU GPL v3.
# For full terms, see the included LICENSE file.
# -----------------------------------------------------------------------------

from __future__ import annotations

import dataclasses
import logging
import threading
from collections.abc import Iterable

from blamelog.blameindex import BlameIndex, BlameLine
from blamelog.history import History
from blamelog.logparser import parseGitLog
from blamelog.settings import DEFAULT_SETTINGS, Settings

_logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class HistorySnapshot:
    history: History
    index: BlameIndex
    generation: int

    @property
    def head(self) -> str:
        return self.history.hashes[-1] if self.history.hashes else ""

    def blame(self, path: str, revision: str = "") -> list[BlameLine]:
        return self.index.blame(path, revision or self.head)


class SnapshotHolder:
    """
    Holds the currently published (History, BlameIndex) pair.

    A rebuilt history is published by swapping the reference in one go;
    readers that grabbed the previous snapshot keep using it undisturbed.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or DEFAULT_SETTINGS
        self._current: HistorySnapshot | None = None
        self._generation = 0
        self._lock = threading.Lock()

    def current(self) -> HistorySnapshot | None:
        return self._current

    def publish(self, history: History) -> HistorySnapshot:
        history.freeze()
        index = BlameIndex(history, self.settings)

        with self._lock:
            self._generation += 1
            snapshot = HistorySnapshot(history, index, self._generation)
            self._current = snapshot

        _logger.info(f"Published snapshot #{snapshot.generation}: {history}")
        return snapshot

    def rebuild(self, stream: Iterable[str] | Iterable[bytes]) -> HistorySnapshot:
        """ Parse a complete log and publish it. The current snapshot stays live until the parse succeeds. """
        history = parseGitLog(stream, self.settings)
        return self.publish(history)
