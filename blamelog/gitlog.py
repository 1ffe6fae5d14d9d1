# -----------------------------------------------------------------------------
# Copyright (C) 2025 Iliyas Jorio.
# This file is part of BlameLog, distributed under the GNU GPL v3.
# For full terms, see the included LICENSE file.
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
import shlex
import subprocess
import tempfile
import threading
from typing import IO

import pygit2

from blamelog.history import History
from blamelog.logparser import parseGitLog
from blamelog.settings import DEFAULT_SETTINGS, Settings

_logger = logging.getLogger(__name__)

LOG_FORMAT = "commit %H%nAuthor: %ae%nDate: %cd"


class GitLogError(Exception):
    """ git log couldn't be started, failed, or timed out. """


def argsIf(condition: bool, *args: str) -> tuple[str, ...]:
    if condition:
        return args
    else:
        return ()


def resolveRevision(repositoryPath: str, revision: str) -> str:
    """ Return the full id of the commit that `revision` points to. """
    try:
        repo = pygit2.Repository(repositoryPath)
    except pygit2.GitError as exc:
        raise GitLogError(f"Not a git repository: {repositoryPath}") from exc

    try:
        commit = repo.revparse_single(revision).peel(pygit2.Commit)
    except (KeyError, ValueError, pygit2.GitError) as exc:
        raise GitLogError(f"Cannot resolve revision {revision!r} in {repositoryPath}") from exc

    return str(commit.id)


class GitLogProcess:
    """
    Runs "git log" in the shape that the parser expects and exposes its
    standard output as a binary stream.

    Use it as a context manager. On a clean exit, the rest of the output
    is drained and the process is reaped; a non-zero exit status raises
    GitLogError. If the block raises, the process is killed.

        with GitLogProcess("/path/to/repo", "main") as stream:
            history = parseGitLog(stream)
    """

    def __init__(
            self,
            repositoryPath: str,
            revision: str = "HEAD",
            settings: Settings | None = None,
            firstParent: bool = True,
    ):
        self.repositoryPath = repositoryPath
        self.revision = revision
        self.settings = settings or DEFAULT_SETTINGS
        self.firstParent = firstParent
        self.process: subprocess.Popen | None = None
        self.timedOut = False
        self.errorOutput = ""
        self._stderr: IO[bytes] | None = None
        self._timer: threading.Timer | None = None

    def command(self, commitId: str) -> list[str]:
        return [
            *shlex.split(self.settings.gitPath),
            "-C", self.repositoryPath,
            # Keep non-ASCII paths verbatim in diff headers
            "-c", "core.quotePath=false",
            "log",
            "--no-color",
            "-U0",
            f"--format={LOG_FORMAT}",
            "--date=format:%Y%m%d",
            "--full-index",
            "--no-prefix",
            "--no-renames",
            "--reverse",
            # Avoid invoking custom diff commands or conversions
            "--no-ext-diff",
            "--no-textconv",
            # Treat a merge as a simple diff against its first parent
            *argsIf(self.firstParent, "--first-parent", "-m"),
            commitId,
            "--",
        ]

    def start(self) -> IO[bytes]:
        assert self.process is None, "already started"

        commitId = resolveRevision(self.repositoryPath, self.revision)
        command = self.command(commitId)
        _logger.info(f"Starting: {shlex.join(command)}")

        self._stderr = tempfile.TemporaryFile()
        try:
            self.process = subprocess.Popen(command, stdout=subprocess.PIPE, stderr=self._stderr)
        except OSError as exc:
            self._stderr.close()
            raise GitLogError(f"Cannot start git: {exc}") from exc

        if self.settings.gitTimeout > 0:
            self._timer = threading.Timer(self.settings.gitTimeout, self._onTimeout)
            self._timer.daemon = True
            self._timer.start()

        return self.process.stdout

    def _onTimeout(self):
        _logger.warning(f"git log exceeded {self.settings.gitTimeout} s, killing it")
        self.timedOut = True
        self.process.kill()

    def finish(self) -> int:
        """
        Drain any unread output, wait for the process to exit, and return
        its exit status. Raises GitLogError if git failed or timed out.
        """
        process = self.process
        assert process is not None, "not started"

        # Don't let git block on a full pipe
        if not process.stdout.closed:
            for _chunk in iter(lambda: process.stdout.read(1 << 16), b""):
                pass

        process.wait()
        self._cleanUp()

        if self.timedOut:
            raise GitLogError(f"git log timed out after {self.settings.gitTimeout} s")

        if process.returncode != 0:
            raise GitLogError(f"git log exited with code {process.returncode}: {self.errorOutput}")

        return process.returncode

    def kill(self):
        process = self.process
        if process is None:
            return
        if process.poll() is None:
            process.kill()
        process.stdout.close()
        process.wait()
        self._cleanUp()

    def _cleanUp(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self.process.stdout and not self.process.stdout.closed:
            self.process.stdout.close()
        if self._stderr is not None:
            self._stderr.seek(0)
            self.errorOutput = self._stderr.read().decode(errors="replace").strip()
            self._stderr.close()
            self._stderr = None

    def __enter__(self) -> IO[bytes]:
        return self.start()

    def __exit__(self, exc_type=None, exc_value=None, traceback=None):
        if exc_type is None:
            self.finish()
        else:
            self.kill()


def readGitLog(repositoryPath: str, revision: str = "HEAD", settings: Settings | None = None) -> History:
    """ Run git log on a repository and parse its output into a History. """
    with GitLogProcess(repositoryPath, revision, settings) as stream:
        return parseGitLog(stream, settings)
