# -----------------------------------------------------------------------------
# Copyright (C) 2025 Iliyas Jorio.
# This file is part of BlameLog, distributed under the GNU GPL v3.
# For full terms, see the included LICENSE file.
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging as _logging
import sys
from argparse import ArgumentParser
from contextlib import nullcontext

from blamelog import *
from blamelog.appconsts import APP_DISPLAY_NAME, APP_SYSTEM_NAME, APP_VERSION
from blamelog.toolbox.benchmark import BENCHMARK_LOGGING_LEVEL


def _openLog(path: str):
    if not path or path == "-":
        return nullcontext(sys.stdin.buffer)
    return open(path, "rb")


def _loadHistory(args, settings: Settings) -> History:
    if args.repo:
        return readGitLog(args.repo, args.head or "HEAD", settings)
    with _openLog(args.log) as stream:
        return parseGitLog(stream, settings)


def _cmdStrip(args, settings: Settings) -> int:
    with _openLog(args.log) as stream:
        stripGitLog(stream, sys.stdout, settings)
    try:
        sys.stdout.flush()
    except BrokenPipeError:
        pass
    return 0


def _cmdParse(args, settings: Settings) -> int:
    history = _loadHistory(args, settings)
    print(history)

    numBroken = 0
    for path in history.files:
        for diffId in history.continuityBreaks(path):
            diff = history.diffs[diffId]
            print(f"continuity break: {path} at {diff.commit.id}")
            numBroken += 1

    if history.collisions:
        print(f"{history.collisions} commit id prefix collisions")
    return 1 if numBroken else 0


def _cmdBlame(args, settings: Settings) -> int:
    history = _loadHistory(args, settings)
    revision = args.revision or (history.hashes[-1] if history.hashes else "")
    index = BlameIndex(history, settings)

    try:
        lines = index.annotate(args.path, revision)
    except BlameError as exc:
        print(f"{type(exc).__name__}: {exc}", file=sys.stderr)
        return 1

    if not args.quiet:
        for line in lines:
            commit = line.commit
            print(f"{commit.id} ({commit.author:24} {commit.date:8d} {line.line:5d})")
    return 0


def blameCommandLineTool():  # pragma: no cover
    parser = ArgumentParser(prog=APP_SYSTEM_NAME, description=f"{APP_DISPLAY_NAME}: parse git logs and blame files by hunk replay")
    parser.add_argument("--version", action="version", version=f"{APP_DISPLAY_NAME} {APP_VERSION}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress and timings")
    subparsers = parser.add_subparsers(dest="command", required=True)

    stripParser = subparsers.add_parser("strip", help="Remove hunk content from a log (stdin if no file)")
    stripParser.add_argument("log", nargs="?", default="-", help="Log file")

    for name, helpText in [("parse", "Summarize a log and check its consistency"),
                           ("blame", "Annotate a file at a revision")]:
        sub = subparsers.add_parser(name, help=helpText)
        source = sub.add_mutually_exclusive_group()
        source.add_argument("--log", default="-", help="Log file, raw or stripped (default: stdin)")
        source.add_argument("--repo", default="", help="Run git log in this repository instead")
        sub.add_argument("--head", default="", help="Revision to run git log up to (with --repo)")
        if name == "blame":
            sub.add_argument("path", help="File path, relative to the repository root")
            sub.add_argument("revision", nargs="?", default="", help="Revision (default: latest in log)")
            sub.add_argument("-q", "--quiet", action="store_true", help="Don't print annotations")

    args = parser.parse_args()

    _logging.basicConfig(level=BENCHMARK_LOGGING_LEVEL if args.verbose else _logging.WARNING)
    _logging.captureWarnings(True)

    settings = Settings.fromEnvironment()
    commands = {"strip": _cmdStrip, "parse": _cmdParse, "blame": _cmdBlame}

    try:
        exitCode = commands[args.command](args, settings)
    except (LogReadError, GitLogError) as exc:
        print(f"{APP_SYSTEM_NAME}: {exc}", file=sys.stderr)
        exitCode = 2

    sys.exit(exitCode)


if __name__ == '__main__':
    blameCommandLineTool()
