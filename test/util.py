# -----------------------------------------------------------------------------
# Copyright (C) 2025 Iliyas Jorio.
# This file is part of BlameLog, distributed under the GNU GPL v3.
# For full terms, see the included LICENSE file.
# -----------------------------------------------------------------------------

import os
import shutil
from pathlib import Path

import pygit2
import pytest

from blamelog import *

TEST_SIGNATURE = pygit2.Signature("Test Person", "toto@example.com", 1672600000, 0)

requiresGit = pytest.mark.skipif(
    not shutil.which("git"),
    reason="Requires git")

C1 = "c1" * 20
C2 = "c2" * 20
C3 = "c3" * 20
C4 = "c4" * 20

NULL40 = "0" * 40
F1 = "f1" * 20
F2 = "f2" * 20
F3 = "f3" * 20
G1 = "a1" * 20
G2 = "a2" * 20
G3 = "a3" * 20
B1 = "b1" * 20


def cid(fullId: str) -> str:
    """ Id of a commit as stored in a History (16-character prefix). """
    return fullId[:16]


# Four commits touching f.txt and g.txt:
# - C1 creates f.txt (3 lines) and g.txt (5 lines)
# - C2 rewrites line 2 of f.txt into 2 lines; inserts 2 lines after line 1
#   of g.txt and deletes its old line 4. Some content lines look like
#   structural lines ("--- ...", "+++ ...").
# - C3 deletes f.txt; replaces the last line of g.txt (with "no newline" markers)
# - C4 adds a binary file, then re-creates f.txt with 2 lines
RAW_LOG = rf"""commit {C1}
Author: alice@example.com
Date: 20240101

diff --git f.txt f.txt
new file mode 100644
index {NULL40}..{F1}
--- /dev/null
+++ f.txt
@@ -0,0 +1,3 @@
+one
+two
+three
diff --git g.txt g.txt
new file mode 100644
index {NULL40}..{G1}
--- /dev/null
+++ g.txt
@@ -0,0 +1,5 @@
+a
+b
+c
+-- sql comment
+e
commit {C2}
Author: bob@example.com
Date: 20240215

diff --git f.txt f.txt
index {F1}..{F2} 100644
--- f.txt
+++ f.txt
@@ -2 +2,2 @@ def something():
-two
+TWO
+two and a half
diff --git g.txt g.txt
index {G1}..{G2} 100644
--- g.txt
+++ g.txt
@@ -1,0 +2,2 @@
+++ looks like a header
+commit 0123456789abcdef
@@ -4 +5,0 @@
--- sql comment
commit {C3}
Author: alice@example.com
Date: 20240301

diff --git f.txt f.txt
deleted file mode 100644
index {F2}..{NULL40}
--- f.txt
+++ /dev/null
@@ -1,4 +0,0 @@
-one
-TWO
-two and a half
-three
diff --git g.txt g.txt
index {G2}..{G3} 100644
--- g.txt
+++ g.txt
@@ -6 +6,2 @@
-e
\ No newline at end of file
+E
+F
\ No newline at end of file
commit {C4}
Author: bob@example.com
Date: 20240302

diff --git img.png img.png
new file mode 100644
index {NULL40}..{B1}
Binary files /dev/null and img.png differ
diff --git f.txt f.txt
new file mode 100644
index {NULL40}..{F3}
--- /dev/null
+++ f.txt
@@ -0,0 +1,2 @@
+reborn
+again
"""

# What the stripper is expected to make of RAW_LOG
STRIPPED_LOG = f"""commit {C1}
Author: alice@example.com
Date: 20240101
diff --git f.txt f.txt
index {NULL40}..{F1}
--- /dev/null
+++ f.txt
@@ -0,0 +1,3 @@-
diff --git g.txt g.txt
index {NULL40}..{G1}
--- /dev/null
+++ g.txt
@@ -0,0 +1,5 @@-
commit {C2}
Author: bob@example.com
Date: 20240215
diff --git f.txt f.txt
index {F1}..{F2} 100644
--- f.txt
+++ f.txt
@@ -2 +2,2 @@-
diff --git g.txt g.txt
index {G1}..{G2} 100644
--- g.txt
+++ g.txt
@@ -1,0 +2,2 @@-
@@ -4 +5,0 @@-
commit {C3}
Author: alice@example.com
Date: 20240301
diff --git f.txt f.txt
index {F2}..{NULL40}
--- f.txt
+++ /dev/null
@@ -1,4 +0,0 @@-
diff --git g.txt g.txt
index {G2}..{G3} 100644
--- g.txt
+++ g.txt
@@ -6 +6,2 @@-
commit {C4}
Author: bob@example.com
Date: 20240302
diff --git img.png img.png
index {NULL40}..{B1}
diff --git f.txt f.txt
index {NULL40}..{F3}
--- /dev/null
+++ f.txt
@@ -0,0 +1,2 @@-
"""


def logLines(text: str) -> list[str]:
    return text.splitlines(keepends=True)


def parseText(text: str, settings: Settings | None = None) -> History:
    return parseGitLog(logLines(text), settings)


def summarize(history: History) -> dict:
    """ Content-independent view of a History, for comparing two parses. """
    return {
        "hashes": list(history.hashes),
        "commits": [(c.id, c.author, c.date, [(d.path, d.checksumBefore, d.checksumAfter, list(d.hunks))
                                               for d in history.commitDiffs(c.id)])
                    for c in history.iterCommits()],
        "files": {path: [(d.commit.id, d.checksumBefore, d.checksumAfter) for d in history.fileDiffs(path)]
                  for path in history.files},
    }


class HistoryBuilder:
    """ Build a frozen History by hand, bypassing the parser. """

    def __init__(self, hashLength: int = 16):
        self.history = History(hashLength)
        self.commit = None

    def commit_(self, commitId: str, author: str = "test@example.com", date: int = 20240101):
        self.commit = self.history.addCommit(commitId)
        self.commit.author = author
        self.commit.date = date
        return self

    def diff(self, path: str, before: str | None, after: str, *hunks: tuple[int, int, int, int]):
        diff = self.history.addDiff(self.commit, path, before, after)
        for hunk in hunks:
            self.history.addHunk(diff, Hunk(*hunk))
        return self

    def build(self) -> History:
        self.history.freeze()
        return self.history


def writeFile(path, text):
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(text)


def commitFiles(repo: pygit2.Repository, files: dict[str, str | None], message: str = "test") -> str:
    """
    Write (or delete, if the text is None) files in the workdir, stage
    them, and commit on HEAD. Return the full id of the new commit.
    """
    index = repo.index
    index.read()
    for relPath, text in files.items():
        fullPath = os.path.join(repo.workdir, relPath)
        if text is None:
            os.unlink(fullPath)
            index.remove(relPath)
        else:
            writeFile(fullPath, text)
            index.add(relPath)
    index.write()
    tree = index.write_tree()
    parents = [] if repo.head_is_unborn else [repo.head.target]
    oid = repo.create_commit("HEAD", TEST_SIGNATURE, TEST_SIGNATURE, message, tree, parents)
    return str(oid)


def parseGitBlame(stdout: str):
    """ Yield (commitId, finalLineNumber) from "git blame --porcelain" output. """
    commitId = ""
    finalLineNumber = -1

    for line in stdout.splitlines():
        if not commitId:  # Looking for header
            tokens = line.split(" ")
            commitId = tokens[0]
            finalLineNumber = int(tokens[2])
        elif line.startswith("\t"):
            yield commitId, finalLineNumber
            commitId = ""  # Look for next line
        else:
            # Ignore author, author-mail, etc.
            pass
