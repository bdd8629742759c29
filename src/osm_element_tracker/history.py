"""
OSM Element Tracker — History Store
====================================
Git-backed archive of the last known snapshot of every monitored key.

The repository working tree is the "current value" store: reading
``<root>/<key.filename>`` always yields the last committed snapshot, and
the git log keeps every earlier version.  One commit is made per accepted
change; unchanged snapshots are discarded without a commit.

Every mutation (compare, write, add, commit) runs while holding the
:class:`~osm_element_tracker.guard.CommitGuard`, so concurrent runs
cannot interleave their updates of the same file.
"""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from pathlib import Path

from shared.python.exceptions import CommitError, HistoryStoreError

from osm_element_tracker.guard import CommitGuard
from osm_element_tracker.models import CommitOutcome, CommitResult, HistoryKey, commit_message

logger = logging.getLogger("osm_element_tracker.history")

BOT_NAME = "OSM elements change tracker bot"
BOT_EMAIL = "maptime.bogota@gmail.com"


class HistoryStore:
    """Version-controlled store of normalized snapshots.

    Args:
        root: Repository directory; created by :meth:`initialize`.
        guard: Lock serialising all repository mutations.
        author_name: Committer name written to the repository config.
        author_email: Committer e-mail written to the repository config.
    """

    def __init__(
        self,
        root: Path,
        guard: CommitGuard,
        *,
        author_name: str = BOT_NAME,
        author_email: str = BOT_EMAIL,
    ) -> None:
        self.root = Path(root)
        self.guard = guard
        self.author_name = author_name
        self.author_email = author_email

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """Create the repository if needed and set the committer identity.

        Safe to call on an existing repository.

        Raises:
            HistoryStoreError: If git is missing or the repository cannot be
                created.  This is fatal for the run.
        """
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise HistoryStoreError(f"Cannot create history directory '{self.root}': {exc}") from exc

        with self.guard.hold():
            try:
                self._git("init", "-q")
                self._git("config", "user.name", self.author_name)
                self._git("config", "user.email", self.author_email)
            except (OSError, subprocess.CalledProcessError) as exc:
                raise HistoryStoreError(
                    f"Cannot initialise history repository '{self.root}': {_git_error(exc)}"
                ) from exc
        logger.debug("History repository ready: %s", self.root)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def path_for(self, key: HistoryKey) -> Path:
        return self.root / key.filename

    def exists(self, key: HistoryKey) -> bool:
        """``True`` when a committed entry exists for *key*."""
        return self.path_for(key).is_file()

    def read(self, key: HistoryKey) -> str | None:
        """Return the current entry for *key*, or ``None`` if there is none."""
        path = self.path_for(key)
        if not path.is_file():
            return None
        with path.open(encoding="utf-8", newline="") as fh:
            return fh.read()

    def history(self, key: HistoryKey) -> list[tuple[str, str]]:
        """Commit log of *key*, newest first, as ``(revision, message)`` pairs."""
        try:
            out = self._git("log", "--format=%H%x09%s", "--", key.filename)
        except subprocess.CalledProcessError as exc:
            # a repository without commits has no log yet
            if "does not have any commits" in (exc.stderr or ""):
                return []
            raise HistoryStoreError(f"Cannot read log of '{key.filename}': {_git_error(exc)}") from exc
        entries = []
        for line in out.splitlines():
            revision, _, message = line.partition("\t")
            entries.append((revision, message))
        return entries

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def commit(self, key: HistoryKey, content: str) -> CommitResult:
        """Store *content* as the current version of *key*.

        * No prior entry: add and commit as the initial version.
        * Prior entry differs byte-wise: replace and commit as a new version.
        * Prior entry identical: nothing is written or committed.

        The comparison is made against ``HEAD``; a working-tree copy that was
        never committed is reset first.

        Raises:
            CommitError: If git rejects the change.  The previous entry (or
                its absence) is restored before raising, as it is when the
                commit is interrupted.
        """
        with self.guard.hold():
            previous = self._committed(key)
            if self.read(key) != previous:
                # left over by a run that died between write and commit
                logger.warning("%s differs from its last commit, resetting it", key.filename)
                self._restore(key)
            if previous == content:
                logger.debug("%s unchanged, fetched copy discarded", key.filename)
                return CommitResult(key, CommitOutcome.UNCHANGED, content, previous)

            outcome = CommitOutcome.INITIAL if previous is None else CommitOutcome.NEW_VERSION
            message = commit_message(key, outcome)
            try:
                self._write(key, content)
                if outcome is CommitOutcome.INITIAL:
                    self._git("add", "--", key.filename)
                self._git("commit", "-q", "--no-verify", "-m", message, "--", key.filename)
                revision = self._git("rev-parse", "HEAD").strip()
            except (OSError, subprocess.CalledProcessError) as exc:
                self._restore(key)
                raise CommitError(key.filename, _git_error(exc)) from exc
            except BaseException:
                # interrupted: keep only what git actually recorded
                self._restore(key)
                raise

        logger.info("Committed %s (%s)", key.filename, message)
        return CommitResult(key, outcome, content, previous, revision)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _write(self, key: HistoryKey, content: str) -> None:
        """Replace the working-tree file atomically."""
        fd, tmp_name = tempfile.mkstemp(dir=self.root, prefix=".tmp-", suffix=".part")
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
                fh.write(content)
            os.replace(tmp_name, self.path_for(key))
        except OSError as exc:
            Path(tmp_name).unlink(missing_ok=True)
            raise CommitError(key.filename, str(exc)) from exc

    def _committed(self, key: HistoryKey) -> str | None:
        """Content of *key* in ``HEAD``, or ``None`` if it was never committed."""
        result = subprocess.run(
            ["git", "-C", str(self.root), "show", f"HEAD:{key.filename}"],
            capture_output=True,
        )
        if result.returncode != 0:
            return None
        return result.stdout.decode("utf-8")

    def _restore(self, key: HistoryKey) -> None:
        """Put the index entry and working-tree file of *key* back to ``HEAD``."""
        try:
            committed = self._committed(key)
            if committed is None:
                self._git("rm", "-q", "--cached", "--ignore-unmatch", "--", key.filename)
                self.path_for(key).unlink(missing_ok=True)
            else:
                self._git("reset", "-q", "--", key.filename)
                self._write(key, committed)
        except (OSError, subprocess.CalledProcessError, CommitError) as exc:
            logger.error("Could not restore %s to its last commit: %s", key.filename, exc)

    def _git(self, *args: str) -> str:
        result = subprocess.run(
            ["git", "-C", str(self.root), "-c", "commit.gpgsign=false", *args],
            capture_output=True,
            text=True,
            check=True,
        )
        return result.stdout


def _git_error(exc: Exception) -> str:
    if isinstance(exc, subprocess.CalledProcessError):
        output = (exc.stderr or exc.stdout or "").strip()
        return output or f"git exited with status {exc.returncode}"
    return str(exc)
