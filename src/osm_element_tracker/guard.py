"""
OSM Element Tracker — Commit Guard
===================================
Advisory, file-system level mutual exclusion for history mutations.

One lock file per installation serialises every add/commit across
overlapping runs on the same host.  The lock is taken with
``fcntl.flock`` on a freshly opened descriptor for each acquisition, so
threads of one process exclude each other exactly like separate processes.

Usage::

    guard = CommitGuard(Path("/var/lib/tracker/osm-element-tracker.lock"))
    with guard.hold():
        ...  # mutate the repository
"""

from __future__ import annotations

import fcntl
import logging
import os
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from shared.python.exceptions import GuardTimeoutError, HistoryStoreError

logger = logging.getLogger("osm_element_tracker.guard")


class CommitGuard:
    """Scoped exclusive lock around repository mutations.

    Args:
        lock_path: Lock file; created on first use.
        timeout: Seconds to wait for the lock.  ``None`` (default) waits
            forever, which means a stuck holder stalls every later run.
        poll_interval: Sleep between attempts when *timeout* is set.
    """

    def __init__(
        self,
        lock_path: Path,
        timeout: float | None = None,
        poll_interval: float = 0.1,
    ) -> None:
        self.lock_path = Path(lock_path)
        self.timeout = timeout
        self.poll_interval = poll_interval

    @contextmanager
    def hold(self) -> Iterator[None]:
        """Hold the lock for the duration of the ``with`` block.

        The lock is released on every exit path, including exceptions and
        ``KeyboardInterrupt``.

        Raises:
            GuardTimeoutError: If *timeout* elapses before the lock is granted.
            HistoryStoreError: If the lock file cannot be opened.
        """
        try:
            self.lock_path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.lock_path, os.O_RDWR | os.O_CREAT, 0o666)
        except OSError as exc:
            raise HistoryStoreError(f"Cannot open lock file '{self.lock_path}': {exc}") from exc

        try:
            self._acquire(fd)
            logger.debug("Lock acquired: %s", self.lock_path)
            try:
                yield
            finally:
                fcntl.flock(fd, fcntl.LOCK_UN)
                logger.debug("Lock released: %s", self.lock_path)
        finally:
            os.close(fd)

    def _acquire(self, fd: int) -> None:
        if self.timeout is None:
            fcntl.flock(fd, fcntl.LOCK_EX)
            return

        deadline = time.monotonic() + self.timeout
        while True:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                return
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    raise GuardTimeoutError(str(self.lock_path), self.timeout) from None
                time.sleep(self.poll_interval)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(lock_path={self.lock_path!r})"
