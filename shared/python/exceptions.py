"""
OSM Element Tracker — Custom Exception Hierarchy
=================================================
Every component raises exceptions from this module so callers can catch
them at the right level of granularity.

Hierarchy::

    TrackerError                         ← catch-all base
    ├── InputValidationError             ← bad files, missing tools, etc.
    │   └── MonitoringDefinitionError    ← definition file name/content invalid
    ├── FetchError                       ← Overpass request or response failure
    ├── HistoryStoreError                ← git repository unusable (fatal)
    │   └── CommitError                  ← a single key could not be committed
    ├── GuardTimeoutError                ← commit lock not granted in time
    └── OutputWriteError                 ← cannot write report files

Usage::

    from shared.python.exceptions import FetchError

    raise FetchError("node 100", "read timed out")
"""

from __future__ import annotations


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


class TrackerError(Exception):
    """Base exception for the tracker.

    Catch this to handle any tracker-specific error without caring about
    the exact subtype.

    Args:
        message: Human-readable description of the error.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message: str = message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------


class InputValidationError(TrackerError):
    """Raised when the tracker's inputs fail pre-processing validation.

    This is the parent class for more specific input problems.
    """


class MonitoringDefinitionError(InputValidationError):
    """Raised when a monitoring definition file cannot be used.

    Args:
        path: Path of the offending definition file.
        reason: Short explanation (bad name token, bad id line, ...).

    Example::

        raise MonitoringDefinitionError("diff_area_ids", "unknown element kind 'area'")
    """

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Invalid monitoring definition '{path}': {reason}")
        self.path: str = path
        self.reason: str = reason


# ---------------------------------------------------------------------------
# Remote fetch
# ---------------------------------------------------------------------------


class FetchError(TrackerError):
    """Raised when Overpass cannot deliver the requested data.

    Covers transport failures, timeouts, non-2xx responses and response
    bodies that carry a service-side error instead of data.

    Args:
        target: What was being fetched (e.g. ``"node 100"`` or ``"id list"``).
        reason: Underlying error message.
    """

    def __init__(self, target: str, reason: str) -> None:
        super().__init__(f"Failed to fetch {target}: {reason}")
        self.target: str = target
        self.reason: str = reason


# ---------------------------------------------------------------------------
# History repository
# ---------------------------------------------------------------------------


class HistoryStoreError(TrackerError):
    """Raised when the history repository cannot be initialised or used.

    Subclass this for errors scoped to a single key.
    """


class CommitError(HistoryStoreError):
    """Raised when a single history entry could not be committed.

    The working tree is restored to the last committed state before this
    is raised, so the entry keeps its previous value.

    Args:
        filename: History file name of the key (e.g. ``"node-100.json"``).
        reason: Underlying git error output.
    """

    def __init__(self, filename: str, reason: str) -> None:
        super().__init__(f"Commit of '{filename}' failed: {reason}")
        self.filename: str = filename
        self.reason: str = reason


class GuardTimeoutError(TrackerError):
    """Raised when the commit lock is not granted within the allowed time.

    Args:
        lock_path: Path of the lock file.
        timeout: Seconds waited before giving up.
    """

    def __init__(self, lock_path: str, timeout: float) -> None:
        super().__init__(f"Lock '{lock_path}' not acquired within {timeout:g}s")
        self.lock_path: str = lock_path
        self.timeout: float = timeout


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


class OutputWriteError(TrackerError):
    """Raised when the tracker cannot write its output to disk.

    Args:
        output_path: String representation of the path that failed.
        reason: Underlying OS error message.

    Example::

        raise OutputWriteError("/read-only/dir/report.txt", "Permission denied")
    """

    def __init__(self, output_path: str, reason: str) -> None:
        super().__init__(
            f"Failed to write output to '{output_path}': {reason}"
        )
        self.output_path: str = output_path
        self.reason: str = reason
