"""
OSM Element Tracker — Shared Python Package
============================================
Re-exports the shared base class, exception hierarchy, and validator
utilities so tracker modules can import from a single location::

    from shared.python import TrackerTool, Validators
    from shared.python.exceptions import FetchError
"""

from shared.python.base_tool import TrackerTool
from shared.python.exceptions import (
    CommitError,
    FetchError,
    GuardTimeoutError,
    HistoryStoreError,
    InputValidationError,
    MonitoringDefinitionError,
    OutputWriteError,
    TrackerError,
)
from shared.python.validators import Validators

__all__ = [
    "TrackerTool",
    "Validators",
    "TrackerError",
    "InputValidationError",
    "MonitoringDefinitionError",
    "FetchError",
    "HistoryStoreError",
    "CommitError",
    "GuardTimeoutError",
    "OutputWriteError",
]
