"""
OSM Element Tracker
====================
Watch a set of OpenStreetMap elements, keep every observed version in a git
history, and report what changed between runs.
"""

__version__ = "0.3.0"

from osm_element_tracker.classifier import classify
from osm_element_tracker.definition import MonitoringDefinition
from osm_element_tracker.guard import CommitGuard
from osm_element_tracker.history import HistoryStore
from osm_element_tracker.models import (
    Classification,
    CommitOutcome,
    CommitResult,
    DiffRecord,
    ElementIdentity,
    ElementKey,
    ElementKind,
    HistoryKey,
    IdListKey,
    IdRetrieval,
    IdSet,
)
from osm_element_tracker.normalizer import normalize
from osm_element_tracker.notifier import EmailNotifier, NotifierBackend, ReportFileNotifier
from osm_element_tracker.overpass import OverpassClient
from osm_element_tracker.report import ReportAggregator, RunReport
from osm_element_tracker.scheduler import MonitorScheduler
from osm_element_tracker.tracker import ElementChangeTracker, RunContext

__all__ = [
    "ElementChangeTracker",
    "RunContext",
    "MonitoringDefinition",
    "OverpassClient",
    "normalize",
    "HistoryStore",
    "CommitGuard",
    "classify",
    "ReportAggregator",
    "RunReport",
    "NotifierBackend",
    "EmailNotifier",
    "ReportFileNotifier",
    "MonitorScheduler",
    "ElementKind",
    "IdRetrieval",
    "ElementIdentity",
    "IdSet",
    "ElementKey",
    "IdListKey",
    "HistoryKey",
    "CommitOutcome",
    "CommitResult",
    "Classification",
    "DiffRecord",
]
