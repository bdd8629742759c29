"""
OSM Element Tracker — Run Report
=================================
Collects per-entity findings of one run into a :class:`RunReport`:
a text body with one entry per new or changed entity, and a consolidated
diff attachment.  Entries keep processing order (id-list artifact first,
then elements in id-list order).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from osm_element_tracker.models import (
    Classification,
    DiffRecord,
    ElementKey,
    ElementKind,
    HistoryKey,
    IdListKey,
)

logger = logging.getLogger("osm_element_tracker.report")

PROJECT_URL = "https://github.com/MaptimeBogota/OSM-elements-change-tracker"
TIME_FORMAT = "%Y-%m-%d %H:%M:%S %Z"


@dataclass
class RunReport:
    """Finalized outcome of one run, handed to the notifiers.

    Attributes:
        title: Run title from the monitoring definition.
        kind: Monitored element kind.
        started_at: UTC start of the run.
        finished_at: UTC end of the run.
        entries: Report lines of new/changed entities, in processing order.
        records: The underlying findings (new and changed only).
        body: Full report text.
        attachment: Consolidated diff text.
        unchanged: Number of entities found unchanged.
        skipped: Elements skipped after a fetch or commit failure (not
            listed in the body, only logged).
    """

    title: str
    kind: ElementKind
    started_at: datetime
    finished_at: datetime
    entries: list[str] = field(default_factory=list)
    records: list[DiffRecord] = field(default_factory=list)
    body: str = ""
    attachment: str = ""
    unchanged: int = 0
    skipped: list[str] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        """``True`` when at least one entity was new or changed."""
        return bool(self.entries)

    @property
    def subject(self) -> str:
        return f"Detection of differences in {self.title}"

    def summary(self) -> str:
        """Human-readable one-line description of the run."""
        new = sum(r.classification is Classification.NEW for r in self.records)
        changed = sum(r.classification is Classification.CHANGED for r in self.records)
        return (
            f"[{self.finished_at.strftime('%Y-%m-%d %H:%M UTC')}] "
            f"{self.title} ({self.kind.value}): "
            f"{new} new, {changed} changed, {self.unchanged} unchanged"
        )


def report_line(record: DiffRecord) -> str:
    """Report text for one new or changed entity."""
    match record.key, record.classification:
        case ElementKey(identity=identity), Classification.NEW:
            return f"New {identity.url}"
        case ElementKey(identity=identity), _:
            return f"* Check {identity.url}\n{record.summary}"
        case IdListKey(), Classification.NEW:
            return "New set of IDs."
        case IdListKey(), _:
            return "* Differences in the set of IDs."
    raise TypeError(f"Unsupported history key: {record.key!r}")


class ReportAggregator:
    """Accumulates the findings of one run.

    Args:
        title: Run title.
        kind: Monitored element kind.
        started_at: Run start; defaults to now (UTC).
    """

    def __init__(
        self,
        title: str,
        kind: ElementKind,
        started_at: datetime | None = None,
    ) -> None:
        self.title = title
        self.kind = kind
        self.started_at = started_at or datetime.now(tz=timezone.utc)
        self._records: list[DiffRecord] = []
        self._attachment: list[str] = []
        self._unchanged = 0
        self._skipped: list[str] = []

    def record_new(self, key: HistoryKey, content: str) -> None:
        """Register a first version; its full content goes into the attachment."""
        self._records.append(DiffRecord(key, Classification.NEW, diff=content))
        self._attachment.append(content.rstrip("\n"))

    def record_changed(self, key: HistoryKey, record: DiffRecord) -> None:
        self._records.append(record)
        self._attachment.append(f"fetched/{key.filename}\n{record.diff}")

    def record_unchanged(self, key: HistoryKey) -> None:
        logger.debug("%s unchanged", key.filename)
        self._unchanged += 1

    def record_skipped(self, key: HistoryKey, reason: str) -> None:
        self._skipped.append(f"{key.filename}: {reason}")

    def finalize(self, finished_at: datetime | None = None) -> RunReport:
        """Build the report.  Always succeeds, even with nothing to report."""
        finished_at = finished_at or datetime.now(tz=timezone.utc)
        entries = [report_line(record) for record in self._records]

        header = (
            f"Report of modifications of {self.kind.value} in {self.title} in OpenStreetMap.\n"
            "\n"
            f"Start time: {self.started_at.strftime(TIME_FORMAT)}.\n"
        )
        footer = (
            f"End time: {finished_at.strftime(TIME_FORMAT)}\n"
            "\n"
            "This report was created by the OSM elements change tracker:\n"
            f"{PROJECT_URL}\n"
        )
        body = header + "\n" + "".join(f"{entry}\n" for entry in entries) + "\n" + footer

        return RunReport(
            title=self.title,
            kind=self.kind,
            started_at=self.started_at,
            finished_at=finished_at,
            entries=entries,
            records=list(self._records),
            body=body,
            attachment="\n".join(self._attachment) + ("\n" if self._attachment else ""),
            unchanged=self._unchanged,
            skipped=list(self._skipped),
        )
