"""
OSM Element Tracker — Core Module
==================================
Fetches the monitored elements from Overpass, commits every changed
snapshot to the git history, and delivers a report of what was new or
changed.

Design:
    * :class:`RunContext` — per-run work directory, run log file and fetched
      artifacts, torn down deterministically when the run ends.
    * :class:`ElementChangeTracker` (:class:`~shared.python.TrackerTool`) —
      orchestrates fetch → normalize → commit → classify → report → notify.

Typical workflow::

    tracker = ElementChangeTracker(
        definition_path=Path("examples/diff_way_query"),
        history_dir=Path("history"),
        notifiers=[EmailNotifier(["team@example.com"], sender="bot@example.com")],
    )
    tracker.run()                    # single run, e.g. from cron
    # or: MonitorScheduler(tracker, interval_minutes=60).start()

Failure policy:
    * The id list cannot be obtained, or the repository cannot be
      initialised: the run stops (exception propagates from :meth:`run`).
    * One element cannot be fetched, or one commit fails: the element is
      logged and skipped, its history stays untouched.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
import time
from pathlib import Path
from types import TracebackType

from shared.python.base_tool import LOG_FORMAT, TrackerTool
from shared.python.exceptions import CommitError, FetchError, GuardTimeoutError
from shared.python.validators import Validators

from osm_element_tracker.classifier import classify
from osm_element_tracker.definition import MonitoringDefinition
from osm_element_tracker.guard import CommitGuard
from osm_element_tracker.history import HistoryStore
from osm_element_tracker.models import CommitOutcome, ElementKey, HistoryKey
from osm_element_tracker.normalizer import normalize
from osm_element_tracker.notifier import NotifierBackend
from osm_element_tracker.overpass import OverpassClient
from osm_element_tracker.report import ReportAggregator, RunReport

logger = logging.getLogger("osm_element_tracker.tracker")

LOCK_FILENAME = "osm-element-tracker.lock"
RUN_LOG_FILENAME = "tracker.log"


# ---------------------------------------------------------------------------
# Run context
# ---------------------------------------------------------------------------


class RunContext:
    """Run-local resources of one tracker run.

    Creates ``<work_root>/osm-element-tracker_XXXX/`` holding the run log and
    the raw fetched snapshots.  On exit the log handler is detached and,
    unless *keep_artifacts* is set, the fetched snapshots are removed.  The
    run log is always kept.

    Args:
        keep_artifacts: Keep raw fetched snapshots after the run.
        work_root: Parent of the work directory; the system temp dir by default.
    """

    def __init__(self, *, keep_artifacts: bool = False, work_root: Path | None = None) -> None:
        self.keep_artifacts = keep_artifacts
        self.work_root = Path(work_root) if work_root else None
        self.work_dir: Path | None = None
        self._handler: logging.Handler | None = None

    def __enter__(self) -> "RunContext":
        if self.work_root is not None:
            self.work_root.mkdir(parents=True, exist_ok=True)
        self.work_dir = Path(tempfile.mkdtemp(prefix="osm-element-tracker_", dir=self.work_root))
        self.fetched_dir.mkdir()

        self._handler = logging.FileHandler(self.log_path, encoding="utf-8")
        self._handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT))
        logging.getLogger("osm_element_tracker").addHandler(self._handler)
        logger.debug("Run output kept in %s", self.work_dir)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._handler is not None:
            logging.getLogger("osm_element_tracker").removeHandler(self._handler)
            self._handler.close()
            self._handler = None
        if not self.keep_artifacts and self.work_dir is not None:
            shutil.rmtree(self.fetched_dir, ignore_errors=True)

    @property
    def fetched_dir(self) -> Path:
        if self.work_dir is None:
            raise RuntimeError("RunContext used outside of its with block")
        return self.work_dir / "fetched"

    @property
    def log_path(self) -> Path:
        return self.fetched_dir.parent / RUN_LOG_FILENAME

    def save_fetched(self, key: HistoryKey, raw: str) -> Path:
        """Keep the raw response of *key* for inspection."""
        path = self.fetched_dir / key.filename
        with path.open("w", encoding="utf-8", newline="") as fh:
            fh.write(raw)
        return path


# ---------------------------------------------------------------------------
# Main tool class
# ---------------------------------------------------------------------------


class ElementChangeTracker(TrackerTool):
    """Track changes of the OSM elements named by a monitoring definition.

    Args:
        definition_path: Monitoring definition file (``diff_<kind>_<method>``).
        history_dir: Git repository holding one file per tracked key.
        notifiers: Backends invoked when the run found new or changed
                   entities.  Defaults to none (report only logged).
        overpass_client: Optional pre-configured :class:`OverpassClient`.
        lock_path: Guard lock file.  Defaults to a file next to
                   *history_dir*, shared by every run using that history.
        lock_timeout: Seconds to wait for the guard; ``None`` waits forever.
        fetch_delay: Seconds to wait between element fetches.
        keep_artifacts: Keep raw fetched snapshots in the run directory.
        work_root: Parent directory of per-run work directories.
        verbose: Enable DEBUG-level logging.
    """

    def __init__(
        self,
        definition_path: Path,
        history_dir: Path,
        notifiers: list[NotifierBackend] | None = None,
        overpass_client: OverpassClient | None = None,
        *,
        lock_path: Path | None = None,
        lock_timeout: float | None = None,
        fetch_delay: float = 2.0,
        keep_artifacts: bool = False,
        work_root: Path | None = None,
        verbose: bool = False,
    ) -> None:
        super().__init__(definition_path, history_dir, verbose=verbose)
        if fetch_delay < 0:
            raise ValueError("fetch_delay must be ≥ 0")
        self.history_dir = Path(history_dir)
        self.notifiers: list[NotifierBackend] = notifiers or []
        self.overpass_client = overpass_client or OverpassClient()
        self.fetch_delay = fetch_delay
        self.keep_artifacts = keep_artifacts
        self.work_root = work_root

        lock_path = Path(lock_path) if lock_path else self.history_dir.resolve().parent / LOCK_FILENAME
        self.guard = CommitGuard(lock_path, timeout=lock_timeout)
        self.store = HistoryStore(self.history_dir, self.guard)

        self.definition: MonitoringDefinition | None = None
        self._last_report: RunReport | None = None
        self._last_work_dir: Path | None = None

    # ------------------------------------------------------------------
    # TrackerTool abstract method implementations
    # ------------------------------------------------------------------

    def validate_inputs(self) -> None:
        """Load the definition and make sure the history repository is usable.

        Raises:
            InputValidationError: If git is missing or the definition file
                does not exist.
            MonitoringDefinitionError: If the definition is malformed.
            HistoryStoreError: If the repository cannot be initialised.
        """
        Validators.assert_executable_available("git")
        self.definition = MonitoringDefinition.from_file(self.input_path)
        Validators.assert_output_dir_writable(self.history_dir)
        self.store.initialize()
        logger.debug(
            "Validated definition %s (%s, %s)",
            self.input_path.name,
            self.definition.kind.value,
            self.definition.method.value,
        )

    def process(self) -> None:
        """Run the pipeline once and notify when something is new or changed."""
        definition = self.definition
        if definition is None:
            raise RuntimeError("process() called before validate_inputs()")

        with RunContext(keep_artifacts=self.keep_artifacts, work_root=self.work_root) as ctx:
            self._last_work_dir = ctx.work_dir
            aggregator = ReportAggregator(definition.title, definition.kind)
            logger.info("Fetching ids for %r (%s)", definition.title, definition.method.value)

            id_set = self.overpass_client.fetch_id_set(definition)
            logger.info("%d %s ids to check", len(id_set), definition.kind.value)
            self._track(definition.id_list_key, id_set.to_text(), aggregator)

            for index, identity in enumerate(id_set.identities()):
                if index and self.fetch_delay:
                    time.sleep(self.fetch_delay)

                key = ElementKey(identity)
                logger.info("Processing %s", identity)
                try:
                    raw = self.overpass_client.fetch_snapshot(identity)
                except FetchError as exc:
                    logger.warning("Skipping %s: %s", identity, exc)
                    aggregator.record_skipped(key, str(exc))
                    continue

                ctx.save_fetched(key, raw)
                self._track(key, normalize(raw), aggregator)

            report = aggregator.finalize()

        self._last_report = report
        logger.info(report.summary())
        if report.skipped:
            logger.warning("%d element(s) skipped, see the run log", len(report.skipped))

        if not report.has_changes:
            logger.info("Nothing new or changed, report not sent")
            return

        for notifier in self.notifiers:
            try:
                notifier.send(report)
            except Exception as exc:  # noqa: BLE001
                logger.error("Notifier %s failed: %s", type(notifier).__name__, exc)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _track(self, key: HistoryKey, content: str, aggregator: ReportAggregator) -> None:
        """Commit *content* for *key* and record the outcome."""
        try:
            result = self.store.commit(key, content)
        except (CommitError, GuardTimeoutError) as exc:
            logger.error("Skipping %s: %s", key.filename, exc)
            aggregator.record_skipped(key, str(exc))
            return

        match result.outcome:
            case CommitOutcome.INITIAL:
                aggregator.record_new(key, content)
            case CommitOutcome.NEW_VERSION:
                record = classify(key, result.previous or "", content)
                logger.info("%s changed: %s", key.filename, record.summary)
                aggregator.record_changed(key, record)
            case CommitOutcome.UNCHANGED:
                aggregator.record_unchanged(key)

    @property
    def last_report(self) -> RunReport | None:
        """The report of the most recent run, or ``None`` before the first run."""
        return self._last_report

    @property
    def last_work_dir(self) -> Path | None:
        """Work directory (run log, kept artifacts) of the most recent run."""
        return self._last_work_dir
