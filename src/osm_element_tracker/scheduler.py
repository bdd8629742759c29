"""
OSM Element Tracker — Scheduler
================================
Runs an :class:`~osm_element_tracker.tracker.ElementChangeTracker` every N
minutes with the ``schedule`` library, as an alternative to a cron entry.

Each run is logged with its report summary.  A failed run is logged and
counted, and the next run still happens at its scheduled time.

Usage::

    from pathlib import Path
    from osm_element_tracker.tracker import ElementChangeTracker
    from osm_element_tracker.scheduler import MonitorScheduler

    tracker = ElementChangeTracker(
        definition_path=Path("examples/diff_relation_ids"),
        history_dir=Path("history"),
    )
    # Run every 60 minutes until Ctrl-C
    MonitorScheduler(tracker, interval_minutes=60).start()
"""

from __future__ import annotations

import logging
import signal
import time

import schedule

from shared.python.exceptions import TrackerError

from osm_element_tracker.tracker import ElementChangeTracker

logger = logging.getLogger("osm_element_tracker.scheduler")


class MonitorScheduler:
    """Schedule repeated runs of an :class:`ElementChangeTracker`.

    SIGINT/SIGTERM only stop the loop between runs.  A run in progress
    completes, and its commit guard is released, before :meth:`start`
    returns.

    Args:
        tracker: The configured tracker to run.
        interval_minutes: How often to run, in minutes.
        run_immediately: If ``True`` (default), execute one run immediately on
                         :meth:`start` before scheduling subsequent runs.

    Attributes:
        runs: Number of runs started.
        failures: Number of runs that ended with an exception.
    """

    def __init__(
        self,
        tracker: ElementChangeTracker,
        interval_minutes: int = 60,
        *,
        run_immediately: bool = True,
    ) -> None:
        if interval_minutes < 1:
            raise ValueError("interval_minutes must be ≥ 1")
        self.tracker = tracker
        self.interval_minutes = interval_minutes
        self.run_immediately = run_immediately
        self.runs = 0
        self.failures = 0
        self._running = False
        self._scheduler = schedule.Scheduler()

    def run_once(self) -> None:
        """Execute one tracker run; failures are logged, never raised."""
        self.runs += 1
        logger.info("Run %d of %s", self.runs, self.tracker.input_path.name)
        try:
            self.tracker.run()
        except TrackerError as exc:
            self.failures += 1
            logger.error("Run %d failed: %s", self.runs, exc)
        except Exception:  # noqa: BLE001
            self.failures += 1
            logger.exception("Run %d crashed", self.runs)
        else:
            report = self.tracker.last_report
            if report is not None:
                logger.info(
                    "Run %d: %s%s",
                    self.runs,
                    report.summary(),
                    "" if report.has_changes else " (nothing to report)",
                )

        if self._scheduler.jobs and self._scheduler.next_run is not None:
            logger.info("Next run at %s", self._scheduler.next_run.strftime("%Y-%m-%d %H:%M"))

    def stop(self) -> None:
        """Leave the loop after the current run."""
        self._running = False

    def start(self) -> None:
        """Begin the scheduling loop (blocking).

        Runs until interrupted by SIGINT (Ctrl-C) or SIGTERM, or until
        :meth:`stop` is called.
        """
        self._running = True

        def _shutdown(signum: int, frame: object) -> None:
            logger.info("Received signal %d, stopping after the current run", signum)
            self.stop()

        signal.signal(signal.SIGINT, _shutdown)
        signal.signal(signal.SIGTERM, _shutdown)

        self._scheduler.every(self.interval_minutes).minutes.do(self.run_once)
        if self.run_immediately:
            self.run_once()

        logger.info(
            "Scheduler started: running every %d minute(s). Press Ctrl-C to stop.",
            self.interval_minutes,
        )
        while self._running:
            self._scheduler.run_pending()
            time.sleep(1)

        self._scheduler.clear()
        logger.info("Scheduler stopped after %d run(s), %d failed.", self.runs, self.failures)
