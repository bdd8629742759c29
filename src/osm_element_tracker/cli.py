"""
OSM Element Tracker — CLI Entry Point
======================================
Exposes :class:`~osm_element_tracker.tracker.ElementChangeTracker` as the
``osm-element-tracker`` command with both one-shot and scheduled modes.

Usage::

    # Single run (useful for cron jobs)
    EMAILS="team@example.com,gis@example.com" \\
    osm-element-tracker examples/mosqueraCentro/diff_relation_query_todo \\
        --history-dir history

    # Continuous mode, one run every 30 minutes
    osm-element-tracker examples/diff_way_ids --schedule 30

Run ``osm-element-tracker --help`` for full option list.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from shared.python.exceptions import TrackerError

from osm_element_tracker import __version__
from osm_element_tracker.notifier import EmailNotifier, NotifierBackend, ReportFileNotifier
from osm_element_tracker.overpass import OverpassClient
from osm_element_tracker.scheduler import MonitorScheduler
from osm_element_tracker.tracker import ElementChangeTracker

logger = logging.getLogger("osm_element_tracker.cli")

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def parse_recipients(value: str | None) -> list[str]:
    """Split a comma separated recipient list."""
    if not value:
        return []
    return [address.strip() for address in value.split(",") if address.strip()]


@click.command("osm-element-tracker")
@click.version_option(__version__)
@click.argument(
    "definition_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
# History
@click.option(
    "--history-dir", default="history", show_default=True, envvar="TRACKER_HISTORY_DIR",
    type=click.Path(file_okay=False, path_type=Path),
    help="Git repository keeping one file per tracked element.",
)
@click.option(
    "--lock-file", default=None, envvar="TRACKER_LOCK_FILE",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Lock file serialising commits (default: next to the history dir).",
)
# Delivery
@click.option(
    "--emails", default=None, envvar="EMAILS",
    help="Comma separated report recipients (or set EMAILS env var).",
)
@click.option("--sender", default="osm-element-tracker@localhost", envvar="SMTP_SENDER",
              show_default=True, help="Sender address of report mails.")
@click.option("--smtp-host", default="localhost", envvar="SMTP_HOST", show_default=True,
              help="SMTP server hostname.")
@click.option("--smtp-port", default=25, envvar="SMTP_PORT", show_default=True, type=int,
              help="SMTP server port.")
@click.option("--smtp-user", default=None, envvar="SMTP_USER",
              help="SMTP login; enables STARTTLS.")
@click.option("--smtp-password", default=None, envvar="SMTP_PASSWORD",
              help="SMTP password (prefer the SMTP_PASSWORD env var).")
@click.option(
    "--report-dir", default=None, envvar="TRACKER_REPORT_DIR",
    type=click.Path(file_okay=False, path_type=Path),
    help="Also write report.txt and reportDiff.txt to this directory.",
)
# Fetching
@click.option(
    "--overpass-url", default=OverpassClient.DEFAULT_API_URL, envvar="OVERPASS_URL",
    show_default=True, help="Overpass API interpreter URL.",
)
@click.option("--delay", default=2.0, envvar="TRACKER_WAIT_TIME", show_default=True, type=float,
              help="Seconds to wait between element downloads.")
@click.option("--timeout", default=60.0, show_default=True, type=float,
              help="Timeout in seconds of each Overpass request.")
# Run
@click.option(
    "--clean-files/--keep-files", default=True, envvar="CLEAN_FILES", show_default=True,
    help="Remove downloaded snapshots from the run directory at the end.",
)
@click.option(
    "--schedule", "interval_minutes", default=None, type=int,
    help="Run every N minutes. Omit for a single one-shot run.",
)
@click.option(
    "--log-level", default="INFO", envvar="LOG_LEVEL", show_default=True,
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    help="Console log level.",
)
@click.option("--verbose", is_flag=True, default=False, help="Enable DEBUG logging.")
def cli(
    definition_file: Path,
    history_dir: Path,
    lock_file: Path | None,
    emails: str | None,
    sender: str,
    smtp_host: str,
    smtp_port: int,
    smtp_user: str | None,
    smtp_password: str | None,
    report_dir: Path | None,
    overpass_url: str,
    delay: float,
    timeout: float,
    clean_files: bool,
    interval_minutes: int | None,
    log_level: str,
    verbose: bool,
) -> None:
    """Check the OSM elements listed or queried by DEFINITION_FILE for changes.

    \b
    DEFINITION_FILE is named diff_<kind>_<method>:
      kind    node, way or relation
      method  ids   (one element id per line)
              query (an Overpass query printing the ids as CSV)
    Its first line is the title used in the report.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, log_level.upper()),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )

    notifiers: list[NotifierBackend] = []
    if report_dir is not None:
        notifiers.append(ReportFileNotifier(report_dir))
    recipients = parse_recipients(emails)
    if recipients:
        notifiers.append(EmailNotifier(
            recipients=recipients,
            sender=sender,
            smtp_host=smtp_host,
            smtp_port=smtp_port,
            username=smtp_user,
            password=smtp_password,
        ))
    else:
        logger.warning("No recipients configured (EMAILS), the report will not be mailed")

    tracker = ElementChangeTracker(
        definition_path=definition_file,
        history_dir=history_dir,
        notifiers=notifiers,
        overpass_client=OverpassClient(api_url=overpass_url, timeout=timeout),
        lock_path=lock_file,
        fetch_delay=delay,
        keep_artifacts=not clean_files,
        verbose=verbose,
    )

    if interval_minutes is not None:
        # Continuous mode
        try:
            MonitorScheduler(tracker, interval_minutes=interval_minutes).start()
        except ValueError as exc:
            click.echo(f"Error: {exc}", err=True)
            sys.exit(1)
        return

    # One-shot mode
    try:
        tracker.run()
    except TrackerError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    report = tracker.last_report
    if report is not None:
        click.echo(report.summary())
        if not report.has_changes:
            click.echo("No changes detected.")


if __name__ == "__main__":
    cli()
