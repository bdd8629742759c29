"""
Tests for the Report Aggregator and delivery backends
======================================================
"""

from __future__ import annotations

from datetime import datetime, timezone
from email import message_from_string
from pathlib import Path
from unittest.mock import patch

import pytest

from osm_element_tracker.models import (
    Classification,
    DiffRecord,
    ElementIdentity,
    ElementKey,
    ElementKind,
    IdListKey,
)
from osm_element_tracker.notifier import (
    ATTACHMENT_NAME,
    REPORT_NAME,
    EmailNotifier,
    ReportFileNotifier,
)
from osm_element_tracker.report import PROJECT_URL, ReportAggregator, RunReport, report_line

START = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
END = datetime(2024, 5, 1, 10, 5, tzinfo=timezone.utc)
NODE = ElementKey(ElementIdentity(ElementKind.NODE, 100))
IDS = IdListKey("Benches")


def _changed_node() -> DiffRecord:
    return DiffRecord(
        NODE,
        Classification.CHANGED,
        summary="Changes in tags.",
        diff='@@ -1 +1 @@\n-    "name": "a"\n+    "name": "b"',
        categories=("tags",),
    )


@pytest.fixture()
def report() -> RunReport:
    aggregator = ReportAggregator("Benches", ElementKind.NODE, started_at=START)
    aggregator.record_new(IDS, "100\n")
    aggregator.record_changed(NODE, _changed_node())
    aggregator.record_unchanged(ElementKey(ElementIdentity(ElementKind.NODE, 200)))
    return aggregator.finalize(finished_at=END)


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


class TestReportAggregator:
    def test_entries_keep_processing_order(self, report: RunReport) -> None:
        assert report.entries == [
            "New set of IDs.",
            "* Check https://osm.org/node/100\nChanges in tags.",
        ]
        assert report.unchanged == 1
        assert report.has_changes

    def test_body_layout(self, report: RunReport) -> None:
        assert report.body == (
            "Report of modifications of node in Benches in OpenStreetMap.\n"
            "\n"
            "Start time: 2024-05-01 10:00:00 UTC.\n"
            "\n"
            "New set of IDs.\n"
            "* Check https://osm.org/node/100\n"
            "Changes in tags.\n"
            "\n"
            "End time: 2024-05-01 10:05:00 UTC\n"
            "\n"
            "This report was created by the OSM elements change tracker:\n"
            f"{PROJECT_URL}\n"
        )

    def test_attachment(self, report: RunReport) -> None:
        assert report.attachment.startswith("100\nfetched/node-100.json\n@@ -1 +1 @@")
        assert report.attachment.endswith('"name": "b"\n')

    def test_empty_run_still_finalizes(self) -> None:
        aggregator = ReportAggregator("Benches", ElementKind.WAY, started_at=START)
        report = aggregator.finalize(finished_at=END)

        assert not report.has_changes
        assert report.attachment == ""
        assert "End time: 2024-05-01 10:05:00 UTC" in report.body

    def test_skipped_not_in_body(self) -> None:
        aggregator = ReportAggregator("Benches", ElementKind.NODE, started_at=START)
        aggregator.record_skipped(NODE, "timed out")
        report = aggregator.finalize(finished_at=END)

        assert report.skipped == ["node-100.json: timed out"]
        assert "node-100" not in report.body
        assert not report.has_changes

    def test_summary(self, report: RunReport) -> None:
        assert report.summary() == "[2024-05-01 10:05 UTC] Benches (node): 1 new, 1 changed, 1 unchanged"
        assert report.subject == "Detection of differences in Benches"


class TestReportLine:
    def test_new_element(self) -> None:
        record = DiffRecord(ElementKey(ElementIdentity(ElementKind.WAY, 5)), Classification.NEW)
        assert report_line(record) == "New https://osm.org/way/5"

    def test_changed_id_list(self) -> None:
        record = DiffRecord(IDS, Classification.CHANGED)
        assert report_line(record) == "* Differences in the set of IDs."


# ---------------------------------------------------------------------------
# Delivery
# ---------------------------------------------------------------------------


class TestReportFileNotifier:
    def test_writes_both_files(self, tmp_path: Path, report: RunReport) -> None:
        out = tmp_path / "reports"
        ReportFileNotifier(out).send(report)

        assert (out / REPORT_NAME).read_text(encoding="utf-8") == report.body
        assert (out / ATTACHMENT_NAME).read_text(encoding="utf-8") == report.attachment


class TestEmailNotifier:
    def test_requires_recipients(self) -> None:
        with pytest.raises(ValueError):
            EmailNotifier([], sender="bot@example.com")

    def test_message_layout(self, report: RunReport) -> None:
        notifier = EmailNotifier(["a@example.com", "b@example.com"], sender="bot@example.com")
        msg = message_from_string(notifier.build_message(report).as_string())

        assert msg["Subject"] == "Detection of differences in Benches"
        assert msg["To"] == "a@example.com, b@example.com"
        body, attachment = msg.get_payload()
        assert body.get_payload(decode=True).decode("utf-8") == report.body
        assert attachment.get_filename() == ATTACHMENT_NAME
        assert attachment.get_payload(decode=True).decode("utf-8") == report.attachment

    def test_send_plain_smtp(self, report: RunReport) -> None:
        notifier = EmailNotifier(["a@example.com"], sender="bot@example.com", smtp_host="mail")
        with patch("osm_element_tracker.notifier.smtplib.SMTP") as smtp_cls:
            notifier.send(report)

        smtp_cls.assert_called_once_with("mail", 25)
        server = smtp_cls.return_value.__enter__.return_value
        server.starttls.assert_not_called()
        server.login.assert_not_called()
        sender, recipients, _ = server.sendmail.call_args.args
        assert sender == "bot@example.com"
        assert recipients == ["a@example.com"]

    def test_send_with_login(self, report: RunReport) -> None:
        notifier = EmailNotifier(
            ["a@example.com"], sender="bot@example.com", smtp_port=587,
            username="bot", password="secret",
        )
        with patch("osm_element_tracker.notifier.smtplib.SMTP") as smtp_cls:
            notifier.send(report)

        server = smtp_cls.return_value.__enter__.return_value
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("bot", "secret")
