"""
Tests for monitoring definitions and the data model
=====================================================
"""

from __future__ import annotations

from pathlib import Path

import pytest

from osm_element_tracker.definition import MonitoringDefinition
from osm_element_tracker.models import (
    CommitOutcome,
    ElementIdentity,
    ElementKey,
    ElementKind,
    IdListKey,
    IdRetrieval,
    IdSet,
    commit_message,
)
from shared.python.exceptions import InputValidationError, MonitoringDefinitionError


def _write(tmp_path: Path, name: str, text: str) -> Path:
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# File naming convention
# ---------------------------------------------------------------------------


class TestFileName:
    @pytest.mark.parametrize(
        ("name", "kind", "method"),
        [
            ("diff_node_ids", ElementKind.NODE, IdRetrieval.IDS),
            ("diff_way_query", ElementKind.WAY, IdRetrieval.QUERY),
            ("diff_relation_query_todo", ElementKind.RELATION, IdRetrieval.QUERY),
            ("diff_way_ids.txt", ElementKind.WAY, IdRetrieval.IDS),
        ],
    )
    def test_valid_names(self, name: str, kind: ElementKind, method: IdRetrieval) -> None:
        assert MonitoringDefinition.parse_file_name(Path(name)) == (kind, method)

    @pytest.mark.parametrize(
        ("name", "message"),
        [
            ("check_node_ids", "must start with 'diff_'"),
            ("diff_area_ids", "node, way or relation"),
            ("diff_node_list", "'ids' or 'query'"),
            ("diff_node", "diff_<kind>_<method>"),
        ],
    )
    def test_invalid_names(self, name: str, message: str) -> None:
        with pytest.raises(MonitoringDefinitionError, match=message):
            MonitoringDefinition.parse_file_name(Path(name))


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


class TestFromFile:
    def test_literal_ids(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "diff_node_ids", "Parques de Mosquera\n100\n200\n\n")
        definition = MonitoringDefinition.from_file(path)
        assert definition.title == "Parques de Mosquera"
        assert definition.literal_id_set() == IdSet(ElementKind.NODE, (100, 200))

    def test_query_body_kept_verbatim(self, tmp_path: Path) -> None:
        query = "[out:csv(::id)];\nway[highway=cycleway](4.5,-74.2,4.8,-74.0);\nout ids;\n"
        path = _write(tmp_path, "diff_way_query", "Ciclovías\n" + query)
        definition = MonitoringDefinition.from_file(path)
        assert definition.method is IdRetrieval.QUERY
        assert definition.query == query

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(InputValidationError, match="not found"):
            MonitoringDefinition.from_file(tmp_path / "diff_node_ids")

    def test_bad_literal_id(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "diff_node_ids", "Title\n100\nabc\n")
        with pytest.raises(MonitoringDefinitionError, match="abc"):
            MonitoringDefinition.from_file(path)

    def test_empty_query(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "diff_way_query", "Title\n\n")
        with pytest.raises(MonitoringDefinitionError, match="no query"):
            MonitoringDefinition.from_file(path)

    def test_missing_title_is_allowed(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        path = _write(tmp_path, "diff_node_ids", "\n1\n")
        definition = MonitoringDefinition.from_file(path)
        assert definition.title == ""
        assert "no title" in caplog.text

    def test_id_list_key_uses_title(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "diff_node_ids", "Parques de Mosquera\n1\n")
        key = MonitoringDefinition.from_file(path).id_list_key
        assert key.filename == "ids-ParquesdeMosquera.txt"


# ---------------------------------------------------------------------------
# Model helpers
# ---------------------------------------------------------------------------


class TestModels:
    def test_element_key_filename(self) -> None:
        key = ElementKey(ElementIdentity(ElementKind.RELATION, 42))
        assert key.filename == "relation-42.json"

    def test_id_list_key_sanitises_separators(self) -> None:
        assert IdListKey("a/b c").filename == "ids-a-bc.txt"

    def test_id_set_deduplicates_in_order(self) -> None:
        ids = IdSet(ElementKind.WAY, (3, 1, 3, 2))
        assert ids.ids == (3, 1, 2)
        assert ids.to_text() == "3\n1\n2\n"

    def test_commit_messages(self) -> None:
        element = ElementKey(ElementIdentity(ElementKind.NODE, 100))
        id_list = IdListKey("Parques")
        assert commit_message(element, CommitOutcome.INITIAL) == "Initial version of node 100."
        assert commit_message(element, CommitOutcome.NEW_VERSION) == "New version of node 100."
        assert commit_message(id_list, CommitOutcome.INITIAL) == "Initial version of ids-Parques.txt."

    def test_identity_url(self) -> None:
        assert ElementIdentity(ElementKind.WAY, 7).url == "https://osm.org/way/7"
