"""
Tests for the Overpass client
==============================
All HTTP calls are mocked via the ``responses`` library — no real
network requests are made during testing.
"""

from __future__ import annotations

from pathlib import Path

import pytest
import requests
import responses as rsps_lib

from osm_element_tracker.definition import MonitoringDefinition
from osm_element_tracker.models import ElementIdentity, ElementKind, IdSet
from osm_element_tracker.overpass import OverpassClient, build_element_query, service_error
from shared.python.exceptions import FetchError

from tests.samples import node_json, overpass_json

API_URL = "https://overpass.test/api/interpreter"


@pytest.fixture()
def client() -> OverpassClient:
    return OverpassClient(api_url=API_URL, max_retries=2, retry_delay=0, timeout=5)


@pytest.fixture()
def query_definition(tmp_path: Path) -> MonitoringDefinition:
    path = tmp_path / "diff_way_query"
    path.write_text("Ciclovías\n[out:csv(::id)];\nway[highway=cycleway];\nout ids;\n", encoding="utf-8")
    return MonitoringDefinition.from_file(path)


# ---------------------------------------------------------------------------
# Element snapshots
# ---------------------------------------------------------------------------


class TestFetchSnapshot:
    @rsps_lib.activate
    def test_returns_raw_text(self, client: OverpassClient) -> None:
        body = overpass_json(node_json(100, 4.6, -74.08))
        rsps_lib.add(rsps_lib.POST, API_URL, body=body, status=200)

        result = client.fetch_snapshot(ElementIdentity(ElementKind.NODE, 100))

        assert result == body
        sent = rsps_lib.calls[0].request.body
        assert "node%28100%29" in sent
        assert rsps_lib.calls[0].request.headers["User-Agent"].startswith("osm-element-tracker/")

    def test_query_includes_referenced_elements(self) -> None:
        query = build_element_query(ElementIdentity(ElementKind.WAY, 7))
        assert query.startswith("[out:json];")
        assert "way(7);" in query
        assert "(._;>;);" in query

    @rsps_lib.activate
    def test_remark_error_is_fetch_error(self, client: OverpassClient) -> None:
        body = '{\n  "version": 0.6,\n  "elements": [],\n  "remark": "runtime error: Query timed out"\n}\n'
        rsps_lib.add(rsps_lib.POST, API_URL, body=body, status=200)

        with pytest.raises(FetchError, match="runtime error"):
            client.fetch_snapshot(ElementIdentity(ElementKind.NODE, 1))

    @rsps_lib.activate
    def test_element_with_remark_tag_is_fetched(self, client: OverpassClient) -> None:
        body = overpass_json(node_json(100, 4.6, -74.08, {"remark": "fix error in name"}))
        rsps_lib.add(rsps_lib.POST, API_URL, body=body, status=200)

        assert client.fetch_snapshot(ElementIdentity(ElementKind.NODE, 100)) == body

    @rsps_lib.activate
    def test_http_error_retried_then_raised(self, client: OverpassClient) -> None:
        rsps_lib.add(rsps_lib.POST, API_URL, status=504)

        with pytest.raises(FetchError, match="node 1"):
            client.fetch_snapshot(ElementIdentity(ElementKind.NODE, 1))
        assert len(rsps_lib.calls) == 2

    @rsps_lib.activate
    def test_timeout_is_fetch_error(self, client: OverpassClient) -> None:
        rsps_lib.add(rsps_lib.POST, API_URL, body=requests.exceptions.ReadTimeout("read timed out"))

        with pytest.raises(FetchError, match="timed out"):
            client.fetch_snapshot(ElementIdentity(ElementKind.NODE, 1))

    @rsps_lib.activate
    def test_recovers_on_second_attempt(self, client: OverpassClient) -> None:
        body = overpass_json(node_json(1, 1.0, 2.0))
        rsps_lib.add(rsps_lib.POST, API_URL, status=429)
        rsps_lib.add(rsps_lib.POST, API_URL, body=body, status=200)

        assert client.fetch_snapshot(ElementIdentity(ElementKind.NODE, 1)) == body


# ---------------------------------------------------------------------------
# Id lists
# ---------------------------------------------------------------------------


class TestFetchIdSet:
    @rsps_lib.activate
    def test_query_drops_header_line(
        self, client: OverpassClient, query_definition: MonitoringDefinition
    ) -> None:
        rsps_lib.add(rsps_lib.POST, API_URL, body="@id\n300\n100\n200\n", status=200)

        id_set = client.fetch_id_set(query_definition)

        assert id_set == IdSet(ElementKind.WAY, (300, 100, 200))

    @rsps_lib.activate
    def test_literal_list_needs_no_request(self, client: OverpassClient, tmp_path: Path) -> None:
        path = tmp_path / "diff_node_ids"
        path.write_text("Title\n100\n200\n", encoding="utf-8")

        id_set = client.fetch_id_set(MonitoringDefinition.from_file(path))

        assert id_set.ids == (100, 200)
        assert len(rsps_lib.calls) == 0

    @rsps_lib.activate
    def test_error_page_is_fetch_error(
        self, client: OverpassClient, query_definition: MonitoringDefinition
    ) -> None:
        page = (
            "<html><body>\n"
            '<p><strong style="color:#FF0000">Error</strong>: line 2: parse error: Unknown type "wya"</p>\n'
            "</body></html>\n"
        )
        rsps_lib.add(rsps_lib.POST, API_URL, body=page, status=200)

        with pytest.raises(FetchError, match="parse error"):
            client.fetch_id_set(query_definition)

    @rsps_lib.activate
    def test_unexpected_line_is_fetch_error(
        self, client: OverpassClient, query_definition: MonitoringDefinition
    ) -> None:
        rsps_lib.add(rsps_lib.POST, API_URL, body="@id\n100\nway 200\n", status=200)

        with pytest.raises(FetchError, match="id list"):
            client.fetch_id_set(query_definition)


class TestServiceError:
    def test_plain_data_is_not_an_error(self) -> None:
        assert service_error(overpass_json(node_json(1, 1.0, 2.0, {"name": "Error Street"}))) is None

    def test_csv_is_not_an_error(self) -> None:
        assert service_error("@id\n1\n2\n") is None

    def test_remark_tag_is_not_an_error(self) -> None:
        body = overpass_json(node_json(100, 4.6, -74.08, {"remark": "fix error in name"}))
        assert service_error(body) is None

    def test_top_level_remark_is_an_error(self) -> None:
        body = '{\n  "elements": [],\n  "remark": "runtime error: out of memory"\n}\n'
        assert service_error(body) == '"remark": "runtime error'
