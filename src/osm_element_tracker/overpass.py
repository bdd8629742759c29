"""
OSM Element Tracker — Overpass Client
======================================
Snapshot Fetcher: obtains the monitored id list and the raw JSON of one
element (with everything it references) from the Overpass API.

Responses are returned as text because history comparison is byte based;
nothing here parses the element JSON.
"""

from __future__ import annotations

import logging
import re
import time

import requests

from shared.python.exceptions import FetchError

from osm_element_tracker import __version__
from osm_element_tracker.definition import MonitoringDefinition, parse_id_lines
from osm_element_tracker.models import ElementIdentity, IdRetrieval, IdSet

logger = logging.getLogger("osm_element_tracker.overpass")

USER_AGENT = f"osm-element-tracker/{__version__} (+https://github.com/MaptimeBogota/OSM-elements-change-tracker)"

# Overpass reports query problems inside a 200 response, either as a
# top-level "remark" member of the JSON output or as an HTML/XML error page.
_REMARK_ERROR = re.compile(r'^  "remark"\s*:\s*"[^"]*error', re.IGNORECASE | re.MULTILINE)
_PAGE_ERROR = re.compile(r"<strong[^>]*>\s*Error\s*</strong>|^\s*Error:", re.IGNORECASE | re.MULTILINE)


def build_element_query(identity: ElementIdentity) -> str:
    """Query returning *identity* plus the elements it references."""
    return (
        "[out:json];\n"
        f"{identity.kind.value}({identity.element_id});\n"
        "(._;>;);\n"
        "out;\n"
    )


def service_error(body: str) -> str | None:
    """Return the error text embedded in an Overpass response, if any."""
    if match := _REMARK_ERROR.search(body):
        return match.group(0).strip()
    if not body.lstrip().startswith("{") and (match := _PAGE_ERROR.search(body)):
        line_end = body.find("\n", match.start())
        return body[match.start():line_end if line_end != -1 else None].strip()
    return None


class OverpassClient:
    """Thin wrapper around :mod:`requests` with retry and timeout.

    Args:
        api_url: Overpass interpreter endpoint.
        max_retries: Attempts per request on transport errors.
        retry_delay: Seconds to wait between attempts.
        timeout: Per-request timeout in seconds.  A request that times out
            counts as a failed attempt.
        session: Optional pre-configured session (tests, proxies).
    """

    DEFAULT_API_URL = "https://overpass-api.de/api/interpreter"

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        max_retries: int = 3,
        retry_delay: float = 5.0,
        timeout: float = 60.0,
        session: requests.Session | None = None,
    ) -> None:
        if max_retries < 1:
            raise ValueError("max_retries must be ≥ 1")
        self.api_url = api_url
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers["User-Agent"] = USER_AGENT

    def fetch_id_set(self, definition: MonitoringDefinition) -> IdSet:
        """Return the ids monitored by *definition*.

        Literal definitions are answered without network access.  Query
        definitions are submitted verbatim; the first response line is
        the CSV header and is discarded.

        Raises:
            FetchError: If the query fails or the response is not an id list.
        """
        if definition.method is IdRetrieval.IDS:
            return definition.literal_id_set()

        body = self._post(definition.query, target="id list")
        lines = body.splitlines()[1:]
        try:
            ids = parse_id_lines(lines)
        except ValueError as exc:
            raise FetchError("id list", str(exc)) from exc
        logger.debug("Id list for %r: %d ids", definition.title, len(ids))
        return IdSet(definition.kind, tuple(ids))

    def fetch_snapshot(self, identity: ElementIdentity) -> str:
        """Return the raw Overpass JSON for *identity*.

        Raises:
            FetchError: On transport failure, timeout, or an error body.
        """
        query = build_element_query(identity)
        logger.debug("Query for %s:\n%s", identity, query)
        return self._post(query, target=str(identity))

    def _post(self, payload: str, *, target: str) -> str:
        for attempt in range(1, self.max_retries + 1):
            try:
                response = self.session.post(
                    self.api_url, data={"data": payload}, timeout=self.timeout
                )
                response.raise_for_status()
            except requests.RequestException as exc:
                logger.warning(
                    "Overpass attempt %d/%d for %s failed: %s",
                    attempt, self.max_retries, target, exc,
                )
                if attempt < self.max_retries:
                    time.sleep(self.retry_delay)
                    continue
                raise FetchError(target, str(exc)) from exc

            body = response.text
            if error := service_error(body):
                raise FetchError(target, f"Overpass returned an error: {error}")
            return body

        raise FetchError(target, "no attempt made")  # unreachable but satisfies mypy
