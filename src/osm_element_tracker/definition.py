"""
OSM Element Tracker — Monitoring Definition
============================================
Loads the text file that says what a run watches.

File naming convention::

    diff_<kind>_<method>[_anything]

    diff_way_query        ways returned by the Overpass query in the file
    diff_relation_ids     relations listed in the file, one id per line

The first line of the file is the run title.  The remaining lines are
either literal ids (``ids``) or one Overpass query submitted verbatim
(``query``).  A query must print the ids as CSV, for example::

    Cycleways in Bogotá
    [out:csv(::id)];
    area[name="Bogotá"]->.a;
    way[highway=cycleway](area.a);
    out ids;
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from shared.python.exceptions import MonitoringDefinitionError
from shared.python.validators import Validators

from osm_element_tracker.models import ElementKind, IdListKey, IdRetrieval, IdSet

logger = logging.getLogger("osm_element_tracker.definition")

FILE_PREFIX = "diff"


def parse_id_lines(lines: list[str]) -> list[int]:
    """Parse one id per line, ignoring blank lines.

    Raises:
        ValueError: On the first line that is not a positive integer.
    """
    ids: list[int] = []
    for line in lines:
        line = line.strip()
        if not line:
            continue
        if not line.isdigit():
            raise ValueError(f"not an element id: {line!r}")
        ids.append(int(line))
    return ids


@dataclass(frozen=True)
class MonitoringDefinition:
    """What to watch during a run.

    Attributes:
        path: Source file.
        kind: Element kind shared by every monitored id.
        method: Literal id list or Overpass query.
        title: Free-text title (first line of the file).
        body: Everything after the title line.
    """

    path: Path
    kind: ElementKind
    method: IdRetrieval
    title: str
    body: str

    @classmethod
    def from_file(cls, path: Path) -> "MonitoringDefinition":
        """Read and validate a definition file.

        Raises:
            InputValidationError: If the file does not exist.
            MonitoringDefinitionError: If the file name breaks the naming
                convention or a literal id line is not numeric.
        """
        path = Path(path)
        Validators.assert_file_exists(path)
        kind, method = cls.parse_file_name(path)

        text = path.read_text(encoding="utf-8")
        title, _, body = text.partition("\n")
        title = title.strip()
        if not title:
            logger.warning("Definition %s has no title", path.name)

        definition = cls(path=path, kind=kind, method=method, title=title, body=body)
        if method is IdRetrieval.IDS:
            # fail early on malformed literal lists
            definition.literal_id_set()
        elif not body.strip():
            raise MonitoringDefinitionError(str(path), "query definition has no query")
        return definition

    @staticmethod
    def parse_file_name(path: Path) -> tuple[ElementKind, IdRetrieval]:
        """Extract element kind and id retrieval method from the file name."""
        tokens = Path(path).stem.split("_")
        if tokens[0] != FILE_PREFIX:
            raise MonitoringDefinitionError(
                str(path), f"file name must start with '{FILE_PREFIX}_'"
            )
        if len(tokens) < 3:
            raise MonitoringDefinitionError(
                str(path), "file name must look like diff_<kind>_<method>"
            )
        try:
            kind = ElementKind(tokens[1])
        except ValueError:
            raise MonitoringDefinitionError(
                str(path), f"middle token must be node, way or relation, got {tokens[1]!r}"
            ) from None
        try:
            method = IdRetrieval(tokens[2])
        except ValueError:
            raise MonitoringDefinitionError(
                str(path), f"last token must be 'ids' or 'query', got {tokens[2]!r}"
            ) from None
        return kind, method

    @property
    def query(self) -> str:
        """The Overpass query payload (``query`` definitions only)."""
        return self.body

    @property
    def id_list_key(self) -> IdListKey:
        return IdListKey(self.title)

    def literal_id_set(self) -> IdSet:
        """Ids listed in the file (``ids`` definitions only)."""
        try:
            ids = parse_id_lines(self.body.splitlines())
        except ValueError as exc:
            raise MonitoringDefinitionError(str(self.path), str(exc)) from exc
        return IdSet(self.kind, tuple(ids))
