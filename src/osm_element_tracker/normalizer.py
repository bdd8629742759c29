"""
OSM Element Tracker — Normalizer
=================================
Strips the volatile lines Overpass adds to every JSON response so that
re-fetching an unchanged element yields byte-identical text.

Only two fields are removed, line by line:

* ``"timestamp_osm_base"`` — database timestamp of the query.
* ``"generator"`` — Overpass version string.

Everything else (order, nesting, whitespace) is kept verbatim.
"""

from __future__ import annotations

import re

VOLATILE_FIELDS = ("timestamp_osm_base", "generator")

_VOLATILE_LINE = re.compile(
    r'^\s*"(?:' + "|".join(map(re.escape, VOLATILE_FIELDS)) + r')"\s*:'
)


def is_volatile_line(line: str) -> bool:
    return _VOLATILE_LINE.match(line) is not None


def normalize(snapshot: str) -> str:
    """Return *snapshot* without its volatile lines.

    Args:
        snapshot: Raw Overpass JSON text.

    Returns:
        The normalized text.  Line endings of kept lines are untouched.
    """
    return "".join(
        line for line in snapshot.splitlines(keepends=True) if not is_volatile_line(line)
    )
