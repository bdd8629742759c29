"""
OSM Element Tracker — Diff Classifier
======================================
Turns two differing snapshots into a :class:`~osm_element_tracker.models.DiffRecord`.

The diff is line based (:mod:`difflib` unified format).  Categories come
from matching the changed lines against a table of per-kind line
signatures written for Overpass' pretty-printed JSON, e.g. a changed
``  "lat": ...`` line means the latitude moved.  This is textual, not a
JSON comparison: a change outside every signature still yields a
``changed`` record, only with the generic summary.

Adding a kind or field means adding a :class:`ChangeRule` to
:data:`CHANGE_RULES`.
"""

from __future__ import annotations

import difflib
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from osm_element_tracker.models import (
    Classification,
    DiffRecord,
    ElementKey,
    ElementKind,
    HistoryKey,
    IdListKey,
)

GENERIC_SUMMARY = "Changes in other fields."
ID_LIST_SUMMARY = "The monitored id list changed."
SIDE_BY_SIDE_WIDTH = 40


@dataclass(frozen=True)
class ChangeRule:
    """A changed line matching *pattern* signals a change of *label*."""

    label: str
    pattern: re.Pattern[str]

    def matches(self, lines: Iterable[str]) -> bool:
        return any(self.pattern.match(line) for line in lines)


# the osm3s header members share the 4-space indent of tags
_TAG = re.compile(r'^ {4}"(?!copyright"|timestamp_areas_base")[^"]*": ')

# Patterns apply to the changed line without its leading "+"/"-".
CHANGE_RULES: dict[ElementKind, tuple[ChangeRule, ...]] = {
    ElementKind.NODE: (
        ChangeRule("latitude", re.compile(r'^ {2}"lat": ')),
        ChangeRule("longitude", re.compile(r'^ {2}"lon": ')),
        ChangeRule("tags", _TAG),
    ),
    ElementKind.WAY: (
        ChangeRule("nodes", re.compile(r"^ {4}\d+,?\s*$")),
        ChangeRule("tags", _TAG),
    ),
    ElementKind.RELATION: (
        ChangeRule("members", re.compile(r'^ {6}"(?:type|ref)": ')),
        ChangeRule("tags", _TAG),
        ChangeRule("roles", re.compile(r'^ {6}"role": ')),
    ),
}

# Labels reported together collapse into one broader label.
LABEL_MERGES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("latitude", "longitude"), "coordinates"),
)


def unified_diff(old: str, new: str, filename: str) -> list[str]:
    return list(
        difflib.unified_diff(
            old.splitlines(),
            new.splitlines(),
            fromfile=f"history/{filename}",
            tofile=f"fetched/{filename}",
            lineterm="",
        )
    )


def changed_lines(diff_lines: Iterable[str]) -> list[str]:
    """Bodies of the added/removed lines of a unified diff, headers excluded."""
    return [
        line[1:]
        for line in diff_lines
        if line[:1] in {"+", "-"} and not line.startswith(("+++", "---"))
    ]


def categorize(kind: ElementKind, diff_lines: Sequence[str]) -> tuple[str, ...]:
    """Return the change categories of *diff_lines* in rule order."""
    lines = changed_lines(diff_lines)
    labels = [rule.label for rule in CHANGE_RULES.get(kind, ()) if rule.matches(lines)]

    for parts, merged in LABEL_MERGES:
        if all(part in labels for part in parts):
            position = labels.index(parts[0])
            labels = [label for label in labels if label not in parts]
            labels.insert(position, merged)
    return tuple(labels)


def summarize(categories: Sequence[str]) -> str:
    if not categories:
        return GENERIC_SUMMARY
    return f"Changes in {', '.join(categories)}."


def side_by_side(old: str, new: str, width: int = SIDE_BY_SIDE_WIDTH) -> list[str]:
    """Two-column rendering of *old* vs *new* with ``|``, ``<``, ``>`` markers."""
    left, right = old.splitlines(), new.splitlines()
    rows: list[str] = []
    matcher = difflib.SequenceMatcher(a=left, b=right, autojunk=False)
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            rows.extend(f"{a:<{width}}   {b}" for a, b in zip(left[i1:i2], right[j1:j2]))
            continue
        old_part, new_part = left[i1:i2], right[j1:j2]
        for offset in range(max(len(old_part), len(new_part))):
            a = old_part[offset] if offset < len(old_part) else None
            b = new_part[offset] if offset < len(new_part) else None
            if a is not None and b is not None:
                rows.append(f"{a:<{width}} | {b}")
            elif a is not None:
                rows.append(f"{a:<{width}} <")
            else:
                rows.append(f"{'':<{width}} > {b}")
    return rows


def classify(key: HistoryKey, old: str, new: str) -> DiffRecord:
    """Describe how *new* differs from the committed *old* content of *key*.

    Only called for content that differs byte-wise.
    """
    diff_lines = unified_diff(old, new, key.filename)

    match key:
        case ElementKey(identity=identity):
            categories = categorize(identity.kind, diff_lines)
            return DiffRecord(
                key=key,
                classification=Classification.CHANGED,
                summary=summarize(categories),
                diff="\n".join(diff_lines),
                categories=categories,
            )
        case IdListKey():
            rendered = diff_lines + ["", *side_by_side(old, new)]
            return DiffRecord(
                key=key,
                classification=Classification.CHANGED,
                summary=ID_LIST_SUMMARY,
                diff="\n".join(rendered),
            )
    raise TypeError(f"Unsupported history key: {key!r}")
