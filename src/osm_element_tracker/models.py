"""
OSM Element Tracker — Data Model
=================================
Plain value types shared by every stage of a run.

Design:
    * :class:`ElementIdentity` — (kind, id) key under which history is tracked.
    * :class:`IdSet` — the identities monitored by one run.
    * :class:`ElementKey` / :class:`IdListKey` — the two kinds of history key,
      combined in the :data:`HistoryKey` union and dispatched with ``match``.
    * :class:`CommitResult` — what the history store did with a snapshot.
    * :class:`DiffRecord` — per-entity finding fed to the report.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum

OSM_ELEMENT_URL = "https://osm.org"


class ElementKind(str, Enum):
    """OSM element kinds a run can monitor."""

    NODE = "node"
    WAY = "way"
    RELATION = "relation"


class IdRetrieval(str, Enum):
    """How the monitored ids are obtained."""

    IDS = "ids"      # literal list in the definition file
    QUERY = "query"  # Overpass query returning the ids


class CommitOutcome(str, Enum):
    INITIAL = "initial"
    NEW_VERSION = "new_version"
    UNCHANGED = "unchanged"


class Classification(str, Enum):
    """Report tag of a processed entity."""

    NEW = "new"
    CHANGED = "changed"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class ElementIdentity:
    """Immutable identity of one OSM element.

    Attributes:
        kind: Element kind.
        element_id: Numeric OSM id.
    """

    kind: ElementKind
    element_id: int

    def __str__(self) -> str:
        return f"{self.kind.value} {self.element_id}"

    @property
    def url(self) -> str:
        """Browse URL of the element on openstreetmap.org."""
        return f"{OSM_ELEMENT_URL}/{self.kind.value}/{self.element_id}"


@dataclass(frozen=True)
class IdSet:
    """Ordered set of identities monitored during one run.

    Attributes:
        kind: Shared element kind of the run.
        ids: Element ids in the order they were read (duplicates removed).
    """

    kind: ElementKind
    ids: tuple[int, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "ids", tuple(dict.fromkeys(self.ids)))

    def __len__(self) -> int:
        return len(self.ids)

    def identities(self) -> list[ElementIdentity]:
        return [ElementIdentity(self.kind, element_id) for element_id in self.ids]

    def to_text(self) -> str:
        """Serialise to the id-list artifact format: one id per line."""
        return "".join(f"{element_id}\n" for element_id in self.ids)


# ---------------------------------------------------------------------------
# History keys
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ElementKey:
    """History key of a single element (``<kind>-<id>.json``)."""

    identity: ElementIdentity

    @property
    def filename(self) -> str:
        return f"{self.identity.kind.value}-{self.identity.element_id}.json"


@dataclass(frozen=True)
class IdListKey:
    """History key of a monitored id-list artifact (``ids-<title>.txt``).

    Attributes:
        title: Run title; whitespace is dropped and path separators are
            replaced to build the file name.
    """

    title: str

    @property
    def filename(self) -> str:
        name = re.sub(r"\s+", "", self.title)
        name = name.replace("/", "-").replace("\\", "-")
        return f"ids-{name}.txt"


HistoryKey = ElementKey | IdListKey


def commit_message(key: HistoryKey, outcome: CommitOutcome) -> str:
    """Build the self-describing commit message for *key*."""
    prefix = "Initial version" if outcome is CommitOutcome.INITIAL else "New version"
    match key:
        case ElementKey(identity=identity):
            return f"{prefix} of {identity}."
        case IdListKey():
            return f"{prefix} of {key.filename}."
    raise TypeError(f"Unsupported history key: {key!r}")


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CommitResult:
    """Outcome of :meth:`~osm_element_tracker.history.HistoryStore.commit`.

    Attributes:
        key: The history key.
        outcome: Initial version, new version, or unchanged (no commit).
        content: The normalized content now stored for the key.
        previous: Last committed content before this call, ``None`` for
            initial versions.
        revision: Commit hash, ``None`` when nothing was committed.
    """

    key: HistoryKey
    outcome: CommitOutcome
    content: str
    previous: str | None = None
    revision: str | None = None

    @property
    def committed(self) -> bool:
        return self.outcome is not CommitOutcome.UNCHANGED


@dataclass(frozen=True)
class DiffRecord:
    """Finding for one processed entity.

    Attributes:
        key: Element or id-list key.
        classification: New, changed, or unchanged.
        summary: Human-readable change categories (empty for new/unchanged).
        diff: Raw textual diff (or the full content for new entities).
        categories: Category labels matched by the classifier, in rule order.
    """

    key: HistoryKey
    classification: Classification
    summary: str = ""
    diff: str = ""
    categories: tuple[str, ...] = field(default_factory=tuple)
