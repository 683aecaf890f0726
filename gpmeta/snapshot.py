"""Assemble the ordered, serializable result of one extraction."""

from __future__ import annotations

import dataclasses
import enum
from dataclasses import dataclass, field

from gpmeta.errors import GraphError
from gpmeta.graph import NodeKey, Ordering, node_key
from gpmeta.models import CatalogCollections, ObjectKind, SessionGUCs


@dataclass(frozen=True)
class SnapshotEntry:
    """One object definition at its position in the recreation sequence."""

    kind: ObjectKind
    key: str
    record: object
    cycle: int | None = None
    depends_on: tuple[NodeKey, ...] = ()


@dataclass(frozen=True)
class MetadataSnapshot:
    """Every extracted object in recreation order, plus the cycle report.

    ``snapshot_id`` names the transaction snapshot the readers shared. It
    differs on every run, so it takes no part in equality or serialization.
    """

    entries: tuple[SnapshotEntry, ...] = ()
    cycles: tuple[tuple[NodeKey, ...], ...] = ()
    session_gucs: SessionGUCs | None = None
    database_gucs: tuple[str, ...] = ()
    snapshot_id: str | None = field(default=None, compare=False)
    server_version: int = 0
    warnings: tuple[str, ...] = ()

    def __len__(self):
        return len(self.entries)

    def records(self, kind: ObjectKind | None = None) -> list:
        """Records in sequence order, optionally only those of one kind."""
        return [e.record for e in self.entries if kind is None or e.kind == kind]

    def to_dict(self) -> dict:
        """Plain data for serialization; enum members become their catalog codes."""
        return {
            "server_version": self.server_version,
            "session_gucs": _plain(self.session_gucs) if self.session_gucs else None,
            "database_gucs": list(self.database_gucs),
            "objects": [
                {
                    "kind": entry.kind.value,
                    "key": entry.key,
                    "cycle": entry.cycle,
                    "depends_on": [str(dep) for dep in entry.depends_on],
                    "definition": _plain(entry.record),
                }
                for entry in self.entries
            ],
            "cycles": [[str(member) for member in members] for members in self.cycles],
        }


def _plain(value):
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _plain(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (tuple, list)):
        return [_plain(v) for v in value]
    return value


def assemble_snapshot(
    collections: CatalogCollections,
    ordering: Ordering,
    snapshot_id: str | None = None,
    server_version: int = 0,
) -> MetadataSnapshot:
    """Lay the records out in ``ordering`` and attach the cycle report.

    Pure: the same collections and ordering always give an equal snapshot.
    Raises GraphError if the ordering names an object the collections lack.
    """
    records = {node_key(record): record for record in collections.objects()}

    entries = []
    for key in ordering.order:
        if key not in records:
            raise GraphError(f"ordering references {key}, which was not extracted", kind=key.kind)
        entries.append(
            SnapshotEntry(
                kind=key.kind,
                key=key.name,
                record=records[key],
                cycle=ordering.cycle_of(key),
                depends_on=ordering.edges.get(key, ()),
            )
        )

    warnings = tuple(
        "dependency cycle: " + ", ".join(str(member) for member in members)
        for members in ordering.cycles
    )
    return MetadataSnapshot(
        entries=tuple(entries),
        cycles=ordering.cycles,
        session_gucs=collections.session_gucs,
        database_gucs=collections.database_gucs,
        snapshot_id=snapshot_id,
        server_version=server_version,
        warnings=warnings,
    )
