"""Reverse index from catalog identifiers to qualified names.

The index is built once per extraction from every record the readers
produced, then handed explicitly to the dependency extractor and the graph
builder. It is never modified after :meth:`NameResolver.build` returns.
"""

from __future__ import annotations

from collections.abc import Iterable
from types import MappingProxyType

from gpmeta.errors import UnknownReference
from gpmeta.models import SYSTEM_SCHEMAS, CatalogCollections, CatalogObjectRef, ObjectKind

# Oids below this value are assigned during initdb and belong to the server
FIRST_NORMAL_OBJECT_ID = 16384


class NameResolver:
    """Immutable oid <-> name index over all extracted catalog objects.

    Example:
        >>> ref = CatalogObjectRef(16500, ObjectKind.TYPE, "public.point3", "public")
        >>> resolver = NameResolver.build([ref])
        >>> resolver.qualified_name(16500)
        'public.point3'
        >>> resolver.qualified_name(0) is None
        True
    """

    def __init__(
        self,
        by_oid: dict[int, tuple[CatalogObjectRef, ...]],
        by_name: dict[str, tuple[CatalogObjectRef, ...]],
        default_schema: str,
    ):
        self._by_oid = MappingProxyType(by_oid)
        self._by_name = MappingProxyType(by_name)
        self.default_schema = default_schema

    @classmethod
    def build(cls, refs: Iterable[CatalogObjectRef], default_schema: str = "public") -> NameResolver:
        by_oid: dict[int, list[CatalogObjectRef]] = {}
        by_name: dict[str, list[CatalogObjectRef]] = {}
        for ref in refs:
            if ref.oid:
                entries = by_oid.setdefault(ref.oid, [])
                if ref not in entries:
                    entries.append(ref)
            names = {ref.name, ref.name.split("(", 1)[0]}
            for name in names:
                entries = by_name.setdefault(name, [])
                if ref not in entries:
                    entries.append(ref)
        return cls(
            {oid: tuple(v) for oid, v in by_oid.items()},
            {name: tuple(v) for name, v in by_name.items()},
            default_schema,
        )

    def __len__(self):
        return len(self._by_oid)

    def resolve(self, oid: int, kinds: Iterable[ObjectKind] | None = None) -> CatalogObjectRef | None:
        """Return the object an oid identifies.

        Returns None when ``oid`` is 0 (the attribute was never set). Raises
        UnknownReference when the oid is not in the index; oids assigned at
        initdb time resolve to an anonymous built-in reference instead.
        """
        if not oid:
            return None
        kinds = tuple(kinds) if kinds else ()
        for ref in self._by_oid.get(oid, ()):
            if not kinds or ref.kind in kinds:
                return ref
        if oid < FIRST_NORMAL_OBJECT_ID:
            kind = kinds[0] if kinds else ObjectKind.TYPE
            return CatalogObjectRef(oid=oid, kind=kind, name="", builtin=True)
        kind = kinds[0] if len(kinds) == 1 else None
        raise UnknownReference("no catalog object with this oid", kind=kind, oid=oid)

    def qualified_name(self, oid: int, kinds: Iterable[ObjectKind] | None = None) -> str | None:
        ref = self.resolve(oid, kinds)
        return ref.name if ref is not None else None

    def lookup_name(self, name: str, kinds: Iterable[ObjectKind] | None = None) -> tuple[CatalogObjectRef, ...]:
        """All objects with this qualified name; every overload for a bare function name."""
        refs = self._by_name.get(name, ())
        if kinds:
            kinds = tuple(kinds)
            refs = tuple(ref for ref in refs if ref.kind in kinds)
        return refs

    def oid_for_name(self, name: str, kind: ObjectKind) -> int:
        """Resolve a qualified name back to its oid, raising UnknownReference if absent."""
        refs = self.lookup_name(name, (kind,))
        if not refs:
            raise UnknownReference(f"no {kind.value} named {name}", kind=kind)
        return refs[0].oid

    def display_name(self, ref: CatalogObjectRef) -> str:
        """Name for display, dropping the default schema when that is unambiguous.

        Dependency edges always use ``ref.name``; this form is for humans only.
        """
        if not ref.schema or ref.schema != self.default_schema:
            return ref.name
        bare = ref.bare_name
        others = [
            other
            for refs in self._by_name.values()
            for other in refs
            if other.kind == ref.kind and other.bare_name == bare and other.schema != ref.schema
        ]
        if others:
            return ref.name
        signature = ref.name[len(ref.name.split("(", 1)[0]):]
        return bare + signature


def catalog_refs(collections: CatalogCollections) -> list[CatalogObjectRef]:
    """Collect a reference for every object the resolver must know about.

    Functions come from the function-info lookup so that built-in functions
    are recognised; anything in a system schema counts as built-in, matching
    what the functions reader leaves out. User functions missing from the
    lookup fall back to their records.
    """
    refs: list[CatalogObjectRef] = []
    for role in collections.roles:
        refs.append(CatalogObjectRef(role.oid, ObjectKind.ROLE, role.name))
    for queue in collections.resource_queues:
        refs.append(CatalogObjectRef(queue.oid, ObjectKind.RESOURCE_QUEUE, queue.name))
    for tablespace in collections.tablespaces:
        refs.append(CatalogObjectRef(tablespace.oid, ObjectKind.TABLESPACE, tablespace.name))
    for language in collections.languages:
        refs.append(CatalogObjectRef(language.oid, ObjectKind.LANGUAGE, language.name))
    for conversion in collections.conversions:
        refs.append(
            CatalogObjectRef(conversion.oid, ObjectKind.CONVERSION, conversion.key, conversion.schema)
        )
    for cast in collections.casts:
        refs.append(CatalogObjectRef(cast.oid, ObjectKind.CAST, cast.key))
    for type_ in collections.types:
        refs.append(CatalogObjectRef(type_.oid, ObjectKind.TYPE, type_.key, type_.schema))

    for info in collections.function_info.values():
        kind = ObjectKind.AGGREGATE if info.is_aggregate else ObjectKind.FUNCTION
        builtin = info.is_internal or info.schema in SYSTEM_SCHEMAS
        refs.append(CatalogObjectRef(info.oid, kind, info.signature, info.schema, builtin=builtin))
    for record in (*collections.functions, *collections.aggregates):
        if record.oid not in collections.function_info:
            refs.append(CatalogObjectRef(record.oid, record.kind, record.key, record.schema))
    return refs
