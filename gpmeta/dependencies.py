"""Discover which user-defined objects a function or aggregate refers to.

Functions are scanned through their argument and result type oids and, for
SQL-language functions only, through the identifiers in their body. Bodies in
other languages are not parsed, so references made only from inside a PL/pgSQL
(or any other procedural) body are not discovered.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from concurrent.futures import ThreadPoolExecutor

from gpmeta.errors import UnknownReference
from gpmeta.models import (
    Aggregate,
    CatalogCollections,
    CatalogObjectRef,
    Function,
    ObjectKind,
    qualify,
)
from gpmeta.names import NameResolver

logger = logging.getLogger(__name__)

_TYPE_KINDS = (ObjectKind.TYPE,)
_FUNCTION_KINDS = (ObjectKind.FUNCTION, ObjectKind.AGGREGATE)
_BODY_KINDS = (ObjectKind.TYPE, ObjectKind.FUNCTION, ObjectKind.AGGREGATE)

_COMMENT = re.compile(r"--[^\n]*|/\*.*?\*/", re.DOTALL)
_STRING_LITERAL = re.compile(r"[Ee]?'(?:[^']|'')*'")
_IDENT = r'(?:"(?:[^"]|"")+"|[A-Za-z_][A-Za-z0-9_$]*)'
_NAME_REF = re.compile(rf'(?<![\w$."]){_IDENT}(?:\s*\.\s*{_IDENT})?')
_IDENT_PART = re.compile(_IDENT)


class _DependencyList:
    """Qualified names in first-discovery order, without duplicates."""

    def __init__(self, owner_oid: int):
        self.owner_oid = owner_oid
        self.names: list[str] = []

    def add(self, ref: CatalogObjectRef | None):
        if ref is None or ref.builtin or ref.oid == self.owner_oid:
            return
        if ref.name not in self.names:
            self.names.append(ref.name)

    def add_oid(self, resolver: NameResolver, oid: int, kinds):
        try:
            self.add(resolver.resolve(oid, kinds))
        except UnknownReference as exc:
            # Array types and other implicit objects are not tracked
            logger.debug("Dropping unresolved reference: %s", exc)


def _normalize_ident(part: str) -> str:
    if part.startswith('"'):
        return part[1:-1].replace('""', '"')
    return part.lower()


def body_references(body: str, default_schema: str) -> list[str]:
    """Qualified names of every identifier in a SQL body, in order of appearance.

    String literals and comments are stripped first. Bare names are qualified
    with ``default_schema``.
    """
    text = _COMMENT.sub(" ", body)
    text = _STRING_LITERAL.sub(" ", text)

    names = []
    for match in _NAME_REF.finditer(text):
        parts = [_normalize_ident(p) for p in _IDENT_PART.findall(match.group(0))]
        if len(parts) == 2:
            name = qualify(parts[0], parts[1])
        else:
            name = qualify(default_schema, parts[0])
        if name not in names:
            names.append(name)
    return names


def extract_function_dependencies(function: Function, resolver: NameResolver) -> Function:
    """Return a copy of ``function`` with ``depends_upon`` filled in."""
    deps = _DependencyList(function.oid)

    for oid in function.argument_type_oids:
        deps.add_oid(resolver, oid, _TYPE_KINDS)
    deps.add_oid(resolver, function.result_type_oid, _TYPE_KINDS)

    if function.language == "sql" and function.body:
        for name in body_references(function.body, resolver.default_schema):
            for ref in resolver.lookup_name(name, _BODY_KINDS):
                deps.add(ref)

    return dataclasses.replace(function, depends_upon=tuple(deps.names))


def extract_aggregate_dependencies(aggregate: Aggregate, resolver: NameResolver) -> Aggregate:
    """Return a copy of ``aggregate`` depending on its user-defined component functions."""
    deps = _DependencyList(aggregate.oid)
    for oid in (aggregate.transition_oid, aggregate.preliminary_oid, aggregate.final_oid):
        deps.add_oid(resolver, oid, _FUNCTION_KINDS)
    return dataclasses.replace(aggregate, depends_upon=tuple(deps.names))


def construct_dependencies(
    collections: CatalogCollections,
    resolver: NameResolver,
    workers: int = 1,
) -> CatalogCollections:
    """Fill ``depends_upon`` for every function and aggregate.

    Each object is independent of the others and only reads the resolver, so
    the work is spread over a thread pool. Output order matches input order.
    """
    with ThreadPoolExecutor(max_workers=max(1, workers)) as executor:
        functions = tuple(
            executor.map(
                lambda f: extract_function_dependencies(f, resolver), collections.functions
            )
        )
        aggregates = tuple(
            executor.map(
                lambda a: extract_aggregate_dependencies(a, resolver), collections.aggregates
            )
        )

    logger.debug(
        "Constructed dependencies for %d functions and %d aggregates",
        len(functions),
        len(aggregates),
    )
    return dataclasses.replace(collections, functions=functions, aggregates=aggregates)
