"""Dependency graph construction and topological sequencing.

Every extracted record becomes a node keyed by ``NodeKey(kind, name)``. Edges
point from an object to the objects it depends on. The sequencer runs
Tarjan's strongly connected components algorithm, which emits each component
only after every component it can reach, so dependencies always come first.
Components with more than one member are cycles: they are emitted in
visitation order and reported, never broken.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import NamedTuple

from gpmeta.errors import GraphError, UnknownReference
from gpmeta.models import (
    Aggregate,
    Cast,
    CatalogCollections,
    Conversion,
    Function,
    ObjectKind,
    ProceduralLanguage,
    Role,
    RoleMember,
    Type,
)
from gpmeta.names import NameResolver

logger = logging.getLogger(__name__)

_TYPE_KINDS = (ObjectKind.TYPE,)
_FUNCTION_KINDS = (ObjectKind.FUNCTION, ObjectKind.AGGREGATE)

# Roles created by initdb are never extracted, grants may still name them
_BUILTIN_ROLE_PREFIX = "pg_"


class NodeKey(NamedTuple):
    kind: ObjectKind
    name: str

    def __str__(self):
        return f"{self.kind.value} {self.name}"


def node_key(record) -> NodeKey:
    return NodeKey(record.kind, record.key)


@dataclass
class DependencyGraph:
    """Nodes in insertion order and, per node, the nodes it depends on."""

    nodes: dict[NodeKey, object] = field(default_factory=dict)
    edges: dict[NodeKey, list[NodeKey]] = field(default_factory=dict)

    def add_node(self, record) -> NodeKey | None:
        key = node_key(record)
        if key in self.nodes:
            logger.warning("Duplicate catalog object %s ignored", key)
            return None
        self.nodes[key] = record
        self.edges[key] = []
        return key

    def add_edge(self, source: NodeKey, target: NodeKey):
        if source == target:
            return
        if target not in self.nodes:
            raise GraphError(f"{source} depends on {target}, which was not extracted", kind=source.kind)
        if target not in self.edges[source]:
            self.edges[source].append(target)

    @property
    def edge_count(self) -> int:
        return sum(len(targets) for targets in self.edges.values())


@dataclass(frozen=True)
class Ordering:
    """Dependency-first node order plus the cycles found while producing it."""

    order: tuple[NodeKey, ...]
    cycles: tuple[tuple[NodeKey, ...], ...] = ()
    edges: dict[NodeKey, tuple[NodeKey, ...]] = field(default_factory=dict)

    def position(self, key: NodeKey) -> int:
        return self.order.index(key)

    def cycle_of(self, key: NodeKey) -> int | None:
        """Index of the reported cycle containing ``key``, or None."""
        for i, members in enumerate(self.cycles):
            if key in members:
                return i
        return None


# ============================================================================
# Graph construction
# ============================================================================


def build_graph(collections: CatalogCollections, resolver: NameResolver) -> DependencyGraph:
    """Merge every record and its dependencies into one graph.

    Edges come from ``depends_upon`` lists plus the structural references each
    kind carries (a role's resource queue, a cast's function, a type's I/O
    functions, ...). References to built-in objects are skipped. A reference
    to a user object that is not in the graph raises GraphError.
    """
    graph = DependencyGraph()
    for record in collections.objects():
        graph.add_node(record)

    named = {
        record.key: node_key(record)
        for record in (*collections.types, *collections.functions, *collections.aggregates)
    }

    for key, record in list(graph.nodes.items()):
        for target in _structural_targets(record, graph, resolver):
            # Kinds left out of this extraction cannot be edge targets
            if target.kind in collections.extracted:
                graph.add_edge(key, target)
        for name in getattr(record, "depends_upon", ()):
            if name not in named:
                raise GraphError(f"{key} depends on unknown object {name}", kind=key.kind, oid=record.oid)
            graph.add_edge(key, named[name])

    logger.debug("Built dependency graph: %d nodes, %d edges", len(graph.nodes), graph.edge_count)
    return graph


def _structural_targets(record, graph: DependencyGraph, resolver: NameResolver) -> list[NodeKey]:
    if isinstance(record, Role):
        if record.resource_queue:
            return [NodeKey(ObjectKind.RESOURCE_QUEUE, record.resource_queue)]
        return []
    if isinstance(record, RoleMember):
        targets = [
            NodeKey(ObjectKind.ROLE, name)
            for name in (record.role, record.member)
            if not name.startswith(_BUILTIN_ROLE_PREFIX)
        ]
        # A grantor that was dropped or left out adds no edge
        grantor = NodeKey(ObjectKind.ROLE, record.grantor)
        if record.grantor and grantor in graph.nodes:
            targets.append(grantor)
        elif record.grantor and not record.grantor.startswith(_BUILTIN_ROLE_PREFIX):
            logger.debug("Grantor %s of %s was not extracted", record.grantor, record.key)
        return targets
    if isinstance(record, Function):
        language = NodeKey(ObjectKind.LANGUAGE, record.language)
        return [language] if language in graph.nodes else []
    if isinstance(record, ProceduralLanguage):
        return _resolve_oids(
            resolver, (record.handler_oid, record.inline_oid, record.validator_oid), _FUNCTION_KINDS
        )
    if isinstance(record, Cast):
        return _resolve_oids(resolver, (record.source_oid, record.target_oid), _TYPE_KINDS) + _resolve_oids(
            resolver, (record.function_oid,), _FUNCTION_KINDS
        )
    if isinstance(record, Conversion):
        return _resolve_oids(resolver, (record.function_oid,), _FUNCTION_KINDS)
    if isinstance(record, Type):
        io_functions = (record.input_oid, record.output_oid, record.receive_oid, record.send_oid)
        return _resolve_oids(resolver, io_functions, _FUNCTION_KINDS) + _resolve_oids(
            resolver, (record.base_type_oid, *record.attribute_type_oids), _TYPE_KINDS
        )
    if isinstance(record, Aggregate):
        # Component functions arrive through depends_upon
        return []
    return []


def _resolve_oids(resolver: NameResolver, oids, kinds) -> list[NodeKey]:
    targets = []
    for oid in oids:
        try:
            ref = resolver.resolve(oid, kinds)
        except UnknownReference as exc:
            logger.debug("Dropping unresolved reference: %s", exc)
            continue
        if ref is not None and not ref.builtin:
            targets.append(NodeKey(ref.kind, ref.name))
    return targets


# ============================================================================
# Sequencing
# ============================================================================


def sequence(graph: DependencyGraph) -> Ordering:
    """Order all nodes so that every node follows the nodes it depends on.

    Depth-first search visits roots in node insertion order and successors
    in edge order, so the result is reproducible for a given graph. The
    search is iterative to stay clear of the recursion limit on long chains.
    """
    index: dict[NodeKey, int] = {}
    lowlink: dict[NodeKey, int] = {}
    on_stack: set[NodeKey] = set()
    stack: list[NodeKey] = []
    order: list[NodeKey] = []
    cycles: list[tuple[NodeKey, ...]] = []

    def visit(node: NodeKey):
        index[node] = lowlink[node] = len(index)
        stack.append(node)
        on_stack.add(node)

    for root in graph.nodes:
        if root in index:
            continue
        visit(root)
        work = [(root, iter(graph.edges[root]))]
        while work:
            node, successors = work[-1]
            descended = False
            for successor in successors:
                if successor not in index:
                    visit(successor)
                    work.append((successor, iter(graph.edges[successor])))
                    descended = True
                    break
                if successor in on_stack:
                    lowlink[node] = min(lowlink[node], index[successor])
            if descended:
                continue

            work.pop()
            if work:
                parent = work[-1][0]
                lowlink[parent] = min(lowlink[parent], lowlink[node])

            if lowlink[node] == index[node]:
                component = []
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    component.append(member)
                    if member == node:
                        break
                component.sort(key=index.__getitem__)
                order.extend(component)
                if len(component) > 1:
                    cycles.append(tuple(component))

    for members in cycles:
        logger.warning("Dependency cycle: %s", ", ".join(str(m) for m in members))

    return Ordering(
        order=tuple(order),
        cycles=tuple(cycles),
        edges={key: tuple(targets) for key, targets in graph.edges.items()},
    )
