"""Shared fixtures for gpmeta tests."""

from __future__ import annotations

import pytest

from gpmeta.models import (
    Aggregate,
    Cast,
    CastContext,
    CatalogCollections,
    Function,
    FunctionInfo,
    ResourceQueue,
    Role,
    SessionGUCs,
    Type,
    TypeKind,
    Volatility,
    qualify,
)


class FakeCursor:
    def __init__(self, conn):
        self.conn = conn
        self._rows: list[dict] = []

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, query, params=None):
        self.conn.executed.append((query, params))
        if self.conn.error is not None:
            raise self.conn.error
        for fragment, rows in self.conn.responses:
            if fragment in query:
                self._rows = [dict(row) for row in rows]
                return
        self._rows = []

    def fetchall(self):
        return self._rows


class FakeConnection:
    """DB-API stand-in whose cursor answers queries from canned rows.

    ``responses`` is a list of ``(fragment, rows)`` pairs; the first pair whose
    fragment occurs in the query text supplies the result. Unmatched queries
    return no rows.
    """

    def __init__(self, responses=None, server_version: int = 90400, error: Exception | None = None):
        self.responses = list(responses or [])
        self.server_version = server_version
        self.error = error
        self.executed: list[tuple] = []
        self.cancelled = 0
        self.closed = False

    def cursor(self, cursor_factory=None):
        return FakeCursor(self)

    def cancel(self):
        self.cancelled += 1

    def rollback(self):
        pass

    def close(self):
        self.closed = True

    def set_session(self, **kwargs):
        pass


@pytest.fixture
def fake_conn():
    """Factory fixture: ``fake_conn([(fragment, rows), ...], server_version=...)``."""

    def _make(responses=None, server_version: int = 90400, error: Exception | None = None):
        return FakeConnection(responses, server_version=server_version, error=error)

    return _make


def make_type(oid: int, name: str, schema: str = "public", **kwargs) -> Type:
    """Factory for Type records with sensible defaults (composite)."""
    kwargs.setdefault("type_kind", TypeKind.COMPOSITE)
    return Type(oid=oid, schema=schema, name=name, **kwargs)


def make_function(oid: int, name: str, schema: str = "public", **kwargs) -> Function:
    """Factory for Function records: a SQL function returning integer by default."""
    kwargs.setdefault("result_type", "integer")
    kwargs.setdefault("result_type_oid", 23)
    return Function(oid=oid, schema=schema, name=name, **kwargs)


def make_aggregate(oid: int, name: str, schema: str = "public", **kwargs) -> Aggregate:
    kwargs.setdefault("identity_arguments", "integer")
    kwargs.setdefault("arguments", kwargs["identity_arguments"])
    return Aggregate(oid=oid, schema=schema, name=name, **kwargs)


def info_for(record, is_internal: bool = False) -> FunctionInfo:
    """FunctionInfo entry matching a Function or Aggregate record."""
    return FunctionInfo(
        oid=record.oid,
        qualified_name=qualify(record.schema, record.name),
        arguments=record.arguments,
        identity_arguments=record.identity_arguments,
        is_internal=is_internal,
        is_aggregate=isinstance(record, Aggregate),
        schema=record.schema,
    )


def make_collections(types=(), functions=(), aggregates=(), **kwargs) -> CatalogCollections:
    """CatalogCollections with function_info derived from the given functions."""
    info = {r.oid: info_for(r) for r in (*functions, *aggregates)}
    info.update(kwargs.pop("function_info", {}))
    return CatalogCollections(
        types=tuple(types),
        functions=tuple(functions),
        aggregates=tuple(aggregates),
        function_info=info,
        **kwargs,
    )


@pytest.fixture
def sample_collections() -> CatalogCollections:
    """A small catalog: queue, role, composite type, SQL function and aggregate, plus a cast."""
    type_ = make_type(16470, "composite_type", attribute_type_oids=(23, 25))
    fn = make_function(
        16500,
        "sfunc",
        identity_arguments="integer, public.composite_type",
        arguments="integer, public.composite_type",
        argument_type_oids=(23, 16470),
        body="SELECT $1",
        volatility=Volatility.IMMUTABLE,
    )
    agg = make_aggregate(16510, "agg", transition_oid=16500, transition_type="integer", initial_value="0")
    cast = Cast(
        oid=16520,
        source_type="public.composite_type",
        target_type="pg_catalog.text",
        context=CastContext.ASSIGNMENT,
        source_oid=16470,
        target_oid=25,
    )
    return make_collections(
        types=[type_],
        functions=[fn],
        aggregates=[agg],
        resource_queues=(ResourceQueue(oid=16400, name="q1", active_statements=7),),
        roles=(Role(oid=16401, name="alice", resource_queue="q1"),),
        casts=(cast,),
        session_gucs=SessionGUCs("UTF8", "on", "off"),
        database_gucs=("SET search_path TO public",),
    )


@pytest.fixture
def sample_snapshot(sample_collections):
    from gpmeta.extraction import build_snapshot

    return build_snapshot(sample_collections, snapshot_id="00000003-00000002-1", server_version=90400)
