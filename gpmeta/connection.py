"""Database connection management and the query seam used by every reader."""

from __future__ import annotations

import logging
import os

import psycopg2
import psycopg2.extensions
import psycopg2.extras

from gpmeta.errors import (
    CatalogConnectionError,
    DecodeError,
    ExtractionCancelled,
    ExtractionError,
)

logger = logging.getLogger(__name__)

# Catalog table holding each object kind, for oid lookups by name
_KIND_CATALOGS = {
    "role": ("pg_authid", "rolname", None),
    "resource-queue": ("pg_resqueue", "rsqname", None),
    "tablespace": ("pg_tablespace", "spcname", None),
    "language": ("pg_language", "lanname", None),
    "conversion": ("pg_conversion", "conname", "connamespace"),
    "type": ("pg_type", "typname", "typnamespace"),
    "function": ("pg_proc", "proname", "pronamespace"),
    "aggregate": ("pg_proc", "proname", "pronamespace"),
}


def connect_params(
    host: str | None = None,
    port: int | None = None,
    dbname: str | None = None,
    user: str | None = None,
    password: str | None = None,
    dsn: str | None = None,
    statement_timeout: int | None = None,
) -> dict:
    """Build psycopg2.connect() keyword arguments from explicit args or a DSN.

    Falls back to the PGPASSWORD environment variable. ``statement_timeout``
    is in seconds and is applied as a session option.
    """
    if dsn:
        params: dict = {"dsn": dsn}
    else:
        params = {}
        if host:
            params["host"] = host
        if port:
            params["port"] = port
        if dbname:
            params["dbname"] = dbname
        if user:
            params["user"] = user
        if password:
            params["password"] = password
        elif os.environ.get("PGPASSWORD"):
            params["password"] = os.environ["PGPASSWORD"]

    if statement_timeout:
        params["options"] = f"-c statement_timeout={int(statement_timeout * 1000)}"
    return params


def connect(**kwargs) -> psycopg2.extensions.connection:
    """Open a read-only connection inside a repeatable-read transaction.

    Accepts the same arguments as :func:`connect_params`.
    """
    params = connect_params(**kwargs)
    try:
        conn = psycopg2.connect(**params)
    except psycopg2.OperationalError as exc:
        raise CatalogConnectionError("could not connect to database") from exc

    conn.set_session(
        isolation_level=psycopg2.extensions.ISOLATION_LEVEL_REPEATABLE_READ,
        readonly=True,
        autocommit=False,
    )
    return conn


def get_server_version(conn) -> int:
    """Return the server version number, e.g. 80323 for Greenplum 5."""
    return conn.server_version


def supports_snapshot_export(conn) -> bool:
    return get_server_version(conn) >= 90200


def run_query(conn, query: str, params=None, kind: str | None = None) -> list[dict]:
    """Execute a read-only catalog query and return its rows as dicts.

    Driver errors are translated into the extraction error taxonomy so that
    callers never see psycopg2 exception types.
    """
    try:
        with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
            cur.execute(query, params)
            return [dict(row) for row in cur.fetchall()]
    except psycopg2.extensions.QueryCanceledError as exc:
        raise ExtractionCancelled("catalog query was cancelled", kind=kind) from exc
    except (psycopg2.OperationalError, psycopg2.InterfaceError) as exc:
        raise CatalogConnectionError("catalog query failed", kind=kind) from exc
    except psycopg2.ProgrammingError as exc:
        raise DecodeError("catalog query does not match server catalog", kind=kind) from exc
    except psycopg2.Error as exc:
        raise ExtractionError("catalog query failed", kind=kind) from exc


def export_snapshot(conn) -> str:
    """Export the connection's transaction snapshot for other sessions to share."""
    rows = run_query(conn, "SELECT pg_export_snapshot() AS snapshot_id;")
    snapshot_id = rows[0]["snapshot_id"]
    logger.debug("Exported transaction snapshot %s", snapshot_id)
    return snapshot_id


def import_snapshot(conn, snapshot_id: str) -> None:
    """Attach a fresh transaction to a snapshot exported by another session."""
    try:
        with conn.cursor() as cur:
            cur.execute("SET TRANSACTION SNAPSHOT %s;", (snapshot_id,))
    except psycopg2.Error as exc:
        raise CatalogConnectionError(f"could not import snapshot {snapshot_id}") from exc


def oid_from_object_name(conn, schema: str, name: str, kind: str) -> int:
    """Resolve an object name to its catalog oid.

    Used by callers and integration tests to check extracted identifiers.
    Returns 0 when the object does not exist.
    """
    if kind not in _KIND_CATALOGS:
        raise ValueError(f"Unknown object kind: {kind}")
    table, name_col, ns_col = _KIND_CATALOGS[kind]

    query = f"SELECT o.oid FROM pg_catalog.{table} o"
    params: tuple = (name,)
    if ns_col:
        query += (
            f" JOIN pg_catalog.pg_namespace n ON n.oid = o.{ns_col}"
            f" WHERE o.{name_col} = %s AND n.nspname = %s"
        )
        params = (name, schema)
    else:
        query += f" WHERE o.{name_col} = %s"
    query += " ORDER BY o.oid LIMIT 1;"

    rows = run_query(conn, query, params, kind=kind)
    return rows[0]["oid"] if rows else 0
