"""Extraction orchestrator: runs the readers on one snapshot and orders the result."""

from __future__ import annotations

import logging
import sys
import threading
import time
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Any

import psycopg2
import psycopg2.extensions
import psycopg2.pool

from gpmeta.config import Config
from gpmeta.connection import (
    connect,
    connect_params,
    export_snapshot,
    get_server_version,
    import_snapshot,
    supports_snapshot_export,
)
from gpmeta.dependencies import construct_dependencies
from gpmeta.errors import CatalogConnectionError, ExtractionCancelled
from gpmeta.graph import build_graph, sequence
from gpmeta.models import CatalogCollections, ObjectKind
from gpmeta.names import NameResolver, catalog_refs
from gpmeta.readers.base import BaseReader
from gpmeta.readers.predata.function_info import function_info_map
from gpmeta.registry import discover_readers
from gpmeta.snapshot import MetadataSnapshot, assemble_snapshot

logger = logging.getLogger(__name__)

# Seconds between checks for cancellation while readers run
_POLL_INTERVAL = 0.1

# Reader name -> CatalogCollections field holding its records as a tuple
_COLLECTION_FIELDS = {
    "roles": "roles",
    "role_members": "role_members",
    "resource_queues": "resource_queues",
    "tablespaces": "tablespaces",
    "languages": "languages",
    "conversions": "conversions",
    "casts": "casts",
    "types": "types",
    "functions": "functions",
    "aggregates": "aggregates",
    "database_gucs": "database_gucs",
}


class _ConnectionSource:
    """Hands out connections that all see the same catalog snapshot.

    With a snapshot id, every checkout comes from the pool and joins the
    exported snapshot in a fresh transaction. Without one, the leader
    connection is handed out and readers run one at a time inside its
    transaction.
    """

    def __init__(self, leader, pool=None, snapshot_id: str | None = None):
        self.leader = leader
        self.pool = pool
        self.snapshot_id = snapshot_id
        self._active: set = set()
        self._lock = threading.Lock()

    @property
    def shared(self) -> bool:
        return self.pool is not None

    def checkout(self):
        if not self.shared:
            conn = self.leader
        else:
            try:
                conn = self.pool.getconn()
            except psycopg2.Error as exc:
                raise CatalogConnectionError("could not open worker connection") from exc
            conn.set_session(
                isolation_level=psycopg2.extensions.ISOLATION_LEVEL_REPEATABLE_READ,
                readonly=True,
                autocommit=False,
            )
            try:
                import_snapshot(conn, self.snapshot_id)
            except CatalogConnectionError:
                self.pool.putconn(conn, close=True)
                raise
        with self._lock:
            self._active.add(conn)
        return conn

    def checkin(self, conn):
        with self._lock:
            self._active.discard(conn)
        if not self.shared:
            return
        try:
            conn.rollback()
        except psycopg2.Error as exc:
            logger.warning("Discarding worker connection after failed rollback: %s", exc)
            self.pool.putconn(conn, close=True)
            return
        self.pool.putconn(conn)

    def cancel_all(self):
        """Ask the server to cancel every in-flight catalog query."""
        with self._lock:
            active = list(self._active)
        for conn in active:
            try:
                conn.cancel()
            except psycopg2.Error as exc:
                logger.warning("Could not cancel catalog query: %s", exc)


def read_catalog(conn, readers: list[BaseReader], verbose: bool = False) -> dict[str, list]:
    """Run readers one after another on a single connection.

    Returns:
        Mapping of reader name to the records it produced.
    """
    results = {}
    total = len(readers)
    for i, reader in enumerate(readers, 1):
        if verbose:
            print(f"  [{i}/{total}] {reader.name}: {reader.description}", file=sys.stderr)
        results[reader.name] = reader.read(conn)
    return results


def collect(results: dict[str, list], readers: list[BaseReader]) -> CatalogCollections:
    """Group reader output into the collections the later stages consume."""
    values: dict[str, Any] = {}
    for name, field_name in _COLLECTION_FIELDS.items():
        if name in results:
            values[field_name] = tuple(results[name])
    if "function_info" in results:
        values["function_info"] = function_info_map(results["function_info"])
    if results.get("session_gucs"):
        values["session_gucs"] = results["session_gucs"][0]

    values["extracted"] = frozenset(
        reader.kind for reader in readers if isinstance(reader.kind, ObjectKind)
    )
    return CatalogCollections(**values)


def build_snapshot(
    collections: CatalogCollections,
    default_schema: str = "public",
    workers: int = 1,
    snapshot_id: str | None = None,
    server_version: int = 0,
) -> MetadataSnapshot:
    """Resolve names, discover dependencies, and order the collections.

    Everything after the catalog reads; no database access.
    """
    resolver = NameResolver.build(catalog_refs(collections), default_schema=default_schema)
    logger.debug("Name resolver indexed %d oids", len(resolver))

    collections = construct_dependencies(collections, resolver, workers=workers)
    graph = build_graph(collections, resolver)
    ordering = sequence(graph)
    return assemble_snapshot(
        collections, ordering, snapshot_id=snapshot_id, server_version=server_version
    )


def run_extraction(
    connect_kwargs: dict,
    config: Config | None = None,
    cancel_event: threading.Event | None = None,
    verbose: bool = False,
) -> MetadataSnapshot:
    """Extract every catalog object from one consistent snapshot.

    Args:
        connect_kwargs: Arguments for :func:`gpmeta.connection.connect`
            (host, port, dbname, user, password, dsn).
        config: Reader filters, worker count and timeouts.
        cancel_event: Set it from another thread to abort the extraction.
        verbose: Print progress to stderr.

    Returns:
        MetadataSnapshot with every object in dependency order.

    Raises:
        ExtractionCancelled: cancel_event was set or the overall timeout
            expired. No partial snapshot is returned.
        CatalogConnectionError, DecodeError, GraphError: fatal failures,
            propagated from the stage that hit them.
    """
    config = config or Config()
    cancel_event = cancel_event or threading.Event()
    settings = config.extraction
    deadline = time.monotonic() + settings.timeout if settings.timeout else None

    readers = discover_readers(
        exclude=config.readers.exclude, include_only=config.readers.include_only
    )

    leader = connect(**connect_kwargs, statement_timeout=settings.statement_timeout)
    pool = None
    try:
        server_version = get_server_version(leader)
        snapshot_id = None
        if settings.workers > 1 and supports_snapshot_export(leader):
            snapshot_id = export_snapshot(leader)
            try:
                pool = psycopg2.pool.ThreadedConnectionPool(
                    1,
                    settings.workers,
                    **connect_params(**connect_kwargs, statement_timeout=settings.statement_timeout),
                )
            except psycopg2.Error as exc:
                raise CatalogConnectionError("could not open worker connection pool") from exc
        elif settings.workers > 1:
            logger.info(
                "Server version %d cannot share snapshots; reading serially on one transaction",
                server_version,
            )

        source = _ConnectionSource(leader, pool, snapshot_id)
        if verbose:
            mode = f"{settings.workers} workers on snapshot {snapshot_id}" if source.shared else "1 worker"
            print(
                f"Extraction: running {len(readers)} readers against "
                f"{leader.info.dbname} ({mode})...",
                file=sys.stderr,
            )

        results = _run_readers(
            readers,
            source,
            workers=settings.workers if source.shared else 1,
            cancel_event=cancel_event,
            deadline=deadline,
            verbose=verbose,
        )
    finally:
        if pool is not None:
            pool.closeall()
        leader.close()

    snapshot = build_snapshot(
        collect(results, readers),
        default_schema=settings.default_schema,
        workers=settings.workers,
        snapshot_id=snapshot_id,
        server_version=server_version,
    )

    if verbose:
        print(
            f"Done. {len(snapshot)} objects, {len(snapshot.cycles)} dependency cycles.",
            file=sys.stderr,
        )
    return snapshot


def _run_readers(
    readers: list[BaseReader],
    source: _ConnectionSource,
    workers: int,
    cancel_event: threading.Event,
    deadline: float | None,
    verbose: bool = False,
) -> dict[str, list]:
    total = len(readers)
    done_count = 0

    def task(reader: BaseReader) -> list:
        if cancel_event.is_set():
            raise ExtractionCancelled("extraction cancelled", kind=reader.kind)
        conn = source.checkout()
        try:
            # cancel_all() may have run while this connection was joining the snapshot
            if cancel_event.is_set():
                raise ExtractionCancelled("extraction cancelled", kind=reader.kind)
            return reader.read(conn)
        finally:
            source.checkin(conn)

    executor = ThreadPoolExecutor(max_workers=max(1, workers), thread_name_prefix="gpmeta-reader")
    try:
        futures = {executor.submit(task, reader): reader for reader in readers}
        pending = set(futures)
        results: dict[str, list] = {}
        while pending:
            done, pending = wait(pending, timeout=_POLL_INTERVAL, return_when=FIRST_EXCEPTION)
            for future in done:
                reader = futures[future]
                if future.exception() is not None:
                    cancel_event.set()
                    source.cancel_all()
                    raise future.exception()
                results[reader.name] = future.result()
                done_count += 1
                if verbose:
                    print(
                        f"  [{done_count}/{total}] {reader.name}: "
                        f"{len(results[reader.name])} records",
                        file=sys.stderr,
                    )

            timed_out = deadline is not None and time.monotonic() >= deadline
            if pending and (cancel_event.is_set() or timed_out):
                cancel_event.set()
                source.cancel_all()
                reason = "timed out" if timed_out else "cancelled"
                raise ExtractionCancelled(f"extraction {reason} with {len(pending)} readers unfinished")
        return results
    finally:
        executor.shutdown(wait=True, cancel_futures=True)
