"""Base class for all catalog readers."""

from __future__ import annotations

import abc

from gpmeta.connection import get_server_version, run_query
from gpmeta.errors import DecodeError
from gpmeta.models import SYSTEM_SCHEMAS

SYSTEM_SCHEMA_FILTER = "({})".format(", ".join(f"'{s}'" for s in SYSTEM_SCHEMAS))


class BaseReader(abc.ABC):
    """Abstract base class for all catalog readers.

    To add a reader, subclass this and implement `read()`.
    The registry auto-discovers all subclasses found in the readers/ directory.

    Attributes:
        name: Unique identifier for this reader, also the key of its result.
        kind: Object kind the reader produces, used in error context.
        description: Human-readable summary of what this reader extracts.
    """

    name: str = ""
    kind: str = ""
    description: str = ""

    @abc.abstractmethod
    def read(self, conn) -> list:
        """Read every record of this kind from the catalog.

        Args:
            conn: psycopg2 connection object (or any DB-API connection).

        Returns:
            Records in a stable order for a fixed catalog state.
        """
        ...

    def query(self, conn, sql: str, params=None) -> list[dict]:
        return run_query(conn, sql, params, kind=self.kind)

    def decode_rows(self, rows: list[dict], decode) -> list:
        """Map rows through ``decode``, turning shape errors into DecodeError."""
        records = []
        for row in rows:
            try:
                records.append(decode(row))
            except DecodeError as exc:
                if exc.kind is None:
                    exc.kind = getattr(self.kind, "value", self.kind)
                raise
            except (KeyError, TypeError, ValueError) as exc:
                raise DecodeError(
                    f"{self.name}: cannot decode catalog row",
                    kind=self.kind,
                    oid=row.get("oid"),
                ) from exc
        return records

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        if not cls.name:
            cls.name = cls.__name__

    def __repr__(self):
        return f"<{self.__class__.__name__} [{self.kind}] {self.name}>"


def is_aggregate_expr(conn, alias: str = "p") -> str:
    """SQL boolean expression telling whether a pg_proc row is an aggregate."""
    # proisagg was replaced by prokind in PostgreSQL 11
    if get_server_version(conn) >= 110000:
        return f"({alias}.prokind = 'a')"
    return f"{alias}.proisagg"


def parse_oid_list(text: str | None) -> tuple[int, ...]:
    """Decode a space separated oidvector rendering into a tuple of oids."""
    if not text:
        return ()
    return tuple(int(part) for part in text.split())


def require(row: dict, column: str):
    """Return a non-nullable column value, raising DecodeError on NULL."""
    value = row[column]
    if value is None:
        raise DecodeError(f"unexpected NULL in column {column}", oid=row.get("oid"))
    return value
