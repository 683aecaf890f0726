"""Read user tablespaces and their storage location."""

from gpmeta.connection import get_server_version
from gpmeta.models import ObjectKind, Tablespace
from gpmeta.readers.base import BaseReader, require


class TablespacesReader(BaseReader):
    name = "tablespaces"
    kind = ObjectKind.TABLESPACE
    description = "Tablespaces with their filespace (GP5) or directory location"

    def read(self, conn) -> list[Tablespace]:
        # Filespaces were removed in Greenplum 6 (PostgreSQL 9.4 catalogs)
        if get_server_version(conn) >= 90200:
            location = "pg_catalog.pg_tablespace_location(t.oid)"
            join = ""
        else:
            location = "f.fsname"
            join = "JOIN pg_catalog.pg_filespace f ON f.oid = t.spcfsoid"

        query = f"""
            SELECT
                t.oid,
                t.spcname AS name,
                {location} AS file_location
            FROM pg_catalog.pg_tablespace t
            {join}
            WHERE t.spcname NOT IN ('pg_default', 'pg_global')
            ORDER BY t.spcname, t.oid;
        """
        rows = self.query(conn, query)

        def decode(row):
            return Tablespace(
                oid=require(row, "oid"),
                name=require(row, "name"),
                file_location=row["file_location"] or "",
            )

        return self.decode_rows(rows, decode)
