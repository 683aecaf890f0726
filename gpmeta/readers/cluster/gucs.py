"""Read session-level and database-level configuration settings."""

from gpmeta.connection import get_server_version
from gpmeta.models import SessionGUCs
from gpmeta.readers.base import BaseReader, require


class SessionGUCsReader(BaseReader):
    name = "session_gucs"
    kind = "session-gucs"
    description = "Session settings that affect how definitions are parsed on restore"

    def read(self, conn) -> list[SessionGUCs]:
        query = """
            SELECT
                current_setting('client_encoding') AS client_encoding,
                current_setting('standard_conforming_strings') AS standard_conforming_strings,
                current_setting('default_with_oids') AS default_with_oids;
        """
        rows = self.query(conn, query)

        def decode(row):
            return SessionGUCs(
                client_encoding=require(row, "client_encoding"),
                standard_conforming_strings=require(row, "standard_conforming_strings"),
                default_with_oids=require(row, "default_with_oids"),
            )

        return self.decode_rows(rows, decode)


class DatabaseGUCsReader(BaseReader):
    name = "database_gucs"
    kind = "database-gucs"
    description = "Settings overridden with ALTER DATABASE ... SET, sorted by name"

    def read(self, conn) -> list[str]:
        """
        Return ``SET <name> TO <value>`` strings for the current database.

        Only database-wide overrides are returned; per-role settings stored in
        the same catalog on 9.0+ are skipped.
        """
        if get_server_version(conn) >= 90000:
            source = """
                (SELECT s.setconfig
                 FROM pg_catalog.pg_db_role_setting s
                 JOIN pg_catalog.pg_database d ON d.oid = s.setdatabase
                 WHERE d.datname = current_database() AND s.setrole = 0)
            """
        else:
            source = """
                (SELECT datconfig
                 FROM pg_catalog.pg_database
                 WHERE datname = current_database())
            """

        query = f"""
            SELECT option_name, option_value
            FROM pg_catalog.pg_options_to_table({source})
            ORDER BY option_name;
        """
        rows = self.query(conn, query)

        def decode(row):
            return f"SET {require(row, 'option_name')} TO {require(row, 'option_value')}"

        return self.decode_rows(rows, decode)
