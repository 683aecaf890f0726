"""Read user-defined encoding conversions."""

from gpmeta.models import Conversion, ObjectKind, qualify
from gpmeta.readers.base import SYSTEM_SCHEMA_FILTER, BaseReader, require


class ConversionsReader(BaseReader):
    name = "conversions"
    kind = ObjectKind.CONVERSION
    description = "CREATE CONVERSION objects outside the system schemas"

    def read(self, conn) -> list[Conversion]:
        query = f"""
            SELECT
                c.oid,
                n.nspname AS schema,
                c.conname AS name,
                pg_catalog.pg_encoding_to_char(c.conforencoding) AS source_encoding,
                pg_catalog.pg_encoding_to_char(c.contoencoding) AS target_encoding,
                fn.nspname AS function_schema,
                p.proname AS function_name,
                c.conproc AS function_oid,
                c.condefault AS is_default
            FROM pg_catalog.pg_conversion c
            JOIN pg_catalog.pg_namespace n ON n.oid = c.connamespace
            JOIN pg_catalog.pg_proc p ON p.oid = c.conproc
            JOIN pg_catalog.pg_namespace fn ON fn.oid = p.pronamespace
            WHERE n.nspname NOT IN {SYSTEM_SCHEMA_FILTER}
            ORDER BY n.nspname, c.conname, c.oid;
        """
        rows = self.query(conn, query)

        def decode(row):
            return Conversion(
                oid=require(row, "oid"),
                schema=require(row, "schema"),
                name=require(row, "name"),
                source_encoding=require(row, "source_encoding"),
                target_encoding=require(row, "target_encoding"),
                function_name=qualify(
                    require(row, "function_schema"), require(row, "function_name")
                ),
                function_oid=require(row, "function_oid"),
                is_default=require(row, "is_default"),
            )

        return self.decode_rows(rows, decode)
