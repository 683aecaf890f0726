"""Build the oid -> function info lookup covering every visible function."""

from gpmeta.models import SYSTEM_SCHEMAS, FunctionInfo, qualify
from gpmeta.readers.base import BaseReader, is_aggregate_expr, require


class FunctionInfoReader(BaseReader):
    name = "function_info"
    kind = "function-info"
    description = "Name, arguments and internal flag of every function, built-in included"

    def read(self, conn) -> list[FunctionInfo]:
        """
        Read every function visible to the connection.

        Unlike the functions reader this does not filter system schemas:
        dependency resolution has to recognise references to built-in
        functions so it can skip them rather than report them as unknown.
        """
        query = f"""
            SELECT
                p.oid,
                n.nspname AS schema,
                p.proname AS name,
                pg_catalog.pg_get_function_arguments(p.oid) AS arguments,
                pg_catalog.pg_get_function_identity_arguments(p.oid) AS identity_arguments,
                n.nspname IN %s AS is_internal,
                {is_aggregate_expr(conn)} AS is_aggregate
            FROM pg_catalog.pg_proc p
            JOIN pg_catalog.pg_namespace n ON n.oid = p.pronamespace
            ORDER BY p.oid;
        """
        rows = self.query(conn, query, (SYSTEM_SCHEMAS,))

        def decode(row):
            return FunctionInfo(
                oid=require(row, "oid"),
                qualified_name=qualify(require(row, "schema"), require(row, "name")),
                arguments=row["arguments"] or "",
                identity_arguments=row["identity_arguments"] or "",
                is_internal=require(row, "is_internal"),
                is_aggregate=bool(row["is_aggregate"]),
                schema=row["schema"],
            )

        return self.decode_rows(rows, decode)


def function_info_map(infos: list[FunctionInfo]) -> dict[int, FunctionInfo]:
    return {info.oid: info for info in infos}
