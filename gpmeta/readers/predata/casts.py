"""Read user-defined casts."""

from gpmeta.models import Cast, CastContext, ObjectKind, qualify
from gpmeta.readers.base import SYSTEM_SCHEMA_FILTER, BaseReader, require


class CastsReader(BaseReader):
    name = "casts"
    kind = ObjectKind.CAST
    description = "Casts that use a user function or involve a user-defined type"

    def read(self, conn) -> list[Cast]:
        """
        Read casts created by users.

        A cast WITH FUNCTION is user-created when its function lives outside the
        system schemas; a cast WITHOUT FUNCTION is user-created when either of
        its types does. Function fields are empty strings when no function is
        used.
        """
        query = f"""
            SELECT
                c.oid,
                sn.nspname AS source_schema,
                st.typname AS source_name,
                tn.nspname AS target_schema,
                tt.typname AS target_name,
                c.castsource AS source_oid,
                c.casttarget AS target_oid,
                coalesce(n.nspname, '') AS function_schema,
                coalesce(p.proname, '') AS function_name,
                coalesce(pg_catalog.pg_get_function_arguments(p.oid), '') AS function_args,
                c.castfunc AS function_oid,
                c.castcontext AS context
            FROM pg_catalog.pg_cast c
            JOIN pg_catalog.pg_type st ON st.oid = c.castsource
            JOIN pg_catalog.pg_type tt ON tt.oid = c.casttarget
            JOIN pg_catalog.pg_namespace sn ON sn.oid = st.typnamespace
            JOIN pg_catalog.pg_namespace tn ON tn.oid = tt.typnamespace
            LEFT JOIN pg_catalog.pg_proc p ON p.oid = c.castfunc
            LEFT JOIN pg_catalog.pg_namespace n ON n.oid = p.pronamespace
            WHERE (c.castfunc = 0
                   AND (sn.nspname NOT IN {SYSTEM_SCHEMA_FILTER}
                        OR tn.nspname NOT IN {SYSTEM_SCHEMA_FILTER}))
               OR (c.castfunc != 0 AND n.nspname NOT IN {SYSTEM_SCHEMA_FILTER})
            ORDER BY sn.nspname, st.typname, tn.nspname, tt.typname, c.oid;
        """
        rows = self.query(conn, query)

        def decode(row):
            return Cast(
                oid=require(row, "oid"),
                source_type=qualify(require(row, "source_schema"), require(row, "source_name")),
                target_type=qualify(require(row, "target_schema"), require(row, "target_name")),
                function_schema=row["function_schema"],
                function_name=row["function_name"],
                function_args=row["function_args"],
                context=CastContext(require(row, "context")),
                function_oid=row["function_oid"] or 0,
                source_oid=require(row, "source_oid"),
                target_oid=require(row, "target_oid"),
            )

        return self.decode_rows(rows, decode)
