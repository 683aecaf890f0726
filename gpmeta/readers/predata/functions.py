"""Read user-defined functions."""

from gpmeta.models import DataAccess, Function, ObjectKind, Volatility
from gpmeta.readers.base import (
    SYSTEM_SCHEMA_FILTER,
    BaseReader,
    is_aggregate_expr,
    parse_oid_list,
    require,
)

# Languages whose prosrc is a link symbol rather than a body
COMPILED_LANGUAGES = {"c", "internal"}


class FunctionsReader(BaseReader):
    name = "functions"
    kind = ObjectKind.FUNCTION
    description = "User-defined functions (aggregates are read separately)"

    def read(self, conn) -> list[Function]:
        """
        Read every non-aggregate function outside the system schemas.

        Rows are ordered by schema, name and identity arguments, so overloads
        come out in a stable order. Per-function SET clauses are folded into
        ``SET name TO value`` fragments joined by a space. Argument type oids
        include OUT arguments when the function declares them.

        For compiled languages the body is left empty and the C symbol or
        internal function name is kept in ``link_symbol``.
        """
        query = f"""
            SELECT
                p.oid,
                n.nspname AS schema,
                p.proname AS name,
                p.proretset AS returns_set,
                coalesce(p.prosrc, '') AS prosrc,
                coalesce(nullif(p.probin::text, '-'), '') AS binary_path,
                pg_catalog.pg_get_function_arguments(p.oid) AS arguments,
                pg_catalog.pg_get_function_identity_arguments(p.oid) AS identity_arguments,
                pg_catalog.pg_get_function_result(p.oid) AS result_type,
                p.provolatile AS volatility,
                p.proisstrict AS strict,
                p.prosecdef AS security_definer,
                coalesce(array_to_string(ARRAY(
                    SELECT 'SET ' || option_name || ' TO ' || option_value
                    FROM pg_catalog.pg_options_to_table(p.proconfig)
                ), ' '), '') AS config,
                p.procost AS cost,
                p.prorows AS num_rows,
                p.prodataaccess AS data_access,
                l.lanname AS language,
                coalesce(array_to_string(p.proallargtypes, ' '), p.proargtypes::text) AS argument_types,
                p.prorettype AS result_type_oid
            FROM pg_catalog.pg_proc p
            JOIN pg_catalog.pg_namespace n ON n.oid = p.pronamespace
            JOIN pg_catalog.pg_language l ON l.oid = p.prolang
            WHERE n.nspname NOT IN {SYSTEM_SCHEMA_FILTER}
              AND NOT {is_aggregate_expr(conn)}
            ORDER BY n.nspname, p.proname, identity_arguments, p.oid;
        """
        rows = self.query(conn, query)

        def decode(row):
            language = require(row, "language")
            compiled = language in COMPILED_LANGUAGES
            return Function(
                oid=require(row, "oid"),
                schema=require(row, "schema"),
                name=require(row, "name"),
                returns_set=require(row, "returns_set"),
                body="" if compiled else row["prosrc"],
                link_symbol=row["prosrc"] if compiled else "",
                binary_path=row["binary_path"],
                arguments=row["arguments"] or "",
                identity_arguments=row["identity_arguments"] or "",
                result_type=require(row, "result_type"),
                volatility=Volatility(require(row, "volatility")),
                strict=require(row, "strict"),
                security_definer=require(row, "security_definer"),
                config=row["config"],
                cost=require(row, "cost"),
                num_rows=row["num_rows"] or 0,
                data_access=DataAccess(require(row, "data_access")),
                language=language,
                argument_type_oids=parse_oid_list(row["argument_types"]),
                result_type_oid=require(row, "result_type_oid"),
            )

        return self.decode_rows(rows, decode)
