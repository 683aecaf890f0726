"""Read user-defined aggregates."""

from gpmeta.models import Aggregate, ObjectKind
from gpmeta.readers.base import SYSTEM_SCHEMA_FILTER, BaseReader, require


class AggregatesReader(BaseReader):
    name = "aggregates"
    kind = ObjectKind.AGGREGATE
    description = "User-defined aggregates and the functions they are built from"

    def read(self, conn) -> list[Aggregate]:
        """
        Read aggregates outside the system schemas.

        Component functions are kept as oids; 0 marks an unused slot (no
        preliminary, final or sort operator). The initial condition is None
        when the aggregate has none.
        """
        query = f"""
            SELECT
                p.oid,
                n.nspname AS schema,
                p.proname AS name,
                pg_catalog.pg_get_function_arguments(p.oid) AS arguments,
                pg_catalog.pg_get_function_identity_arguments(p.oid) AS identity_arguments,
                a.aggtransfn::oid AS transition_oid,
                a.aggprelimfn::oid AS preliminary_oid,
                a.aggfinalfn::oid AS final_oid,
                a.aggsortop::oid AS sort_operator_oid,
                pg_catalog.format_type(a.aggtranstype, NULL) AS transition_type,
                a.agginitval AS initial_value,
                a.aggordered AS is_ordered
            FROM pg_catalog.pg_aggregate a
            JOIN pg_catalog.pg_proc p ON p.oid = a.aggfnoid
            JOIN pg_catalog.pg_namespace n ON n.oid = p.pronamespace
            WHERE n.nspname NOT IN {SYSTEM_SCHEMA_FILTER}
            ORDER BY n.nspname, p.proname, identity_arguments, p.oid;
        """
        rows = self.query(conn, query)

        def decode(row):
            return Aggregate(
                oid=require(row, "oid"),
                schema=require(row, "schema"),
                name=require(row, "name"),
                arguments=row["arguments"] or "",
                identity_arguments=row["identity_arguments"] or "",
                transition_oid=require(row, "transition_oid"),
                preliminary_oid=row["preliminary_oid"] or 0,
                final_oid=row["final_oid"] or 0,
                sort_operator_oid=row["sort_operator_oid"] or 0,
                transition_type=require(row, "transition_type"),
                initial_value=row["initial_value"],
                is_ordered=bool(row["is_ordered"]),
            )

        return self.decode_rows(rows, decode)
