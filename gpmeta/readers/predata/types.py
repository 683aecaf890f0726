"""Read user-defined types that functions and casts can depend on."""

from gpmeta.models import ObjectKind, Type, TypeKind
from gpmeta.readers.base import SYSTEM_SCHEMA_FILTER, BaseReader, parse_oid_list, require


class TypesReader(BaseReader):
    name = "types"
    kind = ObjectKind.TYPE
    description = "Base, standalone composite, domain and enum types"

    def read(self, conn) -> list[Type]:
        """
        Read user-defined types, skipping array types and table row types.

        Array types are implicit companions of their element type and are not
        tracked as separate objects.
        """
        query = f"""
            SELECT
                t.oid,
                n.nspname AS schema,
                t.typname AS name,
                t.typtype AS type_kind,
                t.typinput::oid AS input_oid,
                t.typoutput::oid AS output_oid,
                t.typreceive::oid AS receive_oid,
                t.typsend::oid AS send_oid,
                t.typbasetype AS base_type_oid,
                array_to_string(ARRAY(
                    SELECT a.atttypid
                    FROM pg_catalog.pg_attribute a
                    WHERE a.attrelid = t.typrelid
                      AND a.attnum > 0
                      AND NOT a.attisdropped
                    ORDER BY a.attnum
                ), ' ') AS attribute_types
            FROM pg_catalog.pg_type t
            JOIN pg_catalog.pg_namespace n ON n.oid = t.typnamespace
            LEFT JOIN pg_catalog.pg_class c ON c.oid = t.typrelid
            WHERE n.nspname NOT IN {SYSTEM_SCHEMA_FILTER}
              AND t.typtype IN ('b', 'c', 'd', 'e')
              AND (t.typtype != 'c' OR c.relkind = 'c')
              AND NOT EXISTS (
                  SELECT 1 FROM pg_catalog.pg_type e WHERE e.typarray = t.oid
              )
            ORDER BY n.nspname, t.typname, t.oid;
        """
        rows = self.query(conn, query)

        def decode(row):
            type_kind = TypeKind(require(row, "type_kind"))
            return Type(
                oid=require(row, "oid"),
                schema=require(row, "schema"),
                name=require(row, "name"),
                type_kind=type_kind,
                input_oid=row["input_oid"] or 0,
                output_oid=row["output_oid"] or 0,
                receive_oid=row["receive_oid"] or 0,
                send_oid=row["send_oid"] or 0,
                base_type_oid=row["base_type_oid"] or 0,
                attribute_type_oids=parse_oid_list(row["attribute_types"]),
            )

        return self.decode_rows(rows, decode)
