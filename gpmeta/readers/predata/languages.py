"""Read procedural languages."""

from gpmeta.models import ObjectKind, ProceduralLanguage
from gpmeta.readers.base import BaseReader, require


class LanguagesReader(BaseReader):
    name = "languages"
    kind = ObjectKind.LANGUAGE
    description = "Procedural languages with their handler, inline and validator functions"

    def read(self, conn) -> list[ProceduralLanguage]:
        """
        Read procedural languages in creation (oid) order.

        Internal languages (internal, c, sql) are built in and skipped. The
        handler, inline and validator oids are 0 when the language lacks them.
        """
        query = """
            SELECT
                l.oid,
                l.lanname AS name,
                pg_catalog.pg_get_userbyid(l.lanowner) AS owner,
                l.lanpltrusted AS trusted,
                l.lanispl AS procedural,
                l.lanplcallfoid AS handler_oid,
                l.laninline AS inline_oid,
                l.lanvalidator AS validator_oid
            FROM pg_catalog.pg_language l
            WHERE l.lanispl
            ORDER BY l.oid;
        """
        rows = self.query(conn, query)

        def decode(row):
            return ProceduralLanguage(
                oid=require(row, "oid"),
                name=require(row, "name"),
                owner=row["owner"] or "",
                trusted=require(row, "trusted"),
                procedural=require(row, "procedural"),
                handler_oid=row["handler_oid"] or 0,
                inline_oid=row["inline_oid"] or 0,
                validator_oid=row["validator_oid"] or 0,
            )

        return self.decode_rows(rows, decode)
