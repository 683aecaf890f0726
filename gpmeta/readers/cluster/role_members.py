"""Read role membership grants."""

from gpmeta.models import ObjectKind, RoleMember
from gpmeta.readers.base import BaseReader, require


class RoleMembersReader(BaseReader):
    name = "role_members"
    kind = ObjectKind.ROLE_MEMBER
    description = "GRANT role TO member edges, with grantor and admin option"

    def read(self, conn) -> list[RoleMember]:
        # One row per (group, member) edge; duplicates are not collapsed.
        # A grantor that was dropped since the grant comes back empty.
        query = """
            SELECT
                pg_catalog.pg_get_userbyid(m.roleid) AS role,
                pg_catalog.pg_get_userbyid(m.member) AS member,
                coalesce(g.rolname, '') AS grantor,
                m.admin_option
            FROM pg_catalog.pg_auth_members m
            LEFT JOIN pg_catalog.pg_authid g ON g.oid = m.grantor
            ORDER BY role, member, grantor;
        """
        rows = self.query(conn, query)

        def decode(row):
            return RoleMember(
                role=require(row, "role"),
                member=require(row, "member"),
                grantor=row["grantor"] or "",
                admin_option=require(row, "admin_option"),
            )

        return self.decode_rows(rows, decode)
