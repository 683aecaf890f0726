"""Read roles together with their login-deny time windows."""

from gpmeta.models import ObjectKind, Role, TimeConstraint
from gpmeta.readers.base import BaseReader, require


class RolesReader(BaseReader):
    name = "roles"
    kind = ObjectKind.ROLE
    description = "Roles, their attributes, resource queue and DENY windows"

    def read(self, conn) -> list[Role]:
        """
        Read every non-builtin role, ordered by name.

        Valid-until timestamps are rendered in UTC with a ``-00`` suffix so the
        text does not depend on the session time zone. Time constraints are
        attached in catalog insertion order.
        """
        query = """
            SELECT
                r.oid,
                r.rolname AS name,
                r.rolsuper AS superuser,
                r.rolinherit AS inherit,
                r.rolcreaterole AS create_role,
                r.rolcreatedb AS create_db,
                r.rolcanlogin AS can_login,
                r.rolconnlimit AS connection_limit,
                coalesce(r.rolpassword, '') AS password,
                coalesce(timezone('UTC', r.rolvaliduntil)::text || '-00', '') AS valid_until,
                coalesce(q.rsqname, '') AS resource_queue,
                r.rolcreaterexthttp AS create_ext_http,
                r.rolcreaterextgpfd AS create_ext_gpfdist_read,
                r.rolcreatewextgpfd AS create_ext_gpfdist_write,
                r.rolcreaterexthdfs AS create_ext_hdfs_read,
                r.rolcreatewexthdfs AS create_ext_hdfs_write
            FROM pg_catalog.pg_authid r
            LEFT JOIN pg_catalog.pg_resqueue q ON q.oid = r.rolresqueue
            WHERE r.rolname NOT LIKE 'pg\\_%'
            ORDER BY r.rolname, r.oid;
        """
        rows = self.query(conn, query)
        constraints = self._read_time_constraints(conn)

        def decode(row):
            return Role(
                oid=require(row, "oid"),
                name=require(row, "name"),
                superuser=require(row, "superuser"),
                inherit=require(row, "inherit"),
                create_role=require(row, "create_role"),
                create_db=require(row, "create_db"),
                can_login=require(row, "can_login"),
                connection_limit=require(row, "connection_limit"),
                password=row["password"],
                valid_until=row["valid_until"],
                resource_queue=row["resource_queue"],
                create_ext_http=bool(row["create_ext_http"]),
                create_ext_gpfdist_read=bool(row["create_ext_gpfdist_read"]),
                create_ext_gpfdist_write=bool(row["create_ext_gpfdist_write"]),
                create_ext_hdfs_read=bool(row["create_ext_hdfs_read"]),
                create_ext_hdfs_write=bool(row["create_ext_hdfs_write"]),
                time_constraints=tuple(constraints.get(row["oid"], ())),
            )

        return self.decode_rows(rows, decode)

    def _read_time_constraints(self, conn) -> dict[int, list[TimeConstraint]]:
        """Group DENY windows by role oid, keeping insertion order (day 0 = Sunday)."""
        query = """
            SELECT
                authid AS oid,
                start_day,
                start_time::text AS start_time,
                end_day,
                end_time::text AS end_time
            FROM pg_catalog.pg_auth_time_constraint
            ORDER BY authid, ctid;
        """
        rows = self.query(conn, query)

        def decode(row):
            return row["oid"], TimeConstraint(
                start_day=require(row, "start_day"),
                start_time=require(row, "start_time"),
                end_day=require(row, "end_day"),
                end_time=require(row, "end_time"),
            )

        grouped: dict[int, list[TimeConstraint]] = {}
        for oid, constraint in self.decode_rows(rows, decode):
            grouped.setdefault(oid, []).append(constraint)
        return grouped
