"""Read Greenplum resource queues."""

from gpmeta.models import ObjectKind, ResourceQueue
from gpmeta.readers.base import BaseReader, require

# pg_resqueuecapability.restypid values
_PRIORITY_CAPABILITY = 5
_MEMORY_CAPABILITY = 6


class ResourceQueuesReader(BaseReader):
    name = "resource_queues"
    kind = ObjectKind.RESOURCE_QUEUE
    description = "Resource queues with statement, cost, priority and memory limits"

    def read(self, conn) -> list[ResourceQueue]:
        """
        Read every resource queue, including pg_default.

        Costs are rounded to two decimals in the query so their text form is
        stable (``-1.00`` means unlimited). Missing priority or memory
        capabilities fall back to ``medium`` and ``-1``.
        """
        query = """
            SELECT
                r.oid,
                r.rsqname AS name,
                r.rsqcountlimit AS active_statements,
                round(r.rsqcostlimit::numeric, 2)::text AS max_cost,
                r.rsqovercommit AS cost_overcommit,
                round(r.rsqignorecostlimit::numeric, 2)::text AS min_cost,
                coalesce(lower(p.ressetting::text), 'medium') AS priority,
                coalesce(m.ressetting::text, '-1') AS memory_limit
            FROM pg_catalog.pg_resqueue r
            LEFT JOIN pg_catalog.pg_resqueuecapability p
                ON p.resqueueid = r.oid AND p.restypid = %s
            LEFT JOIN pg_catalog.pg_resqueuecapability m
                ON m.resqueueid = r.oid AND m.restypid = %s
            ORDER BY r.rsqname, r.oid;
        """
        rows = self.query(conn, query, (_PRIORITY_CAPABILITY, _MEMORY_CAPABILITY))

        def decode(row):
            return ResourceQueue(
                oid=require(row, "oid"),
                name=require(row, "name"),
                active_statements=int(require(row, "active_statements")),
                max_cost=require(row, "max_cost"),
                cost_overcommit=require(row, "cost_overcommit"),
                min_cost=require(row, "min_cost"),
                priority=row["priority"],
                memory_limit=row["memory_limit"],
            )

        return self.decode_rows(rows, decode)
