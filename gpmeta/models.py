"""Data models for extracted catalog objects.

Every record is a frozen snapshot of one catalog row (or row group) taken at
extraction time. Records are never mutated; the dependency extractor derives
new records with ``dataclasses.replace``.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field

_SAFE_IDENT = re.compile(r"^[a-z_][a-z0-9_$]*$")

# Keywords quote_ident() quotes: reserved, column-name and type/function-name
# keywords. Unreserved keywords are left bare.
_QUOTED_KEYWORDS = frozenset("""
    all analyse analyze and any array as asc asymmetric authorization between
    bigint binary bit boolean both case cast char character check coalesce
    collate collation column concurrently constraint create cross
    current_catalog current_date current_role current_schema current_time
    current_timestamp current_user dec decimal default deferrable desc distinct
    do else end except exists extract false fetch float for foreign freeze from
    full grant greatest group grouping having ilike in initially inner inout int
    integer intersect interval into is isnull join lateral leading least left
    like limit localtime localtimestamp national natural nchar none not notnull
    null nullif numeric offset on only or order out outer overlaps overlay
    placing position precision primary real references returning right row
    select session_user setof similar smallint some substring symmetric table
    tablesample then time timestamp to trailing treat trim true union unique
    user using values varchar variadic verbose when where window with
    xmlattributes xmlconcat xmlelement xmlexists xmlforest xmlparse xmlpi
    xmlroot xmlserialize
""".split())

# Schemas whose contents belong to the server, never to the user
SYSTEM_SCHEMAS = (
    "pg_catalog",
    "information_schema",
    "pg_toast",
    "pg_bitmapindex",
    "pg_aoseg",
    "gp_toolkit",
)


def quote_ident(name: str) -> str:
    """Quote an identifier the way PostgreSQL's quote_ident() does."""
    if _SAFE_IDENT.match(name) and name not in _QUOTED_KEYWORDS:
        return name
    return '"' + name.replace('"', '""') + '"'


def qualify(schema: str, name: str) -> str:
    return f"{quote_ident(schema)}.{quote_ident(name)}"


class ObjectKind(str, enum.Enum):
    ROLE = "role"
    ROLE_MEMBER = "role-member"
    RESOURCE_QUEUE = "resource-queue"
    TABLESPACE = "tablespace"
    LANGUAGE = "language"
    CONVERSION = "conversion"
    CAST = "cast"
    TYPE = "type"
    FUNCTION = "function"
    AGGREGATE = "aggregate"


class CastContext(str, enum.Enum):
    ASSIGNMENT = "a"
    IMPLICIT = "i"
    EXPLICIT = "e"


class Volatility(str, enum.Enum):
    IMMUTABLE = "i"
    STABLE = "s"
    VOLATILE = "v"


class DataAccess(str, enum.Enum):
    NO_SQL = "n"
    CONTAINS_SQL = "c"
    READS_SQL = "r"
    MODIFIES_SQL = "m"


class TypeKind(str, enum.Enum):
    BASE = "b"
    COMPOSITE = "c"
    DOMAIN = "d"
    ENUM = "e"


@dataclass(frozen=True)
class CatalogObjectRef:
    """Identity of one catalog object as seen by the name resolver."""

    oid: int
    kind: ObjectKind
    name: str
    schema: str = ""
    builtin: bool = False

    @property
    def bare_name(self) -> str:
        """Name without its schema qualification (and without a signature)."""
        name = self.name.split("(", 1)[0]
        if self.schema:
            prefix = quote_ident(self.schema) + "."
            if name.startswith(prefix):
                return name[len(prefix):]
        return name


# ============================================================================
# Global objects
# ============================================================================


@dataclass(frozen=True)
class TimeConstraint:
    start_day: int
    start_time: str
    end_day: int
    end_time: str


@dataclass(frozen=True)
class Role:
    oid: int
    name: str
    superuser: bool = False
    inherit: bool = True
    create_role: bool = False
    create_db: bool = False
    can_login: bool = False
    connection_limit: int = -1
    password: str = ""
    valid_until: str = ""
    resource_queue: str = ""
    create_ext_http: bool = False
    create_ext_gpfdist_read: bool = False
    create_ext_gpfdist_write: bool = False
    create_ext_hdfs_read: bool = False
    create_ext_hdfs_write: bool = False
    time_constraints: tuple[TimeConstraint, ...] = ()

    kind = ObjectKind.ROLE

    @property
    def key(self) -> str:
        return self.name


@dataclass(frozen=True)
class RoleMember:
    role: str
    member: str
    grantor: str
    admin_option: bool = False

    kind = ObjectKind.ROLE_MEMBER
    oid = 0

    @property
    def key(self) -> str:
        return f"{self.role} TO {self.member}"


@dataclass(frozen=True)
class ResourceQueue:
    oid: int
    name: str
    active_statements: int = -1
    max_cost: str = "-1.00"
    cost_overcommit: bool = False
    min_cost: str = "0.00"
    priority: str = "medium"
    memory_limit: str = "-1"

    kind = ObjectKind.RESOURCE_QUEUE

    @property
    def key(self) -> str:
        return self.name


@dataclass(frozen=True)
class Tablespace:
    oid: int
    name: str
    file_location: str

    kind = ObjectKind.TABLESPACE

    @property
    def key(self) -> str:
        return self.name


@dataclass(frozen=True)
class SessionGUCs:
    client_encoding: str
    standard_conforming_strings: str
    default_with_oids: str


# ============================================================================
# Predata objects
# ============================================================================


@dataclass(frozen=True)
class ProceduralLanguage:
    oid: int
    name: str
    owner: str
    trusted: bool
    procedural: bool
    handler_oid: int = 0
    inline_oid: int = 0
    validator_oid: int = 0

    kind = ObjectKind.LANGUAGE

    @property
    def key(self) -> str:
        return self.name


@dataclass(frozen=True)
class Conversion:
    oid: int
    schema: str
    name: str
    source_encoding: str
    target_encoding: str
    function_name: str
    is_default: bool = False
    function_oid: int = 0

    kind = ObjectKind.CONVERSION

    @property
    def key(self) -> str:
        return qualify(self.schema, self.name)


@dataclass(frozen=True)
class Cast:
    oid: int
    source_type: str
    target_type: str
    function_schema: str = ""
    function_name: str = ""
    function_args: str = ""
    context: CastContext = CastContext.EXPLICIT
    function_oid: int = 0
    source_oid: int = 0
    target_oid: int = 0

    kind = ObjectKind.CAST

    @property
    def key(self) -> str:
        return f"({self.source_type} AS {self.target_type})"


@dataclass(frozen=True)
class Type:
    oid: int
    schema: str
    name: str
    type_kind: TypeKind
    input_oid: int = 0
    output_oid: int = 0
    receive_oid: int = 0
    send_oid: int = 0
    base_type_oid: int = 0
    attribute_type_oids: tuple[int, ...] = ()

    kind = ObjectKind.TYPE

    @property
    def key(self) -> str:
        return qualify(self.schema, self.name)


@dataclass(frozen=True)
class Function:
    oid: int
    schema: str
    name: str
    returns_set: bool = False
    body: str = ""
    link_symbol: str = ""
    binary_path: str = ""
    arguments: str = ""
    identity_arguments: str = ""
    result_type: str = ""
    volatility: Volatility = Volatility.VOLATILE
    strict: bool = False
    security_definer: bool = False
    config: str = ""
    cost: float = 100
    num_rows: float = 0
    data_access: DataAccess = DataAccess.CONTAINS_SQL
    language: str = "sql"
    argument_type_oids: tuple[int, ...] = ()
    result_type_oid: int = 0
    depends_upon: tuple[str, ...] = ()

    kind = ObjectKind.FUNCTION

    @property
    def key(self) -> str:
        return f"{qualify(self.schema, self.name)}({self.identity_arguments})"


@dataclass(frozen=True)
class Aggregate:
    oid: int
    schema: str
    name: str
    arguments: str = ""
    identity_arguments: str = ""
    transition_oid: int = 0
    preliminary_oid: int = 0
    final_oid: int = 0
    sort_operator_oid: int = 0
    transition_type: str = ""
    initial_value: str | None = None
    is_ordered: bool = False
    depends_upon: tuple[str, ...] = ()

    kind = ObjectKind.AGGREGATE

    @property
    def key(self) -> str:
        return f"{qualify(self.schema, self.name)}({self.identity_arguments})"


@dataclass(frozen=True)
class FunctionInfo:
    """Lookup entry for any function visible to the connection, built-in or not."""

    oid: int
    qualified_name: str
    arguments: str
    identity_arguments: str = ""
    is_internal: bool = False
    is_aggregate: bool = False
    schema: str = ""

    @property
    def signature(self) -> str:
        return f"{self.qualified_name}({self.identity_arguments})"


# ============================================================================
# Collections
# ============================================================================


@dataclass(frozen=True)
class CatalogCollections:
    """Everything the readers produced for one extraction, grouped by kind."""

    roles: tuple[Role, ...] = ()
    role_members: tuple[RoleMember, ...] = ()
    resource_queues: tuple[ResourceQueue, ...] = ()
    tablespaces: tuple[Tablespace, ...] = ()
    languages: tuple[ProceduralLanguage, ...] = ()
    conversions: tuple[Conversion, ...] = ()
    casts: tuple[Cast, ...] = ()
    types: tuple[Type, ...] = ()
    functions: tuple[Function, ...] = ()
    aggregates: tuple[Aggregate, ...] = ()
    function_info: dict[int, FunctionInfo] = field(default_factory=dict)
    session_gucs: SessionGUCs | None = None
    database_gucs: tuple[str, ...] = ()
    extracted: frozenset[ObjectKind] = frozenset(ObjectKind)

    def objects(self) -> list:
        """All graph-participating records, in emission-friendly kind order."""
        return [
            *self.resource_queues,
            *self.roles,
            *self.role_members,
            *self.tablespaces,
            *self.languages,
            *self.types,
            *self.functions,
            *self.aggregates,
            *self.casts,
            *self.conversions,
        ]
