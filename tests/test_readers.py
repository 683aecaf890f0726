"""Tests for the catalog readers — row decoding against canned catalog rows."""

from __future__ import annotations

import pytest

from gpmeta.errors import DecodeError
from gpmeta.models import SYSTEM_SCHEMAS, CastContext, DataAccess, TimeConstraint, TypeKind, Volatility
from gpmeta.readers.cluster.gucs import DatabaseGUCsReader, SessionGUCsReader
from gpmeta.readers.cluster.resource_queues import ResourceQueuesReader
from gpmeta.readers.cluster.role_members import RoleMembersReader
from gpmeta.readers.cluster.roles import RolesReader
from gpmeta.readers.cluster.tablespaces import TablespacesReader
from gpmeta.readers.predata.aggregates import AggregatesReader
from gpmeta.readers.predata.casts import CastsReader
from gpmeta.readers.predata.conversions import ConversionsReader
from gpmeta.readers.predata.function_info import FunctionInfoReader, function_info_map
from gpmeta.readers.predata.functions import FunctionsReader
from gpmeta.readers.predata.languages import LanguagesReader
from gpmeta.readers.predata.types import TypesReader


def _role_row(**overrides):
    row = {
        "oid": 16384,
        "name": "testrole",
        "superuser": False,
        "inherit": True,
        "create_role": False,
        "create_db": False,
        "can_login": False,
        "connection_limit": -1,
        "password": "",
        "valid_until": "",
        "resource_queue": "pg_default",
        "create_ext_http": False,
        "create_ext_gpfdist_read": False,
        "create_ext_gpfdist_write": False,
        "create_ext_hdfs_read": False,
        "create_ext_hdfs_write": False,
    }
    row.update(overrides)
    return row


def _function_row(**overrides):
    row = {
        "oid": 16500,
        "schema": "public",
        "name": "add",
        "returns_set": False,
        "prosrc": "SELECT $1 + $2",
        "binary_path": "",
        "arguments": "integer, integer",
        "identity_arguments": "integer, integer",
        "result_type": "integer",
        "volatility": "i",
        "strict": True,
        "security_definer": False,
        "config": "",
        "cost": 100,
        "num_rows": 0,
        "data_access": "c",
        "language": "sql",
        "argument_types": "23 23",
        "result_type_oid": 23,
    }
    row.update(overrides)
    return row


# -- Resource queues ---------------------------------------------------------


class TestResourceQueuesReader:
    def test_statement_limited_queue(self, fake_conn):
        conn = fake_conn([
            ("pg_resqueue", [{
                "oid": 16400,
                "name": "statementsQueue",
                "active_statements": 7,
                "max_cost": "-1.00",
                "cost_overcommit": False,
                "min_cost": "0.00",
                "priority": "medium",
                "memory_limit": "-1",
            }]),
        ])
        [queue] = ResourceQueuesReader().read(conn)
        assert queue.name == "statementsQueue"
        assert queue.active_statements == 7
        assert queue.max_cost == "-1.00"
        assert queue.cost_overcommit is False
        assert queue.min_cost == "0.00"
        assert queue.priority == "medium"
        assert queue.memory_limit == "-1"

    def test_capability_ids_passed_as_params(self, fake_conn):
        conn = fake_conn()
        ResourceQueuesReader().read(conn)
        _query, params = conn.executed[0]
        assert params == (5, 6)


# -- Roles ------------------------------------------------------------------


class TestRolesReader:
    def test_superuser_noinherit(self, fake_conn):
        conn = fake_conn([
            ("pg_authid", [_role_row(superuser=True, inherit=False)]),
        ])
        [role] = RolesReader().read(conn)
        assert role.name == "testrole"
        assert role.superuser is True
        assert role.inherit is False
        assert role.create_role is False
        assert role.connection_limit == -1
        assert role.password == ""
        assert role.resource_queue == "pg_default"
        assert role.time_constraints == ()

    def test_time_constraints_attached_in_order(self, fake_conn):
        conn = fake_conn([
            ("pg_auth_time_constraint", [
                {"oid": 16384, "start_day": 0, "start_time": "13:30:00", "end_day": 3, "end_time": "14:30:00"},
                {"oid": 16384, "start_day": 5, "start_time": "00:00:00", "end_day": 5, "end_time": "24:00:00"},
            ]),
            ("pg_authid", [_role_row(), _role_row(oid=16385, name="other")]),
        ])
        roles = RolesReader().read(conn)
        assert roles[0].time_constraints == (
            TimeConstraint(0, "13:30:00", 3, "14:30:00"),
            TimeConstraint(5, "00:00:00", 5, "24:00:00"),
        )
        assert roles[1].time_constraints == ()

    def test_valid_until_text_kept(self, fake_conn):
        conn = fake_conn([
            ("pg_authid", [_role_row(valid_until="2099-01-01 08:00:00-00")]),
        ])
        [role] = RolesReader().read(conn)
        assert role.valid_until == "2099-01-01 08:00:00-00"

    def test_null_required_column_is_decode_error(self, fake_conn):
        conn = fake_conn([("pg_authid", [_role_row(superuser=None)])])
        with pytest.raises(DecodeError) as exc_info:
            RolesReader().read(conn)
        assert exc_info.value.kind == "role"
        assert exc_info.value.oid == 16384

    def test_missing_column_is_decode_error(self, fake_conn):
        row = _role_row()
        del row["can_login"]
        conn = fake_conn([("pg_authid", [row])])
        with pytest.raises(DecodeError) as exc_info:
            RolesReader().read(conn)
        assert exc_info.value.kind == "role"


class TestRoleMembersReader:
    def test_grant_rows(self, fake_conn):
        conn = fake_conn([
            ("pg_auth_members", [
                {"role": "admins", "member": "alice", "grantor": "gpadmin", "admin_option": True},
                {"role": "admins", "member": "alice", "grantor": "gpadmin", "admin_option": True},
            ]),
        ])
        members = RoleMembersReader().read(conn)
        # Duplicates are kept as the catalog returns them
        assert len(members) == 2
        assert members[0].key == "admins TO alice"
        assert members[0].admin_option is True

    def test_dropped_grantor_is_empty(self, fake_conn):
        conn = fake_conn([
            ("pg_auth_members", [
                {"role": "grp", "member": "usr", "grantor": "", "admin_option": False},
            ]),
        ])
        [member] = RoleMembersReader().read(conn)
        assert member.grantor == ""
        query, _params = conn.executed[0]
        assert "LEFT JOIN pg_catalog.pg_authid" in query


# -- Tablespaces and GUCs ------------------------------------------------------


class TestTablespacesReader:
    def test_location_function_on_modern_servers(self, fake_conn):
        conn = fake_conn([("pg_tablespace", [{"oid": 16390, "name": "fast", "file_location": "/data/fast"}])])
        [ts] = TablespacesReader().read(conn)
        assert ts.file_location == "/data/fast"
        assert "pg_tablespace_location" in conn.executed[0][0]

    def test_filespace_on_gp5(self, fake_conn):
        conn = fake_conn([("pg_tablespace", [{"oid": 16390, "name": "fast", "file_location": "fs1"}])], server_version=80323)
        [ts] = TablespacesReader().read(conn)
        assert ts.file_location == "fs1"
        assert "pg_filespace" in conn.executed[0][0]


class TestGUCReaders:
    def test_session_gucs(self, fake_conn):
        conn = fake_conn([("current_setting", [{
            "client_encoding": "UTF8",
            "standard_conforming_strings": "on",
            "default_with_oids": "off",
        }])])
        [gucs] = SessionGUCsReader().read(conn)
        assert gucs.client_encoding == "UTF8"
        assert gucs.standard_conforming_strings == "on"

    def test_database_gucs_formatted(self, fake_conn):
        conn = fake_conn([("pg_options_to_table", [
            {"option_name": "default_tablespace", "option_value": "fast"},
            {"option_name": "search_path", "option_value": "public, other"},
        ])])
        assert DatabaseGUCsReader().read(conn) == [
            "SET default_tablespace TO fast",
            "SET search_path TO public, other",
        ]
        assert "pg_db_role_setting" in conn.executed[0][0]

    def test_database_gucs_old_catalog(self, fake_conn):
        conn = fake_conn(server_version=80323)
        assert DatabaseGUCsReader().read(conn) == []
        assert "datconfig" in conn.executed[0][0]


# -- Predata readers --------------------------------------------------------


class TestLanguagesReader:
    def test_handler_oids(self, fake_conn):
        conn = fake_conn([("pg_language", [
            {"oid": 16420, "name": "plpgsql", "owner": "gpadmin", "trusted": True, "procedural": True,
             "handler_oid": 16421, "inline_oid": 16422, "validator_oid": 16423},
            {"oid": 16430, "name": "plperl", "owner": "gpadmin", "trusted": True, "procedural": True,
             "handler_oid": 16431, "inline_oid": None, "validator_oid": None},
        ])])
        langs = LanguagesReader().read(conn)
        assert [lang.name for lang in langs] == ["plpgsql", "plperl"]
        assert langs[1].inline_oid == 0
        assert langs[1].validator_oid == 0


class TestConversionsReader:
    def test_function_name_qualified(self, fake_conn):
        conn = fake_conn([("pg_conversion", [{
            "oid": 16440, "schema": "public", "name": "testconv",
            "source_encoding": "LATIN1", "target_encoding": "MULE_INTERNAL",
            "function_schema": "pg_catalog", "function_name": "latin1_to_mic",
            "function_oid": 4300, "is_default": False,
        }])])
        [conv] = ConversionsReader().read(conn)
        assert conv.function_name == "pg_catalog.latin1_to_mic"
        assert conv.key == "public.testconv"


class TestCastsReader:
    def test_cast_with_function(self, fake_conn):
        conn = fake_conn([("pg_cast", [{
            "oid": 16450,
            "source_schema": "public", "source_name": "casttesttype",
            "target_schema": "pg_catalog", "target_name": "text",
            "source_oid": 16451, "target_oid": 25,
            "function_schema": "public", "function_name": "cast_fn",
            "function_args": "public.casttesttype", "function_oid": 16452,
            "context": "a",
        }])])
        [cast] = CastsReader().read(conn)
        assert cast.source_type == "public.casttesttype"
        assert cast.target_type == "pg_catalog.text"
        assert cast.function_name == "cast_fn"
        assert cast.context == CastContext.ASSIGNMENT

    def test_cast_without_function(self, fake_conn):
        conn = fake_conn([("pg_cast", [{
            "oid": 16450,
            "source_schema": "public", "source_name": "t1",
            "target_schema": "public", "target_name": "t2",
            "source_oid": 16451, "target_oid": 16452,
            "function_schema": "", "function_name": "", "function_args": "",
            "function_oid": 0, "context": "e",
        }])])
        [cast] = CastsReader().read(conn)
        assert cast.function_schema == cast.function_name == cast.function_args == ""
        assert cast.function_oid == 0
        assert cast.context == CastContext.EXPLICIT

    def test_bad_context_code_is_decode_error(self, fake_conn):
        conn = fake_conn([("pg_cast", [{
            "oid": 16450,
            "source_schema": "public", "source_name": "t1",
            "target_schema": "public", "target_name": "t2",
            "source_oid": 16451, "target_oid": 16452,
            "function_schema": "", "function_name": "", "function_args": "",
            "function_oid": 0, "context": "x",
        }])])
        with pytest.raises(DecodeError) as exc_info:
            CastsReader().read(conn)
        assert exc_info.value.kind == "cast"
        assert exc_info.value.oid == 16450


class TestFunctionsReader:
    def test_sql_function(self, fake_conn):
        conn = fake_conn([("pg_proc", [_function_row()])])
        [fn] = FunctionsReader().read(conn)
        assert fn.key == "public.add(integer, integer)"
        assert fn.body == "SELECT $1 + $2"
        assert fn.link_symbol == ""
        assert fn.volatility == Volatility.IMMUTABLE
        assert fn.data_access == DataAccess.CONTAINS_SQL
        assert fn.argument_type_oids == (23, 23)
        assert fn.depends_upon == ()

    def test_c_function_keeps_link_symbol(self, fake_conn):
        conn = fake_conn([("pg_proc", [_function_row(
            language="c", prosrc="add_ints", binary_path="$libdir/mylib",
        )])])
        [fn] = FunctionsReader().read(conn)
        assert fn.body == ""
        assert fn.link_symbol == "add_ints"
        assert fn.binary_path == "$libdir/mylib"

    def test_aggregate_filter_uses_proisagg_before_pg11(self, fake_conn):
        conn = fake_conn(server_version=90400)
        FunctionsReader().read(conn)
        assert "proisagg" in conn.executed[0][0]

    def test_aggregate_filter_uses_prokind_on_pg11(self, fake_conn):
        conn = fake_conn(server_version=120000)
        FunctionsReader().read(conn)
        assert "prokind" in conn.executed[0][0]


class TestAggregatesReader:
    def test_missing_slots_are_zero(self, fake_conn):
        conn = fake_conn([("pg_aggregate", [{
            "oid": 16460, "schema": "public", "name": "agg_prefunc",
            "arguments": "numeric, numeric", "identity_arguments": "numeric, numeric",
            "transition_oid": 16461, "preliminary_oid": 0, "final_oid": None,
            "sort_operator_oid": 0, "transition_type": "numeric",
            "initial_value": None, "is_ordered": False,
        }])])
        [agg] = AggregatesReader().read(conn)
        assert agg.transition_oid == 16461
        assert agg.final_oid == 0
        assert agg.initial_value is None


class TestTypesReader:
    def test_composite_attribute_types(self, fake_conn):
        conn = fake_conn([("pg_type", [{
            "oid": 16470, "schema": "public", "name": "composite_type",
            "type_kind": "c", "input_oid": 2290, "output_oid": 2291,
            "receive_oid": 2402, "send_oid": 2403, "base_type_oid": 0,
            "attribute_types": "23 25",
        }])])
        [type_] = TypesReader().read(conn)
        assert type_.type_kind == TypeKind.COMPOSITE
        assert type_.attribute_type_oids == (23, 25)


class TestFunctionInfoReader:
    def test_internal_flag(self, fake_conn):
        conn = fake_conn([("pg_proc", [
            {"oid": 1242, "schema": "pg_catalog", "name": "boolin", "arguments": "cstring",
             "identity_arguments": "cstring", "is_internal": True, "is_aggregate": False},
            {"oid": 16500, "schema": "public", "name": "add", "arguments": "integer, integer",
             "identity_arguments": "integer, integer", "is_internal": False, "is_aggregate": False},
        ])])
        infos = function_info_map(FunctionInfoReader().read(conn))
        assert infos[1242].is_internal is True
        assert infos[1242].qualified_name == "pg_catalog.boolin"
        assert infos[16500].is_internal is False
        assert infos[16500].signature == "public.add(integer, integer)"

    def test_every_system_schema_is_internal(self, fake_conn):
        conn = fake_conn()
        FunctionInfoReader().read(conn)
        _query, params = conn.executed[0]
        assert params == (SYSTEM_SCHEMAS,)
        assert "gp_toolkit" in params[0]
