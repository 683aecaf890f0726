"""Dependency-ordered metadata extraction for Greenplum and PostgreSQL catalogs."""

__version__ = "0.1.0"
