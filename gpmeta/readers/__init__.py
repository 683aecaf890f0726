"""Catalog readers, one module per object kind."""
