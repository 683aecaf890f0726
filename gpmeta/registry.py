"""Auto-discovery and registration of catalog reader modules."""

from __future__ import annotations

import importlib
import logging
import pkgutil
from pathlib import Path

from gpmeta.readers.base import BaseReader

logger = logging.getLogger(__name__)

# Readers whose output other components cannot do without
REQUIRED_READERS = frozenset({"function_info", "types"})


def discover_readers(
    kinds: list[str] | None = None,
    exclude: set[str] | None = None,
    include_only: set[str] | None = None,
) -> list[BaseReader]:
    """
    Discover and instantiate all BaseReader subclasses under the gpmeta.readers package.

    Parameters:
        kinds (list[str] | None): If provided, only include readers whose `kind` is in this list.
        exclude (set[str] | None): Reader names to skip. Required readers are never skipped.
        include_only (set[str] | None): If provided, only these reader names (plus the
            required readers) are returned.

    Returns:
        list[BaseReader]: Instantiated readers, sorted by name.
    """
    readers_package = importlib.import_module("gpmeta.readers")
    assert readers_package.__file__ is not None
    readers_dir = Path(readers_package.__file__).parent

    _import_submodules("gpmeta.readers", readers_dir)

    instances = []
    seen = set()
    for cls in _all_subclasses(BaseReader):
        if cls in seen or not cls.name:
            continue
        seen.add(cls)
        required = cls.name in REQUIRED_READERS
        kind = getattr(cls.kind, "value", cls.kind)
        if kinds and kind not in kinds and not required:
            continue
        if exclude and cls.name in exclude and not required:
            continue
        if include_only is not None and cls.name not in include_only and not required:
            continue
        instances.append(cls())

    instances.sort(key=lambda r: r.name)
    return instances


def _import_submodules(package_name: str, package_dir: Path):
    """
    Recursively import all submodules in a package directory.

    A module that fails to import is logged and skipped so the remaining
    readers are still discovered.
    """
    for _importer, modname, _ispkg in pkgutil.walk_packages(
        path=[str(package_dir)],
        prefix=package_name + ".",
    ):
        try:
            importlib.import_module(modname)
        except ImportError as exc:
            logger.warning("Skipping reader module %s: %s", modname, exc)


def _all_subclasses(cls):
    """Collect direct and indirect subclasses of `cls`, depth-first."""
    result = []
    for sub in cls.__subclasses__():
        result.append(sub)
        result.extend(_all_subclasses(sub))
    return result
