"""Configuration loading and management for gpmeta."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

CONFIG_FILENAME = "gpmeta.yaml"


@dataclass
class ReaderConfig:
    """Configuration for which readers to include/exclude."""

    exclude: set[str] = field(default_factory=set)
    include_only: set[str] | None = None  # None = no whitelist, run all minus exclude


@dataclass
class ExtractionConfig:
    """Worker pool and time limits for one extraction."""

    workers: int = 4
    statement_timeout: float | None = None  # seconds per catalog query
    timeout: float | None = None  # seconds for the whole extraction
    default_schema: str = "public"


@dataclass
class Config:
    """Complete configuration for gpmeta."""

    readers: ReaderConfig = field(default_factory=ReaderConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)


def find_config_file() -> str | None:
    """Search for gpmeta.yaml in cwd, then home dir.

    Returns:
        Path to config file if found, None otherwise.
    """
    cwd_config = Path.cwd() / CONFIG_FILENAME
    if cwd_config.is_file():
        return str(cwd_config)

    home_config = Path.home() / CONFIG_FILENAME
    if home_config.is_file():
        return str(home_config)

    return None


def load_config(config_path: str | None = None, auto_discover: bool = True) -> Config:
    """Load configuration from YAML file.

    Args:
        config_path: Explicit path to config file. If None and auto_discover is True,
                     searches default locations.
        auto_discover: If True and config_path is None, search for config file.

    Returns:
        Config object. Returns default config if no file found.
    """
    if config_path is None and auto_discover:
        config_path = find_config_file()

    if config_path is None:
        return Config()

    if not os.path.isfile(config_path):
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    return _parse_config(data)


def _parse_config(data: dict) -> Config:
    """Parse YAML data into Config object."""
    config = Config()

    if "readers" in data:
        config.readers = _parse_reader_config(data["readers"] or {})

    if "extraction" in data:
        section = data["extraction"] or {}
        defaults = ExtractionConfig()
        config.extraction = ExtractionConfig(
            workers=int(section.get("workers", defaults.workers)),
            statement_timeout=section.get("statement_timeout", defaults.statement_timeout),
            timeout=section.get("timeout", defaults.timeout),
            default_schema=section.get("default_schema", defaults.default_schema),
        )
        if config.extraction.workers < 1:
            raise ValueError(f"extraction.workers must be at least 1, got {config.extraction.workers}")

    return config


def _parse_reader_config(data: dict) -> ReaderConfig:
    """Parse reader configuration section."""
    exclude = set(data.get("exclude", []))

    include_only = None
    if "include_only" in data:
        include_only = set(data["include_only"])

    return ReaderConfig(exclude=exclude, include_only=include_only)


def merge_cli_with_config(
    config: Config,
    cli_exclude: set[str] | None = None,
    cli_include_only: set[str] | None = None,
    cli_workers: int | None = None,
    cli_timeout: float | None = None,
    cli_statement_timeout: float | None = None,
) -> Config:
    """Merge CLI arguments with config file settings.

    CLI arguments take precedence over config file.

    Args:
        config: Loaded configuration.
        cli_exclude: Readers to exclude (from --exclude flag).
        cli_include_only: Readers to include only (from --include-only flag).
        cli_workers: Worker count (from --workers flag).
        cli_timeout: Overall timeout in seconds (from --timeout flag).
        cli_statement_timeout: Per-query timeout in seconds (from --statement-timeout flag).

    Returns:
        A new Config with merged settings.
    """
    # CLI exclude adds to config exclude
    readers = ReaderConfig(
        exclude=config.readers.exclude | (cli_exclude or set()),
        include_only=config.readers.include_only,
    )

    # CLI include_only completely overrides config
    if cli_include_only is not None:
        readers = ReaderConfig(exclude=readers.exclude, include_only=cli_include_only)

    extraction = ExtractionConfig(
        workers=cli_workers if cli_workers is not None else config.extraction.workers,
        statement_timeout=(
            cli_statement_timeout
            if cli_statement_timeout is not None
            else config.extraction.statement_timeout
        ),
        timeout=cli_timeout if cli_timeout is not None else config.extraction.timeout,
        default_schema=config.extraction.default_schema,
    )

    return Config(readers=readers, extraction=extraction)
