"""Shared helpers for CLI commands.

Commands read the config path from the root group (``--config`` or
ABAC_GATE_CONFIG) and build services through open_service(), which
closes the store engine and cache client on exit.
"""

from __future__ import annotations

__all__ = [
    "CONFIG_ENV_VAR",
    "configure_logging",
    "get_config_path_from_context",
    "load_config_or_exit",
    "open_service",
]

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import click

from abac_gate.bootstrap import AbacService, build_service
from abac_gate.config import AppConfig, get_config_path
from abac_gate.utils.logging.logger_setup import configure_package_logging

from .styling import style_error

CONFIG_ENV_VAR = "ABAC_GATE_CONFIG"


def get_config_path_from_context(ctx: click.Context) -> Path:
    """Config path selected on the root group, or the OS default."""
    obj = ctx.find_root().obj or {}
    path = obj.get("config_path")
    return Path(path) if path else get_config_path()


def load_config_or_exit(ctx: click.Context) -> AppConfig:
    """Load the configuration, exiting with status 1 if it is missing or invalid."""
    config_path = get_config_path_from_context(ctx)
    try:
        return AppConfig.load_from_file(config_path)
    except (FileNotFoundError, ValueError) as e:
        click.echo(style_error(f"Error: {e}"), err=True)
        sys.exit(1)


def configure_logging(config: AppConfig) -> None:
    """Send package logs to <log_dir>/system/system.jsonl."""
    level = logging.DEBUG if config.logging.log_level == "DEBUG" else logging.WARNING
    configure_package_logging(config.logging.system_log_path, level)


@contextmanager
def open_service(config: AppConfig, *, create_tables: bool = False) -> Iterator[AbacService]:
    """Build the service for one command and close it afterwards."""
    configure_logging(config)
    service = build_service(config, create_tables=create_tables)
    try:
        yield service
    finally:
        service.close()
