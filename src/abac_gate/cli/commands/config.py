"""Config command group for abac-gate CLI.

Provides configuration management subcommands.
"""

from __future__ import annotations

__all__ = ["config"]

import json
import sys
from pathlib import Path

import click
from pydantic import ValidationError

from abac_gate.config import AppConfig, CacheConfig, LoggingConfig, SessionConfig, StoreConfig

from ..context import get_config_path_from_context
from ..styling import style_error, style_header, style_success


def _load_raw_config(config_path: Path) -> dict[str, object]:
    """Load raw JSON from config file without Pydantic defaults."""
    with open(config_path, encoding="utf-8") as f:
        result: dict[str, object] = json.load(f)
        return result


def _is_default(raw_config: dict[str, object], *keys: str) -> bool:
    """Check if a config path is missing from the raw file (using default).

    Args:
        raw_config: Raw JSON dict from file.
        *keys: Path to the value (e.g., "session", "ttl_seconds").

    Returns:
        True if the key path is missing from raw config.
    """
    current: object = raw_config
    for key in keys:
        if not isinstance(current, dict) or key not in current:
            return True
        current = current[key]
    return False


def _default_marker() -> str:
    """Return styled (default) marker."""
    return click.style(" (default)", dim=True)


def _echo_field(raw_config: dict[str, object], section: str, name: str, value: object) -> None:
    marker = _default_marker() if _is_default(raw_config, section, name) else ""
    click.echo(f"  {name}: {value}{marker}")


@click.group()
def config() -> None:
    """Configuration management commands."""
    pass


@config.command("init")
@click.option("--force", is_flag=True, help="Overwrite an existing config file")
@click.option("--database-url", help="SQLAlchemy URL of the policy store")
@click.option("--cache-backend", type=click.Choice(["memory", "redis"]), help="Session cache backend")
@click.option("--redis-url", help="Redis URL (cache backend 'redis')")
@click.option("--ttl-seconds", type=int, help="Session Snapshot lifetime")
@click.option("--max-extensions", type=int, help="Cap on sliding extensions per session")
@click.option("--log-dir", help="Base directory for logs")
@click.option("--no-audit", is_flag=True, help="Disable the decision audit log")
@click.pass_context
def config_init(
    ctx: click.Context,
    force: bool,
    database_url: str | None,
    cache_backend: str | None,
    redis_url: str | None,
    ttl_seconds: int | None,
    max_extensions: int | None,
    log_dir: str | None,
    no_audit: bool,
) -> None:
    """Write a config file with defaults plus the given overrides."""
    config_path = get_config_path_from_context(ctx)
    if config_path.exists() and not force:
        click.echo(style_error(f"Config already exists at {config_path}"), err=True)
        click.echo("Use --force to overwrite.", err=True)
        sys.exit(1)

    def given(**values: object) -> dict[str, object]:
        return {key: value for key, value in values.items() if value is not None}

    try:
        new_config = AppConfig(
            session=SessionConfig(**given(ttl_seconds=ttl_seconds, max_extensions=max_extensions)),
            store=StoreConfig(**given(database_url=database_url)),
            cache=CacheConfig(**given(backend=cache_backend, redis_url=redis_url)),
            logging=LoggingConfig(**given(log_dir=log_dir, audit_decisions=False if no_audit else None)),
        )
    except ValidationError as e:
        click.echo(style_error(f"Invalid option: {e}"), err=True)
        sys.exit(1)

    new_config.save_to_file(config_path)
    click.echo(style_success(f"Configuration written to {config_path}"))


@config.command("show")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def config_show(ctx: click.Context, as_json: bool) -> None:
    """Display current configuration.

    Values marked (default) are not in the config file - using built-in defaults.
    """
    config_file_path = get_config_path_from_context(ctx)

    try:
        loaded_config = AppConfig.load_from_file(config_file_path)
        raw_config = _load_raw_config(config_file_path)
    except (FileNotFoundError, ValueError) as e:
        click.echo("\n" + style_error(f"Error: {e}"), err=True)
        sys.exit(1)

    if as_json:
        config_dict = loaded_config.model_dump(mode="json")
        config_dict["_computed"] = {
            "config_file": str(config_file_path),
            "log_files": {
                "decisions": str(loaded_config.logging.decisions_log_path),
                "system": str(loaded_config.logging.system_log_path),
            },
        }
        click.echo(json.dumps(config_dict, indent=2))
        return

    click.echo("\nabac-gate configuration:\n")

    click.echo(style_header("Session"))
    _echo_field(raw_config, "session", "ttl_seconds", loaded_config.session.ttl_seconds)
    _echo_field(raw_config, "session", "extend_on_access", loaded_config.session.extend_on_access)
    _echo_field(
        raw_config,
        "session",
        "max_extensions",
        loaded_config.session.max_extensions if loaded_config.session.max_extensions is not None else "unlimited",
    )
    click.echo()

    click.echo(style_header("Store"))
    _echo_field(raw_config, "store", "database_url", loaded_config.store.database_url)
    _echo_field(raw_config, "store", "echo", loaded_config.store.echo)
    click.echo()

    click.echo(style_header("Cache"))
    _echo_field(raw_config, "cache", "backend", loaded_config.cache.backend)
    if loaded_config.cache.backend == "redis":
        _echo_field(raw_config, "cache", "redis_url", loaded_config.cache.redis_url)
    _echo_field(raw_config, "cache", "key_prefix", loaded_config.cache.key_prefix)
    _echo_field(raw_config, "cache", "index_prefix", loaded_config.cache.index_prefix)
    click.echo()

    click.echo(style_header("Logging"))
    _echo_field(raw_config, "logging", "log_dir", loaded_config.logging.log_dir)
    _echo_field(raw_config, "logging", "log_level", loaded_config.logging.log_level)
    _echo_field(raw_config, "logging", "audit_decisions", loaded_config.logging.audit_decisions)
    click.echo()
    click.echo("  Log files (computed from log_dir):")
    click.echo(f"    decisions: {loaded_config.logging.decisions_log_path}")
    click.echo(f"    system: {loaded_config.logging.system_log_path}")
    click.echo()

    click.echo(f"Config file: {config_file_path}")


@config.command("path")
@click.pass_context
def config_path_cmd(ctx: click.Context) -> None:
    """Show config file path.

    Displays the OS-appropriate config file location unless --config or
    ABAC_GATE_CONFIG overrides it:
    - macOS: ~/Library/Application Support/abac-gate/
    - Linux: ~/.config/abac-gate/
    - Windows: C:\\Users\\<user>\\AppData\\Roaming\\abac-gate/
    """
    path = get_config_path_from_context(ctx)
    click.echo(str(path))

    if not path.exists():
        click.echo("(file does not exist - run 'abac-gate config init' to create)", err=True)


@config.command("validate")
@click.option(
    "--path",
    "-p",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Validate file at this path (does not change config location)",
)
@click.pass_context
def config_validate(ctx: click.Context, path: Path | None) -> None:
    """Validate configuration file.

    Exit codes:
        0: Config is valid
        1: Config is invalid or not found
    """
    config_file_path = path or get_config_path_from_context(ctx)

    try:
        AppConfig.load_from_file(config_file_path)
        click.echo(style_success(f"Config valid: {config_file_path}"))
    except (FileNotFoundError, ValueError) as e:
        click.echo(style_error(str(e)), err=True)
        sys.exit(1)
