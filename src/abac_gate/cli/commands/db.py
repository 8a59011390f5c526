"""init-db command for abac-gate CLI.

Creates the policy store tables (idempotent).
"""

from __future__ import annotations

__all__ = ["init_db_cmd"]

import sys

import click
from sqlalchemy.exc import SQLAlchemyError

from abac_gate.exceptions import ConfigurationError
from abac_gate.pips.models import create_store_engine, init_db

from ..context import configure_logging, load_config_or_exit
from ..styling import style_error, style_label, style_success


@click.command("init-db")
@click.pass_context
def init_db_cmd(ctx: click.Context) -> None:
    """Create missing tables in the configured policy store."""
    config = load_config_or_exit(ctx)
    configure_logging(config)

    try:
        engine = create_store_engine(config.store.database_url, echo=config.store.echo)
    except ConfigurationError as e:
        click.echo(style_error(str(e)), err=True)
        sys.exit(1)

    try:
        tables = init_db(engine)
    except SQLAlchemyError as e:
        click.echo(style_error(f"Could not create tables: {e}"), err=True)
        sys.exit(1)
    finally:
        engine.dispose()

    click.echo(style_success(f"Store initialized: {config.store.database_url}"))
    click.echo(style_label("Tables") + " " + ", ".join(tables))
