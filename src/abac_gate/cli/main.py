"""Main CLI entry point for abac-gate.

Defines the CLI group and registers all subcommands.

Commands:
    config    - Configuration management (init, show, path, validate)
    init-db   - Create the policy store tables
    evaluate  - Evaluate a subject's permission directly against the store
    sessions  - Session Snapshot management (create, show, refresh, extend,
                destroy, destroy-all, list)
    serve     - Run the HTTP API

Subcommand help:
    abac-gate COMMAND -h         Show help for a specific command
"""

from __future__ import annotations

__all__ = ["cli", "main"]

import sys
from pathlib import Path

import click

from abac_gate import __version__

from .commands.config import config
from .commands.db import init_db_cmd
from .commands.evaluate import evaluate
from .commands.serve import serve
from .commands.sessions import sessions
from .context import CONFIG_ENV_VAR


class ReorderedGroup(click.Group):
    """Custom group that shows commands before custom help text."""

    def format_epilog(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        """Add extra help after commands section."""
        formatter.write(
            """
Quick Start:
  abac-gate config init                          Write a default config
  abac-gate init-db                              Create the store tables
  abac-gate evaluate <subject> entries read      Explain a decision
  abac-gate sessions create <subject>            Materialize a session
  abac-gate serve --port 8766                    Run the HTTP API
"""
        )


@click.group(
    cls=ReorderedGroup,
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option("--version", "-v", is_flag=True, help="Show version")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    envvar=CONFIG_ENV_VAR,
    help=f"Config file (default: OS config dir; env: {CONFIG_ENV_VAR})",
)
@click.pass_context
def cli(ctx: click.Context, version: bool, config_path: Path | None) -> None:
    """abac-gate: attribute-based access control with session snapshots."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    if version:
        click.echo(f"abac-gate {__version__}")
        sys.exit(0)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# Register commands
cli.add_command(config)
cli.add_command(init_db_cmd)
cli.add_command(evaluate)
cli.add_command(serve)
cli.add_command(sessions)


def main() -> None:
    """CLI entry point."""
    cli()
