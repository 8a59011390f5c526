"""serve command for abac-gate CLI.

Runs the HTTP API (sessions and evaluate routes) under uvicorn.

The session management routes need a management token. Pass one with
--token or ABAC_GATE_API_TOKEN (e.g. shared with the identity service);
otherwise a fresh token is generated and printed once on stderr.
"""

from __future__ import annotations

__all__ = ["API_TOKEN_ENV_VAR", "serve"]

import sys

import click
import uvicorn

from abac_gate.api.security import generate_token
from abac_gate.api.server import create_app
from abac_gate.bootstrap import build_service
from abac_gate.exceptions import ConfigurationError

from ..context import configure_logging, load_config_or_exit
from ..styling import style_dim, style_error, style_label, style_warning

API_TOKEN_ENV_VAR = "ABAC_GATE_API_TOKEN"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8766


@click.command("serve")
@click.option("--host", default=DEFAULT_HOST, show_default=True, help="Bind address")
@click.option("--port", default=DEFAULT_PORT, show_default=True, type=int, help="Bind port")
@click.option(
    "--token",
    envvar=API_TOKEN_ENV_VAR,
    default=None,
    help=f"Management token for /api/sessions (env: {API_TOKEN_ENV_VAR}; generated if omitted)",
)
@click.option("--create-tables", is_flag=True, help="Create missing store tables on startup")
@click.pass_context
def serve(ctx: click.Context, host: str, port: int, token: str | None, create_tables: bool) -> None:
    """Run the HTTP API."""
    config = load_config_or_exit(ctx)
    configure_logging(config)

    if token is not None and not token.strip():
        click.echo(style_error("Management token must not be empty"), err=True)
        sys.exit(1)

    if config.cache.backend == "memory":
        click.echo(style_warning("cache.backend is 'memory'; sessions are lost on restart"), err=True)

    try:
        service = build_service(config, create_tables=create_tables)
    except ConfigurationError as e:
        click.echo(style_error(str(e)), err=True)
        sys.exit(1)

    if token is None:
        token = generate_token()
        click.echo(f"{style_label('Management token')} {token}", err=True)
        click.echo(
            style_dim(f"Send as 'Authorization: Bearer <token>'; set {API_TOKEN_ENV_VAR} to reuse one."),
            err=True,
        )

    app = create_app(service, token=token, owns_service=True)
    uvicorn.run(app, host=host, port=port, log_level=config.logging.log_level.lower())
