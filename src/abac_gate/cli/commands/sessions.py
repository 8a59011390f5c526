"""Sessions command group for abac-gate CLI.

Manages Session Snapshots in the configured cache. Only meaningful with a
shared cache (cache.backend = "redis"); with the in-memory backend every
command starts from an empty cache.
"""

from __future__ import annotations

__all__ = ["sessions"]

import json
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import click

from abac_gate.bootstrap import AbacService
from abac_gate.exceptions import ConfigurationError, PolicyResolutionFailure, SubjectNotFoundError
from abac_gate.session.models import SessionSnapshot

from ..context import load_config_or_exit, open_service
from ..styling import style_dim, style_error, style_header, style_label, style_success, style_warning


@contextmanager
def _service(ctx: click.Context) -> Iterator[AbacService]:
    """Open the service, turning setup and availability failures into exit 1."""
    config = load_config_or_exit(ctx)
    if config.cache.backend == "memory":
        click.echo(style_warning("cache.backend is 'memory'; sessions do not outlive this command"), err=True)
    try:
        with open_service(config) as service:
            yield service
    except ConfigurationError as e:
        click.echo(style_error(str(e)), err=True)
        sys.exit(1)
    except PolicyResolutionFailure as e:
        click.echo(style_error(f"Authorization data unavailable: {e}"), err=True)
        sys.exit(1)


def _snapshot_dict(snapshot: SessionSnapshot, service: AbacService) -> dict[str, Any]:
    return {
        "session_id": snapshot.session_id,
        "subject_id": snapshot.subject_id,
        "subject_status": snapshot.user.status.value,
        "state": snapshot.state(service.session_manager.now()).value,
        "roles": [role.name for role in snapshot.user.roles],
        "policy_ids": [policy.id for policy in snapshot.user.policies],
        "created_at": snapshot.created_at.isoformat(),
        "last_accessed_at": snapshot.last_accessed_at.isoformat(),
        "expires_at": snapshot.expires_at.isoformat(),
        "extension_count": snapshot.extension_count,
    }


def _echo_snapshot(snapshot: SessionSnapshot, service: AbacService) -> None:
    data = _snapshot_dict(snapshot, service)
    click.echo(style_header(f"Session {snapshot.session_id[:12]}..."))
    click.echo(f"  Subject: {data['subject_id']} ({data['subject_status']})")
    click.echo(f"  State: {data['state']}")
    click.echo(f"  Roles: {', '.join(data['roles']) or '(none)'}")
    click.echo(f"  Policies: {len(data['policy_ids'])}")
    click.echo(f"  Created: {snapshot.created_at:%Y-%m-%d %H:%M:%S}")
    click.echo(f"  Last access: {snapshot.last_accessed_at:%Y-%m-%d %H:%M:%S}")
    click.echo(f"  Expires: {snapshot.expires_at:%Y-%m-%d %H:%M:%S}")
    click.echo(f"  Extensions: {snapshot.extension_count}")


def _show(
    snapshot: SessionSnapshot | None,
    service: AbacService,
    session_id: str,
    as_json: bool,
) -> None:
    if snapshot is None:
        click.echo(style_error(f"Session not found or expired: {session_id}"), err=True)
        sys.exit(1)
    if as_json:
        click.echo(json.dumps(_snapshot_dict(snapshot, service), indent=2))
    else:
        _echo_snapshot(snapshot, service)


@click.group()
def sessions() -> None:
    """Session Snapshot management commands."""
    pass


@sessions.command("create")
@click.argument("subject_id")
@click.pass_context
def sessions_create(ctx: click.Context, subject_id: str) -> None:
    """Materialize a session for SUBJECT_ID and print its id."""
    with _service(ctx) as service:
        try:
            session_id = service.session_manager.create_session(subject_id)
        except SubjectNotFoundError as e:
            click.echo(style_error(str(e)), err=True)
            sys.exit(1)
    click.echo(session_id)


@sessions.command("show")
@click.argument("session_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def sessions_show(ctx: click.Context, session_id: str, as_json: bool) -> None:
    """Show a session without extending it."""
    with _service(ctx) as service:
        _show(service.session_manager.peek_session(session_id), service, session_id, as_json)


@sessions.command("refresh")
@click.argument("session_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def sessions_refresh(ctx: click.Context, session_id: str, as_json: bool) -> None:
    """Reload a session's roles and policies from the store."""
    with _service(ctx) as service:
        _show(service.session_manager.refresh_session_data(session_id), service, session_id, as_json)


@sessions.command("extend")
@click.argument("session_id")
@click.pass_context
def sessions_extend(ctx: click.Context, session_id: str) -> None:
    """Push a session's expiry forward by one lifetime."""
    with _service(ctx) as service:
        if not service.session_manager.extend_session(session_id):
            click.echo(style_error(f"Session not extended (missing, expired or at its cap): {session_id}"), err=True)
            sys.exit(1)
    click.echo(style_success("Session extended"))


@sessions.command("destroy")
@click.argument("session_id")
@click.pass_context
def sessions_destroy(ctx: click.Context, session_id: str) -> None:
    """Destroy one session."""
    with _service(ctx) as service:
        destroyed = service.session_manager.destroy_session(session_id)
    if not destroyed:
        click.echo(style_dim("No such session."))
        return
    click.echo(style_success("Session destroyed"))


@sessions.command("destroy-all")
@click.argument("subject_id")
@click.pass_context
def sessions_destroy_all(ctx: click.Context, subject_id: str) -> None:
    """Destroy every session of SUBJECT_ID."""
    with _service(ctx) as service:
        count = service.session_manager.destroy_all_user_sessions(subject_id)
    click.echo(style_success(f"Destroyed {count} session(s) for {subject_id}"))


@sessions.command("list")
@click.argument("subject_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def sessions_list(ctx: click.Context, subject_id: str, as_json: bool) -> None:
    """List live sessions of SUBJECT_ID."""
    with _service(ctx) as service:
        snapshots = service.session_manager.list_user_sessions(subject_id)

        if as_json:
            click.echo(json.dumps([_snapshot_dict(s, service) for s in snapshots], indent=2))
            return

        if not snapshots:
            click.echo(style_dim("No active sessions."))
            return

        click.echo("\n" + style_label("Active sessions") + f" {len(snapshots)}\n")
        for snapshot in snapshots:
            short_id = snapshot.session_id[:12] + "..."
            click.echo(f"  [{short_id}]")
            click.echo(f"    Expires: {snapshot.expires_at:%Y-%m-%d %H:%M:%S}")
            click.echo(f"    Policies: {len(snapshot.user.policies)}")
            click.echo()
