"""evaluate command for abac-gate CLI.

Explains a decision without a session: the subject is materialized straight
from the store (exactly as session creation would) and run through the same
PolicyEngine the Permission Gate uses.
"""

from __future__ import annotations

__all__ = ["evaluate"]

import json
import sys
from datetime import datetime, timezone
from typing import Any

import click

from abac_gate.exceptions import ConfigurationError, PolicyResolutionFailure
from abac_gate.pdp.engine import PolicyEngine
from abac_gate.pips.aggregator import applicable_policies, load_session_user
from abac_gate.pips.models import create_store_engine
from abac_gate.pips.store import SqlPolicyStore

from ..context import configure_logging, load_config_or_exit
from ..styling import style_decision, style_dim, style_error, style_label, style_warning


def _parse_value(raw: str) -> Any:
    """JSON literal if it parses (numbers, booleans, null, lists), else the raw string."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def _parse_attrs(attrs_json: str | None, attrs: tuple[str, ...]) -> dict[str, Any] | None:
    """Merge --attrs-json with --attr key=value pairs (dotted keys nest)."""
    result: dict[str, Any] = {}
    if attrs_json:
        loaded = json.loads(attrs_json)
        if not isinstance(loaded, dict):
            raise click.BadParameter("must be a JSON object", param_hint="--attrs-json")
        result.update(loaded)

    for item in attrs:
        key, sep, raw = item.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected key=value, got '{item}'", param_hint="--attr")
        target = result
        *parents, leaf = key.split(".")
        for part in parents:
            child = target.get(part)
            if not isinstance(child, dict):
                child = {}
                target[part] = child
            target = child
        target[leaf] = _parse_value(raw)

    return result or None


@click.command("evaluate")
@click.argument("subject_id")
@click.argument("resource_type")
@click.argument("action_type")
@click.option("--attr", "attrs", multiple=True, help="Resource attribute key=value (repeatable, dotted keys nest)")
@click.option("--attrs-json", help="Resource attributes as a JSON object")
@click.option("--ip", "ip_address", help="Client IP address for environment.ipAddress")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def evaluate(
    ctx: click.Context,
    subject_id: str,
    resource_type: str,
    action_type: str,
    attrs: tuple[str, ...],
    attrs_json: str | None,
    ip_address: str | None,
    as_json: bool,
) -> None:
    """Evaluate SUBJECT_ID's permission for ACTION_TYPE on RESOURCE_TYPE.

    \b
    Examples:
      abac-gate evaluate u1 entries read --attr ownerId=u1
      abac-gate evaluate u1 fields update --attr field.id=title
    """
    try:
        resource_attrs = _parse_attrs(attrs_json, attrs)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"invalid JSON: {e}", param_hint="--attrs-json")

    config = load_config_or_exit(ctx)
    configure_logging(config)

    try:
        db_engine = create_store_engine(config.store.database_url, echo=config.store.echo)
    except ConfigurationError as e:
        click.echo(style_error(str(e)), err=True)
        sys.exit(1)

    policy_engine = PolicyEngine()
    try:
        user = load_session_user(SqlPolicyStore(db_engine), subject_id, datetime.now(timezone.utc))
    except PolicyResolutionFailure as e:
        click.echo(style_error(f"Authorization data unavailable: {e}"), err=True)
        sys.exit(1)
    finally:
        db_engine.dispose()

    if user is None:
        click.echo(style_error(f"Subject not found: {subject_id}"), err=True)
        sys.exit(1)

    policies = applicable_policies(user, resource_type, action_type)
    result = policy_engine.evaluate(
        user.to_subject(),
        policies,
        resource_type,
        action_type,
        resource_attrs,
        ip_address=ip_address,
    )

    if as_json:
        click.echo(
            json.dumps(
                {
                    "subject_id": subject_id,
                    "subject_status": user.status.value,
                    "resource_type": resource_type,
                    "action_type": action_type,
                    "decision": result.decision.value,
                    "matching_policy_ids": list(result.matching_policy_ids),
                    "evaluated_policy_ids": list(result.evaluated_policy_ids),
                    "reason": result.reason,
                    "evaluation_time_ms": round(result.evaluation_time_ms, 3),
                    "status": result.status.value,
                },
                indent=2,
            )
        )
        return

    if not user.is_active:
        click.echo(style_warning(f"Subject is {user.status.value}; the gate rejects it before evaluation"))

    click.echo(style_decision(result.decision.value) + f"  {action_type} {resource_type}")
    click.echo(style_label("Reason") + f" {result.reason}")
    if result.matching_policy_ids:
        click.echo(style_label("Matching policies") + " " + ", ".join(result.matching_policy_ids))
    else:
        click.echo(style_label("Matching policies") + " " + style_dim("(none)"))
    click.echo(style_label("Evaluated") + f" {len(policies)} applicable of {len(user.policies)} loaded")
    click.echo(style_dim(f"{result.evaluation_time_ms:.3f} ms"))
