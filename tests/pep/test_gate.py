"""Tests for the Permission Gate.

Covers the end-to-end pipeline from session id to typed outcome:
role-inherited and direct policies, deny-overrides, fail-closed handling
of unavailable caches, and field-level checks.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import redis

from abac_gate.config import SessionConfig
from abac_gate.exceptions import AuthorizationUnavailableError, ForbiddenError, UnauthenticatedError
from abac_gate.pdp.decision import Decision, EvaluationStatus
from abac_gate.pdp.engine import PolicyEngine
from abac_gate.pep.gate import AuthError, ClientInfo, PermissionGate, PermissionRequest
from abac_gate.session.cache import RedisSessionCache
from abac_gate.session.manager import SessionManager
from abac_gate.telemetry.audit.decision_logger import DecisionEventLogger

OTHER_USER = "u-other"


@pytest.fixture
def reader(seed) -> str:
    """u1 holds role R, whose policy P1 allows entries:read without rules."""
    seed.user("u1")
    seed.role("R")
    seed.assign_role("u1", "R")
    seed.policy("P1", priority=10)
    seed.grant_role_policy("R", "P1")
    return "u1"


@pytest.fixture
def reader_with_deny(seed, reader) -> str:
    """reader plus direct P2 denying reads of entries owned by OTHER_USER."""
    seed.policy(
        "P2",
        effect="DENY",
        priority=5,
        rules=[{"attribute_path": "resource.ownerId", "operator": "eq", "expected_value": OTHER_USER}],
    )
    seed.grant_user_policy(reader, "P2")
    return reader


# ============================================================================
# Core Scenarios
# ============================================================================


class TestCheckPermission:
    """Role-inherited allows, direct denies and the empty policy set."""

    def test_role_policy_without_rules_allows(self, gate, session_manager, reader) -> None:
        # Arrange
        session_id = session_manager.create_session(reader)

        # Act / Assert
        assert gate.check_permission(session_id, "entries", "read") is True

    def test_other_actions_and_resources_are_denied(self, gate, session_manager, reader) -> None:
        session_id = session_manager.create_session(reader)

        assert gate.check_permission(session_id, "entries", "update") is False
        assert gate.check_permission(session_id, "assets", "read") is False

    def test_lower_priority_direct_deny_wins(self, gate, session_manager, reader_with_deny) -> None:
        """DENY wins despite lower priority and fewer matches."""
        # Arrange
        session_id = session_manager.create_session(reader_with_deny)

        # Act
        outcome = gate.require_permission(session_id, "entries", "read", {"ownerId": OTHER_USER})

        # Assert
        assert outcome.ok is False
        assert outcome.error == AuthError.FORBIDDEN
        assert outcome.status_code == 403
        assert outcome.result.matching_policy_ids == ("P2",)
        assert outcome.reason == "Access denied by policy: P2 (priority: 5)"

    def test_deny_rule_not_matching_leaves_allow(self, gate, session_manager, reader_with_deny) -> None:
        session_id = session_manager.create_session(reader_with_deny)

        outcome = gate.require_permission(session_id, "entries", "read", {"ownerId": "u1"})

        assert outcome.ok is True
        assert outcome.status_code == 200
        assert outcome.result.matching_policy_ids == ("P1",)

    def test_subject_without_policies_is_denied(self, gate, session_manager, seed) -> None:
        # Arrange
        seed.user("lonely")
        session_id = session_manager.create_session("lonely")

        # Act
        result = gate.evaluate(session_id, "entries", "read")

        # Assert
        assert result.decision == Decision.DENY
        assert result.reason == "No matching policy - default deny"
        assert gate.check_permission(session_id, "users", "ban") is False

    def test_client_environment_reaches_rules(self, gate, session_manager, seed) -> None:
        # Arrange
        seed.user("u1")
        seed.policy(
            "office-only",
            rules=[{"attribute_path": "environment.ipAddress", "operator": "starts_with", "expected_value": "10."}],
        )
        seed.grant_user_policy("u1", "office-only")
        session_id = session_manager.create_session("u1")

        # Act / Assert
        assert gate.check_permission(session_id, "entries", "read", environment=ClientInfo("10.2.3.4")) is True
        assert gate.check_permission(session_id, "entries", "read", environment=ClientInfo("8.8.8.8")) is False


# ============================================================================
# Unauthenticated
# ============================================================================


class TestUnauthenticated:
    """Missing, expired and inactive sessions."""

    @pytest.mark.parametrize("session_id", [None, "", "does-not-exist"])
    def test_missing_session(self, gate, session_id) -> None:
        # Act
        outcome = gate.require_permission(session_id, "entries", "read")

        # Assert
        assert outcome.error == AuthError.UNAUTHENTICATED
        assert outcome.status_code == 401
        assert outcome.message == "Authentication required"
        assert outcome.result.decision == Decision.DENY

    def test_expired_session(self, gate, session_manager, reader, clock) -> None:
        session_id = session_manager.create_session(reader)

        clock.advance(901)

        assert gate.require_permission(session_id, "entries", "read").error == AuthError.UNAUTHENTICATED

    def test_inactive_subject(self, gate, session_manager, seed) -> None:
        seed.user("banned", status="BANNED")
        session_id = session_manager.create_session("banned")

        outcome = gate.require_permission(session_id, "entries", "read")

        assert outcome.error == AuthError.UNAUTHENTICATED
        assert outcome.message == "Account is not active"
        assert outcome.session is not None

    def test_raise_for_error(self, gate) -> None:
        outcome = gate.require_permission(None, "entries", "read")

        with pytest.raises(UnauthenticatedError, match="Authentication required"):
            outcome.raise_for_error()


# ============================================================================
# Forbidden
# ============================================================================


class TestForbidden:
    """Forbidden outcomes keep policy internals out of the caller message."""

    def test_message_names_action_and_resource_only(self, gate, session_manager, reader_with_deny) -> None:
        session_id = session_manager.create_session(reader_with_deny)

        outcome = gate.require_permission(session_id, "entries", "read", {"ownerId": OTHER_USER})

        assert outcome.message == "Insufficient permissions. Cannot read entries"
        assert "P2" not in outcome.message

    def test_exception_keeps_reason_out_of_error_data(self, gate, session_manager, reader_with_deny) -> None:
        # Arrange
        session_id = session_manager.create_session(reader_with_deny)
        outcome = gate.require_permission(session_id, "entries", "read", {"ownerId": OTHER_USER})

        # Act
        error = outcome.to_exception()

        # Assert
        assert isinstance(error, ForbiddenError)
        assert error.reason == "Access denied by policy: P2 (priority: 5)"
        assert error.matching_policy_ids == ["P2"]
        assert error.to_error_data() == {
            "code": "FORBIDDEN",
            "message": "Insufficient permissions. Cannot read entries",
            "resource": "entries",
            "action": "read",
        }

    def test_ok_outcome_has_no_exception(self, gate, session_manager, reader) -> None:
        outcome = gate.require_permission(session_manager.create_session(reader), "entries", "read")

        assert outcome.to_exception() is None
        outcome.raise_for_error()


# ============================================================================
# Unavailable
# ============================================================================


class TestUnavailable:
    """Cache failures fail closed with an explicit outcome."""

    @pytest.fixture
    def broken_gate(self, store, clock) -> PermissionGate:
        client = MagicMock(spec=redis.Redis)
        client.get.side_effect = redis.ConnectionError("connection refused")
        manager = SessionManager(store, RedisSessionCache(client), SessionConfig(), clock=clock)
        return PermissionGate(manager, PolicyEngine(clock=clock))

    def test_unavailable_is_distinct_from_deny(self, broken_gate) -> None:
        # Act
        outcome = broken_gate.require_permission("some-session", "entries", "read")

        # Assert
        assert outcome.error == AuthError.UNAVAILABLE
        assert outcome.status_code == 503
        assert outcome.message == "Authorization service unavailable"
        assert outcome.result.decision == Decision.DENY
        assert outcome.result.status == EvaluationStatus.UNRESOLVED
        assert "cache_unavailable" in outcome.result.reason

    def test_check_permission_is_false(self, broken_gate) -> None:
        assert broken_gate.check_permission("some-session", "entries", "read") is False

    def test_evaluate_never_raises(self, broken_gate) -> None:
        result = broken_gate.evaluate("some-session", "entries", "read")

        assert result.allowed is False
        assert result.status == EvaluationStatus.UNRESOLVED

    def test_exception_type(self, broken_gate) -> None:
        outcome = broken_gate.require_permission("some-session", "entries", "read")

        with pytest.raises(AuthorizationUnavailableError):
            outcome.raise_for_error()


# ============================================================================
# Field-Level Checks
# ============================================================================


class TestFieldPermission:
    """Field checks run the normal pipeline against the fields resource type."""

    @pytest.fixture
    def title_editor(self, seed) -> str:
        seed.user("u1")
        seed.policy(
            "edit-title",
            resource_type="fields",
            action_type="update",
            rules=[{"attribute_path": "resource.field.id", "operator": "eq", "expected_value": "title"}],
        )
        seed.grant_user_policy("u1", "edit-title")
        return "u1"

    def test_allowed_field(self, gate, session_manager, title_editor) -> None:
        session_id = session_manager.create_session(title_editor)

        assert gate.has_field_permission(session_id, "title", "update") is True

    def test_denied_field_message(self, gate, session_manager, title_editor) -> None:
        session_id = session_manager.create_session(title_editor)

        outcome = gate.require_field_permission(session_id, "body", "update")

        assert outcome.error == AuthError.FORBIDDEN
        assert outcome.message == "Insufficient permissions. Cannot update field body"
        assert outcome.resource_type == "fields"

    def test_extra_attributes_are_kept(self, gate, session_manager, seed) -> None:
        # Arrange
        seed.user("u1")
        seed.policy(
            "blog-text-fields",
            resource_type="fields",
            action_type="read",
            rules=[
                {"attribute_path": "resource.collection", "operator": "eq", "expected_value": "blog"},
                {"attribute_path": "resource.field.type", "operator": "eq", "expected_value": "text", "order": 1},
            ],
        )
        seed.grant_user_policy("u1", "blog-text-fields")
        session_id = session_manager.create_session("u1")

        # Act
        allowed = gate.has_field_permission(
            session_id, "summary", "read", {"collection": "blog", "field": {"type": "text"}}
        )

        # Assert
        assert allowed is True


# ============================================================================
# Multiple Actions
# ============================================================================


class TestMultipleActions:
    """require_any_permission and check_permissions."""

    @pytest.fixture
    def updater(self, seed) -> str:
        seed.user("u1")
        seed.policy("update-entries", action_type="update")
        seed.grant_user_policy("u1", "update-entries")
        return "u1"

    def test_any_allows_on_first_permitted_action(self, gate, session_manager, updater) -> None:
        session_id = session_manager.create_session(updater)

        outcome = gate.require_any_permission(session_id, "entries", ["publish", "update", "delete"])

        assert outcome.ok is True
        assert outcome.action_type == "update"

    def test_any_forbidden_lists_actions(self, gate, session_manager, updater) -> None:
        session_id = session_manager.create_session(updater)

        outcome = gate.require_any_permission(session_id, "entries", ["publish", "delete"])

        assert outcome.error == AuthError.FORBIDDEN
        assert outcome.message == "Insufficient permissions. Required one of: publish, delete on entries"

    def test_any_with_no_actions_is_forbidden(self, gate, session_manager, updater) -> None:
        outcome = gate.require_any_permission(session_manager.create_session(updater), "entries", [])

        assert outcome.error == AuthError.FORBIDDEN

    def test_any_short_circuits_unauthenticated(self, gate) -> None:
        outcome = gate.require_any_permission(None, "entries", ["read", "update"])

        assert outcome.error == AuthError.UNAUTHENTICATED
        assert outcome.action_type == "read"

    def test_check_permissions_in_order(self, gate, session_manager, updater) -> None:
        session_id = session_manager.create_session(updater)

        results = gate.check_permissions(
            session_id,
            [
                PermissionRequest("entries", "update"),
                PermissionRequest("entries", "delete"),
                PermissionRequest("entries", "update", {"id": "e1"}),
            ],
        )

        assert results == [True, False, True]


# ============================================================================
# Audit
# ============================================================================


class TestDecisionAudit:
    """Every check is handed to the decision logger."""

    def test_logs_each_outcome(self, session_manager, reader_with_deny, clock) -> None:
        # Arrange
        decision_logger = MagicMock(spec=DecisionEventLogger)
        gate = PermissionGate(session_manager, PolicyEngine(clock=clock), decision_logger)
        session_id = session_manager.create_session(reader_with_deny)

        # Act
        gate.check_permission(session_id, "entries", "read", {"id": "e1", "ownerId": "u1"})
        gate.check_permission(session_id, "entries", "read", {"ownerId": OTHER_USER})
        gate.check_permission(None, "entries", "read")

        # Assert
        outcomes = [call.kwargs["outcome"] for call in decision_logger.log.call_args_list]
        assert outcomes == ["ok", "FORBIDDEN", "UNAUTHENTICATED"]
        first = decision_logger.log.call_args_list[0]
        assert first.kwargs["subject_id"] == "u1"
        assert first.kwargs["session_id"] == session_id
