"""Unit tests for evaluation context building and attribute resolution."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from abac_gate.context import (
    MISSING,
    Subject,
    SubjectStatus,
    build_evaluation_context,
    is_missing,
    resolve_attribute,
)

NOW = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)
CREATED = datetime(2024, 6, 1, tzinfo=timezone.utc)


@pytest.fixture
def subject() -> Subject:
    return Subject(id="user-1", roles=("editor", "reviewer"), created_at=CREATED)


@pytest.fixture
def context(subject: Subject):
    return build_evaluation_context(
        subject,
        "entries",
        "publish",
        {
            "id": 42,
            "ownerId": "user-1",
            "collection": {"id": "blog", "settings": {"public": True}},
            "field.slug": "flat",
            "type": "caller-supplied",
        },
        ip_address="10.0.0.7",
        user_agent="pytest",
        current_time=NOW,
    )


# ============================================================================
# Context Building
# ============================================================================


class TestBuildEvaluationContext:
    """Tests for build_evaluation_context."""

    def test_resource_id_taken_from_attrs_as_string(self, context) -> None:
        assert context.resource.id == "42"

    def test_no_attrs_means_no_resource_id(self, subject: Subject) -> None:
        ctx = build_evaluation_context(subject, "entries", "read", current_time=NOW)

        assert ctx.resource.id is None
        assert ctx.resource.attributes == {}

    def test_clock_used_when_no_explicit_time(self, subject: Subject) -> None:
        ctx = build_evaluation_context(subject, "entries", "read", clock=lambda: NOW)

        assert ctx.environment.current_time == NOW

    def test_explicit_time_overrides_clock(self, subject: Subject) -> None:
        other = datetime(2030, 1, 1, tzinfo=timezone.utc)

        ctx = build_evaluation_context(subject, "entries", "read", current_time=other, clock=lambda: NOW)

        assert ctx.environment.current_time == other

    def test_context_is_frozen(self, context) -> None:
        with pytest.raises(ValidationError):
            context.subject = Subject(id="someone-else")  # type: ignore[misc]


# ============================================================================
# Attribute Resolution
# ============================================================================


class TestResolveAttribute:
    """Tests for the fixed attribute table and resource path walking."""

    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("subject.id", "user-1"),
            ("subject.roles", ["editor", "reviewer"]),
            ("subject.role", ["editor", "reviewer"]),
            ("subject.status", "ACTIVE"),
            ("subject.createdAt", CREATED),
            ("subject.created_at", CREATED),
            ("action.type", "publish"),
            ("environment.currentTime", NOW),
            ("environment.ipAddress", "10.0.0.7"),
            ("environment.user_agent", "pytest"),
            ("resource.ownerId", "user-1"),
            ("resource.collection.id", "blog"),
            ("resource.collection.settings.public", True),
        ],
    )
    def test_known_paths(self, context, path: str, expected: object) -> None:
        assert resolve_attribute(path, context) == expected

    def test_resource_type_is_engine_supplied(self, context) -> None:
        """A caller attribute named 'type' cannot override the resource type."""
        assert resolve_attribute("resource.type", context) == "entries"

    def test_resource_id_is_stringified(self, context) -> None:
        assert resolve_attribute("resource.id", context) == "42"

    def test_pre_flattened_key_is_found(self, context) -> None:
        assert resolve_attribute("resource.field.slug", context) == "flat"

    @pytest.mark.parametrize(
        "path",
        [
            "subject.email",
            "subject",
            "resource",
            "resource.",
            "resource..id",
            "resource.missing",
            "resource.collection.missing",
            "resource.ownerId.length",
            "environment.weather",
            "request.method",
            "",
        ],
    )
    def test_unresolvable_paths_are_missing(self, context, path: str) -> None:
        """Unknown or broken paths resolve to MISSING, never raise."""
        value = resolve_attribute(path, context)

        assert value is MISSING
        assert is_missing(value)

    def test_unset_optional_attribute_is_none_not_missing(self, subject: Subject) -> None:
        ctx = build_evaluation_context(subject, "entries", "read", current_time=NOW)

        assert resolve_attribute("environment.ipAddress", ctx) is None

    def test_status_reflects_subject(self) -> None:
        banned = Subject(id="user-9", status=SubjectStatus.BANNED)
        ctx = build_evaluation_context(banned, "entries", "read", current_time=NOW)

        assert resolve_attribute("subject.status", ctx) == "BANNED"
        assert banned.is_active is False


class TestMissingSentinel:
    """MISSING behaves as a falsy singleton."""

    def test_is_falsy_singleton(self) -> None:
        assert not MISSING
        assert repr(MISSING) == "MISSING"
        assert type(MISSING)() is MISSING
