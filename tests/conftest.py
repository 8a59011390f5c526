"""Shared fixtures: fake clock, in-memory SQLite store, in-memory cache.

The store is seeded through StoreSeeder, which writes ORM rows the way an
admin tool would. Everything runs against one FakeClock so expiry can be
tested by advancing time instead of sleeping.
"""

from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from abac_gate.config import SessionConfig
from abac_gate.pdp.engine import PolicyEngine
from abac_gate.pep.gate import PermissionGate
from abac_gate.pips.models import (
    AbacPolicy,
    AbacPolicyRule,
    Role,
    RolePolicy,
    User,
    UserPolicy,
    UserRole,
    create_store_engine,
    init_db,
)
from abac_gate.pips.store import SqlPolicyStore
from abac_gate.session.cache import InMemorySessionCache
from abac_gate.session.manager import SessionManager

T0 = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic UTC clock."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


class StoreSeeder:
    """Writes subjects, roles, policies and assignments into the store."""

    def __init__(self, engine: Engine, clock: FakeClock) -> None:
        self._factory = sessionmaker(bind=engine, expire_on_commit=False)
        self._clock = clock
        self._policy_count = 0

    def _add(self, *rows: Any) -> None:
        with self._factory() as session:
            session.add_all(rows)
            session.commit()

    def session(self) -> Session:
        return self._factory()

    def user(self, user_id: str, *, name: str | None = None, status: str = "ACTIVE") -> str:
        self._add(User(id=user_id, name=name or user_id, status=status, created_at=self._clock()))
        return user_id

    def role(self, role_id: str, *, name: str | None = None) -> str:
        self._add(Role(id=role_id, name=name or role_id))
        return role_id

    def policy(
        self,
        policy_id: str,
        *,
        effect: str = "ALLOW",
        resource_type: str = "entries",
        action_type: str = "read",
        priority: int = 100,
        rule_connector: str = "AND",
        is_active: bool = True,
        rules: list[dict[str, Any]] | None = None,
        name: str | None = None,
        created_at: datetime | None = None,
    ) -> str:
        # Distinct creation times keep store ordering deterministic
        self._policy_count += 1
        policy = AbacPolicy(
            id=policy_id,
            name=name or policy_id,
            effect=effect,
            priority=priority,
            resource_type=resource_type,
            action_type=action_type,
            rule_connector=rule_connector,
            is_active=is_active,
            created_at=created_at or self._clock() + timedelta(microseconds=self._policy_count),
        )
        for index, rule in enumerate(rules or []):
            policy.rules.append(
                AbacPolicyRule(
                    id=rule.get("id", f"{policy_id}-r{index}"),
                    attribute_path=rule["attribute_path"],
                    operator=rule["operator"],
                    expected_value=rule.get("expected_value", ""),
                    value_type=rule.get("value_type", "string"),
                    is_active=rule.get("is_active", True),
                    order=rule.get("order", index),
                )
            )
        self._add(policy)
        return policy_id

    def assign_role(self, user_id: str, role_id: str, *, expires_at: datetime | None = None) -> None:
        self._add(UserRole(user_id=user_id, role_id=role_id, expires_at=expires_at))

    def revoke_role(self, user_id: str, role_id: str) -> None:
        with self._factory() as session:
            session.query(UserRole).filter_by(user_id=user_id, role_id=role_id).delete()
            session.commit()

    def grant_role_policy(self, role_id: str, policy_id: str, *, expires_at: datetime | None = None) -> None:
        self._add(RolePolicy(role_id=role_id, policy_id=policy_id, expires_at=expires_at))

    def grant_user_policy(self, user_id: str, policy_id: str, *, expires_at: datetime | None = None) -> None:
        self._add(UserPolicy(user_id=user_id, policy_id=policy_id, expires_at=expires_at))

    def set_status(self, user_id: str, status: str) -> None:
        with self._factory() as session:
            session.query(User).filter_by(id=user_id).update({"status": status})
            session.commit()

    def delete_user(self, user_id: str) -> None:
        with self._factory() as session:
            session.query(User).filter_by(id=user_id).delete()
            session.commit()


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def clock() -> FakeClock:
    """Fake clock starting at T0."""
    return FakeClock()


@pytest.fixture
def db_engine() -> Iterator[Engine]:
    """Fresh in-memory SQLite store with all tables."""
    engine = create_store_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def seed(db_engine: Engine, clock: FakeClock) -> StoreSeeder:
    """Seeder for the in-memory store."""
    return StoreSeeder(db_engine, clock)


@pytest.fixture
def store(db_engine: Engine) -> SqlPolicyStore:
    return SqlPolicyStore(db_engine)


@pytest.fixture
def cache(clock: FakeClock) -> InMemorySessionCache:
    return InMemorySessionCache(clock=clock)


@pytest.fixture
def session_config() -> SessionConfig:
    """15 minute sessions without sliding extension."""
    return SessionConfig(ttl_seconds=900, extend_on_access=False)


@pytest.fixture
def session_manager(
    store: SqlPolicyStore,
    cache: InMemorySessionCache,
    session_config: SessionConfig,
    clock: FakeClock,
) -> SessionManager:
    return SessionManager(store, cache, session_config, clock=clock)


@pytest.fixture
def gate(session_manager: SessionManager, clock: FakeClock) -> PermissionGate:
    return PermissionGate(session_manager, PolicyEngine(clock=clock))
