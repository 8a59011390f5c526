"""SQLAlchemy models for the persistent policy store.

The store is the source of truth for subjects, roles, policies, rules and
the three assignment tables. Session Snapshots are materialized from it.

Deleting a policy or role cascades to its assignments, and deleting a
policy cascades to its rules (both in the database via ON DELETE CASCADE
and in the ORM via relationship cascades).
"""

from __future__ import annotations

__all__ = [
    "AbacPolicy",
    "AbacPolicyRule",
    "Base",
    "Role",
    "RolePolicy",
    "User",
    "UserPolicy",
    "UserRole",
    "create_store_engine",
    "init_db",
]

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    event,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import ArgumentError, NoSuchModuleError
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.pool import StaticPool

from abac_gate.constants import DEFAULT_POLICY_PRIORITY
from abac_gate.exceptions import ConfigurationError

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """Subjects known to the identity store (only the fields the engine reads)."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(255), nullable=False)
    status = Column(String(16), nullable=False, default="ACTIVE")
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    role_links = relationship("UserRole", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    policy_links = relationship(
        "UserPolicy", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )


class Role(Base):
    """Named groups of policies."""

    __tablename__ = "roles"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(255), unique=True, nullable=False)
    description = Column(String(1024))
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    user_links = relationship("UserRole", back_populates="role", cascade="all, delete-orphan", passive_deletes=True)
    policy_links = relationship(
        "RolePolicy", back_populates="role", cascade="all, delete-orphan", passive_deletes=True
    )


class AbacPolicy(Base):
    """Policy definitions: effect, priority and the resource/action they cover."""

    __tablename__ = "abac_policies"
    __table_args__ = (
        Index("ix_abac_policies_resource_action", "resource_type", "action_type"),
        Index("ix_abac_policies_priority", "priority"),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(255), unique=True, nullable=False)
    description = Column(Text)
    effect = Column(String(8), nullable=False)
    priority = Column(Integer, nullable=False, default=DEFAULT_POLICY_PRIORITY)
    is_active = Column(Boolean, nullable=False, default=True)
    resource_type = Column(String(32), nullable=False)
    action_type = Column(String(32), nullable=False)
    rule_connector = Column(String(3), nullable=False, default="AND")
    created_by = Column(String(36))
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    rules = relationship(
        "AbacPolicyRule",
        back_populates="policy",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="AbacPolicyRule.order",
    )
    role_links = relationship(
        "RolePolicy", back_populates="policy", cascade="all, delete-orphan", passive_deletes=True
    )
    user_links = relationship(
        "UserPolicy", back_populates="policy", cascade="all, delete-orphan", passive_deletes=True
    )


class AbacPolicyRule(Base):
    """Individual attribute comparisons within a policy."""

    __tablename__ = "abac_policy_rules"
    __table_args__ = (Index("ix_abac_policy_rules_policy_order", "policy_id", "order"),)

    id = Column(String(36), primary_key=True, default=_new_id)
    policy_id = Column(String(36), ForeignKey("abac_policies.id", ondelete="CASCADE"), nullable=False)
    attribute_path = Column(String(255), nullable=False)
    operator = Column(String(32), nullable=False)
    expected_value = Column(Text, nullable=False, default="")
    value_type = Column(String(16), nullable=False, default="string")
    description = Column(String(512))
    is_active = Column(Boolean, nullable=False, default=True)
    order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    policy = relationship("AbacPolicy", back_populates="rules")


class UserRole(Base):
    """Subject-to-role assignments, optionally expiring."""

    __tablename__ = "user_roles"
    __table_args__ = (UniqueConstraint("user_id", "role_id", name="uq_user_roles_user_role"),)

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role_id = Column(String(36), ForeignKey("roles.id", ondelete="CASCADE"), nullable=False)
    assigned_by = Column(String(36))
    assigned_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    reason = Column(String(512))

    user = relationship("User", back_populates="role_links")
    role = relationship("Role", back_populates="user_links")


class RolePolicy(Base):
    """Role-to-policy assignments, optionally expiring."""

    __tablename__ = "role_policies"
    __table_args__ = (UniqueConstraint("role_id", "policy_id", name="uq_role_policies_role_policy"),)

    id = Column(String(36), primary_key=True, default=_new_id)
    role_id = Column(String(36), ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True)
    policy_id = Column(String(36), ForeignKey("abac_policies.id", ondelete="CASCADE"), nullable=False)
    assigned_by = Column(String(36))
    assigned_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    expires_at = Column(DateTime(timezone=True), nullable=True, index=True)
    reason = Column(String(512))

    role = relationship("Role", back_populates="policy_links")
    policy = relationship("AbacPolicy", back_populates="role_links")


class UserPolicy(Base):
    """Direct subject-to-policy assignments (exceptions and specific grants)."""

    __tablename__ = "user_policies"
    __table_args__ = (UniqueConstraint("user_id", "policy_id", name="uq_user_policies_user_policy"),)

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    policy_id = Column(String(36), ForeignKey("abac_policies.id", ondelete="CASCADE"), nullable=False)
    assigned_by = Column(String(36))
    assigned_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    expires_at = Column(DateTime(timezone=True), nullable=True, index=True)
    reason = Column(String(512))

    user = relationship("User", back_populates="policy_links")
    policy = relationship("AbacPolicy", back_populates="user_links")


# =============================================================================
# Engine
# =============================================================================


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _connection_record: Any) -> None:
    # SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_store_engine(database_url: str, echo: bool = False) -> Engine:
    """Create the SQLAlchemy engine for the policy store.

    In-memory SQLite URLs get a single shared connection so every session
    sees the same database.

    Args:
        database_url: SQLAlchemy database URL.
        echo: Log emitted SQL.

    Returns:
        Configured Engine.

    Raises:
        ConfigurationError: If the URL is malformed or names an unknown dialect.
    """
    kwargs: dict[str, Any] = {"echo": echo}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool

    try:
        engine = create_engine(database_url, **kwargs)
    except (ArgumentError, NoSuchModuleError) as e:
        raise ConfigurationError(f"Invalid store.database_url '{database_url}': {e}") from e
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def init_db(engine: Engine) -> list[str]:
    """Create any missing tables (idempotent).

    Returns:
        Names of all tables in the schema.
    """
    Base.metadata.create_all(engine)
    return sorted(Base.metadata.tables)
