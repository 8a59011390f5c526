"""Service bootstrap - wires store, cache, session manager and gate.

The bootstrap owns the lifecycle of the store engine and the cache client.
Nothing in the package opens connections at import time; everything is
created here and released by AbacService.close().

Example usage:
    service = build_service(AppConfig.load_from_file(get_config_path()))
    try:
        session_id = service.session_manager.create_session(subject_id)
        service.gate.check_permission(session_id, "entries", "read")
    finally:
        service.close()
"""

from __future__ import annotations

__all__ = [
    "AbacService",
    "build_service",
]

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.engine import Engine

from abac_gate.config import AppConfig
from abac_gate.constants import APP_NAME
from abac_gate.pdp.engine import PolicyEngine
from abac_gate.pep.gate import PermissionGate
from abac_gate.pips.models import create_store_engine, init_db
from abac_gate.pips.store import SqlPolicyStore
from abac_gate.session.cache import SessionCache, create_session_cache
from abac_gate.session.manager import SessionManager
from abac_gate.telemetry.audit.decision_logger import DecisionEventLogger, create_decision_logger

_logger = logging.getLogger(f"{APP_NAME}.bootstrap")


@dataclass
class AbacService:
    """Everything a host application needs, built from one AppConfig.

    Attributes:
        config: Configuration the service was built from.
        db_engine: SQLAlchemy engine (owned).
        store: Read repository over the store.
        cache: Session cache backend (owned).
        session_manager: Session Snapshot Manager.
        policy_engine: Stateless policy engine.
        gate: Permission Gate.
        decision_logger: Audit logger, if enabled.
    """

    config: AppConfig
    db_engine: Engine
    store: SqlPolicyStore
    cache: SessionCache
    session_manager: SessionManager
    policy_engine: PolicyEngine
    gate: PermissionGate
    decision_logger: DecisionEventLogger | None = None

    def close(self) -> None:
        """Release the cache client and the store's connection pool."""
        self.cache.close()
        self.db_engine.dispose()
        _logger.info({"event": "service_closed", "message": "abac-gate service closed"})


def build_service(
    config: AppConfig,
    *,
    clock: Callable[[], datetime] | None = None,
    db_engine: Engine | None = None,
    cache: SessionCache | None = None,
    create_tables: bool = False,
) -> AbacService:
    """Build the service from configuration.

    Args:
        config: Application configuration.
        clock: Time source shared by the cache, session manager and engine.
        db_engine: Existing engine to use instead of config.store.database_url.
        cache: Existing cache to use instead of config.cache.
        create_tables: Create missing tables before returning.

    Returns:
        AbacService. Call close() when done.
    """
    db_engine = db_engine or create_store_engine(config.store.database_url, echo=config.store.echo)
    if create_tables:
        init_db(db_engine)

    store = SqlPolicyStore(db_engine)
    cache = cache or create_session_cache(config.cache, clock=clock)
    session_manager = SessionManager(
        store,
        cache,
        config.session,
        clock=clock,
        key_prefix=config.cache.key_prefix,
        index_prefix=config.cache.index_prefix,
    )
    policy_engine = PolicyEngine(clock=session_manager.now)

    decision_logger = None
    if config.logging.audit_decisions:
        decision_logger = DecisionEventLogger(create_decision_logger(config.logging.decisions_log_path))

    gate = PermissionGate(session_manager, policy_engine, decision_logger)

    _logger.info(
        {
            "event": "service_built",
            "message": "abac-gate service ready",
            "cache_backend": config.cache.backend,
            "session_ttl_seconds": config.session.ttl_seconds,
            "audit_decisions": config.logging.audit_decisions,
        }
    )

    return AbacService(
        config=config,
        db_engine=db_engine,
        store=store,
        cache=cache,
        session_manager=session_manager,
        policy_engine=policy_engine,
        gate=gate,
        decision_logger=decision_logger,
    )
