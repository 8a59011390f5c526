"""Policy Information Points (PIPs) - where policies and subjects come from.

- models.py: SQLAlchemy schema for the persistent store
- store.py: Read repository (PolicyStore protocol + SqlPolicyStore)
- aggregator.py: Materializes a subject's policies and selects the
  applicable ones for a request
"""

from abac_gate.pips.aggregator import RoleGrant, SessionUser, applicable_policies, load_session_user
from abac_gate.pips.models import create_store_engine, init_db
from abac_gate.pips.store import PolicyAssignment, PolicyStore, RoleAssignment, SqlPolicyStore, SubjectRecord

__all__ = [
    # Aggregation
    "RoleGrant",
    "SessionUser",
    "applicable_policies",
    "load_session_user",
    # Store
    "PolicyAssignment",
    "PolicyStore",
    "RoleAssignment",
    "SqlPolicyStore",
    "SubjectRecord",
    "create_store_engine",
    "init_db",
]
