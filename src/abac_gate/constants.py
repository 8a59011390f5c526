"""Application-wide constants for abac-gate.

Constants that define application behavior and the closed vocabularies
the policy store is allowed to contain.
For user-configurable settings per deployment, see config.py.
"""

__all__ = [
    # Application identity
    "APP_NAME",
    # Vocabularies
    "RESOURCE_TYPES",
    "ACTION_TYPES",
    "OPERATORS",
    "VALUE_TYPES",
    "FIELD_RESOURCE_TYPE",
    # Policy defaults
    "DEFAULT_POLICY_PRIORITY",
    "DEFAULT_DENY_REASON",
    # Sessions
    "DEFAULT_SESSION_TTL_SECONDS",
    "MIN_SESSION_TTL_SECONDS",
    "SESSION_ID_BYTES",
    "SESSION_KEY_PREFIX",
    "SUBJECT_INDEX_PREFIX",
    # Storage defaults
    "DEFAULT_DATABASE_URL",
    "DEFAULT_REDIS_URL",
    # Logging
    "DEFAULT_LOG_DIR",
    "DECISIONS_LOG_RELATIVE_PATH",
    "SYSTEM_LOG_RELATIVE_PATH",
    # Config
    "CONFIG_FILENAME",
]

from platformdirs import user_log_dir

# ============================================================================
# Application Identity
# ============================================================================

# Application name used for directory names, logger names, etc.
APP_NAME: str = "abac-gate"

# ============================================================================
# Closed Vocabularies
# ============================================================================

# Resource types a policy can be scoped to (exactly one per policy)
RESOURCE_TYPES: tuple[str, ...] = ("users", "collections", "entries", "assets", "fields")

# Action verbs a policy can be scoped to (exactly one per policy)
ACTION_TYPES: tuple[str, ...] = (
    # CRUD
    "create",
    "read",
    "update",
    "delete",
    # Publishing workflow
    "publish",
    "unpublish",
    "schedule",
    # Status management
    "archive",
    "restore",
    "draft",
    # User management
    "ban",
    "unban",
    "activate",
    "deactivate",
    # Assets
    "upload",
    "download",
    "transform",
    # Collection management
    "configure_fields",
    "manage_schema",
)

# Rule operators understood by the rule evaluator.
# Anything else stored in a rule evaluates to "no match".
OPERATORS: tuple[str, ...] = (
    "eq",
    "ne",
    "in",
    "not_in",
    "gt",
    "gte",
    "lt",
    "lte",
    "contains",
    "starts_with",
    "ends_with",
    "is_null",
    "is_not_null",
    "regex",
)

# Declared types for a rule's stored expected value
VALUE_TYPES: tuple[str, ...] = ("string", "number", "boolean", "uuid", "datetime", "array")

# Field-level checks are ordinary checks against this resource type
FIELD_RESOURCE_TYPE: str = "fields"

# ============================================================================
# Policy Defaults
# ============================================================================

# Higher number = evaluated and reported first
DEFAULT_POLICY_PRIORITY: int = 100

# Reason reported when nothing matched (including zero applicable policies)
DEFAULT_DENY_REASON: str = "No matching policy - default deny"

# ============================================================================
# Sessions
# ============================================================================

# Session Snapshot lifetime (24 hours)
DEFAULT_SESSION_TTL_SECONDS: int = 24 * 60 * 60
MIN_SESSION_TTL_SECONDS: int = 1

# Session ID entropy (256 bits via secrets.token_urlsafe)
SESSION_ID_BYTES: int = 32

# Cache key layout:
#   session:<session_id>              -> Session Snapshot JSON (TTL)
#   subject_sessions:<subject_id>     -> set of session ids (TTL refreshed on write)
SESSION_KEY_PREFIX: str = "session:"
SUBJECT_INDEX_PREFIX: str = "subject_sessions:"

# ============================================================================
# Storage Defaults
# ============================================================================

DEFAULT_DATABASE_URL: str = "sqlite:///abac-gate.db"
DEFAULT_REDIS_URL: str = "redis://localhost:6379/0"

# ============================================================================
# Logging
# ============================================================================

# Platform-specific base log directory (follows OS conventions)
DEFAULT_LOG_DIR: str = user_log_dir(APP_NAME)

# Relative to <log_dir>
DECISIONS_LOG_RELATIVE_PATH: str = "audit/decisions.jsonl"
SYSTEM_LOG_RELATIVE_PATH: str = "system/system.jsonl"

# ============================================================================
# Config
# ============================================================================

CONFIG_FILENAME: str = "config.json"
