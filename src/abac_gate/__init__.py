"""abac-gate: attribute-based access control with cached session snapshots.

Policies, rules, roles and assignments live in a relational store. When a
subject signs in, its roles and merged policy set are materialized once into
a Session Snapshot held in a TTL cache; every permission check after that is
evaluated against the snapshot with deny-overrides combining.

Entry points:
    bootstrap.build_service(config)  - wire store, cache, sessions and gate
    pep.PermissionGate               - require_permission / check_permission
    api.create_app(service, token=)  - FastAPI surface
    cli.main                         - abac-gate command line
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
