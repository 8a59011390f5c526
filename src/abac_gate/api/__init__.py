"""HTTP surface for abac-gate.

- server.py: create_app(service, token=...)
- security.py: management token middleware
- deps.py: request dependencies (session, gate, permission_required)
- errors.py: structured error responses
- routes/: sessions and evaluate endpoints
"""

from abac_gate.api.deps import permission_required, require_session
from abac_gate.api.server import create_app

__all__ = [
    "create_app",
    "permission_required",
    "require_session",
]
