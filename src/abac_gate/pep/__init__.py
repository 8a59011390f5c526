"""Policy Enforcement Point (PEP) - the Permission Gate.

- gate.py: PermissionGate and its typed AuthorizationOutcome
"""

from abac_gate.pep.gate import AuthError, AuthorizationOutcome, ClientInfo, PermissionGate, PermissionRequest

__all__ = [
    "AuthError",
    "AuthorizationOutcome",
    "ClientInfo",
    "PermissionGate",
    "PermissionRequest",
]
