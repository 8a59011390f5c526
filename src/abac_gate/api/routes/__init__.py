"""API route modules.

Route organization:
- sessions: Session Snapshot lifecycle (create, inspect, refresh, destroy)
- evaluate: Decision explanation for the caller's own session
"""

from . import evaluate, sessions

__all__ = [
    "evaluate",
    "sessions",
]
