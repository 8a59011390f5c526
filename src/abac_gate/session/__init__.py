"""Session Snapshot management.

- models.py: SessionSnapshot and its lifecycle states
- cache.py: TTL cache backends (in-memory, Redis)
- manager.py: SessionManager, the only writer of cache entries
"""

from abac_gate.session.cache import InMemorySessionCache, RedisSessionCache, SessionCache, create_session_cache
from abac_gate.session.manager import SessionManager
from abac_gate.session.models import SessionSnapshot, SessionState

__all__ = [
    "InMemorySessionCache",
    "RedisSessionCache",
    "SessionCache",
    "SessionManager",
    "SessionSnapshot",
    "SessionState",
    "create_session_cache",
]
