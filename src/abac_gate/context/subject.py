"""Subject model - WHO is making the request.

The Subject is built from the Session Snapshot, never from caller input:
the id is the verified subject id the session was created for, and roles
are the names of the subject's unexpired role assignments at the time the
snapshot was materialized.
"""

from __future__ import annotations

__all__ = [
    "Subject",
    "SubjectStatus",
]

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict


class SubjectStatus(str, Enum):
    """Account lifecycle status.

    Only ACTIVE subjects can be authorized; anything else fails closed.
    """

    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    BANNED = "BANNED"


class Subject(BaseModel):
    """Identity of the requester (ABAC Subject).

    Attributes:
        id: Verified subject id.
        roles: Names of the subject's currently assigned roles.
        status: Account lifecycle status.
        created_at: Account creation time, if known.
    """

    id: str
    roles: tuple[str, ...] = ()
    status: SubjectStatus = SubjectStatus.ACTIVE
    created_at: datetime | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_active(self) -> bool:
        return self.status == SubjectStatus.ACTIVE
