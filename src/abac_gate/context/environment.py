"""Environment model - contextual information about the request.

All fields are facts observable at request time.
"""

from __future__ import annotations

__all__ = ["Environment"]

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class Environment(BaseModel):
    """Contextual information about the request.

    Attributes:
        current_time: UTC timestamp when the context was built.
        ip_address: Client address, if the transport supplied one.
        user_agent: Client user agent, if the transport supplied one.
    """

    current_time: datetime
    ip_address: str | None = None
    user_agent: str | None = None

    model_config = ConfigDict(frozen=True)
