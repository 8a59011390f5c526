"""Action model - WHAT operation is being performed."""

from __future__ import annotations

__all__ = ["Action"]

from pydantic import BaseModel, ConfigDict


class Action(BaseModel):
    """The operation being performed (ABAC Action).

    Attributes:
        type: Action verb, e.g. "read", "publish", "configure_fields".
    """

    type: str

    model_config = ConfigDict(frozen=True)
