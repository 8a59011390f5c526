"""Resource model - ON WHAT is the operation being performed.

Named "Resource" instead of "Object" to avoid conflict with Python's
built-in object type. In ABAC terminology, this is the "Object".

Only the type is known to the engine. Everything else (owner, collection,
entry status, field metadata) is supplied by the caller as free-form
attributes and reached from rules through ``resource.<path>``.
"""

from __future__ import annotations

__all__ = ["Resource"]

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Resource(BaseModel):
    """The target of the request (ABAC Object).

    Attributes:
        type: Resource type, e.g. "entries" or "fields".
        id: Resource identifier, when the request targets one resource.
        attributes: Caller-supplied attributes (may be nested).
    """

    type: str
    id: str | None = None
    attributes: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    def as_attributes(self) -> dict[str, Any]:
        """Flatten into the mapping rules walk.

        The engine-known ``type`` always wins over a caller attribute of the
        same name.
        """
        merged: dict[str, Any] = dict(self.attributes)
        if self.id is not None:
            merged["id"] = self.id
        merged["type"] = self.type
        return merged
