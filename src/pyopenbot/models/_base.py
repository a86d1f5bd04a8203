"""Base model shared by pyopenbot data models.

Every model inherits from :class:`OpenBotModel`, which makes instances
immutable and ignores unknown keys so wire payloads can grow new fields
without breaking parsing.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class OpenBotModel(BaseModel):
    """Base for pyopenbot models (frozen, unknown keys ignored)."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )
