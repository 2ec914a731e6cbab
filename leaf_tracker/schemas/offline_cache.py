"""Pydantic schemas for the offline cache manager."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

OFFLINE_MESSAGE = "You are offline. Showing cached data."


class ControlCommand(str, Enum):
    """Commands a host page can post to the cache manager."""

    SKIP_WAITING = "SKIP_WAITING"
    CLEAR_CACHE = "CLEAR_CACHE"


class ControlMessage(BaseModel):
    """Envelope of a control message, e.g. ``{"type": "CLEAR_CACHE"}``.

    Unknown types parse fine and are ignored by the manager.
    """

    type: str = Field(..., description="Command name.")

    @property
    def command(self) -> ControlCommand | None:
        try:
            return ControlCommand(self.type)
        except ValueError:
            return None


class OfflinePlaceholder(BaseModel):
    """Body served for API reads when neither network nor cache can answer.

    Served with status 200 so callers render "no data yet" instead of failing.
    """

    records: list[Any] = Field(default_factory=list)
    offline: bool = True
    message: str = OFFLINE_MESSAGE
