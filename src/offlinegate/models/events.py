from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel

from offlinegate.models.messages import ControlMessage
from offlinegate.models.request import InterceptedRequest


class EventKind(StrEnum):
    FETCH = "fetch"
    INSTALL = "install"
    ACTIVATE = "activate"
    SYNC = "sync"
    MESSAGE = "message"


class FetchEvent(BaseModel):
    kind: EventKind = EventKind.FETCH
    request: InterceptedRequest


class InstallEvent(BaseModel):
    kind: EventKind = EventKind.INSTALL


class ActivateEvent(BaseModel):
    kind: EventKind = EventKind.ACTIVATE


class SyncEvent(BaseModel):
    kind: EventKind = EventKind.SYNC
    tag: str


class MessageEvent(BaseModel):
    kind: EventKind = EventKind.MESSAGE
    message: ControlMessage
    client_id: str | None = None


Event = FetchEvent | InstallEvent | ActivateEvent | SyncEvent | MessageEvent
