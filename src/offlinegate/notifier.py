"""Delivery of asynchronous status events to page contexts.

Each registered client owns a bounded ``asyncio.Queue``. Only clients under
the interceptor's control receive broadcasts; ``claim`` takes control of every
client registered so far. Clients that stop polling are forgotten after
``idle_seconds``.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field

import structlog

from offlinegate.models.messages import ClientMessage

log = structlog.get_logger()


@dataclass
class _Client:
    inbox: asyncio.Queue[ClientMessage]
    controlled: bool = False
    last_seen: float = field(default_factory=time.monotonic)
    waiting: int = 0  # receive() calls in progress


class ClientNotifier:
    def __init__(self, inbox_size: int = 100, idle_seconds: float = 300.0) -> None:
        self._clients: dict[str, _Client] = {}
        self._inbox_size = inbox_size
        self._idle_seconds = idle_seconds

    def register(self, client_id: str, *, controlled: bool = False) -> None:
        """Register a page context. Re-registering keeps its pending messages."""
        self.expire_idle()
        client = self._clients.get(client_id)
        if client is None:
            client = _Client(inbox=asyncio.Queue(maxsize=self._inbox_size))
            self._clients[client_id] = client
        client.controlled = client.controlled or controlled
        client.last_seen = time.monotonic()

    def unregister(self, client_id: str) -> None:
        self._clients.pop(client_id, None)

    def clear(self) -> None:
        self._clients.clear()

    def expire_idle(self) -> list[str]:
        """Forget clients idle for longer than ``idle_seconds``. Returns their ids."""
        cutoff = time.monotonic() - self._idle_seconds
        expired = [
            cid
            for cid, client in self._clients.items()
            if client.waiting == 0 and client.last_seen < cutoff
        ]
        for cid in expired:
            del self._clients[cid]
        if expired:
            log.debug("clients_expired", count=len(expired))
        return expired

    def claim(self) -> int:
        """Take control of all registered clients. Returns how many were claimed."""
        claimed = 0
        for client in self._clients.values():
            if not client.controlled:
                client.controlled = True
                claimed += 1
        return claimed

    def controlled_clients(self) -> list[str]:
        return [cid for cid, client in self._clients.items() if client.controlled]

    async def post(self, message: ClientMessage) -> int:
        """Broadcast ``message`` to every controlled client. Returns the recipient count."""
        self.expire_idle()
        recipients = self.controlled_clients()
        for client_id in recipients:
            inbox = self._clients[client_id].inbox
            if inbox.full():
                inbox.get_nowait()
                log.warning("client_inbox_full", client=client_id)
            inbox.put_nowait(message)
        log.debug("client_message_posted", type=message.type, recipients=len(recipients))
        return len(recipients)

    async def receive(self, client_id: str, timeout: float) -> list[ClientMessage]:
        """Wait up to ``timeout`` seconds for messages, then drain the inbox."""
        client = self._clients.get(client_id)
        if client is None:
            return []

        client.waiting += 1
        try:
            messages: list[ClientMessage] = []
            if client.inbox.empty():
                try:
                    async with asyncio.timeout(timeout):
                        messages.append(await client.inbox.get())
                except TimeoutError:
                    return []
            while not client.inbox.empty():
                messages.append(client.inbox.get_nowait())
            return messages
        finally:
            client.waiting -= 1
            client.last_seen = time.monotonic()
