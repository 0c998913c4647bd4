"""
Real-time notification bus.

Keeps the process-wide map of who is online: account id to the set of live
connections that account has open (one per device or tab). Delivery is best
effort and not durable. A notification for an account with no live
connection is dropped, and a failed send is logged, never raised, so a push
can never undo the write that triggered it.

Connections are anything with ``async send_json(data)`` and
``async close(code)``. Starlette/FastAPI ``WebSocket`` objects qualify.
"""

import asyncio
import logging
import threading
from typing import Any, Iterable, Optional, Protocol

logger = logging.getLogger(__name__)

EVENT_NEW_BID = "new_bid"
EVENT_HIRED = "hired"
EVENT_NEW_MESSAGE = "new_message"
EVENT_NEW_JOB = "new_job"


class Connection(Protocol):
    """A live, addressable client connection."""

    async def send_json(self, data: Any) -> None: ...

    async def close(self, code: int = 1000) -> None: ...


class NotificationBus:
    """Fan-out of named events to the live connections of each account.

    Register/unregister are safe under concurrent connects and disconnects;
    sends happen outside the lock with a per-connection timeout so a slow
    client cannot hold up the request that triggered the event.
    """

    def __init__(self, send_timeout: float = 2.0):
        if send_timeout <= 0:
            raise ValueError("send_timeout must be positive")
        self.send_timeout = send_timeout
        self._lock = threading.Lock()
        # Keyed by id(handle): websocket objects are not hashable
        self._connections: dict[str, dict[int, Connection]] = {}
        self._owners: dict[int, str] = {}

    # === Connection lifecycle ===

    def register_connection(self, account_id: str, handle: Connection) -> None:
        """Bind ``handle`` to ``account_id``. Re-registering moves the handle."""
        if not account_id:
            raise ValueError("account_id is required")
        with self._lock:
            key = id(handle)
            previous = self._owners.get(key)
            if previous is not None and previous != account_id:
                self._discard(previous, key)
            self._connections.setdefault(account_id, {})[key] = handle
            self._owners[key] = account_id
        logger.info(f"Connection registered | account={account_id}")

    def unregister_connection(self, handle: Connection) -> Optional[str]:
        """Forget ``handle``. Returns the account it belonged to, or None if unknown."""
        with self._lock:
            account_id = self._owners.pop(id(handle), None)
            if account_id is not None:
                self._discard(account_id, id(handle))
        if account_id is not None:
            logger.info(f"Connection unregistered | account={account_id}")
        return account_id

    def _discard(self, account_id: str, key: int) -> None:
        # Caller holds the lock
        handles = self._connections.get(account_id)
        if handles is None:
            return
        handles.pop(key, None)
        if not handles:
            del self._connections[account_id]

    def is_online(self, account_id: str) -> bool:
        with self._lock:
            return bool(self._connections.get(account_id))

    def online_accounts(self) -> list[str]:
        with self._lock:
            return list(self._connections)

    def connection_count(self, account_id: Optional[str] = None) -> int:
        """Live connections for one account, or for everyone."""
        with self._lock:
            if account_id is not None:
                return len(self._connections.get(account_id, ()))
            return len(self._owners)

    # === Delivery ===

    async def notify(self, account_id: str, event: str, payload: Any) -> int:
        """Push ``event`` to every live connection of ``account_id``.

        Returns the number of connections the event reached. Zero when the
        account is offline.
        """
        with self._lock:
            handles = list(self._connections.get(account_id, {}).values())
        if not handles:
            logger.debug(f"Notify skipped, account offline | account={account_id} | event={event}")
            return 0
        delivered = await self._deliver(handles, event, payload)
        logger.info(f"Notification sent | account={account_id} | event={event} | delivered={delivered}")
        return delivered

    async def broadcast(
        self, event: str, payload: Any, exclude: Optional[Iterable[str]] = None
    ) -> int:
        """Push ``event`` to every connected account except those in ``exclude``."""
        skip = set(exclude or ())
        with self._lock:
            handles = [
                handle
                for account_id, account_handles in self._connections.items()
                if account_id not in skip
                for handle in account_handles.values()
            ]
        if not handles:
            return 0
        delivered = await self._deliver(handles, event, payload)
        logger.info(f"Broadcast sent | event={event} | delivered={delivered}")
        return delivered

    async def _deliver(self, handles: list[Connection], event: str, payload: Any) -> int:
        envelope = {"event": event, "data": payload}
        results = await asyncio.gather(*(self._send(handle, envelope) for handle in handles))
        return sum(1 for ok in results if ok)

    async def _send(self, handle: Connection, envelope: dict) -> bool:
        try:
            await asyncio.wait_for(handle.send_json(envelope), timeout=self.send_timeout)
            return True
        except Exception as e:
            # A connection that cannot take a send is treated as gone
            account_id = self.unregister_connection(handle)
            logger.warning(
                f"Notification delivery failed | account={account_id} | "
                f"event={envelope['event']} | error={e!r}"
            )
            return False

    # === Shutdown ===

    async def close(self) -> None:
        """Close and forget every connection. Called once at process shutdown."""
        with self._lock:
            handles = [h for account_handles in self._connections.values() for h in account_handles.values()]
            self._owners.clear()
            self._connections.clear()
        for handle in handles:
            try:
                await handle.close(code=1001)
            except Exception as e:
                logger.debug(f"Error closing connection during shutdown: {e!r}")
        logger.info(f"Notification bus closed | connections={len(handles)}")
