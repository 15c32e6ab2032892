"""Live fan-out of staff notifications to connected WebSocket subscribers.

Delivery is best effort: every open connection gets each envelope at most
once, nothing is replayed, and a failing connection never affects the
others or the caller. Sends run concurrently and each is bounded by
``send_timeout``; a subscriber that stalls past it is dropped. The durable
record is the ``notifications`` row.
"""

import asyncio
import json
import logging

from fastapi import WebSocket
from starlette.requests import HTTPConnection
from starlette.websockets import WebSocketState

from guestbook.core import config, datetime_utils

logger = logging.getLogger(__name__)


def build_envelope(staff_id: int, message: str) -> dict:
    return {
        'staffId': staff_id,
        'message': message,
        'timestamp': datetime_utils.now_utc().isoformat(),
    }


class NotificationHub:
    """Registry of open subscriber connections."""

    def __init__(self, send_timeout: float = config.BROADCAST_SEND_TIMEOUT_SECONDS) -> None:
        self._connections: set[WebSocket] = set()
        self._lock = asyncio.Lock()
        self.send_timeout = send_timeout

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def register(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._connections.add(websocket)
        logger.info('Subscriber connected (%d open).', self.connection_count)

    async def unregister(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._connections.discard(websocket)
        logger.info('Subscriber disconnected (%d open).', self.connection_count)

    async def accept(self, websocket: WebSocket) -> None:
        """Serve one subscriber until it goes away.

        Incoming frames are read only to notice the close; their content is
        ignored.
        """
        await websocket.accept()
        await self.register(websocket)
        try:
            while True:
                message = await websocket.receive()
                if message['type'] == 'websocket.disconnect':
                    break
        except Exception:
            logger.exception('Subscriber connection failed.')
        finally:
            await self.unregister(websocket)
            await self._release(websocket)

    async def _release(self, websocket: WebSocket) -> None:
        if websocket.client_state == WebSocketState.DISCONNECTED:
            return
        if websocket.application_state == WebSocketState.DISCONNECTED:
            return
        try:
            await websocket.close()
        except RuntimeError:
            logger.debug('Subscriber connection was already closed.', exc_info=True)

    async def broadcast(self, staff_id: int, message: str) -> int:
        """Push ``message`` for ``staff_id`` to every open connection.

        Returns the number of connections the envelope was written to.
        Never raises.
        """
        async with self._lock:
            connections = list(self._connections)

        if not connections:
            return 0

        payload = json.dumps(build_envelope(staff_id, message))
        results = await asyncio.gather(*(self._send(websocket, payload, staff_id) for websocket in connections))
        return sum(results)

    async def _send(self, websocket: WebSocket, payload: str, staff_id: int) -> bool:
        try:
            await asyncio.wait_for(websocket.send_text(payload), timeout=self.send_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                'Subscriber stalled for %.1fs while pushing for staff %s, dropping it.',
                self.send_timeout,
                staff_id,
            )
            await self.unregister(websocket)
            return False
        except Exception:
            logger.exception('Failed to push notification for staff %s to a subscriber.', staff_id)
            return False
        return True


def get_notification_hub(connection: HTTPConnection) -> NotificationHub:
    return connection.app.state.notification_hub
