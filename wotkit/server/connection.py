"""
Push channel connection - one WebSocket client subscribed to Things.

Exists only while the WebSocket is open. Every outbound message goes
through a bounded queue drained by a writer task on the server loop:
- push() may be called from any thread; it hands the message to the loop
  with call_soon_threadsafe, which keeps producer order.
- A full queue (slow client) or a failed write drops this connection only.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional

import orjson
from aiohttp import web

from wotkit.core.errors import TransportError
from sdk.logging import getLogger


class PushConnection:
    """WebSocket subscriber with an isolated outbound queue"""

    def __init__(self, ws: web.WebSocketResponse, connId: str, peerAddr: str,
                 queueSize: int = 1024, onDrop: Optional[Callable[['PushConnection'], None]] = None):
        self.ws = ws
        self.connId = connId
        self.peerAddr = peerAddr
        self.onDrop = onDrop
        self.things: List[Any] = []
        self.closed = False
        self.log = getLogger()

        self._loop = asyncio.get_running_loop()
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queueSize)
        self._writer: Optional[asyncio.Task] = None
        # Background close started by _drop(); held so it is not collected mid-flight
        self._closer: Optional[asyncio.Task] = None

        # Stats
        self.msgsOut = 0

    def start(self):
        """Start the writer task (call on the server loop)"""
        if self._writer is None:
            self._writer = asyncio.create_task(self._drain())

    def subscribe(self, thing):
        thing.subscribe(self)
        if thing not in self.things:
            self.things.append(thing)

    def push(self, message: str):
        """Queue a serialized message; raises TransportError once the connection is gone"""
        if self.closed:
            raise TransportError(f"Connection {self.connId} closed")
        try:
            self._loop.call_soon_threadsafe(self._enqueue, message)
        except RuntimeError as e:
            # Server loop already closed
            self.closed = True
            raise TransportError(str(e)) from e

    def sendMessage(self, messageType: str, data: Dict[str, Any]):
        self.push(orjson.dumps({'messageType': messageType, 'data': data}).decode())

    def sendError(self, status: str, message: str, request: Any = None):
        """Send an error message to the client"""
        data = {'status': status, 'message': message}
        if request is not None:
            data['request'] = request
        try:
            self.sendMessage('error', data)
        except TransportError:
            pass

    def _enqueue(self, message: str):
        # Runs on the server loop
        if self.closed:
            return
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            self.log.warning(f"[Conn {self.connId}] Outbound queue full, dropping slow client {self.peerAddr}")
            self._drop()

    async def _drain(self):
        """Writer task: send queued messages in order until closed"""
        try:
            while True:
                message = await self._queue.get()
                if message is None:
                    return
                await self.ws.send_str(message)
                self.msgsOut += 1
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.log.warning(f"[Conn {self.connId}] Write failed, dropping connection: {e}")
            self._drop()

    def _drop(self):
        """Detach from all Things and close the socket in the background"""
        if self.closed:
            return
        self.closed = True
        for thing in self.things:
            thing.unsubscribe(self)
        if self.onDrop:
            self.onDrop(self)
        if not self.ws.closed:
            self._closer = asyncio.create_task(self.ws.close())

    async def close(self, flush: bool = False, timeout: float = 1.0):
        """
        Close the connection.

        Args:
            flush: Deliver already queued messages (e.g. a final error) first
            timeout: Max seconds to wait for the flush
        """
        if flush and not self.closed:
            # Let messages already handed to the loop reach the queue first
            await asyncio.sleep(0)

        if not self.closed:
            self.closed = True
            for thing in self.things:
                thing.unsubscribe(self)

        writer, self._writer = self._writer, None
        if writer is not None and not writer.done():
            if flush:
                try:
                    self._queue.put_nowait(None)
                    await asyncio.wait_for(writer, timeout)
                except (asyncio.QueueFull, asyncio.TimeoutError):
                    writer.cancel()
            else:
                writer.cancel()
            try:
                await writer
            except (asyncio.CancelledError, Exception):
                pass

        closer, self._closer = self._closer, None
        if closer is not None:
            await asyncio.gather(closer, return_exceptions=True)

        try:
            if not self.ws.closed:
                await self.ws.close()
        except Exception as e:
            self.log.debug(f"[Conn {self.connId}] Close error: {e}")

        self.log.info(f"[Conn {self.connId}] Closed ({self.msgsOut} msgs)")
