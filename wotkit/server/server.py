"""
WebThingServer - HTTP and WebSocket edge for one or more Things.

Routing:
- Single thing: the thing is served at the root ('/', '/properties', ...)
- Multiple things: each thing is served under its index ('/0', '/1/properties', ...)
  and GET '/' lists all descriptions

Push channel: a WebSocket upgrade at a thing's path subscribes the
connection to that thing. Inbound messages let the client set properties
(setProperty), request actions (requestAction) and narrow event
subscriptions (addEventSubscription). Inbound 'addEvent' is an alias of
addEventSubscription: clients cannot emit events on a thing.

Lifecycle invariants:
- start() binds the endpoint, then advertises presence
- stop() closes every push connection, withdraws presence, releases the endpoint
- Both are idempotent
"""

import asyncio
import itertools
import ssl
from typing import Any, Dict, List, Optional, Sequence, Union

import orjson
from aiohttp import web, WSMsgType

from wotkit.core.errors import ThingError, UnknownResourceError, ValidationError
from wotkit.core.thing import Thing
from wotkit.server.config import ServerConfig
from wotkit.server.connection import PushConnection
from wotkit.server.discovery import Advertiser, NullAdvertiser, ZeroconfAdvertiser
from sdk.logging import getLogger


CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': 'Origin, X-Requested-With, Content-Type, Accept',
    'Access-Control-Allow-Methods': 'GET, HEAD, PUT, POST, DELETE, OPTIONS',
}


def jsonResponse(data: Any, status: int = 200) -> web.Response:
    return web.json_response(data, status=status, dumps=lambda o: orjson.dumps(o).decode())


class WebThingServer:
    """
    Server exposing Things over HTTP and WebSocket.

    Handles property/action/event requests, push subscriptions and mDNS
    presence. Things are shared with device code, which may mutate them from
    any thread.
    """

    def __init__(self, things: Union[Thing, Sequence[Thing]], name: Optional[str] = None,
                 port: int = 80, host: str = '0.0.0.0', certfile: Optional[str] = None,
                 keyfile: Optional[str] = None, advertise: bool = True, queueSize: int = 1024,
                 advertiser: Optional[Advertiser] = None, sslContext: Optional[ssl.SSLContext] = None):
        """
        Args:
            things: One Thing, or an ordered list of Things
            name: Server name broadcast via mDNS; required with more than one thing
            port: Listening port (0 picks a free port, see `port` after start())
            host: Bind address
            certfile, keyfile: TLS material; TLS is enabled when both are given
            advertise: Register an mDNS service while running
            queueSize: Outbound queue bound per push connection
            advertiser: Custom presence advertiser (overrides `advertise`)
            sslContext: Prebuilt TLS context (overrides certfile/keyfile)
        """
        self.things: List[Thing] = [things] if isinstance(things, Thing) else list(things)
        if not self.things:
            raise ValueError("At least one thing is required")

        self.multiple = len(self.things) > 1
        if self.multiple and not name:
            raise ValueError("A server name is required when hosting more than one thing")

        self.name = name if self.multiple else (name or self.things[0].getTitle())
        self.host = host
        self.port = port
        self.queueSize = queueSize
        self.log = getLogger()

        if sslContext is None and certfile and keyfile:
            sslContext = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
            sslContext.load_cert_chain(certfile, keyfile)
        self.sslContext = sslContext

        if advertiser is None:
            advertiser = ZeroconfAdvertiser() if advertise else NullAdvertiser()
        self.advertiser = advertiser

        if self.multiple:
            for index, thing in enumerate(self.things):
                thing.setHrefPrefix(f"/{index}")

        # Active push connections: connId -> PushConnection
        self.connections: Dict[str, PushConnection] = {}
        self._connCounter = itertools.count(1)

        self.app = web.Application(middlewares=[self._corsMiddleware, self._errorMiddleware])
        self._setupRoutes()

        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None
        self._lifecycleLock = asyncio.Lock()

    @classmethod
    def fromConfig(cls, things: Union[Thing, Sequence[Thing]], config: ServerConfig, **kwargs) -> 'WebThingServer':
        return cls(things, name=config.name, port=config.port, host=config.host,
                   certfile=config.certfile, keyfile=config.keyfile, advertise=config.advertise,
                   queueSize=config.queueSize, **kwargs)

    @property
    def tls(self) -> bool:
        return self.sslContext is not None

    @property
    def running(self) -> bool:
        return self._runner is not None

    def _setupRoutes(self):
        """Setup aiohttp routes"""
        router = self.app.router

        if self.multiple:
            router.add_get('/', self.handleThings)
            base = '/{thingId}'
            router.add_get(base, self.handleThing)
        else:
            base = ''
            router.add_get('/', self.handleThing)

        router.add_get(f'{base}/properties', self.handleProperties)
        router.add_get(f'{base}/properties/{{propertyName}}', self.handleGetProperty)
        router.add_put(f'{base}/properties/{{propertyName}}', self.handlePutProperty)

        router.add_get(f'{base}/actions', self.handleActions)
        router.add_post(f'{base}/actions', self.handleRequestActions)
        router.add_get(f'{base}/actions/{{actionName}}', self.handleActions)
        router.add_post(f'{base}/actions/{{actionName}}', self.handleRequestAction)
        router.add_get(f'{base}/actions/{{actionName}}/{{actionId}}', self.handleGetAction)
        router.add_delete(f'{base}/actions/{{actionName}}/{{actionId}}', self.handleCancelAction)

        router.add_get(f'{base}/events', self.handleEvents)
        router.add_get(f'{base}/events/{{eventName}}', self.handleEvents)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self):
        """Bind the endpoint and advertise presence"""
        async with self._lifecycleLock:
            if self._runner is not None:
                return

            self.log.info("[Server] Starting...")
            runner = web.AppRunner(self.app)
            await runner.setup()
            try:
                site = web.TCPSite(runner, self.host, self.port, ssl_context=self.sslContext)
                await site.start()
            except Exception:
                await runner.cleanup()
                raise

            self._runner, self._site = runner, site
            if runner.addresses:
                self.port = runner.addresses[0][1]

            self.log.info(f"[Server] Listening on {self.host}:{self.port}",
                          things=len(self.things), tls=self.tls)

            await self.advertiser.register(self.name, self.port, tls=self.tls)

    async def stop(self):
        """Close push connections, withdraw presence, release the endpoint"""
        async with self._lifecycleLock:
            if self._runner is None:
                return

            self.log.info("[Server] Stopping...")

            for conn in list(self.connections.values()):
                await conn.close()
            self.connections.clear()

            await self.advertiser.unregister()

            runner, self._runner, self._site = self._runner, None, None
            await runner.cleanup()

            self.log.info("[Server] Stopped")

    def run(self):
        """Serve until interrupted (blocking)"""
        async def serve():
            await self.start()
            try:
                await asyncio.Event().wait()
            finally:
                await self.stop()

        try:
            asyncio.run(serve())
        except KeyboardInterrupt:
            self.log.info("[Server] Interrupted")

    # =========================================================================
    # Middleware
    # =========================================================================

    @web.middleware
    async def _corsMiddleware(self, request: web.Request, handler):
        if request.method == 'OPTIONS':
            return web.Response(status=204, headers=CORS_HEADERS)
        try:
            response = await handler(request)
        except web.HTTPException as e:
            e.headers.update(CORS_HEADERS)
            raise
        if not response.prepared:
            response.headers.update(CORS_HEADERS)
        return response

    @web.middleware
    async def _errorMiddleware(self, request: web.Request, handler):
        try:
            return await handler(request)
        except ThingError as e:
            if e.status >= 500:
                self.log.error(f"[Server] {request.method} {request.path} failed: {e.message}")
            return jsonResponse(e.toDict(), status=e.status)
        except web.HTTPException:
            raise
        except Exception as e:
            self.log.error(f"[Server] {request.method} {request.path} failed: {e}", exc_info=True)
            return jsonResponse({'error': 'Internal Server Error', 'status': 500}, status=500)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _getThing(self, request: web.Request) -> Thing:
        """Resolve the addressed thing; raises UnknownResourceError"""
        if not self.multiple:
            return self.things[0]
        thingId = request.match_info['thingId']
        if not thingId.isdecimal() or int(thingId) >= len(self.things):
            raise UnknownResourceError(f"Unknown thing: {thingId}")
        return self.things[int(thingId)]

    async def _readJson(self, request: web.Request) -> Any:
        try:
            return orjson.loads(await request.read())
        except orjson.JSONDecodeError as e:
            raise ValidationError(f"Invalid JSON body: {e}") from e

    def _describeThing(self, request: web.Request, thing: Thing) -> Dict[str, Any]:
        """Thing description plus request-dependent links"""
        description = thing.asThingDescription()
        wsScheme = 'wss' if self.tls else 'ws'
        httpScheme = 'https' if self.tls else 'http'
        description['links'].append({'rel': 'alternate', 'href': f"{wsScheme}://{request.host}{thing.getHref()}"})
        description['base'] = f"{httpScheme}://{request.host}{thing.getHref()}"
        description['securityDefinitions'] = {'nosec_sc': {'scheme': 'nosec'}}
        description['security'] = 'nosec_sc'
        return description

    @staticmethod
    def _actionInput(actionName: str, params: Any) -> Any:
        """Extract input from {'input': ...} action parameters"""
        if isinstance(params, dict):
            return params.get('input')
        if params is None:
            return None
        raise ValidationError(f"Invalid parameters for action: {actionName}")

    # =========================================================================
    # HTTP Handlers
    # =========================================================================

    async def handleThings(self, request: web.Request) -> web.Response:
        """List all thing descriptions"""
        return jsonResponse([self._describeThing(request, thing) for thing in self.things])

    async def handleThing(self, request: web.Request) -> web.StreamResponse:
        """Thing description, or WebSocket upgrade into a push channel"""
        thing = self._getThing(request)
        if request.headers.get('Upgrade', '').lower() == 'websocket':
            return await self.handleWebSocket(request, thing)
        return jsonResponse(self._describeThing(request, thing))

    async def handleProperties(self, request: web.Request) -> web.Response:
        thing = self._getThing(request)
        return jsonResponse(thing.getProperties())

    async def handleGetProperty(self, request: web.Request) -> web.Response:
        thing = self._getThing(request)
        propertyName = request.match_info['propertyName']
        return jsonResponse({propertyName: thing.getProperty(propertyName)})

    async def handlePutProperty(self, request: web.Request) -> web.Response:
        """Body and response: {propertyName: value}"""
        thing = self._getThing(request)
        propertyName = request.match_info['propertyName']
        if not thing.hasProperty(propertyName):
            raise UnknownResourceError(f"Unknown property: {propertyName}")

        body = await self._readJson(request)
        if not isinstance(body, dict) or propertyName not in body:
            raise ValidationError(f"Body must be an object with key '{propertyName}'")

        thing.setProperty(propertyName, body[propertyName])
        return jsonResponse({propertyName: thing.getProperty(propertyName)})

    async def handleActions(self, request: web.Request) -> web.Response:
        thing = self._getThing(request)
        return jsonResponse(thing.getActionDescriptions(request.match_info.get('actionName')))

    async def handleRequestActions(self, request: web.Request) -> web.Response:
        """Body: {actionName: {input: ...}} with exactly one action"""
        thing = self._getThing(request)
        body = await self._readJson(request)
        if not isinstance(body, dict) or len(body) != 1:
            raise ValidationError("Body must be an object with exactly one action")

        actionName, params = next(iter(body.items()))
        action = thing.requestAction(actionName, self._actionInput(actionName, params))
        return jsonResponse(action.asActionDescription(), status=201)

    async def handleRequestAction(self, request: web.Request) -> web.Response:
        """
        Body: {actionName: {input: ...}}, or the bare input.

        The envelope form is recognized when the body is an object whose only
        key is the action name.
        """
        thing = self._getThing(request)
        actionName = request.match_info['actionName']
        body = await self._readJson(request) if request.can_read_body else None

        if isinstance(body, dict) and list(body.keys()) == [actionName]:
            input_ = self._actionInput(actionName, body[actionName])
        else:
            input_ = body

        action = thing.requestAction(actionName, input_)
        return jsonResponse(action.asActionDescription(), status=201)

    async def handleGetAction(self, request: web.Request) -> web.Response:
        thing = self._getThing(request)
        action = thing.getAction(request.match_info['actionName'], request.match_info['actionId'])
        return jsonResponse(action.asActionDescription())

    async def handleCancelAction(self, request: web.Request) -> web.Response:
        thing = self._getThing(request)
        thing.cancelAction(request.match_info['actionName'], request.match_info['actionId'])
        return web.Response(status=204)

    async def handleEvents(self, request: web.Request) -> web.Response:
        """Retained events, optionally by name and after a ?since=<seq> cursor"""
        thing = self._getThing(request)
        since = request.query.get('since')
        try:
            cursor = int(since) if since is not None else None
        except ValueError:
            raise ValidationError(f"Invalid cursor: {since}")
        return jsonResponse(thing.getEventDescriptions(request.match_info.get('eventName'), cursor))

    # =========================================================================
    # WebSocket push channel
    # =========================================================================

    async def handleWebSocket(self, request: web.Request, thing: Thing) -> web.WebSocketResponse:
        """Subscribe a client to a thing and serve inbound commands until it disconnects"""
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        connId = str(next(self._connCounter))
        peername = request.transport.get_extra_info('peername') if request.transport else None
        peerAddr = f"{peername[0]}:{peername[1]}" if peername else "unknown"

        conn = PushConnection(ws, connId, peerAddr, self.queueSize,
                              onDrop=lambda c: self.connections.pop(c.connId, None))
        self.connections[connId] = conn
        conn.subscribe(thing)
        conn.start()

        self.log.info(f"[Server] Push client {connId} connected from {peerAddr}", thing=thing.getTitle())

        flush = False
        try:
            async for msg in ws:
                if msg.type == WSMsgType.TEXT:
                    if not self._handleWsMessage(conn, thing, msg.data):
                        flush = True
                        break
                elif msg.type == WSMsgType.BINARY:
                    conn.sendError('400 Bad Request', 'Binary messages are not supported')
                    flush = True
                    break
                elif msg.type == WSMsgType.ERROR:
                    break
        except Exception as e:
            self.log.debug(f"[Server] Push client {connId} error: {e}")
        finally:
            self.connections.pop(connId, None)
            await conn.close(flush=flush)

        return ws

    def _handleWsMessage(self, conn: PushConnection, thing: Thing, raw: str) -> bool:
        """
        Apply one inbound message.

        Returns: False on a protocol error (the connection is then closed)
        """
        try:
            message = orjson.loads(raw)
        except orjson.JSONDecodeError:
            conn.sendError('400 Bad Request', 'Parsing request failed')
            return False

        if not isinstance(message, dict) or 'messageType' not in message or not isinstance(message.get('data'), dict):
            conn.sendError('400 Bad Request', 'Invalid message', request=message)
            return False

        messageType, data = message['messageType'], message['data']
        try:
            if messageType == 'setProperty':
                for propertyName, value in data.items():
                    thing.setProperty(propertyName, value)

            elif messageType == 'requestAction':
                for actionName, params in data.items():
                    thing.requestAction(actionName, self._actionInput(actionName, params))

            elif messageType in ('addEventSubscription', 'addEvent'):
                for eventName in data:
                    thing.addEventSubscription(conn, eventName)

            else:
                conn.sendError('400 Bad Request', f"Unknown messageType: {messageType}", request=message)

        except ThingError as e:
            conn.sendError(f"{e.status} {e.reason}", e.message, request=message)

        return True
