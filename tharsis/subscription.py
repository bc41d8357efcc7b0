"""
GraphQL subscriptions over a websocket speaking the `graphql-ws` protocol.

A single connection is opened lazily by the first subscription and shared by all of them. Every
subscription is exposed as an EventStream, an async iterator fed from the connection's reader
task through an unbounded queue, so no event is dropped while the consumer is busy.
"""

import asyncio
import itertools
import json
import logging
from collections.abc import AsyncIterator, Callable, Mapping
from typing import Any, Generic, TypeVar

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed

from .auth import TokenProvider
from .constants import GRAPHQL_WS_SUBPROTOCOL
from .errors import ErrorCode, TharsisError, error_from_graphql_errors

logger = logging.getLogger(__name__)

_END = object()

T = TypeVar("T")


class EventStream(Generic[T]):
    """
    The events of one subscription, as an async iterator over the `data` payloads converted by
    the transform given when subscribing.
    """

    def __init__(
        self,
        client: "SubscriptionClient",
        subscription_id: str,
        transform: Callable[[dict[str, Any]], T],
    ) -> None:
        self._client = client
        self.subscription_id = subscription_id
        self._transform = transform
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._finished = False

    def __aiter__(self) -> AsyncIterator[T]:
        return self

    async def __anext__(self) -> T:
        item = await self._queue.get()
        if item is _END:
            # Keep the stream ended for any further readers.
            self._queue.put_nowait(_END)
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            self.finish()
            raise item
        return self._transform(item)

    def push(self, item: dict[str, Any] | BaseException) -> None:
        if not self._finished:
            self._queue.put_nowait(item)

    def finish(self) -> None:
        if not self._finished:
            self._finished = True
            self._queue.put_nowait(_END)

    async def aclose(self) -> None:
        """Stop the subscription on the server and end the stream."""
        self.finish()
        await self._client.stop(self.subscription_id)


class SubscriptionClient:
    """Client-side code to run GraphQL subscriptions against the Tharsis API."""

    def __init__(
        self,
        url: str,
        token_provider: TokenProvider,
        open_timeout: float = 10.0,
    ) -> None:
        """
        Initializes a new instance of the SubscriptionClient class.

        :param url: The http(s) or ws(s) URL of the GraphQL endpoint.
        :param token_provider: Supplies the bearer token sent when the connection is initialized.
        :param open_timeout: Seconds to wait for the websocket handshake.
        """
        if url.startswith("http"):
            url = "ws" + url[len("http") :]
        self.url = url
        self._token_provider = token_provider
        self._open_timeout = open_timeout
        self._connection: ClientConnection | None = None
        self._reader: asyncio.Task[None] | None = None
        self._streams: dict[str, EventStream[Any]] = {}
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()

    async def subscribe(
        self,
        query: str,
        variables: Mapping[str, Any] | None,
        transform: Callable[[dict[str, Any]], T],
    ) -> EventStream[T]:
        """
        Start a subscription, connecting first if there is no live connection.

        :param query: the GraphQL subscription document
        :param variables: the variables referenced by the document
        :param transform: converts the `data` payload of each event
        :raises TharsisError: if the server rejects the connection, or with code
            SERVICE_UNAVAILABLE if the connection closes before the subscription is started.
        :raises OSError: if unable to connect.
        """
        connection = await self._ensure_connected()

        stream = EventStream(self, str(next(self._ids)), transform)
        self._streams[stream.subscription_id] = stream
        try:
            await connection.send(
                json.dumps(
                    {
                        "id": stream.subscription_id,
                        "type": "start",
                        "payload": {"query": query, "variables": dict(variables or {})},
                    }
                )
            )
        except ConnectionClosed as err:
            self._streams.pop(stream.subscription_id, None)
            stream.finish()
            msg = "subscription connection closed before the subscription started"
            raise TharsisError(ErrorCode.SERVICE_UNAVAILABLE, msg) from err
        logger.debug("started subscription %s", stream.subscription_id)
        return stream

    async def stop(self, subscription_id: str) -> None:
        """Stop a subscription. Stopping an unknown or finished subscription does nothing."""
        stream = self._streams.pop(subscription_id, None)
        if stream is None:
            return
        stream.finish()
        if self._connection is not None:
            try:
                await self._connection.send(json.dumps({"id": subscription_id, "type": "stop"}))
            except ConnectionClosed:
                pass

    async def close(self) -> None:
        """Close the connection and end all streams."""
        async with self._lock:
            connection, self._connection = self._connection, None
            if self._reader is not None:
                self._reader.cancel()
                self._reader = None
            if connection is not None:
                try:
                    await connection.send(json.dumps({"type": "connection_terminate"}))
                except ConnectionClosed:
                    pass
                await connection.close()
            self._end_all_streams()

    async def _ensure_connected(self) -> ClientConnection:
        async with self._lock:
            if self._connection is not None:
                return self._connection

            token = await self._token_provider.get_token()
            connection = await connect(
                self.url,
                subprotocols=[GRAPHQL_WS_SUBPROTOCOL],  # type: ignore[list-item]
                open_timeout=self._open_timeout,
            )
            try:
                await self._initialize(connection, token)
            except BaseException:
                await connection.close()
                raise

            self._connection = connection
            self._reader = asyncio.create_task(self._read(connection))
            logger.debug("subscription connection established to %s", self.url)
            return connection

    async def _initialize(self, connection: ClientConnection, token: str) -> None:
        """Send connection_init and wait for the server to acknowledge it."""
        await connection.send(
            json.dumps(
                {"type": "connection_init", "payload": {"Authorization": f"Bearer {token}"}}
            )
        )
        while True:
            message = json.loads(await connection.recv())
            message_type = message.get("type")
            if message_type == "connection_ack":
                return
            if message_type == "connection_error":
                msg = f"subscription connection rejected: {message.get('payload')}"
                raise TharsisError(ErrorCode.UNAUTHORIZED, msg)

    async def _read(self, connection: ClientConnection) -> None:
        """Route the messages of the connection to the subscription streams until it closes."""
        try:
            async for raw in connection:
                self._dispatch(json.loads(raw))
        except ConnectionClosed as err:
            logger.warning("subscription connection closed: %s", err)
        except ValueError:
            logger.warning("subscription connection received an invalid message", exc_info=True)
            await connection.close()
        finally:
            if self._connection is connection:
                # The next subscription reconnects.
                self._connection = None
                self._reader = None
            self._end_all_streams()

    def _dispatch(self, message: dict[str, Any]) -> None:
        message_type = message.get("type")
        if message_type == "ka":
            return

        stream = self._streams.get(message.get("id", ""))
        if stream is None:
            logger.debug("dropping %s message for unknown subscription", message_type)
            return

        payload = message.get("payload")
        if message_type == "data":
            err = error_from_graphql_errors((payload or {}).get("errors") or ())
            if err is not None:
                stream.push(err)
            else:
                stream.push((payload or {}).get("data") or {})
        elif message_type == "error":
            errors = payload if isinstance(payload, list) else [payload or {}]
            err = error_from_graphql_errors(errors) or TharsisError(ErrorCode.INTERNAL)
            stream.push(err)
            del self._streams[stream.subscription_id]
        elif message_type == "complete":
            stream.finish()
            del self._streams[stream.subscription_id]

    def _end_all_streams(self) -> None:
        streams = list(self._streams.values())
        self._streams.clear()
        for stream in streams:
            stream.finish()
