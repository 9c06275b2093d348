"""Subscription registry, dispatch loop and builder for the confd client.

Usage
-----
>>> client = await (
...     ClientBuilder()
...     .with_name("my-service")
...     .with_subscription("/network", on_network_change)
...     .build()
... )
>>> await client.listen()

Lifecycle
---------
A Client accumulates subscriptions until listen() is called. listen() hands
every subscription to a Listener and consumes the Client: afterwards
subscribe() and listen() raise ClientClosedError. Each subscription gets its
own dispatch task; a read error ends that task only and is never raised from
listen().
"""

from __future__ import annotations

import asyncio
import os
from typing import Iterable, Optional, Union

from confd_client import framing
from confd_client.config import get_settings
from confd_client.errors import (
    ClientClosedError,
    ConfdError,
    InvalidPathError,
    TransportError,
)
from confd_client.handler import Handler, ensure_handler, handler_name, invoke_handler
from confd_client.logging_config import get_logger
from confd_client.metrics import (
    FRAMES_RECEIVED,
    NOTIFICATIONS_DISPATCHED,
    SUBSCRIPTION_ERRORS,
    SUBSCRIPTIONS_ACTIVE,
)
from confd_client.models import Subscription, SubscriptionRequest, normalize_path

logger = get_logger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


class Client:
    """Registry of confd subscriptions, one connection per path.

    Parameters
    ----------
    client_name : str
        Sent as "subscriber" in every subscription request
    socket_path : str or PathLike
        Unix socket of the confd daemon

    Construction performs no I/O.
    """

    def __init__(self, client_name: str, socket_path: PathLike) -> None:
        self._client_name = client_name
        self._socket_path = os.fspath(socket_path)
        self._subscriptions: dict[str, Subscription] = {}
        self._closed = False

    @property
    def client_name(self) -> str:
        return self._client_name

    @property
    def socket_path(self) -> str:
        return self._socket_path

    @property
    def paths(self) -> list[str]:
        """Subscribed paths in registration order."""
        return list(self._subscriptions)

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        return len(self._subscriptions)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, os.PathLike)):
            return False
        try:
            return normalize_path(os.fspath(path)) in self._subscriptions
        except InvalidPathError:
            return False

    def __repr__(self) -> str:
        return (
            f"Client(client_name={self._client_name!r}, socket_path={self._socket_path!r}, "
            f"paths={self.paths!r})"
        )

    def handler_for(self, path: PathLike) -> Handler:
        """Return the handler registered for path.

        Raises:
            KeyError: path is not subscribed
        """
        return self._subscriptions[normalize_path(os.fspath(path))].handler

    def _check_open(self) -> None:
        if self._closed:
            raise ClientClosedError(
                "Client is closed; subscriptions cannot be added after listen() or aclose()"
            )

    async def subscribe(self, path: PathLike, handler: Handler) -> None:
        """Register handler for a configuration path.

        Opens a new connection to the daemon and sends the subscription
        request. Only one handler is kept per path: subscribing again replaces
        the previous subscription and closes its connection.

        The daemon normally pushes the current configuration right after
        subscribing, then again on every change.

        Args:
            path: Configuration path, normalized before use
            handler: Callable invoked with each configuration object

        Raises:
            TransportError: Connecting or sending the request failed
            ClientClosedError: Client was consumed by listen() or closed
            InvalidHandlerError: handler is not callable
            InvalidPathError: path is empty
        """
        self._check_open()
        handler = ensure_handler(handler)
        path = normalize_path(os.fspath(path))

        logger.debug("subscribing", path=path)
        request = SubscriptionRequest(path=path, subscriber=self._client_name).model_dump_json()

        logger.debug("connecting", socket=self._socket_path)
        try:
            reader, writer = await asyncio.open_unix_connection(self._socket_path)
        except OSError as e:
            raise TransportError(f"Cannot connect to confd at {self._socket_path}: {e}") from e

        subscription = Subscription(path=path, reader=reader, writer=writer, handler=handler)

        logger.debug("sending_subscription_request", request=request)
        try:
            await framing.send(writer, request)
        except BaseException:
            await subscription.close()
            raise

        # listen() or aclose() may have run while connecting or sending
        if self._closed:
            await subscription.close()
            raise ClientClosedError(f"Client was closed while subscribing to {path}")

        previous = self._subscriptions.get(path)
        self._subscriptions[path] = subscription

        if previous is not None:
            logger.info("subscription_replaced", path=path)
            await previous.close()

    def into_listener(self) -> Listener:
        """Move every subscription into a Listener and consume the Client.

        Raises:
            ClientClosedError: Client was already consumed or closed
        """
        self._check_open()
        subscriptions = list(self._subscriptions.values())
        self._subscriptions = {}
        self._closed = True
        return Listener(subscriptions)

    async def listen(self) -> None:
        """Dispatch configuration changes until every connection ends.

        Terminal operation: the Client cannot be used afterwards. Returns
        once all dispatch loops finished, whatever ended them.

        Raises:
            ClientClosedError: Client was already consumed or closed
        """
        await self.into_listener().run()

    async def aclose(self) -> None:
        """Close every owned connection. Safe to call more than once."""
        self._closed = True
        subscriptions = list(self._subscriptions.values())
        self._subscriptions = {}
        for subscription in subscriptions:
            await subscription.close()
        if subscriptions:
            logger.debug("client_closed", closed_connections=len(subscriptions))

    async def __aenter__(self) -> Client:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


class Listener:
    """Runs one dispatch loop per subscription.

    Offers no way to add subscriptions; it only exists once a Client has
    been consumed.
    """

    def __init__(self, subscriptions: Iterable[Subscription]) -> None:
        self._subscriptions = tuple(subscriptions)
        self._started = False

    @property
    def paths(self) -> list[str]:
        return [s.path for s in self._subscriptions]

    async def run(self) -> None:
        """Spawn a task per subscription and wait for all of them.

        Raises:
            ClientClosedError: run() was already called
        """
        if self._started:
            raise ClientClosedError("Listener already started")
        self._started = True

        logger.debug("awaiting_configuration_changes", paths=len(self._subscriptions))

        tasks = [
            asyncio.create_task(dispatch_loop(subscription), name=f"confd:{subscription.path}")
            for subscription in self._subscriptions
        ]
        if not tasks:
            return

        results = await asyncio.gather(*tasks, return_exceptions=True)
        for subscription, result in zip(self._subscriptions, results):
            if isinstance(result, BaseException):
                logger.error(
                    "dispatch_loop_crashed",
                    path=subscription.path,
                    error=repr(result),
                )

        logger.debug("all_subscriptions_terminated", paths=len(self._subscriptions))


async def dispatch_loop(subscription: Subscription) -> None:
    """Read frames and dispatch configuration objects until the connection fails.

    Non-object messages are discarded. A read or format error, or a handler
    that raises, ends the loop. The connection is closed on exit.
    """
    path = subscription.path
    SUBSCRIPTIONS_ACTIVE.inc()
    try:
        while True:
            try:
                message = await framing.read(subscription.reader)
            except ConfdError as e:
                logger.error("subscription_read_failed", path=path, error=str(e))
                SUBSCRIPTION_ERRORS.labels(stage="read").inc()
                return

            FRAMES_RECEIVED.inc()

            if not isinstance(message, dict):
                logger.debug("message_discarded", path=path, kind=type(message).__name__)
                continue

            logger.debug(
                "dispatching", path=path, handler=handler_name(subscription.handler)
            )
            try:
                await invoke_handler(subscription.handler, message)
            except Exception as e:
                logger.exception("handler_failed", path=path, error=str(e))
                SUBSCRIPTION_ERRORS.labels(stage="handler").inc()
                return

            NOTIFICATIONS_DISPATCHED.labels(path=path).inc()
    finally:
        SUBSCRIPTIONS_ACTIVE.dec()
        await subscription.close()


class ClientBuilder:
    """Accumulates subscriptions, then connects them all in build().

    Defaults for name and socket path come from settings
    (CONFD_CLIENT_NAME, CONFD_SOCKET_PATH).

    Examples
    --------
    >>> builder = ClientBuilder().with_socket_path("/tmp/confd.sock")
    >>> builder = builder.with_subscription("/dns", on_dns_change)
    >>> client = await builder.build()
    """

    def __init__(self, name: Optional[str] = None, socket_path: Optional[PathLike] = None) -> None:
        settings = get_settings()
        self._name = name if name is not None else settings.client_name
        self._socket_path = (
            os.fspath(socket_path) if socket_path is not None else settings.socket_path
        )
        self._subscriptions: dict[str, Handler] = {}

    @property
    def name(self) -> str:
        return self._name

    @property
    def socket_path(self) -> str:
        return self._socket_path

    @property
    def paths(self) -> list[str]:
        return list(self._subscriptions)

    def with_name(self, name: str) -> ClientBuilder:
        """Set the client name."""
        self._name = name
        return self

    def with_socket_path(self, path: PathLike) -> ClientBuilder:
        """Set the socket path."""
        self._socket_path = os.fspath(path)
        return self

    def with_subscription(self, path: PathLike, handler: Handler) -> ClientBuilder:
        """Register handler for path. A later call for the same path wins."""
        self._subscriptions[normalize_path(os.fspath(path))] = ensure_handler(handler)
        return self

    async def build(self) -> Client:
        """Create a Client and subscribe to every registered path in order.

        The accumulated subscriptions move into the Client; the builder is
        empty afterwards.

        Raises:
            TransportError: A subscription failed. Connections opened earlier
                in this call are closed before the error propagates.
        """
        pairs = list(self._subscriptions.items())
        self._subscriptions = {}

        client = Client(self._name, self._socket_path)
        try:
            for path, handler in pairs:
                await client.subscribe(path, handler)
        except BaseException:
            logger.warning("build_failed", subscribed=len(client), requested=len(pairs))
            await client.aclose()
            raise

        logger.debug("client_built", paths=len(client))
        return client
