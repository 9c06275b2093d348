"""Handler abstraction for configuration notifications.

A handler accepts one configuration object and performs an asynchronous
action with no result. Anything callable with one argument qualifies:

    async def on_change(config: dict) -> None: ...

    class Reloader:
        async def __call__(self, config: dict) -> None: ...

    client.subscribe("/net", lambda config: reload(config, state))

Plain functions returning None are accepted too; their return value is only
awaited when it is awaitable.
"""

from __future__ import annotations

import inspect
from typing import Any, Awaitable, Callable, Optional, Union

from confd_client.errors import InvalidHandlerError

ConfigObject = dict[str, Any]
Handler = Callable[[ConfigObject], Union[Awaitable[None], None]]


def ensure_handler(handler: Any) -> Handler:
    """Validate that handler can be registered.

    Raises:
        InvalidHandlerError: handler is not callable
    """
    if not callable(handler):
        raise InvalidHandlerError(
            f"Handler must be callable, got {type(handler).__name__}"
        )
    return handler


async def invoke_handler(handler: Handler, config: ConfigObject) -> None:
    """Call handler with config and await its completion."""
    result: Optional[Awaitable[None]] = handler(config)
    if inspect.isawaitable(result):
        await result


def handler_name(handler: Handler) -> str:
    """Readable name for log events."""
    name = getattr(handler, "__qualname__", None) or getattr(handler, "__name__", None)
    if name is None:
        name = type(handler).__qualname__
    return name
