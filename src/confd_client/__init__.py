"""confd client - subscribe to configuration paths over a Unix socket.

Provides:
- Client: one connection per subscribed path, consumed by listen()
- ClientBuilder: collect subscriptions, then connect them all
- framing: length-prefixed JSON codec used on every connection

Quick Start
-----------
>>> from confd_client import ClientBuilder
>>> async def on_change(config: dict) -> None:
...     print(config)
>>> client = await ClientBuilder().with_subscription("/network", on_change).build()
>>> await client.listen()
"""

from confd_client.client import Client, ClientBuilder, Listener
from confd_client.config import Settings, get_settings
from confd_client.errors import (
    ClientClosedError,
    ConfdError,
    FrameFormatError,
    FrameTooLargeError,
    InvalidHandlerError,
    InvalidPathError,
    TransportError,
)
from confd_client.handler import ConfigObject, Handler
from confd_client.logging_config import configure_logging, get_logger
from confd_client.models import Subscription, SubscriptionRequest

__all__ = [
    # Client
    "Client",
    "ClientBuilder",
    "Listener",
    # Models
    "ConfigObject",
    "Handler",
    "Subscription",
    "SubscriptionRequest",
    # Errors
    "ConfdError",
    "TransportError",
    "FrameFormatError",
    "FrameTooLargeError",
    "ClientClosedError",
    "InvalidHandlerError",
    "InvalidPathError",
    # Configuration
    "Settings",
    "get_settings",
    "configure_logging",
    "get_logger",
]

__version__ = "0.1.0"
