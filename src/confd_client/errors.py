"""Custom error types for the confd client.

Setup-phase errors (connect, subscribe, build) propagate to the caller.
Errors inside a running dispatch loop are logged and end that loop only.
"""


class ConfdError(Exception):
    """Base exception for all confd client errors."""

    pass


class TransportError(ConfdError):
    """Connect, read, write or flush failure on a daemon connection.

    Also raised on EOF and short reads, never as a format error.
    """

    pass


class FrameFormatError(ConfdError):
    """Frame payload is not valid UTF-8 JSON."""

    pass


class FrameTooLargeError(ConfdError):
    """Outgoing payload does not fit the 32-bit length header."""

    pass


class ClientClosedError(ConfdError):
    """Client was used after listen() consumed it or after aclose()."""

    pass


class InvalidHandlerError(ConfdError, TypeError):
    """Registered handler is not callable."""

    pass


class InvalidPathError(ConfdError, ValueError):
    """Subscription path is empty."""

    pass
