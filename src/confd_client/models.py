"""Wire and registry models for the confd client."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import PurePosixPath

from pydantic import BaseModel, ConfigDict, Field

from confd_client.errors import InvalidPathError
from confd_client.handler import Handler


class SubscriptionRequest(BaseModel):
    """Request sent once per subscription right after connecting."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(description="Configuration path to subscribe to")
    subscriber: str = Field(description="Client name identifying the subscriber")


@dataclass
class Subscription:
    """One subscribed path with its open connection and handler."""

    path: str
    reader: asyncio.StreamReader
    writer: asyncio.StreamWriter
    handler: Handler

    async def close(self) -> None:
        """Close the connection, ignoring errors from an already-dead peer."""
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except OSError:
            pass


def normalize_path(path: str | PurePosixPath) -> str:
    """Normalize a configuration path.

    Repeated separators collapse, trailing separators and "." components are
    dropped. ".." is kept as-is.

    An empty or blank path is rejected rather than sent: the daemon has no
    meaning for it.

    Raises:
        InvalidPathError: path is empty or blank
    """
    text = str(path)
    if not text.strip():
        raise InvalidPathError("Subscription path cannot be empty")
    normalized = str(PurePosixPath(text))
    # POSIX keeps a leading "//" distinct; configuration paths do not
    if normalized.startswith("//"):
        normalized = "/" + normalized.lstrip("/")
    return normalized
