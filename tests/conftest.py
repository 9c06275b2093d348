"""Pytest fixtures for confd client tests.

Provides a MockDaemon: an asyncio Unix socket server that speaks the confd
framing protocol, records subscription requests, and lets tests push
notifications or close individual connections.
"""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
from typing import Any, Optional

import pytest

from confd_client import framing
from confd_client.config import get_settings
from confd_client.errors import ConfdError

CONFD_ENV_VARS = [
    "CONFD_CLIENT_NAME",
    "CONFD_SOCKET_PATH",
    "CONFD_LOG_LEVEL",
    "CONFD_LOG_FORMAT",
]


class DaemonConnection:
    """Daemon side of one subscription connection."""

    def __init__(
        self,
        request: dict[str, Any],
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        self.request = request
        self.path = request["path"]
        self.reader = reader
        self.writer = writer

    async def push(self, value: Any) -> None:
        """Send a JSON notification."""
        await framing.send(self.writer, json.dumps(value))

    async def push_raw(self, data: bytes) -> None:
        """Send raw bytes, bypassing the codec."""
        self.writer.write(data)
        await self.writer.drain()

    async def close(self) -> None:
        if not self.writer.is_closing():
            self.writer.close()
        try:
            await self.writer.wait_closed()
        except OSError:
            pass

    async def wait_client_closed(self, timeout: float = 2.0) -> bool:
        """Return True once the client side closed the connection.

        Closing a Unix socket with unread data resets the peer instead of
        sending EOF, so a reset counts as closed too.
        """
        try:
            data = await asyncio.wait_for(self.reader.read(), timeout=timeout)
        except ConnectionResetError:
            return True
        return data == b""


class MockDaemon:
    """In-process confd daemon for tests."""

    def __init__(self, socket_path: str) -> None:
        self.socket_path = socket_path
        self.requests: list[dict[str, Any]] = []
        self.connections: list[DaemonConnection] = []
        self._server: Optional[asyncio.AbstractServer] = None

    async def start(self) -> None:
        self._server = await asyncio.start_unix_server(self._handle, path=self.socket_path)

    async def stop(self) -> None:
        for connection in self.connections:
            await connection.close()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            request = await framing.read(reader)
        except ConfdError:
            writer.close()
            return
        self.requests.append(request)
        self.connections.append(DaemonConnection(request, reader, writer))

    def connections_for(self, path: str) -> list[DaemonConnection]:
        return [c for c in self.connections if c.path == path]

    async def wait_for(self, path: str, count: int = 1, timeout: float = 2.0) -> DaemonConnection:
        """Wait until count connections subscribed to path; return the latest."""

        async def _poll() -> DaemonConnection:
            while len(self.connections_for(path)) < count:
                await asyncio.sleep(0.01)
            return self.connections_for(path)[-1]

        return await asyncio.wait_for(_poll(), timeout=timeout)


@pytest.fixture
def socket_path():
    """Short temp socket path (Unix socket paths are limited to ~108 bytes)."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield os.path.join(tmpdir, "confd.sock")


@pytest.fixture
async def daemon(socket_path):
    """Running mock confd daemon."""
    daemon = MockDaemon(socket_path)
    await daemon.start()
    yield daemon
    await daemon.stop()


@pytest.fixture
def clean_env():
    """Provide a clean environment without CONFD_* variables."""
    original_values = {var: os.environ.get(var) for var in CONFD_ENV_VARS}

    for var in CONFD_ENV_VARS:
        if var in os.environ:
            del os.environ[var]

    yield

    for var, value in original_values.items():
        if value is not None:
            os.environ[var] = value
        elif var in os.environ:
            del os.environ[var]


@pytest.fixture
def clear_settings_cache():
    """Clear the settings cache before and after each test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class Recorder:
    """Async handler that records every configuration it receives."""

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self.received = asyncio.Event()

    async def __call__(self, config: dict[str, Any]) -> None:
        self.calls.append(config)
        self.received.set()


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def make_recorder():
    """Factory for independent recorders in one test."""
    return Recorder
