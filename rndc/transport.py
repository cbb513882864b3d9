"""Byte-stream transport used by the session.

The session only needs an ordered stream: connect, write, read exactly n
bytes, shut down. Anything that goes wrong underneath is reported as
NetworkError so the session never sees socket-level exceptions.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

from .errors import NetworkError

log = logging.getLogger(__name__)


class Transport(ABC):
    """Minimal contract for a stream transport."""

    @abstractmethod
    async def connect(self, host: str, port: int) -> None:
        """Open the stream to host:port."""

    @abstractmethod
    async def write(self, data: bytes) -> None:
        """Write all of data."""

    @abstractmethod
    async def read_exact(self, n: int) -> bytes:
        """Read exactly n bytes."""

    @abstractmethod
    async def shutdown(self) -> None:
        """Close both directions of the stream. Safe to call twice."""


class StreamTransport(Transport):
    """
    TCP transport on asyncio streams.

    timeout bounds connect and each read; None waits forever.
    """

    def __init__(self, timeout: Optional[float] = None) -> None:
        self.timeout = timeout
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None

    async def connect(self, host: str, port: int) -> None:
        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(host, port), self.timeout
            )
        except (OSError, asyncio.TimeoutError) as exc:
            raise NetworkError(f"Failed to connect to {host}:{port}: {exc!r}") from exc
        log.debug("connected to %s:%s", host, port)

    async def write(self, data: bytes) -> None:
        if self._writer is None:
            raise NetworkError("Write on a closed stream")
        try:
            self._writer.write(data)
            await self._writer.drain()
        except OSError as exc:
            raise NetworkError(f"Failed to write to stream: {exc!r}") from exc

    async def read_exact(self, n: int) -> bytes:
        if self._reader is None:
            raise NetworkError("Read on a closed stream")
        try:
            return await asyncio.wait_for(self._reader.readexactly(n), self.timeout)
        except asyncio.IncompleteReadError as exc:
            raise NetworkError(
                f"Connection closed after {len(exc.partial)} of {n} bytes"
            ) from exc
        except (OSError, asyncio.TimeoutError) as exc:
            raise NetworkError(f"Failed to read {n} bytes: {exc!r}") from exc

    async def shutdown(self) -> None:
        writer, self._writer, self._reader = self._writer, None, None
        if writer is None:
            return
        try:
            writer.close()
            await writer.wait_closed()
        except OSError as exc:
            raise NetworkError(f"Failed to shut down stream: {exc!r}") from exc
        log.debug("stream closed")
