"""Transport implementations: TCP control channel (sync + async) and UDP media endpoint."""

from __future__ import annotations

import asyncio
import socket
from typing import Optional

from .exceptions import RTSPTransportError
from .utils import logger

MAX_READ = 65536

class TransportBase:
    def close(self) -> None:
        raise NotImplementedError

    async def aclose(self) -> None:
        self.close()

# TCPTransport - blocking + asyncio stream variants
class TCPTransport(TransportBase):
    """Reliable control channel. One ``read`` is expected to yield one whole reply."""

    def __init__(self, timeout: float = 10.0):
        self.timeout = float(timeout)
        self.host: Optional[str] = None
        self.port: Optional[int] = None
        self._sock: Optional[socket.socket] = None
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None

    @property
    def connected(self) -> bool:
        return self._sock is not None or self._writer is not None

    def connect(self, host: str, port: int) -> None:
        # drop any previous control connection
        self.close()
        try:
            s = socket.create_connection((host, int(port)), timeout=self.timeout)
            s.settimeout(self.timeout)
            s.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
            self._sock = s
            self.host, self.port = host, int(port)
            logger.debug("TCPTransport connected to %s:%d", host, int(port))
        except OSError as exc:
            raise RTSPTransportError(f"connect to {host}:{port} failed: {exc}") from exc

    def write(self, data: bytes) -> None:
        if not self._sock:
            raise RTSPTransportError("Not connected")
        try:
            self._sock.sendall(data)
        except OSError as exc:
            raise RTSPTransportError(f"write failed: {exc}") from exc

    def read(self, size: int = MAX_READ) -> bytes:
        if not self._sock:
            raise RTSPTransportError("Not connected")
        try:
            data = self._sock.recv(size)
        except OSError as exc:
            raise RTSPTransportError(f"read failed: {exc}") from exc
        if not data:
            raise RTSPTransportError("Connection closed by peer")
        return data

    def close(self) -> None:
        try:
            if self._sock:
                self._sock.close()
        finally:
            self._sock = None

    async def aconnect(self, host: str, port: int) -> None:
        await self.aclose()
        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(host, int(port)), self.timeout)
            self.host, self.port = host, int(port)
            logger.debug("TCPTransport async connected to %s:%d", host, int(port))
        except (OSError, asyncio.TimeoutError) as exc:
            raise RTSPTransportError(f"connect to {host}:{port} failed: {exc}") from exc

    async def awrite(self, data: bytes) -> None:
        if not self._writer:
            raise RTSPTransportError("Not async-connected")
        try:
            self._writer.write(data)
            await self._writer.drain()
        except OSError as exc:
            raise RTSPTransportError(f"write failed: {exc}") from exc

    async def aread(self, size: int = MAX_READ) -> bytes:
        if not self._reader:
            raise RTSPTransportError("Not async-connected")
        try:
            data = await asyncio.wait_for(self._reader.read(size), self.timeout)
        except (OSError, asyncio.TimeoutError) as exc:
            raise RTSPTransportError(f"read failed: {exc}") from exc
        if not data:
            raise RTSPTransportError("Connection closed by peer")
        return data

    async def aclose(self) -> None:
        try:
            if self._writer:
                self._writer.close()
                await self._writer.wait_closed()
        except OSError as exc:
            logger.debug("error while closing async transport: %s", exc)
        finally:
            self._reader = None
            self._writer = None

# UDPTransport - one bound endpoint per media track
class UDPTransport(TransportBase):
    """Unreliable media endpoint.

    ``receive`` blocks until a datagram arrives. With a ``timeout`` it returns
    None when the timeout expires instead.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout
        self.host: Optional[str] = None
        self.port: Optional[int] = None
        self._sock: Optional[socket.socket] = None

    def bind(self, host: Optional[str], port: int) -> None:
        try:
            s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            s.bind((host or "", int(port)))
            s.settimeout(self.timeout)
        except OSError as exc:
            raise RTSPTransportError(f"bind to {host}:{port} failed: {exc}") from exc
        self._sock = s
        self.host = host
        self.port = s.getsockname()[1]
        logger.debug("UDPTransport bound port %d", self.port)

    def receive(self, size: int = MAX_READ) -> Optional[bytes]:
        sock = self._sock
        if sock is None:
            raise RTSPTransportError("Not bound")
        try:
            data, _ = sock.recvfrom(size)
        except socket.timeout:
            return None
        except OSError as exc:
            raise RTSPTransportError(f"receive failed: {exc}") from exc
        return data

    def close(self) -> None:
        sock, self._sock = self._sock, None
        if sock is None:
            return
        try:
            # wakes up a thread blocked in recvfrom
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        sock.close()
