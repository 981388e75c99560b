"""Per-track RTP receive loop.

Each RTPReceiver owns one UDP endpoint and one thread. Cancellation is
cooperative: ``stop()`` sets a flag that the loop checks once per datagram.
A thread blocked in ``receive`` only sees the flag after the next datagram,
so ``stop(close=True)`` (the default) also closes the endpoint to wake it up.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from .exceptions import RTPDecodeError, RTSPTransportError
from .rtp import RTPPacket
from .transport import UDPTransport

log = logging.getLogger("rtspcore.receiver")

class PacketSink:
    """Consumer of decoded packets."""

    def on_packet(self, packet: RTPPacket) -> None:
        raise NotImplementedError

class CallbackSink(PacketSink):
    def __init__(self, callback: Callable[[RTPPacket], None]):
        self.callback = callback

    def on_packet(self, packet: RTPPacket) -> None:
        self.callback(packet)

class RTPReceiver:
    def __init__(self,
                 port: int,
                 sink: PacketSink,
                 host: Optional[str] = "0.0.0.0",
                 transport: Optional[UDPTransport] = None,
                 name: Optional[str] = None,
                 byteorder: str = "big"):
        self.port = int(port)
        self.host = host
        self.sink = sink
        self.transport = transport if transport is not None else UDPTransport()
        self.name = name or f"rtp-{self.port}"
        self.byteorder = byteorder
        self.received = 0
        self.dropped = 0
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self.transport.bind(self.host, self.port)
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._recv_loop, name=self.name, daemon=True)
        self._thread.start()
        log.info("%s: receiving on port %d", self.name, self.port)

    def _handle(self, data: bytes) -> None:
        self.received += 1
        try:
            packet = RTPPacket.parse(data, byteorder=self.byteorder)
        except RTPDecodeError as exc:
            self.dropped += 1
            log.warning("%s: dropping malformed packet (%d bytes): %s", self.name, len(data), exc)
            return
        try:
            self.sink.on_packet(packet)
        except Exception:
            log.exception("%s: sink failed on packet seq=%d", self.name, packet.sequence)

    def _recv_loop(self) -> None:
        try:
            while not self._stop_event.is_set():
                try:
                    data = self.transport.receive()
                except RTSPTransportError as exc:
                    if not self._stop_event.is_set():
                        log.error("%s: receive failed: %s", self.name, exc)
                    break
                if data is None:
                    continue
                if self._stop_event.is_set():
                    break
                self._handle(data)
        finally:
            self.transport.close()
            log.debug("%s: stopped after %d packets (%d dropped)", self.name, self.received, self.dropped)

    def stop(self, close: bool = True) -> None:
        self._stop_event.set()
        if close:
            self.transport.close()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread:
            self._thread.join(timeout)
