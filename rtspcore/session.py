"""High-level RTSPSession: drives the engine and the per-track RTP receivers.

Typical use::

    with RTSPSession("rtsp://cam.local/stream", username="admin", password="admin",
                     video_sink=CallbackSink(handle)) as sess:
        if sess.start():
            time.sleep(5)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, Optional

from .exceptions import RTSPValidationError
from .protocol import CONNECTED_STATES, ControlSession, RTSPEngine
from .receiver import PacketSink, RTPReceiver
from .transport import TCPTransport
from .utils import enable_debug, parse_rtsp_url, parse_transport_header

log = logging.getLogger("rtspcore.session")

ReceiverFactory = Callable[[str, int, PacketSink], RTPReceiver]

class _NullSink(PacketSink):
    def on_packet(self, packet) -> None:
        pass

class RTSPSession:
    """Plays an RTSP URL: OPTIONS, DESCRIBE, SETUP per track, PLAY."""

    def __init__(self,
                 url: str,
                 username: Optional[str] = None,
                 password: Optional[str] = None,
                 video_port: int = 9000,
                 audio_port: int = 9002,
                 video_sink: Optional[PacketSink] = None,
                 audio_sink: Optional[PacketSink] = None,
                 bind_host: str = '0.0.0.0',
                 timeout: float = 10.0,
                 mode: str = 'strict',
                 user_agent: str = 'rtspcore/1.0',
                 byteorder: str = 'big',
                 debug: bool = False,
                 transport=None,
                 receiver_factory: Optional[ReceiverFactory] = None):
        if not isinstance(url, str):
            raise RTSPValidationError("url must be a string")
        if byteorder not in ('big', 'little'):
            raise RTSPValidationError(f"byteorder must be 'big' or 'little', got {byteorder!r}")
        self.url = url
        host, user_in_url, pwd_in_url, port, path = parse_rtsp_url(url)
        self.session = ControlSession(host, port, path)

        username = username if username is not None else user_in_url
        password = password if password is not None else pwd_in_url
        credentials = (username, password or '') if username is not None else None

        if debug:
            enable_debug()
        self.engine = RTSPEngine(transport if transport is not None else TCPTransport(timeout),
                                 credentials=credentials, user_agent=user_agent, mode=mode)
        self.ports = {'video': int(video_port), 'audio': int(audio_port)}
        self.sinks: Dict[str, PacketSink] = {
            'video': video_sink or _NullSink(),
            'audio': audio_sink or _NullSink(),
        }
        self.bind_host = bind_host
        self.byteorder = byteorder
        self.receiver_factory = receiver_factory or self._default_receiver
        self.receivers: Dict[str, RTPReceiver] = {}
        self.server_transport: Dict[str, Dict[str, object]] = {}

    def _default_receiver(self, kind: str, port: int, sink: PacketSink) -> RTPReceiver:
        return RTPReceiver(port, sink, host=self.bind_host, name=f"rtp-{kind}", byteorder=self.byteorder)

    def _tracks(self) -> Dict[str, str]:
        if self.session.description is None:
            return {}
        return self.session.description.tracks()

    def _start_receiver(self, kind: str, resp) -> None:
        self.server_transport[kind] = parse_transport_header(resp.header('Transport'))
        receiver = self.receiver_factory(kind, self.ports[kind], self.sinks[kind])
        receiver.start()
        self.receivers[kind] = receiver

    def start(self) -> bool:
        """Negotiate the stream and start receiving. True when PLAY succeeded."""
        self.engine.connect(self.session)
        self.engine.options(self.session)
        resp = self.engine.describe(self.session)
        if not resp.ok:
            log.warning('DESCRIBE failed: %d %s', resp.status_code, resp.reason)
            return False
        for kind, control in self._tracks().items():
            resp = self.engine.setup(self.session, control, self.ports[kind])
            if resp.ok:
                self._start_receiver(kind, resp)
            else:
                log.warning('SETUP %s failed: %d %s', kind, resp.status_code, resp.reason)
        if not self.receivers:
            log.warning('no track could be set up for %s', self.url)
            return False
        return self.engine.play(self.session).ok

    async def astart(self) -> bool:
        await self.engine.aconnect(self.session)
        await self.engine.aoptions(self.session)
        resp = await self.engine.adescribe(self.session)
        if not resp.ok:
            log.warning('DESCRIBE failed: %d %s', resp.status_code, resp.reason)
            return False
        for kind, control in self._tracks().items():
            resp = await self.engine.asetup(self.session, control, self.ports[kind])
            if resp.ok:
                self._start_receiver(kind, resp)
            else:
                log.warning('SETUP %s failed: %d %s', kind, resp.status_code, resp.reason)
        if not self.receivers:
            log.warning('no track could be set up for %s', self.url)
            return False
        return (await self.engine.aplay(self.session)).ok

    def _stop_receivers(self) -> None:
        for receiver in self.receivers.values():
            receiver.stop()
        for receiver in self.receivers.values():
            receiver.join(timeout=1.0)
        self.receivers = {}

    def stop(self) -> None:
        self._stop_receivers()
        try:
            if self.session.state in CONNECTED_STATES:
                self.engine.teardown(self.session)
        finally:
            self.engine.close(self.session)

    async def astop(self) -> None:
        loop = asyncio.get_running_loop()
        for receiver in self.receivers.values():
            receiver.stop()
        for receiver in self.receivers.values():
            await loop.run_in_executor(None, receiver.join, 1.0)
        self.receivers = {}
        try:
            if self.session.state in CONNECTED_STATES:
                await self.engine.ateardown(self.session)
        finally:
            await self.engine.aclose(self.session)

    def __enter__(self) -> "RTSPSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    async def __aenter__(self) -> "RTSPSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.astop()
