"""RTSP control engine: request sequencing, authentication and the session state machine.

All per-session data lives in a ControlSession that is passed to every engine
call. The engine itself only holds its collaborators (transport, credentials)
and is not safe for concurrent use on the same session.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, List, Optional, Tuple

from .auth import AuthChallenge, authorization_for, parse_www_authenticate
from .exceptions import RTSPAuthError, RTSPFramingError, RTSPStateError
from .message import RTSP_UNAUTHORIZED, RTSPRequest, RTSPResponse, parse_response
from .sdp import SessionDescription
from .utils import DEFAULT_PORT, enable_debug, parse_rtsp_url

log = logging.getLogger("rtspcore.protocol")

MAX_RESPONSE_LOG = 2000

class SessionState(enum.Enum):
    IDLE = "idle"
    CONNECTED = "connected"
    DESCRIBED = "described"
    MEDIA_SETUP = "media-setup"
    PLAYING = "playing"
    PAUSED = "paused"
    TORN_DOWN = "torn-down"

S = SessionState

CONNECTED_STATES: FrozenSet[SessionState] = frozenset(
    {S.CONNECTED, S.DESCRIBED, S.MEDIA_SETUP, S.PLAYING, S.PAUSED})

@dataclass
class ControlSession:
    """Negotiation state of one RTSP session."""
    host: str
    port: int = DEFAULT_PORT
    stream: str = ""
    cseq: int = 1
    session_id: Optional[str] = None
    state: SessionState = S.IDLE
    description: Optional[SessionDescription] = None
    challenge: Optional[AuthChallenge] = None
    setup_tracks: List[str] = field(default_factory=list)

    @classmethod
    def from_url(cls, url: str) -> "ControlSession":
        host, _, _, port, path = parse_rtsp_url(url)
        return cls(host, port, path)

    @property
    def base_uri(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"rtsp://{host}:{self.port}"

    @property
    def uri(self) -> str:
        return self.base_uri + self.stream

    def next_cseq(self) -> int:
        value = self.cseq
        self.cseq += 1
        return value

@dataclass
class _Command:
    method: str
    uri: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: str = ""
    on_response: Optional[Callable[[ControlSession, RTSPResponse], None]] = None

def _require(session: ControlSession, method: str, allowed: FrozenSet[SessionState]) -> None:
    if session.state not in allowed:
        raise RTSPStateError(f"{method} not allowed in state {session.state.value}")

def _parameters_body(body: str, content_type: str) -> Dict[str, str]:
    return {'Content-Type': content_type, 'Content-Length': str(len(body.encode("utf-8")))}

class RTSPEngine:
    """Builds, sends and interprets RTSP commands for a ControlSession."""

    def __init__(self,
                 transport,
                 credentials: Optional[Tuple[str, str]] = None,
                 user_agent: str = 'rtspcore/1.0',
                 mode: str = 'strict',
                 debug: bool = False):
        self.transport = transport
        self.credentials = credentials
        self.user_agent = user_agent
        self.mode = mode
        if debug:
            enable_debug()

    # connection management
    def connect(self, session: ControlSession) -> None:
        _require(session, 'CONNECT', frozenset({S.IDLE, S.TORN_DOWN}))
        if session.state is S.TORN_DOWN:
            self.close(session)
        self.transport.connect(session.host, session.port)
        session.state = S.CONNECTED
        log.info('Connected to %s:%d', session.host, session.port)

    async def aconnect(self, session: ControlSession) -> None:
        _require(session, 'CONNECT', frozenset({S.IDLE, S.TORN_DOWN}))
        if session.state is S.TORN_DOWN:
            await self.aclose(session)
        await self.transport.aconnect(session.host, session.port)
        session.state = S.CONNECTED
        log.info('Async connected to %s:%d', session.host, session.port)

    def close(self, session: ControlSession) -> None:
        try:
            self.transport.close()
        finally:
            session.state = S.IDLE

    async def aclose(self, session: ControlSession) -> None:
        try:
            await self.transport.aclose()
        finally:
            session.state = S.IDLE

    # request building
    def _build_request(self, session: ControlSession, cmd: _Command, cseq: int,
                       authorization: Optional[str] = None) -> RTSPRequest:
        headers = {'CSeq': str(cseq), 'User-Agent': self.user_agent}
        if session.session_id:
            headers['Session'] = session.session_id
        headers.update(cmd.headers)
        if authorization:
            headers['Authorization'] = authorization
        request = RTSPRequest(cmd.method, cmd.uri, headers, cmd.body)
        request.validate(self.mode)
        return request

    def _authorization(self, challenge: AuthChallenge, cmd: _Command) -> str:
        if not self.credentials:
            raise RTSPAuthError('server requires authentication but no credentials are configured')
        user, password = self.credentials
        return authorization_for(challenge, user, password, cmd.uri, cmd.method)

    def _first_request(self, session: ControlSession, cmd: _Command, cseq: int) -> RTSPRequest:
        authorization = None
        if session.challenge is not None and self.credentials:
            authorization = self._authorization(session.challenge, cmd)
        return self._build_request(session, cmd, cseq, authorization)

    def _retry_request(self, session: ControlSession, cmd: _Command, cseq: int,
                       resp: RTSPResponse) -> RTSPRequest:
        """Answer a 401 challenge: same command, same CSeq, plus Authorization."""
        try:
            value = resp.header('WWW-Authenticate')
            if value is None:
                raise RTSPAuthError(f'{cmd.method}: 401 without WWW-Authenticate (missing challenge)')
            challenge = parse_www_authenticate(value)
            request = self._build_request(session, cmd, cseq, self._authorization(challenge, cmd))
        except RTSPAuthError:
            self._complete(session, cmd, resp)
            raise
        session.challenge = challenge
        log.debug('retrying %s with %s credentials', cmd.method, challenge.scheme)
        return request

    def _rejected(self, session: ControlSession, cmd: _Command, resp: RTSPResponse) -> RTSPAuthError:
        session.challenge = None
        self._complete(session, cmd, resp)
        return RTSPAuthError(f'{cmd.method}: credentials rejected ({resp.status_code} {resp.reason})')

    def _complete(self, session: ControlSession, cmd: _Command, resp: RTSPResponse) -> None:
        if cmd.on_response:
            cmd.on_response(session, resp)

    def _log_exchange(self, request: RTSPRequest) -> None:
        log.debug('>>> REQUEST >>>\n%s', request.to_text())

    def _parse(self, data: bytes) -> RTSPResponse:
        text = data.decode('utf-8', errors='replace')
        log.debug('<<< RESPONSE <<<\n%s', text if len(text) < MAX_RESPONSE_LOG
                  else text[:MAX_RESPONSE_LOG] + '...(truncated)')
        return parse_response(text)

    # sync request
    def _exchange(self, request: RTSPRequest) -> RTSPResponse:
        self._log_exchange(request)
        self.transport.write(request.to_bytes())
        return self._parse(self.transport.read())

    def _run(self, session: ControlSession, cmd: _Command) -> RTSPResponse:
        cseq = session.next_cseq()
        resp = self._exchange(self._first_request(session, cmd, cseq))
        if resp.status_code == RTSP_UNAUTHORIZED:
            resp = self._exchange(self._retry_request(session, cmd, cseq, resp))
            if resp.status_code == RTSP_UNAUTHORIZED:
                raise self._rejected(session, cmd, resp)
        self._complete(session, cmd, resp)
        return resp

    # async request
    async def _aexchange(self, request: RTSPRequest) -> RTSPResponse:
        self._log_exchange(request)
        await self.transport.awrite(request.to_bytes())
        return self._parse(await self.transport.aread())

    async def _arun(self, session: ControlSession, cmd: _Command) -> RTSPResponse:
        cseq = session.next_cseq()
        resp = await self._aexchange(self._first_request(session, cmd, cseq))
        if resp.status_code == RTSP_UNAUTHORIZED:
            resp = await self._aexchange(self._retry_request(session, cmd, cseq, resp))
            if resp.status_code == RTSP_UNAUTHORIZED:
                raise self._rejected(session, cmd, resp)
        self._complete(session, cmd, resp)
        return resp

    # commands
    def _options(self, session: ControlSession) -> _Command:
        _require(session, 'OPTIONS', CONNECTED_STATES)
        return _Command('OPTIONS', session.uri)

    def _describe(self, session: ControlSession) -> _Command:
        _require(session, 'DESCRIBE', frozenset({S.CONNECTED, S.DESCRIBED}))

        def described(sess: ControlSession, resp: RTSPResponse) -> None:
            if resp.ok:
                sess.description = SessionDescription(resp.body)
                sess.state = S.DESCRIBED

        return _Command('DESCRIBE', session.uri, {'Accept': 'application/sdp'}, on_response=described)

    def _setup(self, session: ControlSession, track: str, client_port: int) -> _Command:
        _require(session, 'SETUP', frozenset({S.DESCRIBED, S.MEDIA_SETUP}))
        if track.lower().startswith('rtsp://'):
            uri = track
        else:
            uri = f"{session.uri.rstrip('/')}/{track.lstrip('/')}"
        transport = f"RTP/AVP;unicast;client_port={client_port}-{client_port + 1}"

        def set_up(sess: ControlSession, resp: RTSPResponse) -> None:
            if not resp.ok:
                return
            value = resp.header('Session')
            if value:
                sess.session_id = value.split(';')[0].strip()
            if not sess.session_id:
                raise RTSPFramingError('SETUP response carries no Session header')
            sess.setup_tracks.append(track)
            sess.state = S.MEDIA_SETUP

        return _Command('SETUP', uri, {'Transport': transport}, on_response=set_up)

    def _play(self, session: ControlSession) -> _Command:
        _require(session, 'PLAY', frozenset({S.MEDIA_SETUP, S.PLAYING, S.PAUSED}))
        if not session.session_id:
            raise RTSPStateError('PLAY requires a session identifier from SETUP')

        def playing(sess: ControlSession, resp: RTSPResponse) -> None:
            if resp.ok:
                sess.state = S.PLAYING

        return _Command('PLAY', session.uri, on_response=playing)

    def _pause(self, session: ControlSession) -> _Command:
        _require(session, 'PAUSE', frozenset({S.PLAYING}))

        def paused(sess: ControlSession, resp: RTSPResponse) -> None:
            if resp.ok:
                sess.state = S.PAUSED

        return _Command('PAUSE', session.uri, on_response=paused)

    def _teardown(self, session: ControlSession) -> _Command:
        _require(session, 'TEARDOWN', CONNECTED_STATES)

        def torn_down(sess: ControlSession, resp: RTSPResponse) -> None:
            if not resp.ok:
                log.warning('TEARDOWN answered %d %s', resp.status_code, resp.reason)
            sess.session_id = None
            sess.setup_tracks = []
            sess.state = S.TORN_DOWN

        return _Command('TEARDOWN', session.uri, on_response=torn_down)

    _AUX_STATES = frozenset({S.MEDIA_SETUP, S.PLAYING})

    def _set_parameter(self, session: ControlSession, name: str, value: str) -> _Command:
        _require(session, 'SET_PARAMETER', self._AUX_STATES)
        body = f"{name}: {value}\r\n"
        return _Command('SET_PARAMETER', session.uri, _parameters_body(body, 'text/parameters'), body)

    def _get_parameter(self, session: ControlSession, name: str) -> _Command:
        _require(session, 'GET_PARAMETER', self._AUX_STATES)
        body = f"{name}\r\n"
        return _Command('GET_PARAMETER', session.uri, _parameters_body(body, 'text/parameters'), body)

    def _announce(self, session: ControlSession, sdp: str) -> _Command:
        _require(session, 'ANNOUNCE', self._AUX_STATES)
        return _Command('ANNOUNCE', session.uri, _parameters_body(sdp, 'application/sdp'), sdp)

    def _record(self, session: ControlSession) -> _Command:
        _require(session, 'RECORD', self._AUX_STATES)
        return _Command('RECORD', session.uri)

    def _redirect(self, session: ControlSession, location: str, clock_range: Optional[str] = None) -> _Command:
        _require(session, 'REDIRECT', self._AUX_STATES)
        headers = {'Location': location}
        if clock_range is not None:
            headers['Range'] = f"clock={clock_range}"
        return _Command('REDIRECT', session.uri, headers)

    # Convenience sync and async methods
    def options(self, session: ControlSession) -> RTSPResponse:
        return self._run(session, self._options(session))

    def describe(self, session: ControlSession) -> RTSPResponse:
        return self._run(session, self._describe(session))

    def setup(self, session: ControlSession, track: str, client_port: int) -> RTSPResponse:
        return self._run(session, self._setup(session, track, client_port))

    def play(self, session: ControlSession) -> RTSPResponse:
        return self._run(session, self._play(session))

    def pause(self, session: ControlSession) -> RTSPResponse:
        return self._run(session, self._pause(session))

    def teardown(self, session: ControlSession) -> RTSPResponse:
        return self._run(session, self._teardown(session))

    def set_parameter(self, session: ControlSession, name: str, value: str) -> RTSPResponse:
        return self._run(session, self._set_parameter(session, name, value))

    def get_parameter(self, session: ControlSession, name: str) -> RTSPResponse:
        return self._run(session, self._get_parameter(session, name))

    def announce(self, session: ControlSession, sdp: str) -> RTSPResponse:
        return self._run(session, self._announce(session, sdp))

    def record(self, session: ControlSession) -> RTSPResponse:
        return self._run(session, self._record(session))

    def redirect(self, session: ControlSession, location: str, clock_range: Optional[str] = None) -> RTSPResponse:
        return self._run(session, self._redirect(session, location, clock_range))

    async def aoptions(self, session: ControlSession) -> RTSPResponse:
        return await self._arun(session, self._options(session))

    async def adescribe(self, session: ControlSession) -> RTSPResponse:
        return await self._arun(session, self._describe(session))

    async def asetup(self, session: ControlSession, track: str, client_port: int) -> RTSPResponse:
        return await self._arun(session, self._setup(session, track, client_port))

    async def aplay(self, session: ControlSession) -> RTSPResponse:
        return await self._arun(session, self._play(session))

    async def apause(self, session: ControlSession) -> RTSPResponse:
        return await self._arun(session, self._pause(session))

    async def ateardown(self, session: ControlSession) -> RTSPResponse:
        return await self._arun(session, self._teardown(session))

    async def aset_parameter(self, session: ControlSession, name: str, value: str) -> RTSPResponse:
        return await self._arun(session, self._set_parameter(session, name, value))

    async def aget_parameter(self, session: ControlSession, name: str) -> RTSPResponse:
        return await self._arun(session, self._get_parameter(session, name))

    async def aannounce(self, session: ControlSession, sdp: str) -> RTSPResponse:
        return await self._arun(session, self._announce(session, sdp))

    async def arecord(self, session: ControlSession) -> RTSPResponse:
        return await self._arun(session, self._record(session))

    async def aredirect(self, session: ControlSession, location: str, clock_range: Optional[str] = None) -> RTSPResponse:
        return await self._arun(session, self._redirect(session, location, clock_range))
