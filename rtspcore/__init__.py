"""rtspcore - RTSP/RTP client core

Public API:
  - RTSPSession: plays an RTSP URL and feeds RTP packets to sinks
  - RTSPEngine / ControlSession / SessionState: the RTSP control engine
  - RTPPacket: RTP packet decoder
  - SessionDescription: media/control lookup in DESCRIBE bodies
  - parse_rtsp_url: utility parser
"""

from .session import RTSPSession
from .protocol import ControlSession, RTSPEngine, SessionState
from .message import RTSPRequest, RTSPResponse, parse_response
from .rtp import RTPPacket, build_rtp_packet
from .sdp import SessionDescription
from .auth import AuthChallenge, basic_auth_header, digest_auth_header, parse_www_authenticate
from .receiver import CallbackSink, PacketSink, RTPReceiver
from .transport import TCPTransport, UDPTransport
from .utils import parse_rtsp_url
from .exceptions import *

__all__ = [
    "RTSPSession", "RTSPEngine", "ControlSession", "SessionState",
    "RTSPRequest", "RTSPResponse", "parse_response",
    "RTPPacket", "build_rtp_packet", "SessionDescription",
    "AuthChallenge", "basic_auth_header", "digest_auth_header", "parse_www_authenticate",
    "CallbackSink", "PacketSink", "RTPReceiver",
    "TCPTransport", "UDPTransport",
    "parse_rtsp_url",
    # exceptions
    "RTSPError", "RTSPValidationError", "RTSPFramingError", "RTSPAuthError",
    "RTSPStateError", "RTSPTransportError", "RTPDecodeError",
]
