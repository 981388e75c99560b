"""RTSP/RTP-specific exception hierarchy.

Every error carries a short ``kind`` tag and a human readable ``detail``.
"""

class RTSPError(Exception):
    """Base RTSP exception."""
    kind = "error"

    @property
    def detail(self) -> str:
        return str(self)

class RTSPValidationError(RTSPError):
    """Raised when input validation fails."""
    kind = "validation"

class RTSPFramingError(RTSPError):
    """Raised when a status line or header line is malformed."""
    kind = "framing"

class RTSPAuthError(RTSPError):
    """Authentication-related errors."""
    kind = "auth"

class RTSPStateError(RTSPError):
    """Command issued in a session state that does not allow it."""
    kind = "state"

class RTSPTransportError(RTSPError):
    """Transport-level errors (socket/connect/send/receive)."""
    kind = "transport"

class RTPDecodeError(RTSPError):
    """Malformed RTP packet."""
    kind = "decode"
