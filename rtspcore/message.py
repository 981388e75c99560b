"""RTSP request serialization and response parsing."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Optional

from .exceptions import RTSPFramingError, RTSPValidationError
from .utils import logger, validate_token

RTSP_VERSION = "RTSP/1.0"

RTSP_UNAUTHORIZED = 401

METHODS = (
    "OPTIONS", "DESCRIBE", "SETUP", "PLAY", "PAUSE", "TEARDOWN",
    "SET_PARAMETER", "GET_PARAMETER", "ANNOUNCE", "RECORD", "REDIRECT",
)

_STATUS_RE = re.compile(r"^RTSP/1\.0\s+([0-9]{3})(?:\s+(.*))?$")
_HEADER_RE = re.compile(r"^([^:\s][^:]*):\s*(.*)$")
_BLANK_LINE_RE = re.compile(r"\r?\n\r?\n")

@dataclass(frozen=True)
class RTSPRequest:
    method: str
    uri: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: str = ""

    def validate(self, mode: str = "strict") -> None:
        validate_token("method", self.method, mode)
        if self.method not in METHODS:
            if mode == "strict":
                raise RTSPValidationError(f"Unknown RTSP method: {self.method!r}")
            logger.warning("lenient: unknown method %r - continuing", self.method)
        for k in self.headers:
            validate_token("header-name", k, mode)

    def to_text(self) -> str:
        req_line = f"{self.method} {self.uri} {RTSP_VERSION}\r\n"
        hdrs = "".join(f"{k}: {v}\r\n" for k, v in self.headers.items())
        return req_line + hdrs + "\r\n" + (self.body or "")

    def to_bytes(self) -> bytes:
        return self.to_text().encode("utf-8")

@dataclass
class RTSPResponse:
    status_code: int
    reason: str
    headers: Dict[str, str]
    body: str
    raw: Optional[str] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Case-insensitive header lookup."""
        if name in self.headers:
            return self.headers[name]
        lname = name.lower()
        for k, v in self.headers.items():
            if k.lower() == lname:
                return v
        return default

def parse_response(raw: str) -> RTSPResponse:
    """Parse one complete RTSP reply.

    The whole reply is expected in ``raw``; Content-Length is not used to
    read further. Raises RTSPFramingError on malformed status or header lines.
    """
    if not raw:
        raise RTSPFramingError("Empty response")
    parts = _BLANK_LINE_RE.split(raw, 1)
    header_part = parts[0]
    body = parts[1] if len(parts) > 1 else ""
    lines = header_part.splitlines()
    if not lines:
        raise RTSPFramingError("Missing status line")

    status_line = lines[0]
    m = _STATUS_RE.match(status_line)
    if not m:
        raise RTSPFramingError(f"Invalid status line: {status_line!r}")
    status_code = int(m.group(1))
    reason = (m.group(2) or "").strip()

    headers: Dict[str, str] = {}
    for line in lines[1:]:
        hm = _HEADER_RE.match(line)
        if not hm:
            raise RTSPFramingError(f"Malformed header line: {line!r}")
        headers[hm.group(1).strip()] = hm.group(2).strip()

    return RTSPResponse(status_code, reason, headers, body, raw)
