"""Utilities: logging, URL parsing, validation helpers.

parse_rtsp_url returns a 5-tuple:
    (host, username_or_None, password_or_None, port, path)
"""

from __future__ import annotations

import logging
import re
from typing import Dict, Optional, Tuple
from urllib.parse import unquote, urlparse

from .exceptions import RTSPValidationError

logger = logging.getLogger("rtspcore")
logger.addHandler(logging.NullHandler())

DEFAULT_PORT = 554

_TOKEN_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
_PORT_PAIR_RE = r"=(\d+)(?:-(\d+))?"

def enable_debug() -> None:
    """Switch the package loggers (and their children) to DEBUG."""
    logger.setLevel(logging.DEBUG)

def validate_token(name: str, value: str, mode: str = "strict") -> None:
    """Validate small token-like strings (header names or methods)."""
    if not isinstance(value, str):
        raise RTSPValidationError(f"{name} must be str")
    if not _TOKEN_RE.match(value):
        if mode == "strict":
            raise RTSPValidationError(f"Invalid {name}: {value!r}")
        else:
            logger.warning("lenient: invalid %s %r - continuing", name, value)

def parse_rtsp_url(url: str) -> Tuple[str, Optional[str], Optional[str], int, str]:
    """Parse an ``rtsp://[user:pass@]host[:port]/path`` URL.

    The scheme is matched case-insensitively. A missing port means 554.

    Returns:
        (host, username, password, port, path)
    Raises:
        RTSPValidationError on a non-rtsp scheme or a missing host.
    """
    if not isinstance(url, str):
        raise RTSPValidationError("url must be a string")
    parsed = urlparse(url)
    scheme = (parsed.scheme or "").lower()
    if scheme != "rtsp":
        raise RTSPValidationError(f"Protocol must be rtsp, got {parsed.scheme!r}")

    # parsed.hostname strips the port and IPv6 brackets
    host = parsed.hostname
    if not host:
        raise RTSPValidationError(f"Missing host in URL {url!r}")

    try:
        port = parsed.port or DEFAULT_PORT
    except ValueError as exc:
        raise RTSPValidationError(f"Invalid port in URL {url!r}") from exc

    username = unquote(parsed.username) if parsed.username else None
    password = unquote(parsed.password) if parsed.password else None
    path = parsed.path or ""

    return host, username, password, int(port), path

def parse_transport_header(value: Optional[str]) -> Dict[str, object]:
    """Pick the interesting parameters out of a SETUP reply Transport header.

    Returns a dict that may hold ``client_port`` and ``server_port`` as
    ``(rtp, rtcp)`` tuples and ``source`` as a string.
    """
    result: Dict[str, object] = {}
    if not value:
        return result
    for key in ("client_port", "server_port"):
        m = re.search(key + _PORT_PAIR_RE, value)
        if m:
            first = int(m.group(1))
            second = int(m.group(2)) if m.group(2) else first + 1
            result[key] = (first, second)
    m = re.search(r"source=([^;\s]+)", value)
    if m:
        result["source"] = m.group(1)
    return result
