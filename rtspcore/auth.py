"""Authentication helpers for Basic and legacy Digest (RFC 2069, MD5)."""

from __future__ import annotations

import base64
import hashlib
import re
from dataclasses import dataclass, field
from typing import Dict, Optional

from .exceptions import RTSPAuthError

BASIC = "Basic"
DIGEST = "Digest"

_PARAM_RE = re.compile(r'([a-zA-Z0-9_\-]+)=("(?:[^"\\]|\\.)*"|[^,\s]+)')

def md5_hex(text: str) -> str:
    return hashlib.md5(text.encode("utf-8")).hexdigest()

@dataclass(frozen=True)
class AuthChallenge:
    """A parsed WWW-Authenticate challenge."""
    scheme: str
    realm: Optional[str] = None
    nonce: Optional[str] = None
    params: Dict[str, str] = field(default_factory=dict)

def parse_www_authenticate(header_value: str) -> AuthChallenge:
    """Parse a WWW-Authenticate header into an AuthChallenge.

    Only the Basic and Digest schemes are recognized (case-insensitive);
    anything else raises RTSPAuthError.
    """
    parts = header_value.strip().split(None, 1)
    if not parts:
        raise RTSPAuthError("missing challenge")
    scheme = parts[0]
    if scheme.lower() == BASIC.lower():
        scheme = BASIC
    elif scheme.lower() == DIGEST.lower():
        scheme = DIGEST
    else:
        raise RTSPAuthError(f"unsupported authentication scheme: {scheme}")
    params = {}
    if len(parts) > 1:
        for m in _PARAM_RE.finditer(parts[1]):
            k = m.group(1).lower()
            v = m.group(2)
            if v.startswith('"') and v.endswith('"'):
                v = v[1:-1]
            params[k] = v
    return AuthChallenge(scheme, params.get('realm'), params.get('nonce'), params)

def basic_auth_header(user: str, password: str) -> str:
    token = base64.b64encode(f"{user}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"

def digest_auth_header(challenge: AuthChallenge, user: str, password: str, uri: str, method: str) -> str:
    """Compute a Digest Authorization header without qop/cnonce.

    Challenges that demand qop, a non-MD5 algorithm or carry no nonce are
    rejected with RTSPAuthError.
    """
    algorithm = challenge.params.get('algorithm', 'MD5').upper()
    if algorithm != 'MD5':
        raise RTSPAuthError(f"unsupported digest parameters: algorithm={algorithm}")
    if 'qop' in challenge.params:
        raise RTSPAuthError(f"unsupported digest parameters: qop={challenge.params['qop']}")
    if challenge.nonce is None:
        raise RTSPAuthError("unsupported digest parameters: no nonce")
    realm = challenge.realm or ''
    nonce = challenge.nonce

    ha1 = md5_hex(f"{user}:{realm}:{password}")
    ha2 = md5_hex(f"{method}:{uri}")
    response = md5_hex(f"{ha1}:{nonce}:{ha2}")
    return (f'Digest username="{user}", realm="{realm}", nonce="{nonce}", uri="{uri}", '
            f'response="{response}"')

def authorization_for(challenge: AuthChallenge, user: str, password: str, uri: str, method: str) -> str:
    if challenge.scheme == BASIC:
        return basic_auth_header(user, password)
    return digest_auth_header(challenge, user, password, uri, method)
