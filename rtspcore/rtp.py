"""RTP packet parsing and building (RFC 3550 subset).

The fixed header has the following format::

     0                   1                   2                   3
     0 1 2 3 4 5 6 7 8 9 0 1 2 3 4 5 6 7 8 9 0 1 2 3 4 5 6 7 8 9 0 1
    +-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+
    |V=2|P|X|  CC   |M|     PT      |       sequence number         |
    +-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+
    |                           timestamp                           |
    +-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+
    |           synchronization source (SSRC) identifier            |
    +=+=+=+=+=+=+=+=+=+=+=+=+=+=+=+=+=+=+=+=+=+=+=+=+=+=+=+=+=+=+=+=+
    |            contributing source (CSRC) identifiers             |
    |                             ....                              |
    +-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+

Multi-byte fields are network byte order unless a peer is known to send
little-endian ones, in which case ``byteorder="little"`` can be passed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from .exceptions import RTPDecodeError

RTP_VERSION = 2
RTP_HEADER_SIZE = 12
MAX_CSRC = 15

def read_uint(buf: bytes, offset: int, size: int, byteorder: str = "big") -> int:
    return int.from_bytes(buf[offset:offset + size], byteorder)

def write_uint(value: int, size: int, byteorder: str = "big") -> bytes:
    return (value & ((1 << (8 * size)) - 1)).to_bytes(size, byteorder)

@dataclass(frozen=True)
class RTPPacket:
    version: int
    padding: bool
    extension: bool
    csrc_count: int
    marker: bool
    payload_type: int
    sequence: int
    timestamp: int
    ssrc: int
    csrcs: Tuple[int, ...]
    header: bytes
    payload: bytes
    extension_profile: Optional[int] = None
    extension_data: Optional[bytes] = None

    @staticmethod
    def parse(raw: bytes, length: Optional[int] = None, byteorder: str = "big") -> "RTPPacket":
        """Split one datagram into its header fields, header span and payload span.

        ``length`` is the number of valid bytes in ``raw`` (defaults to all of it).
        Raises RTPDecodeError on any size or offset inconsistency.
        """
        if length is None:
            length = len(raw)
        if length > len(raw):
            raise RTPDecodeError(f"length {length} exceeds buffer size {len(raw)}")
        if length < RTP_HEADER_SIZE:
            raise RTPDecodeError(f"RTP packet too short: {length} bytes")

        b0 = raw[0]
        version = (b0 >> 6) & 0x03
        padding = bool((b0 >> 5) & 0x01)
        extension = bool((b0 >> 4) & 0x01)
        csrc_count = b0 & 0x0F

        offset = RTP_HEADER_SIZE + 4 * csrc_count
        if offset > length:
            raise RTPDecodeError(f"CSRC list truncated: {csrc_count} entries need {offset} bytes, got {length}")

        extension_profile = None
        extension_data = None
        if extension:
            if offset + 4 > length:
                raise RTPDecodeError("extension header truncated")
            extension_profile = read_uint(raw, offset, 2, byteorder)
            ext_words = read_uint(raw, offset + 2, 2, byteorder)
            ext_end = offset + 4 + 4 * ext_words
            if ext_end > length:
                raise RTPDecodeError("extension contents truncated")
            extension_data = bytes(raw[offset + 4:ext_end])
            offset = ext_end

        b1 = raw[1]
        marker = bool((b1 >> 7) & 0x01)
        payload_type = b1 & 0x7F

        sequence = read_uint(raw, 2, 2, byteorder)
        timestamp = read_uint(raw, 4, 4, byteorder)
        ssrc = read_uint(raw, 8, 4, byteorder)

        csrcs = tuple(read_uint(raw, RTP_HEADER_SIZE + 4 * i, 4, byteorder)
                      for i in range(csrc_count))

        pad_len = raw[length - 1] if padding else 0
        payload_end = length - pad_len
        if payload_end - offset < 0:
            raise RTPDecodeError(
                f"invalid payload size: length={length} header={offset} padding={pad_len}")

        return RTPPacket(version, padding, extension, csrc_count, marker, payload_type,
                         sequence, timestamp, ssrc, csrcs,
                         bytes(raw[:offset]), bytes(raw[offset:payload_end]),
                         extension_profile, extension_data)

def build_rtp_packet(payload_type: int,
                     sequence: int,
                     timestamp: int,
                     ssrc: int,
                     payload: bytes = b"",
                     marker: bool = False,
                     csrcs: Sequence[int] = (),
                     extension: Optional[Tuple[int, bytes]] = None,
                     padding: int = 0,
                     byteorder: str = "big") -> bytes:
    """Build an RTP packet (version 2).

    ``extension`` is ``(profile, data)`` with ``len(data)`` a multiple of 4.
    ``padding`` appends that many bytes; the last one holds the count.
    """
    if len(csrcs) > MAX_CSRC:
        raise ValueError(f"at most {MAX_CSRC} CSRC identifiers")
    if not 0 <= padding <= 255:
        raise ValueError("padding must fit in one byte")
    b0 = (RTP_VERSION << 6) | (int(padding > 0) << 5) | (int(extension is not None) << 4) | len(csrcs)
    b1 = (int(marker) << 7) | (payload_type & 0x7F)
    out = bytearray([b0, b1])
    out += write_uint(sequence, 2, byteorder)
    out += write_uint(timestamp, 4, byteorder)
    out += write_uint(ssrc, 4, byteorder)
    for csrc in csrcs:
        out += write_uint(csrc, 4, byteorder)
    if extension is not None:
        profile, data = extension
        if len(data) % 4:
            raise ValueError("extension data must be a multiple of 4 bytes")
        out += write_uint(profile, 2, byteorder)
        out += write_uint(len(data) // 4, 2, byteorder)
        out += data
    out += payload
    if padding:
        out += bytes(padding - 1) + bytes([padding])
    return bytes(out)
