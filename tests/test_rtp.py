import struct

import pytest
from rtspcore.exceptions import RTPDecodeError
from rtspcore.rtp import RTPPacket, build_rtp_packet, read_uint

PAYLOAD = b"\x65\x88\x84\x00\x33\xff"

def test_parse_fixed_header():
    raw = struct.pack("!BBHII", 0x80, 0x80 | 96, 28169, 981552495, 0xDEADBEEF) + PAYLOAD
    pkt = RTPPacket.parse(raw)
    assert pkt.version == 2
    assert not pkt.padding
    assert not pkt.extension
    assert pkt.csrc_count == 0
    assert pkt.marker
    assert pkt.payload_type == 96
    assert pkt.sequence == 28169
    assert pkt.timestamp == 981552495
    assert pkt.ssrc == 0xDEADBEEF
    assert pkt.csrcs == ()
    assert pkt.header == raw[:12]
    assert pkt.payload == PAYLOAD

def test_builder_matches_decoder():
    raw = build_rtp_packet(0, 65535, 0xFFFFFFFF, 1, PAYLOAD)
    pkt = RTPPacket.parse(raw)
    assert (pkt.sequence, pkt.timestamp, pkt.ssrc) == (65535, 0xFFFFFFFF, 1)
    assert not pkt.marker
    assert pkt.payload == PAYLOAD

def test_padding_is_excluded():
    padded = build_rtp_packet(96, 1, 2, 3, PAYLOAD, padding=4)
    pkt = RTPPacket.parse(padded)
    assert pkt.padding
    assert pkt.payload == PAYLOAD
    # same bytes with the P bit cleared keep the padding in the payload
    unpadded = bytes([padded[0] & ~0x20]) + padded[1:]
    whole = RTPPacket.parse(unpadded)
    assert len(whole.payload) - len(pkt.payload) == 4
    assert whole.payload[:len(PAYLOAD)] == PAYLOAD

def test_csrc_list_in_order():
    raw = build_rtp_packet(96, 7, 8, 9, PAYLOAD, csrcs=[0x11111111, 0x22222222, 0x33333333])
    pkt = RTPPacket.parse(raw)
    assert pkt.csrc_count == 3
    assert pkt.csrcs == (0x11111111, 0x22222222, 0x33333333)
    assert len(pkt.header) == 12 + 3 * 4
    assert pkt.payload == PAYLOAD

def test_extension_block_belongs_to_header():
    raw = build_rtp_packet(96, 1, 2, 3, PAYLOAD, extension=(0xBEDE, b"\x10\x20\x30\x40"))
    pkt = RTPPacket.parse(raw)
    assert pkt.extension
    assert pkt.extension_profile == 0xBEDE
    assert pkt.extension_data == b"\x10\x20\x30\x40"
    assert len(pkt.header) == 12 + 4 + 4
    assert pkt.payload == PAYLOAD

def test_valid_length_limits_the_buffer():
    raw = build_rtp_packet(96, 1, 2, 3, PAYLOAD)
    buf = bytearray(raw) + bytearray(100)
    pkt = RTPPacket.parse(buf, len(raw))
    assert pkt.payload == PAYLOAD

def test_short_buffer_fails():
    with pytest.raises(RTPDecodeError):
        RTPPacket.parse(bytes(10))

def test_length_beyond_buffer_fails():
    with pytest.raises(RTPDecodeError):
        RTPPacket.parse(bytes(12), 20)

def test_csrc_count_beyond_length_fails():
    raw = bytes([0x80 | 15, 96]) + bytes(10 + 8)
    with pytest.raises(RTPDecodeError, match="CSRC"):
        RTPPacket.parse(raw)

def test_truncated_extension_fails():
    raw = build_rtp_packet(96, 1, 2, 3, b"", extension=(0xBEDE, b"\x00" * 8))
    with pytest.raises(RTPDecodeError, match="extension"):
        RTPPacket.parse(raw[:-4])
    with pytest.raises(RTPDecodeError, match="extension"):
        RTPPacket.parse(raw[:14])

def test_padding_larger_than_payload_fails():
    raw = bytearray(build_rtp_packet(96, 1, 2, 3, b"\x01\x02", padding=1))
    raw[-1] = 200
    with pytest.raises(RTPDecodeError, match="payload size"):
        RTPPacket.parse(bytes(raw))

def test_empty_payload_is_allowed():
    pkt = RTPPacket.parse(build_rtp_packet(96, 1, 2, 3))
    assert pkt.payload == b""

def test_little_endian_peers():
    raw = build_rtp_packet(96, 0x0102, 0x01020304, 0x0A0B0C0D, PAYLOAD, byteorder="little")
    assert read_uint(raw, 2, 2) == 0x0201
    pkt = RTPPacket.parse(raw, byteorder="little")
    assert pkt.sequence == 0x0102
    assert pkt.timestamp == 0x01020304
    assert pkt.ssrc == 0x0A0B0C0D
