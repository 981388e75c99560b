import queue
import socket
import threading

from rtspcore.receiver import CallbackSink, RTPReceiver
from rtspcore.rtp import build_rtp_packet
from rtspcore.transport import UDPTransport

TIMEOUT = 5

class QueueEndpoint:
    """In-memory stand-in for a UDP endpoint."""

    def __init__(self, datagrams=()):
        self.inbox = queue.Queue()
        for d in datagrams:
            self.inbox.put(d)
        self.bound = None
        self.closed = False

    def bind(self, host, port):
        self.bound = (host, port)

    def receive(self, size=8192):
        try:
            return self.inbox.get(timeout=0.05)
        except queue.Empty:
            return None

    def close(self):
        self.closed = True

class CollectingSink(CallbackSink):
    def __init__(self, expected):
        self.packets = []
        self.done = threading.Event()
        self.expected = expected
        super().__init__(self._collect)

    def _collect(self, packet):
        self.packets.append(packet)
        if len(self.packets) >= self.expected:
            self.done.set()

def test_malformed_datagrams_are_dropped():
    good1 = build_rtp_packet(96, 1, 100, 7, b"first")
    good2 = build_rtp_packet(96, 2, 200, 7, b"second")
    endpoint = QueueEndpoint([good1, b"\x80\x60\x00", good2])
    sink = CollectingSink(expected=2)
    receiver = RTPReceiver(9000, sink, transport=endpoint, name="rtp-video")
    receiver.start()
    try:
        assert sink.done.wait(TIMEOUT)
    finally:
        receiver.stop()
        receiver.join(TIMEOUT)
    assert endpoint.bound == ("0.0.0.0", 9000)
    assert [p.sequence for p in sink.packets] == [1, 2]
    assert [p.payload for p in sink.packets] == [b"first", b"second"]
    assert receiver.received == 3
    assert receiver.dropped == 1
    assert not receiver.running
    assert endpoint.closed

def test_sink_failure_does_not_stop_the_loop():
    calls = []
    done = threading.Event()

    def flaky(packet):
        calls.append(packet.sequence)
        if packet.sequence == 1:
            raise RuntimeError("sink is full")
        done.set()

    endpoint = QueueEndpoint([build_rtp_packet(0, 1, 0, 1), build_rtp_packet(0, 2, 0, 1)])
    receiver = RTPReceiver(9002, CallbackSink(flaky), transport=endpoint)
    receiver.start()
    try:
        assert done.wait(TIMEOUT)
    finally:
        receiver.stop()
        receiver.join(TIMEOUT)
    assert calls == [1, 2]

def test_stop_flag_without_close():
    endpoint = QueueEndpoint()
    receiver = RTPReceiver(9000, CallbackSink(lambda p: None), transport=endpoint)
    receiver.start()
    receiver.stop(close=False)
    receiver.join(TIMEOUT)
    assert not receiver.running

def test_receives_over_udp_loopback():
    sink = CollectingSink(expected=1)
    receiver = RTPReceiver(0, sink, host="127.0.0.1", transport=UDPTransport(timeout=0.2))
    receiver.start()
    sender = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sender.sendto(build_rtp_packet(96, 42, 1, 2, b"loopback"), ("127.0.0.1", receiver.transport.port))
        assert sink.done.wait(TIMEOUT)
    finally:
        sender.close()
        receiver.stop()
        receiver.join(TIMEOUT)
    assert sink.packets[0].sequence == 42
    assert sink.packets[0].payload == b"loopback"
    assert not receiver.running

def test_stop_wakes_blocking_receive():
    receiver = RTPReceiver(0, CallbackSink(lambda p: None), host="127.0.0.1", transport=UDPTransport())
    receiver.start()
    receiver.stop()
    receiver.join(TIMEOUT)
    assert not receiver.running
