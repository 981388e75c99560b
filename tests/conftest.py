SDP_BODY = "\r\n".join([
    "v=0",
    "o=- 1468039952094900 1 IN IP4 172.30.1.60",
    "s=RTSP/RTP stream from a VMFD encoder",
    "t=0 0",
    "a=control:*",
    "m=video 0 RTP/AVP 96",
    "c=IN IP4 0.0.0.0",
    "a=rtpmap:96 H264/90000",
    "a=control:track1",
    "m=audio 0 RTP/AVP 0",
    "a=rtpmap:0 PCMU/8000",
    "a=control:track2",
    "",
])

def reply(cseq, status="200 OK", headers=None, body=""):
    lines = [f"RTSP/1.0 {status}", f"CSeq: {cseq}"]
    for k, v in (headers or {}).items():
        lines.append(f"{k}: {v}")
    if body:
        lines.append(f"Content-Length: {len(body)}")
    return "\r\n".join(lines) + "\r\n\r\n" + body

class StubTransport:
    """Control transport that answers each write with the next canned reply."""

    def __init__(self, replies=()):
        self.replies = list(replies)
        self.written = []
        self.connected_to = None
        self.closed = False

    def connect(self, host, port):
        self.connected_to = (host, port)

    def write(self, data):
        self.written.append(data.decode())

    def read(self, size=8192):
        return self.replies.pop(0).encode()

    def close(self):
        self.closed = True

    async def aconnect(self, host, port):
        self.connect(host, port)

    async def awrite(self, data):
        self.write(data)

    async def aread(self, size=8192):
        return self.read(size)

    async def aclose(self):
        self.close()

    def request_headers(self, index):
        lines = self.written[index].split("\r\n\r\n", 1)[0].split("\r\n")
        return dict(line.split(": ", 1) for line in lines[1:])

