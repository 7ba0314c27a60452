# tests/conftest.py
import socket
import struct
import threading
from collections import deque

import pytest

from icmprobe import Transport, icmp_checksum
from icmprobe._codec import (
    ICMP_ECHO_REPLY,
    ICMP_HEADER,
    ICMP_TIME_EXCEEDED,
    ICMPV6_ECHO_REPLY,
    ICMPV6_TIME_EXCEEDED,
)


class LoopbackSocket:
    """One end of a datagram socket pair standing in for a raw ICMP socket."""

    def __init__(self, sock, fail_send=None):
        self._sock = sock
        self.fail_send = fail_send
        self.options = []
        self.sent_to = []

    def fileno(self):
        return self._sock.fileno()

    def setsockopt(self, level, option, value):
        self.options.append((level, option, value))

    def sendto(self, data, address):
        if self.fail_send is not None:
            raise self.fail_send
        self.sent_to.append(address)
        return self._sock.send(data)

    def recvfrom(self, bufsize):
        return self._sock.recv(bufsize), "loopback"

    def close(self):
        self._sock.close()


def ipv4_wrap(message, src="93.184.216.34", dst="10.0.0.1"):
    header = struct.pack(
        "!BBHHHBBH4s4s",
        0x45, 0, 20 + len(message), 0, 0, 64, 1, 0,
        socket.inet_aton(src), socket.inet_aton(dst),
    )
    return header + message


def echo_reply_for(request, is_ipv6):
    _, _, _, ident, seq = ICMP_HEADER.unpack_from(request)
    reply_type = ICMPV6_ECHO_REPLY if is_ipv6 else ICMP_ECHO_REPLY
    payload = request[ICMP_HEADER.size:]
    checksum = 0
    if not is_ipv6:
        checksum = icmp_checksum(ICMP_HEADER.pack(reply_type, 0, 0, ident, seq) + payload)
    return ICMP_HEADER.pack(reply_type, 0, checksum, ident, seq) + payload


def time_exceeded_for(request, is_ipv6):
    exceeded_type = ICMPV6_TIME_EXCEEDED if is_ipv6 else ICMP_TIME_EXCEEDED
    return ICMP_HEADER.pack(exceeded_type, 0, 0, 0, 0) + request


class Responder(threading.Thread):
    """
    Answers Echo Requests read from the peer end of a loopback pair.
    script: deque of actions, one per request ("reply", "expire", "garbage",
    "drop"); once empty every request is answered with a reply.
    """

    def __init__(self, sock, is_ipv6, script=None):
        super().__init__(daemon=True)
        self.sock = sock
        self.is_ipv6 = is_ipv6
        self.script = deque(script or [])
        self.requests = []
        self._stop_event = threading.Event()
        self.sock.settimeout(0.05)

    def stop(self):
        self._stop_event.set()
        if self.is_alive():
            self.join(1.0)

    def answer(self, request):
        action = self.script.popleft() if self.script else "reply"
        if action == "reply":
            out = echo_reply_for(request, self.is_ipv6)
        elif action == "expire":
            out = time_exceeded_for(request, self.is_ipv6)
        elif action == "garbage":
            out = b"\x00\x01"
        else:
            return None
        if not self.is_ipv6 and action != "garbage":
            out = ipv4_wrap(out)
        return out

    def run(self):
        while not self._stop_event.is_set():
            try:
                request = self.sock.recv(2048)
            except socket.timeout:
                continue
            except OSError:
                return
            self.requests.append(request)
            out = self.answer(request)
            if out is None:
                continue
            try:
                self.sock.send(out)
            except OSError:
                return


@pytest.fixture
def loopback():
    created = []

    def factory(is_ipv6=False, script=None, respond=True):
        left, right = socket.socketpair(socket.AF_UNIX, socket.SOCK_DGRAM)
        fake = LoopbackSocket(left)
        transport = Transport(fake, is_ipv6)
        responder = Responder(right, is_ipv6, script)
        if respond:
            responder.start()
        created.append((transport, responder, right))
        return transport, fake, responder

    yield factory

    for transport, responder, right in created:
        responder.stop()
        transport.release()
        right.close()
