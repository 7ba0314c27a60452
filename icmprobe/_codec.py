"""Wire format of ICMP / ICMPv6 Echo and Time Exceeded messages."""

from __future__ import annotations

import struct
import time
from typing import Optional

from ._exceptions import CodecError
from ._models import IGNORED, Expired, IcmpPacket, InboundEvent, Reply

ICMP_ECHO_REQUEST = 8
ICMP_ECHO_REPLY = 0
ICMP_TIME_EXCEEDED = 11

ICMPV6_ECHO_REQUEST = 128
ICMPV6_ECHO_REPLY = 129
ICMPV6_TIME_EXCEEDED = 3

ICMP_HEADER = struct.Struct("!BBHHH")
TIMESTAMP = struct.Struct("<Q")
IPV4_MIN_HEADER = 20


def icmp_checksum(data: bytes) -> int:
    if len(data) % 2:
        data += b"\x00"
    total = sum(struct.unpack("!%dH" % (len(data) // 2), data))
    total = (total >> 16) + (total & 0xFFFF)
    total += total >> 16
    return (~total) & 0xFFFF


def encode_echo_request(
    identifier: int, sequence: int, send_time_ns: int, is_ipv6: bool
) -> bytes:
    """Build an Echo Request carrying ``send_time_ns`` as its payload.

    The ICMPv6 checksum covers a pseudo-header only the kernel knows, so it is
    left at zero for the stack to fill in.
    """
    icmp_type = ICMPV6_ECHO_REQUEST if is_ipv6 else ICMP_ECHO_REQUEST
    identifier &= 0xFFFF
    sequence &= 0xFFFF
    data = TIMESTAMP.pack(send_time_ns & 0xFFFFFFFFFFFFFFFF)
    checksum = 0
    if not is_ipv6:
        header = ICMP_HEADER.pack(icmp_type, 0, 0, identifier, sequence)
        checksum = icmp_checksum(header + data)
    header = ICMP_HEADER.pack(icmp_type, 0, checksum, identifier, sequence)
    return header + data


def _strip_ip_header(pkt: bytes) -> bytes:
    # Raw IPv4 sockets hand over the IP header too; no ICMP type we care about
    # has 4 in its high nibble, so the version field tells them apart.
    if not pkt or pkt[0] >> 4 != 4:
        return pkt
    if len(pkt) < IPV4_MIN_HEADER:
        raise CodecError("Packet shorter than minimum IP header length (20 bytes).")
    iph_length = (pkt[0] & 0xF) * 4
    if iph_length < IPV4_MIN_HEADER:
        raise CodecError(f"Invalid IP header length {iph_length}.")
    return pkt[iph_length:]


def parse_message(pkt: bytes, is_ipv6: bool) -> IcmpPacket:
    message = pkt if is_ipv6 else _strip_ip_header(pkt)
    if len(message) < ICMP_HEADER.size:
        raise CodecError(
            f"Packet shorter than ICMP header ({len(message)} < {ICMP_HEADER.size} bytes)."
        )
    icmph = ICMP_HEADER.unpack_from(message)
    return IcmpPacket(
        type=icmph[0],
        code=icmph[1],
        checksum=icmph[2],
        id=icmph[3],
        sequence=icmph[4],
        data=message[ICMP_HEADER.size :],
    )


def decode(
    pkt: bytes,
    is_ipv6: bool,
    *,
    identifier: Optional[int] = None,
    now_ns: Optional[int] = None,
) -> InboundEvent:
    """Classify an inbound datagram as ``Reply``, ``Expired`` or ``IGNORED``.

    Replies are matched by the timestamp they echo back, no request table is
    consulted. When ``identifier`` is given, replies to other processes are
    ignored.
    """
    icmp_pkt = parse_message(pkt, is_ipv6)
    echo_reply = ICMPV6_ECHO_REPLY if is_ipv6 else ICMP_ECHO_REPLY
    time_exceeded = ICMPV6_TIME_EXCEEDED if is_ipv6 else ICMP_TIME_EXCEEDED

    if icmp_pkt.type == echo_reply:
        if identifier is not None and icmp_pkt.id != identifier & 0xFFFF:
            return IGNORED
        if len(icmp_pkt.data) < TIMESTAMP.size:
            raise CodecError(
                f"Echo reply payload too short for a timestamp ({len(icmp_pkt.data)} bytes)."
            )
        (sent_ns,) = TIMESTAMP.unpack_from(icmp_pkt.data)
        if now_ns is None:
            now_ns = time.time_ns()
        return Reply(sequence=icmp_pkt.sequence, round_trip_ns=now_ns - sent_ns)

    if icmp_pkt.type == time_exceeded:
        return Expired()

    return IGNORED
