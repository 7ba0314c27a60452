# tests/test_codec.py
import struct

import pytest

from conftest import echo_reply_for, ipv4_wrap, time_exceeded_for
from icmprobe import (
    IGNORED,
    CodecError,
    Expired,
    Reply,
    decode,
    encode_echo_request,
    icmp_checksum,
    parse_message,
)

SENT_NS = 1_700_000_000_123_456_789


def test_ipv4_echo_request_layout():
    """IPv4 requests use type 8, a valid checksum and a little-endian timestamp."""
    packet = encode_echo_request(0x1234, 7, SENT_NS, is_ipv6=False)
    icmp_type, code, checksum, ident, seq = struct.unpack("!BBHHH", packet[:8])
    assert (icmp_type, code, ident, seq) == (8, 0, 0x1234, 7)
    assert checksum != 0
    assert icmp_checksum(packet) == 0
    assert packet[8:] == SENT_NS.to_bytes(8, "little")


def test_ipv6_echo_request_uses_type_128():
    """IPv6 requests use type 128 and leave the checksum to the kernel."""
    packet = encode_echo_request(1, 1, SENT_NS, is_ipv6=True)
    icmp_type, code, checksum, _, _ = struct.unpack("!BBHHH", packet[:8])
    assert (icmp_type, code, checksum) == (128, 0, 0)
    assert len(packet) == 16


def test_identifier_is_truncated_to_16_bits():
    packet = encode_echo_request(0x12345, 1, SENT_NS, is_ipv6=False)
    assert parse_message(packet, is_ipv6=False).id == 0x2345


@pytest.mark.parametrize("is_ipv6", [False, True])
def test_reply_round_trip_measures_elapsed_time(is_ipv6):
    """A reply echoing the timestamp yields now - sent."""
    request = encode_echo_request(42, 3, SENT_NS, is_ipv6)
    reply = echo_reply_for(request, is_ipv6)
    event = decode(reply, is_ipv6, now_ns=SENT_NS + 12_500_000)
    assert event == Reply(sequence=3, round_trip_ns=12_500_000)
    assert event.round_trip_ms == pytest.approx(12.5)


def test_reply_round_trip_is_zero_when_decoded_at_send_time():
    request = encode_echo_request(42, 9, SENT_NS, is_ipv6=False)
    event = decode(echo_reply_for(request, False), False, now_ns=SENT_NS)
    assert event.round_trip_ns == 0


def test_ipv4_header_is_stripped():
    """Raw IPv4 sockets deliver the IP header in front of the ICMP message."""
    request = encode_echo_request(42, 5, SENT_NS, is_ipv6=False)
    event = decode(ipv4_wrap(echo_reply_for(request, False)), False, now_ns=SENT_NS + 1)
    assert event == Reply(sequence=5, round_trip_ns=1)


def test_time_exceeded_is_expired():
    request = encode_echo_request(42, 5, SENT_NS, is_ipv6=False)
    assert decode(ipv4_wrap(time_exceeded_for(request, False)), False) == Expired()


def test_ipv6_time_exceeded_is_type_3():
    request = encode_echo_request(42, 5, SENT_NS, is_ipv6=True)
    message = time_exceeded_for(request, True)
    assert message[0] == 3
    assert decode(message, True) == Expired()


def test_type_numbers_depend_on_ip_version():
    """Type 3 means unreachable on IPv4 and time exceeded on IPv6."""
    message = struct.pack("!BBHHH", 3, 1, 0, 0, 0) + b"\x00" * 8
    assert decode(message, is_ipv6=False) is IGNORED
    assert decode(message, is_ipv6=True) == Expired()


@pytest.mark.parametrize(
    "is_ipv6,icmp_type", [(False, 8), (False, 5), (True, 128), (True, 135)]
)
def test_other_types_are_ignored(is_ipv6, icmp_type):
    message = struct.pack("!BBHHH", icmp_type, 0, 0, 1, 1) + b"\x00" * 8
    assert decode(message, is_ipv6) is IGNORED


def test_reply_for_another_identifier_is_ignored():
    request = encode_echo_request(1000, 1, SENT_NS, is_ipv6=False)
    reply = echo_reply_for(request, False)
    assert decode(reply, False, identifier=2000) is IGNORED
    assert isinstance(decode(reply, False, identifier=1000), Reply)


@pytest.mark.parametrize(
    "data",
    [
        b"",
        b"\x00\x00\x00",
        b"\x45\x00\x00\x1c",
        ipv4_wrap(b"\x00\x00"),
        bytes([0x41]) + b"\x00" * 30,
    ],
)
def test_truncated_ipv4_packets_raise(data):
    with pytest.raises(CodecError):
        decode(data, is_ipv6=False)


def test_truncated_ipv6_packet_raises():
    with pytest.raises(CodecError):
        decode(b"\x81\x00\x00", is_ipv6=True)


def test_reply_without_timestamp_raises():
    """An Echo Reply too short to carry the timestamp is malformed."""
    reply = struct.pack("!BBHHH", 0, 0, 0, 1, 1) + b"\x01\x02"
    with pytest.raises(CodecError):
        decode(reply, is_ipv6=False)


def test_codec_error_is_value_error():
    with pytest.raises(ValueError):
        parse_message(b"\x00", is_ipv6=True)
