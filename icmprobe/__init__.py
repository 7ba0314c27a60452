from ._codec import decode, encode_echo_request, icmp_checksum, parse_message
from ._config import ProbeConfig
from ._exceptions import (
    ClosedError,
    CodecError,
    ConfigError,
    ProbeError,
    RawSocketPermissionError,
    ResolutionError,
    TransportError,
    UsageError,
)
from ._models import (
    IGNORED,
    CancelToken,
    Destination,
    Expired,
    IcmpPacket,
    ReceiverFailed,
    Reply,
    SessionStats,
)
from ._receiver import Receiver, ReceiverState
from ._resolver import resolve_destination
from ._sender import Sender
from ._session import Session
from ._transport import Transport

__all__ = [
    "CancelToken",
    "ClosedError",
    "CodecError",
    "ConfigError",
    "Destination",
    "Expired",
    "IGNORED",
    "IcmpPacket",
    "ProbeConfig",
    "ProbeError",
    "RawSocketPermissionError",
    "Receiver",
    "ReceiverFailed",
    "ReceiverState",
    "Reply",
    "ResolutionError",
    "Sender",
    "Session",
    "SessionStats",
    "Transport",
    "TransportError",
    "UsageError",
    "decode",
    "encode_echo_request",
    "icmp_checksum",
    "parse_message",
    "resolve_destination",
]
