from __future__ import annotations

import ipaddress
import socket

from ._exceptions import ResolutionError
from ._models import Destination


def resolve_destination(host: str) -> Destination:
    """Turn a hostname or literal address into a :class:`Destination`."""
    try:
        literal = ipaddress.ip_address(host)
    except ValueError:
        pass
    else:
        return Destination(address=str(literal), is_ipv6=literal.version == 6, host=host)

    try:
        infos = socket.getaddrinfo(host, None, proto=socket.IPPROTO_TCP)
    except (OSError, UnicodeError) as exc:
        raise ResolutionError(f"Resolve error {host}: {exc}") from exc
    for family, _, _, _, sockaddr in infos:
        if family in (socket.AF_INET, socket.AF_INET6):
            return Destination(
                address=sockaddr[0], is_ipv6=family == socket.AF_INET6, host=host
            )
    raise ResolutionError(f"No IPv4 or IPv6 address for {host}")
