from __future__ import annotations

import select
import socket
import threading
from typing import Any, Optional

from ._exceptions import (
    ClosedError,
    ConfigError,
    RawSocketPermissionError,
    TransportError,
)
from ._log import logger
from ._models import Destination

DEFAULT_BUFFER_SIZE = 1500


class Transport:
    """One raw ICMP socket plus a wake-up pair used to interrupt ``receive``.

    Closing a socket from another thread does not wake a ``recvfrom`` blocked
    on it, so ``receive`` waits with ``select`` on both the socket and the
    wake-up pair, and ``close`` writes to the pair.
    """

    def __init__(
        self,
        sock: Any,
        is_ipv6: bool,
        *,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
    ) -> None:
        self.is_ipv6 = is_ipv6
        self.buffer_size = buffer_size
        self._sock = sock
        self._wake_r, self._wake_w = socket.socketpair()
        self._closed = threading.Event()
        self._lock = threading.Lock()
        self._sent_any = False

    @classmethod
    def open(
        cls,
        is_ipv6: bool,
        ttl: Optional[int] = None,
        *,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
    ) -> "Transport":
        if is_ipv6:
            family, proto = socket.AF_INET6, socket.IPPROTO_ICMPV6
        else:
            family, proto = socket.AF_INET, socket.IPPROTO_ICMP
        try:
            sock = socket.socket(family, socket.SOCK_RAW, proto)
        except PermissionError as exc:
            message = (
                "Raw socket requires elevated privileges. Use sudo or grant "
                "CAP_NET_RAW to the Python interpreter."
            )
            raise RawSocketPermissionError(message) from exc
        except OSError as exc:
            family_name = "IPv6" if is_ipv6 else "IPv4"
            raise TransportError(f"Cannot open {family_name} ICMP socket: {exc}") from exc

        transport = cls(sock, is_ipv6, buffer_size=buffer_size)
        if ttl is not None:
            try:
                transport.set_hop_limit(ttl)
            except ConfigError:
                transport.release()
                raise
        return transport

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def set_hop_limit(self, ttl: int) -> None:
        if self._sent_any:
            raise ConfigError("Hop limit must be set before the first send.")
        if not 1 <= ttl <= 255:
            raise ConfigError(f"Hop limit must be between 1 and 255, got {ttl}.")
        if self.is_ipv6:
            level, option = socket.IPPROTO_IPV6, socket.IPV6_UNICAST_HOPS
        else:
            level, option = socket.IPPROTO_IP, socket.IP_TTL
        try:
            self._sock.setsockopt(level, option, ttl)
        except OSError as exc:
            raise ConfigError(f"Cannot set hop limit {ttl}: {exc}") from exc
        logger.debug("Hop limit set to %d", ttl)

    def _sockaddr(self, destination: Destination) -> tuple:
        if self.is_ipv6:
            return (destination.address, 0, 0, 0)
        return (destination.address, 0)

    def send(self, packet: bytes, destination: Destination) -> None:
        if self.closed:
            raise ClosedError("Transport is closed.")
        try:
            self._sock.sendto(packet, self._sockaddr(destination))
        except OSError as exc:
            if self.closed:
                raise ClosedError("Transport is closed.") from exc
            raise TransportError(f"Send to {destination.address} failed: {exc}") from exc
        self._sent_any = True

    def receive(self) -> tuple[bytes, Any]:
        if self.closed:
            raise ClosedError("Transport is closed.")
        try:
            ready, _, _ = select.select([self._sock, self._wake_r], [], [])
            if self.closed or self._wake_r in ready:
                raise ClosedError("Transport is closed.")
            return self._sock.recvfrom(self.buffer_size)
        except ClosedError:
            raise
        except (OSError, ValueError) as exc:
            # select on an fd closed underneath us reports EBADF / ValueError
            if self.closed:
                raise ClosedError("Transport is closed.") from exc
            raise TransportError(f"Receive failed: {exc}") from exc

    def close(self) -> None:
        with self._lock:
            if self._closed.is_set():
                return
            self._closed.set()
            try:
                self._wake_w.send(b"\x00")
            except OSError as exc:
                logger.debug("Wake-up write failed: %s", exc)
        logger.debug("Transport closed")

    def release(self) -> None:
        """Close the transport and free the file descriptors.

        Only call once no thread can still be inside ``receive``.
        """
        self.close()
        for sock in (self._sock, self._wake_r, self._wake_w):
            try:
                sock.close()
            except OSError as exc:
                logger.debug("Error closing socket: %s", exc)

    def __enter__(self) -> "Transport":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
