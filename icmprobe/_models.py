from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Union

NANOS_PER_MILLI = 1_000_000


@dataclass(frozen=True)
class Destination:
    address: str
    is_ipv6: bool
    host: str = ""

    def __str__(self) -> str:
        if self.host and self.host != self.address:
            return f"{self.host} ({self.address})"
        return self.address


@dataclass
class IcmpPacket:
    type: int
    code: int
    checksum: int
    id: int
    sequence: int
    data: bytes


@dataclass(frozen=True)
class Reply:
    sequence: int
    round_trip_ns: int

    @property
    def round_trip_ms(self) -> float:
        return self.round_trip_ns / NANOS_PER_MILLI

    def __str__(self) -> str:
        return f"reply: icmp_seq={self.sequence} time={self.round_trip_ms:.2f} ms"


@dataclass(frozen=True)
class Expired:
    """Time Exceeded; the probe it belongs to is unknown."""

    def __str__(self) -> str:
        return "time to live exceeded"


@dataclass(frozen=True)
class Ignored:
    """Any other ICMP message. Never published by the receiver."""


IGNORED = Ignored()


@dataclass(frozen=True)
class ReceiverFailed:
    error: Exception


InboundEvent = Union[Reply, Expired, Ignored]
SessionEvent = Union[Reply, Expired, ReceiverFailed]


@dataclass
class SessionStats:
    probes_sent: int = 0
    replies_received: int = 0
    started_ns: int = field(default_factory=time.monotonic_ns)

    @property
    def loss_percent(self) -> float:
        if not self.probes_sent:
            return 0.0
        return 100 * (self.probes_sent - self.replies_received) / self.probes_sent

    def elapsed_ms(self, now_ns: int | None = None) -> int:
        if now_ns is None:
            now_ns = time.monotonic_ns()
        return (now_ns - self.started_ns) // NANOS_PER_MILLI

    def summary(self, now_ns: int | None = None) -> str:
        return (
            f"transmitted={self.probes_sent} received={self.replies_received} "
            f"loss={self.loss_percent:.1f}% time={self.elapsed_ms(now_ns)}ms"
        )

    def __str__(self) -> str:
        return self.summary()

    def __rich__(self) -> str:  # pragma: no cover - rich display helper
        return self.__str__()


class CancelToken:
    """Cooperative termination signal shared by the CLI and the session.

    ``cancel`` only sets an event and runs the registered callbacks, so it is
    safe to call from a signal handler as long as the callbacks are too.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._callbacks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def add_callback(self, callback: Callable[[], None]) -> None:
        self._callbacks.append(callback)
        if self.cancelled:
            callback()

    def cancel(self) -> None:
        if self._event.is_set():
            return
        self._event.set()
        for callback in list(self._callbacks):
            callback()
