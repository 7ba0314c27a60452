"""Background listener turning inbound ICMP datagrams into session events."""

from __future__ import annotations

import enum
import queue
import threading
from typing import Callable, Optional

from ._codec import decode
from ._exceptions import ClosedError, CodecError, TransportError
from ._log import logger
from ._models import Ignored, ReceiverFailed
from ._transport import Transport


class ReceiverState(enum.Enum):
    RUNNING = "running"
    STOPPED = "stopped"


class Receiver(threading.Thread):
    """Reads the transport until it is closed, publishing decoded events.

    Malformed datagrams and other ICMP types are dropped. A transport fault is
    logged and retried; only ``max_errors`` faults in a row are reported to the
    coordinator as a :class:`ReceiverFailed` event.
    """

    def __init__(
        self,
        transport: Transport,
        events: "queue.SimpleQueue",
        *,
        identifier: Optional[int] = None,
        max_errors: int = 5,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        super().__init__(name="icmprobe-receiver", daemon=True)
        self.transport = transport
        self.events = events
        self.identifier = identifier
        self.max_errors = max_errors
        self.clock = clock
        self.state = ReceiverState.RUNNING
        self.dropped = 0

    def run(self) -> None:
        failures = 0
        while self.state is ReceiverState.RUNNING:
            try:
                pkt, peer = self.transport.receive()
            except ClosedError:
                break
            except TransportError as exc:
                failures += 1
                logger.warning("Receive error (%d/%d): %s", failures, self.max_errors, exc)
                if failures >= self.max_errors:
                    self.events.put(ReceiverFailed(exc))
                    break
                continue
            failures = 0
            self.handle_packet(pkt, peer)
        self.state = ReceiverState.STOPPED
        logger.debug("Receiver stopped")

    def handle_packet(self, pkt: bytes, peer: object = None) -> None:
        now_ns = self.clock() if self.clock is not None else None
        try:
            event = decode(
                pkt,
                self.transport.is_ipv6,
                identifier=self.identifier,
                now_ns=now_ns,
            )
        except CodecError as err:
            self.dropped += 1
            logger.debug(f"Discarding malformed packet from {peer}: {err}")
            return
        if isinstance(event, Ignored):
            return
        self.events.put(event)
