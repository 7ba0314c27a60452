from __future__ import annotations

import os
import time
from typing import Callable, Optional

from ._codec import encode_echo_request
from ._log import logger
from ._models import Destination
from ._transport import Transport


class Sender:
    """Emits one Echo Request per tick; owns the sequence counter."""

    def __init__(
        self,
        transport: Transport,
        destination: Destination,
        *,
        identifier: Optional[int] = None,
        clock: Callable[[], int] = time.time_ns,
    ) -> None:
        self.transport = transport
        self.destination = destination
        self.identifier = (
            identifier if identifier is not None else os.getpid() & 0xFFFF
        )
        self.clock = clock
        self.sequence = 1

    def tick(self) -> int:
        """Send the current sequence number and return it.

        A failed transmit raises before the counter moves.
        """
        sequence = self.sequence
        packet = encode_echo_request(
            self.identifier, sequence, self.clock(), self.destination.is_ipv6
        )
        self.transport.send(packet, self.destination)
        logger.debug("Sent echo request seq=%d to %s", sequence, self.destination.address)
        self.sequence += 1
        return sequence
