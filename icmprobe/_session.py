"""Coordinator merging timer ticks, receiver events and termination."""

from __future__ import annotations

import queue
import time
from typing import Callable, Optional

from rich.console import Console

from ._config import MAX_INTERVAL, valid_interval
from ._exceptions import UsageError
from ._log import console as default_console
from ._log import logger
from ._models import (
    CancelToken,
    Destination,
    Expired,
    ReceiverFailed,
    Reply,
    SessionStats,
)
from ._receiver import Receiver
from ._sender import Sender
from ._transport import Transport

_WAKEUP = object()


class Session:
    """Drives one probing session against a single destination.

    ``run`` blocks on the calling thread until the token is cancelled or a
    fatal transport error occurs. Statistics are only touched from that
    thread; the receiver talks to it through an unbounded queue.
    """

    def __init__(
        self,
        transport: Transport,
        destination: Destination,
        *,
        interval: float = 1.0,
        console: Optional[Console] = None,
        identifier: Optional[int] = None,
        clock: Callable[[], int] = time.time_ns,
        max_receive_errors: int = 5,
        join_timeout: float = 1.0,
    ) -> None:
        if not valid_interval(interval):
            raise UsageError(
                f"interval must be a positive number of seconds up to {MAX_INTERVAL:g}, "
                f"got {interval}"
            )
        self.transport = transport
        self.destination = destination
        self.interval = interval
        self.console = console if console is not None else default_console
        self.join_timeout = join_timeout
        self.events: queue.SimpleQueue = queue.SimpleQueue()
        self.sender = Sender(transport, destination, identifier=identifier, clock=clock)
        self.receiver = Receiver(
            transport,
            self.events,
            identifier=self.sender.identifier,
            max_errors=max_receive_errors,
            clock=clock,
        )
        self.stats = SessionStats()
        self._finished = False

    def _wake(self) -> None:
        # SimpleQueue.put is reentrant, so this may run inside a signal handler
        self.events.put(_WAKEUP)

    def run(self, token: CancelToken) -> SessionStats:
        if self._finished:
            raise RuntimeError("Session already finished")
        token.add_callback(self._wake)
        self.stats = SessionStats()
        self.console.print(f"PING {self.destination}")
        self.receiver.start()

        next_tick = time.monotonic() + self.interval
        try:
            while not token.cancelled:
                now = time.monotonic()
                if now >= next_tick:
                    self.on_tick()
                    next_tick += self.interval
                    if next_tick <= now:
                        next_tick = now + self.interval
                    continue
                try:
                    event = self.events.get(timeout=next_tick - now)
                except queue.Empty:
                    continue
                self.on_event(event)
        finally:
            self.finish()
        return self.stats

    def on_tick(self) -> None:
        self.sender.tick()
        self.stats.probes_sent += 1

    def on_event(self, event: object) -> None:
        if event is _WAKEUP:
            return
        if isinstance(event, Reply):
            self.stats.replies_received += 1
            self.console.print(str(event))
        elif isinstance(event, Expired):
            self.stats.replies_received += 1
            self.console.print(str(event))
        elif isinstance(event, ReceiverFailed):
            logger.error("Receiver gave up: %s", event.error)
            raise event.error
        else:
            logger.debug("Unexpected event %r", event)

    def finish(self) -> None:
        """Close the transport and print the summary, once."""
        if self._finished:
            return
        self._finished = True
        self.transport.close()
        if self.receiver.is_alive():
            self.receiver.join(self.join_timeout)
        if self.receiver.is_alive():
            logger.warning("Receiver did not stop within %.1fs", self.join_timeout)
        else:
            self.transport.release()

        self.console.print(f"\n--- {self.destination} ping statistics ---")
        self.console.print(self.stats.summary())
        logger.debug(
            "Session stats -> sent: %d received: %d loss: %.1f%%",
            self.stats.probes_sent,
            self.stats.replies_received,
            self.stats.loss_percent,
        )
