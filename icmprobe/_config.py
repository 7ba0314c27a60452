from __future__ import annotations

import argparse
import math
import threading
from dataclasses import dataclass

from ._exceptions import UsageError

DEFAULT_TTL = 64
DEFAULT_INTERVAL = 1.0
MAX_INTERVAL = threading.TIMEOUT_MAX


def valid_interval(interval: float) -> bool:
    # NaN and inf slip past a plain "> 0"; the queue wait rejects both
    return math.isfinite(interval) and 0 < interval <= MAX_INTERVAL


@dataclass
class ProbeConfig:
    destination: str
    ttl: int = DEFAULT_TTL
    interval: float = DEFAULT_INTERVAL
    verbose: bool = False

    # receiver tuning
    buffer_size: int = 1500           # largest datagram read in one go
    max_receive_errors: int = 5       # consecutive socket faults before giving up
    join_timeout: float = 1.0         # how long to wait for the receiver on shutdown

    def __post_init__(self) -> None:
        if not self.destination:
            raise UsageError("Destination address required")
        if not 1 <= self.ttl <= 255:
            raise UsageError(f"ttl must be between 1 and 255, got {self.ttl}")
        if not valid_interval(self.interval):
            raise UsageError(
                f"interval must be a positive number of seconds up to {MAX_INTERVAL:g}, "
                f"got {self.interval}"
            )
        if self.max_receive_errors < 1:
            raise UsageError("max_receive_errors must be at least 1")

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "ProbeConfig":
        return cls(
            destination=args.destination,
            ttl=args.ttl,
            interval=args.interval,
            verbose=args.verbose,
        )
