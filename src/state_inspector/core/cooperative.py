"""Cooperative scheduling for long-running scan passes.

Detectors call :meth:`Checkpoint.tick` once per unit of work (a record in an
O(n) pass, a comparison in the naming pass). Every ``every`` ticks the
checkpoint hands control back to the host and honours pending stop requests.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

from state_inspector.core.exceptions import ScanAbortedError


def _default_yield() -> None:
    time.sleep(0)


class Checkpoint:
    """Yield-every-K contract for long loops.

    Args:
        every: Units of work between yields (values below 1 are treated as 1)
        yield_fn: Callable invoked at each yield point (default: ``time.sleep(0)``)
        stop_event: Event that, once set, aborts the scan at the next yield point
    """

    def __init__(
        self,
        every: int = 100,
        yield_fn: Callable[[], None] | None = None,
        stop_event: threading.Event | None = None,
    ):
        self.every = max(1, int(every))
        self.yield_fn = yield_fn or _default_yield
        self.stop_event = stop_event
        self.count = 0
        self.yields = 0

    def tick(self) -> None:
        self.count += 1
        if self.count % self.every == 0:
            self.yields += 1
            self.yield_fn()
            if self.stop_event is not None and self.stop_event.is_set():
                raise ScanAbortedError(processed=self.count)

    def reset(self) -> None:
        self.count = 0
        self.yields = 0
