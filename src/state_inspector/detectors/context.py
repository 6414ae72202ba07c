"""Shared per-scan context handed to every detector."""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from state_inspector.core.cooperative import Checkpoint


@dataclass
class DetectionContext:
    """Scan-wide inputs that are not part of the record snapshot.

    Attributes:
        now: Scan start time in epoch seconds; every age is measured against it
        record_checkpoint: Ticked once per record in O(n) passes
        comparison_checkpoint: Ticked once per pairwise comparison
        show_progress: Show tqdm progress bars
    """

    now: float = field(default_factory=time.time)
    record_checkpoint: Checkpoint = field(default_factory=Checkpoint)
    comparison_checkpoint: Checkpoint = field(default_factory=Checkpoint)
    show_progress: bool = False
