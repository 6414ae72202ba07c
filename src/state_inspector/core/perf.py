"""Phase timing helpers for State Inspector scans."""

import logging
import time


class PhaseTimer:
    """Track wall-clock duration of scan phases"""

    MAX_METRICS = 500

    def __init__(self, logger: logging.Logger | logging.LoggerAdapter):
        self.metrics: dict[str, float] = {}
        self.logger = logger
        self.start_times: dict[str, float] = {}

    def start(self, phase_name: str):
        """Start timing a phase"""
        self.start_times[phase_name] = time.perf_counter()

    def end(self, phase_name: str):
        """End timing a phase"""
        if phase_name not in self.start_times:
            return
        duration = time.perf_counter() - self.start_times.pop(phase_name)
        if len(self.metrics) >= self.MAX_METRICS:
            # Drop oldest entry to prevent unbounded growth
            oldest = next(iter(self.metrics))
            del self.metrics[oldest]
        self.metrics[phase_name] = duration
        self.logger.debug(f"{phase_name} completed in {duration:.3f}s")

    def as_dict(self) -> dict[str, float]:
        return {name: round(duration, 4) for name, duration in self.metrics.items()}

    def get_summary(self) -> str:
        """One-line summary ordered by duration"""
        if not self.metrics:
            return "No phase timings collected"
        total = sum(self.metrics.values())
        parts = [
            f"{name}={duration:.2f}s"
            for name, duration in sorted(self.metrics.items(), key=lambda x: x[1], reverse=True)
        ]
        return f"total={total:.2f}s ({', '.join(parts)})"
