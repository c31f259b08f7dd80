"""Execution counters with an exponentially weighted latency average."""

from __future__ import annotations

from dataclasses import dataclass

LATENCY_SMOOTHING = 0.1


@dataclass(slots=True)
class ExecutionStats:
    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    average_latency_ms: float = 0.0

    def record(self, success: bool, latency_ms: float) -> None:
        self.total_calls += 1
        if success:
            self.successful_calls += 1
        else:
            self.failed_calls += 1
        self.average_latency_ms = (
            LATENCY_SMOOTHING * latency_ms
            + (1 - LATENCY_SMOOTHING) * self.average_latency_ms
        )

    @property
    def success_rate(self) -> int:
        if self.total_calls == 0:
            return 0
        return round(self.successful_calls / self.total_calls * 100)

    def snapshot(self) -> dict[str, float | int]:
        return {
            "total_calls": self.total_calls,
            "successful_calls": self.successful_calls,
            "failed_calls": self.failed_calls,
            "success_rate": self.success_rate,
            "average_latency_ms": round(self.average_latency_ms),
        }
