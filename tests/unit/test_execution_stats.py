import pytest

from rag_gateway.gateway.stats import ExecutionStats


def test_latency_average_is_exponentially_smoothed() -> None:
    stats = ExecutionStats()
    observed = []
    for _ in range(3):
        stats.record(True, 100.0)
        observed.append(stats.average_latency_ms)

    assert observed == pytest.approx([10.0, 19.0, 27.1])
    assert observed == sorted(observed)
    assert all(value <= 100.0 for value in observed)


def test_counters_add_up_and_success_rate_is_integer_percent() -> None:
    stats = ExecutionStats()
    stats.record(True, 5.0)
    stats.record(True, 5.0)
    stats.record(False, 5.0)

    assert stats.total_calls == stats.successful_calls + stats.failed_calls == 3
    assert stats.success_rate == 67

    snapshot = stats.snapshot()
    assert snapshot["success_rate"] == 67
    assert isinstance(snapshot["average_latency_ms"], int)


def test_success_rate_of_empty_stats_is_zero() -> None:
    assert ExecutionStats().success_rate == 0
