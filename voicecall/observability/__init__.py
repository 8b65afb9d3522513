"""Observability module for metrics."""

from voicecall.observability.metrics import (
    ACTIVE_CALLS,
    CALL_DURATION,
    CALL_TOTAL,
    CYCLE_TOTAL,
    REPLY_LATENCY,
    STT_LATENCY,
    record_call_metrics,
    record_cycle,
)

__all__ = [
    "CALL_TOTAL",
    "CALL_DURATION",
    "ACTIVE_CALLS",
    "CYCLE_TOTAL",
    "STT_LATENCY",
    "REPLY_LATENCY",
    "record_call_metrics",
    "record_cycle",
]
