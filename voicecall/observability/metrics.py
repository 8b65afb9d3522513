"""Prometheus metrics for the voice call loop.

Provides metrics for monitoring call outcomes, turn latency, and loop health.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, generate_latest
from prometheus_client.exposition import CONTENT_TYPE_LATEST

# =============================================================================
# Counters
# =============================================================================

CALL_TOTAL = Counter(
    "voicecall_call_total",
    "Total voice calls by how they ended",
    ["outcome"],
)

CYCLE_TOTAL = Counter(
    "voicecall_cycle_total",
    "Listening cycles by outcome",
    ["outcome"],
)

LISTEN_TRIGGER_TOTAL = Counter(
    "voicecall_listen_trigger_total",
    "What ended each listening cycle",
    ["trigger"],
)

RECOVERABLE_ERROR_TOTAL = Counter(
    "voicecall_recoverable_error_total",
    "Recoverable engine failures that restarted listening",
    ["kind"],
)

BARGE_IN_TOTAL = Counter(
    "voicecall_barge_in_total",
    "Total replies interrupted by the user",
)

# =============================================================================
# Gauges
# =============================================================================

ACTIVE_CALLS = Gauge(
    "voicecall_active_calls",
    "Currently active calls",
)

# =============================================================================
# Histograms
# =============================================================================

CALL_DURATION = Histogram(
    "voicecall_call_duration_seconds",
    "Call duration in seconds",
    buckets=[10, 30, 60, 120, 300, 600, 900, 1800],
)

LISTEN_DURATION = Histogram(
    "voicecall_listen_duration_seconds",
    "Duration of one listening cycle",
    buckets=[0.5, 1.0, 2.0, 3.0, 5.0, 10.0, 20.0, 30.0, 60.0],
)

STT_LATENCY = Histogram(
    "voicecall_stt_latency_seconds",
    "Transcription latency per utterance",
    buckets=[0.1, 0.25, 0.5, 0.75, 1.0, 1.5, 2.0, 3.0, 5.0],
)

REPLY_LATENCY = Histogram(
    "voicecall_reply_latency_seconds",
    "Reply generation latency per utterance",
    buckets=[0.1, 0.25, 0.5, 0.75, 1.0, 1.5, 2.0, 3.0, 5.0, 10.0],
)

# =============================================================================
# Helper Functions
# =============================================================================


def record_call_metrics(
    outcome: str,
    duration_seconds: float,
    *,
    stt_latency_ms: float | None = None,
    reply_latency_ms: float | None = None,
    barge_in_count: int = 0,
) -> None:
    """Record metrics for a completed call.

    Args:
        outcome: How the call ended (user_ended, fatal_error)
        duration_seconds: Total call duration
        stt_latency_ms: Average transcription latency in milliseconds
        reply_latency_ms: Average reply latency in milliseconds
        barge_in_count: Number of interrupted replies
    """
    CALL_TOTAL.labels(outcome=outcome).inc()
    CALL_DURATION.observe(duration_seconds)

    # Latencies arrive in ms, histograms are in seconds
    if stt_latency_ms is not None and stt_latency_ms > 0:
        STT_LATENCY.observe(stt_latency_ms / 1000)

    if reply_latency_ms is not None and reply_latency_ms > 0:
        REPLY_LATENCY.observe(reply_latency_ms / 1000)

    if barge_in_count > 0:
        BARGE_IN_TOTAL.inc(barge_in_count)


def record_cycle(outcome: str, trigger: str | None = None, listen_seconds: float | None = None) -> None:
    """Record the outcome of one listening cycle.

    Args:
        outcome: replied, empty, transcription_failed, response_failed or capture_failed
        trigger: silence, timeout or manual (None when no audio was captured)
        listen_seconds: Time the microphone was open
    """
    CYCLE_TOTAL.labels(outcome=outcome).inc()
    if trigger is not None:
        LISTEN_TRIGGER_TOTAL.labels(trigger=trigger).inc()
    if listen_seconds is not None:
        LISTEN_DURATION.observe(listen_seconds)
    if outcome.endswith("_failed"):
        RECOVERABLE_ERROR_TOTAL.labels(kind=outcome.removesuffix("_failed")).inc()


def get_metrics() -> bytes:
    """Generate Prometheus metrics output.

    Returns:
        Metrics in Prometheus text exposition format.
    """
    return generate_latest()


def get_content_type() -> str:
    """Get the content type for Prometheus metrics."""
    return CONTENT_TYPE_LATEST
