"""Prometheus metrics collection for Vidya.

Provides instrumentation for message handling, translation, retrieval,
index maintenance and concern escalation.
"""

import logging

from prometheus_client import Counter, Gauge, Histogram, start_http_server

logger = logging.getLogger(__name__)

# =============================================================================
# Message Metrics
# =============================================================================

messages_total = Counter(
    "vidya_messages_total",
    "Messages answered, by the branch that produced the answer",
    ["source_tag", "language"],
)

message_duration_seconds = Histogram(
    "vidya_message_duration_seconds",
    "End-to-end message handling duration in seconds",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
)

invalid_messages_total = Counter(
    "vidya_invalid_messages_total",
    "Messages rejected by validation",
    ["field"],
)

# =============================================================================
# Translation Metrics
# =============================================================================

translation_attempts_total = Counter(
    "vidya_translation_attempts_total",
    "Translation provider attempts",
    ["provider", "status"],  # success, error, empty, rejected
)

translation_fallbacks_total = Counter(
    "vidya_translation_fallbacks_total",
    "Translate calls that returned the original text after every provider failed",
)

endpoint_failovers_total = Counter(
    "vidya_endpoint_failovers_total",
    "Failovers from one translation endpoint to the next",
    ["provider"],
)

# =============================================================================
# Retrieval Metrics
# =============================================================================

retrieval_duration_seconds = Histogram(
    "vidya_retrieval_duration_seconds",
    "Evidence fan-out duration in seconds",
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0],
)

retrieval_results_total = Counter(
    "vidya_retrieval_results_total",
    "Evidence items returned, by source",
    ["source"],
)

retrieval_source_failures_total = Counter(
    "vidya_retrieval_source_failures_total",
    "Evidence sources that failed or timed out",
    ["source", "error_type"],
)

index_builds_total = Counter(
    "vidya_index_builds_total",
    "Similarity index builds",
    ["corpus", "status"],
)

index_documents = Gauge(
    "vidya_index_documents",
    "Documents in the most recent index build",
    ["corpus"],
)

# =============================================================================
# Concern Metrics
# =============================================================================

concerns_detected_total = Counter(
    "vidya_concerns_detected_total",
    "Distress concerns detected",
    ["concern_type", "severity"],
)

concern_detection_failures_total = Counter(
    "vidya_concern_detection_failures_total",
    "Concern classification calls that raised",
)


def start_metrics_server(port: int) -> None:
    """Expose the default registry over HTTP.

    Args:
        port: Port to listen on
    """
    start_http_server(port)
    logger.info(f"✅ Prometheus metrics available on :{port}/metrics")
