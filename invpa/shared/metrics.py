"""Prometheus metrics for the invoice pipeline.

Exposes key metrics for monitoring:
- Document outcomes by status
- Invoice extraction outcomes
- Grouping fallbacks
- Inference request counts and latency per pipeline operation
- Counterparty resolution outcomes

Based on Prometheus best practices:
https://prometheus.io/docs/practices/naming/
"""

from pathlib import Path

from prometheus_client import REGISTRY, Counter, Histogram, write_to_textfile

# Document processing metrics
documents_processed_total = Counter(
    "invpa_documents_processed_total",
    "Total documents processed",
    ["status"],  # success, partial, failed
)

invoices_extracted_total = Counter(
    "invpa_invoices_extracted_total",
    "Total invoice groups sent to detailed extraction",
    ["status"],  # success, failed
)

grouping_fallbacks_total = Counter(
    "invpa_grouping_fallbacks_total",
    "Documents whose page grouping degraded to a single invoice",
)

pages_rendered_total = Counter(
    "invpa_pages_rendered_total",
    "Total page images produced by the renderer",
)

# Inference metrics
inference_requests_total = Counter(
    "invpa_inference_requests_total",
    "Total vision model requests",
    ["operation", "status"],  # grouping/extraction/matching, success/failed
)

inference_request_duration_seconds = Histogram(
    "invpa_inference_request_duration_seconds",
    "Vision model request duration in seconds",
    ["operation"],
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)

# Counterparty metrics
counterparty_resolutions_total = Counter(
    "invpa_counterparty_resolutions_total",
    "Counterparty registry resolutions",
    ["outcome"],  # new, matched, unavailable
)


def write_metrics(path: Path) -> None:
    """Write current metrics to a node-exporter textfile.

    Args:
        path: Destination file
    """
    write_to_textfile(str(path), REGISTRY)
