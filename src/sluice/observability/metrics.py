"""Prometheus metrics for SLUICE.

Metrics:
- sluice_decisions_total: Counter of eligibility decisions by outcome and reason
- sluice_records_total: Counter of committed disbursement records
- sluice_amount_disbursed_total: Counter of token amount recorded
- sluice_transfers_total: Counter of transfer attempts by status
- sluice_request_duration_seconds: Histogram of HTTP request duration
- sluice_transfer_duration_seconds: Histogram of transfer submission plus confirmation
"""

from prometheus_client import Counter, Histogram

# Counters
DECISIONS = Counter(
    "sluice_decisions_total",
    "Eligibility decisions",
    ["outcome", "reason"],
)

RECORDS = Counter(
    "sluice_records_total",
    "Committed disbursement records",
)

AMOUNT_DISBURSED = Counter(
    "sluice_amount_disbursed_total",
    "Total token amount recorded as disbursed",
)

TRANSFERS = Counter(
    "sluice_transfers_total",
    "Transfer attempts",
    ["status"],
)

# Histograms
REQUEST_DURATION = Histogram(
    "sluice_request_duration_seconds",
    "HTTP request processing duration",
    ["endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 30.0),
)

TRANSFER_DURATION = Histogram(
    "sluice_transfer_duration_seconds",
    "Transfer submission and confirmation duration",
    buckets=(1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)
