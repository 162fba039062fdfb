"""Prometheus metrics for IAM token exchange.

One counter per terminal outcome, one for retries, and a histogram
covering a whole call (all attempts included).
"""

from prometheus_client import Counter, Histogram

token_exchange_requests_total = Counter(
    "iam_token_exchange_requests_total",
    "Total IAM token exchange calls by terminal outcome",
    ["grant_type", "outcome"],  # success, failed, locked, unclassified, timeout, cancelled
)

token_exchange_retries_total = Counter(
    "iam_token_exchange_retries_total",
    "Attempts retried after a connection error",
    ["grant_type"],
)

token_exchange_duration_seconds = Histogram(
    "iam_token_exchange_duration_seconds",
    "Duration of an IAM token exchange call, including retries",
    ["grant_type"],
)
