"""Prometheus metrics for the cart service."""

from __future__ import annotations

from typing import Final

from prometheus_client import Counter, Histogram

# Cart aggregate operations -------------------------------------------------------------------
CART_OPERATIONS_TOTAL: Final = Counter(
    "cart_operations_total",
    "Cart operations processed, by operation and outcome.",
    labelnames=("operation", "outcome"),
)

CART_TRANSACTION_RETRIES_TOTAL: Final = Counter(
    "cart_transaction_retries_total",
    "Cart transactions re-run after a concurrent-write conflict.",
    labelnames=("reason",),
)

CART_TRANSACTION_CONFLICTS_TOTAL: Final = Counter(
    "cart_transaction_conflicts_total",
    "Cart transactions abandoned after exhausting their retry attempts.",
)

# Collaborator calls --------------------------------------------------------------------------
GATEWAY_REQUESTS_TOTAL: Final = Counter(
    "cart_gateway_requests_total",
    "Outbound requests to catalog, inventory and delivery services.",
    labelnames=("service", "outcome"),
)

# Shipping estimation -------------------------------------------------------------------------
SHIPPING_PRODUCT_LOOKUP_FAILURES_TOTAL: Final = Counter(
    "shipping_product_lookup_failures_total",
    "Product lookups that failed while estimating shipping.",
    labelnames=("reason",),
)

SHIPPING_ESTIMATE_SECONDS: Final = Histogram(
    "shipping_estimate_seconds",
    "Time taken to produce a shipping estimate.",
    labelnames=("outcome",),
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2, 5),
)
