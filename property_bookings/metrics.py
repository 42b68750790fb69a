"""
Prometheus metrics for booking admission and reservation lifecycle.

The hosting application exposes these through its own /metrics endpoint; this
package only records them.

Metric Types:
    - Counter: Cumulative metrics that only increase (e.g., admissions)
    - Histogram: Observations bucketed by value (e.g., admission latency)

Example:
    >>> from property_bookings.metrics import admission_duration, admissions_total
    >>> with admission_duration.labels(operation="create").time():
    ...     record = service.create(owner_id, payload)
    >>> admissions_total.labels(operation="create", outcome="admitted").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# =============================================================================
# Admission Metrics
# =============================================================================

admissions_total = Counter(
    "bookings_admissions_total",
    "Admission decisions for new or re-dated reservations",
    ["operation", "outcome"],
)
"""
Counter for admission decisions.

Labels:
    operation: create, update or calendar_import
    outcome: admitted, overlapping_reservation, minimum_stay, maximum_stay
"""

admission_duration = Histogram(
    "bookings_admission_duration_seconds",
    "Duration of the locked check-and-write in seconds",
    ["operation"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, float("inf")),
)
"""
Histogram for admission latency, including time spent waiting on the property lock.

Labels:
    operation: create, update or calendar_import
"""

# =============================================================================
# Lifecycle Metrics
# =============================================================================

lifecycle_transitions = Counter(
    "bookings_lifecycle_transitions_total",
    "Reservation status transitions applied",
    ["event", "to_status"],
)
"""
Counter for applied lifecycle transitions.

Labels:
    event: confirm, check_in, check_out, cancel, mark_no_show
    to_status: Resulting reservation status
"""

# =============================================================================
# Store Metrics
# =============================================================================

store_failures = Counter(
    "bookings_store_failures_total",
    "Reservation store operations that failed because the database was unreachable",
    ["operation"],
)
"""Counter for StoreUnavailable errors raised by the services."""
