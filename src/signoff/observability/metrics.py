"""Prometheus metrics for the approval relay."""

from __future__ import annotations

from prometheus_client import Counter, Gauge

APPROVALS_REQUESTED = Counter(
    "signoff_approvals_requested_total", "Approval requests accepted from callers", ["kind"]
)
DELIVERY_FAILURES = Counter(
    "signoff_delivery_failures_total", "Messages the gateway failed to deliver", ["kind"]
)
DECISIONS_RECORDED = Counter(
    "signoff_decisions_recorded_total", "Decisions written by the approver", ["outcome"]
)
CALLBACKS_REJECTED = Counter(
    "signoff_callbacks_rejected_total", "Inbound callbacks dropped without state change", ["reason"]
)
POLLS = Counter("signoff_polls_total", "Poll calls by returned result", ["result"])
ENTRIES_REAPED = Counter(
    "signoff_entries_reaped_total", "Expired entries removed by the reaper", ["table"]
)
STORE_ENTRIES = Gauge("signoff_store_entries", "Entries currently held", ["table"])


def set_store_sizes(sizes: dict[str, int]) -> None:
    for table, size in sizes.items():
        STORE_ENTRIES.labels(table=table).set(size)
