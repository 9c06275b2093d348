"""Prometheus metrics for the confd client.

Collectors are registered in the default registry. The library does not
start an HTTP exporter; applications that already expose prometheus_client
metrics get these for free.
"""

from prometheus_client import Counter, Gauge

SUBSCRIPTIONS_ACTIVE = Gauge(
    "confd_client_subscriptions_active",
    "Number of subscriptions with a running dispatch loop",
)

FRAMES_RECEIVED = Counter(
    "confd_client_frames_received_total",
    "Total frames decoded on subscription connections",
)

NOTIFICATIONS_DISPATCHED = Counter(
    "confd_client_notifications_dispatched_total",
    "Total configuration objects passed to handlers",
    ["path"],
)

SUBSCRIPTION_ERRORS = Counter(
    "confd_client_subscription_errors_total",
    "Dispatch loops terminated by an error",
    ["stage"],
)
