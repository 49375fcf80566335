"""Prometheus metrics for the handshake engine.

Pre-defined metrics for traversal, chain discovery, clustering and
outbound delivery.
"""

from prometheus_client import Counter, Histogram, Info

# Application info
APP_INFO = Info(
    "handshake",
    "Handshake engine information",
)

# Recipient resolution
BFS_TRAVERSALS = Counter(
    "handshake_bfs_traversals_total",
    "Total number of BFS recipient traversals",
)

BFS_RECIPIENTS = Histogram(
    "handshake_bfs_recipients",
    "Recipients returned per BFS traversal",
    buckets=[0, 1, 5, 10, 50, 100, 500, 1000, 5000, 10000],
)

# Clearing chains
CYCLES_FOUND = Counter(
    "handshake_cycles_found_total",
    "Total number of skill-exchange cycles discovered",
    ["length"],
)

CHAINS_CREATED = Counter(
    "handshake_chains_created_total",
    "Total number of match chains persisted",
)

CHAINS_SKIPPED = Counter(
    "handshake_chains_skipped_total",
    "Total number of discovered cycles not persisted",
    ["reason"],
)

CHAIN_REPLACEMENTS = Counter(
    "handshake_chain_replacements_total",
    "Replacement search outcomes",
    ["outcome"],
)

CHAIN_TRANSITIONS = Counter(
    "handshake_chain_transitions_total",
    "Match chain status transitions",
    ["from_status", "to_status"],
)

# Clustering
CLUSTER_COMPUTATIONS = Counter(
    "handshake_cluster_computations_total",
    "Total number of cluster computations",
)

CLUSTER_COUNT = Histogram(
    "handshake_cluster_count",
    "Connected components per cluster computation",
    buckets=[1, 5, 10, 50, 100, 500, 1000, 5000],
)

# Collection notifications
NOTIFICATIONS_CREATED = Counter(
    "handshake_notifications_created_total",
    "Total number of collection notifications persisted",
    ["type"],
)

NOTIFICATIONS_EXPIRED = Counter(
    "handshake_notifications_expired_total",
    "Total number of notifications marked expired",
)

NOTIFICATION_WORKER_ERRORS = Counter(
    "handshake_notification_worker_errors_total",
    "Notification worker cycle failures",
    ["error_type"],
)

# Outbound delivery
EVENTS_DELIVERED = Counter(
    "handshake_events_delivered_total",
    "Outbound event deliveries",
    ["channel", "status"],
)


def set_app_info(version: str, environment: str) -> None:
    """Publish the engine version and deployment environment."""
    APP_INFO.info({
        "version": version,
        "environment": environment,
    })
